"""Cancellation handle shared by the live queries."""

import threading
from collections.abc import Callable
from dataclasses import dataclass, field


def _noop() -> None:
    return None


@dataclass
class Subscription:
    """Handle for a live query.

    The store's cancel callback is attached once the listener is registered.
    The first snapshot can arrive before that, and a consumer may unsubscribe
    from inside it; ``attach`` then cancels the listener straight away.
    """

    cancel: Callable[[], None] = _noop
    _active: bool = True
    _lock: threading.Lock = field(default_factory=threading.Lock)

    @property
    def active(self) -> bool:
        return self._active

    def attach(self, cancel: Callable[[], None]) -> None:
        """Bind the listener's cancel callback."""
        with self._lock:
            if self._active:
                self.cancel = cancel
                return
        cancel()

    def unsubscribe(self) -> None:
        """Stop delivery; calling it more than once is a no-op."""
        with self._lock:
            if not self._active:
                return
            self._active = False
            cancel = self.cancel
        cancel()
