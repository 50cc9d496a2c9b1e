"""Logging configuration helpers."""

import logging

_STANDARD_ATTRIBUTES = frozenset(logging.makeLogRecord({}).__dict__) | {
    "message",
    "asctime",
}


class ContextFormatter(logging.Formatter):
    """Appends fields passed through ``extra`` as sorted ``key=value`` pairs."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _STANDARD_ATTRIBUTES and value is not None
        }
        if not context:
            return line
        pairs = " ".join(f"{key}={context[key]!r}" for key in sorted(context))
        return f"{line} [{pairs}]"


def configure_logging(level: str = "INFO") -> None:
    """Install one stream handler on the package logger; repeat calls only relevel."""
    logger = logging.getLogger("family_meal")
    logger.setLevel(level.upper())
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(ContextFormatter("%(levelname)s: %(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.propagate = False
