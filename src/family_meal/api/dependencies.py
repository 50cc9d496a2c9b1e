"""Request-scoped dependencies shared by the routers."""

from fastapi import Depends, Header, Request

from family_meal.containers import AppContainer
from family_meal.domain.errors import InvalidArgument
from family_meal.domain.models import Actor, VerifiedUser


def get_container(request: Request) -> AppContainer:
    return request.app.state.container


def current_user(
    authorization: str | None = Header(default=None),
    container: AppContainer = Depends(get_container),
) -> VerifiedUser:
    """Verify the bearer credential of the request."""
    return container.identity_service.verify(authorization)


def current_actor(
    user: VerifiedUser = Depends(current_user),
    container: AppContainer = Depends(get_container),
) -> Actor:
    """Resolve the caller's profile; callers without one are forbidden."""
    return container.identity_service.resolve_actor(user)


def current_identity(
    user: VerifiedUser = Depends(current_user),
    container: AppContainer = Depends(get_container),
) -> Actor:
    """Resolve the caller, tolerating a missing profile."""
    return container.identity_service.lookup_actor(user)


def clean_id(raw: str, label: str) -> str:
    value = raw.strip()
    if not value:
        raise InvalidArgument(f"Invalid {label} id")
    return value
