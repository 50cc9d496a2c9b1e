"""Profile endpoints, including the server-side role assignment."""

from fastapi import APIRouter, Depends, Query

from family_meal.api.dependencies import current_identity, current_user, get_container
from family_meal.api.schemas import (
    ProfileCreateRequest,
    ProfileUpdateRequest,
    RoleRequest,
    profile_payload,
)
from family_meal.containers import AppContainer
from family_meal.domain.models import Actor, VerifiedUser

router = APIRouter(prefix="/profile", tags=["profile"])


@router.get("")
def get_profile(
    uid: str | None = Query(default=None),
    actor: Actor = Depends(current_identity),
    container: AppContainer = Depends(get_container),
) -> dict[str, object]:
    """Return the caller's profile, or another member's when ``uid`` is given."""
    profile = container.profile_service.get(actor, uid or actor.uid)
    return {"profile": profile_payload(profile)}


@router.post("")
def create_profile(
    body: ProfileCreateRequest,
    actor: Actor = Depends(current_identity),
    container: AppContainer = Depends(get_container),
) -> dict[str, object]:
    profile = container.profile_service.create(actor, body.display_name)
    return {"profile": profile_payload(profile)}


@router.patch("")
def update_profile(
    body: ProfileUpdateRequest,
    actor: Actor = Depends(current_identity),
    container: AppContainer = Depends(get_container),
) -> dict[str, object]:
    profile = container.profile_service.update_display_name(actor, body.display_name)
    return {"profile": profile_payload(profile)}


@router.post("/role")
def assign_role(
    body: RoleRequest,
    user: VerifiedUser = Depends(current_user),
    container: AppContainer = Depends(get_container),
) -> dict[str, object]:
    """Select the caller's household role."""
    profile = container.profile_service.assign_role(user, body.role)
    return {"ok": True, "profile": profile_payload(profile)}
