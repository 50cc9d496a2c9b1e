"""Admin API endpoints with simple token auth."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status

if TYPE_CHECKING:
    from family_meal.containers import AppContainer

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_admin_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not x_admin_token or x_admin_token != admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.get("/health", dependencies=[Depends(require_admin)])
async def admin_health() -> dict[str, str]:
    """Admin health check endpoint."""
    return {"status": "ok"}


@router.post("/migrations/meals", dependencies=[Depends(require_admin)])
def migrate_meals(
    request: Request, dry_run: bool = Query(default=False, alias="dryRun")
) -> dict[str, object]:
    """Normalize legacy meal documents."""
    container: AppContainer = request.app.state.container
    return container.migration_service.migrate_meals(dry_run=dry_run).to_dict()


@router.post("/migrations/comments", dependencies=[Depends(require_admin)])
def migrate_comments(
    request: Request, dry_run: bool = Query(default=False, alias="dryRun")
) -> dict[str, object]:
    """Move embedded comment arrays into the comments sub-collection."""
    container: AppContainer = request.app.state.container
    return container.migration_service.migrate_comments(dry_run=dry_run).to_dict()
