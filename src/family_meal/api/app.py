"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from family_meal.api.admin import router as admin_router
from family_meal.api.client_errors import router as client_errors_router
from family_meal.api.meals import router as meals_router
from family_meal.api.profile import router as profile_router
from family_meal.app_logging import configure_logging
from family_meal.containers import AppContainer
from family_meal.domain.errors import FamilyMealError


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(meals_router)
    app.include_router(profile_router)
    app.include_router(client_errors_router)
    app.include_router(admin_router)

    @app.exception_handler(FamilyMealError)
    async def handle_domain_error(
        request: Request, exc: FamilyMealError
    ) -> JSONResponse:
        if exc.status_code >= 500:  # noqa: PLR2004
            logger.error("Request failed: %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=exc.status_code, content={"ok": False, "error": exc.message}
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        logger.info(
            "Rejected payload for %s: %d errors", request.url.path, len(exc.errors())
        )
        return JSONResponse(
            status_code=400, content={"ok": False, "error": "Invalid payload"}
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled error on %s %s",
            request.method,
            request.url.path,
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500, content={"ok": False, "error": "internal error"}
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/version")
    async def version() -> JSONResponse:
        """Report the deployed build so clients can detect updates."""
        return JSONResponse(
            content={
                "version": container.settings.app_version,
                "checkedAt": datetime.now(tz=UTC).isoformat(),
            },
            headers={"Cache-Control": "no-store, no-cache, must-revalidate, max-age=0"},
        )

    return app
