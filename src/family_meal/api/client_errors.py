"""Diagnostic endpoint for browser-side errors."""

from fastapi import APIRouter, Depends, Request

from family_meal.api.dependencies import get_container
from family_meal.api.schemas import ClientErrorRequest
from family_meal.containers import AppContainer
from family_meal.services.client_errors import ClientErrorReport

router = APIRouter(tags=["diagnostics"])


@router.post("/client-errors")
async def report_client_error(
    body: ClientErrorRequest,
    request: Request,
    container: AppContainer = Depends(get_container),
) -> dict[str, object]:
    """Log an error reported by the web client."""
    container.client_error_service.report(
        _client_key(request),
        ClientErrorReport(
            type=body.type,
            message=body.message,
            stack=body.stack,
            source=body.source,
            lineno=body.lineno,
            colno=body.colno,
            url=body.url,
            user_agent=body.user_agent,
            timestamp=body.timestamp,
        ),
    )
    return {"ok": True}


def _client_key(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for", "")
    first_hop = forwarded.split(",")[0].strip()
    if first_hop:
        return first_hop
    if request.client is not None:
        return request.client.host
    return "unknown"
