from fastapi import APIRouter, Request, Response, status
from fastapi.responses import JSONResponse

from bidmonitor import __version__
from bidmonitor.core.logging import get_logger
from bidmonitor.core.relay import RelayFailure, RelayValidationError
from bidmonitor.core.relay.base import utc_timestamp

logger = get_logger("api")

router = APIRouter()


@router.options("/fetch")
async def fetch_preflight():
    """Answer CORS pre-flight; headers come from the CORS middleware."""
    return Response(status_code=status.HTTP_200_OK)


@router.get("/fetch")
async def fetch_identity():
    """Static service identity, no side effects."""
    return {
        "status": "online",
        "service": "BidMonitor API",
        "version": __version__,
        "endpoint": "POST /fetch",
    }


@router.post("/fetch")
async def fetch_url(request: Request):
    """
    Relay a fetch upstream.

    Body: ``{url, method?, headers?, data?}``. Upstream HTTP errors come back
    as ``success: true`` with the upstream status; transport failures come
    back as ``success: false`` with a mapped status.
    """
    try:
        payload = await request.json()
    except ValueError:
        payload = None

    relay = request.app.state.relay
    try:
        outcome = await relay.fetch_payload(payload)
    except RelayValidationError as e:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "success": False,
                "error": str(e),
                "code": e.code,
                "timestamp": utc_timestamp(),
            },
        )
    except Exception as e:
        logger.exception("Unexpected relay failure")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "success": False,
                "error": str(e) or "Internal server error",
                "code": type(e).__name__,
                "timestamp": utc_timestamp(),
            },
        )

    if isinstance(outcome, RelayFailure):
        return JSONResponse(status_code=outcome.status, content=outcome.to_envelope())
    return JSONResponse(status_code=status.HTTP_200_OK, content=outcome.to_envelope())


@router.api_route("/fetch", methods=["PUT", "PATCH", "DELETE", "HEAD"])
async def fetch_wrong_method():
    """Any other method is refused."""
    return JSONResponse(
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        content={"error": "Method not allowed. Use POST."},
        headers={"Allow": "GET, POST, OPTIONS"},
    )


@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "service": "BidMonitor API"}
