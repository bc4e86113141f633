from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from bidmonitor import __version__
from bidmonitor.api.routes import router
from bidmonitor.core.config import AppConfig
from bidmonitor.core.logging import get_logger
from bidmonitor.core.relay import ProxyRelay

logger = get_logger("api")

CORS_ALLOW_METHODS = "GET, POST, OPTIONS"
CORS_ALLOW_HEADERS = (
    "X-CSRF-Token, X-Requested-With, Accept, Accept-Version, Content-Length, "
    "Content-MD5, Content-Type, Date, X-Api-Version, Authorization"
)


def create_app(config: AppConfig | None = None, relay: ProxyRelay | None = None) -> FastAPI:
    """
    Build the relay application.

    A relay instance may be injected (tests pass one with a mock transport);
    otherwise one is built from ``config.relay``.
    """
    config = config or AppConfig()
    if relay is None:
        relay = ProxyRelay(config.relay, block_loopback=config.effective_block_loopback)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "BidMonitor relay starting (environment=%s, loopback blocked=%s)",
            config.environment.value,
            relay.block_loopback,
        )
        yield
        await relay.close()
        logger.info("BidMonitor relay stopped")

    app = FastAPI(
        title="BidMonitor API",
        description="CORS-bypassing fetch relay for procurement page monitoring",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.relay = relay
    app.state.config = config

    allowed_origin = config.relay.allowed_origin

    @app.middleware("http")
    async def add_cors_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers["Access-Control-Allow-Origin"] = allowed_origin
        response.headers["Access-Control-Allow-Methods"] = CORS_ALLOW_METHODS
        response.headers["Access-Control-Allow-Headers"] = CORS_ALLOW_HEADERS
        response.headers["Access-Control-Max-Age"] = "86400"
        if allowed_origin != "*":
            response.headers["Access-Control-Allow-Credentials"] = "true"
        return response

    app.include_router(router)

    @app.get("/")
    async def root():
        """Root endpoint with basic info"""
        return {
            "service": "BidMonitor API",
            "version": __version__,
            "endpoints": {
                "fetch": "POST /fetch",
                "identity": "GET /fetch",
                "health": "GET /health",
            },
        }

    return app
