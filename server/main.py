"""
FastAPI gateway in front of the charter marketplace API.

Mints marketplace tokens, forwards search and detail queries, reshapes the
responses and caches them in process.
"""

import logging
from datetime import datetime
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from core.container import container
from core.logging import configure_logging, get_logger
from middleware.cors import CORSMiddleware
from routers import currency, marketplace
from services.marketplace.exceptions import (
    DownstreamTimeoutError,
    MarketplaceError,
    public_message,
)

logger = get_logger(__name__)

APP_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management."""
    settings = container.settings()
    logger.info("Starting charter gateway",
                marketplace=settings.marketplace_api_url,
                company=settings.company_uri)
    yield

    await container.http_client().aclose()
    logger.info("Services shutdown complete")


class CatchAllExceptionsMiddleware(BaseHTTPMiddleware):
    """Last line of defence: log the traceback, return a bare 500."""

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(f"Unhandled exception: {type(e).__name__}: {str(e)}",
                         path=request.url.path, exc_info=True)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"error": "Internal server error"}
            )


async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    log = logger.warning if exc.status_code < 500 else logger.error
    log("Request failed",
        path=request.url.path,
        error_type=type(exc).__name__,
        status_code=exc.status_code,
        timeout=isinstance(exc, DownstreamTimeoutError),
        error=str(exc))
    return JSONResponse(status_code=exc.status_code, content={"error": public_message(exc)})


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)},
                        headers=getattr(exc, "headers", None))


async def validation_error_handler(request: Request, exc: RequestValidationError):
    fields = ", ".join(".".join(str(p) for p in err.get("loc", ())[1:]) for err in exc.errors())
    message = f"Invalid request parameters: {fields}" if fields else "Invalid request parameters"
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": message})


def create_app() -> FastAPI:
    """Build the application from the container's settings."""
    settings = container.settings()
    configure_logging(settings)

    # Suppress noisy loggers; downstream calls are logged by the client hooks
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    app = FastAPI(
        title="Charter Gateway",
        version=APP_VERSION,
        description="Token-managed, cached proxy for the charter marketplace API",
        lifespan=lifespan,
        default_response_class=ORJSONResponse
    )

    app.add_exception_handler(MarketplaceError, marketplace_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.add_middleware(CatchAllExceptionsMiddleware)

    # CORS must wrap the exception middleware so error responses carry headers
    logger.info("Configuring CORS middleware",
                origins_count=len(settings.cors_origins),
                origins=settings.cors_origins)
    app.add_middleware(CORSMiddleware, allowed_origins=settings.cors_origins)

    app.include_router(marketplace.router)
    app.include_router(currency.router)

    @app.get("/health")
    async def health_check():
        """Liveness plus cache occupancy."""
        return {
            "status": "OK",
            "service": "charter-gateway",
            "version": APP_VERSION,
            "environment": "development" if settings.is_development else "production",
            "caches": {
                "responses": len(container.response_cache()),
                "token": len(container.token_cache()),
                "rates": len(container.rates_cache()),
            },
            "timestamp": datetime.now().isoformat()
        }

    return app


if __name__ == "__main__":
    import uvicorn
    settings = container.settings()
    logger.info("Starting charter gateway",
                host=settings.host, port=settings.port, debug=settings.debug)
    uvicorn.run(
        "main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        reload_dirs=["."] if settings.is_development else None,
        workers=1 if settings.is_development else settings.workers
    )
