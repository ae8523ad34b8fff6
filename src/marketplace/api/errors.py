"""Exception-to-HTTP mappings for the Marketplace API."""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from marketplace.errors import MarketplaceError

logger = structlog.get_logger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    """Protean's standard handlers plus the marketplace error taxonomy."""
    register_exception_handlers(app)

    @app.exception_handler(MarketplaceError)
    async def marketplace_error_handler(request: Request, exc: MarketplaceError) -> JSONResponse:
        logger.info(
            "Request rejected",
            path=request.url.path,
            kind=exc.kind,
            status_code=exc.status_code,
        )
        return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})
