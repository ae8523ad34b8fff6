"""Marketplace FastAPI application.

Web server for order routing: checkout, order lifecycle, dispatch and
delivery verification. Commands are processed synchronously per request,
each request inside the marketplace domain context.

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from marketplace.domain import marketplace
from marketplace.notifications.fanout import get_fanout
from marketplace.utils.logging import add_context, clear_context, configure_logging

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV controls which config overlay is applied.
configure_logging()
marketplace.init()


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Let queued notifications go out before the process exits
    get_fanout().flush(timeout=10.0)


app = FastAPI(
    title="Marketplace API",
    description="Multi-supplier order routing, checkout to verified delivery",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the marketplace domain context and bind request fields for logging."""
    clear_context()
    add_context(request_id=request.headers.get("X-Request-ID", uuid4().hex), path=request.url.path)
    with marketplace.domain_context():
        response = await call_next(request)
    return response


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from marketplace.api import (  # noqa: E402
    catalogue_router,
    dispatch_router,
    order_router,
    payment_router,
    register_error_handlers,
    verification_router,
)

register_error_handlers(app)
app.include_router(catalogue_router)
app.include_router(order_router)
app.include_router(verification_router)
app.include_router(dispatch_router)
app.include_router(payment_router)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(
        content={
            "status": "ok",
            "domains": {"marketplace": {"name": marketplace.name}},
            "notifications": get_fanout().stats,
        }
    )
