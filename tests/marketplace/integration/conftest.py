import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient
from marketplace.api import (
    catalogue_router,
    dispatch_router,
    order_router,
    payment_router,
    register_error_handlers,
    verification_router,
)
from marketplace.domain import marketplace


@pytest.fixture()
def client():
    app = FastAPI()

    @app.middleware("http")
    async def domain_context_middleware(request: Request, call_next):
        with marketplace.domain_context():
            return await call_next(request)

    register_error_handlers(app)
    app.include_router(catalogue_router)
    app.include_router(order_router)
    app.include_router(verification_router)
    app.include_router(dispatch_router)
    app.include_router(payment_router)
    return TestClient(app)


@pytest.fixture()
def headers():
    def _as(actor_id, role):
        return {"X-Actor-Id": actor_id, "X-Actor-Role": role}

    return _as
