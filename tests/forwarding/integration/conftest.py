import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from forwarding.api.routes import routers
from protean.integrations.fastapi import register_exception_handlers


@pytest.fixture()
def client():
    app = FastAPI()
    for router in routers:
        app.include_router(router)
    register_exception_handlers(app)
    return TestClient(app)


@pytest.fixture()
def order_body(default_lines):
    """Request body for POST /orders with the default keyboard and mouse lines."""

    def _body(quote_id="Q-API-1", **overrides):
        body = {
            "customer_id": "cust-api",
            "quote_snapshot": {"quote_id": quote_id, "lines": default_lines, "currency": "USD"},
            "payment_id": "pay-api",
            "payment_method": "khalti",
        }
        body.update(overrides)
        return body

    return _body
