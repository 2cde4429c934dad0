from datetime import datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from fastapi.testclient import TestClient

from syncpay.core.config import GatewayConfig
from syncpay.core.dependencies import (
    get_current_user,
    get_gateway_config,
    get_order_service,
    get_reconciliation_service,
)
from syncpay.core.exceptions import (
    GatewayError,
    InvalidPlanError,
    OrderNotFoundError,
    PaymentConflictError,
    PersistenceError,
    SignatureMismatchError,
)
from syncpay.models import Payment, Users
from syncpay.modules.payment.order_service import CreatedOrder
from syncpay.modules.payment.reconciliation_service import ReconcileResult


@pytest.fixture
def order_service(app_instance):
    service = MagicMock()
    service.create_order = AsyncMock(return_value=CreatedOrder(
        gateway_order_id="order_1", amount=Decimal("500"), currency="INR", payment_id="row_1",
    ))
    app_instance.dependency_overrides[get_order_service] = lambda: service
    return service


@pytest.fixture
def reconciliation_service(app_instance):
    service = MagicMock()
    service.reconcile = AsyncMock(return_value=ReconcileResult(
        activated=True,
        payment_id="row_1",
        replayed=False,
        current_period_start=datetime(2026, 1, 31, 10, 0),
        current_period_end=datetime(2026, 2, 28, 10, 0),
    ))
    app_instance.dependency_overrides[get_reconciliation_service] = lambda: service
    return service


VERIFY_BODY = {
    "order_id": "order_1",
    "payment_id": "pay_1",
    "signature": "abc123",
    "company_id": "c1",
    "plan_id": "p1",
}


# --- create-payment-order ---

def test_create_order_returns_checkout_details(authenticated_client, order_service):
    response = authenticated_client.post(
        "/api/create-payment-order",
        json={"plan_id": "p1", "billing_cycle": "monthly", "company_id": "c1"},
    )

    assert response.status_code == 200
    assert response.json() == {"order_id": "order_1", "amount": 500, "currency": "INR", "key_id": "rzp_test_key"}
    kwargs = order_service.create_order.await_args.kwargs
    assert kwargs["user_id"] == "u1"
    assert kwargs["plan_id"] == "p1"
    assert kwargs["billing_cycle"] == "monthly"
    assert kwargs["company_id"] == "c1"


def test_create_order_defaults_to_callers_company_and_monthly(authenticated_client, order_service):
    response = authenticated_client.post("/api/create-payment-order", json={"plan_id": "p1"})

    assert response.status_code == 200
    kwargs = order_service.create_order.await_args.kwargs
    assert kwargs["company_id"] == "c1"
    assert kwargs["billing_cycle"] == "monthly"


def test_create_order_for_another_company_is_forbidden(authenticated_client, order_service):
    response = authenticated_client.post("/api/create-payment-order", json={"plan_id": "p1", "company_id": "c2"})

    assert response.status_code == 403
    order_service.create_order.assert_not_awaited()


def test_create_order_without_a_company_is_rejected(app_instance, order_service):
    app_instance.dependency_overrides[get_current_user] = lambda: Users(
        id="u3", name="Ravi", email="ravi@example.test", role="admin", company_id=None,
    )
    with TestClient(app_instance) as client:
        response = client.post("/api/create-payment-order", json={"plan_id": "p1", "company_id": "c1"})

    assert response.status_code == 400
    assert response.json() == {"error": "User is not a member of a company", "code": 400}
    order_service.create_order.assert_not_awaited()


def test_create_order_requires_authentication(anonymous_client, order_service):
    response = anonymous_client.post("/api/create-payment-order", json={"plan_id": "p1"})

    assert response.status_code == 401
    assert response.json() == {"error": "User not authenticated", "code": 401}


def test_create_order_rejects_unknown_cycle(authenticated_client, order_service):
    response = authenticated_client.post("/api/create-payment-order", json={"plan_id": "p1", "billing_cycle": "weekly"})

    assert response.status_code == 400
    assert response.json()["error"] == "Validation failed"


@pytest.mark.parametrize(
    "error,status_code,message",
    [
        (InvalidPlanError(), 400, "Invalid Plan"),
        (GatewayError("Payment gateway timed out, please retry"), 502, "Payment gateway timed out, please retry"),
        (PersistenceError("Could not record the payment order, please retry"), 503, "Could not record the payment order, please retry"),
    ],
)
def test_create_order_error_mapping(authenticated_client, order_service, error, status_code, message):
    order_service.create_order.side_effect = error

    response = authenticated_client.post("/api/create-payment-order", json={"plan_id": "p1"})

    assert response.status_code == status_code
    assert response.json() == {"error": message, "code": status_code}


# --- verify-payment ---

def test_verify_payment_success(anonymous_client, reconciliation_service):
    response = anonymous_client.post("/api/verify-payment", json=VERIFY_BODY)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["replayed"] is False
    assert body["current_period_end"] == "2026-02-28T10:00:00"
    reconciliation_service.reconcile.assert_awaited_once()
    assert reconciliation_service.reconcile.await_args.kwargs["signature"] == "abc123"


@pytest.mark.parametrize(
    "error,status_code",
    [
        (SignatureMismatchError(), 409),
        (PaymentConflictError("Order order_1 is already failed"), 409),
        (OrderNotFoundError("order_1"), 404),
        (PersistenceError("Could not record the payment, please retry"), 503),
    ],
)
def test_verify_payment_error_mapping(anonymous_client, reconciliation_service, error, status_code):
    reconciliation_service.reconcile.side_effect = error

    response = anonymous_client.post("/api/verify-payment", json=VERIFY_BODY)

    assert response.status_code == status_code
    assert response.json() == {"error": error.detail, "code": status_code}


def test_verify_payment_without_gateway_secret_is_a_server_error(app_instance):
    app_instance.dependency_overrides[get_gateway_config] = lambda: GatewayConfig(key_id="rzp_test_key", key_secret="")
    with TestClient(app_instance) as client:
        response = client.post("/api/verify-payment", json=VERIFY_BODY)

    assert response.status_code == 500
    assert response.json() == {"error": "Payment gateway is not configured", "code": 500}


def test_verify_payment_rejects_missing_fields(anonymous_client, reconciliation_service):
    body = dict(VERIFY_BODY)
    del body["signature"]

    response = anonymous_client.post("/api/verify-payment", json=body)

    assert response.status_code == 400
    reconciliation_service.reconcile.assert_not_awaited()


# --- payment history ---

def test_list_payments_is_paginated(authenticated_client):
    payments = [
        Payment(
            id="row_1", user_id="u1", company_id="c1", plan_id="p1", amount=Decimal("500"), currency="INR",
            billing_cycle="monthly", gateway_order_id="order_1", gateway_payment_id="pay_1", status="success",
            invoice_number=3, created_at=datetime(2026, 1, 31, 9, 55), paid_at=datetime(2026, 1, 31, 10, 0),
        ),
    ]
    with patch(
        "syncpay.modules.payment.api.payment_repository.list_by_company",
        new=AsyncMock(return_value=(payments, 21)),
    ) as list_by_company:
        response = authenticated_client.get("/api/payments?page=2&limit=10")

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 21
    assert body["current_page"] == 2
    assert body["total_pages"] == 3
    assert body["items"][0]["gateway_order_id"] == "order_1"
    assert body["items"][0]["amount"] == 500.0
    assert list_by_company.await_args.args[1] == "c1"
    assert list_by_company.await_args.kwargs == {"skip": 10, "limit": 10}


# --- CORS ---

def test_cors_preflight_allows_checkout_headers(anonymous_client):
    response = anonymous_client.options(
        "/api/create-payment-order",
        headers={
            "Origin": "https://app.example.com",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "authorization, x-client-info, apikey, content-type",
        },
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"
    allowed = response.headers["access-control-allow-headers"].lower()
    for header in ("authorization", "x-client-info", "apikey", "content-type"):
        assert header in allowed
    assert "POST" in response.headers["access-control-allow-methods"]
