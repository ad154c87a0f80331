"""
HTTP-level tests: authentication, role guards, error envelope and
request/response mapping. Services are patched; no database is needed.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jose import JWTError

from mrms.database import get_db
from mrms.errors import BusinessRuleViolation, InvalidTransition, NotFound
from mrms.main import app
from mrms.middleware.auth import get_current_user
from mrms.models.purchase_order import PurchaseOrder
from mrms.models.request import MaterialRequest
from mrms.services.request_service import BulkUpdateResult


def _make_user(role: str):
    u = MagicMock()
    u.id = uuid.uuid4()
    u.role = role
    u.is_active = True
    u.assigned_site_ids = set()
    return u


def _make_request(status: str, quantity: int) -> MaterialRequest:
    now = datetime(2026, 1, 5, 10, 30, 0)
    return MaterialRequest(
        id=uuid.uuid4(),
        request_number="017",
        item_order=1,
        created_by=uuid.uuid4(),
        site_id=uuid.uuid4(),
        item_name="Cement Bag",
        description="OPC 53 grade",
        quantity=quantity,
        unit="bags",
        required_by=datetime(2026, 2, 1),
        is_urgent=False,
        status=status,
        created_at=now,
        updated_at=now,
    )


@pytest.fixture
def db_session():
    session = AsyncMock()
    session.add = MagicMock()
    return session


@pytest_asyncio.fixture
async def client(db_session):
    async def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


def _login_as(user):
    app.dependency_overrides[get_current_user] = lambda: user


# ---------------------------------------------------------------------------
# Authentication / authorization
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_missing_token_is_401(client):
    resp = await client.get("/api/v1/requests")

    assert resp.status_code == 401
    assert resp.json() == {"error": {"code": "NOT_AUTHENTICATED", "message": "Not authenticated"}}


@pytest.mark.asyncio
async def test_invalid_token_is_401(client):
    with patch("mrms.middleware.auth.verify_access_token", side_effect=JWTError("bad")):
        resp = await client.get("/api/v1/requests", headers={"Authorization": "Bearer nope"})

    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "NOT_AUTHENTICATED"


@pytest.mark.asyncio
async def test_wrong_role_on_guarded_route_is_403(client):
    _login_as(_make_user("site_engineer"))

    resp = await client.post(
        "/api/v1/requests/bulk-status",
        json={"request_ids": [str(uuid.uuid4())], "status": "approved"},
    )

    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "UNAUTHORIZED"


# ---------------------------------------------------------------------------
# Error envelope
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_body_validation_error_is_400(client):
    _login_as(_make_user("manager"))

    resp = await client.post("/api/v1/requests/bulk-status", json={"request_ids": []})

    assert resp.status_code == 400
    body = resp.json()
    assert body["error"]["code"] == "VALIDATION_ERROR"
    assert any(d["loc"][-1] == "status" for d in body["error"]["details"])


@pytest.mark.asyncio
async def test_invalid_transition_is_409(client):
    _login_as(_make_user("purchase_officer"))

    with patch(
        "mrms.routes.requests.request_service.direct_to_po",
        AsyncMock(side_effect=InvalidTransition("pending", "ready_for_po")),
    ):
        resp = await client.post(f"/api/v1/requests/{uuid.uuid4()}/direct-to-po")

    assert resp.status_code == 409
    assert resp.json() == {
        "error": {
            "code": "INVALID_TRANSITION",
            "message": "Invalid status transition from pending to ready_for_po",
        }
    }


@pytest.mark.asyncio
async def test_not_found_is_404(client):
    _login_as(_make_user("manager"))

    with patch(
        "mrms.routes.requests.request_service.get_request_for_user",
        AsyncMock(side_effect=NotFound("Request not found")),
    ):
        resp = await client.get(f"/api/v1/requests/{uuid.uuid4()}")

    assert resp.status_code == 404
    assert resp.json()["error"]["message"] == "Request not found"


@pytest.mark.asyncio
async def test_business_rule_violation_is_422(client):
    _login_as(_make_user("purchase_officer"))

    with patch(
        "mrms.routes.purchase_orders.purchase_order_service.cancel_purchase_order",
        AsyncMock(side_effect=BusinessRuleViolation("Cannot cancel a delivered purchase order")),
    ):
        resp = await client.post(f"/api/v1/purchase-orders/{uuid.uuid4()}/cancel")

    assert BusinessRuleViolation.status_code == 422
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "BUSINESS_RULE_VIOLATION"


# ---------------------------------------------------------------------------
# Response mapping
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_bulk_status_reports_only_updated_ids(client):
    _login_as(_make_user("manager"))
    moved, skipped = uuid.uuid4(), uuid.uuid4()

    with patch(
        "mrms.routes.requests.request_service.bulk_update_request_status",
        AsyncMock(return_value=BulkUpdateResult(updated_ids=[moved], skipped_ids=[skipped])),
    ):
        resp = await client.post(
            "/api/v1/requests/bulk-status",
            json={"request_ids": [str(moved), str(skipped)], "status": "approved"},
        )

    assert resp.status_code == 200
    assert resp.json() == {
        "updated_count": 1,
        "updated_ids": [str(moved)],
        "skipped_ids": [str(skipped)],
    }


@pytest.mark.asyncio
async def test_split_delivery_returns_both_halves(client):
    _login_as(_make_user("purchase_officer"))
    delivered = _make_request("delivery_stage", 40)
    delivered.direct_action = "delivery"
    remaining = _make_request("recheck", 60)
    service = AsyncMock(return_value=(delivered, remaining))

    with patch("mrms.routes.requests.request_service.split_and_deliver_inventory", service):
        resp = await client.post(
            f"/api/v1/requests/{remaining.id}/split-delivery", json={"inventory_quantity": 40}
        )

    assert resp.status_code == 200
    body = resp.json()
    assert body["delivered"]["quantity"] == 40
    assert body["delivered"]["status"] == "delivery_stage"
    assert body["delivered"]["direct_action"] == "delivery"
    assert body["remaining"]["quantity"] == 60
    assert body["remaining"]["created_at"] == "2026-01-05T10:30:00"
    assert service.await_args.args[2] == str(remaining.id)
    assert service.await_args.args[3] == 40


@pytest.mark.asyncio
async def test_correlation_id_echoed(client):
    _login_as(_make_user("manager"))

    with patch(
        "mrms.routes.requests.request_service.list_requests",
        AsyncMock(return_value=([], 0)),
    ):
        resp = await client.get("/api/v1/requests", headers={"X-Request-ID": "req-123"})

    assert resp.status_code == 200
    assert resp.headers["X-Request-ID"] == "req-123"
    assert resp.json()["pagination"]["total"] == 0


@pytest.mark.asyncio
async def test_health_reports_db_ok(client):
    resp = await client.get("/health")

    assert resp.status_code == 200
    assert resp.json()["checks"]["db"] == "ok"


@pytest.mark.asyncio
async def test_user_admin_is_manager_only(client):
    _login_as(_make_user("purchase_officer"))

    resp = await client.get("/api/v1/users")

    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_me_returns_current_user(client):
    user = _make_user("site_engineer")
    user.username = "ravi.k"
    user.full_name = "Ravi Kulkarni"
    user.phone_number = None
    user.created_at = datetime(2026, 1, 2, 8, 0, 0)
    site = MagicMock()
    site.id = uuid.uuid4()
    user.assigned_sites = [site]
    _login_as(user)

    resp = await client.get("/api/v1/users/me")

    assert resp.status_code == 200
    body = resp.json()
    assert body["role"] == "site_engineer"
    assert body["assigned_site_ids"] == [str(site.id)]


@pytest.mark.asyncio
async def test_direct_po_response_has_no_request(client):
    _login_as(_make_user("purchase_officer"))
    now = datetime(2026, 1, 5, 10, 30, 0)
    po = PurchaseOrder(
        id=uuid.uuid4(),
        po_number="PO-000007",
        request_id=None,
        delivery_site_id=uuid.uuid4(),
        is_direct=True,
        vendor_id=uuid.uuid4(),
        created_by=uuid.uuid4(),
        item_description="Red clay bricks",
        quantity=5000,
        unit="nos",
        unit_rate=Decimal("8500"),
        per_unit_basis=1000,
        discount_percent=Decimal("0"),
        gst_percent=Decimal("5"),
        total_amount=Decimal("44625.00"),
        status="pending_approval",
        valid_till=datetime(2026, 11, 30),
        created_at=now,
        updated_at=now,
    )
    service = AsyncMock(return_value=po)

    with patch("mrms.routes.purchase_orders.purchase_order_service.create_direct_purchase_order", service):
        resp = await client.post(
            "/api/v1/purchase-orders/direct",
            json={
                "item_description": "Red clay bricks",
                "quantity": 5000,
                "unit": "nos",
                "delivery_site_id": str(po.delivery_site_id),
                "vendor_id": str(po.vendor_id),
                "unit_rate": "8500",
                "per_unit_basis": 1000,
                "gst_percent": "5",
                "valid_till": "2026-11-30T00:00:00",
            },
        )

    assert resp.status_code == 201
    body = resp.json()
    assert body["request_id"] is None
    assert body["is_direct"] is True
    assert body["delivery_site_id"] == str(po.delivery_site_id)
    assert body["valid_till"] == "2026-11-30T00:00:00"
