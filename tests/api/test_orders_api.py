"""
Tests for order API endpoints.

These tests verify order creation, updates and label endpoints by mocking
the services the routes delegate to.
"""

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from buyback.api.main import app
from buyback.errors import NotFound, PromoExhausted, StateConflict
from buyback.models.order import Order, VoidLabelResponse, VoidResult
from buyback.models.promo import PromoRedemptionResult


@pytest.fixture
def client() -> TestClient:
    """Create a test client for the API."""
    return TestClient(app)


@pytest.fixture
def mock_db_initialized():
    """Mock DatabaseConnection.is_initialized to return True."""
    with patch("buyback.api.errors.DatabaseConnection") as mock_db:
        mock_db.is_initialized.return_value = True
        yield mock_db


@pytest.fixture
def sample_order() -> Order:
    """Create a sample order for testing."""
    now = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
    return Order(
        id="SHC-30000",
        customer_id="cus_1",
        status="shipping_kit_requested",
        shipping_preference="Shipping Kit Requested",
        created_at=now,
        updated_at=now,
    )


@pytest.fixture
def mock_allocator():
    with patch("buyback.api.routes.orders.SequenceAllocator") as mock_class:
        allocator = MagicMock()
        allocator.next_order_number.return_value = "SHC-30000"
        mock_class.return_value = allocator
        yield allocator


@pytest.fixture
def mock_store(sample_order):
    with patch("buyback.api.routes.orders.OrderRecordStore") as mock_class:
        store = MagicMock()
        store.create.side_effect = lambda order: order
        store.get.return_value = sample_order
        store.apply.return_value = sample_order
        mock_class.return_value = store
        yield store


@pytest.fixture
def mock_labels():
    with patch("buyback.api.routes.orders.LabelService") as mock_class:
        service = MagicMock()
        mock_class.return_value = service
        yield service


class TestCreateOrder:
    """Tests for POST /api/v1/orders endpoint."""

    def test_create_kit_order(
        self, client, mock_db_initialized, mock_allocator, mock_store
    ):
        """Test a kit order starts as shipping_kit_requested."""
        response = client.post(
            "/api/v1/orders",
            json={
                "customer_id": "cus_1",
                "shipping_preference": "Shipping Kit Requested",
                "shipping_info": {"full_name": "Ada", "email": "ada@example.com"},
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["id"] == "SHC-30000"
        assert data["status"] == "shipping_kit_requested"
        mock_allocator.redeem_promo.assert_not_called()
        created = mock_store.create.call_args.args[0]
        assert created.customer_id == "cus_1"
        assert created.shipping_info.email == "ada@example.com"

    def test_create_email_label_order_with_promo(
        self, client, mock_db_initialized, mock_allocator, mock_store
    ):
        """Test the promo bonus is recorded on the new order."""
        mock_allocator.redeem_promo.return_value = PromoRedemptionResult(
            code="SPRING",
            order_id="SHC-30000",
            amount=Decimal("10"),
            uses_left=4,
            max_uses=5,
            requires_email_label=True,
        )

        response = client.post(
            "/api/v1/orders",
            json={
                "shipping_preference": "Email Label Requested",
                "promo_code": "spring",
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "order_pending"
        assert data["promo_code"] == "SPRING"
        assert Decimal(str(data["promo_bonus_amount"])) == Decimal("10")
        args = mock_allocator.redeem_promo.call_args
        assert args.args == ("spring", "SHC-30000", "Email Label Requested")

    def test_rejected_promo_creates_nothing(
        self, client, mock_db_initialized, mock_allocator, mock_store
    ):
        mock_allocator.redeem_promo.side_effect = PromoExhausted(
            "Promo code has been fully redeemed."
        )

        response = client.post(
            "/api/v1/orders",
            json={
                "shipping_preference": "Shipping Kit Requested",
                "promo_code": "SPRING",
            },
        )

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "promo_exhausted"
        mock_store.create.assert_not_called()

    def test_invalid_shipping_preference(self, client, mock_db_initialized):
        response = client.post(
            "/api/v1/orders", json={"shipping_preference": "Carrier Pigeon"}
        )
        assert response.status_code == 422


class TestGetOrder:
    """Tests for GET /api/v1/orders/{order_id} endpoint."""

    def test_get_order(self, client, mock_db_initialized, mock_store):
        response = client.get("/api/v1/orders/SHC-30000")

        assert response.status_code == 200
        assert response.json()["id"] == "SHC-30000"
        mock_store.get.assert_called_once_with("SHC-30000")

    def test_get_order_not_found(self, client, mock_db_initialized, mock_store):
        mock_store.get.side_effect = NotFound("Order SHC-99999 not found")

        response = client.get("/api/v1/orders/SHC-99999")

        assert response.status_code == 404
        assert response.json()["detail"]["message"] == "Order SHC-99999 not found"


class TestUpdateOrder:
    """Tests for PATCH /api/v1/orders/{order_id} endpoint."""

    def test_update_status_is_canonicalized(
        self, client, mock_db_initialized, mock_store
    ):
        """Test legacy spellings are stored in canonical form."""
        response = client.patch(
            "/api/v1/orders/SHC-30000", json={"status": "Phone On The Way To Us"}
        )

        assert response.status_code == 200
        order_id, fields, options = mock_store.apply.call_args.args
        assert order_id == "SHC-30000"
        assert fields == {"status": "phone_on_the_way"}
        assert options.log_entries == []

    def test_update_note(self, client, mock_db_initialized, mock_store):
        response = client.patch(
            "/api/v1/orders/SHC-30000", json={"note": "Customer called"}
        )

        assert response.status_code == 200
        _, fields, options = mock_store.apply.call_args.args
        assert fields == {}
        assert options.log_entries == [{"type": "note", "message": "Customer called"}]

    def test_update_invalid_status(self, client, mock_db_initialized, mock_store):
        response = client.patch(
            "/api/v1/orders/SHC-30000", json={"status": "teleported"}
        )

        assert response.status_code == 400
        assert "Invalid status" in response.json()["detail"]["message"]
        mock_store.apply.assert_not_called()

    def test_update_nothing(self, client, mock_db_initialized, mock_store):
        response = client.patch("/api/v1/orders/SHC-30000", json={})
        assert response.status_code == 400


class TestVoidLabel:
    """Tests for POST /api/v1/orders/{order_id}/void-label endpoint."""

    def test_void_label(self, client, mock_db_initialized, mock_labels):
        mock_labels.void_labels.return_value = VoidLabelResponse(
            order_id="SHC-30000",
            results=[
                VoidResult(slot="outbound", label_id="se-1", approved=True),
                VoidResult(
                    slot="inbound",
                    approved=False,
                    message="No label identifier found for selection.",
                ),
            ],
            status="cancelled",
        )

        response = client.post(
            "/api/v1/orders/SHC-30000/void-label",
            json={"labels": ["outbound", "inbound"]},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "cancelled"
        assert [r["approved"] for r in data["results"]] == [True, False]
        mock_labels.void_labels.assert_called_once_with(
            "SHC-30000", ["outbound", "inbound"]
        )


class TestGenerateLabel:
    """Tests for POST /api/v1/orders/{order_id}/labels/{slot} endpoint."""

    def test_generate_label(
        self, client, mock_db_initialized, mock_labels, sample_order
    ):
        mock_labels.generate_label.return_value = sample_order

        response = client.post(
            "/api/v1/orders/SHC-30000/labels/outbound",
            json={"business_address": {"name": "Warehouse", "postalCode": "73301"}},
        )

        assert response.status_code == 201
        order_id, slot, request = mock_labels.generate_label.call_args.args
        assert (order_id, slot) == ("SHC-30000", "outbound")
        assert request.business_address["postalCode"] == "73301"
        assert request.carrier_code == "stamps_com"

    def test_generate_label_slot_taken(self, client, mock_db_initialized, mock_labels):
        mock_labels.generate_label.side_effect = StateConflict(
            "Order SHC-30000 already has a outbound label"
        )

        response = client.post(
            "/api/v1/orders/SHC-30000/labels/outbound",
            json={"business_address": {"name": "Warehouse"}},
        )

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "state_conflict"
