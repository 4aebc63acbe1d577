"""
Tests for promo code and bulk print API endpoints.
"""

from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from buyback.api.main import app
from buyback.errors import NotFound, ValidationError
from buyback.models.print_job import PrintBatch
from buyback.models.promo import PromoCodeSnapshot


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
def mock_allocator():
    allocator = MagicMock()
    with patch(
        "buyback.api.routes.promo_codes.SequenceAllocator", return_value=allocator
    ), patch("buyback.api.routes.print_jobs.SequenceAllocator", return_value=allocator):
        yield allocator


class TestGetPromoCode:
    """Tests for GET /api/v1/promo-codes/{code} endpoint."""

    def test_get_promo_code(self, client, mock_db_initialized, mock_allocator):
        mock_allocator.promo_snapshot.return_value = PromoCodeSnapshot(
            code="SPRING",
            uses_left=3,
            max_uses=5,
            bonus_amount=Decimal("10"),
            requires_email_label=True,
            description="Spring bonus",
        )

        response = client.get("/api/v1/promo-codes/spring")

        assert response.status_code == 200
        data = response.json()
        assert data["uses_left"] == 3
        assert data["requires_email_label"] is True
        mock_allocator.promo_snapshot.assert_called_once_with("spring")

    def test_unknown_promo_code(self, client, mock_db_initialized, mock_allocator):
        mock_allocator.promo_snapshot.side_effect = NotFound("Promo code not found.")

        response = client.get("/api/v1/promo-codes/NOPE")

        assert response.status_code == 404
        assert response.json()["detail"]["message"] == "Promo code not found."


class TestReservePrintJob:
    """Tests for POST /api/v1/print-jobs endpoint."""

    def test_reserve(self, client, mock_db_initialized, mock_allocator):
        mock_allocator.reserve_print_batch.return_value = PrintBatch(
            sequence=7, folder_name="bulk-print-7", job_id="job-1"
        )

        response = client.post(
            "/api/v1/print-jobs", json={"order_ids": ["SHC-30000", "SHC-30001"]}
        )

        assert response.status_code == 201
        assert response.json() == {
            "sequence": 7,
            "folder_name": "bulk-print-7",
            "job_id": "job-1",
        }

    def test_reserve_without_orders(self, client, mock_db_initialized, mock_allocator):
        mock_allocator.reserve_print_batch.side_effect = ValidationError(
            "At least one order ID must be provided."
        )

        response = client.post("/api/v1/print-jobs", json={"order_ids": []})

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "validation_error"
