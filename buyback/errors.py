"""
Domain error taxonomy.

Every error carries a stable ``code``, a human-readable message and the
HTTP status the API layer should answer with.
"""

from typing import Any


class BuybackError(Exception):
    """Base class for all domain errors."""

    code = "internal_error"
    status_code = 500

    def __init__(self, message: str, detail: Any = None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "detail": self.detail}


class ValidationError(BuybackError):
    """Malformed or missing input. Never retried."""

    code = "validation_error"
    status_code = 400


class NoTrackingNumber(ValidationError):
    """Order has neither an outbound nor an inbound tracking number."""

    code = "no_tracking_number"

    def __init__(self, message: str = "Tracking number not available for this order"):
        super().__init__(message)


class NotFound(BuybackError):
    code = "not_found"
    status_code = 404


class CredentialsMissing(BuybackError):
    """Provider credentials are not configured (operator-actionable)."""

    code = "credentials_missing"
    status_code = 500


class ProviderTransient(BuybackError):
    """
    Timeout, connection failure or 5xx from a tracking or label provider.

    The upstream status and body are preserved for operator diagnosis.
    """

    code = "provider_transient"
    status_code = 502

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        upstream_status: int | None = None,
        upstream_body: Any = None,
    ):
        super().__init__(
            message,
            detail={
                "provider": provider,
                "upstream_status": upstream_status,
                "upstream_body": upstream_body,
            },
        )
        self.provider = provider
        self.upstream_status = upstream_status
        self.upstream_body = upstream_body


class ProviderRejected(ValidationError):
    """Provider answered 4xx for this request."""

    code = "provider_rejected"

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        upstream_status: int | None = None,
        upstream_body: Any = None,
    ):
        super().__init__(
            message,
            detail={
                "provider": provider,
                "upstream_status": upstream_status,
                "upstream_body": upstream_body,
            },
        )
        self.provider = provider
        self.upstream_status = upstream_status
        self.upstream_body = upstream_body


class PromoExhausted(BuybackError):
    code = "promo_exhausted"
    status_code = 400


class PromoIneligible(BuybackError):
    code = "promo_ineligible"
    status_code = 400


class StateConflict(BuybackError):
    """Requested action does not fit the current state."""

    code = "state_conflict"
    status_code = 409


class ConcurrencyConflict(BuybackError):
    """Optimistic retries were exhausted while other writers kept winning."""

    code = "concurrency_conflict"
    status_code = 409
