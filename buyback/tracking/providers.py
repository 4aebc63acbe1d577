"""
Carrier API clients.

ShipStation is the primary provider (tracking and label creation) and
ShipEngine the fallback (tracking) and the label void endpoint. Every call
carries an explicit timeout. Timeouts, connection failures and 5xx answers
become ``ProviderTransient``; 4xx answers become ``ProviderRejected``.
"""

import logging
from typing import Any, Optional

import requests

from buyback import config
from buyback.errors import (
    BuybackError,
    CredentialsMissing,
    ProviderRejected,
    ProviderTransient,
)
from buyback.tracking.classifier import normalize_shipstation_tracking

logger = logging.getLogger(__name__)

SHIPSTATION = "shipstation"
SHIPENGINE = "shipengine"


def _response_body(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def _send(provider: str, method: str, url: str, timeout: float, **kwargs) -> Any:
    """Issue one provider request and map failures onto the error taxonomy."""
    try:
        response = requests.request(method, url, timeout=timeout, **kwargs)
    except requests.Timeout as e:
        raise ProviderTransient(
            f"{provider} request timed out after {timeout}s", provider=provider
        ) from e
    except requests.RequestException as e:
        raise ProviderTransient(
            f"{provider} request failed: {e}", provider=provider
        ) from e

    if response.status_code >= 500:
        body = _response_body(response)
        logger.warning(
            "%s answered %d for %s %s",
            provider,
            response.status_code,
            method,
            url,
            extra={"json_fields": {"provider": provider, "upstream_body": body}},
        )
        raise ProviderTransient(
            f"{provider} returned {response.status_code}",
            provider=provider,
            upstream_status=response.status_code,
            upstream_body=body,
        )

    if response.status_code >= 400:
        body = _response_body(response)
        raise ProviderRejected(
            f"{provider} rejected the request ({response.status_code})",
            provider=provider,
            upstream_status=response.status_code,
            upstream_body=body,
        )

    return _response_body(response)


class ShipStationClient:
    """ShipStation API client (HTTP basic auth)."""

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        base_url: str = config.SHIPSTATION_API_BASE_URL,
        tracking_timeout: float = config.TRACKING_TIMEOUT_SECONDS,
        label_timeout: float = config.LABEL_TIMEOUT_SECONDS,
    ):
        self._auth = (api_key, api_secret)
        self.base_url = base_url.rstrip("/")
        self.tracking_timeout = tracking_timeout
        self.label_timeout = label_timeout

    @classmethod
    def from_config(cls) -> Optional["ShipStationClient"]:
        """Build a client from the environment, or None when not configured."""
        credentials = config.get_shipstation_credentials()
        if credentials is None:
            return None
        return cls(*credentials)

    def get_tracking(
        self, tracking_number: str, carrier_code: Optional[str] = None
    ) -> Any:
        """Raw tracking response for one tracking number."""
        params = {"trackingNumber": tracking_number}
        if carrier_code:
            params["carrierCode"] = carrier_code

        return _send(
            SHIPSTATION,
            "GET",
            f"{self.base_url}/shipments/tracking",
            self.tracking_timeout,
            params=params,
            auth=self._auth,
            headers={"Accept": "application/json"},
        )

    def create_label(self, payload: dict[str, Any]) -> dict[str, Any]:
        """
        Create a shipping label.

        Args:
            payload: createlabel body (carrierCode, serviceCode, shipFrom, shipTo, ...)

        Returns:
            Provider response (shipmentId, trackingNumber, labelData, ...)
        """
        return _send(
            SHIPSTATION,
            "POST",
            f"{self.base_url}/shipments/createlabel",
            self.label_timeout,
            json=payload,
            auth=self._auth,
            headers={"Accept": "application/json"},
        )


class ShipEngineClient:
    """ShipEngine API client (``API-Key`` header)."""

    def __init__(
        self,
        api_key: str,
        base_url: str = config.SHIPENGINE_API_BASE_URL,
        tracking_timeout: float = config.TRACKING_TIMEOUT_SECONDS,
        label_timeout: float = config.LABEL_TIMEOUT_SECONDS,
        default_carrier_code: str = config.DEFAULT_CARRIER_CODE,
    ):
        self._headers = {"API-Key": api_key, "Accept": "application/json"}
        self.base_url = base_url.rstrip("/")
        self.tracking_timeout = tracking_timeout
        self.label_timeout = label_timeout
        self.default_carrier_code = default_carrier_code

    @classmethod
    def from_config(cls) -> Optional["ShipEngineClient"]:
        """Build a client from the environment, or None when not configured."""
        api_key = config.get_shipengine_key()
        if api_key is None:
            return None
        return cls(api_key)

    def get_tracking(
        self, tracking_number: str, carrier_code: Optional[str] = None
    ) -> dict[str, Any]:
        """Tracking response for one tracking number."""
        carrier = (carrier_code or "").strip() or self.default_carrier_code
        data = _send(
            SHIPENGINE,
            "GET",
            f"{self.base_url}/tracking",
            self.tracking_timeout,
            params={"carrier_code": carrier, "tracking_number": tracking_number},
            headers=self._headers,
        )
        return data if isinstance(data, dict) else {}

    def void_label(self, label_id: str) -> dict[str, Any]:
        """
        Void a label.

        Returns:
            dict with ``approved`` (bool) and ``message``
        """
        data = _send(
            SHIPENGINE,
            "PUT",
            f"{self.base_url}/labels/{label_id}/void",
            self.label_timeout,
            headers=self._headers,
        )
        if not isinstance(data, dict):
            data = {}
        return {
            "approved": bool(data.get("approved")),
            "message": data.get("message") or "",
        }


class TrackingFetcher:
    """
    Fetch tracking data through the primary provider with one fallback.

    The returned dict is always ShipEngine-shaped so the classifier can read it.
    """

    def __init__(
        self,
        primary: Optional[ShipStationClient] = None,
        fallback: Optional[ShipEngineClient] = None,
    ):
        self.primary = primary
        self.fallback = fallback

    @classmethod
    def from_config(cls) -> "TrackingFetcher":
        return cls(
            primary=ShipStationClient.from_config(),
            fallback=ShipEngineClient.from_config(),
        )

    @property
    def is_configured(self) -> bool:
        return self.primary is not None or self.fallback is not None

    def fetch(
        self, tracking_number: str, carrier_code: Optional[str] = None
    ) -> dict[str, Any]:
        """
        Fetch tracking data for one tracking number.

        Any primary failure is retried once on the fallback when one is
        configured; the fallback's own errors propagate.

        Raises:
            CredentialsMissing: Neither provider is configured
            ProviderTransient: The last provider tried failed transiently
            ProviderRejected: The last provider tried rejected the request
        """
        if not self.is_configured:
            raise CredentialsMissing(
                "ShipEngine or ShipStation API credentials not configured"
            )

        if self.primary is not None:
            try:
                normalized = normalize_shipstation_tracking(
                    self.primary.get_tracking(tracking_number, carrier_code)
                )
                if normalized:
                    return normalized
                logger.warning(
                    "ShipStation returned no usable tracking data for %s",
                    tracking_number,
                )
            except BuybackError as e:
                if self.fallback is None:
                    raise
                logger.warning(
                    "ShipStation tracking failed for %s, falling back to ShipEngine: %s",
                    tracking_number,
                    e.message,
                    extra={"json_fields": e.detail},
                )

        if self.fallback is not None:
            return self.fallback.get_tracking(tracking_number, carrier_code)

        raise ProviderTransient(
            "ShipStation returned no tracking data", provider=SHIPSTATION
        )
