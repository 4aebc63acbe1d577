"""
Runtime configuration.

Values are read from the environment once at import time. Call
``load_dotenv()`` before importing this module to pick up a local ``.env``.
"""

import os

from dotenv import load_dotenv

load_dotenv()


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


# Carrier providers
SHIPENGINE_API_BASE_URL = os.getenv(
    "SHIPENGINE_API_BASE_URL", "https://api.shipengine.com/v1"
)
SHIPSTATION_API_BASE_URL = os.getenv(
    "SHIPSTATION_API_BASE_URL", "https://ssapi.shipstation.com"
)
DEFAULT_CARRIER_CODE = os.getenv("DEFAULT_CARRIER_CODE", "stamps_com")
TRACKING_TIMEOUT_SECONDS = _int_env("TRACKING_TIMEOUT_SECONDS", 20)
LABEL_TIMEOUT_SECONDS = _int_env("LABEL_TIMEOUT_SECONDS", 30)

# Tracking refresh
TRACKING_REFRESH_MIN_INTERVAL_SECONDS = max(
    0, _int_env("TRACKING_REFRESH_MIN_INTERVAL_SECONDS", 10 * 60)
)

# Order numbering
ORDER_NUMBER_PREFIX = os.getenv("ORDER_NUMBER_PREFIX", "SHC")
ORDER_NUMBER_SEED = _int_env("ORDER_NUMBER_SEED", 29999)

# Promo codes
DEFAULT_PROMO_BONUS_AMOUNT = 10


def get_shipengine_key() -> str | None:
    """Return the ShipEngine API key, or None when not configured."""
    return os.getenv("SHIPENGINE_KEY") or None


def get_shipstation_credentials() -> tuple[str, str] | None:
    """
    Return the ShipStation (key, secret) pair.

    Both halves must be present; a lone key or secret counts as unconfigured.
    """
    key = os.getenv("SHIPSTATION_KEY")
    secret = os.getenv("SHIPSTATION_SECRET")
    if key and secret:
        return key, secret
    return None
