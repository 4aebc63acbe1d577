"""
HTTP mapping for domain errors.

Route handlers catch ``BuybackError`` and re-raise it as an HTTPException
carrying the error's status code and ``{code, message, detail}`` body.
"""

import logging

from fastapi import HTTPException

from buyback.db import DatabaseConnection
from buyback.errors import BuybackError

logger = logging.getLogger(__name__)


def check_db_available():
    """Check if database is available, raise 503 if not."""
    if not DatabaseConnection.is_initialized():
        raise HTTPException(
            status_code=503,
            detail="Database not available",
        )


def http_error(error: BuybackError, **extra) -> HTTPException:
    """Convert a domain error into an HTTPException."""
    if error.status_code >= 500:
        logger.error("%s: %s", error.code, error.message)
    return HTTPException(
        status_code=error.status_code,
        detail={**error.to_dict(), **extra},
    )


def internal_error(action: str, error: Exception) -> HTTPException:
    """500 for anything outside the domain taxonomy."""
    logger.exception("Failed to %s: %s", action, error)
    return HTTPException(
        status_code=500,
        detail=f"Failed to {action}: {str(error)}",
    )
