"""
Repository implementations for the buyback database.

Repositories provide a clean interface for database CRUD operations,
encapsulating SQLAlchemy queries and Pydantic model conversions.
"""

from buyback.db.repositories.base import VersionConflict
from buyback.db.repositories.counter import CounterRepository
from buyback.db.repositories.order import OrderRepository
from buyback.db.repositories.print_job import PrintJobRepository
from buyback.db.repositories.promo import PromoCodeRepository

__all__ = [
    "CounterRepository",
    "OrderRepository",
    "PrintJobRepository",
    "PromoCodeRepository",
    "VersionConflict",
]
