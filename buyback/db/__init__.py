"""
Buyback Database Module.

Provides database connection management and repositories for data persistence.
Uses SQLAlchemy Core with Cloud SQL Python Connector.
"""

from buyback.db.connection import DatabaseConnection
from buyback.db.unit_of_work import UnitOfWork, run_in_transaction

__all__ = ["DatabaseConnection", "UnitOfWork", "run_in_transaction"]
