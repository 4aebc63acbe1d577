"""
Database connection management.

Uses the Cloud SQL Python Connector with IAM authentication in production
and a plain SQLAlchemy URL (``DATABASE_URL``) everywhere else.
"""

import os
from contextlib import contextmanager
from typing import Generator

from google.cloud.sql.connector import Connector
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from buyback.db.tables import metadata


class DatabaseConnection:
    """
    Manages database connections.

    This class provides connection pooling optimized for Cloud Run environments.

    Usage:
        # Initialize at app startup (Cloud SQL)
        DatabaseConnection.initialize(
            instance_connection_name="project:region:instance",
            db_name="buyback",
            db_user="service-account@project.iam"
        )

        # ...or with a URL (local development, tests)
        DatabaseConnection.initialize(database_url="sqlite:///buyback.db")

        # Use sessions
        with DatabaseConnection.session() as session:
            # perform database operations
            pass

        # Close at app shutdown
        DatabaseConnection.close()
    """

    _engine: Engine | None = None
    _connector: Connector | None = None
    _session_factory: sessionmaker | None = None
    _initialized: bool = False

    @classmethod
    def initialize(
        cls,
        database_url: str | None = None,
        instance_connection_name: str | None = None,
        db_name: str | None = None,
        db_user: str | None = None,
        pool_size: int = 5,
        max_overflow: int = 10,
        pool_timeout: int = 30,
        pool_recycle: int = 1800,
    ):
        """
        Initialize the database connection pool.

        A database URL (argument or ``DATABASE_URL``) takes precedence;
        otherwise the Cloud SQL instance (argument or
        ``INSTANCE_CONNECTION_NAME``) is reached through the connector.

        Args:
            database_url: SQLAlchemy URL
            instance_connection_name: Cloud SQL instance (project:region:instance)
            db_name: Database name
            db_user: Database user (service account email for IAM auth)
            pool_size: Base connection pool size
            max_overflow: Additional connections allowed beyond pool_size
            pool_timeout: Seconds to wait for a connection
            pool_recycle: Recycle connections after this many seconds
        """
        if cls._initialized:
            return

        instance_connection_name = instance_connection_name or os.getenv(
            "INSTANCE_CONNECTION_NAME"
        )
        database_url = database_url or os.getenv("DATABASE_URL")

        if instance_connection_name and not database_url:
            cls._engine = cls._create_cloud_sql_engine(
                instance_connection_name,
                db_name=db_name or os.getenv("DB_NAME", "buyback"),
                db_user=db_user or os.getenv("DB_USER"),
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_timeout=pool_timeout,
                pool_recycle=pool_recycle,
            )
        elif database_url:
            cls._engine = cls._create_url_engine(
                database_url,
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_timeout=pool_timeout,
                pool_recycle=pool_recycle,
            )
        else:
            raise ValueError(
                "Either INSTANCE_CONNECTION_NAME or DATABASE_URL environment "
                "variable is required."
            )

        cls._session_factory = sessionmaker(bind=cls._engine)
        cls._initialized = True

    @classmethod
    def _create_cloud_sql_engine(
        cls, instance_connection_name: str, db_name: str, db_user: str | None, **pool
    ) -> Engine:
        if not db_user:
            raise ValueError(
                "DB_USER environment variable is required. "
                "Should be service account email for IAM auth."
            )

        cls._connector = Connector()

        def getconn():
            assert cls._connector is not None
            return cls._connector.connect(
                instance_connection_name,
                "pg8000",
                user=db_user,
                db=db_name,
                enable_iam_auth=True,
            )

        return create_engine(
            "postgresql+pg8000://",
            creator=getconn,
            pool_pre_ping=True,  # Verify connections before use
            **pool,
        )

    @staticmethod
    def _create_url_engine(database_url: str, **pool) -> Engine:
        if database_url.startswith("sqlite"):
            if database_url in ("sqlite://", "sqlite:///:memory:"):
                # One shared connection, or every session would see an empty database
                return create_engine(
                    database_url,
                    connect_args={"check_same_thread": False},
                    poolclass=StaticPool,
                )
            # Writers wait on the file lock instead of failing immediately
            return create_engine(
                database_url,
                connect_args={"check_same_thread": False, "timeout": 30},
                pool_size=pool["pool_size"],
                max_overflow=pool["max_overflow"],
                pool_timeout=pool["pool_timeout"],
            )

        return create_engine(database_url, pool_pre_ping=True, **pool)

    @classmethod
    def get_engine(cls) -> Engine:
        """Get the SQLAlchemy engine."""
        if not cls._initialized or cls._engine is None:
            raise RuntimeError(
                "Database not initialized. Call DatabaseConnection.initialize() first."
            )
        return cls._engine

    @classmethod
    def create_schema(cls):
        """Create all tables that do not exist yet (local and test databases)."""
        metadata.create_all(cls.get_engine())

    @classmethod
    @contextmanager
    def session(cls) -> Generator[Session, None, None]:
        """
        Context manager for database sessions.

        Automatically commits on success and rolls back on exception.

        Yields:
            SQLAlchemy Session
        """
        session = cls.get_session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @classmethod
    def close(cls):
        """Close the connection pool and connector."""
        if cls._engine:
            cls._engine.dispose()
            cls._engine = None

        if cls._connector:
            cls._connector.close()
            cls._connector = None

        cls._session_factory = None
        cls._initialized = False

    @classmethod
    def is_initialized(cls) -> bool:
        """Check if the database connection is initialized."""
        return cls._initialized

    @classmethod
    def get_session(cls) -> Session:
        """
        Get a new database session.

        The caller is responsible for committing/rolling back and closing the session.
        For automatic lifecycle management, use the session() context manager instead.
        """
        if not cls._initialized or cls._session_factory is None:
            raise RuntimeError(
                "Database not initialized. Call DatabaseConnection.initialize() first."
            )

        return cls._session_factory()
