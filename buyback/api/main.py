"""
Buyback Order API - Main FastAPI Application.

Provides REST APIs for the admin dashboard and the storefront checkout.
"""

import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from buyback.utils.logging import setup_logging

# Load environment variables
load_dotenv()

# Configure logging early
setup_logging("buyback-api")


def _init_database():
    """Initialize database connection if configured."""
    from buyback.db import DatabaseConnection

    if not (os.getenv("INSTANCE_CONNECTION_NAME") or os.getenv("DATABASE_URL")):
        print(
            "   Database: Not configured "
            "(INSTANCE_CONNECTION_NAME or DATABASE_URL not set)"
        )
        return False

    try:
        DatabaseConnection.initialize()
        if os.getenv("DB_CREATE_SCHEMA", "").strip().lower() in ("1", "true", "yes"):
            DatabaseConnection.create_schema()
        print("   Database: Connected")
        return True
    except Exception as e:
        print(f"   Database: Failed to connect - {e}")
        return False


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    # Startup
    print("🚀 Starting Buyback Order API...")
    print(f"   Environment: {os.getenv('GOOGLE_CLOUD_PROJECT', 'local')}")

    db_initialized = _init_database()

    yield

    # Shutdown
    if db_initialized:
        from buyback.db import DatabaseConnection

        DatabaseConnection.close()
        print("   Database: Connection closed")

    print("👋 Shutting down Buyback Order API...")


# OpenAPI tag descriptions (shown in /docs and /openapi.json)
OPENAPI_TAGS = [
    {
        "name": "tracking",
        "description": "Carrier tracking refresh and status transitions",
    },
    {
        "name": "orders",
        "description": "Order creation, updates and shipping labels",
    },
    {
        "name": "promo-codes",
        "description": "Promo code usage and eligibility",
    },
    {
        "name": "print-jobs",
        "description": "Bulk kit-print batch reservation",
    },
    {
        "name": "system",
        "description": "System health and information endpoints",
    },
]

# Create FastAPI application
app = FastAPI(
    title="Buyback Order API",
    description=(
        "Order core for a device buyback service.\n\n"
        "Refreshes carrier tracking into canonical order statuses, allocates "
        "order numbers and promo redemptions, and manages shipping labels.\n\n"
        "**Authentication:** This is an internal Cloud Run service requiring GCP IAM "
        "authentication. Include an identity token in the "
        "`Authorization: Bearer <token>` header."
    ),
    version="0.1.0",
    lifespan=lifespan,
    openapi_tags=OPENAPI_TAGS,
)

# Configure CORS for the admin dashboard
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/", tags=["system"], operation_id="getServiceInfo")
async def root():
    """Return basic information about the API service."""
    return {
        "service": "Buyback Order API",
        "version": "0.1.0",
        "status": "operational",
        "description": "Order tracking, numbering and label management",
    }


@app.get("/health", tags=["system"], operation_id="healthCheck")
async def health_check():
    """Check service health status (used by Cloud Run monitoring)."""
    return {
        "status": "healthy",
        "service": "buyback-api",
        "environment": os.getenv("GOOGLE_CLOUD_PROJECT", "local"),
    }


# Import and include routers
from buyback.api.routes import orders, print_jobs, promo_codes, tracking

app.include_router(tracking.router, prefix="/api/v1", tags=["tracking"])
app.include_router(orders.router, prefix="/api/v1", tags=["orders"])
app.include_router(promo_codes.router, prefix="/api/v1", tags=["promo-codes"])
app.include_router(print_jobs.router, prefix="/api/v1", tags=["print-jobs"])


def run():
    """Serve the API with uvicorn (console script ``buyback-api``)."""
    import uvicorn

    uvicorn.run(
        "buyback.api.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8080")),
    )


if __name__ == "__main__":
    run()
