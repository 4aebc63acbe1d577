from datetime import datetime, timezone

from pydantic import BaseModel, Field


class Counter(BaseModel):
    """Named monotonic counter (order numbers, print batches, ring indices)"""

    id: str = Field(description="Counter name")
    value: int = Field(description="Last value handed out")
    version: int = Field(default=0, description="Optimistic concurrency version")
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
