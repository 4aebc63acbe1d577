from datetime import datetime, timezone

from pydantic import BaseModel, Field


class PrintJob(BaseModel):
    """Bulk kit-print job metadata"""

    id: str = Field(description="Job ID")
    sequence: int = Field(description="Monotonic batch number")
    folder: str = Field(description="Output folder name (bulk-print-{sequence})")
    order_ids: list[str] = Field(default_factory=list, description="Orders printed")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class PrintBatchRequest(BaseModel):
    order_ids: list[str] = Field(description="Orders to include in the batch")


class PrintBatch(BaseModel):
    """Reserved print batch"""

    sequence: int
    folder_name: str
    job_id: str
