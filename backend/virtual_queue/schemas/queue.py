"""Queue request/response schemas (camelCase on the wire)."""
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import List, Optional
from datetime import datetime

from virtual_queue.models.queue import QueueStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class EnqueueRequest(CamelModel):
    """Public join-the-queue request. ``userId`` is the tenant key."""
    user_id: Optional[str] = None
    tenant_id: Optional[str] = None  # accepted for client compatibility, not used as key
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None


class QueueActionRequest(CamelModel):
    action: Optional[str] = None
    entry_id: Optional[str] = None


class QueueEntryRead(CamelModel):
    id: str
    tenant_id: str = Field(alias="userId")
    ticket_number: int = Field(alias="queueNumber")
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    status: QueueStatus
    position: int
    created_at: datetime
    called_at: Optional[datetime] = None
    served_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    estimated_wait_minutes: int
    actual_wait_minutes: Optional[int] = None


class QueueStatsRead(CamelModel):
    waiting: int
    average_wait_minutes: int
    # All-time total; the key name is kept for existing dashboards.
    total_served_today: int


class QueueListResponse(CamelModel):
    entries: List[QueueEntryRead]
    stats: QueueStatsRead


class EnqueueResponse(CamelModel):
    success: bool = True
    entry: QueueEntryRead
    position: int
    estimated_wait_minutes: int
    queue_number: int


class CallNextResponse(CamelModel):
    success: bool = True
    called: QueueEntryRead
    remaining_in_queue: int


class TransitionResponse(CamelModel):
    success: bool = True
    entry: QueueEntryRead


class EntryStatusRead(CamelModel):
    id: str
    queue_number: int
    position: int
    status: QueueStatus
    estimated_wait_minutes: int
    created_at: datetime
    called_at: Optional[datetime] = None


class LookupResponse(CamelModel):
    found: bool
    message: Optional[str] = None
    entry: Optional[EntryStatusRead] = None
