"""Virtual queue routes.

GET and PATCH act on the authenticated tenant's queue; POST (join) and the
customer status lookup are public.
"""

from typing import Annotated, Optional, Union

from fastapi import APIRouter, Query, Request

from virtual_queue.api.deps import QueueServiceDep
from virtual_queue.core.auth import CurrentTenant
from virtual_queue.core.config import settings
from virtual_queue.core.errors import ValidationError
from virtual_queue.core.rate_limit import limiter
from virtual_queue.models.queue import QueueEntry
from virtual_queue.schemas.queue import (
    CallNextResponse,
    EnqueueRequest,
    EnqueueResponse,
    EntryStatusRead,
    LookupResponse,
    QueueActionRequest,
    QueueEntryRead,
    QueueListResponse,
    QueueStatsRead,
    TransitionResponse,
)

router = APIRouter()


def _entry_read(entry: QueueEntry) -> QueueEntryRead:
    return QueueEntryRead(
        id=entry.id,
        tenant_id=entry.tenant_id,
        ticket_number=entry.ticket_number,
        customer_name=entry.customer_name,
        customer_email=entry.customer_email,
        customer_phone=entry.customer_phone,
        status=entry.status,
        position=entry.position,
        created_at=entry.created_at,
        called_at=entry.called_at,
        served_at=entry.served_at,
        cancelled_at=entry.cancelled_at,
        estimated_wait_minutes=entry.estimated_wait_minutes,
        actual_wait_minutes=entry.actual_wait_minutes,
    )


@router.get("", response_model=QueueListResponse)
def list_queue(
    service: QueueServiceDep,
    tenant: CurrentTenant,
    status: str = "waiting",
):
    """List the tenant's queue with summary stats."""
    entries = service.list_queue(tenant.tenant_id, status)
    stats = service.stats(tenant.tenant_id)
    return QueueListResponse(
        entries=[_entry_read(e) for e in entries],
        stats=QueueStatsRead(
            waiting=stats.waiting_count,
            average_wait_minutes=stats.average_wait_minutes,
            total_served_today=stats.total_served_all_time,
        ),
    )


@router.post("", response_model=EnqueueResponse)
@limiter.limit(settings.queue_enqueue_rate_limit)
def join_queue(
    request: Request,
    service: QueueServiceDep,
    body: EnqueueRequest,
):
    """Add a walk-in customer to a business's queue."""
    result = service.enqueue(
        body.user_id or "",
        customer_name=body.customer_name,
        customer_email=body.customer_email,
        customer_phone=body.customer_phone,
    )
    return EnqueueResponse(
        entry=_entry_read(result.entry),
        position=result.position,
        estimated_wait_minutes=result.estimated_wait_minutes,
        queue_number=result.ticket_number,
    )


@router.patch("", response_model=Union[CallNextResponse, TransitionResponse])
def update_queue(
    service: QueueServiceDep,
    tenant: CurrentTenant,
    body: QueueActionRequest,
):
    """Drive the queue from a counter terminal: call next, complete or cancel."""
    if body.action == "next":
        result = service.call_next(tenant.tenant_id)
        return CallNextResponse(
            called=_entry_read(result.called_entry),
            remaining_in_queue=result.remaining_waiting_count,
        )

    if body.action in ("complete", "cancel"):
        if not body.entry_id:
            raise ValidationError("entryId is required")
        if body.action == "complete":
            entry = service.complete(tenant.tenant_id, body.entry_id)
        else:
            entry = service.cancel(tenant.tenant_id, body.entry_id)
        return TransitionResponse(entry=_entry_read(entry))

    raise ValidationError(f"Invalid action: {body.action}")


@router.get("/status", response_model=LookupResponse)
def queue_entry_status(
    service: QueueServiceDep,
    entry_id: Annotated[Optional[str], Query(alias="entryId")] = None,
    phone: Optional[str] = None,
    user_id: Annotated[Optional[str], Query(alias="userId")] = None,
):
    """Let a customer check their place in line by ticket id or phone number."""
    found = service.lookup(entry_id=entry_id, phone=phone, tenant_id=user_id)
    if found is None:
        return LookupResponse(found=False, message="Your place in the queue was not found")

    entry = found.entry
    return LookupResponse(
        found=True,
        entry=EntryStatusRead(
            id=entry.id,
            queue_number=entry.ticket_number,
            position=entry.position,
            status=entry.status,
            estimated_wait_minutes=found.estimated_wait_minutes,
            created_at=entry.created_at,
            called_at=entry.called_at,
        ),
    )
