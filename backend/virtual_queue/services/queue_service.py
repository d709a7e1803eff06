"""
Virtual Queue Service
=====================
Walk-in queue for a business: sequential daily ticket numbers, FIFO positions,
wait estimates priced from the tenant's served history, and the
waiting -> called -> served / cancelled lifecycle driven by several counter
terminals at once.

All mutations run inside ``QueueStore.with_tenant`` so terminals of the same
tenant are strictly serialized; reads copy entries under the same lock.
"""

import copy
import logging
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from virtual_queue.core.errors import (
    EmptyQueueError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from virtual_queue.core.metrics import MetricsCollector, metrics as default_metrics
from virtual_queue.models.queue import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    QueueEntry,
    QueueStatus,
    TenantQueueState,
)
from virtual_queue.services import wait_estimator
from virtual_queue.services.queue_store import QueueStore

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class EnqueueResult:
    entry: QueueEntry
    position: int
    estimated_wait_minutes: int
    ticket_number: int


@dataclass
class CallNextResult:
    called_entry: QueueEntry
    remaining_waiting_count: int


@dataclass
class QueueSnapshotStats:
    waiting_count: int
    average_wait_minutes: int
    total_served_all_time: int


@dataclass
class EntryStatus:
    """A customer's view of their ticket with a fresh wait estimate."""
    entry: QueueEntry
    estimated_wait_minutes: int


def _renumber_waiting(state: TenantQueueState) -> int:
    """Re-derive positions 1..M for waiting entries, keeping arrival order."""
    waiting = sorted(
        (e for e in state.entries if e.status == QueueStatus.WAITING),
        key=lambda e: (e.position, e.created_at),
    )
    for index, entry in enumerate(waiting, start=1):
        entry.position = index
    return len(waiting)


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class QueueService:
    """Public operation surface of the virtual queue."""

    def __init__(
        self,
        store: Optional[QueueStore] = None,
        clock: Callable[[], datetime] = utc_now,
        default_service_minutes: int = wait_estimator.DEFAULT_SERVICE_MINUTES,
        default_timezone: str = "UTC",
        tenant_timezones: Optional[Dict[str, str]] = None,
        metrics_collector: Optional[MetricsCollector] = None,
    ):
        self.store = store or QueueStore()
        self._clock = clock
        self.default_service_minutes = default_service_minutes
        self._default_tz = self._zone(default_timezone)
        self._tz_lock = threading.Lock()
        self._tenant_tz: Dict[str, ZoneInfo] = {
            tenant_id: self._zone(name) for tenant_id, name in (tenant_timezones or {}).items()
        }
        self.metrics = metrics_collector or default_metrics

    # -------------------- calendar day --------------------

    @staticmethod
    def _zone(name: str) -> ZoneInfo:
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValidationError(f"Unknown timezone: {name}")

    def set_tenant_timezone(self, tenant_id: str, tz_name: str) -> None:
        """Move a tenant's calendar-day boundary (ticket numbering restarts per local day)."""
        zone = self._zone(tz_name)
        with self._tz_lock:
            self._tenant_tz[tenant_id] = zone
        logger.info(f"Queue day boundary for tenant {tenant_id} set to {tz_name}")

    def _now(self) -> datetime:
        now = self._clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now

    def day_key(self, tenant_id: str, moment: datetime) -> str:
        with self._tz_lock:
            zone = self._tenant_tz.get(tenant_id, self._default_tz)
        return moment.astimezone(zone).date().isoformat()

    # -------------------- operations --------------------

    def enqueue(
        self,
        tenant_id: str,
        customer_name: Optional[str] = None,
        customer_email: Optional[str] = None,
        customer_phone: Optional[str] = None,
    ) -> EnqueueResult:
        """Issue the next ticket of the day and append a waiting entry."""
        if not tenant_id or not tenant_id.strip():
            self.metrics.record_queue_operation("enqueue", "invalid")
            raise ValidationError("userId is required")

        def _enqueue(state: TenantQueueState) -> EnqueueResult:
            # created_at order must equal position order: read the clock under the lock
            now = self._now()
            day = self.day_key(tenant_id, now)
            ticket_number = state.daily_counters.get(day, 0) + 1
            state.daily_counters[day] = ticket_number

            position = sum(1 for e in state.entries if e.status == QueueStatus.WAITING) + 1
            estimate = wait_estimator.estimated_wait(
                position, state.stats, self.default_service_minutes
            )

            entry = QueueEntry(
                id=str(uuid.uuid4()),
                tenant_id=tenant_id,
                ticket_number=ticket_number,
                status=QueueStatus.WAITING,
                position=position,
                created_at=now,
                estimated_wait_minutes=estimate,
                customer_name=_clean(customer_name),
                customer_email=_clean(customer_email),
                customer_phone=_clean(customer_phone),
            )
            state.entries.append(entry)
            return EnqueueResult(
                entry=copy.copy(entry),
                position=position,
                estimated_wait_minutes=estimate,
                ticket_number=ticket_number,
            )

        result = self.store.with_tenant(tenant_id, _enqueue)
        self.metrics.record_queue_operation("enqueue")
        logger.info(
            f"Tenant {tenant_id}: ticket #{result.ticket_number} enqueued at position "
            f"{result.position} (estimate {result.estimated_wait_minutes} min)"
        )
        return result

    def list_queue(self, tenant_id: str, status: str = "waiting") -> List[QueueEntry]:
        """Entries matching ``status`` ("waiting", "all" or an exact status), by position."""
        status = status or QueueStatus.WAITING.value

        def _list(state: TenantQueueState) -> List[QueueEntry]:
            if status == "all":
                selected = [e for e in state.entries if e.status.value in ACTIVE_STATUSES]
            else:
                selected = [e for e in state.entries if e.status.value == status]
            selected.sort(key=lambda e: (e.position, e.created_at))
            return [copy.copy(e) for e in selected]

        return self.store.read_tenant(tenant_id, _list)

    def stats(self, tenant_id: str) -> QueueSnapshotStats:
        def _stats(state: TenantQueueState) -> QueueSnapshotStats:
            return QueueSnapshotStats(
                waiting_count=sum(1 for e in state.entries if e.status == QueueStatus.WAITING),
                average_wait_minutes=wait_estimator.average_service_minutes(
                    state.stats, self.default_service_minutes
                ),
                total_served_all_time=state.stats.total_served,
            )

        return self.store.read_tenant(tenant_id, _stats)

    def call_next(self, tenant_id: str) -> CallNextResult:
        """Call the waiting entry with the lowest position."""
        def _call_next(state: TenantQueueState) -> CallNextResult:
            waiting = state.waiting()
            if not waiting:
                raise EmptyQueueError(tenant_id)

            now = self._now()
            entry = waiting[0]
            entry.status = QueueStatus.CALLED
            entry.called_at = now
            entry.actual_wait_minutes = wait_estimator.round_half_up(
                (now - entry.created_at).total_seconds() / 60
            )
            remaining = _renumber_waiting(state)
            return CallNextResult(called_entry=copy.copy(entry), remaining_waiting_count=remaining)

        try:
            result = self.store.with_tenant(tenant_id, _call_next)
        except EmptyQueueError:
            self.metrics.record_queue_operation("call_next", "empty")
            raise
        self.metrics.record_queue_operation("call_next")
        logger.info(
            f"Tenant {tenant_id}: called ticket #{result.called_entry.ticket_number} after "
            f"{result.called_entry.actual_wait_minutes} min, {result.remaining_waiting_count} still waiting"
        )
        return result

    def complete(self, tenant_id: str, entry_id: str) -> QueueEntry:
        """Mark a called entry served and fold its wait into the tenant's stats."""
        def _complete(state: TenantQueueState) -> QueueEntry:
            entry = state.find(entry_id)
            if entry is None:
                raise NotFoundError(entry_id, tenant_id)
            if entry.status != QueueStatus.CALLED:
                raise InvalidTransitionError(entry_id, entry.status.value, QueueStatus.SERVED.value)

            entry.status = QueueStatus.SERVED
            entry.served_at = self._now()
            state.stats.total_served += 1
            state.stats.total_wait_minutes += entry.actual_wait_minutes or 0
            return copy.copy(entry)

        entry = self._transition("complete", tenant_id, entry_id, _complete)
        logger.info(f"Tenant {tenant_id}: ticket #{entry.ticket_number} served")
        return entry

    def cancel(self, tenant_id: str, entry_id: str) -> QueueEntry:
        """Cancel a waiting (or already called) entry and close the gap in positions."""
        def _cancel(state: TenantQueueState) -> QueueEntry:
            entry = state.find(entry_id)
            if entry is None:
                raise NotFoundError(entry_id, tenant_id)
            if entry.status in TERMINAL_STATUSES:
                raise InvalidTransitionError(entry_id, entry.status.value, QueueStatus.CANCELLED.value)

            entry.status = QueueStatus.CANCELLED
            entry.cancelled_at = self._now()
            _renumber_waiting(state)
            return copy.copy(entry)

        entry = self._transition("cancel", tenant_id, entry_id, _cancel)
        logger.info(f"Tenant {tenant_id}: ticket #{entry.ticket_number} cancelled")
        return entry

    def _transition(self, operation: str, tenant_id: str, entry_id: str, fn) -> QueueEntry:
        try:
            entry = self.store.with_tenant(tenant_id, fn)
        except NotFoundError:
            self.metrics.record_queue_operation(operation, "not_found")
            raise
        except InvalidTransitionError as e:
            self.metrics.record_queue_operation(operation, "rejected")
            logger.warning(f"Tenant {tenant_id}: {e.message}")
            raise
        self.metrics.record_queue_operation(operation)
        return entry

    def lookup(
        self,
        entry_id: Optional[str] = None,
        phone: Optional[str] = None,
        tenant_id: Optional[str] = None,
    ) -> Optional[EntryStatus]:
        """Find a customer's ticket by id (any tenant) or by phone within a tenant.

        Phone lookups only consider active tickets of the given tenant and return
        the most recent one; without a tenant nothing is found.
        """
        entry_id = _clean(entry_id)
        phone = _clean(phone)
        if not entry_id and not phone:
            raise ValidationError("entryId or phone is required")

        def _status(state: TenantQueueState, entry: QueueEntry) -> EntryStatus:
            return EntryStatus(
                entry=copy.copy(entry),
                estimated_wait_minutes=wait_estimator.round_half_up(
                    entry.position
                    * wait_estimator.average_service_minutes(state.stats, self.default_service_minutes)
                ),
            )

        if entry_id:
            def _by_id(state: TenantQueueState) -> Optional[EntryStatus]:
                entry = state.find(entry_id)
                return _status(state, entry) if entry else None

            for candidate_tenant in self.store.tenant_ids():
                found = self.store.read_tenant(candidate_tenant, _by_id)
                if found:
                    return found
            return None

        # Phone numbers are only unique within one business
        if not tenant_id or tenant_id not in self.store:
            return None

        def _by_phone(state: TenantQueueState) -> Optional[EntryStatus]:
            matches = [
                e for e in state.entries
                if e.customer_phone == phone
                and e.status in (QueueStatus.WAITING, QueueStatus.CALLED)
            ]
            if not matches:
                return None
            latest = max(matches, key=lambda e: e.created_at)
            return _status(state, latest)

        return self.store.read_tenant(tenant_id, _by_phone)
