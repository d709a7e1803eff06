"""In-memory queue state."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional


class QueueStatus(str, Enum):
    WAITING = "waiting"
    CALLED = "called"
    SERVED = "served"
    CANCELLED = "cancelled"


# Statuses shown by the "all" listing. "serving" is never assigned by the
# service but older dashboard clients still filter on it.
ACTIVE_STATUSES = ("waiting", "called", "serving")

TERMINAL_STATUSES = (QueueStatus.SERVED, QueueStatus.CANCELLED)


@dataclass
class QueueEntry:
    """A single customer's ticket, from arrival to served or cancelled."""

    id: str
    tenant_id: str
    ticket_number: int
    status: QueueStatus
    position: int
    created_at: datetime
    estimated_wait_minutes: int
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    called_at: Optional[datetime] = None
    served_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    actual_wait_minutes: Optional[int] = None


@dataclass
class QueueStats:
    """All-time accumulator of served entries (not reset daily)."""

    total_served: int = 0
    total_wait_minutes: int = 0


@dataclass
class TenantQueueState:
    """Everything one tenant's queue owns."""

    tenant_id: str
    entries: List[QueueEntry] = field(default_factory=list)  # insertion order, never compacted
    daily_counters: Dict[str, int] = field(default_factory=dict)  # day key -> last ticket issued
    stats: QueueStats = field(default_factory=QueueStats)

    def waiting(self) -> List[QueueEntry]:
        """Waiting entries in position order."""
        return sorted(
            (e for e in self.entries if e.status == QueueStatus.WAITING),
            key=lambda e: (e.position, e.created_at),
        )

    def find(self, entry_id: str) -> Optional[QueueEntry]:
        for entry in self.entries:
            if entry.id == entry_id:
                return entry
        return None
