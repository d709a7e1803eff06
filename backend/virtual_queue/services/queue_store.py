"""Tenant-scoped ownership of queue state.

Each tenant gets its own ``threading.Lock``; every read-modify-write of a
tenant's queue runs while holding it. The registry lock only guards the
tenant map itself (lazy creation on first access), so tenants never wait on
each other once their slot exists.
"""

import copy
import logging
import threading
from typing import Callable, Dict, List, Tuple, TypeVar

from virtual_queue.models.queue import TenantQueueState

logger = logging.getLogger(__name__)

T = TypeVar("T")


class QueueStore:
    """Owns one ``TenantQueueState`` per tenant."""

    def __init__(self):
        self._registry_lock = threading.Lock()
        self._states: Dict[str, TenantQueueState] = {}
        self._locks: Dict[str, threading.Lock] = {}

    def _slot(self, tenant_id: str) -> Tuple[threading.Lock, TenantQueueState]:
        with self._registry_lock:
            state = self._states.get(tenant_id)
            if state is None:
                state = TenantQueueState(tenant_id=tenant_id)
                self._states[tenant_id] = state
                self._locks[tenant_id] = threading.Lock()
                logger.debug(f"Created queue state for tenant {tenant_id}")
            return self._locks[tenant_id], state

    def with_tenant(self, tenant_id: str, fn: Callable[[TenantQueueState], T]) -> T:
        """Run ``fn`` against the tenant's mutable state under its exclusive lock.

        The lock is released when ``fn`` returns or raises. ``fn`` must not
        perform I/O.
        """
        lock, state = self._slot(tenant_id)
        with lock:
            return fn(state)

    def read_tenant(self, tenant_id: str, fn: Callable[[TenantQueueState], T]) -> T:
        """Run a read-only ``fn`` under the tenant lock.

        Whatever ``fn`` returns must be a copy; references into the live state
        escape the lock.
        """
        return self.with_tenant(tenant_id, fn)

    def snapshot(self, tenant_id: str) -> TenantQueueState:
        """Deep copy of a tenant's state, consistent with some serialization of its mutations."""
        return self.with_tenant(tenant_id, copy.deepcopy)

    def tenant_ids(self) -> List[str]:
        with self._registry_lock:
            return list(self._states)

    def __contains__(self, tenant_id: str) -> bool:
        with self._registry_lock:
            return tenant_id in self._states
