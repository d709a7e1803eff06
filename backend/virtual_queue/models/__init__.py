"""Queue state models."""

from virtual_queue.models.queue import QueueEntry, QueueStats, QueueStatus, TenantQueueState
