# Services module

from virtual_queue.services.queue_store import QueueStore
from virtual_queue.services.queue_service import QueueService
