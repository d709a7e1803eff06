"""Queue error taxonomy.

Every error raised by the queue core carries the HTTP status the transport
layer answers with. Handlers in ``virtual_queue.main`` turn them into
``{"detail": message}`` responses.
"""

from typing import Optional


class QueueError(Exception):
    """Base class for errors raised by queue operations."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(QueueError):
    """A required field is missing or invalid."""

    status_code = 400


class AuthError(QueueError):
    """No tenant identity could be resolved for the request."""

    status_code = 401

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)


class EmptyQueueError(QueueError):
    """Call-next was requested while nobody is waiting."""

    status_code = 404

    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id
        super().__init__("Nobody is waiting in the queue")


class NotFoundError(QueueError):
    """The entry id is unknown within the tenant."""

    status_code = 404

    def __init__(self, entry_id: str, tenant_id: Optional[str] = None):
        self.entry_id = entry_id
        self.tenant_id = tenant_id
        super().__init__(f"Queue entry '{entry_id}' not found")


class InvalidTransitionError(QueueError):
    """The entry's current status does not allow the requested transition."""

    status_code = 409

    def __init__(self, entry_id: str, current: str, target: str):
        self.entry_id = entry_id
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot move queue entry '{entry_id}' from '{current}' to '{target}'"
        )
