"""Shared route dependencies."""

from typing import Annotated

from fastapi import Depends, Request

from virtual_queue.core.config import Settings, settings as app_settings
from virtual_queue.services.queue_service import QueueService
from virtual_queue.services.queue_store import QueueStore


def create_queue_service(config: Settings = app_settings) -> QueueService:
    """Build the process-wide queue service from settings."""
    return QueueService(
        store=QueueStore(),
        default_service_minutes=config.queue_default_service_minutes,
        default_timezone=config.queue_timezone,
        tenant_timezones=config.queue_tenant_timezones,
    )


def get_queue_service(request: Request) -> QueueService:
    """Get the queue service owned by the application."""
    return request.app.state.queue_service


# Type alias for dependency injection
QueueServiceDep = Annotated[QueueService, Depends(get_queue_service)]
