"""API routes."""

from fastapi import APIRouter

from virtual_queue.api.routes import queue

api_router = APIRouter()

api_router.include_router(queue.router, prefix="/queue", tags=["queue"])
