"""Admin API endpoints for inspecting and managing live conversation state."""

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException

from assistant.config import settings
from assistant.runtime import Runtime, get_runtime
from assistant.schemas.admin import CloseThreadResponse, StoresResponse, ThreadInfo, ThreadsResponse

router = APIRouter(prefix="/admin", tags=["admin"])


def _require_admin_token(provided: Optional[str]) -> None:
    expected = settings.admin_token
    if not expected:
        raise HTTPException(status_code=500, detail="ADMIN_TOKEN not configured")
    if not provided or provided != expected:
        raise HTTPException(status_code=401, detail="Invalid admin token")


@router.get("/threads", response_model=ThreadsResponse)
def list_threads(
    x_admin_token: Optional[str] = Header(default=None, alias="X-Admin-Token"),
    runtime: Runtime = Depends(get_runtime),
):
    _require_admin_token(x_admin_token)
    threads = [ThreadInfo(**item) for item in runtime.activity.snapshot()]
    return ThreadsResponse(
        count=len(threads),
        conversations=runtime.conversations.active_count(),
        pending_buffers=runtime.debouncer.pending_count(),
        threads=threads,
    )


@router.post("/threads/{thread_key}/close", response_model=CloseThreadResponse)
def close_thread(
    thread_key: str,
    x_admin_token: Optional[str] = Header(default=None, alias="X-Admin-Token"),
    runtime: Runtime = Depends(get_runtime),
):
    _require_admin_token(x_admin_token)
    if not runtime.activity.close_thread(thread_key):
        raise HTTPException(status_code=404, detail=f"Thread '{thread_key}' not found")
    # The close callback only runs for threads with a channel; history must go either way.
    runtime.conversations.close_conversation(thread_key)
    return CloseThreadResponse(success=True, thread_key=thread_key, message="Thread closed")


@router.get("/stores", response_model=StoresResponse)
def store_status(
    x_admin_token: Optional[str] = Header(default=None, alias="X-Admin-Token"),
    runtime: Runtime = Depends(get_runtime),
):
    _require_admin_token(x_admin_token)
    return StoresResponse(
        dedup=runtime.dedup.store.name,
        cache=runtime.cache.store.name,
        shared_store_configured=bool(runtime.settings.redis_url),
        workers_in_flight=runtime.worker_pool.in_flight,
    )
