import os
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI

from assistant.config import settings
from assistant.logging_config import setup_logging
from assistant.routers import admin, events, slack_events
from assistant.runtime import Runtime, current_runtime, get_runtime

setup_logging(settings.log_level, json_output=not settings.debug)


def _background_tasks_enabled() -> bool:
    if os.environ.get("PYTEST_CURRENT_TEST"):
        return False
    return settings.background_tasks_enabled


def start_runtime() -> None:
    if not _background_tasks_enabled():
        return
    get_runtime().start()


def stop_runtime() -> None:
    runtime = current_runtime()
    if runtime is not None and runtime.started:
        runtime.stop()


@asynccontextmanager
async def lifespan(app: FastAPI):
    start_runtime()
    yield
    stop_runtime()


app = FastAPI(
    title="Support Assistant API",
    description="Conversational event processing core for the Slack support assistant",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(slack_events.router)
app.include_router(events.router)
app.include_router(admin.router)


@app.get("/health")
def health(runtime: Runtime = Depends(get_runtime)):
    return {
        "status": "ok",
        "active_threads": runtime.activity.active_thread_count(),
        "conversations": runtime.conversations.active_count(),
        "dedup_backend": runtime.dedup.store.name,
        "cache_backend": runtime.cache.store.name,
    }
