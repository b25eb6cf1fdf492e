from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class ThreadInfo(BaseModel):
    thread_key: str
    session_id: str
    state: str
    channel_id: Optional[str] = None
    reply_target: Optional[str] = None
    last_user_time: datetime
    last_bot_time: Optional[datetime] = None
    reminder_count: int
    processing: bool


class ThreadsResponse(BaseModel):
    count: int
    conversations: int
    pending_buffers: int
    threads: list[ThreadInfo]


class CloseThreadResponse(BaseModel):
    success: bool
    thread_key: str
    message: str


class StoresResponse(BaseModel):
    dedup: str
    cache: str
    shared_store_configured: bool
    workers_in_flight: int
