from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class InboundEvent(BaseModel):
    """Normalized inbound chat message, immutable once created."""

    model_config = ConfigDict(frozen=True)

    event_id: str = Field(min_length=1)
    subject_id: str = Field(min_length=1)
    channel_id: str = Field(min_length=1)
    channel_name: Optional[str] = None
    thread_key: str = ""
    reply_target: Optional[str] = None
    text: str
    arrival_time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @model_validator(mode="before")
    @classmethod
    def default_thread_key(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("thread_key"):
            anchor = data.get("reply_target") or data.get("subject_id")
            data = {**data, "thread_key": f"{data.get('channel_id')}:{anchor}"}
        return data

    @property
    def subject_key(self) -> str:
        return f"{self.channel_id}:{self.subject_id}"


class SlackMessageEvent(BaseModel):
    type: str
    user: Optional[str] = None
    text: Optional[str] = None
    channel: Optional[str] = None
    ts: Optional[str] = None
    thread_ts: Optional[str] = None
    bot_id: Optional[str] = None
    subtype: Optional[str] = None
    channel_type: Optional[str] = None

    model_config = ConfigDict(extra="ignore")

    @property
    def is_user_message(self) -> bool:
        return (
            self.type == "message"
            and self.bot_id is None
            and self.subtype is None
            and bool(self.user and self.channel and self.ts)
        )


class SlackEventEnvelope(BaseModel):
    type: str
    challenge: Optional[str] = None
    team_id: Optional[str] = None
    event_id: Optional[str] = None
    event: Optional[SlackMessageEvent] = None

    model_config = ConfigDict(extra="ignore")


class EventAck(BaseModel):
    success: bool
    status: str
    event_id: Optional[str] = None
