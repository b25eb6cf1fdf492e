from assistant.schemas.admin import CloseThreadResponse, StoresResponse, ThreadInfo, ThreadsResponse
from assistant.schemas.events import EventAck, InboundEvent, SlackEventEnvelope, SlackMessageEvent

__all__ = [
    "InboundEvent",
    "SlackEventEnvelope",
    "SlackMessageEvent",
    "EventAck",
    "ThreadInfo",
    "ThreadsResponse",
    "CloseThreadResponse",
    "StoresResponse",
]
