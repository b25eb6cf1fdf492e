from fastapi import APIRouter, Depends

from assistant.logging_config import get_logger
from assistant.runtime import Runtime, get_runtime
from assistant.schemas.events import EventAck, InboundEvent, SlackEventEnvelope, SlackMessageEvent
from assistant.services.conversation_service import generate_thread_key

logger = get_logger("slack_events")

router = APIRouter(prefix="/slack", tags=["slack"])


def to_inbound_event(message: SlackMessageEvent) -> InboundEvent:
    # ts is unique only within a channel; it is stable across Slack retries.
    return InboundEvent(
        event_id=f"{message.channel}:{message.ts}",
        subject_id=message.user,
        channel_id=message.channel,
        thread_key=generate_thread_key(message.channel, message.user, message.thread_ts),
        reply_target=message.thread_ts,
        text=message.text or "",
    )


@router.post("/events")
def slack_events(envelope: SlackEventEnvelope, runtime: Runtime = Depends(get_runtime)):
    """Slack Events API endpoint. Acknowledges immediately; processing is asynchronous."""
    if envelope.type == "url_verification":
        return {"challenge": envelope.challenge}

    if envelope.type != "event_callback" or envelope.event is None:
        return EventAck(success=True, status="ignored", event_id=envelope.event_id)

    message = envelope.event
    if not message.is_user_message:
        logger.debug(f"Skipping non-user event: type={message.type} subtype={message.subtype} bot_id={message.bot_id}")
        return EventAck(success=True, status="ignored", event_id=envelope.event_id)

    event = to_inbound_event(message)
    decision = runtime.ingestor.ingest(event)
    return EventAck(success=True, status=decision.status.value, event_id=event.event_id)
