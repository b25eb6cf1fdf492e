from fastapi import APIRouter, Depends

from assistant.runtime import Runtime, get_runtime
from assistant.schemas.events import EventAck, InboundEvent

router = APIRouter(tags=["events"])


@router.post("/events", response_model=EventAck)
def receive_event(event: InboundEvent, runtime: Runtime = Depends(get_runtime)):
    """Normalized event entry point for queue consumers and other transports."""
    decision = runtime.ingestor.ingest(event)
    return EventAck(success=True, status=decision.status.value, event_id=decision.event_id)
