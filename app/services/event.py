from __future__ import annotations

import enum
import logging
import uuid
from datetime import datetime, timezone

from app.metrics import EVENTS_PUBLISHED
from app.services.sse import sse_hub

logger = logging.getLogger(__name__)


class EventType(enum.Enum):
    record_created = "record:created"
    record_updated = "record:updated"


def build_payload(
    event_type: EventType,
    module_name: str,
    record_id: str | uuid.UUID,
    source: str | None = None,
) -> dict:
    payload = {
        "type": event_type.value,
        "moduleName": module_name,
        "recordId": str(record_id),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if source:
        payload["source"] = source
    return payload


def publish_event(
    event_type: EventType,
    module_name: str,
    record_id: str | uuid.UUID,
    source: str | None = None,
) -> dict:
    """Fire-and-forget event publishing.

    Pushes the event to connected SSE clients and queues a Celery task for
    webhook fan-out. Never raises; logs failures and continues.
    """
    payload = build_payload(event_type, module_name, record_id, source)
    try:
        sse_hub.publish(event_type.value, payload)
    except Exception as e:
        logger.exception("Failed to broadcast event %s: %s", event_type.value, e)
    try:
        from app.tasks.events import process_event

        process_event.delay(event_type=event_type.value, payload=payload)
        EVENTS_PUBLISHED.labels(event_type.value).inc()
        logger.debug(
            "Published event %s for %s/%s", event_type.value, module_name, record_id
        )
    except Exception as e:
        logger.exception("Failed to publish event %s: %s", event_type.value, e)
    return payload
