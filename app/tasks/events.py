from __future__ import annotations

import logging

from app.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="app.tasks.events.process_event", ignore_result=True)
def process_event(event_type: str, payload: dict | None = None) -> None:
    """Central fan-out task for record events.

    Currently dispatches to webhook delivery only; subscribers such as the
    email pipeline register webhook endpoints.
    """
    payload = payload or {}
    logger.info(
        "Processing event %s for %s/%s",
        event_type,
        payload.get("moduleName"),
        payload.get("recordId"),
    )
    _fanout_webhooks(event_type, payload)


def _fanout_webhooks(event_type: str, payload: dict) -> None:
    try:
        from app.tasks.webhooks import deliver_webhooks

        deliver_webhooks.delay(event_type=event_type, payload=payload)
    except Exception as e:
        logger.exception("Failed to fan-out webhooks: %s", e)
