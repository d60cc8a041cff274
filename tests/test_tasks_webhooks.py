import hashlib
import hmac
import json
import uuid
from unittest.mock import MagicMock, patch

import httpx
import pytest
from celery.exceptions import Retry

from app.models.webhook import WebhookDelivery, WebhookDeliveryStatus, WebhookEndpoint
from app.tasks.webhooks import (
    _endpoint_matches,
    _find_and_queue,
    _module_matches,
    deliver_single_webhook,
    deliver_webhooks,
    sign_payload,
)
from mocks import FakeHTTPXResponse


def _payload(module_name: str = "tickets") -> dict:
    return {
        "type": "record:created",
        "moduleName": module_name,
        "recordId": str(uuid.uuid4()),
        "timestamp": "2024-01-01T00:00:00+00:00",
    }


@pytest.fixture()
def webhook_endpoint(db_session, person):
    ep = WebhookEndpoint(
        name="Test Webhook",
        url="https://example.com/webhook",
        secret="test-secret-key",
        event_types=["record"],
        created_by=person.id,
    )
    db_session.add(ep)
    db_session.commit()
    db_session.refresh(ep)
    return ep


@pytest.fixture()
def pending_delivery(db_session, webhook_endpoint):
    delivery = WebhookDelivery(
        endpoint_id=webhook_endpoint.id,
        event_type="record:created",
        payload=_payload(),
        status=WebhookDeliveryStatus.pending,
    )
    db_session.add(delivery)
    db_session.commit()
    db_session.refresh(delivery)
    return delivery


@pytest.fixture()
def task_session(db_session):
    """Run task code against the test session."""
    with patch("app.db.SessionLocal", return_value=db_session), patch.object(
        db_session, "close"
    ):
        yield db_session


class TestFindAndQueue:
    @patch("app.tasks.webhooks.deliver_single_webhook.delay")
    def test_queues_matching_endpoint(
        self, mock_deliver, db_session, webhook_endpoint
    ) -> None:
        payload = _payload()
        _find_and_queue(db_session, "record:created", payload)

        deliveries = (
            db_session.query(WebhookDelivery)
            .filter(WebhookDelivery.endpoint_id == webhook_endpoint.id)
            .all()
        )
        assert len(deliveries) == 1
        assert deliveries[0].status == WebhookDeliveryStatus.pending
        mock_deliver.assert_called_once_with(
            delivery_id=str(deliveries[0].id),
            url="https://example.com/webhook",
            secret="test-secret-key",
            payload=payload,
        )

    @patch("app.tasks.webhooks.deliver_single_webhook.delay")
    def test_skips_non_matching_event(
        self, mock_deliver, db_session, webhook_endpoint
    ) -> None:
        webhook_endpoint.event_types = ["record:updated"]
        db_session.commit()
        _find_and_queue(db_session, "record:created", _payload())
        assert not mock_deliver.called

    @patch("app.tasks.webhooks.deliver_single_webhook.delay")
    def test_skips_other_modules(
        self, mock_deliver, db_session, webhook_endpoint
    ) -> None:
        webhook_endpoint.module_names = ["assets"]
        db_session.commit()
        _find_and_queue(db_session, "record:created", _payload("tickets"))
        assert not mock_deliver.called

    @patch("app.tasks.webhooks.deliver_single_webhook.delay")
    def test_skips_inactive_endpoint(
        self, mock_deliver, db_session, webhook_endpoint
    ) -> None:
        webhook_endpoint.is_active = False
        db_session.commit()

        _find_and_queue(db_session, "record:created", _payload())
        deliveries = (
            db_session.query(WebhookDelivery)
            .filter(WebhookDelivery.endpoint_id == webhook_endpoint.id)
            .all()
        )
        assert len(deliveries) == 0
        assert not mock_deliver.called

    @patch("app.tasks.webhooks.deliver_single_webhook.delay")
    def test_deliver_webhooks_task(
        self, mock_deliver, task_session, webhook_endpoint
    ) -> None:
        deliver_webhooks.run(event_type="record:created", payload=_payload())
        assert mock_deliver.call_count == 1


class TestEndpointMatches:
    def test_exact_match(self) -> None:
        assert _endpoint_matches(["record:created"], "record:created", "record")

    def test_prefix_match(self) -> None:
        assert _endpoint_matches(["record"], "record:updated", "record")

    def test_no_match(self) -> None:
        assert not _endpoint_matches(["record:updated"], "record:created", "record")

    def test_empty_types_matches_all(self) -> None:
        assert _endpoint_matches([], "record:created", "record")

    def test_module_matches(self) -> None:
        assert _module_matches([], "tickets")
        assert _module_matches(["tickets"], "tickets")
        assert not _module_matches(["assets"], "tickets")


class TestHmacSigning:
    def test_sign_payload(self) -> None:
        body = json.dumps({"type": "record:created"})
        expected = hmac.new(b"my-secret", body.encode(), hashlib.sha256).hexdigest()
        assert sign_payload("my-secret", body) == expected
        assert len(expected) == 64


class TestDeliverSingleWebhook:
    @patch("httpx.Client")
    def test_success(
        self, mock_client_cls: MagicMock, task_session, pending_delivery
    ) -> None:
        client = mock_client_cls.return_value.__enter__.return_value
        client.post.return_value = FakeHTTPXResponse(status_code=200, text="ok")

        deliver_single_webhook.run(
            delivery_id=str(pending_delivery.id),
            url="https://example.com/webhook",
            secret="test-secret-key",
            payload=pending_delivery.payload,
        )

        task_session.refresh(pending_delivery)
        assert pending_delivery.status == WebhookDeliveryStatus.success
        assert pending_delivery.attempts == 1
        assert pending_delivery.response_status_code == 200
        assert pending_delivery.response_body == "ok"

        _args, kwargs = client.post.call_args
        body = kwargs["content"]
        assert kwargs["headers"]["X-Record-Event"] == "record:created"
        assert kwargs["headers"]["X-Webhook-Signature"] == sign_payload(
            "test-secret-key", body
        )

    @patch("httpx.Client")
    def test_no_signature_without_secret(
        self, mock_client_cls: MagicMock, task_session, pending_delivery
    ) -> None:
        client = mock_client_cls.return_value.__enter__.return_value
        client.post.return_value = FakeHTTPXResponse(status_code=204)

        deliver_single_webhook.run(
            delivery_id=str(pending_delivery.id),
            url="https://example.com/webhook",
            secret=None,
            payload=pending_delivery.payload,
        )
        _args, kwargs = client.post.call_args
        assert "X-Webhook-Signature" not in kwargs["headers"]

    @patch("httpx.Client")
    def test_error_status_retries(
        self, mock_client_cls: MagicMock, task_session, pending_delivery
    ) -> None:
        client = mock_client_cls.return_value.__enter__.return_value
        client.post.return_value = FakeHTTPXResponse(status_code=502, text="bad gateway")

        with pytest.raises(Retry):
            deliver_single_webhook(
                delivery_id=str(pending_delivery.id),
                url="https://example.com/webhook",
                secret=None,
                payload=pending_delivery.payload,
            )
        task_session.refresh(pending_delivery)
        assert pending_delivery.status == WebhookDeliveryStatus.failed
        assert pending_delivery.response_status_code == 502

    @patch("httpx.Client")
    def test_network_error_retries(
        self, mock_client_cls: MagicMock, task_session, pending_delivery
    ) -> None:
        client = mock_client_cls.return_value.__enter__.return_value
        client.post.side_effect = httpx.ConnectError("refused")

        with pytest.raises(Retry):
            deliver_single_webhook(
                delivery_id=str(pending_delivery.id),
                url="https://example.com/webhook",
                secret=None,
                payload=pending_delivery.payload,
            )
        task_session.refresh(pending_delivery)
        assert pending_delivery.status == WebhookDeliveryStatus.failed
        assert pending_delivery.response_body == "refused"

    def test_missing_delivery(self, task_session) -> None:
        deliver_single_webhook.run(
            delivery_id=str(uuid.uuid4()),
            url="https://example.com/webhook",
            secret=None,
            payload={},
        )
