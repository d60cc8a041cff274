import uuid

import pytest
from fastapi import HTTPException
from pydantic import ValidationError as PydanticValidationError

from app.models.webhook import WebhookDelivery, WebhookDeliveryStatus, WebhookEndpoint
from app.schemas.webhook import WebhookEndpointCreate, WebhookEndpointUpdate
from app.services.webhook import webhook_deliveries, webhook_endpoints


@pytest.fixture()
def webhook_endpoint(db_session, admin):
    ep = WebhookEndpoint(
        name="Mailer",
        url="https://example.com/webhook",
        secret="test-secret",
        event_types=["record:created"],
        module_names=["tickets"],
        created_by=admin.id,
    )
    db_session.add(ep)
    db_session.commit()
    db_session.refresh(ep)
    return ep


@pytest.fixture()
def webhook_delivery(db_session, webhook_endpoint):
    d = WebhookDelivery(
        endpoint_id=webhook_endpoint.id,
        event_type="record:created",
        payload={"type": "record:created", "moduleName": "tickets"},
        status=WebhookDeliveryStatus.pending,
    )
    db_session.add(d)
    db_session.commit()
    db_session.refresh(d)
    return d


class TestWebhookEndpointsService:
    def test_create(self, db_session, admin) -> None:
        payload = WebhookEndpointCreate(
            name="My Webhook",
            url="https://example.com/hook",
            secret="secret123",
            event_types=["record"],
        )
        result = webhook_endpoints.create(db_session, payload, created_by=admin.id)
        assert result.name == "My Webhook"
        assert result.event_types == ["record"]
        assert result.module_names == []
        assert result.created_by == admin.id
        assert result.is_active is True

    def test_create_duplicate_url(self, db_session, webhook_endpoint) -> None:
        payload = WebhookEndpointCreate(name="Again", url=webhook_endpoint.url)
        with pytest.raises(HTTPException) as exc:
            webhook_endpoints.create(db_session, payload)
        assert exc.value.status_code == 400

    @pytest.mark.parametrize(
        "url",
        [
            "ftp://example.com/hook",
            "http://127.0.0.1/hook",
            "http://10.1.2.3/hook",
            "http://192.168.0.10/hook",
            "http://[::1]/hook",
            "https:///nohost",
        ],
    )
    def test_rejects_unsafe_urls(self, url) -> None:
        with pytest.raises(PydanticValidationError):
            WebhookEndpointCreate(name="Bad", url=url)

    def test_get_not_found(self, db_session) -> None:
        with pytest.raises(HTTPException) as exc:
            webhook_endpoints.get(db_session, str(uuid.uuid4()))
        assert exc.value.status_code == 404

    def test_list_filters_module(self, db_session, webhook_endpoint) -> None:
        catch_all = webhook_endpoints.create(
            db_session, WebhookEndpointCreate(name="All", url="https://example.com/all")
        )
        tickets = webhook_endpoints.list(
            db_session, None, "tickets", "name", "asc", 25, 0
        )
        assert [ep.id for ep in tickets] == [catch_all.id, webhook_endpoint.id]
        assets = webhook_endpoints.list(db_session, None, "assets", "name", "asc", 25, 0)
        assert [ep.id for ep in assets] == [catch_all.id]

    def test_list_module_filter_applies_before_paging(self, db_session) -> None:
        for idx in range(3):
            webhook_endpoints.create(
                db_session,
                WebhookEndpointCreate(
                    name=f"Other {idx}",
                    url=f"https://example.com/other-{idx}",
                    module_names=["other"],
                ),
            )
        wanted = webhook_endpoints.create(
            db_session,
            WebhookEndpointCreate(
                name="Tickets",
                url="https://example.com/tickets",
                module_names=["tickets"],
            ),
        )
        page = webhook_endpoints.list(
            db_session, None, "tickets", "created_at", "asc", 2, 0
        )
        assert [ep.id for ep in page] == [wanted.id]
        assert webhook_endpoints.list(
            db_session, None, "tickets", "created_at", "asc", 2, 1
        ) == []

    def test_update(self, db_session, webhook_endpoint) -> None:
        result = webhook_endpoints.update(
            db_session,
            str(webhook_endpoint.id),
            WebhookEndpointUpdate(name="Renamed", module_names=[]),
        )
        assert result.name == "Renamed"
        assert result.module_names == []
        assert result.url == "https://example.com/webhook"

    def test_delete_is_soft(self, db_session, webhook_endpoint) -> None:
        webhook_endpoints.delete(db_session, str(webhook_endpoint.id))
        assert webhook_endpoints.get(db_session, str(webhook_endpoint.id)).is_active is False
        assert webhook_endpoints.list(db_session, None, None, "name", "asc", 25, 0) == []
        inactive = webhook_endpoints.list(db_session, False, None, "name", "asc", 25, 0)
        assert [ep.id for ep in inactive] == [webhook_endpoint.id]


class TestWebhookDeliveriesService:
    def test_get(self, db_session, webhook_delivery) -> None:
        result = webhook_deliveries.get(db_session, str(webhook_delivery.id))
        assert result.event_type == "record:created"

    def test_list_filters(self, db_session, webhook_endpoint, webhook_delivery) -> None:
        by_endpoint = webhook_deliveries.list(
            db_session, str(webhook_endpoint.id), None, None, "created_at", "desc", 25, 0
        )
        assert len(by_endpoint) == 1
        pending = webhook_deliveries.list(
            db_session, None, None, "pending", "created_at", "desc", 25, 0
        )
        assert len(pending) == 1
        failed = webhook_deliveries.list(
            db_session, None, "record:created", "failed", "created_at", "desc", 25, 0
        )
        assert failed == []

    def test_list_unknown_status(self, db_session) -> None:
        with pytest.raises(HTTPException) as exc:
            webhook_deliveries.list(
                db_session, None, None, "exploded", "created_at", "desc", 25, 0
            )
        assert exc.value.status_code == 400

    def test_list_invalid_order_by(self, db_session) -> None:
        with pytest.raises(HTTPException) as exc:
            webhook_deliveries.list(db_session, None, None, None, "bogus", "asc", 25, 0)
        assert exc.value.status_code == 400
