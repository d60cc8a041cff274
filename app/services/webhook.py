from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from app.errors import NotFound, ValidationError
from app.models.webhook import WebhookDelivery, WebhookDeliveryStatus, WebhookEndpoint
from app.schemas.webhook import WebhookEndpointCreate, WebhookEndpointUpdate
from app.services.common import apply_ordering, apply_pagination, coerce_uuid
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


class WebhookEndpoints(ListResponseMixin):
    @staticmethod
    def create(
        db: Session, payload: WebhookEndpointCreate, created_by=None
    ) -> WebhookEndpoint:
        if db.query(WebhookEndpoint).filter(WebhookEndpoint.url == payload.url).first():
            raise ValidationError("A webhook endpoint with this URL already exists")
        endpoint = WebhookEndpoint(
            **payload.model_dump(), created_by=coerce_uuid(created_by)
        )
        db.add(endpoint)
        db.commit()
        db.refresh(endpoint)
        logger.info("Created webhook endpoint %s", endpoint.id)
        return endpoint

    @staticmethod
    def get(db: Session, endpoint_id: str) -> WebhookEndpoint:
        endpoint = db.get(WebhookEndpoint, coerce_uuid(endpoint_id))
        if not endpoint:
            raise NotFound("Webhook endpoint not found")
        return endpoint

    @staticmethod
    def list(
        db: Session,
        is_active: bool | None,
        module_name: str | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> list[WebhookEndpoint]:
        query = db.query(WebhookEndpoint)
        if is_active is None:
            query = query.filter(WebhookEndpoint.is_active.is_(True))
        else:
            query = query.filter(WebhookEndpoint.is_active == is_active)
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {
                "name": WebhookEndpoint.name,
                "created_at": WebhookEndpoint.created_at,
            },
        )
        if module_name is None:
            return apply_pagination(query, limit, offset).all()
        # module_names is a JSON list; match before slicing the page
        endpoints = [
            ep
            for ep in query.all()
            if not ep.module_names or module_name in ep.module_names
        ]
        return endpoints[offset : offset + limit]

    @staticmethod
    def update(
        db: Session, endpoint_id: str, payload: WebhookEndpointUpdate
    ) -> WebhookEndpoint:
        endpoint = WebhookEndpoints.get(db, endpoint_id)
        data = payload.model_dump(exclude_unset=True)
        for key, value in data.items():
            setattr(endpoint, key, value)
        db.commit()
        db.refresh(endpoint)
        logger.info("Updated webhook endpoint %s", endpoint.id)
        return endpoint

    @staticmethod
    def delete(db: Session, endpoint_id: str) -> None:
        endpoint = WebhookEndpoints.get(db, endpoint_id)
        endpoint.is_active = False
        db.commit()
        logger.info("Soft-deleted webhook endpoint %s", endpoint_id)


class WebhookDeliveries(ListResponseMixin):
    @staticmethod
    def get(db: Session, delivery_id: str) -> WebhookDelivery:
        delivery = db.get(WebhookDelivery, coerce_uuid(delivery_id))
        if not delivery:
            raise NotFound("Webhook delivery not found")
        return delivery

    @staticmethod
    def list(
        db: Session,
        endpoint_id: str | None,
        event_type: str | None,
        status: str | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> list[WebhookDelivery]:
        query = db.query(WebhookDelivery)
        if endpoint_id is not None:
            query = query.filter(
                WebhookDelivery.endpoint_id == coerce_uuid(endpoint_id)
            )
        if event_type is not None:
            query = query.filter(WebhookDelivery.event_type == event_type)
        if status is not None:
            try:
                status_value = WebhookDeliveryStatus(status)
            except ValueError:
                raise ValidationError(f"Unknown delivery status: {status}")
            query = query.filter(WebhookDelivery.status == status_value)
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {"created_at": WebhookDelivery.created_at},
        )
        return apply_pagination(query, limit, offset).all()


webhook_endpoints = WebhookEndpoints()
webhook_deliveries = WebhookDeliveries()
