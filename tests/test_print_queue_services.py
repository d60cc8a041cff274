import uuid
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException

from app.models.records import ModuleRecord, PrintQueueItem, PrintStatus
from app.schemas.modules import ModuleConfig
from app.schemas.records import PrintQueueItemCreate
from app.services.print_queue import print_queue


@pytest.fixture()
def record(db_session, make_module):
    module = make_module("assets", config=ModuleConfig(enableLabelPrint=True))
    record = ModuleRecord(module_id=module.id, name="Laptop 42", status="active")
    db_session.add(record)
    db_session.commit()
    return record


def _queue(db_session, record, **kwargs) -> PrintQueueItem:
    kwargs.setdefault("created_by", "pat@example.com")
    return print_queue.add(
        db_session,
        PrintQueueItemCreate(record_id=record.id, module_name="assets", **kwargs),
    )


class TestAdd:
    def test_add(self, db_session, record) -> None:
        item = _queue(db_session, record)
        assert item.status == PrintStatus.pending
        assert item.module_id == record.module_id
        assert item.module_name == "assets"
        assert item.record_name == "Laptop 42"
        assert item.created_by == "pat@example.com"
        assert item.printed_at is None

    def test_add_camel_case_payload(self, db_session, record) -> None:
        payload = PrintQueueItemCreate.model_validate(
            {
                "recordId": str(record.id),
                "moduleId": str(record.module_id),
                "moduleName": "assets",
                "recordName": "Label text",
            }
        )
        item = print_queue.add(db_session, payload)
        assert item.record_name == "Label text"
        assert item.created_by == "unknown"

    def test_missing_fields(self, db_session, record) -> None:
        with pytest.raises(HTTPException) as exc:
            print_queue.add(db_session, PrintQueueItemCreate(module_name="assets"))
        assert exc.value.status_code == 400
        assert exc.value.detail["message"] == "Missing required fields"

    def test_module_without_label_print(self, db_session, make_module) -> None:
        module = make_module("tickets")
        ticket = ModuleRecord(module_id=module.id, name="T-1", status="active")
        db_session.add(ticket)
        db_session.commit()
        with pytest.raises(HTTPException) as exc:
            print_queue.add(
                db_session,
                PrintQueueItemCreate(record_id=ticket.id, module_name="tickets"),
            )
        assert exc.value.status_code == 400

    def test_module_id_mismatch(self, db_session, record) -> None:
        with pytest.raises(HTTPException) as exc:
            _queue(db_session, record, module_id=uuid.uuid4())
        assert exc.value.status_code == 400

    def test_unknown_record(self, db_session, record) -> None:
        with pytest.raises(HTTPException) as exc:
            print_queue.add(
                db_session,
                PrintQueueItemCreate(record_id=uuid.uuid4(), module_name="assets"),
            )
        assert exc.value.status_code == 404


class TestQueueState:
    def test_list_and_pending_order(self, db_session, record) -> None:
        first = _queue(db_session, record)
        second = _queue(db_session, record)
        first.created_at = datetime.now(timezone.utc) - timedelta(minutes=5)
        db_session.commit()

        assert [i.id for i in print_queue.list(db_session)] == [second.id, first.id]
        assert [i.id for i in print_queue.pending(db_session)] == [first.id, second.id]

    def test_mark_printed(self, db_session, record) -> None:
        item = _queue(db_session, record)
        printed = print_queue.mark_printed(db_session, str(item.id))
        assert printed.status == PrintStatus.printed
        assert printed.printed_at is not None
        assert print_queue.pending(db_session) == []
        assert [i.id for i in print_queue.list(db_session, "printed")] == [item.id]

    def test_list_unknown_status(self, db_session) -> None:
        with pytest.raises(HTTPException) as exc:
            print_queue.list(db_session, "lost")
        assert exc.value.status_code == 400

    def test_clear_printed_keeps_pending(self, db_session, record) -> None:
        done = _queue(db_session, record)
        waiting = _queue(db_session, record)
        print_queue.mark_printed(db_session, str(done.id))

        assert print_queue.clear_printed(db_session) == 1
        db_session.expire_all()
        assert [i.id for i in print_queue.list(db_session)] == [waiting.id]

    def test_delete(self, db_session, record) -> None:
        item = _queue(db_session, record)
        print_queue.delete(db_session, str(item.id))
        with pytest.raises(HTTPException) as exc:
            print_queue.get(db_session, str(item.id))
        assert exc.value.status_code == 404

    def test_record_delete_removes_queue_items(self, db_session, record) -> None:
        _queue(db_session, record)
        db_session.delete(record)
        db_session.commit()
        db_session.expire_all()
        assert print_queue.list(db_session) == []
