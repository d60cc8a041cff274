import base64

import pytest

from app.schemas.access import GroupCreate, GroupMembersUpdate, GroupModulesUpdate
from app.schemas.modules import ModuleConfig
from app.services.groups import groups


@pytest.fixture()
def tickets(make_module, make_field):
    module = make_module(
        "tickets", config=ModuleConfig(statuses=["open", "closed"], default_status="open")
    )
    make_field("tickets", "summary")
    return module


def _create(client, headers, name="T-1", **extra):
    body = {"name": name, **extra}
    return client.post("/modules/tickets/records", json=body, headers=headers)


class TestRecordAccess:
    def test_requires_token(self, client, tickets) -> None:
        assert client.get("/modules/tickets/records").status_code == 401

    def test_no_access(self, client, user_headers, tickets) -> None:
        resp = client.get("/modules/tickets/records", headers=user_headers)
        assert resp.status_code == 403
        assert resp.json()["code"] == "forbidden"

    def test_unknown_module(self, client, user_headers) -> None:
        resp = client.get("/modules/nope/records", headers=user_headers)
        assert resp.status_code == 404

    def test_viewer_cannot_edit(
        self, client, auth_headers, user_headers, person, tickets
    ) -> None:
        client.put(
            f"/users/{person.id}/permissions",
            json={"module": "tickets", "permission": "viewer"},
            headers=auth_headers,
        )
        assert client.get("/modules/tickets/records", headers=user_headers).status_code == 200
        assert _create(client, user_headers).status_code == 403

    def test_editor_cannot_delete(
        self, client, auth_headers, user_headers, person, tickets
    ) -> None:
        client.put(
            f"/users/{person.id}/permissions",
            json={"module": "tickets", "permission": "editor"},
            headers=auth_headers,
        )
        record = _create(client, user_headers).json()
        resp = client.delete(f"/modules/tickets/records/{record['id']}", headers=user_headers)
        assert resp.status_code == 403

    def test_group_grant(self, client, db_session, user_headers, person, tickets) -> None:
        group = groups.create(db_session, GroupCreate(name="crew", display_name="Crew"))
        groups.set_members(db_session, str(group.id), GroupMembersUpdate(user_ids=[person.id]))
        groups.set_modules(
            db_session, str(group.id), GroupModulesUpdate(module_ids=[tickets.id])
        )
        resp = _create(client, user_headers)
        assert resp.status_code == 201
        assert resp.json()["created_by"] == "pat@example.com"
        record_id = resp.json()["id"]
        resp = client.delete(f"/modules/tickets/records/{record_id}", headers=user_headers)
        assert resp.status_code == 204


class TestRecordCrud:
    def test_create(self, client, auth_headers, tickets, _no_broker) -> None:
        resp = client.post(
            "/modules/tickets/records?source=email",
            json={"name": "Printer jam", "data": {"summary": "Tray 2"}},
            headers=auth_headers,
        )
        assert resp.status_code == 201
        data = resp.json()
        assert data["status"] == "open"
        assert data["version"] == 1
        assert data["data"] == {"summary": "Tray 2"}
        assert data["created_by"] == "admin@example.com"
        assert _no_broker.delay.call_args.kwargs["payload"]["source"] == "email"

    def test_create_requires_name(self, client, auth_headers, tickets) -> None:
        resp = _create(client, auth_headers, name="  ")
        assert resp.status_code == 400
        assert resp.json()["message"] == "Name is required"

    def test_get_marks_viewed(self, client, auth_headers, tickets) -> None:
        record = _create(client, auth_headers).json()
        assert record["is_viewed"] is False
        client.get(f"/modules/tickets/records/{record['id']}", headers=auth_headers)
        listed = client.get("/modules/tickets/records", headers=auth_headers).json()
        assert listed[0]["is_viewed"] is True

    def test_update_and_history(self, client, auth_headers, tickets) -> None:
        record = _create(client, auth_headers).json()
        resp = client.put(
            f"/modules/tickets/records/{record['id']}",
            json={"status": "closed", "version": 1},
            headers=auth_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["version"] == 2
        assert resp.json()["updated_by"] == "admin@example.com"

        history = client.get(
            f"/modules/tickets/records/{record['id']}/history", headers=auth_headers
        ).json()
        assert [h["action"] for h in history] == ["field_updated", "created"]
        assert history[0]["field_name"] == "status"
        assert history[0]["new_value"] == "closed"

    def test_update_conflict(self, client, auth_headers, tickets) -> None:
        record = _create(client, auth_headers).json()
        resp = client.put(
            f"/modules/tickets/records/{record['id']}",
            json={"name": "Renamed", "version": 5},
            headers=auth_headers,
        )
        assert resp.status_code == 409
        assert resp.json()["details"] == {"expected": 5, "current": 1}

    def test_note(self, client, auth_headers, tickets) -> None:
        record = _create(client, auth_headers).json()
        resp = client.post(
            f"/modules/tickets/records/{record['id']}/history",
            json={"description": "Called the customer"},
            headers=auth_headers,
        )
        assert resp.status_code == 201
        assert resp.json()["action"] == "note"
        assert resp.json()["changed_by"] == "admin@example.com"

    def test_delete(self, client, auth_headers, tickets) -> None:
        record = _create(client, auth_headers).json()
        resp = client.delete(f"/modules/tickets/records/{record['id']}", headers=auth_headers)
        assert resp.status_code == 204
        resp = client.get(f"/modules/tickets/records/{record['id']}", headers=auth_headers)
        assert resp.status_code == 404

    def test_invalid_id(self, client, auth_headers, tickets) -> None:
        resp = client.get("/modules/tickets/records/not-a-uuid", headers=auth_headers)
        assert resp.status_code == 404

    def test_versioned_prefix(self, client, auth_headers, tickets) -> None:
        resp = client.post(
            "/api/v1/modules/tickets/records", json={"name": "v1"}, headers=auth_headers
        )
        assert resp.status_code == 201


class TestRecordAttachments:
    def test_images(self, client, auth_headers, tickets) -> None:
        record = _create(client, auth_headers).json()
        image = "data:image/png;base64," + base64.b64encode(b"png-bytes").decode()
        resp = client.post(
            f"/modules/tickets/records/{record['id']}/images",
            json={"image": image},
            headers=auth_headers,
        )
        assert resp.status_code == 201
        data = resp.json()
        assert data["thumbnail"] == data["images"][0]["image_path"]

        served = client.get(data["thumbnail"])
        assert served.status_code == 200
        assert served.content == b"png-bytes"

        image_id = data["images"][0]["id"]
        resp = client.delete(
            f"/modules/tickets/records/{record['id']}/images/{image_id}",
            headers=auth_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["images"] == []
        assert resp.json()["warnings"] == []

    def test_documents(self, client, auth_headers, tickets) -> None:
        record = _create(client, auth_headers).json()
        encoded = base64.b64encode(b"hello").decode()
        resp = client.post(
            f"/modules/tickets/records/{record['id']}/documents",
            json={"file": f"data:text/plain;base64,{encoded}", "fileName": "notes.txt"},
            headers=auth_headers,
        )
        assert resp.status_code == 201
        document = resp.json()
        assert document["file_size"] == 5
        assert document["created_by"] == "admin@example.com"

        listed = client.get(
            f"/modules/tickets/records/{record['id']}/documents", headers=auth_headers
        ).json()
        assert [d["id"] for d in listed] == [document["id"]]

        resp = client.delete(
            f"/modules/tickets/records/{record['id']}/documents/{document['id']}",
            headers=auth_headers,
        )
        assert resp.json() == {"success": True, "warnings": []}

    def test_links(self, client, auth_headers, tickets) -> None:
        record = _create(client, auth_headers).json()
        base = f"/modules/tickets/records/{record['id']}/links"
        resp = client.post(base, json={"url": "https://example.com"}, headers=auth_headers)
        assert resp.status_code == 201
        link_id = resp.json()["id"]

        resp = client.put(
            f"{base}/{link_id}", json={"title": "Home"}, headers=auth_headers
        )
        assert resp.json()["title"] == "Home"

        assert client.delete(f"{base}/{link_id}", headers=auth_headers).status_code == 204
        assert client.get(base, headers=auth_headers).json() == []

    def test_companies(self, client, auth_headers, tickets) -> None:
        record = _create(client, auth_headers).json()
        company = client.post(
            "/companies", json={"name": "Acme"}, headers=auth_headers
        ).json()
        base = f"/modules/tickets/records/{record['id']}/companies"

        resp = client.post(base, json={"companyId": company["id"]}, headers=auth_headers)
        assert resp.status_code == 201
        assert resp.json()[0]["name"] == "Acme"

        resp = client.delete(f"{base}/{company['id']}", headers=auth_headers)
        assert resp.status_code == 204
        assert client.get(base, headers=auth_headers).json() == []


class TestRecordChildren:
    @pytest.fixture()
    def projects(self, make_module):
        parent = make_module("projects")
        make_module("tasks", parent_module_id=parent.id)
        return parent

    def test_children(self, client, auth_headers, projects) -> None:
        parent = client.post(
            "/modules/projects/records", json={"name": "Launch"}, headers=auth_headers
        ).json()
        resp = client.post(
            "/modules/tasks/records",
            json={"name": "Write docs", "parentRecordId": parent["id"]},
            headers=auth_headers,
        )
        assert resp.status_code == 201

        count = client.get(
            f"/modules/projects/records/{parent['id']}/children-count",
            headers=auth_headers,
        ).json()
        assert count["total_count"] == 1
        assert count["breakdown"][0]["module_name"] == "tasks"

        children = client.get(
            f"/modules/projects/records/{parent['id']}/children/tasks",
            headers=auth_headers,
        ).json()
        assert [c["name"] for c in children] == ["Write docs"]

        resp = client.delete(
            f"/modules/projects/records/{parent['id']}", headers=auth_headers
        )
        assert resp.status_code == 400

    def test_children_require_sub_module_access(
        self, client, auth_headers, user_headers, person, projects
    ) -> None:
        client.put(
            f"/users/{person.id}/permissions",
            json={"module": "projects", "permission": "viewer"},
            headers=auth_headers,
        )
        parent = client.post(
            "/modules/projects/records", json={"name": "Launch"}, headers=auth_headers
        ).json()
        resp = client.get(
            f"/modules/projects/records/{parent['id']}/children/tasks",
            headers=user_headers,
        )
        assert resp.status_code == 403
