class TestUserEndpoints:
    def test_me(self, client, user_headers) -> None:
        resp = client.get("/users/me", headers=user_headers)
        assert resp.status_code == 200
        assert resp.json()["email"] == "pat@example.com"
        assert resp.json()["role"] == "user"

    def test_admin_only(self, client, user_headers) -> None:
        assert client.get("/users", headers=user_headers).status_code == 403

    def test_create_list_update(self, client, auth_headers) -> None:
        resp = client.post(
            "/users", json={"email": "sam@example.com", "name": "Sam"}, headers=auth_headers
        )
        assert resp.status_code == 201
        user_id = resp.json()["id"]

        listed = client.get("/users", headers=auth_headers).json()
        assert listed["count"] == 2

        resp = client.patch(
            f"/users/{user_id}", json={"is_active": False}, headers=auth_headers
        )
        assert resp.json()["is_active"] is False

        assert client.delete(f"/users/{user_id}", headers=auth_headers).status_code == 204
        assert client.get(f"/users/{user_id}", headers=auth_headers).status_code == 404

    def test_inactive_user_rejected(self, client, auth_headers, user_headers, person) -> None:
        client.patch(f"/users/{person.id}", json={"is_active": False}, headers=auth_headers)
        resp = client.get("/users/me", headers=user_headers)
        assert resp.status_code == 401

    def test_permissions(self, client, auth_headers, person) -> None:
        resp = client.put(
            f"/users/{person.id}/permissions",
            json={
                "permissions": [
                    {"module": "tickets", "permission": "editor"},
                    {"module": "assets", "permission": "none"},
                ]
            },
            headers=auth_headers,
        )
        assert resp.status_code == 200
        assert [(p["module"], p["permission"]) for p in resp.json()] == [
            ("tickets", "editor")
        ]
        listed = client.get(f"/users/{person.id}/permissions", headers=auth_headers)
        assert len(listed.json()) == 1

    def test_permissions_invalid_level(self, client, auth_headers, person) -> None:
        resp = client.put(
            f"/users/{person.id}/permissions",
            json={"module": "tickets", "permission": "owner"},
            headers=auth_headers,
        )
        assert resp.status_code == 422


class TestPermissionCheck:
    def test_check_for_user(self, client, auth_headers, user_headers, person, make_module) -> None:
        make_module("tickets")
        client.put(
            f"/users/{person.id}/permissions",
            json={"module": "tickets", "permission": "viewer"},
            headers=auth_headers,
        )
        resp = client.get("/permissions/check?module=tickets", headers=user_headers)
        assert resp.json() == {
            "module": "tickets",
            "permission": "viewer",
            "can_view": True,
            "can_edit": False,
            "can_delete": False,
        }

    def test_check_for_admin(self, client, auth_headers, make_module) -> None:
        make_module("tickets")
        resp = client.get("/permissions/check?module=tickets", headers=auth_headers)
        assert resp.json()["permission"] == "admin"
        assert resp.json()["can_delete"] is True

    def test_unknown_module_reports_none(self, client, user_headers) -> None:
        resp = client.get("/permissions/check?module=ghost", headers=user_headers)
        assert resp.status_code == 200
        assert resp.json()["permission"] == "none"
        assert resp.json()["can_view"] is False


class TestGroupEndpoints:
    def test_admin_only(self, client, user_headers) -> None:
        assert client.get("/groups", headers=user_headers).status_code == 403

    def test_lifecycle(self, client, auth_headers, person, make_module) -> None:
        tickets = make_module("tickets")
        resp = client.post(
            "/groups",
            json={"name": "Field Team", "displayName": "Field Team"},
            headers=auth_headers,
        )
        assert resp.status_code == 201
        group_id = resp.json()["id"]
        assert resp.json()["name"] == "field_team"

        resp = client.put(
            f"/groups/{group_id}/members",
            json={"userIds": [str(person.id)]},
            headers=auth_headers,
        )
        assert resp.json()["member_count"] == 1

        resp = client.put(
            f"/groups/{group_id}/modules",
            json={"moduleIds": [str(tickets.id)]},
            headers=auth_headers,
        )
        assert [m["name"] for m in resp.json()["modules"]] == ["tickets"]

        resp = client.get(f"/groups/user/{person.id}/modules", headers=auth_headers)
        assert [m["name"] for m in resp.json()] == ["tickets"]

        resp = client.get(f"/groups/{group_id}", headers=auth_headers)
        assert resp.json()["members"][0]["email"] == "pat@example.com"

        resp = client.patch(
            f"/groups/{group_id}", json={"description": "Techs"}, headers=auth_headers
        )
        assert resp.json()["description"] == "Techs"

        listed = client.get("/groups", headers=auth_headers).json()
        assert listed["count"] == 1

        assert client.delete(f"/groups/{group_id}", headers=auth_headers).status_code == 204
        assert client.get(f"/groups/{group_id}", headers=auth_headers).status_code == 404

    def test_menu_items(self, client, auth_headers) -> None:
        resp = client.post(
            "/groups/menu-items",
            json={"name": "reports", "display_name": "Reports", "path": "/reports"},
            headers=auth_headers,
        )
        assert resp.status_code == 201
        items = client.get("/groups/menu-items", headers=auth_headers).json()
        assert [i["name"] for i in items] == ["reports"]


class TestCompanyEndpoints:
    def test_create_list_get(self, client, user_headers) -> None:
        resp = client.post("/companies", json={"name": "Acme"}, headers=user_headers)
        assert resp.status_code == 201
        company_id = resp.json()["id"]

        listed = client.get("/companies?search=ac", headers=user_headers).json()
        assert [c["name"] for c in listed["items"]] == ["Acme"]
        assert listed["limit"] == 50

        resp = client.get(f"/companies/{company_id}", headers=user_headers)
        assert resp.json()["name"] == "Acme"
