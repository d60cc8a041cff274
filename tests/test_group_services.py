import uuid

import pytest
from fastapi import HTTPException

from app.models.access import UserGroupMember
from app.schemas.access import (
    GroupCreate,
    GroupMembersUpdate,
    GroupMenuItemsUpdate,
    GroupModulesUpdate,
    GroupUpdate,
    MenuItemCreate,
    PermissionItem,
    PermissionsUpdate,
    UserCreate,
    UserUpdate,
)
from app.services.access import Principal, resolve_access
from app.services.groups import groups, menu_items, slugify
from app.services.permission_cache import PermissionCache
from app.services.users import permissions, users


def _principal(user) -> Principal:
    return Principal(id=user.id, email=user.email, role=user.role.value)


class TestSlugify:
    @pytest.mark.parametrize(
        "name, expected",
        [
            ("Field Team", "field_team"),
            ("  Sales & Ops ", "sales__ops"),
            ("QA-2", "qa2"),
        ],
    )
    def test_slugify(self, name, expected) -> None:
        assert slugify(name) == expected


class TestGroups:
    def test_create(self, db_session) -> None:
        group = groups.create(
            db_session, GroupCreate(name="Field Team", display_name="Field Team")
        )
        assert group.name == "field_team"
        assert group.is_active is True
        assert group.member_count == 0

    def test_duplicate_name(self, db_session) -> None:
        groups.create(db_session, GroupCreate(name="Field Team", display_name="A"))
        with pytest.raises(HTTPException) as exc:
            groups.create(db_session, GroupCreate(name="field team", display_name="B"))
        assert exc.value.status_code == 400

    def test_name_without_letters(self, db_session) -> None:
        with pytest.raises(HTTPException) as exc:
            groups.create(db_session, GroupCreate(name="!!!", display_name="Bang"))
        assert exc.value.status_code == 400

    def test_get_missing(self, db_session) -> None:
        with pytest.raises(HTTPException) as exc:
            groups.get(db_session, str(uuid.uuid4()))
        assert exc.value.status_code == 404

    def test_list_filters_active(self, db_session) -> None:
        groups.create(db_session, GroupCreate(name="alpha", display_name="Alpha"))
        beta = groups.create(db_session, GroupCreate(name="beta", display_name="Beta"))
        groups.update(db_session, str(beta.id), GroupUpdate(is_active=False))
        assert [g.name for g in groups.list(db_session)] == ["alpha", "beta"]
        assert [g.name for g in groups.list(db_session, is_active=True)] == ["alpha"]

    def test_set_members_and_detail(self, db_session, admin, person) -> None:
        group = groups.create(db_session, GroupCreate(name="crew", display_name="Crew"))
        detail = groups.set_members(
            db_session,
            str(group.id),
            GroupMembersUpdate(user_ids=[person.id, admin.id, person.id]),
        )
        assert detail["member_count"] == 2
        assert [m["email"] for m in detail["members"]] == [
            "admin@example.com",
            "pat@example.com",
        ]

        detail = groups.set_members(
            db_session, str(group.id), GroupMembersUpdate(user_ids=[person.id])
        )
        assert [m["email"] for m in detail["members"]] == ["pat@example.com"]

    def test_set_members_unknown_user(self, db_session) -> None:
        group = groups.create(db_session, GroupCreate(name="crew", display_name="Crew"))
        with pytest.raises(HTTPException) as exc:
            groups.set_members(
                db_session, str(group.id), GroupMembersUpdate(user_ids=[uuid.uuid4()])
            )
        assert exc.value.status_code == 400

    def test_module_grant_invalidates_cache(self, db_session, person, make_module) -> None:
        tickets = make_module("tickets")
        cache = PermissionCache(ttl=300)
        group = groups.create(db_session, GroupCreate(name="crew", display_name="Crew"))
        groups.set_members(
            db_session, str(group.id), GroupMembersUpdate(user_ids=[person.id]), cache
        )
        assert resolve_access(db_session, _principal(person), "tickets", cache).can_view is False

        groups.set_modules(
            db_session, str(group.id), GroupModulesUpdate(module_ids=[tickets.id]), cache
        )
        assert resolve_access(db_session, _principal(person), "tickets", cache).can_view is True

    def test_deactivating_group_revokes_access(self, db_session, person, make_module) -> None:
        tickets = make_module("tickets")
        cache = PermissionCache(ttl=300)
        group = groups.create(db_session, GroupCreate(name="crew", display_name="Crew"))
        groups.set_members(
            db_session, str(group.id), GroupMembersUpdate(user_ids=[person.id]), cache
        )
        groups.set_modules(
            db_session, str(group.id), GroupModulesUpdate(module_ids=[tickets.id]), cache
        )
        assert resolve_access(db_session, _principal(person), "tickets", cache).can_edit
        groups.update(db_session, str(group.id), GroupUpdate(is_active=False), cache)
        assert not resolve_access(db_session, _principal(person), "tickets", cache).can_edit

    def test_modules_for_user(self, db_session, person, make_module) -> None:
        tickets = make_module("tickets")
        make_module("assets")
        group = groups.create(db_session, GroupCreate(name="crew", display_name="Crew"))
        groups.set_members(db_session, str(group.id), GroupMembersUpdate(user_ids=[person.id]))
        groups.set_modules(
            db_session, str(group.id), GroupModulesUpdate(module_ids=[tickets.id])
        )
        assert [m.name for m in groups.modules_for_user(db_session, str(person.id))] == [
            "tickets"
        ]
        assert [g.name for g in groups.for_user(db_session, str(person.id))] == ["crew"]

    def test_menu_items(self, db_session) -> None:
        item = menu_items.create(
            db_session, MenuItemCreate(name="reports", display_name="Reports", path="/r")
        )
        with pytest.raises(HTTPException):
            menu_items.create(
                db_session, MenuItemCreate(name="reports", display_name="Again")
            )
        group = groups.create(db_session, GroupCreate(name="crew", display_name="Crew"))
        detail = groups.set_menu_items(
            db_session, str(group.id), GroupMenuItemsUpdate(menu_item_ids=[item.id])
        )
        assert detail["menu_items"][0]["path"] == "/r"
        assert detail["menu_item_count"] == 1

    def test_delete_removes_memberships(self, db_session, person) -> None:
        group = groups.create(db_session, GroupCreate(name="crew", display_name="Crew"))
        groups.set_members(db_session, str(group.id), GroupMembersUpdate(user_ids=[person.id]))
        groups.delete(db_session, str(group.id))
        assert db_session.query(UserGroupMember).count() == 0


class TestUsers:
    def test_create_and_duplicate(self, db_session) -> None:
        user = users.create(db_session, UserCreate(email="sam@example.com", name="Sam"))
        assert user.role.value == "user"
        with pytest.raises(HTTPException) as exc:
            users.create(db_session, UserCreate(email="SAM@example.com"))
        assert exc.value.status_code == 400

    def test_get_or_create(self, db_session) -> None:
        first = users.get_or_create(db_session, "new@example.com", "New Person")
        again = users.get_or_create(db_session, "NEW@example.com")
        assert first.id == again.id
        assert first.name == "New Person"

    def test_update_role(self, db_session, person) -> None:
        updated = users.update(db_session, str(person.id), UserUpdate(role="admin"))
        assert updated.role.value == "admin"

    def test_delete(self, db_session, person) -> None:
        users.delete(db_session, str(person.id))
        with pytest.raises(HTTPException) as exc:
            users.get(db_session, str(person.id))
        assert exc.value.status_code == 404


class TestPermissions:
    def test_replace_all(self, db_session, person) -> None:
        result = permissions.update(
            db_session,
            str(person.id),
            PermissionsUpdate(
                permissions=[
                    PermissionItem(module="tickets", permission="editor"),
                    PermissionItem(module="assets", permission="viewer"),
                    PermissionItem(module="hidden", permission="none"),
                ]
            ),
        )
        assert {(p.module, p.permission.value) for p in result} == {
            ("assets", "viewer"),
            ("tickets", "editor"),
        }

        result = permissions.update(
            db_session,
            str(person.id),
            PermissionsUpdate(permissions=[PermissionItem(module="assets", permission="admin")]),
        )
        assert [(p.module, p.permission.value) for p in result] == [("assets", "admin")]

    def test_single_module(self, db_session, person) -> None:
        permissions.update(
            db_session,
            str(person.id),
            PermissionsUpdate(module="tickets", permission="viewer"),
        )
        result = permissions.update(
            db_session,
            str(person.id),
            PermissionsUpdate(module="tickets", permission="editor"),
        )
        assert [(p.module, p.permission.value) for p in result] == [("tickets", "editor")]

    def test_none_removes_level(self, db_session, person) -> None:
        permissions.update(
            db_session, str(person.id), PermissionsUpdate(module="tickets", permission="viewer")
        )
        result = permissions.update(
            db_session, str(person.id), PermissionsUpdate(module="tickets", permission="none")
        )
        assert result == []

    def test_requires_a_shape(self, db_session, person) -> None:
        with pytest.raises(HTTPException) as exc:
            permissions.update(db_session, str(person.id), PermissionsUpdate(module="tickets"))
        assert exc.value.status_code == 400

    def test_update_invalidates_cache(self, db_session, person, make_module) -> None:
        make_module("tickets")
        cache = PermissionCache(ttl=300)
        principal = _principal(person)
        assert resolve_access(db_session, principal, "tickets", cache).level == "none"
        permissions.update(
            db_session,
            str(person.id),
            PermissionsUpdate(module="tickets", permission="viewer"),
            cache,
        )
        assert resolve_access(db_session, principal, "tickets", cache).level == "viewer"
