"""
Roles component unit tests.
"""

from __future__ import annotations

from datetime import UTC, datetime
from uuid import UUID, uuid4

import pytest

from jellyfin_manager.app_shell.config import DEFAULT_RULES_PATH
from jellyfin_manager.components.roles import (
    AssignRoleInput,
    CreateRoleInput,
    DeleteRoleInput,
    GetUserRoleInput,
    ListRolesInput,
    UpdateRoleInput,
    run,
    run_assign,
    run_create,
    run_delete,
    run_get_user_role,
    run_update,
)
from jellyfin_manager.domain.entities import ActivityEntry, AppUser, Role
from jellyfin_manager.domain.policy import PolicyEngine
from jellyfin_manager.rules.loader import load_rules


class MockRoleRepo:
    def __init__(self) -> None:
        self._roles: dict[UUID, Role] = {}
        self.users: MockUserRepo | None = None

    def save(self, role: Role) -> Role:
        if role.is_default:
            for other in self._roles.values():
                if other.id != role.id:
                    other.is_default = False
        self._roles[role.id] = role
        return role

    def get_by_id(self, role_id: UUID) -> Role | None:
        return self._roles.get(role_id)

    def get_by_name(self, name: str) -> Role | None:
        return next(
            (r for r in self._roles.values() if r.name.lower() == name.lower()), None
        )

    def get_default(self) -> Role | None:
        return next((r for r in self._roles.values() if r.is_default), None)

    def list_all(self) -> list[Role]:
        return sorted(self._roles.values(), key=lambda r: r.name)

    def count_members(self, role_id: UUID) -> int:
        if self.users is None:
            return 0
        return sum(1 for u in self.users.accounts.values() if u.role_id == role_id)

    def delete(self, role_id: UUID) -> bool:
        if self.users is not None:
            for user in self.users.accounts.values():
                if user.role_id == role_id:
                    user.role_id = None
        return self._roles.pop(role_id, None) is not None


class MockUserRepo:
    def __init__(self, *users: AppUser) -> None:
        self.accounts = {u.id: u for u in users}

    def get_by_id(self, user_id: UUID) -> AppUser | None:
        return self.accounts.get(user_id)

    def save(self, user: AppUser) -> AppUser:
        self.accounts[user.id] = user
        return user


class MockActivityLog:
    def __init__(self) -> None:
        self.entries: list[ActivityEntry] = []

    def save(self, entry: ActivityEntry) -> ActivityEntry:
        self.entries.append(entry)
        return entry


class MockTimePort:
    def now_utc(self) -> datetime:
        return datetime(2024, 6, 15, 12, 0, 0, tzinfo=UTC)


@pytest.fixture
def policy() -> PolicyEngine:
    return PolicyEngine(load_rules(DEFAULT_RULES_PATH))


@pytest.fixture
def admin() -> AppUser:
    return AppUser(username="admin", password_hash="x", is_admin=True)


@pytest.fixture
def member() -> AppUser:
    return AppUser(username="viewer", password_hash="x")


@pytest.fixture
def users(admin, member) -> MockUserRepo:
    return MockUserRepo(admin, member)


@pytest.fixture
def repo(users) -> MockRoleRepo:
    repo = MockRoleRepo()
    repo.users = users
    return repo


@pytest.fixture
def activity() -> MockActivityLog:
    return MockActivityLog()


def _create(repo, activity, policy, actor, **kwargs) -> Role:
    out = run_create(CreateRoleInput(actor=actor, **kwargs), repo, activity, policy,
                     MockTimePort())
    assert out.success, out.error
    return out.role


class TestCreateRole:
    def test_create(self, repo, activity, policy, admin) -> None:
        role = _create(
            repo, activity, policy, admin,
            name=" Family ", description="Close relatives", permissions={"can_invite": True},
        )

        assert role.name == "Family"
        assert role.permissions == {"can_invite": True}
        assert role.created_at == MockTimePort().now_utc()
        assert [e.type for e in activity.entries] == ["role_created"]

    def test_duplicate_name_ignores_case(self, repo, activity, policy, admin) -> None:
        _create(repo, activity, policy, admin, name="Family")

        out = run_create(CreateRoleInput(actor=admin, name="FAMILY"), repo, activity, policy,
                         MockTimePort())

        assert out.errors[0].code == "NAME_TAKEN"

    def test_blank_name(self, repo, activity, policy, admin) -> None:
        out = run_create(CreateRoleInput(actor=admin, name=" "), repo, activity, policy,
                         MockTimePort())
        assert out.errors[0].code == "NAME_REQUIRED"

    def test_long_name(self, repo, activity, policy, admin) -> None:
        out = run_create(CreateRoleInput(actor=admin, name="x" * 51), repo, activity, policy,
                         MockTimePort())
        assert out.errors[0].code == "NAME_TOO_LONG"

    def test_non_flag_permission(self, repo, activity, policy, admin) -> None:
        inp = CreateRoleInput(actor=admin, name="Odd", permissions={"quota": 5})
        out = run_create(inp, repo, activity, policy, MockTimePort())

        assert out.errors[0].field == "permissions"
        assert repo.list_all() == []

    def test_default_is_exclusive(self, repo, activity, policy, admin) -> None:
        first = _create(repo, activity, policy, admin, name="A", is_default=True)
        second = _create(repo, activity, policy, admin, name="B", is_default=True)

        assert repo.get_default() == second
        assert not repo.get_by_id(first.id).is_default

    def test_member_denied(self, repo, activity, policy, member) -> None:
        out = run_create(CreateRoleInput(actor=member, name="A"), repo, activity, policy,
                         MockTimePort())
        assert out.error == "Access denied"


class TestUpdateDeleteRole:
    def test_update_given_fields(self, repo, activity, policy, admin) -> None:
        role = _create(repo, activity, policy, admin, name="Family", description="Kin")

        out = run_update(
            UpdateRoleInput(actor=admin, role_id=role.id, name="Relatives", is_admin=True),
            repo, policy, MockTimePort(),
        )

        assert out.success
        assert out.role.name == "Relatives"
        assert out.role.description == "Kin"
        assert out.role.is_admin

    def test_rename_to_taken_name(self, repo, activity, policy, admin) -> None:
        _create(repo, activity, policy, admin, name="Family")
        role = _create(repo, activity, policy, admin, name="Friends")

        out = run_update(UpdateRoleInput(actor=admin, role_id=role.id, name="family"), repo,
                         policy, MockTimePort())

        assert out.errors[0].code == "NAME_TAKEN"

    def test_update_unknown(self, repo, policy, admin) -> None:
        out = run_update(UpdateRoleInput(actor=admin, role_id=uuid4()), repo, policy,
                         MockTimePort())
        assert out.error == "Role not found"

    def test_delete_unassigns_members(self, repo, activity, policy, admin, member) -> None:
        role = _create(repo, activity, policy, admin, name="Family")
        member.role_id = role.id

        out = run_delete(DeleteRoleInput(actor=admin, role_id=role.id), repo, activity, policy,
                         MockTimePort())

        assert out.success
        assert member.role_id is None
        assert activity.entries[-1].type == "role_deleted"
        assert activity.entries[-1].metadata["members"] == 1

    def test_delete_unknown(self, repo, activity, policy, admin) -> None:
        out = run_delete(DeleteRoleInput(actor=admin, role_id=uuid4()), repo, activity, policy,
                         MockTimePort())
        assert out.error == "Role not found"


class TestAssignRole:
    def test_assign(self, repo, users, activity, policy, admin, member) -> None:
        role = _create(repo, activity, policy, admin, name="Family")

        out = run_assign(
            AssignRoleInput(actor=admin, user_id=member.id, role_id=role.id),
            repo, users, activity, policy, MockTimePort(),
        )

        assert out.success
        assert users.get_by_id(member.id).role_id == role.id
        assert activity.entries[-1].type == "role_assigned"
        assert activity.entries[-1].username == "viewer"

    def test_admin_role_promotes(self, repo, users, activity, policy, admin, member) -> None:
        role = _create(repo, activity, policy, admin, name="Staff", is_admin=True)

        run_assign(
            AssignRoleInput(actor=admin, user_id=member.id, role_id=role.id),
            repo, users, activity, policy, MockTimePort(),
        )

        assert users.get_by_id(member.id).is_admin

    def test_cannot_demote_self(self, repo, users, activity, policy, admin) -> None:
        role = _create(repo, activity, policy, admin, name="Family")

        out = run_assign(
            AssignRoleInput(actor=admin, user_id=admin.id, role_id=role.id),
            repo, users, activity, policy, MockTimePort(),
        )

        assert out.error == "Cannot remove admin role from yourself"
        assert admin.is_admin
        assert admin.role_id is None

    def test_clear_keeps_admin_flag(self, repo, users, activity, policy, admin, member) -> None:
        member.is_admin = True
        member.role_id = _create(repo, activity, policy, admin, name="Staff", is_admin=True).id

        out = run_assign(
            AssignRoleInput(actor=admin, user_id=member.id, role_id=None),
            repo, users, activity, policy, MockTimePort(),
        )

        assert out.success
        assert out.role is None
        assert member.role_id is None
        assert member.is_admin

    def test_unknown_role(self, repo, users, activity, policy, admin, member) -> None:
        out = run_assign(
            AssignRoleInput(actor=admin, user_id=member.id, role_id=uuid4()),
            repo, users, activity, policy, MockTimePort(),
        )
        assert out.error == "Role not found"

    def test_unknown_user(self, repo, users, activity, policy, admin) -> None:
        out = run_assign(
            AssignRoleInput(actor=admin, user_id=uuid4(), role_id=None),
            repo, users, activity, policy, MockTimePort(),
        )
        assert out.error == "User not found"

    def test_member_denied(self, repo, users, activity, policy, member) -> None:
        out = run_assign(
            AssignRoleInput(actor=member, user_id=member.id, role_id=None),
            repo, users, activity, policy, MockTimePort(),
        )
        assert out.error == "Access denied"


class TestUserRole:
    def test_falls_back_to_default(self, repo, users, activity, policy, admin, member) -> None:
        default = _create(repo, activity, policy, admin, name="Guests", is_default=True)

        out = run_get_user_role(GetUserRoleInput(actor=admin, user_id=member.id), repo, users,
                                policy)

        assert out.role == default

    def test_assigned_role_wins(self, repo, users, activity, policy, admin, member) -> None:
        _create(repo, activity, policy, admin, name="Guests", is_default=True)
        family = _create(repo, activity, policy, admin, name="Family")
        member.role_id = family.id

        out = run_get_user_role(GetUserRoleInput(actor=admin, user_id=member.id), repo, users,
                                policy)

        assert out.role == family

    def test_no_role_at_all(self, repo, users, policy, admin, member) -> None:
        out = run_get_user_role(GetUserRoleInput(actor=admin, user_id=member.id), repo, users,
                                policy)
        assert out.success
        assert out.role is None

    def test_member_reads_own_role_only(self, repo, users, policy, admin, member) -> None:
        own = run_get_user_role(GetUserRoleInput(actor=member, user_id=member.id), repo, users,
                                policy)
        other = run_get_user_role(GetUserRoleInput(actor=member, user_id=admin.id), repo, users,
                                  policy)

        assert own.success
        assert other.error == "Access denied"


def test_run_dispatches(repo, users, activity, policy, admin) -> None:
    created = run(CreateRoleInput(actor=admin, name="Family"), repo=repo, policy=policy,
                  activity=activity, time=MockTimePort())
    listed = run(ListRolesInput(actor=admin), repo=repo, policy=policy)

    assert created.success
    assert [r.name for r in listed.roles] == ["Family"]
