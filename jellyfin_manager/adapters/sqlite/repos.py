"""
SQLite repositories.

Every repository either opens a short-lived connection per call, or works on
a connection handed in by the caller. With an external connection the caller
owns the transaction: the repository neither commits nor closes it.
"""

from __future__ import annotations

import json
import sqlite3
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from jellyfin_manager.domain.entities import (
    ActivityEntry,
    AppUser,
    Invite,
    JellyfinConnection,
    Profile,
    Role,
)

# -----------------------------------------------------------------------------
# Helper functions
# -----------------------------------------------------------------------------


def dict_factory(cursor: sqlite3.Cursor, row: tuple[Any, ...]) -> dict[str, Any]:
    """Convert SQLite row to dictionary."""
    return {col[0]: row[idx] for idx, col in enumerate(cursor.description)}


def parse_dt(s: str | None) -> datetime | None:
    """Parse an ISO datetime string; naive values are taken as UTC."""
    if not s:
        return None
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


def parse_uuid(s: str | None) -> UUID | None:
    return UUID(s) if s else None


def to_iso(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).isoformat()


def connect(db_path: str, timeout: float = 5.0) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path, timeout=timeout)
    conn.row_factory = dict_factory
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


# -----------------------------------------------------------------------------
# Base SQLite Repository
# -----------------------------------------------------------------------------


class SQLiteRepoBase:
    """Base class for SQLite repositories."""

    def __init__(self, db_path: str, connection: sqlite3.Connection | None = None):
        self.db_path = db_path
        self._external_conn = connection

    def _get_conn(self) -> sqlite3.Connection:
        """Get database connection (uses external if provided)."""
        if self._external_conn is not None:
            return self._external_conn
        return connect(self.db_path)

    def _should_close(self) -> bool:
        """Whether to commit and close the connection after use."""
        return self._external_conn is None


# -----------------------------------------------------------------------------
# Users
# -----------------------------------------------------------------------------


class SQLiteUserRepo(SQLiteRepoBase):
    def save(self, user: AppUser) -> AppUser:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO app_users (
                    id, username, password_hash, email, is_admin, jellyfin_user_id,
                    profile_id, role_id, invite_code, notes, expires_at, disabled,
                    created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    username=excluded.username,
                    password_hash=excluded.password_hash,
                    email=excluded.email,
                    is_admin=excluded.is_admin,
                    jellyfin_user_id=excluded.jellyfin_user_id,
                    profile_id=excluded.profile_id,
                    role_id=excluded.role_id,
                    notes=excluded.notes,
                    expires_at=excluded.expires_at,
                    disabled=excluded.disabled,
                    updated_at=excluded.updated_at
                """,
                (
                    str(user.id),
                    user.username,
                    user.password_hash,
                    user.email,
                    int(user.is_admin),
                    user.jellyfin_user_id,
                    str(user.profile_id) if user.profile_id else None,
                    str(user.role_id) if user.role_id else None,
                    user.invite_code,
                    user.notes,
                    to_iso(user.expires_at),
                    int(user.disabled),
                    to_iso(user.created_at),
                    to_iso(user.updated_at),
                ),
            )
            if self._should_close():
                conn.commit()
            return user
        except Exception:
            if self._should_close():
                conn.rollback()
            raise
        finally:
            if self._should_close():
                conn.close()

    def get_by_id(self, user_id: UUID) -> AppUser | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM app_users WHERE id = ?", (str(user_id),)
            ).fetchone()
            return self._map_row(row) if row else None
        finally:
            if self._should_close():
                conn.close()

    def get_by_username(self, username: str) -> AppUser | None:
        conn = self._get_conn()
        try:
            # Usernames are unique regardless of case, matching Jellyfin.
            row = conn.execute(
                "SELECT * FROM app_users WHERE username = ? COLLATE NOCASE", (username,)
            ).fetchone()
            return self._map_row(row) if row else None
        finally:
            if self._should_close():
                conn.close()

    def list_all(self) -> list[AppUser]:
        conn = self._get_conn()
        try:
            rows = conn.execute("SELECT * FROM app_users ORDER BY username").fetchall()
            return [self._map_row(row) for row in rows]
        finally:
            if self._should_close():
                conn.close()

    def list_expirable(self) -> list[AppUser]:
        """Active accounts that carry an expiry timestamp."""
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT * FROM app_users WHERE disabled = 0 AND expires_at IS NOT NULL "
                "ORDER BY expires_at"
            ).fetchall()
            return [self._map_row(row) for row in rows]
        finally:
            if self._should_close():
                conn.close()

    def count(self) -> int:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT COUNT(*) AS n FROM app_users").fetchone()
            return int(row["n"])
        finally:
            if self._should_close():
                conn.close()

    def delete(self, user_id: UUID) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM app_users WHERE id = ?", (str(user_id),))
            if self._should_close():
                conn.commit()
        finally:
            if self._should_close():
                conn.close()

    def _map_row(self, row: dict[str, Any]) -> AppUser:
        return AppUser(
            id=UUID(row["id"]),
            username=row["username"],
            password_hash=row["password_hash"],
            email=row["email"],
            is_admin=bool(row["is_admin"]),
            jellyfin_user_id=row["jellyfin_user_id"],
            profile_id=parse_uuid(row["profile_id"]),
            role_id=parse_uuid(row["role_id"]),
            invite_code=row["invite_code"],
            notes=row["notes"],
            expires_at=parse_dt(row["expires_at"]),
            disabled=bool(row["disabled"]),
            created_at=parse_dt(row["created_at"]) or datetime.min.replace(tzinfo=UTC),
            updated_at=parse_dt(row["updated_at"]) or datetime.min.replace(tzinfo=UTC),
        )


# -----------------------------------------------------------------------------
# Invites
# -----------------------------------------------------------------------------


class SQLiteInviteRepo(SQLiteRepoBase):
    def create(self, invite: Invite) -> Invite:
        """Insert a new invite. ``used_count`` only changes through ``consume_use``."""
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO invites (
                    id, code, label, user_label, profile_id, max_uses, used_count,
                    expires_at, user_expiry_enabled, user_expiry_months,
                    user_expiry_days, user_expiry_hours, user_expiry_minutes,
                    created_at, created_by
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(invite.id),
                    invite.code,
                    invite.label,
                    invite.user_label,
                    str(invite.profile_id) if invite.profile_id else None,
                    invite.max_uses,
                    invite.used_count,
                    to_iso(invite.expires_at),
                    int(invite.user_expiry_enabled),
                    invite.user_expiry_months,
                    invite.user_expiry_days,
                    invite.user_expiry_hours,
                    invite.user_expiry_minutes,
                    to_iso(invite.created_at),
                    invite.created_by,
                ),
            )
            if self._should_close():
                conn.commit()
            return invite
        finally:
            if self._should_close():
                conn.close()

    def get_by_id(self, invite_id: UUID) -> Invite | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM invites WHERE id = ?", (str(invite_id),)
            ).fetchone()
            return self._map_row(row) if row else None
        finally:
            if self._should_close():
                conn.close()

    def get_by_code(self, code: str) -> Invite | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM invites WHERE code = ?", (code,)).fetchone()
            return self._map_row(row) if row else None
        finally:
            if self._should_close():
                conn.close()

    def list_all(self) -> list[Invite]:
        conn = self._get_conn()
        try:
            rows = conn.execute("SELECT * FROM invites ORDER BY created_at DESC").fetchall()
            return [self._map_row(row) for row in rows]
        finally:
            if self._should_close():
                conn.close()

    def consume_use(self, code: str, expected_used_count: int) -> bool:
        """
        Compare-and-increment the usage counter.

        Succeeds only if the counter still holds the value the caller
        evaluated and the cap (if any) is not reached.
        """
        conn = self._get_conn()
        try:
            cursor = conn.execute(
                """
                UPDATE invites
                SET used_count = used_count + 1
                WHERE code = ?
                  AND used_count = ?
                  AND (max_uses IS NULL OR used_count < max_uses)
                """,
                (code, expected_used_count),
            )
            if self._should_close():
                conn.commit()
            return cursor.rowcount == 1
        finally:
            if self._should_close():
                conn.close()

    def delete(self, invite_id: UUID) -> bool:
        conn = self._get_conn()
        try:
            cursor = conn.execute("DELETE FROM invites WHERE id = ?", (str(invite_id),))
            if self._should_close():
                conn.commit()
            return cursor.rowcount > 0
        finally:
            if self._should_close():
                conn.close()

    def _map_row(self, row: dict[str, Any]) -> Invite:
        return Invite(
            id=UUID(row["id"]),
            code=row["code"],
            label=row["label"],
            user_label=row["user_label"],
            profile_id=parse_uuid(row["profile_id"]),
            max_uses=row["max_uses"],
            used_count=row["used_count"],
            expires_at=parse_dt(row["expires_at"]),
            user_expiry_enabled=bool(row["user_expiry_enabled"]),
            user_expiry_months=row["user_expiry_months"] or 0,
            user_expiry_days=row["user_expiry_days"] or 0,
            user_expiry_hours=row["user_expiry_hours"] or 0,
            user_expiry_minutes=row["user_expiry_minutes"] or 0,
            created_at=parse_dt(row["created_at"]) or datetime.min.replace(tzinfo=UTC),
            created_by=row["created_by"],
        )


# -----------------------------------------------------------------------------
# Profiles
# -----------------------------------------------------------------------------


class SQLiteProfileRepo(SQLiteRepoBase):
    def save(self, profile: Profile) -> Profile:
        conn = self._get_conn()
        try:
            if profile.is_default:
                conn.execute(
                    "UPDATE user_profiles SET is_default = 0 WHERE id != ?",
                    (str(profile.id),),
                )
            conn.execute(
                """
                INSERT INTO user_profiles (
                    id, name, source_user_id, source_name, is_default,
                    library_access, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name=excluded.name,
                    source_user_id=excluded.source_user_id,
                    source_name=excluded.source_name,
                    is_default=excluded.is_default,
                    library_access=excluded.library_access,
                    updated_at=excluded.updated_at
                """,
                (
                    str(profile.id),
                    profile.name,
                    profile.source_user_id,
                    profile.source_name,
                    int(profile.is_default),
                    json.dumps(profile.library_access),
                    to_iso(profile.created_at),
                    to_iso(profile.updated_at),
                ),
            )
            if self._should_close():
                conn.commit()
            return profile
        except Exception:
            if self._should_close():
                conn.rollback()
            raise
        finally:
            if self._should_close():
                conn.close()

    def get_by_id(self, profile_id: UUID) -> Profile | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM user_profiles WHERE id = ?", (str(profile_id),)
            ).fetchone()
            return self._map_row(row) if row else None
        finally:
            if self._should_close():
                conn.close()

    def get_by_name(self, name: str) -> Profile | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM user_profiles WHERE name = ?", (name,)
            ).fetchone()
            return self._map_row(row) if row else None
        finally:
            if self._should_close():
                conn.close()

    def get_default(self) -> Profile | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM user_profiles WHERE is_default = 1 LIMIT 1"
            ).fetchone()
            return self._map_row(row) if row else None
        finally:
            if self._should_close():
                conn.close()

    def list_all(self) -> list[Profile]:
        conn = self._get_conn()
        try:
            rows = conn.execute("SELECT * FROM user_profiles ORDER BY name").fetchall()
            return [self._map_row(row) for row in rows]
        finally:
            if self._should_close():
                conn.close()

    def delete(self, profile_id: UUID) -> bool:
        conn = self._get_conn()
        try:
            cursor = conn.execute(
                "DELETE FROM user_profiles WHERE id = ?", (str(profile_id),)
            )
            if self._should_close():
                conn.commit()
            return cursor.rowcount > 0
        finally:
            if self._should_close():
                conn.close()

    def _map_row(self, row: dict[str, Any]) -> Profile:
        return Profile(
            id=UUID(row["id"]),
            name=row["name"],
            source_user_id=row["source_user_id"],
            source_name=row["source_name"],
            is_default=bool(row["is_default"]),
            library_access=json.loads(row["library_access"] or "[]"),
            created_at=parse_dt(row["created_at"]) or datetime.min.replace(tzinfo=UTC),
            updated_at=parse_dt(row["updated_at"]) or datetime.min.replace(tzinfo=UTC),
        )


# -----------------------------------------------------------------------------
# Roles
# -----------------------------------------------------------------------------


class SQLiteRoleRepo(SQLiteRepoBase):
    def save(self, role: Role) -> Role:
        conn = self._get_conn()
        try:
            if role.is_default:
                conn.execute(
                    "UPDATE user_roles SET is_default = 0 WHERE id != ?", (str(role.id),)
                )
            conn.execute(
                """
                INSERT INTO user_roles (
                    id, name, description, is_default, is_admin, permissions,
                    created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name=excluded.name,
                    description=excluded.description,
                    is_default=excluded.is_default,
                    is_admin=excluded.is_admin,
                    permissions=excluded.permissions,
                    updated_at=excluded.updated_at
                """,
                (
                    str(role.id),
                    role.name,
                    role.description,
                    int(role.is_default),
                    int(role.is_admin),
                    json.dumps(role.permissions),
                    to_iso(role.created_at),
                    to_iso(role.updated_at),
                ),
            )
            if self._should_close():
                conn.commit()
            return role
        except Exception:
            if self._should_close():
                conn.rollback()
            raise
        finally:
            if self._should_close():
                conn.close()

    def get_by_id(self, role_id: UUID) -> Role | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM user_roles WHERE id = ?", (str(role_id),)).fetchone()
            return self._map_row(row) if row else None
        finally:
            if self._should_close():
                conn.close()

    def get_by_name(self, name: str) -> Role | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM user_roles WHERE name = ? COLLATE NOCASE", (name,)
            ).fetchone()
            return self._map_row(row) if row else None
        finally:
            if self._should_close():
                conn.close()

    def get_default(self) -> Role | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM user_roles WHERE is_default = 1 LIMIT 1").fetchone()
            return self._map_row(row) if row else None
        finally:
            if self._should_close():
                conn.close()

    def list_all(self) -> list[Role]:
        conn = self._get_conn()
        try:
            rows = conn.execute("SELECT * FROM user_roles ORDER BY name").fetchall()
            return [self._map_row(row) for row in rows]
        finally:
            if self._should_close():
                conn.close()

    def count_members(self, role_id: UUID) -> int:
        """Accounts explicitly assigned to the role."""
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT COUNT(*) AS n FROM app_users WHERE role_id = ?", (str(role_id),)
            ).fetchone()
            return int(row["n"])
        finally:
            if self._should_close():
                conn.close()

    def delete(self, role_id: UUID) -> bool:
        conn = self._get_conn()
        try:
            cursor = conn.execute("DELETE FROM user_roles WHERE id = ?", (str(role_id),))
            if self._should_close():
                conn.commit()
            return cursor.rowcount > 0
        finally:
            if self._should_close():
                conn.close()

    def _map_row(self, row: dict[str, Any]) -> Role:
        return Role(
            id=UUID(row["id"]),
            name=row["name"],
            description=row["description"],
            is_default=bool(row["is_default"]),
            is_admin=bool(row["is_admin"]),
            permissions=json.loads(row["permissions"] or "{}"),
            created_at=parse_dt(row["created_at"]) or datetime.min.replace(tzinfo=UTC),
            updated_at=parse_dt(row["updated_at"]) or datetime.min.replace(tzinfo=UTC),
        )


# -----------------------------------------------------------------------------
# Activity log
# -----------------------------------------------------------------------------


class SQLiteActivityRepo(SQLiteRepoBase):
    """Append-only activity log storage."""

    def save(self, entry: ActivityEntry) -> ActivityEntry:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO activity_logs (
                    id, type, message, timestamp, username, user_id,
                    invite_code, created_by, metadata
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(entry.id),
                    entry.type,
                    entry.message,
                    to_iso(entry.timestamp),
                    entry.username,
                    str(entry.user_id) if entry.user_id else None,
                    entry.invite_code,
                    entry.created_by,
                    json.dumps(entry.metadata),
                ),
            )
            if self._should_close():
                conn.commit()
            return entry
        finally:
            if self._should_close():
                conn.close()

    def get_by_id(self, entry_id: UUID) -> ActivityEntry | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM activity_logs WHERE id = ?", (str(entry_id),)
            ).fetchone()
            return self._map_row(row) if row else None
        finally:
            if self._should_close():
                conn.close()

    def query(
        self,
        filters: dict[str, Any],
        limit: int = 100,
        offset: int = 0,
    ) -> tuple[list[ActivityEntry], int]:
        """Return one page of matching entries (newest first) and the total count."""
        where, params = self._build_where(filters)
        conn = self._get_conn()
        try:
            total_row = conn.execute(
                f"SELECT COUNT(*) AS n FROM activity_logs{where}", params
            ).fetchone()
            rows = conn.execute(
                f"SELECT * FROM activity_logs{where} ORDER BY timestamp DESC LIMIT ? OFFSET ?",
                [*params, limit, offset],
            ).fetchall()
            return [self._map_row(row) for row in rows], int(total_row["n"])
        finally:
            if self._should_close():
                conn.close()

    def _build_where(self, filters: dict[str, Any]) -> tuple[str, list[Any]]:
        clauses: list[str] = []
        params: list[Any] = []
        for column in ("type", "username", "invite_code", "created_by"):
            value = filters.get(column)
            if value:
                clauses.append(f"{column} = ?")
                params.append(value)
        if filters.get("user_id"):
            clauses.append("user_id = ?")
            params.append(str(filters["user_id"]))
        if filters.get("start_time"):
            clauses.append("timestamp >= ?")
            params.append(to_iso(filters["start_time"]))
        if filters.get("end_time"):
            clauses.append("timestamp <= ?")
            params.append(to_iso(filters["end_time"]))
        if not clauses:
            return "", params
        return " WHERE " + " AND ".join(clauses), params

    def _map_row(self, row: dict[str, Any]) -> ActivityEntry:
        return ActivityEntry(
            id=UUID(row["id"]),
            type=row["type"],
            message=row["message"],
            timestamp=parse_dt(row["timestamp"]) or datetime.min.replace(tzinfo=UTC),
            username=row["username"],
            user_id=parse_uuid(row["user_id"]),
            invite_code=row["invite_code"],
            created_by=row["created_by"],
            metadata=json.loads(row["metadata"] or "{}"),
        )


# -----------------------------------------------------------------------------
# Jellyfin connection
# -----------------------------------------------------------------------------


class SQLiteJellyfinConnectionRepo(SQLiteRepoBase):
    """Stores the single active media server connection."""

    def get(self) -> JellyfinConnection | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM jellyfin_connection WHERE id = 1").fetchone()
            if not row:
                return None
            return JellyfinConnection(
                url=row["url"],
                access_token=row["access_token"],
                server_user_id=row["server_user_id"],
                server_username=row["server_username"],
                connected_at=parse_dt(row["connected_at"]) or datetime.min.replace(tzinfo=UTC),
            )
        finally:
            if self._should_close():
                conn.close()

    def save(self, connection: JellyfinConnection) -> JellyfinConnection:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO jellyfin_connection (
                    id, url, access_token, server_user_id, server_username, connected_at
                ) VALUES (1, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    url=excluded.url,
                    access_token=excluded.access_token,
                    server_user_id=excluded.server_user_id,
                    server_username=excluded.server_username,
                    connected_at=excluded.connected_at
                """,
                (
                    connection.url,
                    connection.access_token,
                    connection.server_user_id,
                    connection.server_username,
                    to_iso(connection.connected_at),
                ),
            )
            if self._should_close():
                conn.commit()
            return connection
        finally:
            if self._should_close():
                conn.close()

    def clear(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM jellyfin_connection")
            if self._should_close():
                conn.commit()
        finally:
            if self._should_close():
                conn.close()
