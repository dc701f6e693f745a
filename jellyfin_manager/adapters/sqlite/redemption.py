"""
SQLite unit of work for invite redemption.

A redemption takes the database write lock when it starts (``BEGIN
IMMEDIATE``), so redemptions are serialized by SQLite itself: the second
writer waits up to ``lock_timeout`` seconds and otherwise fails with a
ConcurrencyConflictError. Everything done through the unit commits or rolls
back together.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from uuid import UUID

from jellyfin_manager.adapters.sqlite.repos import (
    SQLiteActivityRepo,
    SQLiteInviteRepo,
    SQLiteProfileRepo,
    SQLiteUserRepo,
    dict_factory,
)
from jellyfin_manager.components.invite.ports import (
    ConcurrencyConflictError,
    DuplicateAccountError,
)
from jellyfin_manager.domain.entities import ActivityEntry, AppUser, Invite, Profile

logger = logging.getLogger(__name__)

_LOCK_MESSAGES = ("database is locked", "database is busy", "database table is locked")


def _is_lock_error(error: sqlite3.OperationalError) -> bool:
    message = str(error).lower()
    return any(m in message for m in _LOCK_MESSAGES)


class SQLiteRedemptionUnit:
    """Repository operations bound to one open transaction."""

    def __init__(self, db_path: str, conn: sqlite3.Connection):
        self._conn = conn
        self._invites = SQLiteInviteRepo(db_path, conn)
        self._users = SQLiteUserRepo(db_path, conn)
        self._profiles = SQLiteProfileRepo(db_path, conn)
        self._activity = SQLiteActivityRepo(db_path, conn)

    def get_invite_by_code(self, code: str) -> Invite | None:
        return self._invites.get_by_code(code)

    def consume_use(self, code: str, expected_used_count: int) -> bool:
        return self._invites.consume_use(code, expected_used_count)

    def username_exists(self, username: str) -> bool:
        return self._users.get_by_username(username) is not None

    def get_profile(self, profile_id: UUID) -> Profile | None:
        return self._profiles.get_by_id(profile_id)

    def create_account(self, user: AppUser) -> AppUser:
        try:
            return self._users.save(user)
        except sqlite3.IntegrityError as e:
            raise DuplicateAccountError(str(e)) from e

    def apply_profile(self, user_id: UUID, profile: Profile) -> None:
        self._conn.execute(
            "UPDATE app_users SET profile_id = ? WHERE id = ?",
            (str(profile.id), str(user_id)),
        )

    def record_activity(self, entry: ActivityEntry) -> None:
        self._activity.save(entry)


class SQLiteRedemptionStore:
    def __init__(self, db_path: str, lock_timeout: float = 5.0):
        self.db_path = db_path
        self.lock_timeout = lock_timeout

    def _connect(self) -> sqlite3.Connection:
        # Autocommit mode: transaction boundaries are issued explicitly below.
        conn = sqlite3.connect(self.db_path, timeout=self.lock_timeout, isolation_level=None)
        conn.row_factory = dict_factory
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    @contextmanager
    def transaction(self) -> Iterator[SQLiteRedemptionUnit]:
        conn = self._connect()
        try:
            try:
                conn.execute("BEGIN IMMEDIATE")
            except sqlite3.OperationalError as e:
                if _is_lock_error(e):
                    logger.debug("Redemption transaction could not take the write lock: %s", e)
                    raise ConcurrencyConflictError(str(e)) from e
                raise

            try:
                yield SQLiteRedemptionUnit(self.db_path, conn)
            except sqlite3.OperationalError as e:
                conn.execute("ROLLBACK")
                if _is_lock_error(e):
                    raise ConcurrencyConflictError(str(e)) from e
                raise
            except BaseException:
                conn.execute("ROLLBACK")
                raise

            try:
                conn.execute("COMMIT")
            except sqlite3.OperationalError as e:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                if _is_lock_error(e):
                    raise ConcurrencyConflictError(str(e)) from e
                raise
        finally:
            conn.close()
