"""Local email/password authentication provider."""

from __future__ import annotations

import logging
import re
import sqlite3
import time
import uuid
from pathlib import Path
from typing import Awaitable, Callable

from passlib.context import CryptContext

from .config import BCRYPT_ROUNDS, LOGIN_LOCKOUT_SECONDS, LOGIN_MAX_FAILURES, MIN_PASSWORD_LENGTH

logger = logging.getLogger(__name__)

IdentityListener = Callable[["str | None"], Awaitable[None]]

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=BCRYPT_ROUNDS)


class ProviderError(Exception):
    """A failure reported by the provider, identified by a stable code."""

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(f"{code}: {message}")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return pwd_context.verify(password, hashed)


class LocalAuthProvider:
    """SQLite-backed accounts with a persisted signed-in identity.

    The signed-in identity survives process restarts, the way a hosted
    provider keeps its own session. Listeners are awaited on every sign-in
    and sign-out, in registration order.
    """

    def __init__(
        self,
        db_path: Path,
        id_factory: Callable[[], str] | None = None,
        clock: Callable[[], float] = time.time,
    ):
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(str(db_path))
        self.conn.row_factory = sqlite3.Row
        self._migrate()
        self._id_factory = id_factory or (lambda: uuid.uuid4().hex)
        self._clock = clock
        self._listeners: list[IdentityListener] = []

    def _migrate(self):
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS accounts (
                uid TEXT PRIMARY KEY,
                email TEXT NOT NULL UNIQUE,
                password_hash TEXT NOT NULL,
                disabled INTEGER NOT NULL DEFAULT 0,
                failed_attempts INTEGER NOT NULL DEFAULT 0,
                locked_until REAL,
                created_at REAL NOT NULL
            );

            CREATE TABLE IF NOT EXISTS auth_state (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                uid TEXT
            );
        """)
        self.conn.commit()

    def current_user_id(self) -> str | None:
        row = self.conn.execute("SELECT uid FROM auth_state WHERE id = 1").fetchone()
        return row["uid"] if row else None

    def add_identity_listener(self, listener: IdentityListener) -> Callable[[], None]:
        """Register a coroutine called with the new identity (or None).

        Returns a callable that removes the listener.
        """
        self._listeners.append(listener)

        def remove():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    async def _set_current(self, uid: str | None):
        try:
            self.conn.execute(
                "INSERT INTO auth_state (id, uid) VALUES (1, ?) "
                "ON CONFLICT(id) DO UPDATE SET uid = excluded.uid",
                (uid,),
            )
            self.conn.commit()
        except sqlite3.Error as exc:
            raise ProviderError("internal-error", f"Could not save auth state: {exc}") from exc
        for listener in list(self._listeners):
            await listener(uid)

    async def create_account(self, email: str, password: str) -> str:
        email = email.strip().lower()
        if not _EMAIL_RE.match(email):
            raise ProviderError("invalid-email", f"Badly formatted email: {email}")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ProviderError(
                "weak-password",
                f"Password should be at least {MIN_PASSWORD_LENGTH} characters",
            )

        uid = self._id_factory()
        try:
            self.conn.execute(
                """INSERT INTO accounts (uid, email, password_hash, created_at)
                   VALUES (?, ?, ?, ?)""",
                (uid, email, hash_password(password), self._clock()),
            )
            self.conn.commit()
        except sqlite3.IntegrityError:
            raise ProviderError(
                "email-already-in-use", "The email address is already in use"
            ) from None

        logger.info("Account created: %s", uid)
        await self._set_current(uid)
        return uid

    async def authenticate(self, email: str, password: str) -> str:
        email = email.strip().lower()
        if not _EMAIL_RE.match(email):
            raise ProviderError("invalid-email", f"Badly formatted email: {email}")

        row = self.conn.execute("SELECT * FROM accounts WHERE email = ?", (email,)).fetchone()
        if row is None:
            raise ProviderError("user-not-found", "No account for this email")
        if row["disabled"]:
            raise ProviderError("user-disabled", "This account has been disabled")

        now = self._clock()
        if row["locked_until"] is not None and row["locked_until"] > now:
            raise ProviderError("too-many-requests", "Too many failed attempts")

        if not verify_password(password, row["password_hash"]):
            failures = row["failed_attempts"] + 1
            locked_until = None
            if failures >= LOGIN_MAX_FAILURES:
                locked_until = now + LOGIN_LOCKOUT_SECONDS
                failures = 0
                logger.warning("Account %s locked after repeated failures", row["uid"])
            self.conn.execute(
                "UPDATE accounts SET failed_attempts = ?, locked_until = ? WHERE uid = ?",
                (failures, locked_until, row["uid"]),
            )
            self.conn.commit()
            raise ProviderError("wrong-password", "The password is invalid")

        self.conn.execute(
            "UPDATE accounts SET failed_attempts = 0, locked_until = NULL WHERE uid = ?",
            (row["uid"],),
        )
        self.conn.commit()
        await self._set_current(row["uid"])
        return row["uid"]

    async def sign_out(self):
        await self._set_current(None)

    def disable_account(self, email: str) -> bool:
        cur = self.conn.execute(
            "UPDATE accounts SET disabled = 1 WHERE email = ?", (email.strip().lower(),)
        )
        self.conn.commit()
        return cur.rowcount > 0

    def close(self):
        self._listeners.clear()
        self.conn.close()
