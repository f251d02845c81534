"""
Session store — the session validator behind every authorized call.

Tokens are 32 random bytes, hex-encoded, handed to the client once.
Only their SHA-256 digest is persisted.
"""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from kungfu import Error, Ok, Result
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bazaar._types import new_id, utcnow
from bazaar.db import SessionTable, UserTable
from bazaar.errors import Errors, MarketError
from bazaar.identity._types import Actor, Role, UserStatus

# Accounts in these states cannot hold a live session.
LOCKED_OUT = frozenset({UserStatus.BANNED.value, UserStatus.DELETED.value})


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


@dataclass(frozen=True, slots=True)
class IssuedSession:
    """A freshly minted session. `token` is never stored."""

    token: str
    user_id: str
    expires_at: datetime


class SessionStore:
    """
    Issue, validate and revoke sessions.

    Example:
        issued = (await sessions.create(user.id)).unwrap()
        actor = (await sessions.validate(issued.token)).unwrap()
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        ttl: timedelta = timedelta(days=7),
    ) -> None:
        self._session_factory = session_factory
        self._ttl = ttl

    async def create(self, user_id: str) -> Result[IssuedSession, MarketError]:
        token = secrets.token_hex(32)
        now = utcnow()
        expires_at = now + self._ttl
        try:
            async with self._session_factory() as session, session.begin():
                session.add(SessionTable(
                    id=new_id("sess", 8),
                    user_id=user_id,
                    token_hash=hash_token(token),
                    expires_at=expires_at,
                    created_at=now,
                ))
            return Ok(IssuedSession(token=token, user_id=user_id, expires_at=expires_at))
        except Exception as e:
            return Error(Errors.store(f"Failed to create session: {e}", e))

    async def validate(self, token: str) -> Result[Actor | None, MarketError]:
        """Ok(None) for unknown, expired, or locked-out sessions."""
        if not token:
            return Ok(None)
        try:
            async with self._session_factory() as session:
                stmt = (
                    select(UserTable)
                    .join(SessionTable, SessionTable.user_id == UserTable.id)
                    .where(
                        SessionTable.token_hash == hash_token(token),
                        SessionTable.expires_at > utcnow(),
                    )
                )
                row = (await session.execute(stmt)).scalar_one_or_none()
                if row is None or row.is_deleted or row.status in LOCKED_OUT:
                    return Ok(None)
                return Ok(Actor(user_id=row.id, role=Role(row.role), name=row.name, email=row.email))
        except Exception as e:
            return Error(Errors.store(f"Failed to validate session: {e}", e))

    async def revoke(self, token: str) -> Result[bool, MarketError]:
        try:
            async with self._session_factory() as session, session.begin():
                result = await session.execute(
                    delete(SessionTable).where(SessionTable.token_hash == hash_token(token))
                )
                return Ok(result.rowcount > 0)
        except Exception as e:
            return Error(Errors.store(f"Failed to revoke session: {e}", e))

    async def revoke_all(self, user_id: str) -> Result[int, MarketError]:
        try:
            async with self._session_factory() as session, session.begin():
                result = await session.execute(delete(SessionTable).where(SessionTable.user_id == user_id))
                return Ok(result.rowcount)
        except Exception as e:
            return Error(Errors.store(f"Failed to revoke sessions: {e}", e))


__all__ = ("IssuedSession", "SessionStore", "hash_token")
