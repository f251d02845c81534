"""
User store — accounts and the vendor verification record.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from kungfu import Error, Ok, Result
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bazaar._types import new_id, utcnow
from bazaar.db import SessionTable, UserTable
from bazaar.errors import Errors, MarketError
from bazaar.identity._types import (
    Role,
    User,
    UserStatus,
    VerificationRecord,
    VerificationStatus,
)

# Columns a caller may change through update().
UPDATABLE = frozenset({
    "name",
    "phone",
    "status",
    "is_deleted",
    "business_name",
    "store_status",
    "verification_status",
    "verification_notes",
    "verified_at",
    "verified_by",
    "kyc_job_id",
})


def user_from_row(row: UserTable) -> User:
    verification = None
    if row.verification_status is not None:
        verification = VerificationRecord(
            status=VerificationStatus(row.verification_status),
            notes=row.verification_notes,
            verified_at=row.verified_at,
            verified_by=row.verified_by,
            kyc_job_id=row.kyc_job_id,
        )
    return User(
        id=row.id,
        email=row.email,
        name=row.name,
        role=Role(row.role),
        status=UserStatus(row.status),
        is_deleted=row.is_deleted,
        business_name=row.business_name,
        store_status=row.store_status,
        verification=verification,
    )


class UserStore:
    """
    Accounts backed by the users table.

    Vendors start with verification status `pending` and an inactive store.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create(
        self,
        email: str,
        name: str,
        role: Role = Role.BUYER,
        *,
        business_name: str | None = None,
        phone: str | None = None,
    ) -> Result[User, MarketError]:
        now = utcnow()
        is_vendor = role == Role.VENDOR
        row = UserTable(
            id=new_id("user", 8),
            email=email.strip().lower(),
            name=name.strip(),
            role=role.value,
            status=UserStatus.ACTIVE.value,
            is_deleted=False,
            phone=phone,
            business_name=business_name if is_vendor else None,
            store_status="pending" if is_vendor else None,
            verification_status=VerificationStatus.PENDING.value if is_vendor else None,
            created_at=now,
            updated_at=now,
        )
        try:
            async with self._session_factory() as session, session.begin():
                session.add(row)
            return Ok(user_from_row(row))
        except Exception as e:
            return Error(Errors.store(f"Failed to create user: {e}", e))

    async def get(self, user_id: str) -> Result[User | None, MarketError]:
        try:
            async with self._session_factory() as session:
                row = await session.get(UserTable, user_id)
                return Ok(user_from_row(row) if row is not None else None)
        except Exception as e:
            return Error(Errors.store(f"Failed to get user: {e}", e))

    async def update(
        self,
        user_id: str,
        changes: Mapping[str, Any],
    ) -> Result[User | None, MarketError]:
        """Apply column changes. Ok(None) when the user does not exist."""
        unknown = set(changes) - UPDATABLE
        if unknown:
            return Error(Errors.validation("INVALID_FIELD", f"Cannot update: {', '.join(sorted(unknown))}"))
        try:
            async with self._session_factory() as session, session.begin():
                row = await session.get(UserTable, user_id)
                if row is None:
                    return Ok(None)
                for column, value in changes.items():
                    setattr(row, column, value)
                row.updated_at = utcnow()
            return Ok(user_from_row(row))
        except Exception as e:
            return Error(Errors.store(f"Failed to update user: {e}", e))

    async def delete(self, user_id: str) -> Result[bool, MarketError]:
        """Remove the account and its sessions. Ok(True) if it existed."""
        try:
            async with self._session_factory() as session, session.begin():
                await session.execute(delete(SessionTable).where(SessionTable.user_id == user_id))
                result = await session.execute(delete(UserTable).where(UserTable.id == user_id))
                return Ok(result.rowcount > 0)
        except Exception as e:
            return Error(Errors.store(f"Failed to delete user: {e}", e))


__all__ = ("UPDATABLE", "UserStore", "user_from_row")
