"""
Audit log — persisted trail of authorization-sensitive actions.

record() reports storage failures as Result; emit() is the fire-and-report
variant used by request handlers, where a failed audit write must not change
the outcome of the action it describes.
"""

from __future__ import annotations

import logging

from kungfu import Error, Ok, Result
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bazaar._types import new_id, utcnow
from bazaar.audit._types import AuditEntry, AuditRecord, Severity
from bazaar.db import AuditLogTable
from bazaar.errors import Errors, MarketError

log = logging.getLogger("bazaar.audit")


def _to_record(row: AuditLogTable) -> AuditRecord:
    return AuditRecord(
        id=row.id,
        action=row.action,
        category=row.category,
        actor_id=row.actor_id,
        actor_role=row.actor_role,
        target_id=row.target_id,
        target_type=row.target_type,
        details=row.details,
        previous_value=row.previous_value,
        new_value=row.new_value,
        severity=Severity(row.severity),
        created_at=row.created_at,
    )


class AuditLog:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def record(self, entry: AuditEntry) -> Result[str, MarketError]:
        actor = entry.actor
        row = AuditLogTable(
            id=new_id("log", 10),
            action=entry.action,
            category=entry.category,
            actor_id=actor.user_id if actor else None,
            actor_name=actor.name if actor else None,
            actor_email=actor.email if actor else None,
            actor_role=actor.role.value if actor else None,
            target_id=entry.target_id,
            target_type=entry.target_type,
            target_name=entry.target_name,
            details=entry.details,
            previous_value=entry.previous_value,
            new_value=entry.new_value,
            ip_address=entry.context.ip_address,
            user_agent=entry.context.user_agent,
            severity=entry.severity.value,
            created_at=utcnow(),
        )
        try:
            async with self._session_factory() as session, session.begin():
                session.add(row)
            return Ok(row.id)
        except Exception as e:
            return Error(Errors.store(f"Failed to write audit log: {e}", e))

    async def emit(self, entry: AuditEntry) -> None:
        match await self.record(entry):
            case Ok(log_id):
                log.info("audit %s target=%s id=%s", entry.action, entry.target_id, log_id)
            case Error(e):
                log.error("audit %s target=%s NOT recorded: %s", entry.action, entry.target_id, e.message)

    async def query(
        self,
        *,
        action: str | None = None,
        target_id: str | None = None,
        limit: int = 100,
    ) -> Result[list[AuditRecord], MarketError]:
        stmt = select(AuditLogTable).order_by(AuditLogTable.created_at.desc()).limit(limit)
        if action is not None:
            stmt = stmt.where(AuditLogTable.action == action)
        if target_id is not None:
            stmt = stmt.where(AuditLogTable.target_id == target_id)
        try:
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).scalars().all()
                return Ok([_to_record(r) for r in rows])
        except Exception as e:
            return Error(Errors.store(f"Failed to list audit log: {e}", e))


__all__ = ("AuditLog",)
