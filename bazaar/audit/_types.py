"""
Audit types.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any

from bazaar.identity import Actor


class Severity(StrEnum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True, slots=True)
class RequestContext:
    """Where an action came from, for the audit trail."""

    ip_address: str | None = None
    user_agent: str | None = None


@dataclass(frozen=True, slots=True)
class AuditEntry:
    """
    One authorization-sensitive event.

    details / previous_value / new_value must be JSON-serializable.
    """

    action: str
    category: str
    target_id: str | None = None
    target_type: str | None = None
    target_name: str | None = None
    actor: Actor | None = None
    details: Any = None
    previous_value: Any = None
    new_value: Any = None
    severity: Severity = Severity.INFO
    context: RequestContext = RequestContext()


@dataclass(frozen=True, slots=True)
class AuditRecord:
    """A stored entry."""

    id: str
    action: str
    category: str
    actor_id: str | None
    actor_role: str | None
    target_id: str | None
    target_type: str | None
    details: Any
    previous_value: Any
    new_value: Any
    severity: Severity
    created_at: datetime


__all__ = ("Severity", "RequestContext", "AuditEntry", "AuditRecord")
