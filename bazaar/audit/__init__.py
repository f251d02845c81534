"""
Audit — trail of authorization-sensitive actions.

    await audit.emit(AuditEntry(
        action="ORDER_CANCELLED",
        category="order",
        target_id=order.id,
        target_type="order",
        actor=admin,
        details={"restoredItems": 2},
    ))
"""

from bazaar.audit._types import Severity, RequestContext, AuditEntry, AuditRecord
from bazaar.audit._log import AuditLog

__all__ = (
    "Severity",
    "RequestContext",
    "AuditEntry",
    "AuditRecord",
    "AuditLog",
)
