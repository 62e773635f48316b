"""Service layer for AutoFlow.

Provides namespace allocation and audit logging. The deployment manager,
engine client and session stores live in their own modules and are
imported from there.
"""

from src.services.audit_service import (
    AuditService,
    EventType,
    LogLevel,
    redact_sensitive,
)
from src.services.namespace_allocator import (
    InMemoryNamespaceStore,
    NamespaceAllocator,
    SqlNamespaceStore,
)

__all__ = [
    "NamespaceAllocator",
    "InMemoryNamespaceStore",
    "SqlNamespaceStore",
    "AuditService",
    "redact_sensitive",
    "LogLevel",
    "EventType",
]
