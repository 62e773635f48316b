"""Database module for AutoFlow session state and namespace persistence."""

from src.db.connection import (
    SessionLocal,
    close_db,
    engine,
    init_db,
)
from src.db.models import (
    AutomationSession,
    Base,
    EventType,
    LogLevel,
    NamespaceSlot,
    SessionAuditEvent,
)

__all__ = [
    # Models
    "Base",
    "AutomationSession",
    "SessionAuditEvent",
    "NamespaceSlot",
    # Enums
    "LogLevel",
    "EventType",
    # Connection
    "engine",
    "SessionLocal",
    "init_db",
    "close_db",
]
