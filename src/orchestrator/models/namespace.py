"""Namespace assignment models."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class SlotStatus(str, Enum):
    """Status of one (bucket, slot) pair in the pool."""

    AVAILABLE = "available"
    ASSIGNED = "assigned"


def format_prefix(bucket_id: int, slot_id: int) -> str:
    """Return the naming prefix for a slot, e.g. ``FOLDER-P03-U2``."""
    return f"FOLDER-P{bucket_id:02d}-U{slot_id}"


class NamespaceAssignment(BaseModel):
    """A tenant's slot in the shared engine.

    Attributes:
        tenant_id: Tenant holding the slot
        bucket_id: 1-based bucket number
        slot_id: 1-based slot number within the bucket
        prefix: Name prefix applied to every artifact the tenant creates
    """

    model_config = ConfigDict(frozen=True, from_attributes=True)

    tenant_id: str
    bucket_id: int = Field(..., ge=1)
    slot_id: int = Field(..., ge=1)
    prefix: str


class NamespaceStats(BaseModel):
    """Pool utilisation snapshot."""

    total_slots: int
    assigned: int
    available: int
    utilization_percent: float
