"""Namespace allocator for the shared automation engine.

Tenants share one engine, so every artifact is named with a per-tenant
prefix taken from a fixed pool of buckets x slots. Assignment is idempotent
and scans slots in (bucket, slot) order. Claiming a slot is a compare-and-set
on its status, so concurrent assigns for different tenants never receive the
same slot.

Two stores are provided:
- InMemoryNamespaceStore: process-local, guarded by a lock
- SqlNamespaceStore: SQLAlchemy, conditional UPDATE on the slot row
"""

import logging
import threading
from typing import Callable, Optional, Protocol

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.db.models import NamespaceSlot, utc_now_iso
from src.errors import CapacityError
from src.orchestrator.models.namespace import (
    NamespaceAssignment,
    NamespaceStats,
    SlotStatus,
    format_prefix,
)

logger = logging.getLogger(__name__)

DEFAULT_BUCKETS = 10
DEFAULT_SLOTS_PER_BUCKET = 5


class NamespaceStore(Protocol):
    """Persistence for the slot pool."""

    def seed(self, buckets: int, slots: int) -> None:
        """Create any missing slots for the pool size. Idempotent."""
        ...

    def get_assignment(self, tenant_id: str) -> Optional[NamespaceAssignment]:
        """Return the tenant's assignment, or None."""
        ...

    def list_available_slots(self) -> list[tuple[int, int]]:
        """Return available (bucket, slot) pairs in ascending order."""
        ...

    def upsert_assignment(self, assignment: NamespaceAssignment) -> bool:
        """Claim the assignment's slot if it is still available.

        Returns:
            True if this call claimed the slot.
        """
        ...

    def release(self, tenant_id: str) -> Optional[NamespaceAssignment]:
        """Free the tenant's slot. Returns the released assignment, if any."""
        ...

    def slot_counts(self) -> tuple[int, int]:
        """Return (total slots, assigned slots)."""
        ...


class InMemoryNamespaceStore:
    """Process-local NamespaceStore guarded by a lock."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._slots: dict[tuple[int, int], Optional[str]] = {}

    def seed(self, buckets: int, slots: int) -> None:
        with self._lock:
            for bucket_id in range(1, buckets + 1):
                for slot_id in range(1, slots + 1):
                    self._slots.setdefault((bucket_id, slot_id), None)

    def get_assignment(self, tenant_id: str) -> Optional[NamespaceAssignment]:
        with self._lock:
            for (bucket_id, slot_id), holder in self._slots.items():
                if holder == tenant_id:
                    return _assignment(tenant_id, bucket_id, slot_id)
        return None

    def list_available_slots(self) -> list[tuple[int, int]]:
        with self._lock:
            return sorted(key for key, holder in self._slots.items() if holder is None)

    def upsert_assignment(self, assignment: NamespaceAssignment) -> bool:
        key = (assignment.bucket_id, assignment.slot_id)
        with self._lock:
            if key not in self._slots or self._slots[key] is not None:
                return False
            if assignment.tenant_id in self._slots.values():
                return False
            self._slots[key] = assignment.tenant_id
            return True

    def release(self, tenant_id: str) -> Optional[NamespaceAssignment]:
        with self._lock:
            for (bucket_id, slot_id), holder in self._slots.items():
                if holder == tenant_id:
                    self._slots[(bucket_id, slot_id)] = None
                    return _assignment(tenant_id, bucket_id, slot_id)
        return None

    def slot_counts(self) -> tuple[int, int]:
        with self._lock:
            assigned = sum(1 for holder in self._slots.values() if holder is not None)
            return len(self._slots), assigned


class SqlNamespaceStore:
    """NamespaceStore on the namespace_slots table.

    Attributes:
        session_factory: Callable returning a new SQLAlchemy Session.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self.session_factory = session_factory

    def seed(self, buckets: int, slots: int) -> None:
        with self.session_factory() as db:
            existing = {
                (row.bucket_id, row.slot_id)
                for row in db.execute(
                    select(NamespaceSlot.bucket_id, NamespaceSlot.slot_id)
                )
            }
            for bucket_id in range(1, buckets + 1):
                for slot_id in range(1, slots + 1):
                    if (bucket_id, slot_id) in existing:
                        continue
                    db.add(
                        NamespaceSlot(
                            bucket_id=bucket_id,
                            slot_id=slot_id,
                            prefix=format_prefix(bucket_id, slot_id),
                            status=SlotStatus.AVAILABLE.value,
                        )
                    )
            db.commit()

    def get_assignment(self, tenant_id: str) -> Optional[NamespaceAssignment]:
        with self.session_factory() as db:
            row = db.execute(
                select(NamespaceSlot).where(
                    NamespaceSlot.tenant_id == tenant_id,
                    NamespaceSlot.status == SlotStatus.ASSIGNED.value,
                )
            ).scalar_one_or_none()
            if row is None:
                return None
            return _assignment(tenant_id, row.bucket_id, row.slot_id)

    def list_available_slots(self) -> list[tuple[int, int]]:
        with self.session_factory() as db:
            rows = db.execute(
                select(NamespaceSlot.bucket_id, NamespaceSlot.slot_id)
                .where(NamespaceSlot.status == SlotStatus.AVAILABLE.value)
                .order_by(NamespaceSlot.bucket_id, NamespaceSlot.slot_id)
            ).all()
            return [(row.bucket_id, row.slot_id) for row in rows]

    def upsert_assignment(self, assignment: NamespaceAssignment) -> bool:
        with self.session_factory() as db:
            try:
                result = db.execute(
                    update(NamespaceSlot)
                    .where(
                        NamespaceSlot.bucket_id == assignment.bucket_id,
                        NamespaceSlot.slot_id == assignment.slot_id,
                        NamespaceSlot.status == SlotStatus.AVAILABLE.value,
                    )
                    .values(
                        status=SlotStatus.ASSIGNED.value,
                        tenant_id=assignment.tenant_id,
                        assigned_at=utc_now_iso(),
                    )
                )
                db.commit()
            except IntegrityError:
                # Tenant already holds another slot (unique tenant index).
                db.rollback()
                return False
            return result.rowcount == 1

    def release(self, tenant_id: str) -> Optional[NamespaceAssignment]:
        existing = self.get_assignment(tenant_id)
        if existing is None:
            return None
        with self.session_factory() as db:
            db.execute(
                update(NamespaceSlot)
                .where(NamespaceSlot.tenant_id == tenant_id)
                .values(
                    status=SlotStatus.AVAILABLE.value,
                    tenant_id=None,
                    assigned_at=None,
                )
            )
            db.commit()
        return existing

    def slot_counts(self) -> tuple[int, int]:
        with self.session_factory() as db:
            total = db.execute(select(func.count(NamespaceSlot.id))).scalar_one()
            assigned = db.execute(
                select(func.count(NamespaceSlot.id)).where(
                    NamespaceSlot.status == SlotStatus.ASSIGNED.value
                )
            ).scalar_one()
            return int(total), int(assigned)


def _assignment(tenant_id: str, bucket_id: int, slot_id: int) -> NamespaceAssignment:
    return NamespaceAssignment(
        tenant_id=tenant_id,
        bucket_id=bucket_id,
        slot_id=slot_id,
        prefix=format_prefix(bucket_id, slot_id),
    )


class NamespaceAllocator:
    """Assigns tenants to slots in a fixed buckets x slots pool.

    Attributes:
        store: Slot persistence.
        buckets: Number of buckets in the pool.
        slots_per_bucket: Slots in each bucket.
    """

    def __init__(
        self,
        store: NamespaceStore,
        buckets: int = DEFAULT_BUCKETS,
        slots_per_bucket: int = DEFAULT_SLOTS_PER_BUCKET,
    ) -> None:
        self.store = store
        self.buckets = buckets
        self.slots_per_bucket = slots_per_bucket
        self.store.seed(buckets, slots_per_bucket)

    @property
    def total_slots(self) -> int:
        """Configured pool size."""
        return self.buckets * self.slots_per_bucket

    def assign(self, tenant_id: str) -> NamespaceAssignment:
        """Return the tenant's assignment, claiming a slot if needed.

        Args:
            tenant_id: Tenant to assign.

        Returns:
            The tenant's NamespaceAssignment; identical on repeated calls.

        Raises:
            CapacityError: If every slot is held by another tenant.
        """
        existing = self.store.get_assignment(tenant_id)
        if existing is not None:
            return existing

        for bucket_id, slot_id in self.store.list_available_slots():
            candidate = _assignment(tenant_id, bucket_id, slot_id)
            if self.store.upsert_assignment(candidate):
                logger.info(
                    "Assigned tenant %s to namespace %s", tenant_id, candidate.prefix
                )
                return candidate
            # Lost the race for this slot, or the tenant was assigned
            # concurrently; prefer the latter.
            existing = self.store.get_assignment(tenant_id)
            if existing is not None:
                return existing

        logger.warning(
            "Namespace pool exhausted (%d slots); tenant %s not assigned",
            self.total_slots,
            tenant_id,
        )
        raise CapacityError(tenant_id, self.total_slots)

    def release(self, tenant_id: str) -> None:
        """Return the tenant's slot to the pool. No-op if unassigned."""
        released = self.store.release(tenant_id)
        if released is not None:
            logger.info("Released namespace %s from tenant %s", released.prefix, tenant_id)

    def get(self, tenant_id: str) -> Optional[NamespaceAssignment]:
        """Return the tenant's assignment without claiming a slot."""
        return self.store.get_assignment(tenant_id)

    def stats(self) -> NamespaceStats:
        """Return current pool utilisation."""
        total, assigned = self.store.slot_counts()
        utilization = round(assigned / total * 100, 1) if total else 0.0
        return NamespaceStats(
            total_slots=total,
            assigned=assigned,
            available=total - assigned,
            utilization_percent=utilization,
        )
