"""Tests for namespace slot assignment."""

import threading

import pytest

from src.errors import CapacityError
from src.orchestrator.models import NamespaceAssignment
from src.services.namespace_allocator import (
    InMemoryNamespaceStore,
    NamespaceAllocator,
    SqlNamespaceStore,
)


@pytest.fixture(params=["memory", "sql"])
def store(request):
    """Each allocator test runs against both stores."""
    if request.param == "memory":
        return InMemoryNamespaceStore()
    return SqlNamespaceStore(request.getfixturevalue("session_factory"))


@pytest.fixture
def allocator(store) -> NamespaceAllocator:
    return NamespaceAllocator(store)


# ============================================================================
# Assignment
# ============================================================================


class TestAssign:
    """Tests for claiming slots."""

    def test_first_tenant_gets_first_slot(self, allocator):
        """Slots are scanned in (bucket, slot) order."""
        assignment = allocator.assign("tenant-a")
        assert (assignment.bucket_id, assignment.slot_id) == (1, 1)
        assert assignment.prefix == "FOLDER-P01-U1"

    def test_scan_order_crosses_buckets(self, allocator):
        """The sixth tenant lands in the second bucket."""
        prefixes = [allocator.assign(f"t{i}").prefix for i in range(6)]
        assert prefixes[4] == "FOLDER-P01-U5"
        assert prefixes[5] == "FOLDER-P02-U1"

    def test_idempotent(self, allocator):
        """Repeated assigns return the same slot and claim nothing new."""
        first = allocator.assign("tenant-a")
        second = allocator.assign("tenant-a")
        assert first == second
        assert allocator.stats().assigned == 1

    def test_distinct_tenants_get_distinct_slots(self, allocator):
        """No two tenants share a slot."""
        assignments = [allocator.assign(f"t{i}") for i in range(20)]
        assert len({(a.bucket_id, a.slot_id) for a in assignments}) == 20

    def test_capacity_exhausted(self, allocator):
        """The 51st tenant is refused and existing assignments are untouched."""
        before = {f"t{i}": allocator.assign(f"t{i}") for i in range(50)}

        with pytest.raises(CapacityError) as exc_info:
            allocator.assign("t50")
        assert exc_info.value.code == "E-5001"
        assert exc_info.value.total_slots == 50

        for tenant_id, assignment in before.items():
            assert allocator.get(tenant_id) == assignment
        assert allocator.get("t50") is None

    def test_small_pool(self, store):
        """Pool size is configurable."""
        allocator = NamespaceAllocator(store, buckets=1, slots_per_bucket=2)
        allocator.assign("a")
        allocator.assign("b")
        with pytest.raises(CapacityError):
            allocator.assign("c")


# ============================================================================
# Release and stats
# ============================================================================


class TestRelease:
    """Tests for returning slots to the pool."""

    def test_release_frees_slot_for_reuse(self, allocator):
        """A released slot is the next one handed out."""
        allocator.assign("a")
        allocator.assign("b")
        allocator.release("a")
        assert allocator.get("a") is None
        assert allocator.assign("c").prefix == "FOLDER-P01-U1"

    def test_release_unknown_tenant(self, allocator):
        """Releasing without an assignment is a no-op."""
        allocator.release("nobody")
        assert allocator.stats().assigned == 0

    def test_stats(self, allocator):
        """Stats report totals and utilisation."""
        for i in range(5):
            allocator.assign(f"t{i}")
        stats = allocator.stats()
        assert stats.total_slots == 50
        assert stats.assigned == 5
        assert stats.available == 45
        assert stats.utilization_percent == 10.0


def test_reseeding_keeps_assignments(session_factory):
    """A second allocator on the same database sees earlier assignments."""
    first = NamespaceAllocator(SqlNamespaceStore(session_factory))
    assignment = first.assign("tenant-a")

    second = NamespaceAllocator(SqlNamespaceStore(session_factory))
    assert second.get("tenant-a") == assignment
    assert second.stats().total_slots == 50


# ============================================================================
# Concurrency
# ============================================================================


class _RacingStore(InMemoryNamespaceStore):
    """Store where another tenant takes the first slot just before each claim."""

    def __init__(self) -> None:
        super().__init__()
        self.stolen = False

    def upsert_assignment(self, assignment: NamespaceAssignment) -> bool:
        if not self.stolen:
            self.stolen = True
            super().upsert_assignment(
                assignment.model_copy(update={"tenant_id": "rival"})
            )
        return super().upsert_assignment(assignment)


def test_lost_race_moves_to_next_slot():
    """Losing the compare-and-set on one slot falls through to the next."""
    allocator = NamespaceAllocator(_RacingStore())
    assignment = allocator.assign("tenant-a")
    assert assignment.prefix == "FOLDER-P01-U2"
    assert allocator.get("rival").prefix == "FOLDER-P01-U1"


def test_concurrent_assigns_never_share_a_slot():
    """Threads assigning distinct tenants get distinct slots."""
    allocator = NamespaceAllocator(InMemoryNamespaceStore())
    results: dict[str, NamespaceAssignment] = {}
    barrier = threading.Barrier(25)

    def worker(tenant_id: str) -> None:
        barrier.wait()
        results[tenant_id] = allocator.assign(tenant_id)

    threads = [threading.Thread(target=worker, args=(f"t{i}",)) for i in range(25)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(results) == 25
    assert len({(a.bucket_id, a.slot_id) for a in results.values()}) == 25
