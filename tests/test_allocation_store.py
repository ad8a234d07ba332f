"""Tests for AllocationStore commit semantics."""

import logging

import pytest

from allocation_engine.core.exceptions import RepositoryError
from allocation_engine.core.models import CorrelationRequest
from allocation_engine.core.types import CommitStatus
from allocation_engine.storage.allocation_store import AllocationStore
from allocation_engine.storage.memory import InMemoryRepository


def request(expense_id: str, line_item_id: str = "li-lumber") -> CorrelationRequest:
    return CorrelationRequest(expense_id=expense_id, line_item_id=line_item_id)


class FailingInsertRepository(InMemoryRepository):
    """Repository whose whole insert call fails."""

    async def insert_batch(self, records):
        raise RepositoryError(self.SOURCE, "connection reset")


class FailingPlannedRepository(InMemoryRepository):
    """Repository that stores correlations but cannot set the planned flag."""

    async def mark_planned(self, expense_ids):
        raise RepositoryError(self.SOURCE, "expenses table locked")


class OneBadPlannedRepository(InMemoryRepository):
    """Repository that cannot set the planned flag on exp-3."""

    async def mark_planned(self, expense_ids):
        if "exp-3" in expense_ids:
            raise RepositoryError(self.SOURCE, "row locked: exp-3")
        await super().mark_planned(expense_ids)


class ShortResultRepository(InMemoryRepository):
    """Repository that loses track of one insert outcome."""

    async def insert_batch(self, records):
        results = await super().insert_batch(records)
        return results[:-1]


def seeded(repo_cls, sample_expenses) -> InMemoryRepository:
    repo = repo_cls()
    repo.add_expenses(sample_expenses)
    return repo


class TestCommitBatch:
    """Tests for AllocationStore.commit_batch."""

    @pytest.mark.asyncio
    async def test_commits_and_marks_planned(self, repo, store):
        results = await store.commit_batch([request("exp-2"), request("exp-3", "li-cabinets")])

        assert [r.status for r in results] == [CommitStatus.COMMITTED, CommitStatus.COMMITTED]
        assert all(r.planned for r in results)
        assert results[1].correlation.line_item_id == "li-cabinets"
        assert repo.get_correlation("exp-2").line_item_id == "li-lumber"
        assert repo.get_expense("exp-2").is_planned
        assert repo.get_expense("exp-3").is_planned

    @pytest.mark.asyncio
    async def test_empty_batch(self, store):
        assert await store.commit_batch([]) == []

    @pytest.mark.asyncio
    async def test_second_commit_for_same_expense_conflicts(self, repo, store):
        first = await store.commit_batch([request("exp-2")])
        second = await store.commit_batch([request("exp-2", "li-cabinets")])

        assert first[0].status == CommitStatus.COMMITTED
        assert second[0].status == CommitStatus.CONFLICT
        assert second[0].correlation is None
        assert repo.get_correlation("exp-2").line_item_id == "li-lumber"
        assert len(repo.correlations) == 1

    @pytest.mark.asyncio
    async def test_duplicate_within_batch_first_wins(self, repo, store):
        results = await store.commit_batch(
            [request("exp-2"), request("exp-3"), request("exp-2", "li-cabinets")]
        )

        assert [r.status for r in results] == [
            CommitStatus.COMMITTED,
            CommitStatus.COMMITTED,
            CommitStatus.CONFLICT,
        ]
        assert results[2].line_item_id == "li-cabinets"
        assert repo.get_correlation("exp-2").line_item_id == "li-lumber"

    @pytest.mark.asyncio
    async def test_conflict_does_not_block_rest_of_batch(self, repo, store):
        await store.commit_batch([request("exp-3")])

        results = await store.commit_batch(
            [request("exp-1", "li-drywall-labor"), request("exp-3"), request("exp-5", "li-permit")]
        )

        assert [r.status for r in results] == [
            CommitStatus.COMMITTED,
            CommitStatus.CONFLICT,
            CommitStatus.COMMITTED,
        ]
        assert not results[1].planned

    @pytest.mark.asyncio
    async def test_whole_batch_failure_marks_every_record_error(self, sample_expenses):
        repo = seeded(FailingInsertRepository, sample_expenses)
        store = AllocationStore(repo, repo)

        results = await store.commit_batch([request("exp-1"), request("exp-2")])

        assert [r.status for r in results] == [CommitStatus.ERROR, CommitStatus.ERROR]
        assert "connection reset" in results[0].error
        assert repo.correlations == []

    @pytest.mark.asyncio
    async def test_mismatched_result_count_marks_every_record_error(
        self, sample_expenses, caplog
    ):
        repo = seeded(ShortResultRepository, sample_expenses)
        store = AllocationStore(repo, repo)

        with caplog.at_level(logging.ERROR):
            results = await store.commit_batch([request("exp-1"), request("exp-2")])

        assert len(results) == 2
        assert all(r.status == CommitStatus.ERROR for r in results)
        assert "returned 1 results for 2 records" in caplog.text

    @pytest.mark.asyncio
    async def test_planned_flag_failure_keeps_records_committed(self, sample_expenses):
        repo = seeded(FailingPlannedRepository, sample_expenses)
        store = AllocationStore(repo, repo)

        results = await store.commit_batch([request("exp-2")])

        assert results[0].status == CommitStatus.COMMITTED
        assert results[0].planned is False
        assert results[0].error.startswith("Planned flag not set")
        assert repo.get_correlation("exp-2") is not None
        assert not repo.get_expense("exp-2").is_planned

    @pytest.mark.asyncio
    async def test_planned_flag_is_set_per_record(self, sample_expenses):
        repo = seeded(OneBadPlannedRepository, sample_expenses)
        store = AllocationStore(repo, repo)

        results = await store.commit_batch(
            [request("exp-2"), request("exp-3"), request("exp-5", "li-permit")]
        )

        assert [r.status for r in results] == [CommitStatus.COMMITTED] * 3
        assert [r.planned for r in results] == [True, False, True]
        assert "row locked" in results[1].error
        assert repo.get_expense("exp-2").is_planned
        assert not repo.get_expense("exp-3").is_planned
        assert repo.get_expense("exp-5").is_planned

    @pytest.mark.asyncio
    async def test_unknown_expense_is_error_and_not_stored(self, repo, store):
        results = await store.commit_batch([request("exp-2"), request("exp-ghost")])

        assert [r.status for r in results] == [CommitStatus.COMMITTED, CommitStatus.ERROR]
        assert results[0].planned is True
        assert repo.get_correlation("exp-ghost") is None

    @pytest.mark.asyncio
    async def test_logs_conflicts(self, store, caplog):
        await store.commit_batch([request("exp-2")])

        with caplog.at_level(logging.WARNING):
            await store.commit_batch([request("exp-2")])

        assert "Allocation conflict for expense exp-2" in caplog.text


class TestQueries:
    """Tests for allocation state queries."""

    @pytest.mark.asyncio
    async def test_list_expenses(self, store, sample_expenses):
        assert await store.list_expenses("proj-1") == sample_expenses
        assert await store.list_expenses("nope") == []

    @pytest.mark.asyncio
    async def test_list_unallocated(self, store):
        await store.commit_batch([request("exp-2"), request("exp-4")])

        assert await store.list_unallocated("proj-1") == ["exp-1", "exp-3", "exp-5"]

    @pytest.mark.asyncio
    async def test_list_unallocated_unknown_project(self, store):
        assert await store.list_unallocated("nope") == []

    @pytest.mark.asyncio
    async def test_list_active(self, store):
        await store.commit_batch([request("exp-2")])

        assert await store.list_active(["exp-1", "exp-2"]) == {"exp-2"}
        assert await store.list_active([]) == set()

    @pytest.mark.asyncio
    async def test_unallocate_frees_expense(self, repo, store):
        await store.commit_batch([request("exp-2")])

        assert await repo.unallocate("exp-2")
        assert not await repo.unallocate("exp-2")
        results = await store.commit_batch([request("exp-2", "li-cabinets")])
        assert results[0].status == CommitStatus.COMMITTED
