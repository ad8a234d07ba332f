"""Allocation store - the persistence boundary for correlations.

Workflows never talk to the repositories directly when writing; they go
through commit_batch, which guarantees one CommitResult per input record.
Records succeed or fail independently: a conflict or a failure on one
record never blocks the rest of the batch.
"""

import logging
from collections.abc import Sequence

from ..core.exceptions import RepositoryError
from ..core.models import AllocationSummary, CommitResult, CorrelationRequest, Expense
from ..core.types import CommitStatus
from .base import CorrelationRepository, ExpenseRepository

logger = logging.getLogger(__name__)


class AllocationStore:
    """Queries allocation state and commits correlation batches."""

    def __init__(
        self,
        expenses: ExpenseRepository,
        correlations: CorrelationRepository,
    ):
        """
        Initialize allocation store.

        Args:
            expenses: Source of expenses, also receives the planned flag
            correlations: Correlation storage enforcing one per expense
        """
        self.expenses = expenses
        self.correlations = correlations

    async def list_expenses(self, project_id: str) -> list[Expense]:
        """Snapshot of a project's expenses."""
        return await self.expenses.list_expenses(project_id)

    async def list_unallocated(self, project_id: str) -> list[str]:
        """Ids of the project's expenses without an active correlation, in order."""
        project_expenses = await self.list_expenses(project_id)
        expense_ids = [e.id for e in project_expenses]
        if not expense_ids:
            return []

        active = await self.correlations.list_active_expense_ids(expense_ids)
        return [eid for eid in expense_ids if eid not in active]

    async def list_active(self, expense_ids: Sequence[str]) -> set[str]:
        """Subset of expense_ids that are already allocated."""
        if not expense_ids:
            return set()
        return await self.correlations.list_active_expense_ids(list(expense_ids))

    @staticmethod
    def _failed(request: CorrelationRequest, status: CommitStatus, error: str) -> CommitResult:
        return CommitResult(
            expense_id=request.expense_id,
            line_item_id=request.line_item_id,
            status=status,
            error=error,
        )

    async def _mark_planned_each(self, expense_ids: list[str]) -> dict[str, str]:
        """Set the planned flag one expense at a time. Returns id -> error for failures."""
        failures: dict[str, str] = {}
        for expense_id in expense_ids:
            try:
                await self.expenses.mark_planned([expense_id])
            except RepositoryError as e:
                logger.error(f"Planned flag update failed for expense {expense_id}: {e}")
                failures[expense_id] = e.message
        return failures

    async def _mark_planned(self, results: list[CommitResult]) -> list[CommitResult]:
        committed_ids = [r.expense_id for r in results if r.is_committed]
        if not committed_ids:
            return results

        failures: dict[str, str] = {}
        try:
            await self.expenses.mark_planned(committed_ids)
        except RepositoryError as e:
            logger.warning(
                f"Planned flag update failed for {len(committed_ids)} expense(s), "
                f"retrying one by one: {e}"
            )
            failures = await self._mark_planned_each(committed_ids)

        # Committed records stay committed; the correlation exists either way
        updated = []
        for r in results:
            if not r.is_committed:
                updated.append(r)
            elif r.expense_id in failures:
                updated.append(
                    r.model_copy(
                        update={"error": f"Planned flag not set: {failures[r.expense_id]}"}
                    )
                )
            else:
                updated.append(r.model_copy(update={"planned": True}))
        return updated

    async def commit_batch(
        self, records: Sequence[CorrelationRequest]
    ) -> list[CommitResult]:
        """
        Persist a batch of correlations.

        Args:
            records: Correlations to create

        Returns:
            One CommitResult per record, in input order
        """
        if not records:
            return []

        # First occurrence of an expense id wins within the batch as well
        seen: set[str] = set()
        to_insert: list[CorrelationRequest] = []
        duplicate_positions: set[int] = set()
        for position, request in enumerate(records):
            if request.expense_id in seen:
                duplicate_positions.add(position)
                continue
            seen.add(request.expense_id)
            to_insert.append(request)

        try:
            inserted = await self.correlations.insert_batch(to_insert)
        except RepositoryError as e:
            logger.error(f"Correlation insert failed for whole batch of {len(to_insert)}: {e}")
            inserted = [self._failed(r, CommitStatus.ERROR, e.message) for r in to_insert]

        if len(inserted) != len(to_insert):
            # Outcomes cannot be matched to records, so none is trusted
            message = f"insert_batch returned {len(inserted)} results for {len(to_insert)} records"
            logger.error(message)
            inserted = [self._failed(r, CommitStatus.ERROR, message) for r in to_insert]

        inserted = await self._mark_planned(inserted)

        results: list[CommitResult] = []
        inserted_iter = iter(inserted)
        for position, request in enumerate(records):
            if position in duplicate_positions:
                results.append(
                    self._failed(
                        request,
                        CommitStatus.CONFLICT,
                        f"Expense {request.expense_id} appears more than once in the batch",
                    )
                )
            else:
                results.append(next(inserted_iter))

        summary = AllocationSummary.from_results(results)
        logger.info(
            f"Committed batch of {summary.total}: {summary.committed} committed, "
            f"{summary.conflicts} conflict(s), {summary.errors} error(s)"
        )
        for result in results:
            if result.status == CommitStatus.CONFLICT:
                logger.warning(f"Allocation conflict for expense {result.expense_id}")

        return results
