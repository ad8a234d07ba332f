"""In-memory repository implementing every storage contract.

Used by the tests and as the base of the JSON file store. Inserts are
serialised by a lock so the one-correlation-per-expense check and the
write happen together.
"""

import asyncio
import logging
from collections.abc import Iterable, Sequence

from ..core.exceptions import ConflictError, RepositoryError
from ..core.models import (
    CommitResult,
    Correlation,
    CorrelationRequest,
    Expense,
    LineItem,
)
from ..core.types import CommitStatus
from .base import CorrelationRepository, ExpenseRepository, LineItemRepository

logger = logging.getLogger(__name__)


class InMemoryRepository(ExpenseRepository, LineItemRepository, CorrelationRepository):
    """
    Dict-backed store for expenses, estimates, line items and correlations.

    Usage:
        repo = InMemoryRepository()
        repo.add_expenses([expense])
        repo.set_current_estimate("proj-1", "est-1")
        repo.add_line_items([line_item])

        expenses = await repo.list_expenses("proj-1")
    """

    SOURCE = "memory"

    def __init__(self) -> None:
        self._expenses: dict[str, Expense] = {}
        self._current_estimates: dict[str, str] = {}  # project_id -> estimate_id
        self._line_items: dict[str, LineItem] = {}
        self._correlations: dict[str, Correlation] = {}  # expense_id -> correlation
        self._lock = asyncio.Lock()

    # Seeding helpers

    def add_expenses(self, expenses: Iterable[Expense]) -> None:
        for expense in expenses:
            self._expenses[expense.id] = expense

    def add_line_items(self, line_items: Iterable[LineItem]) -> None:
        for line_item in line_items:
            self._line_items[line_item.id] = line_item

    def set_current_estimate(self, project_id: str, estimate_id: str) -> None:
        self._current_estimates[project_id] = estimate_id

    def get_expense(self, expense_id: str) -> Expense | None:
        return self._expenses.get(expense_id)

    def get_correlation(self, expense_id: str) -> Correlation | None:
        return self._correlations.get(expense_id)

    @property
    def correlations(self) -> list[Correlation]:
        return list(self._correlations.values())

    async def unallocate(self, expense_id: str) -> bool:
        """Remove an expense's correlation. Returns True if one existed."""
        async with self._lock:
            if expense_id not in self._correlations:
                return False
            previous = dict(self._correlations)
            del self._correlations[expense_id]
            try:
                self._persist()
            except RepositoryError:
                self._correlations = previous
                raise
            return True

    def _persist(self) -> None:
        """Hook for subclasses that keep state outside memory."""

    # ExpenseRepository

    async def list_expenses(self, project_id: str) -> list[Expense]:
        return [e for e in self._expenses.values() if e.project_id == project_id]

    async def mark_planned(self, expense_ids: Sequence[str]) -> None:
        missing = [eid for eid in expense_ids if eid not in self._expenses]
        if missing:
            raise RepositoryError(self.SOURCE, f"Unknown expense ids: {missing}")

        async with self._lock:
            previous = dict(self._expenses)
            for expense_id in expense_ids:
                expense = self._expenses[expense_id]
                self._expenses[expense_id] = expense.model_copy(update={"is_planned": True})
            try:
                self._persist()
            except RepositoryError:
                self._expenses = previous
                raise

    # LineItemRepository

    async def current_estimate_id(self, project_id: str) -> str | None:
        return self._current_estimates.get(project_id)

    async def list_line_items(self, estimate_id: str) -> list[LineItem]:
        return [li for li in self._line_items.values() if li.estimate_id == estimate_id]

    # CorrelationRepository

    async def list_active_expense_ids(self, expense_ids: Sequence[str]) -> set[str]:
        return {eid for eid in expense_ids if eid in self._correlations}

    def _insert_one(self, request: CorrelationRequest) -> Correlation:
        if request.expense_id not in self._expenses:
            raise RepositoryError(self.SOURCE, f"Unknown expense {request.expense_id}")

        existing = self._correlations.get(request.expense_id)
        if existing is not None:
            raise ConflictError(request.expense_id, existing.line_item_id)

        correlation = Correlation.from_request(request)
        self._correlations[request.expense_id] = correlation
        return correlation

    async def insert_batch(
        self, records: Sequence[CorrelationRequest]
    ) -> list[CommitResult]:
        results = []
        async with self._lock:
            previous = dict(self._correlations)
            for request in records:
                try:
                    correlation = self._insert_one(request)
                except ConflictError as e:
                    status, error = CommitStatus.CONFLICT, e.message
                except RepositoryError as e:
                    status, error = CommitStatus.ERROR, e.message
                else:
                    results.append(
                        CommitResult(
                            expense_id=request.expense_id,
                            line_item_id=request.line_item_id,
                            status=CommitStatus.COMMITTED,
                            correlation=correlation,
                        )
                    )
                    continue

                results.append(
                    CommitResult(
                        expense_id=request.expense_id,
                        line_item_id=request.line_item_id,
                        status=status,
                        error=error,
                    )
                )

            if any(r.is_committed for r in results):
                try:
                    self._persist()
                except RepositoryError:
                    # Nothing counts as stored unless it reached storage
                    self._correlations = previous
                    raise

        return results
