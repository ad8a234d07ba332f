"""Repository contracts the allocation engine consumes.

Implementations live next to this module (in-memory, JSON files,
Supabase). All calls are coroutines; workflows await them.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence

from ..core.models import CommitResult, CorrelationRequest, Expense, LineItem


class ExpenseRepository(ABC):
    """Read expenses and flag them as planned."""

    SOURCE: str = "unknown"

    @abstractmethod
    async def list_expenses(self, project_id: str) -> list[Expense]:
        """All expenses recorded against a project."""

    @abstractmethod
    async def mark_planned(self, expense_ids: Sequence[str]) -> None:
        """Set the planned flag. Raises RepositoryError on failure."""


class LineItemRepository(ABC):
    """Read the line items of a project's current estimate."""

    SOURCE: str = "unknown"

    @abstractmethod
    async def current_estimate_id(self, project_id: str) -> str | None:
        """Id of the project's current estimate version, if any."""

    @abstractmethod
    async def list_line_items(self, estimate_id: str) -> list[LineItem]:
        """Line items of one estimate."""


class CorrelationRepository(ABC):
    """Read and insert expense correlations.

    Implementations must enforce at most one active correlation per
    expense id at the storage layer.
    """

    SOURCE: str = "unknown"

    @abstractmethod
    async def list_active_expense_ids(self, expense_ids: Sequence[str]) -> set[str]:
        """Subset of expense_ids that already have an active correlation."""

    @abstractmethod
    async def insert_batch(
        self, records: Sequence[CorrelationRequest]
    ) -> list[CommitResult]:
        """
        Insert correlations independently of each other.

        Returns one result per record, in order: COMMITTED with the stored
        Correlation, CONFLICT when the expense is already allocated, or
        ERROR when that record failed. Raises RepositoryError only when the
        call as a whole could not be made.
        """
