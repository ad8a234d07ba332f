"""Pydantic data models for the allocation engine.

All data structures are immutable (frozen) after creation so the snapshots
handed to scoring and candidate generation cannot change underneath them.
"""

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from .types import (
    CommitStatus,
    ConfidenceLevel,
    CorrelationType,
    ExpenseCategory,
    LineItemCategory,
    Money,
    Score,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Expense(BaseModel):
    """A recorded financial transaction against a project."""

    id: str
    project_id: str
    amount: Money
    expense_date: date
    category: ExpenseCategory
    description: str | None = None
    payee_id: str | None = None
    payee_name: str | None = None
    is_planned: bool = False
    is_split: bool = False  # Split parents are allocated through their splits

    model_config = {"frozen": True}


class LineItem(BaseModel):
    """A budgeted entry within the current estimate."""

    id: str
    estimate_id: str
    category: LineItemCategory
    description: str = ""
    quantity: Decimal = Decimal("1")
    unit_price: Money = Decimal("0")
    unit_cost: Money = Decimal("0")

    model_config = {"frozen": True}

    @property
    def total(self) -> Money:
        """Billed total (quantity x unit price)."""
        return self.quantity * self.unit_price

    @property
    def total_cost(self) -> Money:
        """Budgeted cost (quantity x unit cost)."""
        return self.quantity * self.unit_cost

    @property
    def total_markup(self) -> Money:
        return self.total - self.total_cost


class CorrelationRequest(BaseModel):
    """A correlation a workflow wants to persist."""

    expense_id: str
    line_item_id: str
    correlation_type: CorrelationType = CorrelationType.ESTIMATE
    auto_correlated: bool = False
    confidence_score: Score | None = None
    notes: str | None = None

    model_config = {"frozen": True}

    @field_validator("confidence_score")
    @classmethod
    def validate_confidence(cls, v: Score | None) -> Score | None:
        if v is not None and (v < 0 or v > 100):
            raise ValueError(f"Confidence must be 0-100, got {v}")
        return v


class Correlation(BaseModel):
    """The persisted link between one expense and one line item."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    expense_id: str
    line_item_id: str
    correlation_type: CorrelationType = CorrelationType.ESTIMATE
    auto_correlated: bool = False
    confidence_score: Score | None = None
    notes: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)

    model_config = {"frozen": True}

    @classmethod
    def from_request(cls, request: CorrelationRequest) -> "Correlation":
        """Build the stored record for a request."""
        return cls(
            expense_id=request.expense_id,
            line_item_id=request.line_item_id,
            correlation_type=request.correlation_type,
            auto_correlated=request.auto_correlated,
            confidence_score=request.confidence_score,
            notes=request.notes,
        )


class ScoreBreakdown(BaseModel):
    """Per-dimension sub-scores for one (expense, line item) pair."""

    category: Score = 0
    amount: Score = 0
    description: Score = 0
    payee: Score = 0  # Reserved, always 0 for now

    model_config = {"frozen": True}

    @property
    def total(self) -> Score:
        """Sum of all dimensions, capped at 100."""
        return min(self.category + self.amount + self.description + self.payee, 100)


class Candidate(BaseModel):
    """An expense paired with its best-scoring line item."""

    expense: Expense
    suggested_line_item_id: str | None = None
    suggested_line_item: LineItem | None = None
    confidence: Score = 0
    breakdown: ScoreBreakdown | None = None

    model_config = {"frozen": True}

    @property
    def has_suggestion(self) -> bool:
        return self.suggested_line_item_id is not None

    @property
    def confidence_level(self) -> ConfidenceLevel:
        return ConfidenceLevel.from_score(self.confidence)


class CommitResult(BaseModel):
    """Per-record outcome of a commit batch."""

    expense_id: str
    line_item_id: str
    status: CommitStatus
    correlation: Correlation | None = None
    planned: bool = False  # Whether the expense's planned flag was set
    error: str | None = None

    model_config = {"frozen": True}

    @property
    def is_committed(self) -> bool:
        return self.status == CommitStatus.COMMITTED


class AllocationSummary(BaseModel):
    """Counts of commit outcomes for reporting."""

    committed: int = 0
    conflicts: int = 0
    errors: int = 0

    model_config = {"frozen": True}

    @property
    def total(self) -> int:
        return self.committed + self.conflicts + self.errors

    @classmethod
    def from_results(cls, results: list[CommitResult]) -> "AllocationSummary":
        """Tally a list of commit results."""
        return cls(
            committed=sum(1 for r in results if r.status == CommitStatus.COMMITTED),
            conflicts=sum(1 for r in results if r.status == CommitStatus.CONFLICT),
            errors=sum(1 for r in results if r.status == CommitStatus.ERROR),
        )
