"""Core module - data models, types, and exceptions."""

from .models import (
    AllocationSummary,
    Candidate,
    CommitResult,
    Correlation,
    CorrelationRequest,
    Expense,
    LineItem,
    ScoreBreakdown,
)
from .types import (
    CommitStatus,
    ConfidenceLevel,
    CorrelationType,
    ExpenseCategory,
    LineItemCategory,
    WorkflowState,
)
from .exceptions import (
    AllocationEngineError,
    ConfigurationError,
    ConflictError,
    IllegalTransitionError,
    RepositoryError,
    ValidationError,
)

__all__ = [
    # Models
    "AllocationSummary",
    "Candidate",
    "CommitResult",
    "Correlation",
    "CorrelationRequest",
    "Expense",
    "LineItem",
    "ScoreBreakdown",
    # Types
    "CommitStatus",
    "ConfidenceLevel",
    "CorrelationType",
    "ExpenseCategory",
    "LineItemCategory",
    "WorkflowState",
    # Exceptions
    "AllocationEngineError",
    "ConfigurationError",
    "ConflictError",
    "IllegalTransitionError",
    "RepositoryError",
    "ValidationError",
]
