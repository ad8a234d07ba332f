"""Type definitions and enums for the allocation engine."""

from decimal import Decimal
from enum import Enum


class ExpenseCategory(str, Enum):
    """Category recorded on an expense."""

    LABOR = "labor_internal"
    SUBCONTRACTOR = "subcontractors"
    MATERIALS = "materials"
    EQUIPMENT = "equipment"
    PERMITS = "permits"
    MANAGEMENT = "management"
    TOOLS = "tools"
    SOFTWARE = "software"
    VEHICLE_MAINTENANCE = "vehicle_maintenance"
    GAS = "gas"
    MEALS = "meals"
    OFFICE_EXPENSES = "office_expenses"
    VEHICLE_EXPENSES = "vehicle_expenses"
    OTHER = "other"

    @property
    def display_name(self) -> str:
        """Human-readable display name."""
        names = {
            self.LABOR: "Labor (Internal)",
            self.SUBCONTRACTOR: "Subcontractor",
            self.MATERIALS: "Materials",
            self.EQUIPMENT: "Equipment",
            self.PERMITS: "Permits & Fees",
            self.MANAGEMENT: "Management",
            self.TOOLS: "Tools",
            self.SOFTWARE: "Software",
            self.VEHICLE_MAINTENANCE: "Vehicle Maintenance",
            self.GAS: "Gas",
            self.MEALS: "Meals",
            self.OFFICE_EXPENSES: "Office Expenses",
            self.VEHICLE_EXPENSES: "Vehicle Expenses",
            self.OTHER: "Other",
        }
        return names.get(self, self.value)


class LineItemCategory(str, Enum):
    """Category of an estimate line item."""

    LABOR = "labor_internal"
    SUBCONTRACTOR = "subcontractors"
    MATERIALS = "materials"
    EQUIPMENT = "equipment"
    PERMITS = "permits"
    MANAGEMENT = "management"
    OTHER = "other"


class CorrelationType(str, Enum):
    """What kind of budget entry an expense was correlated with."""

    ESTIMATE = "estimate"
    QUOTE = "quote"
    CHANGE_ORDER = "change_order"
    UNPLANNED = "unplanned"


class CommitStatus(str, Enum):
    """Outcome of committing a single correlation record."""

    COMMITTED = "committed"   # Correlation stored
    CONFLICT = "conflict"     # Expense already had an active correlation
    ERROR = "error"           # Transient failure, nothing assumed stored


class ConfidenceLevel(str, Enum):
    """Display band for a confidence score."""

    HIGH = "high"           # 90 and above
    MEDIUM = "medium"       # 75 and above
    LOW = "low"             # Some evidence
    UNKNOWN = "unknown"     # No compatible line item

    @classmethod
    def from_score(cls, score: int) -> "ConfidenceLevel":
        """Band a 0-100 confidence score."""
        if score >= 90:
            return cls.HIGH
        if score >= 75:
            return cls.MEDIUM
        if score > 0:
            return cls.LOW
        return cls.UNKNOWN


class WorkflowState(str, Enum):
    """States of the auto-allocation workflow."""

    IDLE = "idle"
    COMPUTING_CANDIDATES = "computing_candidates"
    PREVIEW_READY = "preview_ready"
    NO_HIGH_CONFIDENCE_MATCHES = "no_high_confidence_matches"
    COMMITTING = "committing"
    DONE = "done"


# Type aliases for common patterns
Money = Decimal
Score = int  # 0-100 scale
