"""Output formatters for allocation candidates and commit results.

Provides two output formats:
- JSON: Machine-readable, complete data
- Table: Human-readable CLI output (rich)
"""

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from io import StringIO

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..core.models import AllocationSummary, Candidate, CommitResult
from ..core.types import CommitStatus, ConfidenceLevel

logger = logging.getLogger(__name__)


CONFIDENCE_STYLES = {
    ConfidenceLevel.HIGH: "green",
    ConfidenceLevel.MEDIUM: "blue",
    ConfidenceLevel.LOW: "yellow",
    ConfidenceLevel.UNKNOWN: "dim",
}

STATUS_STYLES = {
    CommitStatus.COMMITTED: "green",
    CommitStatus.CONFLICT: "yellow",
    CommitStatus.ERROR: "red",
}


class OutputFormatter(ABC):
    """Abstract base class for output formatters."""

    @abstractmethod
    def format_candidates(self, candidates: Sequence[Candidate]) -> str:
        """Format allocation candidates as a string."""
        pass

    @abstractmethod
    def format_results(self, results: Sequence[CommitResult]) -> str:
        """Format commit results as a string."""
        pass


class JSONFormatter(OutputFormatter):
    """Formats candidates and results as JSON."""

    def __init__(self, indent: int = 2):
        self.indent = indent

    def format_candidates(self, candidates: Sequence[Candidate]) -> str:
        data = [
            {
                "expense_id": c.expense.id,
                "amount": str(c.expense.amount),
                "category": c.expense.category.value,
                "description": c.expense.description,
                "suggested_line_item_id": c.suggested_line_item_id,
                "confidence": c.confidence,
                "confidence_level": c.confidence_level.value,
                "breakdown": c.breakdown.model_dump() if c.breakdown else None,
            }
            for c in candidates
        ]
        return json.dumps(data, indent=self.indent)

    def format_results(self, results: Sequence[CommitResult]) -> str:
        summary = AllocationSummary.from_results(list(results))
        data = {
            "summary": summary.model_dump(),
            "results": [r.model_dump(mode="json") for r in results],
        }
        return json.dumps(data, indent=self.indent)


class TableFormatter(OutputFormatter):
    """Formats candidates and results as tables for CLI output."""

    def __init__(self, width: int = 120, color: bool = True):
        """
        Initialize table formatter.

        Args:
            width: Maximum table width
            color: Emit terminal colors when rendering to a string
        """
        self.width = width
        self.color = color

    def candidates_table(self, candidates: Sequence[Candidate], title: str = "Allocation Candidates") -> Table:
        table = Table(title=title)
        table.add_column("Expense", style="cyan")
        table.add_column("Date")
        table.add_column("Amount", justify="right")
        table.add_column("Category")
        table.add_column("Description")
        table.add_column("Suggested Line Item")
        table.add_column("Confidence", justify="right")

        for c in candidates:
            style = CONFIDENCE_STYLES[c.confidence_level]
            line_item = c.suggested_line_item
            suggestion = (
                escape(f"{line_item.description or line_item.id} ({line_item.category.value})")
                if line_item
                else "[dim]none[/]"
            )
            table.add_row(
                c.expense.id,
                c.expense.expense_date.isoformat(),
                f"${c.expense.amount:,.2f}",
                c.expense.category.display_name,
                escape(c.expense.description or ""),
                suggestion,
                f"[{style}]{c.confidence}[/]",
            )
        return table

    def results_table(self, results: Sequence[CommitResult], title: str = "Allocation Results") -> Table:
        summary = AllocationSummary.from_results(list(results))
        table = Table(
            title=title,
            caption=(
                f"{summary.committed} committed, {summary.conflicts} conflict(s), "
                f"{summary.errors} error(s)"
            ),
        )
        table.add_column("Expense", style="cyan")
        table.add_column("Line Item")
        table.add_column("Status")
        table.add_column("Planned")
        table.add_column("Notes")

        for r in results:
            style = STATUS_STYLES[r.status]
            table.add_row(
                r.expense_id,
                r.line_item_id,
                f"[{style}]{r.status.value}[/]",
                "yes" if r.planned else "no",
                escape(r.error or ""),
            )
        return table

    def _render(self, table: Table) -> str:
        output = StringIO()
        console = Console(
            file=output,
            force_terminal=self.color,
            no_color=not self.color,
            width=self.width,
        )
        console.print(table)
        return output.getvalue()

    def format_candidates(self, candidates: Sequence[Candidate]) -> str:
        return self._render(self.candidates_table(candidates))

    def format_results(self, results: Sequence[CommitResult]) -> str:
        return self._render(self.results_table(results))
