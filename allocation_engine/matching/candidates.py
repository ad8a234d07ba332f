"""Candidate generation - picks the best line item for each expense."""

import logging
from collections.abc import Collection, Sequence

from ..core.models import Candidate, Expense, LineItem
from .scoring import ScoringEngine

logger = logging.getLogger(__name__)


class CandidateGenerator:
    """Proposes one line item per unallocated expense."""

    def __init__(self, scoring_engine: ScoringEngine | None = None):
        self.scoring_engine = scoring_engine or ScoringEngine()

    def best_candidate(
        self,
        expense: Expense,
        line_items: Sequence[LineItem],
    ) -> Candidate:
        """
        Score every compatible line item and keep the highest.

        The suggestion and the confidence always come from the same line
        item. Ties go to the earliest line item in input order.
        """
        compatible = self.scoring_engine.compatibility.compatible_categories(
            expense.category
        )
        best: Candidate | None = None

        for line_item in line_items:
            if line_item.category not in compatible:
                continue

            breakdown = self.scoring_engine.breakdown(expense, line_item)
            if best is None or breakdown.total > best.confidence:
                best = Candidate(
                    expense=expense,
                    suggested_line_item_id=line_item.id,
                    suggested_line_item=line_item,
                    confidence=breakdown.total,
                    breakdown=breakdown,
                )

        if best is None:
            return Candidate(expense=expense, confidence=0)
        return best

    def generate(
        self,
        expenses: Sequence[Expense],
        line_items: Sequence[LineItem],
        already_allocated: Collection[str] = frozenset(),
    ) -> list[Candidate]:
        """
        Build candidates for every expense that still needs allocating.

        Args:
            expenses: Snapshot of the project's expenses
            line_items: Snapshot of the current estimate's line items
            already_allocated: Expense ids with an active correlation

        Returns:
            One Candidate per eligible expense, in input order. Expenses
            without a compatible line item get confidence 0 and no suggestion.
        """
        candidates = []
        skipped_splits = 0

        for expense in expenses:
            if expense.id in already_allocated:
                continue
            if expense.is_split:
                skipped_splits += 1
                continue
            candidates.append(self.best_candidate(expense, line_items))

        if skipped_splits:
            logger.debug(f"Skipped {skipped_splits} split parent expense(s)")

        logger.debug(
            f"Generated {len(candidates)} candidate(s) from {len(expenses)} expense(s) "
            f"and {len(line_items)} line item(s)"
        )
        return candidates
