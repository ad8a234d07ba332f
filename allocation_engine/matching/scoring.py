"""Confidence scoring for (expense, line item) pairs.

The score is the sum of four dimensions, capped at 100:

- Category compatibility (40): binary. Pairs whose categories are not
  compatible are filtered out before scoring, so every scored pair gets
  the full weight.
- Amount proximity (20): tiered on the percentage difference between the
  expense amount and the line item's total cost.
- Description keywords (10): any shared significant word.
- Payee affinity (30): reserved for payee fuzzy matching, always 0. The
  weight stays on the scale so a perfect score remains out of reach until
  payee matching exists.

Scoring is a pure function of its inputs.
"""

import logging
from decimal import Decimal

from ..core.models import Expense, LineItem, ScoreBreakdown
from .compatibility import CategoryCompatibilityMap

logger = logging.getLogger(__name__)


CATEGORY_WEIGHT = 40
AMOUNT_WEIGHT = 20
DESCRIPTION_WEIGHT = 10
PAYEE_WEIGHT = 30

# (max percent difference, points), checked in order
AMOUNT_TIERS: tuple[tuple[Decimal, int], ...] = (
    (Decimal("5"), 20),
    (Decimal("10"), 15),
    (Decimal("20"), 10),
)

MIN_TOKEN_LENGTH = 4
STOP_WORDS = frozenset({"the", "and", "for", "with", "from"})


def tokenize_description(text: str | None) -> frozenset[str]:
    """
    Split a description into significant lower-case words.

    Words of three characters or fewer and a few stop words are dropped.
    """
    if not text:
        return frozenset()
    return frozenset(
        word
        for word in text.lower().split()
        if len(word) >= MIN_TOKEN_LENGTH and word not in STOP_WORDS
    )


def amount_percent_diff(amount: Decimal, total_cost: Decimal) -> Decimal | None:
    """Percentage difference of amount from total_cost, None when total_cost is 0."""
    if total_cost == 0:
        return None
    return abs(amount - total_cost) / abs(total_cost) * 100


class ScoringEngine:
    """Scores how likely an expense belongs to a line item."""

    def __init__(self, compatibility: CategoryCompatibilityMap | None = None):
        """
        Initialize scoring engine.

        Args:
            compatibility: Category compatibility table. Uses the default
                table if not provided.
        """
        self.compatibility = compatibility or CategoryCompatibilityMap.default()

    def is_candidate(self, expense: Expense, line_item: LineItem) -> bool:
        """Whether the pair passes the category pre-filter."""
        return self.compatibility.is_compatible(expense.category, line_item.category)

    def _amount_score(self, expense: Expense, line_item: LineItem) -> int:
        percent_diff = amount_percent_diff(expense.amount, line_item.total_cost)
        if percent_diff is None:
            return 0
        for max_diff, points in AMOUNT_TIERS:
            if percent_diff <= max_diff:
                return points
        return 0

    def _description_score(self, expense: Expense, line_item: LineItem) -> int:
        expense_words = tokenize_description(expense.description)
        if not expense_words:
            return 0
        if expense_words & tokenize_description(line_item.description):
            return DESCRIPTION_WEIGHT
        return 0

    def _payee_score(self, expense: Expense, line_item: LineItem) -> int:
        # Payee fuzzy matching is not implemented yet
        return 0

    def breakdown(self, expense: Expense, line_item: LineItem) -> ScoreBreakdown:
        """
        Score one pair dimension by dimension.

        Args:
            expense: Expense being allocated
            line_item: Line item under consideration

        Returns:
            ScoreBreakdown; all zeros when the categories are incompatible
        """
        if not self.is_candidate(expense, line_item):
            return ScoreBreakdown()

        return ScoreBreakdown(
            category=CATEGORY_WEIGHT,
            amount=self._amount_score(expense, line_item),
            description=self._description_score(expense, line_item),
            payee=self._payee_score(expense, line_item),
        )

    def score(self, expense: Expense, line_item: LineItem) -> int:
        """Confidence score in [0, 100] for one pair."""
        return self.breakdown(expense, line_item).total
