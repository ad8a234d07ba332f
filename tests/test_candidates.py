"""Tests for candidate generation."""

from allocation_engine.core.types import ConfidenceLevel, ExpenseCategory, LineItemCategory
from allocation_engine.matching.candidates import CandidateGenerator

from conftest import make_expense, make_line_item


class TestBestCandidate:
    """Tests for CandidateGenerator.best_candidate."""

    def test_picks_highest_scoring_item(self, sample_line_items):
        generator = CandidateGenerator()
        expense = make_expense("e", "3900", ExpenseCategory.MATERIALS, "cabinets delivery")

        candidate = generator.best_candidate(expense, sample_line_items)

        assert candidate.suggested_line_item_id == "li-cabinets"
        assert candidate.confidence == 70
        assert candidate.breakdown.amount == 20
        assert candidate.breakdown.description == 10

    def test_suggestion_and_confidence_come_from_same_item(self):
        """The first compatible item is not suggested when a later one scores higher."""
        generator = CandidateGenerator()
        expense = make_expense("e", "1000", ExpenseCategory.MATERIALS)
        line_items = [
            make_line_item("li-far", "5000"),
            make_line_item("li-close", "1000"),
        ]

        candidate = generator.best_candidate(expense, line_items)

        assert candidate.suggested_line_item_id == "li-close"
        assert candidate.suggested_line_item == line_items[1]
        assert candidate.confidence == generator.scoring_engine.score(expense, line_items[1])

    def test_tie_goes_to_first_item(self):
        generator = CandidateGenerator()
        expense = make_expense("e", "1000", ExpenseCategory.MATERIALS)
        line_items = [
            make_line_item("li-a", "1000"),
            make_line_item("li-b", "1000"),
        ]

        assert generator.best_candidate(expense, line_items).suggested_line_item_id == "li-a"

    def test_no_compatible_item(self, sample_line_items):
        generator = CandidateGenerator()
        expense = make_expense("e", "80", ExpenseCategory.MEALS, "crew lunch")

        candidate = generator.best_candidate(expense, sample_line_items)

        assert candidate.confidence == 0
        assert candidate.suggested_line_item_id is None
        assert not candidate.has_suggestion
        assert candidate.confidence_level == ConfidenceLevel.UNKNOWN

    def test_no_line_items(self):
        candidate = CandidateGenerator().best_candidate(make_expense("e"), [])
        assert candidate.confidence == 0
        assert not candidate.has_suggestion

    def test_low_scoring_compatible_item_is_still_suggested(self):
        generator = CandidateGenerator()
        expense = make_expense("e", "10", ExpenseCategory.TOOLS)
        line_items = [make_line_item("li-equipment", "9000", LineItemCategory.EQUIPMENT)]

        candidate = generator.best_candidate(expense, line_items)

        assert candidate.suggested_line_item_id == "li-equipment"
        assert candidate.confidence == 40


class TestGenerate:
    """Tests for CandidateGenerator.generate."""

    def test_one_candidate_per_expense_in_order(self, sample_expenses, sample_line_items):
        candidates = CandidateGenerator().generate(sample_expenses, sample_line_items)

        assert [c.expense.id for c in candidates] == ["exp-1", "exp-2", "exp-3", "exp-4", "exp-5"]
        assert [c.suggested_line_item_id for c in candidates] == [
            "li-drywall-labor",
            "li-lumber",
            "li-cabinets",
            None,
            "li-permit",
        ]
        assert [c.confidence for c in candidates] == [70, 70, 70, 0, 70]

    def test_skips_allocated_expenses(self, sample_expenses, sample_line_items):
        candidates = CandidateGenerator().generate(
            sample_expenses, sample_line_items, already_allocated={"exp-2", "exp-5"}
        )
        assert [c.expense.id for c in candidates] == ["exp-1", "exp-3", "exp-4"]

    def test_skips_split_parents(self, sample_line_items):
        expenses = [
            make_expense("parent", "1000", is_split=True),
            make_expense("child", "1000"),
        ]
        candidates = CandidateGenerator().generate(expenses, sample_line_items)
        assert [c.expense.id for c in candidates] == ["child"]

    def test_empty_inputs(self, sample_line_items):
        assert CandidateGenerator().generate([], sample_line_items) == []
