"""Pytest configuration and fixtures for allocation engine tests."""

from datetime import date
from decimal import Decimal

import pytest

from allocation_engine.core.models import Expense, LineItem
from allocation_engine.core.types import ExpenseCategory, LineItemCategory
from allocation_engine.storage.allocation_store import AllocationStore
from allocation_engine.storage.memory import InMemoryRepository

PROJECT_ID = "proj-1"
ESTIMATE_ID = "est-1"


def make_expense(
    expense_id: str,
    amount: str = "100",
    category: ExpenseCategory = ExpenseCategory.MATERIALS,
    description: str | None = None,
    **kwargs,
) -> Expense:
    """Build an expense on the default test project."""
    return Expense(
        id=expense_id,
        project_id=kwargs.pop("project_id", PROJECT_ID),
        amount=Decimal(amount),
        expense_date=kwargs.pop("expense_date", date(2024, 3, 1)),
        category=category,
        description=description,
        **kwargs,
    )


def make_line_item(
    line_item_id: str,
    unit_cost: str = "100",
    category: LineItemCategory = LineItemCategory.MATERIALS,
    description: str = "",
    quantity: str = "1",
    unit_price: str | None = None,
) -> LineItem:
    """Build a line item on the default test estimate."""
    return LineItem(
        id=line_item_id,
        estimate_id=ESTIMATE_ID,
        category=category,
        description=description,
        quantity=Decimal(quantity),
        unit_cost=Decimal(unit_cost),
        unit_price=Decimal(unit_price if unit_price is not None else unit_cost),
    )


@pytest.fixture
def sample_line_items() -> list[LineItem]:
    """Line items of a small kitchen remodel estimate."""
    return [
        make_line_item(
            "li-drywall-labor",
            unit_cost="52",
            quantity="10",
            category=LineItemCategory.LABOR,
            description="drywall installation labor",
        ),
        make_line_item(
            "li-lumber",
            unit_cost="1000",
            category=LineItemCategory.MATERIALS,
            description="framing lumber",
        ),
        make_line_item(
            "li-cabinets",
            unit_cost="4000",
            category=LineItemCategory.MATERIALS,
            description="kitchen cabinets",
        ),
        make_line_item(
            "li-permit",
            unit_cost="250",
            category=LineItemCategory.PERMITS,
            description="building permit",
        ),
    ]


@pytest.fixture
def sample_expenses() -> list[Expense]:
    """Expenses recorded against the remodel."""
    return [
        make_expense(
            "exp-1",
            "500",
            ExpenseCategory.LABOR,
            "drywall install",
        ),
        make_expense("exp-2", "1000", ExpenseCategory.MATERIALS, "lumber order"),
        make_expense("exp-3", "3900", ExpenseCategory.MATERIALS, "cabinets delivery"),
        make_expense("exp-4", "80", ExpenseCategory.MEALS, "crew lunch"),
        make_expense("exp-5", "250", ExpenseCategory.PERMITS, "city permit fee"),
    ]


@pytest.fixture
def repo(sample_expenses, sample_line_items) -> InMemoryRepository:
    """In-memory repository seeded with the sample project."""
    repository = InMemoryRepository()
    repository.add_expenses(sample_expenses)
    repository.add_line_items(sample_line_items)
    repository.set_current_estimate(PROJECT_ID, ESTIMATE_ID)
    return repository


@pytest.fixture
def store(repo) -> AllocationStore:
    return AllocationStore(repo, repo)
