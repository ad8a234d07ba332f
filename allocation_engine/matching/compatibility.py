"""Category compatibility between expenses and estimate line items.

An expense can only be matched to line items whose category appears in
its compatibility set. The table is a value handed to the scoring engine
at construction time; it never changes after it is built.
"""

import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from types import MappingProxyType

import yaml

from ..core.types import ExpenseCategory, LineItemCategory

logger = logging.getLogger(__name__)


# Default rules (used if no config file provided)
DEFAULT_COMPATIBILITY: dict[ExpenseCategory, tuple[LineItemCategory, ...]] = {
    ExpenseCategory.LABOR: (LineItemCategory.LABOR,),
    ExpenseCategory.SUBCONTRACTOR: (LineItemCategory.SUBCONTRACTOR,),
    ExpenseCategory.MATERIALS: (LineItemCategory.MATERIALS,),
    ExpenseCategory.EQUIPMENT: (LineItemCategory.EQUIPMENT,),
    ExpenseCategory.PERMITS: (LineItemCategory.PERMITS,),
    ExpenseCategory.MANAGEMENT: (LineItemCategory.MANAGEMENT,),
    ExpenseCategory.TOOLS: (LineItemCategory.EQUIPMENT,),
    ExpenseCategory.SOFTWARE: (LineItemCategory.MANAGEMENT,),
    ExpenseCategory.VEHICLE_MAINTENANCE: (LineItemCategory.EQUIPMENT,),
    ExpenseCategory.GAS: (LineItemCategory.EQUIPMENT,),
    ExpenseCategory.MEALS: (LineItemCategory.MANAGEMENT,),
    ExpenseCategory.OFFICE_EXPENSES: (LineItemCategory.MANAGEMENT,),
    ExpenseCategory.VEHICLE_EXPENSES: (LineItemCategory.EQUIPMENT,),
    ExpenseCategory.OTHER: (LineItemCategory.OTHER,),
}


class CategoryCompatibilityMap:
    """Immutable expense category -> line item categories table."""

    __slots__ = ("_table",)

    def __init__(
        self,
        mapping: Mapping[ExpenseCategory, Iterable[LineItemCategory]],
    ):
        """
        Build the table.

        Args:
            mapping: Expense category to the line item categories it may match.
                Categories left out have no compatible line items.
        """
        self._table = MappingProxyType(
            {
                ExpenseCategory(expense_cat): frozenset(
                    LineItemCategory(c) for c in line_item_cats
                )
                for expense_cat, line_item_cats in mapping.items()
            }
        )

    @classmethod
    def default(cls) -> "CategoryCompatibilityMap":
        return cls(DEFAULT_COMPATIBILITY)

    @classmethod
    def from_yaml(cls, config_path: Path | str) -> "CategoryCompatibilityMap":
        """
        Load the table from a YAML config.

        The file holds a ``category_compatibility`` mapping of expense
        category values to lists of line item category values. Unknown
        category names are skipped; a missing or unreadable file falls
        back to the default table.
        """
        config_path = Path(config_path)
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f) or {}
        except FileNotFoundError:
            logger.warning(f"Config file not found: {config_path}, using defaults")
            return cls.default()
        except yaml.YAMLError as e:
            logger.error(f"Invalid YAML in {config_path}: {e}")
            return cls.default()

        raw_rules = config.get("category_compatibility")
        if not isinstance(raw_rules, dict):
            logger.warning(
                f"No 'category_compatibility' in {config_path}, using defaults"
            )
            return cls.default()

        table: dict[ExpenseCategory, list[LineItemCategory]] = {}
        for raw_expense_cat, raw_line_item_cats in raw_rules.items():
            try:
                expense_cat = ExpenseCategory(raw_expense_cat)
            except ValueError:
                logger.warning(f"Unknown expense category '{raw_expense_cat}', skipped")
                continue

            line_item_cats = []
            for raw in raw_line_item_cats or []:
                try:
                    line_item_cats.append(LineItemCategory(raw))
                except ValueError:
                    logger.warning(
                        f"Unknown line item category '{raw}' for '{raw_expense_cat}', skipped"
                    )
            table[expense_cat] = line_item_cats

        logger.info(f"Loaded category compatibility from {config_path}")
        return cls(table)

    def compatible_categories(
        self, expense_category: ExpenseCategory
    ) -> frozenset[LineItemCategory]:
        """Line item categories an expense category may match (possibly empty)."""
        return self._table.get(expense_category, frozenset())

    def is_compatible(
        self,
        expense_category: ExpenseCategory,
        line_item_category: LineItemCategory,
    ) -> bool:
        return line_item_category in self.compatible_categories(expense_category)

    def as_dict(self) -> dict[str, list[str]]:
        """Plain representation, e.g. for dumping back to YAML."""
        return {
            expense_cat.value: sorted(c.value for c in line_item_cats)
            for expense_cat, line_item_cats in self._table.items()
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CategoryCompatibilityMap):
            return NotImplemented
        return dict(self._table) == dict(other._table)

    def __hash__(self) -> int:
        return hash(frozenset(self._table.items()))

    def __repr__(self) -> str:
        return f"CategoryCompatibilityMap({len(self._table)} categories)"
