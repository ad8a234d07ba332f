"""Tests for the category compatibility table."""

import logging

from allocation_engine.core.types import ExpenseCategory, LineItemCategory
from allocation_engine.matching.compatibility import (
    DEFAULT_COMPATIBILITY,
    CategoryCompatibilityMap,
)


class TestDefaultCompatibility:
    """Tests for the built-in table."""

    def test_every_expense_category_has_rules(self):
        assert set(DEFAULT_COMPATIBILITY) == set(ExpenseCategory)

    def test_core_categories_map_to_themselves(self):
        compatibility = CategoryCompatibilityMap.default()

        test_cases = [
            (ExpenseCategory.LABOR, LineItemCategory.LABOR),
            (ExpenseCategory.SUBCONTRACTOR, LineItemCategory.SUBCONTRACTOR),
            (ExpenseCategory.MATERIALS, LineItemCategory.MATERIALS),
            (ExpenseCategory.EQUIPMENT, LineItemCategory.EQUIPMENT),
            (ExpenseCategory.PERMITS, LineItemCategory.PERMITS),
            (ExpenseCategory.MANAGEMENT, LineItemCategory.MANAGEMENT),
            (ExpenseCategory.OTHER, LineItemCategory.OTHER),
        ]

        for expense_cat, line_item_cat in test_cases:
            assert compatibility.is_compatible(expense_cat, line_item_cat), (
                f"{expense_cat} should match {line_item_cat}"
            )

    def test_overhead_categories(self):
        compatibility = CategoryCompatibilityMap.default()

        test_cases = [
            (ExpenseCategory.TOOLS, LineItemCategory.EQUIPMENT),
            (ExpenseCategory.GAS, LineItemCategory.EQUIPMENT),
            (ExpenseCategory.VEHICLE_MAINTENANCE, LineItemCategory.EQUIPMENT),
            (ExpenseCategory.VEHICLE_EXPENSES, LineItemCategory.EQUIPMENT),
            (ExpenseCategory.SOFTWARE, LineItemCategory.MANAGEMENT),
            (ExpenseCategory.MEALS, LineItemCategory.MANAGEMENT),
            (ExpenseCategory.OFFICE_EXPENSES, LineItemCategory.MANAGEMENT),
        ]

        for expense_cat, line_item_cat in test_cases:
            assert compatibility.compatible_categories(expense_cat) == frozenset(
                {line_item_cat}
            )

    def test_labor_does_not_match_materials(self):
        compatibility = CategoryCompatibilityMap.default()
        assert not compatibility.is_compatible(
            ExpenseCategory.LABOR, LineItemCategory.MATERIALS
        )

    def test_unmapped_category_is_empty(self):
        compatibility = CategoryCompatibilityMap({ExpenseCategory.LABOR: [LineItemCategory.LABOR]})
        assert compatibility.compatible_categories(ExpenseCategory.MEALS) == frozenset()

    def test_equality(self):
        assert CategoryCompatibilityMap.default() == CategoryCompatibilityMap.default()
        assert hash(CategoryCompatibilityMap.default()) == hash(
            CategoryCompatibilityMap.default()
        )


class TestLoadFromYaml:
    """Tests for CategoryCompatibilityMap.from_yaml."""

    def test_loads_rules(self, tmp_path):
        config_path = tmp_path / "compat.yaml"
        config_path.write_text(
            "category_compatibility:\n"
            "  meals: [labor_internal, management]\n"
            "  materials: [materials]\n"
        )

        compatibility = CategoryCompatibilityMap.from_yaml(config_path)

        assert compatibility.compatible_categories(ExpenseCategory.MEALS) == frozenset(
            {LineItemCategory.LABOR, LineItemCategory.MANAGEMENT}
        )
        assert compatibility.compatible_categories(ExpenseCategory.GAS) == frozenset()
        assert compatibility.as_dict() == {
            "meals": ["labor_internal", "management"],
            "materials": ["materials"],
        }

    def test_unknown_categories_are_skipped(self, tmp_path, caplog):
        config_path = tmp_path / "compat.yaml"
        config_path.write_text(
            "category_compatibility:\n"
            "  snacks: [materials]\n"
            "  materials: [materials, lumber]\n"
        )

        with caplog.at_level(logging.WARNING):
            compatibility = CategoryCompatibilityMap.from_yaml(config_path)

        assert compatibility.as_dict() == {"materials": ["materials"]}
        assert "snacks" in caplog.text
        assert "lumber" in caplog.text

    def test_missing_file_uses_defaults(self, tmp_path):
        compatibility = CategoryCompatibilityMap.from_yaml(tmp_path / "missing.yaml")
        assert compatibility == CategoryCompatibilityMap.default()

    def test_invalid_yaml_uses_defaults(self, tmp_path):
        config_path = tmp_path / "broken.yaml"
        config_path.write_text("category_compatibility: [unclosed\n")

        assert CategoryCompatibilityMap.from_yaml(config_path) == CategoryCompatibilityMap.default()

    def test_missing_key_uses_defaults(self, tmp_path):
        config_path = tmp_path / "other.yaml"
        config_path.write_text("something_else: true\n")

        assert CategoryCompatibilityMap.from_yaml(config_path) == CategoryCompatibilityMap.default()

    def test_shipped_config_matches_defaults(self):
        from pathlib import Path

        config_path = Path(__file__).parent.parent / "config" / "category_compatibility.yaml"
        assert CategoryCompatibilityMap.from_yaml(config_path) == CategoryCompatibilityMap.default()
