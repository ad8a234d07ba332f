"""
JSON-based storage for allocation data.

Simple, file-based storage used by the CLI. State lives in four files
inside a data directory:

    expenses.json       list of expenses
    estimates.json      {project_id: current_estimate_id}
    line_items.json     list of estimate line items
    correlations.json   list of correlations

Every mutation rewrites the affected files.
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from ..core.exceptions import RepositoryError
from ..core.models import Correlation, Expense, LineItem
from .memory import InMemoryRepository

logger = logging.getLogger(__name__)


class JsonFileRepository(InMemoryRepository):
    """
    File-backed repository.

    Usage:
        repo = JsonFileRepository(Path("data/allocation"))
        expenses = await repo.list_expenses("proj-1")
    """

    SOURCE = "json"

    EXPENSES_FILE = "expenses.json"
    ESTIMATES_FILE = "estimates.json"
    LINE_ITEMS_FILE = "line_items.json"
    CORRELATIONS_FILE = "correlations.json"

    def __init__(self, data_dir: Optional[Path] = None):
        """Initialize store with data directory and load existing files."""
        super().__init__()
        if data_dir is None:
            data_dir = Path.cwd() / "data" / "allocation"

        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._load()

    def _get_path(self, name: str) -> Path:
        return self.data_dir / name

    def _read(self, name: str, default: Any) -> Any:
        path = self._get_path(name)
        if not path.exists():
            return default
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise RepositoryError(self.SOURCE, f"Cannot read {path}: {e}")

    def _write(self, name: str, data: Any) -> None:
        path = self._get_path(name)
        try:
            with open(path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
        except OSError as e:
            raise RepositoryError(self.SOURCE, f"Cannot write {path}: {e}")

    def _load(self) -> None:
        try:
            self.add_expenses(
                Expense.model_validate(row) for row in self._read(self.EXPENSES_FILE, [])
            )
            self.add_line_items(
                LineItem.model_validate(row)
                for row in self._read(self.LINE_ITEMS_FILE, [])
            )
            for row in self._read(self.CORRELATIONS_FILE, []):
                correlation = Correlation.model_validate(row)
                self._correlations[correlation.expense_id] = correlation
        except PydanticValidationError as e:
            raise RepositoryError(self.SOURCE, f"Invalid data in {self.data_dir}: {e}")

        for project_id, estimate_id in self._read(self.ESTIMATES_FILE, {}).items():
            self.set_current_estimate(project_id, estimate_id)

        logger.debug(
            f"Loaded {len(self._expenses)} expenses, {len(self._line_items)} line items, "
            f"{len(self._correlations)} correlations from {self.data_dir}"
        )

    def _persist(self) -> None:
        self._write(
            self.EXPENSES_FILE,
            [e.model_dump(mode="json") for e in self._expenses.values()],
        )
        self._write(
            self.CORRELATIONS_FILE,
            [c.model_dump(mode="json") for c in self._correlations.values()],
        )

    def save_all(self) -> None:
        """Write every file, including estimates and line items."""
        self._persist()
        self._write(self.ESTIMATES_FILE, dict(self._current_estimates))
        self._write(
            self.LINE_ITEMS_FILE,
            [li.model_dump(mode="json") for li in self._line_items.values()],
        )
