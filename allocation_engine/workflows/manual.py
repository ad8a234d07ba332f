"""Manual bulk allocation - assign user-selected expenses to one line item."""

import logging
from collections.abc import Iterable, Sequence

from ..core.exceptions import ValidationError
from ..core.models import CommitResult, CorrelationRequest, LineItem
from ..core.types import CorrelationType
from ..storage.allocation_store import AllocationStore
from .common import commit_remaining, find_allocated

logger = logging.getLogger(__name__)


MANUAL_ALLOCATION_NOTE = "Manually assigned via bulk allocation"


class ManualAllocationWorkflow:
    """Assigns a selection of expenses to a single chosen line item."""

    def __init__(self, store: AllocationStore):
        self.store = store

    @staticmethod
    def validate(
        expense_ids: Iterable[str],
        line_item_id: str,
        line_items: Sequence[LineItem],
    ) -> tuple[list[str], LineItem]:
        """
        Check the selection before any I/O.

        Args:
            expense_ids: Selected expense ids (duplicates collapse, order kept)
            line_item_id: Target line item id
            line_items: Line items the user was choosing from

        Returns:
            Tuple of (deduplicated expense ids, target line item)

        Raises:
            ValidationError: empty selection or unknown line item
        """
        selected = list(dict.fromkeys(eid for eid in expense_ids if eid and eid.strip()))
        if not selected:
            raise ValidationError("expense_ids", "", "no expenses selected")

        if not line_item_id:
            raise ValidationError("line_item_id", "", "no line item selected")

        target = next((li for li in line_items if li.id == line_item_id), None)
        if target is None:
            raise ValidationError("line_item_id", line_item_id, "line item not found")

        return selected, target

    async def assign(
        self,
        expense_ids: Iterable[str],
        line_item_id: str,
        line_items: Sequence[LineItem],
    ) -> list[CommitResult]:
        """
        Allocate every selected expense to the target line item.

        Returns:
            One CommitResult per selected expense, in selection order
        """
        selected, target = self.validate(expense_ids, line_item_id, line_items)
        logger.info(f"Assigning {len(selected)} expense(s) to line item {target.id}")

        requests = [
            CorrelationRequest(
                expense_id=expense_id,
                line_item_id=target.id,
                correlation_type=CorrelationType.ESTIMATE,
                auto_correlated=False,
                confidence_score=None,
                notes=MANUAL_ALLOCATION_NOTE,
            )
            for expense_id in selected
        ]

        allocated = await find_allocated(self.store, requests)
        return await commit_remaining(self.store, requests, allocated)
