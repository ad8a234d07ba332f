"""Commit steps shared by the auto and manual workflows."""

import logging
from collections.abc import Collection, Sequence

from ..core.models import CommitResult, CorrelationRequest
from ..core.types import CommitStatus
from ..storage.allocation_store import AllocationStore

logger = logging.getLogger(__name__)


async def find_allocated(
    store: AllocationStore,
    requests: Sequence[CorrelationRequest],
) -> set[str]:
    """Re-query which of the requested expenses are already allocated."""
    allocated = await store.list_active([r.expense_id for r in requests])
    if allocated:
        logger.info(f"{len(allocated)} expense(s) were allocated elsewhere before commit")
    return allocated


async def commit_remaining(
    store: AllocationStore,
    requests: Sequence[CorrelationRequest],
    allocated: Collection[str],
) -> list[CommitResult]:
    """
    Commit the requests whose expenses were not found allocated.

    Requests for expenses in ``allocated`` are reported as CONFLICT
    without being sent. The store's uniqueness check still catches
    anything allocated after the re-query.

    Returns:
        One CommitResult per request, in input order
    """
    to_commit = [r for r in requests if r.expense_id not in allocated]
    committed = iter(await store.commit_batch(to_commit))

    results = []
    for request in requests:
        if request.expense_id in allocated:
            results.append(
                CommitResult(
                    expense_id=request.expense_id,
                    line_item_id=request.line_item_id,
                    status=CommitStatus.CONFLICT,
                    error=f"Expense {request.expense_id} is already allocated",
                )
            )
        else:
            results.append(next(committed))
    return results
