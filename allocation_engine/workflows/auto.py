"""Auto-allocation workflow.

Computes candidates for a project, keeps the ones at or above the
confidence threshold, shows them for review, and commits them once the
user confirms. States and the allowed moves between them:

    IDLE -> COMPUTING_CANDIDATES
    COMPUTING_CANDIDATES -> PREVIEW_READY | NO_HIGH_CONFIDENCE_MATCHES | IDLE (on failure)
    PREVIEW_READY -> COMMITTING (confirm) | IDLE (cancel)
    COMMITTING -> DONE

NO_HIGH_CONFIDENCE_MATCHES and DONE are terminal. A commit that fails
unexpectedly still ends in DONE, with every record reported as error.
"""

import asyncio
import logging
from collections.abc import Callable, Collection

from ..core.config import DEFAULT_CONFIDENCE_THRESHOLD
from ..core.exceptions import IllegalTransitionError, ValidationError
from ..core.models import Candidate, CommitResult, CorrelationRequest
from ..core.types import CommitStatus, CorrelationType, WorkflowState
from ..matching.candidates import CandidateGenerator
from ..storage.allocation_store import AllocationStore
from ..storage.base import LineItemRepository
from .common import commit_remaining, find_allocated

logger = logging.getLogger(__name__)


TRANSITIONS: dict[WorkflowState, frozenset[WorkflowState]] = {
    WorkflowState.IDLE: frozenset({WorkflowState.COMPUTING_CANDIDATES}),
    WorkflowState.COMPUTING_CANDIDATES: frozenset(
        {
            WorkflowState.PREVIEW_READY,
            WorkflowState.NO_HIGH_CONFIDENCE_MATCHES,
            WorkflowState.IDLE,
        }
    ),
    WorkflowState.PREVIEW_READY: frozenset(
        {WorkflowState.COMMITTING, WorkflowState.IDLE}
    ),
    WorkflowState.NO_HIGH_CONFIDENCE_MATCHES: frozenset(),
    WorkflowState.COMMITTING: frozenset({WorkflowState.DONE}),
    WorkflowState.DONE: frozenset(),
}

AUTO_ALLOCATION_NOTE = "Bulk allocated via auto-allocation"

StateListener = Callable[[WorkflowState, WorkflowState], None]


class AutoAllocationWorkflow:
    """Preview-then-confirm allocation of high-confidence candidates."""

    def __init__(
        self,
        store: AllocationStore,
        line_items: LineItemRepository,
        generator: CandidateGenerator | None = None,
        threshold: int = DEFAULT_CONFIDENCE_THRESHOLD,
        listener: StateListener | None = None,
    ):
        """
        Initialize auto-allocation workflow.

        Args:
            store: Allocation store (also the source of expenses)
            line_items: Source of the current estimate's line items
            generator: Candidate generator. Default scoring if not provided.
            threshold: Minimum confidence for a candidate to be previewed
            listener: Called with (old_state, new_state) on every transition
        """
        if threshold < 0 or threshold > 100:
            raise ValidationError("threshold", str(threshold), "must be 0-100")

        self.store = store
        self.line_items = line_items
        self.generator = generator or CandidateGenerator()
        self.threshold = threshold
        self.listener = listener

        self._state = WorkflowState.IDLE
        self._project_id: str | None = None
        self._candidates: tuple[Candidate, ...] = ()
        self._preview: tuple[Candidate, ...] = ()
        self._results: tuple[CommitResult, ...] = ()

    @property
    def state(self) -> WorkflowState:
        return self._state

    @property
    def candidates(self) -> tuple[Candidate, ...]:
        """Every candidate from the last computation, before filtering."""
        return self._candidates

    @property
    def preview(self) -> tuple[Candidate, ...]:
        """Candidates awaiting confirmation, highest confidence first."""
        return self._preview

    @property
    def results(self) -> tuple[CommitResult, ...]:
        return self._results

    def can_transition(self, target: WorkflowState) -> bool:
        return target in TRANSITIONS[self._state]

    def _transition(self, target: WorkflowState) -> None:
        if not self.can_transition(target):
            raise IllegalTransitionError(self._state.value, target.value)

        previous = self._state
        self._state = target
        logger.debug(f"Auto-allocation: {previous.value} -> {target.value}")
        if self.listener is not None:
            self.listener(previous, target)

    def _passes_threshold(self, candidate: Candidate) -> bool:
        return candidate.has_suggestion and candidate.confidence >= self.threshold

    async def compute(self, project_id: str) -> WorkflowState:
        """
        Generate candidates for a project from a fresh snapshot.

        Returns:
            PREVIEW_READY when at least one candidate passes the threshold,
            NO_HIGH_CONFIDENCE_MATCHES otherwise

        Raises:
            RepositoryError: when loading the snapshot fails. Any failure while
                computing returns the state to IDLE.
        """
        self._transition(WorkflowState.COMPUTING_CANDIDATES)
        self._project_id = project_id
        logger.info(f"Computing allocation candidates for project {project_id}")

        try:
            expenses, estimate_id = await asyncio.gather(
                self.store.list_expenses(project_id),
                self.line_items.current_estimate_id(project_id),
            )
            line_items = (
                await self.line_items.list_line_items(estimate_id) if estimate_id else []
            )
            allocated = await self.store.list_active([e.id for e in expenses])
        except Exception as e:
            logger.error(f"Failed to load allocation snapshot for {project_id}: {e}")
            self._transition(WorkflowState.IDLE)
            raise

        if estimate_id is None:
            logger.warning(f"Project {project_id} has no current estimate")

        self._candidates = tuple(self.generator.generate(expenses, line_items, allocated))
        passing = [c for c in self._candidates if self._passes_threshold(c)]

        if not passing:
            logger.info(
                f"No candidates at or above {self.threshold} "
                f"({len(self._candidates)} evaluated)"
            )
            self._transition(WorkflowState.NO_HIGH_CONFIDENCE_MATCHES)
            return self._state

        self._preview = tuple(sorted(passing, key=lambda c: c.confidence, reverse=True))
        logger.info(
            f"{len(self._preview)} of {len(self._candidates)} candidate(s) ready for review"
        )
        self._transition(WorkflowState.PREVIEW_READY)
        return self._state

    def cancel(self) -> None:
        """Discard the preview and return to IDLE. Nothing is persisted."""
        self._transition(WorkflowState.IDLE)
        self._candidates = ()
        self._preview = ()
        logger.info("Auto-allocation cancelled")

    def _select(self, selected_expense_ids: Collection[str] | None) -> list[Candidate]:
        if selected_expense_ids is None:
            return list(self._preview)

        previewed = {c.expense.id for c in self._preview}
        unknown = sorted(set(selected_expense_ids) - previewed)
        if unknown:
            raise ValidationError(
                "selected_expense_ids", ", ".join(unknown), "not in the preview"
            )
        chosen = [c for c in self._preview if c.expense.id in selected_expense_ids]
        if not chosen:
            raise ValidationError("selected_expense_ids", "", "nothing selected")
        return chosen

    async def confirm(
        self, selected_expense_ids: Collection[str] | None = None
    ) -> list[CommitResult]:
        """
        Commit the previewed candidates.

        Args:
            selected_expense_ids: Optional subset of the preview to commit.
                All previewed candidates are committed if not provided.

        Returns:
            One CommitResult per committed candidate, in preview order
        """
        if not self.can_transition(WorkflowState.COMMITTING):
            raise IllegalTransitionError(self._state.value, WorkflowState.COMMITTING.value)

        chosen = self._select(selected_expense_ids)
        requests = [
            CorrelationRequest(
                expense_id=c.expense.id,
                line_item_id=c.suggested_line_item_id,
                correlation_type=CorrelationType.ESTIMATE,
                auto_correlated=True,
                confidence_score=c.confidence,
                notes=AUTO_ALLOCATION_NOTE,
            )
            for c in chosen
            if self._passes_threshold(c)
        ]

        # A failed re-query leaves the preview in place
        allocated = await find_allocated(self.store, requests)

        self._transition(WorkflowState.COMMITTING)
        try:
            results = await commit_remaining(self.store, requests, allocated)
        except Exception:
            # Outcome unknown, so nothing is reported as stored
            logger.exception("Commit failed unexpectedly, reporting every record as error")
            self._results = tuple(
                CommitResult(
                    expense_id=r.expense_id,
                    line_item_id=r.line_item_id,
                    status=CommitStatus.ERROR,
                    error="Commit failed unexpectedly",
                )
                for r in requests
            )
            self._transition(WorkflowState.DONE)
            raise

        self._results = tuple(results)
        self._transition(WorkflowState.DONE)
        return results
