"""Supabase (PostgREST) repository over httpx.

Reads expenses, current estimates and estimate line items, and writes
expense_line_item_correlations. The correlations table carries a unique
constraint on expense_id, which PostgREST reports as HTTP 409; that is
how a lost allocation race surfaces here.
"""

import asyncio
import logging
import time
from collections.abc import Sequence
from datetime import datetime
from typing import Any

import httpx

from ..core.exceptions import RepositoryError
from ..core.models import (
    CommitResult,
    Correlation,
    CorrelationRequest,
    Expense,
    LineItem,
)
from ..core.types import CommitStatus, CorrelationType
from .base import CorrelationRepository, ExpenseRepository, LineItemRepository

logger = logging.getLogger(__name__)


# Values stored in the correlation_type column
CORRELATION_TYPE_COLUMN: dict[CorrelationType, str] = {
    CorrelationType.ESTIMATE: "estimated",
    CorrelationType.QUOTE: "quoted",
    CorrelationType.CHANGE_ORDER: "change_order",
    CorrelationType.UNPLANNED: "unplanned",
}
_COLUMN_TO_CORRELATION_TYPE = {v: k for k, v in CORRELATION_TYPE_COLUMN.items()}

# Postgres error code PostgREST returns (as HTTP 409) when a referenced row is missing
FOREIGN_KEY_VIOLATION = "23503"

# Keeps "in.(...)" filters well under URL length limits
ID_CHUNK_SIZE = 100


def _in_filter(ids: Sequence[str]) -> str:
    return "in.(" + ",".join(ids) + ")"


def _chunks(ids: Sequence[str], size: int = ID_CHUNK_SIZE) -> list[Sequence[str]]:
    return [ids[i : i + size] for i in range(0, len(ids), size)]


class SupabaseRepository(ExpenseRepository, LineItemRepository, CorrelationRepository):
    """Talks to the Supabase REST API for all three contracts."""

    SOURCE = "supabase"

    def __init__(
        self,
        url: str,
        api_key: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        """
        Initialize Supabase repository.

        Args:
            url: Project URL, e.g. https://xyz.supabase.co
            api_key: Service or anon key
            client: Optional preconfigured client (tests pass a mock transport)
            timeout: Request timeout in seconds for the default client
        """
        self.base_url = url.rstrip("/") + "/rest/v1"
        self.api_key = api_key
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> "SupabaseRepository":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _headers(self, extra: dict[str, str] | None = None) -> dict[str, str]:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if extra:
            headers.update(extra)
        return headers

    async def _send(
        self,
        method: str,
        table: str,
        params: dict[str, str] | None = None,
        json_body: Any = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Send a request, converting transport failures to RepositoryError."""
        url = f"{self.base_url}/{table}"
        start_time = time.time()
        try:
            response = await self._client.request(
                method,
                url,
                params=params,
                json=json_body,
                headers=self._headers(headers),
            )
        except httpx.RequestError as e:
            raise RepositoryError(self.SOURCE, f"{method} {table}: {e}")

        duration_ms = int((time.time() - start_time) * 1000)
        logger.debug(f"[{self.SOURCE}] {method} {table} -> {response.status_code} ({duration_ms}ms)")
        return response

    async def _request(
        self,
        method: str,
        table: str,
        params: dict[str, str] | None = None,
        json_body: Any = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        response = await self._send(method, table, params, json_body, headers)
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise RepositoryError(
                self.SOURCE,
                f"{method} {table}: HTTP {e.response.status_code}",
                status_code=e.response.status_code,
            )
        if not response.content:
            return None
        return response.json()

    @staticmethod
    def _error_code(response: httpx.Response) -> str | None:
        try:
            body = response.json()
        except ValueError:
            return None
        return body.get("code") if isinstance(body, dict) else None

    # Row mapping

    @staticmethod
    def _expense_from_row(row: dict[str, Any]) -> Expense:
        payee = row.get("payees") or {}
        return Expense(
            id=row["id"],
            project_id=row["project_id"],
            amount=str(row["amount"]),
            expense_date=row["expense_date"],
            category=row["category"],
            description=row.get("description"),
            payee_id=row.get("payee_id"),
            payee_name=payee.get("payee_name"),
            is_planned=bool(row.get("is_planned")),
            is_split=bool(row.get("is_split")),
        )

    @staticmethod
    def _line_item_from_row(row: dict[str, Any]) -> LineItem:
        return LineItem(
            id=row["id"],
            estimate_id=row["estimate_id"],
            category=row["category"],
            description=row.get("description") or "",
            quantity=str(row.get("quantity") or 0),
            unit_price=str(row.get("price_per_unit") or 0),
            unit_cost=str(row.get("cost_per_unit") or 0),
        )

    @staticmethod
    def _correlation_row(request: CorrelationRequest) -> dict[str, Any]:
        return {
            "expense_id": request.expense_id,
            "estimate_line_item_id": request.line_item_id,
            "correlation_type": CORRELATION_TYPE_COLUMN[request.correlation_type],
            "auto_correlated": request.auto_correlated,
            "confidence_score": request.confidence_score,
            "notes": request.notes,
        }

    @staticmethod
    def _correlation_from_row(
        row: dict[str, Any], request: CorrelationRequest
    ) -> Correlation:
        correlation = Correlation.from_request(request)
        update: dict[str, Any] = {}
        if row.get("id"):
            update["id"] = row["id"]
        if row.get("created_at"):
            update["created_at"] = datetime.fromisoformat(row["created_at"])
        if row.get("correlation_type") in _COLUMN_TO_CORRELATION_TYPE:
            update["correlation_type"] = _COLUMN_TO_CORRELATION_TYPE[row["correlation_type"]]
        return correlation.model_copy(update=update)

    # ExpenseRepository

    async def list_expenses(self, project_id: str) -> list[Expense]:
        rows = await self._request(
            "GET",
            "expenses",
            params={"project_id": f"eq.{project_id}", "select": "*,payees(payee_name)"},
        )
        return [self._expense_from_row(row) for row in rows or []]

    async def mark_planned(self, expense_ids: Sequence[str]) -> None:
        for chunk in _chunks(list(expense_ids)):
            await self._request(
                "PATCH",
                "expenses",
                params={"id": _in_filter(chunk)},
                json_body={"is_planned": True},
            )

    # LineItemRepository

    async def current_estimate_id(self, project_id: str) -> str | None:
        rows = await self._request(
            "GET",
            "estimates",
            params={
                "project_id": f"eq.{project_id}",
                "is_current_version": "eq.true",
                "select": "id",
                "limit": "1",
            },
        )
        if not rows:
            return None
        return rows[0]["id"]

    async def list_line_items(self, estimate_id: str) -> list[LineItem]:
        rows = await self._request(
            "GET",
            "estimate_line_items",
            params={"estimate_id": f"eq.{estimate_id}", "select": "*"},
        )
        return [self._line_item_from_row(row) for row in rows or []]

    # CorrelationRepository

    async def list_active_expense_ids(self, expense_ids: Sequence[str]) -> set[str]:
        active: set[str] = set()
        for chunk in _chunks(list(expense_ids)):
            rows = await self._request(
                "GET",
                "expense_line_item_correlations",
                params={"expense_id": _in_filter(chunk), "select": "expense_id"},
            )
            active.update(row["expense_id"] for row in rows or [] if row.get("expense_id"))
        return active

    async def _insert_one(self, request: CorrelationRequest) -> CommitResult:
        try:
            response = await self._send(
                "POST",
                "expense_line_item_correlations",
                json_body=self._correlation_row(request),
                headers={"Prefer": "return=representation"},
            )
        except RepositoryError as e:
            return CommitResult(
                expense_id=request.expense_id,
                line_item_id=request.line_item_id,
                status=CommitStatus.ERROR,
                error=e.message,
            )

        if response.status_code == 409 and self._error_code(response) == FOREIGN_KEY_VIOLATION:
            return CommitResult(
                expense_id=request.expense_id,
                line_item_id=request.line_item_id,
                status=CommitStatus.ERROR,
                error=f"Unknown expense or line item for {request.expense_id}",
            )

        if response.status_code == 409:
            return CommitResult(
                expense_id=request.expense_id,
                line_item_id=request.line_item_id,
                status=CommitStatus.CONFLICT,
                error=f"Expense {request.expense_id} is already allocated",
            )

        if response.is_error:
            return CommitResult(
                expense_id=request.expense_id,
                line_item_id=request.line_item_id,
                status=CommitStatus.ERROR,
                error=f"HTTP {response.status_code}",
            )

        rows = response.json() if response.content else []
        row = rows[0] if isinstance(rows, list) and rows else {}
        return CommitResult(
            expense_id=request.expense_id,
            line_item_id=request.line_item_id,
            status=CommitStatus.COMMITTED,
            correlation=self._correlation_from_row(row, request),
        )

    async def insert_batch(
        self, records: Sequence[CorrelationRequest]
    ) -> list[CommitResult]:
        # One request per record so each succeeds or fails on its own
        return list(await asyncio.gather(*(self._insert_one(r) for r in records)))
