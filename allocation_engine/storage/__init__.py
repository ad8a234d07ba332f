"""Storage module - repository contracts, adapters, and the allocation store."""

from .base import CorrelationRepository, ExpenseRepository, LineItemRepository
from .memory import InMemoryRepository
from .json_store import JsonFileRepository
from .supabase import SupabaseRepository
from .allocation_store import AllocationStore

__all__ = [
    "AllocationStore",
    "CorrelationRepository",
    "ExpenseRepository",
    "InMemoryRepository",
    "JsonFileRepository",
    "LineItemRepository",
    "SupabaseRepository",
]
