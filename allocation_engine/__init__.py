"""Expense-to-line-item allocation engine.

Scores how well a project's expenses match the line items of its current
estimate, proposes the best match for each expense, and persists
allocations with per-record conflict handling.
"""

__version__ = "0.1.0"
