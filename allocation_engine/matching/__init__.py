"""Matching module.

Scores expenses against estimate line items and selects the best match.
"""

from .compatibility import CategoryCompatibilityMap
from .scoring import ScoringEngine, tokenize_description
from .candidates import CandidateGenerator

__all__ = [
    "CategoryCompatibilityMap",
    "ScoringEngine",
    "CandidateGenerator",
    "tokenize_description",
]
