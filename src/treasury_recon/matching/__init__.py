"""Matching strategies, matcher and executor."""

from .executor import (
    adjust_statement_counters,
    derive_status,
    execute_match,
    execute_unmatch,
)
from .matcher import Matcher, build_strategies, load_candidate_pool
from .strategies import (
    MatchingStrategy,
    ExactMatchStrategy,
    FuzzyToleranceStrategy,
    ReferenceStrategy,
)

__all__ = [
    "Matcher",
    "build_strategies",
    "load_candidate_pool",
    "adjust_statement_counters",
    "derive_status",
    "execute_match",
    "execute_unmatch",
    "MatchingStrategy",
    "ExactMatchStrategy",
    "FuzzyToleranceStrategy",
    "ReferenceStrategy",
]
