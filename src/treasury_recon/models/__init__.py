"""Data models for reconciliation."""

from .entities import (
    BankStatement,
    BankStatementItem,
    TreasuryMovement,
    StatementStatus,
    MovementDirection,
    MatchType,
)
from .results import (
    Tolerance,
    MatchCandidate,
    ItemMatchResult,
    RunReport,
    MatchResult,
    ReconciliationSummary,
    MovementFilters,
)

__all__ = [
    "BankStatement",
    "BankStatementItem",
    "TreasuryMovement",
    "StatementStatus",
    "MovementDirection",
    "MatchType",
    "Tolerance",
    "MatchCandidate",
    "ItemMatchResult",
    "RunReport",
    "MatchResult",
    "ReconciliationSummary",
    "MovementFilters",
]
