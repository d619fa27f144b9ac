"""Bank statement reconciliation against the treasury ledger."""

from .config import ReconConfig, load_config
from .database import create_db_engine, create_session_factory, init_db
from .models import (
    BankStatement,
    BankStatementItem,
    TreasuryMovement,
    StatementStatus,
    MovementDirection,
    MatchType,
    MovementFilters,
    RunReport,
    MatchResult,
    ReconciliationSummary,
)
from .services import ReconciliationService, StatementService

__version__ = "0.1.0"

__all__ = [
    "ReconConfig",
    "load_config",
    "create_db_engine",
    "create_session_factory",
    "init_db",
    "BankStatement",
    "BankStatementItem",
    "TreasuryMovement",
    "StatementStatus",
    "MovementDirection",
    "MatchType",
    "MovementFilters",
    "RunReport",
    "MatchResult",
    "ReconciliationSummary",
    "ReconciliationService",
    "StatementService",
]
