"""Utility modules."""

from .exceptions import (
    ReconciliationError,
    NotFoundError,
    StatementNotFoundError,
    ItemNotFoundError,
    MovementNotFoundError,
    ConflictError,
    AlreadyReconciledError,
    ItemAlreadyReconciledError,
    MovementAlreadyReconciledError,
    ItemNotReconciledError,
    ConfigurationError,
    ValidationError,
)
from .logging_config import (
    ReconciliationAuditEvent,
    log_reconciliation_event,
    setup_logging,
)

__all__ = [
    "ReconciliationError",
    "NotFoundError",
    "StatementNotFoundError",
    "ItemNotFoundError",
    "MovementNotFoundError",
    "ConflictError",
    "AlreadyReconciledError",
    "ItemAlreadyReconciledError",
    "MovementAlreadyReconciledError",
    "ItemNotReconciledError",
    "ConfigurationError",
    "ValidationError",
    "ReconciliationAuditEvent",
    "log_reconciliation_event",
    "setup_logging",
]
