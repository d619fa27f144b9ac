"""Logging configuration for the reconciliation engine."""

from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional, Union
import logging

ROOT_LOGGER = "treasury_recon"
DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
FILE_LOG_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"
)

audit_logger = logging.getLogger(f"{ROOT_LOGGER}.audit")


class ReconciliationAuditEvent:
    """Audit event types for reconciliation operations."""

    RUN_STARTED = "reconciliation.run_started"
    RUN_COMPLETED = "reconciliation.run_completed"
    MATCH_CREATED = "reconciliation.match_created"
    MATCH_REMOVED = "reconciliation.match_removed"
    SUSPENSE_MARKED = "reconciliation.suspense_marked"
    SUSPENSE_RESOLVED = "reconciliation.suspense_resolved"
    MOVEMENT_CREATED = "reconciliation.movement_created"
    STATEMENT_IMPORTED = "reconciliation.statement_imported"
    TOLERANCES_UPDATED = "reconciliation.tolerances_updated"


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[Path] = None,
    log_format: Optional[str] = None,
) -> logging.Logger:
    """
    Configure the ``treasury_recon`` logger tree.

    Service modules and the audit trail log under this tree, so one call
    covers both. Calling it again replaces the handlers of the previous call.

    Args:
        level: Level as a number or a name from the config file ("DEBUG", "info")
        log_file: Optional path of a rotating log file, which always records DEBUG
        log_format: Console format (DEFAULT_LOG_FORMAT when omitted)

    Returns:
        The configured root logger of the package
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(logging.DEBUG if log_file else level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(log_format or DEFAULT_LOG_FORMAT))
    logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT))
        logger.addHandler(file_handler)

    return logger


def log_reconciliation_event(
    event_type: str,
    details: dict[str, Any],
    actor: Optional[Any] = None,
) -> None:
    """
    Emit an audit record for a reconciliation operation.

    Args:
        event_type: One of the ReconciliationAuditEvent constants
        details: Structured event payload (ids, match type, counters)
        actor: Acting user id, or None for automatic runs
    """
    audit_logger.info(
        f"Reconciliation event: {event_type}",
        extra={
            "event": event_type,
            "details": details,
            "actor": actor if actor is not None else "system",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )
