"""
Match executor.

Applies a decided match to a statement line / movement pair and keeps the
statement aggregates in step. Every function here works inside the caller's
transaction; committing or rolling back is the caller's job.
"""

from datetime import datetime, timezone
from typing import Any, Optional
import logging

from sqlalchemy.orm import Session

from ..models.entities import (
    BankStatement,
    BankStatementItem,
    MatchType,
    StatementStatus,
    TreasuryMovement,
)
from ..utils.exceptions import (
    ItemAlreadyReconciledError,
    ItemNotReconciledError,
    MovementAlreadyReconciledError,
)

logger = logging.getLogger(__name__)


def derive_status(items_pending: int) -> StatementStatus:
    """Status implied by the pending counter; never IMPORTED once touched."""
    if items_pending == 0:
        return StatementStatus.COMPLETADA
    return StatementStatus.EN_PROCESO


def adjust_statement_counters(
    session: Session,
    statement: BankStatement,
    reconciled: int = 0,
    pending: int = 0,
    suspense: int = 0,
) -> BankStatement:
    """
    Apply counter deltas to a statement and re-derive its status.

    Deltas are written as SQL increments so concurrent writers do not
    overwrite each other's counts.

    Args:
        session: Open session
        statement: Statement to update
        reconciled: Delta for items_reconciled
        pending: Delta for items_pending
        suspense: Delta for items_suspense

    Returns:
        The updated statement
    """
    if reconciled:
        statement.items_reconciled = BankStatement.items_reconciled + reconciled
    if pending:
        statement.items_pending = BankStatement.items_pending + pending
    if suspense:
        statement.items_suspense = BankStatement.items_suspense + suspense
    session.flush()

    # Expression-assigned attributes are expired by the flush and reload here
    statement.status = derive_status(statement.items_pending)
    session.flush()
    return statement


def execute_match(
    session: Session,
    item: BankStatementItem,
    movement: TreasuryMovement,
    match_type: MatchType,
    confidence: float,
    user_id: Optional[Any] = None,
    notes: Optional[str] = None,
) -> None:
    """
    Link a statement line and a movement.

    Args:
        session: Open session, inside the caller's transaction
        item: Statement line to reconcile
        movement: Movement to reconcile
        match_type: Provenance of the match
        confidence: Match confidence (0.0-1.0)
        user_id: Acting user for manual matches
        notes: Optional free-text note stored on the line

    Raises:
        ItemAlreadyReconciledError: The line is already linked
        MovementAlreadyReconciledError: The movement is already linked
    """
    if item.reconciled:
        raise ItemAlreadyReconciledError(item.id)
    if movement.reconciled:
        raise MovementAlreadyReconciledError(movement.id)

    had_open_suspense = item.has_open_suspense

    # Conditional updates: a concurrent writer that got there first leaves
    # zero rows to claim.
    claimed = (
        session.query(TreasuryMovement)
        .filter(
            TreasuryMovement.id == movement.id,
            TreasuryMovement.reconciled.is_(False),
        )
        .update(
            {
                TreasuryMovement.reconciled: True,
                TreasuryMovement.statement_item_id: item.id,
            },
            synchronize_session="fetch",
        )
    )
    if not claimed:
        raise MovementAlreadyReconciledError(movement.id)

    claimed = (
        session.query(BankStatementItem)
        .filter(
            BankStatementItem.id == item.id,
            BankStatementItem.reconciled.is_(False),
        )
        .update(
            {
                BankStatementItem.reconciled: True,
                BankStatementItem.match_type: match_type,
                BankStatementItem.confidence: confidence,
                BankStatementItem.treasury_movement_id: movement.id,
                BankStatementItem.is_suspense: False,
                BankStatementItem.matched_by: user_id,
                BankStatementItem.matched_at: datetime.now(timezone.utc),
                BankStatementItem.match_notes: notes,
            },
            synchronize_session="fetch",
        )
    )
    if not claimed:
        raise ItemAlreadyReconciledError(item.id)

    adjust_statement_counters(
        session,
        item.statement,
        reconciled=1,
        pending=-1,
        suspense=-1 if had_open_suspense else 0,
    )

    logger.debug(
        f"Linked item {item.id} with movement {movement.id} "
        f"({match_type.value}, {confidence:.2f})"
    )


def execute_unmatch(session: Session, item: BankStatementItem) -> Optional[int]:
    """
    Undo the link of a reconciled statement line.

    Args:
        session: Open session, inside the caller's transaction
        item: Reconciled statement line

    Returns:
        Id of the movement that was released, or None when the line had none

    Raises:
        ItemNotReconciledError: The line is not reconciled
    """
    if not item.reconciled:
        raise ItemNotReconciledError(item.id)

    movement_id = item.treasury_movement_id
    if movement_id is not None:
        session.query(TreasuryMovement).filter(
            TreasuryMovement.id == movement_id
        ).update(
            {
                TreasuryMovement.reconciled: False,
                TreasuryMovement.statement_item_id: None,
            },
            synchronize_session="fetch",
        )

    released = (
        session.query(BankStatementItem)
        .filter(
            BankStatementItem.id == item.id,
            BankStatementItem.reconciled.is_(True),
        )
        .update(
            {
                BankStatementItem.reconciled: False,
                BankStatementItem.match_type: None,
                BankStatementItem.confidence: None,
                BankStatementItem.treasury_movement_id: None,
                BankStatementItem.matched_by: None,
                BankStatementItem.matched_at: None,
                BankStatementItem.match_notes: None,
            },
            synchronize_session="fetch",
        )
    )
    if not released:
        raise ItemNotReconciledError(item.id)

    adjust_statement_counters(session, item.statement, reconciled=-1, pending=1)

    logger.debug(f"Unlinked item {item.id} from movement {movement_id}")
    return movement_id
