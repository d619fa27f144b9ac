"""Statement import and maintenance operations."""

from decimal import Decimal
from typing import Any, Optional
import logging

from ..matching.executor import adjust_statement_counters
from ..models.entities import BankStatement, BankStatementItem, StatementStatus
from ..schemas import StatementImport
from ..utils.exceptions import ItemAlreadyReconciledError, ValidationError
from ..utils.logging_config import ReconciliationAuditEvent, log_reconciliation_event
from .base import ServiceBase

logger = logging.getLogger(__name__)


class StatementService(ServiceBase):
    """Creates statements from structured lines and maintains their settings."""

    def import_statement(self, payload: StatementImport, user_id: Optional[Any] = None) -> int:
        """
        Store a statement with all of its lines pending.

        Args:
            payload: Validated statement and lines
            user_id: Acting user, recorded for audit

        Returns:
            Id of the new statement

        Raises:
            ValidationError: If the payload targets another tenant
        """
        if self.company_id is not None and payload.company_id != self.company_id:
            raise ValidationError(
                f"Statement belongs to company {payload.company_id}, "
                f"service is scoped to {self.company_id}"
            )

        defaults = self.config.tolerance
        tolerance_amount = (
            payload.tolerance_amount
            if payload.tolerance_amount is not None
            else defaults.amount
        )
        tolerance_days = (
            payload.tolerance_days if payload.tolerance_days is not None else defaults.days
        )

        with self._transaction() as session:
            statement = BankStatement(
                bank_account_id=payload.bank_account_id,
                company_id=payload.company_id,
                period=payload.period,
                opening_balance=payload.opening_balance,
                closing_balance=payload.closing_balance,
                tolerance_amount=tolerance_amount,
                tolerance_days=tolerance_days,
                status=StatementStatus.IMPORTED,
                items_reconciled=0,
                items_pending=len(payload.items),
                items_suspense=0,
            )
            for line in sorted(payload.items, key=lambda l: l.line_number):
                statement.items.append(
                    BankStatementItem(
                        line_number=line.line_number,
                        date=line.date,
                        value_date=line.value_date,
                        description=line.description,
                        reference=line.reference,
                        debit=line.debit,
                        credit=line.credit,
                        balance=line.balance,
                    )
                )
            session.add(statement)
            session.flush()
            statement_id = statement.id

        logger.info(
            f"Imported statement {statement_id} for account {payload.bank_account_id} "
            f"with {len(payload.items)} lines"
        )
        log_reconciliation_event(
            ReconciliationAuditEvent.STATEMENT_IMPORTED,
            {
                "statement_id": statement_id,
                "bank_account_id": payload.bank_account_id,
                "items": len(payload.items),
            },
            actor=user_id,
        )
        return statement_id

    def mark_as_suspense(
        self, item_id: int, notes: Optional[str] = None, user_id: Optional[Any] = None
    ) -> None:
        """
        Park an unreconciled line for manual review.

        Args:
            item_id: Statement line
            notes: Optional reviewer note
            user_id: Acting user

        Raises:
            ItemNotFoundError, ItemAlreadyReconciledError
        """
        with self._transaction() as session:
            item = self._get_item(session, item_id)
            if item.reconciled:
                raise ItemAlreadyReconciledError(item_id)

            if notes:
                item.suspense_notes = notes
            if item.has_open_suspense:
                session.flush()
                return

            # Parking again reopens a previously resolved line
            item.is_suspense = True
            item.suspense_resolved = False
            item.suspense_resolved_by = None
            item.suspense_resolved_at = None
            adjust_statement_counters(session, item.statement, suspense=1)

        log_reconciliation_event(
            ReconciliationAuditEvent.SUSPENSE_MARKED,
            {"item_id": item_id, "notes": notes},
            actor=user_id,
        )

    def update_tolerances(
        self,
        statement_id: int,
        amount: Optional[Decimal] = None,
        days: Optional[int] = None,
        user_id: Optional[Any] = None,
    ) -> BankStatement:
        """
        Change the tolerance window used by later automatic runs.

        Args:
            statement_id: Statement
            amount: New amount tolerance (unchanged when None)
            days: New day tolerance (unchanged when None)
            user_id: Acting user

        Returns:
            The updated statement (detached)

        Raises:
            StatementNotFoundError, ValidationError
        """
        if amount is not None:
            amount = Decimal(str(amount))
            if not amount.is_finite():
                raise ValidationError(f"Amount tolerance must be a finite number: {amount}")
            if amount < 0:
                raise ValidationError(f"Amount tolerance must not be negative: {amount}")
        if days is not None and days < 0:
            raise ValidationError(f"Day tolerance must not be negative: {days}")

        with self._transaction() as session:
            statement = self._get_statement(session, statement_id, lock=True)
            if amount is not None:
                statement.tolerance_amount = Decimal(str(amount))
            if days is not None:
                statement.tolerance_days = days
            session.flush()

        log_reconciliation_event(
            ReconciliationAuditEvent.TOLERANCES_UPDATED,
            {
                "statement_id": statement_id,
                "tolerance_amount": str(statement.tolerance_amount),
                "tolerance_days": statement.tolerance_days,
            },
            actor=user_id,
        )
        return statement
