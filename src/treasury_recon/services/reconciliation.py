"""
Reconciliation service.

Core operations of the reconciliation engine:
- Automatic matching of a whole statement (EXACT -> FUZZY -> REFERENCE)
- Manual match / unmatch
- Suspense resolution and movement creation from suspense lines
- Read-only queries (unreconciled movements, statement summary)

Every mutating operation runs in its own transaction. The automatic run
commits one transaction per statement line plus a final one for the
statement aggregates, so an interrupted run keeps its committed matches and
can be retried on the remainder.
"""

from datetime import datetime, timezone
from typing import Any, Optional
import logging

from sqlalchemy.orm import Session, sessionmaker

from ..config import ReconConfig
from ..matching.executor import (
    adjust_statement_counters,
    derive_status,
    execute_match,
    execute_unmatch,
)
from ..matching.matcher import Matcher, build_strategies, load_candidate_pool
from ..models.entities import (
    BankStatement,
    BankStatementItem,
    MatchType,
    TreasuryMovement,
)
from ..models.results import (
    ItemMatchResult,
    MatchResult,
    MovementFilters,
    ReconciliationSummary,
    RunReport,
    Tolerance,
)
from ..utils.exceptions import (
    AlreadyReconciledError,
    ItemAlreadyReconciledError,
    MovementAlreadyReconciledError,
    ValidationError,
)
from ..utils.logging_config import ReconciliationAuditEvent, log_reconciliation_event
from ..utils.normalize import infer_channel
from .base import ServiceBase

logger = logging.getLogger(__name__)

MANUAL_MATCH_REASON = "Conciliado manualmente"


class ReconciliationService(ServiceBase):
    """
    Service reconciling bank statement lines against treasury movements.

    Args:
        session_factory: SQLAlchemy session factory
        config: Application configuration (defaults when omitted)
        company_id: Tenant scope; records of other tenants are reported as not found
        matcher: Matcher to use (built from the matching settings when omitted)
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        config: Optional[ReconConfig] = None,
        company_id: Optional[int] = None,
        matcher: Optional[Matcher] = None,
    ):
        super().__init__(session_factory, config, company_id)
        self.matcher = matcher or Matcher(build_strategies(self.config.matching))

    # ------------------------------------------------------------------
    # Statement run
    # ------------------------------------------------------------------

    def auto_match_statement_items(self, statement_id: int) -> RunReport:
        """
        Match every open line of a statement against the treasury ledger.

        Lines with no counterpart are flagged as suspense and stay pending.

        Args:
            statement_id: Statement to process

        Returns:
            RunReport with per-line outcomes

        Raises:
            StatementNotFoundError: If the statement does not exist
        """
        start_time = datetime.now()

        with self.session_factory() as session:
            statement = self._get_statement(session, statement_id)
            tolerance = Tolerance(
                amount=statement.tolerance_amount,
                days=statement.tolerance_days,
            )
            bank_account_id = statement.bank_account_id
            company_id = statement.company_id
            item_ids = [
                row.id
                for row in session.query(BankStatementItem.id)
                .filter(
                    BankStatementItem.statement_id == statement_id,
                    BankStatementItem.reconciled.is_(False),
                    BankStatementItem.suspense_resolved.is_(False),
                )
                .order_by(BankStatementItem.line_number, BankStatementItem.id)
            ]

        logger.info(
            f"Starting auto-match for statement {statement_id}: "
            f"{len(item_ids)} open lines"
        )
        log_reconciliation_event(
            ReconciliationAuditEvent.RUN_STARTED,
            {"statement_id": statement_id, "open_items": len(item_ids)},
        )

        report = RunReport(statement_id=statement_id, started_at=start_time)

        for item_id in item_ids:
            result = self._process_item(
                item_id, tolerance, bank_account_id, company_id
            )
            if result is None:
                continue

            report.results.append(result)
            if result.is_matched:
                report.matched += 1
            else:
                report.unmatched += 1
                report.suspense += 1

        report.total_items = len(report.results)

        # Runs on every call so a statement without open lines is closed too
        with self._transaction() as session:
            statement = self._get_statement(session, statement_id, lock=True)
            self._recompute_counters(session, statement)

        report.processing_time_seconds = (datetime.now() - start_time).total_seconds()

        logger.info(
            f"Auto-match complete for statement {statement_id} in "
            f"{report.processing_time_seconds:.2f}s: {report.matched} matched, "
            f"{report.unmatched} sent to suspense"
        )
        log_reconciliation_event(
            ReconciliationAuditEvent.RUN_COMPLETED,
            {
                "statement_id": statement_id,
                "total_items": report.total_items,
                "matched": report.matched,
                "suspense": report.suspense,
            },
        )
        return report

    def _process_item(
        self,
        item_id: int,
        tolerance: Tolerance,
        bank_account_id: int,
        company_id: int,
    ) -> Optional[ItemMatchResult]:
        """
        Match one statement line in its own transaction.

        Returns:
            The line outcome, or None when another writer closed the line
            since the run started
        """
        try:
            with self._transaction() as session:
                item = self._get_open_item(session, item_id)
                if item is None:
                    return None

                pool = load_candidate_pool(
                    session, bank_account_id, company_id, item.direction
                )
                candidate = self.matcher.find_match(item, pool, tolerance)

                if candidate is None:
                    self._flag_suspense(session, item)
                    return ItemMatchResult(item_id=item_id)

                movement = next(m for m in pool if m.id == candidate.movement_id)
                execute_match(
                    session,
                    item,
                    movement,
                    candidate.match_type,
                    candidate.confidence,
                )

            log_reconciliation_event(
                ReconciliationAuditEvent.MATCH_CREATED,
                {
                    "item_id": item_id,
                    "movement_id": candidate.movement_id,
                    "match_type": candidate.match_type.value,
                    "confidence": candidate.confidence,
                    "reason": candidate.reason,
                },
            )
            return ItemMatchResult(
                item_id=item_id,
                match_type=candidate.match_type,
                movement_id=candidate.movement_id,
                confidence=candidate.confidence,
            )

        except AlreadyReconciledError as e:
            logger.warning(
                f"Item {item_id}: reconciled concurrently ({e}); sending to suspense"
            )

        with self._transaction() as session:
            item = self._get_open_item(session, item_id)
            if item is None:
                return None
            self._flag_suspense(session, item)
        return ItemMatchResult(item_id=item_id)

    def _get_open_item(
        self, session: Session, item_id: int
    ) -> Optional[BankStatementItem]:
        item = (
            session.query(BankStatementItem)
            .filter(BankStatementItem.id == item_id)
            .with_for_update()
            .one_or_none()
        )
        if item is None or item.reconciled or item.suspense_resolved:
            return None
        return item

    def _flag_suspense(self, session: Session, item: BankStatementItem) -> None:
        if item.has_open_suspense:
            return
        item.is_suspense = True
        adjust_statement_counters(session, item.statement, suspense=1)
        logger.debug(f"Item {item.id} flagged as suspense")

    def _recompute_counters(self, session: Session, statement: BankStatement) -> None:
        """Rebuild the statement aggregates from its lines."""
        rows = (
            session.query(
                BankStatementItem.reconciled,
                BankStatementItem.is_suspense,
                BankStatementItem.suspense_resolved,
            )
            .filter(BankStatementItem.statement_id == statement.id)
            .all()
        )
        reconciled = sum(1 for row in rows if row.reconciled)

        statement.items_reconciled = reconciled
        statement.items_pending = len(rows) - reconciled
        statement.items_suspense = sum(
            1
            for row in rows
            if row.is_suspense and not row.suspense_resolved and not row.reconciled
        )
        statement.status = derive_status(statement.items_pending)

    # ------------------------------------------------------------------
    # Manual overrides
    # ------------------------------------------------------------------

    def manual_match(
        self,
        item_id: int,
        movement_id: int,
        user_id: Any,
        notes: Optional[str] = None,
    ) -> MatchResult:
        """
        Force a link between a statement line and a movement.

        Args:
            item_id: Statement line
            movement_id: Treasury movement
            user_id: Acting user, recorded for audit
            notes: Optional note stored on the line

        Returns:
            MatchResult with MANUAL type and confidence 1.0

        Raises:
            ItemNotFoundError, ItemAlreadyReconciledError,
            MovementNotFoundError, MovementAlreadyReconciledError
        """
        with self._transaction() as session:
            item = self._get_item(session, item_id)
            if item.reconciled:
                raise ItemAlreadyReconciledError(item_id)

            # Movements of another tenant do not exist for this line
            movement = self._get_movement(
                session, movement_id, company_id=item.statement.company_id
            )
            if movement.reconciled:
                raise MovementAlreadyReconciledError(movement_id)

            execute_match(
                session,
                item,
                movement,
                MatchType.MANUAL,
                1.0,
                user_id=user_id,
                notes=notes,
            )

        log_reconciliation_event(
            ReconciliationAuditEvent.MATCH_CREATED,
            {
                "item_id": item_id,
                "movement_id": movement_id,
                "match_type": MatchType.MANUAL.value,
                "confidence": 1.0,
                "notes": notes,
            },
            actor=user_id,
        )
        return MatchResult(
            item_id=item_id,
            movement_id=movement_id,
            match_type=MatchType.MANUAL,
            confidence=1.0,
            reason=MANUAL_MATCH_REASON,
        )

    def unmatch(self, item_id: int, user_id: Optional[Any] = None) -> None:
        """
        Undo the link of a reconciled statement line.

        Args:
            item_id: Statement line
            user_id: Acting user, recorded for audit

        Raises:
            ItemNotFoundError, ItemNotReconciledError
        """
        with self._transaction() as session:
            item = self._get_item(session, item_id)
            previous_type = item.match_type
            movement_id = execute_unmatch(session, item)

        log_reconciliation_event(
            ReconciliationAuditEvent.MATCH_REMOVED,
            {
                "item_id": item_id,
                "movement_id": movement_id,
                "match_type": previous_type.value if previous_type else None,
            },
            actor=user_id,
        )

    def resolve_suspense(self, item_id: int, reason: str, user_id: Any) -> None:
        """
        Close a suspense line administratively without creating a movement.

        The line stays unreconciled; only the resolution is recorded.

        Args:
            item_id: Statement line
            reason: Human explanation of the resolution
            user_id: Acting user

        Raises:
            ItemNotFoundError, ItemAlreadyReconciledError,
            ValidationError: If the reason is blank
        """
        if not reason or not reason.strip():
            raise ValidationError("A reason is required to resolve a suspense line")

        with self._transaction() as session:
            item = self._get_item(session, item_id)
            if item.reconciled:
                raise ItemAlreadyReconciledError(item_id)
            had_open_suspense = item.has_open_suspense

            item.suspense_resolved = True
            item.suspense_notes = reason
            item.suspense_resolved_by = user_id
            item.suspense_resolved_at = datetime.now(timezone.utc)

            if had_open_suspense:
                adjust_statement_counters(session, item.statement, suspense=-1)
            else:
                session.flush()

        log_reconciliation_event(
            ReconciliationAuditEvent.SUSPENSE_RESOLVED,
            {"item_id": item_id, "reason": reason},
            actor=user_id,
        )

    def create_movement_from_suspense(
        self,
        item_id: int,
        category: str,
        description: str,
        user_id: Any,
    ) -> int:
        """
        Record a new treasury movement for a statement line and link both.

        Used for bank-originated entries (fees, interest) that were never
        recorded in the ledger.

        Args:
            item_id: Statement line
            category: Reference type of the new movement
            description: Description of the new movement
            user_id: Acting user

        Returns:
            Id of the created movement

        Raises:
            ItemNotFoundError, ItemAlreadyReconciledError
        """
        suspense_config = self.config.suspense

        with self._transaction() as session:
            item = self._get_item(session, item_id)
            if item.reconciled:
                raise ItemAlreadyReconciledError(item_id)

            statement = item.statement
            had_open_suspense = item.has_open_suspense
            channel = infer_channel(
                item.description,
                suspense_config.channel_keywords,
                suspense_config.default_channel,
            )

            movement = TreasuryMovement(
                bank_account_id=statement.bank_account_id,
                company_id=statement.company_id,
                direction=item.direction,
                amount=item.amount,
                date=item.date,
                value_date=item.value_date,
                channel=channel,
                reference=item.reference,
                reference_type=category,
                description=description,
                reconciled=True,
                statement_item_id=item.id,
                created_by=user_id,
            )
            session.add(movement)
            session.flush()

            item.reconciled = True
            item.match_type = MatchType.MANUAL
            item.confidence = 1.0
            item.treasury_movement_id = movement.id
            item.is_suspense = False
            item.matched_by = user_id
            item.matched_at = datetime.now(timezone.utc)
            item.match_notes = description

            adjust_statement_counters(
                session,
                statement,
                reconciled=1,
                pending=-1,
                suspense=-1 if had_open_suspense else 0,
            )
            movement_id = movement.id

        logger.info(
            f"Created {movement.direction.value} movement {movement_id} "
            f"({channel}) from statement item {item_id}"
        )
        log_reconciliation_event(
            ReconciliationAuditEvent.MOVEMENT_CREATED,
            {
                "item_id": item_id,
                "movement_id": movement_id,
                "channel": channel,
                "category": category,
            },
            actor=user_id,
        )
        return movement_id

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_unmatched_movements(
        self,
        bank_account_id: int,
        filters: Optional[MovementFilters] = None,
    ) -> list[TreasuryMovement]:
        """
        List unreconciled movements of a bank account, newest first.

        Args:
            bank_account_id: Bank account
            filters: Optional inclusive date / direction / amount filters

        Returns:
            Detached movement records
        """
        filters = filters or MovementFilters()

        with self.session_factory() as session:
            query = session.query(TreasuryMovement).filter(
                TreasuryMovement.bank_account_id == bank_account_id,
                TreasuryMovement.reconciled.is_(False),
            )
            if self.company_id is not None:
                query = query.filter(TreasuryMovement.company_id == self.company_id)
            if filters.date_from is not None:
                query = query.filter(TreasuryMovement.date >= filters.date_from)
            if filters.date_to is not None:
                query = query.filter(TreasuryMovement.date <= filters.date_to)
            if filters.direction is not None:
                query = query.filter(TreasuryMovement.direction == filters.direction)
            if filters.amount_min is not None:
                query = query.filter(TreasuryMovement.amount >= filters.amount_min)
            if filters.amount_max is not None:
                query = query.filter(TreasuryMovement.amount <= filters.amount_max)

            return query.order_by(
                TreasuryMovement.date.desc(), TreasuryMovement.id.desc()
            ).all()

    def get_reconciliation_summary(self, statement_id: int) -> ReconciliationSummary:
        """
        Summarize the reconciliation state of a statement.

        Args:
            statement_id: Statement

        Returns:
            ReconciliationSummary with a per-match-type breakdown

        Raises:
            StatementNotFoundError: If the statement does not exist
        """
        with self.session_factory() as session:
            self._get_statement(session, statement_id)
            items = (
                session.query(BankStatementItem)
                .filter(BankStatementItem.statement_id == statement_id)
                .all()
            )

        summary = ReconciliationSummary(statement_id=statement_id, total_items=len(items))
        for item in items:
            if item.reconciled:
                summary.matched += 1
                if item.match_type is not None:
                    summary.match_breakdown[item.match_type] += 1
            elif item.suspense_resolved:
                summary.suspense_resolved += 1
            elif item.is_suspense:
                summary.suspense += 1

        summary.pending = summary.total_items - summary.matched
        return summary
