"""Shared session handling and tenant-scoped lookups for the services."""

from typing import Optional

from sqlalchemy.orm import Session, sessionmaker

from ..config import ReconConfig
from ..models.entities import BankStatement, BankStatementItem, TreasuryMovement
from ..utils.exceptions import (
    ItemNotFoundError,
    MovementNotFoundError,
    StatementNotFoundError,
)


class ServiceBase:
    """
    Base for services working against the reconciliation store.

    Args:
        session_factory: SQLAlchemy session factory
        config: Application configuration (defaults when omitted)
        company_id: Tenant scope; records of other tenants are reported as not found
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        config: Optional[ReconConfig] = None,
        company_id: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.config = config or ReconConfig()
        self.company_id = company_id

    def _transaction(self):
        """Session with a transaction begun; commits on success, rolls back on error."""
        return self.session_factory.begin()

    def _get_statement(
        self, session: Session, statement_id: int, lock: bool = False
    ) -> BankStatement:
        query = session.query(BankStatement).filter(BankStatement.id == statement_id)
        if self.company_id is not None:
            query = query.filter(BankStatement.company_id == self.company_id)
        if lock:
            query = query.with_for_update()

        statement = query.one_or_none()
        if statement is None:
            raise StatementNotFoundError(statement_id)
        return statement

    def _get_item(
        self, session: Session, item_id: int, lock: bool = True
    ) -> BankStatementItem:
        query = session.query(BankStatementItem).filter(BankStatementItem.id == item_id)
        if self.company_id is not None:
            query = query.join(BankStatementItem.statement).filter(
                BankStatement.company_id == self.company_id
            )
        if lock:
            query = query.with_for_update(of=BankStatementItem)

        item = query.one_or_none()
        if item is None:
            raise ItemNotFoundError(item_id)
        return item

    def _get_movement(
        self,
        session: Session,
        movement_id: int,
        company_id: Optional[int] = None,
        lock: bool = True,
    ) -> TreasuryMovement:
        query = session.query(TreasuryMovement).filter(TreasuryMovement.id == movement_id)
        company_id = company_id if company_id is not None else self.company_id
        if company_id is not None:
            query = query.filter(TreasuryMovement.company_id == company_id)
        if lock:
            query = query.with_for_update()

        movement = query.one_or_none()
        if movement is None:
            raise MovementNotFoundError(movement_id)
        return movement
