"""
Pytest configuration and fixtures.
"""
from datetime import date
from decimal import Decimal
from typing import Callable, Generator, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from treasury_recon.database import Base, create_session_factory
from treasury_recon.models import entities  # noqa: F401
from treasury_recon.models.entities import (
    BankStatement,
    BankStatementItem,
    MovementDirection,
    StatementStatus,
    TreasuryMovement,
)
from treasury_recon.services import ReconciliationService, StatementService

BANK_ACCOUNT_ID = 10
COMPANY_ID = 1


@pytest.fixture(scope="function")
def engine() -> Generator[Engine, None, None]:
    """Create a fresh in-memory database for each test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker:
    return create_session_factory(engine)


@pytest.fixture
def service(session_factory: sessionmaker) -> ReconciliationService:
    return ReconciliationService(session_factory)


@pytest.fixture
def statement_service(session_factory: sessionmaker) -> StatementService:
    return StatementService(session_factory)


@pytest.fixture
def make_statement(session_factory: sessionmaker) -> Callable[..., int]:
    """
    Factory creating a statement with its lines, all pending.

    Lines are dicts with ``date`` and either ``debit`` or ``credit``;
    ``reference`` and ``description`` are optional.
    """

    def _make(
        items: Optional[list[dict]] = None,
        tolerance_amount: str = "0.01",
        tolerance_days: int = 3,
        bank_account_id: int = BANK_ACCOUNT_ID,
        company_id: int = COMPANY_ID,
    ) -> int:
        items = items or []
        with session_factory.begin() as session:
            statement = BankStatement(
                bank_account_id=bank_account_id,
                company_id=company_id,
                tolerance_amount=Decimal(tolerance_amount),
                tolerance_days=tolerance_days,
                status=StatementStatus.IMPORTED,
                items_reconciled=0,
                items_pending=len(items),
                items_suspense=0,
            )
            for number, line in enumerate(items, start=1):
                statement.items.append(
                    BankStatementItem(
                        line_number=number,
                        date=line["date"],
                        debit=Decimal(str(line.get("debit", "0"))),
                        credit=Decimal(str(line.get("credit", "0"))),
                        reference=line.get("reference"),
                        description=line.get("description", ""),
                    )
                )
            session.add(statement)
            session.flush()
            return statement.id

    return _make


@pytest.fixture
def make_movement(session_factory: sessionmaker) -> Callable[..., int]:
    """Factory creating an unreconciled treasury movement."""

    def _make(
        amount: str,
        on: date,
        direction: MovementDirection = MovementDirection.EGRESO,
        reference: Optional[str] = None,
        bank_account_id: int = BANK_ACCOUNT_ID,
        company_id: int = COMPANY_ID,
        channel: str = "TRANSFERENCIA",
    ) -> int:
        with session_factory.begin() as session:
            movement = TreasuryMovement(
                bank_account_id=bank_account_id,
                company_id=company_id,
                direction=direction,
                amount=Decimal(str(amount)),
                date=on,
                channel=channel,
                reference=reference,
                reconciled=False,
            )
            session.add(movement)
            session.flush()
            return movement.id

    return _make


@pytest.fixture
def load(session_factory: sessionmaker) -> Callable:
    """Fetch a fresh copy of a record by class and id."""

    def _load(model, record_id):
        with session_factory() as session:
            return session.get(model, record_id)

    return _load


def item_ids(session_factory: sessionmaker, statement_id: int) -> list[int]:
    with session_factory() as session:
        return [
            row.id
            for row in session.query(BankStatementItem.id)
            .filter(BankStatementItem.statement_id == statement_id)
            .order_by(BankStatementItem.line_number)
        ]


@pytest.fixture
def items_of(session_factory: sessionmaker) -> Callable[[int], list[int]]:
    return lambda statement_id: item_ids(session_factory, statement_id)
