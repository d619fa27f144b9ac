"""ORM entities for bank statements, statement lines and treasury movements."""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Enum as SQLEnum,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from ..database import Base

ZERO = Decimal("0")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StatementStatus(str, Enum):
    """Lifecycle status of an imported bank statement."""

    IMPORTED = "IMPORTED"
    EN_PROCESO = "EN_PROCESO"
    COMPLETADA = "COMPLETADA"


class MovementDirection(str, Enum):
    """Direction of a treasury movement."""

    INGRESO = "INGRESO"  # Money in
    EGRESO = "EGRESO"  # Money out


class MatchType(str, Enum):
    """Provenance of a statement line / movement link."""

    EXACT = "EXACT"
    FUZZY = "FUZZY"
    REFERENCE = "REFERENCE"
    MANUAL = "MANUAL"


class BankStatement(Base):
    """One imported statement for one bank account."""

    __tablename__ = "bank_statements"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Scope
    bank_account_id = Column(Integer, nullable=False, index=True)
    company_id = Column(Integer, nullable=False, index=True)
    period = Column(String(7), nullable=True)  # YYYY-MM

    # Balances as reported by the bank
    opening_balance = Column(Numeric(15, 2), nullable=False, default=ZERO)
    closing_balance = Column(Numeric(15, 2), nullable=False, default=ZERO)

    # Tolerance window for FUZZY matching
    tolerance_amount = Column(Numeric(15, 2), nullable=False, default=Decimal("0.01"))
    tolerance_days = Column(Integer, nullable=False, default=3)

    status = Column(
        SQLEnum(StatementStatus, native_enum=False, length=20),
        nullable=False,
        default=StatementStatus.IMPORTED,
    )

    # Aggregates maintained together with every line mutation
    items_reconciled = Column(Integer, nullable=False, default=0)
    items_pending = Column(Integer, nullable=False, default=0)
    items_suspense = Column(Integer, nullable=False, default=0)

    imported_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=_utcnow)

    items = relationship(
        "BankStatementItem",
        back_populates="statement",
        cascade="all, delete-orphan",
        order_by="BankStatementItem.line_number",
    )

    def __repr__(self) -> str:
        return (
            f"<BankStatement id={self.id} account={self.bank_account_id} "
            f"status={self.status}>"
        )


class BankStatementItem(Base):
    """A single debit or credit line of a bank statement."""

    __tablename__ = "bank_statement_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    statement_id = Column(
        Integer, ForeignKey("bank_statements.id", ondelete="CASCADE"), nullable=False, index=True
    )
    line_number = Column(Integer, nullable=False, default=0)

    date = Column(Date, nullable=False)
    value_date = Column(Date, nullable=True)
    debit = Column(Numeric(15, 2), nullable=False, default=ZERO)
    credit = Column(Numeric(15, 2), nullable=False, default=ZERO)
    balance = Column(Numeric(15, 2), nullable=True)
    reference = Column(String(100), nullable=True)
    description = Column(String(500), nullable=False, default="")

    # Reconciliation state
    reconciled = Column(Boolean, nullable=False, default=False)
    match_type = Column(SQLEnum(MatchType, native_enum=False, length=20), nullable=True)
    confidence = Column(Float, nullable=True)
    treasury_movement_id = Column(
        Integer, ForeignKey("treasury_movements.id", ondelete="SET NULL"), nullable=True
    )
    matched_by = Column(Integer, nullable=True)
    matched_at = Column(DateTime(timezone=True), nullable=True)
    match_notes = Column(Text, nullable=True)

    # Suspense handling
    is_suspense = Column(Boolean, nullable=False, default=False)
    suspense_resolved = Column(Boolean, nullable=False, default=False)
    suspense_notes = Column(Text, nullable=True)
    suspense_resolved_by = Column(Integer, nullable=True)
    suspense_resolved_at = Column(DateTime(timezone=True), nullable=True)

    statement = relationship("BankStatement", back_populates="items")

    __table_args__ = (
        Index("ix_statement_items_statement_reconciled", "statement_id", "reconciled"),
    )

    @property
    def amount(self) -> Decimal:
        """Line amount; a line is either a debit or a credit."""
        debit = self.debit or ZERO
        return debit if debit > ZERO else (self.credit or ZERO)

    @property
    def direction(self) -> MovementDirection:
        """Debit lines leave the account, credit lines enter it."""
        if (self.debit or ZERO) > ZERO:
            return MovementDirection.EGRESO
        return MovementDirection.INGRESO

    @property
    def has_open_suspense(self) -> bool:
        return bool(self.is_suspense) and not self.suspense_resolved

    def __repr__(self) -> str:
        return (
            f"<BankStatementItem id={self.id} date={self.date} "
            f"amount={self.amount} reconciled={self.reconciled}>"
        )


class TreasuryMovement(Base):
    """An internally recorded cash movement on a bank account."""

    __tablename__ = "treasury_movements"

    id = Column(Integer, primary_key=True, autoincrement=True)
    bank_account_id = Column(Integer, nullable=False, index=True)
    company_id = Column(Integer, nullable=False, index=True)

    direction = Column(SQLEnum(MovementDirection, native_enum=False, length=10), nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)
    date = Column(Date, nullable=False)
    value_date = Column(Date, nullable=True)
    channel = Column(String(50), nullable=False, default="TRANSFERENCIA")
    reference = Column(String(100), nullable=True)
    reference_type = Column(String(50), nullable=True)
    description = Column(String(500), nullable=True)

    reconciled = Column(Boolean, nullable=False, default=False)
    # Back-reference to the linked line, written and cleared with the line's own link
    statement_item_id = Column(Integer, nullable=True, index=True)

    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index(
            "ix_treasury_movements_pool",
            "bank_account_id",
            "company_id",
            "reconciled",
            "direction",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<TreasuryMovement id={self.id} {self.direction} "
            f"amount={self.amount} date={self.date} reconciled={self.reconciled}>"
        )
