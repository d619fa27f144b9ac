"""Data models for matching decisions, run reports and summaries."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from .entities import MatchType, MovementDirection


@dataclass(frozen=True)
class Tolerance:
    """Tolerance window configured on a statement for FUZZY matching."""

    amount: Decimal = Decimal("0")
    days: int = 0


@dataclass
class MatchCandidate:
    """A movement selected by one of the matching strategies."""

    movement_id: int
    match_type: MatchType
    confidence: float  # 0.0 to 1.0
    reason: str

    # Variance details (if any)
    amount_variance: Optional[Decimal] = None
    date_variance_days: Optional[int] = None


@dataclass
class ItemMatchResult:
    """Outcome of processing one statement line during a run."""

    item_id: int
    match_type: Optional[MatchType] = None
    movement_id: Optional[int] = None
    confidence: Optional[float] = None

    @property
    def is_matched(self) -> bool:
        return self.match_type is not None


@dataclass
class RunReport:
    """Report of an automatic matching run over one statement."""

    statement_id: int
    total_items: int = 0
    matched: int = 0
    unmatched: int = 0
    suspense: int = 0
    results: list[ItemMatchResult] = field(default_factory=list)
    processing_time_seconds: float = 0.0
    started_at: datetime = field(default_factory=datetime.now)

    @property
    def match_rate(self) -> float:
        """Percentage of processed lines that were matched."""
        if self.total_items == 0:
            return 0.0
        return (self.matched / self.total_items) * 100


@dataclass
class MatchResult:
    """Result of a manual match."""

    item_id: int
    movement_id: int
    match_type: MatchType
    confidence: float
    reason: str


@dataclass
class ReconciliationSummary:
    """Reconciliation state of one statement, broken down by match type."""

    statement_id: int
    total_items: int = 0
    matched: int = 0
    pending: int = 0
    suspense: int = 0
    suspense_resolved: int = 0
    match_breakdown: dict[MatchType, int] = field(
        default_factory=lambda: {match_type: 0 for match_type in MatchType}
    )

    @property
    def match_rate(self) -> float:
        """Percentage of statement lines reconciled."""
        if self.total_items == 0:
            return 0.0
        return (self.matched / self.total_items) * 100


@dataclass
class MovementFilters:
    """Optional filters for unreconciled movement queries; bounds are inclusive."""

    date_from: Optional[date] = None
    date_to: Optional[date] = None
    direction: Optional[MovementDirection] = None
    amount_min: Optional[Decimal] = None
    amount_max: Optional[Decimal] = None
