"""
Matching strategies for statement reconciliation.
Each strategy implements a specific matching approach.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional, Sequence

from ..models.entities import BankStatementItem, MatchType, TreasuryMovement
from ..models.results import MatchCandidate, Tolerance
from ..utils.normalize import DEFAULT_REFERENCE_PATTERN, normalize_reference


def _day_delta(item: BankStatementItem, movement: TreasuryMovement) -> int:
    return abs((movement.date - item.date).days)


def _amount_delta(item: BankStatementItem, movement: TreasuryMovement) -> Decimal:
    return abs(movement.amount - item.amount)


def _earliest_first(movement: TreasuryMovement) -> tuple:
    return (movement.date, movement.id)


class MatchingStrategy(ABC):
    """Abstract base class for matching strategies."""

    match_type: MatchType

    @abstractmethod
    def find_match(
        self,
        item: BankStatementItem,
        candidates: Sequence[TreasuryMovement],
        tolerance: Tolerance,
    ) -> Optional[MatchCandidate]:
        """
        Find the matching movement for a statement line.

        Args:
            item: Unreconciled statement line
            candidates: Unreconciled movements of the same account, tenant and direction
            tolerance: Statement tolerance window

        Returns:
            The selected candidate, or None
        """
        pass


class ExactMatchStrategy(MatchingStrategy):
    """
    Exact match strategy - matches on amount and calendar day.
    Highest confidence matching tier.
    """

    match_type = MatchType.EXACT

    def find_match(
        self,
        item: BankStatementItem,
        candidates: Sequence[TreasuryMovement],
        tolerance: Tolerance,
    ) -> Optional[MatchCandidate]:
        """Find an exact match by amount and date."""
        matches = [
            m for m in candidates if m.amount == item.amount and m.date == item.date
        ]
        if not matches:
            return None

        movement = min(matches, key=lambda m: m.id)
        return MatchCandidate(
            movement_id=movement.id,
            match_type=self.match_type,
            confidence=1.0,
            reason="Exact match on amount and date",
        )


class FuzzyToleranceStrategy(MatchingStrategy):
    """
    Tolerance matching - amount and date both within the statement window.

    Each axis scores ``1 - delta / tolerance``; the confidence is their mean,
    kept strictly inside (0, 1).
    """

    match_type = MatchType.FUZZY

    def __init__(self, min_confidence: float = 0.01, max_confidence: float = 0.99):
        """
        Initialize with confidence bounds.

        Args:
            min_confidence: Floor for a hit at the edge of the window
            max_confidence: Ceiling, below the EXACT score of 1.0
        """
        self.min_confidence = min_confidence
        self.max_confidence = max_confidence

    def find_match(
        self,
        item: BankStatementItem,
        candidates: Sequence[TreasuryMovement],
        tolerance: Tolerance,
    ) -> Optional[MatchCandidate]:
        """Find the best-scoring movement inside the tolerance window."""
        best: Optional[TreasuryMovement] = None
        best_score = 0.0

        for movement in sorted(candidates, key=_earliest_first):
            amount_diff = _amount_delta(item, movement)
            date_diff = _day_delta(item, movement)

            if amount_diff > tolerance.amount or date_diff > tolerance.days:
                continue

            score = self.calculate_confidence(amount_diff, date_diff, tolerance)
            # Strict comparison keeps the earliest/lowest-id candidate on ties
            if best is None or score > best_score:
                best = movement
                best_score = score

        if best is None:
            return None

        amount_diff = best.amount - item.amount
        date_diff = _day_delta(item, best)
        return MatchCandidate(
            movement_id=best.id,
            match_type=self.match_type,
            confidence=best_score,
            reason=(
                f"Amount within tolerance ({abs(amount_diff):.2f} variance), "
                f"{date_diff} day(s) date difference"
            ),
            amount_variance=amount_diff or None,
            date_variance_days=date_diff or None,
        )

    def calculate_confidence(
        self, amount_diff: Decimal, date_diff: int, tolerance: Tolerance
    ) -> float:
        """Score a candidate by its distance to a perfect match on both axes."""
        amount_score = _axis_score(float(amount_diff), float(tolerance.amount))
        date_score = _axis_score(float(date_diff), float(tolerance.days))

        confidence = (amount_score + date_score) / 2
        confidence = min(self.max_confidence, max(self.min_confidence, confidence))
        return round(confidence, 4)


def _axis_score(delta: float, tolerance: float) -> float:
    if tolerance <= 0:
        # Only a zero delta gets through a zero tolerance
        return 1.0 if delta == 0 else 0.0
    return min(1.0, max(0.0, 1.0 - delta / tolerance))


class ReferenceStrategy(MatchingStrategy):
    """
    Reference matching - normalized reference code equality.
    Ignores amount and date proximity; lowest confidence tier.
    """

    match_type = MatchType.REFERENCE

    def __init__(
        self,
        confidence: float = 0.7,
        normalize_pattern: str = DEFAULT_REFERENCE_PATTERN,
    ):
        """
        Initialize the strategy.

        Args:
            confidence: Fixed confidence reported for reference hits
            normalize_pattern: Regex of characters stripped before comparison
        """
        self.confidence = confidence
        self.normalize_pattern = normalize_pattern

    def find_match(
        self,
        item: BankStatementItem,
        candidates: Sequence[TreasuryMovement],
        tolerance: Tolerance,
    ) -> Optional[MatchCandidate]:
        """Find a movement carrying the same reference as the line."""
        item_ref = normalize_reference(item.reference, self.normalize_pattern)
        if not item_ref:
            return None

        matches = [
            m
            for m in candidates
            if normalize_reference(m.reference, self.normalize_pattern) == item_ref
        ]
        if not matches:
            return None

        movement = min(matches, key=_earliest_first)
        amount_diff = movement.amount - item.amount
        date_diff = _day_delta(item, movement)
        return MatchCandidate(
            movement_id=movement.id,
            match_type=self.match_type,
            confidence=self.confidence,
            reason=f"Reference match on {item_ref}",
            amount_variance=amount_diff or None,
            date_variance_days=date_diff or None,
        )
