"""
Tolerance-aware matcher.
Runs the matching strategies in priority order and stops at the first hit.
"""

from typing import Optional, Sequence
import logging

from sqlalchemy.orm import Session

from ..config import MatchingSettings
from ..models.entities import BankStatementItem, MovementDirection, TreasuryMovement
from ..models.results import MatchCandidate, Tolerance
from .strategies import (
    ExactMatchStrategy,
    FuzzyToleranceStrategy,
    MatchingStrategy,
    ReferenceStrategy,
)

logger = logging.getLogger(__name__)


def build_strategies(settings: Optional[MatchingSettings] = None) -> list[MatchingStrategy]:
    """
    Build the strategy chain in priority order: EXACT, FUZZY, REFERENCE.

    Args:
        settings: Matching settings (defaults when omitted)

    Returns:
        Ordered list of strategies
    """
    settings = settings or MatchingSettings()
    return [
        ExactMatchStrategy(),
        FuzzyToleranceStrategy(
            min_confidence=settings.fuzzy_min_confidence,
            max_confidence=settings.fuzzy_max_confidence,
        ),
        ReferenceStrategy(
            confidence=settings.reference_confidence,
            normalize_pattern=settings.reference_normalize_pattern,
        ),
    ]


def load_candidate_pool(
    session: Session,
    bank_account_id: int,
    company_id: int,
    direction: MovementDirection,
) -> list[TreasuryMovement]:
    """
    Load the unreconciled movements a statement line may match.

    Args:
        session: Open session, inside the caller's transaction
        bank_account_id: Bank account of the statement
        company_id: Tenant of the statement
        direction: Direction required by the line

    Returns:
        Candidate movements ordered by date then id
    """
    return (
        session.query(TreasuryMovement)
        .filter(
            TreasuryMovement.bank_account_id == bank_account_id,
            TreasuryMovement.company_id == company_id,
            TreasuryMovement.direction == direction,
            TreasuryMovement.reconciled.is_(False),
        )
        .order_by(TreasuryMovement.date, TreasuryMovement.id)
        .all()
    )


class Matcher:
    """
    Decides whether and how a statement line corresponds to a ledger movement.

    Pure decision logic: it never writes, the executor applies its decision.
    """

    def __init__(self, strategies: Optional[list[MatchingStrategy]] = None):
        """
        Initialize the matcher.

        Args:
            strategies: Strategy chain in priority order (default chain when omitted)
        """
        self.strategies = strategies if strategies is not None else build_strategies()

    def find_match(
        self,
        item: BankStatementItem,
        candidates: Sequence[TreasuryMovement],
        tolerance: Tolerance,
    ) -> Optional[MatchCandidate]:
        """
        Find the movement matching a statement line.

        Args:
            item: Statement line to match
            candidates: Candidate movements for the line's account and tenant
            tolerance: Statement tolerance window

        Returns:
            The first strategy hit, or None when every strategy misses
        """
        direction = item.direction
        pool = [
            m for m in candidates if m.direction == direction and not m.reconciled
        ]
        if not pool:
            logger.debug(f"No {direction.value} candidates for item {item.id}")
            return None

        for strategy in self.strategies:
            candidate = strategy.find_match(item, pool, tolerance)
            if candidate is not None:
                logger.debug(
                    f"Item {item.id}: {candidate.match_type.value} match with "
                    f"movement {candidate.movement_id} ({candidate.confidence:.2f})"
                )
                return candidate

        logger.debug(f"Item {item.id}: no match among {len(pool)} candidates")
        return None
