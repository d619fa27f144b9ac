"""Tests for the matching strategies and the matcher chain (no database)."""
from datetime import date
from decimal import Decimal

import pytest

from treasury_recon.matching import (
    ExactMatchStrategy,
    FuzzyToleranceStrategy,
    Matcher,
    ReferenceStrategy,
)
from treasury_recon.models.entities import (
    BankStatementItem,
    MatchType,
    MovementDirection,
    TreasuryMovement,
)
from treasury_recon.models.results import Tolerance

JAN_15 = date(2026, 1, 15)


def line(item_id=100, on=JAN_15, debit="0", credit="0", reference=None):
    return BankStatementItem(
        id=item_id,
        date=on,
        debit=Decimal(debit),
        credit=Decimal(credit),
        reference=reference,
        description="",
    )


def movement(
    movement_id,
    amount,
    on=JAN_15,
    direction=MovementDirection.EGRESO,
    reference=None,
    reconciled=False,
):
    return TreasuryMovement(
        id=movement_id,
        amount=Decimal(amount),
        date=on,
        direction=direction,
        reference=reference,
        reconciled=reconciled,
    )


class TestStatementLineProperties:
    def test_debit_line_is_outflow(self):
        item = line(debit="5000")
        assert item.direction == MovementDirection.EGRESO
        assert item.amount == Decimal("5000")

    def test_credit_line_is_inflow(self):
        item = line(credit="8000")
        assert item.direction == MovementDirection.INGRESO
        assert item.amount == Decimal("8000")


class TestExactMatchStrategy:
    def test_same_amount_and_day(self):
        result = ExactMatchStrategy().find_match(
            line(debit="5000"), [movement(200, "5000")], Tolerance()
        )
        assert result is not None
        assert result.movement_id == 200
        assert result.match_type == MatchType.EXACT
        assert result.confidence == 1.0

    def test_other_day_is_not_exact(self):
        result = ExactMatchStrategy().find_match(
            line(debit="5000"),
            [movement(200, "5000", on=date(2026, 1, 16))],
            Tolerance(Decimal("10"), 3),
        )
        assert result is None

    def test_lowest_id_wins_among_duplicates(self):
        result = ExactMatchStrategy().find_match(
            line(debit="5000"), [movement(205, "5000"), movement(201, "5000")], Tolerance()
        )
        assert result.movement_id == 201


class TestFuzzyToleranceStrategy:
    def test_scenario_within_window(self):
        result = FuzzyToleranceStrategy().find_match(
            line(debit="5000"),
            [movement(201, "5005", on=date(2026, 1, 16))],
            Tolerance(Decimal("10"), 3),
        )
        assert result is not None
        assert result.match_type == MatchType.FUZZY
        assert 0 < result.confidence < 1
        # amount score 0.5, date score 2/3
        assert result.confidence == pytest.approx(0.5833, abs=1e-4)
        assert result.amount_variance == Decimal("5")
        assert result.date_variance_days == 1

    def test_outside_amount_tolerance(self):
        result = FuzzyToleranceStrategy().find_match(
            line(debit="5000"),
            [movement(201, "5010.01")],
            Tolerance(Decimal("10"), 3),
        )
        assert result is None

    def test_outside_day_tolerance(self):
        result = FuzzyToleranceStrategy().find_match(
            line(debit="5000"),
            [movement(201, "5000", on=date(2026, 1, 19))],
            Tolerance(Decimal("10"), 3),
        )
        assert result is None

    def test_window_edges_are_accepted_above_zero(self):
        result = FuzzyToleranceStrategy().find_match(
            line(debit="5000"),
            [movement(201, "5010", on=date(2026, 1, 18))],
            Tolerance(Decimal("10"), 3),
        )
        assert result is not None
        assert result.confidence == pytest.approx(0.01)

    def test_highest_score_wins(self):
        result = FuzzyToleranceStrategy().find_match(
            line(debit="5000"),
            [
                movement(201, "5008", on=date(2026, 1, 14)),
                movement(202, "5001", on=date(2026, 1, 16)),
            ],
            Tolerance(Decimal("10"), 3),
        )
        assert result.movement_id == 202

    def test_ties_break_toward_earliest_date_then_lowest_id(self):
        candidates = [
            movement(210, "5005", on=date(2026, 1, 16)),
            movement(205, "4995", on=date(2026, 1, 14)),
            movement(204, "5005", on=date(2026, 1, 14)),
        ]
        result = FuzzyToleranceStrategy().find_match(
            line(debit="5000"), candidates, Tolerance(Decimal("10"), 3)
        )
        assert result.movement_id == 204

    def test_zero_day_tolerance_same_day(self):
        result = FuzzyToleranceStrategy().find_match(
            line(debit="5000"),
            [movement(201, "5002")],
            Tolerance(Decimal("10"), 0),
        )
        assert result is not None
        # amount 0.8, date 1.0
        assert result.confidence == pytest.approx(0.9)

    def test_never_reaches_exact_confidence(self):
        strategy = FuzzyToleranceStrategy()
        confidence = strategy.calculate_confidence(Decimal("0"), 0, Tolerance(Decimal("10"), 3))
        assert confidence == pytest.approx(0.99)


class TestReferenceStrategy:
    def test_normalized_reference_match(self):
        result = ReferenceStrategy().find_match(
            line(debit="5000", reference="ref-123"),
            [movement(202, "4200", on=date(2026, 2, 20), reference="REF 123")],
            Tolerance(),
        )
        assert result is not None
        assert result.movement_id == 202
        assert result.match_type == MatchType.REFERENCE
        assert result.confidence == 0.7

    def test_no_reference_on_line(self):
        result = ReferenceStrategy().find_match(
            line(debit="5000"), [movement(202, "5000", reference="REF-123")], Tolerance()
        )
        assert result is None

    def test_different_reference(self):
        result = ReferenceStrategy().find_match(
            line(debit="5000", reference="REF-123"),
            [movement(202, "5000", reference="REF-124")],
            Tolerance(),
        )
        assert result is None


class TestMatcherChain:
    def test_exact_beats_fuzzy(self):
        candidates = [
            movement(201, "5001", on=JAN_15),
            movement(202, "5000", on=JAN_15),
        ]
        result = Matcher().find_match(
            line(debit="5000"), candidates, Tolerance(Decimal("10"), 3)
        )
        assert result.match_type == MatchType.EXACT
        assert result.movement_id == 202
        assert result.confidence == 1.0

    def test_fuzzy_beats_reference(self):
        candidates = [
            movement(201, "5005", on=date(2026, 1, 16)),
            movement(202, "9000", on=date(2026, 3, 1), reference="REF-123"),
        ]
        result = Matcher().find_match(
            line(debit="5000", reference="REF-123"),
            candidates,
            Tolerance(Decimal("10"), 3),
        )
        assert result.match_type == MatchType.FUZZY
        assert result.movement_id == 201

    def test_reference_when_nothing_else(self):
        candidates = [movement(202, "9000", on=date(2026, 3, 1), reference="REF-123")]
        result = Matcher().find_match(
            line(debit="5000", reference="REF-123"),
            candidates,
            Tolerance(Decimal("0.01"), 3),
        )
        assert result.match_type == MatchType.REFERENCE

    def test_direction_blocks_perfect_candidate(self):
        candidates = [movement(200, "5000", direction=MovementDirection.INGRESO)]
        result = Matcher().find_match(line(debit="5000"), candidates, Tolerance())
        assert result is None

    def test_credit_line_matches_inflow(self):
        candidates = [
            movement(200, "8000", direction=MovementDirection.EGRESO),
            movement(201, "8000", direction=MovementDirection.INGRESO),
        ]
        result = Matcher().find_match(line(credit="8000"), candidates, Tolerance())
        assert result.movement_id == 201

    def test_reconciled_candidates_are_ignored(self):
        candidates = [movement(200, "5000", reconciled=True)]
        assert Matcher().find_match(line(debit="5000"), candidates, Tolerance()) is None

    def test_no_match(self):
        candidates = [movement(200, "7000", on=date(2026, 2, 1))]
        result = Matcher().find_match(
            line(debit="5000"), candidates, Tolerance(Decimal("10"), 3)
        )
        assert result is None
