"""
Tests for per-transaction risk scoring.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from forensic_engine.domain import LegitimacyAssessment, RiskLevel
from forensic_engine.services.risk_scoring import (
    TransactionRiskScorer,
    is_round_dollar,
    utc_wall_time,
)
from tests.conftest import SATURDAY, WEEKDAY, make_transaction


@pytest.fixture
def scorer():
    return TransactionRiskScorer()


class TestRoundDollar:
    """Whole amounts of at least 100."""

    def test_whole_hundred(self):
        assert is_round_dollar(Decimal("100.00")) is True

    def test_below_threshold(self):
        assert is_round_dollar(Decimal("99")) is False

    def test_cents(self):
        assert is_round_dollar(Decimal("100.50")) is False

    def test_negative(self):
        """Refunds and reversals are judged on their absolute value."""
        assert is_round_dollar(Decimal("-2500")) is True


class TestTransactionRiskScorer:
    """Additive red-flag rules."""

    def test_every_rule_fires(self, scorer):
        """Large round weekend payment described as 'misc'."""
        analysis = scorer.score(make_transaction(75000, occurred_at=SATURDAY, description="misc"))

        assert analysis.score == 85
        assert analysis.risk_level == RiskLevel.HIGH
        assert analysis.legitimacy == LegitimacyAssessment.IMPROPER
        assert analysis.red_flags == (
            "Round dollar amount",
            "Unusually large amount",
            "Weekend transaction",
            "Vague or missing description",
            "Suspicious description keywords",
        )

    def test_without_keyword(self, scorer):
        """Same payment with a vague but innocent memo."""
        analysis = scorer.score(make_transaction(75000, occurred_at=SATURDAY, description="pay"))

        assert analysis.score == 70
        assert analysis.risk_level == RiskLevel.HIGH
        assert analysis.legitimacy == LegitimacyAssessment.IMPROPER
        assert "Suspicious description keywords" not in analysis.red_flags

    def test_clean_transaction(self, scorer):
        """No rule fires."""
        analysis = scorer.score(make_transaction("1234.56"))

        assert analysis.score == 0
        assert analysis.red_flags == ()
        assert analysis.risk_level == RiskLevel.LOW
        assert analysis.legitimacy == LegitimacyAssessment.PROPER

    def test_medium_and_undetermined(self, scorer):
        """Round amount with a vague memo scores 25."""
        analysis = scorer.score(make_transaction(500, description="rent"))

        assert analysis.score == 25
        assert analysis.risk_level == RiskLevel.MEDIUM
        assert analysis.legitimacy == LegitimacyAssessment.UNABLE_TO_DETERMINE

    def test_questionable(self, scorer):
        """Large non-round amount with a keyword scores 40."""
        analysis = scorer.score(
            make_transaction("50000.01", description="Consulting services rendered")
        )

        assert analysis.score == 40
        assert analysis.risk_level == RiskLevel.MEDIUM
        assert analysis.legitimacy == LegitimacyAssessment.QUESTIONABLE

    def test_large_threshold_is_exclusive(self, scorer):
        """Exactly 50,000 is not 'unusually large'."""
        analysis = scorer.score(make_transaction("50000.00"))
        assert "Unusually large amount" not in analysis.red_flags

    def test_missing_description(self, scorer):
        analysis = scorer.score(make_transaction("12.34", description=None))
        assert analysis.red_flags == ("Vague or missing description",)
        assert analysis.score == 10

    def test_keyword_case_insensitive(self, scorer):
        analysis = scorer.score(make_transaction("12.34", description="Petty CASH replenishment"))
        assert "Suspicious description keywords" in analysis.red_flags

    def test_no_timestamp_skips_weekend_rule(self, scorer):
        analysis = scorer.score(make_transaction("12.34", occurred_at=None))
        assert "Weekend transaction" not in analysis.red_flags

    def test_weekday_is_not_flagged(self, scorer):
        analysis = scorer.score(make_transaction("12.34", occurred_at=WEEKDAY))
        assert analysis.score == 0

    @pytest.mark.parametrize("score,level,legitimacy", [
        (0, RiskLevel.LOW, LegitimacyAssessment.PROPER),
        (19, RiskLevel.LOW, LegitimacyAssessment.PROPER),
        (20, RiskLevel.LOW, LegitimacyAssessment.UNABLE_TO_DETERMINE),
        (24, RiskLevel.LOW, LegitimacyAssessment.UNABLE_TO_DETERMINE),
        (25, RiskLevel.MEDIUM, LegitimacyAssessment.UNABLE_TO_DETERMINE),
        (39, RiskLevel.MEDIUM, LegitimacyAssessment.UNABLE_TO_DETERMINE),
        (40, RiskLevel.MEDIUM, LegitimacyAssessment.QUESTIONABLE),
        (49, RiskLevel.MEDIUM, LegitimacyAssessment.QUESTIONABLE),
        (50, RiskLevel.HIGH, LegitimacyAssessment.QUESTIONABLE),
        (59, RiskLevel.HIGH, LegitimacyAssessment.QUESTIONABLE),
        (60, RiskLevel.HIGH, LegitimacyAssessment.IMPROPER),
    ])
    def test_thresholds(self, scorer, score, level, legitimacy):
        """Band boundaries."""
        assert scorer.risk_level_for(score) == level
        assert scorer.legitimacy_for(score) == legitimacy

    def test_weekend_rule_reads_aware_timestamps_in_utc(self, scorer):
        """Saturday 00:30 in UTC+2 is still Friday in UTC."""
        moment = datetime(2024, 1, 6, 0, 30, tzinfo=timezone(timedelta(hours=2)))
        analysis = scorer.score(make_transaction("12.34", occurred_at=moment))
        assert "Weekend transaction" not in analysis.red_flags

    def test_utc_wall_time(self):
        moment = datetime(2024, 1, 6, 0, 30, tzinfo=timezone(timedelta(hours=2)))
        assert utc_wall_time(moment) == datetime(2024, 1, 5, 22, 30)
        assert utc_wall_time(datetime(2024, 1, 6, 0, 30)) == datetime(2024, 1, 6, 0, 30)
