"""
Tests for the forensic damage calculators.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from forensic_engine.domain import ConfidenceLevel, DamageMethod
from forensic_engine.services.damages import (
    calculate_direct_loss,
    calculate_net_worth_method,
    calculate_prejudgment_interest,
)
from forensic_engine.utils.error_handling import (
    ErrorCode,
    InvalidAmountException,
    MissingFieldException,
    ValidationException,
)
from tests.conftest import make_transaction


class TestDirectLoss:
    """Sum of improper transactions."""

    def test_sums_absolute_values(self):
        a = make_transaction("-1500.25", description="Wire to shell company")
        b = make_transaction("300", description=None, title="Cheque 118", kind="income")
        c = make_transaction("999.99")

        result = calculate_direct_loss([a, b, c], [a.id, b.id])

        assert result.method == DamageMethod.DIRECT_LOSS
        assert result.total_damage == Decimal("1800.25")
        assert result.confidence_level == ConfidenceLevel.HIGH
        assert [item.amount for item in result.breakdown] == [Decimal("1500.25"), Decimal("300")]
        assert result.breakdown[0].category == "expense"
        assert result.breakdown[0].description == "Wire to shell company"
        assert result.breakdown[1].category == "income"
        assert result.breakdown[1].description == "Cheque 118"
        assert result.limitations == (
            "Does not include consequential damages",
            "Does not include interest",
        )

    def test_fallback_labels(self):
        txn = make_transaction("10", description=None, title=None, kind=None)
        item = calculate_direct_loss([txn], [txn.id]).breakdown[0]
        assert item.category == "unknown"
        assert item.description == "Improper transaction"

    def test_empty_id_list(self):
        result = calculate_direct_loss([make_transaction("10")], [])

        assert result.total_damage == Decimal("0")
        assert result.breakdown == ()
        assert result.assumptions == ("No improper transactions identified",)

    def test_unknown_ids_ignored(self):
        txn = make_transaction("10")
        result = calculate_direct_loss([txn], [uuid4(), txn.id])
        assert result.total_damage == Decimal("10")
        assert len(result.breakdown) == 1

    def test_duplicate_ids_counted_once(self):
        txn = make_transaction("10")
        result = calculate_direct_loss([txn], [txn.id, txn.id])
        assert result.total_damage == Decimal("10")

    def test_non_list_rejected(self):
        with pytest.raises(ValidationException) as exc_info:
            calculate_direct_loss([], "not-a-list")
        assert exc_info.value.field == "improper_transaction_ids"


class TestNetWorthMethod:
    """Unexplained wealth."""

    def test_example(self):
        result = calculate_net_worth_method(100000, 150000, 20000, 40000)

        assert result.method == DamageMethod.NET_WORTH
        assert result.total_damage == Decimal("30000")
        assert result.confidence_level == ConfidenceLevel.MEDIUM
        assert [(i.category, i.amount) for i in result.breakdown] == [
            ("Net Worth Increase", Decimal("50000")),
            ("Personal Expenditures", Decimal("20000")),
            ("Legitimate Income", Decimal("-40000")),
        ]

    def test_negative_result_not_clamped(self):
        result = calculate_net_worth_method(100000, 100000, 0, 25000)
        assert result.total_damage == Decimal("-25000")

    def test_floats_are_exact(self):
        result = calculate_net_worth_method(0.1, 0.3, 0, 0)
        assert result.total_damage == Decimal("0.2")

    def test_boolean_rejected(self):
        with pytest.raises(InvalidAmountException) as exc_info:
            calculate_net_worth_method(True, 150000, 20000, 40000)
        assert exc_info.value.code == ErrorCode.INVALID_AMOUNT
        assert exc_info.value.field == "beginning_net_worth"

    def test_string_rejected(self):
        with pytest.raises(InvalidAmountException):
            calculate_net_worth_method(100000, "150000", 20000, 40000)

    def test_missing_rejected(self):
        with pytest.raises(MissingFieldException) as exc_info:
            calculate_net_worth_method(100000, 150000, None, 40000)
        assert exc_info.value.field == "personal_expenditures"

    def test_nan_rejected(self):
        with pytest.raises(InvalidAmountException):
            calculate_net_worth_method(float("nan"), 1, 1, 1)


class TestPrejudgmentInterest:
    """Simple interest from the date of loss."""

    def test_two_years(self):
        loss_date = datetime(2020, 1, 1)
        now = loss_date + timedelta(days=730.5)

        result = calculate_prejudgment_interest(10000, loss_date, Decimal("0.05"), now=now)

        assert result.years == pytest.approx(2.0)
        assert result.interest == Decimal("1000")
        assert result.total_with_interest == Decimal("11000")

    def test_same_day_is_zero(self):
        now = datetime(2024, 3, 1, 12, 0)
        result = calculate_prejudgment_interest(10000, now, Decimal("0.09"), now=now)
        assert result.interest == 0
        assert result.total_with_interest == Decimal("10000")

    def test_linear_in_amount_and_rate(self):
        loss_date = datetime(2021, 6, 30)
        now = datetime(2024, 2, 14)
        base = calculate_prejudgment_interest(1000, loss_date, Decimal("0.05"), now=now)
        doubled_amount = calculate_prejudgment_interest(2000, loss_date, Decimal("0.05"), now=now)
        doubled_rate = calculate_prejudgment_interest(1000, loss_date, Decimal("0.10"), now=now)

        assert doubled_amount.interest == pytest.approx(base.interest * 2)
        assert doubled_rate.interest == pytest.approx(base.interest * 2)

    def test_accepts_date_and_iso_string(self):
        now = datetime(2021, 1, 1)
        from_date = calculate_prejudgment_interest(1000, date(2020, 1, 1), Decimal("0.05"), now=now)
        from_string = calculate_prejudgment_interest(1000, "2020-01-01", Decimal("0.05"), now=now)
        assert from_date.interest == from_string.interest

    def test_mixed_timezones(self):
        """Naive loss dates are read as UTC against an aware clock."""
        now = datetime(2021, 1, 1, tzinfo=timezone.utc)
        result = calculate_prejudgment_interest(1000, datetime(2021, 1, 1), Decimal("0.05"), now=now)
        assert result.interest == 0

    def test_invalid_date(self):
        with pytest.raises(ValidationException) as exc_info:
            calculate_prejudgment_interest(1000, "last tuesday", Decimal("0.05"))
        assert exc_info.value.field == "loss_date"

    def test_invalid_rate(self):
        with pytest.raises(InvalidAmountException):
            calculate_prejudgment_interest(1000, date(2020, 1, 1), False)
