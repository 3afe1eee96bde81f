"""
Forensic Ledger Engine - Damage Calculations

Accepted forensic-accounting damage methods:
1. Direct loss - sum of improper transactions
2. Net-worth method - unexplained growth in wealth
3. Pre-judgment interest - simple interest from the date of loss

Results may be zero or negative; they are passed through unclamped.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Iterable, List, Optional, Sequence

from forensic_engine.domain import (
    ConfidenceLevel,
    DamageCalculationResult,
    DamageLineItem,
    DamageMethod,
    InterestCalculation,
    TransactionRecord,
)
from forensic_engine.utils.error_handling import (
    ValidationException,
    require_number,
)


DAYS_PER_YEAR = Decimal("365.25")  # average year including leap days
SECONDS_PER_DAY = Decimal("86400")

DIRECT_LOSS_LIMITATIONS = (
    "Does not include consequential damages",
    "Does not include interest",
)


def calculate_direct_loss(
    transactions: Iterable[TransactionRecord],
    improper_transaction_ids: Sequence[Any],
) -> DamageCalculationResult:
    """
    Direct loss: the absolute value of every improper transaction.

    Ids with no matching transaction are ignored; each transaction is
    counted once even if its id is listed twice.
    """
    if not isinstance(improper_transaction_ids, (list, tuple)):
        raise ValidationException(
            "improper_transaction_ids must be a list",
            field="improper_transaction_ids",
        )

    if not improper_transaction_ids:
        return DamageCalculationResult(
            method=DamageMethod.DIRECT_LOSS,
            total_damage=Decimal("0"),
            breakdown=(),
            confidence_level=ConfidenceLevel.HIGH,
            assumptions=("No improper transactions identified",),
            limitations=DIRECT_LOSS_LIMITATIONS,
        )

    by_id = {txn.id: txn for txn in transactions}
    total = Decimal("0")
    breakdown: List[DamageLineItem] = []
    seen = set()
    for txn_id in improper_transaction_ids:
        txn = by_id.get(txn_id)
        if txn is None or txn_id in seen:
            continue
        seen.add(txn_id)
        amount = abs(txn.amount)
        total += amount
        breakdown.append(DamageLineItem(
            category=txn.kind or "unknown",
            amount=amount,
            description=txn.description or txn.title or "Improper transaction",
        ))

    return DamageCalculationResult(
        method=DamageMethod.DIRECT_LOSS,
        total_damage=total,
        breakdown=tuple(breakdown),
        confidence_level=ConfidenceLevel.HIGH,
        assumptions=(
            "All identified transactions are improper",
            "Amounts are accurate as recorded",
        ),
        limitations=DIRECT_LOSS_LIMITATIONS,
    )


def calculate_net_worth_method(
    beginning_net_worth: Any,
    ending_net_worth: Any,
    personal_expenditures: Any,
    legitimate_income: Any,
) -> DamageCalculationResult:
    """
    Net-worth method: growth in net worth plus personal spending that
    legitimate income does not explain.

    Example: (100000, 150000, 20000, 40000) -> 30000.
    """
    beginning = require_number(beginning_net_worth, "beginning_net_worth")
    ending = require_number(ending_net_worth, "ending_net_worth")
    expenditures = require_number(personal_expenditures, "personal_expenditures")
    income = require_number(legitimate_income, "legitimate_income")

    net_worth_increase = ending - beginning
    unexplained_wealth = net_worth_increase + expenditures - income

    return DamageCalculationResult(
        method=DamageMethod.NET_WORTH,
        total_damage=unexplained_wealth,
        breakdown=(
            DamageLineItem(
                category="Net Worth Increase",
                amount=net_worth_increase,
                description="Increase in assets minus liabilities",
            ),
            DamageLineItem(
                category="Personal Expenditures",
                amount=expenditures,
                description="Living expenses and purchases",
            ),
            DamageLineItem(
                category="Legitimate Income",
                amount=-income,
                description="Verified income from legitimate sources",
            ),
        ),
        confidence_level=ConfidenceLevel.MEDIUM,
        assumptions=(
            "All assets and liabilities have been identified",
            "Legitimate income has been fully documented",
            "No significant gifts or inheritances",
        ),
        limitations=(
            "Requires access to personal financial records",
            "May not capture cash transactions",
            "Estimates may be required for some values",
        ),
    )


def _as_datetime(value: Any, field: str) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str) and value.strip():
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            pass
    raise ValidationException(f"'{field}' must be a date or ISO-8601 timestamp", field=field)


def calculate_prejudgment_interest(
    loss_amount: Any,
    loss_date: Any,
    annual_rate: Any,
    now: Optional[datetime] = None,
) -> InterestCalculation:
    """
    Simple (non-compounding) interest from ``loss_date`` until ``now``.

    years = elapsed days / 365.25
    interest = loss_amount * annual_rate * years
    """
    amount = require_number(loss_amount, "loss_amount")
    rate = require_number(annual_rate, "annual_rate")
    loss_moment = _as_datetime(loss_date, "loss_date")

    if now is None:
        now = datetime.now(timezone.utc) if loss_moment.tzinfo else datetime.utcnow()
    elif (now.tzinfo is None) != (loss_moment.tzinfo is None):
        # Compare naive values as UTC
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        else:
            loss_moment = loss_moment.replace(tzinfo=timezone.utc)

    elapsed = now - loss_moment
    elapsed_days = Decimal(str(elapsed.total_seconds())) / SECONDS_PER_DAY
    years = elapsed_days / DAYS_PER_YEAR
    interest = amount * rate * years

    return InterestCalculation(
        loss_amount=amount,
        annual_rate=rate,
        years=float(years),
        interest=interest,
        total_with_interest=amount + interest,
    )
