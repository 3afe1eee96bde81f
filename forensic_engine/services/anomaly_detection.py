"""
Forensic Ledger Engine - Structural Anomaly Detection

Four independent detectors over one investigation's transaction set:
1. Duplicate payments - same amount, description and day
2. Unusual timing - weekend activity (stored), off-hours activity (reported)
3. Round-dollar excess - too many whole-dollar amounts
4. Benford violation - leading-digit distribution fails the chi-square test

Detectors hold no state and never read each other's output.
"""

from collections import defaultdict
from datetime import date
from typing import Any, Dict, List, Sequence, Tuple
import logging

from forensic_engine.domain import (
    AnomalyType,
    DetectedAnomaly,
    DetectorOutcome,
    Severity,
    TransactionRecord,
)
from forensic_engine.services.benford import BenfordsLawAnalyzer, benfords_analyzer
from forensic_engine.services.risk_scoring import WEEKEND_DAYS, is_round_dollar, utc_wall_time

logger = logging.getLogger(__name__)


class AnomalyDetector:
    """Base class for detectors run during an analysis pass."""

    name: str = ""

    def detect(self, transactions: Sequence[TransactionRecord]) -> DetectorOutcome:
        raise NotImplementedError


class DuplicatePaymentDetector(AnomalyDetector):
    """
    Groups transactions by (amount, description, calendar day).

    The key deliberately ignores the transaction id, so two legitimate
    payments with identical memo and amount on the same day are flagged.
    """

    name = "duplicate_payments"

    def duplicate_key(self, transaction: TransactionRecord) -> Tuple[Any, str, date]:
        return (
            transaction.amount,
            transaction.description or "none",
            utc_wall_time(transaction.occurred_at).date(),
        )

    def detect(self, transactions: Sequence[TransactionRecord]) -> DetectorOutcome:
        groups: Dict[Tuple[Any, str, date], List[Any]] = defaultdict(list)
        for txn in transactions:
            if txn.occurred_at is None:
                continue
            groups[self.duplicate_key(txn)].append(txn.id)

        outcome = DetectorOutcome()
        for ids in groups.values():
            if len(ids) > 1:
                outcome.stored.append(DetectedAnomaly(
                    anomaly_type=AnomalyType.DUPLICATE_PAYMENT,
                    severity=Severity.HIGH,
                    description=f"{len(ids)} identical transactions detected",
                    affected_transaction_ids=tuple(ids),
                ))
        return outcome


class UnusualTimingDetector(AnomalyDetector):
    """
    Flags weekend transactions, one anomaly per transaction.
    Days and hours are read in UTC.

    Transactions booked before 06:00 or after the 22:00 hour are returned
    as reported-only anomalies and are never persisted.
    """

    name = "unusual_timing"

    BUSINESS_DAY_START_HOUR = 6
    BUSINESS_DAY_END_HOUR = 22

    def detect(self, transactions: Sequence[TransactionRecord]) -> DetectorOutcome:
        outcome = DetectorOutcome()
        for txn in transactions:
            if txn.occurred_at is None:
                continue
            moment = utc_wall_time(txn.occurred_at)

            if moment.weekday() in WEEKEND_DAYS:
                outcome.stored.append(DetectedAnomaly(
                    anomaly_type=AnomalyType.UNUSUAL_TIMING,
                    severity=Severity.MEDIUM,
                    description=f"Weekend transaction on {moment.date().isoformat()}",
                    affected_transaction_ids=(txn.id,),
                ))

            hour = moment.hour
            if hour < self.BUSINESS_DAY_START_HOUR or hour > self.BUSINESS_DAY_END_HOUR:
                outcome.reported_only.append(DetectedAnomaly(
                    anomaly_type=AnomalyType.UNUSUAL_TIMING,
                    severity=Severity.MEDIUM,
                    description=f"Transaction occurred outside business hours ({hour}:00)",
                    affected_transaction_ids=(txn.id,),
                ))
        return outcome


class RoundDollarDetector(AnomalyDetector):
    """Fires once when round-dollar amounts exceed 20% of the set."""

    name = "round_dollars"

    MAX_ROUND_DOLLAR_PCT = 20

    def detect(self, transactions: Sequence[TransactionRecord]) -> DetectorOutcome:
        outcome = DetectorOutcome()
        if not transactions:
            return outcome

        round_ids = [txn.id for txn in transactions if is_round_dollar(txn.amount)]
        # Integer comparison: exactly 20% must not fire
        if len(round_ids) * 100 > len(transactions) * self.MAX_ROUND_DOLLAR_PCT:
            pct = len(round_ids) / len(transactions) * 100
            outcome.stored.append(DetectedAnomaly(
                anomaly_type=AnomalyType.ROUND_DOLLAR,
                severity=Severity.MEDIUM,
                description=(
                    f"{pct:.1f}% of transactions are round dollar amounts "
                    f"(expected: <{self.MAX_ROUND_DOLLAR_PCT}%)"
                ),
                affected_transaction_ids=tuple(round_ids),
            ))
        return outcome


class BenfordViolationDetector(AnomalyDetector):
    """Runs the Benford analyzer over the full amount set."""

    name = "benfords_law"

    def __init__(self, analyzer: BenfordsLawAnalyzer = benfords_analyzer):
        self.analyzer = analyzer

    def detect(self, transactions: Sequence[TransactionRecord]) -> DetectorOutcome:
        results = self.analyzer.analyze(abs(txn.amount) for txn in transactions)
        outcome = DetectorOutcome(benford_results=results)

        summary = results[0]
        if not summary.overall_passed:
            outcome.stored.append(DetectedAnomaly(
                anomaly_type=AnomalyType.BENFORD_VIOLATION,
                severity=Severity.HIGH,
                description=(
                    f"Benford's Law analysis failed "
                    f"(chi-square={summary.total_chi_square:.2f}, "
                    f"critical={summary.critical_value})"
                ),
                affected_transaction_ids=tuple(txn.id for txn in transactions),
            ))
        return outcome


def default_detectors() -> List[AnomalyDetector]:
    """Detectors run by a full analysis pass, in report order."""
    return [
        DuplicatePaymentDetector(),
        UnusualTimingDetector(),
        RoundDollarDetector(),
        BenfordViolationDetector(),
    ]
