"""
Forensic Ledger Engine - Transaction Risk Scoring

Additive red-flag scoring of single transactions.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import List

from forensic_engine.domain import (
    LegitimacyAssessment,
    RiskLevel,
    TransactionAnalysis,
    TransactionRecord,
)


ROUND_DOLLAR_MIN_AMOUNT = Decimal("100")
LARGE_AMOUNT_THRESHOLD = Decimal("50000")
MIN_DESCRIPTION_LENGTH = 10

SUSPICIOUS_KEYWORDS = ("cash", "consulting", "misc", "various", "expenses")

# datetime.weekday(): Saturday=5, Sunday=6
WEEKEND_DAYS = {5, 6}


def utc_wall_time(moment: datetime) -> datetime:
    """Aware timestamps converted to naive UTC; naive ones are already UTC."""
    if moment.tzinfo is not None:
        return moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment


def is_round_dollar(amount: Decimal) -> bool:
    """Whole-number amount of at least 100, sign ignored."""
    absolute = abs(amount)
    return absolute == absolute.to_integral_value() and absolute >= ROUND_DOLLAR_MIN_AMOUNT


class TransactionRiskScorer:
    """
    Scores one transaction against fixed heuristics.

    Every rule whose condition holds contributes its weight; the total
    drives both the risk level and the legitimacy assessment.
    """

    WEIGHTS = {
        "round_dollar": 15,
        "large_amount": 25,
        "weekend": 20,
        "vague_description": 10,
        "suspicious_keywords": 15,
    }

    HIGH_RISK_SCORE = 50
    MEDIUM_RISK_SCORE = 25

    IMPROPER_SCORE = 60
    QUESTIONABLE_SCORE = 40
    PROPER_BELOW_SCORE = 20

    def score(self, transaction: TransactionRecord) -> TransactionAnalysis:
        red_flags: List[str] = []
        score = 0
        amount = abs(transaction.amount)

        if is_round_dollar(amount):
            red_flags.append("Round dollar amount")
            score += self.WEIGHTS["round_dollar"]

        if amount > LARGE_AMOUNT_THRESHOLD:
            red_flags.append("Unusually large amount")
            score += self.WEIGHTS["large_amount"]

        occurred_at = transaction.occurred_at
        if occurred_at is not None and utc_wall_time(occurred_at).weekday() in WEEKEND_DAYS:
            red_flags.append("Weekend transaction")
            score += self.WEIGHTS["weekend"]

        description = transaction.description or ""
        if len(description) < MIN_DESCRIPTION_LENGTH:
            red_flags.append("Vague or missing description")
            score += self.WEIGHTS["vague_description"]

        lowered = description.lower()
        if any(keyword in lowered for keyword in SUSPICIOUS_KEYWORDS):
            red_flags.append("Suspicious description keywords")
            score += self.WEIGHTS["suspicious_keywords"]

        return TransactionAnalysis(
            transaction_id=transaction.id,
            risk_level=self.risk_level_for(score),
            legitimacy=self.legitimacy_for(score),
            red_flags=tuple(red_flags),
            score=score,
        )

    def risk_level_for(self, score: int) -> RiskLevel:
        if score >= self.HIGH_RISK_SCORE:
            return RiskLevel.HIGH
        if score >= self.MEDIUM_RISK_SCORE:
            return RiskLevel.MEDIUM
        return RiskLevel.LOW

    def legitimacy_for(self, score: int) -> LegitimacyAssessment:
        if score >= self.IMPROPER_SCORE:
            return LegitimacyAssessment.IMPROPER
        if score >= self.QUESTIONABLE_SCORE:
            return LegitimacyAssessment.QUESTIONABLE
        if score < self.PROPER_BELOW_SCORE:
            return LegitimacyAssessment.PROPER
        return LegitimacyAssessment.UNABLE_TO_DETERMINE


# Singleton instance
transaction_risk_scorer = TransactionRiskScorer()
