"""
Forensic Reporting

Read-only views over a finished analysis:
- Executive summary (Markdown) built from stored analyses and anomalies
- Single-hop flow-of-funds trace for one source transaction
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Sequence

from forensic_engine.domain import (
    Investigation,
    LegitimacyAssessment,
    RiskLevel,
    StoredAnomaly,
    StoredTransactionAnalysis,
    TransactionRecord,
)


SUMMARY_RECOMMENDATIONS = (
    "Conduct detailed investigation of all high-risk transactions",
    "Obtain supporting documentation for questionable transactions",
    "Interview relevant personnel",
    "Implement enhanced controls to prevent future occurrences",
)


@dataclass
class SummaryFigures:
    """Counts that drive the executive summary."""
    total_analyzed: int = 0
    high_risk: int = 0
    improper: int = 0
    questionable: int = 0
    anomalies: int = 0
    estimated_damages: Decimal = Decimal("0")


@dataclass
class FundFlowStep:
    step: int
    account: str
    entity: str
    amount: Decimal
    date: Optional[datetime]
    method: str


@dataclass
class FundTrace:
    """Result of tracing funds out of one source transaction."""
    flow_id: str
    path: List[FundFlowStep] = field(default_factory=list)
    total_amount: Decimal = Decimal("0")
    ultimate_beneficiaries: List[str] = field(default_factory=list)
    traceability: str = "partially_traced"


def summarize(
    analyses: Sequence[StoredTransactionAnalysis],
    anomalies: Sequence[StoredAnomaly],
) -> SummaryFigures:
    figures = SummaryFigures(total_analyzed=len(analyses), anomalies=len(anomalies))
    for analysis in analyses:
        if analysis.risk_level == RiskLevel.HIGH:
            figures.high_risk += 1
        if analysis.legitimacy == LegitimacyAssessment.QUESTIONABLE:
            figures.questionable += 1
        elif analysis.legitimacy == LegitimacyAssessment.IMPROPER:
            figures.improper += 1
            figures.estimated_damages += abs(analysis.transaction_amount or Decimal("0"))
    return figures


def _format_period_date(value: Optional[datetime]) -> str:
    return value.strftime("%Y-%m-%d") if value else "not specified"


def generate_executive_summary(
    investigation: Investigation,
    analyses: Sequence[StoredTransactionAnalysis],
    anomalies: Sequence[StoredAnomaly],
) -> str:
    """Markdown executive summary for one investigation."""
    figures = summarize(analyses, anomalies)
    status = getattr(investigation.status, "value", investigation.status)

    lines = [
        f"# Executive Summary: {investigation.title}",
        "",
        f"**Case Number:** {investigation.case_number}",
        (
            f"**Investigation Period:** {_format_period_date(investigation.period_start)}"
            f" to {_format_period_date(investigation.period_end)}"
        ),
        f"**Status:** {status}",
        "",
        "## Key Findings",
        "",
        f"- **Total Transactions Analyzed:** {figures.total_analyzed}",
        f"- **High Risk Transactions:** {figures.high_risk}",
        f"- **Improper Transactions:** {figures.improper}",
        f"- **Questionable Transactions:** {figures.questionable}",
        f"- **Anomalies Detected:** {figures.anomalies}",
        "",
        "## Estimated Damages",
        "",
        f"${figures.estimated_damages.quantize(Decimal('0.01')):,}",
        "",
        "## Recommendations",
        "",
    ]
    lines.extend(f"{i}. {text}" for i, text in enumerate(SUMMARY_RECOMMENDATIONS, start=1))
    return "\n".join(lines) + "\n"


def trace_funds(transaction: TransactionRecord) -> FundTrace:
    """
    Trace one hop out of a source transaction.

    Counterparties beyond the first hop are not recorded by the ledger,
    so every trace is reported as partially traced.
    """
    entity = transaction.title or "Unknown"
    amount = abs(transaction.amount)
    return FundTrace(
        flow_id=str(uuid.uuid4()),
        path=[
            FundFlowStep(
                step=1,
                account="Source Account",
                entity=entity,
                amount=amount,
                date=transaction.occurred_at,
                method="payment" if transaction.kind == "expense" else "deposit",
            )
        ],
        total_amount=amount,
        ultimate_beneficiaries=[entity],
    )
