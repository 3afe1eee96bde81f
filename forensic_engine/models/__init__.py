"""
Forensic Ledger Engine - Database Models
"""

from forensic_engine.models.base import BaseModel, TimestampMixin
from forensic_engine.models.forensic import (
    ForensicAnomaly,
    ForensicEvidence,
    ForensicFlowOfFunds,
    ForensicInvestigation,
    ForensicReport,
    ForensicTransactionAnalysis,
    LedgerTransaction,
)

__all__ = [
    "BaseModel",
    "TimestampMixin",
    "LedgerTransaction",
    "ForensicInvestigation",
    "ForensicEvidence",
    "ForensicTransactionAnalysis",
    "ForensicAnomaly",
    "ForensicFlowOfFunds",
    "ForensicReport",
]
