"""
Forensic Ledger Engine - Schemas Package

Pydantic schemas for request/response validation.
"""

from forensic_engine.schemas.forensic import (
    AnalysisReportResponse,
    AnomalyStatusUpdate,
    CustodyTransferRequest,
    DamageCalculationResponse,
    DetectorRunResponse,
    DirectLossRequest,
    EvidenceCreate,
    EvidenceResponse,
    FundTraceResponse,
    InterestRequest,
    InterestResponse,
    InvestigationCreate,
    InvestigationResponse,
    InvestigationStatusUpdate,
    NetWorthRequest,
    StoredAnomalyResponse,
    SummaryResponse,
    TraceFundsRequest,
)

__all__ = [
    "AnalysisReportResponse",
    "AnomalyStatusUpdate",
    "CustodyTransferRequest",
    "DamageCalculationResponse",
    "DetectorRunResponse",
    "DirectLossRequest",
    "EvidenceCreate",
    "EvidenceResponse",
    "FundTraceResponse",
    "InterestRequest",
    "InterestResponse",
    "InvestigationCreate",
    "InvestigationResponse",
    "InvestigationStatusUpdate",
    "NetWorthRequest",
    "StoredAnomalyResponse",
    "SummaryResponse",
    "TraceFundsRequest",
]
