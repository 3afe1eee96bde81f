"""
Forensic Ledger Engine - Forensic Schemas

Pydantic schemas for forensic request/response validation.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field

from forensic_engine.domain import (
    AnomalyStatus,
    AnomalyType,
    ConfidenceLevel,
    DamageMethod,
    InvestigationStatus,
    LegitimacyAssessment,
    ReportStatus,
    RiskLevel,
    Traceability,
)


# =============================================================================
# BASE SCHEMAS
# =============================================================================

class ForensicBaseSchema(BaseModel):
    """Base schema for responses built from domain records."""

    class Config:
        from_attributes = True


# =============================================================================
# INVESTIGATION SCHEMAS
# =============================================================================

class InvestigationCreate(BaseModel):
    """Request model for opening an investigation."""
    case_number: str = Field(..., min_length=1, max_length=100)
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    allegations: Optional[str] = None
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None
    lead_investigator: Optional[str] = Field(None, max_length=255)
    status: Optional[InvestigationStatus] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class InvestigationStatusUpdate(BaseModel):
    status: InvestigationStatus


class InvestigationResponse(ForensicBaseSchema):
    id: UUID
    case_number: str
    title: str
    owner_id: str
    status: InvestigationStatus
    description: Optional[str] = None
    allegations: Optional[str] = None
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None
    lead_investigator: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# =============================================================================
# EVIDENCE SCHEMAS
# =============================================================================

class EvidenceCreate(BaseModel):
    """Request model for attaching evidence to an investigation."""
    evidence_number: str = Field(..., min_length=1, max_length=100)
    evidence_type: str = Field(..., min_length=1, max_length=100, description="document, bank_statement, email, ...")
    description: str = Field(..., min_length=1)
    source: str = Field(..., min_length=1, max_length=255)
    received_at: Optional[datetime] = None
    collected_by: Optional[str] = None
    storage_location: Optional[str] = None
    hash_value: Optional[str] = Field(None, max_length=128, description="SHA-256 of the original artefact")
    metadata: Dict[str, Any] = Field(default_factory=dict)


class CustodyTransferRequest(BaseModel):
    """Request model for a chain-of-custody transfer."""
    transferred_to: str = Field(..., min_length=1)
    transferred_by: str = Field(..., min_length=1)
    location: str = Field(..., min_length=1)
    purpose: str = Field(..., min_length=1)


class CustodyEntryResponse(ForensicBaseSchema):
    transferred_to: str
    transferred_by: str
    location: str
    purpose: str
    timestamp: datetime


class EvidenceResponse(ForensicBaseSchema):
    id: UUID
    investigation_id: UUID
    evidence_number: str
    evidence_type: str
    description: str
    source: str
    received_at: Optional[datetime] = None
    collected_by: Optional[str] = None
    storage_location: Optional[str] = None
    hash_value: Optional[str] = None
    chain_of_custody: List[CustodyEntryResponse] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None


# =============================================================================
# ANALYSIS SCHEMAS
# =============================================================================

class TransactionAnalysisResponse(ForensicBaseSchema):
    transaction_id: UUID
    risk_level: RiskLevel
    legitimacy: LegitimacyAssessment
    red_flags: List[str]
    score: int


class AnomalyResponse(ForensicBaseSchema):
    """An anomaly as returned by a detector run."""
    anomaly_type: AnomalyType
    severity: RiskLevel
    description: str
    affected_transaction_ids: List[UUID]
    detection_method: str
    status: AnomalyStatus


class StoredAnomalyResponse(AnomalyResponse):
    id: UUID
    investigation_id: UUID
    created_at: Optional[datetime] = None


class AnomalyStatusUpdate(BaseModel):
    status: AnomalyStatus


class BenfordDigitResponse(ForensicBaseSchema):
    """Leading-digit statistics; totals are set on the digit-1 record only."""
    digit: int
    count: int
    observed: float
    expected: float
    deviation: float
    chi_square: float
    z_score: float
    passed: bool
    total_chi_square: Optional[float] = None
    critical_value: Optional[float] = None
    overall_passed: Optional[bool] = None


class AnalysisErrorResponse(ForensicBaseSchema):
    analysis: str
    error: str


class AnalysisReportResponse(ForensicBaseSchema):
    """Combined output of a full analysis pass."""
    transaction_analyses: List[TransactionAnalysisResponse]
    duplicate_payments: List[AnomalyResponse]
    unusual_timing: List[AnomalyResponse]
    round_dollars: List[AnomalyResponse]
    benfords_law: List[BenfordDigitResponse]
    errors: List[AnalysisErrorResponse]


class DetectorRunResponse(BaseModel):
    """Output of a single detector run."""
    analysis: str
    anomalies: List[AnomalyResponse] = Field(default_factory=list)
    benford_results: List[BenfordDigitResponse] = Field(default_factory=list)
    interpretation: Optional[str] = None


# =============================================================================
# DAMAGES SCHEMAS
# =============================================================================

class DirectLossRequest(BaseModel):
    improper_transaction_ids: List[UUID]


class NetWorthRequest(BaseModel):
    """
    Net-worth method inputs.

    Values are validated by the calculator so booleans and numeric
    strings are rejected rather than coerced.
    """
    beginning_net_worth: Any = None
    ending_net_worth: Any = None
    personal_expenditures: Any = None
    legitimate_income: Any = None


class InterestRequest(BaseModel):
    loss_amount: Any = None
    loss_date: Union[datetime, date, str, None] = None
    annual_rate: Any = None


class DamageLineItemResponse(ForensicBaseSchema):
    category: str
    amount: Decimal
    description: str


class DamageCalculationResponse(ForensicBaseSchema):
    method: DamageMethod
    total_damage: Decimal
    breakdown: List[DamageLineItemResponse]
    confidence_level: ConfidenceLevel
    assumptions: List[str]
    limitations: List[str]


class InterestResponse(ForensicBaseSchema):
    loss_amount: Decimal
    annual_rate: Decimal
    years: float
    interest: Decimal
    total_with_interest: Decimal


# =============================================================================
# REPORTING SCHEMAS
# =============================================================================

class SummaryResponse(BaseModel):
    summary: str


class TraceFundsRequest(BaseModel):
    transaction_id: UUID


class FundFlowStepResponse(ForensicBaseSchema):
    step: int
    account: str
    entity: str
    amount: Decimal
    date: Optional[datetime] = None
    method: str


class FundTraceResponse(ForensicBaseSchema):
    flow_id: str
    path: List[FundFlowStepResponse]
    total_amount: Decimal
    ultimate_beneficiaries: List[str]
    traceability: str


class FlowOfFundsCreate(BaseModel):
    """
    Request model for recording a flow of funds.

    ``amount`` is validated by the service so booleans and numeric
    strings are rejected rather than coerced.
    """
    source_account: str = Field(..., min_length=1, max_length=255)
    source_entity: Optional[str] = Field(None, max_length=255)
    destination_account: str = Field(..., min_length=1, max_length=255)
    destination_entity: Optional[str] = Field(None, max_length=255)
    amount: Any = None
    transfer_date: Optional[datetime] = None
    transfer_method: Optional[str] = Field(None, max_length=100, description="wire, cheque, cash, ...")
    flow_path: List[Dict[str, Any]] = Field(default_factory=list)
    traceability: Optional[Traceability] = None
    notes: Optional[str] = None


class FlowOfFundsResponse(ForensicBaseSchema):
    id: UUID
    investigation_id: UUID
    source_account: str
    source_entity: Optional[str] = None
    destination_account: str
    destination_entity: Optional[str] = None
    amount: Decimal
    transfer_date: Optional[datetime] = None
    transfer_method: Optional[str] = None
    flow_path: List[Dict[str, Any]] = Field(default_factory=list)
    traceability: Traceability
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


class ReportCreate(BaseModel):
    """Request model for filing a forensic report."""
    report_type: str = Field(..., min_length=1, max_length=100, description="preliminary, final, expert_witness, ...")
    title: str = Field(..., min_length=1, max_length=500)
    content: str = Field(..., min_length=1)
    findings: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    prepared_by: Optional[str] = Field(None, max_length=255)
    status: Optional[ReportStatus] = None


class ReportResponse(ForensicBaseSchema):
    id: UUID
    investigation_id: UUID
    report_type: str
    title: str
    content: str
    findings: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    prepared_by: Optional[str] = None
    status: ReportStatus
    generated_at: datetime
    created_at: Optional[datetime] = None
