"""
Forensic Ledger Engine - Forensics Router

Forensic Accounting API Endpoints:
1. Investigations (open, list, status)
2. Evidence and chain of custody
3. Automated analysis (full pass or single detector)
4. Anomaly review
5. Damage calculations (direct loss, net worth, pre-judgment interest)
6. Executive summary and flow-of-funds trace
7. Recorded flows of funds and forensic reports
"""

import uuid
from typing import List

from fastapi import APIRouter, Depends, status

from forensic_engine.dependencies import get_current_user_id, get_forensic_service
from forensic_engine.schemas.forensic import (
    AnalysisReportResponse,
    AnomalyResponse,
    AnomalyStatusUpdate,
    BenfordDigitResponse,
    CustodyTransferRequest,
    DamageCalculationResponse,
    DetectorRunResponse,
    DirectLossRequest,
    EvidenceCreate,
    EvidenceResponse,
    FlowOfFundsCreate,
    FlowOfFundsResponse,
    FundTraceResponse,
    InterestRequest,
    InterestResponse,
    InvestigationCreate,
    InvestigationResponse,
    InvestigationStatusUpdate,
    NetWorthRequest,
    ReportCreate,
    ReportResponse,
    StoredAnomalyResponse,
    SummaryResponse,
    TraceFundsRequest,
)
from forensic_engine.services.benford import benfords_analyzer
from forensic_engine.services.investigation_service import ForensicInvestigationService


router = APIRouter(prefix="/api/forensics", tags=["Forensic Accounting"])


# =============================================================================
# INVESTIGATIONS
# =============================================================================

@router.get("/investigations", response_model=List[InvestigationResponse])
async def list_investigations(
    user_id: str = Depends(get_current_user_id),
    service: ForensicInvestigationService = Depends(get_forensic_service),
):
    """List the caller's investigations, newest first."""
    investigations = await service.list_investigations(user_id)
    return [InvestigationResponse.model_validate(inv) for inv in investigations]


@router.post(
    "/investigations",
    response_model=InvestigationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_investigation(
    request: InvestigationCreate,
    user_id: str = Depends(get_current_user_id),
    service: ForensicInvestigationService = Depends(get_forensic_service),
):
    """Open a new investigation owned by the caller."""
    investigation = await service.create_investigation(user_id, request.model_dump())
    return InvestigationResponse.model_validate(investigation)


@router.get("/investigations/{investigation_id}", response_model=InvestigationResponse)
async def get_investigation(
    investigation_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    service: ForensicInvestigationService = Depends(get_forensic_service),
):
    investigation = await service.get_investigation(user_id, investigation_id)
    return InvestigationResponse.model_validate(investigation)


@router.patch("/investigations/{investigation_id}/status", response_model=InvestigationResponse)
async def update_investigation_status(
    investigation_id: uuid.UUID,
    request: InvestigationStatusUpdate,
    user_id: str = Depends(get_current_user_id),
    service: ForensicInvestigationService = Depends(get_forensic_service),
):
    """
    Move an investigation to another status.

    Any status may follow any other unless the strict workflow is enabled.
    """
    investigation = await service.update_status(user_id, investigation_id, request.status)
    return InvestigationResponse.model_validate(investigation)


# =============================================================================
# EVIDENCE
# =============================================================================

@router.post(
    "/investigations/{investigation_id}/evidence",
    response_model=EvidenceResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_evidence(
    investigation_id: uuid.UUID,
    request: EvidenceCreate,
    user_id: str = Depends(get_current_user_id),
    service: ForensicInvestigationService = Depends(get_forensic_service),
):
    evidence = await service.add_evidence(user_id, investigation_id, request.model_dump())
    return EvidenceResponse.model_validate(evidence)


@router.get("/investigations/{investigation_id}/evidence", response_model=List[EvidenceResponse])
async def list_evidence(
    investigation_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    service: ForensicInvestigationService = Depends(get_forensic_service),
):
    evidence = await service.list_evidence(user_id, investigation_id)
    return [EvidenceResponse.model_validate(item) for item in evidence]


@router.post("/evidence/{evidence_id}/custody", response_model=EvidenceResponse)
async def append_custody(
    evidence_id: uuid.UUID,
    request: CustodyTransferRequest,
    user_id: str = Depends(get_current_user_id),
    service: ForensicInvestigationService = Depends(get_forensic_service),
):
    """Record a custody transfer; earlier entries are never changed."""
    evidence = await service.append_custody(user_id, evidence_id, request.model_dump())
    return EvidenceResponse.model_validate(evidence)


# =============================================================================
# ANALYSIS
# =============================================================================

@router.post("/investigations/{investigation_id}/analyze", response_model=AnalysisReportResponse)
async def analyze_investigation(
    investigation_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    service: ForensicInvestigationService = Depends(get_forensic_service),
):
    """
    Run risk scoring and every anomaly detector over the owner's ledger.

    Detectors that fail are listed under ``errors``; the rest of the
    report is still returned.
    """
    report = await service.analyze_investigation(user_id, investigation_id)
    return AnalysisReportResponse.model_validate(report)


@router.post(
    "/investigations/{investigation_id}/analyze/{analysis}",
    response_model=DetectorRunResponse,
)
async def run_detector(
    investigation_id: uuid.UUID,
    analysis: str,
    user_id: str = Depends(get_current_user_id),
    service: ForensicInvestigationService = Depends(get_forensic_service),
):
    """
    Run one detector: duplicates, timing, round_dollars or benfords_law.
    """
    outcome = await service.run_detector(user_id, investigation_id, analysis)
    return DetectorRunResponse(
        analysis=analysis,
        anomalies=[AnomalyResponse.model_validate(a) for a in outcome.all],
        benford_results=[BenfordDigitResponse.model_validate(r) for r in outcome.benford_results],
        interpretation=(
            benfords_analyzer.interpret(outcome.benford_results) if outcome.benford_results else None
        ),
    )


@router.get(
    "/investigations/{investigation_id}/anomalies",
    response_model=List[StoredAnomalyResponse],
)
async def list_anomalies(
    investigation_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    service: ForensicInvestigationService = Depends(get_forensic_service),
):
    anomalies = await service.list_anomalies(user_id, investigation_id)
    return [StoredAnomalyResponse.model_validate(a) for a in anomalies]


@router.patch("/anomalies/{anomaly_id}/status", response_model=StoredAnomalyResponse)
async def update_anomaly_status(
    anomaly_id: uuid.UUID,
    request: AnomalyStatusUpdate,
    user_id: str = Depends(get_current_user_id),
    service: ForensicInvestigationService = Depends(get_forensic_service),
):
    anomaly = await service.update_anomaly_status(user_id, anomaly_id, request.status)
    return StoredAnomalyResponse.model_validate(anomaly)


# =============================================================================
# DAMAGES
# =============================================================================

@router.post(
    "/investigations/{investigation_id}/damages/direct-loss",
    response_model=DamageCalculationResponse,
)
async def calculate_direct_loss(
    investigation_id: uuid.UUID,
    request: DirectLossRequest,
    user_id: str = Depends(get_current_user_id),
    service: ForensicInvestigationService = Depends(get_forensic_service),
):
    """Sum of the absolute amounts of the listed improper transactions."""
    result = await service.calculate_direct_loss(
        user_id, investigation_id, request.improper_transaction_ids
    )
    return DamageCalculationResponse.model_validate(result)


@router.post(
    "/investigations/{investigation_id}/damages/net-worth",
    response_model=DamageCalculationResponse,
)
async def calculate_net_worth(
    investigation_id: uuid.UUID,
    request: NetWorthRequest,
    user_id: str = Depends(get_current_user_id),
    service: ForensicInvestigationService = Depends(get_forensic_service),
):
    """
    Net-worth method:
    unexplained wealth = (ending - beginning) + expenditures - legitimate income
    """
    result = await service.calculate_net_worth(
        user_id,
        investigation_id,
        request.beginning_net_worth,
        request.ending_net_worth,
        request.personal_expenditures,
        request.legitimate_income,
    )
    return DamageCalculationResponse.model_validate(result)


@router.post("/investigations/{investigation_id}/interest", response_model=InterestResponse)
async def calculate_interest(
    investigation_id: uuid.UUID,
    request: InterestRequest,
    user_id: str = Depends(get_current_user_id),
    service: ForensicInvestigationService = Depends(get_forensic_service),
):
    """Simple pre-judgment interest from the loss date until now."""
    result = await service.calculate_interest(
        user_id,
        investigation_id,
        request.loss_amount,
        request.loss_date,
        request.annual_rate,
    )
    return InterestResponse.model_validate(result)


# =============================================================================
# REPORTING
# =============================================================================

@router.post("/investigations/{investigation_id}/generate-summary", response_model=SummaryResponse)
async def generate_summary(
    investigation_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    service: ForensicInvestigationService = Depends(get_forensic_service),
):
    summary = await service.generate_summary(user_id, investigation_id)
    return SummaryResponse(summary=summary)


@router.post("/investigations/{investigation_id}/trace-funds", response_model=FundTraceResponse)
async def trace_funds(
    investigation_id: uuid.UUID,
    request: TraceFundsRequest,
    user_id: str = Depends(get_current_user_id),
    service: ForensicInvestigationService = Depends(get_forensic_service),
):
    trace = await service.trace_funds(user_id, investigation_id, request.transaction_id)
    return FundTraceResponse.model_validate(trace)


@router.post(
    "/investigations/{investigation_id}/flow-of-funds",
    response_model=FlowOfFundsResponse,
    status_code=status.HTTP_201_CREATED,
)
async def record_flow_of_funds(
    investigation_id: uuid.UUID,
    request: FlowOfFundsCreate,
    user_id: str = Depends(get_current_user_id),
    service: ForensicInvestigationService = Depends(get_forensic_service),
):
    """Record a movement of funds between two accounts."""
    flow = await service.record_flow_of_funds(user_id, investigation_id, request.model_dump())
    return FlowOfFundsResponse.model_validate(flow)


@router.get(
    "/investigations/{investigation_id}/flow-of-funds",
    response_model=List[FlowOfFundsResponse],
)
async def list_flows_of_funds(
    investigation_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    service: ForensicInvestigationService = Depends(get_forensic_service),
):
    flows = await service.list_flows_of_funds(user_id, investigation_id)
    return [FlowOfFundsResponse.model_validate(flow) for flow in flows]


@router.post(
    "/investigations/{investigation_id}/reports",
    response_model=ReportResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_report(
    investigation_id: uuid.UUID,
    request: ReportCreate,
    user_id: str = Depends(get_current_user_id),
    service: ForensicInvestigationService = Depends(get_forensic_service),
):
    report = await service.create_report(user_id, investigation_id, request.model_dump())
    return ReportResponse.model_validate(report)


@router.get("/investigations/{investigation_id}/reports", response_model=List[ReportResponse])
async def list_reports(
    investigation_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    service: ForensicInvestigationService = Depends(get_forensic_service),
):
    """Reports filed on the investigation, newest first."""
    reports = await service.list_reports(user_id, investigation_id)
    return [ReportResponse.model_validate(report) for report in reports]
