"""
Forensic Ledger Engine - Forensic Models

Tables for investigations, evidence with its chain of custody, per-
transaction analyses and detected anomalies, plus a read-only mapping of
the host platform's transaction ledger.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, String, Text, Uuid, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from forensic_engine.domain import (
    AnomalyStatus,
    AnomalyType,
    InvestigationStatus,
    LegitimacyAssessment,
    ReportStatus,
    RiskLevel,
    Traceability,
)
from forensic_engine.models.base import BaseModel, JSONType


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class LedgerTransaction(BaseModel):
    """
    Host platform transaction.

    Written by the accounting side of the platform; the forensic engine
    only reads it.
    """
    __tablename__ = "transactions"

    owner_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    occurred_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True, index=True)
    kind: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
        comment="expense, income, ..."
    )


class ForensicInvestigation(BaseModel):
    """A forensic case owned by one investigator."""
    __tablename__ = "forensic_investigations"

    case_number: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    allegations: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    period_start: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    period_end: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    status: Mapped[InvestigationStatus] = mapped_column(
        SQLEnum(InvestigationStatus, values_callable=_enum_values, name="investigation_status"),
        nullable=False,
        default=InvestigationStatus.OPEN,
        index=True,
    )

    lead_investigator: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    extra_metadata: Mapped[Dict[str, Any]] = mapped_column(
        "metadata", JSONType, nullable=False, default=dict
    )


class ForensicEvidence(BaseModel):
    """
    Evidence item attached to an investigation.

    ``chain_of_custody`` is append-only: rows are only ever updated by
    appending one entry to the stored array inside a single UPDATE.
    """
    __tablename__ = "forensic_evidence"

    investigation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("forensic_investigations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    evidence_number: Mapped[str] = mapped_column(String(100), nullable=False)
    evidence_type: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    source: Mapped[str] = mapped_column(String(255), nullable=False)
    received_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    collected_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    storage_location: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    hash_value: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    chain_of_custody: Mapped[List[Dict[str, Any]]] = mapped_column(
        JSONType, nullable=False, default=list
    )
    extra_metadata: Mapped[Dict[str, Any]] = mapped_column(
        "metadata", JSONType, nullable=False, default=dict
    )


class ForensicTransactionAnalysis(BaseModel):
    """Risk verdict for one transaction within one analysis pass."""
    __tablename__ = "forensic_transaction_analyses"

    investigation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("forensic_investigations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    transaction_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    transaction_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 2), nullable=True)
    risk_level: Mapped[RiskLevel] = mapped_column(
        SQLEnum(RiskLevel, values_callable=_enum_values, name="risk_level"),
        nullable=False,
    )
    legitimacy_assessment: Mapped[LegitimacyAssessment] = mapped_column(
        SQLEnum(LegitimacyAssessment, values_callable=_enum_values, name="legitimacy_assessment"),
        nullable=False,
    )
    red_flags: Mapped[List[str]] = mapped_column(JSONType, nullable=False, default=list)
    score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    analysis_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    analyzed_by: Mapped[str] = mapped_column(String(100), nullable=False, default="Automated System")


class ForensicAnomaly(BaseModel):
    """A detected anomaly; only ``status`` changes after insert."""
    __tablename__ = "forensic_anomalies"

    investigation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("forensic_investigations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    anomaly_type: Mapped[AnomalyType] = mapped_column(
        SQLEnum(AnomalyType, values_callable=_enum_values, name="anomaly_type"),
        nullable=False,
    )
    severity: Mapped[RiskLevel] = mapped_column(
        SQLEnum(RiskLevel, values_callable=_enum_values, name="anomaly_severity"),
        nullable=False,
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    detection_method: Mapped[str] = mapped_column(String(50), nullable=False, default="automated")
    related_transactions: Mapped[List[str]] = mapped_column(JSONType, nullable=False, default=list)
    status: Mapped[AnomalyStatus] = mapped_column(
        SQLEnum(AnomalyStatus, values_callable=_enum_values, name="anomaly_status"),
        nullable=False,
        default=AnomalyStatus.PENDING,
        index=True,
    )


class ForensicFlowOfFunds(BaseModel):
    """Investigator-recorded movement of funds between two accounts."""
    __tablename__ = "forensic_flow_of_funds"

    investigation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("forensic_investigations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    source_account: Mapped[str] = mapped_column(String(255), nullable=False)
    source_entity: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    destination_account: Mapped[str] = mapped_column(String(255), nullable=False)
    destination_entity: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    transfer_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    transfer_method: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    flow_path: Mapped[List[Dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)
    traceability: Mapped[Traceability] = mapped_column(
        SQLEnum(Traceability, values_callable=_enum_values, name="traceability"),
        nullable=False,
        default=Traceability.PARTIALLY_TRACED,
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class ForensicReport(BaseModel):
    """A report filed against an investigation."""
    __tablename__ = "forensic_reports"

    investigation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("forensic_investigations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    report_type: Mapped[str] = mapped_column(String(100), nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    findings: Mapped[List[str]] = mapped_column(JSONType, nullable=False, default=list)
    recommendations: Mapped[List[str]] = mapped_column(JSONType, nullable=False, default=list)
    prepared_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    status: Mapped[ReportStatus] = mapped_column(
        SQLEnum(ReportStatus, values_callable=_enum_values, name="report_status"),
        nullable=False,
        default=ReportStatus.DRAFT,
    )
    generated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
