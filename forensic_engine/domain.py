"""
Forensic Ledger Engine - Domain Records

Plain in-memory records shared by the analyzers, the investigation manager
and the persistence adapters. Analyzer outputs are frozen; the only
mutable state lives behind the repositories.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


# ===========================================
# ENUMS
# ===========================================

class RiskLevel(str, Enum):
    """Risk level assigned to a transaction or anomaly."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# Anomalies share the risk scale
Severity = RiskLevel


class LegitimacyAssessment(str, Enum):
    """Legitimacy verdict for a single transaction."""
    PROPER = "proper"
    QUESTIONABLE = "questionable"
    IMPROPER = "improper"
    UNABLE_TO_DETERMINE = "unable_to_determine"


class AnomalyType(str, Enum):
    """Kinds of structural anomaly the detectors emit."""
    DUPLICATE_PAYMENT = "duplicate_payment"
    UNUSUAL_TIMING = "unusual_timing"
    ROUND_DOLLAR = "round_dollar"
    BENFORD_VIOLATION = "benford_violation"


class AnomalyStatus(str, Enum):
    """Investigator workflow status of an anomaly."""
    PENDING = "pending"
    REVIEWED = "reviewed"
    DISMISSED = "dismissed"
    CONFIRMED = "confirmed"


class InvestigationStatus(str, Enum):
    """Lifecycle of an investigation."""
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CLOSED = "closed"


class DamageMethod(str, Enum):
    DIRECT_LOSS = "direct_loss"
    NET_WORTH = "net_worth"


class ConfidenceLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Traceability(str, Enum):
    """How far a recorded flow of funds could be followed."""
    FULLY_TRACED = "fully_traced"
    PARTIALLY_TRACED = "partially_traced"
    UNTRACEABLE = "untraceable"


class ReportStatus(str, Enum):
    DRAFT = "draft"
    FINAL = "final"


# ===========================================
# INPUT RECORDS
# ===========================================

@dataclass(frozen=True)
class TransactionRecord:
    """A ledger transaction as read from the host platform."""
    id: Any
    amount: Decimal
    occurred_at: Optional[datetime] = None
    description: Optional[str] = None
    title: Optional[str] = None
    kind: Optional[str] = None
    owner_id: Any = None

    def __post_init__(self):
        # Amounts are fixed-point; floats go through str so 0.1 stays 0.1
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, "amount", Decimal(str(self.amount)))


# ===========================================
# ANALYSIS OUTPUTS
# ===========================================

@dataclass(frozen=True)
class TransactionAnalysis:
    """Risk verdict for one transaction."""
    transaction_id: Any
    risk_level: RiskLevel
    legitimacy: LegitimacyAssessment
    red_flags: Tuple[str, ...]
    score: int


@dataclass(frozen=True)
class DetectedAnomaly:
    """An anomaly as produced by a detector, before it is stored."""
    anomaly_type: AnomalyType
    severity: Severity
    description: str
    affected_transaction_ids: Tuple[Any, ...]
    detection_method: str = "automated"
    status: AnomalyStatus = AnomalyStatus.PENDING


@dataclass
class DetectorOutcome:
    """
    Result of one detector run.

    ``stored`` anomalies are persisted against the investigation;
    ``reported_only`` anomalies are returned to the caller but never stored.
    """
    stored: List[DetectedAnomaly] = field(default_factory=list)
    reported_only: List[DetectedAnomaly] = field(default_factory=list)
    # Populated by the Benford violation detector only
    benford_results: List["BenfordDigitResult"] = field(default_factory=list)

    @property
    def all(self) -> List[DetectedAnomaly]:
        return [*self.stored, *self.reported_only]


@dataclass(frozen=True)
class BenfordDigitResult:
    """Leading-digit statistics for one digit."""
    digit: int
    count: int
    observed: float
    expected: float
    deviation: float
    chi_square: float
    z_score: float
    passed: bool
    # Only populated on the digit-1 record
    total_chi_square: Optional[float] = None
    critical_value: Optional[float] = None
    overall_passed: Optional[bool] = None


@dataclass(frozen=True)
class AnalysisError:
    """A detector that failed during an analysis pass."""
    analysis: str
    error: str


@dataclass
class AnalysisReport:
    """Combined output of a full analysis pass."""
    transaction_analyses: List[TransactionAnalysis] = field(default_factory=list)
    duplicate_payments: List[DetectedAnomaly] = field(default_factory=list)
    unusual_timing: List[DetectedAnomaly] = field(default_factory=list)
    round_dollars: List[DetectedAnomaly] = field(default_factory=list)
    benfords_law: List[BenfordDigitResult] = field(default_factory=list)
    errors: List[AnalysisError] = field(default_factory=list)


# ===========================================
# DAMAGES
# ===========================================

@dataclass(frozen=True)
class DamageLineItem:
    category: str
    amount: Decimal
    description: str


@dataclass(frozen=True)
class DamageCalculationResult:
    """Damages computed under one forensic-accounting method."""
    method: DamageMethod
    total_damage: Decimal
    breakdown: Tuple[DamageLineItem, ...]
    confidence_level: ConfidenceLevel
    assumptions: Tuple[str, ...] = ()
    limitations: Tuple[str, ...] = ()


@dataclass(frozen=True)
class InterestCalculation:
    """Simple pre-judgment interest on a loss."""
    loss_amount: Decimal
    annual_rate: Decimal
    years: float
    interest: Decimal
    total_with_interest: Decimal


# ===========================================
# INVESTIGATIONS & EVIDENCE
# ===========================================

@dataclass(frozen=True)
class CustodyEntry:
    """One transfer in an evidence item's chain of custody."""
    transferred_to: str
    transferred_by: str
    location: str
    purpose: str
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transferred_to": self.transferred_to,
            "transferred_by": self.transferred_by,
            "location": self.location,
            "purpose": self.purpose,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CustodyEntry":
        timestamp = data["timestamp"]
        if isinstance(timestamp, str):
            timestamp = datetime.fromisoformat(timestamp)
        return cls(
            transferred_to=data["transferred_to"],
            transferred_by=data["transferred_by"],
            location=data["location"],
            purpose=data["purpose"],
            timestamp=timestamp,
        )


@dataclass
class Investigation:
    id: Any
    case_number: str
    title: str
    owner_id: Any
    status: InvestigationStatus = InvestigationStatus.OPEN
    description: Optional[str] = None
    allegations: Optional[str] = None
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None
    lead_investigator: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class Evidence:
    id: Any
    investigation_id: Any
    evidence_number: str
    evidence_type: str
    description: str
    source: str
    received_at: Optional[datetime] = None
    collected_by: Optional[str] = None
    storage_location: Optional[str] = None
    hash_value: Optional[str] = None
    chain_of_custody: List[CustodyEntry] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None


@dataclass
class StoredAnomaly:
    """An anomaly row as held by the persistence collaborator."""
    id: Any
    investigation_id: Any
    anomaly_type: AnomalyType
    severity: Severity
    description: str
    affected_transaction_ids: List[Any]
    detection_method: str
    status: AnomalyStatus
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class StoredTransactionAnalysis:
    """A persisted transaction analysis row."""
    id: Any
    investigation_id: Any
    transaction_id: Any
    risk_level: RiskLevel
    legitimacy: LegitimacyAssessment
    red_flags: Tuple[str, ...]
    analysis_notes: str
    analyzed_by: str
    transaction_amount: Optional[Decimal] = None
    created_at: Optional[datetime] = None


@dataclass
class FundFlow:
    """A movement of money recorded by an investigator."""
    id: Any
    investigation_id: Any
    source_account: str
    destination_account: str
    amount: Decimal
    source_entity: Optional[str] = None
    destination_entity: Optional[str] = None
    transfer_date: Optional[datetime] = None
    transfer_method: Optional[str] = None
    flow_path: List[Dict[str, Any]] = field(default_factory=list)
    traceability: Traceability = Traceability.PARTIALLY_TRACED
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass
class InvestigationReport:
    """
    A written report filed against an investigation.

    Reports are listed newest first by ``generated_at``.
    """
    id: Any
    investigation_id: Any
    report_type: str
    title: str
    content: str
    findings: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    prepared_by: Optional[str] = None
    status: ReportStatus = ReportStatus.DRAFT
    generated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
