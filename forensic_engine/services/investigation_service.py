"""
Forensic Investigation Service

Orchestrates investigations, evidence and analysis for one acting user:
- Investigation lifecycle with ownership checks on every call
- Evidence intake and append-only chain of custody
- Full analysis pass (risk scoring + all anomaly detectors, concurrently)
- Damage calculations scoped to the owner's ledger
- Executive summary and flow-of-funds trace
- Recorded flows of funds and filed forensic reports

Every state change emits exactly one audit record through the ledger
emitter. Emission never blocks and never fails the operation.
"""

import asyncio
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Type, TypeVar

from forensic_engine.domain import (
    AnalysisError,
    AnalysisReport,
    AnomalyStatus,
    CustodyEntry,
    DamageCalculationResult,
    DetectorOutcome,
    Evidence,
    FundFlow,
    InterestCalculation,
    Investigation,
    InvestigationReport,
    InvestigationStatus,
    ReportStatus,
    StoredAnomaly,
    Traceability,
    TransactionAnalysis,
    TransactionRecord,
)
from forensic_engine.repositories.base import ForensicRepository
from forensic_engine.services.anomaly_detection import AnomalyDetector, default_detectors
from forensic_engine.services.audit_ledger import AuditEntry, AuditLedgerEmitter
from forensic_engine.services.damages import (
    calculate_direct_loss,
    calculate_net_worth_method,
    calculate_prejudgment_interest,
)
from forensic_engine.services.reporting import FundTrace, generate_executive_summary, trace_funds
from forensic_engine.services.risk_scoring import TransactionRiskScorer, transaction_risk_scorer
from forensic_engine.utils.error_handling import (
    AnomalyAccessError,
    EvidenceAccessError,
    InvalidAmountException,
    InvalidStatusTransitionException,
    InvestigationAccessError,
    TransactionNotFoundException,
    ValidationException,
    require_number,
    require_text,
)

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)


STATUS_WORKFLOW = (
    InvestigationStatus.OPEN,
    InvestigationStatus.IN_PROGRESS,
    InvestigationStatus.COMPLETED,
    InvestigationStatus.CLOSED,
)

# Public detector names accepted by run_detector
DETECTOR_ALIASES = {
    "duplicates": "duplicate_payments",
    "timing": "unusual_timing",
    "round_dollars": "round_dollars",
    "benfords_law": "benfords_law",
}

SCORING_ANALYSIS = "transaction_analyses"


def _coerce_enum(enum_cls: Type[E], value: Any, field: str) -> E:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationException(
            f"Invalid {field} '{value}'. Expected one of: {allowed}",
            field=field,
        )


def check_status_transition(
    current: InvestigationStatus,
    target: Any,
    strict: bool = False,
) -> InvestigationStatus:
    """
    Validate a requested investigation status change.

    By default any of the four states may follow any other. In strict
    mode an investigation may only stay where it is or advance one step
    along open -> in_progress -> completed -> closed.
    """
    target_status = _coerce_enum(InvestigationStatus, target, "status")
    if strict:
        current_index = STATUS_WORKFLOW.index(current)
        target_index = STATUS_WORKFLOW.index(target_status)
        if target_index not in (current_index, current_index + 1):
            raise InvalidStatusTransitionException(current.value, target_status.value)
    return target_status


def _owned_by(owner_id: Any, user_id: Any) -> bool:
    return owner_id is not None and str(owner_id) == str(user_id)


class ForensicInvestigationService:
    """Investigation and evidence manager for the forensic engine."""

    def __init__(
        self,
        repository: ForensicRepository,
        emitter: Optional[AuditLedgerEmitter] = None,
        strict_status_workflow: bool = False,
        scorer: Optional[TransactionRiskScorer] = None,
        detectors: Optional[Sequence[AnomalyDetector]] = None,
    ):
        self.repository = repository
        self.emitter = emitter or AuditLedgerEmitter()
        self.strict_status_workflow = strict_status_workflow
        self.scorer = scorer or transaction_risk_scorer
        self.detectors: List[AnomalyDetector] = list(detectors) if detectors is not None else default_detectors()

    # ===========================================
    # HELPERS
    # ===========================================

    async def _require_investigation(self, user_id: Any, investigation_id: Any) -> Investigation:
        investigation = await self.repository.get_investigation(investigation_id)
        if investigation is None or not _owned_by(investigation.owner_id, user_id):
            raise InvestigationAccessError()
        return investigation

    async def _require_evidence(self, user_id: Any, evidence_id: Any) -> Evidence:
        evidence = await self.repository.get_evidence(evidence_id)
        if evidence is None:
            raise EvidenceAccessError()
        investigation = await self.repository.get_investigation(evidence.investigation_id)
        if investigation is None or not _owned_by(investigation.owner_id, user_id):
            raise EvidenceAccessError()
        return evidence

    def _audit(
        self,
        user_id: Any,
        entity_type: str,
        entity_id: Any,
        action: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.emitter.emit(AuditEntry(
            entity_type=entity_type,
            entity_id=str(entity_id),
            action=action,
            actor=str(user_id),
            actor_type="user",
            metadata=metadata or {},
        ))

    def _detector(self, name: str) -> AnomalyDetector:
        detector_name = DETECTOR_ALIASES.get(name)
        for detector in self.detectors:
            if detector.name == detector_name:
                return detector
        allowed = ", ".join(DETECTOR_ALIASES)
        raise ValidationException(
            f"Unknown analysis '{name}'. Expected one of: {allowed}",
            field="analysis",
        )

    # ===========================================
    # INVESTIGATIONS
    # ===========================================

    async def create_investigation(self, user_id: Any, data: Dict[str, Any]) -> Investigation:
        values = dict(data)
        values["case_number"] = require_text(values.get("case_number"), "case_number")
        values["title"] = require_text(values.get("title"), "title")
        values["status"] = _coerce_enum(
            InvestigationStatus, values.get("status") or InvestigationStatus.OPEN, "status"
        )

        investigation = await self.repository.create_investigation(user_id, values)
        logger.info(f"Investigation {investigation.case_number} opened by user {user_id}")

        self._audit(user_id, "investigation", investigation.id, "investigation.created", {
            "case_number": investigation.case_number,
            "title": investigation.title,
        })
        return investigation

    async def list_investigations(self, user_id: Any) -> List[Investigation]:
        return await self.repository.list_investigations(user_id)

    async def get_investigation(self, user_id: Any, investigation_id: Any) -> Investigation:
        return await self._require_investigation(user_id, investigation_id)

    async def update_status(self, user_id: Any, investigation_id: Any, status: Any) -> Investigation:
        investigation = await self._require_investigation(user_id, investigation_id)
        target = check_status_transition(investigation.status, status, self.strict_status_workflow)

        updated = await self.repository.update_investigation_status(investigation.id, target)
        if updated is None:
            raise InvestigationAccessError()
        logger.info(
            f"Investigation {investigation.case_number} status "
            f"{investigation.status.value} -> {target.value}"
        )

        self._audit(user_id, "investigation", investigation.id, "investigation.status-changed", {
            "from": investigation.status.value,
            "to": target.value,
        })
        return updated

    # ===========================================
    # EVIDENCE & CHAIN OF CUSTODY
    # ===========================================

    async def add_evidence(self, user_id: Any, investigation_id: Any, data: Dict[str, Any]) -> Evidence:
        values = dict(data)
        for field in ("evidence_number", "evidence_type", "description", "source"):
            values[field] = require_text(values.get(field), field)

        investigation = await self._require_investigation(user_id, investigation_id)
        evidence = await self.repository.create_evidence(investigation.id, values)
        logger.info(f"Evidence {evidence.evidence_number} added to {investigation.case_number}")

        self._audit(user_id, "evidence", evidence.id, "evidence.added", {
            "investigation_id": str(investigation.id),
            "evidence_number": evidence.evidence_number,
            "evidence_type": evidence.evidence_type,
            "hash_value": evidence.hash_value,
        })
        return evidence

    async def list_evidence(self, user_id: Any, investigation_id: Any) -> List[Evidence]:
        investigation = await self._require_investigation(user_id, investigation_id)
        return await self.repository.list_evidence(investigation.id)

    async def append_custody(self, user_id: Any, evidence_id: Any, transfer: Dict[str, Any]) -> Evidence:
        """Append one transfer to the evidence item's chain of custody."""
        entry = CustodyEntry(
            transferred_to=require_text(transfer.get("transferred_to"), "transferred_to"),
            transferred_by=require_text(transfer.get("transferred_by"), "transferred_by"),
            location=require_text(transfer.get("location"), "location"),
            purpose=require_text(transfer.get("purpose"), "purpose"),
            timestamp=datetime.utcnow(),
        )

        evidence = await self._require_evidence(user_id, evidence_id)
        updated = await self.repository.append_custody_entry(evidence.id, entry)
        if updated is None:
            raise EvidenceAccessError()
        logger.info(
            f"Custody of evidence {evidence.evidence_number} transferred "
            f"{entry.transferred_by} -> {entry.transferred_to}"
        )

        self._audit(user_id, "custody", evidence.id, "custody.transferred", {
            "investigation_id": str(evidence.investigation_id),
            **entry.to_dict(),
        })
        return updated

    # ===========================================
    # ANALYSIS
    # ===========================================

    async def _guarded(self, name: str, compute: Callable[[], Any]) -> Tuple[Any, Optional[AnalysisError]]:
        """Run one analysis in a worker thread; failures become an AnalysisError."""
        try:
            return await asyncio.to_thread(compute), None
        except Exception as e:
            logger.exception(f"Forensic analysis '{name}' failed")
            return None, AnalysisError(analysis=name, error=str(e))

    def _score_all(self, transactions: Sequence[TransactionRecord]) -> List[TransactionAnalysis]:
        return [self.scorer.score(txn) for txn in transactions]

    async def analyze_investigation(self, user_id: Any, investigation_id: Any) -> AnalysisReport:
        """
        Run risk scoring and every anomaly detector over the owner's ledger.

        Detectors that raise are reported in ``errors`` while the rest
        complete. Results are persisted additively; storage failures
        propagate.
        """
        investigation = await self._require_investigation(user_id, investigation_id)
        transactions = await self.repository.list_transactions(investigation.owner_id)

        scoring, *detections = await asyncio.gather(
            self._guarded(SCORING_ANALYSIS, lambda: self._score_all(transactions)),
            *[
                self._guarded(detector.name, lambda d=detector: d.detect(transactions))
                for detector in self.detectors
            ],
        )

        report = AnalysisReport()
        to_store = []

        analyses, error = scoring
        if error is not None:
            report.errors.append(error)
        else:
            report.transaction_analyses = analyses

        for detector, (outcome, error) in zip(self.detectors, detections):
            if error is not None:
                report.errors.append(error)
                continue
            to_store.extend(outcome.stored)
            if detector.name == "benfords_law":
                report.benfords_law = outcome.benford_results
            else:
                setattr(report, detector.name, outcome.all)

        if report.transaction_analyses:
            amounts = {txn.id: txn.amount for txn in transactions}
            await self.repository.insert_transaction_analyses(
                investigation.id, report.transaction_analyses, amounts
            )
        if to_store:
            await self.repository.insert_anomalies(investigation.id, to_store)

        logger.info(
            f"Analysis of {investigation.case_number}: {len(transactions)} transactions, "
            f"{len(to_store)} anomalies stored, {len(report.errors)} failed analyses"
        )

        self._audit(user_id, "investigation", investigation.id, "forensic.analysis-completed", {
            "transactions_analyzed": len(report.transaction_analyses),
            "anomalies_stored": len(to_store),
            "failed_analyses": [e.analysis for e in report.errors],
        })
        return report

    async def run_detector(self, user_id: Any, investigation_id: Any, name: str) -> DetectorOutcome:
        """Run a single detector and store its anomalies."""
        detector = self._detector(name)
        investigation = await self._require_investigation(user_id, investigation_id)
        transactions = await self.repository.list_transactions(investigation.owner_id)

        outcome = detector.detect(transactions)
        if outcome.stored:
            await self.repository.insert_anomalies(investigation.id, outcome.stored)

        self._audit(user_id, "investigation", investigation.id, "forensic.detector-run", {
            "analysis": name,
            "anomalies_stored": len(outcome.stored),
        })
        return outcome

    async def list_anomalies(self, user_id: Any, investigation_id: Any) -> List[StoredAnomaly]:
        investigation = await self._require_investigation(user_id, investigation_id)
        return await self.repository.list_anomalies(investigation.id)

    async def update_anomaly_status(self, user_id: Any, anomaly_id: Any, status: Any) -> StoredAnomaly:
        target = _coerce_enum(AnomalyStatus, status, "status")

        anomaly = await self.repository.get_anomaly(anomaly_id)
        if anomaly is None:
            raise AnomalyAccessError()
        investigation = await self.repository.get_investigation(anomaly.investigation_id)
        if investigation is None or not _owned_by(investigation.owner_id, user_id):
            raise AnomalyAccessError()

        updated = await self.repository.update_anomaly_status(anomaly.id, target)
        if updated is None:
            raise AnomalyAccessError()

        self._audit(user_id, "anomaly", anomaly.id, "anomaly.status-changed", {
            "investigation_id": str(investigation.id),
            "from": anomaly.status.value,
            "to": target.value,
        })
        return updated

    # ===========================================
    # DAMAGES
    # ===========================================

    async def calculate_direct_loss(
        self,
        user_id: Any,
        investigation_id: Any,
        improper_transaction_ids: Sequence[Any],
    ) -> DamageCalculationResult:
        investigation = await self._require_investigation(user_id, investigation_id)
        transactions = await self.repository.list_transactions(investigation.owner_id)
        return calculate_direct_loss(transactions, improper_transaction_ids)

    async def calculate_net_worth(
        self,
        user_id: Any,
        investigation_id: Any,
        beginning_net_worth: Any,
        ending_net_worth: Any,
        personal_expenditures: Any,
        legitimate_income: Any,
    ) -> DamageCalculationResult:
        await self._require_investigation(user_id, investigation_id)
        return calculate_net_worth_method(
            beginning_net_worth, ending_net_worth, personal_expenditures, legitimate_income
        )

    async def calculate_interest(
        self,
        user_id: Any,
        investigation_id: Any,
        loss_amount: Any,
        loss_date: Any,
        annual_rate: Any,
        now: Optional[datetime] = None,
    ) -> InterestCalculation:
        await self._require_investigation(user_id, investigation_id)
        return calculate_prejudgment_interest(loss_amount, loss_date, annual_rate, now=now)

    # ===========================================
    # REPORTING
    # ===========================================

    async def generate_summary(self, user_id: Any, investigation_id: Any) -> str:
        investigation = await self._require_investigation(user_id, investigation_id)
        analyses = await self.repository.list_transaction_analyses(investigation.id)
        anomalies = await self.repository.list_anomalies(investigation.id)
        return generate_executive_summary(investigation, analyses, anomalies)

    async def trace_funds(self, user_id: Any, investigation_id: Any, transaction_id: Any) -> FundTrace:
        if transaction_id is None or transaction_id == "":
            raise ValidationException("Transaction ID is required", field="transaction_id")

        investigation = await self._require_investigation(user_id, investigation_id)
        transaction = await self.repository.get_transaction(transaction_id)
        if transaction is None or not _owned_by(transaction.owner_id, investigation.owner_id):
            raise TransactionNotFoundException(transaction_id)
        return trace_funds(transaction)

    # ===========================================
    # FLOW OF FUNDS & REPORTS
    # ===========================================

    async def record_flow_of_funds(self, user_id: Any, investigation_id: Any, data: Dict[str, Any]) -> FundFlow:
        """Store a movement of money between two accounts against the investigation."""
        values = dict(data)
        values["source_account"] = require_text(values.get("source_account"), "source_account")
        values["destination_account"] = require_text(values.get("destination_account"), "destination_account")
        amount = require_number(values.get("amount"), "amount")
        if amount < 0:
            raise InvalidAmountException(
                values.get("amount"), "amount", message="Flow of funds amount cannot be negative"
            )
        values["amount"] = amount
        values["traceability"] = _coerce_enum(
            Traceability, values.get("traceability") or Traceability.PARTIALLY_TRACED, "traceability"
        )
        flow_path = values.get("flow_path") or []
        if not isinstance(flow_path, list) or not all(isinstance(step, dict) for step in flow_path):
            raise ValidationException("flow_path must be a list of steps", field="flow_path")

        investigation = await self._require_investigation(user_id, investigation_id)
        flow = await self.repository.create_flow_of_funds(investigation.id, values)
        logger.info(
            f"Flow of funds {flow.source_account} -> {flow.destination_account} "
            f"recorded on {investigation.case_number}"
        )

        self._audit(user_id, "flow_of_funds", flow.id, "flow-of-funds.recorded", {
            "investigation_id": str(investigation.id),
            "source_account": flow.source_account,
            "destination_account": flow.destination_account,
            "amount": str(flow.amount),
            "traceability": flow.traceability.value,
        })
        return flow

    async def list_flows_of_funds(self, user_id: Any, investigation_id: Any) -> List[FundFlow]:
        investigation = await self._require_investigation(user_id, investigation_id)
        return await self.repository.list_flows_of_funds(investigation.id)

    async def create_report(self, user_id: Any, investigation_id: Any, data: Dict[str, Any]) -> InvestigationReport:
        values = dict(data)
        for field in ("report_type", "title", "content"):
            values[field] = require_text(values.get(field), field)
        values["status"] = _coerce_enum(ReportStatus, values.get("status") or ReportStatus.DRAFT, "status")
        for field in ("findings", "recommendations"):
            items = values.get(field) or []
            if not isinstance(items, list) or not all(isinstance(item, str) for item in items):
                raise ValidationException(f"{field} must be a list of strings", field=field)
            values[field] = items

        investigation = await self._require_investigation(user_id, investigation_id)
        report = await self.repository.create_report(investigation.id, values)
        logger.info(f"Report '{report.title}' filed on {investigation.case_number}")

        self._audit(user_id, "report", report.id, "report.created", {
            "investigation_id": str(investigation.id),
            "report_type": report.report_type,
            "title": report.title,
            "status": report.status.value,
        })
        return report

    async def list_reports(self, user_id: Any, investigation_id: Any) -> List[InvestigationReport]:
        investigation = await self._require_investigation(user_id, investigation_id)
        return await self.repository.list_reports(investigation.id)
