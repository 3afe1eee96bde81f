"""
In-memory persistence collaborator.

Used by tests and by deployments that run the engine without a database.
Returned records are copies; callers cannot mutate stored state.
"""

import asyncio
import itertools
import uuid
from collections import defaultdict
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from forensic_engine.domain import (
    AnomalyStatus,
    CustodyEntry,
    DetectedAnomaly,
    Evidence,
    FundFlow,
    Investigation,
    InvestigationReport,
    InvestigationStatus,
    ReportStatus,
    StoredAnomaly,
    StoredTransactionAnalysis,
    Traceability,
    TransactionAnalysis,
    TransactionRecord,
)
from forensic_engine.repositories.base import (
    AUTOMATED_ANALYST,
    ForensicRepository,
    analysis_notes_for,
)


def _copy_evidence(evidence: Evidence) -> Evidence:
    return replace(
        evidence,
        chain_of_custody=list(evidence.chain_of_custody),
        metadata=dict(evidence.metadata),
    )


def _copy_anomaly(anomaly: StoredAnomaly) -> StoredAnomaly:
    return replace(anomaly, affected_transaction_ids=list(anomaly.affected_transaction_ids))


def _copy_flow(flow: FundFlow) -> FundFlow:
    return replace(flow, flow_path=[dict(step) for step in flow.flow_path])


def _copy_report(report: InvestigationReport) -> InvestigationReport:
    return replace(report, findings=list(report.findings), recommendations=list(report.recommendations))


class InMemoryForensicRepository(ForensicRepository):
    """Dictionary-backed repository with per-evidence custody locks."""

    def __init__(self, transactions: Optional[Iterable[TransactionRecord]] = None):
        self._transactions: Dict[Any, TransactionRecord] = {}
        self._investigations: Dict[Any, Investigation] = {}
        self._evidence: Dict[Any, Evidence] = {}
        self._analyses: List[StoredTransactionAnalysis] = []
        self._anomalies: Dict[Any, StoredAnomaly] = {}
        self._flows: Dict[Any, FundFlow] = {}
        self._reports: Dict[Any, InvestigationReport] = {}
        self._order: Dict[Any, int] = {}
        self._sequence = itertools.count(1)
        self._custody_locks: Dict[Any, asyncio.Lock] = defaultdict(asyncio.Lock)

        for txn in transactions or ():
            self.add_transaction(txn)

    def add_transaction(self, transaction: TransactionRecord) -> TransactionRecord:
        """Seed the read-only transaction ledger."""
        self._transactions[transaction.id] = transaction
        return transaction

    def _new_id(self) -> uuid.UUID:
        new_id = uuid.uuid4()
        self._order[new_id] = next(self._sequence)
        return new_id

    # ===========================================
    # TRANSACTIONS
    # ===========================================

    async def list_transactions(self, owner_id: Any) -> List[TransactionRecord]:
        return [txn for txn in self._transactions.values() if txn.owner_id == owner_id]

    async def get_transaction(self, transaction_id: Any) -> Optional[TransactionRecord]:
        return self._transactions.get(transaction_id)

    # ===========================================
    # INVESTIGATIONS
    # ===========================================

    async def get_investigation(self, investigation_id: Any) -> Optional[Investigation]:
        investigation = self._investigations.get(investigation_id)
        return replace(investigation, metadata=dict(investigation.metadata)) if investigation else None

    async def list_investigations(self, owner_id: Any) -> List[Investigation]:
        owned = [inv for inv in self._investigations.values() if inv.owner_id == owner_id]
        owned.sort(key=lambda inv: (inv.created_at, self._order[inv.id]), reverse=True)
        return [replace(inv, metadata=dict(inv.metadata)) for inv in owned]

    async def create_investigation(self, owner_id: Any, values: Dict[str, Any]) -> Investigation:
        now = datetime.utcnow()
        investigation = Investigation(
            id=self._new_id(),
            case_number=values["case_number"],
            title=values["title"],
            owner_id=owner_id,
            status=values.get("status") or InvestigationStatus.OPEN,
            description=values.get("description"),
            allegations=values.get("allegations"),
            period_start=values.get("period_start"),
            period_end=values.get("period_end"),
            lead_investigator=values.get("lead_investigator"),
            metadata=dict(values.get("metadata") or {}),
            created_at=now,
            updated_at=now,
        )
        self._investigations[investigation.id] = investigation
        return replace(investigation, metadata=dict(investigation.metadata))

    async def update_investigation_status(
        self,
        investigation_id: Any,
        status: InvestigationStatus,
    ) -> Optional[Investigation]:
        investigation = self._investigations.get(investigation_id)
        if investigation is None:
            return None
        investigation.status = status
        investigation.updated_at = datetime.utcnow()
        return replace(investigation, metadata=dict(investigation.metadata))

    # ===========================================
    # ANALYSES & ANOMALIES
    # ===========================================

    async def insert_transaction_analyses(
        self,
        investigation_id: Any,
        analyses: Sequence[TransactionAnalysis],
        transaction_amounts: Optional[Mapping[Any, Decimal]] = None,
    ) -> List[StoredTransactionAnalysis]:
        amounts = transaction_amounts or {}
        now = datetime.utcnow()
        stored = [
            StoredTransactionAnalysis(
                id=self._new_id(),
                investigation_id=investigation_id,
                transaction_id=analysis.transaction_id,
                risk_level=analysis.risk_level,
                legitimacy=analysis.legitimacy,
                red_flags=tuple(analysis.red_flags),
                analysis_notes=analysis_notes_for(analysis),
                analyzed_by=AUTOMATED_ANALYST,
                transaction_amount=amounts.get(analysis.transaction_id),
                created_at=now,
            )
            for analysis in analyses
        ]
        self._analyses.extend(stored)
        return list(stored)

    async def list_transaction_analyses(self, investigation_id: Any) -> List[StoredTransactionAnalysis]:
        return [a for a in self._analyses if a.investigation_id == investigation_id]

    async def insert_anomalies(
        self,
        investigation_id: Any,
        anomalies: Sequence[DetectedAnomaly],
    ) -> List[StoredAnomaly]:
        now = datetime.utcnow()
        stored = []
        for anomaly in anomalies:
            row = StoredAnomaly(
                id=self._new_id(),
                investigation_id=investigation_id,
                anomaly_type=anomaly.anomaly_type,
                severity=anomaly.severity,
                description=anomaly.description,
                affected_transaction_ids=list(anomaly.affected_transaction_ids),
                detection_method=anomaly.detection_method,
                status=anomaly.status,
                created_at=now,
            )
            self._anomalies[row.id] = row
            stored.append(_copy_anomaly(row))
        return stored

    async def list_anomalies(self, investigation_id: Any) -> List[StoredAnomaly]:
        return [
            _copy_anomaly(a) for a in self._anomalies.values()
            if a.investigation_id == investigation_id
        ]

    async def get_anomaly(self, anomaly_id: Any) -> Optional[StoredAnomaly]:
        anomaly = self._anomalies.get(anomaly_id)
        return _copy_anomaly(anomaly) if anomaly else None

    async def update_anomaly_status(
        self,
        anomaly_id: Any,
        status: AnomalyStatus,
    ) -> Optional[StoredAnomaly]:
        anomaly = self._anomalies.get(anomaly_id)
        if anomaly is None:
            return None
        anomaly.status = status
        return _copy_anomaly(anomaly)

    # ===========================================
    # EVIDENCE
    # ===========================================

    async def create_evidence(self, investigation_id: Any, values: Dict[str, Any]) -> Evidence:
        evidence = Evidence(
            id=self._new_id(),
            investigation_id=investigation_id,
            evidence_number=values["evidence_number"],
            evidence_type=values["evidence_type"],
            description=values["description"],
            source=values["source"],
            received_at=values.get("received_at"),
            collected_by=values.get("collected_by"),
            storage_location=values.get("storage_location"),
            hash_value=values.get("hash_value"),
            chain_of_custody=list(values.get("chain_of_custody") or []),
            metadata=dict(values.get("metadata") or {}),
            created_at=datetime.utcnow(),
        )
        self._evidence[evidence.id] = evidence
        return _copy_evidence(evidence)

    async def get_evidence(self, evidence_id: Any) -> Optional[Evidence]:
        evidence = self._evidence.get(evidence_id)
        return _copy_evidence(evidence) if evidence else None

    async def list_evidence(self, investigation_id: Any) -> List[Evidence]:
        return [
            _copy_evidence(e) for e in self._evidence.values()
            if e.investigation_id == investigation_id
        ]

    async def append_custody_entry(self, evidence_id: Any, entry: CustodyEntry) -> Optional[Evidence]:
        async with self._custody_locks[evidence_id]:
            evidence = self._evidence.get(evidence_id)
            if evidence is None:
                return None
            evidence.chain_of_custody = [*evidence.chain_of_custody, entry]
            return _copy_evidence(evidence)

    # ===========================================
    # FLOW OF FUNDS & REPORTS
    # ===========================================

    async def create_flow_of_funds(self, investigation_id: Any, values: Dict[str, Any]) -> FundFlow:
        flow = FundFlow(
            id=self._new_id(),
            investigation_id=investigation_id,
            source_account=values["source_account"],
            destination_account=values["destination_account"],
            amount=values["amount"],
            source_entity=values.get("source_entity"),
            destination_entity=values.get("destination_entity"),
            transfer_date=values.get("transfer_date"),
            transfer_method=values.get("transfer_method"),
            flow_path=[dict(step) for step in values.get("flow_path") or []],
            traceability=values.get("traceability") or Traceability.PARTIALLY_TRACED,
            notes=values.get("notes"),
            created_at=datetime.utcnow(),
        )
        self._flows[flow.id] = flow
        return _copy_flow(flow)

    async def list_flows_of_funds(self, investigation_id: Any) -> List[FundFlow]:
        return [
            _copy_flow(f) for f in self._flows.values()
            if f.investigation_id == investigation_id
        ]

    async def create_report(self, investigation_id: Any, values: Dict[str, Any]) -> InvestigationReport:
        now = datetime.utcnow()
        report = InvestigationReport(
            id=self._new_id(),
            investigation_id=investigation_id,
            report_type=values["report_type"],
            title=values["title"],
            content=values["content"],
            findings=list(values.get("findings") or []),
            recommendations=list(values.get("recommendations") or []),
            prepared_by=values.get("prepared_by"),
            status=values.get("status") or ReportStatus.DRAFT,
            generated_at=values.get("generated_at") or now,
            created_at=now,
        )
        self._reports[report.id] = report
        return _copy_report(report)

    async def list_reports(self, investigation_id: Any) -> List[InvestigationReport]:
        reports = [r for r in self._reports.values() if r.investigation_id == investigation_id]
        reports.sort(key=lambda r: (r.generated_at, self._order[r.id]), reverse=True)
        return [_copy_report(r) for r in reports]
