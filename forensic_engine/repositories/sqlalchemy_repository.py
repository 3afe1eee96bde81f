"""
SQLAlchemy persistence collaborator.

Each operation runs in its own session and transaction. SQLAlchemy errors
are logged and re-raised as ``PersistenceException``.
"""

import json
import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from decimal import Decimal
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Sequence

from sqlalchemy import func, literal, literal_column, select, update
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.sql.elements import ColumnElement

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
from forensic_engine.models.forensic import (
    ForensicAnomaly,
    ForensicEvidence,
    ForensicFlowOfFunds,
    ForensicInvestigation,
    ForensicReport,
    ForensicTransactionAnalysis,
    LedgerTransaction,
)
from forensic_engine.repositories.base import (
    AUTOMATED_ANALYST,
    ForensicRepository,
    analysis_notes_for,
)
from forensic_engine.utils.error_handling import PersistenceException

logger = logging.getLogger(__name__)


def _as_uuid(value: Any) -> Optional[uuid.UUID]:
    """Parse an id; anything that is not a UUID cannot match a row."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        return None


def _to_transaction(row: LedgerTransaction) -> TransactionRecord:
    return TransactionRecord(
        id=row.id,
        amount=row.amount,
        occurred_at=row.occurred_at,
        description=row.description,
        title=row.title,
        kind=row.kind,
        owner_id=row.owner_id,
    )


def _to_investigation(row: ForensicInvestigation) -> Investigation:
    return Investigation(
        id=row.id,
        case_number=row.case_number,
        title=row.title,
        owner_id=row.owner_id,
        status=row.status,
        description=row.description,
        allegations=row.allegations,
        period_start=row.period_start,
        period_end=row.period_end,
        lead_investigator=row.lead_investigator,
        metadata=dict(row.extra_metadata or {}),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _to_evidence(row: ForensicEvidence) -> Evidence:
    return Evidence(
        id=row.id,
        investigation_id=row.investigation_id,
        evidence_number=row.evidence_number,
        evidence_type=row.evidence_type,
        description=row.description,
        source=row.source,
        received_at=row.received_at,
        collected_by=row.collected_by,
        storage_location=row.storage_location,
        hash_value=row.hash_value,
        chain_of_custody=[CustodyEntry.from_dict(item) for item in row.chain_of_custody or []],
        metadata=dict(row.extra_metadata or {}),
        created_at=row.created_at,
    )


def _to_analysis(row: ForensicTransactionAnalysis) -> StoredTransactionAnalysis:
    return StoredTransactionAnalysis(
        id=row.id,
        investigation_id=row.investigation_id,
        transaction_id=row.transaction_id,
        risk_level=row.risk_level,
        legitimacy=row.legitimacy_assessment,
        red_flags=tuple(row.red_flags or ()),
        analysis_notes=row.analysis_notes or "",
        analyzed_by=row.analyzed_by,
        transaction_amount=row.transaction_amount,
        created_at=row.created_at,
    )


def _to_anomaly(row: ForensicAnomaly) -> StoredAnomaly:
    return StoredAnomaly(
        id=row.id,
        investigation_id=row.investigation_id,
        anomaly_type=row.anomaly_type,
        severity=row.severity,
        description=row.description,
        affected_transaction_ids=[_as_uuid(item) or item for item in row.related_transactions or []],
        detection_method=row.detection_method,
        status=row.status,
        created_at=row.created_at,
    )


def _to_flow(row: ForensicFlowOfFunds) -> FundFlow:
    return FundFlow(
        id=row.id,
        investigation_id=row.investigation_id,
        source_account=row.source_account,
        destination_account=row.destination_account,
        amount=row.amount,
        source_entity=row.source_entity,
        destination_entity=row.destination_entity,
        transfer_date=row.transfer_date,
        transfer_method=row.transfer_method,
        flow_path=list(row.flow_path or []),
        traceability=row.traceability,
        notes=row.notes,
        created_at=row.created_at,
    )


def _to_report(row: ForensicReport) -> InvestigationReport:
    return InvestigationReport(
        id=row.id,
        investigation_id=row.investigation_id,
        report_type=row.report_type,
        title=row.title,
        content=row.content,
        findings=list(row.findings or []),
        recommendations=list(row.recommendations or []),
        prepared_by=row.prepared_by,
        status=row.status,
        generated_at=row.generated_at,
        created_at=row.created_at,
    )


def _custody_append_expression(dialect_name: str, entry: CustodyEntry) -> Optional[ColumnElement]:
    """
    SQL that appends one entry to ``chain_of_custody`` in place.

    The database does the append inside the UPDATE, so concurrent transfers
    of the same item cannot overwrite each other. Returns None for dialects
    without a JSON array append.
    """
    column = ForensicEvidence.chain_of_custody
    if dialect_name == "sqlite":
        return func.json_insert(
            func.coalesce(column, literal_column("'[]'")),
            "$[#]",
            func.json(json.dumps(entry.to_dict())),
        )
    if dialect_name == "postgresql":
        return func.coalesce(column, literal([], JSONB)).op("||")(literal([entry.to_dict()], JSONB))
    return None


class SqlAlchemyForensicRepository(ForensicRepository):
    """Repository over the forensic tables using an async session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    yield session
        except SQLAlchemyError as e:
            logger.error(f"Database error during {operation}: {e}")
            raise PersistenceException(
                message=f"Failed to {operation}",
                original_error=e,
            ) from e

    # ===========================================
    # TRANSACTIONS
    # ===========================================

    async def list_transactions(self, owner_id: Any) -> List[TransactionRecord]:
        async with self._transaction("list transactions") as session:
            result = await session.execute(
                select(LedgerTransaction)
                .where(LedgerTransaction.owner_id == str(owner_id))
                .order_by(LedgerTransaction.created_at, LedgerTransaction.id)
            )
            return [_to_transaction(row) for row in result.scalars().all()]

    async def get_transaction(self, transaction_id: Any) -> Optional[TransactionRecord]:
        key = _as_uuid(transaction_id)
        if key is None:
            return None
        async with self._transaction("load transaction") as session:
            row = await session.get(LedgerTransaction, key)
            return _to_transaction(row) if row else None

    # ===========================================
    # INVESTIGATIONS
    # ===========================================

    async def get_investigation(self, investigation_id: Any) -> Optional[Investigation]:
        key = _as_uuid(investigation_id)
        if key is None:
            return None
        async with self._transaction("load investigation") as session:
            row = await session.get(ForensicInvestigation, key)
            return _to_investigation(row) if row else None

    async def list_investigations(self, owner_id: Any) -> List[Investigation]:
        async with self._transaction("list investigations") as session:
            result = await session.execute(
                select(ForensicInvestigation)
                .where(ForensicInvestigation.owner_id == str(owner_id))
                .order_by(ForensicInvestigation.created_at.desc())
            )
            return [_to_investigation(row) for row in result.scalars().all()]

    async def create_investigation(self, owner_id: Any, values: Dict[str, Any]) -> Investigation:
        async with self._transaction("create investigation") as session:
            row = ForensicInvestigation(
                case_number=values["case_number"],
                title=values["title"],
                description=values.get("description"),
                allegations=values.get("allegations"),
                period_start=values.get("period_start"),
                period_end=values.get("period_end"),
                status=values.get("status") or InvestigationStatus.OPEN,
                lead_investigator=values.get("lead_investigator"),
                owner_id=str(owner_id),
                extra_metadata=dict(values.get("metadata") or {}),
            )
            session.add(row)
            await session.flush()
            return _to_investigation(row)

    async def update_investigation_status(
        self,
        investigation_id: Any,
        status: InvestigationStatus,
    ) -> Optional[Investigation]:
        key = _as_uuid(investigation_id)
        if key is None:
            return None
        async with self._transaction("update investigation status") as session:
            row = await session.get(ForensicInvestigation, key, with_for_update=True)
            if row is None:
                return None
            row.status = status
            await session.flush()
            return _to_investigation(row)

    # ===========================================
    # ANALYSES & ANOMALIES
    # ===========================================

    async def insert_transaction_analyses(
        self,
        investigation_id: Any,
        analyses: Sequence[TransactionAnalysis],
        transaction_amounts: Optional[Mapping[Any, Decimal]] = None,
    ) -> List[StoredTransactionAnalysis]:
        if not analyses:
            return []
        amounts = transaction_amounts or {}
        async with self._transaction("store transaction analyses") as session:
            rows = [
                ForensicTransactionAnalysis(
                    investigation_id=_as_uuid(investigation_id),
                    transaction_id=_as_uuid(analysis.transaction_id),
                    transaction_amount=amounts.get(analysis.transaction_id),
                    risk_level=analysis.risk_level,
                    legitimacy_assessment=analysis.legitimacy,
                    red_flags=list(analysis.red_flags),
                    score=analysis.score,
                    analysis_notes=analysis_notes_for(analysis),
                    analyzed_by=AUTOMATED_ANALYST,
                )
                for analysis in analyses
            ]
            session.add_all(rows)
            await session.flush()
            return [_to_analysis(row) for row in rows]

    async def list_transaction_analyses(self, investigation_id: Any) -> List[StoredTransactionAnalysis]:
        key = _as_uuid(investigation_id)
        if key is None:
            return []
        async with self._transaction("list transaction analyses") as session:
            result = await session.execute(
                select(ForensicTransactionAnalysis)
                .where(ForensicTransactionAnalysis.investigation_id == key)
            )
            return [_to_analysis(row) for row in result.scalars().all()]

    async def insert_anomalies(
        self,
        investigation_id: Any,
        anomalies: Sequence[DetectedAnomaly],
    ) -> List[StoredAnomaly]:
        if not anomalies:
            return []
        async with self._transaction("store anomalies") as session:
            rows = [
                ForensicAnomaly(
                    investigation_id=_as_uuid(investigation_id),
                    anomaly_type=anomaly.anomaly_type,
                    severity=anomaly.severity,
                    description=anomaly.description,
                    detection_method=anomaly.detection_method,
                    related_transactions=[str(txn_id) for txn_id in anomaly.affected_transaction_ids],
                    status=anomaly.status,
                )
                for anomaly in anomalies
            ]
            session.add_all(rows)
            await session.flush()
            return [_to_anomaly(row) for row in rows]

    async def list_anomalies(self, investigation_id: Any) -> List[StoredAnomaly]:
        key = _as_uuid(investigation_id)
        if key is None:
            return []
        async with self._transaction("list anomalies") as session:
            result = await session.execute(
                select(ForensicAnomaly).where(ForensicAnomaly.investigation_id == key)
            )
            return [_to_anomaly(row) for row in result.scalars().all()]

    async def get_anomaly(self, anomaly_id: Any) -> Optional[StoredAnomaly]:
        key = _as_uuid(anomaly_id)
        if key is None:
            return None
        async with self._transaction("load anomaly") as session:
            row = await session.get(ForensicAnomaly, key)
            return _to_anomaly(row) if row else None

    async def update_anomaly_status(
        self,
        anomaly_id: Any,
        status: AnomalyStatus,
    ) -> Optional[StoredAnomaly]:
        key = _as_uuid(anomaly_id)
        if key is None:
            return None
        async with self._transaction("update anomaly status") as session:
            row = await session.get(ForensicAnomaly, key, with_for_update=True)
            if row is None:
                return None
            row.status = status
            await session.flush()
            return _to_anomaly(row)

    # ===========================================
    # EVIDENCE
    # ===========================================

    async def create_evidence(self, investigation_id: Any, values: Dict[str, Any]) -> Evidence:
        async with self._transaction("create evidence") as session:
            row = ForensicEvidence(
                investigation_id=_as_uuid(investigation_id),
                evidence_number=values["evidence_number"],
                evidence_type=values["evidence_type"],
                description=values["description"],
                source=values["source"],
                received_at=values.get("received_at"),
                collected_by=values.get("collected_by"),
                storage_location=values.get("storage_location"),
                hash_value=values.get("hash_value"),
                chain_of_custody=[entry.to_dict() for entry in values.get("chain_of_custody") or []],
                extra_metadata=dict(values.get("metadata") or {}),
            )
            session.add(row)
            await session.flush()
            return _to_evidence(row)

    async def get_evidence(self, evidence_id: Any) -> Optional[Evidence]:
        key = _as_uuid(evidence_id)
        if key is None:
            return None
        async with self._transaction("load evidence") as session:
            row = await session.get(ForensicEvidence, key)
            return _to_evidence(row) if row else None

    async def list_evidence(self, investigation_id: Any) -> List[Evidence]:
        key = _as_uuid(investigation_id)
        if key is None:
            return []
        async with self._transaction("list evidence") as session:
            result = await session.execute(
                select(ForensicEvidence)
                .where(ForensicEvidence.investigation_id == key)
                .order_by(ForensicEvidence.created_at)
            )
            return [_to_evidence(row) for row in result.scalars().all()]

    async def append_custody_entry(self, evidence_id: Any, entry: CustodyEntry) -> Optional[Evidence]:
        key = _as_uuid(evidence_id)
        if key is None:
            return None
        async with self._transaction("append custody entry") as session:
            appended = _custody_append_expression(session.get_bind().dialect.name, entry)
            if appended is None:
                return await self._append_custody_locked(session, key, entry)
            result = await session.execute(
                update(ForensicEvidence)
                .where(ForensicEvidence.id == key)
                .values(chain_of_custody=appended)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                return None
            row = await session.get(ForensicEvidence, key)
            return _to_evidence(row)

    async def _append_custody_locked(
        self,
        session: AsyncSession,
        key: uuid.UUID,
        entry: CustodyEntry,
    ) -> Optional[Evidence]:
        """Read-modify-write under a row lock, for dialects without a JSON append."""
        result = await session.execute(
            select(ForensicEvidence)
            .where(ForensicEvidence.id == key)
            .with_for_update()
        )
        row = result.scalar_one_or_none()
        if row is None:
            return None
        # New list so the JSON column is flagged dirty
        row.chain_of_custody = [*(row.chain_of_custody or []), entry.to_dict()]
        await session.flush()
        return _to_evidence(row)

    # ===========================================
    # FLOW OF FUNDS & REPORTS
    # ===========================================

    async def create_flow_of_funds(self, investigation_id: Any, values: Dict[str, Any]) -> FundFlow:
        async with self._transaction("record flow of funds") as session:
            row = ForensicFlowOfFunds(
                investigation_id=_as_uuid(investigation_id),
                source_account=values["source_account"],
                source_entity=values.get("source_entity"),
                destination_account=values["destination_account"],
                destination_entity=values.get("destination_entity"),
                amount=values["amount"],
                transfer_date=values.get("transfer_date"),
                transfer_method=values.get("transfer_method"),
                flow_path=[dict(step) for step in values.get("flow_path") or []],
                traceability=values.get("traceability") or Traceability.PARTIALLY_TRACED,
                notes=values.get("notes"),
            )
            session.add(row)
            await session.flush()
            return _to_flow(row)

    async def list_flows_of_funds(self, investigation_id: Any) -> List[FundFlow]:
        key = _as_uuid(investigation_id)
        if key is None:
            return []
        async with self._transaction("list flows of funds") as session:
            result = await session.execute(
                select(ForensicFlowOfFunds)
                .where(ForensicFlowOfFunds.investigation_id == key)
                .order_by(ForensicFlowOfFunds.created_at)
            )
            return [_to_flow(row) for row in result.scalars().all()]

    async def create_report(self, investigation_id: Any, values: Dict[str, Any]) -> InvestigationReport:
        async with self._transaction("create report") as session:
            row = ForensicReport(
                investigation_id=_as_uuid(investigation_id),
                report_type=values["report_type"],
                title=values["title"],
                content=values["content"],
                findings=list(values.get("findings") or []),
                recommendations=list(values.get("recommendations") or []),
                prepared_by=values.get("prepared_by"),
                status=values.get("status") or ReportStatus.DRAFT,
                generated_at=values.get("generated_at") or datetime.utcnow(),
            )
            session.add(row)
            await session.flush()
            return _to_report(row)

    async def list_reports(self, investigation_id: Any) -> List[InvestigationReport]:
        key = _as_uuid(investigation_id)
        if key is None:
            return []
        async with self._transaction("list reports") as session:
            result = await session.execute(
                select(ForensicReport)
                .where(ForensicReport.investigation_id == key)
                .order_by(ForensicReport.generated_at.desc())
            )
            return [_to_report(row) for row in result.scalars().all()]
