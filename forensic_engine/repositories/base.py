"""
Forensic Ledger Engine - Persistence Collaborator

The investigation manager talks to storage only through this interface.
Lookups return None for missing rows; ownership is decided by the caller.
Write failures raise ``PersistenceException``.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence

from forensic_engine.domain import (
    AnomalyStatus,
    CustodyEntry,
    DetectedAnomaly,
    Evidence,
    FundFlow,
    Investigation,
    InvestigationReport,
    InvestigationStatus,
    StoredAnomaly,
    StoredTransactionAnalysis,
    TransactionAnalysis,
    TransactionRecord,
)


AUTOMATED_ANALYST = "Automated System"


def analysis_notes_for(analysis: TransactionAnalysis) -> str:
    return f"Automated analysis score: {analysis.score}"


class ForensicRepository(ABC):
    """Storage capabilities required by the forensic engine."""

    # Transactions (read-only)

    @abstractmethod
    async def list_transactions(self, owner_id: Any) -> List[TransactionRecord]:
        """All transactions belonging to ``owner_id``."""

    @abstractmethod
    async def get_transaction(self, transaction_id: Any) -> Optional[TransactionRecord]:
        ...

    # Investigations

    @abstractmethod
    async def get_investigation(self, investigation_id: Any) -> Optional[Investigation]:
        ...

    @abstractmethod
    async def list_investigations(self, owner_id: Any) -> List[Investigation]:
        """Owner's investigations, newest first."""

    @abstractmethod
    async def create_investigation(self, owner_id: Any, values: Dict[str, Any]) -> Investigation:
        ...

    @abstractmethod
    async def update_investigation_status(
        self,
        investigation_id: Any,
        status: InvestigationStatus,
    ) -> Optional[Investigation]:
        ...

    # Analyses and anomalies (additive)

    @abstractmethod
    async def insert_transaction_analyses(
        self,
        investigation_id: Any,
        analyses: Sequence[TransactionAnalysis],
        transaction_amounts: Optional[Mapping[Any, Decimal]] = None,
    ) -> List[StoredTransactionAnalysis]:
        ...

    @abstractmethod
    async def list_transaction_analyses(self, investigation_id: Any) -> List[StoredTransactionAnalysis]:
        ...

    @abstractmethod
    async def insert_anomalies(
        self,
        investigation_id: Any,
        anomalies: Sequence[DetectedAnomaly],
    ) -> List[StoredAnomaly]:
        ...

    @abstractmethod
    async def list_anomalies(self, investigation_id: Any) -> List[StoredAnomaly]:
        ...

    @abstractmethod
    async def get_anomaly(self, anomaly_id: Any) -> Optional[StoredAnomaly]:
        ...

    @abstractmethod
    async def update_anomaly_status(
        self,
        anomaly_id: Any,
        status: AnomalyStatus,
    ) -> Optional[StoredAnomaly]:
        ...

    # Evidence

    @abstractmethod
    async def create_evidence(self, investigation_id: Any, values: Dict[str, Any]) -> Evidence:
        ...

    @abstractmethod
    async def get_evidence(self, evidence_id: Any) -> Optional[Evidence]:
        ...

    @abstractmethod
    async def list_evidence(self, investigation_id: Any) -> List[Evidence]:
        ...

    @abstractmethod
    async def append_custody_entry(self, evidence_id: Any, entry: CustodyEntry) -> Optional[Evidence]:
        """
        Append one custody entry atomically.

        Concurrent appends to the same evidence item must all survive,
        in arrival order.
        """

    # Flow of funds and reports

    @abstractmethod
    async def create_flow_of_funds(self, investigation_id: Any, values: Dict[str, Any]) -> FundFlow:
        ...

    @abstractmethod
    async def list_flows_of_funds(self, investigation_id: Any) -> List[FundFlow]:
        """Recorded flows for the investigation, oldest first."""

    @abstractmethod
    async def create_report(self, investigation_id: Any, values: Dict[str, Any]) -> InvestigationReport:
        ...

    @abstractmethod
    async def list_reports(self, investigation_id: Any) -> List[InvestigationReport]:
        """Reports for the investigation, newest ``generated_at`` first."""
