"""
Forensic Ledger Engine - Test Configuration

Pytest fixtures and configuration.
"""

from datetime import datetime
from decimal import Decimal
from typing import AsyncGenerator, List, Optional
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from forensic_engine.dependencies import get_forensic_service
from forensic_engine.domain import TransactionRecord
from forensic_engine.repositories.memory import InMemoryForensicRepository
from forensic_engine.services.audit_ledger import (
    AuditEntry,
    AuditLedger,
    AuditLedgerEmitter,
    LedgerReceipt,
)
from forensic_engine.services.investigation_service import ForensicInvestigationService
from main import app


OWNER_ID = "user-1"
OTHER_USER_ID = "user-2"

# 2024-01-03 is a Wednesday, 2024-01-06 a Saturday
WEEKDAY = datetime(2024, 1, 3, 10, 30)
SATURDAY = datetime(2024, 1, 6, 10, 30)


def make_transaction(
    amount,
    occurred_at: Optional[datetime] = WEEKDAY,
    description: Optional[str] = "Office supplies for the quarter",
    owner_id=OWNER_ID,
    kind: Optional[str] = "expense",
    title: Optional[str] = None,
) -> TransactionRecord:
    return TransactionRecord(
        id=uuid4(),
        amount=Decimal(str(amount)),
        occurred_at=occurred_at,
        description=description,
        title=title,
        kind=kind,
        owner_id=owner_id,
    )


class RecordingAuditLedger(AuditLedger):
    """Ledger double that keeps every posted entry."""

    def __init__(self):
        self.entries: List[AuditEntry] = []

    async def post_audit_entry(self, entry: AuditEntry) -> Optional[LedgerReceipt]:
        self.entries.append(entry)
        return LedgerReceipt(
            id=str(uuid4()),
            sequence_number=str(len(self.entries)),
            hash="0" * 64,
        )

    @property
    def actions(self) -> List[str]:
        return [entry.action for entry in self.entries]


@pytest.fixture
def ledger() -> RecordingAuditLedger:
    return RecordingAuditLedger()


@pytest.fixture
def emitter(ledger: RecordingAuditLedger) -> AuditLedgerEmitter:
    return AuditLedgerEmitter(ledger)


@pytest.fixture
def repository() -> InMemoryForensicRepository:
    return InMemoryForensicRepository()


@pytest.fixture
def service(repository, emitter) -> ForensicInvestigationService:
    return ForensicInvestigationService(repository, emitter)


@pytest.fixture
def investigation_data() -> dict:
    return {
        "case_number": "FA-2024-001",
        "title": "Vendor payment review",
        "description": "Suspected duplicate vendor payments",
        "allegations": "Embezzlement through fictitious vendors",
        "period_start": datetime(2023, 1, 1),
        "period_end": datetime(2023, 12, 31),
        "lead_investigator": "J. Adeyemi",
    }


@pytest.fixture
def evidence_data() -> dict:
    return {
        "evidence_number": "EV-001",
        "evidence_type": "bank_statement",
        "description": "Operating account statements, FY2023",
        "source": "First Bank",
        "collected_by": "J. Adeyemi",
        "hash_value": "a" * 64,
    }


@pytest_asyncio.fixture
async def client(service) -> AsyncGenerator[AsyncClient, None]:
    """API client wired to the in-memory service."""
    app.dependency_overrides[get_forensic_service] = lambda: service
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()
