"""
Forensic Ledger Engine - FastAPI Dependencies

Shared dependencies for the acting user, persistence and the forensic
service. Authentication itself happens upstream; the gateway forwards the
authenticated user id in the ``X-User-Id`` header.
"""

from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from forensic_engine.config import settings
from forensic_engine.database import get_session_factory
from forensic_engine.repositories import ForensicRepository, SqlAlchemyForensicRepository
from forensic_engine.services.audit_ledger import AuditLedgerEmitter, build_audit_ledger
from forensic_engine.services.investigation_service import ForensicInvestigationService


async def get_current_user_id(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
) -> str:
    """Acting user forwarded by the auth gateway."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return x_user_id.strip()


@lru_cache()
def get_repository() -> ForensicRepository:
    return SqlAlchemyForensicRepository(get_session_factory())


@lru_cache()
def get_audit_emitter() -> AuditLedgerEmitter:
    return AuditLedgerEmitter(build_audit_ledger(settings))


def get_forensic_service(
    repository: ForensicRepository = Depends(get_repository),
    emitter: AuditLedgerEmitter = Depends(get_audit_emitter),
) -> ForensicInvestigationService:
    return ForensicInvestigationService(
        repository,
        emitter,
        strict_status_workflow=settings.forensics_strict_status_workflow,
    )
