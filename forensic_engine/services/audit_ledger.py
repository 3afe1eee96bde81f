"""
Audit Ledger Client

Posts one immutable audit record per state-changing forensic operation to
the external append-only ledger service.

Emission is fire-and-forget: records are posted from detached asyncio
tasks, failures are logged and swallowed, and the caller never waits on
the ledger.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Set
import logging

import httpx

from forensic_engine.config import Settings

logger = logging.getLogger(__name__)


@dataclass
class AuditEntry:
    """One record for the external ledger."""
    entity_type: str  # investigation | evidence | custody | anomaly
    entity_id: str
    action: str
    actor: Optional[str] = None
    actor_type: Optional[str] = None  # user | service | system
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_payload(self, default_actor: str) -> Dict[str, Any]:
        return {
            "entityType": self.entity_type,
            "entityId": self.entity_id,
            "action": self.action,
            "actor": self.actor or default_actor,
            "actorType": self.actor_type or "service",
            "metadata": self.metadata,
        }


@dataclass(frozen=True)
class LedgerReceipt:
    """Acknowledgement returned by the ledger service."""
    id: str
    sequence_number: str
    hash: str


@dataclass
class LedgerBaseCache:
    """
    Short-lived cache of the registry-resolved ledger base URL.

    Callers check ``is_fresh`` before trusting ``url``.
    """
    url: Optional[str] = None
    expires_at: float = 0.0

    def is_fresh(self, now: Optional[float] = None) -> bool:
        now = time.monotonic() if now is None else now
        return self.url is not None and self.expires_at > now

    def store(self, url: str, ttl_seconds: float, now: Optional[float] = None) -> None:
        now = time.monotonic() if now is None else now
        self.url = url
        self.expires_at = now + ttl_seconds


class AuditLedger(ABC):
    """Append-only audit ledger collaborator."""

    @abstractmethod
    async def post_audit_entry(self, entry: AuditEntry) -> Optional[LedgerReceipt]:
        """Post one entry; returns None on any failure, never raises."""


class NullAuditLedger(AuditLedger):
    """Used when no ledger is configured."""

    async def post_audit_entry(self, entry: AuditEntry) -> Optional[LedgerReceipt]:
        return None


class HttpAuditLedgerClient(AuditLedger):
    """httpx client for the ledger service's ``POST /api/entries``."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        registry_url: Optional[str] = None,
        default_base_url: Optional[str] = None,
        auth_token: str = "",
        source_service: str = "forensic-engine",
        default_actor: str = "service:forensic-engine",
        timeout_seconds: float = 5.0,
        registry_timeout_seconds: float = 3.0,
        cache_ttl_seconds: float = 60.0,
        cache: Optional[LedgerBaseCache] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/") if base_url else None
        self.registry_url = registry_url
        self.default_base_url = default_base_url.rstrip("/") if default_base_url else None
        self.auth_token = auth_token
        self.source_service = source_service
        self.default_actor = default_actor
        self.timeout_seconds = timeout_seconds
        self.registry_timeout_seconds = registry_timeout_seconds
        self.cache_ttl_seconds = cache_ttl_seconds
        self.cache = cache if cache is not None else LedgerBaseCache()
        self._transport = transport

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        cache: Optional[LedgerBaseCache] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "HttpAuditLedgerClient":
        return cls(
            base_url=settings.ledger_base_url,
            registry_url=settings.ledger_registry_url,
            default_base_url=settings.ledger_default_base_url,
            auth_token=settings.ledger_auth_token,
            source_service=settings.ledger_source_service,
            default_actor=settings.ledger_actor,
            timeout_seconds=settings.ledger_timeout_seconds,
            registry_timeout_seconds=settings.ledger_registry_timeout_seconds,
            cache_ttl_seconds=settings.ledger_registry_cache_ttl_seconds,
            cache=cache,
            transport=transport,
        )

    def _get_headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "X-Source-Service": self.source_service,
        }
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"
        return headers

    async def resolve_base_url(self) -> Optional[str]:
        """Explicit URL, then a fresh cached registry answer, then the registry, then the default."""
        if self.base_url:
            return self.base_url

        if self.cache.is_fresh():
            return self.cache.url

        if self.registry_url:
            try:
                async with httpx.AsyncClient(
                    timeout=self.registry_timeout_seconds,
                    transport=self._transport,
                ) as client:
                    response = await client.get(self.registry_url)
                if response.is_success:
                    data = response.json()
                    url = (data.get("url") or data.get("base") or data.get("endpoint") or "").rstrip("/")
                    if url:
                        self.cache.store(url, self.cache_ttl_seconds)
                        return url
            except (httpx.HTTPError, ValueError, AttributeError) as e:
                logger.warning(f"Ledger registry lookup failed, using default: {e}")

        return self.default_base_url

    async def post_audit_entry(self, entry: AuditEntry) -> Optional[LedgerReceipt]:
        try:
            base = await self.resolve_base_url()
            if not base:
                return None

            async with httpx.AsyncClient(
                timeout=self.timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    f"{base}/api/entries",
                    headers=self._get_headers(),
                    json=entry.to_payload(self.default_actor),
                )

            if not response.is_success:
                logger.error(
                    f"Ledger POST /api/entries failed for {entry.action}: "
                    f"{response.status_code} {response.reason_phrase}"
                )
                return None

            data = response.json()
            return LedgerReceipt(
                id=str(data["id"]),
                sequence_number=str(data["sequenceNumber"]),
                hash=str(data["hash"]),
            )
        except httpx.TimeoutException:
            logger.error(f"Ledger request timed out for {entry.action}")
            return None
        except Exception as e:
            logger.error(f"Ledger post failed for {entry.action}: {type(e).__name__}: {e}")
            return None


class AuditLedgerEmitter:
    """
    Fire-and-forget front for an ``AuditLedger``.

    ``emit`` schedules the post on the running loop and returns at once.
    Pending tasks are referenced until they finish so they are not
    garbage-collected mid-flight.
    """

    def __init__(self, ledger: Optional[AuditLedger] = None):
        self.ledger = ledger or NullAuditLedger()
        self._pending: Set[asyncio.Task] = set()

    def emit(self, entry: AuditEntry) -> None:
        try:
            task = asyncio.get_running_loop().create_task(self._post(entry))
        except RuntimeError:
            logger.warning(f"No running event loop; audit entry {entry.action} dropped")
            return
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _post(self, entry: AuditEntry) -> Optional[LedgerReceipt]:
        try:
            receipt = await self.ledger.post_audit_entry(entry)
        except Exception:
            logger.exception(f"Audit ledger raised for {entry.action}")
            return None
        if receipt is not None:
            logger.debug(f"Ledger accepted {entry.action} as #{receipt.sequence_number}")
        return receipt

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for in-flight posts; used on shutdown and in tests."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


def build_audit_ledger(settings: Settings) -> AuditLedger:
    """Ledger collaborator for the configured environment."""
    if not settings.ledger_enabled:
        logger.info("No audit ledger configured; audit emission disabled")
        return NullAuditLedger()
    return HttpAuditLedgerClient.from_settings(settings)
