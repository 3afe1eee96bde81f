"""
Tests for the audit ledger client and emitter.

HTTP calls go through httpx.MockTransport; nothing leaves the process.
"""

import json

import httpx
import pytest

from forensic_engine.config import Settings
from forensic_engine.services.audit_ledger import (
    AuditEntry,
    AuditLedgerEmitter,
    HttpAuditLedgerClient,
    LedgerBaseCache,
    NullAuditLedger,
    build_audit_ledger,
)
from tests.conftest import RecordingAuditLedger


RECEIPT = {"id": "c0ffee", "sequenceNumber": 42, "hash": "ab" * 32}


def sample_entry(**overrides) -> AuditEntry:
    values = {
        "entity_type": "investigation",
        "entity_id": "4b9f7d7e-0000-0000-0000-000000000001",
        "action": "investigation.created",
        "actor": "user-1",
        "actor_type": "user",
        "metadata": {"case_number": "FA-2024-001"},
    }
    values.update(overrides)
    return AuditEntry(**values)


class Recorder:
    """MockTransport handler that records requests and replays canned responses."""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes[str(request.url)]
        if isinstance(handler, Exception):
            raise handler
        return handler

    def urls(self):
        return [str(r.url) for r in self.requests]


class TestHttpAuditLedgerClient:

    @pytest.mark.asyncio
    async def test_posts_entry_to_explicit_base(self):
        """Payload is camelCase and headers carry the service identity."""
        recorder = Recorder({
            "https://ledger.test/api/entries": httpx.Response(201, json=RECEIPT),
        })
        client = HttpAuditLedgerClient(
            base_url="https://ledger.test/",
            auth_token="s3cret",
            transport=httpx.MockTransport(recorder),
        )

        receipt = await client.post_audit_entry(sample_entry())

        assert receipt is not None
        assert receipt.id == "c0ffee"
        assert receipt.sequence_number == "42"
        assert receipt.hash == "ab" * 32

        request = recorder.requests[0]
        assert request.method == "POST"
        assert request.headers["X-Source-Service"] == "forensic-engine"
        assert request.headers["Authorization"] == "Bearer s3cret"
        assert json.loads(request.content) == {
            "entityType": "investigation",
            "entityId": "4b9f7d7e-0000-0000-0000-000000000001",
            "action": "investigation.created",
            "actor": "user-1",
            "actorType": "user",
            "metadata": {"case_number": "FA-2024-001"},
        }

    @pytest.mark.asyncio
    async def test_default_actor(self):
        recorder = Recorder({
            "https://ledger.test/api/entries": httpx.Response(201, json=RECEIPT),
        })
        client = HttpAuditLedgerClient(base_url="https://ledger.test", transport=httpx.MockTransport(recorder))

        await client.post_audit_entry(sample_entry(actor=None, actor_type=None))

        body = json.loads(recorder.requests[0].content)
        assert body["actor"] == "service:forensic-engine"
        assert body["actorType"] == "service"
        assert "Authorization" not in recorder.requests[0].headers

    @pytest.mark.asyncio
    async def test_error_status_returns_none(self):
        recorder = Recorder({
            "https://ledger.test/api/entries": httpx.Response(503, text="unavailable"),
        })
        client = HttpAuditLedgerClient(base_url="https://ledger.test", transport=httpx.MockTransport(recorder))
        assert await client.post_audit_entry(sample_entry()) is None

    @pytest.mark.asyncio
    async def test_timeout_returns_none(self):
        recorder = Recorder({
            "https://ledger.test/api/entries": httpx.ReadTimeout("too slow"),
        })
        client = HttpAuditLedgerClient(base_url="https://ledger.test", transport=httpx.MockTransport(recorder))
        assert await client.post_audit_entry(sample_entry()) is None

    @pytest.mark.asyncio
    async def test_malformed_receipt_returns_none(self):
        recorder = Recorder({
            "https://ledger.test/api/entries": httpx.Response(200, json={"ok": True}),
        })
        client = HttpAuditLedgerClient(base_url="https://ledger.test", transport=httpx.MockTransport(recorder))
        assert await client.post_audit_entry(sample_entry()) is None

    @pytest.mark.asyncio
    async def test_registry_answer_is_cached(self):
        """Two posts, one registry lookup."""
        recorder = Recorder({
            "https://registry.test/ledger": httpx.Response(200, json={"url": "https://found.test/"}),
            "https://found.test/api/entries": httpx.Response(201, json=RECEIPT),
        })
        client = HttpAuditLedgerClient(
            registry_url="https://registry.test/ledger",
            default_base_url="https://fallback.test",
            transport=httpx.MockTransport(recorder),
        )

        await client.post_audit_entry(sample_entry())
        await client.post_audit_entry(sample_entry())

        assert recorder.urls() == [
            "https://registry.test/ledger",
            "https://found.test/api/entries",
            "https://found.test/api/entries",
        ]

    @pytest.mark.asyncio
    async def test_registry_alternate_keys(self):
        recorder = Recorder({
            "https://registry.test/ledger": httpx.Response(200, json={"endpoint": "https://alt.test"}),
        })
        client = HttpAuditLedgerClient(
            registry_url="https://registry.test/ledger",
            transport=httpx.MockTransport(recorder),
        )
        assert await client.resolve_base_url() == "https://alt.test"

    @pytest.mark.asyncio
    async def test_registry_failure_falls_back_to_default(self):
        recorder = Recorder({
            "https://registry.test/ledger": httpx.ConnectError("refused"),
            "https://fallback.test/api/entries": httpx.Response(201, json=RECEIPT),
        })
        client = HttpAuditLedgerClient(
            registry_url="https://registry.test/ledger",
            default_base_url="https://fallback.test",
            transport=httpx.MockTransport(recorder),
        )

        receipt = await client.post_audit_entry(sample_entry())

        assert receipt is not None
        assert recorder.urls()[-1] == "https://fallback.test/api/entries"
        assert client.cache.url is None

    @pytest.mark.asyncio
    async def test_registry_without_url_falls_back(self):
        recorder = Recorder({
            "https://registry.test/ledger": httpx.Response(200, json={}),
        })
        client = HttpAuditLedgerClient(
            registry_url="https://registry.test/ledger",
            default_base_url="https://fallback.test",
            transport=httpx.MockTransport(recorder),
        )
        assert await client.resolve_base_url() == "https://fallback.test"

    @pytest.mark.asyncio
    async def test_no_endpoint_returns_none(self):
        client = HttpAuditLedgerClient()
        assert await client.post_audit_entry(sample_entry()) is None


class TestLedgerBaseCache:

    def test_expiry(self):
        cache = LedgerBaseCache()
        cache.store("https://found.test", ttl_seconds=60, now=100.0)

        assert cache.is_fresh(now=159.0) is True
        assert cache.is_fresh(now=160.0) is False

    def test_empty_is_stale(self):
        assert LedgerBaseCache().is_fresh() is False


class TestBuildAuditLedger:

    def test_unconfigured_is_null(self):
        settings = Settings(
            _env_file=None,
            ledger_base_url=None,
            ledger_registry_url=None,
            ledger_default_base_url=None,
        )
        assert isinstance(build_audit_ledger(settings), NullAuditLedger)

    def test_configured_is_http(self):
        settings = Settings(
            _env_file=None,
            ledger_base_url="https://ledger.test",
            ledger_auth_token="t",
            ledger_source_service="forensics-test",
        )
        ledger = build_audit_ledger(settings)

        assert isinstance(ledger, HttpAuditLedgerClient)
        assert ledger.base_url == "https://ledger.test"
        assert ledger.source_service == "forensics-test"


class TestAuditLedgerEmitter:

    @pytest.mark.asyncio
    async def test_emit_and_drain(self):
        ledger = RecordingAuditLedger()
        emitter = AuditLedgerEmitter(ledger)

        emitter.emit(sample_entry())
        emitter.emit(sample_entry(action="evidence.added"))
        await emitter.drain()

        assert ledger.actions == ["investigation.created", "evidence.added"]
        assert emitter.pending_count == 0

    @pytest.mark.asyncio
    async def test_emit_does_not_wait_for_ledger(self):
        """The caller returns before the post completes."""
        ledger = RecordingAuditLedger()
        emitter = AuditLedgerEmitter(ledger)

        emitter.emit(sample_entry())

        assert ledger.entries == []
        assert emitter.pending_count == 1
        await emitter.drain()

    @pytest.mark.asyncio
    async def test_ledger_exception_is_swallowed(self):
        class BrokenLedger(RecordingAuditLedger):
            async def post_audit_entry(self, entry):
                raise ConnectionError("ledger unreachable")

        emitter = AuditLedgerEmitter(BrokenLedger())
        emitter.emit(sample_entry())
        await emitter.drain()
        assert emitter.pending_count == 0

    def test_emit_without_loop_drops_entry(self):
        ledger = RecordingAuditLedger()
        emitter = AuditLedgerEmitter(ledger)

        emitter.emit(sample_entry())

        assert emitter.pending_count == 0
        assert ledger.entries == []

    @pytest.mark.asyncio
    async def test_defaults_to_null_ledger(self):
        emitter = AuditLedgerEmitter()
        emitter.emit(sample_entry())
        await emitter.drain()
        assert isinstance(emitter.ledger, NullAuditLedger)
