import asyncio
import hashlib
import hmac
import json
from contextlib import suppress

import httpx
import pytest

from conftest import student, volunteer
from tutormatch.core.config import settings
from tutormatch.core.errors import StorageError
from tutormatch.core.events import emit_event, notify_match_approved, sign
from tutormatch.repos.inmemory import InMemoryRepo
from tutormatch.services.approval import approve
from tutormatch.services.webhook_worker import drain_outbox, run_outbox_loop

pytestmark = pytest.mark.anyio


def test_signature_is_hmac_over_canonical_json():
    body = {"b": 1, "a": "שלום"}
    canonical = json.dumps(body, separators=(",", ":"), sort_keys=True, ensure_ascii=False).encode()
    expected = hmac.new(settings.webhook_secret.encode(), canonical, hashlib.sha256).hexdigest()
    assert sign(body) == expected


async def test_event_fans_out_to_enabled_hooks_only(repo):
    await repo.create_webhook("https://a.example.org/hook")
    await repo.create_webhook("https://b.example.org/hook", enabled=False)
    await emit_event(repo, "match.approved", {"match_id": "m1"})

    assert len(repo.events) == 1
    [rec] = repo.outbox.values()
    assert rec["target"] == "https://a.example.org/hook"
    assert rec["match_id"] == "m1"
    assert rec["sig"] == sign(rec["body"])


async def test_pending_match_is_not_announced(repo):
    s = await repo.create_student(student())
    v = await repo.create_volunteer(volunteer())
    m = await repo.insert_match({"student_id": s["_id"], "volunteer_id": v["_id"],
                                 "confidence_score": 90, "match_reason": "", "status": "pending"})
    await notify_match_approved(repo, m["_id"])
    assert repo.events == []


async def _approved_with_hook(repo):
    await repo.create_webhook("https://hooks.example.org/match")
    s = await repo.create_student(student(full_name="S1", email="s1@example.org"))
    v = await repo.create_volunteer(volunteer(full_name="V1"))
    m = await repo.insert_match({"student_id": s["_id"], "volunteer_id": v["_id"],
                                 "confidence_score": 100, "match_reason": "r", "status": "pending"})
    await approve(repo, m["_id"])
    await notify_match_approved(repo, m["_id"])
    return m


async def test_successful_delivery_is_audited(repo):
    seen = []

    def handler(request: httpx.Request):
        seen.append(request)
        return httpx.Response(200, json={"ok": True})

    m = await _approved_with_hook(repo)
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        assert await drain_outbox(repo, client) == 1

    assert len(seen) == 1
    payload = json.loads(seen[0].content)
    assert payload["data"]["student"]["email"] == "s1@example.org"
    assert seen[0].headers["X-TutorMatch-Signature"] == sign(payload)

    [entry] = await repo.list_audit(m["_id"])
    assert entry["channel"] == "webhook"
    assert entry["recipient"] == "https://hooks.example.org/match"
    assert entry["status"] == "sent"
    assert entry["error"] is None
    [rec] = repo.outbox.values()
    assert rec["status"] == "delivered"


async def test_failed_delivery_is_retried_later(repo):
    m = await _approved_with_hook(repo)
    transport = httpx.MockTransport(lambda request: httpx.Response(503))
    async with httpx.AsyncClient(transport=transport) as client:
        assert await drain_outbox(repo, client) == 1

    [entry] = await repo.list_audit(m["_id"])
    assert entry["status"] == "failed"
    assert entry["error"] == "HTTP 503"
    [rec] = repo.outbox.values()
    assert rec["status"] == "pending"
    assert rec["attempts"] == 1


async def test_delivery_gives_up_after_max_attempts(repo):
    m = await _approved_with_hook(repo)
    [rec] = repo.outbox.values()
    rec["attempts"] = rec["max_attempts"] - 1

    def boom(request):
        raise httpx.ConnectError("refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(boom)) as client:
        await drain_outbox(repo, client)

    assert rec["status"] == "dead"
    [entry] = await repo.list_audit(m["_id"])
    assert entry["error"] == "refused"


class BlipRepo(InMemoryRepo):
    """Fails the first outbox claim the way a dropped connection would."""

    def __init__(self):
        super().__init__()
        self.claims = 0

    async def claim_outbox(self, now):
        self.claims += 1
        if self.claims == 1:
            raise StorageError("connection reset")
        return await super().claim_outbox(now)


async def test_worker_survives_a_storage_error():
    repo = BlipRepo()
    worker = asyncio.create_task(run_outbox_loop(repo, idle=0))
    await asyncio.sleep(0.1)
    try:
        assert not worker.done()
        assert repo.claims > 1
    finally:
        worker.cancel()
        with suppress(asyncio.CancelledError):
            await worker
