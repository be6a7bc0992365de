import asyncio

import pytest

from conftest import student, volunteer
from tutormatch.core.errors import ConflictError, NotFoundError, ValidationError
from tutormatch.repos.inmemory import InMemoryRepo
from tutormatch.services.approval import approve, reject, update_many, update_match_status

pytestmark = pytest.mark.anyio


async def _pending(repo, s=None, v=None, status="pending"):
    s = s or await repo.create_student(student(full_name="S1"))
    v = v or await repo.create_volunteer(volunteer(full_name="V1"))
    m = await repo.insert_match({
        "student_id": s["_id"], "volunteer_id": v["_id"],
        "confidence_score": 100, "match_reason": "r", "status": status, "approved_at": None,
    })
    return m, s, v


async def test_approve_moves_match_and_counters_together(repo):
    m, s, v = await _pending(repo)

    res = await approve(repo, m["_id"])
    assert res == {"success": True, "message": "Match approved successfully", "matchId": m["_id"]}

    m2 = await repo.get_match(m["_id"])
    assert m2["status"] == "approved"
    assert m2["approved_at"] is not None
    assert m2["approved_at"].tzinfo is None
    assert (await repo.get_volunteer(v["_id"]))["current_matches"] == 1
    assert (await repo.get_student(s["_id"]))["is_matched"] is True


async def test_second_approve_is_a_conflict(repo):
    m, _, v = await _pending(repo)
    await approve(repo, m["_id"])

    with pytest.raises(ConflictError) as ei:
        await approve(repo, m["_id"])
    assert ei.value.message == "The match was already approved"
    assert ei.value.context == {"status": "approved"}
    assert (await repo.get_volunteer(v["_id"]))["current_matches"] == 1


async def test_full_volunteer_cannot_be_approved(repo):
    v = await repo.create_volunteer(volunteer(full_name="Dana", capacity=2, current_matches=2))
    m, s, _ = await _pending(repo, v=v)

    with pytest.raises(ConflictError) as ei:
        await approve(repo, m["_id"])
    assert ei.value.message == "The volunteer has reached maximum capacity"
    assert ei.value.context == {"volunteerName": "Dana", "capacity": 2, "currentMatches": 2}
    assert (await repo.get_match(m["_id"]))["status"] == "pending"
    assert (await repo.get_student(s["_id"]))["is_matched"] is False


async def test_student_matched_elsewhere(repo):
    s = await repo.create_student(student(full_name="Noa"))
    m1, _, _ = await _pending(repo, s=s)
    m2, _, v2 = await _pending(repo, s=s, v=await repo.create_volunteer(volunteer(full_name="V2")))
    await approve(repo, m1["_id"])

    with pytest.raises(ConflictError) as ei:
        await approve(repo, m2["_id"])
    assert ei.value.message == "The student is already matched"
    assert ei.value.context == {"studentName": "Noa"}
    assert (await repo.get_volunteer(v2["_id"]))["current_matches"] == 0


async def test_reject_leaves_counters_alone(repo):
    m, s, v = await _pending(repo)
    res = await reject(repo, m["_id"])
    assert res["message"] == "Match rejected"
    assert (await repo.get_match(m["_id"]))["status"] == "rejected"
    assert (await repo.get_match(m["_id"]))["approved_at"] is None
    assert (await repo.get_volunteer(v["_id"]))["current_matches"] == 0
    assert (await repo.get_student(s["_id"]))["is_matched"] is False


async def test_rejected_is_terminal(repo):
    m, _, _ = await _pending(repo)
    await reject(repo, m["_id"])
    with pytest.raises(ConflictError) as ei:
        await approve(repo, m["_id"])
    assert ei.value.message == "The match was already rejected"
    with pytest.raises(ConflictError):
        await reject(repo, m["_id"])


async def test_reject_does_not_need_capacity(repo):
    v = await repo.create_volunteer(volunteer(capacity=1, current_matches=1))
    m, _, _ = await _pending(repo, v=v)
    assert (await reject(repo, m["_id"]))["success"] is True


async def test_legacy_suggested_status_is_pending(repo):
    m, _, _ = await _pending(repo, status="Suggested")
    assert (await approve(repo, m["_id"]))["success"] is True
    assert (await repo.get_match(m["_id"]))["status"] == "approved"


async def test_pending_listing_includes_legacy_rows(repo):
    legacy, _, _ = await _pending(repo, status="Suggested")
    fresh, _, _ = await _pending(repo)
    await _pending(repo, status="rejected")
    listed = {m["_id"] for m in await repo.list_matches("pending")}
    assert listed == {legacy["_id"], fresh["_id"]}


async def test_missing_records_are_not_found(repo):
    with pytest.raises(NotFoundError):
        await approve(repo, "nope")
    with pytest.raises(NotFoundError):
        await reject(repo, "nope")

    s = await repo.create_student(student())
    m = await repo.insert_match({"student_id": s["_id"], "volunteer_id": "deleted",
                                 "confidence_score": 90, "match_reason": "", "status": "pending"})
    with pytest.raises(NotFoundError) as ei:
        await approve(repo, m["_id"])
    assert ei.value.message == "Volunteer not found"


async def test_concurrent_approvals_have_one_winner(repo):
    m, _, v = await _pending(repo)
    results = await asyncio.gather(
        approve(repo, m["_id"]), approve(repo, m["_id"]), return_exceptions=True,
    )
    wins = [r for r in results if isinstance(r, dict)]
    losses = [r for r in results if isinstance(r, ConflictError)]
    assert len(wins) == 1 and len(losses) == 1
    assert losses[0].context["status"] == "approved"
    assert (await repo.get_volunteer(v["_id"]))["current_matches"] == 1


class SlowCommitRepo(InMemoryRepo):
    """Yields before committing so concurrent callers both pass the pre-checks."""

    async def commit_approval(self, match_id, approved_at):
        await asyncio.sleep(0)
        return await super().commit_approval(match_id, approved_at)

    async def commit_rejection(self, match_id):
        await asyncio.sleep(0)
        return await super().commit_rejection(match_id)


async def test_race_is_settled_by_the_commit():
    repo = SlowCommitRepo()
    v = await repo.create_volunteer(volunteer(full_name="V1", capacity=1))
    s1 = await repo.create_student(student(full_name="S1"))
    s2 = await repo.create_student(student(full_name="S2"))
    m1, _, _ = await _pending(repo, s=s1, v=v)
    m2, _, _ = await _pending(repo, s=s2, v=v)

    results = await asyncio.gather(
        approve(repo, m1["_id"]), approve(repo, m2["_id"]), return_exceptions=True,
    )
    losses = [r for r in results if isinstance(r, ConflictError)]
    assert sum(1 for r in results if isinstance(r, dict)) == 1
    assert len(losses) == 1
    assert losses[0].context["currentMatches"] == 1
    assert (await repo.get_volunteer(v["_id"]))["current_matches"] == 1
    statuses = sorted([(await repo.get_match(m["_id"]))["status"] for m in (m1, m2)])
    assert statuses == ["approved", "pending"]


async def test_same_match_race_through_commit():
    repo = SlowCommitRepo()
    m, _, v = await _pending(repo)
    results = await asyncio.gather(
        update_match_status(repo, m["_id"], "approve"),
        update_match_status(repo, m["_id"], "reject"),
        return_exceptions=True,
    )
    assert sum(1 for r in results if isinstance(r, dict)) == 1
    assert sum(1 for r in results if isinstance(r, ConflictError)) == 1
    final = (await repo.get_match(m["_id"]))["status"]
    assert (await repo.get_volunteer(v["_id"]))["current_matches"] == (1 if final == "approved" else 0)


@pytest.mark.parametrize("match_id,action,message", [
    (None, "approve", "Missing matchId or action"),
    ("m1", None, "Missing matchId or action"),
    ("m1", "delete", "Invalid action"),
])
async def test_request_validation(repo, match_id, action, message):
    with pytest.raises(ValidationError) as ei:
        await update_match_status(repo, match_id, action)
    assert ei.value.message == message


async def test_batch_reports_per_item(repo):
    v = await repo.create_volunteer(volunteer(capacity=1))
    m1, _, _ = await _pending(repo, s=await repo.create_student(student()), v=v)
    m2, _, _ = await _pending(repo, s=await repo.create_student(student()), v=v)

    results = await update_many(repo, [m1["_id"], m2["_id"], "missing"], "approve")
    assert results[0]["success"] is True
    assert results[1]["success"] is False
    assert results[1]["statusCode"] == 409
    assert results[1]["capacity"] == 1
    assert results[2]["statusCode"] == 404
    # the first approval stays committed
    assert (await repo.get_match(m1["_id"]))["status"] == "approved"
