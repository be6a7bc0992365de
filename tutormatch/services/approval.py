# tutormatch/services/approval.py
"""
Approval state machine for a single match.

    pending --approve--> approved
    pending --reject---> rejected

Both targets are terminal. The pre-checks below produce specific messages;
the authoritative check is the conditional commit in the repo, which
re-verifies status, capacity and the student flag in the same atomic unit.
When that commit loses a race the state is reloaded so the caller still gets
the specific reason.
"""
import logging
from datetime import datetime
from typing import Iterable, List, Optional

from tutormatch.core.errors import ConflictError, MatchingError, NotFoundError, ValidationError
from tutormatch.core.messages import msg
from tutormatch.core.states import ACTIONS, can_transition, is_pending, normalize_status

logger = logging.getLogger(__name__)


def _utcnow():
    return datetime.utcnow()


async def _load(repo, match_id: str):
    match = await repo.get_match(match_id)
    if not match:
        raise NotFoundError(msg("match_not_found"))
    student = await repo.get_student(match["student_id"]) if match.get("student_id") else None
    volunteer = await repo.get_volunteer(match["volunteer_id"]) if match.get("volunteer_id") else None
    return match, student, volunteer


def _ensure_pending(match: dict):
    status = normalize_status(match.get("status"))
    if not is_pending(status):
        key = "already_approved" if status == "approved" else "already_rejected"
        raise ConflictError(msg(key), {"status": status})


def _ensure_approvable(match: dict, student: Optional[dict], volunteer: Optional[dict]):
    if volunteer is None:
        raise NotFoundError(msg("volunteer_not_found"))
    if student is None:
        raise NotFoundError(msg("student_not_found"))
    _ensure_pending(match)

    capacity = int(volunteer.get("capacity") or 0)
    current = int(volunteer.get("current_matches") or 0)
    if current >= capacity:
        raise ConflictError(msg("capacity_exhausted"), {
            "volunteerName": volunteer.get("full_name"),
            "capacity": capacity,
            "currentMatches": current,
        })
    if student.get("is_matched"):
        raise ConflictError(msg("student_matched"), {"studentName": student.get("full_name")})


async def approve(repo, match_id: str) -> dict:
    match, student, volunteer = await _load(repo, match_id)
    _ensure_approvable(match, student, volunteer)

    if not await repo.commit_approval(match_id, _utcnow()):
        logger.warning("approval of %s lost a race, re-checking", match_id)
        match, student, volunteer = await _load(repo, match_id)
        _ensure_approvable(match, student, volunteer)
        raise ConflictError(msg("commit_failed"))

    logger.info("match %s approved (student=%s volunteer=%s)",
                match_id, match.get("student_id"), match.get("volunteer_id"))
    return {"success": True, "message": msg("approved"), "matchId": match_id}


async def reject(repo, match_id: str) -> dict:
    match = await repo.get_match(match_id)
    if not match:
        raise NotFoundError(msg("match_not_found"))
    _ensure_pending(match)

    if not await repo.commit_rejection(match_id):
        match = await repo.get_match(match_id)
        if not match:
            raise NotFoundError(msg("match_not_found"))
        _ensure_pending(match)
        raise ConflictError(msg("commit_failed"))

    logger.info("match %s rejected", match_id)
    return {"success": True, "message": msg("rejected"), "matchId": match_id}


async def update_match_status(repo, match_id: Optional[str], action: Optional[str]) -> dict:
    if not match_id or not action:
        raise ValidationError(msg("missing_fields"))
    if action not in ACTIONS or not can_transition("pending", ACTIONS[action]):
        raise ValidationError(msg("invalid_action"))

    logger.info("processing %s for match %s", action, match_id)
    try:
        if action == "approve":
            return await approve(repo, match_id)
        return await reject(repo, match_id)
    except ConflictError as ex:
        logger.warning("%s of match %s refused: %s", action, match_id, ex.message)
        raise


async def update_many(repo, match_ids: Iterable[str], action: Optional[str]) -> List[dict]:
    """Independent per-item transitions; failures are reported, never rolled back."""
    results = []
    for match_id in match_ids:
        try:
            results.append(await update_match_status(repo, match_id, action))
        except MatchingError as ex:
            results.append({
                "success": False,
                "matchId": match_id,
                "statusCode": ex.status_code,
                **ex.to_body(),
            })
    return results
