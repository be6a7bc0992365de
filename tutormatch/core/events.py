from datetime import datetime
import hmac, hashlib, json, logging
from typing import Any, Dict

from tutormatch.core.config import settings
from tutormatch.core.errors import StorageError

logger = logging.getLogger(__name__)

def sign(body: Dict[str, Any]) -> str:
    secret = settings.webhook_secret.encode()
    msg = json.dumps(body, separators=(",", ":"), sort_keys=True, ensure_ascii=False).encode()
    return hmac.new(secret, msg, hashlib.sha256).hexdigest()

async def emit_event(repo, type_: str, data: Dict[str, Any]):
    evt = {
        "type": type_,
        "data": data,
        "created_at": datetime.utcnow(),
    }
    await repo.insert_event(evt)

    # fan-out to webhooks via outbox
    for h in await repo.list_webhooks(enabled=True):
        body = {
            "type": type_,
            "data": data,
            "created_at": evt["created_at"].isoformat() + "Z"
        }
        await repo.enqueue_outbox({
            "match_id": data.get("match_id"),
            "target": h["url"],
            "body": body,
            "sig": sign(body),
            "attempts": 0,
            "max_attempts": settings.webhook_max_attempts,
            "next_try_at": datetime.utcnow(),
            "status": "pending"
        })

def _party(doc):
    if not doc:
        return None
    return {k: doc.get(k) for k in ("full_name", "email", "phone", "city", "native_language")}

async def notify_match_approved(repo, match_id: str):
    """Hand an approved match to the notification side; runs after the response."""
    try:
        match = await repo.get_match(match_id)
        if not match or match.get("status") != "approved":
            logger.warning("not notifying for %s: match missing or not approved", match_id)
            return
        student = await repo.get_student(match.get("student_id")) if match.get("student_id") else None
        volunteer = await repo.get_volunteer(match.get("volunteer_id")) if match.get("volunteer_id") else None
        await emit_event(repo, "match.approved", {
            "match_id": match_id,
            "confidence_score": match.get("confidence_score"),
            "match_reason": match.get("match_reason"),
            "student": _party(student),
            "volunteer": _party(volunteer),
        })
    except StorageError:
        logger.exception("could not queue notifications for match %s", match_id)
