import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional

import httpx

from tutormatch.core.errors import StorageError

logger = logging.getLogger(__name__)

async def deliver_one(client: httpx.AsyncClient, rec: dict) -> int:
    headers = {
        "Content-Type": "application/json",
        "X-TutorMatch-Signature": rec["sig"]
    }
    r = await client.post(rec["target"], json=rec["body"], headers=headers)
    return r.status_code

async def process_one(repo, client: httpx.AsyncClient) -> bool:
    """Deliver one due outbox record. Returns False when nothing was due."""
    rec = await repo.claim_outbox(datetime.utcnow())
    if not rec:
        return False

    status, error = None, None
    try:
        status = await deliver_one(client, rec)
    except httpx.HTTPError as ex:
        error = str(ex) or type(ex).__name__

    ok = status is not None and 200 <= status < 300
    if not ok and error is None:
        error = f"HTTP {status}"

    await repo.insert_audit({
        "match_id": rec.get("match_id"),
        "channel": "webhook",
        "recipient": rec["target"],
        "status": "sent" if ok else "failed",
        "error": None if ok else error,
        "created_at": datetime.utcnow(),
    })

    if ok:
        await repo.update_outbox(rec["_id"], {"status": "delivered", "delivered_at": datetime.utcnow()})
        return True

    attempts = rec.get("attempts", 0) + 1
    if attempts >= rec.get("max_attempts", 6):
        logger.warning("giving up on %s after %d attempts: %s", rec["target"], attempts, error)
        await repo.update_outbox(rec["_id"], {"status": "dead", "attempts": attempts, "last_error": error})
        return True

    delay = min(60, 2 ** attempts)  # backoff up to 60s
    await repo.update_outbox(rec["_id"], {
        "status": "pending",
        "attempts": attempts,
        "last_error": error,
        "next_try_at": datetime.utcnow() + timedelta(seconds=delay)
    })
    return True

async def drain_outbox(repo, client: Optional[httpx.AsyncClient] = None) -> int:
    """Deliver everything currently due; returns how many records were handled."""
    handled = 0
    if client is not None:
        while await process_one(repo, client):
            handled += 1
        return handled

    timeout = httpx.Timeout(10.0, connect=5.0)
    async with httpx.AsyncClient(timeout=timeout) as c:
        while await process_one(repo, c):
            handled += 1
    return handled

async def run_outbox_loop(repo, idle: float = 5.0):
    timeout = httpx.Timeout(10.0, connect=5.0)
    async with httpx.AsyncClient(timeout=timeout) as client:
        while True:
            try:
                if not await process_one(repo, client):
                    await asyncio.sleep(0.5)
            except StorageError:
                logger.exception("outbox pass failed, retrying")
                await asyncio.sleep(idle)
