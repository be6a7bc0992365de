# tutormatch/routers/matches.py
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends

from tutormatch.core.events import notify_match_approved
from tutormatch.deps import get_repo
from tutormatch.schemas import BatchStatusIn, MatchOut, UpdateMatchStatusIn, UpdateMatchStatusOut
from tutormatch.services.approval import update_many, update_match_status

router = APIRouter(prefix="/api/matches", tags=["matches"])

def _summary(doc: Optional[dict]) -> Optional[dict]:
    if not doc:
        return None
    return {"id": str(doc["_id"]), "full_name": doc.get("full_name", ""), "city": doc.get("city", "")}

@router.get("", response_model=list[MatchOut])
async def list_matches(status: Optional[str] = None, repo=Depends(get_repo)):
    out = []
    for m in await repo.list_matches(status):
        sid, vid = m.get("student_id"), m.get("volunteer_id")
        student = await repo.get_student(sid) if sid else None
        volunteer = await repo.get_volunteer(vid) if vid else None
        out.append({
            "id": str(m["_id"]),
            "student_id": sid,
            "volunteer_id": vid,
            "confidence_score": m.get("confidence_score", 0),
            "match_reason": m.get("match_reason", ""),
            "status": m.get("status", "pending"),
            "approved_at": m.get("approved_at"),
            "created_at": m.get("created_at"),
            "student": _summary(student),
            "volunteer": _summary(volunteer),
        })
    return out

@router.post("/status", response_model=UpdateMatchStatusOut)
async def update_status(body: UpdateMatchStatusIn, background_tasks: BackgroundTasks, repo=Depends(get_repo)):
    result = await update_match_status(repo, body.match_id, body.action)
    if body.action == "approve":
        background_tasks.add_task(notify_match_approved, repo, body.match_id)
    return result

@router.post("/status/batch")
async def update_status_batch(body: BatchStatusIn, background_tasks: BackgroundTasks, repo=Depends(get_repo)):
    results = await update_many(repo, body.match_ids, body.action)
    if body.action == "approve":
        for r in results:
            if r["success"]:
                background_tasks.add_task(notify_match_approved, repo, r["matchId"])
    return {
        "results": results,
        "succeeded": sum(1 for r in results if r["success"]),
        "failed": sum(1 for r in results if not r["success"]),
    }
