# tutormatch/routers/people.py
from typing import Optional

from fastapi import APIRouter, Depends

from tutormatch.deps import get_repo
from tutormatch.schemas import StudentIn, StudentOut, VolunteerIn, VolunteerOut

router = APIRouter(prefix="/api", tags=["people"])

def _serialize(doc: dict) -> dict:
    out = {k: v for k, v in doc.items() if k not in ("_id", "created_at")}
    out["id"] = str(doc["_id"])
    return out

@router.post("/students", response_model=StudentOut, status_code=201)
async def create_student(payload: StudentIn, repo=Depends(get_repo)):
    saved = await repo.create_student({**payload.model_dump(), "is_matched": False})
    return _serialize(saved)

@router.get("/students", response_model=list[StudentOut])
async def list_students(is_matched: Optional[bool] = None, repo=Depends(get_repo)):
    return [_serialize(s) for s in await repo.list_students(is_matched)]

@router.post("/volunteers", response_model=VolunteerOut, status_code=201)
async def create_volunteer(payload: VolunteerIn, repo=Depends(get_repo)):
    saved = await repo.create_volunteer(payload.model_dump())
    return _serialize(saved)

@router.get("/volunteers", response_model=list[VolunteerOut])
async def list_volunteers(is_active: Optional[bool] = None, repo=Depends(get_repo)):
    return [_serialize(v) for v in await repo.list_volunteers(is_active)]
