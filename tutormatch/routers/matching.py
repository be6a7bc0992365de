# tutormatch/routers/matching.py
from fastapi import APIRouter, Depends, Query

from tutormatch.deps import get_repo
from tutormatch.schemas import GenerateMatchesIn, GenerateMatchesOut, ScanOut
from tutormatch.services.generation import run_generation

router = APIRouter(prefix="/api/matching", tags=["matching"])

@router.post("/generate", response_model=GenerateMatchesOut)
async def generate_matches(body: GenerateMatchesIn | None = None, repo=Depends(get_repo)):
    body = body or GenerateMatchesIn()
    return await run_generation(
        repo,
        min_score=body.min_score,
        limit=body.limit,
        max_distance=body.max_distance,
        city_filter=body.city_filter,
        language_filter=body.language_filter,
        match_gender=body.match_gender,
    )

@router.get("/scans", response_model=list[ScanOut])
async def list_scans(limit: int = Query(20, ge=1, le=200), repo=Depends(get_repo)):
    return [{"id": str(s["_id"]), **{k: v for k, v in s.items() if k != "_id"}}
            for s in await repo.list_scans(limit)]
