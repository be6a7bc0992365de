# tutormatch/routers/settings.py
from fastapi import APIRouter, Depends

from tutormatch.deps import get_repo
from tutormatch.schemas import SettingsPatch
from tutormatch.services.tuning import load_scoring_settings, reset_scoring_settings, update_scoring_settings

router = APIRouter(prefix="/api/settings", tags=["settings"])

@router.get("")
async def get_settings(repo=Depends(get_repo)):
    return await load_scoring_settings(repo)

@router.put("")
async def put_settings(patch: SettingsPatch, repo=Depends(get_repo)):
    return await update_scoring_settings(repo, patch)

@router.post("/reset")
async def reset_settings(repo=Depends(get_repo)):
    return await reset_scoring_settings(repo)
