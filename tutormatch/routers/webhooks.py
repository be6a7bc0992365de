from fastapi import APIRouter, Depends

from tutormatch.core.errors import NotFoundError
from tutormatch.deps import get_repo
from tutormatch.schemas import HookIn, HookOut

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])

@router.post("", response_model=HookOut, status_code=201)
async def create_webhook(h: HookIn, repo=Depends(get_repo)):
    doc = await repo.create_webhook(str(h.url), h.enabled)
    return {"id": str(doc["_id"]), "url": doc["url"], "enabled": doc["enabled"]}

@router.get("", response_model=list[HookOut])
async def list_webhooks(repo=Depends(get_repo)):
    return [{"id": str(d["_id"]), "url": d["url"], "enabled": d.get("enabled", True)}
            for d in await repo.list_webhooks()]

@router.delete("/{hook_id}")
async def delete_webhook(hook_id: str, repo=Depends(get_repo)):
    if not await repo.delete_webhook(hook_id):
        raise NotFoundError("Webhook not found")
    return {"ok": True}
