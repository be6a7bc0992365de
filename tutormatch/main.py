# tutormatch/main.py
import asyncio
import logging
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tutormatch.core.config import settings
from tutormatch.core.errors import MatchingError
from tutormatch.deps import get_repo
from tutormatch.routers import matches as matches_router
from tutormatch.routers import matching as matching_router
from tutormatch.routers import people as people_router
from tutormatch.routers import settings as settings_router
from tutormatch.routers import webhooks as webhooks_router
from tutormatch.services.webhook_worker import run_outbox_loop

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    repo = get_repo()
    await repo.ensure_indexes()

    worker = None
    if settings.outbox_worker:
        worker = asyncio.create_task(run_outbox_loop(repo))
        logger.info("notification outbox worker started")

    yield

    if worker is not None:
        worker.cancel()
        with suppress(asyncio.CancelledError):
            await worker
    await repo.close()


# --- Create app FIRST ---
app = FastAPI(lifespan=lifespan, title="TutorMatch API")

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(MatchingError)
async def _matching_error(request: Request, ex: MatchingError):
    return JSONResponse(ex.to_body(), status_code=ex.status_code)

@app.exception_handler(RequestValidationError)
async def _request_validation_error(request: Request, ex: RequestValidationError):
    first = (ex.errors() or [{}])[0]
    where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    detail = first.get("msg", "Invalid request")
    return JSONResponse({"error": f"{where}: {detail}" if where else detail}, status_code=400)

@app.exception_handler(Exception)
async def _unexpected_error(request: Request, ex: Exception):
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse({"error": str(ex) or "Unknown error"}, status_code=500)

# ---------------- Include routers ----------------
app.include_router(matching_router.router)      # /api/matching
app.include_router(matches_router.router)       # /api/matches
app.include_router(people_router.router)        # /api/students, /api/volunteers
app.include_router(settings_router.router)      # /api/settings
app.include_router(webhooks_router.router)      # /api/webhooks

# Health
@app.get("/health")
def health():
    return {"ok": True}
