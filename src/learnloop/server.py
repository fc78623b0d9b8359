import logging
import threading
import time
from contextlib import asynccontextmanager
from dataclasses import asdict

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel

from learnloop.application.config import resolve_config
from learnloop.application.factory import Services, build_services
from learnloop.consts import VERSION
from learnloop.domain.errors import LearnloopError, NotFoundError
from learnloop.interface._common import result_to_dict, state_to_dict

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("learnloop.server")

_services: Services | None = None
_services_lock = threading.Lock()


def get_services() -> Services:
    """Process-wide services, built on first use from the resolved config."""
    global _services
    if _services is None:
        with _services_lock:
            if _services is None:
                _services = build_services(resolve_config())
    return _services


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"learnloop server v{VERSION} starting up...")
    yield
    # Shutdown
    logger.info("learnloop server shutting down...")


app = FastAPI(
    title="learnloop server",
    description="Trigger and review endpoints for a host application.",
    version=VERSION,
    lifespan=lifespan,
)


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


start_time = time.time()


def _http_error(e: LearnloopError) -> HTTPException:
    status = 404 if isinstance(e, NotFoundError) else 400
    return HTTPException(status_code=status, detail=str(e))


@app.get("/health", response_model=HealthResponse)
def health_check():
    """
    Simple health check to verify server is reachable.
    """
    return HealthResponse(status="ok", version=VERSION, uptime_seconds=time.time() - start_time)


@app.get("/version")
def get_version():
    return {"version": VERSION}


class EventRequest(BaseModel):
    user_id: str
    kind: str
    subject: str | None = None  # block / entity id
    text: str | None = None  # chat message


@app.post("/events")
def post_event(req: EventRequest, services: Services = Depends(get_services)):
    """
    Report one behavioral event. Returns whether a review should open now.
    """
    try:
        result = services.engine.record_event(req.user_id, req.kind, subject=req.subject, text=req.text)
    except LearnloopError as e:
        raise _http_error(e) from e
    return result_to_dict(result)


@app.post("/timer/{user_id}")
def post_timer_tick(user_id: str, services: Services = Depends(get_services)):
    """Advance the timer trigger; hosts call this periodically."""
    try:
        result = services.engine.tick(user_id)
    except LearnloopError as e:
        raise _http_error(e) from e
    return result_to_dict(result)


class ReviewRequest(BaseModel):
    user_id: str
    card_id: str
    outcome: str | int


@app.post("/reviews")
def post_review(req: ReviewRequest, services: Services = Depends(get_services)):
    try:
        state = services.reviews.submit(req.user_id, req.card_id, req.outcome)
    except LearnloopError as e:
        raise _http_error(e) from e
    return {
        "review_state": state_to_dict(state),
        "next_review_in": services.algorithm.describe(state),
    }


@app.get("/users/{user_id}/stats")
def get_user_stats(user_id: str, services: Services = Depends(get_services)):
    try:
        review = services.scheduler.stats(user_id)
        progress = services.progress.stats(user_id)
    except LearnloopError as e:
        raise _http_error(e) from e
    return {"review": asdict(review), "progress": asdict(progress)}


@app.get("/users/{user_id}/preview/{card_id}")
def get_preview(user_id: str, card_id: str, services: Services = Depends(get_services)):
    try:
        return services.reviews.preview(user_id, card_id)
    except LearnloopError as e:
        raise _http_error(e) from e


@app.delete("/users/{user_id}/session")
def end_session(user_id: str, services: Services = Depends(get_services)):
    """
    End a user's session: forget trigger counters and evict cached progress.
    Progress on disk is kept.
    """
    try:
        services.engine.end_session(user_id)
        services.progress.unload(user_id)
    except LearnloopError as e:
        raise _http_error(e) from e
    logger.info(f"Session ended for {user_id}")
    return {"ok": True}
