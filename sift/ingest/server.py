"""
Sift Server

FastAPI adapter over the ingest services. Authentication is out of scope:
the caller's user id arrives in the X-User-Id header and is trusted.

Endpoints:
- POST /dumps: Capture a dump (processed in the background); GET /dumps/{id}
- GET /history: Recent dumps and what they became
- GET /inbox, /inbox/stats, /inbox/{id}; POST /inbox/{id}/confirm|dismiss
- GET /events; DELETE /events/{id}
- GET /people, POST /people, DELETE /people/{id}, GET /people/{id}/overview
- GET /items, /items/archive; POST /items, /items/{id}/complete|archive|unarchive
- GET /dashboard/today, /summary
- GET /health
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..common.config import SiftConfig, ensure_directories, load_config
from ..common.embedding_service import EmbeddingService
from ..common.errors import (
    DumpNotFoundError,
    DuplicatePersonError,
    EventNotFoundError,
    InvalidRequestError,
    NotFoundError,
)
from ..common.llm_client import LLMClient
from ..common.logging_setup import configure_logging
from ..common.schemas import ItemKind, SourceKind
from ..common.store import SiftStore
from ..retriever.context import ContextRetriever
from .calendar import CalendarSyncAdapter, build_calendar_service
from .conflict import ConflictChecker
from .extractor import StructuredExtractor
from .inbox import ConfirmRequest, InboxService
from .items import ItemInput, ItemService
from .media import MediaResolver
from .orchestrator import DumpOrchestrator
from .overview import OVERVIEW_WINDOW_DAYS, dashboard_today, generate_daily_summary, person_overview
from .people import PeopleService, PersonInput
from .tasks import DumpTaskQueue

logger = logging.getLogger("sift.ingest.server")

# Global state
config: Optional[SiftConfig] = None
store: Optional[SiftStore] = None
embedding_service: Optional[EmbeddingService] = None
llm_client: Optional[LLMClient] = None
orchestrator: Optional[DumpOrchestrator] = None
task_queue: Optional[DumpTaskQueue] = None
inbox_service: Optional[InboxService] = None
item_service: Optional[ItemService] = None
people_service: Optional[PeopleService] = None


def init_components(
    cfg: SiftConfig,
    sift_store: Optional[SiftStore] = None,
    embeddings: Optional[EmbeddingService] = None,
    llm: Optional[LLMClient] = None,
    calendar: Optional[CalendarSyncAdapter] = None,
) -> None:
    """Wire the pipeline and services from config; any piece can be injected"""
    global config, store, embedding_service, llm_client, orchestrator, task_queue
    global inbox_service, item_service, people_service

    config = cfg
    store = sift_store or SiftStore(Path(cfg.store.db_path).expanduser())
    embedding_service = embeddings or EmbeddingService.from_config(
        cfg.embedding, google_api_key=cfg.llm.google_api_key or None
    )
    llm_client = llm or LLMClient.from_config(cfg.llm)
    calendar = calendar or CalendarSyncAdapter(build_calendar_service(cfg.calendar))

    orchestrator = DumpOrchestrator(
        store,
        embedding_service,
        StructuredExtractor(llm_client, timeout=cfg.llm.timeout),
        retriever=ContextRetriever(store),
        conflict_checker=ConflictChecker(store, calendar.service),
        calendar=calendar,
        media_resolver=MediaResolver(Path(cfg.store.media_root)),
        context_limit=cfg.pipeline.context_limit,
        recent_event_context=cfg.pipeline.recent_event_context,
    )
    task_queue = DumpTaskQueue(orchestrator.process_dump, workers=cfg.pipeline.workers)
    inbox_service = InboxService(store, calendar)
    item_service = ItemService(store)
    people_service = PeopleService(store)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize components on startup"""
    cfg = load_config()
    configure_logging(cfg.log_level)
    print("[Sift] Starting up...")

    ensure_directories(cfg)
    init_components(cfg)

    print(f"[Sift] Store: {cfg.store.db_path}")
    print(f"[Sift] LLM: {cfg.llm.provider} ({'ready' if llm_client.is_available else 'unavailable'})")
    print(f"[Sift] Embeddings: {embedding_service.mode} ({'ready' if embedding_service.is_available else 'unavailable'})")
    print(f"[Sift] Calendar: {cfg.calendar.provider}")
    print("[Sift] Ready to receive dumps")

    yield

    print("[Sift] Shutting down...")
    task_queue.shutdown(wait=True)
    store.close()


app = FastAPI(
    title="Sift",
    description="Dump ingestion, triage and archive pipeline",
    version="0.1.0",
    lifespan=lifespan,
)


# =============================================================================
# Error mapping
# =============================================================================

@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"error": str(exc)})


@app.exception_handler(InvalidRequestError)
async def invalid_request_handler(request: Request, exc: InvalidRequestError):
    return JSONResponse(status_code=400, content={"error": str(exc)})


@app.exception_handler(DuplicatePersonError)
async def duplicate_person_handler(request: Request, exc: DuplicatePersonError):
    return JSONResponse(status_code=409, content={"error": str(exc)})


def _user(x_user_id: Optional[str]) -> str:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    if store is None:
        raise HTTPException(status_code=503, detail="Not initialized")
    return x_user_id


# =============================================================================
# Request Models
# =============================================================================

class DumpRequest(BaseModel):
    content_text: Optional[str] = None
    media_url: Optional[str] = None
    source_kind: SourceKind = SourceKind.MANUAL


class CompleteRequest(BaseModel):
    completed: bool = True


# =============================================================================
# Endpoints
# =============================================================================

@app.get("/health")
async def health():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "sift",
        "initialized": orchestrator is not None,
        "llm_available": llm_client.is_available if llm_client else False,
        "embeddings_available": embedding_service.is_available if embedding_service else False,
    }


@app.post("/dumps", status_code=201)
def create_dump(body: DumpRequest, x_user_id: Optional[str] = Header(None)):
    """Store a dump and queue it for processing; returns before processing"""
    user_id = _user(x_user_id)
    text = (body.content_text or "").strip() or None
    if text is None and not body.media_url:
        raise InvalidRequestError("A dump needs content_text or media_url")

    dump = store.create_dump(user_id, body.source_kind, content_text=text, media_url=body.media_url)
    task_queue.submit(dump.id)
    logger.info("Dump %s queued for user %s", dump.id, user_id)
    return dump.model_dump(mode="json", exclude={"embedding"})


@app.get("/dumps/{dump_id}")
def get_dump(dump_id: str, x_user_id: Optional[str] = Header(None)):
    dump = store.get_dump(dump_id, user_id=_user(x_user_id))
    if dump is None:
        raise DumpNotFoundError(dump_id)
    return dump.model_dump(mode="json", exclude={"embedding"})


@app.get("/history")
def history(limit: int = 50, x_user_id: Optional[str] = Header(None)):
    user_id = _user(x_user_id)
    return [
        {**dump.model_dump(mode="json", exclude={"embedding"}), "outcome": outcome}
        for dump, outcome in store.list_dump_history(user_id, limit=limit)
    ]


@app.get("/inbox")
def list_inbox(x_user_id: Optional[str] = Header(None)):
    user_id = _user(x_user_id)
    return [entry.model_dump(mode="json") for entry in inbox_service.list_open(user_id)]


@app.get("/inbox/stats")
def inbox_stats(x_user_id: Optional[str] = Header(None)):
    return inbox_service.stats(_user(x_user_id))


@app.get("/inbox/{entry_id}")
def get_inbox_entry(entry_id: str, x_user_id: Optional[str] = Header(None)):
    return inbox_service.get(_user(x_user_id), entry_id).model_dump(mode="json")


@app.post("/inbox/{entry_id}/confirm", status_code=201)
def confirm_inbox_entry(entry_id: str, body: Optional[ConfirmRequest] = None, x_user_id: Optional[str] = Header(None)):
    event = inbox_service.confirm(_user(x_user_id), entry_id, body)
    return event.model_dump(mode="json")


@app.post("/inbox/{entry_id}/dismiss")
def dismiss_inbox_entry(entry_id: str, x_user_id: Optional[str] = Header(None)):
    inbox_service.dismiss(_user(x_user_id), entry_id)
    return {"message": "Item dismissed", "id": entry_id}


@app.get("/events")
def list_events(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    x_user_id: Optional[str] = Header(None),
):
    user_id = _user(x_user_id)
    return [e.model_dump(mode="json") for e in store.list_events(user_id, start=start, end=end)]


@app.delete("/events/{event_id}")
def delete_event(event_id: str, x_user_id: Optional[str] = Header(None)):
    if not store.delete_event(_user(x_user_id), event_id):
        raise EventNotFoundError(event_id)
    return {"status": "deleted", "id": event_id}


@app.get("/people")
def list_people(x_user_id: Optional[str] = Header(None)):
    return [p.model_dump(mode="json") for p in people_service.list(_user(x_user_id))]


@app.post("/people")
def save_person(body: PersonInput, x_user_id: Optional[str] = Header(None)):
    return people_service.save(_user(x_user_id), body).model_dump(mode="json")


@app.delete("/people/{person_id}")
def delete_person(person_id: str, x_user_id: Optional[str] = Header(None)):
    people_service.delete(_user(x_user_id), person_id)
    return {"status": "deleted", "id": person_id}


@app.get("/people/{person_id}/overview")
def get_person_overview(
    person_id: str,
    window_days: int = OVERVIEW_WINDOW_DAYS,
    x_user_id: Optional[str] = Header(None),
):
    overview = person_overview(store, _user(x_user_id), person_id, window_days=window_days)
    return {
        "person": overview.person.model_dump(mode="json"),
        "todos": [i.model_dump(mode="json") for i in overview.todos],
        "infos": [i.model_dump(mode="json") for i in overview.infos],
        "events": [e.model_dump(mode="json") for e in overview.events],
        "inbox": [e.model_dump(mode="json") for e in overview.inbox],
        "dumps": [
            {**d.model_dump(mode="json", exclude={"embedding"}), "outcome": outcome}
            for d, outcome in overview.dumps
        ],
    }


@app.get("/items")
def list_items(
    kind: Optional[ItemKind] = None,
    person_id: Optional[str] = None,
    x_user_id: Optional[str] = Header(None),
):
    items = item_service.list_active(_user(x_user_id), kind=kind, person_id=person_id)
    return [i.model_dump(mode="json") for i in items]


@app.get("/items/archive")
def list_archived_items(x_user_id: Optional[str] = Header(None)):
    return [i.model_dump(mode="json") for i in item_service.list_archived(_user(x_user_id))]


@app.post("/items", status_code=201)
def create_item(body: ItemInput, x_user_id: Optional[str] = Header(None)):
    return item_service.create(_user(x_user_id), body).model_dump(mode="json")


@app.post("/items/{item_id}/complete")
def complete_item(item_id: str, body: Optional[CompleteRequest] = None, x_user_id: Optional[str] = Header(None)):
    completed = body.completed if body else True
    return item_service.set_completed(_user(x_user_id), item_id, completed).model_dump(mode="json")


@app.post("/items/{item_id}/archive")
def archive_item(item_id: str, x_user_id: Optional[str] = Header(None)):
    return item_service.archive(_user(x_user_id), item_id).model_dump(mode="json")


@app.post("/items/{item_id}/unarchive")
def unarchive_item(item_id: str, x_user_id: Optional[str] = Header(None)):
    return item_service.unarchive(_user(x_user_id), item_id).model_dump(mode="json")


@app.get("/dashboard/today")
def get_dashboard(tz_offset: Optional[int] = None, x_user_id: Optional[str] = Header(None)):
    dashboard = dashboard_today(store, _user(x_user_id), tz_offset_minutes=tz_offset)
    return {
        "events": [e.model_dump(mode="json") for e in dashboard.events],
        "todos": [i.model_dump(mode="json") for i in dashboard.todos],
    }


@app.get("/summary")
def daily_summary(x_user_id: Optional[str] = Header(None)):
    """LLM-written briefing of the next 24h of events and the last 24h of dumps"""
    user_id = _user(x_user_id)
    return {"summary": generate_daily_summary(store, llm_client, user_id, timeout=config.llm.timeout)}


# =============================================================================
# CLI Entry Point
# =============================================================================

def run_server():
    """Run the Sift server"""
    import uvicorn

    cfg = load_config()
    print(f"[Sift] Starting server on {cfg.server.host}:{cfg.server.port}")
    uvicorn.run(
        "sift.ingest.server:app",
        host=cfg.server.host,
        port=cfg.server.port,
        reload=False,
    )


if __name__ == "__main__":
    run_server()
