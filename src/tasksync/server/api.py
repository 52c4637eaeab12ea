"""FastAPI reference server acting as the remote authoritative task store.

Routes
------
``POST /api/auth/session``                         anonymous session id
``GET /api/collections/{app_id}/tasks``            current snapshot
``POST /api/collections/{app_id}/tasks``           create (server assigns id, createdAt)
``PATCH /api/collections/{app_id}/tasks/{id}``     update
``DELETE /api/collections/{app_id}/tasks/{id}``    delete
``GET /api/collections/{app_id}/tasks/stream``     server-sent snapshot stream

The server type-checks fields but leaves the completion/progress coupling to
the clients; readers normalize defensively.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from fastapi import APIRouter, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from pydantic import BaseModel, Field
from sse_starlette.sse import EventSourceResponse

from ..config import is_valid_app_id
from ..constants import HEARTBEAT_INTERVAL, STATE_DIR_NAME
from ..identity import new_anonymous_id
from .hub import SnapshotHub, sse_events
from .repository import FileCollectionRepository


# ---------------------------------------------------------------------------
# Pydantic request / response models
# ---------------------------------------------------------------------------

class CreateTaskRequest(BaseModel):
    text: str
    completed: bool = False
    progress: int = 0
    createdAt: Optional[float] = None
    ownerId: Optional[str] = None


class UpdateTaskRequest(BaseModel):
    text: Optional[str] = None
    completed: Optional[bool] = None
    progress: Optional[int] = None


class TaskResponse(BaseModel):
    task: dict[str, Any]


class SnapshotResponse(BaseModel):
    seq: int
    tasks: list[dict[str, Any]] = Field(default_factory=list)


class SessionResponse(BaseModel):
    user_id: str


# ---------------------------------------------------------------------------
# Router factory
# ---------------------------------------------------------------------------

def _check_app_id(app_id: str) -> None:
    if not is_valid_app_id(app_id):
        raise HTTPException(status_code=400, detail=f"Invalid application id: {app_id!r}")


def create_collection_router(
    repo: FileCollectionRepository,
    hub: SnapshotHub,
    *,
    heartbeat: float = HEARTBEAT_INTERVAL,
) -> APIRouter:
    router = APIRouter(prefix="/api/collections", tags=["collections"])

    def _broadcast(app_id: str) -> None:
        hub.publish(app_id, repo.list(app_id))

    @router.get("/{app_id}/tasks", response_model=SnapshotResponse)
    async def get_snapshot(app_id: str) -> SnapshotResponse:
        _check_app_id(app_id)
        return SnapshotResponse(seq=hub.seq, tasks=repo.list(app_id))

    @router.post("/{app_id}/tasks", response_model=TaskResponse, status_code=201)
    async def create_task(app_id: str, body: CreateTaskRequest) -> TaskResponse:
        _check_app_id(app_id)
        task = repo.create(app_id, body.model_dump(exclude={"createdAt"}))
        logger.info("Created task {} in {}", task["id"], app_id)
        _broadcast(app_id)
        return TaskResponse(task=task)

    @router.get("/{app_id}/tasks/stream")
    async def stream(app_id: str) -> EventSourceResponse:
        _check_app_id(app_id)
        queue = hub.subscribe(app_id, repo.list(app_id))
        return EventSourceResponse(
            sse_events(hub, app_id, queue, heartbeat=heartbeat),
            headers={"X-Accel-Buffering": "no", "Cache-Control": "no-cache"},
        )

    @router.patch("/{app_id}/tasks/{task_id}", response_model=TaskResponse)
    async def update_task(app_id: str, task_id: str, body: UpdateTaskRequest) -> TaskResponse:
        _check_app_id(app_id)
        changes = body.model_dump(exclude_none=True)
        if not changes:
            raise HTTPException(status_code=400, detail="No fields to update")
        task = repo.update(app_id, task_id, changes)
        if task is None:
            raise HTTPException(status_code=404, detail=f"Task {task_id} not found")
        logger.info("Updated task {} in {}: {}", task_id, app_id, sorted(changes))
        _broadcast(app_id)
        return TaskResponse(task=task)

    @router.delete("/{app_id}/tasks/{task_id}")
    async def delete_task(app_id: str, task_id: str) -> dict[str, Any]:
        _check_app_id(app_id)
        if not repo.delete(app_id, task_id):
            raise HTTPException(status_code=404, detail=f"Task {task_id} not found")
        logger.info("Deleted task {} from {}", task_id, app_id)
        _broadcast(app_id)
        return {"deleted": True, "id": task_id}

    return router


def create_app(
    state_dir: Optional[Path] = None,
    enable_cors: bool = True,
    *,
    heartbeat: float = HEARTBEAT_INTERVAL,
) -> FastAPI:
    """Create and configure the reference store application.

    Args:
        state_dir: Directory for collection files (default ``./.tasksync``).
        enable_cors: Whether to enable CORS.
        heartbeat: Seconds between SSE keepalive comments.

    Returns:
        Configured FastAPI app.
    """
    app = FastAPI(
        title="tasksync reference store",
        description="Authoritative shared task list with a snapshot change stream",
        version="0.1.0",
    )

    if enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    repo = FileCollectionRepository(state_dir or Path.cwd() / STATE_DIR_NAME)
    hub = SnapshotHub()
    app.state.repo = repo
    app.state.hub = hub

    @app.get("/")
    async def root() -> dict[str, Any]:
        return {"name": "tasksync reference store", "version": "0.1.0", "status": "running"}

    @app.post("/api/auth/session", response_model=SessionResponse)
    async def create_session() -> SessionResponse:
        return SessionResponse(user_id=new_anonymous_id())

    app.include_router(create_collection_router(repo, hub, heartbeat=heartbeat))
    return app
