"""API routes for targets and their health check history.

Endpoints:
  GET    /api/targets              — all targets [{id, url}]
  POST   /api/targets              — register a target
  DELETE /api/targets/{target_id}  — remove a target and its history
  GET    /api/status/{target_id}   — newest-first health checks
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request, Response
from pydantic import BaseModel

from healthmon.query import NotFound, QueryService
from healthmon.registry import TargetRegistry
from healthmon.store import StorageError

logger = logging.getLogger(__name__)

router = APIRouter()


# ── Request models ───────────────────────────────────────────────────────

class CreateTargetBody(BaseModel):
    url: str


# ── Helpers ──────────────────────────────────────────────────────────────

def _get_query(request: Request) -> QueryService:
    return request.app.state.query  # type: ignore[no-any-return]


def _get_registry(request: Request) -> TargetRegistry:
    return request.app.state.registry  # type: ignore[no-any-return]


# ── Endpoints ────────────────────────────────────────────────────────────

@router.get("/targets")
def list_targets(request: Request) -> list[dict[str, Any]]:
    try:
        targets = _get_query(request).list_targets()
    except StorageError as e:
        logger.error("Failed to fetch targets: %s", e)
        raise HTTPException(status_code=500, detail="DB error")
    return [t.to_dict() for t in targets]


@router.post("/targets", status_code=201)
def create_target(body: CreateTargetBody, request: Request) -> dict[str, Any]:
    try:
        target = _get_registry(request).register(body.url)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except StorageError as e:
        logger.error("Failed to register target: %s", e)
        raise HTTPException(status_code=500, detail="DB error")
    return target.to_dict()


@router.delete("/targets/{target_id}", status_code=204)
def delete_target(target_id: int, request: Request) -> Response:
    try:
        deleted = _get_registry(request).delete(target_id)
    except StorageError as e:
        logger.error("Failed to delete target %d: %s", target_id, e)
        raise HTTPException(status_code=500, detail="DB error")
    if not deleted:
        raise HTTPException(status_code=404, detail=f"Target not found: {target_id}")
    return Response(status_code=204)


@router.get("/status/{target_id}")
def get_status(
    target_id: int,
    request: Request,
    limit: int | None = Query(default=None, ge=1, le=500),
) -> list[dict[str, Any]]:
    """Health check records for a target, newest first."""
    try:
        outcomes = _get_query(request).status_for(target_id, limit)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StorageError as e:
        logger.error("Failed to fetch health check records: %s", e)
        raise HTTPException(status_code=500, detail="DB error")
    return [o.to_dict() for o in outcomes]
