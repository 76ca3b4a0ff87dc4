from __future__ import annotations

from fastapi import APIRouter, Depends

from content_review.core.config import Settings, get_settings
from content_review.services.store import init_db

router = APIRouter(tags=["health"])


@router.get("/health")
def health_root():
    return {"status": "ok"}


@router.get("/health/store")
def health_store(settings: Settings = Depends(get_settings)):
    # raises UpstreamUnavailableError (503) when the store cannot be opened
    init_db(settings.abs_sqlite_path(), timeout_s=settings.store_timeout_s)
    return {"status": "ok", "bfs_pass_threshold": settings.bfs_pass_threshold}
