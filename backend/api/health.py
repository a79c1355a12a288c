"""GET /api/health — service status."""
from fastapi import APIRouter

from api.connections import list_connections
from config import settings

router = APIRouter()


@router.get("/health")
def health_check():
    return {
        "status": "ok",
        "version": "1.0.0",
        "resolve_views": settings.RESOLVE_VIEWS,
        "connections": len(list_connections()),
    }
