"""
Health check route (no auth, not rate limited)
"""
from fastapi import APIRouter

from backend.core.database.connection import check_connection

router = APIRouter(tags=["health"])

API_VERSION = "1.0.0"


@router.get("/health")
async def health_check():
    """Health check endpoint (no auth required)"""
    health = {
        "status": "healthy",
        "version": API_VERSION,
        "database": "connected",
    }

    if not check_connection():
        health["database"] = "disconnected"
        health["status"] = "degraded"  # Still running, but with issues

    return health
