from __future__ import annotations

from fastapi import APIRouter

from ..settings import settings

router = APIRouter()


@router.get("/", tags=["health"])
def health():
    return {
        "message": "Therapy Clinic API",
        "version": "1.0.0",
        "status": "running",
        "port": settings.port,
        "environment": settings.normalized_environment,
        "mongodb": "configured" if settings.mongodb_uri else "missing",
        "endpoints": [
            "GET /api/products",
            "GET /api/categories",
            "GET /api/courses",
            "GET /api/webinars",
            "GET /api/workshops",
            "GET /api/toys",
            "POST /api/toys/borrowings",
            "GET /api/toy-dashboard/dashboard/stats",
        ],
    }
