"""Health check routes for the LabSight backend."""

from fastapi import APIRouter, Request

from labsight.config import settings
from labsight.services.ocr import ocr_available, pdf_available
from labsight.services.store import PersistenceError

SERVICE_NAME = "LabSight Backend"

router = APIRouter()


@router.get("/health")
async def health_check():
    """Basic health endpoint with service metadata."""
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": settings.app_version,
    }


@router.get("/health/live")
async def liveness_check():
    """Simple liveness probe."""
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(request: Request):
    """
    Readiness probe:
    - report store accepting calls
    - PDF extraction library available
    - OCR engine available (informational; images degrade to a diagnostic)
    """
    try:
        request.app.state.store.list_reports("")
        store_ok = True
    except PersistenceError:
        store_ok = False
    pdf_ok = pdf_available()
    ready = store_ok and pdf_ok
    return {
        "status": "ready" if ready else "not_ready",
        "service": SERVICE_NAME,
        "version": settings.app_version,
        "checks": {
            "store_open": store_ok,
            "pdf_available": pdf_ok,
            "ocr_available": ocr_available(),
        },
    }
