"""
Report upload and management routes.
"""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from pathlib import Path

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from labsight.deps import get_store, get_user_id
from labsight.models import (
    FileTypeCount,
    ReportListResponse,
    ReportTextResponse,
    UploadResponse,
)
from labsight.routers.parse import classify_upload, read_limited
from labsight.services.pipeline import ingest_report, retry_extraction
from labsight.services.recommendations import RecommendationBundle, generate
from labsight.services.store import LabReport, ReportStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/reports", tags=["reports"])

MIME_BY_KIND = {"pdf": "application/pdf", "text": "text/plain"}


def _owned_report(store: ReportStore, report_id: str, user_id: str) -> LabReport:
    report = store.get_report(report_id, user_id)
    if report is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Report not found")
    return report


@router.post("/upload", response_model=UploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_report(
    file: UploadFile = File(...),
    user_id: str = Depends(get_user_id),
    store: ReportStore = Depends(get_store),
):
    """
    Store a lab report (PDF, PNG/JPEG or plain text), extract its text and
    parameters. A file with no readable text is still stored, with the
    reason in place of its text.
    """
    kind = classify_upload(file)
    if kind is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only PDF, image (PNG/JPEG) and text files are supported",
        )
    content = await read_limited(file)
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded file is empty")

    suffix = Path(file.filename or "").suffix
    mime_type = MIME_BY_KIND.get(kind) or (file.content_type or "").lower()
    if kind == "image" and not mime_type.startswith("image/"):
        mime_type = "image/png" if suffix.lower() == ".png" else "image/jpeg"
    logger.info({"event": "report_upload", "mime_type": mime_type, "size": len(content)})

    fd, tmp_path = tempfile.mkstemp(suffix=suffix)
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(content)
        result = await asyncio.to_thread(
            ingest_report,
            store,
            user_id=user_id,
            file_path=tmp_path,
            mime_type=mime_type,
            original_name=file.filename or "upload",
            file_size=len(content),
        )
    finally:
        os.unlink(tmp_path)
    return result.to_dict()


@router.get("", response_model=ReportListResponse)
async def list_reports(
    user_id: str = Depends(get_user_id),
    store: ReportStore = Depends(get_store),
):
    reports = store.list_reports(user_id)
    return {"reports": [r.to_dict() for r in reports], "count": len(reports)}


@router.get("/types", response_model=list[FileTypeCount])
async def report_types(
    user_id: str = Depends(get_user_id),
    store: ReportStore = Depends(get_store),
):
    return [{"mime_type": m, "count": n} for m, n in store.file_type_counts(user_id)]


@router.get("/{report_id}/text", response_model=ReportTextResponse)
async def report_text(
    report_id: str,
    user_id: str = Depends(get_user_id),
    store: ReportStore = Depends(get_store),
):
    report = _owned_report(store, report_id, user_id)
    return {"report_id": report.id, "extracted": report.extracted, "raw_text": report.raw_text}


@router.post("/{report_id}/retry-extraction", response_model=UploadResponse)
async def retry_report_extraction(
    report_id: str,
    user_id: str = Depends(get_user_id),
    store: ReportStore = Depends(get_store),
):
    result = await asyncio.to_thread(retry_extraction, store, report_id, user_id)
    if result is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Report not found")
    return result.to_dict()


@router.delete("/{report_id}")
async def delete_report(
    report_id: str,
    user_id: str = Depends(get_user_id),
    store: ReportStore = Depends(get_store),
):
    if not store.delete_report(report_id, user_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Report not found")
    return {"status": "success", "report_id": report_id}


@router.get("/{report_id}/parameters")
async def report_parameters(
    report_id: str,
    user_id: str = Depends(get_user_id),
    store: ReportStore = Depends(get_store),
):
    _owned_report(store, report_id, user_id)
    parameters = store.parameters_for_report(report_id, user_id)
    return {
        "report_id": report_id,
        "parameters": [p.to_dict() for p in parameters],
        "count": len(parameters),
    }


@router.get("/{report_id}/recommendations", response_model=RecommendationBundle)
async def report_recommendations(
    report_id: str,
    user_id: str = Depends(get_user_id),
    store: ReportStore = Depends(get_store),
):
    _owned_report(store, report_id, user_id)
    return generate(store.parameters_for_report(report_id, user_id))
