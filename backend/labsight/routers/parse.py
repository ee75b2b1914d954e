from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, File, HTTPException, Request, UploadFile, status

from labsight.config import settings
from labsight.models import ParseRequest, ParseResponse
from labsight.services.ocr import extract_text_from_image_bytes, extract_text_from_pdf_bytes
from labsight.services.pipeline import process_document

logger = logging.getLogger(__name__)

router = APIRouter()

IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg")


def classify_upload(f: UploadFile) -> str | None:
    """Return "pdf", "image" or "text" for a supported upload, else None."""
    ctype = (f.content_type or "application/octet-stream").lower()
    name = (f.filename or "").lower()
    if "pdf" in ctype or name.endswith(".pdf"):
        return "pdf"
    if (ctype.startswith("image/") and any(x in ctype for x in ["png", "jpeg", "jpg"])) or name.endswith(
        IMAGE_EXTENSIONS
    ):
        return "image"
    if ctype == "text/plain" or name.endswith(".txt"):
        return "text"
    return None


async def read_limited(f: UploadFile) -> bytes:
    data = await f.read()
    if len(data) > settings.max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=(
                f"{f.filename or 'file'} exceeds "
                f"{settings.max_upload_bytes // (1024*1024)}MB limit."
            ),
        )
    return data


async def _extract_upload(kind: str, data: bytes) -> str:
    if kind == "text":
        return data.decode("utf-8", errors="replace")
    if kind == "pdf":
        call = asyncio.to_thread(
            extract_text_from_pdf_bytes, data, settings.max_pdf_pages, settings.ocr_lang, settings.ocr_timeout_s
        )
    else:
        call = asyncio.to_thread(
            extract_text_from_image_bytes, data, settings.ocr_lang, settings.ocr_timeout_s
        )
    try:
        return await asyncio.wait_for(call, timeout=settings.ocr_timeout_s)
    except asyncio.TimeoutError:
        # A stuck extraction means no text, not a failed request
        logger.warning({"event": "extraction_timeout", "kind": kind})
        return ""


@router.post("/parse", response_model=ParseResponse)
async def parse_endpoint(
    request: Request,
    file: UploadFile | None = File(default=None),
    files: list[UploadFile] | None = File(default=None),
) -> ParseResponse:
    content_type = request.headers.get("content-type", "").lower()

    upload_list: list[UploadFile] = []
    if files:
        upload_list.extend([f for f in files if f is not None])
    if file is not None:
        upload_list.append(file)

    if upload_list:
        if len(upload_list) > settings.max_files:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"Too many files (max {settings.max_files}).",
            )

        parts_text: list[str] = []
        for f in upload_list:
            kind = classify_upload(f)
            if kind is None:
                raise HTTPException(
                    status_code=400,
                    detail=(
                        f"Unsupported file type for {f.filename or 'upload'}. "
                        "Use PDF, image (PNG/JPEG) or plain text."
                    ),
                )
            data = await read_limited(f)
            try:
                t = await _extract_upload(kind, data)
            except Exception as e:
                raise HTTPException(
                    status_code=400,
                    detail=f"Failed to read file {f.filename or ''}: {e}",
                )
            if t := (t or "").strip():
                parts_text.append(t)
        text_content = "\n".join(parts_text)
    else:
        if "application/json" not in content_type:
            raise HTTPException(
                status_code=400,
                detail='Send a PDF/image file or JSON {"text": "..."}.',
            )
        try:
            payload = await request.json()
        except Exception:
            raise HTTPException(status_code=400, detail="Invalid JSON body.")
        if not isinstance(payload, dict) or "text" not in payload:
            raise HTTPException(status_code=400, detail="Body must include 'text'.")
        text_content = ParseRequest.model_validate(payload).text

    result = process_document(text_content)
    return ParseResponse(
        parameters=[p.to_dict() for p in result.parameters],
        recommendations=result.recommendations,
        extracted_text=text_content,
    )
