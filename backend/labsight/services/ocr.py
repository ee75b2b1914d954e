from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import fitz  # PyMuPDF
from PIL import Image

from ..config import settings

logger = logging.getLogger(__name__)

HEALTH_KEYWORDS: tuple[str, ...] = (
    "glucose", "cholesterol", "hemoglobin", "blood", "urine", "test", "result",
    "normal", "abnormal", "mg/dl", "mmol/l", "g/dl", "lab", "laboratory",
    "patient", "doctor", "hospital", "clinic", "medical", "report", "serum",
    "plasma", "analysis", "reference", "range", "high", "low", "within", "limits",
)

IMAGE_BASED_PDF = "This PDF appears to be image-based or contains no extractable text."
NO_IMAGE_TEXT = "No text could be detected in this image."


@dataclass(frozen=True)
class ExtractedText:
    """Best-effort text for a document, or an explanation of why there is none."""

    text: str = ""
    diagnostic: str | None = None

    @property
    def raw(self) -> str:
        # What gets stored on the report: the text itself, else the diagnostic
        return self.text if self.text.strip() else (self.diagnostic or "")


@dataclass(frozen=True)
class HealthContent:
    is_health_related: bool
    confidence: float
    found_keywords: list[str] = field(default_factory=list)
    text_length: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_health_related": self.is_health_related,
            "confidence": self.confidence,
            "found_keywords": list(self.found_keywords),
            "text_length": self.text_length,
        }


def ocr_available() -> bool:
    if not settings.enable_ocr:
        return False
    # pytesseract import is lazy to allow running without OCR installed
    try:
        import pytesseract  # type: ignore
        return bool(pytesseract.get_tesseract_version())
    except Exception:
        return False


def pdf_available() -> bool:
    return hasattr(fitz, "open")


def _do_ocr_image(img: Image.Image, lang: Optional[str] = None, timeout_s: float = 0) -> str:
    import pytesseract  # type: ignore

    kwargs: dict[str, Any] = {}
    if lang:
        kwargs["lang"] = lang
    if timeout_s:
        # pytesseract kills the tesseract process and raises RuntimeError
        kwargs["timeout"] = timeout_s
    text = pytesseract.image_to_string(img, config=settings.tesseract_config or "", **kwargs)
    return text or ""


def extract_text_from_image_bytes(
    data: bytes,
    lang: Optional[str] = None,
    timeout_s: float = 0,
) -> str:
    if not ocr_available():
        return ""
    try:
        img = Image.open(io.BytesIO(data))
    except Exception:
        logger.info({"event": "image_unreadable"})
        return ""
    try:
        return _do_ocr_image(img, lang=lang, timeout_s=timeout_s)
    except Exception as e:
        # Tesseract timeouts surface as RuntimeError
        logger.warning({"event": "image_ocr_failed", "error": type(e).__name__})
        return ""


def _alpha_num_ratio(s: str) -> float:
    letters = sum(1 for ch in s if ch.isalpha())
    digits = sum(1 for ch in s if ch.isdigit())
    if digits == 0:
        # If there are no digits, treat as sufficiently alphabetic
        return float("inf") if letters > 0 else 0.0
    return letters / digits


def _ocr_page(page: "fitz.Page", lang: Optional[str], timeout_s: float) -> str:
    pix = page.get_pixmap(dpi=200)
    img = Image.open(io.BytesIO(pix.tobytes("png")))
    return (_do_ocr_image(img, lang=lang, timeout_s=timeout_s) or "").strip()


def extract_text_from_pdf_bytes(
    data: bytes,
    max_pages: int | None = None,
    ocr_lang: Optional[str] = None,
    timeout_s: float = 0,
) -> str:
    """
    Extract text from a PDF.

    Strategy:
    - Prefer text layer for each page when it has sufficient alphabetic content.
    - If a page's text layer looks number-heavy (alphabetic-to-numeric char ratio < 0.4),
      and OCR is enabled/available, run OCR for that page and prefer the OCR text.
    - If a page has no text layer at all, fall back to OCR for that page (when enabled).
    """
    max_pages = settings.max_pdf_pages if max_pages is None else max_pages
    text_parts: list[str] = []
    try:
        with fitz.open(stream=io.BytesIO(data), filetype="pdf") as doc:
            use_ocr = ocr_available()
            for i, page in enumerate(doc):
                if i >= max_pages:
                    break
                t = (page.get_text("text") or "").strip()
                if not t:
                    if use_ocr:
                        try:
                            text_parts.append(_ocr_page(page, ocr_lang, timeout_s))
                        except Exception:
                            logger.info({"event": "page_ocr_failed", "page": i + 1})
                    continue

                if use_ocr and _alpha_num_ratio(t) < 0.4:
                    try:
                        t_ocr = _ocr_page(page, ocr_lang, timeout_s)
                        if t_ocr:
                            text_parts.append(t_ocr)
                            continue
                    except Exception:
                        # If OCR fails for this page, fall back to text layer
                        logger.info({"event": "page_ocr_failed", "page": i + 1})

                text_parts.append(t)
            return "\n".join(p for p in text_parts if p)
    except Exception as e:
        logger.warning({"event": "pdf_extraction_failed", "error": type(e).__name__})
        return ""


def extract_text_from_file(
    path: str | Path,
    mime_type: str | None,
    *,
    timeout_s: float | None = None,
) -> ExtractedText:
    """Read a stored upload and return its text.

    Never raises: missing files, unsupported types, engine failures and OCR
    timeouts come back as empty text with a diagnostic message.
    """
    timeout_s = settings.ocr_timeout_s if timeout_s is None else timeout_s
    mime = (mime_type or "application/octet-stream").lower()
    try:
        p = Path(path)
        if not p.is_file():
            raise FileNotFoundError(f"File not found: {p.name}")
        data = p.read_bytes()
        logger.info({"event": "text_extraction_started", "mime_type": mime, "size": len(data)})

        if mime == "application/pdf":
            text = extract_text_from_pdf_bytes(data, ocr_lang=settings.ocr_lang, timeout_s=timeout_s)
            if len(text.strip()) > 5:
                return ExtractedText(text=text)
            return ExtractedText(diagnostic=IMAGE_BASED_PDF)
        if mime.startswith("image/"):
            text = extract_text_from_image_bytes(data, lang=settings.ocr_lang, timeout_s=timeout_s)
            if text.strip():
                return ExtractedText(text=text)
            return ExtractedText(diagnostic=NO_IMAGE_TEXT)
        if mime == "text/plain":
            return ExtractedText(text=data.decode("utf-8", errors="replace"))
        return ExtractedText(diagnostic=f"File type {mime} does not support text extraction.")
    except Exception as e:
        logger.warning({"event": "text_extraction_failed", "mime_type": mime, "error": type(e).__name__})
        return ExtractedText(diagnostic=f"Text extraction failed: {e}")


def detect_health_content(text: str | None) -> HealthContent:
    """Keyword heuristic for whether a text looks like a lab report."""
    if not text:
        return HealthContent(is_health_related=False, confidence=0.0)
    lowered = text.lower()
    found = [k for k in HEALTH_KEYWORDS if k in lowered]
    return HealthContent(
        is_health_related=len(found) >= 2,
        confidence=min(100.0, len(found) / len(HEALTH_KEYWORDS) * 100),
        found_keywords=found,
        text_length=len(text),
    )
