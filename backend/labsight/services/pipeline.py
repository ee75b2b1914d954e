from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..config import settings
from .classifier import classify_parameters
from .extractor import ExtractedParameter, extract
from .normalizer import normalize
from .ocr import HealthContent, detect_health_content, extract_text_from_file
from .recommendations import RecommendationBundle, generate
from .store import LabReport, ReportStore
from .validator import validate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentResult:
    parameters: list[ExtractedParameter]
    recommendations: RecommendationBundle


@dataclass(frozen=True)
class IngestResult:
    report: LabReport
    parameters: list[ExtractedParameter]
    recommendations: RecommendationBundle
    health_content: HealthContent
    text_preview: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "report": self.report.to_dict(),
            "parameters": [p.to_dict() for p in self.parameters],
            "recommendations": self.recommendations.model_dump(),
            "health_content": self.health_content.to_dict(),
            "text_preview": self.text_preview,
        }


def process_document(
    text: str,
    *,
    document_id: str | None = None,
    user_id: str | None = None,
) -> DocumentResult:
    """normalize -> extract -> validate -> classify -> recommend.

    Pure; a document with nothing recognisable gives an empty parameter list
    and the "no parameters found" recommendations.
    """
    normalized = normalize(text or "")
    candidates = extract(normalized, document_id=document_id, user_id=user_id)
    parameters = classify_parameters(validate(candidates))
    logger.info(
        {
            "event": "document_processed",
            "document_id": document_id,
            "candidates": len(candidates),
            "parameters": len(parameters),
        }
    )
    return DocumentResult(parameters=parameters, recommendations=generate(parameters))


def _is_extracted(text: str) -> bool:
    return len(text.strip()) > settings.min_extracted_chars


def _preview(report: LabReport) -> str:
    if report.extracted:
        return report.raw_text[: settings.text_preview_chars]
    return report.raw_text


def ingest_report(
    store: ReportStore,
    *,
    user_id: str,
    file_path: str | Path,
    mime_type: str,
    original_name: str,
    file_size: int = 0,
    timeout_s: float | None = None,
) -> IngestResult:
    """Extract text from an uploaded file, record the report and its parameters."""
    extracted = extract_text_from_file(file_path, mime_type, timeout_s=timeout_s)
    raw_text = extracted.raw
    health = detect_health_content(extracted.text)
    ok = _is_extracted(extracted.text)

    report = store.create_report(
        user_id=user_id,
        original_name=original_name,
        mime_type=mime_type,
        file_size=file_size,
        extracted=ok,
        raw_text=raw_text,
        health_content=health.to_dict(),
    )
    if ok:
        result = process_document(extracted.text, document_id=report.id, user_id=user_id)
        parameters = store.add_parameters(report.id, user_id, result.parameters)
        recommendations = result.recommendations
    else:
        logger.info({"event": "insufficient_text", "report_id": report.id, "diagnostic": extracted.diagnostic})
        parameters = []
        recommendations = generate([])

    return IngestResult(
        report=report,
        parameters=parameters,
        recommendations=recommendations,
        health_content=health,
        text_preview=_preview(report),
    )


def retry_extraction(store: ReportStore, report_id: str, user_id: str) -> IngestResult | None:
    """Re-run the whole document over its stored text.

    Returns None when the report does not exist for this user. The report's
    previous parameters are replaced, not merged.
    """
    report = store.get_report(report_id, user_id)
    if report is None:
        return None

    # Reports that never yielded usable text only hold a diagnostic
    text = report.raw_text if report.extracted else ""
    health = detect_health_content(text)
    result = process_document(text, document_id=report.id, user_id=user_id)
    parameters = store.replace_parameters(report.id, user_id, result.parameters)
    report = store.update_report(report.id, user_id, health_content=health.to_dict()) or report
    logger.info({"event": "extraction_retried", "report_id": report.id, "parameters": len(parameters)})

    return IngestResult(
        report=report,
        parameters=parameters,
        recommendations=result.recommendations,
        health_content=health,
        text_preview=_preview(report),
    )
