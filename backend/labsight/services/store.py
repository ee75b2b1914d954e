"""
In-memory report store.

Holds lab report records and the parameters extracted from them, scoped by
user. Deleting a report deletes its parameters. All public methods take a
single lock, so one store can be shared across request threads.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections import Counter
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Iterable

from .extractor import ExtractedParameter

logger = logging.getLogger(__name__)


class PersistenceError(RuntimeError):
    """The store cannot serve requests."""


@dataclass(frozen=True)
class LabReport:
    id: str
    user_id: str
    original_name: str
    mime_type: str
    file_size: int = 0
    uploaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    extracted: bool = False
    raw_text: str = ""
    health_content: dict[str, Any] | None = None

    def to_dict(self, *, include_text: bool = False) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "user_id": self.user_id,
            "original_name": self.original_name,
            "mime_type": self.mime_type,
            "file_size": self.file_size,
            "uploaded_at": self.uploaded_at.isoformat(),
            "extracted": self.extracted,
        }
        if include_text:
            d["raw_text"] = self.raw_text
        return d


class ReportStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._reports: dict[str, LabReport] = {}
        # report id -> parameters in insertion order
        self._parameters: dict[str, list[ExtractedParameter]] = {}
        self._closed = False

    def _check_open(self) -> None:
        if self._closed:
            raise PersistenceError("report store is closed")

    def close(self) -> None:
        with self._lock:
            self._closed = True
        logger.info({"event": "store_closed"})

    # Reports

    def create_report(
        self,
        *,
        user_id: str,
        original_name: str,
        mime_type: str,
        file_size: int = 0,
        extracted: bool = False,
        raw_text: str = "",
        health_content: dict[str, Any] | None = None,
    ) -> LabReport:
        report = LabReport(
            id=uuid.uuid4().hex,
            user_id=user_id,
            original_name=original_name,
            mime_type=mime_type,
            file_size=file_size,
            extracted=extracted,
            raw_text=raw_text,
            health_content=health_content,
        )
        with self._lock:
            self._check_open()
            self._reports[report.id] = report
            self._parameters[report.id] = []
        return report

    def get_report(self, report_id: str, user_id: str) -> LabReport | None:
        with self._lock:
            self._check_open()
            report = self._reports.get(report_id)
        if report is None or report.user_id != user_id:
            return None
        return report

    def list_reports(self, user_id: str) -> list[LabReport]:
        with self._lock:
            self._check_open()
            reports = [r for r in self._reports.values() if r.user_id == user_id]
        return sorted(reports, key=lambda r: r.uploaded_at, reverse=True)

    def file_type_counts(self, user_id: str) -> list[tuple[str, int]]:
        counts = Counter(r.mime_type for r in self.list_reports(user_id))
        return counts.most_common()

    def update_report(self, report_id: str, user_id: str, **changes: Any) -> LabReport | None:
        with self._lock:
            self._check_open()
            report = self._reports.get(report_id)
            if report is None or report.user_id != user_id:
                return None
            updated = replace(report, **changes)
            self._reports[report_id] = updated
        return updated

    def delete_report(self, report_id: str, user_id: str) -> bool:
        with self._lock:
            self._check_open()
            report = self._reports.get(report_id)
            if report is None or report.user_id != user_id:
                return False
            del self._reports[report_id]
            removed = self._parameters.pop(report_id, [])
        logger.info({"event": "report_deleted", "report_id": report_id, "parameters": len(removed)})
        return True

    # Parameters

    def _scoped(
        self, report_id: str, user_id: str, parameters: Iterable[ExtractedParameter]
    ) -> list[ExtractedParameter]:
        return [replace(p, document_id=report_id, user_id=user_id) for p in parameters]

    def add_parameters(
        self, report_id: str, user_id: str, parameters: Iterable[ExtractedParameter]
    ) -> list[ExtractedParameter]:
        rows = self._scoped(report_id, user_id, parameters)
        with self._lock:
            self._check_open()
            if report_id not in self._reports:
                raise PersistenceError(f"unknown report {report_id}")
            self._parameters[report_id].extend(rows)
        return rows

    def replace_parameters(
        self, report_id: str, user_id: str, parameters: Iterable[ExtractedParameter]
    ) -> list[ExtractedParameter]:
        rows = self._scoped(report_id, user_id, parameters)
        with self._lock:
            self._check_open()
            if report_id not in self._reports:
                raise PersistenceError(f"unknown report {report_id}")
            self._parameters[report_id] = rows
        return rows

    def parameters_for_report(self, report_id: str, user_id: str) -> list[ExtractedParameter]:
        with self._lock:
            self._check_open()
            rows = list(self._parameters.get(report_id, []))
        return [p for p in rows if p.user_id == user_id]

    def parameters_for_user(
        self,
        user_id: str,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> list[ExtractedParameter]:
        with self._lock:
            self._check_open()
            rows = [p for ps in self._parameters.values() for p in ps if p.user_id == user_id]
        if since is not None:
            rows = [p for p in rows if p.created_at >= since]
        if until is not None:
            rows = [p for p in rows if p.created_at <= until]
        return sorted(rows, key=lambda p: p.created_at, reverse=True)
