from __future__ import annotations

from collections import defaultdict
from typing import Any, Iterable

from .extractor import ExtractedParameter
from .store import ReportStore

RECENT_REPORTS = 5
RECENT_PARAMETERS = 10


def build_trends(parameters: Iterable[ExtractedParameter]) -> dict[str, list[dict[str, Any]]]:
    """Group readings by parameter name, newest first within each name."""
    trends: dict[str, list[dict[str, Any]]] = defaultdict(list)
    for p in sorted(parameters, key=lambda p: p.created_at, reverse=True):
        trends[p.name].append(
            {
                "value": p.value,
                "unit": p.unit,
                "date": p.created_at.isoformat(),
                "report_id": p.document_id,
                "status": p.status,
            }
        )
    return dict(trends)


def _aggregates(parameters: list[ExtractedParameter]) -> list[dict[str, Any]]:
    latest: dict[str, ExtractedParameter] = {}
    counts: dict[str, int] = defaultdict(int)
    for p in parameters:
        counts[p.name] += 1
        current = latest.get(p.name)
        if current is None or p.created_at > current.created_at:
            latest[p.name] = p
    rows = [
        {
            "name": name,
            "count": counts[name],
            "latest_value": p.value,
            "latest_unit": p.unit,
            "latest_status": p.status,
            "latest_date": p.created_at.isoformat(),
        }
        for name, p in latest.items()
    ]
    rows.sort(key=lambda r: (-r["count"], r["name"]))
    return rows


def build_dashboard(store: ReportStore, user_id: str) -> dict[str, Any]:
    reports = store.list_reports(user_id)
    parameters = store.parameters_for_user(user_id)
    return {
        "total_reports": len(reports),
        "total_parameters": len(parameters),
        "recent_reports": [r.to_dict() for r in reports[:RECENT_REPORTS]],
        "recent_parameters": [p.to_dict() for p in parameters[:RECENT_PARAMETERS]],
        "parameter_stats": _aggregates(parameters),
    }
