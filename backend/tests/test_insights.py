from datetime import datetime, timedelta, timezone

from labsight.services.catalog import CATALOG
from labsight.services.extractor import ExtractedParameter
from labsight.services.insights import build_dashboard, build_trends
from labsight.services.store import ReportStore

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make(name, value, days_ago=0, status="normal", document_id=None):
    d = CATALOG[name]
    return ExtractedParameter(
        name=d.name,
        value=value,
        unit=d.unit,
        reference_range=d.reference_range,
        category=d.category,
        status=status,
        document_id=document_id,
        created_at=NOW - timedelta(days=days_ago),
    )


def test_build_trends_groups_by_name_newest_first():
    trends = build_trends(
        [
            make("glucose", 90, days_ago=20, document_id="r1"),
            make("tsh", 2.0, days_ago=5),
            make("glucose", 130, days_ago=1, status="high", document_id="r2"),
        ]
    )
    assert set(trends) == {"glucose", "tsh"}
    assert [t["value"] for t in trends["glucose"]] == [130, 90]
    assert trends["glucose"][0]["status"] == "high"
    assert trends["glucose"][0]["report_id"] == "r2"
    assert trends["glucose"][0]["unit"] == "mg/dl"
    assert trends["glucose"][0]["date"] == (NOW - timedelta(days=1)).isoformat()


def test_build_trends_empty():
    assert build_trends([]) == {}


def test_build_dashboard():
    store = ReportStore()
    reports = [
        store.create_report(user_id="u1", original_name=f"r{i}.pdf", mime_type="application/pdf")
        for i in range(7)
    ]
    store.create_report(user_id="u2", original_name="other.pdf", mime_type="application/pdf")
    store.add_parameters(
        reports[0].id,
        "u1",
        [make("glucose", 90, days_ago=3), make("tsh", 2.0, days_ago=3)],
    )
    store.add_parameters(
        reports[1].id,
        "u1",
        [make("glucose", 120, days_ago=1, status="high")] + [make("hemoglobin", 13 + i * 0.1, days_ago=2) for i in range(10)],
    )

    dash = build_dashboard(store, "u1")
    assert dash["total_reports"] == 7
    assert dash["total_parameters"] == 13
    assert len(dash["recent_reports"]) == 5
    assert len(dash["recent_parameters"]) == 10
    assert dash["recent_parameters"][0]["name"] == "glucose"
    assert dash["recent_parameters"][0]["value"] == 120

    stats = {s["name"]: s for s in dash["parameter_stats"]}
    assert dash["parameter_stats"][0]["name"] == "hemoglobin"
    assert stats["glucose"]["count"] == 2
    assert stats["glucose"]["latest_value"] == 120
    assert stats["glucose"]["latest_status"] == "high"
    assert stats["tsh"]["count"] == 1


def test_build_dashboard_for_new_user():
    dash = build_dashboard(ReportStore(), "nobody")
    assert dash == {
        "total_reports": 0,
        "total_parameters": 0,
        "recent_reports": [],
        "recent_parameters": [],
        "parameter_stats": [],
    }
