from datetime import datetime, timedelta, timezone

import pytest

from labsight.services.catalog import CATALOG
from labsight.services.extractor import ExtractedParameter
from labsight.services.store import PersistenceError, ReportStore

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make(name, value, created_at=NOW):
    d = CATALOG[name]
    return ExtractedParameter(
        name=d.name,
        value=value,
        unit=d.unit,
        reference_range=d.reference_range,
        category=d.category,
        status="normal",
        created_at=created_at,
    )


def new_report(store, user="u1", mime="application/pdf"):
    return store.create_report(user_id=user, original_name="r.pdf", mime_type=mime, file_size=10)


def test_reports_are_scoped_to_their_owner():
    store = ReportStore()
    r = new_report(store)
    assert store.get_report(r.id, "u1") == r
    assert store.get_report(r.id, "u2") is None
    assert store.get_report("missing", "u1") is None
    assert store.list_reports("u2") == []
    assert [x.id for x in store.list_reports("u1")] == [r.id]


def test_file_type_counts_most_common_first():
    store = ReportStore()
    new_report(store, mime="image/png")
    new_report(store)
    new_report(store)
    new_report(store, user="u2", mime="text/plain")
    assert store.file_type_counts("u1") == [("application/pdf", 2), ("image/png", 1)]


def test_add_parameters_scopes_rows_to_report_and_user():
    store = ReportStore()
    r = new_report(store)
    rows = store.add_parameters(r.id, "u1", [make("glucose", 95), make("tsh", 2.0)])
    assert all(p.document_id == r.id and p.user_id == "u1" for p in rows)
    assert store.parameters_for_report(r.id, "u1") == rows
    assert store.parameters_for_report(r.id, "u2") == []


def test_replace_parameters_supersedes_previous_rows():
    store = ReportStore()
    r = new_report(store)
    store.add_parameters(r.id, "u1", [make("glucose", 95), make("tsh", 2.0)])
    rows = store.replace_parameters(r.id, "u1", [make("glucose", 101)])
    assert store.parameters_for_report(r.id, "u1") == rows
    assert [p.value for p in rows] == [101]


def test_delete_cascades_to_parameters():
    store = ReportStore()
    r = new_report(store)
    keep = new_report(store)
    store.add_parameters(r.id, "u1", [make("glucose", 95)])
    store.add_parameters(keep.id, "u1", [make("tsh", 2.0)])

    assert store.delete_report(r.id, "u2") is False
    assert store.delete_report(r.id, "u1") is True
    assert store.get_report(r.id, "u1") is None
    assert store.parameters_for_report(r.id, "u1") == []
    assert [p.name for p in store.parameters_for_user("u1")] == ["tsh"]
    assert store.delete_report(r.id, "u1") is False


def test_parameters_for_user_date_range_newest_first():
    store = ReportStore()
    r = new_report(store)
    old = make("glucose", 90, NOW - timedelta(days=40))
    mid = make("glucose", 95, NOW - timedelta(days=10))
    new = make("glucose", 99, NOW)
    store.add_parameters(r.id, "u1", [old, mid, new])

    assert [p.value for p in store.parameters_for_user("u1")] == [99, 95, 90]
    since = NOW - timedelta(days=30)
    assert [p.value for p in store.parameters_for_user("u1", since=since)] == [99, 95]
    until = NOW - timedelta(days=5)
    assert [p.value for p in store.parameters_for_user("u1", since=since, until=until)] == [95]


def test_update_report():
    store = ReportStore()
    r = new_report(store)
    updated = store.update_report(r.id, "u1", extracted=True, raw_text="glucose 95")
    assert updated.extracted and updated.raw_text == "glucose 95"
    assert store.get_report(r.id, "u1") == updated
    assert store.update_report(r.id, "u2", extracted=False) is None


def test_unknown_report_and_closed_store_are_hard_failures():
    store = ReportStore()
    with pytest.raises(PersistenceError):
        store.add_parameters("missing", "u1", [make("glucose", 95)])

    r = new_report(store)
    store.close()
    with pytest.raises(PersistenceError):
        store.list_reports("u1")
    with pytest.raises(PersistenceError):
        store.get_report(r.id, "u1")
    with pytest.raises(PersistenceError):
        new_report(store)


def test_report_to_dict_hides_text_by_default():
    store = ReportStore()
    r = store.create_report(user_id="u1", original_name="a.txt", mime_type="text/plain", raw_text="x")
    assert "raw_text" not in r.to_dict()
    assert r.to_dict(include_text=True)["raw_text"] == "x"
