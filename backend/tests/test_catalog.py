import pytest

from labsight.services.catalog import (
    ABBREVIATIONS,
    CATALOG,
    CATEGORIES,
    _build_catalog,
    _define,
    definitions,
    lookup,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Glucose", "glucose"),
        ("  HAEMOGLOBIN ", "hemoglobin"),
        ("Fasting Blood Sugar:", "glucose"),
        ("SGPT", "alt"),
        ("tg", "triglycerides"),
        ("FBS", "glucose"),
        ("tlc", "wbc"),
        ("glucoses", "glucose"),
        ("Free T4", "free t4"),
    ],
)
def test_lookup_resolves_names(raw, expected):
    d = lookup(raw)
    assert d is not None
    assert d.name == expected


@pytest.mark.parametrize("raw", ["", "   ", "xyz", "hd", "cholesterol level", "patient name"])
def test_lookup_not_found(raw):
    assert lookup(raw) is None


def test_exact_alias_wins_over_fuzzy():
    # "ldl" is an alias of ldl cholesterol; fuzzy would also accept hdl-ish strings
    assert lookup("ldl").name == "ldl cholesterol"
    assert lookup("hdl").name == "hdl cholesterol"


def test_every_definition_is_well_formed():
    for d in definitions():
        assert d.aliases, d.name
        assert d.name in d.aliases
        assert d.category in CATEGORIES
        assert d.unit
        assert d.plausible_max > 0
        # aliases are stored longest first
        assert list(d.aliases) == sorted(d.aliases, key=lambda a: (-len(a), a))


def test_critical_bounds_sit_outside_normal_range_and_inside_plausible_bound():
    for d in definitions():
        r = d.reference_range
        if r.critical_min is not None and r.min is not None:
            assert r.critical_min < r.min, d.name
        if r.critical_max is not None and r.max is not None:
            assert r.critical_max > r.max, d.name
        if r.critical_max is not None:
            assert r.critical_max < d.plausible_max, d.name


def test_count_parameters_have_wide_plausible_bound():
    assert CATALOG["wbc"].is_plausible(7500)
    assert CATALOG["platelets"].is_plausible(250000)
    assert not CATALOG["glucose"].is_plausible(5000)
    assert not CATALOG["glucose"].is_plausible(0)


def test_unit_factor():
    wbc = CATALOG["wbc"]
    assert wbc.unit_factor("x10^3/ul") == 1000.0
    assert wbc.unit_factor("/ul") == 1.0
    assert wbc.unit_factor(None) == 1.0
    assert wbc.unit_factor("furlongs") == 1.0
    assert CATALOG["glucose"].unit_factor("mmol/l") == 18.0


def test_abbreviations_point_at_real_definitions():
    for target in ABBREVIATIONS.values():
        assert target in CATALOG


def test_catalog_is_read_only():
    with pytest.raises(TypeError):
        CATALOG["glucose"] = CATALOG["hba1c"]  # type: ignore[index]


def test_build_catalog_rejects_unknown_category():
    bad = _define("mystery", unit="mg/dl", category="astrology", min=1, max=2)
    with pytest.raises(ValueError):
        _build_catalog([bad])


def test_build_catalog_rejects_duplicates():
    d = _define("glucose", unit="mg/dl", category="diabetes", min=70, max=100)
    with pytest.raises(ValueError):
        _build_catalog([d, d])


def test_describe_reference_range():
    assert CATALOG["glucose"].reference_range.describe() == "70 - 100"
    assert CATALOG["total cholesterol"].reference_range.describe() == "< 200"


@pytest.mark.parametrize("raw", ["total", "Serum", "free", "blood", "total serum"])
def test_lookup_ignores_bare_qualifiers(raw):
    assert lookup(raw) is None


def test_accepts_unit():
    assert CATALOG["t3"].accepts_unit("ng/dl")
    assert not CATALOG["t3"].accepts_unit("mg/dl")
