import pytest

from labsight.services.catalog import CATALOG
from labsight.services.extractor import DEFAULT_STRATEGIES, ExtractedParameter, extract
from labsight.services.normalizer import normalize


def by_name(params):
    return {p.name: p for p in params}


def test_direct_match_with_unit():
    params = extract(normalize("Glucose: 250 mg/dL"), document_id="d1", user_id="u1")
    assert len(params) == 1
    p = params[0]
    assert p.name == "glucose"
    assert p.value == 250.0
    assert p.unit == "mg/dl"
    assert p.category == "diabetes"
    assert p.status == "unknown"
    assert p.strategy == "direct"
    assert p.document_id == "d1" and p.user_id == "u1"
    assert p.extracted_from == "glucose: 250 mg/dl"
    assert p.reference_range == CATALOG["glucose"].reference_range


def test_short_text_yields_nothing():
    assert extract("") == []
    assert extract("hb 5") == []
    assert extract("tsh 60 miu/l", min_chars=20) == []


def test_single_short_row_still_parses():
    params = extract(normalize("TSH 60 mIU/L"))
    assert [(p.name, p.value) for p in params] == [("tsh", 60.0)]


def test_at_most_one_candidate_per_definition():
    text = normalize("Hb 13.0 g/dL. Later on: Hemoglobin 14.0 g/dL")
    params = [p for p in extract(text) if p.name == "hemoglobin"]
    assert len(params) == 1
    assert params[0].value == 13.0


def test_full_report():
    text = normalize(
        "\n".join(
            [
                "LAB REPORT",
                "Hemoglobin 13.5 g/dL (12.0 - 16.0)",
                "Fasting Blood Sugar: 250 mg/dL",
                "HDL Cholesterol 35 mg/dL",
                "Total Cholesterol 180 mg/dL",
                "TSH 2.1 mIU/L",
            ]
        )
    )
    params = by_name(extract(text))
    assert set(params) == {"hemoglobin", "glucose", "hdl cholesterol", "total cholesterol", "tsh"}
    assert params["glucose"].value == 250.0
    assert params["hdl cholesterol"].value == 35.0
    # "cholesterol" inside "hdl cholesterol" must not be read as total cholesterol
    assert params["total cholesterol"].value == 180.0
    assert params["hemoglobin"].value == 13.5
    assert params["tsh"].value == 2.1


def test_longer_alias_of_another_parameter_is_skipped():
    params = by_name(extract(normalize("Free T3 3.1 pg/mL")))
    assert set(params) == {"free t3"}
    assert params["free t3"].value == 3.1


def test_lookahead_window_is_bounded_then_proximity_applies():
    text = normalize("Glucose result pending confirmation by lab 95 mg/dL")
    params = by_name(extract(text))
    assert params["glucose"].value == 95.0
    assert params["glucose"].strategy == "proximity"


def test_proximity_rejects_implausible_number():
    text = normalize("Glucose level noted as follows in the attached sheet 5000")
    assert "glucose" not in by_name(extract(text))


def test_proximity_window_is_bounded():
    filler = " see the attached comments section for further details" * 3
    text = normalize("Glucose" + filler + " 95")
    assert "glucose" not in by_name(extract(text))


@pytest.mark.parametrize(
    "raw, name, value",
    [
        ("WBC 7.5 x10^3/uL", "wbc", 7500.0),
        ("WBC 5.4 x10^9/L", "wbc", 5400.0),
        ("Platelet Count 250,000 /cumm", "platelets", 250000.0),
        ("Platelets 1.5 lakh/cumm", "platelets", 150000.0),
        ("Glucose 5.5 mmol/L", "glucose", 99.0),
        ("Hemoglobin 135 g/L", "hemoglobin", 13.5),
    ],
)
def test_units_are_scaled_to_canonical(raw, name, value):
    params = by_name(extract(normalize(raw)))
    assert params[name].value == value
    assert params[name].unit == CATALOG[name].unit


def test_number_glued_to_name_is_not_a_value():
    params = by_name(extract(normalize("Vitamin B12 600 pg/mL")))
    assert params["vitamin b12"].value == 600.0


def test_fragment_strategy_resolves_abbreviations_and_near_names():
    params = by_name(extract(normalize("FBS 110 mg/dL")))
    assert params["glucose"].value == 110.0
    assert params["glucose"].strategy == "fragment"

    params = by_name(extract(normalize("Glucoses 95 mg/dL")))
    assert params["glucose"].strategy == "fragment"


def test_unrecognized_fragment_is_discarded():
    assert extract(normalize("Xyzzy 42 mg/dL and some more words")) == []


def test_custom_catalog_and_strategies():
    only_tsh = {"tsh": CATALOG["tsh"]}
    text = normalize("Glucose 95 mg/dL TSH 2.0 mIU/L")
    assert [p.name for p in extract(text, catalog=only_tsh)] == ["tsh"]

    direct_only = DEFAULT_STRATEGIES[:1]
    assert extract(normalize("FBS 110 mg/dL"), strategies=direct_only) == []


def test_to_dict():
    p = extract(normalize("Glucose: 250 mg/dL"))[0]
    d = p.to_dict()
    assert d["name"] == "glucose"
    assert d["reference_range"]["critical_max"] == 400
    assert d["reference_range_text"] == "70 - 100"
    assert isinstance(d["created_at"], str)


def test_extracted_parameter_is_immutable():
    p = extract(normalize("Glucose: 250 mg/dL"))[0]
    assert isinstance(p, ExtractedParameter)
    with pytest.raises(Exception):
        p.value = 1.0  # type: ignore[misc]


def test_qualified_row_yields_only_the_named_parameter():
    params = extract(normalize("Calcium, Total 9.5 mg/dL"))
    assert [(p.name, p.value) for p in params] == [("calcium", 9.5)]


def test_row_for_unknown_test_with_qualifier_yields_nothing():
    assert extract(normalize("Protein, Total 7.0 g/dL")) == []


def test_fragment_with_foreign_unit_is_rejected():
    # "glucoses" resolves to glucose, but U/L is not a glucose unit
    assert extract(normalize("Glucoses 95 U/L")) == []


def test_value_is_not_taken_from_the_next_row():
    params = by_name(extract(normalize("Hemoglobin: not done. Potassium 4.1 mmol/L")))
    assert "hemoglobin" not in params
    assert params["potassium"].value == 4.1


def test_spaced_unit_is_scaled():
    params = by_name(extract(normalize("Glucose 5.5 mmol / L")))
    assert params["glucose"].value == 99.0
