import sys
from pathlib import Path

# Ensure the backend package is importable when tests are executed from the
# repository root or the tests directory.
sys.path.append(str(Path(__file__).resolve().parents[1] / "backend"))
from labsight.services.pipeline import process_document


def find(params, name):
    return next((p for p in params if p.name == name), None)


def test_glucose_above_normal_but_below_critical_is_high():
    result = process_document("Glucose: 250 mg/dl")
    glucose = find(result.parameters, "glucose")
    assert glucose is not None
    assert glucose.value == 250.0
    assert glucose.status == "high"


def test_tsh_beyond_critical_max_is_critical_high():
    tsh = find(process_document("TSH 60 miu/l").parameters, "tsh")
    assert tsh is not None
    assert tsh.status == "critical_high"


def test_empty_text_gives_no_parameters_and_low_risk():
    result = process_document("")
    assert result.parameters == []
    assert result.recommendations.summary.startswith("No health parameters were found")
    assert result.recommendations.overall_risk == "low"


def test_three_critical_parameters_give_high_risk():
    text = "Hemoglobin 6.0 g/dL\nCreatinine 12.0 mg/dL\nPlatelets 30,000 /cumm"
    result = process_document(text)
    assert sorted(p.name for p in result.parameters) == ["creatinine", "hemoglobin", "platelets"]
    assert all(p.status.startswith("critical") for p in result.parameters)
    assert result.recommendations.overall_risk == "high"


def test_malformed_report_degrades_gracefully():
    text = "Patient: ###\nGlucose: pending\nRemarks: sample haemolysed, repeat advised"
    result = process_document(text)
    assert result.parameters == []
    assert result.recommendations.total == 0
