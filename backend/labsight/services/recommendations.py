"""
Rule-based recommendations for a set of classified parameters.

Parameters are bucketed into critical / attention / normal, each bucket
entry carries a table-driven advisory message, categories present in the
report contribute lifestyle tips, and the bucket sizes decide an overall
risk tier.
"""

from __future__ import annotations

import logging
from typing import Sequence

from pydantic import BaseModel, Field

from .catalog import lookup
from .extractor import ExtractedParameter

logger = logging.getLogger(__name__)

RISK_TIERS: tuple[str, ...] = ("low", "low-moderate", "moderate", "high")

NO_PARAMETERS_SUMMARY = (
    "No health parameters were found in this report. Please ensure the document "
    "contains lab test results with numerical values."
)


class ParameterAdvice(BaseModel):
    parameter: str
    value: float
    unit: str
    status: str
    message: str
    urgency: str | None = None
    category: str


class CategoryTips(BaseModel):
    category: str
    tips: list[str]


class RecommendationBundle(BaseModel):
    critical: list[ParameterAdvice] = Field(default_factory=list)
    attention: list[ParameterAdvice] = Field(default_factory=list)
    normal: list[ParameterAdvice] = Field(default_factory=list)
    tips: list[CategoryTips] = Field(default_factory=list)
    summary: str = NO_PARAMETERS_SUMMARY
    overall_risk: str = "low"
    risk_score: int = 0
    total: int = 0


CRITICAL_MESSAGES: dict[str, str] = {
    "glucose": "Extremely abnormal glucose levels require immediate medical attention. Contact your doctor urgently.",
    "total cholesterol": "Very high cholesterol levels increase cardiovascular risk significantly. Immediate medical consultation needed.",
    "hemoglobin": "Severe anemia or polycythemia detected. Immediate medical evaluation required.",
    "creatinine": "Kidney function severely impaired. Urgent nephrology consultation required.",
    "alt": "Severe liver enzyme elevation detected. Immediate medical evaluation needed.",
    "ast": "Severe liver enzyme elevation detected. Immediate medical evaluation needed.",
    "bilirubin": "Severe liver dysfunction indicated. Immediate medical attention required.",
    "wbc": "Abnormal white blood cell count may indicate serious infection or blood disorder.",
    "platelets": "Dangerous platelet levels detected. Risk of bleeding or clotting issues.",
    "potassium": "Dangerous potassium levels can affect heart rhythm. Seek emergency care.",
    "sodium": "Severely abnormal sodium levels can cause confusion or seizures. Seek emergency care.",
}

HIGH_MESSAGES: dict[str, str] = {
    "glucose": "Elevated glucose suggests diabetes risk. Monitor diet, exercise regularly, and follow up with healthcare provider.",
    "hba1c": "Elevated HbA1c reflects high average blood sugar over recent months. Discuss diabetes screening with your doctor.",
    "total cholesterol": "High cholesterol increases heart disease risk. Consider dietary changes and regular exercise.",
    "ldl cholesterol": "High LDL cholesterol contributes to artery plaque. Limit saturated fats and discuss treatment options.",
    "triglycerides": "High triglycerides increase cardiovascular risk. Reduce refined carbs and alcohol intake.",
    "alt": "Elevated liver enzymes may indicate liver stress. Consider lifestyle modifications and follow-up testing.",
    "ast": "Elevated liver enzymes may indicate liver stress. Consider lifestyle modifications and follow-up testing.",
    "creatinine": "Elevated creatinine suggests kidney function decline. Monitor hydration and avoid nephrotoxic substances.",
    "bilirubin": "Elevated bilirubin may indicate liver or blood issues. Follow up with healthcare provider.",
    "tsh": "Elevated TSH may point to an underactive thyroid. Follow up with thyroid function testing.",
}

LOW_MESSAGES: dict[str, str] = {
    "hemoglobin": "Low hemoglobin suggests anemia. Consider iron-rich foods, supplements, and identify underlying cause.",
    "hdl cholesterol": "Low HDL cholesterol reduces cardiovascular protection. Increase exercise and consume healthy fats.",
    "platelets": "Low platelet count may increase bleeding risk. Avoid activities with injury risk and seek medical advice.",
    "tsh": "Low TSH may indicate an overactive thyroid. Discuss further thyroid testing with your doctor.",
    "vitamin d": "Low vitamin D is common and affects bone health. Safe sun exposure and supplements may help.",
}

CATEGORY_TIPS: dict[str, list[str]] = {
    "diabetes": [
        "Monitor blood sugar levels regularly as advised by your doctor",
        "Follow a balanced diet with controlled carbohydrate intake",
        "Exercise regularly to improve insulin sensitivity",
        "Take medications as prescribed and at the same time daily",
        "Stay hydrated and maintain a healthy weight",
    ],
    "lipid": [
        "Adopt a heart-healthy diet low in saturated and trans fats",
        "Increase physical activity to at least 150 minutes per week",
        "Maintain a healthy weight and waist circumference",
        "Consider omega-3 rich foods like fish and nuts",
        "Limit processed foods and added sugars",
    ],
    "blood": [
        "Ensure adequate iron intake through diet or supplements if recommended",
        "Stay well hydrated throughout the day",
        "Get regular blood work monitoring as advised",
        "Report unusual fatigue, weakness, or unexplained bleeding",
        "Avoid unnecessary medications that may affect blood counts",
    ],
    "liver": [
        "Limit or avoid alcohol consumption",
        "Avoid unnecessary medications and supplements",
        "Maintain a healthy weight to prevent fatty liver",
        "Get hepatitis vaccinations if recommended",
        "Eat a balanced diet rich in fruits and vegetables",
    ],
    "kidney": [
        "Stay well hydrated with adequate water intake",
        "Monitor and control blood pressure",
        "Limit protein intake if advised by your doctor",
        "Avoid nephrotoxic medications when possible",
        "Control diabetes and blood pressure to protect kidney function",
    ],
    "thyroid": [
        "Take thyroid medications consistently at the same time",
        "Avoid taking thyroid medication with certain foods or supplements",
        "Monitor for symptoms of hypo or hyperthyroidism",
        "Get regular follow-up testing as recommended",
        "Inform all healthcare providers about your thyroid condition",
    ],
    "electrolyte": [
        "Drink fluids steadily through the day, more during heat or exercise",
        "Review diuretics and other medications that affect salts with your doctor",
        "Keep salt intake moderate unless advised otherwise",
    ],
}

RISK_CALLS_TO_ACTION: dict[str, str] = {
    "high": "HIGH RISK: Multiple critical abnormalities detected. Seek immediate medical care and follow up regularly.",
    "moderate": "MODERATE RISK: Some concerning values found. Schedule an appointment with your healthcare provider soon.",
    "low-moderate": "MILD CONCERN: A few values need attention. Discuss with your healthcare provider at your next visit.",
    "low": "LOW RISK: Most values are normal. Continue healthy lifestyle practices and regular monitoring.",
}


def _canonical(name: str) -> str:
    definition = lookup(name)
    return definition.name if definition else (name or "").lower()


def _display(name: str) -> str:
    return name[:1].upper() + name[1:]


def critical_message(p: ExtractedParameter) -> str:
    return CRITICAL_MESSAGES.get(
        _canonical(p.name),
        f"Critical {p.name} levels detected. Seek immediate medical attention.",
    )


def attention_message(p: ExtractedParameter) -> str:
    key = _canonical(p.name)
    if p.status == "high":
        return HIGH_MESSAGES.get(
            key,
            f"{_display(p.name)} is elevated. Discuss with your healthcare provider for proper management.",
        )
    return LOW_MESSAGES.get(
        key,
        f"{_display(p.name)} is below normal. Consult your healthcare provider for evaluation and treatment options.",
    )


def category_tips(parameters: Sequence[ExtractedParameter]) -> list[CategoryTips]:
    tips: list[CategoryTips] = []
    # dict.fromkeys keeps first-seen order
    for category in dict.fromkeys(p.category for p in parameters):
        items = CATEGORY_TIPS.get(category)
        if items:
            tips.append(CategoryTips(category=_display(category), tips=list(items)))
    return tips


def assess_risk(critical: int, attention: int, normal: int) -> tuple[str, int]:
    """Return the (tier, score) pair for the given bucket sizes."""
    total = critical + attention + normal
    if total == 0:
        return "low", 0
    critical_ratio = critical / total
    attention_ratio = attention / total

    if critical_ratio > 0.3 or critical >= 3:
        return "high", 8
    if critical_ratio > 0.1 or critical >= 1:
        return "moderate", 6
    if attention_ratio > 0.5 or attention >= 4:
        return "moderate", 5
    if attention_ratio > 0.2 or attention >= 2:
        return "low-moderate", 3
    return "low", 0


def _summary(total: int, critical: int, attention: int, normal: int, risk: str) -> str:
    unknown = total - critical - attention - normal
    parts = [f"Lab Report Analysis: {total} parameters analyzed."]
    if critical:
        parts.append(f"{critical} CRITICAL values requiring immediate medical attention.")
    if attention:
        parts.append(f"{attention} values outside normal range need attention.")
    parts.append(f"{normal} values within normal limits.")
    if unknown:
        parts.append(f"{unknown} values could not be compared with a reference range.")

    summary = " ".join(parts) + "\n\n" + RISK_CALLS_TO_ACTION[risk]
    if critical:
        summary += "\n\nURGENT: Contact your healthcare provider immediately for critical values."
    elif attention:
        summary += (
            "\n\nFollow up with your healthcare provider to discuss abnormal values "
            "and create a management plan."
        )
    return summary


def generate(parameters: Sequence[ExtractedParameter]) -> RecommendationBundle:
    parameters = list(parameters or [])
    if not parameters:
        return RecommendationBundle()

    critical = [p for p in parameters if p.status and "critical" in p.status]
    attention = [p for p in parameters if p.status in ("high", "low")]
    normal = [p for p in parameters if p.status == "normal"]

    risk, score = assess_risk(len(critical), len(attention), len(normal))
    bundle = RecommendationBundle(
        critical=[
            ParameterAdvice(
                parameter=p.name,
                value=p.value,
                unit=p.unit,
                status=p.status,
                message=critical_message(p),
                urgency="immediate",
                category=p.category,
            )
            for p in critical
        ],
        attention=[
            ParameterAdvice(
                parameter=p.name,
                value=p.value,
                unit=p.unit,
                status=p.status,
                message=attention_message(p),
                urgency="moderate",
                category=p.category,
            )
            for p in attention
        ],
        normal=[
            ParameterAdvice(
                parameter=p.name,
                value=p.value,
                unit=p.unit,
                status=p.status,
                message=f"{_display(p.name)} is within normal range",
                category=p.category,
            )
            for p in normal
        ],
        tips=category_tips(parameters),
        summary=_summary(len(parameters), len(critical), len(attention), len(normal), risk),
        overall_risk=risk,
        risk_score=score,
        total=len(parameters),
    )
    logger.info(
        {
            "event": "recommendations_generated",
            "total": bundle.total,
            "critical": len(bundle.critical),
            "attention": len(bundle.attention),
            "normal": len(bundle.normal),
            "overall_risk": risk,
        }
    )
    return bundle
