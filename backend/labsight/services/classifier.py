from __future__ import annotations

import math
import re
from dataclasses import replace
from typing import Iterable, Literal

from .catalog import ReferenceRange
from .extractor import ExtractedParameter

Status = Literal["normal", "low", "high", "critical_low", "critical_high", "unknown"]

STATUSES: tuple[str, ...] = ("normal", "low", "high", "critical_low", "critical_high", "unknown")

# "< 5.7", "<=200", "> 40", ">= 3.5"
COMPARATOR = re.compile(r"^\s*(?P<op><=|>=|<|>)\s*(?P<bound>\d+(?:\.\d+)?)\s*$")


def _comparator(text: str | None) -> tuple[str, float] | None:
    if not text:
        return None
    m = COMPARATOR.match(text)
    if not m:
        return None
    return m.group("op")[0], float(m.group("bound"))


def classify(value: float, reference_range: ReferenceRange | None) -> Status:
    """Classify a reading against its range.

    Critical bounds are checked first so a value past the critical maximum
    is never reported as merely ``high``. Then the comparator text, then the
    numeric min/max. A range with nothing usable yields ``unknown``.
    """
    if reference_range is None or value is None or not math.isfinite(value):
        return "unknown"
    r = reference_range

    if r.critical_min is not None and value <= r.critical_min:
        return "critical_low"
    if r.critical_max is not None and value >= r.critical_max:
        return "critical_high"

    comp = _comparator(r.text)
    if comp is not None:
        op, bound = comp
        if op == "<":
            return "normal" if value <= bound else "high"
        return "normal" if value >= bound else "low"

    if r.min is None and r.max is None:
        return "unknown"
    if r.min is not None and r.max is not None and r.min > r.max:
        # Inverted bounds: treat as an incomplete range
        return "unknown"
    if r.min is not None and value < r.min:
        return "low"
    if r.max is not None and value > r.max:
        return "high"
    return "normal"


def classify_parameters(parameters: Iterable[ExtractedParameter]) -> list[ExtractedParameter]:
    return [replace(p, status=classify(p.value, p.reference_range)) for p in parameters]
