from __future__ import annotations

import logging
import math
from typing import Iterable

from .catalog import CATEGORIES
from .extractor import ExtractedParameter

logger = logging.getLogger(__name__)


def _rejection(p: ExtractedParameter) -> str | None:
    if not p.name or not p.name.strip():
        return "empty_name"
    if not p.category or p.category not in CATEGORIES:
        return "missing_category"
    if p.value is None or not math.isfinite(p.value) or p.value <= 0:
        return "non_positive_value"
    return None


def validate(candidates: Iterable[ExtractedParameter]) -> list[ExtractedParameter]:
    """Drop implausible candidates and repeated (name, value, unit) triples.

    The first occurrence of a triple wins; order is otherwise preserved, so
    running this on its own output is a no-op.
    """
    kept: list[ExtractedParameter] = []
    seen: set[tuple[str, float, str]] = set()
    for p in candidates:
        reason = _rejection(p)
        if reason is None:
            key = (p.name, p.value, p.unit)
            if key in seen:
                reason = "duplicate"
            else:
                seen.add(key)
                kept.append(p)
                continue
        logger.debug({"event": "candidate_dropped", "name": p.name, "reason": reason})
    return kept
