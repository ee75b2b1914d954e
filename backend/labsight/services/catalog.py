"""
Reference catalog of known clinical parameters.

Each definition carries the aliases used for matching, the canonical unit
(plus accepted unit spellings with a scale factor to it), a category, the
normal range and the critical range. The catalog is built once at import
time and exposed as a read-only mapping so it can be shared freely across
concurrent requests.

Reference values are demo-grade adult ranges. Not for clinical use.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from types import MappingProxyType
from typing import Any, Iterable, Iterator, Literal, Mapping

Category = Literal[
    "blood", "lipid", "liver", "kidney", "diabetes", "thyroid", "electrolyte", "other"
]

CATEGORIES: tuple[str, ...] = (
    "blood",
    "lipid",
    "liver",
    "kidney",
    "diabetes",
    "thyroid",
    "electrolyte",
    "other",
)

# Default ceiling for a plausible reading; count-style parameters override it
DEFAULT_PLAUSIBLE_MAX = 1000.0


@dataclass(frozen=True)
class ReferenceRange:
    """Normal and critical bounds for a parameter.

    ``text`` holds a comparator form such as ``"< 200"`` or ``"> 40"``; when
    present it takes precedence over ``min``/``max`` for the normal check.
    """

    min: float | None = None
    max: float | None = None
    text: str | None = None
    critical_min: float | None = None
    critical_max: float | None = None

    def has_critical(self) -> bool:
        return self.critical_min is not None or self.critical_max is not None

    def describe(self) -> str | None:
        if self.text:
            return self.text
        if self.min is not None and self.max is not None:
            return f"{self.min:g} - {self.max:g}"
        if self.max is not None:
            return f"<= {self.max:g}"
        if self.min is not None:
            return f">= {self.min:g}"
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "min": self.min,
            "max": self.max,
            "text": self.text,
            "critical_min": self.critical_min,
            "critical_max": self.critical_max,
        }


@dataclass(frozen=True)
class ParameterDefinition:
    name: str
    aliases: tuple[str, ...]
    unit: str
    category: str
    reference_range: ReferenceRange
    # (spelling, factor) pairs; value_in_canonical_unit = value * factor
    units: tuple[tuple[str, float], ...] = ()
    plausible_max: float = DEFAULT_PLAUSIBLE_MAX

    def unit_factor(self, unit: str | None) -> float:
        if not unit:
            return 1.0
        for spelling, factor in self.units:
            if spelling == unit:
                return factor
        return 1.0

    def accepts_unit(self, unit: str) -> bool:
        return any(spelling == unit for spelling, _ in self.units)

    def is_plausible(self, value: float) -> bool:
        return 0 < value < self.plausible_max


def _define(
    name: str,
    *aliases: str,
    unit: str,
    category: str,
    min: float | None = None,
    max: float | None = None,
    text: str | None = None,
    critical: tuple[float | None, float | None] = (None, None),
    units: Mapping[str, float] | None = None,
    plausible_max: float = DEFAULT_PLAUSIBLE_MAX,
) -> ParameterDefinition:
    # Canonical name always matches itself; longest alias first so regex
    # alternation prefers "hdl cholesterol" over "hdl".
    alias_set = {a.lower() for a in (name, *aliases)}
    ordered = tuple(sorted(alias_set, key=lambda a: (-len(a), a)))
    unit_table = {unit: 1.0}
    unit_table.update(units or {})
    return ParameterDefinition(
        name=name,
        aliases=ordered,
        unit=unit,
        category=category,
        reference_range=ReferenceRange(
            min=min,
            max=max,
            text=text,
            critical_min=critical[0],
            critical_max=critical[1],
        ),
        units=tuple(unit_table.items()),
        plausible_max=plausible_max,
    )


_MICRO_UL = {"/ul": 1.0, "/µl": 1.0, "/μl": 1.0, "cells/ul": 1.0, "/cumm": 1.0, "cells/cumm": 1.0, "/mm3": 1.0}
_THOUSANDS_UL = {"x10^3/ul": 1000.0, "10^3/ul": 1000.0, "x10^3/µl": 1000.0, "k/ul": 1000.0, "x10^9/l": 1000.0, "10^9/l": 1000.0}

_DEFINITIONS: tuple[ParameterDefinition, ...] = (
    # Diabetes
    _define(
        "glucose",
        "blood glucose", "fasting glucose", "fasting blood glucose",
        "fasting blood sugar", "blood sugar", "glucose fasting",
        unit="mg/dl", category="diabetes", min=70, max=100, critical=(50, 400),
        units={"mg%": 1.0, "mmol/l": 18.0},
    ),
    _define(
        "hba1c",
        "hemoglobin a1c", "haemoglobin a1c", "glycated hemoglobin",
        "glycosylated hemoglobin", "a1c",
        unit="%", category="diabetes", min=4.0, max=5.6, critical=(3.0, 12.0),
        plausible_max=25,
    ),
    # Lipid profile
    _define(
        "total cholesterol",
        "cholesterol", "serum cholesterol", "cholesterol total",
        unit="mg/dl", category="lipid", text="< 200", critical=(None, 400),
        units={"mmol/l": 38.67},
    ),
    _define(
        "ldl cholesterol",
        "ldl", "ldl-c", "ldl cholesterol direct",
        unit="mg/dl", category="lipid", text="< 100", critical=(None, 400),
        units={"mmol/l": 38.67},
    ),
    _define(
        "hdl cholesterol",
        "hdl", "hdl-c",
        unit="mg/dl", category="lipid", text="> 40", critical=(20, None),
        units={"mmol/l": 38.67},
    ),
    _define(
        "triglycerides",
        "triglyceride", "serum triglycerides",
        unit="mg/dl", category="lipid", text="< 150", critical=(None, 1000),
        units={"mmol/l": 88.57}, plausible_max=5000,
    ),
    # Blood count
    _define(
        "hemoglobin",
        "haemoglobin", "hb", "hgb",
        unit="g/dl", category="blood", min=12.0, max=16.0, critical=(7.0, 20.0),
        units={"gm/dl": 1.0, "g/l": 0.1}, plausible_max=30,
    ),
    _define(
        "hematocrit",
        "haematocrit", "hct", "packed cell volume", "pcv",
        unit="%", category="blood", min=36, max=48, critical=(20, 60),
        plausible_max=100,
    ),
    _define(
        "wbc",
        "white blood cells", "white blood cell count", "wbc count",
        "total leucocyte count", "total leukocyte count", "leukocytes",
        unit="/ul", category="blood", min=4000, max=11000, critical=(1000, 50000),
        units={**_MICRO_UL, **_THOUSANDS_UL}, plausible_max=1e6,
    ),
    _define(
        "rbc",
        "red blood cells", "red blood cell count", "rbc count", "erythrocytes",
        unit="million/ul", category="blood", min=4.2, max=5.4, critical=(2.0, 8.0),
        units={"mill/cumm": 1.0, "million/cumm": 1.0, "x10^6/ul": 1.0, "10^6/ul": 1.0, "m/ul": 1.0, "x10^12/l": 1.0},
        plausible_max=20,
    ),
    _define(
        "platelets",
        "platelet count", "platelet", "platelets count",
        unit="/ul", category="blood", min=150000, max=450000, critical=(50000, 1000000),
        units={**_MICRO_UL, **_THOUSANDS_UL, "lakh/cumm": 100000.0}, plausible_max=1e7,
    ),
    # Liver function
    _define(
        "alt",
        "sgpt", "alanine aminotransferase", "alanine transaminase",
        unit="u/l", category="liver", min=7, max=40, critical=(None, 200),
        units={"iu/l": 1.0},
    ),
    _define(
        "ast",
        "sgot", "aspartate aminotransferase", "aspartate transaminase",
        unit="u/l", category="liver", min=10, max=40, critical=(None, 200),
        units={"iu/l": 1.0},
    ),
    _define(
        "bilirubin",
        "total bilirubin", "bilirubin total", "serum bilirubin",
        unit="mg/dl", category="liver", min=0.2, max=1.2, critical=(None, 20),
        units={"umol/l": 0.0585, "µmol/l": 0.0585, "μmol/l": 0.0585}, plausible_max=50,
    ),
    # Kidney function
    _define(
        "creatinine",
        "serum creatinine", "s. creatinine",
        unit="mg/dl", category="kidney", min=0.6, max=1.2, critical=(0.2, 10),
        units={"umol/l": 0.0113, "µmol/l": 0.0113, "μmol/l": 0.0113}, plausible_max=30,
    ),
    _define(
        "urea",
        "blood urea", "bun", "blood urea nitrogen", "serum urea",
        unit="mg/dl", category="kidney", min=7, max=20, critical=(None, 100),
        plausible_max=400,
    ),
    # Thyroid
    _define(
        "tsh",
        "thyroid stimulating hormone",
        unit="miu/l", category="thyroid", min=0.4, max=4.0, critical=(0.01, 50),
        units={"uiu/ml": 1.0, "µiu/ml": 1.0, "μiu/ml": 1.0}, plausible_max=500,
    ),
    _define(
        "t3",
        "total t3", "triiodothyronine",
        unit="ng/dl", category="thyroid", min=80, max=200, critical=(50, 400),
    ),
    _define(
        "t4",
        "total t4", "thyroxine",
        unit="ug/dl", category="thyroid", min=5.0, max=12.0, critical=(2.0, 20.0),
        units={"µg/dl": 1.0, "μg/dl": 1.0, "mcg/dl": 1.0}, plausible_max=50,
    ),
    _define(
        "free t3",
        "ft3",
        unit="pg/ml", category="thyroid", min=2.3, max=4.2, critical=(1.0, 10.0),
        plausible_max=50,
    ),
    _define(
        "free t4",
        "ft4",
        unit="ng/dl", category="thyroid", min=0.8, max=1.8, critical=(0.1, 5.0),
        plausible_max=20,
    ),
    # Electrolytes
    _define(
        "sodium",
        "serum sodium",
        unit="mmol/l", category="electrolyte", min=135, max=145, critical=(120, 160),
        units={"meq/l": 1.0},
    ),
    _define(
        "potassium",
        "serum potassium",
        unit="mmol/l", category="electrolyte", min=3.5, max=5.1, critical=(2.5, 6.5),
        units={"meq/l": 1.0}, plausible_max=20,
    ),
    _define(
        "chloride",
        "serum chloride",
        unit="mmol/l", category="electrolyte", min=98, max=107, critical=(80, 120),
        units={"meq/l": 1.0},
    ),
    _define(
        "calcium",
        "total calcium", "serum calcium",
        unit="mg/dl", category="electrolyte", min=8.5, max=10.5, critical=(6.0, 13.0),
        units={"mmol/l": 4.008}, plausible_max=30,
    ),
    # Other
    _define(
        "vitamin d",
        "vitamin d3", "25-oh vitamin d", "25 oh vitamin d", "25-hydroxy vitamin d",
        unit="ng/ml", category="other", min=30, max=100, critical=(10, 150),
        units={"nmol/l": 0.4}, plausible_max=500,
    ),
    _define(
        "vitamin b12",
        "b12", "cobalamin",
        unit="pg/ml", category="other", min=200, max=900, critical=(100, None),
        plausible_max=10000,
    ),
)

# Abbreviations seen on reports that are not worth carrying as aliases
ABBREVIATIONS: Mapping[str, str] = MappingProxyType(
    {
        "hb": "hemoglobin",
        "hct": "hematocrit",
        "sgpt": "alt",
        "sgot": "ast",
        "tc": "total cholesterol",
        "chol": "total cholesterol",
        "tg": "triglycerides",
        "trig": "triglycerides",
        "tlc": "wbc",
        "plt": "platelets",
        "fbs": "glucose",
        "creat": "creatinine",
        "bili": "bilirubin",
    }
)

_KEY_STRIP = " :-=.,;()[]{}"
_WS = re.compile(r"\s+")
# Words that qualify a test name without identifying one ("calcium, total")
QUALIFIERS = frozenset({"total", "serum", "free", "blood", "plasma", "fasting", "count", "level"})


def _key(raw: str) -> str:
    return _WS.sub(" ", raw.lower()).strip(_KEY_STRIP)


def _build_catalog(
    definitions: Iterable[ParameterDefinition],
) -> Mapping[str, ParameterDefinition]:
    catalog: dict[str, ParameterDefinition] = {}
    for d in definitions:
        if not d.aliases:
            raise ValueError(f"definition {d.name!r} has no aliases")
        if d.category not in CATEGORIES:
            raise ValueError(f"definition {d.name!r} has unknown category {d.category!r}")
        if d.name in catalog:
            raise ValueError(f"duplicate definition {d.name!r}")
        catalog[d.name] = d
    return MappingProxyType(catalog)


CATALOG: Mapping[str, ParameterDefinition] = _build_catalog(_DEFINITIONS)

_ALIAS_INDEX: Mapping[str, ParameterDefinition] = MappingProxyType(
    {_key(alias): d for d in _DEFINITIONS for alias in d.aliases}
)


def definitions() -> Iterator[ParameterDefinition]:
    return iter(CATALOG.values())


def _exact(key: str) -> ParameterDefinition | None:
    return CATALOG.get(key) or _ALIAS_INDEX.get(key)


@lru_cache(maxsize=1024)
def lookup(raw_name: str) -> ParameterDefinition | None:
    """Resolve a free-text parameter name to its definition.

    Tries, in order: canonical name, alias, abbreviation table (then
    canonical/alias again) and finally fuzzy containment where the two
    strings differ in length by at most three characters. Containment on a
    bare qualifier such as "total" or "serum" is not a match. Returns
    ``None`` when nothing matches.
    """
    key = _key(raw_name or "")
    if not key:
        return None

    found = _exact(key)
    if found:
        return found

    expanded = ABBREVIATIONS.get(key)
    if expanded:
        found = _exact(_key(expanded))
        if found:
            return found

    # Very short tokens would match half the catalog
    if len(key) < 3:
        return None
    for d in _DEFINITIONS:
        for candidate in (d.name, *d.aliases):
            if abs(len(candidate) - len(key)) > 3:
                continue
            if key in candidate:
                shared = key
            elif candidate in key:
                shared = candidate
            else:
                continue
            if _qualifier_only(shared):
                continue
            return d
    return None


def _qualifier_only(text: str) -> bool:
    return all(word in QUALIFIERS for word in text.split())
