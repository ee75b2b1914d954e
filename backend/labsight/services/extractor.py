from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import cached_property, lru_cache
from typing import Any, Callable, Mapping, Optional, Sequence

from ..config import settings
from .catalog import CATALOG, ParameterDefinition, ReferenceRange, lookup

logger = logging.getLogger(__name__)

# Plain digits or thousands groups, optional decimal part: "13.2", "1,234.5", "250,000"
NUM = r"(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d+)?"
# Avoid numbers glued to a word or exponent (the '12' in 'b12', the '3' in '10^3')
NUMBER = re.compile(rf"(?<![a-z0-9^]){NUM}")
WORD = re.compile(r"[a-z0-9][a-z0-9.\-]*")
LABEL_MAX_CHARS = 40
LABEL_MAX_WORDS = 3


def _to_float(s: str) -> float:
    return float(s.replace(",", ""))


def _scaled(raw: str, factor: float) -> float:
    value = _to_float(raw)
    if factor == 1.0:
        return value
    return round(value * factor, 3)


def _alternation(tokens: Sequence[str]) -> str:
    ordered = sorted(set(tokens), key=lambda t: (-len(t), t))
    return "|".join(re.escape(t) for t in ordered)


@dataclass(frozen=True)
class ExtractedParameter:
    name: str
    value: float
    unit: str
    reference_range: ReferenceRange
    category: str
    status: str = "unknown"
    document_id: str | None = None
    user_id: str | None = None
    extracted_from: str = ""
    strategy: str | None = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "value": self.value,
            "unit": self.unit,
            "reference_range": self.reference_range.to_dict(),
            "reference_range_text": self.reference_range.describe(),
            "status": self.status,
            "category": self.category,
            "document_id": self.document_id,
            "user_id": self.user_id,
            "extracted_from": self.extracted_from,
            "strategy": self.strategy,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class Match:
    value: float
    span: str


@dataclass(frozen=True)
class Fragment:
    """A 'label number unit' run whose label resolved to a catalog entry."""

    name: str
    raw_value: str
    unit: str
    span: str


@dataclass
class ScanContext:
    text: str
    definitions: tuple[ParameterDefinition, ...]
    lookahead: int
    window: int

    @cached_property
    def shadows(self) -> Mapping[str, tuple[str, ...]]:
        return _shadow_table(self.definitions)

    @cached_property
    def fragments(self) -> list[Fragment]:
        return _scan_fragments(self.text, self.definitions)

    def shadowed(self, definition: ParameterDefinition, start: int, alias: str) -> bool:
        """True when the alias at ``start`` is part of another definition's longer alias."""
        for longer in self.shadows.get(definition.name, ()):
            off = longer.find(alias)
            while off != -1:
                s = start - off
                if s >= 0 and self.text.startswith(longer, s) and _bounded(self.text, s, s + len(longer)):
                    return True
                off = longer.find(alias, off + 1)
        return False

    def foreign_label_at(self, definition: ParameterDefinition, segment: str) -> int:
        """Offset of the first other parameter's alias in ``segment``, or -1."""
        m = _foreign_alias_pattern(definition, self.definitions).search(segment)
        return m.start() if m else -1


Strategy = Callable[[ParameterDefinition, ScanContext], Optional[Match]]


def _bounded(text: str, start: int, end: int) -> bool:
    before = text[start - 1] if start > 0 else " "
    after = text[end] if end < len(text) else " "
    return not (before.isalnum() or after.isalnum())


@lru_cache(maxsize=256)
def _alias_pattern(definition: ParameterDefinition) -> re.Pattern[str]:
    return re.compile(rf"(?<![a-z0-9])(?:{_alternation(definition.aliases)})(?![a-z0-9])")


@lru_cache(maxsize=256)
def _unit_pattern(definition: ParameterDefinition) -> str:
    return _alternation([u for u, _ in definition.units])


@lru_cache(maxsize=512)
def _direct_pattern(definition: ParameterDefinition, lookahead: int) -> re.Pattern[str]:
    return re.compile(
        rf"(?<![a-z0-9])(?P<alias>{_alternation(definition.aliases)})(?![a-z0-9])"
        rf"[^0-9]{{0,{lookahead}}}?"
        rf"(?<![a-z0-9^])(?P<value>{NUM})"
        rf"(?:\s*(?P<unit>{_unit_pattern(definition)})(?![a-z]))?"
    )


@lru_cache(maxsize=256)
def _trailing_unit(definition: ParameterDefinition) -> re.Pattern[str]:
    return re.compile(rf"\s*(?P<unit>{_unit_pattern(definition)})(?![a-z])")


@lru_cache(maxsize=8)
def _shadow_table(
    definitions: tuple[ParameterDefinition, ...],
) -> Mapping[str, tuple[str, ...]]:
    table: dict[str, tuple[str, ...]] = {}
    for d in definitions:
        longer: list[str] = []
        for other in definitions:
            if other.name == d.name:
                continue
            for candidate in other.aliases:
                for alias in d.aliases:
                    if candidate != alias and re.search(
                        rf"(?<![a-z0-9]){re.escape(alias)}(?![a-z0-9])", candidate
                    ):
                        longer.append(candidate)
                        break
        table[d.name] = tuple(dict.fromkeys(longer))
    return table


@lru_cache(maxsize=256)
def _foreign_alias_pattern(
    definition: ParameterDefinition,
    definitions: tuple[ParameterDefinition, ...],
) -> re.Pattern[str]:
    own = set(definition.aliases)
    foreign = [a for d in definitions if d.name != definition.name for a in d.aliases if a not in own]
    if not foreign:
        return re.compile(r"(?!)")
    return re.compile(rf"(?<![a-z0-9])(?:{_alternation(foreign)})(?![a-z0-9])")


@lru_cache(maxsize=8)
def _any_unit_fragment(definitions: tuple[ParameterDefinition, ...]) -> re.Pattern[str]:
    spellings = [u for d in definitions for u, _ in d.units]
    return re.compile(rf"(?<![a-z0-9^])(?P<value>{NUM})\s*(?P<unit>{_alternation(spellings)})(?![a-z])")


def _scan_fragments(text: str, definitions: tuple[ParameterDefinition, ...]) -> list[Fragment]:
    known = {d.name for d in definitions}
    fragments: list[Fragment] = []
    prev_end = 0
    for m in _any_unit_fragment(definitions).finditer(text):
        label_text = text[max(prev_end, m.start() - LABEL_MAX_CHARS) : m.start()]
        prev_end = m.end()
        words = WORD.findall(label_text)
        words = [w.strip(".-") for w in words if not NUMBER.fullmatch(w)]
        resolved: ParameterDefinition | None = None
        for n in range(min(LABEL_MAX_WORDS, len(words)), 0, -1):
            resolved = lookup(" ".join(words[-n:]))
            if resolved is not None:
                break
        if resolved is None or resolved.name not in known:
            logger.debug({"event": "unrecognized_fragment", "span": m.group(0)})
            continue
        fragments.append(
            Fragment(
                name=resolved.name,
                raw_value=m.group("value"),
                unit=m.group("unit"),
                span=(label_text.strip() + " " + m.group(0)).strip(),
            )
        )
    return fragments


def direct_pattern(definition: ParameterDefinition, ctx: ScanContext) -> Match | None:
    """Alias, a short non-numeric gap, then the value and optionally its unit."""
    for m in _direct_pattern(definition, ctx.lookahead).finditer(ctx.text):
        if ctx.shadowed(definition, m.start("alias"), m.group("alias")):
            continue
        # The value belongs to the next row's label, not this one
        if ctx.foreign_label_at(definition, ctx.text[m.end("alias") : m.start("value")]) != -1:
            continue
        value = _scaled(m.group("value"), definition.unit_factor(m.group("unit")))
        if definition.is_plausible(value):
            return Match(value=value, span=m.group(0))
    return None


def proximity(definition: ParameterDefinition, ctx: ScanContext) -> Match | None:
    """First number within a fixed window after the first alias occurrence."""
    for m in _alias_pattern(definition).finditer(ctx.text):
        if ctx.shadowed(definition, m.start(), m.group(0)):
            continue
        window = ctx.text[m.end() : m.end() + ctx.window]
        cut = ctx.foreign_label_at(definition, window)
        if cut != -1:
            window = window[:cut]
        num = NUMBER.search(window)
        if num is None:
            return None
        factor = 1.0
        end = num.end()
        unit = _trailing_unit(definition).match(window, num.end())
        if unit:
            factor = definition.unit_factor(unit.group("unit"))
            end = unit.end()
        value = _scaled(num.group(0), factor)
        if not definition.is_plausible(value):
            return None
        return Match(value=value, span=ctx.text[m.start() : m.end() + end])
    return None


def labelled_fragment(definition: ParameterDefinition, ctx: ScanContext) -> Match | None:
    """'label number unit' runs whose label only resolves through fuzzy lookup."""
    for frag in ctx.fragments:
        if frag.name != definition.name:
            continue
        if not definition.accepts_unit(frag.unit):
            continue
        value = _scaled(frag.raw_value, definition.unit_factor(frag.unit))
        if definition.is_plausible(value):
            return Match(value=value, span=frag.span)
    return None


DEFAULT_STRATEGIES: tuple[tuple[str, Strategy], ...] = (
    ("direct", direct_pattern),
    ("proximity", proximity),
    ("fragment", labelled_fragment),
)


def extract(
    text: str,
    *,
    document_id: str | None = None,
    user_id: str | None = None,
    catalog: Mapping[str, ParameterDefinition] | None = None,
    strategies: Sequence[tuple[str, Strategy]] = DEFAULT_STRATEGIES,
    min_chars: int | None = None,
    lookahead: int | None = None,
    window: int | None = None,
) -> list[ExtractedParameter]:
    """Find at most one candidate per catalog definition in normalized text.

    Strategies run in order for each definition and the first one that
    returns a match wins. Definitions that match nothing contribute nothing.
    """
    text = text or ""
    min_chars = settings.min_parse_chars if min_chars is None else min_chars
    if len(text) < min_chars:
        logger.debug({"event": "insufficient_text", "length": len(text)})
        return []

    ctx = ScanContext(
        text=text,
        definitions=tuple((catalog or CATALOG).values()),
        lookahead=settings.direct_lookahead_chars if lookahead is None else lookahead,
        window=settings.proximity_window_chars if window is None else window,
    )
    candidates: list[ExtractedParameter] = []
    for definition in ctx.definitions:
        for strategy_name, strategy in strategies:
            match = strategy(definition, ctx)
            if match is None:
                continue
            candidates.append(
                ExtractedParameter(
                    name=definition.name,
                    value=match.value,
                    unit=definition.unit,
                    reference_range=definition.reference_range,
                    category=definition.category,
                    document_id=document_id,
                    user_id=user_id,
                    extracted_from=match.span,
                    strategy=strategy_name,
                )
            )
            logger.debug(
                {
                    "event": "parameter_extracted",
                    "name": definition.name,
                    "strategy": strategy_name,
                }
            )
            break
    return candidates
