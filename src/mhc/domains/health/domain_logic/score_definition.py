"""Declarative score definitions: ordered band tables mapping inputs onto [0, 1].

A ``ScoreDefinition`` is evaluated top to bottom; the first band whose
predicate matches the input wins, otherwise the definition's default applies.
Evaluation never raises: an input that no band accepts (wrong type, lossy
numeric conversion, value outside every band) simply falls through.

Numeric coercion between bands and inputs is one-directional and lossless:

* an ``int`` input tested against a floating-point range is converted with
  ``float()`` and always compared;
* a ``float`` input tested against an integer range only matches when it has
  no fractional part (``13.0`` matches ``12...14``, ``13.5`` does not).
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Callable, Hashable

from mhc.domains.health.domain_logic.sample_models import SampleType, TimeRange

Number = int | float


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _fmt(value: Number) -> str:
    if isinstance(value, int):
        return str(value)
    return f"{value:g}"


def coerce_to_float(value: Any) -> float | None:
    """Int -> float is always exact for our value ranges; non-numbers yield None."""
    if not _is_number(value):
        return None
    return float(value)


def coerce_to_int(value: Any) -> int | None:
    """Return ``value`` as int only if that is lossless, otherwise None."""
    if not _is_number(value):
        return None
    if isinstance(value, int):
        return value
    if math.isfinite(value) and value.is_integer():
        return int(value)
    return None


# ---------------------------------------------------------------------------
# Ranges
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ScoreRange:
    """A numeric range; lower bound inclusive, upper bound inclusive or exclusive.

    Use the constructors rather than instantiating directly.
    """

    lower: Number | None
    upper: Number | None
    upper_inclusive: bool

    @classmethod
    def closed(cls, lower: Number, upper: Number) -> ScoreRange:
        return cls(lower, upper, True)

    @classmethod
    def half_open(cls, lower: Number, upper: Number) -> ScoreRange:
        return cls(lower, upper, False)

    @classmethod
    def at_least(cls, lower: Number) -> ScoreRange:
        return cls(lower, None, False)

    @classmethod
    def below(cls, upper: Number) -> ScoreRange:
        return cls(None, upper, False)

    @classmethod
    def at_most(cls, upper: Number) -> ScoreRange:
        return cls(None, upper, True)

    @property
    def is_integral(self) -> bool:
        """True if every present bound is an ``int``."""
        bounds = [b for b in (self.lower, self.upper) if b is not None]
        return all(isinstance(b, int) and not isinstance(b, bool) for b in bounds)

    def contains(self, value: Any) -> bool:
        coerced = coerce_to_int(value) if self.is_integral else coerce_to_float(value)
        if coerced is None or (isinstance(coerced, float) and math.isnan(coerced)):
            return False
        if self.lower is not None and coerced < self.lower:
            return False
        if self.upper is not None:
            if self.upper_inclusive:
                return coerced <= self.upper
            return coerced < self.upper
        return True

    @property
    def description(self) -> str:
        if self.lower is None:
            return f"≤ {_fmt(self.upper)}" if self.upper_inclusive else f"< {_fmt(self.upper)}"
        if self.upper is None:
            return f"≥ {_fmt(self.lower)}"
        if self.upper_inclusive:
            return f"{_fmt(self.lower)} – {_fmt(self.upper)}"
        if self.is_integral:
            return f"{_fmt(self.lower)} – {_fmt(self.upper - 1)}"
        return f"{_fmt(self.lower)}..<{_fmt(self.upper)}"


# ---------------------------------------------------------------------------
# Band predicates
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RangePredicate:
    range: ScoreRange

    def matches(self, value: Any) -> bool:
        return self.range.contains(value)


@dataclass(frozen=True)
class EqualsPredicate:
    expected: Hashable

    def matches(self, value: Any) -> bool:
        if not isinstance(value, type(self.expected)):
            return False
        return value == self.expected


@dataclass(frozen=True)
class CustomPredicate:
    """Arbitrary predicate over inputs of ``input_type``; other inputs never match."""

    test: Callable[[Any], bool]
    input_type: type

    def matches(self, value: Any) -> bool:
        if not isinstance(value, self.input_type):
            return False
        return bool(self.test(value))


BandPredicate = RangePredicate | EqualsPredicate | CustomPredicate


@dataclass(frozen=True)
class ScoringBand:
    """One row of a score table: predicate, score and a display explainer."""

    predicate: BandPredicate
    score: float
    explainer: str

    def matches(self, value: Any) -> bool:
        return self.predicate.matches(value)

    @classmethod
    def in_range(cls, range_: ScoreRange, score: float, explainer: str | None = None) -> ScoringBand:
        return cls(RangePredicate(range_), score, explainer or range_.description)

    @classmethod
    def equal_to(cls, value: Hashable, score: float, explainer: str | None = None) -> ScoringBand:
        return cls(EqualsPredicate(value), score, explainer or str(value))

    @classmethod
    def matching(
        cls,
        test: Callable[[Any], bool],
        score: float,
        explainer: str,
        *,
        input_type: type,
    ) -> ScoringBand:
        return cls(CustomPredicate(test, input_type), score, explainer)


# ---------------------------------------------------------------------------
# Definitions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ScoreDefinition:
    """Ordered band table plus default. Shared and reused; never mutated."""

    default: float | None
    bands: tuple[ScoringBand, ...] = ()
    explainer_footer: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "bands", tuple(self.bands))

    def apply(self, value: Any) -> float | None:
        """Score ``value``: first matching band's score, else the default."""
        for band in self.bands:
            if band.matches(value):
                return band.score
        return self.default

    __call__ = apply

    def explainer_rows(self) -> list[tuple[str, int]]:
        """(band text, score as 0-100) rows for display."""
        return [(band.explainer, int(band.score * 100)) for band in self.bands]


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ScoreResult:
    """Outcome of scoring one CVH component.

    ``score`` is None when there was no usable input; ``time_range`` is the
    period the evidence covers (None when there was no evidence at all).
    """

    title: str
    sample_type: SampleType
    definition: ScoreDefinition = field(compare=False)
    input_value: Any = None
    score: float | None = None
    time_range: TimeRange | None = None

    @property
    def score_available(self) -> bool:
        return self.score is not None and not math.isnan(self.score)

    @classmethod
    def empty(
        cls,
        title: str,
        sample_type: SampleType,
        definition: ScoreDefinition,
        time_range: TimeRange | None = None,
    ) -> ScoreResult:
        return cls(title, sample_type, definition, None, None, time_range)

    @classmethod
    def from_value(
        cls,
        title: str,
        sample_type: SampleType,
        value: Any,
        time_range: TimeRange,
        definition: ScoreDefinition,
    ) -> ScoreResult:
        return cls(title, sample_type, definition, value, definition(value), time_range)

    @classmethod
    def from_sample(
        cls,
        title: str,
        sample_type: SampleType,
        sample: Any,
        value: Callable[[Any], Any],
        definition: ScoreDefinition,
    ) -> ScoreResult:
        """Score ``value(sample)``; a missing sample or a None value yields no score."""
        if sample is None:
            return cls.empty(title, sample_type, definition)
        input_value = value(sample)
        if input_value is None:
            return cls.empty(title, sample_type, definition, sample.time_range)
        return cls.from_value(title, sample_type, input_value, sample.time_range, definition)

    def as_dict(self) -> dict[str, Any]:
        start, end = self.time_range if self.time_range else (None, None)
        input_value = self.input_value
        if input_value is not None and not isinstance(input_value, (int, float, str)):
            input_value = str(input_value)
        return {
            "title": self.title,
            "sample_type": self.sample_type.identifier,
            "input_value": input_value,
            "score": self.score,
            "start_date": start.isoformat() if start else None,
            "end_date": end.isoformat() if end else None,
        }
