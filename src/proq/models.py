"""Typed values returned by the Prometheus query API.

Query results form a closed union (ResultPayload) selected by the envelope's
resultType field. Metadata endpoints return the remaining models.

Label sets are stored as read-only mappings. Models that hold them compare by
value but are not hashable.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import ClassVar, Union

Labels = Mapping[str, str]


def _freeze(model, *names: str):
    for name in names:
        object.__setattr__(model, name, MappingProxyType(dict(getattr(model, name))))


@dataclass(frozen=True)
class Sample:
    """Single (timestamp, value) pair.

    Attributes:
        timestamp: Unix epoch seconds (fractional)
        value: Sample value; may be NaN, +Inf or -Inf
    """

    timestamp: float
    value: float


@dataclass(frozen=True)
class InstantSample:
    """One series of an instant vector: its label set and single sample."""

    labels: Labels
    sample: Sample

    def __post_init__(self):
        _freeze(self, "labels")


@dataclass(frozen=True)
class LabeledSeries:
    """One series of a range matrix: its label set and samples, oldest first."""

    labels: Labels
    samples: tuple[Sample, ...] = ()

    def __post_init__(self):
        _freeze(self, "labels")


@dataclass(frozen=True)
class Scalar:
    result_type: ClassVar[str] = "scalar"

    sample: Sample


@dataclass(frozen=True)
class Vector:
    result_type: ClassVar[str] = "vector"

    samples: tuple[InstantSample, ...] = ()


@dataclass(frozen=True)
class Matrix:
    result_type: ClassVar[str] = "matrix"

    series: tuple[LabeledSeries, ...] = ()


@dataclass(frozen=True)
class StringResult:
    result_type: ClassVar[str] = "string"

    timestamp: float
    value: str


ResultPayload = Union[Scalar, Vector, Matrix, StringResult]

RESULT_TYPES: tuple[type, ...] = (Scalar, Vector, Matrix, StringResult)


@dataclass(frozen=True)
class ResponseEnvelope:
    """Decoded success envelope of a query endpoint."""

    status: str
    payload: ResultPayload
    warnings: tuple[str, ...] = ()


class TargetHealth(str, Enum):
    UP = "up"
    DOWN = "down"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ActiveTarget:
    """Scrape target Prometheus is currently scraping."""

    discovered_labels: Labels
    labels: Labels
    scrape_url: str
    last_error: str | None
    last_scrape: str
    health: TargetHealth

    def __post_init__(self):
        _freeze(self, "discovered_labels", "labels")


@dataclass(frozen=True)
class DroppedTarget:
    discovered_labels: Labels

    def __post_init__(self):
        _freeze(self, "discovered_labels")


@dataclass(frozen=True)
class Targets:
    active: tuple[ActiveTarget, ...] = ()
    dropped: tuple[DroppedTarget, ...] = ()


@dataclass(frozen=True)
class Alert:
    """Alert instance as reported by /api/v1/alerts or inside a rule."""

    state: str
    value: str
    labels: Labels = field(default_factory=dict)
    annotations: Labels = field(default_factory=dict)
    active_at: str | None = None

    def __post_init__(self):
        _freeze(self, "labels", "annotations")


@dataclass(frozen=True)
class Rule:
    """Alerting or recording rule definition.

    Attributes:
        name: Rule name (alert name or recorded series name)
        query: PromQL expression of the rule
        rule_type: "alerting" or "recording"
        health: Last evaluation health reported by the server
        duration: Alert "for" duration in seconds (alerting rules only)
        labels: Labels attached by the rule
        annotations: Annotations (alerting rules only)
        alerts: Active alerts produced by the rule (alerting rules only)
    """

    name: str
    query: str
    rule_type: str
    health: str
    duration: float | None = None
    labels: Labels = field(default_factory=dict)
    annotations: Labels = field(default_factory=dict)
    alerts: tuple[Alert, ...] = ()

    def __post_init__(self):
        _freeze(self, "labels", "annotations")


@dataclass(frozen=True)
class RuleGroup:
    name: str
    file: str
    interval: float
    rules: tuple[Rule, ...] = ()


@dataclass(frozen=True)
class AlertManagers:
    """Alertmanager URLs discovered by Prometheus."""

    active: tuple[str, ...] = ()
    dropped: tuple[str, ...] = ()
