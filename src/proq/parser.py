"""Decoding of Prometheus API response bodies.

Every endpoint answers with the same envelope:

    {"status": "success" | "error", "data": ..., "errorType": ..., "error": ...,
     "warnings": [...]}

read_envelope() validates it and raises ServerReportedError for error
envelopes. The decode_* helpers turn the data member into typed models.
"""

import json
import math
import re
from collections.abc import Callable
from typing import Any, TypeVar

from .config import INFINITY_TOKENS, NAN_TOKEN, NEGATIVE_INFINITY_TOKEN
from .errors import (
    InvalidSample,
    MalformedResponse,
    ResponseError,
    ServerReportedError,
    UnknownResultType,
)
from .models import (
    ActiveTarget,
    Alert,
    AlertManagers,
    DroppedTarget,
    InstantSample,
    LabeledSeries,
    Matrix,
    ResponseEnvelope,
    ResultPayload,
    Rule,
    RuleGroup,
    Sample,
    Scalar,
    StringResult,
    TargetHealth,
    Targets,
    Vector,
)

# Go strconv.ParseFloat style decimal literals, without Python-only forms
# such as "1_000" or "infinity"
_NUMBER_RE = re.compile(r"[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?")

_SAMPLE_LENGTH = 2

T = TypeVar("T")


def read_envelope(
    body: bytes | str, status_code: int | None = None
) -> tuple[Any, tuple[str, ...]]:
    """Validate the response envelope and return its data member.

    Args:
        body: Raw response body
        status_code: HTTP status, attached to raised errors for context

    Returns:
        Tuple of (data, warnings); data is None when the server omitted it

    Raises:
        MalformedResponse: If body is not a JSON object with a known status
        ServerReportedError: If status is "error"
    """
    try:
        envelope = json.loads(body)
    except (ValueError, TypeError, RecursionError) as e:
        raise MalformedResponse(f"body is not valid JSON ({e})", status_code) from e

    if not isinstance(envelope, dict):
        raise MalformedResponse(
            f"expected a JSON object, got {type(envelope).__name__}", status_code
        )

    warnings = _decode_warnings(envelope.get("warnings"), status_code)
    status = envelope.get("status")

    if status == "success":
        return envelope.get("data"), warnings
    if status == "error":
        raise ServerReportedError(
            kind=_text_or_default(envelope.get("errorType"), "unknown"),
            message=_text_or_default(envelope.get("error"), ""),
            status_code=status_code,
            warnings=warnings,
        )
    if status is None:
        raise MalformedResponse("missing 'status' field", status_code)
    raise MalformedResponse(f"unrecognized status {status!r}", status_code)


def parse(body: bytes | str, status_code: int | None = None) -> ResponseEnvelope:
    """Parse a query endpoint response into a ResponseEnvelope.

    Examples:
        >>> parse(b'{"status":"success","data":{"resultType":"vector","result":[]}}')
        ResponseEnvelope(status='success', payload=Vector(samples=()), warnings=())
    """
    data, warnings = read_envelope(body, status_code)
    return ResponseEnvelope(
        "success", decode(decode_result, data, status_code), warnings
    )


def decode(
    decoder: Callable[[Any], T], data: Any, status_code: int | None = None
) -> T:
    """Run decoder on an envelope's data, tagging failures with the HTTP status."""
    try:
        return decoder(data)
    except ResponseError as e:
        if e.status_code is None:
            e.status_code = status_code
        raise


def decode_result(data: Any) -> ResultPayload:
    """Dispatch on data.resultType and decode the matching payload.

    Raises:
        MalformedResponse: If data or its resultType/result members are missing
        UnknownResultType: If resultType is not one of the four known kinds
    """
    if not isinstance(data, dict):
        raise MalformedResponse("missing 'data' object")
    if "resultType" not in data:
        raise MalformedResponse("missing 'data.resultType' field")
    if "result" not in data:
        raise MalformedResponse("missing 'data.result' field")

    result_type = data["resultType"]
    result = data["result"]

    if result_type == "scalar":
        return Scalar(decode_sample(result))
    if result_type == "string":
        timestamp, value = _pair(result)
        if not isinstance(value, str):
            raise InvalidSample(value, "string result value is not a string")
        return StringResult(decode_timestamp(timestamp), value)
    if result_type == "vector":
        return Vector(
            tuple(
                InstantSample(
                    labels=_labels(item.get("metric", {}), "metric"),
                    sample=decode_sample(_member(item, "value")),
                )
                for item in _objects(result, "vector result")
            )
        )
    if result_type == "matrix":
        return Matrix(
            tuple(
                LabeledSeries(
                    labels=_labels(item.get("metric", {}), "metric"),
                    samples=tuple(
                        decode_sample(s)
                        for s in _list(_member(item, "values"), "values")
                    ),
                )
                for item in _objects(result, "matrix result")
            )
        )
    raise UnknownResultType(result_type)


def decode_sample(raw: Any) -> Sample:
    """Decode a [timestamp, "value"] pair."""
    timestamp, value = _pair(raw)
    return Sample(decode_timestamp(timestamp), decode_value(value))


def decode_timestamp(raw: Any) -> float:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise InvalidSample(raw, "sample timestamp is not a number")
    return float(raw)


def decode_value(raw: Any) -> float:
    """Decode a sample value, accepting Prometheus' non-finite tokens.

    Examples:
        >>> decode_value("42.5")
        42.5
        >>> decode_value("-Inf")
        -inf
    """
    if isinstance(raw, bool):
        raise InvalidSample(raw)
    if isinstance(raw, (int, float)):
        return float(raw)
    if not isinstance(raw, str):
        raise InvalidSample(raw)
    if raw == NAN_TOKEN:
        return math.nan
    if raw in INFINITY_TOKENS:
        return math.inf
    if raw == NEGATIVE_INFINITY_TOKEN:
        return -math.inf
    if not _NUMBER_RE.fullmatch(raw):
        raise InvalidSample(raw)
    return float(raw)


def decode_series(data: Any) -> tuple[dict[str, str], ...]:
    return tuple(_labels(item, "series") for item in _list(data, "series data"))


def decode_string_list(data: Any) -> tuple[str, ...]:
    """Decode label names or label values."""
    items = _list(data, "data")
    for item in items:
        if not isinstance(item, str):
            raise MalformedResponse(f"expected a list of strings, found {item!r}")
    return tuple(items)


def decode_targets(data: Any) -> Targets:
    data = _object(data, "targets data")
    active = tuple(
        ActiveTarget(
            discovered_labels=_labels(t.get("discoveredLabels"), "discoveredLabels"),
            labels=_labels(t.get("labels"), "labels"),
            scrape_url=_text(t.get("scrapeUrl"), "scrapeUrl"),
            last_error=t.get("lastError") or None,
            last_scrape=_text(t.get("lastScrape"), "lastScrape"),
            health=_health(t.get("health")),
        )
        for t in _objects(data.get("activeTargets") or [], "activeTargets")
    )
    dropped = tuple(
        DroppedTarget(
            discovered_labels=_labels(t.get("discoveredLabels"), "discoveredLabels")
        )
        for t in _objects(data.get("droppedTargets") or [], "droppedTargets")
    )
    return Targets(active=active, dropped=dropped)


def decode_alerts(data: Any) -> tuple[Alert, ...]:
    data = _object(data, "alerts data")
    return _alerts(_member(data, "alerts"))


def decode_rules(data: Any) -> tuple[RuleGroup, ...]:
    data = _object(data, "rules data")
    groups = []
    for group in _objects(_member(data, "groups"), "groups"):
        rules = tuple(
            Rule(
                name=_text(rule.get("name"), "rule name"),
                query=_text(rule.get("query"), "rule query"),
                rule_type=_text(rule.get("type"), "rule type"),
                health=_text_or_default(rule.get("health"), "unknown"),
                duration=(
                    _seconds(rule["duration"], "duration")
                    if rule.get("duration") is not None
                    else None
                ),
                labels=_labels(rule.get("labels") or {}, "rule labels"),
                annotations=_labels(rule.get("annotations") or {}, "annotations"),
                alerts=_alerts(rule.get("alerts") or []),
            )
            for rule in _objects(group.get("rules") or [], "rules")
        )
        groups.append(
            RuleGroup(
                name=_text(group.get("name"), "group name"),
                file=_text_or_default(group.get("file"), ""),
                interval=_seconds(group.get("interval", 0), "interval"),
                rules=rules,
            )
        )
    return tuple(groups)


def decode_alert_managers(data: Any) -> AlertManagers:
    data = _object(data, "alertmanagers data")

    def urls(key: str) -> tuple[str, ...]:
        return tuple(
            _text(item.get("url"), "url")
            for item in _objects(data.get(key) or [], key)
        )

    return AlertManagers(
        active=urls("activeAlertmanagers"), dropped=urls("droppedAlertmanagers")
    )


def decode_config(data: Any) -> str:
    """Return the YAML text of /api/v1/status/config."""
    return _text(_object(data, "config data").get("yaml"), "yaml")


def decode_flags(data: Any) -> dict[str, str]:
    return _labels(data, "flags")


def _alerts(raw: Any) -> tuple[Alert, ...]:
    return tuple(
        Alert(
            state=_text(a.get("state"), "alert state"),
            value=str(a.get("value", "")),
            labels=_labels(a.get("labels") or {}, "alert labels"),
            annotations=_labels(a.get("annotations") or {}, "alert annotations"),
            active_at=a.get("activeAt") or None,
        )
        for a in _objects(raw, "alerts")
    )


def _health(raw: Any) -> TargetHealth:
    try:
        return TargetHealth(raw)
    except ValueError:
        return TargetHealth.UNKNOWN


def _decode_warnings(raw: Any, status_code: int | None) -> tuple[str, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list) or not all(isinstance(w, str) for w in raw):
        raise MalformedResponse("'warnings' is not a list of strings", status_code)
    return tuple(raw)


def _seconds(raw: Any, field: str) -> float:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise MalformedResponse(f"'{field}' is not a number: {raw!r}")
    return float(raw)


def _text_or_default(raw: Any, default: str) -> str:
    return raw if isinstance(raw, str) else default


def _text(raw: Any, field: str) -> str:
    if not isinstance(raw, str):
        raise MalformedResponse(f"'{field}' is not a string: {raw!r}")
    return raw


def _pair(raw: Any) -> tuple[Any, Any]:
    if not isinstance(raw, list) or len(raw) != _SAMPLE_LENGTH:
        raise InvalidSample(raw, "sample is not a [timestamp, value] pair")
    return raw[0], raw[1]


def _list(raw: Any, field: str) -> list[Any]:
    if not isinstance(raw, list):
        raise MalformedResponse(f"'{field}' is not a list: {raw!r}")
    return raw


def _object(raw: Any, field: str) -> dict[str, Any]:
    if not isinstance(raw, dict):
        raise MalformedResponse(f"'{field}' is not an object: {raw!r}")
    return raw


def _objects(raw: Any, field: str) -> list[dict[str, Any]]:
    return [_object(item, f"{field} item") for item in _list(raw, field)]


def _member(item: dict[str, Any], key: str) -> Any:
    if key not in item:
        raise MalformedResponse(f"missing '{key}' field")
    return item[key]


def _labels(raw: Any, field: str) -> dict[str, str]:
    labels = _object(raw, field)
    for name, value in labels.items():
        if not isinstance(value, str):
            raise MalformedResponse(f"label {name!r} in '{field}' is not a string")
    return dict(labels)
