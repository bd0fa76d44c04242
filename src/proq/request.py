"""Request construction for Prometheus HTTP API endpoints.

Builders are pure: they validate caller input and encode parameters, but
never touch the network. Timestamps are sent as Unix epoch seconds and
durations as seconds, both with millisecond precision.
"""

import math
import time
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from urllib.parse import quote, urlencode

from .config import (
    ALERT_MANAGERS_PATH,
    ALERTS_PATH,
    INSTANT_QUERY_PATH,
    LABEL_VALUES_PATH,
    LABELS_PATH,
    RANGE_QUERY_PATH,
    RULES_PATH,
    SERIES_PATH,
    STATUS_CONFIG_PATH,
    STATUS_FLAGS_PATH,
    TARGETS_PATH,
)
from .errors import InvalidQuery, InvalidRequest, InvalidTimeRange, MissingParameter

Instant = datetime | float | int
Duration = timedelta | float | int


class TargetState(str, Enum):
    """Filter for /api/v1/targets."""

    ACTIVE = "active"
    DROPPED = "dropped"
    ANY = "any"


class RuleType(str, Enum):
    """Filter for /api/v1/rules."""

    ALERT = "alert"
    RECORD = "record"


@dataclass(frozen=True)
class QueryRequest:
    """Fully encoded request for one API call.

    Attributes:
        method: HTTP method (GET or POST)
        path: Endpoint path relative to the server root
        params: Encoded (name, value) pairs, in send order
    """

    method: str
    path: str
    params: tuple[tuple[str, str], ...] = ()

    @property
    def query_string(self) -> str:
        """Get params as application/x-www-form-urlencoded text."""
        return urlencode(self.params)


def format_seconds(value: float) -> str:
    """Format seconds with millisecond precision, trimming trailing zeros.

    Examples:
        >>> format_seconds(1609459200.0)
        '1609459200'
        >>> format_seconds(1.5)
        '1.5'
    """
    return f"{value:.3f}".rstrip("0").rstrip(".")


def to_epoch_seconds(instant: Instant) -> float:
    """Convert a datetime or epoch number to epoch seconds.

    Naive datetimes are interpreted as UTC.
    """
    if isinstance(instant, datetime):
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        return instant.timestamp()
    if isinstance(instant, bool) or not isinstance(instant, (int, float)):
        raise TypeError(f"Expected datetime or epoch seconds, got {instant!r}")
    if not math.isfinite(instant):
        raise InvalidTimeRange(f"Timestamp must be finite, got {instant!r}")
    return float(instant)


def to_seconds(duration: Duration) -> float:
    """Convert a timedelta or number of seconds to float seconds."""
    if isinstance(duration, timedelta):
        return duration.total_seconds()
    if isinstance(duration, bool) or not isinstance(duration, (int, float)):
        raise TypeError(f"Expected timedelta or seconds, got {duration!r}")
    if not math.isfinite(duration):
        raise InvalidTimeRange(f"Duration must be finite, got {duration!r}")
    return float(duration)


def validate_query(query: str) -> str:
    """Check that query text is non-empty and safely encodable.

    Raises:
        InvalidQuery: If query is empty, blank, contains NUL or is not
            representable as UTF-8
    """
    if not isinstance(query, str) or not query.strip():
        raise InvalidQuery("Query must be a non-empty string")
    if "\x00" in query:
        raise InvalidQuery("Query contains a NUL character")
    try:
        query.encode("utf-8")
    except UnicodeEncodeError as e:
        raise InvalidQuery(f"Query cannot be encoded as UTF-8: {e.reason}") from e
    return query


def _timeout_param(timeout: float | None) -> list[tuple[str, str]]:
    if timeout is None:
        return []
    text = format_seconds(timeout)
    if float(text) <= 0:
        raise InvalidRequest(f"Timeout must be at least 1ms, got {timeout!r}")
    return [("timeout", text)]


def _check_order(start: float, end: float):
    if start > end:
        raise InvalidTimeRange(
            f"Start {format_seconds(start)} is after end {format_seconds(end)}"
        )


def build_instant(
    query: str,
    time: Instant | None = None,
    timeout: float | None = None,
) -> QueryRequest:
    """Build an instant query request for /api/v1/query.

    Args:
        query: PromQL expression
        time: Evaluation instant; server uses its current time when omitted
        timeout: Server-side evaluation timeout in seconds

    Returns:
        GET QueryRequest with query, time and timeout params
    """
    params = [("query", validate_query(query))]
    if time is not None:
        params.append(("time", format_seconds(to_epoch_seconds(time))))
    params.extend(_timeout_param(timeout))
    return QueryRequest("GET", INSTANT_QUERY_PATH, tuple(params))


def build_range(
    query: str,
    start: Instant | None = None,
    end: Instant | None = None,
    step: Duration | None = None,
    timeout: float | None = None,
    now: float | None = None,
) -> QueryRequest:
    """Build a range query request for /api/v1/query_range.

    End defaults to now and start defaults to one step before end.

    Args:
        query: PromQL expression
        start: Range start instant
        end: Range end instant
        step: Resolution step (required)
        timeout: Server-side evaluation timeout in seconds
        now: Current epoch seconds used for a missing end (default: time.time())

    Returns:
        GET QueryRequest with query, start, end, step and timeout params

    Raises:
        InvalidQuery: If query is empty or not encodable
        MissingParameter: If step is omitted
        InvalidTimeRange: If step is under 1ms or start is after end
    """
    validate_query(query)
    if step is None:
        raise MissingParameter("step")

    step_seconds = to_seconds(step)
    step_text = format_seconds(step_seconds)
    if float(step_text) <= 0:
        raise InvalidTimeRange(f"Step must be at least 1ms, got {step_seconds}")

    if end is not None:
        end_seconds = to_epoch_seconds(end)
    else:
        end_seconds = now if now is not None else time.time()

    if start is not None:
        start_seconds = to_epoch_seconds(start)
    else:
        start_seconds = end_seconds - step_seconds

    _check_order(start_seconds, end_seconds)

    params = [
        ("query", query),
        ("start", format_seconds(start_seconds)),
        ("end", format_seconds(end_seconds)),
        ("step", step_text),
    ]
    params.extend(_timeout_param(timeout))
    return QueryRequest("GET", RANGE_QUERY_PATH, tuple(params))


def build_series(
    selectors: Iterable[str],
    start: Instant | None = None,
    end: Instant | None = None,
) -> QueryRequest:
    """Build a series lookup request for /api/v1/series.

    Selectors are sent form-encoded as repeated match[] params in a POST
    body so long selector lists do not hit URL length limits.
    """
    selectors = [validate_query(s) for s in selectors]
    if not selectors:
        raise MissingParameter("match[]")

    params = [("match[]", s) for s in selectors]
    start_seconds = to_epoch_seconds(start) if start is not None else None
    end_seconds = to_epoch_seconds(end) if end is not None else None
    if start_seconds is not None and end_seconds is not None:
        _check_order(start_seconds, end_seconds)
    if start_seconds is not None:
        params.append(("start", format_seconds(start_seconds)))
    if end_seconds is not None:
        params.append(("end", format_seconds(end_seconds)))
    return QueryRequest("POST", SERIES_PATH, tuple(params))


def build_label_names() -> QueryRequest:
    return QueryRequest("GET", LABELS_PATH)


def build_label_values(label_name: str) -> QueryRequest:
    """Build a request for /api/v1/label/<name>/values."""
    if not isinstance(label_name, str) or not label_name:
        raise MissingParameter("label_name")
    return QueryRequest(
        "GET", LABEL_VALUES_PATH.format(name=quote(label_name, safe=""))
    )


def build_targets(state: TargetState | None = None) -> QueryRequest:
    params = () if state is None else (("state", TargetState(state).value),)
    return QueryRequest("GET", TARGETS_PATH, params)


def build_rules(rule_type: RuleType | None = None) -> QueryRequest:
    params = () if rule_type is None else (("type", RuleType(rule_type).value),)
    return QueryRequest("GET", RULES_PATH, params)


def build_alerts() -> QueryRequest:
    return QueryRequest("GET", ALERTS_PATH)


def build_alert_managers() -> QueryRequest:
    return QueryRequest("GET", ALERT_MANAGERS_PATH)


def build_config() -> QueryRequest:
    return QueryRequest("GET", STATUS_CONFIG_PATH)


def build_flags() -> QueryRequest:
    return QueryRequest("GET", STATUS_FLAGS_PATH)
