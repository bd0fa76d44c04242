"""Rich tables for printing query results in the terminal."""

import math
from collections.abc import Iterable
from datetime import datetime, timezone

from rich.markup import escape
from rich.table import Table

from .models import Labels, Matrix, ResultPayload, Scalar, StringResult, Vector


def format_labels(labels: Labels) -> str:
    """Format a label set the way PromQL prints series.

    Examples:
        >>> format_labels({"__name__": "up", "job": "node"})
        'up{job="node"}'
    """
    name = labels.get("__name__", "")
    pairs = ", ".join(
        f'{key}="{value}"' for key, value in labels.items() if key != "__name__"
    )
    if not pairs:
        return name or "{}"
    return f"{name}{{{pairs}}}"


def format_value(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    return str(int(value)) if value.is_integer() else repr(value)


def format_timestamp(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


def render_payload(payload: ResultPayload) -> Table:
    """Build a table for any query result payload.

    Vectors get one row per series, matrices one row per sample.
    """
    table = Table(title=payload.result_type, show_header=True)

    if isinstance(payload, Scalar):
        table.add_column("TIME")
        table.add_column("VALUE", justify="right")
        table.add_row(
            format_timestamp(payload.sample.timestamp),
            format_value(payload.sample.value),
        )
    elif isinstance(payload, StringResult):
        table.add_column("TIME")
        table.add_column("VALUE")
        table.add_row(format_timestamp(payload.timestamp), escape(payload.value))
    elif isinstance(payload, Vector):
        table.add_column("SERIES")
        table.add_column("TIME")
        table.add_column("VALUE", justify="right")
        for item in payload.samples:
            table.add_row(
                escape(format_labels(item.labels)),
                format_timestamp(item.sample.timestamp),
                format_value(item.sample.value),
            )
    elif isinstance(payload, Matrix):
        table.add_column("SERIES")
        table.add_column("TIME")
        table.add_column("VALUE", justify="right")
        for series in payload.series:
            name = escape(format_labels(series.labels))
            for sample in series.samples:
                table.add_row(
                    name,
                    format_timestamp(sample.timestamp),
                    format_value(sample.value),
                )

    if table.row_count == 0:
        table.add_row(*(["-"] * len(table.columns)))
    return table


def render_strings(title: str, items: Iterable[str]) -> Table:
    table = Table(title=escape(title), show_header=False)
    table.add_column(title)
    for item in items:
        table.add_row(escape(item))
    return table


def render_series(label_sets: Iterable[dict[str, str]]) -> Table:
    return render_strings("series", (format_labels(labels) for labels in label_sets))
