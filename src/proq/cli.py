import asyncio
import re
from datetime import datetime, timedelta

import click
from rich.console import Console

from .client import ProqClient
from .config import ClientConfig, Protocol, logger
from .errors import ProqError
from .render import render_payload, render_series, render_strings

# Prometheus duration units, longest suffix first so "ms" wins over "m"
_DURATION_UNITS = {
    "y": 365 * 24 * 3600,
    "w": 7 * 24 * 3600,
    "d": 24 * 3600,
    "h": 3600,
    "ms": 0.001,
    "m": 60,
    "s": 1,
}
_DURATION_RE = re.compile(r"(\d+)(ms|[ywdhms])")


def parse_duration(text: str) -> timedelta:
    """Parse seconds ("15", "1.5") or a Prometheus duration ("1m30s", "500ms")."""
    try:
        return timedelta(seconds=float(text))
    except (ValueError, OverflowError):
        pass

    matches = list(_DURATION_RE.finditer(text))
    if not matches or "".join(m.group(0) for m in matches) != text:
        raise ValueError(f"invalid duration {text!r}")
    return timedelta(
        seconds=sum(int(m.group(1)) * _DURATION_UNITS[m.group(2)] for m in matches)
    )


def parse_instant(text: str) -> datetime | float:
    """Parse epoch seconds or an ISO 8601 timestamp."""
    try:
        return float(text)
    except ValueError:
        pass
    return datetime.fromisoformat(text.replace("Z", "+00:00"))


class InstantType(click.ParamType):
    name = "time"

    def convert(self, value, param, ctx):
        if isinstance(value, (datetime, float, int)):
            return value
        try:
            return parse_instant(value)
        except ValueError:
            self.fail(f"{value!r} is not epoch seconds or an ISO 8601 time", param, ctx)


class DurationType(click.ParamType):
    name = "duration"

    def convert(self, value, param, ctx):
        if isinstance(value, timedelta):
            return value
        try:
            return parse_duration(value)
        except ValueError:
            self.fail(f"{value!r} is not seconds or a duration like 15s", param, ctx)


INSTANT = InstantType()
DURATION = DurationType()


def _run(config: ClientConfig, operation):
    """Run one client operation, reporting proq errors and exiting 1."""

    async def run_operation():
        client = ProqClient.from_config(config)
        return await operation(client)

    try:
        return asyncio.run(run_operation())
    except ProqError as e:
        logger.error(f"{type(e).__name__}: {e}")
        raise SystemExit(1) from e


@click.group()
@click.option("--address", default=None, help="Prometheus host:port (env: PROQ_ADDRESS).")
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Query timeout in seconds (env: PROQ_TIMEOUT).",
)
@click.option(
    "--protocol",
    type=click.Choice([p.value for p in Protocol]),
    default=None,
    help="URL scheme (env: PROQ_PROTOCOL, default: https).",
)
@click.pass_context
def main(ctx, address, timeout, protocol):
    """Proq CLI tool for querying the Prometheus HTTP API."""
    try:
        config = ClientConfig.from_env()
    except ValueError as e:
        raise click.UsageError(f"Invalid PROQ_* environment setting: {e}") from e

    ctx.obj = ClientConfig(
        address=address or config.address,
        timeout=timeout if timeout is not None else config.timeout,
        protocol=Protocol(protocol) if protocol else config.protocol,
    )


@main.command()
@click.argument("expression")
@click.option("--time", "eval_time", type=INSTANT, default=None, help="Evaluation time.")
@click.pass_obj
def query(config: ClientConfig, expression: str, eval_time):
    """Evaluate an instant query."""
    payload = _run(config, lambda client: client.instant_query(expression, eval_time))
    Console().print(render_payload(payload))


@main.command(name="range")
@click.argument("expression")
@click.option("--start", type=INSTANT, default=None, help="Range start (default: end - step).")
@click.option("--end", type=INSTANT, default=None, help="Range end (default: now).")
@click.option("--step", type=DURATION, required=True, help="Resolution step, e.g. 15s.")
@click.pass_obj
def range_(config: ClientConfig, expression: str, start, end, step):
    """Evaluate a range query."""
    payload = _run(
        config, lambda client: client.range_query(expression, start, end, step)
    )
    Console().print(render_payload(payload))


@main.command()
@click.argument("label_name", required=False)
@click.pass_obj
def labels(config: ClientConfig, label_name: str | None):
    """List label names, or the values of one label."""
    if label_name:
        values = _run(config, lambda client: client.label_values(label_name))
        Console().print(render_strings(label_name, values))
    else:
        names = _run(config, lambda client: client.label_names())
        Console().print(render_strings("labels", names))


@main.command()
@click.argument("selectors", nargs=-1, required=True)
@click.option("--start", type=INSTANT, default=None, help="Only series active after.")
@click.option("--end", type=INSTANT, default=None, help="Only series active before.")
@click.pass_obj
def series(config: ClientConfig, selectors: tuple[str, ...], start, end):
    """List series matching the given selectors."""
    label_sets = _run(config, lambda client: client.series(selectors, start, end))
    Console().print(render_series(label_sets))


if __name__ == "__main__":
    main()
