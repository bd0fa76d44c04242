"""Async client for the Prometheus HTTP query API."""

import asyncio
from collections.abc import Callable, Iterable
from datetime import timedelta
from typing import Any, TypeVar
from urllib.parse import urlsplit

from . import parser, request
from .config import ClientConfig, Protocol, logger
from .errors import InvalidAddress, QueryTimeout
from .models import (
    Alert,
    AlertManagers,
    Matrix,
    ResultPayload,
    RuleGroup,
    Scalar,
    StringResult,
    Targets,
    Vector,
)
from .request import Duration, Instant, QueryRequest, RuleType, TargetState
from .transport import HttpxTransport, Transport, TransportResponse

T = TypeVar("T")


def validate_address(address: str) -> str:
    """Check that address is a connectable host[:port] without scheme.

    Examples:
        >>> validate_address("localhost:9090")
        'localhost:9090'

    Raises:
        InvalidAddress: If address is empty, carries a scheme, path,
            query or credentials, or has an invalid port
    """
    if not isinstance(address, str) or not address.strip():
        raise InvalidAddress(address, "address is empty")
    if "://" in address:
        raise InvalidAddress(address, "expected host:port without a scheme")
    if any(c.isspace() for c in address):
        raise InvalidAddress(address, "address contains whitespace")
    if any(c in address for c in "/?#"):
        raise InvalidAddress(address, "unexpected path, query or fragment")

    try:
        parts = urlsplit(f"//{address}")
        port = parts.port
    except ValueError as e:
        raise InvalidAddress(address, f"cannot parse host and port ({e})") from e

    if parts.path or parts.query or parts.fragment:
        raise InvalidAddress(address, "unexpected path, query or fragment")
    if parts.username is not None or parts.password is not None:
        raise InvalidAddress(address, "credentials are not supported")
    if not parts.hostname:
        raise InvalidAddress(address, "missing host")
    if port == 0:
        raise InvalidAddress(address, "port must be between 1 and 65535")
    return address


def _validate_timeout(timeout: float | timedelta | None) -> float | None:
    if timeout is None:
        return None
    seconds = request.to_seconds(timeout)
    if float(request.format_seconds(seconds)) <= 0:
        raise ValueError(f"Timeout must be positive, got {timeout!r}")
    return seconds


def _describe(payload: ResultPayload) -> str:
    if isinstance(payload, Vector):
        return f"{len(payload.samples)} series"
    if isinstance(payload, Matrix):
        points = sum(len(s.samples) for s in payload.series)
        return f"{len(payload.series)} series, {points} data point(s)"
    if isinstance(payload, (Scalar, StringResult)):
        return payload.result_type
    return type(payload).__name__


class ProqClient:
    """Prometheus query client.

    The client holds only immutable configuration, so one instance can be
    shared by any number of concurrent queries. Each call makes exactly one
    transport attempt; retries are left to the caller.

    Examples:
        >>> client = ProqClient("localhost:9090", timeout=5.0, protocol="http")
        >>> payload = await client.instant_query("up")
    """

    def __init__(
        self,
        address: str,
        timeout: float | timedelta | None = None,
        protocol: Protocol | str = Protocol.HTTPS,
        transport: Transport | None = None,
    ):
        """Initialize client without performing any network I/O.

        Args:
            address: host:port of the Prometheus server (e.g., localhost:9090)
            timeout: Per-query timeout in seconds, or None for no limit
            protocol: "http" or "https" (default: https)
            transport: Transport to send requests with (default: HttpxTransport)

        Raises:
            InvalidAddress: If address is not a usable host[:port]
            ValueError: If timeout is not positive or protocol is unknown
        """
        self.config = ClientConfig(
            address=validate_address(address),
            timeout=_validate_timeout(timeout),
            protocol=Protocol(protocol),
        )
        if transport is None:
            transport = HttpxTransport(self.config.base_url)
        self._transport = transport

    @classmethod
    def from_config(
        cls, config: ClientConfig, transport: Transport | None = None
    ) -> "ProqClient":
        return cls(
            config.address,
            timeout=config.timeout,
            protocol=config.protocol,
            transport=transport,
        )

    async def _send(self, req: QueryRequest) -> TransportResponse:
        """Send a request once, cancelling it when the timeout expires."""
        logger.debug(f"Prometheus {req.method} {req.path}?{req.query_string}")
        timeout = self.config.timeout
        try:
            return await asyncio.wait_for(
                self._transport.send(req.method, req.path, req.params, timeout),
                timeout=timeout,
            )
        except asyncio.TimeoutError as e:
            raise QueryTimeout(timeout) from e

    async def _fetch(self, req: QueryRequest, decoder: Callable[[Any], T]) -> T:
        response = await self._send(req)
        data, warnings = parser.read_envelope(response.body, response.status_code)
        if warnings:
            logger.debug(f"Prometheus warnings: {'; '.join(warnings)}")
        return parser.decode(decoder, data, response.status_code)

    async def _query(self, req: QueryRequest) -> ResultPayload:
        response = await self._send(req)
        envelope = parser.parse(response.body, response.status_code)
        if envelope.warnings:
            logger.debug(f"Prometheus warnings: {'; '.join(envelope.warnings)}")
        logger.debug(f"Query successful: {_describe(envelope.payload)}")
        return envelope.payload

    async def instant_query(
        self, query: str, time: Instant | None = None
    ) -> ResultPayload:
        """Evaluate query at a single instant via /api/v1/query.

        Args:
            query: PromQL expression
            time: Evaluation instant (datetime or epoch seconds); server
                time when omitted

        Returns:
            Scalar, Vector, Matrix or StringResult payload

        Raises:
            InvalidQuery: If query is empty or not encodable
            QueryTimeout: If no response arrived within the timeout
            ConnectionFailure: If the server could not be reached
            MalformedResponse: If the body is not a valid envelope
            UnknownResultType: If resultType is not recognized
            InvalidSample: If a sample cannot be decoded
            ServerReportedError: If Prometheus returned an error envelope
        """
        req = request.build_instant(query, time, timeout=self.config.timeout)
        return await self._query(req)

    async def range_query(
        self,
        query: str,
        start: Instant | None = None,
        end: Instant | None = None,
        step: Duration | None = None,
    ) -> ResultPayload:
        """Evaluate query over a time range via /api/v1/query_range.

        Args:
            query: PromQL expression
            start: Range start; defaults to one step before end
            end: Range end; defaults to now
            step: Resolution step as timedelta or seconds (required)

        Returns:
            Result payload, normally a Matrix

        Raises:
            MissingParameter: If step is omitted (no request is sent)
            InvalidTimeRange: If start is after end or step is not positive
                (no request is sent)
            Plus every error instant_query() can raise.
        """
        req = request.build_range(
            query, start, end, step, timeout=self.config.timeout
        )
        return await self._query(req)

    async def series(
        self,
        selectors: Iterable[str],
        start: Instant | None = None,
        end: Instant | None = None,
    ) -> tuple[dict[str, str], ...]:
        """Find label sets of series matching any of the selectors."""
        req = request.build_series(selectors, start, end)
        return await self._fetch(req, parser.decode_series)

    async def label_names(self) -> tuple[str, ...]:
        req = request.build_label_names()
        return await self._fetch(req, parser.decode_string_list)

    async def label_values(self, label_name: str) -> tuple[str, ...]:
        req = request.build_label_values(label_name)
        return await self._fetch(req, parser.decode_string_list)

    async def targets(self, state: TargetState | None = None) -> Targets:
        """List scrape targets, optionally filtered by state."""
        req = request.build_targets(state)
        return await self._fetch(req, parser.decode_targets)

    async def rules(self, rule_type: RuleType | None = None) -> tuple[RuleGroup, ...]:
        """List rule groups, optionally only alerting or recording rules."""
        req = request.build_rules(rule_type)
        return await self._fetch(req, parser.decode_rules)

    async def alerts(self) -> tuple[Alert, ...]:
        req = request.build_alerts()
        return await self._fetch(req, parser.decode_alerts)

    async def alert_managers(self) -> AlertManagers:
        req = request.build_alert_managers()
        return await self._fetch(req, parser.decode_alert_managers)

    async def config_yaml(self) -> str:
        """Get the server's loaded configuration file as YAML text."""
        req = request.build_config()
        return await self._fetch(req, parser.decode_config)

    async def flags(self) -> dict[str, str]:
        req = request.build_flags()
        return await self._fetch(req, parser.decode_flags)
