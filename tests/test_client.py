"""Tests for ProqClient orchestration."""

import asyncio
import json
import math
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from proq.client import ProqClient, validate_address
from proq.config import ClientConfig, Protocol
from proq.errors import (
    ConnectionFailure,
    InvalidAddress,
    InvalidQuery,
    InvalidSample,
    InvalidTimeRange,
    MalformedResponse,
    MissingParameter,
    QueryTimeout,
    ServerReportedError,
    UnknownResultType,
)
from proq.models import InstantSample, Matrix, Sample, Scalar, Vector
from proq.transport import HttpxTransport, TransportResponse


def success(result_type, result):
    return TransportResponse(
        200,
        json.dumps(
            {"status": "success", "data": {"resultType": result_type, "result": result}}
        ).encode(),
    )


def mock_transport(response):
    """Transport whose send() returns the given response."""
    transport = AsyncMock()
    transport.send = AsyncMock(return_value=response)
    return transport


class TestConstruction:
    """Test suite for client construction."""

    @pytest.mark.parametrize(
        "address",
        ["localhost:9090", "prometheus", "10.0.0.1:80", "[::1]:9090", "prom.example.com:443"],
    )
    def test_valid_addresses(self, address):
        """Test host[:port] forms are accepted."""
        client = ProqClient(address)
        assert client.config.address == address

    @pytest.mark.parametrize(
        "address",
        [
            "",
            "   ",
            "http://localhost:9090",
            "localhost:port",
            "localhost:70000",
            "localhost:0",
            "localhost:9090/prometheus",
            "localhost:9090?x=1",
            "localhost:9090?",
            "localhost:9090#",
            "localhost:9090/",
            "user:pass@localhost:9090",
            ":9090",
            "[::1:9090",
            "local host:9090",
            None,
        ],
    )
    def test_invalid_addresses(self, address):
        """Test malformed addresses raise InvalidAddress."""
        with pytest.raises(InvalidAddress):
            ProqClient(address)

    def test_defaults(self):
        """Test default protocol and timeout."""
        client = ProqClient("localhost:9090")
        assert client.config == ClientConfig("localhost:9090", None, Protocol.HTTPS)
        assert isinstance(client._transport, HttpxTransport)
        assert client._transport.base_url == "https://localhost:9090"

    def test_http_protocol_from_string(self):
        """Test protocol accepts plain strings."""
        client = ProqClient("localhost:9090", timeout=5, protocol="http")
        assert client.config.protocol is Protocol.HTTP
        assert client.config.timeout == 5.0  # noqa: PLR2004
        assert client._transport.base_url == "http://localhost:9090"

    @pytest.mark.parametrize("timeout", [0, -1.0, 0.0004])
    def test_non_positive_timeout(self, timeout):
        """Test timeouts that encode as zero or less are rejected."""
        with pytest.raises(ValueError, match="Timeout"):
            ProqClient("localhost:9090", timeout=timeout)

    def test_from_config(self):
        """Test construction from a ClientConfig."""
        config = ClientConfig("prom:9090", 2.5, Protocol.HTTP)
        client = ProqClient.from_config(config)
        assert client.config == config

    def test_no_network_io_on_construction(self):
        """Test constructing a client does not open an HTTP client."""
        with patch("httpx.AsyncClient") as mock_client:
            ProqClient("localhost:9090")
        mock_client.assert_not_called()

    def test_validate_address_returns_input(self):
        """Test validate_address passes valid input through."""
        assert validate_address("localhost:9090") == "localhost:9090"


class TestInstantQuery:
    """Test suite for instant queries."""

    @pytest.mark.asyncio
    async def test_vector_result(self):
        """Test instant query returns a decoded vector."""
        transport = mock_transport(
            success("vector", [{"metric": {"job": "node"}, "value": [1609459200, "1"]}])
        )
        client = ProqClient("localhost:9090", transport=transport)

        payload = await client.instant_query("up", 1609459200)

        assert payload == Vector(
            (InstantSample({"job": "node"}, Sample(1609459200.0, 1.0)),)
        )
        transport.send.assert_awaited_once_with(
            "GET",
            "/api/v1/query",
            (("query", "up"), ("time", "1609459200")),
            None,
        )

    @pytest.mark.asyncio
    async def test_timeout_forwarded(self):
        """Test configured timeout reaches transport and query params."""
        transport = mock_transport(success("scalar", [1, "2"]))
        client = ProqClient("localhost:9090", timeout=5.0, transport=transport)

        payload = await client.instant_query("1 + 1")

        assert payload == Scalar(Sample(1.0, 2.0))
        method, path, params, timeout = transport.send.await_args.args
        assert ("timeout", "5") in params
        assert timeout == 5.0  # noqa: PLR2004

    @pytest.mark.asyncio
    async def test_scalar_nan(self):
        """Test NaN scalar is returned, not rejected."""
        client = ProqClient(
            "localhost:9090",
            transport=mock_transport(success("scalar", [1609459200, "NaN"])),
        )
        payload = await client.instant_query("0/0")
        assert math.isnan(payload.sample.value)

    @pytest.mark.asyncio
    async def test_empty_query_sends_nothing(self):
        """Test invalid query fails before the transport is used."""
        transport = mock_transport(success("vector", []))
        client = ProqClient("localhost:9090", transport=transport)

        with pytest.raises(InvalidQuery):
            await client.instant_query("")
        transport.send.assert_not_called()

    @pytest.mark.asyncio
    async def test_server_error(self):
        """Test error envelope surfaces as ServerReportedError with status."""
        body = b'{"status":"error","errorType":"bad_data","error":"parse error"}'
        client = ProqClient(
            "localhost:9090", transport=mock_transport(TransportResponse(400, body))
        )

        with pytest.raises(ServerReportedError) as exc_info:
            await client.instant_query("up(")

        assert exc_info.value.kind == "bad_data"
        assert exc_info.value.message == "parse error"
        assert exc_info.value.status_code == 400  # noqa: PLR2004

    @pytest.mark.asyncio
    async def test_gateway_html_is_malformed(self):
        """Test non-JSON error pages raise MalformedResponse with status."""
        client = ProqClient(
            "localhost:9090",
            transport=mock_transport(TransportResponse(502, b"<html>Bad Gateway</html>")),
        )

        with pytest.raises(MalformedResponse) as exc_info:
            await client.instant_query("up")
        assert exc_info.value.status_code == 502  # noqa: PLR2004

    @pytest.mark.asyncio
    async def test_unknown_result_type(self):
        """Test unknown result types are reported, not emptied."""
        client = ProqClient(
            "localhost:9090", transport=mock_transport(success("histogram", []))
        )
        with pytest.raises(UnknownResultType):
            await client.instant_query("up")

    @pytest.mark.asyncio
    async def test_invalid_sample(self):
        """Test undecodable sample values raise InvalidSample."""
        client = ProqClient(
            "localhost:9090", transport=mock_transport(success("scalar", [1, "one"]))
        )
        with pytest.raises(InvalidSample):
            await client.instant_query("up")

    @pytest.mark.asyncio
    async def test_connection_failure_propagates(self):
        """Test transport connection errors reach the caller unchanged."""
        transport = AsyncMock()
        transport.send = AsyncMock(side_effect=ConnectionFailure("refused"))
        client = ProqClient("localhost:9090", transport=transport)

        with pytest.raises(ConnectionFailure):
            await client.instant_query("up")
        transport.send.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_no_retry_after_failure(self):
        """Test a failed call makes exactly one transport attempt."""
        transport = AsyncMock()
        transport.send = AsyncMock(side_effect=QueryTimeout(1.0))
        client = ProqClient("localhost:9090", timeout=1.0, transport=transport)

        with pytest.raises(QueryTimeout):
            await client.instant_query("up")
        assert transport.send.await_count == 1

    @pytest.mark.asyncio
    async def test_hanging_transport_times_out_and_is_cancelled(self):
        """Test a transport that never answers is cancelled at the timeout."""
        started = asyncio.Event()
        cancelled = asyncio.Event()

        class HangingTransport:
            async def send(self, method, path, params, timeout):
                started.set()
                try:
                    await asyncio.Event().wait()
                except asyncio.CancelledError:
                    cancelled.set()
                    raise

        client = ProqClient(
            "localhost:9090", timeout=0.05, transport=HangingTransport()
        )

        with pytest.raises(QueryTimeout) as exc_info:
            await client.instant_query("up")

        assert started.is_set()
        assert cancelled.is_set()
        assert exc_info.value.timeout == 0.05  # noqa: PLR2004

    @pytest.mark.asyncio
    async def test_concurrent_queries_are_independent(self):
        """Test concurrent queries on one client each get their own result."""

        class EchoTransport:
            async def send(self, method, path, params, timeout):
                query = dict(params)["query"]
                index = int(query.split("_")[1])
                # Finish in reverse order to interleave the calls
                await asyncio.sleep(0.001 * (20 - index))
                return success(
                    "vector",
                    [{"metric": {"query": query}, "value": [index, str(index)]}],
                )

        client = ProqClient("localhost:9090", transport=EchoTransport())
        queries = [f"metric_{i}" for i in range(20)]

        results = await asyncio.gather(*(client.instant_query(q) for q in queries))

        for i, (query, payload) in enumerate(zip(queries, results)):
            assert payload.samples[0].labels == {"query": query}
            assert payload.samples[0].sample == Sample(float(i), float(i))


class TestRangeQuery:
    """Test suite for range queries."""

    @pytest.mark.asyncio
    async def test_matrix_result(self):
        """Test range query returns a decoded matrix."""
        transport = mock_transport(
            success(
                "matrix",
                [{"metric": {"job": "node"}, "values": [[0, "1"], [15, "2"]]}],
            )
        )
        client = ProqClient("localhost:9090", transport=transport)

        payload = await client.range_query("up", 0, 15, 15)

        assert isinstance(payload, Matrix)
        assert [s.value for s in payload.series[0].samples] == [1.0, 2.0]
        transport.send.assert_awaited_once_with(
            "GET",
            "/api/v1/query_range",
            (("query", "up"), ("start", "0"), ("end", "15"), ("step", "15")),
            None,
        )

    @pytest.mark.asyncio
    async def test_start_after_end_sends_nothing(self):
        """Test start > end raises InvalidTimeRange without a transport call."""
        transport = mock_transport(success("matrix", []))
        client = ProqClient("localhost:9090", transport=transport)

        with pytest.raises(InvalidTimeRange):
            await client.range_query("up", 100, 50, 15)
        transport.send.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_step_sends_nothing(self):
        """Test missing step raises MissingParameter without a transport call."""
        transport = mock_transport(success("matrix", []))
        client = ProqClient("localhost:9090", transport=transport)

        with pytest.raises(MissingParameter):
            await client.range_query("up", 0, 60)
        transport.send.assert_not_called()


class TestMetadata:
    """Test suite for metadata endpoints."""

    @staticmethod
    def client_for(data):
        body = json.dumps({"status": "success", "data": data}).encode()
        transport = mock_transport(TransportResponse(200, body))
        return ProqClient("localhost:9090", transport=transport), transport

    @pytest.mark.asyncio
    async def test_label_names(self):
        """Test label names endpoint."""
        client, transport = self.client_for(["__name__", "job"])
        assert await client.label_names() == ("__name__", "job")
        assert transport.send.await_args.args[1] == "/api/v1/labels"

    @pytest.mark.asyncio
    async def test_label_values(self):
        """Test label values endpoint."""
        client, transport = self.client_for(["node", "prometheus"])
        assert await client.label_values("job") == ("node", "prometheus")
        assert transport.send.await_args.args[1] == "/api/v1/label/job/values"

    @pytest.mark.asyncio
    async def test_series(self):
        """Test series endpoint posts selectors."""
        client, transport = self.client_for([{"__name__": "up", "job": "node"}])
        assert await client.series(["up"]) == ({"__name__": "up", "job": "node"},)
        method, path, params, _ = transport.send.await_args.args
        assert (method, path, params) == ("POST", "/api/v1/series", (("match[]", "up"),))

    @pytest.mark.asyncio
    async def test_decode_error_keeps_status_code(self):
        """Test metadata decode errors carry the response status code."""
        body = json.dumps({"status": "success", "data": [1, 2]}).encode()
        client = ProqClient(
            "localhost:9090", transport=mock_transport(TransportResponse(500, body))
        )

        with pytest.raises(MalformedResponse) as exc_info:
            await client.label_names()
        assert exc_info.value.status_code == 500  # noqa: PLR2004

    @pytest.mark.asyncio
    async def test_flags(self):
        """Test flags endpoint."""
        client, transport = self.client_for({"log.level": "info"})
        assert await client.flags() == {"log.level": "info"}
        assert transport.send.await_args.args[1] == "/api/v1/status/flags"

    @pytest.mark.asyncio
    async def test_config_yaml(self):
        """Test config endpoint."""
        client, _ = self.client_for({"yaml": "global: {}\n"})
        assert await client.config_yaml() == "global: {}\n"

    @pytest.mark.asyncio
    async def test_alerts(self):
        """Test alerts endpoint."""
        client, _ = self.client_for({"alerts": [{"state": "firing", "value": "1"}]})
        alerts = await client.alerts()
        assert alerts[0].state == "firing"

    @pytest.mark.asyncio
    async def test_metadata_server_error(self):
        """Test metadata endpoints raise ServerReportedError too."""
        body = b'{"status":"error","errorType":"unavailable","error":"not ready"}'
        transport = mock_transport(TransportResponse(503, body))
        client = ProqClient("localhost:9090", transport=transport)

        with pytest.raises(ServerReportedError, match="not ready"):
            await client.targets()


@pytest.mark.asyncio
async def test_end_to_end_with_httpx_mock_transport():
    """Test full pipeline through HttpxTransport and httpx.MockTransport."""

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.scheme == "http"
        assert request.url.params["query"] == "up"
        return httpx.Response(
            200,
            json={
                "status": "success",
                "data": {
                    "resultType": "vector",
                    "result": [{"metric": {"job": "prometheus"}, "value": [1, "1"]}],
                },
            },
        )

    client = ProqClient(
        "localhost:9090",
        protocol="http",
        transport=HttpxTransport(
            "http://localhost:9090", http_transport=httpx.MockTransport(handler)
        ),
    )

    payload = await client.instant_query("up")

    assert payload == Vector((InstantSample({"job": "prometheus"}, Sample(1.0, 1.0)),))
