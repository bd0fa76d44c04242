"""Exception hierarchy raised by the proq client.

Every failure a query can hit is one of these types. Input problems are raised
before any request goes out; transport, response and server errors are raised
after it.
"""

from typing import Any


class ProqError(Exception):
    """Base class for all proq errors."""


class InvalidAddress(ProqError, ValueError):
    """Raised when the server address is not a usable host[:port]."""

    def __init__(self, address: str, reason: str):
        self.address = address
        self.reason = reason
        super().__init__(f"Invalid address {address!r}: {reason}")


class InvalidRequest(ProqError, ValueError):
    """Raised when caller input cannot form a valid query request."""


class InvalidQuery(InvalidRequest):
    """Raised when query text is empty or cannot be encoded."""


class MissingParameter(InvalidRequest):
    """Raised when a required request parameter was not supplied."""

    def __init__(self, parameter: str):
        self.parameter = parameter
        super().__init__(f"Missing required parameter: {parameter}")


class InvalidTimeRange(InvalidRequest):
    """Raised when range bounds or step are inconsistent."""


class TransportFailure(ProqError):
    """Base class for failures delivering the request."""


class QueryTimeout(TransportFailure):
    """Raised when no response arrived within the configured timeout."""

    def __init__(self, timeout: float | None, detail: str = ""):
        self.timeout = timeout
        message = f"Query timed out after {timeout}s"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class ConnectionFailure(TransportFailure):
    """Raised on connection-level errors (DNS, refused, reset)."""


class ResponseError(ProqError):
    """Base class for response bodies the client cannot interpret.

    Attributes:
        status_code: HTTP status of the response, when known
    """

    status_code: int | None = None

    def __str__(self) -> str:
        message = super().__str__()
        if self.status_code is not None:
            message = f"{message} (HTTP {self.status_code})"
        return message


class MalformedResponse(ResponseError):
    """Raised when the body is not a well-formed API envelope."""

    def __init__(self, detail: str, status_code: int | None = None):
        self.detail = detail
        self.status_code = status_code
        super().__init__(f"Malformed response: {detail}")


class UnknownResultType(ResponseError):
    """Raised when data.resultType is not scalar, vector, matrix or string."""

    def __init__(self, result_type: Any):
        self.result_type = result_type
        super().__init__(f"Unknown result type: {result_type!r}")


class InvalidSample(ResponseError):
    """Raised when a sample timestamp or value cannot be decoded."""

    def __init__(self, value: Any, detail: str = "invalid sample value"):
        self.value = value
        self.detail = detail
        super().__init__(f"{detail}: {value!r}")


class ServerReportedError(ProqError):
    """Raised when Prometheus answers with status "error".

    Attributes:
        kind: errorType field (e.g. bad_data, timeout, execution)
        message: error field as sent by the server
        status_code: HTTP status of the response, when known
        warnings: warnings attached to the error envelope
    """

    def __init__(
        self,
        kind: str,
        message: str,
        status_code: int | None = None,
        warnings: tuple[str, ...] = (),
    ):
        self.kind = kind
        self.message = message
        self.status_code = status_code
        self.warnings = warnings
        super().__init__(f"{kind}: {message}")
