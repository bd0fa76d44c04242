"""Async client for the Prometheus HTTP query API."""

from .client import ProqClient
from .config import ClientConfig, Protocol
from .errors import (
    ConnectionFailure,
    InvalidAddress,
    InvalidQuery,
    InvalidRequest,
    InvalidSample,
    InvalidTimeRange,
    MalformedResponse,
    MissingParameter,
    ProqError,
    QueryTimeout,
    ResponseError,
    ServerReportedError,
    TransportFailure,
    UnknownResultType,
)
from .models import (
    InstantSample,
    LabeledSeries,
    Matrix,
    ResultPayload,
    Sample,
    Scalar,
    StringResult,
    Vector,
)
from .request import RuleType, TargetState

__all__ = [
    "ClientConfig",
    "ConnectionFailure",
    "InstantSample",
    "InvalidAddress",
    "InvalidQuery",
    "InvalidRequest",
    "InvalidSample",
    "InvalidTimeRange",
    "LabeledSeries",
    "MalformedResponse",
    "Matrix",
    "MissingParameter",
    "ProqClient",
    "ProqError",
    "Protocol",
    "QueryTimeout",
    "ResponseError",
    "ResultPayload",
    "RuleType",
    "Sample",
    "Scalar",
    "ServerReportedError",
    "StringResult",
    "TargetState",
    "TransportFailure",
    "UnknownResultType",
    "Vector",
]
