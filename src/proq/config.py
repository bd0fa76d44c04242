import logging
import os
from dataclasses import dataclass
from enum import Enum

import coloredlogs
from dotenv import dotenv_values

# Configure logger
# Level can be overridden with PROQ_LOG_LEVEL environment variable
logger = logging.getLogger(__name__)

# Install coloredlogs with custom format
coloredlogs.install(
    level=os.getenv("PROQ_LOG_LEVEL", "INFO"),
    logger=logger,
    fmt="%(asctime)s %(name)s %(levelname)s %(message)s",
    datefmt="%H:%M:%S",
)

# Prometheus HTTP API endpoints
INSTANT_QUERY_PATH = "/api/v1/query"
RANGE_QUERY_PATH = "/api/v1/query_range"
SERIES_PATH = "/api/v1/series"
LABELS_PATH = "/api/v1/labels"
LABEL_VALUES_PATH = "/api/v1/label/{name}/values"
TARGETS_PATH = "/api/v1/targets"
RULES_PATH = "/api/v1/rules"
ALERTS_PATH = "/api/v1/alerts"
ALERT_MANAGERS_PATH = "/api/v1/alertmanagers"
STATUS_CONFIG_PATH = "/api/v1/status/config"
STATUS_FLAGS_PATH = "/api/v1/status/flags"

# Sample value tokens Prometheus uses for non-finite floats
NAN_TOKEN = "NaN"
INFINITY_TOKENS = ("Inf", "+Inf")
NEGATIVE_INFINITY_TOKEN = "-Inf"

# Client defaults
DEFAULT_ADDRESS = "localhost:9090"


class Protocol(str, Enum):
    """URL scheme used to reach the Prometheus server."""

    HTTP = "http"
    HTTPS = "https"


@dataclass(frozen=True)
class ClientConfig:
    """Connection settings for a ProqClient.

    Attributes:
        address: host:port of the Prometheus server, without scheme
        timeout: Per-query timeout in seconds, or None for no limit
        protocol: URL scheme (default: https)
    """

    address: str = DEFAULT_ADDRESS
    timeout: float | None = None
    protocol: Protocol = Protocol.HTTPS

    @classmethod
    def from_env(cls, env_file: str | None = ".env") -> "ClientConfig":
        """Build configuration from the environment.

        Lookup order:
        1. Process environment (PROQ_ADDRESS, PROQ_TIMEOUT, PROQ_PROTOCOL)
        2. Values stored in env_file, when present
        3. Defaults (localhost:9090, no timeout, https)

        Returns:
            ClientConfig with resolved settings

        Raises:
            ValueError: If PROQ_TIMEOUT or PROQ_PROTOCOL is not parseable
        """
        stored = dotenv_values(env_file) if env_file else {}

        def lookup(key: str) -> str | None:
            value = os.getenv(key)
            if value is None:
                value = stored.get(key)
            return value or None

        timeout = lookup("PROQ_TIMEOUT")
        protocol = lookup("PROQ_PROTOCOL")

        return cls(
            address=lookup("PROQ_ADDRESS") or DEFAULT_ADDRESS,
            timeout=float(timeout) if timeout is not None else None,
            protocol=Protocol(protocol.lower()) if protocol else Protocol.HTTPS,
        )

    @property
    def base_url(self) -> str:
        """Get the server base URL (e.g., https://localhost:9090)."""
        return f"{self.protocol.value}://{self.address}"
