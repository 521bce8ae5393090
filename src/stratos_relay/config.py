"""Configuration management for the Stratos relay.

This module provides type-safe configuration dataclasses with validation.
Configuration is loaded once from environment variables and passed explicitly
to the components that need it.
"""

import logging
import os
from dataclasses import dataclass, field
from urllib.parse import urlparse

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ChainConfig:
    """Configuration for the Stratos chain event source.

    Attributes:
        websocket_url: Tendermint RPC websocket endpoint
        p2p_address_prefix: bech32 prefix addresses are re-encoded under
    """

    websocket_url: str = "ws://127.0.0.1:26657/websocket"
    p2p_address_prefix: str = "stsds"

    def __post_init__(self) -> None:
        """Validate chain configuration."""
        parsed = urlparse(self.websocket_url)
        if parsed.scheme not in ('ws', 'wss'):
            raise ValueError(
                f"Invalid websocket URL scheme: {parsed.scheme}. "
                "Expected ws or wss"
            )

        if not self.p2p_address_prefix:
            raise ValueError("P2P address prefix is required (P2P_ADDRESS_PREFIX)")
        if self.p2p_address_prefix != self.p2p_address_prefix.lower():
            raise ValueError(
                f"P2P address prefix must be lowercase, got {self.p2p_address_prefix}"
            )


@dataclass(frozen=True, slots=True)
class SdsConfig:
    """Configuration for the SDS indexing node receiving commands.

    Attributes:
        network_address: Host of the SP node
        api_port: HTTP API port of the SP node
    """

    network_address: str
    api_port: int

    def __post_init__(self) -> None:
        """Validate SP node configuration."""
        if not self.network_address:
            raise ValueError("SP node network address is required (SDS_NETWORK_ADDRESS)")

        if not 0 < self.api_port <= 65535:
            raise ValueError(f"SP node API port out of range, got {self.api_port}")

    @property
    def base_url(self) -> str:
        return f"http://{self.network_address}:{self.api_port}"


@dataclass(frozen=True, slots=True)
class MonitoringConfig:
    """Configuration for forwarding and subscription monitoring."""
    request_timeout: float | None = None  # None keeps the HTTP client default
    max_retries: int = 5  # websocket reconnect attempts
    status_log_interval: int = 60  # seconds between status lines

    def __post_init__(self) -> None:
        """Validate monitoring configuration."""
        if self.request_timeout is not None:
            if self.request_timeout <= 0:
                raise ValueError(f"Request timeout must be positive, got {self.request_timeout}")
            if self.request_timeout > 120:
                raise ValueError(f"Request timeout too long (max 120s), got {self.request_timeout}")

        if self.max_retries < 0:
            raise ValueError(f"Retry count must be non-negative, got {self.max_retries}")
        if self.max_retries > 20:
            raise ValueError(f"Retry count too high (max 20), got {self.max_retries}")

        if self.status_log_interval <= 0:
            raise ValueError(f"Status log interval must be positive, got {self.status_log_interval}")


@dataclass(frozen=True, slots=True)
class RelayConfig:
    """Main configuration for the Stratos relay.

    Attributes:
        chain: Configuration for the chain event source
        sds: Configuration for the SP node API
        monitoring: Configuration for forwarding and reconnects
    """

    chain: ChainConfig
    sds: SdsConfig
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)

    @classmethod
    def from_env(cls) -> "RelayConfig":
        """Load configuration from environment variables.

        Returns:
            RelayConfig instance with loaded values

        Raises:
            ValueError: If required environment variables are missing or invalid
        """
        chain_config = ChainConfig(
            websocket_url=os.environ.get("STRATOS_CHAIN_WS_URL", "ws://127.0.0.1:26657/websocket"),
            p2p_address_prefix=os.environ.get("P2P_ADDRESS_PREFIX", "stsds"),
        )

        network_address = os.environ.get("SDS_NETWORK_ADDRESS", "")
        if not network_address:
            raise ValueError(
                "SDS_NETWORK_ADDRESS environment variable is required. "
                "This is the host of the SP node receiving chain events."
            )

        api_port = os.environ.get("SDS_API_PORT", "")
        if not api_port:
            raise ValueError(
                "SDS_API_PORT environment variable is required. "
                "This is the HTTP API port of the SP node."
            )

        sds_config = SdsConfig(
            network_address=network_address,
            api_port=_parse_int("SDS_API_PORT", api_port),
        )

        request_timeout = os.environ.get("REQUEST_TIMEOUT")
        monitoring_config = MonitoringConfig(
            request_timeout=float(request_timeout) if request_timeout else None,
            max_retries=_parse_int("MAX_RETRIES", os.environ.get("MAX_RETRIES", "5")),
            status_log_interval=_parse_int(
                "STATUS_LOG_INTERVAL", os.environ.get("STATUS_LOG_INTERVAL", "60")
            ),
        )

        return cls(chain=chain_config, sds=sds_config, monitoring=monitoring_config)

    def log_config(self) -> None:
        """Log the configuration in a readable format for debugging."""
        logger.info("=" * 60)
        logger.info("Stratos Relay Configuration")
        logger.info("=" * 60)

        logger.info("Stratos Chain:")
        logger.info(f"  Websocket URL: {self.chain.websocket_url}")
        logger.info(f"  P2P Address Prefix: {self.chain.p2p_address_prefix}")

        logger.info("SP Node:")
        logger.info(f"  API: {self.sds.base_url}")

        logger.info("Monitoring Settings:")
        timeout = f"{self.monitoring.request_timeout} seconds" if self.monitoring.request_timeout else "client default"
        logger.info(f"  Request Timeout: {timeout}")
        logger.info(f"  Max Retries: {self.monitoring.max_retries}")
        logger.info(f"  Status Log Interval: {self.monitoring.status_log_interval} seconds")

        logger.info("=" * 60)


def _parse_int(name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None
