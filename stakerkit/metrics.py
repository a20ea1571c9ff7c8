"""Configuration of the metrics server."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass

DEFAULT_METRICS_SERVER_PORT = 2112
DEFAULT_METRICS_HOST = "127.0.0.1"


def _is_ip(text: str) -> bool:
    if not text or "%" in text:
        return False
    try:
        ipaddress.ip_address(text)
    except ValueError:
        return False
    return True


@dataclass
class MetricsConfig:
    """Where the metrics server listens and whether it runs at all."""

    enabled: bool = False
    host: str = DEFAULT_METRICS_HOST
    server_port: int = DEFAULT_METRICS_SERVER_PORT

    def validate(self) -> None:
        """Raise ValueError if the port or host is not usable."""
        if self.server_port < 0 or self.server_port > 65535:
            raise ValueError(f"invalid port: {self.server_port}")
        if not _is_ip(self.host):
            raise ValueError(f"invalid host: {self.host}")


def default_metrics_config() -> MetricsConfig:
    """Return the default metrics configuration (disabled)."""
    return MetricsConfig()