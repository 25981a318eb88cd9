from __future__ import annotations

"""Configuration for the probe client.

This module centralizes the service set, the static endpoint table and the
runtime settings. The settings file is optional; sensible defaults are used
when it is missing, and environment variables override whatever it holds.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple
import json
import os

from pydantic import BaseModel, Field

# Configuration lives next to this file to keep paths predictable
CONFIG_FILE = Path(__file__).resolve().with_name("probe_config.json")


class ServiceName(str, Enum):
    """Services reachable behind the gateway."""

    SERVICE_A = "service-a"
    SERVICE_B = "service-b"

    @classmethod
    def parse(cls, value: object) -> Optional["ServiceName"]:
        """Return the matching member or ``None`` for unknown names."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"


@dataclass(frozen=True)
class EndpointDescriptor:
    display_name: str
    path: str
    method: HttpMethod = HttpMethod.GET

    def __post_init__(self) -> None:
        # accepts "post", "POST" or HttpMethod.POST; anything else is rejected here
        method = self.method if isinstance(self.method, HttpMethod) else HttpMethod(str(self.method).upper())
        object.__setattr__(self, "method", method)


_ENDPOINTS: Dict[ServiceName, Tuple[EndpointDescriptor, ...]] = {
    ServiceName.SERVICE_A: (
        EndpointDescriptor("Health Check", "/health", "GET"),
        EndpointDescriptor("Get API Data", "/api", "GET"),
        EndpointDescriptor("Call Service B", "/api/with-service-b", "GET"),
        EndpointDescriptor("Internal Endpoint", "/internal", "GET"),
    ),
    ServiceName.SERVICE_B: (
        EndpointDescriptor("Health Check", "/health", "GET"),
        EndpointDescriptor("Get API Data", "/api", "GET"),
        EndpointDescriptor("Call Service A", "/api/with-service-a", "GET"),
        EndpointDescriptor("Internal Endpoint", "/internal", "GET"),
    ),
}

ENDPOINTS: Mapping[ServiceName, Tuple[EndpointDescriptor, ...]] = MappingProxyType(_ENDPOINTS)


class Settings(BaseModel):
    """Runtime settings shared by the aggregator, testers and frontend."""

    base_url: str = "http://localhost:80"
    refresh_interval: float = Field(30.0, gt=0)
    timeout: Optional[float] = None
    ui_prefix: str = "/ui"
    dev_proxy: bool = False

    def url_for(self, service: ServiceName | str, path: str) -> str:
        name = service.value if isinstance(service, ServiceName) else service
        return f"{self.base_url.rstrip('/')}/{name}{path}"


# Environment variable -> settings key
ENV_OVERRIDES = {
    "PROBE_BASE_URL": "base_url",
    "PROBE_REFRESH_INTERVAL": "refresh_interval",
    "PROBE_TIMEOUT": "timeout",
    "PROBE_UI_PREFIX": "ui_prefix",
    "PROBE_DEV_PROXY": "dev_proxy",
}


def load_config(path: Path | None = None, default: Dict[str, Any] | None = None) -> Dict[str, Any]:
    """Load configuration from ``path`` as a plain dict.

    Starts from the :class:`Settings` defaults, applies ``default`` on top and
    then the known keys found in the file. A missing or malformed file leaves
    the first two layers untouched; unknown keys in the file are ignored.
    """
    cfg_path = path or CONFIG_FILE
    config: Dict[str, Any] = Settings().model_dump()
    if default:
        config.update(default)
    if cfg_path.exists():
        try:
            with cfg_path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError):
            data = None
        if isinstance(data, dict):
            config.update({k: v for k, v in data.items() if k in config})
    return config


def save_config(config: Dict[str, Any], path: Path | None = None) -> None:
    """Persist ``config`` to ``path``."""
    cfg_path = path or CONFIG_FILE
    with cfg_path.open("w", encoding="utf-8") as fh:
        json.dump(dict(config), fh, indent=2)


def load_settings(path: Path | None = None) -> Settings:
    """Build :class:`Settings` from the config file and ``PROBE_*`` variables."""
    config = load_config(path)
    for env, key in ENV_OVERRIDES.items():
        value = os.getenv(env)
        if value is None or value == "":
            continue
        if key == "dev_proxy":
            config[key] = value.strip().lower() in {"1", "true", "yes", "on"}
        else:
            config[key] = value
    # pydantic coerces numeric strings coming from the environment
    return Settings(**config)
