"""
Configuration Module

Architectural Intent:
- Centralized configuration loading from a JSON file
- Provides typed access to all Provisio settings
- Falls back to sensible defaults when config file is absent
- Environment variables override file-based config

Design Decisions:
- Config is a frozen dataclass for immutability after load
- Nested config sections map to sub-dataclasses
- Readiness bounds live here so no driver hardcodes a wait
"""

from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import dataclasses
import json
import logging
import os

from provisio.domain.services.readiness import ReadinessPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParallelismConfig:
    """Global cap on concurrent provider operations."""
    max_simultaneous: int = 10


@dataclass(frozen=True)
class ReadinessConfig:
    """Bound and backoff for waiting on machines to become reachable."""
    timeout_seconds: float = 600.0
    poll_interval_seconds: float = 2.0
    backoff_factor: float = 1.5
    max_interval_seconds: float = 30.0

    def to_policy(self) -> ReadinessPolicy:
        return ReadinessPolicy(
            timeout_seconds=self.timeout_seconds,
            poll_interval_seconds=self.poll_interval_seconds,
            backoff_factor=self.backoff_factor,
            max_interval_seconds=self.max_interval_seconds,
        )


@dataclass(frozen=True)
class StorageConfig:
    """Where machine records are kept."""
    backend: str = "memory"  # "memory" or "sqlite"
    path: str = "provisio.db"
    scope: str = ""


@dataclass(frozen=True)
class TelemetryConfig:
    """OpenTelemetry configuration."""
    endpoint: str = ""
    insecure: bool = False


@dataclass(frozen=True)
class ProvisioConfig:
    """Root configuration for Provisio."""
    parallelism: ParallelismConfig = field(default_factory=ParallelismConfig)
    readiness: ReadinessConfig = field(default_factory=ReadinessConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)
    log_level: str = "WARNING"


def _env_override(data: dict, prefix: str = "PROVISIO") -> dict:
    """Override config values with environment variables.

    Environment variables follow the pattern PROVISIO_SECTION_KEY.
    For example: PROVISIO_STORAGE_BACKEND=sqlite,
    PROVISIO_READINESS_TIMEOUT_SECONDS=120
    """
    for key, value in os.environ.items():
        if not key.startswith(f"{prefix}_"):
            continue
        parts = key[len(prefix) + 1:].lower().split("_", 1)
        if len(parts) == 2 and parts[0] in _SECTIONS:
            section, field_name = parts
            if not isinstance(data.get(section), dict):
                data[section] = {}
            data[section][field_name] = value
        else:
            data[key[len(prefix) + 1:].lower()] = value
    return data


def _parse_config_file(path: Path) -> dict:
    """Parse a JSON config file. Returns empty dict on failure."""
    try:
        with open(path) as f:
            data = json.load(f)
    except FileNotFoundError:
        logger.debug("Config file not found: %s", path)
        return {}
    except json.JSONDecodeError as e:
        logger.warning("Invalid config file %s: %s", path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Config file %s must hold a JSON object", path)
        return {}
    return data


def _build_sub_config(cls, data: dict):
    """Build a sub-config dataclass from a dict, ignoring unknown keys."""
    valid_fields = {f.name for f in dataclasses.fields(cls)}
    filtered = {k: v for k, v in data.items() if k in valid_fields}

    # Convert strings from the environment to the field's type
    for f in dataclasses.fields(cls):
        if f.name in filtered and isinstance(filtered[f.name], str):
            if f.type == "int":
                filtered[f.name] = int(filtered[f.name])
            elif f.type == "float":
                filtered[f.name] = float(filtered[f.name])
            elif f.type == "bool":
                filtered[f.name] = filtered[f.name].lower() in ("true", "1", "yes")

    return cls(**filtered)


_SECTIONS = {
    "parallelism": ParallelismConfig,
    "readiness": ReadinessConfig,
    "storage": StorageConfig,
    "telemetry": TelemetryConfig,
}


def load_config(
    path: Optional[str] = None,
    env_prefix: str = "PROVISIO",
) -> ProvisioConfig:
    """Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables (PROVISIO_SECTION_KEY)
    2. Config file values
    3. Defaults

    Args:
        path: Path to config file (JSON). Defaults to provisio.json in CWD.
        env_prefix: Environment variable prefix. Defaults to PROVISIO.
    """
    config_path = Path(path) if path else Path("provisio.json")
    data = _parse_config_file(config_path)
    data = _env_override(data, env_prefix)

    sections = {
        name: _build_sub_config(cls, data.get(name) or {})
        for name, cls in _SECTIONS.items()
    }
    return ProvisioConfig(
        **sections,
        log_level=str(data.get("log_level", "WARNING")).upper(),
    )
