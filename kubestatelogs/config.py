"""Configuration loading from environment variables."""

from __future__ import annotations

import os
import re

from kubestatelogs.models.config import (
    DEFAULT_RESOURCES,
    APIConfig,
    CollectionConfig,
    CRDConfig,
    KubernetesConfig,
    KubeStateLogsConfig,
    LogConfig,
)

_DURATION_RE = re.compile(r"^([0-9]+(?:\.[0-9]+)?)(s|m|h)$")
_DURATION_UNITS = {"s": 1.0, "m": 60.0, "h": 3600.0}


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"KSL_{key}", default)


def _env_bool(key: str, default: bool = False) -> bool:
    val = _env(key, str(default).lower())
    return val.lower() in ("true", "1", "yes")


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _env_float(key: str, default: float) -> float:
    return float(_env(key, str(default)))


def parse_duration(value: str) -> float:
    """Parse ``30s`` / ``5m`` / ``1h`` into seconds."""
    match = _DURATION_RE.match(value.strip())
    if not match:
        raise ValueError(f"Invalid duration format: {value}")
    seconds = float(match.group(1)) * _DURATION_UNITS[match.group(2)]
    if seconds <= 0:
        raise ValueError(f"Duration must be positive: {value}")
    return seconds


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def parse_list(value: str) -> list[str]:
    """Split a comma-separated string, dropping blanks."""
    return [item.strip() for item in value.split(",") if item.strip()]


def parse_resource_configs(value: str) -> dict[str, float]:
    """Parse ``pod:30s,deployment:5m`` into per-resource intervals."""
    intervals: dict[str, float] = {}
    for entry in parse_list(value):
        name, sep, interval = entry.partition(":")
        if not sep or not name.strip():
            raise ValueError(f"Invalid resource config: {entry}")
        intervals[name.strip()] = parse_duration(interval)
    return intervals


def parse_crd_configs(value: str) -> list[CRDConfig]:
    """Parse ``group/version:plural[:field|field]`` entries.

    Core-group resources may omit the group (``v1:things``).
    """
    crds: list[CRDConfig] = []
    for entry in parse_list(value):
        parts = entry.split(":")
        if len(parts) not in (2, 3) or not parts[0] or not parts[1]:
            raise ValueError(f"Invalid CRD config: {entry}")
        group, _, version = parts[0].rpartition("/")
        fields = tuple(f for f in parts[2].split("|") if f) if len(parts) == 3 else ()
        crds.append(CRDConfig(group=group, version=version, resource=parts[1], custom_fields=fields))
    return crds


def load_config() -> KubeStateLogsConfig:
    """Load configuration from KSL_* environment variables."""
    resources = parse_list(_env("RESOURCES", ""))
    return KubeStateLogsConfig(
        collection=CollectionConfig(
            log_interval_seconds=parse_duration(_env("LOG_INTERVAL", "1m")),
            resources=resources or list(DEFAULT_RESOURCES),
            resource_intervals=parse_resource_configs(_env("RESOURCE_CONFIGS", "")),
            namespaces=parse_list(_env("NAMESPACES", "")),
            crds=parse_crd_configs(_env("CRD_CONFIGS", "")),
            cache_sync_timeout_seconds=_env_float("CACHE_SYNC_TIMEOUT", 60.0),
            collection_timeout_seconds=_env_float("COLLECTION_TIMEOUT", 30.0),
        ),
        kubernetes=KubernetesConfig(
            kubeconfig=_env("KUBECONFIG", ""),
        ),
        api=APIConfig(
            enabled=_env_bool("API_ENABLED", True),
            port=_env_int("API_PORT", 8080, min_val=1024, max_val=65535),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
        ),
    )
