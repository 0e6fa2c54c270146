"""
airlift.config — Global config management.

~/.airlift/config.yaml:

    parallelism: 4

    registries:
      airgap:
        url: localhost:5000
        default: true

    chart_repo: http://localhost:8080

    insecure_registries:
      - registry.internal:5000

    timeouts:
      health: 5
      upload: 30
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from airlift.core.errors import AirliftError


AIRLIFT_HOME = Path.home() / ".airlift"

PARALLELISM_ENV = "AIRLIFT_PARALLELISM"
DEFAULT_PARALLELISM = 4
DEFAULT_HEALTH_TIMEOUT = 5
DEFAULT_UPLOAD_TIMEOUT = 30


class ConfigError(AirliftError):
    pass


@dataclass
class RegistryConfig:
    """A single target registry."""
    name: str
    url: str
    default: bool = False


@dataclass
class AirliftConfig:
    """Global airlift config."""
    parallelism: int | None = None
    registries: dict[str, RegistryConfig] = field(default_factory=dict)
    chart_repo: str | None = None
    insecure_registries: list[str] = field(default_factory=list)
    health_timeout: float = DEFAULT_HEALTH_TIMEOUT
    upload_timeout: float = DEFAULT_UPLOAD_TIMEOUT

    def default_registry(self) -> RegistryConfig | None:
        for r in self.registries.values():
            if r.default:
                return r
        if self.registries:
            return next(iter(self.registries.values()))
        return None

    def is_insecure(self, host: str) -> bool:
        host = host.strip().lower()
        return any(host == h.strip().lower() for h in self.insecure_registries)


def config_path() -> Path:
    return AIRLIFT_HOME / "config.yaml"


def load_config() -> AirliftConfig:
    """Read ~/.airlift/config.yaml (defaults if it does not exist)."""
    cp = config_path()
    if not cp.exists():
        return AirliftConfig()

    try:
        with open(cp) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid config file {cp}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid config file {cp}: expected a mapping")

    cfg = AirliftConfig()

    if data.get("parallelism") is not None:
        cfg.parallelism = _positive_int(data["parallelism"], "parallelism")

    for name, info in (data.get("registries") or {}).items():
        if isinstance(info, dict):
            cfg.registries[name] = RegistryConfig(
                name=name,
                url=str(info.get("url", "")),
                default=bool(info.get("default", False)),
            )

    cfg.chart_repo = data.get("chart_repo") or None
    cfg.insecure_registries = [str(h) for h in data.get("insecure_registries") or []]

    timeouts = data.get("timeouts") or {}
    cfg.health_timeout = float(timeouts.get("health", DEFAULT_HEALTH_TIMEOUT))
    cfg.upload_timeout = float(timeouts.get("upload", DEFAULT_UPLOAD_TIMEOUT))

    return cfg


def save_config(cfg: AirliftConfig) -> None:
    """Write ~/.airlift/config.yaml."""
    AIRLIFT_HOME.mkdir(parents=True, exist_ok=True)

    data: dict[str, Any] = {}

    if cfg.parallelism is not None:
        data["parallelism"] = cfg.parallelism

    if cfg.registries:
        data["registries"] = {}
        for name, reg in cfg.registries.items():
            entry: dict[str, Any] = {"url": reg.url}
            if reg.default:
                entry["default"] = True
            data["registries"][name] = entry

    if cfg.chart_repo:
        data["chart_repo"] = cfg.chart_repo

    if cfg.insecure_registries:
        data["insecure_registries"] = cfg.insecure_registries

    if (cfg.health_timeout, cfg.upload_timeout) != \
            (DEFAULT_HEALTH_TIMEOUT, DEFAULT_UPLOAD_TIMEOUT):
        data["timeouts"] = {
            "health": cfg.health_timeout,
            "upload": cfg.upload_timeout,
        }

    with open(config_path(), "w") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False)


def resolve_parallelism(flag: int | None = None,
                        cfg: AirliftConfig | None = None) -> int:
    """Image fetch width.

    Priority: --parallel flag > AIRLIFT_PARALLELISM > config > 4
    """
    if flag is not None:
        return _positive_int(flag, "--parallel")
    env = os.environ.get(PARALLELISM_ENV)
    if env:
        return _positive_int(env, PARALLELISM_ENV)
    if cfg is None:
        cfg = load_config()
    if cfg.parallelism is not None:
        return cfg.parallelism
    return DEFAULT_PARALLELISM


def _positive_int(value: Any, name: str) -> int:
    try:
        n = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer (got {value!r})") from None
    if n < 1:
        raise ConfigError(f"{name} must be >= 1 (got {n})")
    return n
