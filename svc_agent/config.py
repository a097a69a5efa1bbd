from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Tuple

import yaml

from .errors import ConfigError


@dataclass(frozen=True)
class BinaryDescriptor:
    artifact: str
    group_id: str
    cmd: Tuple[str, ...]


@dataclass(frozen=True)
class ServiceDefinition:
    id: str
    default_port: int
    binary: BinaryDescriptor


@dataclass(frozen=True)
class StartOptions:
    """Per-invocation switches supplied on the command line."""

    offline: bool = False
    clean: bool = False
    port: int = 0
    extra_args: Mapping[str, List[str]] = field(default_factory=dict)


@dataclass(frozen=True)
class AgentConfig:
    raw: Dict[str, Any]

    @property
    def repository_url(self) -> str:
        url = self.raw.get("repository_url")
        if not url:
            raise ConfigError("repository_url is required")
        return str(url).rstrip("/")

    @property
    def workspace(self) -> Path:
        ws = Path(str(self.raw.get("workspace") or "~/.svc-agent/workspace")).expanduser()
        return ws.absolute()

    @property
    def ledger_format(self) -> str:
        fmt = str(self.raw.get("ledger_format") or "json").lower()
        if fmt not in {"json", "yaml"}:
            raise ConfigError(f"ledger_format must be json or yaml, got {fmt!r}")
        return fmt

    @property
    def health_path(self) -> str:
        return str(self.raw.get("health_path") or "/ping/ping")

    @property
    def health_timeout(self) -> float:
        return self._seconds("health_timeout", 2.0)

    @property
    def download_timeout(self) -> float:
        return self._seconds("download_timeout", 60.0)

    @property
    def log_path(self) -> Path:
        """Agent log; defaults to svc-agent.log in the workspace."""
        value = self.raw.get("log_path")
        if value is None:
            return self.workspace / "svc-agent.log"
        return Path(str(value)).expanduser().absolute()

    def _seconds(self, key: str, default: float) -> float:
        value = self.raw.get(key)
        if value is None:
            return default
        try:
            return float(value)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"{key} must be a number of seconds, got {value!r}") from e

    def install_dir(self, service_name: str) -> str:
        return str(self.workspace / service_name)

    def services(self) -> Mapping[str, ServiceDefinition]:
        entries = self.raw.get("services") or {}
        if not isinstance(entries, dict):
            raise ConfigError("services must be a mapping of name -> definition")
        registry: Dict[str, ServiceDefinition] = {}
        for name, entry in entries.items():
            registry[str(name)] = _parse_service(str(name), entry)
        return MappingProxyType(registry)


def _parse_service(name: str, entry: Any) -> ServiceDefinition:
    if not isinstance(entry, dict):
        raise ConfigError(f"service {name}: definition must be a mapping")

    binary = entry.get("binary") or {}
    cmd = binary.get("cmd") or []
    if not cmd:
        raise ConfigError(f"service {name}: binary.cmd must list at least the program")
    for key in ("artifact", "group_id"):
        if not binary.get(key):
            raise ConfigError(f"service {name}: binary.{key} is required")

    try:
        port = int(entry.get("default_port") or 0)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"service {name}: default_port must be an integer") from e

    return ServiceDefinition(
        id=str(entry.get("id") or name),
        default_port=port,
        binary=BinaryDescriptor(
            artifact=str(binary["artifact"]),
            group_id=str(binary["group_id"]),
            cmd=tuple(str(c) for c in cmd),
        ),
    )


def load_agent_config(path: str) -> AgentConfig:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(path)

    if p.suffix.lower() not in {".yaml", ".yml"}:
        raise ConfigError("agent config must be YAML")

    raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"{path} must contain a mapping/object")

    return AgentConfig(raw=raw)
