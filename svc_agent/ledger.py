"""Install and runtime-state records, persisted inside each install directory."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Tuple

import yaml

from .errors import LedgerError

logger = logging.getLogger(__name__)

PLACEHOLDER_DIGEST = "not-computed"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class InstallRecord:
    service: str
    artifact: str
    version: str
    path: str
    md5sum: str
    created: datetime


@dataclass(frozen=True)
class RuntimeStateRecord:
    service: str
    artifact: str
    version: str
    path: str
    md5sum: str
    started: datetime
    pid: int
    port: int
    args: Tuple[str, ...]


def _encode(record: Any) -> Dict[str, Any]:
    data = asdict(record)
    for key, value in data.items():
        if isinstance(value, datetime):
            data[key] = value.isoformat()
        elif isinstance(value, tuple):
            data[key] = list(value)
    return data


def _decode_install(data: Dict[str, Any]) -> InstallRecord:
    return InstallRecord(
        service=str(data["service"]),
        artifact=str(data["artifact"]),
        version=str(data["version"]),
        path=str(data["path"]),
        md5sum=str(data["md5sum"]),
        created=datetime.fromisoformat(data["created"]),
    )


def _decode_state(data: Dict[str, Any]) -> RuntimeStateRecord:
    return RuntimeStateRecord(
        service=str(data["service"]),
        artifact=str(data["artifact"]),
        version=str(data["version"]),
        path=str(data["path"]),
        md5sum=str(data["md5sum"]),
        started=datetime.fromisoformat(data["started"]),
        pid=int(data["pid"]),
        port=int(data["port"]),
        args=tuple(str(a) for a in data.get("args") or []),
    )


class Ledger:
    """Key-value store of records, keyed by absolute install directory.

    Each install directory holds at most one ``.install.<fmt>`` and one
    ``.state.<fmt>`` file. Wiping the directory removes both.
    """

    def __init__(self, fmt: str = "json") -> None:
        if fmt not in {"json", "yaml"}:
            raise ValueError(f"unsupported ledger format: {fmt}")
        self.fmt = fmt

    def install_file(self, install_dir: str) -> Path:
        return Path(install_dir) / f".install.{self.fmt}"

    def state_file(self, install_dir: str) -> Path:
        return Path(install_dir) / f".state.{self.fmt}"

    def load_install_file(self, install_dir: str) -> InstallRecord:
        return self._load(self.install_file(install_dir), _decode_install)

    def save_install_file(self, install_dir: str, record: InstallRecord) -> None:
        self._save(self.install_file(install_dir), _encode(record))

    def load_state_file(self, install_dir: str) -> RuntimeStateRecord:
        return self._load(self.state_file(install_dir), _decode_state)

    def save_state_file(self, install_dir: str, record: RuntimeStateRecord) -> None:
        self._save(self.state_file(install_dir), _encode(record))

    def _load(self, p: Path, decode):
        # FileNotFoundError propagates: callers treat it as "no record".
        text = p.read_text(encoding="utf-8")
        try:
            if self.fmt == "json":
                data = json.loads(text)
            else:
                data = yaml.safe_load(text) or {}
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise LedgerError(f"{p}: {e}") from e

        if not isinstance(data, dict):
            raise LedgerError(f"{p}: record must be an object/dict, got {type(data)}")

        try:
            return decode(data)
        except (KeyError, TypeError, ValueError) as e:
            raise LedgerError(f"{p}: malformed record ({e})") from e

    def _save(self, p: Path, data: Dict[str, Any]) -> None:
        p.parent.mkdir(parents=True, exist_ok=True)
        if self.fmt == "json":
            p.write_text(json.dumps(data, indent=2, sort_keys=True) + "\n", encoding="utf-8")
        else:
            p.write_text(yaml.safe_dump(data, sort_keys=False) + "\n", encoding="utf-8")
        logger.debug("Wrote %s", p)
