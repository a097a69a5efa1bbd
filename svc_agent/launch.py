from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path
from typing import Callable, List, Mapping, Optional, Sequence

from .config import ServiceDefinition
from .errors import IoError, LaunchError
from .ledger import InstallRecord, RuntimeStateRecord, utc_now
from .lib.command import spawn_cmd

logger = logging.getLogger(__name__)

PID_MARKER = "RUNNING_PID"
LOG_DIR = "logs"
STDOUT_LOG = "stdout.log"


def init_log_dir(service_dir: str) -> str:
    """Clear any existing logs and create the folder if it is missing."""

    log_path = Path(service_dir) / LOG_DIR
    try:
        if log_path.exists():
            shutil.rmtree(log_path)
        log_path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise IoError(f"could not reset log directory {log_path}: {e}") from e
    return str(log_path)


def remove_running_pid(service_dir: str) -> None:
    # Killing a process can leave RUNNING_PID behind, which stops it starting again.
    pid_path = Path(service_dir) / PID_MARKER
    try:
        pid_path.unlink()
        logger.info("Removed stale %s", pid_path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Could not remove %s: %s", pid_path, e)


def system_args(service: ServiceDefinition, version: str, service_dir: str, port: int) -> List[str]:
    return [
        f"-Dservice.manager.serviceName={service.id}",
        f"-Dservice.manager.runFrom={version}",
        f"-Duser.home={Path(service_dir).parent}",
        f"-Dhttp.port={port}",
    ]


def build_args(
    service: ServiceDefinition,
    version: str,
    service_dir: str,
    port: int,
    extra_args: Mapping[str, Sequence[str]],
) -> List[str]:
    args = list(service.binary.cmd[1:])
    args += system_args(service, version, service_dir, port)
    args += list(extra_args.get(service.id) or [])
    return args


def run_service(
    service: ServiceDefinition,
    install: InstallRecord,
    *,
    port_override: int = 0,
    extra_args: Optional[Mapping[str, Sequence[str]]] = None,
    log_dir: Optional[str] = None,
    spawn: Callable[..., subprocess.Popen] = spawn_cmd,
) -> RuntimeStateRecord:
    """Start the installed service and describe what was started.

    Persisting the returned record is left to the caller.
    """

    service_dir = install.path
    version = install.version

    remove_running_pid(service_dir)

    port = port_override if port_override > 0 else service.default_port
    args = build_args(service, version, service_dir, port, extra_args or {})

    if log_dir is None:
        log_dir = init_log_dir(service_dir)

    # Configured commands may point anywhere; the binary always ships in bin/.
    run_cmd = Path(service.binary.cmd[0]).name
    executable = str(Path(service_dir) / "bin" / run_cmd)

    try:
        proc = spawn([executable, *args], cwd=service_dir, log_path=str(Path(log_dir) / STDOUT_LOG))
    except OSError as e:
        raise LaunchError(f"could not start {executable}: {e}") from e

    pid = proc.pid
    logger.info("Started %s %s (pid=%s, port=%s)", service.id, version, pid, port)

    return RuntimeStateRecord(
        service=service.id,
        artifact=service.binary.artifact,
        version=version,
        path=service_dir,
        md5sum=install.md5sum,
        started=utc_now(),
        pid=pid,
        port=port,
        args=tuple(args),
    )
