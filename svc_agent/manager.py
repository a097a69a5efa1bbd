"""Start sequence: health check, version resolution, verify/install, launch, persist."""

from __future__ import annotations

import enum
import logging
import subprocess
from typing import Callable, Mapping, Optional

from .config import ServiceDefinition, StartOptions
from .errors import (
    AlreadyRunningError,
    LedgerError,
    PersistError,
    StartError,
    UnavailableError,
    UnknownServiceError,
)
from .install import Fetcher, install_service
from .launch import init_log_dir, run_service
from .ledger import InstallRecord, Ledger, RuntimeStateRecord
from .lib.command import spawn_cmd
from .lib.repository import ArtifactRepository
from .progress import Progress, ProgressSink
from .verify import verify_install

logger = logging.getLogger(__name__)


class Phase(enum.Enum):
    IDLE = "idle"
    HEALTH_CHECKING = "health_checking"
    ALREADY_RUNNING = "already_running"
    RESOLVING_VERSION = "resolving_version"
    VERIFYING_INSTALL = "verifying_install"
    REUSING = "reusing"
    INSTALLING = "installing"
    PREPARING_LOGS = "preparing_logs"
    LAUNCHING = "launching"
    PERSISTED = "persisted"
    FAILED = "failed"


class ServiceManager:
    def __init__(
        self,
        *,
        services: Mapping[str, ServiceDefinition],
        install_dir_for: Callable[[str], str],
        options: StartOptions,
        ledger: Ledger,
        repository: ArtifactRepository,
        fetcher: Fetcher,
        health_check: Callable[[int], bool],
        updates: ProgressSink,
        spawn: Callable[..., subprocess.Popen] = spawn_cmd,
    ) -> None:
        self.services = services
        self.install_dir_for = install_dir_for
        self.options = options
        self.ledger = ledger
        self.repository = repository
        self.fetcher = fetcher
        self.health_check = health_check
        self.updates = updates
        self.spawn = spawn
        self.phase = Phase.IDLE

    def _enter(self, phase: Phase, name: str) -> None:
        logger.debug("%s: %s -> %s", name, self.phase.value, phase.value)
        self.phase = phase

    def _emit(self, name: str, percent: Optional[int], state: str) -> None:
        self.updates.put(Progress(service=name, percent=percent, state=state))

    def start_service(self, name: str, requested_version: str = "") -> RuntimeStateRecord:
        """Start a version of a service; without a version, the latest published one.

        Raises AlreadyRunningError when the service already answers its health
        check, so callers can tell "nothing to do" apart from "started".
        """

        self.phase = Phase.IDLE
        try:
            return self._start(name, requested_version)
        except AlreadyRunningError:
            raise
        except StartError as e:
            logger.error("Starting %s failed: %s", name, e)
            self._enter(Phase.FAILED, name)
            self._emit(name, 0, "Failed")
            raise

    def _start(self, name: str, requested_version: str) -> RuntimeStateRecord:
        service = self.services.get(name)
        if service is None:
            raise UnknownServiceError(name)

        self._enter(Phase.HEALTH_CHECKING, name)
        if self.health_check(service.default_port):
            self._enter(Phase.ALREADY_RUNNING, name)
            self._emit(name, 100, "Already running")
            raise AlreadyRunningError(name, service.default_port)

        offline = self.options.offline
        install_dir = self.install_dir_for(name)
        version = requested_version

        if not requested_version and not offline:
            self._enter(Phase.RESOLVING_VERSION, name)
            version = self.repository.latest_version(service.binary)

        self._enter(Phase.VERIFYING_INSTALL, name)
        install = self._load_install(install_dir)
        installed = install is not None and verify_install(install, service.id, version, offline)

        if not installed or self.options.clean:
            if offline:
                raise UnavailableError(f"{name} is not installed and cannot be fetched while offline")

            self._enter(Phase.INSTALLING, name)
            self._emit(name, None, "Installing...")
            install = install_service(
                install_dir,
                service,
                version,
                repository=self.repository,
                fetcher=self.fetcher,
                ledger=self.ledger,
                updates=self.updates,
            )
        else:
            self._enter(Phase.REUSING, name)
            logger.info("Reusing %s %s at %s", name, install.version, install.path)

        self._enter(Phase.PREPARING_LOGS, name)
        log_dir = init_log_dir(install.path)

        self._enter(Phase.LAUNCHING, name)
        self._emit(name, 100, "Starting...")
        state = run_service(
            service,
            install,
            port_override=self.options.port,
            extra_args=self.options.extra_args,
            log_dir=log_dir,
            spawn=self.spawn,
        )

        try:
            self.ledger.save_state_file(install_dir, state)
        except OSError as e:
            raise PersistError(f"could not write runtime state in {install_dir}: {e}") from e

        self._enter(Phase.PERSISTED, name)
        return state

    def _load_install(self, install_dir: str) -> Optional[InstallRecord]:
        try:
            return self.ledger.load_install_file(install_dir)
        except FileNotFoundError:
            return None
        except (LedgerError, OSError) as e:
            logger.warning("Ignoring unreadable install record in %s: %s", install_dir, e)
            return None
