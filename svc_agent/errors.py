from __future__ import annotations


class StartError(RuntimeError):
    """Base class for failures that end a start attempt."""


class UnknownServiceError(StartError):
    def __init__(self, name: str) -> None:
        super().__init__(f"{name} is not a valid service")
        self.name = name


class AlreadyRunningError(StartError):
    def __init__(self, service: str, port: int) -> None:
        super().__init__(f"{service} is already running on port {port}")
        self.service = service
        self.port = port


class VersionResolutionError(StartError):
    pass


class UnavailableError(StartError):
    """Offline and no usable installation on disk."""


class IoError(StartError):
    pass


class DownloadError(StartError):
    def __init__(self, install_dir: str, cause: BaseException) -> None:
        super().__init__(f"failed to find service directory in {install_dir}: {cause}")
        self.install_dir = install_dir
        self.cause = cause


class PersistError(StartError):
    pass


class LaunchError(StartError):
    pass


class LedgerError(ValueError):
    """A ledger file exists but cannot be decoded into a record."""


class ConfigError(ValueError):
    pass
