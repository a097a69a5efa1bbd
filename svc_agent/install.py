from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import Callable, Optional

from .config import ServiceDefinition
from .errors import DownloadError, IoError, PersistError
from .ledger import PLACEHOLDER_DIGEST, InstallRecord, Ledger, utc_now
from .lib.repository import ArtifactRepository
from .progress import Progress, ProgressSink, ProgressTracker

logger = logging.getLogger(__name__)

Fetcher = Callable[[str, str, Optional[Callable[[int, Optional[int]], None]]], str]


def remove_existing_versions(install_dir: str) -> None:
    """Wipe install_dir and recreate it empty."""

    if not os.path.isabs(install_dir):
        # A relative path here is a configuration defect, never a runtime condition.
        raise SystemExit(
            f"remove_existing_versions was passed a non-absolute path ({install_dir!r}); refusing to delete"
        )

    p = Path(install_dir)
    try:
        if p.exists():
            logger.info("Removing previous install at %s", p)
            shutil.rmtree(p)
        p.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise IoError(f"could not reset install directory {install_dir}: {e}") from e


def install_service(
    install_dir: str,
    service: ServiceDefinition,
    version: str,
    *,
    repository: ArtifactRepository,
    fetcher: Fetcher,
    ledger: Ledger,
    updates: ProgressSink,
) -> InstallRecord:
    remove_existing_versions(install_dir)

    updates.put(Progress(service=service.id, percent=0, state="Init"))

    url = repository.download_url(service.binary, version)
    tracker = ProgressTracker(service.id, updates)

    try:
        service_dir = fetcher(url, install_dir, tracker)
    except Exception as e:
        raise DownloadError(install_dir, e) from e

    record = InstallRecord(
        service=service.id,
        artifact=service.binary.artifact,
        version=version,
        path=service_dir,
        md5sum=PLACEHOLDER_DIGEST,
        created=utc_now(),
    )

    try:
        ledger.save_install_file(install_dir, record)
    except OSError as e:
        raise PersistError(f"could not write install record in {install_dir}: {e}") from e

    logger.info("Installed %s %s into %s", service.id, version, service_dir)
    return record
