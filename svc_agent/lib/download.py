from __future__ import annotations

import logging
import tarfile
from pathlib import Path
from typing import Callable, Optional

import requests

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


def _extract(archive: Path, dest: Path) -> None:
    # "data" rejects absolute names, device files and members or links escaping dest.
    with tarfile.open(archive, "r:gz") as tar:
        tar.extractall(dest, filter="data")


def fetch_and_unpack(
    url: str,
    dest_dir: str,
    progress: Optional[Callable[[int, Optional[int]], None]] = None,
    *,
    session: Optional[requests.Session] = None,
    timeout: float = 60.0,
) -> str:
    """Download a .tgz into dest_dir, unpack it and return the service directory.

    The archive is expected to hold exactly one top-level directory.
    """

    dest = Path(dest_dir)
    archive = dest / url.rsplit("/", 1)[-1]
    http = session or requests

    logger.info("Downloading %s", url)
    with http.get(url, stream=True, timeout=timeout) as response:
        response.raise_for_status()
        total = int(response.headers.get("Content-Length") or 0) or None
        done = 0
        with archive.open("wb") as f:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                if not chunk:
                    continue
                f.write(chunk)
                done += len(chunk)
                if progress is not None:
                    progress(done, total)

    logger.info("Unpacking %s (%d bytes)", archive.name, done)
    try:
        _extract(archive, dest)
    finally:
        archive.unlink(missing_ok=True)

    dirs = [p for p in dest.iterdir() if p.is_dir()]
    if len(dirs) != 1:
        raise RuntimeError(
            f"expected one top-level directory in {archive.name}, found {len(dirs)}"
        )
    return str(dirs[0])
