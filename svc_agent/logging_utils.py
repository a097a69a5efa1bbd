from __future__ import annotations

import logging
import sys
import tempfile
from pathlib import Path
from typing import Optional, TextIO

from .progress import Progress

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

progress_log = logging.getLogger("svc_agent.progress")


def _file_handler(log_path: Path) -> tuple[logging.Handler, Path]:
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(log_path), log_path
    except OSError:
        # Unwritable workspace: keep a log somewhere rather than none.
        fallback = Path(tempfile.gettempdir()) / "svc-agent.log"
        return logging.FileHandler(fallback), fallback


def configure_logging(
    log_path: Path,
    *,
    verbose: bool = False,
    console: Optional[TextIO] = None,
) -> str:
    """Send agent logs to ``log_path`` (normally ``<workspace>/svc-agent.log``).

    The console belongs to the progress display, so log lines only go there
    with ``verbose``, at DEBUG, which includes every spawned command line.

    Returns the actual file path being used.
    """

    root = logging.getLogger()
    if getattr(root, "_svc_agent_configured", False):
        return getattr(root, "_svc_agent_log_path")

    level = logging.DEBUG if verbose else logging.INFO
    root.setLevel(level)
    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    handler, chosen = _file_handler(Path(log_path))
    handler.setFormatter(fmt)
    root.addHandler(handler)

    if verbose:
        stream = logging.StreamHandler(console or sys.stderr)
        stream.setFormatter(fmt)
        root.addHandler(stream)

    # requests/urllib3 log every connection at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    setattr(root, "_svc_agent_configured", True)
    setattr(root, "_svc_agent_log_path", str(chosen))

    logging.getLogger(__name__).info(
        "Logging initialized (requested=%s, actual=%s, verbose=%s)", log_path, chosen, verbose
    )
    return str(chosen)


def log_progress(event: Progress) -> None:
    """Record a progress event in the agent log alongside the console display."""

    if event.percent is None:
        progress_log.info("%s: %s", event.service, event.state)
    else:
        progress_log.info("%s: %s (%d%%)", event.service, event.state, event.percent)
