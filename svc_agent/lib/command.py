from __future__ import annotations

import logging
import os
import shlex
import subprocess
from typing import Mapping, Sequence

logger = logging.getLogger(__name__)


def _fmt_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in argv)


def spawn_cmd(
    argv: Sequence[str],
    *,
    cwd: str,
    log_path: str,
    env: Mapping[str, str] | None = None,
) -> subprocess.Popen:
    """Start a detached command with stdout and stderr appended to ``log_path``.

    - Always logs the command.
    - Returns as soon as the process has been created; never waits for exit.
    - Raises OSError if the executable cannot be started.
    """

    argv_list = list(argv)
    logger.info("CMD %s (cwd=%s)", _fmt_argv(argv_list), cwd)

    with open(log_path, "ab") as log_file:
        p = subprocess.Popen(
            argv_list,
            cwd=cwd,
            stdin=subprocess.DEVNULL,
            stdout=log_file,
            stderr=subprocess.STDOUT,
            env=dict(os.environ, **(env or {})),
            start_new_session=True,
        )

    logger.debug("Spawned pid %s, output -> %s", p.pid, log_path)
    return p
