from __future__ import annotations

import os

from .ledger import InstallRecord


def verify_install(record: InstallRecord, service_id: str, version: str, offline: bool) -> bool:
    """Decide whether an existing installation can be reused as-is.

    Offline mode accepts whatever version is on disk since nothing newer can
    be fetched. Only the presence of the install path is checked; content
    hashes are not verified.
    """

    if record.service != service_id:
        return False

    if record.version != version and not offline:
        return False

    if not os.path.exists(record.path):
        return False

    return True
