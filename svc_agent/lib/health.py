from __future__ import annotations

import logging

import requests

logger = logging.getLogger(__name__)


def check_health(port: int, *, path: str = "/ping/ping", timeout: float = 2.0) -> bool:
    """Best-effort liveness check against a service on localhost."""

    url = f"http://localhost:{port}{path}"
    try:
        response = requests.get(url, timeout=timeout)
    except requests.RequestException as e:
        logger.debug("Health check %s failed: %s", url, e)
        return False
    logger.debug("Health check %s returned %s", url, response.status_code)
    return response.status_code == 200
