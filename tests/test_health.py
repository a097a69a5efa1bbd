from unittest.mock import MagicMock

import requests

from svc_agent.lib import health


def test_healthy_on_200(monkeypatch):
    get = MagicMock(return_value=MagicMock(status_code=200))
    monkeypatch.setattr(health.requests, "get", get)

    assert health.check_health(8585) is True
    assert get.call_args[0][0] == "http://localhost:8585/ping/ping"


def test_other_status_is_unhealthy(monkeypatch):
    monkeypatch.setattr(health.requests, "get", MagicMock(return_value=MagicMock(status_code=503)))
    assert health.check_health(8585, path="/health") is False


def test_connection_refused_is_unhealthy(monkeypatch):
    monkeypatch.setattr(
        health.requests, "get", MagicMock(side_effect=requests.ConnectionError("refused"))
    )
    assert health.check_health(8585) is False
