"""Shared fixtures: a sample service, a ledger, and fakes for the network and spawn seams."""

import logging
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from svc_agent.config import BinaryDescriptor, ServiceDefinition, StartOptions
from svc_agent.ledger import Ledger
from svc_agent.lib.repository import ArtifactRepository
from svc_agent.manager import ServiceManager
from svc_agent.progress import ProgressQueue

REPO_URL = "https://artefacts.example.org/maven"


@pytest.fixture
def service():
    return ServiceDefinition(
        id="AUTH",
        default_port=8585,
        binary=BinaryDescriptor(
            artifact="auth",
            group_id="uk/gov/hmrc",
            cmd=("./auth/bin/auth", "-J-Xmx256m", "-Dlogger.resource=/application-json-logger.xml"),
        ),
    )


@pytest.fixture
def ledger():
    return Ledger("json")


@pytest.fixture
def updates():
    return ProgressQueue()


class FakeFetcher:
    """Stands in for download+unpack: creates <dest>/<artifact>-<version>/bin."""

    def __init__(self):
        self.calls = []

    def __call__(self, url, dest_dir, progress=None):
        self.calls.append(url)
        name = url.rsplit("/", 1)[-1][: -len(".tgz")]
        service_dir = Path(dest_dir) / name
        (service_dir / "bin").mkdir(parents=True)
        if progress is not None:
            progress(50, 100)
            progress(100, 100)
        return str(service_dir)


class FakeSpawn:
    def __init__(self, pid=4242):
        self.pid = pid
        self.calls = []

    def __call__(self, argv, *, cwd, log_path):
        self.calls.append({"argv": list(argv), "cwd": cwd, "log_path": log_path})
        return MagicMock(pid=self.pid)


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def spawn():
    return FakeSpawn()


@pytest.fixture
def repository():
    repo = ArtifactRepository(REPO_URL, session=MagicMock())
    repo.latest_version = MagicMock(return_value="3.2.1")
    return repo


@pytest.fixture
def make_manager(tmp_path, service, ledger, updates, repository, fetcher, spawn):
    workspace = tmp_path / "workspace"

    def _make(options=None, healthy=False, **overrides):
        kwargs = dict(
            services={"AUTH": service},
            install_dir_for=lambda name: str(workspace / name),
            options=options or StartOptions(),
            ledger=ledger,
            repository=repository,
            fetcher=fetcher,
            health_check=MagicMock(return_value=healthy),
            updates=updates,
            spawn=spawn,
        )
        kwargs.update(overrides)
        return ServiceManager(**kwargs)

    return _make


@pytest.fixture
def clean_root_logger():
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield root
    for h in root.handlers[:]:
        if h not in handlers:
            root.removeHandler(h)
            h.close()
    root.setLevel(level)
    for attr in ("_svc_agent_configured", "_svc_agent_log_path"):
        if hasattr(root, attr):
            delattr(root, attr)
