import io
import tarfile
from unittest.mock import MagicMock

import pytest

from svc_agent.lib.download import fetch_and_unpack


def make_tgz(top="auth-1.0.0"):
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        data = b"#!/bin/sh\nexec java -jar auth.jar \"$@\"\n"
        info = tarfile.TarInfo(f"{top}/bin/auth")
        info.size = len(data)
        info.mode = 0o755
        tar.addfile(info, io.BytesIO(data))
    return buf.getvalue()


def fake_session(payload):
    response = MagicMock()
    response.__enter__.return_value = response
    response.headers = {"Content-Length": str(len(payload))}
    response.iter_content.return_value = [payload[:10], payload[10:]]
    session = MagicMock()
    session.get.return_value = response
    return session


def test_unpacks_and_returns_service_dir(tmp_path):
    payload = make_tgz()
    seen = []

    service_dir = fetch_and_unpack(
        "https://repo.example.org/x/auth/1.0.0/auth-1.0.0.tgz",
        str(tmp_path),
        lambda done, total: seen.append((done, total)),
        session=fake_session(payload),
    )

    assert service_dir == str(tmp_path / "auth-1.0.0")
    assert (tmp_path / "auth-1.0.0" / "bin" / "auth").exists()
    assert not (tmp_path / "auth-1.0.0.tgz").exists()
    assert seen[-1] == (len(payload), len(payload))


def test_archive_without_single_top_dir_fails(tmp_path):
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        for top in ("a", "b"):
            info = tarfile.TarInfo(f"{top}/README")
            tar.addfile(info, io.BytesIO(b""))

    with pytest.raises(RuntimeError):
        fetch_and_unpack(
            "https://repo.example.org/x/auth/1.0.0/auth-1.0.0.tgz",
            str(tmp_path),
            session=fake_session(buf.getvalue()),
        )


def test_member_escaping_destination_is_rejected(tmp_path):
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        data = b"owned"
        info = tarfile.TarInfo("../escaped.txt")
        info.size = len(data)
        tar.addfile(info, io.BytesIO(data))

    dest = tmp_path / "AUTH"
    dest.mkdir()
    with pytest.raises(tarfile.FilterError):
        fetch_and_unpack(
            "https://repo.example.org/x/auth/1.0.0/auth-1.0.0.tgz",
            str(dest),
            session=fake_session(buf.getvalue()),
        )

    assert not (tmp_path / "escaped.txt").exists()
    assert not (dest / "auth-1.0.0.tgz").exists()
