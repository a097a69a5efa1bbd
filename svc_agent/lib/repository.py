from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from typing import Optional
from urllib.parse import quote

import requests

from ..config import BinaryDescriptor
from ..errors import VersionResolutionError

logger = logging.getLogger(__name__)


def _seg(value: str) -> str:
    # "/" inside a group id is escaped too; each segment stands alone.
    return quote(value, safe="")


def download_url(repository_url: str, binary: BinaryDescriptor, version: str) -> str:
    artifact = _seg(binary.artifact)
    ver = _seg(version)
    filename = f"{artifact}-{ver}.tgz"
    return "/".join([repository_url.rstrip("/"), _seg(binary.group_id), artifact, ver, filename])


def metadata_url(repository_url: str, binary: BinaryDescriptor) -> str:
    return "/".join(
        [repository_url.rstrip("/"), _seg(binary.group_id), _seg(binary.artifact), "maven-metadata.xml"]
    )


def parse_latest_version(xml_text: str) -> Optional[str]:
    """Return versioning/latest, falling back to versioning/release."""

    root = ET.fromstring(xml_text)
    for tag in ("versioning/latest", "versioning/release"):
        node = root.find(tag)
        if node is not None and (node.text or "").strip():
            return node.text.strip()
    return None


class ArtifactRepository:
    def __init__(
        self,
        base_url: str,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def download_url(self, binary: BinaryDescriptor, version: str) -> str:
        return download_url(self.base_url, binary, version)

    def latest_version(self, binary: BinaryDescriptor) -> str:
        url = metadata_url(self.base_url, binary)
        logger.info("Looking up latest version of %s at %s", binary.artifact, url)
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
            latest = parse_latest_version(response.text)
        except (requests.RequestException, ET.ParseError) as e:
            raise VersionResolutionError(f"No version found for {binary.artifact}: {e}") from e

        if not latest:
            raise VersionResolutionError(f"No version found for {binary.artifact}")
        logger.info("Latest version of %s is %s", binary.artifact, latest)
        return latest
