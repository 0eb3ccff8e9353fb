from __future__ import annotations

import hashlib
import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, cast
from urllib.parse import quote

import requests
from requests import Session
from requests.adapters import HTTPAdapter
from urllib3.util import Retry

from .utils import atomic_write_bytes, is_safe_relative_path, parse_iso

LOGGER = logging.getLogger(__name__)

_SHA256_HEX = re.compile(r"^[0-9a-f]{64}$")


class DigestMismatchError(ValueError):
    pass


@dataclass(frozen=True)
class RemoteArtifact:
    fingerprint_id: str
    logical_path: str
    mtime: datetime
    size: int
    digest: str
    url: str
    session: Session
    timeout: int

    def write_to(self, target: Path) -> None:
        response = self.session.get(self.url, stream=True, timeout=self.timeout)
        check = _SHA256_HEX.match(self.digest.lower()) is not None
        hasher = hashlib.sha256()

        def _chunks() -> Iterator[bytes]:
            for chunk in response.iter_content(chunk_size=1024 * 1024):
                if chunk:
                    hasher.update(chunk)
                    yield chunk
            if check and hasher.hexdigest() != self.digest.lower():
                raise DigestMismatchError(
                    f"{self.fingerprint_id}: expected sha256 {self.digest}, got {hasher.hexdigest()}"
                )

        try:
            response.raise_for_status()
            atomic_write_bytes(target, _chunks())
        finally:
            response.close()


class RemoteBuildResolver:
    """Build resolver that asks a remote build server for compiled assets."""

    def __init__(
        self,
        base_url: str,
        timeout: int = 60,
        max_retries: int = 5,
        session: Session | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.logger = logger or LOGGER
        self.timeout = timeout
        self.session = session or _build_session(max_retries=max_retries)

    def expand(self, specifiers: list[str]) -> list[str]:
        relative = [spec for spec in specifiers if spec and not Path(spec).is_absolute()]
        if not relative:
            return []
        payload = self._get_json("/assets", params={"specifier": relative})
        names = [str(item) for item in _extract_list(payload) if isinstance(item, str)]
        self.logger.info(
            "Build server expanded %s specifiers into %s names", len(relative), len(names)
        )
        return names

    def resolve(self, name: str) -> RemoteArtifact | None:
        url = f"{self.base_url}/assets/{quote(name, safe='/')}"
        response = self.session.get(url, timeout=self.timeout)
        if response.status_code == 404:
            return None
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict):
            self.logger.warning("Unexpected descriptor for %s: %r", name, payload)
            return None
        return self._artifact_from_raw(name, payload)

    def _artifact_from_raw(self, name: str, raw: dict[str, Any]) -> RemoteArtifact | None:
        fingerprint_id = str(raw.get("fingerprint_id") or raw.get("digest_path") or "").strip()
        if not fingerprint_id:
            self.logger.warning("Descriptor for %s has no fingerprint id", name)
            return None
        if not is_safe_relative_path(fingerprint_id):
            self.logger.warning(
                "Descriptor for %s has unsafe fingerprint id %r", name, fingerprint_id
            )
            return None
        mtime = parse_iso(raw.get("mtime")) or datetime.now(timezone.utc)
        file_url = str(raw.get("url") or f"{self.base_url}/files/{quote(fingerprint_id, safe='/')}")
        return RemoteArtifact(
            fingerprint_id=fingerprint_id,
            logical_path=str(raw.get("logical_path") or name),
            mtime=mtime,
            size=int(raw.get("size") or 0),
            digest=str(raw.get("digest") or ""),
            url=file_url,
            session=self.session,
            timeout=self.timeout,
        )

    def _get_json(
        self,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any] | list[Any]:
        url = f"{self.base_url}{path}"
        response = self.session.get(url, params=params, timeout=self.timeout)
        response.raise_for_status()
        payload = response.json()
        if isinstance(payload, (dict, list)):
            return cast(dict[str, Any] | list[Any], payload)
        return {}


def _build_session(max_retries: int) -> Session:
    retry = Retry(
        total=max_retries,
        connect=max_retries,
        read=max_retries,
        status=max_retries,
        backoff_factor=0.5,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=("GET",),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry)
    session = requests.Session()
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    session.headers.update({"User-Agent": "asset-manifest/0.1"})
    return session


def _extract_list(payload: dict[str, Any] | list[Any]) -> list[Any]:
    if isinstance(payload, list):
        return payload
    if not isinstance(payload, dict):
        return []
    for key in ("names", "assets", "items", "data"):
        value = payload.get(key)
        if isinstance(value, list):
            return value
    return []
