"""Typed manifest records and the JSON-backed store that persists them.

The manifest lives next to the fingerprinted files it describes::

    {
      "version": 1,
      "assets": {"application.js": "application-2e8e9a7c.js"},
      "files": {
        "application-2e8e9a7c.js": {
          "logical_path": "application.js",
          "mtime": "2011-12-13T21:47:08-06:00",
          "size": 1024,
          "digest": "2e8e9a7c"
        }
      }
    }

The JSON layout is public: other processes may read it without importing
this package.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .utils import (
    atomic_write_text,
    dumps_json,
    ensure_dir,
    format_iso,
    is_safe_relative_path,
    parse_iso,
)

LOGGER = logging.getLogger(__name__)

MANIFEST_FILENAME = "manifest.json"
SCHEMA_VERSION = 1


class AssetNotFoundError(KeyError):
    """Raised when a fingerprint id has no entry in the manifest."""

    def __init__(self, fingerprint_id: str) -> None:
        super().__init__(fingerprint_id)
        self.fingerprint_id = fingerprint_id

    def __str__(self) -> str:
        return f"{self.fingerprint_id} is not tracked by the manifest"


@dataclass
class FileRecord:
    logical_path: str
    mtime: datetime | None
    size: int
    digest: str

    def __post_init__(self) -> None:
        # mtimes persist at second precision
        if self.mtime is not None:
            if self.mtime.tzinfo is None:
                self.mtime = self.mtime.replace(tzinfo=timezone.utc)
            self.mtime = self.mtime.replace(microsecond=0)

    @staticmethod
    def from_raw(raw: dict[str, Any]) -> "FileRecord":
        try:
            size = int(raw.get("size") or 0)
        except (TypeError, ValueError):
            size = 0
        return FileRecord(
            logical_path=str(raw.get("logical_path") or ""),
            mtime=parse_iso(raw.get("mtime")),
            size=size,
            digest=str(raw.get("digest") or ""),
        )

    def to_raw(self) -> dict[str, Any]:
        return {
            "logical_path": self.logical_path,
            "mtime": format_iso(self.mtime) if self.mtime else None,
            "size": self.size,
            "digest": self.digest,
        }


@dataclass
class Manifest:
    assets: dict[str, str] = field(default_factory=dict)
    files: dict[str, FileRecord] = field(default_factory=dict)
    version: int = SCHEMA_VERSION

    @staticmethod
    def from_raw(raw: dict[str, Any]) -> "Manifest":
        raw_assets = raw.get("assets")
        if raw_assets is None:
            raw_assets = {}
        elif not isinstance(raw_assets, dict):
            LOGGER.warning("Manifest 'assets' is not a JSON object, ignoring it")
            raw_assets = {}

        raw_files = raw.get("files")
        if raw_files is None:
            raw_files = {}
        elif not isinstance(raw_files, dict):
            LOGGER.warning("Manifest 'files' is not a JSON object, ignoring it")
            raw_files = {}

        try:
            version = int(raw.get("version") or SCHEMA_VERSION)
        except (TypeError, ValueError):
            version = SCHEMA_VERSION

        return Manifest(
            assets={str(k): str(v) for k, v in raw_assets.items() if isinstance(v, str)},
            files={
                str(k): FileRecord.from_raw(v) for k, v in raw_files.items() if isinstance(v, dict)
            },
            version=version,
        )

    def to_raw(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "assets": dict(self.assets),
            "files": {key: record.to_raw() for key, record in self.files.items()},
        }


def resolve_manifest_location(path: str | Path) -> tuple[Path, Path]:
    """Return ``(directory, manifest_file)`` for a directory or file path.

    A path without an extension names the output directory and the manifest
    defaults to ``manifest.json`` inside it.
    """
    expanded = Path(path).expanduser().resolve()
    if expanded.suffix == "":
        return expanded, expanded / MANIFEST_FILENAME
    return expanded.parent, expanded


def load_manifest(path: Path) -> Manifest:
    if not path.exists():
        return Manifest()
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        LOGGER.error("%s is invalid: %s %s", path, type(exc).__name__, exc)
        return Manifest()
    if not isinstance(raw, dict):
        LOGGER.warning("Manifest file %s is not a JSON object", path)
        return Manifest()
    return Manifest.from_raw(raw)


class ManifestStore:
    """In-memory manifest bound to the file it is persisted to."""

    def __init__(self, path: str | Path, logger: logging.Logger | None = None) -> None:
        self.logger = logger or LOGGER
        self.dir, self.path = resolve_manifest_location(path)
        self.data = load_manifest(self.path)

    @classmethod
    def load(cls, path: str | Path, logger: logging.Logger | None = None) -> "ManifestStore":
        return cls(path, logger=logger)

    @property
    def assets(self) -> dict[str, str]:
        if self.data.assets is None:
            self.data.assets = {}
        return self.data.assets

    @property
    def files(self) -> dict[str, FileRecord]:
        if self.data.files is None:
            self.data.files = {}
        return self.data.files

    def get_file(self, fingerprint_id: str) -> FileRecord | None:
        return self.files.get(fingerprint_id)

    def require_file(self, fingerprint_id: str) -> FileRecord:
        record = self.get_file(fingerprint_id)
        if record is None:
            raise AssetNotFoundError(fingerprint_id)
        return record

    def current(self, logical_path: str) -> FileRecord | None:
        fingerprint_id = self.assets.get(logical_path)
        if fingerprint_id is None:
            return None
        return self.get_file(fingerprint_id)

    def file_path(self, fingerprint_id: str) -> Path:
        """Return the on-disk path of ``fingerprint_id`` inside the output directory.

        Raises ``ValueError`` for ids that are absolute or would resolve outside
        the output directory.
        """
        if not is_safe_relative_path(fingerprint_id):
            raise ValueError(f"{fingerprint_id!r} is not a path inside {self.dir}")
        target = self.dir / fingerprint_id
        resolved = target.resolve()
        if resolved == self.dir or not resolved.is_relative_to(self.dir):
            raise ValueError(f"{fingerprint_id!r} resolves outside {self.dir}")
        return target

    def backups_for(self, logical_path: str) -> list[tuple[str, FileRecord]]:
        """Return the backups for ``logical_path``, newest first.

        The current version is always excluded. Records sharing an mtime are
        ordered by fingerprint id, lexically greatest first; records without
        a usable mtime come last.
        """
        current_id = self.assets.get(logical_path)
        backups = [
            (fingerprint_id, record)
            for fingerprint_id, record in self.files.items()
            if record.logical_path == logical_path and fingerprint_id != current_id
        ]
        dated = [item for item in backups if item[1].mtime is not None]
        undated = [item for item in backups if item[1].mtime is None]
        dated.sort(key=lambda item: (item[1].mtime, item[0]), reverse=True)
        undated.sort(key=lambda item: item[0], reverse=True)
        return dated + undated

    def upsert(self, fingerprint_id: str, record: FileRecord) -> None:
        self.files[fingerprint_id] = record
        self.assets[record.logical_path] = fingerprint_id

    def reset(self) -> None:
        self.data = Manifest()

    def save(self) -> None:
        ensure_dir(self.dir)
        atomic_write_text(self.path, dumps_json(self.data.to_raw()))
