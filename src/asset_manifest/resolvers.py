"""Build resolver backed by a local source directory.

Every regular file under the source directory is an asset whose logical
path is its posix path relative to that directory. Its fingerprint id
embeds the SHA-256 of its bytes: ``js/app.js`` becomes
``js/app-<sha256>.js``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path, PurePosixPath

from .utils import atomic_write_bytes, mtime_utc, sha256_file

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileArtifact:
    source: Path
    logical_path: str
    fingerprint_id: str
    mtime: datetime
    size: int
    digest: str

    def write_to(self, target: Path) -> None:
        with self.source.open("rb") as handle:
            atomic_write_bytes(target, iter(lambda: handle.read(1024 * 1024), b""))


def fingerprint_name(logical_path: str, digest: str) -> str:
    path = PurePosixPath(logical_path)
    suffixes = "".join(path.suffixes)
    stem = path.name[: len(path.name) - len(suffixes)] if suffixes else path.name
    name = f"{stem}-{digest}{suffixes}"
    return str(path.with_name(name))


class DirectoryResolver:
    def __init__(self, source_dir: str | Path, logger: logging.Logger | None = None) -> None:
        self.source_dir = Path(source_dir).expanduser().resolve()
        self.logger = logger or LOGGER

    def expand(self, specifiers: list[str]) -> Iterator[str]:
        seen: set[str] = set()
        for spec in specifiers:
            if not spec or Path(spec).is_absolute():
                continue
            matches = sorted(p for p in self.source_dir.glob(spec) if p.is_file())
            if not matches:
                self.logger.debug("No source files match %s", spec)
            for match in matches:
                logical_path = match.relative_to(self.source_dir).as_posix()
                if logical_path in seen:
                    continue
                seen.add(logical_path)
                yield logical_path

    def resolve(self, name: str) -> FileArtifact | None:
        candidate = Path(name)
        source = candidate if candidate.is_absolute() else self.source_dir / candidate
        if not source.is_file():
            return None

        source = source.resolve()
        try:
            logical_path = source.relative_to(self.source_dir).as_posix()
        except ValueError:
            logical_path = source.name

        digest = sha256_file(source)
        return FileArtifact(
            source=source,
            logical_path=logical_path,
            fingerprint_id=fingerprint_name(logical_path, digest),
            mtime=mtime_utc(source),
            size=source.stat().st_size,
            digest=digest,
        )
