from __future__ import annotations

import logging
import time
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

from .manifest import FileRecord, ManifestStore
from .utils import flatten

LOGGER = logging.getLogger(__name__)


class Artifact(Protocol):
    fingerprint_id: str
    logical_path: str
    mtime: datetime
    size: int
    digest: str

    def write_to(self, target: Path) -> None: ...


class BuildResolver(Protocol):
    def expand(self, specifiers: list[str]) -> Iterable[str]: ...

    def resolve(self, name: str) -> Artifact | None: ...


class CompileCoordinator:
    def __init__(
        self,
        store: ManifestStore,
        resolver: BuildResolver,
        logger: logging.Logger | None = None,
    ) -> None:
        self.store = store
        self.resolver = resolver
        self.logger = logger or LOGGER

    def compile(self, *specifiers: Any) -> list[Artifact]:
        """Compile and write each resolved asset to its fingerprinted file.

        The manifest is saved after every asset, so a failure partway through
        keeps the assets already processed.
        """
        flat = list(flatten(specifiers))
        names = list(self.resolver.expand(flat))
        names.extend(spec for spec in flat if Path(spec).is_absolute())

        compiled: list[Artifact] = []
        for name in names:
            artifact = self._find_asset(name)
            if artifact is None:
                continue

            target = self.store.file_path(artifact.fingerprint_id)
            self.store.upsert(
                artifact.fingerprint_id,
                FileRecord(
                    logical_path=artifact.logical_path,
                    mtime=artifact.mtime,
                    size=artifact.size,
                    digest=artifact.digest,
                ),
            )

            if target.exists():
                self.logger.debug("Skipping %s, already exists", target)
            else:
                self.logger.info("Writing %s", target)
                artifact.write_to(target)

            self.store.save()
            compiled.append(artifact)

        return compiled

    def _find_asset(self, name: str) -> Artifact | None:
        started = time.perf_counter()
        artifact = self.resolver.resolve(name)
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        if artifact is None:
            self.logger.debug("No asset found for %s", name)
        else:
            self.logger.info("Compiled %s  (%sms)", name, elapsed_ms)
        return artifact
