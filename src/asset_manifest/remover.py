from __future__ import annotations

import logging
import shutil

from .manifest import ManifestStore

LOGGER = logging.getLogger(__name__)


class Remover:
    def __init__(self, store: ManifestStore, logger: logging.Logger | None = None) -> None:
        self.store = store
        self.logger = logger or LOGGER

    def remove(self, fingerprint_id: str) -> None:
        """Drop ``fingerprint_id`` from the manifest and delete its file.

        If it is the current version of its logical path the pointer is
        cleared; no older backup is promoted in its place.
        """
        record = self.store.require_file(fingerprint_id)
        path = self.store.file_path(fingerprint_id)

        if self.store.assets.get(record.logical_path) == fingerprint_id:
            del self.store.assets[record.logical_path]

        del self.store.files[fingerprint_id]
        path.unlink(missing_ok=True)

        self.store.save()

        self.logger.warning("Removed %s", fingerprint_id)

    def clobber(self) -> None:
        directory = self.store.dir
        if directory.exists():
            shutil.rmtree(directory)
        self.store.reset()
        self.logger.warning("Removed %s", directory)
