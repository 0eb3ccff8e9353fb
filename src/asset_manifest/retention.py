from __future__ import annotations

import logging

from .manifest import ManifestStore
from .remover import Remover

LOGGER = logging.getLogger(__name__)

DEFAULT_KEEP = 2


class RetentionManager:
    def __init__(
        self,
        store: ManifestStore,
        remover: Remover | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.store = store
        self.logger = logger or LOGGER
        self.remover = remover or Remover(store, logger=self.logger)

    def clean(self, keep: int = DEFAULT_KEEP) -> list[str]:
        """Remove old backups, keeping the current version plus ``keep`` backups.

        Returns the removed fingerprint ids in the order they were removed.
        """
        if keep < 0:
            raise ValueError("keep must be >= 0")

        removed: list[str] = []
        for logical_path in list(self.store.assets):
            stale = self.store.backups_for(logical_path)[keep:]
            for fingerprint_id, _ in stale:
                self.remover.remove(fingerprint_id)
                removed.append(fingerprint_id)

        self.logger.info("Clean complete keep=%s removed=%s", keep, len(removed))
        return removed
