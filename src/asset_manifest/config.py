from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .compiler import BuildResolver
from .remote_resolver import RemoteBuildResolver
from .resolvers import DirectoryResolver
from .retention import DEFAULT_KEEP


@dataclass(frozen=True)
class Settings:
    manifest_path: Path
    source_dir: Path | None
    resolver_url: str | None
    keep: int
    http_timeout: int
    http_max_retries: int

    @staticmethod
    def from_sources(
        cli_manifest: str | None = None,
        cli_source_dir: str | None = None,
        cli_resolver_url: str | None = None,
        cli_keep: int | None = None,
    ) -> "Settings":
        manifest_path = Path(
            cli_manifest or os.getenv("MANIFEST_PATH") or "./public/assets"
        ).expanduser().resolve()

        source_dir_raw = cli_source_dir or os.getenv("SOURCE_DIR") or None
        source_dir = Path(source_dir_raw).expanduser().resolve() if source_dir_raw else None
        resolver_url = (cli_resolver_url or os.getenv("RESOLVER_URL") or "").strip() or None

        if source_dir and resolver_url:
            raise ValueError("SOURCE_DIR and RESOLVER_URL are mutually exclusive")

        keep = cli_keep if cli_keep is not None else _env_int("KEEP_BACKUPS", DEFAULT_KEEP)
        timeout = _env_int("HTTP_TIMEOUT", 60)
        retries = _env_int("HTTP_MAX_RETRIES", 5)

        if keep < 0:
            raise ValueError("KEEP_BACKUPS must be >= 0")
        if timeout <= 0:
            raise ValueError("HTTP_TIMEOUT must be > 0")
        if retries < 0:
            raise ValueError("HTTP_MAX_RETRIES must be >= 0")

        return Settings(
            manifest_path=manifest_path,
            source_dir=source_dir,
            resolver_url=resolver_url,
            keep=keep,
            http_timeout=timeout,
            http_max_retries=retries,
        )

    def build_resolver(self) -> BuildResolver:
        if self.source_dir is not None:
            return DirectoryResolver(self.source_dir)
        if self.resolver_url:
            return RemoteBuildResolver(
                base_url=self.resolver_url,
                timeout=self.http_timeout,
                max_retries=self.http_max_retries,
            )
        raise ValueError("No build resolver configured: set SOURCE_DIR or RESOLVER_URL")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc
