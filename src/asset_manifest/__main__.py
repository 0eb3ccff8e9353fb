from __future__ import annotations

import argparse
import logging
import sys

from .compiler import CompileCoordinator
from .config import Settings
from .manifest import AssetNotFoundError, ManifestStore
from .remover import Remover
from .retention import RetentionManager
from .utils import dumps_json

LOGGER = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="asset_manifest",
        description="Maintain a manifest of fingerprinted build artifacts.",
    )
    parser.add_argument(
        "--manifest",
        default=None,
        help="Manifest file or output directory. Defaults to MANIFEST_PATH or ./public/assets.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ERROR). Default: INFO",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    compile_cmd = commands.add_parser("compile", help="Compile assets and record them.")
    source = compile_cmd.add_mutually_exclusive_group()
    source.add_argument(
        "--source-dir",
        default=None,
        help="Resolve assets from this directory. Defaults to SOURCE_DIR.",
    )
    source.add_argument(
        "--resolver-url",
        default=None,
        help="Resolve assets from a build server. Defaults to RESOLVER_URL.",
    )
    compile_cmd.add_argument("specifiers", nargs="+", help="Logical paths, globs or absolute paths.")

    clean_cmd = commands.add_parser("clean", help="Remove old backups.")
    clean_cmd.add_argument(
        "--keep",
        type=int,
        default=None,
        help="Backups to keep per asset. Defaults to KEEP_BACKUPS or 2.",
    )

    remove_cmd = commands.add_parser("remove", help="Remove fingerprinted files.")
    remove_cmd.add_argument("fingerprint_ids", nargs="+")

    commands.add_parser("clobber", help="Delete the whole output directory.")
    commands.add_parser("show", help="Print the manifest as JSON.")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    try:
        settings = Settings.from_sources(
            cli_manifest=args.manifest,
            cli_source_dir=getattr(args, "source_dir", None),
            cli_resolver_url=getattr(args, "resolver_url", None),
            cli_keep=getattr(args, "keep", None),
        )
        resolver = settings.build_resolver() if args.command == "compile" else None
    except ValueError as exc:
        LOGGER.error("Invalid configuration: %s", exc)
        return 2

    store = ManifestStore(settings.manifest_path)

    if args.command == "compile":
        compiled = CompileCoordinator(store, resolver).compile(args.specifiers)
        LOGGER.info("Compile complete assets=%s manifest=%s", len(compiled), store.path)
        return 0

    if args.command == "clean":
        RetentionManager(store).clean(keep=settings.keep)
        return 0

    if args.command == "remove":
        remover = Remover(store)
        status = 0
        for fingerprint_id in args.fingerprint_ids:
            try:
                remover.remove(fingerprint_id)
            except (AssetNotFoundError, ValueError) as exc:
                LOGGER.error("%s", exc)
                status = 1
        return status

    if args.command == "clobber":
        Remover(store).clobber()
        return 0

    sys.stdout.write(dumps_json(store.data.to_raw()))
    return 0


if __name__ == "__main__":
    sys.exit(main())
