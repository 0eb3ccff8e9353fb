from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from asset_manifest.manifest import AssetNotFoundError, FileRecord, ManifestStore
from asset_manifest.remover import Remover


def _store_with_two_versions(tmp_path) -> ManifestStore:
    store = ManifestStore(tmp_path / "assets")
    store.upsert(
        "application-AAA.js",
        FileRecord("application.js", datetime(2026, 1, 1, tzinfo=timezone.utc), 3, "AAA"),
    )
    store.upsert(
        "application-BBB.js",
        FileRecord("application.js", datetime(2026, 1, 2, tzinfo=timezone.utc), 3, "BBB"),
    )
    store.dir.mkdir(parents=True)
    (store.dir / "application-AAA.js").write_text("aaa", encoding="utf-8")
    (store.dir / "application-BBB.js").write_text("bbb", encoding="utf-8")
    store.save()
    return store


def test_remove_current_clears_pointer_without_fallback(tmp_path) -> None:
    store = _store_with_two_versions(tmp_path)

    Remover(store).remove("application-BBB.js")

    assert "application.js" not in store.assets
    assert "application-BBB.js" not in store.files
    assert "application-AAA.js" in store.files
    assert not (store.dir / "application-BBB.js").exists()
    assert (store.dir / "application-AAA.js").exists()

    raw = json.loads(store.path.read_text(encoding="utf-8"))
    assert raw["assets"] == {}
    assert list(raw["files"]) == ["application-AAA.js"]


def test_remove_backup_keeps_current_pointer(tmp_path) -> None:
    store = _store_with_two_versions(tmp_path)

    Remover(store).remove("application-AAA.js")

    assert store.assets == {"application.js": "application-BBB.js"}
    assert list(store.files) == ["application-BBB.js"]
    assert not (store.dir / "application-AAA.js").exists()


def test_remove_tolerates_missing_file_on_disk(tmp_path) -> None:
    store = _store_with_two_versions(tmp_path)
    (store.dir / "application-AAA.js").unlink()

    Remover(store).remove("application-AAA.js")

    assert "application-AAA.js" not in store.files


def test_remove_unknown_id_raises_not_found(tmp_path) -> None:
    store = _store_with_two_versions(tmp_path)
    before = store.path.read_text(encoding="utf-8")

    with pytest.raises(AssetNotFoundError):
        Remover(store).remove("application-ZZZ.js")

    assert store.path.read_text(encoding="utf-8") == before


def test_clobber_deletes_directory_and_resets_manifest(tmp_path) -> None:
    store = _store_with_two_versions(tmp_path)

    Remover(store).clobber()

    assert not store.dir.exists()
    assert store.assets == {}
    assert store.files == {}

    store.save()
    raw = json.loads(store.path.read_text(encoding="utf-8"))
    assert raw["assets"] == {}
    assert raw["files"] == {}


def test_clobber_missing_directory_is_noop(tmp_path) -> None:
    store = ManifestStore(tmp_path / "never-created")
    Remover(store).clobber()
    assert not store.dir.exists()


def test_remove_refuses_id_outside_output_dir(tmp_path) -> None:
    out_dir = tmp_path / "out" / "assets"
    out_dir.mkdir(parents=True)
    victim = tmp_path / "out" / "victim.txt"
    victim.write_text("keep me", encoding="utf-8")
    (out_dir / "manifest.json").write_text(
        json.dumps(
            {
                "assets": {"victim.txt": "../victim.txt"},
                "files": {
                    "../victim.txt": {
                        "logical_path": "victim.txt",
                        "mtime": "2026-01-01T00:00:00+00:00",
                        "size": 7,
                        "digest": "x",
                    }
                },
            }
        ),
        encoding="utf-8",
    )
    store = ManifestStore(out_dir)

    with pytest.raises(ValueError):
        Remover(store).remove("../victim.txt")

    assert victim.read_text(encoding="utf-8") == "keep me"
    assert "../victim.txt" in store.files
    assert store.assets == {"victim.txt": "../victim.txt"}
