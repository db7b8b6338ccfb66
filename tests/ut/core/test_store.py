"""本地内容存储测试"""

from __future__ import annotations

from pathlib import Path

import pytest

from pkgshelf.core.exceptions import MaterializeError
from pkgshelf.core.store import ContentStore
from pkgshelf.utils.yaml_io import load_yaml, save_yaml


def _stash(root: Path, name: str, version: str, *, deps: dict | None = None) -> Path:
    root.mkdir(parents=True, exist_ok=True)
    save_yaml(root / "metadata.yml", {
        "name": name, "version": version, "dependencies": deps or {},
    })
    (root / "README").write_text(f"{name} {version}", encoding="utf-8")
    return root


class TestContentStore:
    def test_import_and_get(self, tmp_path: Path) -> None:
        store = ContentStore(tmp_path / "store")
        assert store.get("foo", "1.0.0") is None

        stash = _stash(tmp_path / "stash", "foo", "1.0.0", deps={"bar": ">= 0.1"})
        pkg = store.import_package("foo", "1.0.0", stash)

        assert pkg.path == tmp_path / "store" / "foo-1.0.0"
        assert pkg.dependencies == {"bar": ">= 0.1"}
        assert (pkg.path / "README").read_text(encoding="utf-8") == "foo 1.0.0"
        assert store.get("foo", "1.0.0") == pkg

    def test_import_is_idempotent(self, tmp_path: Path) -> None:
        store = ContentStore(tmp_path / "store")
        first = store.import_package("foo", "1.0.0", _stash(tmp_path / "a", "foo", "1.0.0"))
        (tmp_path / "b").mkdir()
        # 第二次导入不会读取 stash 内容
        second = store.import_package("foo", "1.0.0", tmp_path / "b")
        assert first == second

    def test_unwraps_single_top_level_dir(self, tmp_path: Path) -> None:
        store = ContentStore(tmp_path / "store")
        _stash(tmp_path / "stash" / "foo-1.0.0", "foo", "1.0.0")
        pkg = store.import_package("foo", "1.0.0", tmp_path / "stash")
        assert (pkg.path / "metadata.yml").is_file()
        assert (pkg.path / "README").is_file()

    def test_missing_metadata_written(self, tmp_path: Path) -> None:
        store = ContentStore(tmp_path / "store")
        stash = tmp_path / "stash"
        stash.mkdir()
        (stash / "a.txt").write_text("x", encoding="utf-8")
        (stash / "b.txt").write_text("y", encoding="utf-8")

        pkg = store.import_package("foo", "2.0", stash)
        assert load_yaml(pkg.path / "metadata.yml")["version"] == "2.0"

    def test_metadata_mismatch(self, tmp_path: Path) -> None:
        store = ContentStore(tmp_path / "store")
        stash = _stash(tmp_path / "stash", "foo", "1.0.0")
        with pytest.raises(MaterializeError, match="不一致"):
            store.import_package("foo", "9.9.9", stash)
        assert store.get("foo", "9.9.9") is None
        assert not any(p.name.startswith(".foo-") for p in (tmp_path / "store").iterdir())

    def test_missing_stash(self, tmp_path: Path) -> None:
        store = ContentStore(tmp_path / "store")
        with pytest.raises(MaterializeError, match="暂存目录不存在"):
            store.import_package("foo", "1.0", tmp_path / "nope")

    def test_git_dir_not_copied(self, tmp_path: Path) -> None:
        store = ContentStore(tmp_path / "store")
        stash = _stash(tmp_path / "repo", "foo", "1.0.0")
        (stash / ".git").mkdir()
        pkg = store.import_package("foo", "1.0.0", stash)
        assert not (pkg.path / ".git").exists()
