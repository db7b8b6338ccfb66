"""本地内容存储

包落地后统一存放在 <root>/<name>-<version>/，目录内含 metadata.yml。

导入策略:
  - 同 (name, version) 已存在 → 直接返回已有句柄（幂等）
  - 否则先复制到同级临时目录，再原子 rename 到最终位置
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path

from pkgshelf.core.exceptions import MaterializeError, ValidationError
from pkgshelf.core.models import METADATA_FILE, CachedPackage
from pkgshelf.utils.yaml_io import save_yaml

logger = logging.getLogger(__name__)

_IGNORED = shutil.ignore_patterns(".git")


class ContentStore:
    """本地包存储"""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, name: str, version: str) -> Path:
        return self.root / f"{name}-{version}"

    def get(self, name: str, version: str) -> CachedPackage | None:
        """查找已落地的包，不存在返回 None"""
        path = self.path_for(name, version)
        if not (path / METADATA_FILE).is_file():
            return None
        return CachedPackage.from_path(path)

    def import_package(self, name: str, version: str, stash: Path) -> CachedPackage:
        """把暂存目录导入存储，返回包句柄"""
        existing = self.get(name, version)
        if existing is not None:
            logger.debug("存储已有 %s-%s，跳过导入", name, version)
            return existing

        src = self._unwrap(Path(stash))
        dest = self.path_for(name, version)
        tmp = Path(tempfile.mkdtemp(dir=str(self.root), prefix=f".{name}-"))
        try:
            shutil.copytree(src, tmp, dirs_exist_ok=True, ignore=_IGNORED)
            self._ensure_metadata(tmp, name, version)
            try:
                os.replace(tmp, dest)
            except OSError:
                # 并发导入时目标可能已被占用
                if self.get(name, version) is None:
                    raise
                logger.debug("并发导入竞争，使用已有 %s-%s", name, version)
        except (OSError, shutil.Error) as e:
            raise MaterializeError(f"导入 {name} ({version}) 到存储失败: {e}") from e
        finally:
            shutil.rmtree(tmp, ignore_errors=True)

        logger.info("已导入 %s (%s) -> %s", name, version, dest)
        return CachedPackage.from_path(dest)

    @staticmethod
    def _unwrap(stash: Path) -> Path:
        """归档常带一层顶级目录，元数据不在根下时展开它"""
        if not stash.is_dir():
            raise MaterializeError(f"暂存目录不存在: {stash}")
        if (stash / METADATA_FILE).is_file():
            return stash
        children = [c for c in stash.iterdir() if not c.name.startswith(".")]
        if len(children) == 1 and children[0].is_dir():
            return children[0]
        return stash

    @staticmethod
    def _ensure_metadata(path: Path, name: str, version: str) -> None:
        meta_file = path / METADATA_FILE
        if not meta_file.is_file():
            logger.warning("%s (%s) 缺少 %s，按名称/版本补写", name, version, METADATA_FILE)
            save_yaml(meta_file, CachedPackage(name, version, path).metadata())
            return
        try:
            pkg = CachedPackage.from_path(path)
        except ValidationError as e:
            raise MaterializeError(str(e)) from e
        if (pkg.name, pkg.version) != (name, version):
            raise MaterializeError(
                f"包元数据与请求不一致: 期望 {name} ({version})，"
                f"实际 {pkg.name} ({pkg.version})"
            )
