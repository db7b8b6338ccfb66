"""包下载器

职责:
- 在已构建 universe 的目录源中查找 (name, version)
- 下载归档（带超时与重试）
- 解压到暂存目录，返回 stash 路径
"""

from __future__ import annotations

import logging
import shutil
import tarfile
import tempfile
import time
import urllib.error
from pathlib import Path
from typing import Sequence

from pkgshelf.core.exceptions import MaterializeError, ValidationError
from pkgshelf.core.models import RemotePackage
from pkgshelf.core.protocols import CatalogProvider
from pkgshelf.utils.net import download_to

logger = logging.getLogger(__name__)

_RETRY_BACKOFF = 1.0


class Downloader:
    """从目录源下载包归档"""

    def __init__(
        self,
        sources: Sequence[CatalogProvider],
        staging_dir: str | Path,
        *,
        timeout: float = 300,
        retries: int = 2,
    ) -> None:
        self.sources = list(sources)
        self.staging_dir = Path(staging_dir)
        self.timeout = timeout
        self.retries = max(0, retries)

    def download(self, name: str, version: str) -> Path:
        """按目录源配置顺序尝试，返回解压后的暂存目录"""
        errors: list[str] = []
        for source in self.sources:
            if not source.has(name, version):
                continue
            remote = source.package(name, version)
            try:
                return self._download_remote(remote)
            except MaterializeError as e:
                logger.warning("从 %s 下载 %s (%s) 失败: %s", source.uri, name, version, e)
                errors.append(f"{source.uri}: {e}")

        if not errors:
            raise MaterializeError(f"没有目录源提供 {name} ({version})")
        raise MaterializeError(f"下载 {name} ({version}) 失败: {'; '.join(errors)}")

    def _download_remote(self, remote: RemotePackage) -> Path:
        if not remote.download_url:
            raise MaterializeError(f"{remote.name} ({remote.version}) 没有 download_url")

        self.staging_dir.mkdir(parents=True, exist_ok=True)
        work = Path(tempfile.mkdtemp(
            dir=str(self.staging_dir), prefix=f"{remote.name}-{remote.version}-",
        ))
        archive = work / "archive.tar.gz"
        try:
            self._fetch_with_retry(remote, archive)
            stash = work / "stash"
            self._extract(archive, stash)
        except BaseException:
            shutil.rmtree(work, ignore_errors=True)
            raise
        archive.unlink(missing_ok=True)
        return stash

    def _fetch_with_retry(self, remote: RemotePackage, archive: Path) -> None:
        attempts = self.retries + 1
        for attempt in range(1, attempts + 1):
            try:
                logger.info("  下载: %s", remote.download_url)
                download_to(
                    remote.download_url, archive,
                    timeout=self.timeout, context=f"download {remote.name}",
                )
                return
            except ValidationError as e:
                raise MaterializeError(str(e)) from e
            except (urllib.error.URLError, OSError) as e:
                if attempt >= attempts:
                    raise MaterializeError(
                        f"下载失败: {remote.download_url} - {e}",
                    ) from e
                logger.warning(
                    "  下载失败 (第 %d/%d 次): %s, 重试中", attempt, attempts, e,
                )
                time.sleep(_RETRY_BACKOFF * attempt)

    @staticmethod
    def _extract(archive: Path, dest: Path) -> None:
        dest.mkdir(parents=True, exist_ok=True)
        try:
            with tarfile.open(archive) as tf:
                tf.extractall(path=str(dest), filter="data")  # noqa: S202
        except (tarfile.TarError, OSError) as e:
            raise MaterializeError(f"解压失败 {archive.name}: {e}") from e

    def discard(self, stash: Path) -> None:
        """导入完成后清理暂存目录"""
        work = stash.parent
        if work.parent == self.staging_dir:
            shutil.rmtree(work, ignore_errors=True)
