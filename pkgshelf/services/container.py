"""服务容器 — 统一装配安装编排器及其协作者

同一容器内的实例共享（清单、锁文件、存储只加载/创建一次）。
CLI 通过 get_container() 获取，测试可直接构造 ServiceContainer(config)。

依赖关系（→ 表示依赖）:
  installer  → manifest, lockfile, store, downloader, scm_fetcher
  downloader → manifest（目录源列表）
  scm_fetcher → store
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pkgshelf.core.config import Config
    from pkgshelf.core.downloader import Downloader
    from pkgshelf.core.installer import Installer
    from pkgshelf.core.lockfile import Lockfile
    from pkgshelf.core.manifest import Manifest
    from pkgshelf.core.protocols import InstallObserver
    from pkgshelf.core.scm import ScmFetcher
    from pkgshelf.core.store import ContentStore

logger = logging.getLogger(__name__)


class ServiceContainer:
    """懒加载服务容器"""

    def __init__(
        self,
        config: Config | None = None,
        observer: InstallObserver | None = None,
    ) -> None:
        self._instances: dict[str, object] = {}
        if config is None:
            from pkgshelf.core.config import get_config
            config = get_config()
        self._config = config
        self._observer = observer

    @property
    def config(self) -> Config:
        return self._config

    @property
    def manifest(self) -> Manifest:
        if "manifest" not in self._instances:
            from pkgshelf.core.manifest import Manifest
            self._instances["manifest"] = Manifest.from_file(
                self._config.manifest, timeout=self._config.catalog_timeout,
            )
        return self._instances["manifest"]  # type: ignore[return-value]

    @property
    def lockfile(self) -> Lockfile:
        if "lockfile" not in self._instances:
            from pkgshelf.core.lockfile import Lockfile
            self._instances["lockfile"] = Lockfile.from_file(self._config.lockfile_path)
        return self._instances["lockfile"]  # type: ignore[return-value]

    @property
    def store(self) -> ContentStore:
        if "store" not in self._instances:
            from pkgshelf.core.store import ContentStore
            self._instances["store"] = ContentStore(self._config.store_dir)
        return self._instances["store"]  # type: ignore[return-value]

    @property
    def downloader(self) -> Downloader:
        if "downloader" not in self._instances:
            from pkgshelf.core.downloader import Downloader
            self._instances["downloader"] = Downloader(
                self.manifest.sources,
                self._config.staging_dir,
                timeout=self._config.download_timeout,
                retries=self._config.download_retries,
            )
        return self._instances["downloader"]  # type: ignore[return-value]

    @property
    def scm_fetcher(self) -> ScmFetcher:
        if "scm_fetcher" not in self._instances:
            from pkgshelf.core.scm import ScmFetcher
            self._instances["scm_fetcher"] = ScmFetcher(self.store, self._config.scm_dir)
        return self._instances["scm_fetcher"]  # type: ignore[return-value]

    @property
    def installer(self) -> Installer:
        if "installer" not in self._instances:
            from pkgshelf.core.installer import Installer
            self._instances["installer"] = Installer(
                self.manifest,
                self.lockfile,
                self.store,
                self.downloader,
                self.scm_fetcher,
                observer=self._observer,
                max_workers=self._config.max_workers,
            )
        return self._instances["installer"]  # type: ignore[return-value]


_global_container: ServiceContainer | None = None
_global_lock = threading.Lock()


def get_container() -> ServiceContainer:
    """获取全局服务容器（线程安全懒初始化）"""
    global _global_container  # noqa: PLW0603
    if _global_container is None:
        with _global_lock:
            if _global_container is None:
                _global_container = ServiceContainer()
    return _global_container


def reset_container() -> None:
    """重置全局容器（配置变更后或测试中使用）"""
    global _global_container  # noqa: PLW0603
    with _global_lock:
        _global_container = None
