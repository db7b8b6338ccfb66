"""默认安装观察者：把进度写入日志"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pkgshelf.core.models import Dependency, RemotePackage
    from pkgshelf.core.protocols import CatalogProvider

logger = logging.getLogger("pkgshelf.install")


class LoggingObserver:
    def on_fetch_start(self, source: CatalogProvider) -> None:
        logger.info("拉取包索引: %s ...", source.uri)

    def on_fetch(self, dependency: Dependency) -> None:
        logger.info("拉取 '%s' (%s: %s)", dependency.name, dependency.kind, dependency.location)

    def on_use(self, dependency: Dependency) -> None:
        logger.info("使用 %s", dependency)

    def on_install(self, source: CatalogProvider, package: RemotePackage) -> None:
        logger.info("安装 %s (%s) 来自 %s", package.name, package.version, source.uri)

    def on_warning(self, message: str) -> None:
        logger.warning(message)
