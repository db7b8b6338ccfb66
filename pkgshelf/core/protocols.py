"""协作者协议定义

安装编排器只依赖这些抽象（Protocol），具体实现可在测试中整体替换。
使用 typing.Protocol 而非 ABC，现有类无需修改继承关系即可满足协议。
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from pkgshelf.core.models import CachedPackage, Dependency, RemotePackage


# =========================================================================
# 目录源
# =========================================================================

class CatalogProvider(Protocol):
    """远程目录源协议

    build_universe 只修改自身索引；传输/格式问题抛 CatalogError。
    """

    uri: str

    def build_universe(self) -> None:
        ...

    def versions(self, name: str) -> list[RemotePackage]:
        """universe 中某个包的全部版本"""
        ...

    def has(self, name: str, version: str) -> bool:
        ...

    def package(self, name: str, version: str) -> RemotePackage:
        """返回包句柄，未知时抛 MaterializeError"""
        ...


# =========================================================================
# 下载 / 存储 / SCM
# =========================================================================

class PackageDownloader(Protocol):
    def download(self, name: str, version: str) -> Path:
        """下载并解压到暂存目录，返回 stash 路径"""
        ...

    def discard(self, stash: Path) -> None:
        ...


class PackageStore(Protocol):
    """本地内容存储协议，以 (name, version) 为键，导入幂等"""

    def get(self, name: str, version: str) -> CachedPackage | None:
        ...

    def import_package(self, name: str, version: str, stash: Path) -> CachedPackage:
        ...


class ScmProvider(Protocol):
    def fetch(self, dependency: Dependency) -> CachedPackage:
        """拉取 SCM 依赖并落地到内容存储"""
        ...


# =========================================================================
# 解析器
# =========================================================================

class DependencyResolver(Protocol):
    def add_explicit_dependency(self, package: CachedPackage) -> None:
        """固定 name+version，后续 resolve 不再推导其版本"""
        ...

    def resolve(self) -> list[Dependency]:
        """返回满足全部约束的最小依赖闭包，无解时抛 NoSolutionError"""
        ...


# =========================================================================
# 进度观察者
# =========================================================================

class InstallObserver(Protocol):
    """安装进度回调，替代全局格式化器"""

    def on_fetch_start(self, source: CatalogProvider) -> None:
        ...

    def on_fetch(self, dependency: Dependency) -> None:
        ...

    def on_use(self, dependency: Dependency) -> None:
        ...

    def on_install(self, source: CatalogProvider, package: RemotePackage) -> None:
        ...

    def on_warning(self, message: str) -> None:
        ...
