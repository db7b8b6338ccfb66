"""安装编排器

run() 流程:
  1. 锁文件对齐清单：移除清单已删除的依赖；锁定版本不再满足约束时报错
  2. 按锁是否可信选择路径:
     - 可信: 直接按锁图安装，全部已落地时跳过 universe 构建
     - 不可信: 先拉取 SCM 依赖 → 构建 universe → 注册显式依赖 → 解析 → 安装
  3. 只把清单中声明的依赖写为顶层锁，更新依赖图后保存（每次 run 仅保存一次）

任一步失败都不会写锁文件，磁盘上的旧锁保持权威。
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from operator import attrgetter
from typing import Callable, Sequence

from pkgshelf.core.exceptions import (
    CatalogError,
    MaterializeError,
    OutdatedDependencyError,
    ValidationError,
)
from pkgshelf.core.lockfile import Lockfile
from pkgshelf.core.manifest import Manifest
from pkgshelf.core.models import (
    CachedPackage,
    Dependency,
    PathLocation,
    RegistryLocation,
    ScmLocation,
)
from pkgshelf.core.observer import LoggingObserver
from pkgshelf.core.protocols import (
    CatalogProvider,
    DependencyResolver,
    InstallObserver,
    PackageDownloader,
    PackageStore,
    ScmProvider,
)
from pkgshelf.core.resolver import Resolver

logger = logging.getLogger(__name__)

ResolverFactory = Callable[[Sequence[CatalogProvider], list[Dependency]], DependencyResolver]

_by_name = attrgetter("name")


@dataclass
class UniverseResult:
    """单个目录源的 universe 构建结果"""

    source: CatalogProvider
    error: CatalogError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class Installer:
    """依赖安装编排器"""

    def __init__(
        self,
        manifest: Manifest,
        lockfile: Lockfile,
        store: PackageStore,
        downloader: PackageDownloader,
        scm: ScmProvider,
        *,
        resolver_factory: ResolverFactory | None = None,
        observer: InstallObserver | None = None,
        max_workers: int = 8,
    ) -> None:
        self.manifest = manifest
        self.lockfile = lockfile
        self.store = store
        self.downloader = downloader
        self.scm = scm
        self.resolver_factory: ResolverFactory = resolver_factory or Resolver
        self.observer: InstallObserver = observer or LoggingObserver()
        self.max_workers = max(1, max_workers)

    # ------------------------------------------------------------------
    # 顶层入口
    # ------------------------------------------------------------------

    def run(self) -> list[CachedPackage]:
        declared = self.manifest.names
        self.reduce_lockfile(declared)

        if self.lockfile.trusted(self.manifest):
            logger.info("锁文件可信，按锁安装")
            dependencies, packages = self.install_from_lockfile()
        else:
            logger.info("锁文件不可信，重新解析依赖")
            dependencies, packages = self.install_from_universe()

        # 传递依赖只进依赖图，不写为顶层锁
        to_lock = [d for d in dependencies if d.name in declared]

        self.lockfile.graph.update(packages)
        self.lockfile.update(to_lock)
        self.lockfile.save()
        return packages

    def reduce_lockfile(self, declared: frozenset[str]) -> None:
        """让锁文件与当前清单一致

        清单已删除的依赖从锁中移除；锁定版本不再满足当前约束时抛
        OutdatedDependencyError，需要调用方显式更新。
        """
        for dependency in self.lockfile.dependencies:
            if dependency.name not in declared:
                self.lockfile.unlock(dependency)
                continue

            locked = self.lockfile.graph.find(dependency)
            if locked is None:
                continue

            current = self.manifest.find(dependency.name)
            if current is not None and not current.constraint.satisfies(locked.version):
                raise OutdatedDependencyError(locked, current)

    # ------------------------------------------------------------------
    # universe
    # ------------------------------------------------------------------

    def build_universe(self) -> list[UniverseResult]:
        """并发拉取所有目录源的 universe，等待全部完成后返回

        单个目录源的 CatalogError 只记警告，不影响其他目录源；其余异常向上抛出。
        """
        sources = list(self.manifest.sources)
        if not sources:
            return []

        workers = min(len(sources), self.max_workers)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="universe") as executor:
            futures = [executor.submit(self._build_source_universe, s) for s in sources]
            results = [f.result() for f in futures]

        failed = [r for r in results if not r.ok]
        if failed:
            logger.warning(
                "universe 汇总: %d 成功, %d 失败 (%s)",
                len(results) - len(failed), len(failed),
                ", ".join(r.source.uri for r in failed),
            )
        return results

    def _build_source_universe(self, source: CatalogProvider) -> UniverseResult:
        self.observer.on_fetch_start(source)
        try:
            source.build_universe()
        except CatalogError as e:
            self.observer.on_warning(f"从目录源拉取 universe 失败: {source.uri}")
            self.observer.on_warning(f"  * [{type(e).__name__}] {e}")
            return UniverseResult(source=source, error=e)
        return UniverseResult(source=source)

    # ------------------------------------------------------------------
    # 两条安装路径
    # ------------------------------------------------------------------

    def install_from_lockfile(self) -> tuple[list[Dependency], list[CachedPackage]]:
        """按锁图安装全部依赖"""
        dependencies = []
        for dep in self.lockfile.locks().values():
            declared = self.manifest.find(dep.name)
            if declared is not None:
                dep = replace(dep, constraint=declared.constraint)
            self._probe(dep)
            dependencies.append(dep)

        # 只有需要下载时才构建 universe
        if not all(d.downloaded for d in dependencies):
            self.build_universe()

        packages = [self.install(d) for d in sorted(dependencies, key=_by_name)]
        return dependencies, packages

    def install_from_universe(self) -> tuple[list[Dependency], list[CachedPackage]]:
        """重新解析并安装，返回解析前的依赖集合与落地的包"""
        dependencies = self._merge_dependencies()

        # SCM 依赖可能带有尚未知晓的约束，必须在解析前拉取
        for dep in dependencies:
            if dep.scm_location:
                self.observer.on_fetch(dep)
                dep.cached_package = self.scm.fetch(dep)

        # 完整解析需要完整的 universe，这条路径总要构建
        self.build_universe()

        resolver = self.resolver_factory(self.manifest.sources, dependencies)
        for dep in dependencies:
            self._probe(dep)
            if dep.cached_package is not None:
                resolver.add_explicit_dependency(dep.cached_package)

        resolved = resolver.resolve()
        packages = [self.install(d) for d in sorted(resolved, key=_by_name)]
        return dependencies, packages

    def _merge_dependencies(self) -> list[Dependency]:
        """清单依赖 ∪ 锁图依赖，按名称去重（先写入者优先，清单在前）

        清单依赖的来源位置未变且锁定版本仍满足约束时，沿用锁定版本；
        path 依赖的版本以磁盘上的元数据为准。
        """
        locks = self.lockfile.locks()
        merged: dict[str, Dependency] = {}
        for declared in self.manifest.dependencies:
            dep = replace(declared, locked_version=None, cached_package=None)
            prior = locks.get(dep.name)
            if (
                prior is not None
                and prior.locked_version
                and not isinstance(dep.location, PathLocation)
                and prior.location == dep.location
                and dep.constraint.satisfies(prior.locked_version)
            ):
                dep.locked_version = prior.locked_version
                dep.location = prior.location
            merged.setdefault(dep.name, dep)
        for name, dep in locks.items():
            merged.setdefault(name, dep)
        return list(merged.values())

    # ------------------------------------------------------------------
    # 单个依赖落地
    # ------------------------------------------------------------------

    def install(self, dependency: Dependency) -> CachedPackage:
        """落地单个依赖，返回存储中的包句柄"""
        self._probe(dependency)
        if dependency.cached_package is not None:
            self.observer.on_use(dependency)
            return dependency.cached_package

        loc = dependency.location
        if isinstance(loc, ScmLocation):
            self.observer.on_fetch(dependency)
            dependency.cached_package = self.scm.fetch(dependency)
            return dependency.cached_package
        if isinstance(loc, RegistryLocation):
            dependency.cached_package = self._install_from_source(dependency)
            return dependency.cached_package
        if isinstance(loc, PathLocation):
            # _probe 对 path 依赖要么成功要么抛错
            raise MaterializeError(f"path 依赖 {dependency.name} 未能加载")
        raise TypeError(f"未知的来源位置类型: {type(loc).__name__}")

    def _install_from_source(self, dependency: Dependency) -> CachedPackage:
        name, version = dependency.name, dependency.locked_version
        if not version:
            raise MaterializeError(f"{name} 尚未解析出具体版本，无法安装")

        source = self.manifest.source_for(name, version)
        remote = source.package(name, version)
        self.observer.on_install(source, remote)

        stash = self.downloader.download(name, version)
        try:
            package = self.store.import_package(name, version, stash)
        finally:
            self.downloader.discard(stash)
        return replace(package, source=source.uri)

    def _probe(self, dependency: Dependency) -> None:
        """确定依赖是否已落地，已落地时挂上 cached_package"""
        if dependency.cached_package is not None:
            return

        loc = dependency.location
        if isinstance(loc, PathLocation):
            path = self.manifest.resolve_path(loc)
            try:
                package = CachedPackage.from_path(path, source=loc.path)
            except ValidationError as e:
                raise MaterializeError(f"path 依赖 {dependency.name} 无效: {e}") from e
            if package.name != dependency.name:
                raise MaterializeError(
                    f"{path} 中的包名为 '{package.name}'，与依赖 '{dependency.name}' 不一致"
                )
            dependency.cached_package = package
        elif isinstance(loc, (RegistryLocation, ScmLocation)):
            if not dependency.locked_version:
                return
            found = self.store.get(dependency.name, dependency.locked_version)
            if found is not None and isinstance(loc, ScmLocation):
                found = replace(found, source=loc.url)
            dependency.cached_package = found
        else:
            raise TypeError(f"未知的来源位置类型: {type(loc).__name__}")

