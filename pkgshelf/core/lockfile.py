"""锁文件

记录上次成功安装时解析出的具体版本:
  - dependencies: 顶层依赖（约束 + 来源位置），与清单一一对应
  - graph:        全部已解析节点（版本、提供方、自身依赖）

文件格式 (YAML):
    dependencies:
      foo: {constraint: ">=1.0"}
      bar: {constraint: "~=0.9", path: ../bar}
    graph:
      foo:
        version: 1.2.0
        source: https://catalog.example.com
        dependencies: {qux: ">=0.1"}
"""

from __future__ import annotations

import logging
from collections.abc import Container, Iterable, Iterator
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from pkgshelf.core.constraint import ANY, Constraint
from pkgshelf.core.exceptions import LockfileError, ValidationError
from pkgshelf.core.models import (
    REGISTRY,
    CachedPackage,
    Dependency,
    LockedEntry,
    location_from_dict,
    location_to_dict,
)
from pkgshelf.utils.yaml_io import load_yaml, save_yaml

if TYPE_CHECKING:
    from pkgshelf.core.manifest import Manifest

logger = logging.getLogger(__name__)


def _dependency_name(dependency: Dependency | str) -> str:
    return dependency if isinstance(dependency, str) else dependency.name


class LockGraph:
    """已解析依赖图: name -> LockedEntry"""

    def __init__(self, entries: Iterable[LockedEntry] = ()) -> None:
        self._items: dict[str, LockedEntry] = {e.name: e for e in entries}

    def __iter__(self) -> Iterator[LockedEntry]:
        return iter(sorted(self._items.values()))

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, name: object) -> bool:
        return name in self._items

    def find(self, dependency: Dependency | str) -> LockedEntry | None:
        return self._items.get(_dependency_name(dependency))

    def depended_on(self, name: str) -> bool:
        """是否仍有其他节点依赖 name"""
        return any(name in e.dependencies for e in self._items.values() if e.name != name)

    def remove(self, dependency: Dependency | str, *, keep: Container[str] = ()) -> None:
        """移除节点，并级联移除不再被需要的传递依赖

        keep 中的名称（仍在顶层声明的依赖）以及仍被其他节点依赖的名称不会被移除。
        """
        name = _dependency_name(dependency)
        entry = self._items.get(name)
        if entry is None or name in keep or self.depended_on(name):
            return
        del self._items[name]
        logger.debug("锁图移除: %s", name)
        for child in entry.dependencies:
            self.remove(child, keep=keep)

    def update(self, packages: Iterable[CachedPackage]) -> None:
        """用本次落地的包整体替换锁图；包未携带提供方时沿用旧记录"""
        items: dict[str, LockedEntry] = {}
        for pkg in packages:
            prev = self._items.get(pkg.name)
            source = pkg.source
            if not source and prev is not None and prev.version == pkg.version:
                source = prev.source
            items[pkg.name] = LockedEntry(
                name=pkg.name,
                version=pkg.version,
                source=source,
                dependencies=dict(pkg.dependencies),
            )
        self._items = items


class Lockfile:
    """锁文件: 顶层依赖 + 依赖图"""

    def __init__(
        self,
        path: str | Path,
        dependencies: Iterable[Dependency] = (),
        graph: LockGraph | None = None,
    ) -> None:
        self.path = Path(path)
        self._dependencies: dict[str, Dependency] = {d.name: d for d in dependencies}
        self.graph = graph if graph is not None else LockGraph()

    @classmethod
    def from_file(cls, path: str | Path) -> Lockfile:
        """加载锁文件，不存在时返回空锁"""
        p = Path(path)
        try:
            data = load_yaml(p)
        except (yaml.YAMLError, ValueError) as e:
            raise LockfileError(f"锁文件无法解析 {p}: {e}") from e
        try:
            deps = [
                _dependency_from_lock(name, info)
                for name, info in (data.get("dependencies") or {}).items()
            ]
            graph = LockGraph(
                _entry_from_lock(name, info)
                for name, info in (data.get("graph") or {}).items()
            )
        except (AttributeError, TypeError, ValidationError) as e:
            raise LockfileError(f"锁文件内容无效 {p}: {e}") from e
        return cls(p, deps, graph)

    # ------------------------------------------------------------------
    # 顶层依赖
    # ------------------------------------------------------------------

    @property
    def dependencies(self) -> list[Dependency]:
        return [self._dependencies[n] for n in sorted(self._dependencies)]

    def find(self, dependency: Dependency | str) -> Dependency | None:
        return self._dependencies.get(_dependency_name(dependency))

    def has_dependency(self, dependency: Dependency | str) -> bool:
        return _dependency_name(dependency) in self._dependencies

    def unlock(self, dependency: Dependency | str) -> None:
        """从顶层与依赖图中移除依赖（级联清理孤立的传递依赖）"""
        name = _dependency_name(dependency)
        self._dependencies.pop(name, None)
        self.graph.remove(name, keep=self._dependencies.keys())
        logger.info("已解锁: %s", name)

    def update(self, dependencies: Iterable[Dependency]) -> None:
        """替换顶层依赖集合（只保留约束与来源位置）"""
        self._dependencies = {
            d.name: Dependency(name=d.name, constraint=d.constraint, location=d.location)
            for d in dependencies
        }

    def locks(self) -> dict[str, Dependency]:
        """依赖图中的全部节点，转换为带 locked_version 的依赖

        顶层依赖保留其声明的约束和来源位置。
        """
        result: dict[str, Dependency] = {}
        for entry in self.graph:
            top = self._dependencies.get(entry.name)
            result[entry.name] = Dependency(
                name=entry.name,
                constraint=top.constraint if top else ANY,
                location=top.location if top else REGISTRY,
                locked_version=entry.version,
            )
        return result

    # ------------------------------------------------------------------
    # 可信判断
    # ------------------------------------------------------------------

    def trusted(self, manifest: Manifest) -> bool:
        """锁文件是否与清单一致，可跳过解析直接按锁安装"""
        checked: dict[str, bool] = {}
        for dependency in manifest.dependencies:
            locked = self.find(dependency)
            if locked is None:
                logger.debug("%s 不在锁文件中，不可信", dependency.name)
                return False
            graphed = self.graph.find(dependency)
            if graphed is None:
                logger.debug("%s 不在依赖图中，不可信", dependency.name)
                return False
            if locked.location != dependency.location:
                logger.debug("%s 来源位置已变化，不可信", dependency.name)
                return False
            if not dependency.constraint.satisfies(graphed.version):
                logger.debug("%s 锁定版本不满足约束，不可信", dependency.name)
                return False
            if not self._satisfies_transitive(graphed, checked):
                logger.debug("%s 的传递依赖不完整，不可信", dependency.name)
                return False
        return True

    def _satisfies_transitive(self, entry: LockedEntry, checked: dict[str, bool]) -> bool:
        if entry.name in checked:
            return checked[entry.name]
        checked[entry.name] = True  # 环上的节点视为通过
        for name, raw in entry.dependencies.items():
            child = self.graph.find(name)
            ok = (
                child is not None
                and Constraint(raw).satisfies(child.version)
                and self._satisfies_transitive(child, checked)
            )
            if not ok:
                checked[entry.name] = False
                return False
        return True

    # ------------------------------------------------------------------
    # 持久化
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        deps: dict[str, Any] = {}
        for dep in self.dependencies:
            item: dict[str, Any] = {"constraint": dep.constraint.raw}
            item.update(location_to_dict(dep.location))
            deps[dep.name] = item
        graph: dict[str, Any] = {}
        for entry in self.graph:
            node: dict[str, Any] = {"version": entry.version}
            if entry.source:
                node["source"] = entry.source
            if entry.dependencies:
                node["dependencies"] = dict(sorted(entry.dependencies.items()))
            graph[entry.name] = node
        return {"dependencies": deps, "graph": graph}

    def save(self) -> None:
        save_yaml(self.path, self.to_dict())
        logger.info("锁文件已保存: %s", self.path)


def _dependency_from_lock(name: str, info: Any) -> Dependency:
    info = info or {}
    return Dependency(
        name=str(name),
        constraint=Constraint(str(info.get("constraint") or "")),
        location=location_from_dict(name, info),
    )


def _entry_from_lock(name: str, info: Any) -> LockedEntry:
    if not info or not info.get("version"):
        raise ValidationError(f"依赖图节点 '{name}' 缺少 version")
    deps = {str(k): str(v or "") for k, v in (info.get("dependencies") or {}).items()}
    for dep_name, raw in deps.items():
        try:
            Constraint(raw)
        except ValidationError as e:
            raise ValidationError(f"依赖图节点 '{name}' 对 {dep_name} 的约束无效: {raw}") from e
    return LockedEntry(
        name=str(name),
        version=str(info["version"]),
        source=str(info.get("source") or ""),
        dependencies=deps,
    )
