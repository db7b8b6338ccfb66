"""依赖解析器

在所有目录源聚合出的 universe 上做深度优先回溯搜索:
  - 需求为 (name, locked_version 或 constraint)，已锁定的版本被固定
  - 显式依赖（path / 已拉取的 SCM 包）只有一个候选版本，其自身依赖继续展开
  - 候选版本从新到旧尝试；多个目录源提供同一版本时以配置顺序靠前者为准
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Sequence

from packaging.version import Version

from pkgshelf.core.constraint import Constraint, parse_version
from pkgshelf.core.exceptions import NoSolutionError, ValidationError
from pkgshelf.core.models import CachedPackage, Dependency
from pkgshelf.core.protocols import CatalogProvider

logger = logging.getLogger(__name__)

_MANIFEST = "清单"


@dataclass(frozen=True)
class _Demand:
    name: str
    constraint: Constraint
    requester: str = _MANIFEST


@dataclass(frozen=True)
class _Candidate:
    name: str
    version: str
    dependencies: tuple[_Demand, ...] = field(default=())


class Resolver:
    """回溯式依赖解析器"""

    def __init__(
        self,
        sources: Sequence[CatalogProvider],
        dependencies: Iterable[Dependency],
    ) -> None:
        self.sources = list(sources)
        self._inputs: dict[str, Dependency] = {}
        self._demands: list[_Demand] = []
        for dep in dependencies:
            self.add_demand(dep)
        self._explicit: dict[str, CachedPackage] = {}
        self._candidates: dict[str, list[_Candidate]] = {}
        self._conflict: _Demand | None = None

    def add_demand(self, dependency: Dependency) -> None:
        if dependency.name in self._inputs:
            return
        self._inputs[dependency.name] = dependency
        if dependency.locked_version:
            constraint = Constraint.exact(dependency.locked_version)
        else:
            constraint = dependency.constraint
        self._demands.append(_Demand(dependency.name, constraint))

    def add_explicit_dependency(self, package: CachedPackage) -> None:
        self._explicit[package.name] = package
        self._candidates.pop(package.name, None)

    # ------------------------------------------------------------------
    # 求解
    # ------------------------------------------------------------------

    def resolve(self) -> list[Dependency]:
        self._conflict = None
        solution = self._solve(tuple(self._demands))
        if solution is None:
            d = self._conflict
            if d is None:
                raise NoSolutionError("依赖约束无解")
            raise NoSolutionError(
                f"无法满足 {d.requester} 对 {d.name} '{d.constraint}' 的约束"
            )
        return self._to_dependencies(solution)

    def _solve(self, demands: tuple[_Demand, ...]) -> dict[str, _Candidate] | None:
        """显式栈上的深度优先搜索，闭包规模不受递归深度限制

        每个栈帧: (该需求之后的待处理需求, 选择前的结果, 需求, 剩余候选)
        """
        stack: list[tuple[tuple[_Demand, ...], dict[str, _Candidate], _Demand, Iterator[_Candidate]]] = []
        pending: tuple[_Demand, ...] = demands
        chosen: dict[str, _Candidate] = {}
        while True:
            i = self._first_open(pending, chosen)
            if i == len(pending):
                return chosen
            if i >= 0:
                demand = pending[i]
                candidates = [c for c in self._candidates_for(demand.name)
                              if demand.constraint.satisfies(c.version)]
                if candidates:
                    stack.append((pending[i + 1:], chosen, demand, iter(candidates)))
                else:
                    self._conflict = demand

            # 取下一个候选；当前帧耗尽则回溯
            while stack:
                rest, base, demand, remaining = stack[-1]
                cand = next(remaining, None)
                if cand is None:
                    stack.pop()
                    continue
                pending = rest + cand.dependencies
                chosen = {**base, demand.name: cand}
                break
            else:
                return None

    def _first_open(self, pending: tuple[_Demand, ...], chosen: dict[str, _Candidate]) -> int:
        """第一个尚未选定版本的需求下标；已选版本冲突时返回 -1"""
        for i, d in enumerate(pending):
            picked = chosen.get(d.name)
            if picked is None:
                return i
            if not d.constraint.satisfies(picked.version):
                self._conflict = d
                return -1
        return len(pending)

    def _candidates_for(self, name: str) -> list[_Candidate]:
        if name in self._candidates:
            return self._candidates[name]

        explicit = self._explicit.get(name)
        if explicit is not None:
            cands = [self._candidate(name, explicit.version, explicit.dependencies)]
        else:
            rows: dict[str, tuple[Version, dict[str, str]]] = {}
            for source in self.sources:
                for remote in source.versions(name):
                    if remote.version in rows:
                        continue
                    try:
                        rows[remote.version] = (parse_version(remote.version), remote.dependencies)
                    except ValidationError as e:
                        logger.warning("忽略 %s (%s): %s", name, remote.version, e)
            cands = [
                self._candidate(name, version, deps)
                for version, (_, deps) in sorted(rows.items(), key=lambda kv: kv[1][0], reverse=True)
            ]
        self._candidates[name] = cands
        return cands

    @staticmethod
    def _candidate(name: str, version: str, deps: dict[str, str]) -> _Candidate:
        requester = f"{name} ({version})"
        return _Candidate(
            name=name,
            version=version,
            dependencies=tuple(
                _Demand(dep_name, Constraint(raw), requester)
                for dep_name, raw in sorted(deps.items())
            ),
        )

    def _to_dependencies(self, solution: dict[str, _Candidate]) -> list[Dependency]:
        result = []
        for name in sorted(solution):
            version = solution[name].version
            dep = self._inputs.get(name)
            if dep is None:
                dep = Dependency(name=name)
            dep.locked_version = version
            if dep.cached_package is not None and dep.cached_package.version != version:
                dep.cached_package = None
            explicit = self._explicit.get(name)
            if explicit is not None and dep.cached_package is None:
                dep.cached_package = explicit
            result.append(dep)
        return result
