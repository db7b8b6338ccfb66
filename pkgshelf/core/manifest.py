"""依赖清单

职责:
- 从 YAML 清单加载目录源与顶层依赖声明
- 按 (name, version) 查找能提供该版本的目录源

清单格式:
    sources:
      - https://catalog.example.com
    dependencies:
      foo: ">= 1.0"
      bar: {constraint: "~> 0.9", path: ../bar}
      baz: {git: https://example.com/baz.git, ref: main}
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from pkgshelf.core.constraint import Constraint
from pkgshelf.core.exceptions import ConfigError, MaterializeError, ValidationError
from pkgshelf.core.models import Dependency, PathLocation, location_from_dict
from pkgshelf.core.protocols import CatalogProvider
from pkgshelf.core.sources import CatalogSource
from pkgshelf.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)


class Manifest:
    """依赖清单"""

    def __init__(
        self,
        path: str | Path,
        dependencies: list[Dependency],
        sources: list[CatalogProvider],
    ) -> None:
        self.path = Path(path)
        self.base_dir = self.path.parent
        self.sources = sources
        self._dependencies = {d.name: d for d in dependencies}

    @classmethod
    def from_file(cls, path: str | Path, *, timeout: float = 30) -> Manifest:
        p = Path(path)
        if not p.exists():
            raise ConfigError(f"清单文件不存在: {p}")
        try:
            data = load_yaml(p)
        except (yaml.YAMLError, ValueError) as e:
            raise ConfigError(f"清单文件无法解析 {p}: {e}") from e

        errors: list[str] = []
        sources: list[CatalogProvider] = []
        seen: set[str] = set()
        for uri in data.get("sources") or []:
            uri = str(uri).rstrip("/")
            if uri in seen:
                logger.warning("清单中重复的目录源已忽略: %s", uri)
                continue
            seen.add(uri)
            try:
                sources.append(CatalogSource(uri, timeout=timeout))
            except ValidationError as e:
                errors.append(str(e))

        dependencies: list[Dependency] = []
        raw_deps = data.get("dependencies") or {}
        if not isinstance(raw_deps, dict):
            raise ValidationError(f"清单 dependencies 必须是映射: {p}")
        for name, info in raw_deps.items():
            try:
                dependencies.append(_parse_dependency(str(name), info))
            except ValidationError as e:
                errors.append(f"{name}: {e}")

        if errors:
            raise ValidationError(f"清单校验失败: {p}", details=errors)
        logger.info("已加载清单 %s: %d 个依赖, %d 个目录源", p, len(dependencies), len(sources))
        return cls(p, dependencies, sources)

    @property
    def dependencies(self) -> list[Dependency]:
        return list(self._dependencies.values())

    @property
    def names(self) -> frozenset[str]:
        return frozenset(self._dependencies)

    def find(self, name: str) -> Dependency | None:
        return self._dependencies.get(name)

    def resolve_path(self, location: PathLocation) -> Path:
        """path 依赖相对清单所在目录解析"""
        p = Path(location.path).expanduser()
        return p if p.is_absolute() else (self.base_dir / p).resolve()

    def source_for(self, name: str, version: str) -> CatalogProvider:
        """第一个 universe 中包含 (name, version) 的目录源"""
        for source in self.sources:
            if source.has(name, version):
                return source
        raise MaterializeError(
            f"没有目录源提供 {name} ({version})。"
            f"已配置: {[s.uri for s in self.sources]}"
        )


def _parse_dependency(name: str, info: Any) -> Dependency:
    if info is None or isinstance(info, (str, int, float)):
        return Dependency(name=name, constraint=Constraint(str(info or "")))
    if not isinstance(info, dict):
        raise ValidationError(f"依赖声明格式错误: {info!r}")
    return Dependency(
        name=name,
        constraint=Constraint(str(info.get("constraint") or info.get("version") or "")),
        location=location_from_dict(name, info),
    )
