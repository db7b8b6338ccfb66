"""核心数据模型

依赖来源位置是一个标签联合（Registry / Path / SCM），各分支只携带自己需要的字段。
其他模块统一从此处导入 Dependency / LockedEntry / CachedPackage 等实体。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, Union

from pkgshelf.core.constraint import ANY, Constraint
from pkgshelf.core.exceptions import ValidationError
from pkgshelf.utils.yaml_io import load_yaml

METADATA_FILE = "metadata.yml"

# =========================================================================
# 来源位置
# =========================================================================


@dataclass(frozen=True)
class RegistryLocation:
    """由目录源提供的包"""

    kind: Literal["registry"] = field(default="registry", init=False)


@dataclass(frozen=True)
class PathLocation:
    """本地目录中的包，无需下载"""

    path: str
    kind: Literal["path"] = field(default="path", init=False)


@dataclass(frozen=True)
class ScmLocation:
    """git 仓库中的包；revision 为拉取后解析出的 commit，不参与相等比较"""

    url: str
    ref: str = "main"
    rel: str = ""
    revision: str = field(default="", compare=False)
    kind: Literal["scm"] = field(default="scm", init=False)


Location = Union[RegistryLocation, PathLocation, ScmLocation]

REGISTRY = RegistryLocation()


def location_from_dict(name: str, data: dict[str, Any]) -> Location:
    """从清单/锁文件条目解析来源位置"""
    has_path = bool(data.get("path"))
    has_git = bool(data.get("git"))
    if has_path and has_git:
        raise ValidationError(f"依赖 '{name}' 不能同时指定 path 和 git")
    if has_path:
        return PathLocation(path=str(data["path"]))
    if has_git:
        return ScmLocation(
            url=str(data["git"]),
            ref=str(data.get("ref") or "main"),
            rel=str(data.get("rel") or ""),
            revision=str(data.get("revision") or ""),
        )
    return REGISTRY


def location_to_dict(location: Location) -> dict[str, str]:
    if isinstance(location, RegistryLocation):
        return {}
    if isinstance(location, PathLocation):
        return {"path": location.path}
    if isinstance(location, ScmLocation):
        out = {"git": location.url, "ref": location.ref}
        if location.rel:
            out["rel"] = location.rel
        if location.revision:
            out["revision"] = location.revision
        return out
    raise TypeError(f"未知的来源位置类型: {type(location).__name__}")


# =========================================================================
# 包与依赖
# =========================================================================


@dataclass
class CachedPackage:
    """已落地的包，以 (name, version) 为键

    source 记录提供方（目录源 URI、git 地址或 path），不写入包元数据。
    """

    name: str
    version: str
    path: Path
    dependencies: dict[str, str] = field(default_factory=dict)
    source: str = field(default="", compare=False)

    @classmethod
    def from_path(cls, path: Path, *, source: str = "") -> CachedPackage:
        """读取包目录中的 metadata.yml"""
        meta = load_yaml(path / METADATA_FILE)
        name, version = meta.get("name"), meta.get("version")
        if not name or not version:
            raise ValidationError(
                f"包元数据缺少 name/version: {path / METADATA_FILE}",
            )
        deps = meta.get("dependencies") or {}
        if not isinstance(deps, dict):
            raise ValidationError(f"包元数据 dependencies 必须是映射: {path}")
        return cls(
            name=str(name),
            version=str(version),
            path=path,
            dependencies={str(k): str(v or "") for k, v in deps.items()},
            source=source,
        )

    def metadata(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "dependencies": dict(self.dependencies),
        }


@dataclass
class Dependency:
    """声明或已解析的依赖

    locked_version 与 cached_package 是单次运行内的临时状态。
    """

    name: str
    constraint: Constraint = ANY
    location: Location = REGISTRY
    locked_version: str | None = None
    cached_package: CachedPackage | None = field(default=None, compare=False, repr=False)

    @property
    def kind(self) -> str:
        return self.location.kind

    @property
    def scm_location(self) -> bool:
        return isinstance(self.location, ScmLocation)

    @property
    def downloaded(self) -> bool:
        return self.cached_package is not None

    def __str__(self) -> str:
        ver = f" ({self.locked_version})" if self.locked_version else ""
        return f"{self.name}{ver}"


@dataclass(frozen=True)
class LockedEntry:
    """锁图中的一个已解析节点，按 name 排序"""

    name: str
    version: str
    source: str = ""
    dependencies: dict[str, str] = field(default_factory=dict, hash=False)

    def __lt__(self, other: LockedEntry) -> bool:
        return self.name < other.name


@dataclass(frozen=True)
class RemotePackage:
    """目录 universe 中的一行"""

    name: str
    version: str
    dependencies: dict[str, str] = field(default_factory=dict, hash=False)
    download_url: str = ""
    source_uri: str = ""
