"""远程目录源

职责:
- 拉取目录的 universe（全部包版本及其依赖）
- 提供按 (name, version) 查询包句柄

universe 接口: GET <uri>/universe，返回 JSON
    {
        "foo": {
            "1.2.0": {
                "dependencies": {"bar": ">= 0.1"},
                "download_url": "https://.../foo-1.2.0.tar.gz"
            }
        }
    }
"""

from __future__ import annotations

import json
import logging
import threading
import urllib.error

from pkgshelf.core.constraint import Constraint, parse_version
from pkgshelf.core.exceptions import CatalogError, MaterializeError, ValidationError
from pkgshelf.core.models import RemotePackage
from pkgshelf.utils.net import http_get, validate_url_scheme

logger = logging.getLogger(__name__)


class CatalogSource:
    """单个远程目录"""

    def __init__(self, uri: str, *, timeout: float = 30) -> None:
        validate_url_scheme(uri, context="catalog source")
        self.uri = uri.rstrip("/")
        self.timeout = timeout
        self._universe: dict[str, dict[str, RemotePackage]] = {}
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"CatalogSource({self.uri!r})"

    def __str__(self) -> str:
        return self.uri

    @property
    def universe_url(self) -> str:
        return f"{self.uri}/universe"

    def build_universe(self) -> None:
        """拉取并替换本地索引，失败时保留旧索引"""
        try:
            body = http_get(self.universe_url, timeout=self.timeout, context=self.uri)
        except urllib.error.HTTPError as e:
            raise CatalogError(f"目录拒绝请求 {self.universe_url}: HTTP {e.code}") from e
        except (urllib.error.URLError, OSError) as e:
            raise CatalogError(f"目录不可达 {self.universe_url}: {e}") from e

        try:
            data = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise CatalogError(f"目录返回的 universe 不是合法 JSON: {self.universe_url}") from e

        universe = self._parse(data)
        with self._lock:
            self._universe = universe
        logger.info(
            "目录 %s: %d 个包, %d 个版本",
            self.uri, len(universe), sum(len(v) for v in universe.values()),
        )

    def _parse(self, data: object) -> dict[str, dict[str, RemotePackage]]:
        if not isinstance(data, dict):
            raise CatalogError(f"universe 顶层必须是对象: {self.universe_url}")
        universe: dict[str, dict[str, RemotePackage]] = {}
        for name, versions in data.items():
            if not isinstance(versions, dict):
                raise CatalogError(f"universe 中 '{name}' 的版本表格式错误")
            rows: dict[str, RemotePackage] = {}
            for version, info in versions.items():
                info = info or {}
                if not isinstance(info, dict):
                    raise CatalogError(f"universe 中 {name}@{version} 格式错误")
                try:
                    parse_version(version)
                except ValidationError as e:
                    raise CatalogError(f"universe 中 {name} 的版本号无效: {version}") from e
                deps = info.get("dependencies") or {}
                if not isinstance(deps, dict):
                    raise CatalogError(f"universe 中 {name}@{version} 的依赖格式错误")
                deps = {str(k): str(v or "") for k, v in deps.items()}
                for dep_name, raw in deps.items():
                    try:
                        Constraint(raw)
                    except ValidationError as e:
                        raise CatalogError(
                            f"universe 中 {name}@{version} 对 {dep_name} 的约束无效: {raw}"
                        ) from e
                rows[str(version)] = RemotePackage(
                    name=str(name),
                    version=str(version),
                    dependencies=deps,
                    download_url=str(info.get("download_url") or ""),
                    source_uri=self.uri,
                )
            universe[str(name)] = rows
        return universe

    def versions(self, name: str) -> list[RemotePackage]:
        with self._lock:
            return list(self._universe.get(name, {}).values())

    def has(self, name: str, version: str) -> bool:
        with self._lock:
            return version in self._universe.get(name, {})

    def package(self, name: str, version: str) -> RemotePackage:
        with self._lock:
            pkg = self._universe.get(name, {}).get(version)
        if pkg is None:
            raise MaterializeError(f"目录 {self.uri} 中不存在 {name} ({version})")
        return pkg
