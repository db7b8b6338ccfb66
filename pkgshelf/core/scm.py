"""SCM（git）依赖拉取

clone 或 fetch 到 <scm_dir>/<name>/，读取包元数据后导入内容存储。
解析出的 commit 回写到依赖的 ScmLocation.revision，供锁文件记录。
"""

from __future__ import annotations

import logging
import re
import shutil
from dataclasses import replace
from pathlib import Path

from pkgshelf.core.exceptions import ExecutionError, MaterializeError, ValidationError
from pkgshelf.core.models import CachedPackage, Dependency, ScmLocation
from pkgshelf.core.protocols import PackageStore
from pkgshelf.utils.shell import CommandExecutor, LocalExecutor

logger = logging.getLogger(__name__)

_SAFE_REF_RE = re.compile(r"^[a-zA-Z0-9_./@\-]+$")


class ScmFetcher:
    """git 依赖拉取器"""

    def __init__(
        self,
        store: PackageStore,
        scm_dir: str | Path,
        executor: CommandExecutor | None = None,
        timeout: int = 600,
    ) -> None:
        self.store = store
        self.scm_dir = Path(scm_dir)
        self.executor = executor or LocalExecutor()
        self.timeout = timeout

    def fetch(self, dependency: Dependency) -> CachedPackage:
        loc = dependency.location
        if not isinstance(loc, ScmLocation):
            raise TypeError(f"{dependency.name} 不是 SCM 依赖")
        for value in (loc.ref, loc.revision):
            if value and not _SAFE_REF_RE.match(value):
                raise ValidationError(f"ref 包含非法字符: {value}")

        workspace = self.scm_dir / dependency.name
        workspace.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._sync(loc, workspace)
            revision = self._git(["rev-parse", "HEAD"], cwd=workspace).strip()
        except ExecutionError as e:
            raise MaterializeError(f"拉取 {dependency.name} 失败 ({loc.url}@{loc.ref}): {e}") from e

        pkg_dir = workspace / loc.rel if loc.rel else workspace
        try:
            meta = CachedPackage.from_path(pkg_dir)
        except ValidationError as e:
            raise MaterializeError(f"{loc.url} 中没有有效的包: {e}") from e
        if meta.name != dependency.name:
            raise MaterializeError(
                f"{loc.url} 提供的包名为 '{meta.name}'，与依赖 '{dependency.name}' 不一致"
            )

        cached = self.store.import_package(meta.name, meta.version, pkg_dir)
        dependency.location = replace(loc, revision=revision)
        logger.info("SCM 就绪: %s (%s) @ %s", meta.name, meta.version, revision[:12])
        return replace(cached, source=loc.url)

    def _sync(self, loc: ScmLocation, workspace: Path) -> None:
        if (workspace / ".git").exists():
            if loc.revision:
                self._git(["fetch", "origin", loc.ref], cwd=workspace)
            else:
                self._git(["fetch", "--depth", "1", "origin", loc.ref], cwd=workspace)
                self._git(["checkout", "--force", "FETCH_HEAD"], cwd=workspace)
        elif loc.revision:
            self._git(["clone", loc.url, str(workspace)])
        else:
            try:
                self._git(["clone", "--depth", "1", "--branch", loc.ref, loc.url, str(workspace)])
            except ExecutionError:
                # ref 可能是 commit 而非分支/标签，回退为完整 clone
                logger.debug("浅克隆失败，回退完整 clone: %s", loc.url)
                shutil.rmtree(workspace, ignore_errors=True)
                self._git(["clone", loc.url, str(workspace)])
                self._git(["checkout", "--force", loc.ref], cwd=workspace)

        if loc.revision:
            self._git(["checkout", "--force", loc.revision], cwd=workspace)

    def _git(self, args: list[str], cwd: Path | None = None) -> str:
        r = self.executor.execute(
            ["git", *args], cwd=str(cwd) if cwd else None, timeout=self.timeout,
        )
        if not r.success:
            raise ExecutionError(f"git {args[0]} 失败 (rc={r.returncode}): {r.stderr[:300]}")
        return r.stdout
