"""子进程调用工具

通过 CommandExecutor 协议抽象子进程执行，SCM 拉取时可在测试中注入替身。
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from typing import Protocol

from pkgshelf.core.exceptions import ExecutionError

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """命令执行结果（与 subprocess 解耦）"""

    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.returncode == 0


class CommandExecutor(Protocol):
    """命令执行器协议"""

    def execute(
        self,
        args: list[str],
        *,
        cwd: str | None = None,
        timeout: int | None = None,
    ) -> CommandResult:
        ...


class LocalExecutor:
    """本地子进程执行器（默认实现）"""

    def execute(
        self,
        args: list[str],
        *,
        cwd: str | None = None,
        timeout: int | None = None,
    ) -> CommandResult:
        logger.debug("执行: %s (cwd=%s)", " ".join(args), cwd)
        try:
            r = subprocess.run(
                args, capture_output=True, text=True,
                cwd=cwd, check=False, timeout=timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise ExecutionError(f"{args[0]} 执行失败: {e}") from e
        return CommandResult(returncode=r.returncode, stdout=r.stdout, stderr=r.stderr)
