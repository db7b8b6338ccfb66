"""统一异常体系

所有业务异常继承 PkgShelfError。CLI 层据此输出友好提示，
安装编排器据此区分可隔离的目录拉取错误与致命错误。
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pkgshelf.core.models import Dependency, LockedEntry


class PkgShelfError(Exception):
    """基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(PkgShelfError):
    """配置文件缺失或内容无效"""

    code = "CONFIG_ERROR"


class ValidationError(PkgShelfError):
    """输入数据校验失败"""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, details: list[str] | None = None) -> None:
        super().__init__(message)
        self.details = details or []


class CatalogError(PkgShelfError):
    """单个目录源拉取 universe 失败（不可达、拒绝请求、数据格式错误）"""

    code = "CATALOG_ERROR"


class OutdatedDependencyError(PkgShelfError):
    """锁定版本不再满足清单中当前声明的约束"""

    code = "OUTDATED_DEPENDENCY"

    def __init__(self, locked: LockedEntry, dependency: Dependency) -> None:
        super().__init__(
            f"锁定的 {locked.name} ({locked.version}) 不满足清单约束 "
            f"'{dependency.constraint}'。请显式更新该依赖后重试"
        )
        self.locked = locked
        self.dependency = dependency


class NoSolutionError(PkgShelfError):
    """依赖约束无解"""

    code = "NO_SOLUTION"


class MaterializeError(PkgShelfError):
    """依赖落地失败（找不到来源、下载失败、导入失败、SCM 拉取失败）"""

    code = "MATERIALIZE_ERROR"


class LockfileError(PkgShelfError):
    """锁文件内容无效"""

    code = "LOCKFILE_ERROR"


class ExecutionError(PkgShelfError):
    """外部命令执行失败"""

    code = "EXECUTION_ERROR"
