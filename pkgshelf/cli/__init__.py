"""pkgshelf 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
"""

import dataclasses
import functools
import os
from typing import Any, Callable

import click

from pkgshelf import __version__
from pkgshelf.core.exceptions import PkgShelfError
from pkgshelf.services.container import ServiceContainer, get_container, reset_container
from pkgshelf.utils.logger import setup_logging


def _svc(
    config: str | None = None,
    manifest: str | None = None,
    lockfile: str | None = None,
) -> ServiceContainer:
    """按命令行覆盖项构建服务容器；覆盖项只作用于本次命令，不改动全局配置"""
    from pkgshelf.core.config import get_config, init_config

    cfg = init_config(config) if config else get_config()
    overrides = {k: v for k, v in (("manifest", manifest), ("lockfile", lockfile)) if v}
    if overrides:
        return ServiceContainer(dataclasses.replace(cfg, **overrides))
    reset_container()
    return get_container()


def handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """业务异常转为 click 错误输出（非零退出码）"""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except PkgShelfError as e:
            details = getattr(e, "details", None) or []
            message = "\n".join([f"[{e.code}] {e}", *(f"  - {d}" for d in details)])
            raise click.ClickException(message) from e

    return wrapper


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """pkgshelf - 依赖包安装与锁定工具"""
    setup_logging(
        level=os.getenv("PKGSHELF_LOG_LEVEL", "INFO"),
        json_output=os.getenv("PKGSHELF_LOG_JSON", "") == "1",
    )


# 注册各领域子命令
from pkgshelf.cli.cmd_install import register as _reg_install  # noqa: E402

_reg_install(main)
