"""CLI — 安装与锁文件查询命令"""

from __future__ import annotations

import click

from pkgshelf.cli import _svc, handle_errors
from pkgshelf.core.exceptions import MaterializeError
from pkgshelf.core.models import PathLocation


def register(group: click.Group) -> None:
    group.add_command(install)
    group.add_command(list_locked)
    group.add_command(show)


_manifest_opt = click.option("--manifest", default=None, help="依赖清单路径（默认 shelf.yml）")
_lockfile_opt = click.option("--lockfile", default=None, help="锁文件路径（默认与清单同名 .lock）")
_config_opt = click.option("--config", default=None, help="配置文件路径")


@click.command()
@_manifest_opt
@_lockfile_opt
@_config_opt
@handle_errors
def install(manifest: str | None, lockfile: str | None, config: str | None) -> None:
    """安装清单中的全部依赖并更新锁文件"""
    svc = _svc(config, manifest, lockfile)
    packages = svc.installer.run()
    if not packages:
        click.echo("清单中没有依赖。")
        return
    for pkg in packages:
        click.echo(f"  {pkg.name:20s} {pkg.version:12s} {pkg.path}")
    click.echo(f"已安装 {len(packages)} 个包，锁文件: {svc.lockfile.path}")


@click.command(name="list")
@_manifest_opt
@_lockfile_opt
@handle_errors
def list_locked(manifest: str | None, lockfile: str | None) -> None:
    """列出锁文件中的依赖图"""
    lock = _svc(None, manifest, lockfile).lockfile
    if not len(lock.graph):
        click.echo("锁文件为空。")
        return
    for entry in lock.graph:
        top = "*" if lock.has_dependency(entry.name) else " "
        source = f" ({entry.source})" if entry.source else ""
        click.echo(f"{top} {entry.name:20s} {entry.version:12s}{source}")


@click.command()
@click.argument("name")
@_manifest_opt
@_lockfile_opt
@_config_opt
@handle_errors
def show(name: str, manifest: str | None, lockfile: str | None, config: str | None) -> None:
    """显示已锁定依赖在本地存储中的路径"""
    svc = _svc(config, manifest, lockfile)
    entry = svc.lockfile.graph.find(name)
    if entry is None:
        raise MaterializeError(f"{name} 不在锁文件中")

    top = svc.lockfile.find(name)
    if top is not None and isinstance(top.location, PathLocation):
        # path 依赖不进入存储
        click.echo(str(svc.manifest.resolve_path(top.location)))
        return

    package = svc.store.get(name, entry.version)
    if package is None:
        raise MaterializeError(f"{name} ({entry.version}) 尚未安装，请先执行 install")
    click.echo(str(package.path))
