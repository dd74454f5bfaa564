"""CLI 依赖命令：install / deps"""

from __future__ import annotations

import click

from ctipkg.cli import _svc, handle_errors


def register(group: click.Group) -> None:
    group.add_command(install)
    group.add_command(list_deps)


@click.command()
@click.argument("specs", nargs=-1)
@click.option("--replace", is_flag=True, help="替换已安装的同名依赖（版本升级/降级）")
@handle_errors
def install(specs: tuple[str, ...], replace: bool) -> None:
    """安装依赖

    \b
    不带参数: 按 index.yml 现有 depends 安装（只更新锁文件）
    带参数:   安装新依赖并写入 index.yml，格式 name 或 name@version
    """
    pm = _svc().pacman
    if specs:
        installed = pm.install_new_dependencies(list(specs), replace=replace)
    else:
        installed = pm.install_index_dependencies()
    if not installed:
        click.echo("依赖均已是最新")
        return
    for name in installed:
        click.echo(f"  已安装: {name}")


@click.command(name="deps")
@handle_errors
def list_deps() -> None:
    """列出直接依赖与传递依赖"""
    deps = _svc().pacman.list_dependencies()
    if not deps:
        click.echo("没有依赖。")
        return
    for d in deps:
        marker = "*" if d["direct"] else " "
        state = "" if d["installed"] else "  (未安装)"
        click.echo(
            f"{marker} {d['name']:40s} {d['version'] or '-':12s} "
            f"{d['app_code'] or '-':24s} [{d['kind'] or '-'}]{state}"
        )
