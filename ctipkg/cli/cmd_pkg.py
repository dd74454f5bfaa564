"""CLI 包命令：init / validate / pack"""

from __future__ import annotations

import click

from ctipkg.cli import _svc, handle_errors


def register(group: click.Group) -> None:
    group.add_command(init)
    group.add_command(validate)
    group.add_command(pack)


@click.command()
@click.argument("app_code")
@click.option("--ramlx-version", default="1.0", help="RAMLx 方言版本")
@click.option("--entity", "entities", multiple=True, help="实体文件（可多次指定）")
@handle_errors
def init(app_code: str, ramlx_version: str, entities: tuple[str, ...]) -> None:
    """在包根目录创建 index.yml 与空锁文件"""
    from ctipkg.core.pacman import PackageManager
    pkg = PackageManager.init(
        _svc().base_dir, app_code=app_code,
        ramlx_version=ramlx_version, entities=list(entities),
    )
    click.echo(f"已创建: {pkg.index_file}")


@click.command()
@handle_errors
def validate() -> None:
    """校验本包及全部已锁定依赖"""
    violations = _svc().pacman.validate()
    if not violations:
        click.echo("校验通过")
        return
    for v in violations:
        click.echo(f"  {v}")
    raise click.ClickException(f"发现 {len(violations)} 条违规")


@click.command()
@click.option("--no-cache", is_flag=True, help="不重建元数据缓存，直接使用已有 .cache.json")
@handle_errors
def pack(no_cache: bool) -> None:
    """打包为 bundle.zip"""
    pm = _svc().pacman
    if not no_cache:
        pm.build_cache()
    path = pm.pack()
    click.echo(f"已打包: {path}")
