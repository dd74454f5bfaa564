"""ctipkg 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
"""

import functools
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

import click

from ctipkg import __version__
from ctipkg.core.exceptions import CtiPkgError
from ctipkg.services.container import ServiceContainer, get_container, reset_container
from ctipkg.utils.logger import setup_logging


def _svc() -> ServiceContainer:
    """获取全局服务容器的快捷方式"""
    return get_container()


def handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """业务异常转为 click 错误输出（退出码 1）"""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except CtiPkgError as e:
            raise click.ClickException(f"[{e.code}] {e}") from e

    return wrapper


@click.group()
@click.version_option(version=__version__)
@click.option("--dir", "-C", "base_dir", default=".", help="包根目录")
@click.option("--config", "-c", "config_path", default="", help="配置文件路径")
def main(base_dir: str, config_path: str) -> None:
    """ctipkg - CTI 包管理工具"""
    setup_logging(
        level=os.getenv("CTIPKG_LOG_LEVEL", "INFO"),
        json_output=os.getenv("CTIPKG_LOG_JSON", "") == "1",
    )
    from ctipkg.core.config import init_config

    config_path = config_path or os.getenv("CTIPKG_CONFIG", "")
    if config_path:
        try:
            init_config(config_path)
        except CtiPkgError as e:
            raise click.ClickException(f"[{e.code}] {e}") from e
    reset_container()
    get_container(Path(base_dir))


# 注册各领域子命令
from ctipkg.cli.cmd_pkg import register as _reg_pkg  # noqa: E402
from ctipkg.cli.cmd_deps import register as _reg_deps  # noqa: E402

_reg_pkg(main)
_reg_deps(main)
