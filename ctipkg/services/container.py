"""服务容器：统一装配包管理器及其协作方

同一容器内的实例共享（文件系统、解析器、包管理器）。CLI 通过 get_container() 获取。

依赖关系图（→ 表示依赖）:
  pacman → fs, parser, fetcher
  fetcher → fs

用法:
    container = ServiceContainer(base_dir="my-pkg")
    pm = container.pacman               # 懒加载

    cfg = Config.from_file("ctipkg.yml")
    container = ServiceContainer(config=cfg)
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ctipkg.core.config import Config
    from ctipkg.core.pacman import PackageManager
    from ctipkg.core.parser import YamlPackageParser
    from ctipkg.core.protocols import DependencyFetcher
    from ctipkg.utils.filesys import LocalFileSystem

logger = logging.getLogger(__name__)


class ServiceContainer:
    """懒加载服务容器"""

    def __init__(self, config: Config | None = None, base_dir: str | Path = ".") -> None:
        self._instances: dict[str, object] = {}
        if config is None:
            from ctipkg.core.config import get_config
            config = get_config()
        self._config = config
        self.base_dir = Path(base_dir)

    @property
    def config(self) -> Config:
        return self._config

    @property
    def fs(self) -> LocalFileSystem:
        if "fs" not in self._instances:
            from ctipkg.utils.filesys import LocalFileSystem
            self._instances["fs"] = LocalFileSystem()
        return self._instances["fs"]  # type: ignore[return-value]

    @property
    def parser(self) -> YamlPackageParser:
        if "parser" not in self._instances:
            from ctipkg.core.parser import YamlPackageParser
            self._instances["parser"] = YamlPackageParser()
        return self._instances["parser"]  # type: ignore[return-value]

    @property
    def fetcher(self) -> DependencyFetcher:
        if "fetcher" not in self._instances:
            from ctipkg.core.pacman import create_fetcher
            self._instances["fetcher"] = create_fetcher(
                self.base_dir, self._config, self.fs,
            )
        return self._instances["fetcher"]  # type: ignore[return-value]

    @property
    def pacman(self) -> PackageManager:
        if "pacman" not in self._instances:
            from ctipkg.core.pacman import PackageManager
            self._instances["pacman"] = PackageManager(
                self.base_dir,
                config=self._config,
                fetcher=self.fetcher,
                parser=self.parser,
                fs=self.fs,
            )
        return self._instances["pacman"]  # type: ignore[return-value]


# ---- 全局单例 ----

_global: ServiceContainer | None = None
_global_lock = threading.Lock()


def get_container(base_dir: str | Path = ".") -> ServiceContainer:
    """获取全局 ServiceContainer 单例（首次调用时绑定包目录）"""
    global _global  # noqa: PLW0603
    if _global is not None:
        return _global
    with _global_lock:
        if _global is None:
            _global = ServiceContainer(base_dir=base_dir)
        return _global


def reset_container() -> None:
    """重置全局容器（仅用于测试）"""
    global _global  # noqa: PLW0603
    with _global_lock:
        _global = None
