"""集中配置管理

包目录布局（依赖目录 / 打包产物名）与包缓存目录统一在此配置。
支持从 YAML 文件加载 + 编程式覆盖。
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from ctipkg.core.exceptions import ConfigError
from ctipkg.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)


def default_package_cache_dir() -> str:
    """系统级包缓存目录: $XDG_CACHE_HOME/ctipkg/packages 或 ~/.cache/ctipkg/packages"""
    base = os.getenv("XDG_CACHE_HOME") or str(Path.home() / ".cache")
    return str(Path(base) / "ctipkg" / "packages")


@dataclass
class Config:
    """全局配置"""

    # 包目录布局
    dependency_dir: str = ".dep"
    bundle_name: str = "bundle.zip"

    # 拉取
    package_cache_dir: str = field(default_factory=default_package_cache_dir)
    sources_file: str = "sources.yml"
    download_timeout: int = 60

    # 自定义扩展 (放不到字段里的配置项)
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_file(cls, path: str = "ctipkg.yml") -> Config:
        """从 YAML 文件加载配置，不存在则返回默认"""
        try:
            data = load_yaml(path)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ConfigError(f"读取配置失败: {path}: {e}") from e
        if not data:
            return cls()
        known = {f.name for f in cls.__dataclass_fields__.values()}
        matched = {k: v for k, v in data.items() if k in known}
        extra = {k: v for k, v in data.items() if k not in known}
        cfg = cls(**matched)
        cfg.extra = extra
        return cfg

    def to_dict(self) -> dict:
        from dataclasses import asdict
        return asdict(self)


# 全局单例，首次 import 时不加载文件；由 CLI 入口显式初始化
_current: Config | None = None


def get_config() -> Config:
    """获取当前配置（未初始化则返回默认值）"""
    global _current  # noqa: PLW0603
    if _current is None:
        _current = Config()
    return _current


def init_config(path: str = "ctipkg.yml") -> Config:
    """从文件初始化全局配置"""
    global _current  # noqa: PLW0603
    _current = Config.from_file(path)
    logger.info("配置已加载: %s", path)
    return _current
