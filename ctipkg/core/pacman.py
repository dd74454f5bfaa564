"""包管理器

包目录布局:

    <base>/
      index.yml            作者维护的清单
      index-lock.yml       工具生成的锁文件
      .cache.json          元数据缓存（解析器生成）
      .dep/<app_code>/     已安装的依赖，每个依赖的私有 .dep/ 中以链接引用共享依赖
      bundle.zip           打包产物

用法:
    from ctipkg.core.pacman import PackageManager

    pm = PackageManager("my-pkg")
    pm.install_new_dependencies(["github.com/acme/cti-base@v1.2.0"])
    violations = pm.validate()
    pm.build_cache()
    pm.pack()

同一包目录不支持并发执行多个命令。
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

from ctipkg.core.config import Config
from ctipkg.core.depspec import parse_dependency
from ctipkg.core.exceptions import ManifestError
from ctipkg.core.package import Package
from ctipkg.core.protocols import (
    DependencyFetcher,
    EntityParser,
    EntityValidator,
    FileSystemOps,
)
from ctipkg.core.pm import BundlePacker, Installer, ValidationOrchestrator

logger = logging.getLogger(__name__)


def create_fetcher(
    base_dir: Path, config: Config, fs: FileSystemOps, log: logging.Logger | None = None,
) -> DependencyFetcher:
    """按配置组装默认拉取器（sources.yml + 包缓存目录）"""
    from ctipkg.core.dep import PackageFetcher, SourceRegistry, SourceResolver

    sources = SourceRegistry(base_dir / config.sources_file).load()
    return PackageFetcher(
        SourceResolver(sources, base_dir),
        Path(config.package_cache_dir),
        fs,
        timeout=config.download_timeout,
        log=log,
    )


class PackageManager:
    """安装 / 校验 / 打包的统一入口"""

    def __init__(
        self,
        base_dir: str | Path = ".",
        *,
        config: Config | None = None,
        fetcher: DependencyFetcher | None = None,
        parser: EntityParser | None = None,
        validator_factory: Callable[[], EntityValidator] | None = None,
        fs: FileSystemOps | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        if config is None:
            from ctipkg.core.config import get_config
            config = get_config()
        if fs is None:
            from ctipkg.utils.filesys import LocalFileSystem
            fs = LocalFileSystem()
        if parser is None:
            from ctipkg.core.parser import YamlPackageParser
            parser = YamlPackageParser()
        if validator_factory is None:
            from ctipkg.core.validator import CtiValidator
            validator_factory = CtiValidator

        self.config = config
        self.package = Package.read(base_dir)
        self.base_dir = self.package.base_dir
        self.package_cache_dir = Path(config.package_cache_dir)
        self.dependencies_dir = self.base_dir / config.dependency_dir
        self.fs = fs
        self.parser = parser
        self.log = log or logger
        self.fetcher = fetcher or create_fetcher(self.base_dir, config, fs, self.log)

        self._installer = Installer(
            self.package, self.fetcher, parser, fs,
            dependency_dir=config.dependency_dir, log=self.log,
        )
        self._packer = BundlePacker(
            self.package, parser, bundle_name=config.bundle_name, log=self.log,
        )
        self._validation = ValidationOrchestrator(
            self.package, parser, validator_factory,
            dependency_dir=config.dependency_dir, log=self.log,
        )

    @staticmethod
    def init(
        base_dir: str | Path,
        *,
        app_code: str,
        ramlx_version: str = "1.0",
        entities: list[str] | None = None,
    ) -> Package:
        """在 base_dir 创建新包（index.yml + 空锁文件）"""
        pkg = Package.new(
            base_dir, app_code=app_code,
            ramlx_version=ramlx_version, entities=entities,
        )
        if pkg.index_file.exists():
            raise ManifestError(f"清单已存在: {pkg.index_file}")
        pkg.save_index()
        pkg.save_index_lock()
        logger.info("已创建包: %s -> %s", app_code, pkg.base_dir)
        return pkg

    # ------------------------------------------------------------------
    # 安装
    # ------------------------------------------------------------------

    def install_new_dependencies(self, depends: list[str], replace: bool = False) -> list[str]:
        return self._installer.install_new_dependencies(depends, replace)

    def install_index_dependencies(self) -> list[str]:
        return self._installer.install_index_dependencies()

    # ------------------------------------------------------------------
    # 校验 / 打包
    # ------------------------------------------------------------------

    def validate(self) -> list[Any]:
        return self._validation.validate()

    def build_cache(self) -> Path:
        """重建本包的元数据缓存"""
        try:
            return self.parser.build_package_cache(self.package.index_file)
        except OSError as e:
            raise ManifestError(f"重建元数据缓存失败: {e}") from e

    def pack(self) -> Path:
        return self._packer.pack()

    # ------------------------------------------------------------------
    # 查询
    # ------------------------------------------------------------------

    def list_dependencies(self) -> list[dict[str, Any]]:
        """列出直接依赖与已锁定的传递依赖"""
        direct = {parse_dependency(s)[0]: s for s in self.package.index.depends}
        lock = self.package.index_lock
        results: list[dict[str, Any]] = []
        for source, entry in lock.packages.items():
            info = lock.source_info.get(source)
            results.append({
                "name": source,
                "app_code": entry.app_code,
                "version": entry.version,
                "kind": info.kind if info else "",
                "direct": source in direct,
                "installed": (self.dependencies_dir / entry.app_code).is_dir(),
            })
        for name, spec in direct.items():
            if name not in lock.packages:
                results.append({
                    "name": name,
                    "app_code": "",
                    "version": parse_dependency(spec)[1],
                    "kind": "",
                    "direct": True,
                    "installed": False,
                })
        return results
