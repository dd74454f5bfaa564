"""依赖安装器

协调三份持久状态：清单 depends、锁文件、.dep/ 下的依赖目录树。

流程:
  1. 拉取器在锁文件副本上安装依赖，返回 (installed, replaced)；
     拉取失败时清单与锁文件均不变
  2. 对每个新安装的包：把其私有 .dep/ 中的传递依赖条目重写为指向
     <base>/.dep/<app_code> 的链接，然后重建该包的元数据缓存
  3. 合并清单 depends 并落盘（仅 install_new_dependencies）
  4. 从锁文件中移除清单 depends 不再可达的记录，最后写锁文件

第 2 步失败不回滚已完成的步骤；每一步都可重复执行，重新运行即可收敛。
"""

from __future__ import annotations

import copy
import logging
from pathlib import Path

import yaml

from ctipkg.core.depspec import dependency_names, parse_dependency
from ctipkg.core.exceptions import (
    CtiPkgError,
    DependencyError,
    FileSystemError,
    InstallError,
    ManifestError,
)
from ctipkg.core.lock import IndexLock
from ctipkg.core.manifest import INDEX_FILE_NAME
from ctipkg.core.package import Package
from ctipkg.core.protocols import DependencyFetcher, EntityParser, FileSystemOps

logger = logging.getLogger(__name__)


def merge_depends(
    current: list[str], requested: list[str], replaced: set[str],
) -> list[str]:
    """合并依赖声明，保证按包名唯一

    - 包名在 replaced 中的已有声明被同名的新声明原位替换；没有同名新声明则移除
    - 其余新声明若包名尚未出现则按首次出现顺序追加，已出现则忽略
    """
    requested_by_name: dict[str, str] = {}
    for spec in requested:
        requested_by_name.setdefault(parse_dependency(spec)[0], spec)

    merged: list[str] = []
    present: set[str] = set()
    for spec in current:
        name, _ = parse_dependency(spec)
        if name in replaced:
            if name not in requested_by_name:
                continue
            spec = requested_by_name[name]
        if name in present:
            continue
        merged.append(spec)
        present.add(name)

    for name, spec in requested_by_name.items():
        if name not in present:
            merged.append(spec)
            present.add(name)
    return merged


def reachable_sources(depends: list[str], lock: IndexLock) -> set[str]:
    """清单依赖经锁记录展开后的全部源名"""
    reachable: set[str] = set()
    pending = dependency_names(depends)
    while pending:
        source = pending.pop()
        if source in reachable:
            continue
        reachable.add(source)
        entry = lock.packages.get(source)
        if entry is not None:
            pending.extend(dependency_names(entry.depends))
    return reachable


class Installer:
    """依赖安装与清单/锁文件协调"""

    def __init__(
        self,
        package: Package,
        fetcher: DependencyFetcher,
        parser: EntityParser,
        fs: FileSystemOps,
        *,
        dependency_dir: str = ".dep",
        log: logging.Logger | None = None,
    ) -> None:
        self.package = package
        self.fetcher = fetcher
        self.parser = parser
        self.fs = fs
        self.dependency_dir = dependency_dir
        self.log = log or logger

    @property
    def deps_dir(self) -> Path:
        return self.package.base_dir / self.dependency_dir

    def install_new_dependencies(self, specs: list[str], replace: bool = False) -> list[str]:
        """安装新依赖并写入清单，返回本次实际安装的源名"""
        installed, replaced = self._install_dependencies(specs, replace)
        if replace:
            # 带版本且本次实际安装的请求一律按替换处理
            versioned = {n for n, v in map(parse_dependency, specs) if v}
            replaced = replaced | (versioned & set(installed))

        before = list(self.package.index.depends)
        self.package.index.depends = merge_depends(before, specs, replaced)
        for spec in self.package.index.depends:
            if spec not in before:
                self.log.info("已添加直接依赖: %s", spec, extra={"dependency": spec})

        self._save(self.package.save_index, "清单")
        self._prune_lock()
        self._save(self.package.save_index_lock, "锁文件")
        return installed

    def install_index_dependencies(self) -> list[str]:
        """按清单现有 depends 重新安装，只写锁文件"""
        installed, _ = self._install_dependencies(list(self.package.index.depends), False)
        self._prune_lock()
        self._save(self.package.save_index_lock, "锁文件")
        return installed

    def _prune_lock(self) -> None:
        """移除清单 depends 传递闭包之外的锁记录"""
        lock = self.package.index_lock
        reachable = reachable_sources(self.package.index.depends, lock)
        for source in list(lock.packages):
            if source not in reachable:
                lock.forget(source)
                self.log.info("已移除锁记录: %s", source, extra={"dependency": source})

    def _install_dependencies(
        self, specs: list[str], replace: bool,
    ) -> tuple[list[str], set[str]]:
        lock = copy.deepcopy(self.package.index_lock)
        try:
            installed, replaced = self.fetcher.download(
                specs, replace=replace, lock=lock, deps_dir=self.deps_dir,
            )
        except (CtiPkgError, OSError) as e:
            raise DependencyError(f"拉取依赖失败 [{', '.join(specs)}]: {e}") from e

        self.package.index_lock = lock
        self._process_installed_dependencies(installed)
        return installed, replaced

    def _process_installed_dependencies(self, installed: list[str]) -> None:
        packages = self.package.index_lock.packages
        for source in installed:
            entry = packages.get(source)
            if entry is None:
                raise InstallError(f"锁文件中缺少已安装依赖: {source}", source)
            pkg_path = self.deps_dir / entry.app_code
            for dep in entry.depends:
                dep_source, _ = parse_dependency(dep)
                dep_entry = packages.get(dep_source)
                if dep_entry is None:
                    raise InstallError(
                        f"{source} 的依赖 {dep_source} 未被安装", source,
                    )
                try:
                    self._rewrite_dep_links(pkg_path, dep_entry.app_code)
                except FileSystemError as e:
                    raise InstallError(
                        f"重写依赖链接失败 {source} -> {dep_source}: {e}", source,
                    ) from e
            try:
                self.parser.build_package_cache(pkg_path / INDEX_FILE_NAME)
            except (CtiPkgError, OSError) as e:
                raise InstallError(f"重建元数据缓存失败 {source}: {e}", source) from e
            self.log.debug("后处理完成: %s", source, extra={"dependency": source})

    def _rewrite_dep_links(self, pkg_path: Path, dep_app_code: str) -> None:
        """<pkg>/.dep/<dep> -> <base>/.dep/<dep>"""
        self.fs.link(
            pkg_path / self.dependency_dir / dep_app_code,
            self.deps_dir / dep_app_code,
        )

    def _save(self, save, what: str) -> None:
        try:
            save()
        except (OSError, yaml.YAMLError) as e:
            raise ManifestError(f"保存{what}失败: {e}") from e
