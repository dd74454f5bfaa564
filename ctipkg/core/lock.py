"""依赖锁文件（index-lock.yml）

工具生成、不手工编辑。每次安装成功后整体重写。

结构:
    version: v1
    packages:                 # 源名 -> 安装记录
      github.com/acme/cti-base:
        app_code: acme.base   # .dep/ 下的目录名
        version: v1.2.0
        depends: []           # 该包自身清单中的依赖声明
    depends:                  # 依赖 bundle 标识 -> 版本
      acme.base: v1.2.0
    sources:                  # 源名 -> 来源信息
      github.com/acme/cti-base:
        kind: url
        location: https://...
        version: v1.2.0
        sha256: ...

源名与安装标识（app_code）由 PackageIndex 统一维护双向映射，
不允许两个源名指向同一个安装目录。
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from ctipkg.core.exceptions import ManifestError
from ctipkg.utils.yaml_io import load_yaml, save_yaml

logger = logging.getLogger(__name__)

LOCK_FILE_NAME = "index-lock.yml"
INDEX_LOCK_VERSION = "v1"


@dataclass
class PackageLock:
    """单个已安装依赖的锁定记录"""

    app_code: str
    version: str = ""
    depends: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "app_code": self.app_code,
            "version": self.version,
            "depends": list(self.depends),
        }


@dataclass
class SourceInfo:
    """依赖来源的辅助信息"""

    kind: str = ""  # "local", "url"
    location: str = ""
    version: str = ""
    sha256: str = ""

    def to_dict(self) -> dict[str, str]:
        data = {"kind": self.kind, "location": self.location, "version": self.version}
        if self.sha256:
            data["sha256"] = self.sha256
        return data


class PackageIndex:
    """源名 <-> 安装标识 双向索引"""

    def __init__(self) -> None:
        self._by_source: dict[str, PackageLock] = {}
        self._source_of: dict[str, str] = {}

    def put(self, source: str, entry: PackageLock) -> None:
        """登记（或替换）源名对应的安装记录

        Raises:
            ManifestError: app_code 已被另一个源名占用
        """
        owner = self._source_of.get(entry.app_code)
        if owner is not None and owner != source:
            raise ManifestError(
                f"安装标识冲突: '{entry.app_code}' 已属于 '{owner}'，"
                f"不能再分配给 '{source}'"
            )
        previous = self._by_source.get(source)
        if previous is not None:
            self._source_of.pop(previous.app_code, None)
        self._by_source[source] = entry
        self._source_of[entry.app_code] = source

    def get(self, source: str) -> PackageLock | None:
        return self._by_source.get(source)

    def source_of(self, app_code: str) -> str | None:
        return self._source_of.get(app_code)

    def remove(self, source: str) -> PackageLock | None:
        entry = self._by_source.pop(source, None)
        if entry is not None:
            self._source_of.pop(entry.app_code, None)
        return entry

    def items(self) -> list[tuple[str, PackageLock]]:
        return sorted(self._by_source.items())

    def __contains__(self, source: object) -> bool:
        return source in self._by_source

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._by_source))

    def __len__(self) -> int:
        return len(self._by_source)


@dataclass
class IndexLock:
    """依赖锁文件"""

    version: str = INDEX_LOCK_VERSION
    packages: PackageIndex = field(default_factory=PackageIndex)
    dependent_bundles: dict[str, str] = field(default_factory=dict)
    source_info: dict[str, SourceInfo] = field(default_factory=dict)

    def record(
        self, source: str, entry: PackageLock, info: SourceInfo | None = None,
    ) -> None:
        """登记一次安装结果（锁记录 + bundle 版本 + 来源信息）"""
        previous = self.packages.get(source)
        self.packages.put(source, entry)
        if previous is not None and previous.app_code != entry.app_code:
            self.dependent_bundles.pop(previous.app_code, None)
        self.dependent_bundles[entry.app_code] = entry.version
        if info is not None:
            self.source_info[source] = info

    def forget(self, source: str) -> None:
        """移除某个源名的全部记录"""
        entry = self.packages.remove(source)
        if entry is not None:
            self.dependent_bundles.pop(entry.app_code, None)
        self.source_info.pop(source, None)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> IndexLock:
        lock = cls(version=str(data.get("version", INDEX_LOCK_VERSION)))
        for source, raw in (data.get("packages") or {}).items():
            if not isinstance(raw, dict) or not raw.get("app_code"):
                raise ManifestError(f"锁文件中 '{source}' 缺少 app_code")
            lock.packages.put(source, PackageLock(
                app_code=str(raw["app_code"]),
                version=str(raw.get("version", "")),
                depends=[str(d) for d in raw.get("depends") or []],
            ))
        lock.dependent_bundles = {
            str(k): str(v) for k, v in (data.get("depends") or {}).items()
        }
        for source, raw in (data.get("sources") or {}).items():
            raw = raw or {}
            lock.source_info[source] = SourceInfo(
                kind=raw.get("kind", ""),
                location=raw.get("location", ""),
                version=raw.get("version", ""),
                sha256=raw.get("sha256", ""),
            )
        return lock

    def to_dict(self) -> dict[str, Any]:
        """序列化；所有映射按键排序，保证同一状态写出逐字节相同的文件"""
        return {
            "version": self.version,
            "packages": {s: e.to_dict() for s, e in self.packages.items()},
            "depends": dict(sorted(self.dependent_bundles.items())),
            "sources": {
                s: i.to_dict() for s, i in sorted(self.source_info.items())
            },
        }

    def save(self, base_dir: str | Path) -> None:
        path = Path(base_dir) / LOCK_FILE_NAME
        save_yaml(path, self.to_dict())
        logger.debug("锁文件已保存: %s", path)


def read_index_lock(base_dir: str | Path) -> IndexLock:
    """读取锁文件；不存在时返回空锁"""
    path = Path(base_dir) / LOCK_FILE_NAME
    try:
        data = load_yaml(path)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ManifestError(f"读取锁文件失败 {path}: {e}") from e
    return IndexLock.from_dict(data)
