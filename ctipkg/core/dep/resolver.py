"""依赖源解析器

职责:
- 源名 + 版本 -> 本地目录或下载地址（不触发下载）
- 未注册的源名若是包根目录下已存在的目录，按 local 源处理
"""

from __future__ import annotations

import logging
from pathlib import Path

from ctipkg.core.dep.models import (
    SOURCE_LOCAL,
    SOURCE_URL,
    ResolvedSource,
    SourceDefinition,
)
from ctipkg.core.exceptions import DependencyError

logger = logging.getLogger(__name__)


class SourceResolver:
    """依赖源解析器 - 仅计算位置，不访问网络"""

    def __init__(
        self,
        sources: dict[str, SourceDefinition],
        base_dir: Path,
    ) -> None:
        self.sources = sources
        self.base_dir = base_dir

    def resolve(self, name: str, version: str = "") -> ResolvedSource:
        """解析依赖源位置

        版本优先级: 显式指定 > 源定义的默认版本。
        路径/URL 中的 {version} 占位符会被替换。
        """
        src = self.sources.get(name)
        if src is None:
            candidate = Path(name)
            if not candidate.is_absolute():
                candidate = self.base_dir / candidate
            if candidate.is_dir():
                logger.debug("未注册源按本地目录处理: %s -> %s", name, candidate)
                return ResolvedSource(
                    name=name, version=version,
                    kind=SOURCE_LOCAL, location=str(candidate),
                )
            raise DependencyError(
                f"未知依赖源 '{name}'。"
                f"已注册: {sorted(self.sources)}"
            )

        ver = version or src.version
        if src.kind == SOURCE_URL:
            if "{version}" in src.url and not ver:
                raise DependencyError(f"依赖源 '{name}' 需要指定版本")
            location = src.url.replace("{version}", ver)
        else:
            if not src.path:
                raise DependencyError(f"依赖源 '{name}' 未定义 path 或 url")
            if "{version}" in src.path and not ver:
                raise DependencyError(f"依赖源 '{name}' 需要指定版本")
            location = src.path.replace("{version}", ver)

        return ResolvedSource(
            name=name, version=ver, kind=src.kind,
            location=location, checksum_sha256=src.checksum_sha256,
        )
