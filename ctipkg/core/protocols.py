"""协作方协议定义

包管理核心（安装 / 校验 / 打包）只依赖这里的接口契约，
具体实现（YAML 解析器、参考校验器、本地/URL 拉取器、本地文件系统）可替换。

使用 typing.Protocol 而非 ABC，使得现有类无需修改继承关系即可满足协议。
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from ctipkg.core.entities import CtiEntity
    from ctipkg.core.lock import IndexLock
    from ctipkg.core.parser import ParsedPackage


# =========================================================================
# 文件系统
# =========================================================================

class FileSystemOps(Protocol):
    """目录替换能力

    原子性随平台不同：同一文件系统内 move 为 rename，跨文件系统时不保证原子。
    """

    def replace_with_copy(self, src: str | Path, dst: str | Path) -> None:
        """dst 变为 src 的独立副本"""
        ...

    def replace_with_move(self, src: str | Path, dst: str | Path) -> None:
        """src 移动到 dst，覆盖已有内容"""
        ...

    def link(self, link: str | Path, target: str | Path) -> None:
        """link 变为指向 target 的符号链接"""
        ...


# =========================================================================
# 解析 / 校验
# =========================================================================

class EntityParser(Protocol):
    """清单解析器"""

    def parse_package(self, index_file: str | Path) -> ParsedPackage:
        """解析清单及其实体文件"""
        ...

    def build_package_cache(self, index_file: str | Path) -> Path:
        """解析包并写出元数据缓存，返回缓存文件路径"""
        ...


class EntityValidator(Protocol):
    """实体校验器"""

    def add_entities(self, entities: list[CtiEntity]) -> None: ...

    def add_from_file(self, path: str | Path) -> None:
        """加载元数据缓存中的实体"""
        ...

    def validate_all(self) -> list[Any]:
        """返回违规列表（可能为空，不返回 None）"""
        ...


# =========================================================================
# 依赖拉取
# =========================================================================

class DependencyFetcher(Protocol):
    """依赖拉取器

    把依赖安装到 deps_dir/<app_code> 并在 lock 中登记，
    返回 (本次安装的源名列表, 被替换的包名集合)。失败时抛 DependencyError。
    """

    def download(
        self,
        specs: list[str],
        *,
        replace: bool,
        lock: IndexLock,
        deps_dir: Path,
    ) -> tuple[list[str], set[str]]:
        ...
