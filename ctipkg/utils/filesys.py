"""目录替换工具

安装依赖时需要把一棵目录树放到规范路径上（.dep/<app_code>），两种方式:

  - replace_with_copy: 目标变为源的独立副本，源保持不变
  - replace_with_move: 目标变为源的内容，源不再存在
    同一文件系统内为 rename（原子）；跨文件系统时 shutil.move 退化为
    copy + delete，不保证原子性

另提供 link_dependency，用于把包私有依赖目录中的条目指向共享安装位置。

LocalFileSystem 把以上函数包装为可注入的能力对象（见 FileSystemOps 协议），
测试中可替换为 mock。
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

from ctipkg.core.exceptions import FileSystemError

logger = logging.getLogger(__name__)


def _remove_path(path: Path) -> None:
    """删除文件、符号链接或目录树；不存在时抛 FileNotFoundError"""
    if path.is_symlink() or path.is_file():
        path.unlink()
    else:
        shutil.rmtree(path)


def replace_with_copy(src: str | Path, dst: str | Path) -> None:
    """用 src 的完整副本替换 dst

    dst 已存在时先整体删除；stat 出现"不存在"以外的错误视为致命错误。
    符号链接按链接本身复制（不跟随）。
    """
    src, dst = Path(src), Path(dst)
    try:
        os.lstat(dst)
    except FileNotFoundError:
        pass
    except OSError as e:
        raise FileSystemError(f"stat {dst}: {e}", str(src), str(dst)) from e
    else:
        try:
            _remove_path(dst)
        except OSError as e:
            raise FileSystemError(
                f"删除已存在目录失败 {dst}: {e}", str(src), str(dst),
            ) from e

    try:
        dst.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FileSystemError(
            f"创建父目录失败 {dst.parent}: {e}", str(src), str(dst),
        ) from e

    try:
        shutil.copytree(src, dst, symlinks=True)
    except (OSError, shutil.Error) as e:
        raise FileSystemError(f"复制 {src} -> {dst}: {e}", str(src), str(dst)) from e
    logger.debug("已复制: %s -> %s", src, dst)


def replace_with_move(src: str | Path, dst: str | Path) -> None:
    """把 src 移动到 dst，无条件覆盖已存在的 dst"""
    src, dst = Path(src), Path(dst)
    try:
        _remove_path(dst)
    except FileNotFoundError:
        pass
    except OSError as e:
        raise FileSystemError(
            f"删除已存在目录失败 {dst}: {e}", str(src), str(dst),
        ) from e

    try:
        dst.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FileSystemError(
            f"创建目录失败 {dst.parent}: {e}", str(src), str(dst),
        ) from e

    try:
        shutil.move(str(src), str(dst))
    except (OSError, shutil.Error) as e:
        raise FileSystemError(f"移动 {src} -> {dst}: {e}", str(src), str(dst)) from e
    logger.debug("已移动: %s -> %s", src, dst)


def link_dependency(link: str | Path, target: str | Path) -> None:
    """让 link 成为指向 target 的相对符号链接

    link 处原有的文件、目录或链接会被删除。重复调用结果一致。
    """
    link, target = Path(link), Path(target)
    try:
        _remove_path(link)
    except FileNotFoundError:
        pass
    except OSError as e:
        raise FileSystemError(
            f"删除已存在链接失败 {link}: {e}", str(target), str(link),
        ) from e

    try:
        link.parent.mkdir(parents=True, exist_ok=True)
        rel = os.path.relpath(target, start=link.parent)
        os.symlink(rel, link, target_is_directory=True)
    except OSError as e:
        raise FileSystemError(
            f"创建链接失败 {link} -> {target}: {e}", str(target), str(link),
        ) from e
    logger.debug("已链接: %s -> %s", link, target)


class LocalFileSystem:
    """本地文件系统实现（FileSystemOps）"""

    def replace_with_copy(self, src: str | Path, dst: str | Path) -> None:
        replace_with_copy(src, dst)

    def replace_with_move(self, src: str | Path, dst: str | Path) -> None:
        replace_with_move(src, dst)

    def link(self, link: str | Path, target: str | Path) -> None:
        link_dependency(link, target)
