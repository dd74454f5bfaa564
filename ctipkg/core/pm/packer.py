"""bundle.zip 打包

内容:
  - 实例在其类型 asset 注解字段上引用的资源文件（保持相对路径）
  - index.yml: 清单副本，serialized 列出随包附带的元数据缓存
  - serialized 中列出的每个缓存文件

先写同目录临时文件，全部成功后 os.replace 发布；失败时删除临时文件，
已有的 bundle.zip 保持不变。
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
import zipfile
from pathlib import Path

from ctipkg.core.entities import get_value
from ctipkg.core.exceptions import CtiPkgError, PackError
from ctipkg.core.manifest import INDEX_FILE_NAME
from ctipkg.core.package import Package
from ctipkg.core.parser import METADATA_CACHE_FILE, ParsedPackage
from ctipkg.core.protocols import EntityParser

logger = logging.getLogger(__name__)


def _copy_into(
    zf: zipfile.ZipFile, base_dir: Path, rel: str, what: str, written: set[str],
) -> bool:
    """把包内文件写入归档；同名条目只写一次，返回是否实际写入

    rel 必须落在包根目录内（绝对路径或 .. 越界均拒绝）。
    """
    if rel in written:
        return False
    root = base_dir.resolve()
    path = (base_dir / rel).resolve()
    if Path(rel).is_absolute() or not path.is_relative_to(root):
        raise PackError(f"{what} {rel} 不在包目录内")
    try:
        with open(path, "rb") as src, zf.open(rel, "w") as dst:
            shutil.copyfileobj(src, dst)
    except OSError as e:
        raise PackError(f"写入{what} {rel} 失败: {e}") from e
    written.add(rel)
    return True


class BundlePacker:
    """把包打成 bundle.zip"""

    def __init__(
        self,
        package: Package,
        parser: EntityParser,
        *,
        bundle_name: str = "bundle.zip",
        log: logging.Logger | None = None,
    ) -> None:
        self.package = package
        self.parser = parser
        self.bundle_name = bundle_name
        self.log = log or logger

    @property
    def bundle_path(self) -> Path:
        return self.package.base_dir / self.bundle_name

    def pack(self) -> Path:
        """打包并返回 bundle 路径"""
        try:
            parsed = self.parser.parse_package(self.package.index_file)
        except (CtiPkgError, OSError) as e:
            raise PackError(f"解析包失败: {e}") from e

        target = self.bundle_path
        fd, tmp = tempfile.mkstemp(dir=str(target.parent), suffix=".zip.tmp")
        os.close(fd)
        try:
            with zipfile.ZipFile(tmp, "w", compression=zipfile.ZIP_DEFLATED) as zf:
                written: set[str] = set()
                self._write_assets(zf, parsed, written)
                self._write_index(zf, parsed, written)
            os.replace(tmp, target)
        except Exception:
            try:
                os.unlink(tmp)
            except OSError:
                pass
            raise
        self.log.info("已打包: %s", target, extra={"package": self.package.index.app_code})
        return target

    def _write_assets(
        self, zf: zipfile.ZipFile, parsed: ParsedPackage, written: set[str],
    ) -> None:
        registry = parsed.registry
        for entity in registry.instances.values():
            typ = registry.types.get(entity.parent)
            if typ is None:
                raise PackError(f"类型 {entity.parent} 不存在 (实体 {entity.cti})")
            for key, annotation in typ.annotations.items():
                if not annotation.asset:
                    continue
                asset_path = get_value(entity.values, key)
                if not asset_path:
                    break
                asset_path = str(asset_path)
                if _copy_into(zf, parsed.base_dir, asset_path, "资源文件", written):
                    self.log.debug("已打包资源: %s", asset_path, extra={"asset": asset_path})

    def _write_index(
        self, zf: zipfile.ZipFile, parsed: ParsedPackage, written: set[str],
    ) -> None:
        idx = self.package.index.clone()
        idx.put_serialized(METADATA_CACHE_FILE)
        try:
            zf.writestr(INDEX_FILE_NAME, idx.to_bytes())
        except OSError as e:
            raise PackError(f"写入清单失败: {e}") from e

        for metadata in idx.serialized:
            _copy_into(zf, parsed.base_dir, metadata, "序列化元数据", written)
