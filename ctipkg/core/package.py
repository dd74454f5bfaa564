"""包模型：清单 + 锁文件 + 包根目录

用法:
    pkg = Package.new("my-pkg", app_code="acme.billing", ramlx_version="1.0")
    pkg.save_index()
    pkg.save_index_lock()

    pkg = Package.read("my-pkg")
    dictionaries = pkg.get_dictionaries()
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from ctipkg.core.exceptions import ManifestError
from ctipkg.core.lock import IndexLock, read_index_lock
from ctipkg.core.manifest import INDEX_FILE_NAME, Index, read_index_file

logger = logging.getLogger(__name__)


class Package:
    """包根目录下的清单与锁文件"""

    def __init__(self, base_dir: str | Path, index: Index, index_lock: IndexLock) -> None:
        self.base_dir = Path(base_dir)
        self.index = index
        self.index_lock = index_lock

    @property
    def index_file(self) -> Path:
        return self.base_dir / INDEX_FILE_NAME

    @classmethod
    def new(
        cls,
        base_dir: str | Path,
        *,
        app_code: str = "",
        ramlx_version: str = "",
        entities: list[str] | None = None,
    ) -> Package:
        """创建内存中的新包（不写盘）"""
        base = Path(base_dir)
        index = Index(
            app_code=app_code,
            ramlx_version=ramlx_version,
            entities=list(entities or []),
            file_path=base / INDEX_FILE_NAME,
        )
        return cls(base, index, IndexLock())

    @classmethod
    def read(cls, base_dir: str | Path) -> Package:
        """读取已有包；清单必须存在，锁文件可缺省"""
        base = Path(base_dir)
        index = read_index_file(base / INDEX_FILE_NAME)
        return cls(base, index, read_index_lock(base))

    def save_index(self) -> None:
        self.index.save(self.index_file)

    def save_index_lock(self) -> None:
        self.index_lock.save(self.base_dir)

    def get_dictionaries(self) -> dict[str, dict[str, Any]]:
        """加载字典文件，返回 {语言代码: 词条}

        语言代码取文件名去掉扩展名（dictionaries/en.json -> en）。
        """
        dictionaries: dict[str, dict[str, Any]] = {}
        for rel in self.index.dictionaries:
            path = self.base_dir / rel
            try:
                with open(path, encoding="utf-8") as f:
                    entry = json.load(f)
            except OSError as e:
                raise ManifestError(f"打开字典文件失败 {rel}: {e}") from e
            except json.JSONDecodeError as e:
                raise ManifestError(f"字典文件格式错误 {rel}: {e}") from e
            if not isinstance(entry, dict):
                raise ManifestError(f"字典文件必须是 JSON 对象: {rel}")
            dictionaries[Path(rel).stem] = entry
        return dictionaries
