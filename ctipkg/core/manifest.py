"""包清单（index.yml）

作者维护的包声明：包标识、RAMLx 方言版本、实体文件、字典文件、依赖声明。
依赖声明按包名唯一（由 Installer 维护）。

示例:
    app_code: acme.billing
    ramlx_version: "1.0"
    entities:
      - entities/alerts.yml
    dictionaries:
      - dictionaries/en.json
    depends:
      - github.com/acme/cti-base@v1.2.0
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from ctipkg.core.exceptions import ManifestError
from ctipkg.utils.yaml_io import dump_yaml, load_yaml, save_yaml

logger = logging.getLogger(__name__)

INDEX_FILE_NAME = "index.yml"


@dataclass
class Index:
    """包清单"""

    app_code: str = ""
    ramlx_version: str = ""
    entities: list[str] = field(default_factory=list)
    dictionaries: list[str] = field(default_factory=list)
    depends: list[str] = field(default_factory=list)
    # 仅出现在 bundle 内的清单副本中：随包附带的序列化元数据缓存
    serialized: list[str] = field(default_factory=list)

    # 以下字段不持久化
    file_path: Path = field(default=Path(INDEX_FILE_NAME), compare=False)

    @property
    def base_dir(self) -> Path:
        return self.file_path.parent

    @classmethod
    def from_dict(cls, data: dict[str, Any], file_path: Path) -> Index:
        def _str_list(key: str) -> list[str]:
            value = data.get(key) or []
            if not isinstance(value, list):
                raise ManifestError(f"{file_path}: '{key}' 必须是列表")
            return [str(v) for v in value]

        return cls(
            app_code=str(data.get("app_code", "")),
            ramlx_version=str(data.get("ramlx_version", "")),
            entities=_str_list("entities"),
            dictionaries=_str_list("dictionaries"),
            depends=_str_list("depends"),
            serialized=_str_list("serialized"),
            file_path=file_path,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "app_code": self.app_code,
            "ramlx_version": self.ramlx_version,
            "entities": list(self.entities),
            "dictionaries": list(self.dictionaries),
            "depends": list(self.depends),
        }
        if self.serialized:
            data["serialized"] = list(self.serialized)
        return data

    def to_bytes(self) -> bytes:
        return dump_yaml(self.to_dict()).encode("utf-8")

    def clone(self) -> Index:
        return copy.deepcopy(self)

    def put_serialized(self, path: str) -> None:
        """登记一个序列化缓存文件（重复登记无效果）"""
        if path not in self.serialized:
            self.serialized.append(path)

    def save(self, file_path: Path | None = None) -> None:
        target = file_path or self.file_path
        save_yaml(target, self.to_dict())
        logger.debug("清单已保存: %s", target)


def read_index_file(file_path: str | Path) -> Index:
    """读取清单文件；文件不存在或格式错误抛 ManifestError"""
    p = Path(file_path)
    if not p.is_file():
        raise ManifestError(f"清单文件不存在: {p}")
    try:
        data = load_yaml(p)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ManifestError(f"读取清单失败 {p}: {e}") from e
    return Index.from_dict(data, p)


def read_index(base_dir: str | Path) -> Index:
    return read_index_file(Path(base_dir) / INDEX_FILE_NAME)
