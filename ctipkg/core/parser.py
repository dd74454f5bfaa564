"""YAML 实体解析器与元数据缓存

清单 entities 列出的每个文件形如:

    types:
      - cti: cti.acme.billing.asset.v1.0
        annotations:
          .icon:
            asset: true
    instances:
      - cti: cti.acme.billing.asset.v1.0~acme.billing.logo.v1.0
        values:
          icon: assets/logo.png

解析结果为 EntityRegistry；dump_cache() 把它序列化为包目录下的 .cache.json，
供依赖方校验和打包时直接加载，无需重新解析。
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import yaml

from ctipkg.core.entities import KIND_INSTANCE, KIND_TYPE, CtiEntity, EntityRegistry
from ctipkg.core.exceptions import ManifestError
from ctipkg.core.manifest import Index, read_index_file
from ctipkg.utils.yaml_io import atomic_write, load_yaml

logger = logging.getLogger(__name__)

METADATA_CACHE_FILE = ".cache.json"
CACHE_FORMAT_VERSION = "v1"


class ParsedPackage:
    """解析后的包：清单 + 实体注册表"""

    def __init__(self, index: Index, registry: EntityRegistry) -> None:
        self.index = index
        self.registry = registry

    @property
    def base_dir(self) -> Path:
        return self.index.base_dir

    @property
    def cache_file(self) -> Path:
        return self.base_dir / METADATA_CACHE_FILE

    def dump_cache(self) -> Path:
        """写出元数据缓存文件，返回其路径"""
        payload = {
            "version": CACHE_FORMAT_VERSION,
            "app_code": self.index.app_code,
            "entities": [e.to_dict() for e in self.registry.total],
        }
        atomic_write(
            self.cache_file,
            json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True),
        )
        logger.debug("元数据缓存已写出: %s (%d 个实体)", self.cache_file, len(self.registry))
        return self.cache_file


def _entities_from(raw: Any, kind: str, source: str) -> list[CtiEntity]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ManifestError(f"{source}: '{kind}s' 必须是列表")
    entities = []
    for item in raw:
        if not isinstance(item, dict) or not item.get("cti"):
            raise ManifestError(f"{source}: 实体缺少 cti 标识")
        entity = CtiEntity.from_dict({**item, "kind": kind})
        entity.source = source
        entities.append(entity)
    return entities


class YamlPackageParser:
    """解析清单中的 YAML 实体文件（EntityParser 协议实现）"""

    def parse_package(self, index_file: str | Path) -> ParsedPackage:
        index = read_index_file(index_file)
        registry = EntityRegistry()
        for rel in index.entities:
            path = index.base_dir / rel
            if not path.is_file():
                raise ManifestError(f"实体文件不存在: {rel}")
            try:
                data = load_yaml(path)
            except (OSError, ValueError, yaml.YAMLError) as e:
                raise ManifestError(f"读取实体文件失败 {rel}: {e}") from e
            for entity in _entities_from(data.get("types"), KIND_TYPE, rel):
                registry.add(entity)
            for entity in _entities_from(data.get("instances"), KIND_INSTANCE, rel):
                registry.add(entity)
        logger.debug("已解析 %s: %d 个实体", index.file_path, len(registry))
        return ParsedPackage(index, registry)

    def build_package_cache(self, index_file: str | Path) -> Path:
        """解析包并重建其元数据缓存"""
        return self.parse_package(index_file).dump_cache()


def load_cache(path: str | Path) -> list[CtiEntity]:
    """读取元数据缓存文件中的实体列表"""
    p = Path(path)
    try:
        payload = json.loads(p.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ManifestError(f"元数据缓存不存在: {p}") from e
    except OSError as e:
        raise ManifestError(f"读取元数据缓存失败 {p}: {e}") from e
    except json.JSONDecodeError as e:
        raise ManifestError(f"元数据缓存格式错误 {p}: {e}") from e
    try:
        return [CtiEntity.from_dict(item) for item in payload["entities"]]
    except (KeyError, TypeError) as e:
        raise ManifestError(f"元数据缓存结构无效 {p}: {e}") from e
