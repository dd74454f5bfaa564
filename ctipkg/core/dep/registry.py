"""依赖源注册表

从 sources.yml 加载源定义:

    sources:
      github.com/acme/cti-base:
        url: https://artifacts.example.com/cti-base/{version}/cti-base.tar.gz
        version: v1.2.0
        checksum_sha256: ...
      acme/local-types:
        path: ../local-types

配置了 url 的源为 url 类型，否则为 local 类型。
local 源的相对路径以 sources.yml 所在目录为基准。
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from ctipkg.core.dep.models import SOURCE_LOCAL, SOURCE_URL, SourceDefinition
from ctipkg.core.exceptions import ConfigError
from ctipkg.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)


class SourceRegistry:
    """依赖源注册表 - 从 sources.yml 加载源定义"""

    def __init__(self, registry_path: Path) -> None:
        self.registry_path = registry_path

    def load(self) -> dict[str, SourceDefinition]:
        """加载全部源定义；文件不存在时返回空"""
        if not self.registry_path.exists():
            logger.debug("源注册表不存在: %s", self.registry_path)
            return {}

        try:
            data = load_yaml(self.registry_path)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ConfigError(f"读取源注册表失败 {self.registry_path}: {e}") from e

        base = self.registry_path.parent
        sources: dict[str, SourceDefinition] = {}
        for name, info in (data.get("sources") or {}).items():
            if info is None:
                continue
            url = info.get("url", "")
            path = info.get("path", "")
            if path and not Path(path).is_absolute():
                path = str(base / path)
            sources[name] = SourceDefinition(
                name=name,
                kind=SOURCE_URL if url else SOURCE_LOCAL,
                path=path,
                url=url,
                version=str(info.get("version", "")),
                checksum_sha256=info.get("checksum_sha256", ""),
                description=info.get("description", ""),
            )

        logger.info("已加载 %d 个依赖源", len(sources))
        return sources
