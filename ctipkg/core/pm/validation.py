"""联合校验：本包实体 + 全部已锁定依赖的元数据缓存

依赖的清单或缓存缺失属于流程错误，抛 ValidationError（整体中止）；
校验器发现的问题作为违规列表返回，空列表表示通过。
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

from ctipkg.core.exceptions import CtiPkgError, ValidationError
from ctipkg.core.manifest import INDEX_FILE_NAME, read_index_file
from ctipkg.core.package import Package
from ctipkg.core.parser import METADATA_CACHE_FILE
from ctipkg.core.protocols import EntityParser, EntityValidator

logger = logging.getLogger(__name__)


class ValidationOrchestrator:
    """驱动校验器跨包校验"""

    def __init__(
        self,
        package: Package,
        parser: EntityParser,
        validator_factory: Callable[[], EntityValidator],
        *,
        dependency_dir: str = ".dep",
        log: logging.Logger | None = None,
    ) -> None:
        self.package = package
        self.parser = parser
        self.validator_factory = validator_factory
        self.dependency_dir = dependency_dir
        self.log = log or logger

    @property
    def deps_dir(self) -> Path:
        return self.package.base_dir / self.dependency_dir

    def validate(self) -> list[Any]:
        try:
            parsed = self.parser.parse_package(self.package.index_file)
            parsed.dump_cache()
        except (CtiPkgError, OSError) as e:
            raise ValidationError(f"解析包失败: {e}") from e

        validator = self.validator_factory()
        validator.add_entities(parsed.registry.total)

        for source, entry in self.package.index_lock.packages.items():
            try:
                idx = read_index_file(self.deps_dir / entry.app_code / INDEX_FILE_NAME)
                validator.add_from_file(idx.base_dir / METADATA_CACHE_FILE)
            except (CtiPkgError, OSError) as e:
                raise ValidationError(
                    f"加载依赖 {source} ({entry.app_code}) 失败: {e}",
                    details=[source],
                ) from e
            self.log.debug("已加载依赖缓存: %s", source, extra={"dependency": source})

        violations = list(validator.validate_all() or [])
        self.log.info("校验完成: %d 条违规", len(violations))
        return violations
