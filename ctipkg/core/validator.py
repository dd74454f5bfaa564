"""CTI 实体校验器（Validator 协议的参考实现）

只做结构性检查:
  - 同一 CTI 标识重复声明
  - 实例的父类型不存在（本包与全部已锁定依赖中均未找到）
  - asset 注解字段的值不是字符串

发现的问题以 Violation 列表返回，不抛异常。
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from pathlib import Path

from ctipkg.core.entities import KIND_TYPE, CtiEntity, get_value
from ctipkg.core.parser import load_cache

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Violation:
    """一条校验违规"""

    cti: str
    message: str

    def __str__(self) -> str:
        return f"{self.cti}: {self.message}"


class CtiValidator:
    """汇总多个包的实体后统一校验"""

    def __init__(self) -> None:
        self._entities: list[CtiEntity] = []

    def add_entities(self, entities: list[CtiEntity]) -> None:
        self._entities.extend(entities)

    def add_from_file(self, path: str | Path) -> None:
        """加载依赖包的元数据缓存；缺失或损坏时抛 ManifestError"""
        entities = load_cache(path)
        self._entities.extend(entities)
        logger.debug("已加载缓存 %s: %d 个实体", path, len(entities))

    def validate_all(self) -> list[Violation]:
        violations: list[Violation] = []
        counts = Counter(e.cti for e in self._entities)
        for cti, n in counts.items():
            if n > 1:
                violations.append(Violation(cti, f"重复声明 {n} 次"))

        types = {e.cti: e for e in self._entities if e.kind == KIND_TYPE}
        for entity in self._entities:
            if entity.kind == KIND_TYPE:
                continue
            typ = types.get(entity.parent)
            if typ is None:
                violations.append(Violation(entity.cti, f"父类型不存在: {entity.parent}"))
                continue
            for key, annotation in typ.annotations.items():
                if not annotation.asset:
                    continue
                value = get_value(entity.values, key)
                if value is not None and not isinstance(value, str):
                    violations.append(Violation(
                        entity.cti, f"asset 字段 {key} 必须是文件路径字符串",
                    ))
        return violations
