"""CTI 实体与实体注册表

CTI 标识以 "~" 分段，最后一段之前的部分即父类型:
    cti.acme.billing.asset.v1.0~acme.billing.logo.v1.0
    └──────── 父类型 ────────┘

类型（type）可在字段上声明注解，例如 asset 注解表示该字段的值是包内资源文件的相对路径；
实例（instance）携带字段值。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

KIND_TYPE = "type"
KIND_INSTANCE = "instance"


def get_parent_cti(cti: str) -> str:
    """返回父类型标识；没有父类型时返回空串"""
    parent, sep, _ = cti.rpartition("~")
    return parent if sep else ""


def get_value(values: Any, key: str) -> Any:
    """按注解键（".icon" / "media.icon"）读取字段值，不存在返回 None"""
    current = values
    for part in key.strip(".").split("."):
        if not part:
            continue
        if not isinstance(current, dict) or part not in current:
            return None
        current = current[part]
    return current


@dataclass
class Annotation:
    """类型字段注解"""

    asset: bool = False
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Annotation:
        data = dict(data or {})
        asset = bool(data.pop("asset", False))
        return cls(asset=asset, extra=data)

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.extra)
        if self.asset:
            data["asset"] = True
        return data


@dataclass
class CtiEntity:
    """类型或实例"""

    cti: str
    kind: str = KIND_INSTANCE
    annotations: dict[str, Annotation] = field(default_factory=dict)
    values: dict[str, Any] = field(default_factory=dict)
    source: str = ""

    @property
    def parent(self) -> str:
        return get_parent_cti(self.cti)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CtiEntity:
        return cls(
            cti=str(data["cti"]),
            kind=data.get("kind", KIND_INSTANCE),
            annotations={
                str(k): Annotation.from_dict(v)
                for k, v in (data.get("annotations") or {}).items()
            },
            values=data.get("values") or {},
            source=data.get("source", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"cti": self.cti, "kind": self.kind}
        if self.annotations:
            data["annotations"] = {k: a.to_dict() for k, a in self.annotations.items()}
        if self.values:
            data["values"] = self.values
        if self.source:
            data["source"] = self.source
        return data


class EntityRegistry:
    """一次解析得到的实体集合"""

    def __init__(self) -> None:
        self.types: dict[str, CtiEntity] = {}
        self.instances: dict[str, CtiEntity] = {}
        # 按声明顺序保留全部实体（含重复标识），供校验使用
        self.total: list[CtiEntity] = []

    def add(self, entity: CtiEntity) -> None:
        if entity.kind == KIND_TYPE:
            self.types.setdefault(entity.cti, entity)
        else:
            self.instances.setdefault(entity.cti, entity)
        self.total.append(entity)

    def __len__(self) -> int:
        return len(self.total)
