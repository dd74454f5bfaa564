"""依赖声明解析

index.yml 的 depends 列表中每项为 "name" 或 "name@version"。
解析是宽松的：格式不规范时版本为空串，调用方不得假设版本非空。
"""

from __future__ import annotations


def parse_dependency(spec: str) -> tuple[str, str]:
    """解析依赖声明，返回 (name, version)

    示例:
        >>> parse_dependency("github.com/acme/cti-base@v1.2.0")
        ('github.com/acme/cti-base', 'v1.2.0')
        >>> parse_dependency("github.com/acme/cti-base")
        ('github.com/acme/cti-base', '')
    """
    parts = spec.split("@")
    if len(parts) != 2:
        return spec.strip(), ""
    return parts[0].strip(), parts[1].strip()


def dependency_names(specs: list[str]) -> list[str]:
    """按原顺序返回声明列表中的包名"""
    return [parse_dependency(s)[0] for s in specs]
