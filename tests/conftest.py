"""测试共享 fixture：在临时目录中搭建包目录与依赖源

    make_package(root, app_code, depends=[...], entities={...}, files={...})
        写出 index.yml、实体 YAML 与任意附带文件，返回包根目录
    write_sources(base, {...})
        在包根目录写出 sources.yml
    config
        包缓存目录指向 tmp_path 的 Config
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
import yaml

from ctipkg.core.config import Config


def _make_package(
    root: Path,
    app_code: str,
    *,
    depends: list[str] | None = None,
    entities: dict[str, dict[str, Any]] | None = None,
    files: dict[str, str | bytes] | None = None,
    dictionaries: list[str] | None = None,
) -> Path:
    root.mkdir(parents=True, exist_ok=True)
    for rel, data in (entities or {}).items():
        p = root / rel
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(yaml.dump(data, allow_unicode=True, sort_keys=False), encoding="utf-8")
    for rel, content in (files or {}).items():
        p = root / rel
        p.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            p.write_bytes(content)
        else:
            p.write_text(content, encoding="utf-8")
    index = {
        "app_code": app_code,
        "ramlx_version": "1.0",
        "entities": list(entities or {}),
        "dictionaries": list(dictionaries or []),
        "depends": list(depends or []),
    }
    (root / "index.yml").write_text(
        yaml.dump(index, allow_unicode=True, sort_keys=False), encoding="utf-8",
    )
    return root


def _write_sources(base: Path, sources: dict[str, dict[str, Any]]) -> Path:
    path = base / "sources.yml"
    path.write_text(yaml.dump({"sources": sources}, sort_keys=False), encoding="utf-8")
    return path


@pytest.fixture()
def make_package():
    return _make_package


@pytest.fixture()
def write_sources():
    return _write_sources


@pytest.fixture()
def config(tmp_path: Path) -> Config:
    return Config(package_cache_dir=str(tmp_path / "pkg-cache"))
