"""清单、锁文件与源注册表的 YAML 读写

index.yml、index-lock.yml、sources.yml 以及配置文件都经 load_yaml 读取，
写盘统一走 atomic_write，目标文件要么是旧内容要么是完整的新内容。
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

# 超过此大小的 YAML 文件拒绝解析
MAX_YAML_SIZE = 10 * 1024 * 1024


def atomic_write(path: Path, content: str) -> None:
    """在目标目录中写临时文件后 os.replace 到 path，父目录不存在时创建"""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp, path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise


def load_yaml(path: str | Path) -> dict[str, Any]:
    """读取 YAML 映射

    文件不存在、内容为空或顶层不是映射时返回空字典；
    调用方据此区分"未配置"与"格式错误"（后者抛出 yaml.YAMLError）。

    Raises:
        ValueError: 文件超过 MAX_YAML_SIZE
        yaml.YAMLError / OSError: 解析或读取失败
    """
    p = Path(path)
    if not p.is_file():
        return {}

    size = p.stat().st_size
    if size > MAX_YAML_SIZE:
        raise ValueError(f"YAML 文件过大: {p} ({size} 字节，上限 {MAX_YAML_SIZE})")

    try:
        data = yaml.safe_load(p.read_text(encoding="utf-8"))
    except (yaml.YAMLError, OSError) as e:
        logger.error("读取 YAML 失败 %s: %s", p, e)
        raise

    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.warning("%s 顶层不是映射（%s），按空内容处理", p, type(data).__name__)
        return {}
    return data


def dump_yaml(data: Any) -> str:
    """按插入顺序输出键，保留中文原文"""
    return yaml.dump(data, default_flow_style=False, allow_unicode=True, sort_keys=False)


def save_yaml(path: str | Path, data: Any) -> None:
    """序列化后原子写入；相同数据重复写入得到逐字节相同的文件"""
    p = Path(path)
    try:
        atomic_write(p, dump_yaml(data))
    except (yaml.YAMLError, OSError) as e:
        logger.error("写入 YAML 失败 %s: %s", p, e)
        raise
