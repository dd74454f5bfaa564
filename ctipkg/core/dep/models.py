"""依赖源数据模型"""

from __future__ import annotations

from dataclasses import dataclass

SOURCE_LOCAL = "local"
SOURCE_URL = "url"


@dataclass
class SourceDefinition:
    """sources.yml 中的一个依赖源"""

    name: str
    kind: str  # "local", "url"
    path: str = ""      # 本地目录，可含 {version} 占位符
    url: str = ""       # tar.gz 下载地址，可含 {version} 占位符
    version: str = ""   # 未指定版本时使用
    checksum_sha256: str = ""
    description: str = ""


@dataclass
class ResolvedSource:
    """源名 + 版本解析后的具体位置"""

    name: str
    version: str
    kind: str
    location: str
    checksum_sha256: str = ""
