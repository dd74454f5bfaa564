"""依赖拉取

- models.py:   源定义 / 解析结果
- registry.py: 从 sources.yml 加载源定义
- resolver.py: 源名 + 版本 -> 具体位置（不触发下载）
- fetcher.py:  暂存到包缓存目录并安装到 .dep/<app_code>
"""

from ctipkg.core.dep.fetcher import PackageFetcher
from ctipkg.core.dep.models import ResolvedSource, SourceDefinition
from ctipkg.core.dep.registry import SourceRegistry
from ctipkg.core.dep.resolver import SourceResolver

__all__ = [
    "ResolvedSource",
    "SourceDefinition",
    "SourceRegistry",
    "SourceResolver",
    "PackageFetcher",
]
