"""依赖下载地址检查

sources.yml 中 url 类型源展开 {version} 后得到下载地址，
拉取器在发起请求前调用 check_download_url，只放行带主机名的 http/https 地址。
"""

from __future__ import annotations

from urllib.parse import urlsplit

from ctipkg.core.exceptions import DependencyError

DOWNLOAD_SCHEMES = ("http", "https")


def check_download_url(url: str, source: str = "") -> str:
    """返回去除首尾空白后的下载地址

    Raises:
        DependencyError: 协议不是 http/https，或地址缺少主机名
    """
    url = url.strip()
    parts = urlsplit(url)
    owner = f"依赖 {source} " if source else ""
    if parts.scheme.lower() not in DOWNLOAD_SCHEMES:
        raise DependencyError(
            f"{owner}不允许的 URL 协议 '{parts.scheme or '-'}'（仅支持 http/https）: {url}"
        )
    if not parts.hostname:
        raise DependencyError(f"{owner}下载地址缺少主机名: {url}")
    return url
