"""下载地址检查测试"""

import pytest

from ctipkg.core.exceptions import DependencyError
from ctipkg.utils.net import check_download_url


class TestCheckDownloadUrl:
    @pytest.mark.parametrize("url", [
        "http://artifacts.example.com/cti-base.tar.gz",
        "HTTPS://artifacts.example.com/v1/cti-base.tar.gz",
    ])
    def test_allowed(self, url: str) -> None:
        assert check_download_url(url) == url

    def test_surrounding_whitespace_stripped(self) -> None:
        assert check_download_url("  https://h/x.tar.gz\n") == "https://h/x.tar.gz"

    @pytest.mark.parametrize("url", [
        "file:///etc/passwd",
        "ftp://evil.com/payload.tar.gz",
        "/local/path/pkg.tar.gz",
    ])
    def test_scheme_rejected(self, url: str) -> None:
        with pytest.raises(DependencyError, match="不允许的 URL 协议"):
            check_download_url(url)

    def test_missing_host_rejected(self) -> None:
        with pytest.raises(DependencyError, match="缺少主机名"):
            check_download_url("https:///cti-base.tar.gz")

    def test_source_named_in_error(self) -> None:
        with pytest.raises(DependencyError, match="依赖 acme/base"):
            check_download_url("file:///x", "acme/base")
