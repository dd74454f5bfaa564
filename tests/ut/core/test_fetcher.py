"""依赖源注册表、解析器与拉取器测试"""

from __future__ import annotations

import hashlib
import io
import tarfile
from pathlib import Path

import pytest

from ctipkg.core.dep import PackageFetcher, SourceRegistry, SourceResolver
from ctipkg.core.dep.models import SOURCE_LOCAL, SOURCE_URL
from ctipkg.core.exceptions import ConfigError, DependencyError
from ctipkg.core.lock import IndexLock
from ctipkg.utils.filesys import LocalFileSystem


def _fetcher(base: Path, cache: Path) -> PackageFetcher:
    sources = SourceRegistry(base / "sources.yml").load()
    return PackageFetcher(SourceResolver(sources, base), cache, LocalFileSystem())


def _tarball(path: Path, pkg_dir: Path) -> bytes:
    with tarfile.open(path, "w:gz") as tar:
        tar.add(pkg_dir, arcname="pkg")
    return path.read_bytes()


class TestSourceRegistry:

    def test_load(self, tmp_path: Path, write_sources) -> None:
        write_sources(tmp_path, {
            "a/local": {"path": "../libs/local"},
            "a/remote": {"url": "https://example.com/{version}/r.tar.gz", "version": "v1"},
            "a/empty": None,
        })
        sources = SourceRegistry(tmp_path / "sources.yml").load()
        assert set(sources) == {"a/local", "a/remote"}
        assert sources["a/local"].kind == SOURCE_LOCAL
        assert Path(sources["a/local"].path) == tmp_path / "../libs/local"
        assert sources["a/remote"].kind == SOURCE_URL

    def test_missing_file(self, tmp_path: Path) -> None:
        assert SourceRegistry(tmp_path / "sources.yml").load() == {}

    def test_malformed(self, tmp_path: Path) -> None:
        (tmp_path / "sources.yml").write_text("sources: [\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            SourceRegistry(tmp_path / "sources.yml").load()


class TestSourceResolver:

    def test_version_placeholder(self, tmp_path: Path, write_sources) -> None:
        write_sources(tmp_path, {"a/remote": {"url": "https://h/{version}/r.tar.gz", "version": "v1"}})
        resolver = SourceResolver(SourceRegistry(tmp_path / "sources.yml").load(), tmp_path)
        assert resolver.resolve("a/remote").location == "https://h/v1/r.tar.gz"
        assert resolver.resolve("a/remote", "v2").location == "https://h/v2/r.tar.gz"

    def test_placeholder_requires_version(self, tmp_path: Path, write_sources) -> None:
        write_sources(tmp_path, {"a/local": {"path": "libs/{version}"}})
        resolver = SourceResolver(SourceRegistry(tmp_path / "sources.yml").load(), tmp_path)
        with pytest.raises(DependencyError, match="需要指定版本"):
            resolver.resolve("a/local")

    def test_unregistered_directory(self, tmp_path: Path) -> None:
        (tmp_path / "vendor" / "base").mkdir(parents=True)
        resolved = SourceResolver({}, tmp_path).resolve("vendor/base")
        assert resolved.kind == SOURCE_LOCAL
        assert resolved.location == str(tmp_path / "vendor" / "base")

    def test_unknown(self, tmp_path: Path) -> None:
        with pytest.raises(DependencyError, match="未知依赖源"):
            SourceResolver({}, tmp_path).resolve("nowhere/pkg")


class TestLocalFetch:

    @pytest.fixture()
    def layout(self, tmp_path: Path, make_package, write_sources) -> Path:
        make_package(tmp_path / "libs" / "util-v1", "acme.util")
        make_package(tmp_path / "libs" / "base-v1", "acme.base", depends=["a/util@v1"])
        make_package(tmp_path / "libs" / "base-v2", "acme.base", depends=["a/util@v1"])
        app = make_package(tmp_path / "app", "acme.app")
        write_sources(app, {
            "a/base": {"path": "../libs/base-{version}"},
            "a/util": {"path": "../libs/util-{version}"},
        })
        return app

    def test_installs_transitive(self, layout: Path, tmp_path: Path) -> None:
        lock = IndexLock()
        installed, replaced = _fetcher(layout, tmp_path / "cache").download(
            ["a/base@v1"], replace=False, lock=lock, deps_dir=layout / ".dep",
        )
        assert installed == ["a/util", "a/base"]
        assert replaced == set()
        assert (layout / ".dep" / "acme.base" / "index.yml").is_file()
        assert (layout / ".dep" / "acme.util" / "index.yml").is_file()
        assert lock.packages.get("a/base").depends == ["a/util@v1"]
        assert lock.dependent_bundles == {"acme.base": "v1", "acme.util": "v1"}
        assert lock.source_info["a/base"].kind == SOURCE_LOCAL

    def test_present_package_skipped(self, layout: Path, tmp_path: Path) -> None:
        lock = IndexLock()
        fetcher = _fetcher(layout, tmp_path / "cache")
        fetcher.download(["a/base@v1"], replace=False, lock=lock, deps_dir=layout / ".dep")
        installed, _ = fetcher.download(
            ["a/base@v1"], replace=False, lock=lock, deps_dir=layout / ".dep",
        )
        assert installed == []

    def test_missing_directory_reinstalled(self, layout: Path, tmp_path: Path) -> None:
        import shutil

        lock = IndexLock()
        fetcher = _fetcher(layout, tmp_path / "cache")
        fetcher.download(["a/base@v1"], replace=False, lock=lock, deps_dir=layout / ".dep")
        shutil.rmtree(layout / ".dep" / "acme.util")
        installed, _ = fetcher.download(
            ["a/base"], replace=False, lock=lock, deps_dir=layout / ".dep",
        )
        assert installed == ["a/util"]

    def test_other_version_kept_without_replace(self, layout: Path, tmp_path: Path) -> None:
        lock = IndexLock()
        fetcher = _fetcher(layout, tmp_path / "cache")
        fetcher.download(["a/base@v1"], replace=False, lock=lock, deps_dir=layout / ".dep")
        installed, replaced = fetcher.download(
            ["a/base@v2"], replace=False, lock=lock, deps_dir=layout / ".dep",
        )
        assert (installed, replaced) == ([], set())
        assert lock.packages.get("a/base").version == "v1"

    def test_replace(self, layout: Path, tmp_path: Path) -> None:
        lock = IndexLock()
        fetcher = _fetcher(layout, tmp_path / "cache")
        fetcher.download(["a/base@v1"], replace=False, lock=lock, deps_dir=layout / ".dep")
        installed, replaced = fetcher.download(
            ["a/base@v2"], replace=True, lock=lock, deps_dir=layout / ".dep",
        )
        assert installed == ["a/base"]
        assert replaced == {"a/base"}
        assert lock.packages.get("a/base").version == "v2"
        assert lock.dependent_bundles["acme.base"] == "v2"

    def test_replace_with_directory_missing(self, layout: Path, tmp_path: Path) -> None:
        """依赖目录被删除后替换仍按请求版本安装并记入 replaced"""
        import shutil

        lock = IndexLock()
        fetcher = _fetcher(layout, tmp_path / "cache")
        fetcher.download(["a/base@v1"], replace=False, lock=lock, deps_dir=layout / ".dep")
        shutil.rmtree(layout / ".dep")
        installed, replaced = fetcher.download(
            ["a/base@v2"], replace=True, lock=lock, deps_dir=layout / ".dep",
        )
        assert installed == ["a/util", "a/base"]
        assert replaced == {"a/base"}
        assert lock.packages.get("a/base").version == "v2"

    def test_missing_directory_restored_at_locked_version(
        self, layout: Path, tmp_path: Path,
    ) -> None:
        import shutil

        lock = IndexLock()
        fetcher = _fetcher(layout, tmp_path / "cache")
        fetcher.download(["a/base@v1"], replace=False, lock=lock, deps_dir=layout / ".dep")
        shutil.rmtree(layout / ".dep" / "acme.base")
        installed, replaced = fetcher.download(
            ["a/base@v2"], replace=False, lock=lock, deps_dir=layout / ".dep",
        )
        assert (installed, replaced) == (["a/base"], set())
        assert lock.packages.get("a/base").version == "v1"

    def test_cycle(self, tmp_path: Path, make_package, write_sources) -> None:
        make_package(tmp_path / "libs" / "x", "acme.x", depends=["a/y"])
        make_package(tmp_path / "libs" / "y", "acme.y", depends=["a/x"])
        app = make_package(tmp_path / "app", "acme.app")
        write_sources(app, {"a/x": {"path": "../libs/x"}, "a/y": {"path": "../libs/y"}})
        with pytest.raises(DependencyError, match="循环"):
            _fetcher(app, tmp_path / "cache").download(
                ["a/x"], replace=False, lock=IndexLock(), deps_dir=app / ".dep",
            )

    def test_app_code_conflict(self, tmp_path: Path, make_package, write_sources) -> None:
        make_package(tmp_path / "libs" / "one", "acme.same")
        make_package(tmp_path / "libs" / "two", "acme.same")
        app = make_package(tmp_path / "app", "acme.app")
        write_sources(app, {"a/one": {"path": "../libs/one"}, "a/two": {"path": "../libs/two"}})
        with pytest.raises(DependencyError, match="已被 'a/one' 占用"):
            _fetcher(app, tmp_path / "cache").download(
                ["a/one", "a/two"], replace=False, lock=IndexLock(), deps_dir=app / ".dep",
            )


class TestUrlFetch:

    @pytest.fixture()
    def archive(self, tmp_path: Path, make_package) -> bytes:
        pkg = make_package(tmp_path / "build" / "remote", "acme.remote")
        return _tarball(tmp_path / "remote.tar.gz", pkg)

    def _serve(self, monkeypatch: pytest.MonkeyPatch, data: bytes) -> list[str]:
        requested: list[str] = []

        def fake_urlopen(url: str, timeout: int | None = None) -> io.BytesIO:
            requested.append(url)
            return io.BytesIO(data)

        monkeypatch.setattr("ctipkg.core.dep.fetcher.urllib.request.urlopen", fake_urlopen)
        return requested

    def test_download_and_extract(
        self, tmp_path: Path, make_package, write_sources, archive: bytes,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        requested = self._serve(monkeypatch, archive)
        app = make_package(tmp_path / "app", "acme.app")
        write_sources(app, {"a/remote": {
            "url": "https://example.com/{version}/remote.tar.gz",
            "checksum_sha256": hashlib.sha256(archive).hexdigest(),
        }})
        lock = IndexLock()
        fetcher = _fetcher(app, tmp_path / "cache")
        installed, _ = fetcher.download(
            ["a/remote@v3"], replace=False, lock=lock, deps_dir=app / ".dep",
        )
        assert installed == ["a/remote"]
        assert requested == ["https://example.com/v3/remote.tar.gz"]
        assert (app / ".dep" / "acme.remote" / "index.yml").is_file()
        info = lock.source_info["a/remote"]
        assert info.kind == SOURCE_URL
        assert info.sha256 == hashlib.sha256(archive).hexdigest()

        # 再次拉取命中包缓存，不再下载
        fetcher.download(["a/remote@v3"], replace=False, lock=IndexLock(), deps_dir=app / ".dep")
        assert len(requested) == 1

    def test_checksum_mismatch(
        self, tmp_path: Path, make_package, write_sources, archive: bytes,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        self._serve(monkeypatch, archive)
        app = make_package(tmp_path / "app", "acme.app")
        write_sources(app, {"a/remote": {
            "url": "https://example.com/remote.tar.gz", "checksum_sha256": "0" * 64,
        }})
        with pytest.raises(DependencyError, match="校验和不匹配"):
            _fetcher(app, tmp_path / "cache").download(
                ["a/remote"], replace=False, lock=IndexLock(), deps_dir=app / ".dep",
            )
        assert not (app / ".dep").exists()

    def test_scheme_rejected(self, tmp_path: Path, make_package, write_sources) -> None:
        app = make_package(tmp_path / "app", "acme.app")
        write_sources(app, {"a/remote": {"url": "file:///etc/remote.tar.gz"}})
        with pytest.raises(DependencyError, match="不允许的 URL 协议"):
            _fetcher(app, tmp_path / "cache").download(
                ["a/remote"], replace=False, lock=IndexLock(), deps_dir=app / ".dep",
            )
