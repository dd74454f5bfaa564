"""依赖包拉取器

职责:
- 按源类型把包内容暂存到包缓存目录（local: 目录复制；url: 下载 tar.gz 并解压）
- 校验和验证
- 把暂存内容安装到 .dep/<app_code> 并登记锁记录
- 递归安装包自身清单中声明的依赖

已锁定的包默认保持锁定版本：目录仍存在时不动，目录缺失时按锁定版本重新安装。
replace=True 时锁定版本与请求版本不同的顶层依赖会按请求版本重新安装（无论目录是否存在），
其包名记入返回的 replaced 集合。传递依赖始终按保留策略处理。
"""

from __future__ import annotations

import hashlib
import logging
import shutil
import tarfile
import tempfile
import urllib.error
import urllib.request
from pathlib import Path

from ctipkg.core.dep.models import SOURCE_URL, ResolvedSource
from ctipkg.core.dep.resolver import SourceResolver
from ctipkg.core.depspec import parse_dependency
from ctipkg.core.exceptions import DependencyError
from ctipkg.core.lock import IndexLock, PackageLock, SourceInfo
from ctipkg.core.manifest import INDEX_FILE_NAME, Index, read_index_file
from ctipkg.core.protocols import FileSystemOps
from ctipkg.utils.net import check_download_url

logger = logging.getLogger(__name__)


def _safe_name(name: str) -> str:
    return name.replace("/", "_").replace("\\", "_").replace(":", "_").replace("..", "_")


def _sha256(path: Path) -> str:
    sha256 = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            sha256.update(chunk)
    return sha256.hexdigest()


def _find_package_root(content: Path) -> Path:
    """定位解压内容中的包根目录（index.yml 所在目录，允许多一层顶层目录）"""
    if (content / INDEX_FILE_NAME).is_file():
        return content
    children = [c for c in content.iterdir() if c.is_dir()]
    if len(children) == 1 and (children[0] / INDEX_FILE_NAME).is_file():
        return children[0]
    raise DependencyError(f"未找到包清单 {INDEX_FILE_NAME}: {content}")


class _Session:
    """一次 download 调用的状态"""

    def __init__(self, lock: IndexLock, deps_dir: Path) -> None:
        self.lock = lock
        self.deps_dir = deps_dir
        self.installed: list[str] = []
        self.replaced: set[str] = set()
        self.done: set[str] = set()
        self.visiting: list[str] = []


class PackageFetcher:
    """依赖包拉取器（DependencyFetcher 协议实现）"""

    def __init__(
        self,
        resolver: SourceResolver,
        cache_dir: Path,
        fs: FileSystemOps,
        *,
        timeout: int = 60,
        log: logging.Logger | None = None,
    ) -> None:
        self.resolver = resolver
        self.cache_dir = cache_dir
        self.fs = fs
        self.timeout = timeout
        self.log = log or logger

    def download(
        self,
        specs: list[str],
        *,
        replace: bool,
        lock: IndexLock,
        deps_dir: Path,
    ) -> tuple[list[str], set[str]]:
        session = _Session(lock, deps_dir)
        for spec in specs:
            self._install(spec, replace, session)
        return session.installed, session.replaced

    # ------------------------------------------------------------------
    # 安装
    # ------------------------------------------------------------------

    def _install(self, spec: str, replace: bool, session: _Session) -> None:
        name, version = parse_dependency(spec)
        if not name:
            raise DependencyError(f"无效的依赖声明: '{spec}'")
        if name in session.done:
            return
        if name in session.visiting:
            chain = " -> ".join([*session.visiting, name])
            raise DependencyError(f"依赖存在循环: {chain}")

        session.visiting.append(name)
        try:
            existing = session.lock.packages.get(name)
            if existing is not None:
                outdated = bool(version) and version != existing.version
                if outdated and replace:
                    session.replaced.add(name)
                    self.log.info("替换依赖: %s@%s -> %s", name, existing.version, version)
                else:
                    if outdated:
                        self.log.warning(
                            "已锁定 %s@%s，忽略请求版本 %s（使用 replace 替换）",
                            name, existing.version, version,
                        )
                    version = existing.version
                    if self._is_present(existing, session.deps_dir):
                        self.log.debug("已安装，跳过: %s@%s", name, version)
                        self._install_transitive(existing.depends, session)
                        return

            dep_index = self._fetch_and_place(name, version, session)
            self._install_transitive(dep_index.depends, session)
            session.installed.append(name)
        finally:
            session.visiting.pop()
            session.done.add(name)

    def _install_transitive(self, depends: list[str], session: _Session) -> None:
        for dep in depends:
            self._install(dep, False, session)

    @staticmethod
    def _is_present(entry: PackageLock, deps_dir: Path) -> bool:
        return (deps_dir / entry.app_code / INDEX_FILE_NAME).is_file()

    def _fetch_and_place(self, name: str, version: str, session: _Session) -> Index:
        """拉取到缓存、安装到 .dep/<app_code>、登记锁记录，返回依赖包清单"""
        resolved = self.resolver.resolve(name, version)
        content, sha256 = self._stage(resolved)
        root = _find_package_root(content)
        dep_index = read_index_file(root / INDEX_FILE_NAME)
        if not dep_index.app_code:
            raise DependencyError(f"依赖包 '{name}' 的清单缺少 app_code")

        owner = session.lock.packages.source_of(dep_index.app_code)
        if owner is not None and owner != name:
            raise DependencyError(
                f"依赖包 '{name}' 的 app_code '{dep_index.app_code}' 已被 '{owner}' 占用"
            )

        target = session.deps_dir / dep_index.app_code
        self.fs.replace_with_copy(root, target)
        session.lock.record(
            name,
            PackageLock(
                app_code=dep_index.app_code,
                version=resolved.version,
                depends=list(dep_index.depends),
            ),
            SourceInfo(
                kind=resolved.kind,
                location=resolved.location,
                version=resolved.version,
                sha256=sha256,
            ),
        )
        self.log.info(
            "已安装: %s@%s -> %s", name, resolved.version or "-", target,
            extra={"dependency": name},
        )
        return dep_index

    # ------------------------------------------------------------------
    # 暂存到包缓存目录
    # ------------------------------------------------------------------

    def _stage_dir(self, resolved: ResolvedSource) -> Path:
        return self.cache_dir / _safe_name(resolved.name) / (resolved.version or "local")

    def _stage(self, resolved: ResolvedSource) -> tuple[Path, str]:
        """返回 (暂存内容目录, tarball sha256 或空串)"""
        stage_dir = self._stage_dir(resolved)
        content = stage_dir / "content"
        if resolved.kind != SOURCE_URL:
            src = Path(resolved.location)
            if not src.is_dir():
                raise DependencyError(f"本地依赖目录不存在: {src}")
            self.fs.replace_with_copy(src, content)
            return content, ""

        archive = self._download(resolved, stage_dir)
        sha256 = _sha256(archive)
        if resolved.checksum_sha256 and sha256 != resolved.checksum_sha256:
            archive.unlink(missing_ok=True)
            raise DependencyError(
                f"校验和不匹配 {archive.name}: 期望 {resolved.checksum_sha256}, 实际 {sha256}",
            )

        extract_dir = Path(tempfile.mkdtemp(dir=str(stage_dir), prefix=".extract-"))
        try:
            with tarfile.open(archive, "r:*") as tar:
                tar.extractall(extract_dir, filter="data")
        except (tarfile.TarError, OSError) as e:
            shutil.rmtree(extract_dir, ignore_errors=True)
            raise DependencyError(f"解压失败 {archive}: {e}") from e
        self.fs.replace_with_move(extract_dir, content)
        return content, sha256

    def _download(self, resolved: ResolvedSource, stage_dir: Path) -> Path:
        url = check_download_url(resolved.location, resolved.name)
        filename = url.rstrip("/").split("/")[-1]
        if not filename:
            raise DependencyError(f"无法从 URL 解析文件名: {url}")
        dest = stage_dir / filename
        dest.parent.mkdir(parents=True, exist_ok=True)

        if dest.exists():
            self.log.info("  缓存命中: %s", dest)
            return dest

        self.log.info("  下载: %s", url)
        tmp = dest.with_suffix(dest.suffix + ".part")
        try:
            with urllib.request.urlopen(url, timeout=self.timeout) as resp, open(tmp, "wb") as out:  # nosec B310
                shutil.copyfileobj(resp, out)
            tmp.replace(dest)
        except (urllib.error.URLError, OSError) as e:
            tmp.unlink(missing_ok=True)
            raise DependencyError(f"下载失败: {url} - {e}") from e
        return dest

