"""命令行端到端测试：init -> install -> validate -> pack -> deps"""

from __future__ import annotations

import zipfile
from pathlib import Path

import pytest
import yaml
from click.testing import CliRunner

import ctipkg.core.config as cfgmod
from ctipkg.cli import main
from ctipkg.services.container import reset_container
from ctipkg.utils.logger import reset_logging

BASE_TYPE = "cti.acme.base.asset.v1.0"


@pytest.fixture(autouse=True)
def _isolate(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "xdg"))
    monkeypatch.delenv("CTIPKG_CONFIG", raising=False)
    monkeypatch.setattr(cfgmod, "_current", None)
    yield
    reset_container()
    reset_logging()


@pytest.fixture()
def workspace(tmp_path: Path, make_package, write_sources) -> Path:
    """依赖源 libs/base-v1 声明 asset 类型；应用包目录 app/ 尚未初始化"""
    make_package(tmp_path / "libs" / "base-v1", "acme.base", entities={
        "types.yml": {"types": [{"cti": BASE_TYPE}]},
    })
    app = tmp_path / "app"
    app.mkdir()
    write_sources(app, {"acme/base": {"path": "../libs/base-{version}"}})
    return app


def _run(app: Path, *args: str):
    return CliRunner().invoke(main, ["-C", str(app), *args])


class TestCli:

    def test_full_flow(self, workspace: Path) -> None:
        result = _run(workspace, "init", "acme.app", "--entity", "entities/app.yml")
        assert result.exit_code == 0, result.output
        assert (workspace / "index.yml").is_file()
        assert (workspace / "index-lock.yml").is_file()

        (workspace / "entities").mkdir()
        (workspace / "entities" / "app.yml").write_text(yaml.dump({
            "instances": [{"cti": f"{BASE_TYPE}~acme.app.logo.v1.0"}],
        }), encoding="utf-8")

        result = _run(workspace, "install", "acme/base@v1")
        assert result.exit_code == 0, result.output
        assert "已安装: acme/base" in result.output
        index = yaml.safe_load((workspace / "index.yml").read_text(encoding="utf-8"))
        assert index["depends"] == ["acme/base@v1"]

        result = _run(workspace, "install")
        assert result.exit_code == 0, result.output
        assert "依赖均已是最新" in result.output

        result = _run(workspace, "validate")
        assert result.exit_code == 0, result.output
        assert "校验通过" in result.output

        result = _run(workspace, "deps")
        assert result.exit_code == 0, result.output
        assert "acme/base" in result.output
        assert "acme.base" in result.output

    def test_validate_reports_violations(self, workspace: Path) -> None:
        assert _run(workspace, "init", "acme.app", "--entity", "e.yml").exit_code == 0
        (workspace / "e.yml").write_text(yaml.dump({
            "instances": [{"cti": f"{BASE_TYPE}~acme.app.logo.v1.0"}],
        }), encoding="utf-8")
        result = _run(workspace, "validate")
        assert result.exit_code == 1
        assert "父类型不存在" in result.output

    def test_pack(self, workspace: Path) -> None:
        assert _run(workspace, "init", "acme.app").exit_code == 0
        result = _run(workspace, "pack")
        assert result.exit_code == 0, result.output
        with zipfile.ZipFile(workspace / "bundle.zip") as zf:
            assert set(zf.namelist()) == {"index.yml", ".cache.json"}

    def test_init_twice_fails(self, workspace: Path) -> None:
        assert _run(workspace, "init", "acme.app").exit_code == 0
        result = _run(workspace, "init", "acme.app")
        assert result.exit_code == 1
        assert "MANIFEST_ERROR" in result.output

    def test_unknown_source(self, workspace: Path) -> None:
        assert _run(workspace, "init", "acme.app").exit_code == 0
        result = _run(workspace, "install", "acme/nowhere@v1")
        assert result.exit_code == 1
        assert "DEPENDENCY_ERROR" in result.output
        index = yaml.safe_load((workspace / "index.yml").read_text(encoding="utf-8"))
        assert index["depends"] == []

    def test_config_file(self, workspace: Path, tmp_path: Path) -> None:
        cfg = tmp_path / "ctipkg.yml"
        cfg.write_text("bundle_name: out.zip\n", encoding="utf-8")
        assert _run(workspace, "init", "acme.app").exit_code == 0
        result = CliRunner().invoke(main, ["-C", str(workspace), "-c", str(cfg), "pack"])
        assert result.exit_code == 0, result.output
        assert (workspace / "out.zip").is_file()
