"""依赖声明解析测试"""

from __future__ import annotations

import pytest

from ctipkg.core.depspec import dependency_names, parse_dependency


class TestParseDependency:

    @pytest.mark.parametrize("spec, expected", [
        ("github.com/acme/cti-base@v1.2.0", ("github.com/acme/cti-base", "v1.2.0")),
        ("github.com/acme/cti-base", ("github.com/acme/cti-base", "")),
        ("  acme/base @ v1 ", ("acme/base", "v1")),
        ("acme/base@", ("acme/base", "")),
        ("", ("", "")),
    ])
    def test_well_formed(self, spec: str, expected: tuple[str, str]) -> None:
        assert parse_dependency(spec) == expected

    def test_multiple_at_signs_yield_whole_spec(self) -> None:
        """多个 @ 时不拆分，版本为空"""
        assert parse_dependency(" a@b@c ") == ("a@b@c", "")

    def test_dependency_names_keep_order(self) -> None:
        assert dependency_names(["b@1", "a", "c@2"]) == ["b", "a", "c"]
