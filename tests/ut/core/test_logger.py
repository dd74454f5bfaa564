"""日志配置测试"""

from __future__ import annotations

import json
import logging

from ctipkg.utils.logger import JSONFormatter, reset_logging, setup_logging


class TestJSONFormatter:

    def test_context_fields(self) -> None:
        record = logging.LogRecord(
            "ctipkg.core.pm.installer", logging.INFO, __file__, 1,
            "已安装: %s", ("a/base",), None,
        )
        record.dependency = "a/base"
        entry = json.loads(JSONFormatter().format(record))
        assert entry["message"] == "已安装: a/base"
        assert entry["level"] == "INFO"
        assert entry["dependency"] == "a/base"
        assert "asset" not in entry


class TestSetupLogging:

    def test_single_handler(self) -> None:
        try:
            setup_logging("DEBUG")
            setup_logging("WARNING", json_output=True)
            root = logging.getLogger()
            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, JSONFormatter)
            assert root.level == logging.WARNING
        finally:
            reset_logging()
            logging.getLogger().setLevel(logging.WARNING)
