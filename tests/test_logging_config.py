"""Tests for log setup and secret redaction."""

from __future__ import annotations

import logging
import os

from mcp_compression_proxy.display.logging_config import (
    SecretRedactionFilter,
    build_log_config,
    setup_logging,
)


def _record(msg: str, args=()) -> logging.LogRecord:
    return logging.LogRecord("test", logging.INFO, __file__, 1, msg, args, None)


class TestSecretRedactionFilter:
    def test_redacts_message_and_args(self) -> None:
        f = SecretRedactionFilter()
        f.register("s3cr3t-value")
        rec = _record("token s3cr3t-value and %s", ("s3cr3t-value",))
        assert f.filter(rec)
        assert "s3cr3t-value" not in rec.getMessage()
        assert "***REDACTED***" in rec.getMessage()

    def test_short_values_ignored(self) -> None:
        f = SecretRedactionFilter()
        f.register("abc")
        rec = _record("abc")
        f.filter(rec)
        assert rec.getMessage() == "abc"

    def test_overlapping_secrets(self) -> None:
        f = SecretRedactionFilter()
        f.register("secret")
        f.register("secret-longer")
        rec = _record("secret-longer")
        f.filter(rec)
        assert rec.getMessage() == "***REDACTED***"


class TestLogConfig:
    def test_file_only_by_default(self, tmp_path) -> None:
        cfg = build_log_config(str(tmp_path / "a.log"), "INFO")
        assert "stderr_handler" not in cfg["handlers"]
        assert cfg["loggers"]["mcp_compression_proxy"]["handlers"] == ["file_handler"]
        assert cfg["loggers"]["mcp_compression_proxy"]["level"] == "INFO"

    def test_stderr_handler(self, tmp_path) -> None:
        cfg = build_log_config(str(tmp_path / "a.log"), "DEBUG", to_stderr=True)
        assert cfg["handlers"]["stderr_handler"]["stream"] == "ext://sys.stderr"
        assert cfg["root"]["level"] == "DEBUG"

    def test_setup_logging_writes_file(self, tmp_path) -> None:
        log_fpath, level = setup_logging("bogus", log_dir=str(tmp_path))
        assert level == "INFO"
        assert os.path.dirname(log_fpath) == str(tmp_path)
        logging.getLogger("mcp_compression_proxy.test").info("hello file")
        for handler in logging.getLogger("mcp_compression_proxy").handlers:
            handler.flush()
        with open(log_fpath, encoding="utf-8") as fh:
            assert "hello file" in fh.read()
