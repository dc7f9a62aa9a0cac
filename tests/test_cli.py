"""Tests for CLI parsing and the cache-clearing commands."""

from __future__ import annotations

import json

import pytest

from mcp_compression_proxy import cli
from mcp_compression_proxy.compression.models import CompressionRecord
from mcp_compression_proxy.compression.persistence import CompressionPersistence


def _seed_cache(cache_dir: str) -> CompressionPersistence:
    persistence = CompressionPersistence(cache_dir)
    record = CompressionRecord("fs", "read", "Read")
    persistence.save({record.key: record})
    return persistence


class TestParser:
    def test_defaults_to_serve(self) -> None:
        assert cli._normalise_argv([]) == ["serve"]
        assert cli._normalise_argv(["--config", "x.yaml"]) == ["serve", "--config", "x.yaml"]
        assert cli._normalise_argv(["stats", "--detail", "full"]) == ["stats", "--detail", "full"]
        assert cli._normalise_argv(["--help"]) == ["--help"]

    def test_serve_options(self) -> None:
        args = cli._build_parser().parse_args(
            ["serve", "--config", "s.yaml", "--log-level", "debug", "--management-port", "9200"]
        )
        assert args.config == "s.yaml"
        assert args.log_level == "debug"
        assert args.management_port == 9200
        assert not args.clear_cache
        assert args.func is cli._cmd_serve

    def test_invalid_log_level(self) -> None:
        with pytest.raises(SystemExit):
            cli._build_parser().parse_args(["serve", "--log-level", "loud"])

    def test_stats_options(self) -> None:
        args = cli._build_parser().parse_args(["stats", "--server", "fs", "--json"])
        assert args.detail == "summary"
        assert args.server == "fs"
        assert args.json


class TestClearCache:
    def test_clear_cache_subcommand(self, tmp_path) -> None:
        persistence = _seed_cache(str(tmp_path / "cache"))
        with pytest.raises(SystemExit) as excinfo:
            cli.main(["clear-cache", "--cache-dir", str(tmp_path / "cache")])
        assert excinfo.value.code == 0
        assert persistence.load() == {}

    def test_serve_clear_cache_flag_exits(self, tmp_path, monkeypatch) -> None:
        persistence = _seed_cache(str(tmp_path / "cache"))
        cfg = tmp_path / "servers.json"
        cfg.write_text(json.dumps({"cache_dir": str(tmp_path / "cache")}), encoding="utf-8")
        monkeypatch.setattr(
            cli, "setup_logging", lambda *args, **kwargs: (str(tmp_path / "x.log"), "INFO")
        )

        with pytest.raises(SystemExit) as excinfo:
            cli.main(["--clear-cache", "--config", str(cfg)])
        assert excinfo.value.code == 0
        assert persistence.load() == {}

    def test_serve_bad_config_exits_nonzero(self, tmp_path, monkeypatch) -> None:
        cfg = tmp_path / "servers.yaml"
        cfg.write_text("backends:\n  bad__name:\n    command: x\n", encoding="utf-8")
        monkeypatch.setattr(
            cli, "setup_logging", lambda *args, **kwargs: (str(tmp_path / "x.log"), "INFO")
        )
        with pytest.raises(SystemExit) as excinfo:
            cli.main(["serve", "--config", str(cfg)])
        assert excinfo.value.code == 1
