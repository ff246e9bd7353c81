"""Tests for the ``python -m sentinel.discover`` entry point."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, patch

import pytest

from sentinel.discover.__main__ import build_config, build_parser, main
from sentinel.discovery.config import PortRange


class TestBuildConfig:
    def test_flags_override_defaults(self):
        args = build_parser().parse_args([
            "-p", "3001",
            "-p", "3002",
            "--port-range", "4000-4002",
            "-n", "10.0.0.0/30",
            "--timeout", "2",
            "--max-concurrent", "50",
            "--deadline", "30",
        ])
        config = build_config(args)
        assert config.known_ports == [3001, 3002]
        assert config.port_ranges == [PortRange(4000, 4002)]
        assert config.network_ranges == ["10.0.0.0/30"]
        assert config.timeout == 2.0
        assert config.max_concurrent == 50
        assert config.deadline == 30.0

    def test_config_file_then_flags(self, tmp_path):
        path = tmp_path / "scan.json"
        path.write_text(json.dumps({"known_ports": [3001], "max_concurrent": 5}))
        args = build_parser().parse_args(["--config", str(path), "-p", "9999"])
        config = build_config(args)
        assert config.known_ports == [3001, 9999]
        assert config.max_concurrent == 5

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("SENTINEL_KNOWN_PORTS", "7000")
        args = build_parser().parse_args(["--from-env"])
        assert build_config(args).known_ports == [7000]


class TestMain:
    def test_prints_json_report(self, capsys):
        output = {"servers": [], "errors": {"bad": "invalid"}, "candidates_scanned": 7,
                  "duration": 0.1, "timed_out": False}
        with patch("sentinel.discover.__main__.run", new=AsyncMock(return_value=output)):
            code = main(["-p", "3001"])
        assert code == 0
        printed = json.loads(capsys.readouterr().out)
        assert printed["errors"] == {"bad": "invalid"}

    def test_bad_port_range_exits_with_usage_error(self):
        with pytest.raises(SystemExit) as excinfo:
            main(["--port-range", "9000-8000"])
        assert excinfo.value.code == 2
