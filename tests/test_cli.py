"""Tests for CLI entry point."""

from __future__ import annotations

from pathlib import Path  # noqa: TCH003
from unittest.mock import patch

import pytest

from src.cli import build_parser, main


class TestCLI:
    def test_parser_serve(self) -> None:
        args = build_parser().parse_args(["serve", "--port", "9000"])
        assert args.command == "serve"
        assert args.port == 9000
        assert args.host is None

    def test_parser_check_config(self) -> None:
        args = build_parser().parse_args(["--env", "production", "check-config"])
        assert args.command == "check-config"
        assert args.env == "production"

    def test_parser_requires_command(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_check_config_ok(self, config_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["--config-dir", str(config_dir), "--env", "test", "check-config"]) == 0
        assert "Config OK (env: test" in capsys.readouterr().out

    def test_missing_config_dir_exit_code(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["--config-dir", str(tmp_path / "missing"), "check-config"]) == 2
        assert "Config error" in capsys.readouterr().err

    def test_serve_refuses_production_without_secret(
        self, config_dir: Path, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.delenv("API_SECRET_KEY", raising=False)
        toml = config_dir / "default.toml"
        toml.write_text(toml.read_text().replace('api_secret = "test-relay-secret"', 'api_secret = ""'))
        with patch("uvicorn.run") as run:
            assert main(["--config-dir", str(config_dir), "--env", "production", "serve"]) == 2
        run.assert_not_called()

    def test_serve_runs_uvicorn(self, config_dir: Path) -> None:
        with patch("uvicorn.run") as run:
            assert main(["--config-dir", str(config_dir), "--env", "test", "serve", "--port", "9100"]) == 0
        assert run.call_args.kwargs["port"] == 9100
        assert run.call_args.kwargs["host"] == "127.0.0.1"
