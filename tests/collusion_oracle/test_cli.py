"""Tests for the command-line entry point."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

import pytest

from collusion_oracle.__main__ import ColoredFormatter, build_config, main
from collusion_oracle.config import OracleConfig
from tests.collusion_oracle.helpers import TARGET_ADDRESS


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the host's environment out of the configuration."""
    for name in OracleConfig.env_names():
        monkeypatch.delenv(name, raising=False)


def _args(**kwargs: object) -> argparse.Namespace:
    defaults: dict[str, object] = {
        "config": None,
        "fixture": None,
        "target": None,
        "status_port": None,
    }
    return argparse.Namespace(**(defaults | kwargs))


class TestBuildConfig:
    """Tests for turning arguments into configuration."""

    def test_fixture_switches_to_offline_sources(self, tmp_path: Path) -> None:
        """--fixture selects fixture chain data and the in-memory ledger."""
        fixture = tmp_path / "scenario.yaml"

        config = build_config(_args(fixture=fixture, target=TARGET_ADDRESS))

        assert config.beacon_source == "fixture"
        assert config.ledger_backend == "memory"
        assert config.fixture_path == fixture
        assert config.target_address == TARGET_ADDRESS

    def test_arguments_override_the_environment(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Command-line values take precedence over environment variables."""
        monkeypatch.setenv("TARGET_ADDRESS", "0x" + "11" * 20)
        monkeypatch.setenv("STATUS_PORT", "9000")

        config = build_config(_args(fixture=tmp_path / "s.yaml", status_port=9100))

        assert config.target_address == "0x" + "11" * 20
        assert config.status_port == 9100


class TestMain:
    """Tests for the exit status of invalid runs."""

    def test_invalid_configuration_exits_2(self) -> None:
        """Without a target the oracle refuses to start."""
        assert main(["--no-color"]) == 2

    def test_missing_fixture_exits_2(self, tmp_path: Path) -> None:
        """A fixture that cannot be read is a configuration error."""
        missing = str(tmp_path / "missing.yaml")
        assert main(["--no-color", "--fixture", missing, "--target", TARGET_ADDRESS]) == 2

    def test_malformed_config_file_exits_2(self, tmp_path: Path) -> None:
        """A config file that is not YAML is a configuration error."""
        path = tmp_path / "oracle.yaml"
        path.write_text("TARGET_ADDRESS: [unclosed\n", encoding="utf-8")

        assert main(["--no-color", "--config", str(path)]) == 2


def test_colored_formatter_includes_level_and_logger() -> None:
    """Colored output keeps the level name, logger name and message."""
    record = logging.LogRecord(
        name="collusion_oracle.node",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg="Attack phase %s",
        args=("BEGUN",),
        exc_info=None,
    )

    output = ColoredFormatter().format(record)

    assert "WARNING" in output
    assert "collusion_oracle.node" in output
    assert "Attack phase BEGUN" in output
