"""Tests for the command line interface."""

import json

from click.testing import CliRunner
import pytest

from swarmhealth import main as cli_module

from .conftest import make_magnet


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def test_config_show(runner, tmp_path):
    """Test the effective configuration is printed as JSON."""
    result = runner.invoke(
        cli_module.cli,
        ["--config-dir", str(tmp_path), "--log-level", "ERROR", "config", "show"],
    )

    assert result.exit_code == 0
    assert '"timeout_ms": 8000' in result.output


def test_check_skip_health_check_json(runner, tmp_path):
    """Test checking without probing prints ranked JSON."""
    magnets = [make_magnet(1, name="A.720p"), make_magnet(2, name="B.1080p")]

    result = runner.invoke(
        cli_module.cli,
        [
            "--config-dir",
            str(tmp_path),
            "--log-level",
            "ERROR",
            "check",
            *magnets,
            "--skip-health-check",
            "--json",
        ],
    )

    assert result.exit_code == 0
    payload = json.loads(result.output)
    # no hints, so the better quality ranks first
    assert [item["identifier"] for item in payload] == [magnets[1], magnets[0]]
    assert all(item["measurement_source"] == "no-data" for item in payload)


def test_check_rejects_invalid_concurrency(runner, tmp_path):
    """Test invalid options exit with a usage error."""
    result = runner.invoke(
        cli_module.cli,
        ["--config-dir", str(tmp_path), "check", make_magnet(3), "--concurrency", "0"],
    )

    assert result.exit_code == 2


def test_check_requires_magnets(runner, tmp_path):
    """Test at least one magnet is required."""
    result = runner.invoke(cli_module.cli, ["--config-dir", str(tmp_path), "check"])
    assert result.exit_code != 0
