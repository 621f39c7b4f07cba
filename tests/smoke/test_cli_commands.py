"""
Smoke Tests for CLI Commands.

These tests verify that CLI commands run without errors and produce output.
They don't need a database or a generative service.

Usage:
    pytest tests/smoke/test_cli_commands.py -v
    pytest tests/smoke/test_cli_commands.py -v -m smoke
"""

import subprocess
import sys
from pathlib import Path

import pytest

# Mark all tests in this module as smoke tests
pytestmark = pytest.mark.smoke

# Project root
PROJECT_ROOT = Path(__file__).parent.parent.parent


def run_cli_command(*args: str, timeout: int = 30) -> tuple[int, str, str]:
    """
    Run a CLI command and return exit code, stdout, stderr.

    Args:
        args: Arguments after 'python -m src.cli.main'
        timeout: Maximum time to wait
    """
    result = subprocess.run(
        [sys.executable, "-m", "src.cli.main", *args],
        cwd=PROJECT_ROOT,
        capture_output=True,
        text=True,
        encoding="utf-8",
        timeout=timeout,
    )
    return result.returncode, result.stdout, result.stderr


class TestCLIHelp:
    def test_main_help(self):
        code, stdout, stderr = run_cli_command("--help")

        assert code == 0, f"Help failed: {stderr}"
        assert "stats-tutor" in stdout
        assert "recommend" in stdout

    def test_db_help(self):
        code, stdout, stderr = run_cli_command("db", "--help")
        assert code == 0, f"Help failed: {stderr}"
        assert "init" in stdout


class TestOfflineCommands:
    def test_version(self):
        code, stdout, _ = run_cli_command("version")
        assert code == 0
        assert "stats-tutor-backend" in stdout

    def test_concepts(self):
        code, stdout, stderr = run_cli_command("concepts")
        assert code == 0, stderr
        assert "Standard Deviation" in stdout

    def test_normalize_known(self):
        code, stdout, _ = run_cli_command("normalize", "chi square")
        assert code == 0
        assert "Chi-Square Test" in stdout

    def test_normalize_unknown_exits_nonzero(self):
        code, _, _ = run_cli_command("normalize", "tarot reading")
        assert code == 1
