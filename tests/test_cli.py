"""Smoke tests for the CLI.

These tests verify basic CLI functionality without requiring
network access, docker, or git.
"""

import json
import subprocess
import sys
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from bob_builder import __version__
from bob_builder.builds.runner import CommandExecutionError
from bob_builder.cli import app

runner = CliRunner()

BOB_YML = """\
public_registry: reg.example.com
private_registry: registry.internal.example.com
artifactor_gcs_prefix: gs://artifacts
artifactor_url_prefix: https://artifacts.example.com
"""


@pytest.fixture
def repo(tmp_path, monkeypatch):
    """Repository root with a bob.yml and two projects."""
    (tmp_path / "bob.yml").write_text(BOB_YML)
    for name in ("api", "web"):
        project = tmp_path / "services" / name
        project.mkdir(parents=True)
        (project / "build.yml").write_text(
            f"name: {name}\nbuilds:\n  - kind: docker-local\n"
        )
    monkeypatch.chdir(tmp_path)
    return tmp_path


class TestCLIHelp:
    """Test CLI help and version commands."""

    def test_help_returns_zero(self) -> None:
        """CLI --help should return exit code 0."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "bob" in result.stdout

    def test_version_flag(self) -> None:
        """CLI --version should print version and exit 0."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_short_version_flag(self) -> None:
        """CLI -V should print version and exit 0."""
        result = runner.invoke(app, ["-V"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_no_args_shows_help(self) -> None:
        """CLI with no args should show help."""
        result = runner.invoke(app, [])
        assert "Usage:" in result.output

    def test_build_help_lists_kinds(self) -> None:
        """build --help should describe the kind filter."""
        result = runner.invoke(app, ["build", "--help"])
        assert result.exit_code == 0
        assert "--kind" in result.stdout
        assert "--changed" in result.stdout


class TestCLIConfig:
    """Test CLI config command."""

    def test_config_without_repository(self, tmp_path, monkeypatch) -> None:
        """CLI config should work outside a repository."""
        monkeypatch.chdir(tmp_path)
        with patch("bob_builder.config.find_parent_file", side_effect=_not_found):
            result = runner.invoke(app, ["config"])

        assert result.exit_code == 0
        assert "Temp directory" in result.stdout
        assert "No bob config found" in result.stdout

    def test_config_invalid_reports_error(self, tmp_path, monkeypatch) -> None:
        """CLI config should show why a found config could not be loaded."""
        (tmp_path / "bob.yml").write_text("- not\n- a mapping\n")
        monkeypatch.chdir(tmp_path)

        result = runner.invoke(app, ["config", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["config"] is None
        assert "Expected a YAML mapping" in data["config_error"]

        result = runner.invoke(app, ["config"])
        assert "No bob config found" not in result.stdout
        assert "Repository:" in result.stdout

    def test_config_shows_sections(self, repo) -> None:
        """CLI config should show every section."""
        result = runner.invoke(app, ["config"])

        assert result.exit_code == 0
        for section in ("Paths:", "Tools:", "Operational:", "Repository:"):
            assert section in result.stdout
        assert "reg.example.com" in result.stdout

    def test_config_json(self, repo) -> None:
        """CLI config --json should print valid JSON."""
        result = runner.invoke(app, ["config", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["config"]["public_registry"] == "reg.example.com"
        assert data["config_path"] == str((repo / "bob.yml").resolve())
        assert "docker_bin" in data["settings"]


class TestCLIProjects:
    """Test CLI projects command."""

    def test_projects_json(self, repo) -> None:
        """CLI projects --json should list every project."""
        result = runner.invoke(app, ["projects", "--json"])

        assert result.exit_code == 0
        paths = json.loads(result.stdout)
        assert [p.rsplit("/", 1)[-1] for p in paths] == ["api", "web"]

    def test_projects_changed(self, repo) -> None:
        """CLI projects --changed should list changed projects only."""
        changed = [repo.resolve() / "services" / "web"]
        with patch(
            "bob_builder.projects.changes.find_changed_dirs", return_value=changed
        ):
            result = runner.invoke(app, ["projects", "--changed", "--json"])

        assert result.exit_code == 0
        assert json.loads(result.stdout) == [str(changed[0])]

    def test_projects_without_config_fails(self, tmp_path, monkeypatch) -> None:
        """CLI projects should fail without a bob config."""
        monkeypatch.chdir(tmp_path)
        with patch("bob_builder.config.find_parent_file", side_effect=_not_found):
            result = runner.invoke(app, ["projects"])

        assert result.exit_code == 1


class TestCLIBuild:
    """Test CLI build command."""

    def test_all_and_changed_conflict(self) -> None:
        """CLI build should reject --all with --changed."""
        result = runner.invoke(app, ["build", "--all", "--changed"])
        assert result.exit_code == 1
        assert "can not be used together" in result.output

    def test_directory_with_all_conflict(self, tmp_path) -> None:
        """CLI build should reject a directory with --all."""
        result = runner.invoke(app, ["build", "--all", str(tmp_path)])
        assert result.exit_code == 1

    def test_build_current_project(self, repo, monkeypatch) -> None:
        """CLI build should build the enclosing project by default."""
        monkeypatch.chdir(repo / "services" / "api")
        with patch(
            "bob_builder.builds.dispatcher.build_project_dir",
            return_value=["docker-local"],
        ) as mock_build:
            result = runner.invoke(app, ["build", "--push", "-k", "docker-local"])

        assert result.exit_code == 0, result.output
        path = mock_build.call_args.args[0]
        assert path == (repo / "services" / "api").resolve()
        assert mock_build.call_args.kwargs["kind"] == "docker-local"
        assert mock_build.call_args.kwargs["push"] is True

    def test_build_all(self, repo) -> None:
        """CLI build --all should build every project serially."""
        with patch(
            "bob_builder.builds.dispatcher.build_project_dir",
            return_value=["docker-local"],
        ) as mock_build:
            result = runner.invoke(app, ["build", "--all"])

        assert result.exit_code == 0, result.output
        built = [call.args[0].name for call in mock_build.call_args_list]
        assert built == ["api", "web"]

    def test_build_changed_nothing(self, repo) -> None:
        """CLI build --changed should report when nothing changed."""
        with patch("bob_builder.projects.changes.find_changed_dirs", return_value=[]):
            result = runner.invoke(app, ["build", "--changed"])

        assert result.exit_code == 0
        assert "Nothing to build" in result.stdout

    def test_build_failure_exits_nonzero(self, repo) -> None:
        """CLI build should exit 1 and stop at the first failing project."""
        with patch(
            "bob_builder.builds.dispatcher.build_project_dir",
            side_effect=CommandExecutionError("docker exited with status 1", 1),
        ) as mock_build:
            result = runner.invoke(app, ["build", "--all"])

        assert result.exit_code == 1
        assert "Build failed" in result.output
        assert mock_build.call_count == 1


class TestCLIModule:
    """Test running the package as a module."""

    def test_module_help(self) -> None:
        """python -m bob_builder --help should work."""
        result = subprocess.run(
            [sys.executable, "-m", "bob_builder", "--help"],
            capture_output=True,
            text=True,
            check=False,
        )
        assert result.returncode == 0
        assert "Usage" in result.stdout


def _not_found(*args, **kwargs):
    from bob_builder.config import ConfigError

    raise ConfigError("No bob.yml found", code="config_not_found")
