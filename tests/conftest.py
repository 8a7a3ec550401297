"""Shared fixtures for build tests."""

import threading
from pathlib import Path

import pytest

from bob_builder.builds.runner import CommandExecutionError
from bob_builder.config import OrchestratorConfig, Settings

SHORT_REVISION = "abc123"
REVISION = "abc123def4567890"


class FakeRunner:
    """Thread-safe stand-in for run_command that records every call.

    ``fail`` maps a substring of the joined arguments to an exit code; any
    call whose arguments contain it fails with that code.
    """

    def __init__(self, fail=None):
        self.calls = []
        self.fail = fail or {}
        self._lock = threading.Lock()

    def __call__(self, program, args, cwd=None, stream=True, timeout=None):
        with self._lock:
            self.calls.append((program, list(args), cwd))

        if "rev-parse" in args:
            return (SHORT_REVISION if "--short" in args else REVISION).encode() + b"\n"

        joined = " ".join(args)
        for needle, exit_code in self.fail.items():
            if needle in joined:
                raise CommandExecutionError(
                    f"{program} exited with status {exit_code}", exit_code
                )
        return b""

    def commands(self, program):
        """Argument lists of every call to ``program``."""
        return [args for prog, args, _ in self.calls if prog == program]

    def cwds(self, program):
        return [cwd for prog, _, cwd in self.calls if prog == program]


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def scratch(tmp_path):
    path = tmp_path / "scratch"
    path.mkdir()
    return path


@pytest.fixture
def settings(scratch):
    return Settings(tmp_dir=scratch)


@pytest.fixture
def orchestrator_config(tmp_path):
    return OrchestratorConfig(
        public_registry="reg.example.com",
        private_registry="registry.internal.example.com",
        gcp_credentials_filepath="/secrets/gcp.json",
        artifactor_gcs_prefix="gs://artifacts",
        artifactor_url_prefix="https://artifacts.example.com",
        base_dir=tmp_path,
    )


def _write_project(path: Path, descriptor: str) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    (path / "Dockerfile").write_text("FROM scratch\n")
    (path / "build.yml").write_text(descriptor)
    return path


@pytest.fixture
def write_project():
    """Factory creating a project directory with a Dockerfile and build.yml."""
    return _write_project
