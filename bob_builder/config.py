"""Configuration for bob_builder.

Two layers of configuration are used:

- Settings: process settings from environment variables (BOB_ prefix),
  an optional .env file and defaults, via pydantic-settings.
  Precedence: CLI flags > env vars > defaults.
- OrchestratorConfig: the repository's bob.yml (or encrypted
  bob.yml.gpg.asc), found by walking upward from the working directory.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from bob_builder.builds.runner import CommandExecutionError, run_command

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "bob.yml"
ENCRYPTED_CONFIG_FILENAME = "bob.yml.gpg.asc"
DESCRIPTOR_FILENAME = "build.yml"


class ConfigError(Exception):
    """Raised when the orchestrator config cannot be found or parsed."""

    def __init__(self, message: str, code: str = "config_invalid") -> None:
        super().__init__(message)
        self.code = code


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the BOB_ prefix.
    CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="BOB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Files
    config_filenames: list[str] = Field(
        default_factory=lambda: [CONFIG_FILENAME, ENCRYPTED_CONFIG_FILENAME],
        description="Orchestrator config file names, in lookup order",
    )
    descriptor_filename: str = Field(
        default=DESCRIPTOR_FILENAME,
        description="File name marking a buildable project directory",
    )

    # Paths
    tmp_dir: Path | None = Field(
        default=None,
        description="Root for build and bundle scratch directories "
        "(uses system default if not set)",
    )
    keep_build_dir: bool = Field(
        default=True,
        description="Keep isolated build directories after a build",
    )

    # Operational
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Timeouts (in seconds)
    manifest_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for artifact manifest requests",
    )
    command_timeout: float | None = Field(
        default=None,
        gt=0,
        description="Timeout for each external tool invocation (None = no limit)",
    )

    # External tools
    docker_bin: str = Field(default="docker", description="Container tool")
    git_bin: str = Field(default="git", description="Source control tool")
    artifactor_bin: str = Field(
        default="artifactor", description="Artifact publishing tool"
    )
    gpg_bin: str = Field(default="gpg", description="Decryption tool")


class OrchestratorConfig(BaseModel):
    """Repository-wide build configuration from bob.yml.

    The docker daemon is expected to be authenticated against both
    registries before a build is started.

    Attributes:
        private_registry: Registry for private images.
        public_registry: Registry for public images.
        gcp_credentials_filepath: Credentials file used by the publisher.
        artifactor_gcs_prefix: Storage prefix for published bundles.
        artifactor_url_prefix: URL prefix for published bundles and manifests.
        config_path: File the config was loaded from.
        base_dir: Directory containing the config; discovery starts here.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    private_registry: str = Field(default="")
    public_registry: str = Field(default="")
    gcp_credentials_filepath: str = Field(default="")
    artifactor_gcs_prefix: str = Field(default="")
    artifactor_url_prefix: str = Field(default="")

    config_path: Path | None = Field(default=None, exclude=True)
    base_dir: Path = Field(default_factory=Path.cwd, exclude=True)


def get_settings() -> Settings:
    """Get the application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2)


def find_parent_file(filenames: list[str], start_dir: Path | None = None) -> Path:
    """Find the first of ``filenames`` in ``start_dir`` or any of its parents.

    Each directory is checked for every name, in order, before moving up.

    Args:
        filenames: Candidate file names.
        start_dir: Directory to start from (defaults to the working directory).

    Returns:
        Absolute path of the file found.

    Raises:
        ConfigError: If no directory up to the filesystem root has one.
    """
    start = (start_dir or Path.cwd()).resolve()
    for directory in (start, *start.parents):
        for filename in filenames:
            candidate = directory / filename
            if candidate.is_file():
                return candidate

    raise ConfigError(
        f"No {' or '.join(filenames)} file found above {start}",
        code="config_not_found",
    )


def decrypt_file(path: Path, gpg_bin: str = "gpg") -> bytes:
    """Decrypt an armored gpg file and return the plaintext.

    Raises:
        ConfigError: If decryption fails.
    """
    try:
        return run_command(
            gpg_bin,
            ["--batch", "--quiet", "--decrypt", str(path)],
            stream=False,
        )
    except CommandExecutionError as e:
        raise ConfigError(
            f"Failed to decrypt {path}: {e}",
            code="config_decrypt_error",
        ) from e


def parse_orchestrator_config(raw: bytes | str, config_path: Path) -> OrchestratorConfig:
    """Parse and validate orchestrator config content.

    Args:
        raw: YAML document.
        config_path: File the content came from.

    Returns:
        Validated OrchestratorConfig.

    Raises:
        ConfigError: If the content is not a valid YAML mapping.
    """
    try:
        data: Any = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"Expected a YAML mapping in {config_path}, got {type(data).__name__}"
        )

    try:
        return OrchestratorConfig.model_validate(
            {**data, "config_path": config_path, "base_dir": config_path.parent}
        )
    except ValidationError as e:
        raise ConfigError(f"Invalid config {config_path}: {e}") from e


def load_orchestrator_config(
    start_dir: Path | None = None,
    settings: Settings | None = None,
) -> OrchestratorConfig:
    """Locate, decrypt if needed, and load the orchestrator config.

    Args:
        start_dir: Directory to start the upward search from.
        settings: Application settings.

    Returns:
        Loaded OrchestratorConfig.

    Raises:
        ConfigError: If the config is missing, undecryptable or invalid.
    """
    if settings is None:
        settings = get_settings()

    config_path = find_parent_file(settings.config_filenames, start_dir)
    logger.info("Found bob config %s", config_path)

    if config_path.name.endswith(".gpg.asc"):
        raw: bytes = decrypt_file(config_path, gpg_bin=settings.gpg_bin)
    else:
        try:
            raw = config_path.read_bytes()
        except OSError as e:
            raise ConfigError(f"Failed to read {config_path}: {e}") from e

    return parse_orchestrator_config(raw, config_path)


__all__ = [
    "CONFIG_FILENAME",
    "DESCRIPTOR_FILENAME",
    "ENCRYPTED_CONFIG_FILENAME",
    "ConfigError",
    "OrchestratorConfig",
    "Settings",
    "decrypt_file",
    "find_parent_file",
    "get_settings",
    "load_orchestrator_config",
    "parse_orchestrator_config",
    "print_settings_json",
]
