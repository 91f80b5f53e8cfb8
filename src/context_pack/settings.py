from __future__ import annotations

import os
from pathlib import Path

import yaml
from dotenv import dotenv_values, find_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from context_pack.bundles import ensure_unique_ids
from context_pack.config import ALL_BUNDLES, DEFAULT_MAX_TOKENS, MAX_FILE_SIZE, Bundle, normalize_extension
from context_pack.exceptions import ConfigFileError

ENV_FILE = find_dotenv(usecwd=True)
PROJECT_CONFIG_NAME = ".context-pack.yaml"


def env_default(name: str, fallback: str = "") -> str:
    """Read a default from the environment, then from the nearest `.env` file.

    Args:
        name (str): the variable name
        fallback (str): value used when the variable is set nowhere

    Returns:
        str: the configured value, or `fallback`
    """
    if name in os.environ:
        return os.environ[name]
    if ENV_FILE:
        value = dotenv_values(ENV_FILE).get(name)
        if value:
            return value
    return fallback


class Settings(BaseModel):
    """Configuration settings for one context_pack run."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    repo: Path = Field(default_factory=Path.cwd, description="Project root.")
    output: Path = Field(..., description="Output file (.xml, .md or .json).")
    format: str = Field(default="", description="Force format.")
    no_git: bool = Field(default=False, description="Do not use git ls-files.")
    log_file: str = Field(default="", description="Log file path.")
    config: str = Field(default="", description="YAML project config file.")

    bundle: str = Field(default=ALL_BUNDLES, description="Active bundle id.")
    split: bool = Field(default=False, description="Split output into budgeted parts.")
    max_tokens: int = Field(
        default=DEFAULT_MAX_TOKENS,
        gt=0,
        description="Approximate token budget per part.",
    )

    ignore: list[str] = Field(default_factory=list, description="Extra ignore pattern.")
    ignore_ext: list[str] = Field(default_factory=list, description="Extra denied extension.")
    no_default_ignores: bool = Field(
        default=False,
        description="Drop the built-in ignore patterns and extensions.",
    )
    max_file_size: int = Field(
        default=MAX_FILE_SIZE,
        gt=0,
        description="Files above this many bytes are skipped.",
    )

    tree: bool = Field(default=False, description="Print the project tree.")
    stats: bool = Field(default=False, description="Print per-extension statistics.")


class ProjectConfig(BaseModel):
    """Per-project ignore rules and bundle definitions, usually from YAML."""

    model_config = ConfigDict(frozen=True)

    ignore_patterns: tuple[str, ...] = ()
    ignored_extensions: tuple[str, ...] = ()
    bundles: tuple[Bundle, ...] = ()

    @field_validator("ignored_extensions")
    @classmethod
    def _normalize_extensions(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(e for e in (normalize_extension(x) for x in value) if e)

    @field_validator("bundles")
    @classmethod
    def _unique_bundle_ids(cls, value: tuple[Bundle, ...]) -> tuple[Bundle, ...]:
        return tuple(ensure_unique_ids(value))


def find_project_config(repo: Path, explicit: str = "") -> Path | None:
    """Locate the project config: `explicit` if given, else the default file in `repo`.

    Args:
        repo (Path): the project root
        explicit (str): a path given on the command line or in the environment

    Returns:
        Path | None: the config path, or None when there is none to load
    """
    if explicit:
        return Path(explicit)
    candidate = repo / PROJECT_CONFIG_NAME
    return candidate if candidate.is_file() else None


def load_project_config(path: Path) -> ProjectConfig:
    """Load and validate a YAML project config.

    Args:
        path (Path): the YAML file

    Raises:
        ConfigFileError: if the file cannot be read, is not valid YAML, or does
            not match the expected schema.

    Returns:
        ProjectConfig: the validated configuration
    """
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigFileError(file=path, message=f"Cannot read config: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigFileError(file=path, message=f"Invalid YAML: {e}") from e

    if raw is None:
        return ProjectConfig()
    if not isinstance(raw, dict):
        raise ConfigFileError(file=path, message="Config root must be a mapping.")
    try:
        return ProjectConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigFileError(file=path, message=str(e)) from e
