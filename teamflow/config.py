"""Settings and project definition files (YAML)."""

import logging
import os
from pathlib import Path
from typing import Any, Optional
import yaml

from pydantic import BaseModel, ConfigDict, ValidationError

from .engine import AnthropicModelClient, ModelClient, PlaceholderModelClient
from .models import AgentSpec, PatternType, ProjectConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("teamflow.yaml")

# Environment variable -> settings field
ENV_OVERRIDES = {
    "TEAMFLOW_PROJECTS_DIR": "projects_dir",
    "TEAMFLOW_DB_PATH": "db_path",
    "TEAMFLOW_DEV_MODE": "dev_mode",
    "TEAMFLOW_MODEL": "model",
    "ANTHROPIC_API_KEY": "api_key",
}


class Settings(BaseModel):
    """Runtime settings."""
    
    projects_dir: Path = Path("projects")
    db_path: Path = Path("teamflow.db")
    
    dev_mode: bool = False
    """Use the placeholder client instead of calling the API."""
    
    api_key: Optional[str] = None
    api_base_url: str = "https://api.anthropic.com"
    
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 4096
    temperature: float = 1.0
    timeout: Optional[float] = None
    
    continue_on_failure: bool = False
    
    @property
    def use_placeholder(self) -> bool:
        return self.dev_mode or not self.api_key
    
    def execution_options(self) -> dict[str, Any]:
        return {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "timeout": self.timeout,
        }


def _read_yaml(path: Path) -> Optional[dict]:
    if not path.exists():
        return None
    try:
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Error loading config file {path}: {e}")
        return None


def load_settings(
    config_path: Optional[Path | str] = None,
    environ: Optional[dict[str, str]] = None,
) -> Settings:
    """
    Load settings from a YAML file, then apply environment overrides.
    
    The file path comes from the argument, else ``TEAMFLOW_CONFIG``, else
    ``teamflow.yaml``. A missing or unreadable file yields defaults.
    
    Args:
        config_path: Path to the YAML settings file
        environ: Environment mapping (defaults to ``os.environ``)
    
    Raises:
        ValidationError: If a value has the wrong type
    """
    environ = os.environ if environ is None else environ
    path = Path(config_path or environ.get("TEAMFLOW_CONFIG") or DEFAULT_CONFIG_PATH)
    
    data = _read_yaml(path)
    if data is None:
        if config_path:
            logger.warning(f"Config file not found or unreadable: {path}, using defaults")
        data = {}
    
    for env_name, field in ENV_OVERRIDES.items():
        if environ.get(env_name):
            data[field] = environ[env_name]
    
    return Settings.model_validate(data)


class ProjectFile(BaseModel):
    """
    A project definition as written by hand or by the project analyzer.
    
    ``agents`` is optional; without it the team is composed from the
    required capabilities.
    """
    
    model_config = ConfigDict(populate_by_name=True)
    
    project: ProjectConfig
    pattern: PatternType = PatternType.SEQUENTIAL
    agents: Optional[list[AgentSpec]] = None


def load_project_file(path: Path | str) -> ProjectFile:
    """
    Load a project definition from YAML.
    
    Accepts either a top-level ``project:`` mapping or the project fields
    at the top level.
    
    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file is not valid YAML or not a valid project
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Project file not found: {path}")
    
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e
    
    if not isinstance(data, dict):
        raise ValueError(f"Project file {path} must contain a mapping")
    
    if "project" not in data:
        data = {
            "project": {k: v for k, v in data.items() if k not in ("pattern", "agents")},
            "pattern": data.get("pattern", PatternType.SEQUENTIAL.value),
            "agents": data.get("agents"),
        }
    
    try:
        return ProjectFile.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid project file {path}: {e}") from e


EXAMPLE_CONFIG = """# TeamFlow settings
#
# Every value can also be set through the environment:
#   TEAMFLOW_PROJECTS_DIR, TEAMFLOW_DB_PATH, TEAMFLOW_DEV_MODE,
#   TEAMFLOW_MODEL, ANTHROPIC_API_KEY

# Where project directories are created
projects_dir: projects

# Run history database
db_path: teamflow.db

# Skip API calls and echo prompt previews instead
dev_mode: true

model: claude-sonnet-4-20250514
max_tokens: 4096
temperature: 1.0
# timeout: 120

# Keep running independent steps after a step fails
continue_on_failure: false
"""


def write_example_config(config_path: Path | str) -> None:
    """Write an example settings file."""
    config_path = Path(config_path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w", encoding="utf-8") as f:
        f.write(EXAMPLE_CONFIG)
    logger.info(f"Wrote example settings to {config_path}")


def create_model_client(settings: Settings) -> ModelClient:
    """Pick the model client the settings ask for."""
    if settings.use_placeholder:
        if not settings.dev_mode:
            logger.warning("No API key configured, using the placeholder model client")
        return PlaceholderModelClient()
    return AnthropicModelClient(settings.api_key, base_url=settings.api_base_url)
