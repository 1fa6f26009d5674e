"""Project workspace storage."""

from pathlib import Path
from typing import Any, Optional
import asyncio
import logging
import shutil

from pydantic import ValidationError

from .files import try_read_json_file, write_json_file, write_text_file
from ..models import AgentSpec, ProjectConfig, WorkflowDocument, slugify

logger = logging.getLogger(__name__)

PROJECT_CONFIG_FILE = "project-config.json"
TEAM_FILE = "team.json"
WORKFLOW_FILE = "workflow.json"
PROJECT_STATE_FILE = "project-state.json"

CONTEXT_DIR = "context"
AGENTS_DIR = "agents"
OUTPUTS_DIR = "outputs"


class ProjectExistsError(FileExistsError):
    """A project with the same name already exists."""


class ProjectStore:
    """
    Filesystem layout of projects.
    
    Each project lives in its own directory:
        projects/
        ├── my-project/
        │   ├── project-config.json
        │   ├── team.json
        │   ├── workflow.json       # graph + step statuses
        │   ├── project-state.json
        │   ├── agents/             # one prompt file per agent
        │   ├── context/            # artifact store
        │   └── outputs/
    """
    
    def __init__(self, projects_dir: Path | str):
        self.projects_dir = Path(projects_dir)
    
    def project_path(self, project_name: str) -> Path:
        """Directory a project with this name lives in."""
        return self.projects_dir / slugify(project_name)
    
    def resolve(self, name_or_path: str | Path) -> Path:
        """
        Resolve a project reference to its directory.
        
        Accepts an existing directory path, a directory name under the
        projects directory, or a project name.
        """
        candidate = Path(name_or_path)
        if candidate.is_absolute() or candidate.exists():
            return candidate
        
        direct = self.projects_dir / str(name_or_path)
        if direct.exists():
            return direct
        
        return self.project_path(str(name_or_path))
    
    def exists(self, project_path: Path) -> bool:
        return (project_path / PROJECT_CONFIG_FILE).exists()
    
    # -------------------------------------------------------------------------
    # Project creation and listing
    # -------------------------------------------------------------------------
    
    async def create(
        self,
        config: ProjectConfig,
        agents: list[AgentSpec],
        overwrite: bool = False,
    ) -> Path:
        """
        Create the project directory with its config, team and agent prompts.

        Args:
            config: Project configuration
            agents: The project team
            overwrite: Delete an existing project of the same name first,
                including its artifacts

        Returns:
            Path of the project directory

        Raises:
            ProjectExistsError: If the project exists and overwrite is False
        """
        path = self.project_path(config.project_name)
        if self.exists(path):
            if not overwrite:
                raise ProjectExistsError(f"Project already exists: {path}")
            logger.warning(f"Overwriting project at {path}")
            await asyncio.to_thread(shutil.rmtree, path)

        for subdir in (CONTEXT_DIR, AGENTS_DIR, OUTPUTS_DIR):
            (path / subdir).mkdir(parents=True, exist_ok=True)
        
        await write_json_file(
            path / PROJECT_CONFIG_FILE,
            config.model_dump(mode="json", by_alias=True),
        )
        await write_json_file(
            path / TEAM_FILE,
            [agent.model_dump(mode="json") for agent in agents],
        )
        
        for agent in agents:
            prompt_path = path / AGENTS_DIR / f"{agent.id}.md"
            await write_text_file(prompt_path, agent.render_prompt(config))
        
        logger.info(f"Created project {config.project_name} at {path}")
        return path
    
    async def list_projects(self) -> list[tuple[Path, ProjectConfig]]:
        """List all projects with a readable configuration."""
        if not self.projects_dir.exists():
            return []
        
        projects = []
        for path in sorted(self.projects_dir.iterdir()):
            if not path.is_dir() or path.name.startswith((".", "_")):
                continue
            config = await self.load_config(path)
            if config:
                projects.append((path, config))
        return projects
    
    # -------------------------------------------------------------------------
    # Documents
    # -------------------------------------------------------------------------
    
    async def load_config(self, project_path: Path) -> Optional[ProjectConfig]:
        """Load a project's configuration (None if missing or corrupt)."""
        data = await try_read_json_file(project_path / PROJECT_CONFIG_FILE)
        if data is None:
            return None
        try:
            return ProjectConfig.model_validate(data)
        except ValidationError as e:
            logger.error(f"Invalid project config in {project_path}: {e}")
            return None
    
    async def load_team(self, project_path: Path) -> list[AgentSpec]:
        """Load a project's team (empty if missing or corrupt)."""
        data = await try_read_json_file(project_path / TEAM_FILE, default=[])
        team = []
        for entry in data:
            try:
                team.append(AgentSpec.model_validate(entry))
            except ValidationError as e:
                logger.warning(f"Skipping invalid team entry in {project_path}: {e}")
        return team
    
    async def save_workflow(self, project_path: Path, document: WorkflowDocument) -> None:
        """Persist a workflow together with its step statuses."""
        await write_json_file(project_path / WORKFLOW_FILE, document.to_json_dict())
    
    async def load_workflow(self, project_path: Path) -> Optional[WorkflowDocument]:
        """Load a persisted workflow (None if missing or corrupt)."""
        data = await try_read_json_file(project_path / WORKFLOW_FILE)
        if data is None:
            return None
        try:
            return WorkflowDocument.model_validate(data)
        except ValidationError as e:
            logger.error(f"Invalid workflow document in {project_path}: {e}")
            return None
    
    async def save_state(self, project_path: Path, state: dict[str, Any]) -> None:
        """Persist free-form project state."""
        await write_json_file(project_path / PROJECT_STATE_FILE, state)
    
    async def load_state(self, project_path: Path) -> Optional[dict[str, Any]]:
        """Load free-form project state (None if missing or corrupt)."""
        return await try_read_json_file(project_path / PROJECT_STATE_FILE)
