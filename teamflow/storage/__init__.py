"""Storage layer for TeamFlow."""

from .database import Database
from .artifact_store import ArtifactStore
from .run_store import RunStore
from .project_store import ProjectExistsError, ProjectStore

__all__ = ["Database", "ArtifactStore", "RunStore", "ProjectExistsError", "ProjectStore"]
