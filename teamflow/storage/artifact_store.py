"""Artifact storage layer."""

from pathlib import Path
from typing import Any, Iterator, Optional
import asyncio
import logging

import aiofiles.os

from .files import read_json_file, write_json_file
from ..models import Artifact, generate_artifact_id
from ..models.artifact import utcnow

logger = logging.getLogger(__name__)


class ArtifactStore:
    """
    Durable knowledge base of artifacts for one project.
    
    Each artifact is one JSON document in ``context_dir``, written before
    ``store``/``update`` return. An in-memory index serves all queries and
    is rebuilt from the directory by ``load()``.
    
    Usage:
        store = await ArtifactStore.open(project_path / "context")
        artifact = await store.store("output", "architecture", text, "agent-01")
        store.by_tag("agent-01")
    """
    
    def __init__(self, context_dir: Path | str):
        self.context_dir = Path(context_dir)
        self._artifacts: dict[str, Artifact] = {}
        self._lock = asyncio.Lock()
        self._loaded = False
    
    @classmethod
    async def open(cls, context_dir: Path | str) -> "ArtifactStore":
        """Create a store and load everything already persisted."""
        store = cls(context_dir)
        await store.load()
        return store
    
    async def load(self) -> int:
        """
        Rebuild the index by scanning all persisted artifacts.
        
        Unreadable or invalid documents are logged and skipped.
        
        Returns:
            Number of artifacts loaded
        """
        self.context_dir.mkdir(parents=True, exist_ok=True)
        
        loaded: list[Artifact] = []
        for path in sorted(self.context_dir.glob("*.json")):
            try:
                data = await read_json_file(path)
                loaded.append(Artifact.from_document(data))
            except (OSError, ValueError) as e:
                logger.warning(f"Skipping unreadable artifact file {path.name}: {e}")
        
        # Insertion order is creation order; suffixed ids sort after their base
        loaded.sort(key=lambda a: (a.created_at, len(a.id), a.id))
        
        async with self._lock:
            self._artifacts = {a.id: a for a in loaded}
            self._loaded = True
        
        logger.info(f"Loaded {len(loaded)} artifacts from {self.context_dir}")
        return len(loaded)
    
    def _ensure_loaded(self) -> None:
        if not self._loaded:
            raise RuntimeError("Artifact store not loaded. Call load() first.")
    
    def _path_for(self, artifact_id: str) -> Path:
        return self.context_dir / f"{artifact_id}.json"
    
    def _unique_id(self, base_id: str) -> str:
        if base_id not in self._artifacts:
            return base_id
        counter = 2
        while f"{base_id}-{counter}" in self._artifacts:
            counter += 1
        return f"{base_id}-{counter}"
    
    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------
    
    async def store(
        self,
        artifact_type: str,
        name: str,
        content: Any,
        created_by: str,
        tags: Optional[list[str]] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> Artifact:
        """
        Store a new artifact. Never overwrites an existing one.
        
        Args:
            artifact_type: Classification tag (e.g. "output")
            name: Human-readable label
            content: Opaque payload (string or JSON-compatible data)
            created_by: Producing agent or step
            tags: Retrieval labels
            metadata: Open key-value bag
        
        Returns:
            The stored artifact
        
        Raises:
            OSError: If the artifact cannot be written to disk
        """
        self._ensure_loaded()
        
        async with self._lock:
            now = utcnow()
            artifact = Artifact(
                id=self._unique_id(generate_artifact_id(artifact_type, name, now)),
                type=artifact_type,
                name=name,
                content=content,
                created_by=created_by,
                created_at=now,
                updated_at=now,
                tags=list(tags or []),
                metadata=dict(metadata or {}),
            )
            await write_json_file(self._path_for(artifact.id), artifact.to_document())
            self._artifacts[artifact.id] = artifact
        
        logger.debug(f"Stored artifact {artifact.id} from {created_by}")
        return artifact
    
    async def update(
        self,
        artifact_id: str,
        content: Any,
        updated_by: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> Optional[Artifact]:
        """
        Replace an artifact's content.
        
        Id, type, name, tags, creator and creation time are preserved. The
        metadata patch is shallow-merged and ``updatedBy`` is stamped.
        
        Returns:
            The updated artifact, or None if no artifact has this id
        """
        self._ensure_loaded()
        
        async with self._lock:
            existing = self._artifacts.get(artifact_id)
            if existing is None:
                logger.warning(f"Cannot update unknown artifact {artifact_id}")
                return None
            
            updated = existing.model_copy(update={
                "content": content,
                "updated_at": utcnow(),
                "metadata": {**existing.metadata, **(metadata or {}), "updatedBy": updated_by},
            })
            await write_json_file(self._path_for(artifact_id), updated.to_document())
            self._artifacts[artifact_id] = updated
        
        logger.debug(f"Updated artifact {artifact_id} by {updated_by}")
        return updated
    
    async def clear(self) -> int:
        """
        Remove all artifacts and their files. Irreversible.
        
        Returns:
            Number of artifacts removed
        """
        self._ensure_loaded()
        
        async with self._lock:
            count = len(self._artifacts)
            for path in [*self.context_dir.glob("*.json"), *self.context_dir.glob("*.json.tmp")]:
                await aiofiles.os.remove(path)
            self._artifacts.clear()
        
        logger.info(f"Cleared {count} artifacts from {self.context_dir}")
        return count
    
    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------
    
    def get(self, artifact_id: str) -> Optional[Artifact]:
        """Get an artifact by id."""
        self._ensure_loaded()
        return self._artifacts.get(artifact_id)
    
    def all(self) -> list[Artifact]:
        """Get all artifacts in insertion order."""
        self._ensure_loaded()
        return list(self._artifacts.values())
    
    def by_type(self, artifact_type: str) -> list[Artifact]:
        return [a for a in self.all() if a.type == artifact_type]
    
    def by_tag(self, tag: str) -> list[Artifact]:
        return [a for a in self.all() if a.has_tag(tag)]
    
    def by_agent(self, agent_id: str) -> list[Artifact]:
        return [a for a in self.all() if a.created_by == agent_id]
    
    def search(self, query: str) -> list[Artifact]:
        """Case-insensitive search over name, type, tags and text content."""
        return [a for a in self.all() if a.matches(query)]
    
    def latest_by_tag(self, tag: str) -> Optional[Artifact]:
        """Get the most recently updated artifact carrying a tag (later insert wins ties)."""
        tagged = self.by_tag(tag)
        if not tagged:
            return None
        return max(reversed(tagged), key=lambda a: a.updated_at)
    
    def summary(self, recent: int = 10) -> dict[str, Any]:
        """
        Summarize the knowledge base.
        
        Returns:
            Dict with total count, counts by type and by agent, and the most
            recently updated artifacts
        """
        artifacts = self.all()
        by_type: dict[str, int] = {}
        by_agent: dict[str, int] = {}
        
        for artifact in artifacts:
            by_type[artifact.type] = by_type.get(artifact.type, 0) + 1
            by_agent[artifact.created_by] = by_agent.get(artifact.created_by, 0) + 1
        
        return {
            "total_artifacts": len(artifacts),
            "artifacts_by_type": by_type,
            "artifacts_by_agent": by_agent,
            "recent_artifacts": sorted(
                artifacts, key=lambda a: a.updated_at, reverse=True
            )[:recent],
        }
    
    def __len__(self) -> int:
        return len(self._artifacts)
    
    def __contains__(self, artifact_id: str) -> bool:
        return artifact_id in self._artifacts
    
    def __iter__(self) -> Iterator[Artifact]:
        return iter(self.all())
