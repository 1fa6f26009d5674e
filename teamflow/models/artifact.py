"""Artifact model - addressable blobs exchanged between steps."""

from datetime import datetime, timezone
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
import json
import re


def utcnow() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(timezone.utc)


def slugify(value: str) -> str:
    """Lowercase a name and collapse everything but [a-z0-9] into dashes."""
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")
    return slug or "artifact"


def generate_artifact_id(
    artifact_type: str,
    name: str,
    created_at: Optional[datetime] = None,
) -> str:
    """
    Derive an artifact id from its type, name and creation time.
    
    The id is unique enough for sequential creation; the ArtifactStore adds
    a suffix when two artifacts land on the same millisecond.
    """
    created_at = created_at or utcnow()
    millis = int(created_at.timestamp() * 1000)
    return f"{slugify(artifact_type)}-{slugify(name)}-{millis}"


class Artifact(BaseModel):
    """
    A stored output of an agent, addressable by id.
    
    Artifacts are the unit of data exchange between steps: a step's output
    is stored here and later steps find it again by id or by tag. The engine
    treats ``content`` as an opaque blob.
    """
    
    model_config = ConfigDict(populate_by_name=True)
    
    id: str
    """Unique identifier for this artifact."""
    
    type: str
    """Free-form classification tag (e.g. "output", "step-output")."""
    
    name: str
    """Human-readable label, not required to be unique."""
    
    content: Any = None
    """Opaque payload - a string or JSON-compatible structured data."""
    
    created_by: str = Field(alias="createdBy")
    """Agent or step that produced this artifact."""
    
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")
    updated_at: datetime = Field(default_factory=utcnow, alias="updatedAt")
    
    tags: list[str] = Field(default_factory=list)
    """Labels used for retrieval by category (agent id, output names...)."""
    
    metadata: dict[str, Any] = Field(default_factory=dict)
    """Open key-value bag (step id, action, token counts...)."""
    
    @field_validator("created_at", "updated_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # Naive timestamps from hand-edited files are taken as UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_validator("tags")
    @classmethod
    def _dedupe_tags(cls, tags: list[str]) -> list[str]:
        return list(dict.fromkeys(tags))
    
    def has_tag(self, tag: str) -> bool:
        return tag in self.tags
    
    def matches(self, query: str) -> bool:
        """Case-insensitive match against name, type, tags and text content."""
        needle = query.lower()
        if needle in self.name.lower() or needle in self.type.lower():
            return True
        if any(needle in tag.lower() for tag in self.tags):
            return True
        return isinstance(self.content, str) and needle in self.content.lower()
    
    def content_as_text(self) -> str:
        """Render the content for inclusion in a prompt."""
        if isinstance(self.content, str):
            return self.content
        return json.dumps(self.content, indent=2, default=str)
    
    def to_document(self) -> dict[str, Any]:
        """Serialize to the persisted JSON document."""
        return self.model_dump(mode="json", by_alias=True)
    
    @classmethod
    def from_document(cls, data: dict[str, Any]) -> "Artifact":
        """Parse a persisted JSON document (timestamps become datetimes)."""
        return cls.model_validate(data)
