"""Project and team models."""

from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field

ALL_PHASES = "all"
"""Sentinel phase: the agent takes part in every phase."""


class ProjectConfig(BaseModel):
    """
    Configuration of one project, persisted as ``project-config.json``.
    
    Produced by the (external) project analyzer; the engine reads the name,
    type, domains and constraints when rendering prompts, and the phases
    when building the workflow.
    """
    
    model_config = ConfigDict(populate_by_name=True)
    
    project_name: str = Field(alias="projectName")
    project_type: str = Field(default="general-software", alias="projectType")
    domains: list[str] = Field(default_factory=list)
    required_capabilities: list[str] = Field(
        default_factory=list, alias="requiredCapabilities"
    )
    phases: list[str] = Field(default_factory=list)
    constraints: dict[str, Any] = Field(default_factory=dict)
    context: Optional[dict[str, Any]] = None


class AgentSpec(BaseModel):
    """
    A member of the project team.
    
    ``phase`` is either one of the project's phases or ``"all"``.
    """
    
    id: str
    name: str
    phase: str = ALL_PHASES
    capabilities: list[str] = Field(default_factory=list)
    context: str = ""
    
    @property
    def works_all_phases(self) -> bool:
        return self.phase == ALL_PHASES
    
    def render_prompt(self, project: Optional[ProjectConfig] = None) -> str:
        """Render the markdown prompt file for this agent."""
        lines = [f"# {self.name}", ""]
        lines.append(f"**Agent ID:** {self.id}")
        lines.append(f"**Phase:** {self.phase}")
        if project:
            lines.append(f"**Project:** {project.project_name} ({project.project_type})")
        lines.append("")
        
        if self.capabilities:
            lines.append("## Capabilities")
            lines.extend(f"- {cap}" for cap in self.capabilities)
            lines.append("")
        
        if self.context:
            lines.append("## Context")
            lines.append(self.context)
            lines.append("")
        
        lines.append("## Responsibilities")
        lines.append(
            "Apply the capabilities above to the current project, build on the "
            "outputs of previous agents and produce clear, structured results "
            "that the next agents can use."
        )
        return "\n".join(lines) + "\n"
