"""Prompt context - everything a model client needs to execute one step."""

from pathlib import Path
from typing import Any, Optional
import aiofiles
import logging

from pydantic import BaseModel, Field

from ..models import Artifact, ProjectConfig, Step
from ..storage import ArtifactStore
from .builder import REFINEMENT_AGENT_ID, REVIEW_AGENT_ID

logger = logging.getLogger(__name__)

# Prompts for the synthetic agents of the iterative pattern, used when the
# project has no prompt file for them.
BUILTIN_PROMPTS = {
    REVIEW_AGENT_ID: (
        "# Reviewer\n\n"
        "Review the drafts produced in this phase. Point out gaps, "
        "inconsistencies and risks, and give concrete, prioritised feedback.\n"
    ),
    REFINEMENT_AGENT_ID: (
        "# Refiner\n\n"
        "Apply the review feedback of this phase and produce the final, "
        "consolidated version of its deliverables.\n"
    ),
}

TASK_INSTRUCTIONS = """## Your Task

Based on the above context and your expertise, please:
1. Analyze the current project requirements
2. Apply your domain knowledge and thinking patterns
3. Produce the outputs specified in your role description
4. Be specific, actionable, and thorough
5. Consider the project constraints and context
6. Document your reasoning and assumptions

Provide your complete response below:
"""


class AgentPromptNotFoundError(FileNotFoundError):
    """No prompt file exists for an agent."""


class ResolvedInput(BaseModel):
    """A step input matched to a stored artifact."""
    
    name: str
    artifact_id: str
    created_by: str
    content: Any = None
    text: str = ""
    """The content as it appears in the prompt."""


class PromptContext(BaseModel):
    """The prompt material handed to a ModelClient for one step."""
    
    step: Step
    agent_prompt: str
    project: Optional[ProjectConfig] = None
    inputs: list[ResolvedInput] = Field(default_factory=list)
    missing_inputs: list[str] = Field(default_factory=list)
    """Declared inputs with no matching artifact (not an error)."""
    
    def render(self) -> str:
        """Render the full prompt text."""
        sections = [self.agent_prompt.rstrip(), "", "---", ""]
        
        if self.project:
            sections.append("## Current Project Context")
            sections.append("")
            sections.append(f"**Project Name:** {self.project.project_name}")
            sections.append(f"**Project Type:** {self.project.project_type}")
            sections.append(f"**Domains:** {', '.join(self.project.domains)}")
            sections.append("")
            
            if self.project.constraints:
                sections.append("### Constraints:")
                for key, value in self.project.constraints.items():
                    sections.append(f"- **{key}:** {value}")
                sections.append("")
        
        sections.append("## Current Step")
        sections.append("")
        sections.append(f"**Step ID:** {self.step.id}")
        sections.append(f"**Action:** {self.step.action}")
        if self.step.outputs:
            sections.append(f"**Expected outputs:** {', '.join(self.step.outputs)}")
        sections.append("")
        
        if self.inputs:
            sections.append("### Available Context:")
            for item in self.inputs:
                sections.append("")
                sections.append(f"**{item.name}** (from {item.created_by}):")
                sections.append("```")
                sections.append(item.text)
                sections.append("```")
            sections.append("")
        
        if self.missing_inputs:
            sections.append("### Unavailable Inputs:")
            sections.extend(f"- {name}" for name in self.missing_inputs)
            sections.append("")
        
        sections.extend(["---", "", TASK_INSTRUCTIONS])
        return "\n".join(sections)


class ContextBuilder:
    """
    Builds PromptContexts for the steps of one project.
    
    Agent prompts are read from ``agents_dir``; step inputs are resolved
    against the artifact store.
    """
    
    def __init__(
        self,
        agents_dir: Path | str,
        artifact_store: ArtifactStore,
        project: Optional[ProjectConfig] = None,
    ):
        self.agents_dir = Path(agents_dir)
        self.artifact_store = artifact_store
        self.project = project
    
    def find_agent_prompt(self, agent_id: str) -> Optional[Path]:
        """Locate the prompt file of an agent (``{agent_id}.md`` preferred)."""
        exact = self.agents_dir / f"{agent_id}.md"
        if exact.exists():
            return exact
        
        if not self.agents_dir.exists():
            return None
        
        for path in sorted(self.agents_dir.glob("*.md")):
            if path.name.startswith(agent_id):
                return path
        return None
    
    async def load_agent_prompt(self, agent_id: str) -> str:
        """
        Read an agent's prompt.
        
        Raises:
            AgentPromptNotFoundError: If no prompt file exists and the agent
                has no built-in prompt
        """
        path = self.find_agent_prompt(agent_id)
        if path is None:
            if agent_id in BUILTIN_PROMPTS:
                return BUILTIN_PROMPTS[agent_id]
            raise AgentPromptNotFoundError(
                f"Agent prompt file not found for agent: {agent_id}"
            )
        
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            return await f.read()
    
    def resolve_input(self, name: str) -> Optional[Artifact]:
        """Find the artifact for an input: exact id first, then latest by tag."""
        artifact = self.artifact_store.get(name)
        if artifact:
            return artifact
        return self.artifact_store.latest_by_tag(name)
    
    async def build(self, step: Step) -> PromptContext:
        """Assemble the prompt context for a step."""
        agent_prompt = await self.load_agent_prompt(step.agent_id)
        
        resolved = []
        missing = []
        for name in step.inputs:
            artifact = self.resolve_input(name)
            if artifact is None:
                missing.append(name)
                continue
            resolved.append(ResolvedInput(
                name=name,
                artifact_id=artifact.id,
                created_by=artifact.created_by,
                content=artifact.content,
                text=artifact.content_as_text(),
            ))
        
        if missing:
            logger.debug(f"Step {step.id}: unresolved inputs {missing}")
        
        return PromptContext(
            step=step,
            agent_prompt=agent_prompt,
            project=self.project,
            inputs=resolved,
            missing_inputs=missing,
        )
