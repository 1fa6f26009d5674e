"""Step and workflow graph models."""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from .enums import PatternType, StepStatus


class Step(BaseModel):
    """
    A unit of work tied to one agent within a workflow.
    
    Steps are immutable. Their status is owned by the WorkflowScheduler,
    so the same Step object can be referenced from several graphs without
    one run leaking state into another.
    """
    
    model_config = ConfigDict(frozen=True, populate_by_name=True)
    
    id: str
    """Unique identifier, stable for the lifetime of a workflow."""
    
    agent_id: str = Field(alias="agentId")
    """The agent responsible for this step (an opaque label to the engine)."""
    
    action: str = ""
    """Human-readable description of the work."""
    
    inputs: tuple[str, ...] = ()
    """
    Artifact identifiers (or tags) this step consumes.
    
    Inputs name data needs; ordering needs are expressed by the graph's
    dependency map. The two may diverge.
    """
    
    outputs: tuple[str, ...] = ()
    """Names of the artifacts this step is expected to produce."""


class StepRecord(Step):
    """A step together with its status, as written to a workflow document."""
    
    status: StepStatus = StepStatus.PENDING


class WorkflowGraph(BaseModel):
    """
    Steps plus a dependency map defining a partial execution order.
    
    The step list keeps creation order, which is used as a stable tie-break
    when several steps are eligible at once. It is not an implicit
    dependency.
    """
    
    model_config = ConfigDict(populate_by_name=True)
    
    pattern_type: PatternType = Field(alias="type")
    """Pattern the graph was built with (diagnostic only)."""
    
    steps: list[Step] = Field(default_factory=list)
    
    dependencies: dict[str, list[str]] = Field(default_factory=dict)
    """Step id -> ids that must be completed first. Missing key = none."""
    
    def get_step(self, step_id: str) -> Optional[Step]:
        """Get a step by id."""
        for step in self.steps:
            if step.id == step_id:
                return step
        return None
    
    def get_dependencies(self, step_id: str) -> list[str]:
        """Get the direct prerequisites of a step."""
        return list(self.dependencies.get(step_id, []))
    
    def get_dependents(self, step_id: str) -> list[str]:
        """Get the ids of steps that directly depend on the given step."""
        return [
            step.id for step in self.steps
            if step_id in self.dependencies.get(step.id, [])
        ]
    
    @property
    def step_ids(self) -> list[str]:
        return [step.id for step in self.steps]
    
    @property
    def edge_count(self) -> int:
        """Total number of dependency edges."""
        return sum(len(deps) for deps in self.dependencies.values())
    
    def __len__(self) -> int:
        return len(self.steps)
    
    def __iter__(self):
        return iter(self.steps)


class WorkflowDocument(BaseModel):
    """
    Persisted workflow state: ``{type, steps, dependencies}``.
    
    Each step carries its status so a run can be resumed after a restart.
    """
    
    model_config = ConfigDict(populate_by_name=True)
    
    pattern_type: PatternType = Field(alias="type")
    steps: list[StepRecord] = Field(default_factory=list)
    dependencies: dict[str, list[str]] = Field(default_factory=dict)
    
    def to_graph(self) -> WorkflowGraph:
        """Strip statuses and return the bare graph."""
        return WorkflowGraph(
            pattern_type=self.pattern_type,
            steps=[
                Step.model_validate(record.model_dump(exclude={"status"}))
                for record in self.steps
            ],
            dependencies={k: list(v) for k, v in self.dependencies.items()},
        )
    
    @property
    def statuses(self) -> dict[str, StepStatus]:
        return {record.id: StepStatus(record.status) for record in self.steps}
    
    def to_json_dict(self) -> dict:
        """Serialize with the persisted (camelCase) field names."""
        return self.model_dump(mode="json", by_alias=True)
