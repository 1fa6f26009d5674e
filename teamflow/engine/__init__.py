"""Workflow engine for TeamFlow."""

from .builder import (
    WorkflowBuilder,
    WorkflowValidationError,
    group_agents_by_phase,
    qualified_name,
    topological_order,
    validate_graph,
)
from .scheduler import WorkflowScheduler
from .context import AgentPromptNotFoundError, ContextBuilder, PromptContext
from .model_client import (
    AnthropicModelClient,
    ExecutionOptions,
    ModelClient,
    ModelClientError,
    ModelResponse,
    PlaceholderModelClient,
)
from .runner import StepRunner
from .pipeline import ProjectPipeline, create_project

__all__ = [
    "WorkflowBuilder",
    "WorkflowValidationError",
    "group_agents_by_phase",
    "topological_order",
    "validate_graph",
    "qualified_name",
    "WorkflowScheduler",
    "AgentPromptNotFoundError",
    "ContextBuilder",
    "PromptContext",
    "AnthropicModelClient",
    "ExecutionOptions",
    "ModelClient",
    "ModelClientError",
    "ModelResponse",
    "PlaceholderModelClient",
    "StepRunner",
    "ProjectPipeline",
    "create_project",
]
