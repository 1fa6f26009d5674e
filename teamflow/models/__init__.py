"""Core data models for TeamFlow."""

from .enums import StepStatus, PatternType, RunOutcome
from .step import Step, StepRecord, WorkflowGraph, WorkflowDocument
from .artifact import Artifact, generate_artifact_id, slugify
from .result import (
    TokenUsage,
    ExecutionResult,
    ExecutionStats,
    Progress,
    RunReport,
    RunRecord,
)
from .project import ALL_PHASES, ProjectConfig, AgentSpec

__all__ = [
    "StepStatus",
    "PatternType",
    "RunOutcome",
    "Step",
    "StepRecord",
    "WorkflowGraph",
    "WorkflowDocument",
    "Artifact",
    "generate_artifact_id",
    "slugify",
    "TokenUsage",
    "ExecutionResult",
    "ExecutionStats",
    "Progress",
    "RunReport",
    "RunRecord",
    "ALL_PHASES",
    "ProjectConfig",
    "AgentSpec",
]
