"""Execution results, statistics and progress reports."""

from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel, Field

from .enums import RunOutcome


class TokenUsage(BaseModel):
    """Token counts reported by a model client."""
    
    input: int = 0
    output: int = 0
    
    @property
    def total(self) -> int:
        return self.input + self.output


class ExecutionResult(BaseModel):
    """
    Records the result of executing one workflow step.
    
    ``output`` is present only on success and ``error`` only on failure.
    """
    
    step_id: str
    agent_id: str
    success: bool
    
    output: Optional[Any] = None
    """The model output (successful steps only)."""
    
    error: Optional[str] = None
    """Error message (failed steps only)."""
    
    error_traceback: Optional[str] = None
    """Full traceback if the failure came from an exception."""
    
    execution_time: float = 0.0
    """Wall-clock duration in seconds."""
    
    tokens_used: Optional[TokenUsage] = None
    """Resource usage reported by the client, if any."""
    
    artifact_id: Optional[str] = None
    """Id of the artifact the output was stored under."""
    
    @classmethod
    def succeeded(
        cls,
        step_id: str,
        agent_id: str,
        output: Any,
        execution_time: float,
        tokens_used: Optional[TokenUsage] = None,
        artifact_id: Optional[str] = None,
    ) -> "ExecutionResult":
        return cls(
            step_id=step_id,
            agent_id=agent_id,
            success=True,
            output=output,
            execution_time=execution_time,
            tokens_used=tokens_used,
            artifact_id=artifact_id,
        )
    
    @classmethod
    def failed(
        cls,
        step_id: str,
        agent_id: str,
        error: str,
        execution_time: float,
        traceback: Optional[str] = None,
    ) -> "ExecutionResult":
        return cls(
            step_id=step_id,
            agent_id=agent_id,
            success=False,
            error=error,
            error_traceback=traceback,
            execution_time=execution_time,
        )
    
    @property
    def total_tokens(self) -> int:
        return self.tokens_used.total if self.tokens_used else 0


class ExecutionStats(BaseModel):
    """Aggregate statistics over a list of execution results."""
    
    total_steps: int = 0
    successful: int = 0
    failed: int = 0
    total_time: float = 0.0
    total_tokens: int = 0
    average_time_per_step: float = 0.0
    average_tokens_per_step: float = 0.0
    
    @classmethod
    def from_results(cls, results: list[ExecutionResult]) -> "ExecutionStats":
        total_steps = len(results)
        successful = sum(1 for r in results if r.success)
        total_time = sum(r.execution_time for r in results)
        total_tokens = sum(r.total_tokens for r in results)
        
        return cls(
            total_steps=total_steps,
            successful=successful,
            failed=total_steps - successful,
            total_time=total_time,
            total_tokens=total_tokens,
            average_time_per_step=total_time / total_steps if total_steps else 0.0,
            average_tokens_per_step=total_tokens / total_steps if total_steps else 0.0,
        )


class Progress(BaseModel):
    """Step counts of a workflow at one point in time."""
    
    total: int = 0
    completed: int = 0
    in_progress: int = 0
    pending: int = 0
    failed: int = 0
    percentage: int = 0


class RunReport(BaseModel):
    """Everything a caller needs to know about one workflow run."""
    
    outcome: RunOutcome
    results: list[ExecutionResult] = Field(default_factory=list)
    progress: Progress = Field(default_factory=Progress)
    stats: ExecutionStats = Field(default_factory=ExecutionStats)
    
    @property
    def success(self) -> bool:
        return self.outcome == RunOutcome.COMPLETED


class RunRecord(BaseModel):
    """A workflow run as recorded in the run history."""
    
    id: str
    project: str
    pattern_type: Optional[str] = None
    outcome: Optional[RunOutcome] = None
    """None while the run is still going."""
    
    stats: ExecutionStats = Field(default_factory=ExecutionStats)
    started_at: datetime
    finished_at: Optional[datetime] = None
