"""Enumerations for TeamFlow."""

from enum import Enum


class StepStatus(str, Enum):
    """Status of a workflow step."""
    
    PENDING = "pending"
    """Step has not started."""
    
    IN_PROGRESS = "in-progress"
    """Step is currently executing."""
    
    COMPLETED = "completed"
    """Step finished successfully."""
    
    FAILED = "failed"
    """Step encountered an error."""
    
    @property
    def is_terminal(self) -> bool:
        """Completed and failed steps never change status again."""
        return self in (StepStatus.COMPLETED, StepStatus.FAILED)


class PatternType(str, Enum):
    """How a workflow orders the work of a team."""
    
    SEQUENTIAL = "sequential"
    """A strict chain: every step waits for the one before it."""
    
    PARALLEL = "parallel"
    """Steps of one phase run side by side once the previous phase is done."""
    
    ITERATIVE = "iterative"
    """Per phase: work steps, then a review step, then a refine step."""


class RunOutcome(str, Enum):
    """How a workflow run ended."""
    
    COMPLETED = "completed"
    """Every step completed."""
    
    FAILED = "failed"
    """A step failed and the run halted."""
    
    STALLED = "stalled"
    """No step is eligible but the workflow is not complete."""
    
    PAUSED = "paused"
    """The caller stopped the run between steps."""
