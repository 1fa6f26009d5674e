"""Workflow scheduler - tracks step statuses and the eligibility frontier."""

from typing import Optional
import logging

from ..models import (
    Progress,
    Step,
    StepRecord,
    StepStatus,
    WorkflowDocument,
    WorkflowGraph,
)

logger = logging.getLogger(__name__)


class WorkflowScheduler:
    """
    Owns the status of every step of one workflow graph.
    
    A step is eligible when it is pending and all of its dependencies are
    completed. Transitions follow ``pending -> in-progress -> completed |
    failed``; completed and failed are terminal.
    """
    
    def __init__(
        self,
        graph: WorkflowGraph,
        statuses: Optional[dict[str, StepStatus]] = None,
    ):
        self.graph = graph
        self._status: dict[str, StepStatus] = {
            step.id: StepStatus.PENDING for step in graph.steps
        }
        
        for step_id, status in (statuses or {}).items():
            if step_id in self._status:
                self._status[step_id] = StepStatus(status)
    
    @classmethod
    def from_document(cls, document: WorkflowDocument) -> "WorkflowScheduler":
        """Restore a scheduler from a persisted workflow document."""
        return cls(document.to_graph(), document.statuses)
    
    def to_document(self) -> WorkflowDocument:
        """Snapshot the graph and current statuses."""
        return WorkflowDocument(
            pattern_type=self.graph.pattern_type,
            steps=[
                StepRecord(**step.model_dump(), status=self._status[step.id])
                for step in self.graph.steps
            ],
            dependencies={k: list(v) for k, v in self.graph.dependencies.items()},
        )
    
    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------
    
    def status(self, step_id: str) -> Optional[StepStatus]:
        return self._status.get(step_id)
    
    @property
    def statuses(self) -> dict[str, StepStatus]:
        return dict(self._status)
    
    def is_eligible(self, step_id: str) -> bool:
        if self._status.get(step_id) != StepStatus.PENDING:
            return False
        return all(
            self._status.get(dep) == StepStatus.COMPLETED
            for dep in self.graph.get_dependencies(step_id)
        )
    
    def eligible_steps(self) -> list[Step]:
        """Steps that may start now, in graph insertion order."""
        return [step for step in self.graph.steps if self.is_eligible(step.id)]
    
    def count(self, status: StepStatus) -> int:
        return sum(1 for s in self._status.values() if s == status)
    
    def progress(self) -> Progress:
        total = len(self._status)
        completed = self.count(StepStatus.COMPLETED)
        
        return Progress(
            total=total,
            completed=completed,
            in_progress=self.count(StepStatus.IN_PROGRESS),
            pending=self.count(StepStatus.PENDING),
            failed=self.count(StepStatus.FAILED),
            percentage=round(completed / total * 100) if total else 0,
        )
    
    def is_complete(self) -> bool:
        """True when every step has completed (vacuously true when empty)."""
        return all(s == StepStatus.COMPLETED for s in self._status.values())
    
    def has_failures(self) -> bool:
        return any(s == StepStatus.FAILED for s in self._status.values())
    
    def is_stalled(self) -> bool:
        """No step can start, nothing is running, and work remains."""
        return (
            not self.is_complete()
            and self.count(StepStatus.IN_PROGRESS) == 0
            and not self.eligible_steps()
        )
    
    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------
    
    def mark_in_progress(self, step_id: str) -> bool:
        """
        Move an eligible step to in-progress.
        
        Returns:
            True if the transition happened, False if the step was not
            eligible (unknown, not pending, or dependencies unfinished)
        """
        if not self.is_eligible(step_id):
            return False
        self._status[step_id] = StepStatus.IN_PROGRESS
        return True
    
    def mark_completed(self, step_id: str) -> None:
        """Mark a step completed. Unknown ids and repeated calls are no-ops."""
        self._finish(step_id, StepStatus.COMPLETED)
    
    def mark_failed(self, step_id: str) -> None:
        """Mark a step failed. Unknown ids and repeated calls are no-ops."""
        self._finish(step_id, StepStatus.FAILED)
    
    def _finish(self, step_id: str, status: StepStatus) -> None:
        current = self._status.get(step_id)
        if current is None or current == status:
            return
        
        if current.is_terminal:
            logger.warning(
                f"Ignoring transition of step {step_id} from {current.value} "
                f"to {status.value}"
            )
            return
        
        self._status[step_id] = status
    
    def reset(self, *statuses: StepStatus) -> list[str]:
        """
        Put every step whose status is one of ``statuses`` back to pending.
        
        Used when resuming a persisted workflow: steps left in progress by an
        interrupted run, or failed steps being retried, become runnable again.
        
        Returns:
            Ids of the steps that were reset
        """
        reset_ids = [sid for sid, status in self._status.items() if status in statuses]
        for sid in reset_ids:
            self._status[sid] = StepStatus.PENDING
        
        if reset_ids:
            logger.info(f"Reset {len(reset_ids)} steps to pending: {reset_ids}")
        return reset_ids
