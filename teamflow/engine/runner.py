"""Step runner - drives a scheduler through a model client."""

import time
import traceback
from typing import Awaitable, Callable, Optional
import logging

from ..models import (
    ExecutionResult,
    ExecutionStats,
    Progress,
    RunOutcome,
    RunReport,
    Step,
)
from ..storage import ArtifactStore
from .context import ContextBuilder
from .model_client import ExecutionOptions, ModelClient
from .scheduler import WorkflowScheduler

logger = logging.getLogger(__name__)

OUTPUT_ARTIFACT_TYPE = "output"
AGENT_OUTPUT_TAG = "agent-output"

# Returning False from the callback stops the run after the current step.
StepCallback = Callable[[ExecutionResult, Progress], Awaitable[Optional[bool]]]


class StepRunner:
    """
    Executes workflow steps one at a time.
    
    Handles:
    - Status transitions through the scheduler
    - Prompt context building and the model call
    - Storing outputs as artifacts
    - Capturing every failure into an ExecutionResult
    """
    
    def __init__(self, artifact_store: ArtifactStore, context_builder: ContextBuilder):
        self.artifact_store = artifact_store
        self.context_builder = context_builder
    
    async def run_step(
        self,
        scheduler: WorkflowScheduler,
        step: Step,
        client: ModelClient,
        options: Optional[ExecutionOptions] = None,
    ) -> ExecutionResult:
        """
        Execute a single step.
        
        Never raises: failures are returned as an unsuccessful result and
        the step is marked failed.
        """
        options = options or ExecutionOptions()
        start = time.monotonic()
        
        if not scheduler.mark_in_progress(step.id):
            logger.warning(f"Step {step.id} is not eligible, not running it")
            return ExecutionResult.failed(
                step.id,
                step.agent_id,
                f"Step '{step.id}' is not eligible to run",
                time.monotonic() - start,
            )
        
        logger.info(f"Executing step {step.id} ({step.action}) with agent {step.agent_id}")
        
        try:
            context = await self.context_builder.build(step)
            response = await client.execute(context, options)
            
            if response.error:
                raise RuntimeError(response.error)
            
            artifact = await self.artifact_store.store(
                OUTPUT_ARTIFACT_TYPE,
                f"{step.id}-result",
                response.output,
                created_by=step.agent_id,
                tags=[AGENT_OUTPUT_TAG, step.id, step.agent_id, *step.outputs],
                metadata={
                    "stepId": step.id,
                    "action": step.action,
                    "tokensUsed": (
                        response.tokens_used.model_dump()
                        if response.tokens_used else None
                    ),
                },
            )
            
            scheduler.mark_completed(step.id)
            elapsed = time.monotonic() - start
            logger.info(f"Step {step.id} completed in {elapsed:.2f}s -> {artifact.id}")
            
            return ExecutionResult.succeeded(
                step.id,
                step.agent_id,
                response.output,
                elapsed,
                tokens_used=response.tokens_used,
                artifact_id=artifact.id,
            )
        
        except Exception as e:
            scheduler.mark_failed(step.id)
            tb = traceback.format_exc()
            logger.error(f"Step {step.id} failed: {e}")
            logger.debug(tb)
            
            return ExecutionResult.failed(
                step.id,
                step.agent_id,
                str(e),
                time.monotonic() - start,
                traceback=tb,
            )
    
    async def run_eligible(
        self,
        scheduler: WorkflowScheduler,
        client: ModelClient,
        options: Optional[ExecutionOptions] = None,
        continue_on_failure: bool = False,
    ) -> list[ExecutionResult]:
        """Run the current frontier in order, stopping at the first failure."""
        results = []
        
        for step in scheduler.eligible_steps():
            result = await self.run_step(scheduler, step, client, options)
            results.append(result)
            if not result.success and not continue_on_failure:
                break
        
        return results
    
    async def run_to_completion(
        self,
        scheduler: WorkflowScheduler,
        client: ModelClient,
        options: Optional[ExecutionOptions] = None,
        max_steps: Optional[int] = None,
        continue_on_failure: bool = False,
        on_step_complete: Optional[StepCallback] = None,
    ) -> RunReport:
        """
        Run frontier after frontier until nothing is eligible.
        
        Args:
            scheduler: Scheduler of the workflow to run
            client: Model client to execute steps with
            options: Passed through to the client
            max_steps: Pause after this many steps
            continue_on_failure: Keep running independent steps after a failure
            on_step_complete: Awaited after each step; returning False pauses
        
        Returns:
            A RunReport with outcome completed, failed, stalled or paused
        """
        results: list[ExecutionResult] = []
        outcome: Optional[RunOutcome] = None
        
        while outcome is None:
            frontier = scheduler.eligible_steps()
            if not frontier:
                break
            
            for step in frontier:
                if max_steps is not None and len(results) >= max_steps:
                    outcome = RunOutcome.PAUSED
                    break
                
                result = await self.run_step(scheduler, step, client, options)
                results.append(result)
                
                keep_going = True
                if on_step_complete:
                    keep_going = await on_step_complete(result, scheduler.progress()) is not False
                
                if not result.success and not continue_on_failure:
                    outcome = RunOutcome.FAILED
                    break
                if not keep_going:
                    outcome = RunOutcome.PAUSED
                    break
        
        if outcome is None:
            if scheduler.is_complete():
                outcome = RunOutcome.COMPLETED
            elif scheduler.has_failures():
                outcome = RunOutcome.FAILED
            else:
                outcome = RunOutcome.STALLED
                logger.warning(
                    f"Workflow stalled with {scheduler.progress().pending} pending steps "
                    f"that can never become eligible"
                )
        
        report = RunReport(
            outcome=outcome,
            results=results,
            progress=scheduler.progress(),
            stats=self.stats(results),
        )
        logger.info(
            f"Run finished: {outcome.value}, {report.stats.successful}/"
            f"{report.stats.total_steps} steps succeeded, "
            f"{report.progress.percentage}% complete"
        )
        return report
    
    @staticmethod
    def stats(results: list[ExecutionResult]) -> ExecutionStats:
        return ExecutionStats.from_results(results)
