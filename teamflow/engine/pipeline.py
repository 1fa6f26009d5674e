"""Project pipeline - runs a project's workflow and keeps its files current."""

from datetime import datetime, timezone
from pathlib import Path
from typing import Awaitable, Callable, Optional
import logging

from ..models import (
    AgentSpec,
    ExecutionResult,
    PatternType,
    Progress,
    ProjectConfig,
    RunReport,
    StepStatus,
)
from ..storage import ArtifactStore, Database, ProjectStore, RunStore
from ..storage.project_store import AGENTS_DIR, CONTEXT_DIR
from .builder import WorkflowBuilder
from .context import ContextBuilder
from .model_client import ExecutionOptions, ModelClient
from .runner import StepCallback, StepRunner
from .scheduler import WorkflowScheduler

logger = logging.getLogger(__name__)


async def create_project(
    project_store: ProjectStore,
    config: ProjectConfig,
    agents: list[AgentSpec],
    pattern_type: PatternType | str = PatternType.SEQUENTIAL,
    overwrite: bool = False,
) -> Path:
    """
    Create a project directory with its team and a freshly built workflow.
    
    Raises:
        WorkflowValidationError: If the workflow cannot be built
        ProjectExistsError: If the project exists and overwrite is False
    """
    graph = WorkflowBuilder().build(agents, config.phases, pattern_type)
    path = await project_store.create(config, agents, overwrite=overwrite)
    
    scheduler = WorkflowScheduler(graph)
    await project_store.save_workflow(path, scheduler.to_document())
    await project_store.save_state(path, {
        "projectName": config.project_name,
        "patternType": graph.pattern_type.value,
        "createdAt": datetime.now(timezone.utc).isoformat(),
        "progress": scheduler.progress().model_dump(),
    })
    return path


class ProjectPipeline:
    """
    Runs the workflow of one project directory.
    
    Manages:
    - Loading the project config, workflow and artifact store
    - Running the workflow through a StepRunner
    - Persisting step statuses after every step, so a run can be resumed
    - Recording run history when a database is given
    - Event callbacks (``step_completed``, ``run_completed``)
    
    Usage:
        pipeline = ProjectPipeline("projects/my-project")
        await pipeline.open()
        report = await pipeline.run(PlaceholderModelClient())
    """
    
    def __init__(
        self,
        project_path: Path | str,
        project_store: Optional[ProjectStore] = None,
        database: Optional[Database] = None,
    ):
        self.project_path = Path(project_path)
        self.project_store = project_store or ProjectStore(self.project_path.parent)
        self.database = database
        
        self.config: Optional[ProjectConfig] = None
        self.artifact_store: Optional[ArtifactStore] = None
        self.scheduler: Optional[WorkflowScheduler] = None
        self.runner: Optional[StepRunner] = None
        self.run_store: Optional[RunStore] = None
        
        self._callbacks: dict[str, list[Callable]] = {
            "step_completed": [],
            "run_completed": [],
        }
    
    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------
    
    async def open(self) -> None:
        """
        Load the project.
        
        Raises:
            ValueError: If the project has no config or no workflow
        """
        self.config = await self.project_store.load_config(self.project_path)
        if not self.config:
            raise ValueError(f"No project found at {self.project_path}")
        
        document = await self.project_store.load_workflow(self.project_path)
        if not document:
            raise ValueError(f"Project {self.config.project_name} has no workflow")
        
        self.scheduler = WorkflowScheduler.from_document(document)
        # A step still in progress was interrupted by a crash
        self.scheduler.reset(StepStatus.IN_PROGRESS)
        
        self.artifact_store = await ArtifactStore.open(self.project_path / CONTEXT_DIR)
        self.runner = StepRunner(
            self.artifact_store,
            ContextBuilder(self.project_path / AGENTS_DIR, self.artifact_store, self.config),
        )
        
        if self.database:
            if not self.database.is_connected:
                await self.database.connect()
            self.run_store = RunStore(self.database)
        
        logger.info(
            f"Opened project {self.config.project_name}: "
            f"{self.scheduler.progress().percentage}% complete"
        )
    
    def _ensure_open(self) -> None:
        if self.scheduler is None or self.runner is None:
            raise RuntimeError("Pipeline not opened")
    
    # -------------------------------------------------------------------------
    # Running
    # -------------------------------------------------------------------------
    
    async def run(
        self,
        client: ModelClient,
        options: Optional[ExecutionOptions] = None,
        max_steps: Optional[int] = None,
        continue_on_failure: bool = False,
        retry_failed: bool = False,
        on_step_complete: Optional[StepCallback] = None,
    ) -> RunReport:
        """
        Run the project's workflow until it completes, stalls, fails or pauses.
        
        Args:
            client: Model client to execute steps with
            options: Passed through to the client
            max_steps: Pause after this many steps
            continue_on_failure: Keep running independent steps after a failure
            retry_failed: Put failed steps back to pending before running
            on_step_complete: Awaited after each step; returning False pauses
        """
        self._ensure_open()
        
        if retry_failed:
            self.scheduler.reset(StepStatus.FAILED)
        
        run_id = None
        if self.run_store:
            record = await self.run_store.start_run(
                self.config.project_name,
                self.scheduler.graph.pattern_type.value,
            )
            run_id = record.id
        
        position = 0
        
        async def step_done(result: ExecutionResult, progress: Progress) -> Optional[bool]:
            nonlocal position
            await self.save()
            if run_id:
                await self.run_store.record_result(run_id, position, result)
            position += 1
            
            await self._emit("step_completed", result, progress)
            if on_step_complete:
                return await on_step_complete(result, progress)
            return None
        
        report = await self.runner.run_to_completion(
            self.scheduler,
            client,
            options,
            max_steps=max_steps,
            continue_on_failure=continue_on_failure,
            on_step_complete=step_done,
        )
        
        await self.save()
        await self.project_store.save_state(self.project_path, {
            "projectName": self.config.project_name,
            "patternType": self.scheduler.graph.pattern_type.value,
            "lastRun": {
                "id": run_id,
                "outcome": report.outcome.value,
                "finishedAt": datetime.now(timezone.utc).isoformat(),
                "stats": report.stats.model_dump(),
            },
            "progress": report.progress.model_dump(),
        })
        if run_id:
            await self.run_store.finish_run(run_id, report)
        
        await self._emit("run_completed", report)
        return report
    
    async def save(self) -> None:
        """Persist the workflow with its current step statuses."""
        self._ensure_open()
        await self.project_store.save_workflow(
            self.project_path, self.scheduler.to_document()
        )
    
    def progress(self) -> Progress:
        self._ensure_open()
        return self.scheduler.progress()
    
    # -------------------------------------------------------------------------
    # Callbacks
    # -------------------------------------------------------------------------
    
    def on(self, event: str, callback: Callable[..., Awaitable[None]]) -> None:
        """Register an event callback."""
        if event in self._callbacks:
            self._callbacks[event].append(callback)
    
    def off(self, event: str, callback: Callable) -> None:
        """Unregister an event callback."""
        if event in self._callbacks and callback in self._callbacks[event]:
            self._callbacks[event].remove(callback)
    
    async def _emit(self, event: str, *args) -> None:
        """Emit an event to all registered callbacks."""
        for callback in self._callbacks.get(event, []):
            try:
                await callback(*args)
            except Exception as e:
                logger.error(f"Error in callback for event '{event}': {e}")
