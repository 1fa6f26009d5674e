"""Run history storage layer."""

from typing import Optional
from datetime import datetime
from uuid import uuid4

from .database import Database, serialize_json, deserialize_json
from ..models import (
    ExecutionResult,
    ExecutionStats,
    RunRecord,
    RunReport,
    TokenUsage,
)
from ..models.artifact import utcnow


class RunStore:
    """
    Persistent history of workflow runs.
    
    Records every run of a project and each step result produced during it,
    so that execution statistics survive the process.
    """
    
    def __init__(self, database: Database):
        self.db = database
    
    async def start_run(self, project: str, pattern_type: Optional[str] = None) -> RunRecord:
        """Record the start of a run."""
        run = RunRecord(
            id=str(uuid4()),
            project=project,
            pattern_type=pattern_type,
            started_at=utcnow(),
        )
        await self.db.execute(
            "INSERT INTO runs (id, project, pattern_type, started_at) VALUES (?, ?, ?, ?)",
            (run.id, run.project, run.pattern_type, run.started_at.isoformat()),
        )
        return run
    
    async def record_result(
        self,
        run_id: str,
        position: int,
        result: ExecutionResult,
    ) -> None:
        """Append one step result to a run."""
        sql = """
        INSERT INTO step_results (
            run_id, position, step_id, agent_id, success, output, error,
            error_traceback, execution_time, tokens_input, tokens_output, artifact_id
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """
        tokens = result.tokens_used
        
        await self.db.execute(sql, (
            run_id,
            position,
            result.step_id,
            result.agent_id,
            1 if result.success else 0,
            serialize_json(result.output) if result.output is not None else None,
            result.error,
            result.error_traceback,
            result.execution_time,
            tokens.input if tokens else None,
            tokens.output if tokens else None,
            result.artifact_id,
        ))
    
    async def finish_run(self, run_id: str, report: RunReport) -> None:
        """Record the outcome and statistics of a finished run."""
        stats = report.stats
        await self.db.execute(
            """
            UPDATE runs
            SET outcome = ?, total_steps = ?, successful = ?, failed = ?,
                total_time = ?, total_tokens = ?, finished_at = ?
            WHERE id = ?
            """,
            (
                report.outcome.value,
                stats.total_steps,
                stats.successful,
                stats.failed,
                stats.total_time,
                stats.total_tokens,
                utcnow().isoformat(),
                run_id,
            ),
        )
    
    async def get_run(self, run_id: str) -> Optional[RunRecord]:
        """Get a run by ID."""
        row = await self.db.fetch_one("SELECT * FROM runs WHERE id = ?", (run_id,))
        if row:
            return self._row_to_run(row)
        return None
    
    async def list_runs(self, project: Optional[str] = None, limit: int = 50) -> list[RunRecord]:
        """List runs, newest first."""
        sql = "SELECT * FROM runs"
        params: list = []
        
        if project:
            sql += " WHERE project = ?"
            params.append(project)
        
        sql += " ORDER BY started_at DESC LIMIT ?"
        params.append(limit)
        
        rows = await self.db.fetch_all(sql, tuple(params))
        return [self._row_to_run(row) for row in rows]
    
    async def get_results(self, run_id: str) -> list[ExecutionResult]:
        """Get the step results of a run in execution order."""
        rows = await self.db.fetch_all(
            "SELECT * FROM step_results WHERE run_id = ? ORDER BY position ASC",
            (run_id,),
        )
        return [self._row_to_result(row) for row in rows]
    
    async def delete_run(self, run_id: str) -> bool:
        """Delete a run and its results. Returns True if deleted."""
        cursor = await self.db.execute("DELETE FROM runs WHERE id = ?", (run_id,))
        return cursor.rowcount > 0
    
    def _row_to_run(self, row: dict) -> RunRecord:
        """Convert a database row to a RunRecord."""
        def parse_datetime(val):
            if val:
                return datetime.fromisoformat(val)
            return None
        
        total_steps = row.get("total_steps") or 0
        total_time = row.get("total_time") or 0.0
        total_tokens = row.get("total_tokens") or 0
        
        return RunRecord(
            id=row["id"],
            project=row["project"],
            pattern_type=row.get("pattern_type"),
            outcome=row.get("outcome"),
            stats=ExecutionStats(
                total_steps=total_steps,
                successful=row.get("successful") or 0,
                failed=row.get("failed") or 0,
                total_time=total_time,
                total_tokens=total_tokens,
                average_time_per_step=total_time / total_steps if total_steps else 0.0,
                average_tokens_per_step=total_tokens / total_steps if total_steps else 0.0,
            ),
            started_at=parse_datetime(row["started_at"]),
            finished_at=parse_datetime(row.get("finished_at")),
        )
    
    def _row_to_result(self, row: dict) -> ExecutionResult:
        """Convert a database row to an ExecutionResult."""
        tokens = None
        if row.get("tokens_input") is not None or row.get("tokens_output") is not None:
            tokens = TokenUsage(
                input=row.get("tokens_input") or 0,
                output=row.get("tokens_output") or 0,
            )
        
        return ExecutionResult(
            step_id=row["step_id"],
            agent_id=row["agent_id"],
            success=bool(row["success"]),
            output=deserialize_json(row.get("output")),
            error=row.get("error"),
            error_traceback=row.get("error_traceback"),
            execution_time=row.get("execution_time") or 0.0,
            tokens_used=tokens,
            artifact_id=row.get("artifact_id"),
        )
