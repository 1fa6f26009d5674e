"""Command line interface for TeamFlow."""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Optional

import uvicorn

from .config import (
    Settings,
    create_model_client,
    load_project_file,
    load_settings,
    write_example_config,
)
from .engine import ExecutionOptions, ProjectPipeline, create_project
from .models import ExecutionResult, Progress, RunOutcome
from .storage import Database, ProjectStore
from .team import compose_team, load_capability_names

logger = logging.getLogger(__name__)


async def cmd_list(args, settings: Settings) -> int:
    store = ProjectStore(settings.projects_dir)
    projects = await store.list_projects()
    if not projects:
        print(f"No projects in {settings.projects_dir}")
        return 0
    
    for path, config in projects:
        print(f"{path.name:30} {config.project_type:20} phases: {', '.join(config.phases)}")
    return 0


async def cmd_create_project(args, settings: Settings) -> int:
    project_file = load_project_file(args.project_file)
    pattern = args.pattern or project_file.pattern
    
    agents = project_file.agents
    if agents is None:
        available = load_capability_names(args.capabilities) if args.capabilities else None
        team = compose_team(project_file.project, available)
        agents = team.agents
        for gap in team.gaps:
            print(f"  gap: {gap}")
        for recommendation in team.recommendations:
            print(f"  recommendation: {recommendation}")
    
    store = ProjectStore(settings.projects_dir)
    path = await create_project(
        store, project_file.project, agents, pattern, overwrite=args.force
    )
    
    print(f"Created project at {path}")
    for agent in agents:
        print(f"  {agent.id}  {agent.name:25} phase: {agent.phase}")
    return 0


async def cmd_status(args, settings: Settings) -> int:
    store = ProjectStore(settings.projects_dir)
    pipeline = ProjectPipeline(store.resolve(args.project), store)
    await pipeline.open()
    
    for step in pipeline.scheduler.graph.steps:
        status = pipeline.scheduler.status(step.id)
        print(f"  [{status.value:11}] {step.id:40} {step.action}")
    
    progress = pipeline.progress()
    print(
        f"\n{progress.completed}/{progress.total} steps completed "
        f"({progress.percentage}%), {progress.failed} failed"
    )
    return 0


async def cmd_run(args, settings: Settings) -> int:
    store = ProjectStore(settings.projects_dir)
    database = Database(settings.db_path)
    pipeline = ProjectPipeline(store.resolve(args.project), store, database)
    await pipeline.open()
    
    if args.dev:
        settings = settings.model_copy(update={"dev_mode": True})
    client = create_model_client(settings)
    
    async def confirm_next(result: ExecutionResult, progress: Progress) -> Optional[bool]:
        status = "ok" if result.success else f"FAILED: {result.error}"
        print(f"  {result.step_id}: {status} ({progress.percentage}%)")
        if not args.interactive or progress.pending == 0:
            return None
        answer = await asyncio.to_thread(input, "Continue with the next step? [Y/n] ")
        return answer.strip().lower() not in ("n", "no")
    
    try:
        report = await pipeline.run(
            client,
            ExecutionOptions(**settings.execution_options()),
            max_steps=args.max_steps,
            continue_on_failure=args.continue_on_failure or settings.continue_on_failure,
            retry_failed=args.retry_failed,
            on_step_complete=confirm_next,
        )
    finally:
        await client.close()
        await database.close()
    
    stats = report.stats
    print(
        f"\nOutcome: {report.outcome.value}\n"
        f"Steps: {stats.successful} succeeded, {stats.failed} failed\n"
        f"Time: {stats.total_time:.2f}s (avg {stats.average_time_per_step:.2f}s)\n"
        f"Tokens: {stats.total_tokens} (avg {stats.average_tokens_per_step:.0f})\n"
        f"Progress: {report.progress.completed}/{report.progress.total} "
        f"({report.progress.percentage}%)"
    )
    return 0 if report.outcome in (RunOutcome.COMPLETED, RunOutcome.PAUSED) else 1


async def cmd_init_config(args, settings: Settings) -> int:
    path = Path(args.path)
    if path.exists() and not args.force:
        print(f"{path} already exists (use --force to overwrite)")
        return 1
    write_example_config(path)
    print(f"Wrote {path}")
    return 0


def cmd_serve(args, settings: Settings) -> int:
    if args.config:
        os.environ["TEAMFLOW_CONFIG"] = args.config
    uvicorn.run(
        "teamflow.api.server:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
    )
    return 0


COMMANDS = {
    "list": cmd_list,
    "create-project": cmd_create_project,
    "status": cmd_status,
    "run": cmd_run,
    "init-config": cmd_init_config,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="teamflow",
        description="Run software projects with a team of model-backed agents",
    )
    parser.add_argument("--config", help="Settings file (default: teamflow.yaml)")
    parser.add_argument("--log-level", default="warning", help="Log level")
    subparsers = parser.add_subparsers(dest="command", required=True)
    
    subparsers.add_parser("list", help="List projects")
    
    create = subparsers.add_parser("create-project", help="Create a project from a YAML file")
    create.add_argument("project_file", help="Project definition (YAML)")
    create.add_argument(
        "--pattern",
        choices=["sequential", "parallel", "iterative"],
        help="Override the workflow pattern",
    )
    create.add_argument("--capabilities", help="Capability library directory")
    create.add_argument(
        "--force", action="store_true",
        help="Replace an existing project of the same name, artifacts included",
    )
    
    status = subparsers.add_parser("status", help="Show a project's workflow status")
    status.add_argument("project", help="Project name or directory")
    
    run = subparsers.add_parser("run", help="Run a project's workflow")
    run.add_argument("project", help="Project name or directory")
    run.add_argument("--interactive", action="store_true", help="Confirm each step")
    run.add_argument("--max-steps", type=int, help="Pause after this many steps")
    run.add_argument(
        "--continue-on-failure",
        action="store_true",
        help="Keep running independent steps after a failure",
    )
    run.add_argument("--retry-failed", action="store_true", help="Re-run failed steps")
    run.add_argument("--dev", action="store_true", help="Use the placeholder model client")
    
    init = subparsers.add_parser("init-config", help="Write an example settings file")
    init.add_argument("path", nargs="?", default="teamflow.yaml")
    init.add_argument("--force", action="store_true", help="Overwrite an existing file")
    
    serve = subparsers.add_parser("serve", help="Run the API server")
    serve.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    serve.add_argument("--port", type=int, default=8000, help="Port to bind to")
    serve.add_argument("--reload", action="store_true", help="Enable auto-reload")
    
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    
    try:
        settings = load_settings(args.config)
        if args.command == "serve":
            return cmd_serve(args, settings)
        return asyncio.run(COMMANDS[args.command](args, settings))
    except (OSError, ValueError) as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
