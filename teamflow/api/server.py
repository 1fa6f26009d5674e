"""FastAPI server exposing projects, workflows and artifacts."""

from typing import Optional, Any
from contextlib import asynccontextmanager
import asyncio
import logging

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
import uvicorn

from ..config import Settings, create_model_client, load_settings
from ..engine import (
    ExecutionOptions,
    ProjectPipeline,
    WorkflowScheduler,
    WorkflowValidationError,
    create_project,
)
from ..models import AgentSpec, Artifact, PatternType, ProjectConfig
from ..storage import ArtifactStore, Database, ProjectExistsError, ProjectStore, RunStore
from ..storage.project_store import CONTEXT_DIR
from ..team import compose_team

logger = logging.getLogger(__name__)


# -------------------------------------------------------------------------
# Request/Response Models
# -------------------------------------------------------------------------

class CreateProjectRequest(BaseModel):
    """Request to create a new project."""
    project: ProjectConfig
    pattern: PatternType = PatternType.SEQUENTIAL
    agents: Optional[list[AgentSpec]] = None
    overwrite: bool = False


class RunRequest(BaseModel):
    """Request to run a project's workflow."""
    max_steps: Optional[int] = None
    continue_on_failure: Optional[bool] = None
    retry_failed: bool = False


class ProjectResponse(BaseModel):
    """Project summary."""
    name: str
    path: str
    project_type: str
    phases: list[str]
    progress: Optional[dict] = None


# -------------------------------------------------------------------------
# App Lifecycle
# -------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings: Settings = app.state.settings
    
    logger.info("Starting TeamFlow API server...")
    app.state.project_store = ProjectStore(settings.projects_dir)
    app.state.database = Database(settings.db_path)
    await app.state.database.connect()
    app.state.run_store = RunStore(app.state.database)
    app.state.run_lock = asyncio.Lock()
    
    yield
    
    logger.info("Shutting down TeamFlow API server...")
    await app.state.database.close()


# -------------------------------------------------------------------------
# App Factory
# -------------------------------------------------------------------------

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create the FastAPI application."""
    app = FastAPI(
        title="TeamFlow API",
        description="API for running agent team workflows",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings or load_settings()
    
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    
    async def resolve_project(request: Request, name: str):
        store: ProjectStore = request.app.state.project_store
        path = store.project_path(name)
        config = await store.load_config(path)
        if not config:
            raise HTTPException(status_code=404, detail="Project not found")
        return path, config
    
    # -------------------------------------------------------------------------
    # Health Check
    # -------------------------------------------------------------------------
    
    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}
    
    # -------------------------------------------------------------------------
    # Project Endpoints
    # -------------------------------------------------------------------------
    
    @app.get("/api/projects", response_model=list[ProjectResponse])
    async def list_projects(request: Request):
        """List all projects."""
        store: ProjectStore = request.app.state.project_store
        projects = []
        for path, config in await store.list_projects():
            document = await store.load_workflow(path)
            progress = None
            if document:
                progress = WorkflowScheduler.from_document(document).progress().model_dump()
            projects.append(ProjectResponse(
                name=path.name,
                path=str(path),
                project_type=config.project_type,
                phases=config.phases,
                progress=progress,
            ))
        return projects
    
    @app.post("/api/projects", status_code=201)
    async def create_project_endpoint(request: Request, body: CreateProjectRequest):
        """Create a project, composing a team when none is given."""
        store: ProjectStore = request.app.state.project_store
        
        gaps: list[str] = []
        recommendations: list[str] = []
        agents = body.agents
        if agents is None:
            team = compose_team(body.project)
            agents = team.agents
            gaps = team.gaps
            recommendations = team.recommendations
        
        try:
            path = await create_project(
                store, body.project, agents, body.pattern, overwrite=body.overwrite
            )
        except WorkflowValidationError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except ProjectExistsError as e:
            raise HTTPException(status_code=409, detail=str(e))
        
        return {
            "name": path.name,
            "path": str(path),
            "agents": [a.model_dump() for a in agents],
            "gaps": gaps,
            "recommendations": recommendations,
        }
    
    @app.get("/api/projects/{name}/workflow")
    async def get_workflow(request: Request, name: str):
        """Get the workflow with step statuses and progress."""
        path, _ = await resolve_project(request, name)
        pipeline = ProjectPipeline(path, request.app.state.project_store)
        try:
            await pipeline.open()
        except ValueError as e:
            raise HTTPException(status_code=404, detail=str(e))
        
        return {
            "workflow": pipeline.scheduler.to_document().to_json_dict(),
            "eligible": [s.id for s in pipeline.scheduler.eligible_steps()],
            "progress": pipeline.progress().model_dump(),
        }
    
    @app.post("/api/projects/{name}/run")
    async def run_project(request: Request, name: str, body: Optional[RunRequest] = None):
        """Run the project's workflow until it completes, stalls, fails or pauses."""
        body = body or RunRequest()
        state = request.app.state
        settings: Settings = state.settings
        path, _ = await resolve_project(request, name)
        
        if state.run_lock.locked():
            raise HTTPException(status_code=409, detail="A workflow run is already in progress")
        
        async with state.run_lock:
            pipeline = ProjectPipeline(path, state.project_store, state.database)
            try:
                await pipeline.open()
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            
            client = create_model_client(settings)
            try:
                report = await pipeline.run(
                    client,
                    ExecutionOptions(**settings.execution_options()),
                    max_steps=body.max_steps,
                    continue_on_failure=(
                        settings.continue_on_failure
                        if body.continue_on_failure is None
                        else body.continue_on_failure
                    ),
                    retry_failed=body.retry_failed,
                )
            finally:
                await client.close()
        
        return report.model_dump(mode="json")
    
    @app.get("/api/projects/{name}/artifacts")
    async def list_artifacts(
        request: Request,
        name: str,
        type: Optional[str] = Query(None, description="Filter by artifact type"),
        tag: Optional[str] = Query(None, description="Filter by tag"),
        agent: Optional[str] = Query(None, description="Filter by creating agent"),
        q: Optional[str] = Query(None, description="Search text"),
    ):
        """List a project's artifacts, optionally filtered."""
        path, _ = await resolve_project(request, name)
        store = await ArtifactStore.open(path / CONTEXT_DIR)
        
        selections = []
        if type:
            selections.append(store.by_type(type))
        if tag:
            selections.append(store.by_tag(tag))
        if agent:
            selections.append(store.by_agent(agent))
        if q:
            selections.append(store.search(q))

        # Filters combine; store order is kept
        artifacts = store.all()
        for selection in selections:
            selected = {a.id for a in selection}
            artifacts = [a for a in artifacts if a.id in selected]

        return [_artifact_to_response(a) for a in artifacts]
    
    @app.get("/api/projects/{name}/summary")
    async def get_summary(request: Request, name: str):
        """Summarize a project's knowledge base."""
        path, _ = await resolve_project(request, name)
        store = await ArtifactStore.open(path / CONTEXT_DIR)
        summary = store.summary()
        summary["recent_artifacts"] = [
            {"id": a.id, "type": a.type, "name": a.name, "createdBy": a.created_by}
            for a in summary["recent_artifacts"]
        ]
        return summary
    
    @app.get("/api/projects/{name}/runs")
    async def list_runs(
        request: Request,
        name: str,
        limit: int = Query(50, ge=1, le=1000),
    ):
        """List recorded runs of a project."""
        _, config = await resolve_project(request, name)
        run_store: RunStore = request.app.state.run_store
        runs = await run_store.list_runs(project=config.project_name, limit=limit)
        return [r.model_dump(mode="json") for r in runs]
    
    return app


def _artifact_to_response(artifact: Artifact) -> dict[str, Any]:
    """Convert an artifact to its persisted JSON shape."""
    return artifact.to_document()


def main():
    """Run the API server."""
    import argparse
    
    parser = argparse.ArgumentParser(description="TeamFlow API Server")
    parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload")
    parser.add_argument("--log-level", default="info", help="Log level")
    args = parser.parse_args()
    
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    
    uvicorn.run(
        "teamflow.api.server:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
    )


if __name__ == "__main__":
    main()
