"""Tests for the storage layer."""

import json
import tempfile
from pathlib import Path

import pytest

from teamflow.models import (
    AgentSpec,
    ExecutionResult,
    ExecutionStats,
    PatternType,
    ProjectConfig,
    RunOutcome,
    RunReport,
    StepRecord,
    StepStatus,
    TokenUsage,
    WorkflowDocument,
)
from teamflow.storage import ArtifactStore, Database, ProjectExistsError, ProjectStore, RunStore
from teamflow.storage.files import (
    read_json_file,
    try_read_json_file,
    write_json_file,
    write_text_file,
)


@pytest.fixture
def tmp_dir():
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
async def artifact_store(tmp_dir):
    return await ArtifactStore.open(tmp_dir / "context")


@pytest.fixture
async def temp_db(tmp_dir):
    """Create a temporary database for testing."""
    db = Database(tmp_dir / "test.db")
    await db.connect()
    yield db
    await db.close()


class TestJsonFiles:
    """Tests for the durable JSON helpers."""
    
    @pytest.mark.asyncio
    async def test_write_and_read(self, tmp_dir):
        path = tmp_dir / "nested" / "doc.json"
        await write_json_file(path, {"a": [1, 2]})
        
        assert await read_json_file(path) == {"a": [1, 2]}
        assert not (tmp_dir / "nested" / "doc.json.tmp").exists()
    
    @pytest.mark.asyncio
    async def test_try_read_returns_default(self, tmp_dir):
        bad = tmp_dir / "bad.json"
        bad.write_text("{not json")
        
        assert await try_read_json_file(bad, default="x") == "x"
        assert await try_read_json_file(tmp_dir / "missing.json") is None

    @pytest.mark.asyncio
    async def test_write_text(self, tmp_dir):
        path = tmp_dir / "agents" / "agent-01.md"
        await write_text_file(path, "# Strategist\n")

        assert path.read_text(encoding="utf-8") == "# Strategist\n"


class TestArtifactStore:
    """Tests for ArtifactStore."""
    
    @pytest.mark.asyncio
    async def test_store_and_get(self, artifact_store):
        artifact = await artifact_store.store(
            "output", "Architecture", "text", "agent-01",
            tags=["design"], metadata={"stepId": "s1"},
        )
        
        assert artifact.id.startswith("output-architecture-")
        assert artifact_store.get(artifact.id) == artifact
        assert artifact.created_at == artifact.updated_at
        assert (artifact_store.context_dir / f"{artifact.id}.json").exists()
    
    @pytest.mark.asyncio
    async def test_store_never_overwrites(self, artifact_store):
        first = await artifact_store.store("output", "same", "one", "a")
        second = await artifact_store.store("output", "same", "two", "a")
        
        assert first.id != second.id
        assert len(artifact_store) == 2
        assert artifact_store.get(first.id).content == "one"
    
    @pytest.mark.asyncio
    async def test_update(self, artifact_store):
        original = await artifact_store.store(
            "output", "draft", "v1", "agent-01", tags=["t"], metadata={"a": 1},
        )
        updated = await artifact_store.update(original.id, "v2", "agent-02", {"b": 2})
        
        assert updated.id == original.id
        assert updated.content == "v2"
        assert updated.tags == ["t"]
        assert updated.created_by == "agent-01"
        assert updated.created_at == original.created_at
        assert updated.updated_at >= original.updated_at
        assert updated.metadata == {"a": 1, "b": 2, "updatedBy": "agent-02"}
        assert artifact_store.get(original.id).content == "v2"
    
    @pytest.mark.asyncio
    async def test_update_unknown(self, artifact_store):
        assert await artifact_store.update("missing", "x", "a") is None
    
    @pytest.mark.asyncio
    async def test_queries(self, artifact_store):
        a = await artifact_store.store("output", "api spec", "REST endpoints", "agent-01", tags=["api"])
        b = await artifact_store.store("decision", "db choice", {"db": "pg"}, "agent-02", tags=["api", "db"])
        c = await artifact_store.store("output", "ui", "Wireframes", "agent-02")
        
        assert artifact_store.by_type("output") == [a, c]
        assert artifact_store.by_tag("api") == [a, b]
        assert artifact_store.by_agent("agent-02") == [b, c]
        assert artifact_store.search("rest") == [a]
        assert artifact_store.search("DB") == [b]
        assert artifact_store.latest_by_tag("api") == b
        assert artifact_store.latest_by_tag("nothing") is None
    
    @pytest.mark.asyncio
    async def test_reload_from_disk(self, artifact_store):
        first = await artifact_store.store("output", "one", "1", "a")
        second = await artifact_store.store("output", "two", {"n": 2}, "b")
        
        reopened = await ArtifactStore.open(artifact_store.context_dir)
        
        assert [x.id for x in reopened.all()] == [first.id, second.id]
        assert reopened.get(second.id) == second
    
    @pytest.mark.asyncio
    async def test_corrupt_file_skipped(self, artifact_store):
        good = await artifact_store.store("output", "good", "ok", "a")
        (artifact_store.context_dir / "broken.json").write_text("{oops")
        (artifact_store.context_dir / "invalid.json").write_text(json.dumps({"id": "x"}))
        
        reopened = await ArtifactStore.open(artifact_store.context_dir)
        assert [x.id for x in reopened.all()] == [good.id]

    @pytest.mark.asyncio
    async def test_naive_timestamps_load_as_utc(self, artifact_store):
        good = await artifact_store.store("output", "good", "ok", "a", tags=["draft"])
        (artifact_store.context_dir / "hand.json").write_text(json.dumps({
            "id": "hand",
            "type": "output",
            "name": "hand",
            "content": "written by hand",
            "createdBy": "someone",
            "createdAt": "2024-01-01T00:00:00",
            "updatedAt": "2024-01-01T00:00:00",
            "tags": ["draft"],
        }))

        reopened = await ArtifactStore.open(artifact_store.context_dir)

        assert [x.id for x in reopened.all()] == ["hand", good.id]
        assert reopened.get("hand").created_at.tzinfo is not None
        assert reopened.latest_by_tag("draft").id == good.id

    @pytest.mark.asyncio
    async def test_clear(self, artifact_store):
        await artifact_store.store("output", "one", "1", "a")
        await artifact_store.store("output", "two", "2", "a")
        
        assert await artifact_store.clear() == 2
        assert len(artifact_store) == 0
        assert list(artifact_store.context_dir.glob("*.json")) == []
    
    @pytest.mark.asyncio
    async def test_summary(self, artifact_store):
        await artifact_store.store("output", "one", "1", "agent-01")
        await artifact_store.store("output", "two", "2", "agent-02")
        last = await artifact_store.store("decision", "three", "3", "agent-01")
        
        summary = artifact_store.summary(recent=2)
        
        assert summary["total_artifacts"] == 3
        assert summary["artifacts_by_type"] == {"output": 2, "decision": 1}
        assert summary["artifacts_by_agent"] == {"agent-01": 2, "agent-02": 1}
        assert len(summary["recent_artifacts"]) == 2
        assert summary["recent_artifacts"][0].id == last.id
    
    def test_use_before_load(self, tmp_dir):
        store = ArtifactStore(tmp_dir)
        with pytest.raises(RuntimeError):
            store.all()


class TestProjectStore:
    """Tests for ProjectStore."""
    
    @pytest.fixture
    def project(self):
        return ProjectConfig(
            project_name="Online Shop",
            project_type="saas",
            phases=["conception", "development"],
        )
    
    @pytest.fixture
    def agents(self):
        return [
            AgentSpec(id="agent-01", name="Strategist", phase="conception"),
            AgentSpec(id="agent-02", name="Developer", phase="development"),
        ]
    
    @pytest.mark.asyncio
    async def test_create_layout(self, tmp_dir, project, agents):
        store = ProjectStore(tmp_dir)
        path = await store.create(project, agents)
        
        assert path == tmp_dir / "online-shop"
        for subdir in ("context", "agents", "outputs"):
            assert (path / subdir).is_dir()
        assert (path / "agents" / "agent-01.md").read_text().startswith("# Strategist")
        
        data = json.loads((path / "project-config.json").read_text())
        assert data["projectName"] == "Online Shop"
    
    @pytest.mark.asyncio
    async def test_create_refuses_existing_project(self, tmp_dir, project, agents):
        store = ProjectStore(tmp_dir)
        path = await store.create(project, agents)
        (path / "context" / "old.json").write_text("{}")
        
        with pytest.raises(ProjectExistsError):
            await store.create(project, agents[:1])
        assert await store.load_team(path) == agents
        
        await store.create(project, agents[:1], overwrite=True)
        assert await store.load_team(path) == agents[:1]
        assert not (path / "context" / "old.json").exists()
        assert not (path / "agents" / "agent-02.md").exists()
    
    @pytest.mark.asyncio
    async def test_load_config_and_team(self, tmp_dir, project, agents):
        store = ProjectStore(tmp_dir)
        path = await store.create(project, agents)
        
        assert await store.load_config(path) == project
        assert await store.load_team(path) == agents
    
    @pytest.mark.asyncio
    async def test_list_projects(self, tmp_dir, project, agents):
        store = ProjectStore(tmp_dir)
        await store.create(project, agents)
        (tmp_dir / "not-a-project").mkdir()
        
        projects = await store.list_projects()
        assert [config.project_name for _, config in projects] == ["Online Shop"]
    
    @pytest.mark.asyncio
    async def test_list_projects_missing_dir(self, tmp_dir):
        assert await ProjectStore(tmp_dir / "nope").list_projects() == []
    
    @pytest.mark.asyncio
    async def test_workflow_round_trip(self, tmp_dir, project, agents):
        store = ProjectStore(tmp_dir)
        path = await store.create(project, agents)
        document = WorkflowDocument(
            pattern_type=PatternType.SEQUENTIAL,
            steps=[StepRecord(id="s1", agent_id="agent-01", status=StepStatus.COMPLETED)],
        )
        
        await store.save_workflow(path, document)
        assert await store.load_workflow(path) == document
    
    @pytest.mark.asyncio
    async def test_missing_documents(self, tmp_dir):
        store = ProjectStore(tmp_dir)
        assert await store.load_config(tmp_dir / "x") is None
        assert await store.load_workflow(tmp_dir / "x") is None
        assert await store.load_state(tmp_dir / "x") is None
    
    @pytest.mark.asyncio
    async def test_state(self, tmp_dir, project, agents):
        store = ProjectStore(tmp_dir)
        path = await store.create(project, agents)
        await store.save_state(path, {"progress": 50})
        assert await store.load_state(path) == {"progress": 50}
    
    @pytest.mark.asyncio
    async def test_resolve(self, tmp_dir, project, agents):
        store = ProjectStore(tmp_dir)
        path = await store.create(project, agents)
        
        assert store.resolve("Online Shop") == path
        assert store.resolve("online-shop") == path
        assert store.resolve(str(path)) == path


class TestRunStore:
    """Tests for RunStore."""
    
    @pytest.mark.asyncio
    async def test_record_run(self, temp_db):
        runs = RunStore(temp_db)
        run = await runs.start_run("Shop", "sequential")
        
        ok = ExecutionResult.succeeded(
            "s1", "agent-01", "output text", 1.0, TokenUsage(input=3, output=4), "art-1",
        )
        bad = ExecutionResult.failed("s2", "agent-02", "boom", 0.5, traceback="tb")
        await runs.record_result(run.id, 0, ok)
        await runs.record_result(run.id, 1, bad)
        
        report = RunReport(
            outcome=RunOutcome.FAILED,
            results=[ok, bad],
            stats=ExecutionStats.from_results([ok, bad]),
        )
        await runs.finish_run(run.id, report)
        
        stored = await runs.get_run(run.id)
        assert stored.outcome == RunOutcome.FAILED
        assert stored.stats.total_steps == 2
        assert stored.stats.total_tokens == 7
        assert stored.finished_at is not None
        
        results = await runs.get_results(run.id)
        assert [r.step_id for r in results] == ["s1", "s2"]
        assert results[0].output == "output text"
        assert results[0].tokens_used == TokenUsage(input=3, output=4)
        assert results[1].error == "boom"
        assert results[1].error_traceback == "tb"
    
    @pytest.mark.asyncio
    async def test_list_and_delete(self, temp_db):
        runs = RunStore(temp_db)
        first = await runs.start_run("Shop")
        await runs.start_run("Other")
        
        assert [r.id for r in await runs.list_runs(project="Shop")] == [first.id]
        assert len(await runs.list_runs()) == 2
        
        assert await runs.delete_run(first.id)
        assert await runs.get_run(first.id) is None
