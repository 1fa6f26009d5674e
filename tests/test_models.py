"""Tests for data models."""

import pytest
from datetime import datetime, timezone
from pydantic import ValidationError

from teamflow.models import (
    AgentSpec,
    Artifact,
    ExecutionResult,
    ExecutionStats,
    PatternType,
    ProjectConfig,
    RunOutcome,
    RunReport,
    Step,
    StepRecord,
    StepStatus,
    TokenUsage,
    WorkflowDocument,
    WorkflowGraph,
    generate_artifact_id,
    slugify,
)


class TestStep:
    """Tests for the Step model."""
    
    def test_create_step(self):
        step = Step(id="s1", agent_id="agent-01", action="Design", inputs=["a"], outputs=["b"])
        
        assert step.agent_id == "agent-01"
        assert step.inputs == ("a",)
        assert step.outputs == ("b",)
    
    def test_accepts_camel_case(self):
        step = Step.model_validate({"id": "s1", "agentId": "agent-01"})
        assert step.agent_id == "agent-01"
    
    def test_step_is_immutable(self):
        step = Step(id="s1", agent_id="agent-01")
        with pytest.raises(ValidationError):
            step.action = "changed"
    
    def test_step_has_no_status(self):
        """Status belongs to the scheduler, not the step."""
        assert "status" not in Step.model_fields
        assert StepRecord(id="s1", agent_id="a").status == StepStatus.PENDING


class TestWorkflowGraph:
    """Tests for the WorkflowGraph model."""
    
    @pytest.fixture
    def graph(self):
        return WorkflowGraph(
            pattern_type=PatternType.PARALLEL,
            steps=[
                Step(id="a", agent_id="x"),
                Step(id="b", agent_id="y"),
                Step(id="c", agent_id="z"),
            ],
            dependencies={"c": ["a", "b"]},
        )
    
    def test_lookups(self, graph):
        assert graph.get_step("b").agent_id == "y"
        assert graph.get_step("missing") is None
        assert graph.get_dependencies("c") == ["a", "b"]
        assert graph.get_dependencies("a") == []
        assert graph.get_dependents("a") == ["c"]
    
    def test_counts(self, graph):
        assert len(graph) == 3
        assert graph.edge_count == 2
        assert graph.step_ids == ["a", "b", "c"]


class TestWorkflowDocument:
    """Tests for the persisted workflow format."""
    
    def test_json_uses_persisted_field_names(self):
        document = WorkflowDocument(
            pattern_type=PatternType.SEQUENTIAL,
            steps=[StepRecord(id="s1", agent_id="a", status=StepStatus.IN_PROGRESS)],
        )
        data = document.to_json_dict()
        
        assert data["type"] == "sequential"
        assert data["steps"][0]["agentId"] == "a"
        assert data["steps"][0]["status"] == "in-progress"
        assert data["steps"][0]["inputs"] == []
    
    def test_round_trip_keeps_status(self):
        document = WorkflowDocument(
            pattern_type=PatternType.ITERATIVE,
            steps=[
                StepRecord(id="s1", agent_id="a", outputs=["o"], status=StepStatus.COMPLETED),
                StepRecord(id="s2", agent_id="b", inputs=["o"], status=StepStatus.FAILED),
            ],
            dependencies={"s2": ["s1"]},
        )
        
        restored = WorkflowDocument.model_validate(document.to_json_dict())
        
        assert restored == document
        assert restored.statuses == {"s1": StepStatus.COMPLETED, "s2": StepStatus.FAILED}
        assert restored.to_graph().get_step("s2").inputs == ("o",)


class TestArtifact:
    """Tests for the Artifact model."""
    
    def test_slugify(self):
        assert slugify("System Architecture v2!") == "system-architecture-v2"
        assert slugify("***") == "artifact"
    
    def test_generate_id(self):
        created = datetime(2024, 1, 1, tzinfo=timezone.utc)
        artifact_id = generate_artifact_id("output", "Agent 01 Output", created)
        assert artifact_id == f"output-agent-01-output-{int(created.timestamp() * 1000)}"
    
    def test_tags_are_deduplicated(self):
        artifact = Artifact(
            id="a1", type="output", name="n", created_by="agent",
            tags=["x", "y", "x"],
        )
        assert artifact.tags == ["x", "y"]
    
    def test_matches(self):
        artifact = Artifact(
            id="a1", type="output", name="Design Notes", created_by="agent",
            content="Uses PostgreSQL", tags=["architecture"],
        )
        assert artifact.matches("design")
        assert artifact.matches("OUTPUT")
        assert artifact.matches("archi")
        assert artifact.matches("postgresql")
        assert not artifact.matches("mongodb")
    
    def test_structured_content_not_searched(self):
        artifact = Artifact(
            id="a1", type="output", name="n", created_by="agent",
            content={"db": "postgres"},
        )
        assert not artifact.matches("postgres")
        assert '"db": "postgres"' in artifact.content_as_text()
    
    def test_document_round_trip(self):
        artifact = Artifact(
            id="a1", type="output", name="n", created_by="agent",
            content={"k": [1, 2]}, tags=["t"], metadata={"stepId": "s1"},
        )
        data = artifact.to_document()
        
        assert data["createdBy"] == "agent"
        assert isinstance(data["createdAt"], str)
        
        restored = Artifact.from_document(data)
        assert restored == artifact
        assert isinstance(restored.created_at, datetime)


class TestExecutionResult:
    """Tests for results and statistics."""
    
    def test_succeeded_and_failed(self):
        ok = ExecutionResult.succeeded("s1", "a", "out", 1.5, TokenUsage(input=10, output=5))
        bad = ExecutionResult.failed("s2", "b", "boom", 0.5)
        
        assert ok.success and ok.output == "out" and ok.error is None
        assert ok.total_tokens == 15
        assert not bad.success and bad.output is None and bad.error == "boom"
        assert bad.total_tokens == 0
    
    def test_stats(self):
        stats = ExecutionStats.from_results([
            ExecutionResult.succeeded("s1", "a", "out", 2.0, TokenUsage(input=10, output=10)),
            ExecutionResult.failed("s2", "b", "boom", 1.0),
        ])
        
        assert stats.total_steps == 2
        assert stats.successful == 1
        assert stats.failed == 1
        assert stats.total_time == 3.0
        assert stats.total_tokens == 20
        assert stats.average_time_per_step == 1.5
        assert stats.average_tokens_per_step == 10
    
    def test_stats_empty(self):
        stats = ExecutionStats.from_results([])
        assert stats.total_steps == 0
        assert stats.average_time_per_step == 0.0
        assert stats.average_tokens_per_step == 0.0
    
    def test_report_success(self):
        assert RunReport(outcome=RunOutcome.COMPLETED).success
        assert not RunReport(outcome=RunOutcome.STALLED).success


class TestProject:
    """Tests for project and agent models."""
    
    def test_project_config_aliases(self):
        config = ProjectConfig.model_validate({
            "projectName": "Shop",
            "projectType": "saas",
            "requiredCapabilities": ["api-design"],
            "phases": ["conception"],
        })
        assert config.project_name == "Shop"
        assert config.model_dump(by_alias=True)["requiredCapabilities"] == ["api-design"]
    
    def test_render_prompt(self):
        agent = AgentSpec(
            id="agent-01", name="Solution Architect", phase="technical-design",
            capabilities=["api-design"], context="saas",
        )
        prompt = agent.render_prompt(ProjectConfig(project_name="Shop"))
        
        assert prompt.startswith("# Solution Architect")
        assert "**Agent ID:** agent-01" in prompt
        assert "- api-design" in prompt
        assert "Shop" in prompt
    
    def test_all_phases(self):
        assert AgentSpec(id="a", name="A").works_all_phases
        assert not AgentSpec(id="a", name="A", phase="development").works_all_phases
