"""Tests for the HTTP API."""

import tempfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from teamflow.api import create_app
from teamflow.config import Settings


PROJECT = {
    "projectName": "Online Shop",
    "projectType": "saas",
    "phases": ["conception", "development"],
    "requiredCapabilities": ["business-modeling", "backend-development"],
}


@pytest.fixture
def client():
    with tempfile.TemporaryDirectory() as tmpdir:
        settings = Settings(
            projects_dir=Path(tmpdir) / "projects",
            db_path=Path(tmpdir) / "teamflow.db",
            dev_mode=True,
        )
        with TestClient(create_app(settings)) as test_client:
            yield test_client


@pytest.fixture
def project_name(client):
    response = client.post("/api/projects", json={"project": PROJECT, "pattern": "parallel"})
    assert response.status_code == 201
    return response.json()["name"]


class TestProjects:
    """Tests for project endpoints."""
    
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}
    
    def test_create_composes_team(self, client):
        response = client.post("/api/projects", json={"project": PROJECT})
        
        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "online-shop"
        assert [a["name"] for a in data["agents"]] == ["Business Strategist", "Developer"]
    
    def test_create_with_agents(self, client):
        response = client.post("/api/projects", json={
            "project": PROJECT,
            "agents": [{"id": "solo", "name": "Solo", "phase": "all"}],
        })
        assert [a["id"] for a in response.json()["agents"]] == ["solo"]
    
    def test_create_existing_project_conflicts(self, client, project_name):
        response = client.post("/api/projects", json={"project": PROJECT})
        assert response.status_code == 409
        
        replaced = client.post("/api/projects", json={"project": PROJECT, "overwrite": True})
        assert replaced.status_code == 201
        data = client.get(f"/api/projects/{project_name}/workflow").json()
        assert data["workflow"]["type"] == "sequential"
    
    def test_list(self, client, project_name):
        projects = client.get("/api/projects").json()
        
        assert [p["name"] for p in projects] == [project_name]
        assert projects[0]["progress"]["total"] == 2
        assert projects[0]["progress"]["percentage"] == 0
    
    def test_workflow(self, client, project_name):
        data = client.get(f"/api/projects/{project_name}/workflow").json()
        
        assert data["workflow"]["type"] == "parallel"
        assert data["eligible"] == ["step-conception/agent-01"]
        assert data["progress"]["pending"] == 2
    
    def test_unknown_project(self, client):
        assert client.get("/api/projects/nope/workflow").status_code == 404
        assert client.post("/api/projects/nope/run").status_code == 404


class TestRuns:
    """Tests for running workflows over HTTP."""
    
    def test_run_to_completion(self, client, project_name):
        response = client.post(f"/api/projects/{project_name}/run")
        
        assert response.status_code == 200
        report = response.json()
        assert report["outcome"] == "completed"
        assert report["progress"]["percentage"] == 100
        assert len(report["results"]) == 2
        
        runs = client.get(f"/api/projects/{project_name}/runs").json()
        assert [r["outcome"] for r in runs] == ["completed"]
    
    def test_run_with_max_steps(self, client, project_name):
        report = client.post(
            f"/api/projects/{project_name}/run", json={"max_steps": 1}
        ).json()
        
        assert report["outcome"] == "paused"
        assert report["progress"]["completed"] == 1


class TestArtifacts:
    """Tests for artifact endpoints."""
    
    @pytest.fixture
    def ran_project(self, client, project_name):
        client.post(f"/api/projects/{project_name}/run")
        return project_name
    
    def test_list_and_filter(self, client, ran_project):
        url = f"/api/projects/{ran_project}/artifacts"
        
        everything = client.get(url).json()
        assert len(everything) == 2
        assert everything[0]["createdBy"] == "agent-01"
        
        by_agent = client.get(url, params={"agent": "agent-02"}).json()
        assert [a["createdBy"] for a in by_agent] == ["agent-02"]
        
        by_tag = client.get(url, params={"tag": "conception/agent-01-output"}).json()
        assert len(by_tag) == 1
        
        assert client.get(url, params={"type": "decision"}).json() == []
        assert len(client.get(url, params={"q": "dev mode"}).json()) == 2
        
        combined = client.get(url, params={"q": "dev mode", "agent": "agent-01"}).json()
        assert [a["createdBy"] for a in combined] == ["agent-01"]
    
    def test_summary(self, client, ran_project):
        summary = client.get(f"/api/projects/{ran_project}/summary").json()
        
        assert summary["total_artifacts"] == 2
        assert summary["artifacts_by_type"] == {"output": 2}
        assert len(summary["recent_artifacts"]) == 2
