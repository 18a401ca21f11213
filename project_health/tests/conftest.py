"""
Shared fixtures for the project health test suite.

All tests run against a frozen evaluation instant (NOW); the engine never reads
the clock itself.
"""
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from project_health.settings import HealthConfig
from project_health.snapshot.records import (
    IssueRecord,
    IssueRole,
    IssueStatus,
    MilestoneRecord,
    ProjectRecord,
    ProjectStatus,
)


NOW = datetime(2024, 3, 11, 12, 0)

_ENV_VARS = (
    "PROJECT_HEALTH_RISK_LOW",
    "PROJECT_HEALTH_RISK_MEDIUM",
    "PROJECT_HEALTH_RISK_HIGH",
    "PROJECT_HEALTH_ZERO_PROGRESS_MULTIPLIER",
    "PROJECT_HEALTH_LOG_LEVEL",
)


def days(n: float) -> timedelta:
    return timedelta(days=n)


@pytest.fixture(autouse=True)
def clean_config(monkeypatch):
    """Each test starts from the default configuration."""
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    HealthConfig.reset()
    yield
    HealthConfig.reset()


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_issue():
    """Factory de issues; por defeito um issue STARTED sem datas planeadas."""
    counter = {"n": 0}

    def _make(name="Issue", **overrides):
        counter["n"] += 1
        data = dict(
            issue_id=f"I{counter['n']}",
            name=name,
            created_at=NOW - days(30),
            status=IssueStatus.STARTED,
        )
        data.update(overrides)
        return IssueRecord(**data)

    return _make


@pytest.fixture
def make_milestone():
    """Factory de milestones."""
    counter = {"n": 0}

    def _make(name="Milestone", **overrides):
        counter["n"] += 1
        data = dict(
            milestone_id=f"M{counter['n']}",
            name=name,
            created_at=NOW - days(30),
            status=IssueStatus.STARTED,
        )
        data.update(overrides)
        return MilestoneRecord(**data)

    return _make


@pytest.fixture
def make_project():
    """Factory de projetos: criado há 20 dias, entrega dentro de 20 dias."""

    def _make(name="Apollo", **overrides):
        data = dict(
            project_id="P1",
            name=name,
            created_at=NOW - days(20),
            due_date=NOW + days(20),
            status=ProjectStatus.STARTED,
            progress=25,
        )
        data.update(overrides)
        return ProjectRecord(**data)

    return _make


@pytest.fixture
def completed_dev_plan(make_issue):
    """Development plan already published."""
    return make_issue(
        "Development Plan",
        status=IssueStatus.COMPLETED,
        role=IssueRole.DEVELOPMENT_PLAN,
        progress=100,
        planned_start_date=NOW - days(30),
        planned_end_date=NOW - days(25),
        actual_end_date=NOW - days(26),
    )


@pytest.fixture
def open_milestones(make_milestone):
    """Milestones with outstanding story points (project stays in Building)."""
    return [make_milestone(
        "Milestone 1",
        story_point=10,
        completed_story_point=5,
        progress=50,
        planned_start_date=NOW - days(5),
        planned_end_date=NOW + days(5),
    )]


@pytest.fixture
def test_client():
    """Cliente de teste FastAPI."""
    from project_health.api import app
    return TestClient(app)
