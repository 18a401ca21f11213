"""
═══════════════════════════════════════════════════════════════════════════════
                    PROJECT HEALTH — Snapshot Composer Tests
═══════════════════════════════════════════════════════════════════════════════

End-to-end scenarios over compute_snapshot plus invariants checked on randomly
generated projects.

Run with: python -m pytest project_health/tests/test_snapshot.py -v
"""

import json
import random
from datetime import datetime, timedelta, timezone

import pytest

from project_health.settings import RiskThresholds
from project_health.snapshot.records import (
    IssueRecord,
    IssueRole,
    IssueStatus,
    MilestoneRecord,
    ProjectRecord,
    ProjectStatus,
)
from project_health.snapshot.snapshot_composer import (
    compute_overall_metrics,
    compute_snapshot,
    delivery_insight,
)
from project_health.snapshot.stage_classifier import ProjectStage


NOW = datetime(2024, 3, 11, 12, 0)
D = timedelta(days=1)

NOT_AVAILABLE = "Predicted delivery date is not available yet. Please first publish your Development Plan."


def window(elapsed_days, total_days=10):
    start = NOW - elapsed_days * D
    return dict(planned_start_date=start, planned_end_date=start + total_days * D)


# ════════════════════════════════════════════════════════════════════════════
# PROJECT METRICS
# ════════════════════════════════════════════════════════════════════════════

class TestOverallMetrics:

    def test_behind_schedule(self, make_project):
        metrics = compute_overall_metrics(make_project(progress=25), NOW, 0.0)

        assert metrics.total_time == 40
        assert metrics.past_time == 20
        assert metrics.past_time_percentage == 50
        assert metrics.velocity == 50
        assert metrics.predicted_due_date == datetime(2024, 5, 10, 12, 0)

    def test_ahead_of_schedule(self, make_project):
        metrics = compute_overall_metrics(make_project(progress=80), NOW, 0.0)
        assert metrics.velocity == 160
        assert metrics.predicted_due_date == datetime(2024, 3, 16, 12, 0)

    def test_no_progress_has_zero_velocity(self, make_project):
        metrics = compute_overall_metrics(make_project(progress=0), NOW, 0.0)
        assert metrics.velocity == 0
        # falls back to a velocity of 1%
        assert metrics.predicted_due_date == datetime(2024, 2, 20, 12, 0) + 4000 * D

    def test_no_due_date(self, make_project):
        project = make_project(due_date=None, created_at=NOW - 2 * D, progress=50)
        metrics = compute_overall_metrics(project, NOW, 0.0)

        assert metrics.total_time == 1
        assert metrics.past_time == 2
        assert metrics.past_time_percentage == 200
        assert metrics.velocity == 25
        assert metrics.to_dict()['predictedDueDate'] == "2024-03-13"

    def test_future_creation(self, make_project):
        metrics = compute_overall_metrics(make_project(created_at=NOW + 2 * D), NOW, 0.0)
        assert metrics.past_time == 0
        assert metrics.past_time_percentage == 0
        assert metrics.velocity == 0

    def test_predicted_date_overflow_is_capped(self, make_project):
        project = make_project(due_date=datetime(9000, 1, 1), progress=10)
        metrics = compute_overall_metrics(project, NOW, 0.0)
        assert metrics.predicted_due_date == datetime.max

    def test_risk_is_passed_through(self, make_project):
        assert compute_overall_metrics(make_project(), NOW, 0.42).risk_score == 0.42


# ════════════════════════════════════════════════════════════════════════════
# SCENARIOS
# ════════════════════════════════════════════════════════════════════════════

class TestSnapshotScenarios:

    def test_planning_without_development_plan(self, make_project, make_issue, open_milestones):
        snapshot = compute_snapshot(
            make_project(),
            [make_issue("Research", **window(5), progress=50)],
            open_milestones,
            NOW,
        )

        assert snapshot.stage == ProjectStage.PLANNING
        assert snapshot.building == ()
        assert snapshot.overall.insights == (
            "Project is currently in Planning phase, with Low risk score of 0%",
            NOT_AVAILABLE,
        )

    def test_building_on_track(self, make_project, completed_dev_plan, open_milestones):
        snapshot = compute_snapshot(make_project(), [completed_dev_plan], open_milestones, NOW)

        assert snapshot.stage == ProjectStage.BUILDING
        assert [e.name for e in snapshot.planning] == ["Development Plan"]
        assert [e.name for e in snapshot.building] == ["Milestone 1"]
        assert snapshot.building[0].insights == (
            "Milestone 1 has low risk score of 0%",
            "Development velocity is low at 100% of expected velocity",
        )
        assert snapshot.overall.insights == (
            "Project is currently in Building phase, with Low risk score of 0%",
            "Predicted delivery date is 05/10/2024, 39 days later than initial due date of 03/31/2024",
        )

    def test_building_ahead_of_due_date(self, make_project, completed_dev_plan, open_milestones):
        snapshot = compute_snapshot(make_project(progress=80), [completed_dev_plan], open_milestones, NOW)
        assert snapshot.overall.insights[-1] == (
            "Predicted delivery date is 03/16/2024, 16 days earlier than initial due date of 03/31/2024"
        )

    def test_building_with_risky_items(self, make_project, make_issue, make_milestone, completed_dev_plan):
        issues = [
            completed_dev_plan,
            make_issue("API", **window(5), progress=0),
            make_issue("Backend", **window(4), progress=0),
        ]
        milestones = [
            make_milestone("Milestone 2", order=2, story_point=5, **window(5), progress=0),
            make_milestone("Milestone 1", order=1, story_point=5, completed_story_point=5,
                           **window(5), progress=50),
        ]

        snapshot = compute_snapshot(make_project(), issues, milestones, NOW)

        assert snapshot.risk_score == 0.6
        assert [e.name for e in snapshot.building] == ["Milestone 1", "Milestone 2"]
        assert snapshot.overall.insights[:3] == (
            "Project is currently in Building phase, with High risk score of 60%",
            "Planner has found 1 High risk items: API(60%); and 1 Medium risk issues: Backend(48%)",
            "Builder has found 1 High risk items: Milestone 2(60%)",
        )

    def test_medium_items_alone_do_not_produce_a_planner_line(self, make_project, make_issue, completed_dev_plan,
                                                              open_milestones):
        issues = [completed_dev_plan, make_issue("Backend", **window(4), progress=0)]
        snapshot = compute_snapshot(make_project(), issues, open_milestones, NOW)

        assert snapshot.overall.insights[0] == (
            "Project is currently in Building phase, with Medium risk score of 48%"
        )
        assert len(snapshot.overall.insights) == 2

    def test_qa_has_no_building_section(self, make_project, make_milestone, completed_dev_plan):
        milestones = [make_milestone("Milestone 1", story_point=5, completed_story_point=5, **window(20), progress=0)]
        snapshot = compute_snapshot(make_project(), [completed_dev_plan], milestones, NOW)

        assert snapshot.stage == ProjectStage.QA
        assert snapshot.building == ()
        assert snapshot.risk_score == 0

    def test_done_project(self, make_project, completed_dev_plan):
        snapshot = compute_snapshot(make_project(status=ProjectStatus.COMPLETED), [completed_dev_plan], [], NOW)
        assert snapshot.stage == ProjectStage.DONE
        assert snapshot.overall.insights[0].startswith("Project is currently in Done phase")

    def test_no_progress_with_due_date(self, make_project, completed_dev_plan, open_milestones):
        snapshot = compute_snapshot(make_project(progress=0), [completed_dev_plan], open_milestones, NOW)
        assert snapshot.overall.insights[-1] == "Dev work has not started yet. Initial due date is set as 03/31/2024"

    def test_no_progress_without_due_date(self, make_project, completed_dev_plan, open_milestones):
        project = make_project(progress=0, due_date=None)
        snapshot = compute_snapshot(project, [completed_dev_plan], open_milestones, NOW)
        assert snapshot.overall.insights[-1] == "Dev work has not started yet. Initial due date is not set"

    def test_no_due_date_predicts_only(self, make_project, completed_dev_plan, open_milestones):
        project = make_project(due_date=None, created_at=NOW - 2 * D, progress=50)
        snapshot = compute_snapshot(project, [completed_dev_plan], open_milestones, NOW)
        assert snapshot.overall.insights[-1] == "Predicted delivery date is 03/13/2024"

    def test_empty_project(self, make_project):
        snapshot = compute_snapshot(make_project(), [], [], NOW)
        assert snapshot.stage == ProjectStage.PLANNING
        assert snapshot.planning == ()
        assert snapshot.risk_score == 0

    def test_explicit_thresholds(self, make_project, make_issue, completed_dev_plan, open_milestones):
        issues = [completed_dev_plan, make_issue("Backend", **window(4), progress=0)]
        thresholds = RiskThresholds(low=0.1, medium=0.2, high=0.7)

        snapshot = compute_snapshot(make_project(), issues, open_milestones, NOW, thresholds=thresholds)

        assert snapshot.overall.insights[1] == "Planner has found 1 High risk items: Backend(48%)"


class TestDeliveryInsight:

    def test_planning_wins_over_everything(self, make_project):
        metrics = compute_overall_metrics(make_project(progress=0), NOW, 0.0)
        assert delivery_insight(ProjectStage.PLANNING, metrics, None) == NOT_AVAILABLE

    def test_same_day_counts_as_earlier(self, make_project):
        project = make_project(created_at=datetime(2024, 2, 20), due_date=datetime(2024, 5, 10), progress=25)
        metrics = compute_overall_metrics(project, NOW, 0.0)
        assert delivery_insight(ProjectStage.BUILDING, metrics, project.due_date).endswith(
            "0 days earlier than initial due date of 05/10/2024"
        )


# ════════════════════════════════════════════════════════════════════════════
# INVARIANTS
# ════════════════════════════════════════════════════════════════════════════

class TestSnapshotInvariants:

    def test_deterministic(self, make_project, completed_dev_plan, open_milestones):
        first = compute_snapshot(make_project(), [completed_dev_plan], open_milestones, NOW)
        second = compute_snapshot(make_project(), [completed_dev_plan], open_milestones, NOW)
        assert first == second
        assert first.to_json() == second.to_json()

    def test_aware_now_matches_naive(self, make_project, completed_dev_plan, open_milestones):
        naive = compute_snapshot(make_project(), [completed_dev_plan], open_milestones, NOW)
        aware = compute_snapshot(
            make_project(), [completed_dev_plan], open_milestones, NOW.replace(tzinfo=timezone.utc)
        )
        assert naive == aware

    def test_serialization(self, make_project, completed_dev_plan, open_milestones):
        payload = json.loads(compute_snapshot(make_project(), [completed_dev_plan], open_milestones, NOW).to_json())

        assert set(payload) == {"overall", "planning", "building"}
        assert payload["overall"]["stage"] == "Building"
        assert payload["overall"]["metrics"]["predictedDueDate"] == "2024-05-10"
        assert payload["planning"][0]["actualEndDate"] == "2024-02-14"
        assert payload["building"][0]["metrics"]["plannedEndDate"] == "2024-03-16"

    @pytest.mark.parametrize("seed", [3, 11, 2024])
    def test_random_projects(self, seed):
        rng = random.Random(seed)

        def maybe_date():
            if rng.random() < 0.25:
                return None
            return NOW + timedelta(hours=rng.randint(-1500, 1500))

        for n in range(50):
            project = ProjectRecord(
                project_id=f"P{n}",
                name=f"Project {n}",
                created_at=NOW - timedelta(days=rng.randint(0, 90)),
                due_date=maybe_date(),
                status=rng.choice(list(ProjectStatus)),
                progress=rng.randint(0, 100),
            )
            issues = [
                IssueRecord(
                    issue_id=f"I{n}-{k}",
                    name=f"Issue {k}",
                    created_at=NOW - timedelta(days=rng.randint(0, 90)),
                    status=rng.choice(list(IssueStatus)),
                    role=IssueRole.DEVELOPMENT_PLAN if k == 0 else IssueRole.NONE,
                    progress=rng.randint(0, 100),
                    planned_start_date=maybe_date(),
                    planned_end_date=maybe_date(),
                    actual_start_date=maybe_date(),
                    actual_end_date=maybe_date(),
                )
                for k in range(rng.randint(0, 6))
            ]
            milestones = [
                MilestoneRecord(
                    milestone_id=f"M{n}-{k}",
                    name=rng.choice([f"Milestone {k}", "Backlog"]),
                    created_at=NOW - timedelta(days=rng.randint(0, 90)),
                    status=rng.choice(list(IssueStatus)),
                    progress=rng.randint(0, 100),
                    story_point=rng.randint(0, 20),
                    completed_story_point=rng.randint(0, 20),
                    order=rng.randint(0, 5),
                    planned_start_date=maybe_date(),
                    planned_end_date=maybe_date(),
                )
                for k in range(rng.randint(0, 5))
            ]

            snapshot = compute_snapshot(project, issues, milestones, NOW)
            item_risks = [e.metrics.risk_score for e in snapshot.planning + snapshot.building]

            assert 0 <= snapshot.risk_score <= 1
            assert snapshot.risk_score == max(item_risks, default=0.0)
            assert all(0 <= r <= 1 for r in item_risks)
            if snapshot.stage != ProjectStage.BUILDING:
                assert snapshot.building == ()
            assert all(e.stage != "CANCELED" for e in snapshot.planning + snapshot.building)
            assert all(e.name != "Backlog" for e in snapshot.building)
            assert snapshot.overall.insights[0].startswith("Project is currently in ")
            assert len(snapshot.overall.insights) >= 2
