"""
═══════════════════════════════════════════════════════════════════════════════════════════════════════
                    PROJECT HEALTH ENGINE — STAGE CLASSIFIER
═══════════════════════════════════════════════════════════════════════════════════════════════════════

Determines the lifecycle stage of a project.

RULES (first match wins)
════════════════════════

1. project.status = COMPLETED                                   → Done
2. development plan status ∈ {CREATED, STARTED}                 → Planning
3. development plan status = COMPLETED:
       SP_total = Σ_m storyPoint(m),  SP_done = Σ_m completedStoryPoint(m)
       SP_total > SP_done                                       → Building
       otherwise                                                → QA
4. anything else (no development plan, plan in review, ...)     → Planning

A project without a development-plan issue is an early-stage project, not an
error.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional, Sequence, Tuple

from .records import IssueRecord, IssueStatus, MilestoneRecord, ProjectRecord, ProjectStatus

logger = logging.getLogger(__name__)


class ProjectStage(str, Enum):
    """Project lifecycle stage."""
    PLANNING = "Planning"
    BUILDING = "Building"
    QA = "QA"
    DONE = "Done"


def find_development_plan(issues: Sequence[IssueRecord]) -> Optional[IssueRecord]:
    """First issue carrying the development-plan role, if any."""
    return next((issue for issue in issues if issue.is_development_plan), None)


def sum_story_points(milestones: Sequence[MilestoneRecord]) -> Tuple[int, int]:
    """(total, completed) story points across milestones."""
    total = sum(m.story_point for m in milestones)
    completed = sum(m.completed_story_point for m in milestones)
    return total, completed


def classify_stage(
    project: ProjectRecord,
    issues: Sequence[IssueRecord],
    milestones: Sequence[MilestoneRecord]
) -> ProjectStage:
    """
    Classify the project's lifecycle stage.

    Args:
        project: Project record
        issues: Project issues (the development plan is looked up by role)
        milestones: Project milestones (story points decide Building vs QA)

    Returns:
        ProjectStage
    """
    if project.status == ProjectStatus.COMPLETED:
        return ProjectStage.DONE

    dev_plan = find_development_plan(issues)
    if dev_plan is None:
        return ProjectStage.PLANNING

    if dev_plan.status in (IssueStatus.CREATED, IssueStatus.STARTED):
        return ProjectStage.PLANNING

    if dev_plan.status == IssueStatus.COMPLETED:
        total, completed = sum_story_points(milestones)
        return ProjectStage.BUILDING if total > completed else ProjectStage.QA

    return ProjectStage.PLANNING
