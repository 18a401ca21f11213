"""
════════════════════════════════════════════════════════════════════════════════
PROJECT HEALTH SCHEMAS - Pydantic models for the snapshot REST endpoints
════════════════════════════════════════════════════════════════════════════════

Request payloads mirror the ORM rows (camelCase keys, ISO datetimes) and are
turned into engine records with ``to_record``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..settings import RiskThresholds
from .records import (
    IssueRecord,
    IssueRole,
    IssueStatus,
    IssueType,
    MilestoneRecord,
    ProjectBundle,
    ProjectRecord,
    ProjectStatus,
    infer_issue_role,
    parse_milestone_order,
)


def _upper(v):
    return v.upper() if isinstance(v, str) else v


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ═══════════════════════════════════════════════════════════════════════════════
# RECORDS
# ═══════════════════════════════════════════════════════════════════════════════

class ProjectIn(_CamelModel):
    """Project row."""
    id: str = Field(..., description="Project id")
    name: str
    created_at: datetime = Field(..., alias="createdAt")
    due_date: Optional[datetime] = Field(None, alias="dueDate")
    status: ProjectStatus = ProjectStatus.CREATED
    progress: int = Field(0, ge=0, le=100)
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")

    @field_validator('status', mode='before')
    @classmethod
    def parse_status(cls, v):
        return _upper(v)

    def to_record(self) -> ProjectRecord:
        return ProjectRecord(
            project_id=self.id,
            name=self.name,
            created_at=self.created_at,
            due_date=self.due_date,
            status=self.status,
            progress=self.progress,
            updated_at=self.updated_at,
        )


class IssueIn(_CamelModel):
    """Issue row. Without ``role`` the development plan is recognised by name."""
    id: str
    name: str
    status: IssueStatus = IssueStatus.CREATED
    type: IssueType = IssueType.BUILDABLE
    role: Optional[IssueRole] = None
    planned_start_date: Optional[datetime] = Field(None, alias="plannedStartDate")
    planned_end_date: Optional[datetime] = Field(None, alias="plannedEndDate")
    actual_start_date: Optional[datetime] = Field(None, alias="actualStartDate")
    actual_end_date: Optional[datetime] = Field(None, alias="actualEndDate")
    progress: Optional[int] = Field(0, ge=0, le=100)
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")

    @field_validator('status', 'type', 'role', mode='before')
    @classmethod
    def parse_enums(cls, v):
        return _upper(v)

    def to_record(self) -> IssueRecord:
        return IssueRecord(
            issue_id=self.id,
            name=self.name,
            created_at=self.created_at,
            status=self.status,
            planned_start_date=self.planned_start_date,
            planned_end_date=self.planned_end_date,
            actual_start_date=self.actual_start_date,
            actual_end_date=self.actual_end_date,
            progress=self.progress,
            updated_at=self.updated_at,
            role=self.role if self.role is not None else infer_issue_role(self.name),
            issue_type=self.type,
        )


class MilestoneIn(_CamelModel):
    """Milestone row. Without ``order`` the legacy ``meta.key`` is parsed."""
    id: str
    name: str
    status: IssueStatus = IssueStatus.CREATED
    planned_start_date: Optional[datetime] = Field(None, alias="plannedStartDate")
    planned_end_date: Optional[datetime] = Field(None, alias="plannedEndDate")
    actual_start_date: Optional[datetime] = Field(None, alias="actualStartDate")
    actual_end_date: Optional[datetime] = Field(None, alias="actualEndDate")
    progress: Optional[int] = Field(0, ge=0, le=100)
    story_point: int = Field(0, ge=0, alias="storyPoint")
    completed_story_point: int = Field(0, ge=0, alias="completedStoryPoint")
    order: Optional[int] = None
    meta: Optional[Dict[str, Any]] = None
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")

    @field_validator('status', mode='before')
    @classmethod
    def parse_status(cls, v):
        return _upper(v)

    def to_record(self) -> MilestoneRecord:
        return MilestoneRecord(
            milestone_id=self.id,
            name=self.name,
            created_at=self.created_at,
            status=self.status,
            planned_start_date=self.planned_start_date,
            planned_end_date=self.planned_end_date,
            actual_start_date=self.actual_start_date,
            actual_end_date=self.actual_end_date,
            progress=self.progress,
            story_point=self.story_point,
            completed_story_point=self.completed_story_point,
            order=self.order if self.order is not None else parse_milestone_order(self.meta),
            updated_at=self.updated_at,
        )


class ThresholdsIn(BaseModel):
    """Risk-tier override; must sum to 1.0."""
    low: float = Field(..., ge=0, le=1)
    medium: float = Field(..., ge=0, le=1)
    high: float = Field(..., ge=0, le=1)

    def to_thresholds(self) -> RiskThresholds:
        return RiskThresholds(low=self.low, medium=self.medium, high=self.high)


# ═══════════════════════════════════════════════════════════════════════════════
# REQUESTS
# ═══════════════════════════════════════════════════════════════════════════════

class ProjectBundleIn(BaseModel):
    project: ProjectIn
    issues: List[IssueIn] = []
    milestones: List[MilestoneIn] = []

    def to_bundle(self) -> ProjectBundle:
        return ProjectBundle(
            project=self.project.to_record(),
            issues=[i.to_record() for i in self.issues],
            milestones=[m.to_record() for m in self.milestones],
        )


class SnapshotRequest(ProjectBundleIn):
    """Request para calcular o snapshot de um projeto."""
    now: Optional[datetime] = Field(None, description="Evaluation instant (defaults to server time)")
    thresholds: Optional[ThresholdsIn] = None


class RollupRequest(BaseModel):
    """Request para calcular o rollup de um portfolio."""
    projects: List[ProjectBundleIn] = []
    now: Optional[datetime] = Field(None, description="Evaluation instant (defaults to server time)")
    thresholds: Optional[ThresholdsIn] = None


class RollupResponse(BaseModel):
    rows: List[Dict[str, Any]]
    summary: Dict[str, Any]
