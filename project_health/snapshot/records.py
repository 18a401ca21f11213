"""
═══════════════════════════════════════════════════════════════════════════════════════════════════════
                    PROJECT HEALTH ENGINE — INPUT RECORDS
═══════════════════════════════════════════════════════════════════════════════════════════════════════

Read-only records delivered by the data-access layer.

HIERARCHY
═════════

    Project
     ├── Issue*       (buildables; one may carry the DEVELOPMENT_PLAN role)
     └── Milestone*   (work plans of kind MILESTONE, each grouping sprints)

The engine only reads these records. Two conventions of the legacy data model
are translated here, at the boundary, and nowhere else:

1. The development-plan issue used to be found by name ("development plan",
   case-insensitive). Records now carry an explicit ``role``; the adapters
   assign ``IssueRole.DEVELOPMENT_PLAN`` when a legacy row has no role.

2. Milestone ordering used to live in ``meta["key"] = "milestone:<n>"``.
   Records now carry an integer ``order``; the adapters parse the legacy key
   when no order is given.

DATETIMES
─────────
Every datetime is normalised to naive UTC on construction so that naive and
aware values coming from different sources can be compared safely.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

import pandas as pd

logger = logging.getLogger(__name__)


DEVELOPMENT_PLAN_MARKER = "development plan"
MILESTONE_KEY_PREFIX = "milestone:"
BACKLOG_MILESTONE_NAME = "Backlog"


# ════════════════════════════════════════════════════════════════════════════════════════════════════
# ENUMS
# ════════════════════════════════════════════════════════════════════════════════════════════════════

class ProjectStatus(str, Enum):
    """Project lifecycle status, as stored by the surrounding system."""
    CREATED = "CREATED"
    STARTED = "STARTED"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"
    CANCELED = "CANCELED"


class IssueStatus(str, Enum):
    """Status shared by issues and milestones."""
    CREATED = "CREATED"
    STARTED = "STARTED"
    INREVIEW = "INREVIEW"
    APPROVED = "APPROVED"
    COMPLETED = "COMPLETED"
    CANCELED = "CANCELED"
    OVERWRITTEN = "OVERWRITTEN"
    GENERATING = "GENERATING"


class IssueType(str, Enum):
    BUILDABLE = "BUILDABLE"
    EPIC = "EPIC"
    STORY = "STORY"
    TASK = "TASK"
    BUG = "BUG"
    SUBTASK = "SUBTASK"


class IssueRole(str, Enum):
    """Explicit role of an issue inside its project."""
    NONE = "NONE"
    DEVELOPMENT_PLAN = "DEVELOPMENT_PLAN"


# ════════════════════════════════════════════════════════════════════════════════════════════════════
# HELPERS
# ════════════════════════════════════════════════════════════════════════════════════════════════════

def to_naive_utc(value: Any) -> Optional[datetime]:
    """
    Normalise a datetime-like value to a naive UTC datetime.

    Accepts datetime, date, ISO strings and pandas Timestamps. Empty values
    (None, "", NaT) become None.
    """
    if value is None or value is pd.NaT:
        return None
    if isinstance(value, pd.Timestamp):
        value = value.to_pydatetime()
    if isinstance(value, str):
        if not value.strip():
            return None
        value = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    raise ValueError(f"Unsupported datetime value: {value!r}")


def iso_date(value: Optional[datetime]) -> Optional[str]:
    """ISO date string (YYYY-MM-DD) or None."""
    return value.date().isoformat() if value else None


def display_date(value: Optional[datetime]) -> str:
    """MM/DD/YYYY for insight and tooltip text."""
    return value.strftime("%m/%d/%Y") if value else "not set"


def infer_issue_role(name: Optional[str]) -> IssueRole:
    """Legacy rule: the development plan is the issue whose name mentions it."""
    if name and DEVELOPMENT_PLAN_MARKER in name.lower().strip():
        return IssueRole.DEVELOPMENT_PLAN
    return IssueRole.NONE


def parse_milestone_order(meta: Any) -> int:
    """
    Extract the ordering index from a legacy ``meta`` bag.

    ``{"key": "milestone:3"}`` -> 3. Absent or malformed keys sort as 0.
    """
    if isinstance(meta, str):
        try:
            meta = json.loads(meta)
        except json.JSONDecodeError:
            return 0
    if not isinstance(meta, dict):
        return 0
    key = meta.get('key') or f"{MILESTONE_KEY_PREFIX}0"
    try:
        return int(str(key).replace(MILESTONE_KEY_PREFIX, ''))
    except ValueError:
        logger.debug(f"Unparseable milestone key {key!r}, ordering as 0")
        return 0


def _pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """First present, non-null value among snake_case/camelCase aliases."""
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return default


def _progress(value: Any) -> int:
    if value is None:
        return 0
    return int(value)


# ════════════════════════════════════════════════════════════════════════════════════════════════════
# RECORDS
# ════════════════════════════════════════════════════════════════════════════════════════════════════

@dataclass
class ProjectRecord:
    """
    A project as seen by the engine.

    Attributes:
        project_id: Unique identifier
        name: Display name
        created_at: Creation instant (start of the project window)
        due_date: Initial due date, if set
        status: Lifecycle status
        progress: Externally maintained progress, 0-100
        updated_at: Last update (used to order rollup cards)
    """
    project_id: str
    name: str
    created_at: datetime
    due_date: Optional[datetime] = None
    status: ProjectStatus = ProjectStatus.CREATED
    progress: int = 0
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.created_at = to_naive_utc(self.created_at)
        self.due_date = to_naive_utc(self.due_date)
        self.updated_at = to_naive_utc(self.updated_at) or self.created_at
        self.progress = _progress(self.progress)
        if not isinstance(self.status, ProjectStatus):
            self.status = ProjectStatus(str(self.status).upper())

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.project_id,
            'name': self.name,
            'createdAt': self.created_at.isoformat(),
            'dueDate': self.due_date.isoformat() if self.due_date else None,
            'status': self.status.value,
            'progress': self.progress,
            'updatedAt': self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ProjectRecord':
        return cls(
            project_id=str(_pick(data, 'project_id', 'id')),
            name=data['name'],
            created_at=_pick(data, 'created_at', 'createdAt'),
            due_date=_pick(data, 'due_date', 'dueDate'),
            status=_pick(data, 'status', default=ProjectStatus.CREATED),
            progress=_pick(data, 'progress', default=0),
            updated_at=_pick(data, 'updated_at', 'updatedAt'),
        )


@dataclass
class IssueRecord:
    """
    A buildable issue: a schedulable unit of work.

    ``updated_at`` defaults to ``created_at`` when absent.
    """
    issue_id: str
    name: str
    created_at: datetime
    status: IssueStatus = IssueStatus.CREATED
    planned_start_date: Optional[datetime] = None
    planned_end_date: Optional[datetime] = None
    actual_start_date: Optional[datetime] = None
    actual_end_date: Optional[datetime] = None
    progress: int = 0
    updated_at: Optional[datetime] = None
    role: IssueRole = IssueRole.NONE
    issue_type: IssueType = IssueType.BUILDABLE

    def __post_init__(self):
        self.created_at = to_naive_utc(self.created_at)
        self.updated_at = to_naive_utc(self.updated_at) or self.created_at
        self.planned_start_date = to_naive_utc(self.planned_start_date)
        self.planned_end_date = to_naive_utc(self.planned_end_date)
        self.actual_start_date = to_naive_utc(self.actual_start_date)
        self.actual_end_date = to_naive_utc(self.actual_end_date)
        self.progress = _progress(self.progress)
        if not isinstance(self.status, IssueStatus):
            self.status = IssueStatus(str(self.status).upper())
        if not isinstance(self.role, IssueRole):
            self.role = IssueRole(str(self.role).upper())
        if not isinstance(self.issue_type, IssueType):
            self.issue_type = IssueType(str(self.issue_type).upper())

    @property
    def is_development_plan(self) -> bool:
        return self.role == IssueRole.DEVELOPMENT_PLAN

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.issue_id,
            'name': self.name,
            'status': self.status.value,
            'type': self.issue_type.value,
            'role': self.role.value,
            'plannedStartDate': iso_date(self.planned_start_date),
            'plannedEndDate': iso_date(self.planned_end_date),
            'actualStartDate': iso_date(self.actual_start_date),
            'actualEndDate': iso_date(self.actual_end_date),
            'progress': self.progress,
            'createdAt': self.created_at.isoformat(),
            'updatedAt': self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'IssueRecord':
        """
        Build from an ORM row (snake_case or camelCase keys).

        Rows without an explicit role get one from the legacy name rule.
        """
        name = data['name']
        role = _pick(data, 'role')
        return cls(
            issue_id=str(_pick(data, 'issue_id', 'id')),
            name=name,
            created_at=_pick(data, 'created_at', 'createdAt'),
            status=_pick(data, 'status', default=IssueStatus.CREATED),
            planned_start_date=_pick(data, 'planned_start_date', 'plannedStartDate'),
            planned_end_date=_pick(data, 'planned_end_date', 'plannedEndDate'),
            actual_start_date=_pick(data, 'actual_start_date', 'actualStartDate'),
            actual_end_date=_pick(data, 'actual_end_date', 'actualEndDate'),
            progress=_pick(data, 'progress', default=0),
            updated_at=_pick(data, 'updated_at', 'updatedAt'),
            role=role if role is not None else infer_issue_role(name),
            issue_type=_pick(data, 'issue_type', 'type', default=IssueType.BUILDABLE),
        )


@dataclass
class MilestoneRecord:
    """
    A milestone work plan.

    Attributes:
        story_point: Total story points of the milestone's sprints
        completed_story_point: Completed story points
        order: Position of the milestone in the delivery plan (ascending)
    """
    milestone_id: str
    name: str
    created_at: datetime
    status: IssueStatus = IssueStatus.CREATED
    planned_start_date: Optional[datetime] = None
    planned_end_date: Optional[datetime] = None
    actual_start_date: Optional[datetime] = None
    actual_end_date: Optional[datetime] = None
    progress: int = 0
    story_point: int = 0
    completed_story_point: int = 0
    order: int = 0
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.created_at = to_naive_utc(self.created_at)
        self.updated_at = to_naive_utc(self.updated_at) or self.created_at
        self.planned_start_date = to_naive_utc(self.planned_start_date)
        self.planned_end_date = to_naive_utc(self.planned_end_date)
        self.actual_start_date = to_naive_utc(self.actual_start_date)
        self.actual_end_date = to_naive_utc(self.actual_end_date)
        self.progress = _progress(self.progress)
        self.story_point = int(self.story_point or 0)
        self.completed_story_point = int(self.completed_story_point or 0)
        self.order = int(self.order or 0)
        if not isinstance(self.status, IssueStatus):
            self.status = IssueStatus(str(self.status).upper())

    @property
    def is_backlog(self) -> bool:
        return self.name == BACKLOG_MILESTONE_NAME

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.milestone_id,
            'name': self.name,
            'status': self.status.value,
            'order': self.order,
            'plannedStartDate': iso_date(self.planned_start_date),
            'plannedEndDate': iso_date(self.planned_end_date),
            'actualStartDate': iso_date(self.actual_start_date),
            'actualEndDate': iso_date(self.actual_end_date),
            'progress': self.progress,
            'storyPoint': self.story_point,
            'completedStoryPoint': self.completed_story_point,
            'createdAt': self.created_at.isoformat(),
            'updatedAt': self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MilestoneRecord':
        """Build from an ORM row; a missing ``order`` is parsed from ``meta``."""
        order = _pick(data, 'order')
        if order is None:
            order = parse_milestone_order(data.get('meta'))
        return cls(
            milestone_id=str(_pick(data, 'milestone_id', 'id')),
            name=data['name'],
            created_at=_pick(data, 'created_at', 'createdAt'),
            status=_pick(data, 'status', default=IssueStatus.CREATED),
            planned_start_date=_pick(data, 'planned_start_date', 'plannedStartDate'),
            planned_end_date=_pick(data, 'planned_end_date', 'plannedEndDate'),
            actual_start_date=_pick(data, 'actual_start_date', 'actualStartDate'),
            actual_end_date=_pick(data, 'actual_end_date', 'actualEndDate'),
            progress=_pick(data, 'progress', default=0),
            story_point=_pick(data, 'story_point', 'storyPoint', default=0),
            completed_story_point=_pick(data, 'completed_story_point', 'completedStoryPoint', default=0),
            order=order,
            updated_at=_pick(data, 'updated_at', 'updatedAt'),
        )


Schedulable = Union[IssueRecord, MilestoneRecord]


@dataclass
class ProjectBundle:
    """A project together with its issues and milestones."""
    project: ProjectRecord
    issues: List[IssueRecord] = field(default_factory=list)
    milestones: List[MilestoneRecord] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ProjectBundle':
        return cls(
            project=ProjectRecord.from_dict(data['project']),
            issues=[IssueRecord.from_dict(i) for i in data.get('issues', [])],
            milestones=[MilestoneRecord.from_dict(m) for m in data.get('milestones', [])],
        )


# ════════════════════════════════════════════════════════════════════════════════════════════════════
# DATAFRAME ADAPTER
# ════════════════════════════════════════════════════════════════════════════════════════════════════

_DATE_COLUMNS = (
    'created_at', 'updated_at', 'due_date',
    'planned_start_date', 'planned_end_date',
    'actual_start_date', 'actual_end_date',
)


def _frame_rows(df: Optional[pd.DataFrame]) -> List[Dict[str, Any]]:
    """DataFrame -> list of dicts with parsed dates and None for missing cells."""
    if df is None or df.empty:
        return []
    df = df.copy()
    for col in _DATE_COLUMNS:
        if col in df.columns:
            df[col] = pd.to_datetime(df[col], errors='coerce')
    df = df.astype(object).where(pd.notna(df), None)
    return df.to_dict('records')


def _frame_key(value: Any) -> str:
    """Project id as matched across frames; integral floats lose their ``.0``."""
    # an id column holding NaN is upcast to float by pandas
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)


def build_records_from_frames(
    projects_df: pd.DataFrame,
    issues_df: Optional[pd.DataFrame] = None,
    milestones_df: Optional[pd.DataFrame] = None,
    project_col: str = 'project_id'
) -> List[ProjectBundle]:
    """
    Build per-project record bundles from tabular ORM exports.

    Issues and milestones are attached to their project through
    ``project_col``; rows pointing at unknown projects are dropped.

    Args:
        projects_df: One row per project (project_id, name, created_at, ...)
        issues_df: One row per issue, with a project_id column
        milestones_df: One row per milestone, with a project_id column
        project_col: Column linking issues/milestones to projects

    Returns:
        List of ProjectBundle, in the order of projects_df
    """
    bundles: Dict[str, ProjectBundle] = {}
    for row in _frame_rows(projects_df):
        project = ProjectRecord.from_dict(row)
        bundles[_frame_key(_pick(row, 'project_id', 'id'))] = ProjectBundle(project=project)

    dropped = 0
    for row in _frame_rows(issues_df):
        bundle = bundles.get(_frame_key(row.get(project_col)))
        if bundle is None:
            dropped += 1
            continue
        bundle.issues.append(IssueRecord.from_dict(row))

    for row in _frame_rows(milestones_df):
        bundle = bundles.get(_frame_key(row.get(project_col)))
        if bundle is None:
            dropped += 1
            continue
        bundle.milestones.append(MilestoneRecord.from_dict(row))

    if dropped:
        logger.warning(f"Dropped {dropped} rows referencing unknown projects")

    logger.info(f"Built {len(bundles)} project bundles from DataFrames")
    return list(bundles.values())
