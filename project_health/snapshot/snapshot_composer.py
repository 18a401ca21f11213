"""
═══════════════════════════════════════════════════════════════════════════════════════════════════════
                    PROJECT HEALTH ENGINE — SNAPSHOT COMPOSER
═══════════════════════════════════════════════════════════════════════════════════════════════════════

Project-level metrics, natural-language insights and the final snapshot.

PROJECT METRICS
═══════════════

    T_p   = max(1, days(dueDate_p, createdAt_p))       (T_p = 1 without a due date)
    P_p   = max(0, days(now, createdAt_p))
    pct_p = ⌊P_p / T_p × 100⌋

    v_p   = 0                                 if pct_p = 0 or progress_p = 0
          = ⌊progress_p / pct_p × 100⌋        otherwise

    predictedDueDate_p = createdAt_p + ⌈T_p / (v_p || 1) × 100⌉ days

OVERALL INSIGHTS
════════════════

1. Stage and risk tier of R = max item risk.
2. Planner line when high-risk issues exist (plus medium-risk clause).
3. Builder line when high-risk milestones exist (plus medium-risk clause).
4. Delivery line, first matching branch:
       stage = Planning                   → not available yet
       pct = 0 ∧ progress = 0             → dev work not started
       pct > 0 ∧ progress = 0             → dev work not started
       no due date                        → predicted date only
       otherwise                          → |Δ| days later/earlier than the due date
                                            Δ = days(predicted, dueDate)

PIPELINE
════════

    records ──► classify_stage ──► aggregate_planning ─┐
                       │                               ├──► compose ──► Snapshot
                       └──(Building)──► aggregate_building ─┘

The snapshot is immutable and is a pure function of (records, now, thresholds).
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..settings import HealthConfig, RiskThresholds
from .item_metrics import days_between, time_percentage
from .phase_aggregator import (
    BUILDING,
    PLANNING,
    PhaseEntry,
    PhaseResult,
    RiskBuckets,
    aggregate_building,
    aggregate_planning,
    classify_risk_tier,
)
from .records import IssueRecord, MilestoneRecord, ProjectRecord, display_date, iso_date, to_naive_utc
from .stage_classifier import ProjectStage, classify_stage

logger = logging.getLogger(__name__)


# ════════════════════════════════════════════════════════════════════════════════════════════════════
# DATA STRUCTURES
# ════════════════════════════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class OverallMetrics:
    """
    Project-level metrics.

    Attributes:
        total_time: Days from creation to due date (>= 1)
        past_time: Days since creation (>= 0)
        past_time_percentage: Share of the project window consumed
        progress: Project progress, 0-100
        velocity: Development velocity, integer percent (0 when unknown)
        risk_score: Maximum item risk, in [0, 1]
        predicted_due_date: Extrapolated delivery date
    """
    total_time: int
    past_time: int
    past_time_percentage: int
    progress: int
    velocity: int
    risk_score: float
    predicted_due_date: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            'totalTime': self.total_time,
            'pastTime': self.past_time,
            'pastTimePercentage': self.past_time_percentage,
            'progress': self.progress,
            'velocity': self.velocity,
            'riskScore': self.risk_score,
            'predictedDueDate': iso_date(self.predicted_due_date),
        }


@dataclass(frozen=True)
class OverallSection:
    name: str
    stage: ProjectStage
    metrics: OverallMetrics
    insights: Tuple[str, ...] = ()
    due_date: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'stage': self.stage.value,
            'metrics': self.metrics.to_dict(),
            'insights': list(self.insights),
        }


@dataclass(frozen=True)
class Snapshot:
    """
    Multi-level health snapshot of a project.

    ``building`` is empty unless the project is in the Building stage.
    ``risk_buckets`` is kept for callers building rollups; it is not part of
    the serialized snapshot.
    """
    overall: OverallSection
    planning: Tuple[PhaseEntry, ...] = ()
    building: Tuple[PhaseEntry, ...] = ()
    risk_buckets: RiskBuckets = field(default_factory=RiskBuckets, compare=False)

    @property
    def stage(self) -> ProjectStage:
        return self.overall.stage

    @property
    def risk_score(self) -> float:
        return self.overall.metrics.risk_score

    def to_dict(self) -> Dict[str, Any]:
        return {
            'overall': self.overall.to_dict(),
            'planning': [entry.to_dict() for entry in self.planning],
            'building': [entry.to_dict() for entry in self.building],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


# ════════════════════════════════════════════════════════════════════════════════════════════════════
# PROJECT METRICS
# ════════════════════════════════════════════════════════════════════════════════════════════════════

def _add_days(start: datetime, days: int) -> datetime:
    try:
        return start + timedelta(days=days)
    except OverflowError:
        logger.warning(f"Predicted due date overflows ({days} days after {start}), capping")
        return datetime.max


def compute_overall_metrics(
    project: ProjectRecord,
    now: datetime,
    project_risk: float
) -> OverallMetrics:
    """
    Compute project-level time, velocity and predicted due date.

    Args:
        project: Project record
        now: Evaluation instant
        project_risk: Maximum risk across scored items

    Returns:
        OverallMetrics
    """
    if project.due_date:
        total_time = max(1, days_between(project.due_date, project.created_at))
    else:
        total_time = 1
    past_time = max(0, days_between(now, project.created_at))
    past_time_percentage = time_percentage(past_time, total_time)

    progress = project.progress or 0
    if past_time_percentage == 0 or progress == 0:
        velocity = 0
    else:
        velocity = math.floor(progress / past_time_percentage * 100)

    predicted_days = math.ceil(total_time / (velocity or 1) * 100)
    predicted_due_date = _add_days(project.created_at, predicted_days)

    return OverallMetrics(
        total_time=total_time,
        past_time=past_time,
        past_time_percentage=past_time_percentage,
        progress=progress,
        velocity=velocity,
        risk_score=project_risk,
        predicted_due_date=predicted_due_date,
    )


# ════════════════════════════════════════════════════════════════════════════════════════════════════
# INSIGHTS
# ════════════════════════════════════════════════════════════════════════════════════════════════════

def _risk_items_line(actor: str, buckets: RiskBuckets, phase: str) -> Optional[str]:
    high = buckets.high_risk[phase]
    if not high:
        return None
    msg = f"{actor} has found {len(high)} High risk items: {','.join(high)}"
    medium = buckets.medium_risk[phase]
    if medium:
        msg += f"; and {len(medium)} Medium risk issues: {','.join(medium)}"
    return msg


def delivery_insight(
    stage: ProjectStage,
    metrics: OverallMetrics,
    due_date: Optional[datetime]
) -> str:
    """Final insight line comparing the predicted and initial due dates."""
    predicted = display_date(metrics.predicted_due_date)

    if stage == ProjectStage.PLANNING:
        return "Predicted delivery date is not available yet. Please first publish your Development Plan."
    if metrics.progress == 0:
        # covers both "no time has passed" and "time passed without any work"
        if due_date is None:
            return "Dev work has not started yet. Initial due date is not set"
        return f"Dev work has not started yet. Initial due date is set as {display_date(due_date)}"
    if due_date is None:
        return f"Predicted delivery date is {predicted}"

    predicted_day = datetime.combine(metrics.predicted_due_date.date(), time.min)
    diff = days_between(predicted_day, due_date)
    direction = "later" if diff > 0 else "earlier"
    return (
        f"Predicted delivery date is {predicted}, {abs(diff)} days {direction} "
        f"than initial due date of {display_date(due_date)}"
    )


def build_overall_insights(
    stage: ProjectStage,
    metrics: OverallMetrics,
    buckets: RiskBuckets,
    due_date: Optional[datetime],
    thresholds: RiskThresholds
) -> List[str]:
    """
    Generate the overall insight list.

    Args:
        stage: Project stage
        metrics: Project-level metrics (risk_score is the project risk)
        buckets: High/medium risk labels from the planning and building passes
        due_date: Initial project due date
        thresholds: Risk tiers used for the stage line label

    Returns:
        Ordered insight lines
    """
    tier = classify_risk_tier(metrics.risk_score, thresholds)
    insights = [
        f"Project is currently in {stage.value} phase, with {tier.value} risk score of "
        f"{math.floor(metrics.risk_score * 100)}%"
    ]

    for actor, phase in (("Planner", PLANNING), ("Builder", BUILDING)):
        line = _risk_items_line(actor, buckets, phase)
        if line:
            insights.append(line)

    insights.append(delivery_insight(stage, metrics, due_date))
    return insights


# ════════════════════════════════════════════════════════════════════════════════════════════════════
# ENTRY POINT
# ════════════════════════════════════════════════════════════════════════════════════════════════════

def compute_snapshot(
    project: ProjectRecord,
    issues: Sequence[IssueRecord],
    milestones: Sequence[MilestoneRecord],
    now: datetime,
    thresholds: Optional[RiskThresholds] = None,
    zero_progress_multiplier: Optional[float] = None
) -> Snapshot:
    """
    Compute the health snapshot of a project.

    The caller is responsible for passing the issues and milestones of this
    project only; no cross-referential checks are made.

    Args:
        project: Project record
        issues: Project issues
        milestones: Project milestones
        now: Evaluation instant; never read from the clock here
        thresholds: Risk tiers (configured tiers when omitted)
        zero_progress_multiplier: Optional override of the zero-progress penalty

    Returns:
        Snapshot
    """
    now = to_naive_utc(now)
    thresholds = thresholds or HealthConfig.get_thresholds()

    stage = classify_stage(project, issues, milestones)

    phases: PhaseResult = aggregate_planning(issues, now, thresholds, zero_progress_multiplier)
    planning_entries = tuple(phases.entries)
    building_entries: Tuple[PhaseEntry, ...] = ()

    if stage == ProjectStage.BUILDING:
        building = aggregate_building(milestones, now, thresholds, zero_progress_multiplier)
        building_entries = tuple(building.entries)
        phases = phases.merge(building)

    metrics = compute_overall_metrics(project, now, phases.max_risk)
    insights = build_overall_insights(stage, metrics, phases.buckets, project.due_date, thresholds)

    logger.debug(
        f"Snapshot for '{project.name}': stage={stage.value}, risk={metrics.risk_score}, "
        f"planning={len(planning_entries)}, building={len(building_entries)}"
    )

    return Snapshot(
        overall=OverallSection(
            name=project.name,
            stage=stage,
            metrics=metrics,
            insights=tuple(insights),
            due_date=project.due_date,
        ),
        planning=planning_entries,
        building=building_entries,
        risk_buckets=phases.buckets,
    )
