"""
═══════════════════════════════════════════════════════════════════════════════════════════════════════
                    PROJECT HEALTH ENGINE — PORTFOLIO ROLLUP
═══════════════════════════════════════════════════════════════════════════════════════════════════════

Rollup cards for the projects list and portfolio-level aggregates.

ROLLUP ROW
══════════

For each project p, the snapshot is computed over its buildables only:

    B(p) = {i ∈ issues(p) : type(i) = BUILDABLE ∧ status(i) ∉ {CANCELED, OVERWRITTEN}}

The card shows the overall metrics and the overall insights without the first
(stage) line, which the card renders separately.

PORTFOLIO SUMMARY
═════════════════

    N                  = |P|
    mean_risk          = (Σ_p R_p) / N
    max_risk           = max_p R_p
    mean_velocity      = (Σ_p v_p) / N
    projects_by_stage  = |{p : stage(p) = s}|        ∀ s
    projects_by_tier   = |{p : tier(R_p) = t}|       ∀ t
    top_risk_projects  = 5 projects with the highest R_p
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from ..settings import HealthConfig, RiskThresholds
from .phase_aggregator import RiskTier, classify_risk_tier
from .records import IssueRecord, IssueStatus, IssueType, ProjectBundle, iso_date, to_naive_utc
from .snapshot_composer import OverallMetrics, compute_snapshot
from .stage_classifier import ProjectStage

logger = logging.getLogger(__name__)


TOP_RISK_PROJECTS = 5


# ════════════════════════════════════════════════════════════════════════════════════════════════════
# DATA STRUCTURES
# ════════════════════════════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class RollupRow:
    """One project card of the projects list."""
    project_id: str
    name: str
    stage: ProjectStage
    due_date: Optional[datetime]
    progress: int
    updated_at: datetime
    metrics: OverallMetrics
    insights: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.project_id,
            'name': self.name,
            'stage': self.stage.value,
            'dueDate': iso_date(self.due_date),
            'progress': self.progress,
            'updatedAt': self.updated_at.isoformat(),
            'metrics': self.metrics.to_dict(),
            'insights': list(self.insights),
        }


@dataclass
class PortfolioSummary:
    """Aggregates across all projects of a portfolio."""
    timestamp: str
    total_projects: int = 0
    mean_risk: float = 0.0
    max_risk: float = 0.0
    mean_velocity: float = 0.0
    projects_by_stage: Dict[str, int] = field(default_factory=dict)
    projects_by_tier: Dict[str, int] = field(default_factory=dict)
    top_risk_projects: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': self.timestamp,
            'total_projects': self.total_projects,
            'mean_risk': round(self.mean_risk, 2),
            'max_risk': round(self.max_risk, 2),
            'mean_velocity': round(self.mean_velocity, 1),
            'projects_by_stage': dict(self.projects_by_stage),
            'projects_by_tier': dict(self.projects_by_tier),
            'top_risk_projects': list(self.top_risk_projects),
        }


# ════════════════════════════════════════════════════════════════════════════════════════════════════
# ROWS
# ════════════════════════════════════════════════════════════════════════════════════════════════════

def rollup_buildables(issues: Sequence[IssueRecord]) -> List[IssueRecord]:
    """Buildable issues that still count towards the project."""
    excluded = (IssueStatus.CANCELED, IssueStatus.OVERWRITTEN)
    return [
        i for i in issues
        if i.issue_type == IssueType.BUILDABLE and i.status not in excluded
    ]


def compute_rollup_row(
    bundle: ProjectBundle,
    now: datetime,
    thresholds: Optional[RiskThresholds] = None
) -> RollupRow:
    """
    Compute the projects-list card of one project.

    Args:
        bundle: Project with its issues and milestones
        now: Evaluation instant
        thresholds: Risk tiers (configured tiers when omitted)

    Returns:
        RollupRow
    """
    project = bundle.project
    snapshot = compute_snapshot(
        project,
        rollup_buildables(bundle.issues),
        bundle.milestones,
        now,
        thresholds=thresholds,
    )
    return RollupRow(
        project_id=project.project_id,
        name=project.name,
        stage=snapshot.stage,
        due_date=project.due_date,
        progress=project.progress,
        updated_at=project.updated_at,
        metrics=snapshot.overall.metrics,
        insights=snapshot.overall.insights[1:],
    )


# ════════════════════════════════════════════════════════════════════════════════════════════════════
# PORTFOLIO
# ════════════════════════════════════════════════════════════════════════════════════════════════════

def compute_portfolio_summary(
    rows: Sequence[RollupRow],
    now: datetime,
    thresholds: Optional[RiskThresholds] = None
) -> PortfolioSummary:
    """
    Aggregate rollup rows into portfolio-level figures.

    Args:
        rows: Rollup rows
        now: Evaluation instant (stamped on the summary)
        thresholds: Risk tiers (configured tiers when omitted)

    Returns:
        PortfolioSummary
    """
    thresholds = thresholds or HealthConfig.get_thresholds()
    summary = PortfolioSummary(
        timestamp=to_naive_utc(now).isoformat(),
        total_projects=len(rows),
        projects_by_stage={stage.value: 0 for stage in ProjectStage},
        projects_by_tier={tier.value: 0 for tier in RiskTier},
    )

    if not rows:
        return summary

    risks = np.array([row.metrics.risk_score for row in rows], dtype=float)
    velocities = np.array([row.metrics.velocity for row in rows], dtype=float)

    summary.mean_risk = float(np.mean(risks))
    summary.max_risk = float(np.max(risks))
    summary.mean_velocity = float(np.mean(velocities))

    for row in rows:
        summary.projects_by_stage[row.stage.value] += 1
        tier = classify_risk_tier(row.metrics.risk_score, thresholds)
        summary.projects_by_tier[tier.value] += 1

    # stable: ties keep portfolio order
    ranked = np.argsort(-risks, kind='stable')
    summary.top_risk_projects = [
        rows[i].name for i in ranked[:TOP_RISK_PROJECTS] if rows[i].metrics.risk_score > 0
    ]

    return summary


def compute_portfolio_rollup(
    bundles: Sequence[ProjectBundle],
    now: datetime,
    thresholds: Optional[RiskThresholds] = None
) -> Tuple[List[RollupRow], PortfolioSummary]:
    """
    Compute the projects list: one card per project plus a portfolio summary.

    Rows are ordered by project ``updated_at``, most recent first.

    Returns:
        (rows, summary)
    """
    rows = [compute_rollup_row(bundle, now, thresholds) for bundle in bundles]
    rows.sort(key=lambda row: row.updated_at, reverse=True)
    summary = compute_portfolio_summary(rows, now, thresholds)

    logger.info(
        f"Rolled up {len(rows)} projects: mean risk={summary.mean_risk:.2f}, "
        f"max risk={summary.max_risk:.2f}"
    )
    return rows, summary


def get_rollup_table(rows: Sequence[RollupRow]) -> pd.DataFrame:
    """
    Create a summary table of rollup rows.

    Returns DataFrame suitable for display or export.
    """
    records = []
    for row in rows:
        metrics = row.metrics
        records.append({
            'Project': row.name,
            'Stage': row.stage.value,
            'Due Date': iso_date(row.due_date) or '-',
            'Progress (%)': row.progress,
            'Time Used (%)': metrics.past_time_percentage,
            'Velocity (%)': metrics.velocity,
            'Risk (%)': int(metrics.risk_score * 100),
            'Predicted Due Date': iso_date(metrics.predicted_due_date),
        })

    return pd.DataFrame(records)
