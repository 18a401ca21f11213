"""
═══════════════════════════════════════════════════════════════════════════════════════════════════════
                    PROJECT HEALTH ENGINE — PHASE AGGREGATOR
═══════════════════════════════════════════════════════════════════════════════════════════════════════

Runs item metrics over the planning level (issues) and the building level
(milestones), collecting per-item entries, risk buckets and the project-wide
maximum risk.

RISK TIERS
══════════

With tier widths (low, medium, high), low + medium + high = 1:

    High    :  r ≥ low + medium
    Medium  :  r ≥ low                (building level: r > low)
    Low     :  otherwise

PASSES
══════

Planning:  ∀ issue i, status(i) ≠ CANCELED
Building:  ∀ milestone m, status(m) ≠ CANCELED ∧ name(m) ≠ "Backlog",
           ordered by order(m) ascending

Project risk:
    R = max({r_i : i ∈ planning} ∪ {r_m : m ∈ building} ∪ {0})

REDUCTION
─────────
Per-item computation has no cross-item dependency. Partial results combine with
``merge`` (max for risk, ordered concatenation for entries and buckets), so
the passes can be split into chunks and recombined without changing the result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..settings import HealthConfig, RiskThresholds
from .item_metrics import ItemMetrics, compute_item_metrics
from .records import IssueRecord, IssueStatus, MilestoneRecord, iso_date

logger = logging.getLogger(__name__)


PLANNING = "planning"
BUILDING = "building"


class RiskTier(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


def classify_risk_tier(
    risk_score: float,
    thresholds: RiskThresholds,
    medium_inclusive: bool = True
) -> RiskTier:
    """
    Map a risk score to its tier.

    Args:
        risk_score: Score in [0, 1]
        thresholds: Tier widths
        medium_inclusive: Whether a score equal to the Low width is Medium
            (planning level, overall label) or still Low (building level)
    """
    if risk_score >= thresholds.high_from:
        return RiskTier.HIGH
    if risk_score > thresholds.medium_from or (medium_inclusive and risk_score == thresholds.medium_from):
        return RiskTier.MEDIUM
    return RiskTier.LOW


# ════════════════════════════════════════════════════════════════════════════════════════════════════
# DATA STRUCTURES
# ════════════════════════════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PhaseEntry:
    """One row of the planning or building section of a snapshot."""
    name: str
    stage: str
    metrics: ItemMetrics
    insights: Tuple[str, ...] = ()

    @property
    def actual_end_date(self) -> Optional[datetime]:
        return self.metrics.actual_end_date

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'stage': self.stage,
            'metrics': self.metrics.to_dict(),
            'insights': list(self.insights),
            'actualEndDate': iso_date(self.actual_end_date),
        }


@dataclass
class RiskBuckets:
    """
    High and medium risk item labels, keyed by phase.

    Labels read ``"<name>(<pct>%)"``.
    """
    high_risk: Dict[str, List[str]] = field(default_factory=lambda: {PLANNING: [], BUILDING: []})
    medium_risk: Dict[str, List[str]] = field(default_factory=lambda: {PLANNING: [], BUILDING: []})

    def add(self, phase: str, tier: RiskTier, label: str) -> None:
        if tier == RiskTier.HIGH:
            self.high_risk[phase].append(label)
        elif tier == RiskTier.MEDIUM:
            self.medium_risk[phase].append(label)

    def merge(self, other: 'RiskBuckets') -> 'RiskBuckets':
        return RiskBuckets(
            high_risk={k: self.high_risk[k] + other.high_risk[k] for k in (PLANNING, BUILDING)},
            medium_risk={k: self.medium_risk[k] + other.medium_risk[k] for k in (PLANNING, BUILDING)},
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'highRisk': {k: list(v) for k, v in self.high_risk.items()},
            'mediumRisk': {k: list(v) for k, v in self.medium_risk.items()},
        }


@dataclass
class PhaseResult:
    """Output of a planning or building pass."""
    entries: List[PhaseEntry] = field(default_factory=list)
    buckets: RiskBuckets = field(default_factory=RiskBuckets)
    max_risk: float = 0.0

    def merge(self, other: 'PhaseResult') -> 'PhaseResult':
        return PhaseResult(
            entries=self.entries + other.entries,
            buckets=self.buckets.merge(other.buckets),
            max_risk=max(self.max_risk, other.max_risk),
        )


def bucket_label(name: str, metrics: ItemMetrics) -> str:
    return f"{name}({metrics.risk_pct}%)"


# ════════════════════════════════════════════════════════════════════════════════════════════════════
# PLANNING PASS
# ════════════════════════════════════════════════════════════════════════════════════════════════════

def aggregate_planning(
    issues: Sequence[IssueRecord],
    now: datetime,
    thresholds: Optional[RiskThresholds] = None,
    zero_progress_multiplier: Optional[float] = None
) -> PhaseResult:
    """
    Score every non-canceled issue.

    Args:
        issues: Project issues, in display order
        now: Evaluation instant
        thresholds: Risk tiers (configured tiers when omitted)
        zero_progress_multiplier: Optional override of the zero-progress penalty

    Returns:
        PhaseResult with one entry per non-canceled issue
    """
    thresholds = thresholds or HealthConfig.get_thresholds()
    result = PhaseResult()

    for issue in issues:
        if issue.status == IssueStatus.CANCELED:
            continue

        metrics = compute_item_metrics(issue, now, zero_progress_multiplier)
        tier = classify_risk_tier(metrics.risk_score, thresholds)

        result.max_risk = max(result.max_risk, metrics.risk_score)
        result.buckets.add(PLANNING, tier, bucket_label(issue.name, metrics))
        result.entries.append(PhaseEntry(
            name=issue.name,
            stage=issue.status.value,
            metrics=metrics,
            insights=(f"{issue.name} is at {issue.status.value} stage",),
        ))

    return result


# ════════════════════════════════════════════════════════════════════════════════════════════════════
# BUILDING PASS
# ════════════════════════════════════════════════════════════════════════════════════════════════════

def select_building_milestones(milestones: Sequence[MilestoneRecord]) -> List[MilestoneRecord]:
    """Active milestones, Backlog excluded, in delivery order."""
    active = [
        m for m in milestones
        if m.status != IssueStatus.CANCELED and not m.is_backlog
    ]
    return sorted(active, key=lambda m: m.order)


def building_insights(name: str, metrics: ItemMetrics, tier: RiskTier) -> List[str]:
    """Insight lines for one milestone, templated by its risk tier."""
    pct = metrics.risk_pct
    velocity = metrics.velocity

    if tier == RiskTier.HIGH:
        return [
            f"{name} has High risk score of {pct}%",
            f"Development velocity is very low at {velocity}% of expected velocity",
        ]
    if tier == RiskTier.MEDIUM:
        return [
            f"{name} has Medium risk score of {pct}%",
            f"Development velocity is low at {velocity}% of expected velocity",
        ]

    if metrics.progress > 0:
        pace = "high" if velocity > 100 else "low"
        second = f"Development velocity is {pace} at {velocity}% of expected velocity"
    else:
        second = "Development work has not started yet"
    return [f"{name} has low risk score of {pct}%", second]


def aggregate_building(
    milestones: Sequence[MilestoneRecord],
    now: datetime,
    thresholds: Optional[RiskThresholds] = None,
    zero_progress_multiplier: Optional[float] = None
) -> PhaseResult:
    """
    Score the active milestones of a project in the Building stage.

    Args:
        milestones: Project milestones, any order
        now: Evaluation instant
        thresholds: Risk tiers (configured tiers when omitted)
        zero_progress_multiplier: Optional override of the zero-progress penalty

    Returns:
        PhaseResult with one entry per selected milestone, in delivery order
    """
    thresholds = thresholds or HealthConfig.get_thresholds()
    result = PhaseResult()

    for milestone in select_building_milestones(milestones):
        metrics = compute_item_metrics(milestone, now, zero_progress_multiplier)
        tier = classify_risk_tier(metrics.risk_score, thresholds, medium_inclusive=False)

        result.max_risk = max(result.max_risk, metrics.risk_score)
        result.buckets.add(BUILDING, tier, bucket_label(milestone.name, metrics))
        result.entries.append(PhaseEntry(
            name=milestone.name,
            stage=milestone.status.value,
            metrics=metrics,
            insights=tuple(building_insights(milestone.name, metrics, tier)),
        ))

    return result
