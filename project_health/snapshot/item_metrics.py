"""
═══════════════════════════════════════════════════════════════════════════════════════════════════════
                    PROJECT HEALTH ENGINE — ITEM METRICS
═══════════════════════════════════════════════════════════════════════════════════════════════════════

Time consumption, velocity and risk for one schedulable item (issue or milestone).

DEFINITIONS
═══════════

All durations are whole days, floored:  days(a, b) = ⌊(a - b) / 1 day⌋

Window start:
    s_i = actualStart_i ?? plannedStart_i ?? createdAt_i

Total time (never zero):
    T_i = max(1, days(plannedEnd_i, s_i))          (T_i = 1 when plannedEnd_i is unknown)

Past time:
    completed:   P_i = max(0, days(actualEnd_i ?? updatedAt_i, plannedStart_i ?? createdAt_i))
    otherwise:   P_i = max(0, days(now, s_i))

Time consumed:
    pct_i = ⌊P_i / T_i × 100⌋

Velocity (integer percentage of expected velocity, uncapped):
    v_i = ⌊progress_i / (pct_i || 1) × 100⌋

RISK MODEL
══════════

    progress > 0, pct > 0 :  r = ⌊(1 − progress / pct) × 100⌋ / 100
    pct = 0               :  r = 0
    progress = 0, pct > 0 :  r = ⌈pct × k⌉ / 100            (k = zero-progress multiplier, 1.2)

    r = clamp(r, 0, 1);   r = 0 for COMPLETED items

Examples:
    progress 50, pct 50 → r = 0
    progress  0, pct 40 → r = ⌈48⌉ / 100 = 0.48
    progress 20, pct  0 → r = 0

Everything here is a pure function of the item and an injected ``now``.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from ..settings import HealthConfig
from .records import IssueStatus, Schedulable, iso_date, to_naive_utc

logger = logging.getLogger(__name__)


ONE_DAY = timedelta(days=1)


# ════════════════════════════════════════════════════════════════════════════════════════════════════
# DATA STRUCTURES
# ════════════════════════════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ItemMetrics:
    """
    Metrics for a single issue or milestone.

    Attributes:
        total_time: Planned window in days (>= 1)
        past_time: Elapsed days (>= 0)
        past_time_percentage: Share of the window consumed, integer percent
        progress: Work progress, 0-100
        velocity: Progress relative to time consumed, integer percent
        risk_score: Schedule risk in [0, 1]
        planned_end_date: Planned end of the item, if set
        actual_end_date: Actual end of the item, if set
    """
    total_time: int
    past_time: int
    past_time_percentage: int
    progress: int
    velocity: int
    risk_score: float
    planned_end_date: Optional[datetime] = None
    actual_end_date: Optional[datetime] = None

    @property
    def risk_pct(self) -> int:
        """Risk score as a floored integer percentage."""
        return math.floor(self.risk_score * 100)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'totalTime': self.total_time,
            'pastTime': self.past_time,
            'pastTimePercentage': self.past_time_percentage,
            'progress': self.progress,
            'velocity': self.velocity,
            'riskScore': self.risk_score,
            'plannedEndDate': iso_date(self.planned_end_date),
        }


# ════════════════════════════════════════════════════════════════════════════════════════════════════
# PRIMITIVES
# ════════════════════════════════════════════════════════════════════════════════════════════════════

def days_between(later: datetime, earlier: datetime) -> int:
    """Whole days from ``earlier`` to ``later``, floored (negative if reversed)."""
    return (later - earlier) // ONE_DAY


def time_percentage(past_time: int, total_time: int) -> int:
    """⌊past / total × 100⌋."""
    return math.floor(past_time / total_time * 100)


def compute_velocity(progress: int, past_time_percentage: int) -> int:
    """Progress relative to time consumed; a zero percentage divides by 1."""
    return math.floor((progress or 0) / (past_time_percentage or 1) * 100)


def compute_risk(
    progress: int,
    past_time_percentage: int,
    zero_progress_multiplier: Optional[float] = None
) -> float:
    """
    Risk score from progress and time consumed.

    Args:
        progress: Work progress, 0-100
        past_time_percentage: Time consumed, integer percent (may exceed 100)
        zero_progress_multiplier: Penalty applied when nothing has been done
            yet; defaults to the configured value

    Returns:
        Risk score clamped to [0, 1]
    """
    if zero_progress_multiplier is None:
        zero_progress_multiplier = HealthConfig.get_zero_progress_multiplier()

    progress = progress or 0
    risk = 0.0
    if progress > 0 and past_time_percentage > 0:
        risk = math.floor((1 - progress / past_time_percentage) * 100) / 100
    elif past_time_percentage == 0:
        risk = 0.0
    elif progress == 0:
        risk = math.ceil(past_time_percentage * zero_progress_multiplier) / 100

    return min(1.0, max(0.0, risk))


# ════════════════════════════════════════════════════════════════════════════════════════════════════
# ITEM METRICS
# ════════════════════════════════════════════════════════════════════════════════════════════════════

def compute_item_metrics(
    item: Schedulable,
    now: datetime,
    zero_progress_multiplier: Optional[float] = None
) -> ItemMetrics:
    """
    Compute time, velocity and risk metrics for one item.

    Args:
        item: Issue or milestone record
        now: Evaluation instant, injected by the caller (normalised to naive UTC)
        zero_progress_multiplier: Optional override of the configured penalty

    Returns:
        ItemMetrics
    """
    now = to_naive_utc(now)
    window_start = item.actual_start_date or item.planned_start_date or item.created_at

    if item.planned_end_date is not None:
        total_time = max(1, days_between(item.planned_end_date, window_start))
    else:
        total_time = 1

    if item.status == IssueStatus.COMPLETED:
        finished = item.actual_end_date or item.updated_at
        started = item.planned_start_date or item.created_at
        past_time = max(0, days_between(finished, started))
    else:
        past_time = max(0, days_between(now, window_start))

    past_time_percentage = time_percentage(past_time, total_time)
    progress = item.progress or 0

    risk_score = compute_risk(progress, past_time_percentage, zero_progress_multiplier)
    if item.status == IssueStatus.COMPLETED:
        risk_score = 0.0

    return ItemMetrics(
        total_time=total_time,
        past_time=past_time,
        past_time_percentage=past_time_percentage,
        progress=progress,
        velocity=compute_velocity(progress, past_time_percentage),
        risk_score=risk_score,
        planned_end_date=item.planned_end_date,
        actual_end_date=item.actual_end_date,
    )
