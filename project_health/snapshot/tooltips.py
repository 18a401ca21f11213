"""
Hover text for the risk gauges and time-used bars of a snapshot.
"""

from __future__ import annotations

from typing import Union

from .phase_aggregator import PhaseEntry
from .records import IssueStatus, display_date
from .snapshot_composer import OverallSection


def risk_tooltip(entry: Union[PhaseEntry, OverallSection]) -> str:
    """Risk gauge tooltip for a planning/building entry or the overall section."""
    stage = getattr(entry.stage, 'value', entry.stage)
    if stage == IssueStatus.COMPLETED.value:
        return f"{entry.name} has been completed. Risk score is 0"
    return f"{entry.name} is at {stage} stage. Risk score is {entry.metrics.risk_score:g}"


def time_used_tooltip(entry: PhaseEntry) -> str:
    """Time-used bar tooltip for a planning or building entry."""
    metrics = entry.metrics
    planned_end = display_date(metrics.planned_end_date)

    if entry.stage == IssueStatus.COMPLETED.value:
        return f"initial due date {planned_end}, completed on {display_date(metrics.actual_end_date)}"
    if metrics.past_time > metrics.total_time:
        return f"due date {planned_end}, already late by {metrics.past_time - metrics.total_time} days"
    return f"{metrics.past_time} out of {metrics.total_time} days passed, due date {planned_end}"


def overall_time_used_tooltip(overall: OverallSection) -> str:
    """Time-used tooltip for the project, measured against its initial due date."""
    metrics = overall.metrics
    due = display_date(overall.due_date)
    if metrics.past_time > metrics.total_time:
        return f"due date {due}, already late by {metrics.past_time - metrics.total_time} days"
    return f"{metrics.past_time} out of {metrics.total_time} days passed, due date {due}"
