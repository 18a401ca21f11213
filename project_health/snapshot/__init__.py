"""
═══════════════════════════════════════════════════════════════════════════════════════════════════════
                    PROJECT HEALTH ENGINE — SNAPSHOT MODULE
═══════════════════════════════════════════════════════════════════════════════════════════════════════

Turns a project's raw schedule hierarchy into a risk / velocity snapshot that
drives the reporting dashboard and the projects-list rollup cards.

A SNAPSHOT has three sections:
- overall:  project stage, time consumed, velocity, risk, predicted due date, insights
- planning: one entry per non-canceled issue
- building: one entry per active milestone (Building stage only)

ARCHITECTURE
════════════

    ┌─────────────────────────────────────────────────────────────────────────┐
    │                         SNAPSHOT ENGINE                                  │
    │                                                                          │
    │  ┌──────────────┐  ┌──────────────┐  ┌──────────────┐  ┌──────────────┐ │
    │  │ stage        │  │ item_metrics │  │ phase_agg    │  │ composer     │ │
    │  │              │  │              │  │              │  │              │ │
    │  │ • Planning   │  │ • time used  │  │ • planning   │  │ • overall    │ │
    │  │ • Building   │  │ • velocity   │  │ • building   │  │ • insights   │ │
    │  │ • QA / Done  │  │ • risk score │  │ • buckets    │  │ • Snapshot   │ │
    │  └──────────────┘  └──────────────┘  └──────────────┘  └──────────────┘ │
    └────────────────────────────────┬────────────────────────────────────────┘
                                     │
    ┌────────────────────────────────▼────────────────────────────────────────┐
    │              ROLLUP / TOOLTIPS / REST API (consumers)                    │
    └─────────────────────────────────────────────────────────────────────────┘

All computations are pure functions of their inputs and an injected ``now``.
"""

from .records import (
    ProjectRecord,
    IssueRecord,
    MilestoneRecord,
    ProjectBundle,
    ProjectStatus,
    IssueStatus,
    IssueType,
    IssueRole,
    build_records_from_frames,
)
from .stage_classifier import (
    ProjectStage,
    classify_stage,
)
from .item_metrics import (
    ItemMetrics,
    compute_item_metrics,
    compute_risk,
    days_between,
)
from .phase_aggregator import (
    PhaseEntry,
    PhaseResult,
    RiskBuckets,
    RiskTier,
    aggregate_planning,
    aggregate_building,
    classify_risk_tier,
)
from .snapshot_composer import (
    OverallMetrics,
    OverallSection,
    Snapshot,
    compute_snapshot,
)
from .tooltips import (
    risk_tooltip,
    time_used_tooltip,
)
from .rollup import (
    RollupRow,
    PortfolioSummary,
    compute_rollup_row,
    compute_portfolio_rollup,
    get_rollup_table,
)

__all__ = [
    # Records
    "ProjectRecord",
    "IssueRecord",
    "MilestoneRecord",
    "ProjectBundle",
    "ProjectStatus",
    "IssueStatus",
    "IssueType",
    "IssueRole",
    "build_records_from_frames",
    # Stage
    "ProjectStage",
    "classify_stage",
    # Item metrics
    "ItemMetrics",
    "compute_item_metrics",
    "compute_risk",
    "days_between",
    # Phases
    "PhaseEntry",
    "PhaseResult",
    "RiskBuckets",
    "RiskTier",
    "aggregate_planning",
    "aggregate_building",
    "classify_risk_tier",
    # Snapshot
    "OverallMetrics",
    "OverallSection",
    "Snapshot",
    "compute_snapshot",
    # Tooltips
    "risk_tooltip",
    "time_used_tooltip",
    # Rollup
    "RollupRow",
    "PortfolioSummary",
    "compute_rollup_row",
    "compute_portfolio_rollup",
    "get_rollup_table",
]
