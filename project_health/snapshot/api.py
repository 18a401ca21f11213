"""
Project Health Engine - Snapshot API
====================================

Endpoints REST para o snapshot de saúde de projetos.

Endpoints:
- GET  /project-health/status       - Estado do serviço
- GET  /project-health/thresholds   - Configuração dos níveis de risco
- POST /project-health/snapshot     - Snapshot de um projeto
- POST /project-health/rollup       - Cartões e resumo de um portfolio
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, Query

from .. import __version__
from ..settings import HealthConfig, InvalidThresholdsError, RiskThresholds
from .rollup import compute_portfolio_rollup
from .schemas import RollupRequest, RollupResponse, SnapshotRequest, ThresholdsIn
from .snapshot_composer import compute_snapshot
from .tooltips import overall_time_used_tooltip, risk_tooltip, time_used_tooltip

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/project-health", tags=["Project Health"])


def _resolve_now(now: Optional[datetime]) -> datetime:
    # the clock is read here, never inside the engine
    return now or datetime.now(timezone.utc)


def _resolve_thresholds(override: Optional[ThresholdsIn]) -> RiskThresholds:
    if override is None:
        return HealthConfig.get_thresholds()
    try:
        return override.to_thresholds()
    except InvalidThresholdsError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/status")
async def get_health_status():
    """Get project health module status."""
    return {
        "service": "Project Health Engine",
        "version": __version__,
        "status": "operational",
        "stages": ["Planning", "Building", "QA", "Done"],
    }


@router.get("/thresholds")
async def get_thresholds() -> Dict[str, Any]:
    """Configuração atual dos níveis de risco."""
    return HealthConfig.to_dict()


@router.post("/snapshot")
async def post_snapshot(
    request: SnapshotRequest,
    include_tooltips: bool = Query(False, description="Adicionar tooltips aos gauges"),
) -> Dict[str, Any]:
    """
    Calcula o snapshot de saúde de um projeto.

    O snapshot contém as secções overall, planning e building.
    """
    thresholds = _resolve_thresholds(request.thresholds)
    bundle = request.to_bundle()

    snapshot = compute_snapshot(
        bundle.project,
        bundle.issues,
        bundle.milestones,
        _resolve_now(request.now),
        thresholds=thresholds,
    )
    result = snapshot.to_dict()

    if include_tooltips:
        result['overall']['tooltips'] = {
            'risk': risk_tooltip(snapshot.overall),
            'timeUsed': overall_time_used_tooltip(snapshot.overall),
        }
        for section in ('planning', 'building'):
            for entry, payload in zip(getattr(snapshot, section), result[section]):
                payload['tooltips'] = {
                    'risk': risk_tooltip(entry),
                    'timeUsed': time_used_tooltip(entry),
                }

    return result


@router.post("/rollup", response_model=RollupResponse)
async def post_rollup(request: RollupRequest):
    """
    Calcula os cartões da lista de projetos e o resumo do portfolio.
    """
    thresholds = _resolve_thresholds(request.thresholds)
    bundles = [b.to_bundle() for b in request.projects]

    rows, summary = compute_portfolio_rollup(bundles, _resolve_now(request.now), thresholds)

    return RollupResponse(
        rows=[row.to_dict() for row in rows],
        summary=summary.to_dict(),
    )
