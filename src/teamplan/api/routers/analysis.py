"""
Analysis API endpoints.

Endpoints:
- POST /api/v1/analysis/utilization/{team_id} - One team's cycle utilization
- POST /api/v1/analysis/validation - Consistency validation
- POST /api/v1/analysis/conflicts - Conflicts of one cycle
- POST /api/v1/analysis/recommendations - Allocation recommendations
- POST /api/v1/analysis/dependencies - Cross-team dependencies
- POST /api/v1/analysis/trends - Allocation trends
- POST /api/v1/analysis/optimization - Distribution scores

Every endpoint takes a planning snapshot as its body and returns a report.
"""

from typing import Any, Dict

from fastapi import APIRouter, HTTPException, Path, Query, status

from teamplan.analyzers import (
    CapacityCalculator,
    ConflictDetector,
    ConsistencyValidator,
    DependencyAnalyzer,
    DistributionOptimizer,
    RecommendationEngine,
    TrendAnalyzer,
)
from teamplan.api.dependencies import PolicyDep
from teamplan.api.schemas import OptimizationRequest
from teamplan.models import PlanningSnapshot
from teamplan.platform.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.post("/utilization/{team_id}")
def get_team_utilization(
    snapshot: PlanningSnapshot,
    policy: PolicyDep,
    team_id: str = Path(..., description="Team to report on"),
    cycle_id: str = Query(..., description="Cycle to report on"),
) -> Dict[str, Any]:
    """Capacity utilization of one team over one cycle."""
    team = snapshot.team_by_id().get(team_id)
    if team is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Team {team_id} not found",
        )
    cycle = snapshot.cycle_by_id().get(cycle_id)
    if cycle is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Cycle {cycle_id} not found",
        )

    report = CapacityCalculator(policy).calculate_team_utilization(
        team,
        snapshot.allocations,
        cycle,
        snapshot.epics,
        snapshot.run_work_categories,
    )
    return report.to_dict()


@router.post("/validation")
def validate_allocations(snapshot: PlanningSnapshot, policy: PolicyDep) -> Dict[str, Any]:
    """Consistency validation over the whole allocation set."""
    return ConsistencyValidator(policy).validate(snapshot).to_dict()


@router.post("/conflicts")
def detect_conflicts(
    snapshot: PlanningSnapshot,
    policy: PolicyDep,
    cycle_id: str = Query(..., description="Cycle to analyze"),
) -> Dict[str, Any]:
    """Conflicts of one cycle, with icons and colours for presentation."""
    result = ConflictDetector(policy).detect_conflicts(snapshot, cycle_id)
    payload = result.to_dict()
    for rendered, conflict in zip(payload["conflicts"], result.conflicts):
        rendered["icon"] = conflict.icon
        rendered["color"] = conflict.color
    return payload


@router.post("/recommendations")
def generate_recommendations(snapshot: PlanningSnapshot, policy: PolicyDep) -> Dict[str, Any]:
    return RecommendationEngine(policy).generate(snapshot).to_dict()


@router.post("/dependencies")
def analyze_dependencies(snapshot: PlanningSnapshot, policy: PolicyDep) -> Dict[str, Any]:
    return DependencyAnalyzer(policy).analyze(snapshot).to_dict()


@router.post("/trends")
def analyze_trends(snapshot: PlanningSnapshot, policy: PolicyDep) -> Dict[str, Any]:
    return TrendAnalyzer(policy).analyze(snapshot).to_dict()


@router.post("/optimization")
def optimize_distribution(request: OptimizationRequest, policy: PolicyDep) -> Dict[str, Any]:
    logger.info(
        f"Optimization requested for {len(request.snapshot.allocations)} allocations"
    )
    result = DistributionOptimizer(policy).optimize(request.snapshot, request.to_options())
    return result.to_dict()
