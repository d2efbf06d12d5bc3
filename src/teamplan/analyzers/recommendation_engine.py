"""
Recommendation Engine

Advisory output for planners. Nothing here changes an allocation.

Recommendations:
- Redistribution: move work from the most over-allocated team iteration
  to the most under-allocated one
- Skill-based staffing: teams whose skills cover an epic's requirements
- Capacity balancing: per-team delta against the target utilization
- Run work ratio: run work share of allocated effort against its target

Redistribution Rule:
```
percentage = min(excess, deficit)

where excess  = total - 100          (source iteration)
      deficit = floor - total        (target iteration, floor = 80 by default)
```
so applying a proposal never pushes the target iteration past the floor.

Usage:
    engine = RecommendationEngine()
    recommendations = engine.generate(snapshot)
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from teamplan.models import Allocation, PlanningSnapshot

from .base import AnalyzerBase, Report, SlotKey, sum_by_slot


class OptimizationType(str, Enum):
    """Kinds of structural optimization."""
    REDISTRIBUTE = "redistribute"
    SKILL_MATCH = "skill_match"
    CAPACITY_BALANCE = "capacity_balance"


@dataclass(frozen=True)
class RedistributionSuggestion(Report):
    type: OptimizationType
    from_team: str
    from_cycle: str
    from_iteration: int
    to_team: str
    to_cycle: str
    to_iteration: int
    percentage: float
    reason: str


@dataclass(frozen=True)
class SkillBasedRecommendation(Report):
    epic_id: str
    recommended_team: str
    alternative_teams: Tuple[str, ...]
    reason: str


@dataclass(frozen=True)
class CapacityBalance(Report):
    team_id: str
    current_utilization: float
    target_utilization: float
    adjustment_needed: float


@dataclass(frozen=True)
class RunWorkOptimization(Report):
    current_run_work_percentage: float
    recommended_run_work_percentage: float
    adjustment: float


@dataclass(frozen=True)
class AllocationRecommendations(Report):
    """Recommendations for a planning snapshot."""
    optimizations: Tuple[RedistributionSuggestion, ...]
    skill_based_recommendations: Tuple[SkillBasedRecommendation, ...]
    capacity_balancing: Tuple[CapacityBalance, ...]
    run_work_optimization: RunWorkOptimization


class RecommendationEngine(AnalyzerBase):
    """
    Generates allocation recommendations.

    Works on resolved, valid allocations only, across every cycle of the
    snapshot; slots are keyed by (team, cycle, iteration).
    """

    def run(self, snapshot: PlanningSnapshot) -> AllocationRecommendations:
        return self.generate(snapshot)

    def generate(self, snapshot: PlanningSnapshot) -> AllocationRecommendations:
        """
        Generate every recommendation kind for a snapshot.

        Args:
            snapshot: Planning snapshot to analyze

        Returns:
            AllocationRecommendations
        """
        self.logger.info("Generating allocation recommendations")

        allocations = self.resolve(snapshot).valid
        slot_totals = sum_by_slot(allocations)

        redistribution = self.suggest_redistribution(slot_totals)
        skill_based = self.suggest_skill_matches(snapshot)
        balancing = self.balance_capacity(snapshot, slot_totals)
        run_work = self.optimize_run_work(allocations)

        self.logger.info(
            f"Recommendations: {len(skill_based)} skill matches, "
            f"{'one' if redistribution else 'no'} redistribution"
        )

        return AllocationRecommendations(
            optimizations=(redistribution,) if redistribution else (),
            skill_based_recommendations=tuple(skill_based),
            capacity_balancing=tuple(balancing),
            run_work_optimization=run_work,
        )

    def suggest_redistribution(
        self,
        slot_totals: Mapping[SlotKey, float]
    ) -> Optional[RedistributionSuggestion]:
        """
        Pair the most over-allocated slot with the most under-allocated one.

        Ties break on (team, cycle, iteration) ascending.
        """
        limit = self.policy.over_allocation_limit
        floor = self.policy.under_allocation_floor

        over = [
            (total - limit, slot) for slot, total in slot_totals.items()
            if self.policy.is_over_allocated(total)
        ]
        under = [
            (floor - total, slot) for slot, total in slot_totals.items()
            if self.policy.is_under_allocated(total)
        ]
        if not over or not under:
            return None

        excess, source = min(over, key=lambda item: (-item[0], item[1]))
        deficit, target = min(under, key=lambda item: (-item[0], item[1]))

        return RedistributionSuggestion(
            type=OptimizationType.REDISTRIBUTE,
            from_team=source[0],
            from_cycle=source[1],
            from_iteration=source[2],
            to_team=target[0],
            to_cycle=target[1],
            to_iteration=target[2],
            percentage=min(excess, deficit),
            reason="Redistribute work from over-allocated to under-allocated iteration",
        )

    def suggest_skill_matches(
        self,
        snapshot: PlanningSnapshot
    ) -> List[SkillBasedRecommendation]:
        """Teams whose skill set covers each epic's required skills."""
        teams = sorted(snapshot.teams, key=lambda team: team.id)
        recommendations = []

        for epic in snapshot.epics:
            if not epic.required_skills:
                continue
            qualified = [team.id for team in teams if team.has_skills(epic.required_skills)]
            if not qualified:
                continue
            recommendations.append(SkillBasedRecommendation(
                epic_id=epic.id,
                recommended_team=qualified[0],
                alternative_teams=tuple(qualified[1:]),
                reason=f"Team has required skills: {', '.join(epic.required_skills)}",
            ))

        return recommendations

    def balance_capacity(
        self,
        snapshot: PlanningSnapshot,
        slot_totals: Mapping[SlotKey, float]
    ) -> List[CapacityBalance]:
        """Per-team average utilization against the target."""
        per_team: Dict[str, List[float]] = {team.id: [] for team in snapshot.teams}
        for (team_id, _cycle_id, _iteration), total in slot_totals.items():
            if total > 0:
                per_team[team_id].append(total)

        target = self.policy.target_utilization
        balancing = []
        for team in snapshot.teams:
            current = self.mean(per_team[team.id])
            balancing.append(CapacityBalance(
                team_id=team.id,
                current_utilization=current,
                target_utilization=target,
                adjustment_needed=target - current,
            ))
        return balancing

    def optimize_run_work(self, allocations: Sequence[Allocation]) -> RunWorkOptimization:
        """Run work share of allocated percentage points against the target."""
        run_work = sum(a.percentage for a in allocations if a.is_run_work)
        total = sum(a.percentage for a in allocations)
        current = run_work / total * 100 if total > 0 else 0.0
        target = self.policy.run_work_target

        return RunWorkOptimization(
            current_run_work_percentage=current,
            recommended_run_work_percentage=target,
            adjustment=target - current,
        )
