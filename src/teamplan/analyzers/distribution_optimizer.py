"""
Distribution Optimizer

Scores how well the current allocation set is distributed against a
single target utilization. The optimizer is read-only: the allocations
it returns are the ones it was given.

Scores (all 0-1, higher is better):
- balance_score: 1 / (1 + variance / 100) of per-team average utilization
- skill_match_score: share of epic allocations the team can fully staff
- context_switching_score: 1 - mean((epics - 1) / epics) per team iteration
- epic_continuity_score: share of team/epic pairs worked in contiguous
  iterations within a cycle
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Set, Tuple

from teamplan.models import Allocation, PlanningSnapshot

from .base import AnalyzerBase, Report, group_by_slot, sum_by_slot


@dataclass(frozen=True)
class OptimizationOptions:
    target_utilization: Optional[float] = None
    respect_skill_constraints: bool = False
    fixed_allocations: Tuple[str, ...] = ()


@dataclass(frozen=True)
class OptimizationResult(Report):
    """Distribution scores for an allocation set."""
    improved_allocations: Tuple[Allocation, ...]
    fixed_allocations: Tuple[str, ...]
    target_utilization: float
    utilization_improvement: float
    balance_score: float
    skill_constraint_violations: Tuple[str, ...]
    skill_match_score: float
    context_switching_score: float
    epic_continuity_score: float


class DistributionOptimizer(AnalyzerBase):
    """Scores the distribution of allocations across teams and iterations."""

    def run(
        self,
        snapshot: PlanningSnapshot,
        options: Optional[OptimizationOptions] = None
    ) -> OptimizationResult:
        return self.optimize(snapshot, options)

    def optimize(
        self,
        snapshot: PlanningSnapshot,
        options: Optional[OptimizationOptions] = None
    ) -> OptimizationResult:
        """
        Score the allocation distribution of a snapshot.

        Args:
            snapshot: Planning snapshot to analyze
            options: Target and constraint options

        Returns:
            OptimizationResult
        """
        options = options or OptimizationOptions()
        target = (
            options.target_utilization
            if options.target_utilization is not None
            else self.policy.target_utilization
        )
        self.logger.info(f"Scoring allocation distribution against {target:g}%")

        allocations = self.resolve(snapshot).valid
        team_by_id = snapshot.team_by_id()
        epic_by_id = snapshot.epic_by_id()

        known_ids = {a.id for a in snapshot.allocations}
        fixed = tuple(a_id for a_id in options.fixed_allocations if a_id in known_ids)
        if len(fixed) != len(options.fixed_allocations):
            self.logger.debug("Ignoring fixed allocations that are not in the snapshot")

        slot_totals = sum_by_slot(allocations)
        utilization_improvement = sum(
            total - target for total in slot_totals.values() if total > target
        )

        uncovered = [
            a.id for a in allocations
            if a.epic_id
            and not team_by_id[a.team_id].has_skills(epic_by_id[a.epic_id].required_skills)
        ]
        epic_allocation_count = sum(1 for a in allocations if a.epic_id)

        result = OptimizationResult(
            improved_allocations=tuple(snapshot.allocations),
            fixed_allocations=fixed,
            target_utilization=target,
            utilization_improvement=utilization_improvement,
            balance_score=self._balance_score(slot_totals),
            skill_constraint_violations=(
                tuple(uncovered) if options.respect_skill_constraints else ()
            ),
            skill_match_score=(
                1 - len(uncovered) / epic_allocation_count
                if epic_allocation_count else 1.0
            ),
            context_switching_score=self._context_switching_score(allocations),
            epic_continuity_score=self._epic_continuity_score(allocations),
        )

        self.logger.info(
            f"Distribution scored: balance {result.balance_score:.2f}, "
            f"{len(uncovered)} allocations without full skill coverage"
        )
        return result

    def _balance_score(self, slot_totals: Dict[Tuple[str, str, int], float]) -> float:
        per_team: Dict[str, List[float]] = defaultdict(list)
        for (team_id, _cycle_id, _iteration), total in slot_totals.items():
            if total > 0:
                per_team[team_id].append(total)

        averages = [self.mean(values) for values in per_team.values()]
        if not averages:
            return 1.0
        center = self.mean(averages)
        variance = self.mean([(value - center) ** 2 for value in averages])
        return 1 / (1 + variance / 100)

    def _context_switching_score(self, allocations: Sequence[Allocation]) -> float:
        ratios = []
        for group in group_by_slot(a for a in allocations if a.epic_id).values():
            epic_count = len({a.epic_id for a in group})
            ratios.append((epic_count - 1) / epic_count)
        if not ratios:
            return 1.0
        return 1 - self.mean(ratios)

    def _epic_continuity_score(self, allocations: Sequence[Allocation]) -> float:
        iterations: Dict[Tuple[str, str, str], Set[int]] = defaultdict(set)
        for allocation in allocations:
            if allocation.epic_id:
                key = (allocation.team_id, allocation.cycle_id, allocation.epic_id)
                iterations[key].add(allocation.iteration_number)
        if not iterations:
            return 1.0

        contiguous = sum(
            1 for numbers in iterations.values()
            if max(numbers) - min(numbers) + 1 == len(numbers)
        )
        return contiguous / len(iterations)
