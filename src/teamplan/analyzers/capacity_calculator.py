"""
Capacity Calculator

Per-team, per-iteration utilization for one planning cycle.

Metrics:
- Total capacity hours (capacity x iteration length in weeks)
- Allocated percentage per iteration, with over/under-allocation flags
- Average, peak and minimum utilization over iterations with work
- Utilization trend (first / middle / last iteration with work)
- Skill gaps against the epics the team is allocated to

Usage:
    calculator = CapacityCalculator()

    # One team
    report = calculator.calculate_team_utilization(
        team, allocations, cycle, epics, run_work_categories
    )

    # Every team of a snapshot
    reports = calculator.calculate_all(snapshot, cycle_id)
"""

from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from teamplan.models import (
    Allocation,
    Cycle,
    Epic,
    PlanningSnapshot,
    RunWorkCategory,
    Team,
)

from .base import (
    AnalyzerBase,
    Report,
    UtilizationTrend,
    classify_trend,
    resolve_allocations,
)


NO_WORK_ALLOCATED = "Team appears to have no work allocated"
ZERO_CAPACITY = "Team has zero capacity"


@dataclass(frozen=True)
class IterationUtilization(Report):
    """Utilization of one team in one iteration."""
    iteration_number: int
    capacity_hours: float
    allocated_percentage: float
    is_over_allocated: bool
    is_under_allocated: bool


@dataclass(frozen=True)
class TeamCapacityUtilization(Report):
    """Capacity utilization of one team over one cycle."""
    team_id: str
    cycle_id: str
    total_capacity_hours: float
    average_utilization: float
    peak_utilization: float
    min_utilization: float
    utilization_trend: UtilizationTrend
    over_allocated_iterations: Tuple[int, ...]
    under_allocated_iterations: Tuple[int, ...]
    skill_gaps: Tuple[str, ...]
    recommendations: Tuple[str, ...]
    warnings: Tuple[str, ...]
    iteration_breakdown: Tuple[IterationUtilization, ...]


class CapacityCalculator(AnalyzerBase):
    """
    Calculates team capacity utilization for a cycle.

    Only allocations that resolve against the supplied team, cycle, epics
    and run work categories and carry a 0-100 percentage are counted, so
    the per-iteration sums agree with the ConsistencyValidator.
    """

    def run(self, snapshot: PlanningSnapshot, cycle_id: str) -> List[TeamCapacityUtilization]:
        """
        Run utilization for every team of a snapshot.

        Args:
            snapshot: Planning snapshot to analyze
            cycle_id: Cycle to report on

        Returns:
            One TeamCapacityUtilization per team
        """
        return self.calculate_all(snapshot, cycle_id)

    def calculate_all(
        self,
        snapshot: PlanningSnapshot,
        cycle_id: str
    ) -> List[TeamCapacityUtilization]:
        """
        Calculate utilization for every team in one cycle.

        Raises:
            ValueError: If the cycle is not part of the snapshot
        """
        cycle = snapshot.cycle_by_id().get(cycle_id)
        if cycle is None:
            raise ValueError(f"Cycle {cycle_id} not found")

        return [
            self.calculate_team_utilization(
                team,
                snapshot.allocations,
                cycle,
                snapshot.epics,
                snapshot.run_work_categories,
            )
            for team in snapshot.teams
        ]

    def calculate_team_utilization(
        self,
        team: Team,
        allocations: Sequence[Allocation],
        cycle: Cycle,
        epics: Sequence[Epic],
        run_work_categories: Sequence[RunWorkCategory],
    ) -> TeamCapacityUtilization:
        """
        Calculate utilization metrics for one team over one cycle.

        Args:
            team: Team to report on
            allocations: Full allocation set (filtered to team and cycle here)
            cycle: Cycle with its iterations
            epics: All epics (for skill gaps and reference checks)
            run_work_categories: All run work categories

        Returns:
            TeamCapacityUtilization for the team and cycle
        """
        epic_by_id = {epic.id: epic for epic in epics}
        resolved = resolve_allocations(
            (
                a for a in allocations
                if a.team_id == team.id and a.cycle_id == cycle.id
            ),
            {team.id: team},
            epic_by_id,
            {cycle.id: cycle},
            {category.id: category for category in run_work_categories},
        )
        team_allocations = resolved.valid

        capacity = team.effective_capacity
        total_capacity_hours = capacity * cycle.total_weeks

        totals: Dict[int, float] = {}
        for allocation in team_allocations:
            totals[allocation.iteration_number] = (
                totals.get(allocation.iteration_number, 0.0) + allocation.percentage
            )

        breakdown = []
        for iteration in cycle.iterations:
            breakdown.append(self._iteration_entry(
                iteration.number,
                capacity * iteration.duration_weeks,
                totals.pop(iteration.number, 0.0),
            ))
        # Allocations against iteration numbers the cycle does not define
        for number in sorted(totals):
            breakdown.append(self._iteration_entry(number, 0.0, totals[number]))

        series = [entry.allocated_percentage for entry in breakdown if entry.allocated_percentage > 0]
        over_allocated = tuple(e.iteration_number for e in breakdown if e.is_over_allocated)
        under_allocated = tuple(e.iteration_number for e in breakdown if e.is_under_allocated)

        skill_gaps = self.dedupe(
            skill
            for allocation in team_allocations
            if allocation.epic_id
            for skill in team.missing_skills(epic_by_id[allocation.epic_id].required_skills)
        )

        warnings = []
        if team.capacity < 0:
            self.logger.warning(
                f"Team {team.id} has negative capacity {team.capacity}, treating as zero"
            )
            warnings.append(
                f"Team capacity {team.capacity} is negative and was treated as zero"
            )
        if capacity == 0:
            warnings.append(ZERO_CAPACITY)

        average = self.mean(series)
        recommendations = self._generate_recommendations(
            average, capacity, skill_gaps, over_allocated, under_allocated
        )

        self.logger.info(
            f"Utilization for team {team.id} in cycle {cycle.id}: "
            f"{len(team_allocations)} allocations, average {average:.1f}%"
        )

        return TeamCapacityUtilization(
            team_id=team.id,
            cycle_id=cycle.id,
            total_capacity_hours=total_capacity_hours,
            average_utilization=average,
            peak_utilization=max(series, default=0.0),
            min_utilization=min(series, default=0.0),
            utilization_trend=classify_trend(series),
            over_allocated_iterations=over_allocated,
            under_allocated_iterations=under_allocated,
            skill_gaps=skill_gaps,
            recommendations=tuple(recommendations),
            warnings=tuple(warnings),
            iteration_breakdown=tuple(breakdown),
        )

    def _iteration_entry(
        self,
        iteration_number: int,
        capacity_hours: float,
        total: float
    ) -> IterationUtilization:
        return IterationUtilization(
            iteration_number=iteration_number,
            capacity_hours=capacity_hours,
            allocated_percentage=total,
            is_over_allocated=self.policy.is_over_allocated(total),
            is_under_allocated=self.policy.is_under_allocated(total),
        )

    def _generate_recommendations(
        self,
        average_utilization: float,
        capacity: float,
        skill_gaps: Tuple[str, ...],
        over_allocated: Tuple[int, ...],
        under_allocated: Tuple[int, ...],
    ) -> List[str]:
        """Advisory strings: no work, zero capacity, skills, redistribution."""
        recommendations = []

        if average_utilization == 0:
            recommendations.append(NO_WORK_ALLOCATED)

        if capacity == 0:
            recommendations.append(
                "Assign capacity to the team before planning work against it"
            )

        if skill_gaps:
            recommendations.append(
                f"Consider training team members in {', '.join(skill_gaps)} skills"
            )

        if over_allocated and under_allocated:
            recommendations.append(
                f"Redistribute work from iteration {over_allocated[0]} "
                f"to iteration {under_allocated[0]}"
            )

        return recommendations
