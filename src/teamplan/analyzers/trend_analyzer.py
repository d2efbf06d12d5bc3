"""
Trend Analyzer

Looks at allocations over time, per team and per cycle.

Metrics:
- Team trend and velocity change (last minus first team iteration)
- Predicted capacity need (average utilization x growth factor)
- Burnout risk (repeated iterations above 100%)
- Per-cycle predicted utilization with a confidence level
- Iterations where run work and project work peak

Team series are ordered chronologically: by cycle start date, then by
iteration number. Cycles without a start date keep their snapshot order
after the dated ones.

Usage:
    analyzer = TrendAnalyzer()
    trends = analyzer.analyze(snapshot)
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from teamplan.models import Allocation, PlanningSnapshot

from .base import (
    AnalyzerBase,
    Report,
    RiskLevel,
    UtilizationTrend,
    classify_trend,
    sum_by_slot,
)


class ConfidenceLevel(str, Enum):
    """Confidence of a prediction."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class TeamTrend(Report):
    team_id: str
    trend: UtilizationTrend
    velocity_change: float
    predicted_capacity: float
    data_points: int


@dataclass(frozen=True)
class BurnoutRisk(Report):
    team_id: str
    risk_level: RiskLevel
    over_allocated_iterations: int
    longest_consecutive_run: int


@dataclass(frozen=True)
class CyclePrediction(Report):
    cycle_id: str
    predicted_utilization: int
    confidence: ConfidenceLevel


@dataclass(frozen=True)
class SeasonalPatterns(Report):
    run_work_peak: Optional[str]
    project_work_peak: Optional[str]


@dataclass(frozen=True)
class AllocationTrends(Report):
    """Trend and risk projection for a planning snapshot."""
    team_trends: Tuple[TeamTrend, ...]
    seasonal_patterns: SeasonalPatterns
    predictions: Tuple[CyclePrediction, ...]
    burnout_risks: Tuple[BurnoutRisk, ...]


class TrendAnalyzer(AnalyzerBase):
    """
    Projects allocation trends and burnout risk.

    A team is at medium burnout risk with two over-allocated iterations and
    at high risk with three (policy ``burnout_medium_count`` /
    ``burnout_high_count``); the iterations need not be consecutive.
    """

    def run(self, snapshot: PlanningSnapshot) -> AllocationTrends:
        return self.analyze(snapshot)

    def analyze(self, snapshot: PlanningSnapshot) -> AllocationTrends:
        """
        Analyze allocation trends.

        Args:
            snapshot: Planning snapshot to analyze

        Returns:
            AllocationTrends
        """
        self.logger.info("Analyzing allocation trends")

        allocations = self.resolve(snapshot).valid
        series_by_team = self._team_series(snapshot, allocations)

        team_trends = []
        burnout_risks = []
        for team in snapshot.teams:
            series = series_by_team.get(team.id, [])
            team_trends.append(TeamTrend(
                team_id=team.id,
                trend=classify_trend(series),
                velocity_change=series[-1] - series[0] if len(series) >= 2 else 0.0,
                predicted_capacity=self.mean(series) * self.policy.prediction_growth_factor,
                data_points=len(series),
            ))

            risk = self._burnout_risk(team.id, series)
            if risk:
                burnout_risks.append(risk)

        predictions = tuple(
            self._predict_cycle(
                cycle.id, [a for a in allocations if a.cycle_id == cycle.id]
            )
            for cycle in snapshot.cycles
        )

        self.logger.info(
            f"Trend analysis complete: {len(team_trends)} teams, "
            f"{len(burnout_risks)} at burnout risk"
        )

        return AllocationTrends(
            team_trends=tuple(team_trends),
            seasonal_patterns=self._seasonal_patterns(allocations),
            predictions=predictions,
            burnout_risks=tuple(burnout_risks),
        )

    def _team_series(
        self,
        snapshot: PlanningSnapshot,
        allocations: Sequence[Allocation]
    ) -> Dict[str, List[float]]:
        """Chronological non-empty slot totals per team."""
        ordered_cycles = sorted(
            enumerate(snapshot.cycles),
            key=lambda item: (
                item[1].start_date is None,
                item[1].start_date or date.min,
                item[0],
            ),
        )
        cycle_rank = {cycle.id: rank for rank, (_, cycle) in enumerate(ordered_cycles)}

        totals = sum_by_slot(allocations)
        series: Dict[str, List[float]] = defaultdict(list)
        for (team_id, cycle_id, iteration), total in sorted(
            totals.items(),
            key=lambda item: (cycle_rank[item[0][1]], item[0][2]),
        ):
            if total > 0:
                series[team_id].append(total)
        return dict(series)

    def _burnout_risk(self, team_id: str, series: Sequence[float]) -> Optional[BurnoutRisk]:
        over_flags = [self.policy.is_over_allocated(total) for total in series]
        count = sum(over_flags)
        if count < self.policy.burnout_medium_count:
            return None

        longest = run = 0
        for flag in over_flags:
            run = run + 1 if flag else 0
            longest = max(longest, run)

        if count >= self.policy.burnout_high_count:
            level = RiskLevel.HIGH
        else:
            level = RiskLevel.MEDIUM

        return BurnoutRisk(
            team_id=team_id,
            risk_level=level,
            over_allocated_iterations=count,
            longest_consecutive_run=longest,
        )

    def _predict_cycle(
        self,
        cycle_id: str,
        allocations: Sequence[Allocation]
    ) -> CyclePrediction:
        if len(allocations) > self.policy.high_confidence_min_allocations:
            confidence = ConfidenceLevel.HIGH
        elif allocations:
            confidence = ConfidenceLevel.MEDIUM
        else:
            confidence = ConfidenceLevel.LOW

        average = self.mean([a.percentage for a in allocations])
        return CyclePrediction(
            cycle_id=cycle_id,
            predicted_utilization=round(average * self.policy.prediction_decay_factor),
            confidence=confidence,
        )

    def _seasonal_patterns(self, allocations: Sequence[Allocation]) -> SeasonalPatterns:
        run_work: Dict[int, float] = defaultdict(float)
        project_work: Dict[int, float] = defaultdict(float)
        for allocation in allocations:
            bucket = run_work if allocation.is_run_work else project_work
            bucket[allocation.iteration_number] += allocation.percentage

        return SeasonalPatterns(
            run_work_peak=self._peak_label(run_work),
            project_work_peak=self._peak_label(project_work),
        )

    @staticmethod
    def _peak_label(totals: Dict[int, float]) -> Optional[str]:
        if not totals:
            return None
        # lowest iteration number wins a tie
        peak = min(totals, key=lambda number: (-totals[number], number))
        return f"iteration-{peak}"
