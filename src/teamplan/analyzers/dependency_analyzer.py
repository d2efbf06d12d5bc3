"""
Dependency Analyzer

Finds epics staffed by more than one team and teams that have become
bottlenecks.

Coordination Risk:
```
teams > 3  -> high    (daily coordination meeting)
teams > 2  -> medium  (weekly)
otherwise  -> low     (weekly)

impact_score = epic effort x team count / 10
```

A team is a bottleneck when its workload (every allocation percentage
summed, regardless of iteration) exceeds the policy threshold. The reason
names the epics it carries, or says its load is run work only.

Usage:
    analyzer = DependencyAnalyzer()
    dependencies = analyzer.analyze(snapshot)
"""

from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Tuple

from teamplan.models import PlanningSnapshot

from .base import AnalyzerBase, Report, RiskLevel


class MeetingFrequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"


@dataclass(frozen=True)
class SharedEpic(Report):
    epic_id: str
    teams: Tuple[str, ...]
    coordination_risk: RiskLevel
    impact_score: float
    critical_path: bool


@dataclass(frozen=True)
class CoordinationMeeting(Report):
    epic_id: str
    frequency: MeetingFrequency
    participants: Tuple[str, ...]


@dataclass(frozen=True)
class Bottleneck(Report):
    team_id: str
    workload: float
    reason: str
    affected_epics: Tuple[str, ...]


@dataclass(frozen=True)
class CrossTeamDependencies(Report):
    """Cross-team coordination findings for a planning snapshot."""
    shared_epics: Tuple[SharedEpic, ...]
    coordination_meetings: Tuple[CoordinationMeeting, ...]
    bottlenecks: Tuple[Bottleneck, ...]


class DependencyAnalyzer(AnalyzerBase):
    """Analyzes cross-team dependencies between allocations."""

    def run(self, snapshot: PlanningSnapshot) -> CrossTeamDependencies:
        return self.analyze(snapshot)

    def analyze(self, snapshot: PlanningSnapshot) -> CrossTeamDependencies:
        """
        Analyze shared epics and bottleneck teams.

        Args:
            snapshot: Planning snapshot to analyze

        Returns:
            CrossTeamDependencies
        """
        self.logger.info("Analyzing cross-team dependencies")

        allocations = self.resolve(snapshot).valid
        epic_by_id = snapshot.epic_by_id()

        teams_by_epic: Dict[str, List[str]] = defaultdict(list)
        for allocation in allocations:
            if allocation.epic_id and allocation.team_id not in teams_by_epic[allocation.epic_id]:
                teams_by_epic[allocation.epic_id].append(allocation.team_id)

        shared_epics = []
        meetings = []
        for epic_id, teams in teams_by_epic.items():
            if len(teams) < 2:
                continue
            epic = epic_by_id[epic_id]
            team_ids = tuple(teams)

            shared_epics.append(SharedEpic(
                epic_id=epic_id,
                teams=team_ids,
                coordination_risk=self.coordination_risk(len(teams)),
                impact_score=epic.effort * len(teams) / 10,
                critical_path=epic.priority in self.policy.critical_path_priorities,
            ))
            meetings.append(CoordinationMeeting(
                epic_id=epic_id,
                frequency=MeetingFrequency.DAILY if len(teams) > 3 else MeetingFrequency.WEEKLY,
                participants=team_ids,
            ))

        workload: Dict[str, float] = defaultdict(float)
        for allocation in allocations:
            workload[allocation.team_id] += allocation.percentage

        bottlenecks = []
        for team_id, total in workload.items():
            if total <= self.policy.bottleneck_workload_threshold:
                continue
            affected = self.dedupe(
                a.epic_id for a in allocations
                if a.team_id == team_id and a.epic_id
            )
            bottlenecks.append(Bottleneck(
                team_id=team_id,
                workload=total,
                reason=self.bottleneck_reason(affected),
                affected_epics=affected,
            ))

        self.logger.info(
            f"Dependency analysis complete: {len(shared_epics)} shared epics, "
            f"{len(bottlenecks)} bottlenecks"
        )

        return CrossTeamDependencies(
            shared_epics=tuple(shared_epics),
            coordination_meetings=tuple(meetings),
            bottlenecks=tuple(bottlenecks),
        )

    @staticmethod
    def coordination_risk(team_count: int) -> RiskLevel:
        if team_count > 3:
            return RiskLevel.HIGH
        if team_count > 2:
            return RiskLevel.MEDIUM
        return RiskLevel.LOW

    @staticmethod
    def bottleneck_reason(affected_epics: Tuple[str, ...]) -> str:
        if len(affected_epics) > 1:
            return f"Team is critical path for {len(affected_epics)} epics"
        if affected_epics:
            return f"Team is critical path for epic {affected_epics[0]}"
        return "Team workload is run work only"
