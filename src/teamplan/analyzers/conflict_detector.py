"""
Conflict Detector

Classifies scheduling conflicts in one planning cycle.

Conflict Types:
- Overallocation (team iteration > 100%)
- Resource contention (same epic, several teams, same iteration)
- Dependency violation (epic staffed before its dependencies complete)
- Timeline overlap (too many concurrent epics for one team iteration)
- Skill mismatch (team lacks the epic's required skills)
- Capacity exceeded (out-of-range percentage, or zero-capacity team)

Overallocation severity is computed from the summed percentage of the team
iteration, never from a single allocation: 130% is the same severity
whether it comes from one allocation or from several.

Usage:
    detector = ConflictDetector()

    # Detect all conflicts in a cycle
    result = detector.detect_conflicts(snapshot, cycle_id)

    # Conflicts touching one allocation
    conflicts = detector.check_allocation_conflicts(snapshot, cycle_id, allocation_id)
"""

from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from teamplan.models import Allocation, Epic, PlanningSnapshot, Team

from .base import AnalyzerBase, Report, resolve_allocations


class ConflictType(str, Enum):
    """Types of conflicts."""
    OVERALLOCATION = "overallocation"
    RESOURCE_CONTENTION = "resource-contention"
    DEPENDENCY_VIOLATION = "dependency-violation"
    TIMELINE_OVERLAP = "timeline-overlap"
    SKILL_MISMATCH = "skill-mismatch"
    CAPACITY_EXCEEDED = "capacity-exceeded"


class ConflictSeverity(str, Enum):
    """Severity levels for conflicts."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


CONFLICT_ICONS: Dict[ConflictType, str] = {
    ConflictType.OVERALLOCATION: "⚠️",
    ConflictType.RESOURCE_CONTENTION: "⚔️",
    ConflictType.DEPENDENCY_VIOLATION: "🔗",
    ConflictType.TIMELINE_OVERLAP: "⏰",
    ConflictType.SKILL_MISMATCH: "🎯",
    ConflictType.CAPACITY_EXCEEDED: "📊",
}

SEVERITY_COLORS: Dict[ConflictSeverity, str] = {
    ConflictSeverity.CRITICAL: "text-red-600 bg-red-50 border-red-200",
    ConflictSeverity.HIGH: "text-orange-600 bg-orange-50 border-orange-200",
    ConflictSeverity.MEDIUM: "text-yellow-600 bg-yellow-50 border-yellow-200",
    ConflictSeverity.LOW: "text-blue-600 bg-blue-50 border-blue-200",
}


def get_conflict_type_icon(conflict_type: ConflictType) -> str:
    return CONFLICT_ICONS[conflict_type]


def get_conflict_severity_color(severity: ConflictSeverity) -> str:
    return SEVERITY_COLORS[severity]


@dataclass(frozen=True)
class ConflictImpact(Report):
    """Estimated risk (0-100) a conflict carries."""
    delay_risk: float
    quality_risk: float
    resource_waste: float


@dataclass(frozen=True)
class Conflict(Report):
    """Represents a detected conflict."""
    id: str
    conflict_type: ConflictType
    severity: ConflictSeverity
    title: str
    description: str

    # Affected entities
    affected_allocations: Tuple[str, ...]
    affected_teams: Tuple[str, ...]
    affected_epics: Tuple[str, ...]

    impact: ConflictImpact
    suggested_actions: Tuple[str, ...] = ()

    # Details
    iteration_number: Optional[int] = None
    total_percentage: Optional[float] = None
    blocking_dependencies: Tuple[str, ...] = ()

    @property
    def icon(self) -> str:
        return get_conflict_type_icon(self.conflict_type)

    @property
    def color(self) -> str:
        return get_conflict_severity_color(self.severity)


@dataclass(frozen=True)
class ConflictSummary(Report):
    """Counts of one conflict detection run."""
    total: int
    critical: int
    high: int
    medium: int
    low: int
    by_type: Mapping[str, int]


@dataclass(frozen=True)
class ConflictDetectionResult(Report):
    """Result of conflict detection for one cycle."""
    cycle_id: str
    conflicts: Tuple[Conflict, ...]
    summary: ConflictSummary
    affected_teams_count: int
    affected_epics_count: int
    overall_risk_score: int


class ConflictDetector(AnalyzerBase):
    """
    Detects allocation conflicts within one cycle.

    Each conflict type is detected independently, so one allocation can
    appear in several conflicts. Allocations of other cycles are ignored;
    orphaned allocations never produce conflicts.
    """

    def run(self, snapshot: PlanningSnapshot, cycle_id: str) -> ConflictDetectionResult:
        """
        Run full conflict detection.

        Returns:
            ConflictDetectionResult with all detected issues
        """
        return self.detect_conflicts(snapshot, cycle_id)

    def detect_conflicts(
        self,
        snapshot: PlanningSnapshot,
        cycle_id: str
    ) -> ConflictDetectionResult:
        """
        Detect all types of conflicts in a cycle.

        Args:
            snapshot: Planning snapshot to analyze
            cycle_id: Only allocations of this cycle are considered

        Returns:
            ConflictDetectionResult with conflicts, summary and risk score
        """
        log = self.logger.bind(cycle_id=cycle_id)
        log.info("Running conflict detection")

        team_by_id = snapshot.team_by_id()
        epic_by_id = snapshot.epic_by_id()
        resolved = resolve_allocations(
            (a for a in snapshot.allocations if a.cycle_id == cycle_id),
            team_by_id,
            epic_by_id,
            snapshot.cycle_by_id(),
            snapshot.run_work_by_id(),
        )
        allocations = resolved.valid

        all_conflicts: List[Conflict] = []
        all_conflicts.extend(self.detect_overallocations(allocations, team_by_id))
        all_conflicts.extend(self.detect_skill_mismatches(allocations, team_by_id, epic_by_id))
        all_conflicts.extend(self.detect_dependency_violations(allocations, epic_by_id))
        all_conflicts.extend(self.detect_resource_contention(allocations, epic_by_id))
        all_conflicts.extend(self.detect_timeline_overlaps(allocations, team_by_id))
        all_conflicts.extend(self.detect_capacity_exceeded(
            allocations, resolved.invalid_percentage, team_by_id
        ))

        by_type: Dict[str, int] = defaultdict(int)
        by_severity: Dict[ConflictSeverity, int] = defaultdict(int)
        for conflict in all_conflicts:
            by_type[conflict.conflict_type.value] += 1
            by_severity[conflict.severity] += 1

        summary = ConflictSummary(
            total=len(all_conflicts),
            critical=by_severity[ConflictSeverity.CRITICAL],
            high=by_severity[ConflictSeverity.HIGH],
            medium=by_severity[ConflictSeverity.MEDIUM],
            low=by_severity[ConflictSeverity.LOW],
            by_type=dict(by_type),
        )

        affected_teams = {t for c in all_conflicts for t in c.affected_teams}
        affected_epics = {e for c in all_conflicts for e in c.affected_epics}

        log.info(
            f"Conflict detection complete: {summary.total} conflicts found, "
            f"{summary.critical} critical"
        )

        return ConflictDetectionResult(
            cycle_id=cycle_id,
            conflicts=tuple(all_conflicts),
            summary=summary,
            affected_teams_count=len(affected_teams),
            affected_epics_count=len(affected_epics),
            overall_risk_score=self.calculate_overall_risk_score(all_conflicts),
        )

    def check_allocation_conflicts(
        self,
        snapshot: PlanningSnapshot,
        cycle_id: str,
        allocation_id: str
    ) -> List[Conflict]:
        """
        Conflicts of a cycle that involve one allocation.

        Raises:
            ValueError: If the allocation is not part of the snapshot
        """
        if not any(a.id == allocation_id for a in snapshot.allocations):
            raise ValueError(f"Allocation {allocation_id} not found")

        result = self.detect_conflicts(snapshot, cycle_id)
        return [c for c in result.conflicts if allocation_id in c.affected_allocations]

    def classify_overallocation(self, total_percentage: float) -> ConflictSeverity:
        """Severity tier of a summed team-iteration percentage."""
        excess = total_percentage - self.policy.over_allocation_limit
        if excess > self.policy.overallocation_critical_excess:
            return ConflictSeverity.CRITICAL
        return ConflictSeverity.MEDIUM

    def detect_overallocations(
        self,
        allocations: Sequence[Allocation],
        teams: Mapping[str, Team]
    ) -> List[Conflict]:
        """Detect team iterations allocated beyond 100%."""
        groups: Dict[Tuple[str, int], List[Allocation]] = defaultdict(list)
        for allocation in allocations:
            groups[(allocation.team_id, allocation.iteration_number)].append(allocation)

        conflicts = []
        for (team_id, iteration_number), group in groups.items():
            total = sum(a.percentage for a in group)
            if not self.policy.is_over_allocated(total):
                continue

            excess = total - self.policy.over_allocation_limit
            team_name = teams[team_id].name or team_id
            conflicts.append(Conflict(
                id=f"overallocation-{team_id}-{iteration_number}",
                conflict_type=ConflictType.OVERALLOCATION,
                severity=self.classify_overallocation(total),
                title=f"Team {team_name} overallocated in iteration {iteration_number}",
                description=(
                    f"Team is allocated {total:.0f}% capacity "
                    f"({excess:.0f}% over limit)"
                ),
                affected_allocations=tuple(a.id for a in group),
                affected_teams=(team_id,),
                affected_epics=self.dedupe(a.epic_id for a in group if a.epic_id),
                impact=ConflictImpact(
                    delay_risk=min(100.0, excess * 2),
                    quality_risk=min(100.0, excess * 1.5),
                    resource_waste=min(100.0, excess * 1.2),
                ),
                suggested_actions=(
                    f"Reduce allocation by {excess:.0f}%",
                    "Move some work to another iteration",
                    "Split work across multiple teams",
                    "Increase team capacity if possible",
                ),
                iteration_number=iteration_number,
                total_percentage=total,
            ))

        self.logger.info(f"Detected {len(conflicts)} overallocations")
        return conflicts

    def detect_resource_contention(
        self,
        allocations: Sequence[Allocation],
        epics: Mapping[str, Epic]
    ) -> List[Conflict]:
        """Detect epics staffed by several teams in the same iteration."""
        groups: Dict[Tuple[str, int], List[Allocation]] = defaultdict(list)
        for allocation in allocations:
            if allocation.epic_id:
                groups[(allocation.epic_id, allocation.iteration_number)].append(allocation)

        conflicts = []
        for (epic_id, iteration_number), group in groups.items():
            teams = self.dedupe(a.team_id for a in group)
            if len(teams) < 2:
                continue

            epic_name = epics[epic_id].name or epic_id
            conflicts.append(Conflict(
                id=f"contention-{epic_id}-{iteration_number}",
                conflict_type=ConflictType.RESOURCE_CONTENTION,
                severity=ConflictSeverity.MEDIUM,
                title=f"Multiple teams on {epic_name} in iteration {iteration_number}",
                description=(
                    f"{len(teams)} teams are working on the same epic simultaneously, "
                    f"which may cause coordination overhead"
                ),
                affected_allocations=tuple(a.id for a in group),
                affected_teams=teams,
                affected_epics=(epic_id,),
                impact=ConflictImpact(delay_risk=40, quality_risk=50, resource_waste=35),
                suggested_actions=(
                    "Designate a lead team",
                    "Split epic into smaller, team-specific tasks",
                    "Plan coordination meetings",
                    "Define clear interfaces between teams",
                ),
                iteration_number=iteration_number,
            ))

        self.logger.info(f"Detected {len(conflicts)} resource contentions")
        return conflicts

    def detect_dependency_violations(
        self,
        allocations: Sequence[Allocation],
        epics: Mapping[str, Epic]
    ) -> List[Conflict]:
        """Detect allocations of epics whose dependencies are not completed."""
        conflicts = []
        for allocation in allocations:
            if not allocation.epic_id:
                continue
            epic = epics[allocation.epic_id]
            blocking = tuple(
                dep_id for dep_id in epic.dependencies
                if dep_id in epics and not epics[dep_id].is_completed
            )
            if not blocking:
                continue

            conflicts.append(Conflict(
                id=f"dependency-{allocation.id}",
                conflict_type=ConflictType.DEPENDENCY_VIOLATION,
                severity=ConflictSeverity.HIGH,
                title=f"{epic.name or epic.id} staffed before its dependencies",
                description=(
                    f"Epic {epic.id} depends on {', '.join(blocking)}, "
                    f"which {'is' if len(blocking) == 1 else 'are'} not completed"
                ),
                affected_allocations=(allocation.id,),
                affected_teams=(allocation.team_id,),
                affected_epics=(epic.id,) + blocking,
                impact=ConflictImpact(delay_risk=60, quality_risk=40, resource_waste=30),
                suggested_actions=(
                    "Review epic dependencies",
                    "Sequence epics based on dependencies",
                    "Plan integration points",
                ),
                iteration_number=allocation.iteration_number,
                blocking_dependencies=blocking,
            ))

        self.logger.info(f"Detected {len(conflicts)} dependency violations")
        return conflicts

    def detect_timeline_overlaps(
        self,
        allocations: Sequence[Allocation],
        teams: Mapping[str, Team]
    ) -> List[Conflict]:
        """Detect team iterations spread across too many concurrent epics."""
        groups: Dict[Tuple[str, int], List[Allocation]] = defaultdict(list)
        for allocation in allocations:
            if allocation.epic_id:
                groups[(allocation.team_id, allocation.iteration_number)].append(allocation)

        conflicts = []
        for (team_id, iteration_number), group in groups.items():
            epic_ids = self.dedupe(a.epic_id for a in group)
            if len(epic_ids) <= self.policy.max_concurrent_epics:
                continue

            team_name = teams[team_id].name or team_id
            conflicts.append(Conflict(
                id=f"timeline-{team_id}-{iteration_number}",
                conflict_type=ConflictType.TIMELINE_OVERLAP,
                severity=ConflictSeverity.HIGH,
                title=f"Team {team_name} juggling {len(epic_ids)} epics in iteration {iteration_number}",
                description=(
                    f"Team is working on {len(epic_ids)} epics at once "
                    f"(limit {self.policy.max_concurrent_epics})"
                ),
                affected_allocations=tuple(a.id for a in group),
                affected_teams=(team_id,),
                affected_epics=epic_ids,
                impact=ConflictImpact(delay_risk=80, quality_risk=70, resource_waste=20),
                suggested_actions=(
                    "Sequence epics across iterations",
                    "Reduce scope for initial delivery",
                    "Move an epic to another team",
                ),
                iteration_number=iteration_number,
                total_percentage=sum(a.percentage for a in group),
            ))

        self.logger.info(f"Detected {len(conflicts)} timeline overlaps")
        return conflicts

    def detect_skill_mismatches(
        self,
        allocations: Sequence[Allocation],
        teams: Mapping[str, Team],
        epics: Mapping[str, Epic]
    ) -> List[Conflict]:
        """Detect allocations where the team lacks required epic skills."""
        conflicts = []
        for allocation in allocations:
            if not allocation.epic_id:
                continue
            team = teams[allocation.team_id]
            epic = epics[allocation.epic_id]
            missing = team.missing_skills(epic.required_skills)
            if not missing:
                continue

            if len(missing) == len(epic.required_skills):
                severity = ConflictSeverity.HIGH
            else:
                severity = ConflictSeverity.MEDIUM

            conflicts.append(Conflict(
                id=f"skill-{allocation.id}",
                conflict_type=ConflictType.SKILL_MISMATCH,
                severity=severity,
                title=f"Team {team.name or team.id} lacks skills for {epic.name or epic.id}",
                description=f"Missing skills: {', '.join(missing)}",
                affected_allocations=(allocation.id,),
                affected_teams=(team.id,),
                affected_epics=(epic.id,),
                impact=ConflictImpact(delay_risk=50, quality_risk=70, resource_waste=30),
                suggested_actions=(
                    "Reassign to a team with the required skills",
                    "Pair with a team that has the required skills",
                    "Provide training before work starts",
                ),
                iteration_number=allocation.iteration_number,
            ))

        self.logger.info(f"Detected {len(conflicts)} skill mismatches")
        return conflicts

    def detect_capacity_exceeded(
        self,
        allocations: Sequence[Allocation],
        invalid_allocations: Sequence[Allocation],
        teams: Mapping[str, Team]
    ) -> List[Conflict]:
        """Detect allocations no team capacity can absorb."""
        conflicts = []

        for allocation in invalid_allocations:
            conflicts.append(Conflict(
                id=f"capacity-{allocation.id}",
                conflict_type=ConflictType.CAPACITY_EXCEEDED,
                severity=ConflictSeverity.HIGH,
                title=f"Invalid allocation percentage for team {allocation.team_id}",
                description=(
                    f"Allocation is {allocation.percentage:g}%, "
                    f"outside the 0-100% range"
                ),
                affected_allocations=(allocation.id,),
                affected_teams=(allocation.team_id,),
                affected_epics=(allocation.epic_id,) if allocation.epic_id else (),
                impact=ConflictImpact(delay_risk=50, quality_risk=30, resource_waste=50),
                suggested_actions=("Correct the allocation percentage",),
                iteration_number=allocation.iteration_number,
                total_percentage=allocation.percentage,
            ))

        for allocation in allocations:
            team = teams[allocation.team_id]
            if team.effective_capacity > 0 or allocation.percentage == 0:
                continue
            conflicts.append(Conflict(
                id=f"capacity-{allocation.id}",
                conflict_type=ConflictType.CAPACITY_EXCEEDED,
                severity=ConflictSeverity.MEDIUM,
                title=f"Team {team.name or team.id} has no capacity",
                description=(
                    f"{allocation.percentage:g}% is allocated to a team "
                    f"with zero capacity"
                ),
                affected_allocations=(allocation.id,),
                affected_teams=(team.id,),
                affected_epics=(allocation.epic_id,) if allocation.epic_id else (),
                impact=ConflictImpact(delay_risk=70, quality_risk=20, resource_waste=40),
                suggested_actions=(
                    "Assign capacity to the team",
                    "Move the work to a staffed team",
                ),
                iteration_number=allocation.iteration_number,
                total_percentage=allocation.percentage,
            ))

        self.logger.info(f"Detected {len(conflicts)} capacity exceeded conflicts")
        return conflicts

    def calculate_overall_risk_score(self, conflicts: Sequence[Conflict]) -> int:
        """Mean policy weight of the conflict severities (0-100 with default weights)."""
        if not conflicts:
            return 0
        weights = self.policy.severity_weights
        weighted = sum(weights[c.severity.value] for c in conflicts)
        return round(weighted / len(conflicts))
