"""
Tests for ConflictDetector.

Tests cover:
- Each conflict type and its severity
- Overallocation severity policy (summed-percentage basis)
- Cycle scoping and orphan exclusion
- Summary, affected counts and risk score
"""

import logging
from datetime import date

import pytest
import structlog
from structlog.testing import capture_logs

from teamplan.analyzers import AllocationPolicy, ConflictDetector
from teamplan.analyzers.conflict_detector import (
    CONFLICT_ICONS,
    SEVERITY_COLORS,
    ConflictSeverity,
    ConflictType,
    get_conflict_severity_color,
    get_conflict_type_icon,
)
from teamplan.models import Epic


@pytest.fixture
def detector(policy):
    return ConflictDetector(policy)


@pytest.fixture
def captured_logs():
    """Record structlog events at every level."""
    previous = structlog.get_config()
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG))
    try:
        with capture_logs() as logs:
            yield logs
    finally:
        structlog.configure(**previous)


def _of_type(result, conflict_type):
    return [c for c in result.conflicts if c.conflict_type == conflict_type]


class TestTeamAScenario:
    """Team A at 70% + 40% with a skill it lacks."""

    def test_overallocation_and_skill_mismatch(self, detector, team_a_overallocated):
        result = detector.detect_conflicts(team_a_overallocated, "cycle-1")

        overallocations = _of_type(result, ConflictType.OVERALLOCATION)
        assert len(overallocations) == 1
        assert overallocations[0].id == "overallocation-team-a-1"
        assert overallocations[0].total_percentage == 110
        assert overallocations[0].severity == ConflictSeverity.MEDIUM
        assert overallocations[0].affected_allocations == ("a1", "a2")

        mismatches = _of_type(result, ConflictType.SKILL_MISMATCH)
        assert len(mismatches) == 1
        assert mismatches[0].iteration_number == 1
        assert mismatches[0].severity == ConflictSeverity.HIGH
        assert "X" in mismatches[0].description

    def test_summary(self, detector, team_a_overallocated):
        result = detector.detect_conflicts(team_a_overallocated, "cycle-1")

        assert result.summary.total == 2
        assert result.summary.high == 1
        assert result.summary.medium == 1
        assert result.summary.critical == 0
        assert result.summary.by_type == {"overallocation": 1, "skill-mismatch": 1}
        assert result.affected_teams_count == 1
        assert result.affected_epics_count == 2


class TestOverallocationSeverity:
    """Severity is computed from the summed team-iteration percentage."""

    @pytest.mark.parametrize("split", [
        (70, 60),
        (50, 50, 30),
        (100, 30),
    ])
    def test_same_total_same_severity(self, detector, make_snapshot, make_allocation, split):
        snapshot = make_snapshot(allocations=[
            make_allocation(f"a{i}", "team-a", 1, pct) for i, pct in enumerate(split)
        ])
        conflicts = detector.detect_overallocations(
            detector.resolve(snapshot).valid, snapshot.team_by_id()
        )

        assert len(conflicts) == 1
        assert conflicts[0].total_percentage == 130
        assert conflicts[0].severity == ConflictSeverity.MEDIUM

    def test_large_excess_is_critical(self, detector, make_snapshot, make_allocation):
        snapshot = make_snapshot(allocations=[
            make_allocation("a1", "team-a", 1, 90),
            make_allocation("a2", "team-a", 1, 90),
        ])
        result = detector.detect_conflicts(snapshot, "cycle-1")

        overallocation = _of_type(result, ConflictType.OVERALLOCATION)[0]
        assert overallocation.total_percentage == 180
        assert overallocation.severity == ConflictSeverity.CRITICAL

    @pytest.mark.parametrize("total,expected", [
        (101, ConflictSeverity.MEDIUM),
        (150, ConflictSeverity.MEDIUM),
        (150.5, ConflictSeverity.CRITICAL),
        (300, ConflictSeverity.CRITICAL),
    ])
    def test_tier_breakpoint(self, detector, total, expected):
        assert detector.classify_overallocation(total) == expected

    def test_breakpoint_follows_policy(self):
        detector = ConflictDetector(AllocationPolicy(overallocation_critical_excess=20))
        assert detector.classify_overallocation(130) == ConflictSeverity.CRITICAL


class TestResourceContention:
    def test_two_teams_same_epic_same_iteration(self, detector, make_snapshot, make_allocation):
        snapshot = make_snapshot(allocations=[
            make_allocation("a1", "team-a", 1, 50, epic_id="epic-api"),
            make_allocation("a2", "team-b", 1, 50, epic_id="epic-api"),
        ])
        contention = _of_type(
            detector.detect_conflicts(snapshot, "cycle-1"), ConflictType.RESOURCE_CONTENTION
        )

        assert len(contention) == 1
        assert contention[0].affected_teams == ("team-a", "team-b")
        assert contention[0].affected_epics == ("epic-api",)
        assert contention[0].severity == ConflictSeverity.MEDIUM

    def test_different_iterations_do_not_contend(self, detector, make_snapshot, make_allocation):
        snapshot = make_snapshot(allocations=[
            make_allocation("a1", "team-a", 1, 50, epic_id="epic-api"),
            make_allocation("a2", "team-b", 2, 50, epic_id="epic-api"),
        ])
        result = detector.detect_conflicts(snapshot, "cycle-1")

        assert _of_type(result, ConflictType.RESOURCE_CONTENTION) == []


class TestDependencyViolations:
    def test_one_violation_per_allocation(self, detector, make_snapshot, make_allocation):
        snapshot = make_snapshot(allocations=[
            make_allocation("a1", "team-b", 3, 80, epic_id="epic-blocked"),
            make_allocation("a2", "team-b", 1, 80, epic_id="epic-blocked"),
        ])
        violations = _of_type(
            detector.detect_conflicts(snapshot, "cycle-1"), ConflictType.DEPENDENCY_VIOLATION
        )

        assert [c.id for c in violations] == ["dependency-a1", "dependency-a2"]
        assert all(c.severity == ConflictSeverity.HIGH for c in violations)
        assert violations[0].affected_epics == ("epic-blocked", "epic-api")
        assert violations[0].blocking_dependencies == ("epic-api",)
        assert violations[0].to_dict()["blocking_dependencies"] == ["epic-api"]

    def test_blocking_dependencies_empty_elsewhere(self, detector, team_a_overallocated):
        result = detector.detect_conflicts(team_a_overallocated, "cycle-1")
        assert all(c.blocking_dependencies == () for c in result.conflicts)


class TestTimelineOverlap:
    def test_too_many_concurrent_epics(self, detector, make_snapshot, make_allocation):
        snapshot = make_snapshot(allocations=[
            make_allocation("a1", "team-a", 1, 20, epic_id="epic-web"),
            make_allocation("a2", "team-a", 1, 20, epic_id="epic-api"),
            make_allocation("a3", "team-a", 1, 20, epic_id="epic-done"),
            make_allocation("a4", "team-a", 1, 20, epic_id="epic-after-done"),
        ])
        overlaps = _of_type(
            detector.detect_conflicts(snapshot, "cycle-1"), ConflictType.TIMELINE_OVERLAP
        )

        assert len(overlaps) == 1
        assert overlaps[0].id == "timeline-team-a-1"
        assert overlaps[0].total_percentage == 80
        assert len(overlaps[0].affected_epics) == 4

    def test_at_limit_is_fine(self, detector, make_snapshot, make_allocation):
        snapshot = make_snapshot(allocations=[
            make_allocation("a1", "team-a", 1, 20, epic_id="epic-web"),
            make_allocation("a2", "team-a", 1, 20, epic_id="epic-api"),
            make_allocation("a3", "team-a", 1, 20, epic_id="epic-done"),
        ])
        result = detector.detect_conflicts(snapshot, "cycle-1")

        assert _of_type(result, ConflictType.TIMELINE_OVERLAP) == []


class TestSkillMismatch:
    def test_partial_mismatch_is_medium(self, detector, make_snapshot, make_allocation):
        snapshot = make_snapshot(
            epics=[Epic(id="epic-full", required_skills=("frontend", "mobile"))],
            allocations=[make_allocation("a1", "team-a", 1, 80, epic_id="epic-full")],
        )
        mismatches = _of_type(
            detector.detect_conflicts(snapshot, "cycle-1"), ConflictType.SKILL_MISMATCH
        )

        assert len(mismatches) == 1
        assert mismatches[0].severity == ConflictSeverity.MEDIUM


class TestCapacityExceeded:
    def test_invalid_percentage(self, detector, make_snapshot, make_allocation):
        snapshot = make_snapshot(allocations=[make_allocation("a1", "team-a", 1, 150)])
        result = detector.detect_conflicts(snapshot, "cycle-1")

        exceeded = _of_type(result, ConflictType.CAPACITY_EXCEEDED)
        assert len(exceeded) == 1
        assert exceeded[0].severity == ConflictSeverity.HIGH
        # out-of-range allocations never feed the overallocation sum
        assert _of_type(result, ConflictType.OVERALLOCATION) == []

    def test_zero_capacity_team(self, detector, make_snapshot, make_allocation):
        snapshot = make_snapshot(allocations=[
            make_allocation("a1", "team-z", 1, 50, run_work_category_id="rw-support"),
            make_allocation("a2", "team-z", 2, 0, run_work_category_id="rw-support"),
        ])
        exceeded = _of_type(
            detector.detect_conflicts(snapshot, "cycle-1"), ConflictType.CAPACITY_EXCEEDED
        )

        assert [c.id for c in exceeded] == ["capacity-a1"]
        assert exceeded[0].severity == ConflictSeverity.MEDIUM


class TestScoping:
    """Cycle scoping and orphan exclusion."""

    def test_other_cycles_are_ignored(self, detector, make_snapshot, make_allocation, make_cycle):
        snapshot = make_snapshot(
            cycles=[make_cycle("cycle-1"), make_cycle("cycle-2", start=date(2024, 4, 1))],
            allocations=[
                make_allocation("a1", "team-a", 1, 90, cycle_id="cycle-2"),
                make_allocation("a2", "team-a", 1, 90, cycle_id="cycle-2"),
                make_allocation("a3", "team-a", 1, 90),
            ],
        )

        assert detector.detect_conflicts(snapshot, "cycle-1").conflicts == ()
        assert detector.detect_conflicts(snapshot, "cycle-2").summary.critical == 1

    def test_orphans_produce_no_conflicts(self, detector, make_snapshot, make_allocation):
        snapshot = make_snapshot(allocations=[
            make_allocation("a1", "team-a", 1, 90),
            make_allocation("a2", "team-a", 1, 90, epic_id="ghost-epic"),
            make_allocation("a3", "ghost-team", 1, 90),
        ])
        assert detector.detect_conflicts(snapshot, "cycle-1").conflicts == ()


class TestAllocationConflicts:
    def test_conflicts_for_one_allocation(self, detector, team_a_overallocated):
        conflicts = detector.check_allocation_conflicts(team_a_overallocated, "cycle-1", "a1")
        assert {c.conflict_type for c in conflicts} == {
            ConflictType.OVERALLOCATION,
            ConflictType.SKILL_MISMATCH,
        }

        conflicts = detector.check_allocation_conflicts(team_a_overallocated, "cycle-1", "a2")
        assert [c.conflict_type for c in conflicts] == [ConflictType.OVERALLOCATION]

    def test_unknown_allocation_raises(self, detector, team_a_overallocated):
        with pytest.raises(ValueError, match="Allocation ghost not found"):
            detector.check_allocation_conflicts(team_a_overallocated, "cycle-1", "ghost")


class TestRiskScore:
    def test_no_conflicts(self, detector, make_snapshot):
        result = detector.detect_conflicts(make_snapshot(), "cycle-1")
        assert result.overall_risk_score == 0
        assert result.summary.total == 0

    def test_single_medium_conflict(self, detector, make_snapshot, make_allocation):
        snapshot = make_snapshot(allocations=[
            make_allocation("a1", "team-a", 1, 60),
            make_allocation("a2", "team-a", 1, 50),
        ])
        assert detector.detect_conflicts(snapshot, "cycle-1").overall_risk_score == 50

    def test_critical_and_high(self, detector, make_snapshot, make_allocation):
        snapshot = make_snapshot(allocations=[
            make_allocation("a1", "team-a", 1, 90, epic_id="epic-api"),
            make_allocation("a2", "team-a", 1, 90, epic_id="epic-api"),
            make_allocation("a3", "team-b", 2, 80, epic_id="epic-x"),
        ])
        # critical (100) + high (75) over two conflicts
        assert detector.detect_conflicts(snapshot, "cycle-1").overall_risk_score == 88

    def test_policy_weights(self, make_snapshot, make_allocation):
        snapshot = make_snapshot(allocations=[
            make_allocation("a1", "team-a", 1, 90, epic_id="epic-api"),
            make_allocation("a2", "team-a", 1, 90, epic_id="epic-api"),
            make_allocation("a3", "team-b", 2, 80, epic_id="epic-x"),
        ])
        policy = AllocationPolicy(
            severity_weights={"critical": 100, "high": 0, "medium": 0, "low": 0}
        )
        result = ConflictDetector(policy).detect_conflicts(snapshot, "cycle-1")

        assert result.overall_risk_score == 50


class TestPresentation:
    def test_mappings_are_total(self):
        assert set(CONFLICT_ICONS) == set(ConflictType)
        assert set(SEVERITY_COLORS) == set(ConflictSeverity)

    def test_conflict_icon_and_color(self, detector, team_a_overallocated):
        conflict = detector.detect_conflicts(team_a_overallocated, "cycle-1").conflicts[0]

        assert conflict.icon == get_conflict_type_icon(conflict.conflict_type)
        assert conflict.color == get_conflict_severity_color(conflict.severity)
        assert "red" in get_conflict_severity_color(ConflictSeverity.CRITICAL)


class TestLogContext:
    def test_events_carry_analyzer_and_cycle(self, captured_logs, team_a_overallocated):
        ConflictDetector().detect_conflicts(team_a_overallocated, "cycle-1")

        complete = [e for e in captured_logs if e["event"].startswith("Conflict detection complete")]
        assert len(complete) == 1
        assert complete[0]["analyzer"] == "ConflictDetector"
        assert complete[0]["cycle_id"] == "cycle-1"

        counts = [e for e in captured_logs if e["event"] == "Detected 1 overallocations"]
        assert counts[0]["analyzer"] == "ConflictDetector"
        assert "cycle_id" not in counts[0]
