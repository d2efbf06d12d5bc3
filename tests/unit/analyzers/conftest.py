"""
Shared fixtures and factories for the analyzer tests.

Default reference data:
- team-a: capacity 40, skills frontend + backend
- team-b: capacity 40, skills backend
- team-c: capacity 40, skills frontend + design
- team-z: capacity 0
- epic-web (frontend), epic-api (backend), epic-x (X),
  epic-done (completed), epic-blocked (depends on epic-api),
  epic-after-done (depends on epic-done)
- cycle-1: three two-week iterations starting 2024-01-01
- rw-support: run work category
"""

from datetime import date, timedelta
from typing import Optional

import pytest

from teamplan.analyzers import AllocationPolicy
from teamplan.models import (
    Allocation,
    Cycle,
    Epic,
    Iteration,
    PlanningSnapshot,
    RunWorkCategory,
    Team,
)


# =============================================================================
# Object Creation Helpers
# =============================================================================

def create_cycle(
    cycle_id: str = "cycle-1",
    iteration_count: int = 3,
    start: date = date(2024, 1, 1),
    weeks_per_iteration: int = 2,
) -> Cycle:
    """Cycle of back-to-back iterations numbered from 1."""
    iterations = []
    for number in range(1, iteration_count + 1):
        begin = start + timedelta(weeks=weeks_per_iteration * (number - 1))
        iterations.append(Iteration(
            number=number,
            name=f"Iteration {number}",
            start_date=begin,
            end_date=begin + timedelta(days=7 * weeks_per_iteration - 1),
        ))
    end = iterations[-1].end_date if iterations else start
    return Cycle(
        id=cycle_id,
        name=cycle_id.title(),
        start_date=start,
        end_date=end,
        iterations=tuple(iterations),
    )


def create_allocation(
    allocation_id: str,
    team_id: str,
    iteration_number: int,
    percentage: float,
    epic_id: Optional[str] = None,
    run_work_category_id: Optional[str] = None,
    cycle_id: str = "cycle-1",
) -> Allocation:
    """Allocation against epic-web unless another work item is given."""
    if epic_id is None and run_work_category_id is None:
        epic_id = "epic-web"
    return Allocation(
        id=allocation_id,
        team_id=team_id,
        cycle_id=cycle_id,
        iteration_number=iteration_number,
        percentage=percentage,
        epic_id=epic_id,
        run_work_category_id=run_work_category_id,
    )


def default_teams():
    return (
        Team(id="team-a", name="Team A", capacity=40, skills=("frontend", "backend")),
        Team(id="team-b", name="Team B", capacity=40, skills=("backend",)),
        Team(id="team-c", name="Team C", capacity=40, skills=("frontend", "design")),
        Team(id="team-z", name="Team Z", capacity=0),
    )


def default_epics():
    return (
        Epic(id="epic-web", name="Web", required_skills=("frontend",), effort=30),
        Epic(id="epic-api", name="API", required_skills=("backend",), effort=20, priority="high"),
        Epic(id="epic-x", name="Epic X", required_skills=("X",), effort=10),
        Epic(id="epic-done", name="Done", status="completed"),
        Epic(id="epic-blocked", name="Blocked", required_skills=("backend",), dependencies=("epic-api",)),
        Epic(id="epic-after-done", name="After Done", dependencies=("epic-done",)),
    )


def create_snapshot(
    allocations=(),
    teams=None,
    epics=None,
    cycles=None,
    run_work_categories=None,
) -> PlanningSnapshot:
    """Snapshot over the default reference data unless overridden."""
    return PlanningSnapshot(
        teams=default_teams() if teams is None else tuple(teams),
        allocations=tuple(allocations),
        epics=default_epics() if epics is None else tuple(epics),
        cycles=(create_cycle(),) if cycles is None else tuple(cycles),
        run_work_categories=(
            (RunWorkCategory(id="rw-support", name="Support"),)
            if run_work_categories is None else tuple(run_work_categories)
        ),
    )


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def policy():
    """Default allocation policy."""
    return AllocationPolicy()


@pytest.fixture
def make_snapshot():
    return create_snapshot


@pytest.fixture
def make_allocation():
    return create_allocation


@pytest.fixture
def make_cycle():
    return create_cycle


@pytest.fixture
def team_a_overallocated(make_snapshot, make_allocation):
    """Team A at 70% + 40% in iteration 1, the 70% on an epic needing skill X."""
    return make_snapshot(allocations=[
        make_allocation("a1", "team-a", 1, 70, epic_id="epic-x"),
        make_allocation("a2", "team-a", 1, 40, epic_id="epic-api"),
    ])
