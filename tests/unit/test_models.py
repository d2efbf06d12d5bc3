"""
Tests for the planning input models.
"""

from datetime import date

import pytest
from pydantic import ValidationError

from teamplan.models import Allocation, Cycle, Epic, Iteration, PlanningSnapshot, Team


class TestModelNormalization:
    """Optional containers and blank references normalize at the boundary."""

    def test_camel_case_payload(self):
        allocation = Allocation.model_validate({
            "id": "a1",
            "teamId": "team-a",
            "cycleId": "cycle-1",
            "iterationNumber": 2,
            "percentage": 50,
            "epicId": "epic-web",
        })

        assert allocation.team_id == "team-a"
        assert allocation.iteration_number == 2
        assert allocation.is_project_work
        assert not allocation.is_run_work

    def test_snake_case_payload(self):
        allocation = Allocation(
            id="a1", team_id="t", cycle_id="c", iteration_number=1,
            percentage=10, run_work_category_id="rw",
        )
        assert allocation.is_run_work

    def test_blank_reference_is_none(self):
        allocation = Allocation(
            id="a1", team_id="t", cycle_id="c", iteration_number=1,
            percentage=10, epic_id="  ", run_work_category_id="rw",
        )
        assert allocation.epic_id is None

    def test_null_containers_become_empty(self):
        team = Team.model_validate({"id": "t", "skills": None, "targetSkills": None})
        epic = Epic.model_validate({
            "id": "e", "requiredSkills": None, "dependencies": None, "effort": None,
        })
        cycle = Cycle.model_validate({"id": "c", "iterations": None})
        snapshot = PlanningSnapshot.model_validate({"teams": None, "allocations": None})

        assert team.skills == ()
        assert team.target_skills == ()
        assert epic.required_skills == ()
        assert epic.dependencies == ()
        assert epic.effort == 0.0
        assert cycle.iterations == ()
        assert snapshot.teams == ()
        assert snapshot.allocations == ()

    def test_missing_containers_become_empty(self):
        epic = Epic(id="e")
        assert epic.required_skills == ()
        assert epic.dependencies == ()

    def test_unknown_fields_are_ignored(self):
        team = Team.model_validate({"id": "t", "colour": "blue"})
        assert team.id == "t"

    def test_models_are_frozen(self):
        team = Team(id="t", capacity=10)
        with pytest.raises(ValidationError):
            team.capacity = 20


class TestTeam:
    """Tests for team helpers."""

    def test_effective_capacity_clamps_negative(self):
        assert Team(id="t", capacity=-5).effective_capacity == 0.0
        assert Team(id="t", capacity=32).effective_capacity == 32.0

    def test_skill_checks(self):
        team = Team(id="t", skills=("python", "sql"))

        assert team.has_skills(("python",))
        assert team.has_skills(())
        assert not team.has_skills(("python", "go"))
        assert team.missing_skills(("go", "python", "rust")) == ("go", "rust")


class TestCycle:
    """Tests for cycle and iteration durations."""

    def test_iteration_duration_is_inclusive(self):
        iteration = Iteration(number=1, start_date=date(2024, 1, 1), end_date=date(2024, 1, 14))
        assert iteration.duration_weeks == 2.0

    def test_inverted_iteration_has_no_duration(self):
        iteration = Iteration(number=1, start_date=date(2024, 1, 14), end_date=date(2024, 1, 1))
        assert iteration.duration_weeks == 0.0

    def test_cycle_totals(self):
        cycle = Cycle(id="c", iterations=(
            Iteration(number=1, start_date=date(2024, 1, 1), end_date=date(2024, 1, 14)),
            Iteration(number=2, start_date=date(2024, 1, 15), end_date=date(2024, 1, 21)),
        ))

        assert cycle.iteration_count == 2
        assert cycle.total_weeks == 3.0
        assert cycle.get_iteration(2).number == 2
        assert cycle.get_iteration(9) is None


class TestEpic:
    def test_completed_status(self):
        assert Epic(id="e", status="completed").is_completed
        assert not Epic(id="e").is_completed
