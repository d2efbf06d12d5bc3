"""
TeamPlan input models.

Immutable snapshots of the planning entities the analyzers read:
teams, cycles (with their iterations), allocations, epics and run work
categories. Upstream collaborators (the planning UI, the CSV importer)
send camelCase JSON, so every model accepts both the field name and its
camelCase alias.

Optional containers (skills, dependencies, iterations) are normalized
here, once: ``None`` and a missing key both become an empty tuple, so the
analyzers never branch on absent vs. null vs. empty.
"""

from datetime import date
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


COMPLETED_STATUS = "completed"


def _empty_if_none(value: Any) -> Any:
    if value is None:
        return ()
    return value


class PlanningModel(BaseModel):
    """Base for all input records: frozen, camelCase-tolerant."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        extra="ignore",
    )


class Team(PlanningModel):
    id: str
    name: str = ""
    capacity: float = Field(0.0, description="Capacity in hours per week")
    division_id: Optional[str] = None
    skills: Tuple[str, ...] = ()
    target_skills: Tuple[str, ...] = ()

    @field_validator("skills", "target_skills", mode="before")
    @classmethod
    def normalize_skills(cls, value: Any) -> Any:
        return _empty_if_none(value)

    @property
    def effective_capacity(self) -> float:
        """Capacity with negative values treated as zero."""
        return max(0.0, self.capacity)

    def has_skills(self, required: Tuple[str, ...]) -> bool:
        return all(skill in self.skills for skill in required)

    def missing_skills(self, required: Tuple[str, ...]) -> Tuple[str, ...]:
        return tuple(skill for skill in required if skill not in self.skills)


class Iteration(PlanningModel):
    number: int
    name: str = ""
    start_date: date
    end_date: date

    @property
    def duration_weeks(self) -> float:
        """Inclusive length of the iteration in (fractional) weeks."""
        days = (self.end_date - self.start_date).days + 1
        return max(0, days) / 7.0


class Cycle(PlanningModel):
    id: str
    name: str = ""
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    iterations: Tuple[Iteration, ...] = ()

    @field_validator("iterations", mode="before")
    @classmethod
    def normalize_iterations(cls, value: Any) -> Any:
        return _empty_if_none(value)

    @property
    def iteration_count(self) -> int:
        return len(self.iterations)

    @property
    def total_weeks(self) -> float:
        return sum(iteration.duration_weeks for iteration in self.iterations)

    def get_iteration(self, number: int) -> Optional[Iteration]:
        for iteration in self.iterations:
            if iteration.number == number:
                return iteration
        return None


class Allocation(PlanningModel):
    id: str
    team_id: str
    cycle_id: str
    iteration_number: int
    percentage: float
    epic_id: Optional[str] = None
    run_work_category_id: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("epic_id", "run_work_category_id", mode="before")
    @classmethod
    def blank_reference_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def is_project_work(self) -> bool:
        return self.epic_id is not None

    @property
    def is_run_work(self) -> bool:
        return self.run_work_category_id is not None


class Epic(PlanningModel):
    id: str
    name: str = ""
    project_id: Optional[str] = None
    status: str = "active"
    required_skills: Tuple[str, ...] = ()
    effort: float = 0.0
    priority: Optional[str] = None
    complexity: Optional[str] = None
    dependencies: Tuple[str, ...] = ()
    target_date: Optional[date] = None

    @field_validator("required_skills", "dependencies", mode="before")
    @classmethod
    def normalize_lists(cls, value: Any) -> Any:
        return _empty_if_none(value)

    @field_validator("effort", mode="before")
    @classmethod
    def missing_effort_is_zero(cls, value: Any) -> Any:
        return 0.0 if value is None else value

    @property
    def is_completed(self) -> bool:
        return self.status == COMPLETED_STATUS


class RunWorkCategory(PlanningModel):
    id: str
    name: str = ""
    description: Optional[str] = None


class PlanningSnapshot(PlanningModel):
    """
    Everything one analysis call reads.

    Lookup maps are rebuilt on each call to the ``*_by_id`` helpers; callers
    that need them repeatedly should keep the returned dict locally.
    """

    teams: Tuple[Team, ...] = ()
    allocations: Tuple[Allocation, ...] = ()
    epics: Tuple[Epic, ...] = ()
    cycles: Tuple[Cycle, ...] = ()
    run_work_categories: Tuple[RunWorkCategory, ...] = ()

    @field_validator(
        "teams", "allocations", "epics", "cycles", "run_work_categories",
        mode="before",
    )
    @classmethod
    def normalize_collections(cls, value: Any) -> Any:
        return _empty_if_none(value)

    def team_by_id(self) -> Dict[str, Team]:
        return {team.id: team for team in self.teams}

    def epic_by_id(self) -> Dict[str, Epic]:
        return {epic.id: epic for epic in self.epics}

    def cycle_by_id(self) -> Dict[str, Cycle]:
        return {cycle.id: cycle for cycle in self.cycles}

    def run_work_by_id(self) -> Dict[str, RunWorkCategory]:
        return {category.id: category for category in self.run_work_categories}
