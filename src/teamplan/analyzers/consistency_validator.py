"""
Consistency Validator

Cross-entity checks over the whole allocation set.

Checks:
- Orphaned allocations (team / epic / cycle / run work reference missing)
- Over-allocation errors (> 100% in a team iteration)
- Under-allocation warnings (below the healthy floor)
- Out-of-range percentages
- Skill mismatches between team and epic
- Dependency violations (epic staffed before its dependencies complete)

Usage:
    validator = ConsistencyValidator()
    validation = validator.validate(snapshot)

    if not validation.is_valid:
        for error in validation.errors:
            print(error.message)
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from teamplan.models import PlanningSnapshot

from .base import AnalyzerBase, OrphanedAllocation, Report, sum_by_slot


class ValidationErrorType(str, Enum):
    """Types of validation errors."""
    OVER_ALLOCATION = "over_allocation"
    INVALID_PERCENTAGE = "invalid_percentage"


class ValidationWarningType(str, Enum):
    """Types of validation warnings."""
    CAPACITY_WARNING = "capacity_warning"


@dataclass(frozen=True)
class ValidationError(Report):
    type: ValidationErrorType
    team_id: str
    cycle_id: str
    iteration_number: int
    total_percentage: float
    message: str
    allocation_id: Optional[str] = None


@dataclass(frozen=True)
class ValidationWarning(Report):
    type: ValidationWarningType
    team_id: str
    cycle_id: str
    iteration_number: int
    total_percentage: float
    message: str


@dataclass(frozen=True)
class SkillMismatch(Report):
    team_id: str
    epic_id: str
    allocation_id: str
    missing_skills: Tuple[str, ...]


@dataclass(frozen=True)
class DependencyViolation(Report):
    allocation_id: str
    epic_id: str
    blocking_dependencies: Tuple[str, ...]
    reason: str


@dataclass(frozen=True)
class AllocationConsistencyValidation(Report):
    """Result of validating a full allocation set."""
    is_valid: bool
    errors: Tuple[ValidationError, ...]
    warnings: Tuple[ValidationWarning, ...]
    orphaned_allocations: Tuple[OrphanedAllocation, ...]
    skill_mismatches: Tuple[SkillMismatch, ...]
    dependency_violations: Tuple[DependencyViolation, ...]


class ConsistencyValidator(AnalyzerBase):
    """
    Validates allocation consistency across teams, epics and cycles.

    Every check is total: a malformed allocation is reported and skipped,
    the rest of the set is still validated.
    """

    def run(self, snapshot: PlanningSnapshot) -> AllocationConsistencyValidation:
        return self.validate(snapshot)

    def validate(self, snapshot: PlanningSnapshot) -> AllocationConsistencyValidation:
        """
        Validate every allocation of a snapshot.

        Args:
            snapshot: Planning snapshot to validate

        Returns:
            AllocationConsistencyValidation; ``is_valid`` is True iff there
            are no errors (warnings, mismatches and orphans do not count)
        """
        self.logger.info(
            f"Validating {len(snapshot.allocations)} allocations"
        )

        resolved = self.resolve(snapshot)
        team_by_id = snapshot.team_by_id()
        epic_by_id = snapshot.epic_by_id()

        errors: List[ValidationError] = []
        warnings: List[ValidationWarning] = []

        for allocation in resolved.invalid_percentage:
            errors.append(ValidationError(
                type=ValidationErrorType.INVALID_PERCENTAGE,
                team_id=allocation.team_id,
                cycle_id=allocation.cycle_id,
                iteration_number=allocation.iteration_number,
                total_percentage=allocation.percentage,
                message=(
                    f"Allocation {allocation.id} has percentage "
                    f"{allocation.percentage:g}% outside 0-100"
                ),
                allocation_id=allocation.id,
            ))

        for (team_id, cycle_id, iteration_number), total in sum_by_slot(resolved.valid).items():
            if self.policy.is_over_allocated(total):
                errors.append(ValidationError(
                    type=ValidationErrorType.OVER_ALLOCATION,
                    team_id=team_id,
                    cycle_id=cycle_id,
                    iteration_number=iteration_number,
                    total_percentage=total,
                    message=(
                        f"Team {team_id} is over-allocated in iteration "
                        f"{iteration_number}: {total:g}%"
                    ),
                ))
            elif self.policy.is_under_allocated(total):
                warnings.append(ValidationWarning(
                    type=ValidationWarningType.CAPACITY_WARNING,
                    team_id=team_id,
                    cycle_id=cycle_id,
                    iteration_number=iteration_number,
                    total_percentage=total,
                    message=(
                        f"Team {team_id} is under-allocated in iteration "
                        f"{iteration_number}: {total:g}%"
                    ),
                ))

        skill_mismatches: List[SkillMismatch] = []
        dependency_violations: List[DependencyViolation] = []

        for allocation in resolved.valid:
            if not allocation.epic_id:
                continue
            epic = epic_by_id[allocation.epic_id]
            team = team_by_id[allocation.team_id]

            missing = team.missing_skills(epic.required_skills)
            if missing:
                skill_mismatches.append(SkillMismatch(
                    team_id=team.id,
                    epic_id=epic.id,
                    allocation_id=allocation.id,
                    missing_skills=missing,
                ))

            blocking = tuple(
                dep_id for dep_id in epic.dependencies
                if dep_id in epic_by_id and not epic_by_id[dep_id].is_completed
            )
            if blocking:
                dependency_violations.append(DependencyViolation(
                    allocation_id=allocation.id,
                    epic_id=epic.id,
                    blocking_dependencies=blocking,
                    reason=(
                        f"Allocated before dependency {', '.join(blocking)} "
                        f"is completed"
                    ),
                ))

        self.logger.info(
            f"Validation complete: {len(errors)} errors, {len(warnings)} warnings, "
            f"{len(resolved.orphaned)} orphaned"
        )

        return AllocationConsistencyValidation(
            is_valid=not errors,
            errors=tuple(errors),
            warnings=tuple(warnings),
            orphaned_allocations=resolved.orphaned,
            skill_mismatches=tuple(skill_mismatches),
            dependency_violations=tuple(dependency_violations),
        )
