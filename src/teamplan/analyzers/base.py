"""
Base Analyzer class for the allocation analyzers.

Provides the shared allocation policy, logging, the allocation resolution
step every analyzer runs first, and the (team, cycle, iteration) grouping
helpers. Nothing here holds state between calls: every helper builds and
returns a fresh structure.
"""

from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass, field, fields, is_dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from teamplan.models import (
    Allocation,
    Cycle,
    Epic,
    PlanningSnapshot,
    RunWorkCategory,
    Team,
)
from teamplan.platform.config import Settings, get_settings
from teamplan.platform.logging import get_logger


logger = get_logger(__name__)

# (team_id, cycle_id, iteration_number)
SlotKey = Tuple[str, str, int]

TEAM_NOT_FOUND = "Team not found"
EPIC_NOT_FOUND = "Epic not found"
CYCLE_NOT_FOUND = "Cycle not found"
RUN_WORK_NOT_FOUND = "Run work category not found"
WORK_ITEM_AMBIGUOUS = "Allocation must reference exactly one work item"


class UtilizationTrend(str, Enum):
    """Direction of a utilization series."""
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"
    DECLINING = "declining"


class RiskLevel(str, Enum):
    """Coarse risk tiers."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# Risk weight per conflict severity value
DEFAULT_SEVERITY_WEIGHTS: Mapping[str, float] = {
    "critical": 100.0,
    "high": 75.0,
    "medium": 50.0,
    "low": 25.0,
}


@dataclass(frozen=True)
class AllocationPolicy:
    """
    Tunable thresholds shared by the analyzers.

    Defaults mirror the ALLOCATION POLICY section of ``Settings``; build one
    from the environment with ``AllocationPolicy.from_settings()``.
    ``severity_weights`` is keyed by conflict severity value and must cover
    every severity.
    """
    under_allocation_floor: float = 80.0
    over_allocation_limit: float = 100.0
    target_utilization: float = 85.0
    run_work_target: float = 20.0
    overallocation_critical_excess: float = 50.0
    max_concurrent_epics: int = 3
    bottleneck_workload_threshold: float = 300.0
    burnout_medium_count: int = 2
    burnout_high_count: int = 3
    prediction_growth_factor: float = 1.1
    prediction_decay_factor: float = 0.95
    high_confidence_min_allocations: int = 10
    severity_weights: Mapping[str, float] = field(
        default_factory=lambda: dict(DEFAULT_SEVERITY_WEIGHTS), hash=False
    )
    critical_path_priorities: Tuple[str, ...] = ("high", "critical")

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, (int, float)) and value < 0:
                raise ValueError(f"Policy value {f.name} must not be negative")
        if self.under_allocation_floor > self.over_allocation_limit:
            raise ValueError(
                "under_allocation_floor cannot exceed over_allocation_limit"
            )
        if self.burnout_high_count < self.burnout_medium_count:
            raise ValueError(
                "burnout_high_count cannot be lower than burnout_medium_count"
            )
        missing = set(DEFAULT_SEVERITY_WEIGHTS) - set(self.severity_weights)
        if missing:
            raise ValueError(
                f"severity_weights is missing {', '.join(sorted(missing))}"
            )
        if any(weight < 0 for weight in self.severity_weights.values()):
            raise ValueError("Policy value severity_weights must not be negative")

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "AllocationPolicy":
        settings = settings or get_settings()
        return cls(
            under_allocation_floor=settings.UNDER_ALLOCATION_FLOOR,
            over_allocation_limit=settings.OVER_ALLOCATION_LIMIT,
            target_utilization=settings.TARGET_UTILIZATION,
            run_work_target=settings.RUN_WORK_TARGET,
            overallocation_critical_excess=settings.OVERALLOCATION_CRITICAL_EXCESS,
            max_concurrent_epics=settings.MAX_CONCURRENT_EPICS,
            bottleneck_workload_threshold=settings.BOTTLENECK_WORKLOAD_THRESHOLD,
            burnout_medium_count=settings.BURNOUT_MEDIUM_COUNT,
            burnout_high_count=settings.BURNOUT_HIGH_COUNT,
            prediction_growth_factor=settings.PREDICTION_GROWTH_FACTOR,
            prediction_decay_factor=settings.PREDICTION_DECAY_FACTOR,
            high_confidence_min_allocations=settings.HIGH_CONFIDENCE_MIN_ALLOCATIONS,
            severity_weights={
                "critical": settings.SEVERITY_WEIGHT_CRITICAL,
                "high": settings.SEVERITY_WEIGHT_HIGH,
                "medium": settings.SEVERITY_WEIGHT_MEDIUM,
                "low": settings.SEVERITY_WEIGHT_LOW,
            },
            critical_path_priorities=tuple(
                p.strip() for p in settings.CRITICAL_PATH_PRIORITIES.split(",") if p.strip()
            ),
        )

    def is_over_allocated(self, total: float) -> bool:
        return total > self.over_allocation_limit

    def is_under_allocated(self, total: float) -> bool:
        return 0 < total < self.under_allocation_floor


def _serialize(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: _serialize(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Mapping):
        return {key: _serialize(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_serialize(item) for item in value]
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    return value


class Report:
    """Mixin for report dataclasses: JSON-ready ``to_dict``."""

    def to_dict(self) -> Dict[str, Any]:
        return _serialize(self)


@dataclass(frozen=True)
class OrphanedAllocation(Report):
    """An allocation whose references do not resolve."""
    allocation_id: str
    reason: str


@dataclass(frozen=True)
class ResolvedAllocations:
    """Outcome of the resolution step for one allocation set."""
    valid: Tuple[Allocation, ...]
    invalid_percentage: Tuple[Allocation, ...]
    orphaned: Tuple[OrphanedAllocation, ...]


def resolve_allocations(
    allocations: Iterable[Allocation],
    teams: Mapping[str, Team],
    epics: Mapping[str, Epic],
    cycles: Mapping[str, Cycle],
    run_work_categories: Mapping[str, RunWorkCategory],
) -> ResolvedAllocations:
    """
    Classify every allocation exactly once.

    Reference checks run in order (team, epic, cycle, run work category,
    work item shape) and the first failure wins. Resolvable allocations
    with a percentage outside 0-100 are set apart as invalid. Only the
    ``valid`` allocations may contribute to percentage sums.
    """
    valid: List[Allocation] = []
    invalid: List[Allocation] = []
    orphaned: List[OrphanedAllocation] = []

    for allocation in allocations:
        reason = None
        if allocation.team_id not in teams:
            reason = TEAM_NOT_FOUND
        elif allocation.epic_id is not None and allocation.epic_id not in epics:
            reason = EPIC_NOT_FOUND
        elif allocation.cycle_id not in cycles:
            reason = CYCLE_NOT_FOUND
        elif (
            allocation.run_work_category_id is not None
            and allocation.run_work_category_id not in run_work_categories
        ):
            reason = RUN_WORK_NOT_FOUND
        elif allocation.is_project_work == allocation.is_run_work:
            reason = WORK_ITEM_AMBIGUOUS

        if reason:
            logger.debug(f"Allocation {allocation.id} is orphaned: {reason}")
            orphaned.append(OrphanedAllocation(allocation.id, reason))
        elif not 0 <= allocation.percentage <= 100:
            logger.debug(
                f"Allocation {allocation.id} has invalid percentage "
                f"{allocation.percentage}"
            )
            invalid.append(allocation)
        else:
            valid.append(allocation)

    return ResolvedAllocations(
        valid=tuple(valid),
        invalid_percentage=tuple(invalid),
        orphaned=tuple(orphaned),
    )


def slot_key(allocation: Allocation) -> SlotKey:
    return (allocation.team_id, allocation.cycle_id, allocation.iteration_number)


def sum_by_slot(allocations: Iterable[Allocation]) -> Dict[SlotKey, float]:
    """Sum allocation percentages per (team, cycle, iteration), first-seen order."""
    totals: Dict[SlotKey, float] = defaultdict(float)
    for allocation in allocations:
        totals[slot_key(allocation)] += allocation.percentage
    return dict(totals)


def group_by_slot(
    allocations: Iterable[Allocation],
) -> Dict[SlotKey, List[Allocation]]:
    groups: Dict[SlotKey, List[Allocation]] = defaultdict(list)
    for allocation in allocations:
        groups[slot_key(allocation)].append(allocation)
    return dict(groups)


def classify_trend(series: Sequence[float]) -> UtilizationTrend:
    """
    Classify a utilization series by its first, middle and last points.

    Fewer than three points is always stable.
    """
    if len(series) < 3:
        return UtilizationTrend.STABLE

    first = series[0]
    middle = series[len(series) // 2]
    last = series[-1]

    if last > first and last > middle:
        return UtilizationTrend.INCREASING
    if last < first and last < middle:
        return UtilizationTrend.DECLINING
    if first > middle > last:
        return UtilizationTrend.DECREASING
    return UtilizationTrend.STABLE


class AnalyzerBase(ABC):
    """
    Base class for all allocation analyzers.

    Provides:
    - The allocation policy (thresholds)
    - A per-class structured logger
    - The shared resolution step over a planning snapshot
    """

    def __init__(self, policy: Optional[AllocationPolicy] = None):
        """
        Initialize the analyzer.

        Args:
            policy: Thresholds to apply; defaults to ``AllocationPolicy()``
        """
        self.policy = policy or AllocationPolicy()
        self.logger = get_logger(self.__class__.__name__, analyzer=self.__class__.__name__)

    def resolve(self, snapshot: PlanningSnapshot) -> ResolvedAllocations:
        """Resolve every allocation of a snapshot against its reference sets."""
        return resolve_allocations(
            snapshot.allocations,
            snapshot.team_by_id(),
            snapshot.epic_by_id(),
            snapshot.cycle_by_id(),
            snapshot.run_work_by_id(),
        )

    @staticmethod
    def mean(values: Sequence[float]) -> float:
        if not values:
            return 0.0
        return sum(values) / len(values)

    @staticmethod
    def dedupe(values: Iterable[str]) -> Tuple[str, ...]:
        """Drop duplicates, keeping first-seen order."""
        return tuple(dict.fromkeys(values))

    @abstractmethod
    def run(self, snapshot: PlanningSnapshot, **kwargs) -> Any:
        """
        Main entry point for the analyzer.

        Must be implemented by subclasses.
        """
        pass
