"""
TeamPlan - Allocation Analyzers

Stateless analyzers over a planning snapshot:

- CapacityCalculator: per-team, per-iteration utilization
- ConsistencyValidator: orphaned references, budgets, skills, dependencies
- ConflictDetector: typed, severity-ranked scheduling conflicts
- RecommendationEngine: redistribution, staffing, balancing, run work ratio
- TrendAnalyzer: velocity, burnout risk, cycle predictions
- DependencyAnalyzer: shared epics and bottleneck teams
- DistributionOptimizer: distribution scores against a target utilization
"""

from .base import AllocationPolicy
from .capacity_calculator import CapacityCalculator
from .consistency_validator import ConsistencyValidator
from .conflict_detector import ConflictDetector
from .recommendation_engine import RecommendationEngine
from .trend_analyzer import TrendAnalyzer
from .dependency_analyzer import DependencyAnalyzer
from .distribution_optimizer import DistributionOptimizer, OptimizationOptions

__all__ = [
    "AllocationPolicy",
    "CapacityCalculator",
    "ConsistencyValidator",
    "ConflictDetector",
    "RecommendationEngine",
    "TrendAnalyzer",
    "DependencyAnalyzer",
    "DistributionOptimizer",
    "OptimizationOptions",
]
