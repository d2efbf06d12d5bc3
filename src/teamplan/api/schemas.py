from typing import List, Optional

from pydantic import BaseModel, Field

from teamplan.analyzers import OptimizationOptions
from teamplan.models import PlanningSnapshot


class OptimizationRequest(BaseModel):
    snapshot: PlanningSnapshot
    target_utilization: Optional[float] = Field(None, ge=0)
    respect_skill_constraints: bool = False
    fixed_allocations: List[str] = Field(default_factory=list)

    def to_options(self) -> OptimizationOptions:
        return OptimizationOptions(
            target_utilization=self.target_utilization,
            respect_skill_constraints=self.respect_skill_constraints,
            fixed_allocations=tuple(self.fixed_allocations),
        )
