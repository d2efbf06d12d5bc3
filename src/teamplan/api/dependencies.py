from typing import Annotated

from fastapi import Depends

from teamplan.analyzers import AllocationPolicy
from teamplan.platform.config import settings

# Singletons
_policy: AllocationPolicy | None = None


def get_policy() -> AllocationPolicy:
    global _policy
    if not _policy:
        _policy = AllocationPolicy.from_settings(settings)
    return _policy


PolicyDep = Annotated[AllocationPolicy, Depends(get_policy)]
