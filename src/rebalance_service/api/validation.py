"""Allocation payload validation for the intake API"""

import math
from typing import Mapping
from rebalance_engine import AllocationValidationError


def validate_user_and_allocation(user_id: str, allocation: Mapping[str, float], tolerance: float = 0.0001):
    """
    Check a user id and a complete allocation.

    Raises:
        AllocationValidationError: with a message suitable for a 400 response
    """
    if not user_id or not user_id.strip():
        raise AllocationValidationError("user_id is required")
    if not allocation:
        raise AllocationValidationError("allocation is required")

    total = 0.0
    for asset, percentage in allocation.items():
        if not asset:
            raise AllocationValidationError("asset names cannot be empty")
        if not math.isfinite(percentage):
            raise AllocationValidationError(f"percentage for {asset} must be a finite number")
        if percentage < 0:
            raise AllocationValidationError("allocation percentages cannot be negative")
        if percentage > 100:
            raise AllocationValidationError("allocation percentages cannot exceed 100")
        total += percentage

    if not math.isclose(total, 100.0, rel_tol=0.0, abs_tol=tolerance):
        raise AllocationValidationError(f"allocation percentages must sum to 100 (got {total:g})")
