"""Canonical content hash of an allocation"""

import hashlib
import json
import math
from typing import List, Mapping, Tuple

from .exceptions import AllocationValidationError


def _canonical_weight(asset: str, weight: float) -> float:
    value = float(weight)
    if not math.isfinite(value):
        raise AllocationValidationError(f"Weight for {asset} is not a finite number: {weight}")
    # -0.0 and 0.0 are the same weight
    return value + 0.0


def canonical_pairs(allocation: Mapping[str, float]) -> List[Tuple[str, float]]:
    """Return (asset, weight) pairs sorted by asset identifier"""
    return [(asset, _canonical_weight(asset, allocation[asset])) for asset in sorted(allocation)]


def canonical_bytes(allocation: Mapping[str, float]) -> bytes:
    """
    Stable byte encoding of an allocation.

    Weights are coerced to float so 60 and 60.0 encode the same, and rendered
    with the shortest round-trip repr, which does not depend on the platform.
    """
    pairs = [[asset, weight] for asset, weight in canonical_pairs(allocation)]
    return json.dumps(pairs, separators=(',', ':'), ensure_ascii=False, allow_nan=False).encode('utf-8')


def fingerprint(allocation: Mapping[str, float]) -> str:
    """SHA-256 of the canonical encoding as 64 lowercase hex characters"""
    return hashlib.sha256(canonical_bytes(allocation)).hexdigest()
