"""Input fingerprinting for mastergate report caching."""
import hashlib
import json
from enum import Enum
from typing import Any, Iterable, Mapping, Optional

import numpy as np


def _default(value: Any) -> Any:
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=repr)
    if isinstance(value, tuple):
        return list(value)
    raise TypeError(f"Object of type {type(value).__name__} is not fingerprintable")


class Fingerprint:
    """Utility class for stable input hashes."""

    @staticmethod
    def hash_string(data: str) -> str:
        """Generate SHA-256 hash of string."""
        return hashlib.sha256(data.encode()).hexdigest()

    @staticmethod
    def canonical_json(data: Any) -> str:
        """Create canonical JSON representation for hashing."""
        return json.dumps(data, sort_keys=True, separators=(',', ':'), default=_default)

    @staticmethod
    def of(data: Any) -> str:
        return Fingerprint.hash_string(Fingerprint.canonical_json(data))

    @staticmethod
    def assessment_key(signals: Mapping[str, Any],
                       model_ids: Iterable[str] = (),
                       confidence: Optional[float] = None,
                       options: Optional[Mapping[str, Any]] = None) -> str:
        """Fingerprint of everything an assessment depends on.

        Args:
            signals: Signal vector.
            model_ids: Models drift is checked against, in order.
            confidence: Confidence to adjust, if any.
            options: Layer toggles.

        Returns:
            Hex SHA-256 digest; equal inputs always give equal keys.
        """
        return Fingerprint.of({
            "signals": dict(signals),
            "models": list(model_ids),
            "confidence": confidence,
            "options": dict(options or {}),
        })
