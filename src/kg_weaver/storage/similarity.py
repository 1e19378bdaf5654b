"""Exhaustive cosine-similarity ranking shared by every backend."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

import numpy as np

from kg_weaver.errors import DimensionMismatchError


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of the angle between *a* and *b*; 0.0 when either has zero norm."""
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise DimensionMismatchError(f"cannot compare vectors of dimension {va.size} and {vb.size}")
    denom = np.linalg.norm(va) * np.linalg.norm(vb)
    if denom == 0.0:
        return 0.0
    return float(np.dot(va, vb) / denom)


def rank_by_similarity(
    records: Iterable[dict[str, Any]],
    vector: Sequence[float],
    *,
    field: str = "embedding",
    min_score: float | None = None,
    limit: int | None = None,
) -> list[tuple[dict[str, Any], float]]:
    """Score every record against *vector* and return the best ones.

    *records* must be supplied in storage order.  Candidates below
    *min_score* are dropped **before** truncating to *limit*, so a short
    result never contains a sub-threshold hit.  Equal scores keep storage
    order (``sorted`` is stable).
    """
    scored: list[tuple[dict[str, Any], float]] = []
    for record in records:
        candidate = record.get(field)
        if not candidate:
            continue
        score = cosine_similarity(vector, candidate)
        if min_score is not None and score < min_score:
            continue
        scored.append((record, score))

    scored.sort(key=lambda pair: pair[1], reverse=True)
    if limit is not None:
        scored = scored[: max(limit, 0)]
    return scored
