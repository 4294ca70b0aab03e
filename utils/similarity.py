# utils/similarity.py
"""Vector similarity helpers shared by the leakage detector."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
import structlog

logger = structlog.get_logger(__name__)


def numpy_cosine_similarity(
    vec1: np.ndarray | Sequence[float] | None,
    vec2: np.ndarray | Sequence[float] | None,
) -> float:
    """Calculate cosine similarity between two vectors."""
    if vec1 is None or vec2 is None:
        logger.debug("Cosine similarity: one or both vectors are None. Returning 0.0.")
        return 0.0
    try:
        v1 = np.asarray(vec1, dtype=np.float64).flatten()
        v2 = np.asarray(vec2, dtype=np.float64).flatten()
    except ValueError as e:
        logger.warning(
            "Cosine similarity: Could not convert input to numpy array. Returning 0.0.",
            error=str(e),
        )
        return 0.0
    if v1.shape != v2.shape:
        logger.warning(
            "Cosine similarity: shape mismatch. Returning 0.0.",
            left=v1.shape,
            right=v2.shape,
        )
        return 0.0
    if v1.size == 0:
        return 0.0
    norm_v1 = np.linalg.norm(v1)
    norm_v2 = np.linalg.norm(v2)
    if norm_v1 == 0.0 or norm_v2 == 0.0:
        return 0.0
    similarity = np.dot(v1, v2) / (norm_v1 * norm_v2)
    return float(np.clip(similarity, -1.0, 1.0))


def max_cosine_similarity(
    query: np.ndarray, matrix: np.ndarray
) -> tuple[float, int | None]:
    """Return the best cosine similarity of ``query`` against each row of ``matrix``.

    The second element is the index of the best row, or ``None`` when no row
    has a positive similarity.
    """
    if matrix.size == 0 or query.size == 0:
        return 0.0, None
    query_norm = np.linalg.norm(query)
    row_norms = np.linalg.norm(matrix, axis=1)
    if query_norm == 0.0:
        return 0.0, None
    denominators = row_norms * query_norm
    safe = np.where(denominators == 0.0, 1.0, denominators)
    sims = np.where(denominators == 0.0, 0.0, (matrix @ query) / safe)
    best_index = int(np.argmax(sims))
    best = float(np.clip(sims[best_index], -1.0, 1.0))
    if best <= 0.0:
        return 0.0, None
    return best, best_index
