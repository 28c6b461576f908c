"""
Vector similarity for embedding comparison.

Cosine similarity is computed with numpy over float sequences. Incomparable
inputs (different lengths, zero magnitude, non-finite components) score 0
instead of raising so that a single bad record never breaks a ranking pass.
"""

from typing import List, Sequence

import numpy as np


def _unit_rows(matrix: np.ndarray) -> np.ndarray:
    """
    Normalise every row of a 2-D array to unit length.

    Rows are first divided by their largest absolute component so the norm
    cannot overflow. Zero and non-finite rows come out as NaN.
    """
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        scaled = matrix / np.max(np.abs(matrix), axis=1, keepdims=True)
        return scaled / np.linalg.norm(scaled, axis=1, keepdims=True)


def score_corpus(query: Sequence[float], vectors: Sequence[Sequence[float]]) -> List[float]:
    """
    Score each vector against the query, preserving input order.

    Vectors of the query's length are scored in one matrix product; the rest
    score 0.0.
    """
    scores = [0.0] * len(vectors)
    dim = len(query)
    rows = [index for index, vector in enumerate(vectors) if len(vector) == dim]
    if dim == 0 or not rows:
        return scores

    query_unit = _unit_rows(np.asarray([query], dtype=np.float64))[0]
    corpus_unit = _unit_rows(np.asarray([vectors[index] for index in rows], dtype=np.float64))

    with np.errstate(invalid="ignore", over="ignore"):
        raw = corpus_unit @ query_unit
    # Rounding can push |score| a hair past 1
    raw = np.clip(np.where(np.isfinite(raw), raw, 0.0), -1.0, 1.0)

    for index, score in zip(rows, raw):
        scores[index] = float(score)
    return scores


def cosine_similarity(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    """
    Compute cosine similarity between two vectors.

    Args:
        vec_a: First vector
        vec_b: Second vector

    Returns:
        Similarity in [-1, 1]; 0.0 when lengths differ, either vector has zero
        magnitude, or a component is NaN or infinite
    """
    return score_corpus(vec_a, [vec_b])[0]
