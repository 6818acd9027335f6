"""
Text embedding and similarity helpers.

The cache compares execution inputs in a fixed-size vector space. Vectors
come from a hashing embedder: word tokens and character trigrams are hashed
into signed buckets and the result is L2-normalised, so identical text
always maps to the same unit vector and similar text shares buckets.

All vectors handled here are unit length (or all zeros for empty text), so
cosine similarity is a plain dot product.
"""

from __future__ import annotations

import hashlib
import re
from functools import lru_cache

import numpy as np

_TOKEN_RE = re.compile(r"\w+", re.UNICODE)


def _features(text: str) -> list[str]:
    """Word tokens plus boundary-padded character trigrams."""
    features: list[str] = []
    for word in _TOKEN_RE.findall(text.lower()):
        features.append(f"w:{word}")
        padded = f"#{word}#"
        for i in range(len(padded) - 2):
            features.append(f"c:{padded[i:i + 3]}")
    return features


def _bucket(feature: str, dimensions: int) -> tuple[int, float]:
    digest = hashlib.blake2b(feature.encode("utf-8"), digest_size=8).digest()
    value = int.from_bytes(digest, "little")
    sign = 1.0 if (value >> 63) == 0 else -1.0
    return value % dimensions, sign


class HashingEmbedder:
    """Deterministic text embedder.

    Args:
        dimensions: Size of the output vectors.
    """

    def __init__(self, dimensions: int = 256) -> None:
        if dimensions < 1:
            raise ValueError("dimensions must be positive")
        self.dimensions = dimensions
        self._embed_cached = lru_cache(maxsize=4096)(self._embed)

    def _embed(self, text: str) -> np.ndarray:
        vec = np.zeros(self.dimensions, dtype=np.float64)
        for feature in _features(text):
            index, sign = _bucket(feature, self.dimensions)
            vec[index] += sign
        norm = np.linalg.norm(vec)
        if norm > 0:
            vec /= norm
        vec.setflags(write=False)
        return vec

    def embed(self, text: str) -> np.ndarray:
        """Embed one text into a read-only unit vector (zeros if no tokens)."""
        return self._embed_cached(text)


def is_empty_vector(vec: np.ndarray) -> bool:
    return not np.any(vec)


def cosine_similarities(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Similarity of ``query`` to every row of ``matrix`` (unit vectors)."""
    if matrix.size == 0:
        return np.zeros(0, dtype=np.float64)
    return np.clip(matrix @ query, -1.0, 1.0)


def top_k(query: np.ndarray, matrix: np.ndarray, k: int) -> tuple[np.ndarray, np.ndarray]:
    """Indices and similarities of the ``k`` rows most similar to ``query``.

    Results are ordered best first; ties keep row order.
    """
    sims = cosine_similarities(query, matrix)
    if sims.size == 0 or k <= 0:
        return np.zeros(0, dtype=np.int64), np.zeros(0, dtype=np.float64)
    order = np.argsort(-sims, kind="stable")[:k]
    return order, sims[order]


def cosine_distance(similarity: float | np.ndarray) -> float | np.ndarray:
    """Cosine distance in ``[0, 2]`` from a similarity."""
    return np.clip(1.0 - similarity, 0.0, 2.0)
