"""Embedding backends for the semantic deduplication pass."""

from __future__ import annotations

import hashlib
import math
from array import array
from dataclasses import dataclass, field
from typing import Any, Protocol

from news_issue.errors import FatalStepError

Vector = list[float]
HASHING_MODEL_PREFIX = "hashing"


class Embedder(Protocol):
    """Embedding backend interface."""

    model_name: str

    def embed(self, texts: list[str]) -> list[Vector]:
        """Encode texts into normalized vectors."""
        raise NotImplementedError


@dataclass(slots=True)
class HashingEmbedder:
    """CPU-only embedder based on hashed character n-grams."""

    model_name: str = "hashing-trigram"
    dimensions: int = 384
    ngram_size: int = 3

    def embed(self, texts: list[str]) -> list[Vector]:
        return [self._embed_single(text) for text in texts]

    def _embed_single(self, text: str) -> Vector:
        normalized = (text or "").lower().strip()
        vector = array("f", [0.0]) * self.dimensions
        if not normalized:
            return list(vector)

        if len(normalized) < self.ngram_size:
            normalized = normalized.ljust(self.ngram_size)

        for index in range(len(normalized) - self.ngram_size + 1):
            ngram = normalized[index : index + self.ngram_size]
            digest = hashlib.sha1(ngram.encode("utf-8"), usedforsecurity=False).digest()  # noqa: S324
            bucket = int.from_bytes(digest[:4], byteorder="little") % self.dimensions
            vector[bucket] += 1.0

        norm = math.sqrt(sum(value * value for value in vector))
        if norm > 0:
            vector = array("f", (value / norm for value in vector))
        return list(vector)


@dataclass(slots=True)
class SentenceTransformerEmbedder:
    """Sentence-transformers backend with lazy import."""

    model_name: str
    _model: Any = field(init=False, repr=False)

    def __post_init__(self) -> None:
        from sentence_transformers import SentenceTransformer  # type: ignore

        self._model = SentenceTransformer(self.model_name)

    def embed(self, texts: list[str]) -> list[Vector]:
        vectors = self._model.encode(texts, normalize_embeddings=True)
        return [vector.tolist() for vector in vectors]


def build_embedder(model_name: str) -> Embedder:
    """Build the configured embedder.

    ``hashing-*`` names select the n-gram embedder; any other name is loaded
    with sentence-transformers (``pip install news-issue[semantic]``).
    """

    if model_name.startswith(HASHING_MODEL_PREFIX):
        return HashingEmbedder(model_name=model_name)
    try:
        return SentenceTransformerEmbedder(model_name=model_name)
    except (ImportError, OSError, ValueError) as error:
        raise FatalStepError(
            f"Failed to initialize embedding model {model_name}. "
            "Install the 'semantic' extra or set NEWS_ISSUE_DEDUP_MODEL_NAME=hashing-trigram.",
        ) from error


def cosine_similarity(left: Vector, right: Vector) -> float:
    """Compute cosine similarity for normalized vectors."""

    if len(left) != len(right):
        raise ValueError("Vectors must have the same size")

    dot = sum(l_value * r_value for l_value, r_value in zip(left, right, strict=True))
    return max(-1.0, min(1.0, dot))
