"""
Embedding providers for semantic similarity.

The discovery pipeline consumes embeddings through the narrow
EmbeddingProvider protocol. Providers are optional: embed_texts() turns any
provider failure into an Err result so callers can fall back instead of
failing the run.

Providers:
- HeuristicEmbedder: deterministic local hashed bag-of-words, no service needed
- OpenAIEmbedder: remote embeddings via the OpenAI API (batched)
- CachedEmbedder: per-text cache in front of another provider
"""

from __future__ import annotations

import logging
import math
import os
import re
import zlib
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Generic, Protocol, TypeVar, Union, runtime_checkable

import numpy as np
import openai
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

EmbeddingVector = list[float]

T = TypeVar("T")


class EmbeddingError(Exception):
    """Raised by a provider that cannot produce embeddings."""


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err:
    reason: str


EmbeddingResult = Union[Ok[list[EmbeddingVector]], Err]


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Anything that turns text into vectors."""

    async def embed(self, text: str) -> EmbeddingVector:
        ...

    async def embed_batch(
        self, texts: Sequence[str], ids: Sequence[str] | None = None
    ) -> list[EmbeddingVector]:
        ...


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity in [-1, 1]; 0.0 if either vector is all zeros."""
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    if va.shape != vb.shape:
        raise ValueError(f"Vector dimensions differ: {va.shape} vs {vb.shape}")
    norm = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if norm == 0.0:
        return 0.0
    return float(np.clip(np.dot(va, vb) / norm, -1.0, 1.0))


_TOKEN = re.compile(r"[a-z0-9]+")


class HeuristicEmbedder:
    """
    Hashed bag-of-words embedder.

    Word unigrams and bigrams are hashed (crc32, stable across processes)
    into a fixed number of buckets with sublinear term frequency, then
    L2-normalized. Good enough to tell "git commit workflow" from "run the
    test suite" without a model.
    """

    def __init__(self, dimensions: int = 256):
        if dimensions <= 0:
            raise ValueError("dimensions must be positive")
        self.dimensions = dimensions

    def _vector(self, text: str) -> EmbeddingVector:
        tokens = _TOKEN.findall(text.lower())
        features = tokens + [f"{a}_{b}" for a, b in zip(tokens, tokens[1:])]
        vector = np.zeros(self.dimensions, dtype=float)
        for feature, count in Counter(features).items():
            bucket = zlib.crc32(feature.encode("utf-8")) % self.dimensions
            vector[bucket] += 1.0 + math.log(count)
        norm = np.linalg.norm(vector)
        if norm > 0:
            vector /= norm
        return vector.tolist()

    async def embed(self, text: str) -> EmbeddingVector:
        return self._vector(text)

    async def embed_batch(
        self, texts: Sequence[str], ids: Sequence[str] | None = None
    ) -> list[EmbeddingVector]:
        return [self._vector(text) for text in texts]


class OpenAIEmbedder:
    """OpenAI embeddings API client."""

    def __init__(
        self,
        model: str = "text-embedding-3-small",
        api_key: str | None = None,
        batch_size: int = 100,
    ):
        load_dotenv()
        self.api_key = api_key or os.environ.get("OPENAI_API_KEY")
        if not self.api_key:
            raise ValueError("OpenAI API key required. Set OPENAI_API_KEY environment variable.")
        self.model = model
        self.batch_size = batch_size
        self.client = openai.AsyncOpenAI(api_key=self.api_key)

    async def embed(self, text: str) -> EmbeddingVector:
        vectors = await self.embed_batch([text])
        return vectors[0]

    async def embed_batch(
        self, texts: Sequence[str], ids: Sequence[str] | None = None
    ) -> list[EmbeddingVector]:
        vectors: list[EmbeddingVector] = []
        for start in range(0, len(texts), self.batch_size):
            chunk = list(texts[start:start + self.batch_size])
            try:
                response = await self.client.embeddings.create(model=self.model, input=chunk)
            except openai.OpenAIError as e:
                raise EmbeddingError(f"OpenAI embeddings request failed: {e}") from e
            ordered = sorted(response.data, key=lambda item: item.index)
            vectors.extend(list(item.embedding) for item in ordered)
        return vectors


class CachedEmbedder:
    """
    Per-text cache in front of another provider.

    Clustering and deduplication embed overlapping descriptions; the cache
    keeps that to one provider call per distinct text.
    """

    def __init__(self, provider: EmbeddingProvider):
        self.provider = provider
        self._cache: dict[str, EmbeddingVector] = {}

    async def embed(self, text: str) -> EmbeddingVector:
        vectors = await self.embed_batch([text])
        return vectors[0]

    async def embed_batch(
        self, texts: Sequence[str], ids: Sequence[str] | None = None
    ) -> list[EmbeddingVector]:
        missing = list(dict.fromkeys(t for t in texts if t not in self._cache))
        if missing:
            fresh = await self.provider.embed_batch(missing)
            if len(fresh) != len(missing):
                raise EmbeddingError(
                    f"Provider returned {len(fresh)} vectors for {len(missing)} texts"
                )
            self._cache.update(zip(missing, fresh))
        return [self._cache[t] for t in texts]

    def __len__(self) -> int:
        return len(self._cache)


async def embed_texts(
    provider: EmbeddingProvider | None,
    texts: Sequence[str],
    ids: Sequence[str] | None = None,
) -> EmbeddingResult:
    """
    Embed texts, reporting failure as a value.

    Args:
        provider: Embedding provider, or None when none is configured
        texts: Texts to embed
        ids: Optional ids, parallel to texts

    Returns:
        Ok(vectors) with one vector per text, or Err(reason)
    """
    if provider is None:
        return Err("no embedding provider configured")
    if not texts:
        return Ok([])

    try:
        vectors = await provider.embed_batch(texts, ids)
    except Exception as e:
        logger.warning(f"Embedding provider failed: {e}")
        return Err(str(e) or type(e).__name__)

    if len(vectors) != len(texts):
        return Err(f"provider returned {len(vectors)} vectors for {len(texts)} texts")
    dims = {len(v) for v in vectors}
    if len(dims) > 1 or 0 in dims:
        return Err("provider returned vectors of inconsistent dimension")

    return Ok([list(v) for v in vectors])


__all__ = [
    "CachedEmbedder",
    "EmbeddingError",
    "EmbeddingProvider",
    "EmbeddingResult",
    "EmbeddingVector",
    "Err",
    "HeuristicEmbedder",
    "Ok",
    "OpenAIEmbedder",
    "cosine_similarity",
    "embed_texts",
]
