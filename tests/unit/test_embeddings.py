"""
Unit tests for embedding providers.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import numpy as np
import openai
import pytest

from skill_discovery.embeddings import (
    CachedEmbedder,
    EmbeddingError,
    EmbeddingProvider,
    Err,
    HeuristicEmbedder,
    Ok,
    OpenAIEmbedder,
    cosine_similarity,
    embed_texts,
)


class CountingEmbedder:
    """Fake provider that records each batch it receives."""

    def __init__(self, dims: int = 3):
        self.dims = dims
        self.batches: list[list[str]] = []

    async def embed(self, text):
        return (await self.embed_batch([text]))[0]

    async def embed_batch(self, texts, ids=None):
        self.batches.append(list(texts))
        return [[float(len(t))] * self.dims for t in texts]


class TestCosineSimilarity:
    def test_basic(self):
        assert cosine_similarity([1, 0], [1, 0]) == pytest.approx(1.0)
        assert cosine_similarity([1, 0], [0, 1]) == pytest.approx(0.0)
        assert cosine_similarity([1, 0], [-1, 0]) == pytest.approx(-1.0)

    def test_zero_vector(self):
        assert cosine_similarity([0, 0], [1, 0]) == 0.0

    def test_dimension_mismatch(self):
        with pytest.raises(ValueError):
            cosine_similarity([1, 0], [1, 0, 0])


class TestHeuristicEmbedder:
    """Tests for the local hashed bag-of-words embedder."""

    @pytest.mark.asyncio
    async def test_unit_length_and_dimensions(self):
        vector = await HeuristicEmbedder(dimensions=64).embed("run the test suite")

        assert len(vector) == 64
        assert np.linalg.norm(vector) == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_deterministic(self):
        a = await HeuristicEmbedder().embed("git commit workflow")
        b = await HeuristicEmbedder().embed("git commit workflow")

        assert a == b

    @pytest.mark.asyncio
    async def test_related_texts_are_closer(self):
        embedder = HeuristicEmbedder()
        base, near, far = await embedder.embed_batch([
            "Shell workflow for version control: git commit",
            "Shell workflow for version control: git push",
            "Workflow: read files, then edit files",
        ])

        assert cosine_similarity(base, near) > cosine_similarity(base, far)

    @pytest.mark.asyncio
    async def test_empty_text_is_zero_vector(self):
        vector = await HeuristicEmbedder(dimensions=8).embed("")
        assert vector == [0.0] * 8

    def test_invalid_dimensions(self):
        with pytest.raises(ValueError):
            HeuristicEmbedder(dimensions=0)

    def test_satisfies_protocol(self):
        assert isinstance(HeuristicEmbedder(), EmbeddingProvider)


class TestCachedEmbedder:
    @pytest.mark.asyncio
    async def test_each_text_embedded_once(self):
        inner = CountingEmbedder()
        cached = CachedEmbedder(inner)

        first = await cached.embed_batch(["a", "bb", "a"])
        second = await cached.embed_batch(["bb", "ccc"])

        assert inner.batches == [["a", "bb"], ["ccc"]]
        assert first[0] == first[2]
        assert second[0] == first[1]
        assert len(cached) == 3

    @pytest.mark.asyncio
    async def test_short_provider_response(self):
        inner = CountingEmbedder()
        inner.embed_batch = AsyncMock(return_value=[[1.0]])

        with pytest.raises(EmbeddingError):
            await CachedEmbedder(inner).embed_batch(["a", "b"])


class TestOpenAIEmbedder:
    """Tests for the OpenAI provider (client mocked)."""

    def test_requires_api_key(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        monkeypatch.setattr("skill_discovery.embeddings.load_dotenv", lambda: None)

        with pytest.raises(ValueError, match="API key"):
            OpenAIEmbedder()

    @pytest.mark.asyncio
    async def test_batches_and_orders_by_index(self):
        embedder = OpenAIEmbedder(api_key="sk-test", batch_size=2)

        async def create(model, input):
            data = [SimpleNamespace(index=i, embedding=[float(len(t))]) for i, t in enumerate(input)]
            return SimpleNamespace(data=list(reversed(data)))

        embedder.client = MagicMock()
        embedder.client.embeddings.create = AsyncMock(side_effect=create)

        vectors = await embedder.embed_batch(["a", "bb", "ccc"])

        assert vectors == [[1.0], [2.0], [3.0]]
        assert embedder.client.embeddings.create.await_count == 2

    @pytest.mark.asyncio
    async def test_api_error_wrapped(self):
        embedder = OpenAIEmbedder(api_key="sk-test")
        embedder.client = MagicMock()
        embedder.client.embeddings.create = AsyncMock(side_effect=openai.OpenAIError("quota"))

        with pytest.raises(EmbeddingError, match="quota"):
            await embedder.embed("text")


class TestEmbedTexts:
    """Tests for the result-returning embed_texts() helper."""

    @pytest.mark.asyncio
    async def test_no_provider(self):
        result = await embed_texts(None, ["a"])

        assert isinstance(result, Err)
        assert result.reason == "no embedding provider configured"

    @pytest.mark.asyncio
    async def test_empty_input(self):
        assert await embed_texts(CountingEmbedder(), []) == Ok([])

    @pytest.mark.asyncio
    async def test_success(self):
        result = await embed_texts(CountingEmbedder(dims=2), ["ab", "c"])

        assert result == Ok([[2.0, 2.0], [1.0, 1.0]])

    @pytest.mark.asyncio
    async def test_provider_exception_becomes_err(self):
        provider = CountingEmbedder()
        provider.embed_batch = AsyncMock(side_effect=EmbeddingError("down"))

        result = await embed_texts(provider, ["a"])

        assert result == Err("down")

    @pytest.mark.asyncio
    async def test_wrong_count_becomes_err(self):
        provider = CountingEmbedder()
        provider.embed_batch = AsyncMock(return_value=[[1.0]])

        result = await embed_texts(provider, ["a", "b"])

        assert isinstance(result, Err)

    @pytest.mark.asyncio
    async def test_inconsistent_dimensions_become_err(self):
        provider = CountingEmbedder()
        provider.embed_batch = AsyncMock(return_value=[[1.0], [1.0, 2.0]])

        result = await embed_texts(provider, ["a", "b"])

        assert isinstance(result, Err)
