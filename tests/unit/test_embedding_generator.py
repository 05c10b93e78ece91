"""Tests for EmbeddingGenerator: timeouts, error wrapping, vector assembly."""

import asyncio
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.core.config import EmbeddingConfig
from src.core.errors import ProviderError
from src.core.schemas import Candidate
from src.embeddings.generator import EmbeddingGenerator
from src.embeddings.providers.base import EmbeddingProvider
from src.embeddings.providers.hashing import HashingEmbeddingProvider


def _mock_provider(**kw: object) -> MagicMock:
    provider = MagicMock(spec=EmbeddingProvider)
    provider.provider_id = "mock"
    provider.embed = AsyncMock(**kw)
    provider.is_configured.return_value = True
    return provider


class TestAvailability:
    def test_no_provider(self) -> None:
        assert EmbeddingGenerator(None, EmbeddingConfig()).available is False

    def test_hashing_available(self) -> None:
        gen = EmbeddingGenerator.from_config(EmbeddingConfig(provider="hashing"))
        assert gen.available is True

    def test_openai_without_key(self) -> None:
        gen = EmbeddingGenerator.from_config(EmbeddingConfig(provider="openai"))
        with patch.dict("os.environ", {}, clear=True):
            assert gen.available is False

    def test_disabled_provider(self) -> None:
        gen = EmbeddingGenerator.from_config(EmbeddingConfig(provider=None))
        assert gen.available is False

    def test_unknown_provider(self) -> None:
        with pytest.raises(ValueError, match="Unknown embedding provider"):
            EmbeddingGenerator.from_config(EmbeddingConfig(provider="nope"))


class TestEmbedText:
    async def test_returns_vector(self) -> None:
        provider = _mock_provider(return_value=[[0.1, 0.2]])
        gen = EmbeddingGenerator(provider, EmbeddingConfig())
        assert await gen.embed_text("hello") == [0.1, 0.2]

    async def test_truncates_input(self) -> None:
        provider = _mock_provider(return_value=[[1.0]])
        gen = EmbeddingGenerator(provider, EmbeddingConfig(max_chars=100))
        await gen.embed_text("x" * 500)
        sent = provider.embed.call_args[0][0]
        assert len(sent[0]) == 100

    async def test_empty_text_placeholder(self) -> None:
        provider = _mock_provider(return_value=[[1.0]])
        gen = EmbeddingGenerator(provider, EmbeddingConfig())
        await gen.embed_text("   ")
        assert provider.embed.call_args[0][0] == ["Student profile"]

    async def test_timeout_becomes_provider_error(self) -> None:
        async def slow(texts: list[str], model: str | None = None) -> list[list[float]]:
            await asyncio.sleep(1)
            return [[1.0]]

        provider = _mock_provider(side_effect=slow)
        gen = EmbeddingGenerator(provider, EmbeddingConfig(timeout_s=0.01))
        with pytest.raises(ProviderError, match="timed out"):
            await gen.embed_text("hello")

    async def test_missing_key_becomes_provider_error(self) -> None:
        provider = _mock_provider(side_effect=ValueError("OPENAI_API_KEY environment variable is required"))
        gen = EmbeddingGenerator(provider, EmbeddingConfig())
        with pytest.raises(ProviderError, match="OPENAI_API_KEY") as exc_info:
            await gen.embed_text("hello")
        assert exc_info.value.provider == "mock"

    async def test_unexpected_exception_wrapped(self) -> None:
        provider = _mock_provider(side_effect=RuntimeError("rate limited"))
        gen = EmbeddingGenerator(provider, EmbeddingConfig())
        with pytest.raises(ProviderError, match="rate limited"):
            await gen.embed_text("hello")

    async def test_malformed_response(self) -> None:
        provider = _mock_provider(return_value=[])
        gen = EmbeddingGenerator(provider, EmbeddingConfig())
        with pytest.raises(ProviderError, match="expected one non-empty vector"):
            await gen.embed_text("hello")

    async def test_no_provider_raises(self) -> None:
        gen = EmbeddingGenerator(None, EmbeddingConfig())
        with pytest.raises(ProviderError):
            await gen.embed_query("hello")


class TestCandidateVector:
    async def test_three_vectors_with_version(self) -> None:
        gen = EmbeddingGenerator(HashingEmbeddingProvider(dim=16), EmbeddingConfig(version="test-v"))
        now = datetime(2026, 3, 1)
        vector = await gen.generate_candidate_vector(
            Candidate(id="s1", name="A", major="Marketing", skills=["seo"]), now=now,
        )
        assert vector.user_id == "s1"
        assert vector.vector_version == "test-v"
        assert vector.last_updated == now
        assert len(vector.profile_vector) == len(vector.skills_vector) == len(vector.academic_vector) == 16

    async def test_one_failure_fails_whole_vector(self) -> None:
        provider = _mock_provider(side_effect=[[[1.0]], RuntimeError("boom"), [[1.0]]])
        gen = EmbeddingGenerator(provider, EmbeddingConfig())
        with pytest.raises(ProviderError):
            await gen.generate_candidate_vector(Candidate(id="s1"))
