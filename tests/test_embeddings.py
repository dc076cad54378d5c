"""
Test cases for embedding providers and the degrading EmbeddingService.
"""

from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from assist_core.core.errors import ProviderUnavailable
from assist_core.vector.embeddings import (
    DeterministicHashEmbedding, EmbeddingService, OllamaEmbedding, SentenceTransformerEmbedding,
    build_embedding_provider, normalize_text
)


class TestNormalizeText:

    def test_collapses_whitespace_and_case(self):
        """Whitespace runs collapse and text is casefolded."""
        assert normalize_text("  Red\t\n  SHIRT ") == "red shirt"

    def test_nfkc(self):
        """Compatibility forms fold to their canonical characters."""
        assert normalize_text("ＲＥＤ") == "red"

    def test_none_is_empty(self):
        assert normalize_text(None) == ""


class TestDeterministicHashEmbedding:

    def test_dimension(self):
        """Vectors fill exactly the requested dimension, across digest blocks."""
        provider = DeterministicHashEmbedding(dimension=100)
        assert len(provider.embed_text("hello")) == 100
        assert provider.get_dimension() == 100

    def test_deterministic_after_normalization(self):
        """Texts equal after normalization produce identical vectors."""
        provider = DeterministicHashEmbedding(dimension=64)
        assert provider.embed_text("Red  Shirt") == provider.embed_text("red shirt")

    def test_different_texts_differ(self):
        provider = DeterministicHashEmbedding(dimension=64)
        assert provider.embed_text("red shirt") != provider.embed_text("blue shirt")

    def test_values_in_range(self):
        vector = DeterministicHashEmbedding(dimension=768).embed_text("anything")
        assert all(-1.0 <= v <= 1.0 for v in vector)


class TestEmbeddingService:

    def test_model_mode_when_provider_works(self):
        """A healthy provider answers in model mode."""
        provider = MagicMock()
        provider.embed_text.return_value = [0.1] * 8

        result = EmbeddingService(provider, dimension=8).embed("hi")

        assert result.mode == "model"
        assert not result.degraded
        assert result.vector == [0.1] * 8

    def test_degrades_to_hash_on_failure(self):
        """Provider errors fall back to hash embeddings tagged as degraded."""
        provider = MagicMock()
        provider.embed_text.side_effect = RuntimeError("model not loaded")

        result = EmbeddingService(provider, dimension=8).embed("hi")

        assert result.mode == "hash"
        assert result.degraded
        assert result.vector == DeterministicHashEmbedding(8).embed_text("hi")

    def test_degrades_on_wrong_dimension(self):
        """A vector of the wrong length is treated as a provider failure."""
        provider = MagicMock()
        provider.embed_text.return_value = [0.1] * 4

        result = EmbeddingService(provider, dimension=8).embed("hi")

        assert result.mode == "hash"
        assert len(result.vector) == 8

    def test_no_provider_is_hash_only(self):
        result = EmbeddingService(None, dimension=8).embed("hi")
        assert result.mode == "hash"

    def test_both_failing_raises_provider_unavailable(self):
        """When the fallback fails too, callers get ProviderUnavailable."""
        provider = MagicMock()
        provider.embed_text.side_effect = RuntimeError("down")
        fallback = MagicMock()
        fallback.embed_text.side_effect = RuntimeError("also down")

        with pytest.raises(ProviderUnavailable):
            EmbeddingService(provider, dimension=8, fallback=fallback).embed("hi")

    def test_embed_texts_shape(self):
        matrix = EmbeddingService(None, dimension=8).embed_texts(["a", "b", "c"])
        assert isinstance(matrix, np.ndarray)
        assert matrix.shape == (3, 8)


class TestProviderFactory:

    def test_hash_means_no_preferred_provider(self):
        assert build_embedding_provider("hash") is None

    def test_sentence_transformers_is_lazy(self):
        """Constructing the provider does not load the model."""
        provider = build_embedding_provider("sentence_transformers", "all-mpnet-base-v2")
        assert isinstance(provider, SentenceTransformerEmbedding)
        assert provider._model is None

    def test_ollama_provider(self):
        provider = build_embedding_provider("ollama", dimension=4, ollama_model="nomic-embed-text")
        assert isinstance(provider, OllamaEmbedding)

        with patch("ollama.embeddings", return_value={"embedding": [0.1, 0.2, 0.3, 0.4]}) as mock_embed:
            assert provider.embed_text("hello") == [0.1, 0.2, 0.3, 0.4]

        mock_embed.assert_called_once_with(model="nomic-embed-text", prompt="hello")
