"""
Embedding providers. Text to fixed-length vectors.

The preferred provider is a real embedding model. When it fails or is not
installed, EmbeddingService degrades to DeterministicHashEmbedding, whose
vectors only rank exact or near-exact repeats meaningfully; results built on
them are tagged with the 'hash' embedding mode.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
import hashlib
import re
import unicodedata
from typing import List, Optional

import numpy as np

from .types import EMBEDDING_MODE_HASH, EMBEDDING_MODE_MODEL
from ..core.errors import ProviderUnavailable
from ..util.logging import logger


def normalize_text(text: str) -> str:
    """NFKC-normalize, lowercase and collapse whitespace."""
    text = unicodedata.normalize("NFKC", text or "")
    return re.sub(r"\s+", " ", text).strip().casefold()


class IEmbeddingProvider(ABC):
    """Abstract interface for embedding providers."""

    @abstractmethod
    def embed_text(self, text: str) -> list[float]:
        """Generate embedding vector for given text."""
        pass

    @abstractmethod
    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        pass


class DeterministicHashEmbedding(IEmbeddingProvider):
    """Deterministic hash-based embedding provider.

    Expands SHA-256 digests of the normalized text (one digest per counter
    block) until the requested dimension is filled, then maps every 4-byte
    word to [-1, 1]. The same normalized text always yields the same vector.
    """

    def __init__(self, dimension: int = 768):
        self.dimension = dimension

    def embed_text(self, text: str) -> list[float]:
        """Generate deterministic embedding vector using hash function."""
        normalized = normalize_text(text).encode("utf-8")

        vector = []
        counter = 0
        while len(vector) < self.dimension:
            digest = hashlib.sha256(normalized + counter.to_bytes(4, "big")).digest()
            for i in range(0, len(digest), 4):
                if len(vector) >= self.dimension:
                    break
                value = int.from_bytes(digest[i:i + 4], "big")
                # Normalize to [0, 1] and then map to [-1, 1] for cosine similarity
                vector.append((value / (2**32 - 1)) * 2 - 1)
            counter += 1

        return vector

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        return self.dimension


class SentenceTransformerEmbedding(IEmbeddingProvider):
    """Sentence transformers embedding provider using pre-trained models.

    Uses the all-mpnet-base-v2 model (768 dimensions) by default.
    """

    def __init__(self, model_name: str = "all-mpnet-base-v2"):
        self.model_name = model_name
        self._model = None
        self._dimension = None

    @property
    def model(self):
        if self._model is None:
            from sentence_transformers import SentenceTransformer
            self._model = SentenceTransformer(self.model_name)
        return self._model

    def embed_text(self, text: str) -> list[float]:
        """Generate embedding vector using sentence transformers."""
        embedding = self.model.encode(text, convert_to_tensor=False)
        return embedding.tolist()

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        if self._dimension is None:
            self._dimension = self.model.get_sentence_embedding_dimension()
        return self._dimension


class OllamaEmbedding(IEmbeddingProvider):
    """Embeddings served by a local Ollama instance."""

    def __init__(self, model_name: str = "nomic-embed-text", dimension: int = 768):
        self.model_name = model_name
        self.dimension = dimension

    def embed_text(self, text: str) -> list[float]:
        import ollama

        response = ollama.embeddings(model=self.model_name, prompt=text)
        return list(response["embedding"])

    def get_dimension(self) -> int:
        return self.dimension


@dataclass
class EmbeddingResult:
    vector: List[float]
    mode: str  # 'model' | 'hash'

    @property
    def degraded(self) -> bool:
        return self.mode == EMBEDDING_MODE_HASH


class EmbeddingService:
    """
    Embedding adapter with a built-in degraded mode.

    Calls the preferred provider; any failure, or a vector of the wrong
    dimension, falls back to the hash provider. Only when both fail is
    ProviderUnavailable raised, which the retrieval engine treats as a signal
    to use keyword search.
    """

    def __init__(self, provider: Optional[IEmbeddingProvider] = None, dimension: int = 768,
                 fallback: Optional[IEmbeddingProvider] = None):
        self.dimension = dimension
        self.provider = provider
        self.fallback = fallback if fallback is not None else DeterministicHashEmbedding(dimension)

    def embed(self, text: str) -> EmbeddingResult:
        """Embed text, preferring the model and degrading to hash embeddings."""
        if self.provider is not None:
            try:
                vector = self.provider.embed_text(text)
                if len(vector) != self.dimension:
                    raise ProviderUnavailable(
                        f"Embedding dimension {len(vector)} does not match expected {self.dimension}"
                    )
                return EmbeddingResult(vector=[float(v) for v in vector], mode=EMBEDDING_MODE_MODEL)
            except Exception as e:
                logger.log_fallback("embeddings", EMBEDDING_MODE_MODEL, EMBEDDING_MODE_HASH, str(e))

        try:
            return EmbeddingResult(vector=self.fallback.embed_text(text), mode=EMBEDDING_MODE_HASH)
        except Exception as e:
            raise ProviderUnavailable(f"No embedding provider available: {e}") from e

    def embed_texts(self, texts: list[str]) -> np.ndarray:
        """
        Embed multiple texts into vectors.

        Returns:
            Numpy array of shape (len(texts), embedding_dim)
        """
        return np.array([self.embed(text).vector for text in texts])


def build_embedding_provider(name: str, model_name: str = None, dimension: int = 768,
                             ollama_model: str = None) -> Optional[IEmbeddingProvider]:
    """Map the EMBED_PROVIDER setting to a preferred provider (None means hash only)."""
    if name == "sentence_transformers":
        return SentenceTransformerEmbedding(model_name or "all-mpnet-base-v2")
    elif name == "ollama":
        return OllamaEmbedding(ollama_model or "nomic-embed-text", dimension)
    return None
