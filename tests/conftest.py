"""
Shared fixtures: a fresh SQLite database per test and small-dimension
hash embeddings so vector tiers run without a model download.
"""

import pytest

from assist_core.core.dao import AlertSink, KnowledgeRepository, OutcomeRepository
from assist_core.core.db import init_db
from assist_core.core.schema import KnowledgeItem
from assist_core.vector.embeddings import DeterministicHashEmbedding, EmbeddingService

TEST_DIM = 16


@pytest.fixture
def db_path(tmp_path):
    """Initialized SQLite database in the test's temp directory."""
    path = str(tmp_path / "assist_core.db")
    init_db(path)
    return path


@pytest.fixture
def knowledge_repo(db_path):
    return KnowledgeRepository(db_path)


@pytest.fixture
def outcome_repo(db_path):
    return OutcomeRepository(db_path)


@pytest.fixture
def alert_sink(db_path):
    return AlertSink(db_path)


@pytest.fixture
def hash_service():
    """Embedding service with no model, always answering in hash mode."""
    return EmbeddingService(provider=None, dimension=TEST_DIM)


@pytest.fixture
def embed_item():
    """Attach the hash embedding of an item's name."""
    def _embed(item: KnowledgeItem, dimension: int = TEST_DIM) -> KnowledgeItem:
        item.embedding = DeterministicHashEmbedding(dimension).embed_text(item.name)
        item.embedding_mode = "hash"
        return item
    return _embed
