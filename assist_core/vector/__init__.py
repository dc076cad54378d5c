"""
Knowledge retrieval: embeddings, vector stores and the tenant-scoped search
service with its native-vector, brute-force and keyword tiers.
"""

# Package initialization for vector module
from .index import IVectorStore, SimpleInMemoryVectorStore
from .faiss_store import FaissVectorStore
from .types import VectorRecord, QueryResult, SimilarityResult
from .embeddings import (
    IEmbeddingProvider, DeterministicHashEmbedding, SentenceTransformerEmbedding,
    OllamaEmbedding, EmbeddingService, EmbeddingResult
)
from .strategy import RetrievalStrategy, probe_retrieval_strategy
from .knowledge_search import KnowledgeSearchService
from .indexer import KnowledgeIndexer

__all__ = [
    'IVectorStore',
    'SimpleInMemoryVectorStore',
    'FaissVectorStore',
    'VectorRecord',
    'QueryResult',
    'SimilarityResult',
    'IEmbeddingProvider',
    'DeterministicHashEmbedding',
    'SentenceTransformerEmbedding',
    'OllamaEmbedding',
    'EmbeddingService',
    'EmbeddingResult',
    'RetrievalStrategy',
    'probe_retrieval_strategy',
    'KnowledgeSearchService',
    'KnowledgeIndexer'
]
