"""
Tenant-scoped knowledge retrieval with a degrading fallback chain.

    native-vector  FAISS inner-product index over the tenant's active items
    brute-force    numpy cosine scan over the same filtered rows
    keyword        case-insensitive substring match on name/description

Scores are normalized to [0, 1] (1 - cosine distance for the vector tiers,
a fixed partial-confidence score for keyword hits) so callers can rank
results the same way whichever tier answered.
"""

import time
from typing import List, Optional, Tuple

from .cache import TTLCache
from .embeddings import EmbeddingService, normalize_text
from .faiss_store import FaissVectorStore
from .index import IVectorStore, SimpleInMemoryVectorStore
from .strategy import RetrievalStrategy
from .types import (
    VectorRecord, SimilarityResult,
    PROVENANCE_NATIVE_VECTOR, PROVENANCE_BRUTE_FORCE, PROVENANCE_KEYWORD,
    EMBEDDING_MODE_HASH, EMBEDDING_MODE_MODEL,
)
from ..core.dao import KnowledgeRepository, require_tenant
from ..core.errors import ProviderUnavailable, TenantIsolationViolation
from ..core.schema import KnowledgeItem
from ..util.logging import logger


class KnowledgeSearchService:
    """
    Answers searchKnowledge(query, tenant, k).

    Stateless per request apart from two TTL caches: finished result lists
    keyed by (tenant, normalized query, k), and built per-tenant vector
    indexes. Staleness within the TTL is accepted.
    """

    def __init__(self, repository: KnowledgeRepository, embedding_service: EmbeddingService,
                 strategy: RetrievalStrategy = RetrievalStrategy.BRUTE_FORCE,
                 dimension: int = 768, keyword_score: float = 0.5, default_k: int = 5,
                 cache_ttl_sec: float = 300, cache_max: int = 1000):
        self.repository = repository
        self.embedding_service = embedding_service
        self.strategy = strategy
        self.dimension = dimension
        self.keyword_score = keyword_score
        self.default_k = default_k
        self.results_cache = TTLCache(cache_ttl_sec, cache_max)
        self.index_cache = TTLCache(cache_ttl_sec, 256)

    def search(self, query: str, tenant_id: str, k: Optional[int] = None) -> List[SimilarityResult]:
        """
        Return the top-k items of one tenant similar to the query.

        An empty list means nothing matched on any tier. Errors other than a
        tenant isolation violation never escape; each failing tier hands over
        to the next.
        """
        tenant_id = require_tenant(tenant_id)
        k = self.default_k if k is None else k
        normalized = normalize_text(query)
        if k <= 0 or not normalized:
            return []

        start = time.monotonic()
        cache_key = (tenant_id, normalized, k)
        cached = self.results_cache.get(cache_key)
        if cached is not None:
            logger.log_retrieval(tenant_id, cached[0].provenance if cached else "none",
                                 len(cached), (time.monotonic() - start) * 1000, cached=True)
            return list(cached)

        hits: List[Tuple[KnowledgeItem, SimilarityResult]] = []
        if self.strategy != RetrievalStrategy.KEYWORD_ONLY:
            try:
                hits = self._vector_search(query, tenant_id, k)
            except ProviderUnavailable as e:
                logger.log_fallback("retrieval", self.strategy.value, PROVENANCE_KEYWORD, str(e))
                hits = []

        if not hits:
            hits = self._keyword_search(query, tenant_id, k)

        for item, _ in hits:
            if item.tenant_id != tenant_id:
                raise TenantIsolationViolation(
                    f"Item {item.id} of tenant {item.tenant_id} surfaced in a search for tenant {tenant_id}"
                )

        results = [result for _, result in hits]
        self.results_cache.set(cache_key, tuple(results))
        logger.log_retrieval(tenant_id, results[0].provenance if results else "none",
                             len(results), (time.monotonic() - start) * 1000)
        return results

    def invalidate_tenant(self, tenant_id: str) -> None:
        """Forget cached results and indexes of one tenant (after re-embedding)."""
        self.results_cache.invalidate(lambda key: key[0] == tenant_id)
        self.index_cache.invalidate(lambda key: key[0] == tenant_id)

    def _vector_search(self, query: str, tenant_id: str, k: int) -> List[Tuple[KnowledgeItem, SimilarityResult]]:
        items = [
            item for item in self.repository.items_with_embeddings(tenant_id)
            if len(item.embedding) == self.dimension
        ]
        if not items:
            return []

        embedding = self.embedding_service.embed(query)

        # Hash and model vectors live in different spaces; only compare like with like.
        if embedding.mode == EMBEDDING_MODE_HASH:
            items = [item for item in items if item.embedding_mode == EMBEDDING_MODE_HASH]
        else:
            items = [item for item in items if item.embedding_mode != EMBEDDING_MODE_HASH]
        if not items:
            logger.log_fallback("retrieval", embedding.mode, PROVENANCE_KEYWORD,
                                f"no stored vectors in {embedding.mode} mode")
            return []

        if self.strategy == RetrievalStrategy.NATIVE_VECTOR:
            try:
                store = self._tenant_index(tenant_id, items, PROVENANCE_NATIVE_VECTOR)
                return self._query_store(store, embedding, k, PROVENANCE_NATIVE_VECTOR)
            except Exception as e:
                logger.log_fallback("retrieval", PROVENANCE_NATIVE_VECTOR, PROVENANCE_BRUTE_FORCE, str(e))

        store = self._tenant_index(tenant_id, items, PROVENANCE_BRUTE_FORCE)
        return self._query_store(store, embedding, k, PROVENANCE_BRUTE_FORCE)

    def _tenant_index(self, tenant_id: str, items: List[KnowledgeItem], provenance: str) -> IVectorStore:
        # Keyed on the exact rows indexed, so activation or re-embedding never reuses a stale index.
        fingerprint = tuple((item.id, item.embedding_mode, hash(tuple(item.embedding))) for item in items)
        cache_key = (tenant_id, provenance, fingerprint)
        store = self.index_cache.get(cache_key)
        if store is not None:
            return store

        if provenance == PROVENANCE_NATIVE_VECTOR:
            store = FaissVectorStore(self.dimension)
        else:
            store = SimpleInMemoryVectorStore()

        store.batch_add([
            VectorRecord(id=item.id, vector=item.embedding, metadata={"item": item})
            for item in items
        ])
        self.index_cache.set(cache_key, store)
        return store

    def _query_store(self, store: IVectorStore, embedding, k: int,
                     provenance: str) -> List[Tuple[KnowledgeItem, SimilarityResult]]:
        hits = []
        for match in store.search(embedding.vector, k):
            if match.score <= 0.0:
                continue  # orthogonal or opposite: not a match
            item = match.metadata["item"]
            degraded = embedding.mode == EMBEDDING_MODE_HASH or item.embedding_mode == EMBEDDING_MODE_HASH
            hits.append((item, SimilarityResult(
                item_id=item.id,
                score=min(1.0, match.score),
                provenance=provenance,
                name=item.name,
                embedding_mode=EMBEDDING_MODE_HASH if degraded else EMBEDDING_MODE_MODEL
            )))
        return hits

    def _keyword_search(self, query: str, tenant_id: str, k: int) -> List[Tuple[KnowledgeItem, SimilarityResult]]:
        return [
            (item, SimilarityResult(
                item_id=item.id,
                score=self.keyword_score,
                provenance=PROVENANCE_KEYWORD,
                name=item.name
            ))
            for item in self.repository.keyword_search(tenant_id, query, limit=k)
        ]
