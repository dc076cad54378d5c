"""
Test cases for tenant-scoped knowledge search and its fallback tiers.
"""

from unittest.mock import MagicMock, patch

import pytest

from assist_core.core.errors import ProviderUnavailable, TenantIsolationViolation
from assist_core.core.schema import KnowledgeItem
from assist_core.vector.embeddings import EmbeddingService
from assist_core.vector.index import SimpleInMemoryVectorStore
from assist_core.vector.knowledge_search import KnowledgeSearchService
from assist_core.vector.strategy import RetrievalStrategy
from assist_core.vector.types import QueryResult

TEST_DIM = 16


def make_service(repository, embedding_service, strategy=RetrievalStrategy.BRUTE_FORCE, **kwargs):
    return KnowledgeSearchService(repository, embedding_service, strategy=strategy, dimension=TEST_DIM, **kwargs)


@pytest.fixture
def shirts(knowledge_repo):
    """Tenant T with two unembedded items, as a fresh catalog would have."""
    knowledge_repo.upsert_item(KnowledgeItem(id="1", tenant_id="T", name="Red Shirt"))
    knowledge_repo.upsert_item(KnowledgeItem(id="2", tenant_id="T", name="Blue Shirt"))
    return knowledge_repo


@pytest.fixture
def embedded_catalog(knowledge_repo, embed_item):
    """Two tenants with embedded items that share a name."""
    for tenant in ("acme", "globex"):
        knowledge_repo.upsert_item(embed_item(KnowledgeItem(id=f"{tenant}-1", tenant_id=tenant, name="Red Shirt")))
        knowledge_repo.upsert_item(embed_item(KnowledgeItem(id=f"{tenant}-2", tenant_id=tenant, name="Leather Belt")))
    return knowledge_repo


class TestKeywordFallback:

    def test_red_shirt_without_vectors(self, shirts, hash_service):
        """No embeddings anywhere: keyword tier answers with the partial-confidence score."""
        results = make_service(shirts, hash_service).search("red shirt", "T", k=5)

        assert [r.item_id for r in results] == ["1"]
        assert results[0].score == 0.5
        assert results[0].provenance == "keyword"

    def test_keyword_only_strategy(self, shirts, hash_service):
        """The keyword-only strategy never touches the embedding service."""
        embedding_service = MagicMock()
        results = make_service(shirts, embedding_service, RetrievalStrategy.KEYWORD_ONLY).search("shirt", "T")

        assert [r.item_id for r in results] == ["1", "2"]
        embedding_service.embed.assert_not_called()

    def test_embedding_failure_falls_to_keyword(self, embedded_catalog):
        """If no embedding can be produced the query is still answered."""
        embedding_service = MagicMock()
        embedding_service.embed.side_effect = ProviderUnavailable("no provider")

        results = make_service(embedded_catalog, embedding_service).search("belt", "acme")

        assert [r.item_id for r in results] == ["acme-2"]
        assert results[0].provenance == "keyword"

    def test_model_outage_with_model_vectors_uses_keyword(self, knowledge_repo, embed_item):
        """A degraded query never ranks hash noise against model-mode rows."""
        for item_id, name in [("1", "Red Shirt"), ("2", "Green Hat"), ("3", "Blue Jeans"), ("4", "Black Belt")]:
            item = embed_item(KnowledgeItem(id=item_id, tenant_id="T", name=name))
            item.embedding_mode = "model"
            knowledge_repo.upsert_item(item)

        provider = MagicMock()
        provider.embed_text.side_effect = ConnectionError("model server down")
        service = EmbeddingService(provider, dimension=TEST_DIM)

        results = make_service(knowledge_repo, service).search("red", "T", k=1)

        assert [(r.item_id, r.name, r.provenance) for r in results] == [("1", "Red Shirt", "keyword")]
        provider.embed_text.assert_called_once()

    def test_non_positive_vector_scores_are_not_matches(self, embedded_catalog, hash_service):
        """Orthogonal or opposite vectors hand over to the keyword tier."""
        noise = [
            QueryResult(id="acme-1", score=-0.2, metadata={"item": KnowledgeItem(id="acme-1", tenant_id="acme", name="Red Shirt")}),
            QueryResult(id="acme-2", score=0.0, metadata={"item": KnowledgeItem(id="acme-2", tenant_id="acme", name="Leather Belt")}),
        ]
        with patch.object(SimpleInMemoryVectorStore, "search", return_value=noise):
            results = make_service(embedded_catalog, hash_service).search("belt", "acme")

        assert [r.item_id for r in results] == ["acme-2"]
        assert results[0].provenance == "keyword"

    def test_wrong_dimension_embeddings_ignored(self, knowledge_repo, hash_service, embed_item):
        """Stored vectors of another dimension are never compared."""
        knowledge_repo.upsert_item(embed_item(KnowledgeItem(id="x", tenant_id="T", name="Red Shirt"), dimension=4))

        results = make_service(knowledge_repo, hash_service).search("red shirt", "T")

        assert results[0].provenance == "keyword"

    def test_exhaustion_returns_empty(self, shirts, hash_service):
        assert make_service(shirts, hash_service).search("sofa", "T") == []

    def test_custom_keyword_score(self, shirts, hash_service):
        results = make_service(shirts, hash_service, keyword_score=0.4).search("red", "T")
        assert results[0].score == 0.4


class TestVectorTiers:

    def test_brute_force_ranks_exact_match_first(self, embedded_catalog, hash_service):
        results = make_service(embedded_catalog, hash_service).search("Red Shirt", "acme", k=2)

        assert results[0].item_id == "acme-1"
        assert results[0].provenance == "brute-force"
        assert results[0].score == pytest.approx(1.0, abs=1e-6)
        assert all(0.0 <= r.score <= 1.0 for r in results)

    def test_hash_mode_results_flagged_degraded(self, embedded_catalog, hash_service):
        results = make_service(embedded_catalog, hash_service).search("red shirt", "acme")

        assert results[0].embedding_mode == "hash"
        assert results[0].degraded
        assert results[0].to_dict()["degraded"] is True

    def test_native_tier(self, embedded_catalog, hash_service):
        pytest.importorskip("faiss")

        results = make_service(embedded_catalog, hash_service, RetrievalStrategy.NATIVE_VECTOR).search("red shirt", "acme")

        assert results[0].item_id == "acme-1"
        assert results[0].provenance == "native-vector"
        assert results[0].score == pytest.approx(1.0, abs=1e-5)

    def test_native_failure_drops_to_brute_force(self, embedded_catalog, hash_service):
        """A broken native backend is invisible to the caller apart from provenance."""
        with patch("assist_core.vector.knowledge_search.FaissVectorStore",
                   side_effect=ProviderUnavailable("faiss missing")):
            results = make_service(embedded_catalog, hash_service, RetrievalStrategy.NATIVE_VECTOR).search(
                "red shirt", "acme"
            )

        assert results[0].item_id == "acme-1"
        assert results[0].provenance == "brute-force"

    def test_index_rebuilt_when_active_rows_change(self, knowledge_repo, hash_service, embed_item):
        """Deactivating one item and adding another never reuses the old index."""
        knowledge_repo.upsert_item(embed_item(KnowledgeItem(id="1", tenant_id="T", name="Red Shirt")))
        knowledge_repo.upsert_item(embed_item(KnowledgeItem(id="2", tenant_id="T", name="Blue Shirt")))
        service = make_service(knowledge_repo, hash_service)
        assert service.search("red shirt", "T")[0].item_id == "1"

        retired = embed_item(KnowledgeItem(id="1", tenant_id="T", name="Red Shirt", active=False))
        knowledge_repo.upsert_item(retired)
        knowledge_repo.upsert_item(embed_item(KnowledgeItem(id="3", tenant_id="T", name="Red Shirt XL")))

        ids = [r.item_id for r in service.search("red shirt xl", "T", k=5)]

        assert "1" not in ids
        assert ids[0] == "3"

    def test_k_limits_results(self, embedded_catalog, hash_service):
        assert len(make_service(embedded_catalog, hash_service).search("shirt", "acme", k=1)) == 1


class TestTenantIsolation:

    @pytest.mark.parametrize("tenant_id", [None, "", "   "])
    def test_tenant_required(self, shirts, hash_service, tenant_id):
        with pytest.raises(TenantIsolationViolation):
            make_service(shirts, hash_service).search("shirt", tenant_id)

    @pytest.mark.parametrize("strategy", [RetrievalStrategy.BRUTE_FORCE, RetrievalStrategy.KEYWORD_ONLY])
    def test_results_never_cross_tenants(self, embedded_catalog, hash_service, strategy):
        results = make_service(embedded_catalog, hash_service, strategy).search("red shirt", "globex", k=10)

        assert results
        assert all(r.item_id.startswith("globex-") for r in results)

    def test_foreign_row_from_store_raises(self, hash_service):
        """A collaborator returning another tenant's row is a violation, not a result."""
        repository = MagicMock()
        repository.items_with_embeddings.return_value = []
        repository.keyword_search.return_value = [KnowledgeItem(id="9", tenant_id="other", name="Red Shirt")]

        with pytest.raises(TenantIsolationViolation):
            make_service(repository, hash_service).search("red shirt", "T")


class TestSearchEdgeCases:

    def test_empty_query_and_zero_k(self, shirts, hash_service):
        service = make_service(shirts, hash_service)
        assert service.search("   ", "T") == []
        assert service.search("shirt", "T", k=0) == []

    def test_default_k(self, knowledge_repo, hash_service):
        for i in range(8):
            knowledge_repo.upsert_item(KnowledgeItem(id=str(i), tenant_id="T", name=f"Shirt {i}"))

        assert len(make_service(knowledge_repo, hash_service, default_k=3).search("shirt", "T")) == 3

    def test_results_cached_per_tenant_query_and_k(self, shirts, hash_service):
        service = make_service(shirts, hash_service)
        first = service.search("Red  Shirt", "T")

        with patch.object(shirts, "keyword_search", side_effect=AssertionError("store hit")):
            assert service.search("red shirt", "T") == first

    def test_invalidate_tenant_drops_cache(self, shirts, hash_service):
        service = make_service(shirts, hash_service)
        service.search("red shirt", "T")

        service.invalidate_tenant("T")

        with patch.object(shirts, "keyword_search", return_value=[]) as mock_search:
            assert service.search("red shirt", "T") == []
        mock_search.assert_called_once()
