"""
Embedding backfill for knowledge items that were stored without a vector.
"""

from dataclasses import dataclass, field
from typing import List

from .embeddings import EmbeddingService
from ..core.dao import KnowledgeRepository
from ..core.errors import ProviderUnavailable
from ..util.logging import logger


@dataclass
class BackfillReport:
    tenant_id: str
    embedded: int = 0
    degraded: int = 0
    failed: List[str] = field(default_factory=list)


class KnowledgeIndexer:
    """Generates and stores embeddings for one tenant's unembedded items."""

    def __init__(self, repository: KnowledgeRepository, embedding_service: EmbeddingService,
                 search_service=None):
        self.repository = repository
        self.embedding_service = embedding_service
        self.search_service = search_service

    @staticmethod
    def item_text(item) -> str:
        return f"{item.name}\n{item.description}".strip()

    def backfill(self, tenant_id: str, include_degraded: bool = True) -> BackfillReport:
        """
        Embed every active item of the tenant that has no embedding.

        Args:
            tenant_id: Tenant whose corpus is backfilled
            include_degraded: Store hash-mode vectors when the model is down;
                they are recorded with their mode so searches can discount them
        """
        report = BackfillReport(tenant_id=tenant_id)

        for item in self.repository.items_missing_embeddings(tenant_id):
            try:
                result = self.embedding_service.embed(self.item_text(item))
            except ProviderUnavailable as e:
                logger.warning(f"Embedding unavailable for item {item.id} (tenant {tenant_id}): {e}")
                report.failed.append(item.id)
                continue

            if result.degraded and not include_degraded:
                continue

            self.repository.set_embedding(tenant_id, item.id, result.vector, result.mode)
            report.embedded += 1
            if result.degraded:
                report.degraded += 1

        if report.embedded and self.search_service is not None:
            self.search_service.invalidate_tenant(tenant_id)

        logger.log_operation("vector.backfill", "success" if not report.failed else "partial", {
            "tenant_id": tenant_id,
            "embedded": report.embedded,
            "degraded": report.degraded,
            "failed": len(report.failed)
        })
        return report
