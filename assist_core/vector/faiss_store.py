"""
FAISS-backed native vector similarity backend.
Vectors are L2-normalized and stored in an inner-product index, so the
returned score is cosine similarity (1 - cosine distance).
"""

from typing import List

import numpy as np

from .types import VectorRecord, QueryResult
from .index import IVectorStore
from ..core.errors import ProviderUnavailable


class FaissVectorStore(IVectorStore):
    """FAISS-backed implementation of IVectorStore."""

    def __init__(self, dimension: int = 768):
        """
        Initialize FAISS vector store.

        Args:
            dimension: Dimension of the vectors (default: 768)
        """
        try:
            import faiss
        except ImportError as e:
            raise ProviderUnavailable("FAISS not installed. Please install faiss-cpu package.") from e

        self.faiss = faiss
        self.dimension = dimension
        self.index = faiss.IndexFlatIP(dimension)

        # Vector index -> record, in insertion order
        self.records: List[VectorRecord] = []

    def _prepare(self, record: VectorRecord):
        if record.vector is None or len(record.vector) == 0:
            return None

        if len(record.vector) != self.dimension:
            raise ValueError(f"Vector dimension {len(record.vector)} does not match expected dimension {self.dimension}")

        vector = np.asarray(record.vector, dtype=np.float32)
        norm = np.linalg.norm(vector)
        if norm == 0:  # Handle zero vectors to prevent division by zero
            return None

        return vector / norm

    def add(self, record: VectorRecord) -> None:
        """Add a single vector record to the FAISS store."""
        self.batch_add([record])

    def batch_add(self, records: List[VectorRecord]) -> None:
        """Add multiple vector records to the FAISS store."""
        vectors_to_add = []
        valid_records = []

        for record in records:
            vector = self._prepare(record)
            if vector is None:
                continue
            vectors_to_add.append(vector)
            valid_records.append(record)

        if not vectors_to_add:
            return

        batch_vectors = np.vstack(vectors_to_add).astype(np.float32)
        self.index.add(batch_vectors)
        self.records.extend(valid_records)

    def search(self, query_vector: np.ndarray, top_k: int = 5) -> List[QueryResult]:
        """Search for similar vectors and return ranked results."""
        if not self.index.ntotal or top_k <= 0:
            return []

        query = np.asarray(query_vector, dtype=np.float32)
        norm = np.linalg.norm(query)
        if norm == 0:
            return []

        query_array = (query / norm).reshape(1, -1)
        scores, indices = self.index.search(query_array, min(top_k, self.index.ntotal))

        results = []
        for score, vector_index in zip(scores[0], indices[0]):
            if vector_index < 0:  # FAISS pads missing neighbours with -1
                continue
            record = self.records[vector_index]
            results.append(QueryResult(id=record.id, score=float(score), metadata=record.metadata))

        return results

    def clear(self) -> None:
        """Clear all records from the FAISS store."""
        self.index = self.faiss.IndexFlatIP(self.dimension)
        self.records = []

    def __len__(self) -> int:
        return int(self.index.ntotal)
