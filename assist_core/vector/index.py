"""
Vector store interface and the brute-force cosine similarity backend.
"""

from abc import ABC, abstractmethod
from typing import List

import numpy as np

from .types import VectorRecord, QueryResult


class IVectorStore(ABC):
    """Abstract interface for vector storage operations."""

    @abstractmethod
    def add(self, record: VectorRecord) -> None:
        """Add a single vector record to the store."""
        pass

    @abstractmethod
    def batch_add(self, records: List[VectorRecord]) -> None:
        """Add multiple vector records to the store."""
        pass

    @abstractmethod
    def search(self, query_vector: np.ndarray, top_k: int = 5) -> List[QueryResult]:
        """Search for similar vectors, highest cosine similarity first."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Clear all records from the store."""
        pass

    @abstractmethod
    def __len__(self) -> int:
        pass


class SimpleInMemoryVectorStore(IVectorStore):
    """In-memory store answering queries with an exhaustive cosine scan."""

    def __init__(self):
        self._vectors = {}  # record_id -> VectorRecord
        self._index = {}    # record_id -> normalized_vector

    def add(self, record: VectorRecord) -> None:
        """Add a single vector record to the store."""
        if record.vector is None or len(record.vector) == 0:
            return

        vector = np.asarray(record.vector, dtype=np.float64)
        norm = np.linalg.norm(vector)
        if norm == 0:  # Zero vectors have no direction to compare
            return

        self._vectors[record.id] = record
        self._index[record.id] = vector / norm

    def batch_add(self, records: List[VectorRecord]) -> None:
        """Add multiple vector records to the store."""
        for record in records:
            self.add(record)

    def search(self, query_vector: np.ndarray, top_k: int = 5) -> List[QueryResult]:
        """Search for similar vectors and return ranked results."""
        if not self._index or top_k <= 0:
            return []

        query = np.asarray(query_vector, dtype=np.float64)
        norm = np.linalg.norm(query)
        if norm == 0:
            return []
        query = query / norm

        ids = list(self._index.keys())
        matrix = np.vstack([self._index[record_id] for record_id in ids])
        if matrix.shape[1] != query.shape[0]:
            raise ValueError(f"Query dimension {query.shape[0]} does not match store dimension {matrix.shape[1]}")

        similarities = matrix @ query

        # Stable sort keeps insertion order among equal scores
        order = np.argsort(-similarities, kind="stable")[:top_k]

        return [
            QueryResult(
                id=ids[i],
                score=float(similarities[i]),
                metadata=self._vectors[ids[i]].metadata
            )
            for i in order
        ]

    def clear(self) -> None:
        """Clear all records from the store."""
        self._vectors.clear()
        self._index.clear()

    def __len__(self) -> int:
        return len(self._index)
