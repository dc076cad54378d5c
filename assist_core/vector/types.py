"""
Vector records and search results.
Every similarity result carries the tier that produced it.
"""

from typing import Dict, Optional
import numpy as np
from dataclasses import dataclass, asdict

PROVENANCE_NATIVE_VECTOR = "native-vector"
PROVENANCE_BRUTE_FORCE = "brute-force"
PROVENANCE_KEYWORD = "keyword"

EMBEDDING_MODE_MODEL = "model"
EMBEDDING_MODE_HASH = "hash"


@dataclass
class VectorRecord:
    """Represents a vector record with metadata."""

    id: str
    """Unique identifier for the vector record"""

    vector: Optional[np.ndarray]
    """The vector representation of the content"""

    metadata: Dict[str, object]
    """Additional metadata associated with the vector"""


@dataclass
class QueryResult:
    """Represents a raw search result from a vector store."""

    id: str
    """Identifier for the matching record"""

    score: float
    """Cosine similarity of the match"""

    metadata: Dict[str, object]
    """Metadata associated with the matched record"""


@dataclass
class SimilarityResult:
    """A tenant-scoped knowledge search hit, normalized across tiers."""

    item_id: str
    score: float
    provenance: str
    name: str = ""
    embedding_mode: Optional[str] = None

    @property
    def degraded(self) -> bool:
        """True when either side of the match used hash pseudo-embeddings."""
        return self.embedding_mode == EMBEDDING_MODE_HASH

    def to_dict(self) -> Dict[str, object]:
        data = asdict(self)
        data["degraded"] = self.degraded
        return data
