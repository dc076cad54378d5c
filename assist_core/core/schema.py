"""
Record types shared by the stores, the retrieval engine and pattern analysis.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

OUTCOME_UNKNOWN = "unknown"
OUTCOME_SATISFIED = "satisfied"
OUTCOME_UNSATISFIED = "unsatisfied"
OUTCOME_ESCALATED = "escalated"

OUTCOMES = (OUTCOME_UNKNOWN, OUTCOME_SATISFIED, OUTCOME_UNSATISFIED, OUTCOME_ESCALATED)
LABELED_OUTCOMES = (OUTCOME_SATISFIED, OUTCOME_UNSATISFIED, OUTCOME_ESCALATED)

UNKNOWN_INTENT = "unknown"


@dataclass
class KnowledgeItem:
    id: str
    tenant_id: str
    name: str
    description: str = ""
    embedding: Optional[List[float]] = None
    embedding_mode: Optional[str] = None  # 'model' | 'hash'
    active: bool = True
    price: Optional[float] = None
    sale_price: Optional[float] = None

    @property
    def effective_price(self) -> Optional[float]:
        """Sale price when it is set and below the list price, else list price."""
        if self.sale_price is not None and (self.price is None or self.sale_price < self.price):
            return self.sale_price
        return self.price


@dataclass
class OutcomeRecord:
    id: int
    tenant_id: str
    intent: Optional[str]
    outcome: str
    created_at: datetime
    metadata: Any = None  # raw metadata, may be malformed JSON text
    corrects_id: Optional[int] = None


@dataclass
class WeaknessFinding:
    """Statistically gated signal that an intent fails disproportionately often."""
    intent: str
    total: int
    unsatisfied: int
    rate: float


@dataclass
class ShippingQuote:
    tenant_id: str
    zone: str
    price: float
    delivery_days: Optional[str] = None
    product_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
