"""
Built-in read-only tools: price lookup, shipping lookup and knowledge search.
"""

import asyncio
from dataclasses import asdict
from difflib import SequenceMatcher
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from .shipping import ShippingRateProvider
from .tools import Capability, ToolContext
from ..core.dao import KnowledgeRepository
from ..core.schema import KnowledgeItem


def rank_by_name(query: str, items: List[KnowledgeItem], limit: int = 5,
                 min_ratio: float = 0.4) -> List[KnowledgeItem]:
    """Fuzzy name match: substring hits first, then by similarity ratio."""
    needle = " ".join(query.split()).casefold()
    scored = []
    for item in items:
        name = item.name.casefold()
        ratio = SequenceMatcher(None, needle, name).ratio()
        if needle in name or name in needle:
            ratio = max(ratio, 0.9)
        if ratio >= min_ratio:
            scored.append((ratio, item))

    scored.sort(key=lambda pair: pair[0], reverse=True)
    return [item for _, item in scored[:limit]]


class PriceLookupArgs(BaseModel):
    product_id: Optional[str] = Field(None, description="Exact product id")
    product_name: Optional[str] = Field(None, description="Product name as the customer wrote it")

    @model_validator(mode="after")
    def id_or_name_required(self):
        if not (self.product_id or (self.product_name and self.product_name.strip())):
            raise ValueError("product_id or product_name is required")
        return self


class PriceLookupTool(Capability):
    name = "get_product_price"
    description = ("Look up the current price of a product by id or by name. "
                   "Returns up to 5 candidates; the sale price is used when one is active.")
    parameters = PriceLookupArgs
    idempotent = True

    def __init__(self, repository: KnowledgeRepository, max_candidates: int = 5):
        self.repository = repository
        self.max_candidates = max_candidates

    async def execute(self, args: PriceLookupArgs, context: ToolContext) -> Dict[str, Any]:
        if args.product_id:
            item = await asyncio.to_thread(self.repository.get_item, context.tenant_id, args.product_id)
            if item is not None:
                return {"resolved_by": "id", "matches": [self._price_view(item)]}
            if not args.product_name:
                return {"resolved_by": "id", "matches": []}

        items = await asyncio.to_thread(self.repository.list_active_items, context.tenant_id)
        candidates = rank_by_name(args.product_name, items, self.max_candidates)
        return {"resolved_by": "name", "matches": [self._price_view(item) for item in candidates]}

    @staticmethod
    def _price_view(item: KnowledgeItem) -> Dict[str, Any]:
        price = item.effective_price
        return {
            "product_id": item.id,
            "name": item.name,
            "price": price,
            "list_price": item.price,
            "sale_price": item.sale_price,
            "on_sale": price is not None and price == item.sale_price and item.sale_price != item.price
        }


class ShippingLookupArgs(BaseModel):
    product_id: Optional[str] = Field(None, description="Product to ship")
    location: Optional[str] = Field(None, description="Destination city or governorate")

    @model_validator(mode="after")
    def product_or_location_required(self):
        if not (self.product_id or (self.location and self.location.strip())):
            raise ValueError("product_id or location is required")
        return self


class ShippingLookupTool(Capability):
    name = "get_shipping_info"
    description = "Get shipping price and delivery time for a product and/or destination."
    parameters = ShippingLookupArgs
    idempotent = True

    def __init__(self, provider: ShippingRateProvider, repository: KnowledgeRepository):
        self.provider = provider
        self.repository = repository

    async def execute(self, args: ShippingLookupArgs, context: ToolContext) -> Dict[str, Any]:
        if args.product_id:
            item = await asyncio.to_thread(self.repository.get_item, context.tenant_id, args.product_id)
            if item is None:
                return {"found": False, "reason": f"Product {args.product_id} not found", "quotes": []}

        quotes = await asyncio.to_thread(
            self.provider.get_shipping_for_product, context.tenant_id, args.product_id, args.location
        )
        return {
            "found": bool(quotes),
            "quotes": [
                {k: v for k, v in asdict(quote).items() if k not in ("tenant_id", "metadata")}
                for quote in quotes
            ]
        }


class KnowledgeSearchArgs(BaseModel):
    query: str = Field(..., min_length=1, description="What the customer is looking for")
    k: int = Field(5, ge=1, le=20, description="Maximum number of results")


class KnowledgeSearchTool(Capability):
    name = "search_knowledge"
    description = "Search the store's products and knowledge base for items matching the customer's request."
    parameters = KnowledgeSearchArgs
    idempotent = True

    def __init__(self, search_service):
        self.search_service = search_service

    async def execute(self, args: KnowledgeSearchArgs, context: ToolContext) -> List[Dict[str, Any]]:
        results = await asyncio.to_thread(self.search_service.search, args.query, context.tenant_id, args.k)
        return [result.to_dict() for result in results]


def builtin_tools(repository: KnowledgeRepository, shipping_provider: ShippingRateProvider,
                  search_service, max_candidates: int = 5) -> List[Capability]:
    return [
        PriceLookupTool(repository, max_candidates),
        ShippingLookupTool(shipping_provider, repository),
        KnowledgeSearchTool(search_service)
    ]
