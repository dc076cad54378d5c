"""
Shipping rate collaborators: getShippingForProduct(tenant, product, location).
"""

from abc import ABC, abstractmethod
from typing import List, Optional

import requests

from ..core.dao import require_tenant
from ..core.db import get_db
from ..core.errors import TransientToolError
from ..core.schema import ShippingQuote


def _norm_place(value: str) -> str:
    return " ".join((value or "").split()).casefold()


class ShippingRateProvider(ABC):
    """External rate source."""

    @abstractmethod
    def get_shipping_for_product(self, tenant_id: str, product_id: Optional[str] = None,
                                 location: Optional[str] = None) -> List[ShippingQuote]:
        """Return the shipping quotes that apply; empty when none do."""
        pass


class ShippingZoneRateProvider(ShippingRateProvider):
    """Rates from the tenant's configured shipping zones table."""

    def __init__(self, db_path: str = None):
        self.db_path = db_path

    def get_shipping_for_product(self, tenant_id: str, product_id: Optional[str] = None,
                                 location: Optional[str] = None) -> List[ShippingQuote]:
        tenant_id = require_tenant(tenant_id)
        with get_db(self.db_path) as conn:
            rows = conn.execute(
                "SELECT * FROM shipping_zones WHERE tenant_id = ? AND active = 1 ORDER BY price, id",
                (tenant_id,)
            ).fetchall()

        wanted = _norm_place(location) if location else None
        quotes = []
        for row in rows:
            places = [_norm_place(p) for p in (row["locations"] or "").split(",") if p.strip()]
            if wanted and not any(place in wanted or wanted in place for place in places):
                continue
            quotes.append(ShippingQuote(
                tenant_id=tenant_id,
                zone=row["name"],
                price=row["price"],
                delivery_days=row["delivery_days"],
                product_id=product_id,
                metadata={"locations": places}
            ))
        return quotes

    def add_zone(self, tenant_id: str, name: str, locations: List[str], price: float,
                 delivery_days: str = None) -> int:
        tenant_id = require_tenant(tenant_id)
        with get_db(self.db_path) as conn:
            cursor = conn.execute(
                "INSERT INTO shipping_zones (tenant_id, name, locations, price, delivery_days) VALUES (?, ?, ?, ?, ?)",
                (tenant_id, name, ",".join(locations), price, delivery_days)
            )
            conn.commit()
            return cursor.lastrowid


class HttpShippingRateProvider(ShippingRateProvider):
    """
    Rates from an external shipping service.

    Connection failures, timeouts and 5xx answers raise TransientToolError so
    the dispatcher may retry them; 4xx answers are caller errors and raise
    requests.HTTPError.
    """

    def __init__(self, base_url: str, timeout_sec: float = 3.0, session: requests.Session = None):
        self.base_url = base_url.rstrip("/")
        self.timeout_sec = timeout_sec
        self.session = session or requests.Session()

    def get_shipping_for_product(self, tenant_id: str, product_id: Optional[str] = None,
                                 location: Optional[str] = None) -> List[ShippingQuote]:
        tenant_id = require_tenant(tenant_id)
        params = {"tenant_id": tenant_id}
        if product_id:
            params["product_id"] = product_id
        if location:
            params["location"] = location

        try:
            response = self.session.get(f"{self.base_url}/shipping/rates", params=params, timeout=self.timeout_sec)
        except (requests.ConnectionError, requests.Timeout) as e:
            raise TransientToolError(f"Shipping service unreachable: {e}") from e

        if response.status_code >= 500:
            raise TransientToolError(f"Shipping service error {response.status_code}")
        response.raise_for_status()

        payload = response.json()
        rates = payload.get("rates", []) if isinstance(payload, dict) else payload
        return [
            ShippingQuote(
                tenant_id=tenant_id,
                zone=rate.get("zone", location or "default"),
                price=float(rate["price"]),
                delivery_days=rate.get("delivery_days"),
                product_id=product_id
            )
            for rate in rates
            if rate.get("price") is not None
        ]
