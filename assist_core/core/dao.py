"""
Tenant-scoped access to collaborator-owned tables.

Every read takes a tenant id and refuses to run without one, so a query
missing its tenant filter cannot be expressed through this layer.
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .db import get_db
from .errors import TenantIsolationViolation
from .schema import KnowledgeItem, OutcomeRecord, OUTCOMES, OUTCOME_UNKNOWN, LABELED_OUTCOMES
from ..util.logging import logger


def require_tenant(tenant_id: str) -> str:
    if tenant_id is None or not str(tenant_id).strip():
        raise TenantIsolationViolation("tenant_id is required for every corpus query")
    return str(tenant_id).strip()


def _utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def _ts(ts: datetime) -> str:
    return _utc(ts).isoformat()


def _row_to_item(row) -> KnowledgeItem:
    embedding = None
    if row["embedding"]:
        try:
            embedding = json.loads(row["embedding"])
        except (TypeError, ValueError):
            logger.warning(f"Unparseable embedding for item {row['id']} (tenant {row['tenant_id']})")
            embedding = None

    return KnowledgeItem(
        id=row["id"],
        tenant_id=row["tenant_id"],
        name=row["name"],
        description=row["description"] or "",
        embedding=embedding,
        embedding_mode=row["embedding_mode"],
        active=bool(row["active"]),
        price=row["price"],
        sale_price=row["sale_price"]
    )


class KnowledgeRepository:
    """Read access to the tenant knowledge corpus, plus embedding write-back."""

    def __init__(self, db_path: str = None):
        self.db_path = db_path

    def upsert_item(self, item: KnowledgeItem) -> None:
        """Insert or replace a knowledge item (used by seeding and tests)."""
        tenant_id = require_tenant(item.tenant_id)
        with get_db(self.db_path) as conn:
            conn.execute(
                """INSERT OR REPLACE INTO knowledge_items
                   (id, tenant_id, name, description, embedding, embedding_mode, active, price, sale_price, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, CURRENT_TIMESTAMP)""",
                (
                    str(item.id), tenant_id, item.name, item.description or "",
                    json.dumps(list(item.embedding)) if item.embedding is not None else None,
                    item.embedding_mode, item.active, item.price, item.sale_price
                )
            )
            conn.commit()

    def get_item(self, tenant_id: str, item_id: str) -> Optional[KnowledgeItem]:
        tenant_id = require_tenant(tenant_id)
        with get_db(self.db_path) as conn:
            row = conn.execute(
                "SELECT * FROM knowledge_items WHERE tenant_id = ? AND id = ? AND active = 1",
                (tenant_id, str(item_id))
            ).fetchone()
            return _row_to_item(row) if row else None

    def list_active_items(self, tenant_id: str) -> List[KnowledgeItem]:
        tenant_id = require_tenant(tenant_id)
        with get_db(self.db_path) as conn:
            rows = conn.execute(
                "SELECT * FROM knowledge_items WHERE tenant_id = ? AND active = 1 ORDER BY rowid",
                (tenant_id,)
            ).fetchall()
            return [_row_to_item(row) for row in rows]

    def items_with_embeddings(self, tenant_id: str) -> List[KnowledgeItem]:
        """Active items of one tenant that carry an embedding."""
        tenant_id = require_tenant(tenant_id)
        with get_db(self.db_path) as conn:
            rows = conn.execute(
                """SELECT * FROM knowledge_items
                   WHERE tenant_id = ? AND active = 1 AND embedding IS NOT NULL
                   ORDER BY rowid""",
                (tenant_id,)
            ).fetchall()
        return [item for item in (_row_to_item(row) for row in rows) if item.embedding]

    def items_missing_embeddings(self, tenant_id: str) -> List[KnowledgeItem]:
        tenant_id = require_tenant(tenant_id)
        with get_db(self.db_path) as conn:
            rows = conn.execute(
                """SELECT * FROM knowledge_items
                   WHERE tenant_id = ? AND active = 1 AND embedding IS NULL
                   ORDER BY rowid""",
                (tenant_id,)
            ).fetchall()
            return [_row_to_item(row) for row in rows]

    def keyword_search(self, tenant_id: str, query: str, limit: int = 5) -> List[KnowledgeItem]:
        """
        Case-insensitive substring match on name and description.

        Name matches rank before description matches; within each group the
        corpus order is preserved.
        """
        needle = " ".join((query or "").split()).casefold()
        if not needle:
            return []

        name_hits = []
        description_hits = []
        for item in self.list_active_items(tenant_id):
            if needle in item.name.casefold():
                name_hits.append(item)
            elif needle in (item.description or "").casefold():
                description_hits.append(item)

        return (name_hits + description_hits)[:limit]

    def set_embedding(self, tenant_id: str, item_id: str, vector: List[float], mode: str) -> bool:
        tenant_id = require_tenant(tenant_id)
        with get_db(self.db_path) as conn:
            cursor = conn.execute(
                """UPDATE knowledge_items
                   SET embedding = ?, embedding_mode = ?, updated_at = CURRENT_TIMESTAMP
                   WHERE tenant_id = ? AND id = ?""",
                (json.dumps([float(v) for v in vector]), mode, tenant_id, str(item_id))
            )
            conn.commit()
            return cursor.rowcount > 0


class OutcomeRepository:
    """
    Append-only interaction outcome log.

    Records start as 'unknown' and are labeled by appending a new record that
    points at the one it supersedes; history is never updated in place.
    """

    def __init__(self, db_path: str = None):
        self.db_path = db_path

    def record_outcome(self, tenant_id: str, intent: Optional[str], outcome: str = OUTCOME_UNKNOWN,
                       metadata: Any = None, created_at: datetime = None,
                       corrects_id: Optional[int] = None) -> int:
        tenant_id = require_tenant(tenant_id)
        if outcome not in OUTCOMES:
            raise ValueError(f"outcome must be one of: {list(OUTCOMES)}")

        if metadata is not None and not isinstance(metadata, str):
            metadata = json.dumps(metadata)

        with get_db(self.db_path) as conn:
            cursor = conn.execute(
                """INSERT INTO interaction_outcomes (tenant_id, intent, outcome, metadata, corrects_id, created_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (tenant_id, intent, outcome, metadata, corrects_id,
                 _ts(created_at or datetime.now(timezone.utc)))
            )
            conn.commit()
            return cursor.lastrowid

    def label_outcome(self, tenant_id: str, record_id: int, outcome: str,
                      created_at: datetime = None) -> int:
        """Label (or relabel) a record by appending a correction."""
        if outcome not in LABELED_OUTCOMES:
            raise ValueError(f"label must be one of: {list(LABELED_OUTCOMES)}")

        original = self.get_outcome(tenant_id, record_id)
        if original is None:
            raise KeyError(f"Outcome {record_id} not found for tenant {tenant_id}")

        return self.record_outcome(
            tenant_id=tenant_id,
            intent=original.intent,
            outcome=outcome,
            metadata=original.metadata,
            created_at=created_at or original.created_at,
            corrects_id=original.id
        )

    def get_outcome(self, tenant_id: str, record_id: int) -> Optional[OutcomeRecord]:
        tenant_id = require_tenant(tenant_id)
        with get_db(self.db_path) as conn:
            row = conn.execute(
                "SELECT * FROM interaction_outcomes WHERE tenant_id = ? AND id = ?",
                (tenant_id, record_id)
            ).fetchone()
            return self._row_to_record(row) if row else None

    def fetch_outcomes(self, tenant_id: str, since: datetime, until: datetime) -> List[OutcomeRecord]:
        """Outcomes of one tenant created in [since, until)."""
        tenant_id = require_tenant(tenant_id)
        with get_db(self.db_path) as conn:
            rows = conn.execute(
                """SELECT * FROM interaction_outcomes
                   WHERE tenant_id = ? AND created_at >= ? AND created_at < ?
                   ORDER BY id""",
                (tenant_id, _ts(since), _ts(until))
            ).fetchall()
            return [self._row_to_record(row) for row in rows]

    def tenants_with_outcomes(self, since: datetime, until: datetime) -> List[str]:
        with get_db(self.db_path) as conn:
            rows = conn.execute(
                """SELECT DISTINCT tenant_id FROM interaction_outcomes
                   WHERE created_at >= ? AND created_at < ?
                   ORDER BY tenant_id""",
                (_ts(since), _ts(until))
            ).fetchall()
            return [row[0] for row in rows]

    @staticmethod
    def _row_to_record(row) -> OutcomeRecord:
        return OutcomeRecord(
            id=row["id"],
            tenant_id=row["tenant_id"],
            intent=row["intent"],
            outcome=row["outcome"],
            created_at=datetime.fromisoformat(row["created_at"]),
            metadata=row["metadata"],
            corrects_id=row["corrects_id"]
        )


class AlertSink:
    """Notification sink backed by the alerts table."""

    def __init__(self, db_path: str = None):
        self.db_path = db_path

    def create_alert(self, tenant_id: str, title: str, message: str,
                     metadata: Dict[str, Any] = None) -> int:
        tenant_id = require_tenant(tenant_id)
        with get_db(self.db_path) as conn:
            cursor = conn.execute(
                "INSERT INTO alerts (tenant_id, title, message, metadata) VALUES (?, ?, ?, ?)",
                (tenant_id, title, message, json.dumps(metadata or {}))
            )
            conn.commit()
            return cursor.lastrowid

    def list_alerts(self, tenant_id: str) -> List[Dict[str, Any]]:
        tenant_id = require_tenant(tenant_id)
        with get_db(self.db_path) as conn:
            rows = conn.execute(
                "SELECT * FROM alerts WHERE tenant_id = ? ORDER BY id",
                (tenant_id,)
            ).fetchall()
            return [
                {
                    "id": row["id"],
                    "tenant_id": row["tenant_id"],
                    "title": row["title"],
                    "message": row["message"],
                    "metadata": json.loads(row["metadata"] or "{}"),
                    "created_at": row["created_at"]
                }
                for row in rows
            ]
