"""
Supabase-backed record store.

Snapshots are stored as JSON rows in `kernel_records` keyed by (kind, id),
with the indexed fields copied into columns so queries can filter server-side.
Counters go through the `increment_kernel_counter` RPC, which performs the
bounded increment atomically in Postgres (see sql/kernel_records.sql).

The in-process lock still serializes mutations from this process; the kernel
does not promise cluster-wide consistency.
"""

import logging
from typing import Any, Dict, Iterator, List, Optional

from pydantic import BaseModel
from supabase import Client

from .config import DisclosureVocabulary
from .database import get_supabase_client
from .store import ENTITY_MODELS, RecordStore

logger = logging.getLogger(__name__)

RECORDS_TABLE = "kernel_records"
COUNTERS_TABLE = "kernel_counters"

# Columns mirrored from the snapshot for server-side filtering
MIRRORED_COLUMNS = ("status", "compliance_status", "source_video_id")


class SupabaseRecordStore(RecordStore):
    """RecordStore persisting snapshots to Supabase."""

    def __init__(
        self,
        client: Optional[Client] = None,
        disclosure_vocabulary: Optional[DisclosureVocabulary] = None
    ):
        super().__init__(disclosure_vocabulary)
        self.client = client or get_supabase_client()

    def _row(self, kind: str, snapshot: BaseModel) -> Dict[str, Any]:
        data = snapshot.model_dump(mode="json")
        row = {
            "kind": kind,
            "id": self._entity_id(snapshot),
            "data": data,
        }
        for column in MIRRORED_COLUMNS:
            row[column] = data.get(column)
        for column in ("created_at", "updated_at"):
            if data.get(column):
                row[column] = data[column]
        return row

    def _from_row(self, kind: str, row: Dict[str, Any]) -> BaseModel:
        return ENTITY_MODELS[kind].model_validate(row["data"])

    def _read(self, kind: str, entity_id: str) -> Optional[BaseModel]:
        result = self.client.table(RECORDS_TABLE).select("*").eq(
            "kind", kind
        ).eq(
            "id", entity_id
        ).execute()

        if not result.data:
            return None
        return self._from_row(kind, result.data[0])

    def _write(self, kind: str, snapshot: BaseModel) -> None:
        self.client.table(RECORDS_TABLE).upsert(
            self._row(kind, snapshot),
            on_conflict="kind,id"
        ).execute()

    def _delete(self, kind: str, entity_id: str) -> bool:
        result = self.client.table(RECORDS_TABLE).delete().eq(
            "kind", kind
        ).eq(
            "id", entity_id
        ).execute()
        return bool(result.data)

    def _iter(self, kind: str) -> Iterator[BaseModel]:
        # Insertion order is the row sequence
        result = self.client.table(RECORDS_TABLE).select("*").eq(
            "kind", kind
        ).order("seq").execute()

        rows: List[Dict[str, Any]] = result.data or []
        return (self._from_row(kind, row) for row in rows)

    def _increment(self, key: str, limit: Optional[int]) -> Optional[int]:
        result = self.client.rpc(
            "increment_kernel_counter",
            {"p_key": key, "p_limit": limit}
        ).execute()

        if result.data is None:
            logger.info(f"Counter {key} reached its limit ({limit})")
            return None
        return int(result.data)

    def _read_counter(self, key: str) -> int:
        result = self.client.table(COUNTERS_TABLE).select("value").eq(
            "key", key
        ).execute()

        if not result.data:
            return 0
        return int(result.data[0]["value"])
