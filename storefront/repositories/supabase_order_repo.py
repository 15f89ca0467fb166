# storefront/repositories/supabase_order_repo.py
import logging

from supabase import Client

from storefront.core.errors import ConcurrencyConflictError, PersistenceError
from storefront.repositories.order_repo import OrderBackend, StoredDocument

logger = logging.getLogger(__name__)


class SupabaseOrderBackend(OrderBackend):
    """
    Order documents in a remote Supabase table.

    Expected table shape:
        id text primary key, order_number text unique, status text,
        created_at timestamptz, version int, data jsonb

    PostgREST has no multi-request transactions, so a batch is checked
    first (versions of every touched row) and then written with a single
    upsert request, which Postgres applies as one statement.
    """

    def __init__(self, client: Client, table: str = "orders"):
        self.client = client
        self.table = table

    def load_documents(self) -> list[StoredDocument]:
        try:
            res = self.client.table(self.table).select("id, version, data").execute()
        except Exception as e:
            raise PersistenceError("load", e)
        return [self._to_stored(row) for row in res.data or []]

    def fetch_document(self, order_id: str) -> StoredDocument | None:
        try:
            res = (
                self.client.table(self.table)
                .select("id, version, data")
                .eq("id", order_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise PersistenceError("fetch", e)
        rows = res.data or []
        return self._to_stored(rows[0]) if rows else None

    def write_documents(
        self,
        upserts: list[StoredDocument],
        deletes: list[str] | None = None,
    ) -> None:
        try:
            if upserts:
                deleted = set(deletes or [])
                current = self._current_versions([d.id for d in upserts])
                for doc in upserts:
                    expected = doc.version - 1
                    found = 0 if doc.id in deleted else current.get(doc.id, 0)
                    if found != expected:
                        raise ConcurrencyConflictError(doc.id, expected)

            if deletes:
                self.client.table(self.table).delete().in_("id", deletes).execute()

            if upserts:
                rows = [self._to_row(doc) for doc in upserts]
                self.client.table(self.table).upsert(rows).execute()
        except ConcurrencyConflictError:
            raise
        except Exception as e:
            raise PersistenceError("write", e)

        logger.debug(
            "Upserted %d order documents to %s, deleted %d",
            len(upserts),
            self.table,
            len(deletes or []),
        )

    # ---- helpers ----

    def _current_versions(self, ids: list[str]) -> dict[str, int]:
        res = (
            self.client.table(self.table)
            .select("id, version")
            .in_("id", ids)
            .execute()
        )
        return {row["id"]: int(row.get("version") or 1) for row in res.data or []}

    @staticmethod
    def _to_row(doc: StoredDocument) -> dict:
        return {
            "id": doc.id,
            "order_number": doc.data.get("order_number", doc.id),
            "status": doc.data.get("status", "pending"),
            "created_at": doc.data.get("created_at"),
            "version": doc.version,
            "data": doc.data,
        }

    @staticmethod
    def _to_stored(row: dict) -> StoredDocument:
        return StoredDocument(
            id=str(row["id"]),
            version=int(row.get("version") or 1),
            data=dict(row.get("data") or {}),
        )
