# storefront/repositories/order_repo.py
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from sqlalchemy import delete, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from storefront.core.errors import ConcurrencyConflictError, PersistenceError
from storefront.models.order import OrderDocument
from storefront.schemas.order import parse_timestamp

logger = logging.getLogger(__name__)


@dataclass
class StoredDocument:
    """
    An order document as the backends see it.

    version is the value the row will hold after the write. version == 1
    is an insert; anything higher updates a row currently at version - 1.
    """

    id: str
    version: int
    data: dict = field(default_factory=dict)


class OrderBackend(ABC):
    """
    Persistence capability for the order collection.

    Implementations must apply each write_documents() call atomically
    from the caller's point of view.
    """

    @abstractmethod
    def load_documents(self) -> list[StoredDocument]:
        pass

    @abstractmethod
    def fetch_document(self, order_id: str) -> StoredDocument | None:
        pass

    @abstractmethod
    def write_documents(
        self,
        upserts: list[StoredDocument],
        deletes: list[str] | None = None,
    ) -> None:
        pass


class SQLOrderBackend(OrderBackend):
    """
    Order documents in the `order_documents` table via SQLModel.

    One Session transaction per call: deletes first, then inserts and
    conditional updates, then commit. Any failure rolls the whole batch back.
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    def load_documents(self) -> list[StoredDocument]:
        try:
            with Session(self.engine) as session:
                rows = session.exec(select(OrderDocument)).all()
                return [self._to_stored(row) for row in rows]
        except SQLAlchemyError as e:
            raise PersistenceError("load", e)

    def fetch_document(self, order_id: str) -> StoredDocument | None:
        try:
            with Session(self.engine) as session:
                row = session.get(OrderDocument, order_id)
                return self._to_stored(row) if row else None
        except SQLAlchemyError as e:
            raise PersistenceError("fetch", e)

    def write_documents(
        self,
        upserts: list[StoredDocument],
        deletes: list[str] | None = None,
    ) -> None:
        try:
            with Session(self.engine) as session:
                conn = session.connection()

                if deletes:
                    conn.execute(
                        delete(OrderDocument).where(OrderDocument.id.in_(deletes))
                    )

                for doc in upserts:
                    if doc.version <= 1:
                        session.add(self._to_row(doc))
                        continue

                    values = self._columns(doc)
                    result = conn.execute(
                        update(OrderDocument)
                        .where(
                            OrderDocument.id == doc.id,
                            OrderDocument.version == doc.version - 1,
                        )
                        .values(version=doc.version, **values)
                    )
                    if result.rowcount == 0:
                        session.rollback()
                        raise ConcurrencyConflictError(doc.id, doc.version - 1)

                session.commit()
                logger.debug(
                    "Wrote %d order documents, deleted %d",
                    len(upserts),
                    len(deletes or []),
                )
        except SQLAlchemyError as e:
            raise PersistenceError("write", e)

    # ---- helpers ----

    @staticmethod
    def _columns(doc: StoredDocument) -> dict:
        data = doc.data
        created_at = parse_timestamp(data["created_at"])
        return {
            "order_number": data.get("order_number", doc.id),
            "status": data.get("status", "pending"),
            "created_at": created_at,
            "data": data,
        }

    def _to_row(self, doc: StoredDocument) -> OrderDocument:
        return OrderDocument(id=doc.id, version=max(doc.version, 1), **self._columns(doc))

    @staticmethod
    def _to_stored(row: OrderDocument) -> StoredDocument:
        return StoredDocument(id=row.id, version=row.version, data=dict(row.data or {}))
