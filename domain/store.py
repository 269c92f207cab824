"""Document store with live queries.

Collections of keyed JSON documents. Supports point read/write, merge write,
equality queries and subscribe-to-query. A subscriber gets the current result
straight away and then a fresh result every time a write changes it.

There are no transactions. Writers race and the last write to a field wins.
"""

import asyncio
import copy
from datetime import datetime, timedelta, timezone
import inspect
import json
import logging
from typing import Any, Awaitable, Callable, TypeAlias
import uuid

from databases import Database

from domain.models import Document


logger = logging.getLogger(__name__)


Where: TypeAlias = dict[str, Any]
Listener: TypeAlias = Callable[[list["DocumentSnapshot"]], Awaitable[None] | None]
Unsubscribe: TypeAlias = Callable[[], None]


class ServerTimestamp:
    """Placeholder replaced by the store's clock when the document is written."""

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = ServerTimestamp()


class DocumentNotFound(Exception):
    pass


class DocumentSnapshot:
    def __init__(self, id: str, data: Document) -> None:
        self.id = id
        self.data = data

    def __repr__(self) -> str:
        return f"<DocumentSnapshot(id={self.id})>"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def matches(data: Document, where: Where | None) -> bool:
    if not where:
        return True
    return all(data.get(field) == value for field, value in where.items())


class _Subscription:
    def __init__(self, collection: str, where: Where | None, listener: Listener) -> None:
        self.collection = collection
        self.where = where
        self.listener = listener
        self.active = True
        self.fingerprint: str | None = None
        self.issued = 0
        self.delivered = 0

    async def refresh(self, store: "DocumentStore") -> None:
        # Results from a read that started before the last delivered one are stale.
        self.issued += 1
        seq = self.issued
        docs = await store.query(self.collection, self.where)
        if seq < self.delivered or not self.active:
            return
        self.delivered = seq
        await self.deliver(docs)

    async def deliver(self, docs: list[DocumentSnapshot]) -> None:
        fingerprint = json.dumps(
            [[d.id, d.data] for d in docs], sort_keys=True, default=str
        )
        if fingerprint == self.fingerprint:
            return
        self.fingerprint = fingerprint
        try:
            res = self.listener(docs)
            if inspect.isawaitable(res):
                await res
        except Exception:
            logger.exception("Listener failed on %s snapshot.", self.collection)


class DocumentStore:
    """Base store. Backends provide `_read`, `_write` and `_scan`."""

    def __init__(self) -> None:
        self._subscriptions: dict[str, list[_Subscription]] = {}
        self._last_timestamp = datetime.min.replace(tzinfo=timezone.utc)
        # Held across read-merge-write so field updates on one document do not
        # undo each other.
        self._write_lock = asyncio.Lock()

    async def connect(self) -> None:
        pass

    async def disconnect(self) -> None:
        pass

    def _timestamp(self) -> str:
        # Strictly increasing, so newest-first ordering is stable.
        now = max(utcnow(), self._last_timestamp + timedelta(microseconds=1))
        self._last_timestamp = now
        return now.isoformat(timespec="microseconds")

    def _resolve_timestamps(self, data: Document) -> Document:
        return {
            k: self._timestamp() if v is SERVER_TIMESTAMP else v
            for k, v in data.items()
        }

    async def _read(self, collection: str, id: str) -> Document | None:
        raise NotImplementedError

    async def _write(self, collection: str, id: str, data: Document) -> None:
        raise NotImplementedError

    async def _scan(self, collection: str) -> list[DocumentSnapshot]:
        raise NotImplementedError

    async def get(self, collection: str, id: str) -> Document | None:
        return await self._read(collection, id)

    async def set(
        self,
        collection: str,
        id: str,
        data: Document,
        *,
        merge: bool = False,
    ) -> None:
        data = self._resolve_timestamps(data)
        async with self._write_lock:
            if merge:
                existing = await self._read(collection, id) or {}
                data = {**existing, **data}
            await self._write(collection, id, data)
        await self._broadcast(collection)

    async def add(self, collection: str, data: Document) -> str:
        id = uuid.uuid4().hex
        async with self._write_lock:
            await self._write(collection, id, self._resolve_timestamps(data))
        await self._broadcast(collection)
        return id

    async def update(self, collection: str, id: str, fields: Document) -> None:
        async with self._write_lock:
            existing = await self._read(collection, id)
            if existing is None:
                raise DocumentNotFound(f"{collection}/{id}")
            await self._write(collection, id, {**existing, **self._resolve_timestamps(fields)})
        await self._broadcast(collection)

    async def query(
        self,
        collection: str,
        where: Where | None = None,
    ) -> list[DocumentSnapshot]:
        docs = await self._scan(collection)
        return [d for d in docs if matches(d.data, where)]

    async def subscribe(
        self,
        collection: str,
        where: Where | None,
        listener: Listener,
    ) -> Unsubscribe:
        sub = _Subscription(collection, where, listener)
        self._subscriptions.setdefault(collection, []).append(sub)
        await sub.refresh(self)

        def unsubscribe() -> None:
            sub.active = False
            subs = self._subscriptions.get(collection, [])
            if sub in subs:
                subs.remove(sub)

        return unsubscribe

    async def _broadcast(self, collection: str) -> None:
        for sub in list(self._subscriptions.get(collection, [])):
            if sub.active:
                await sub.refresh(self)


class MemoryDocumentStore(DocumentStore):
    def __init__(self) -> None:
        super().__init__()
        self._collections: dict[str, dict[str, Document]] = {}

    async def _read(self, collection: str, id: str) -> Document | None:
        data = self._collections.get(collection, {}).get(id)
        return copy.deepcopy(data) if data is not None else None

    async def _write(self, collection: str, id: str, data: Document) -> None:
        self._collections.setdefault(collection, {})[id] = copy.deepcopy(data)

    async def _scan(self, collection: str) -> list[DocumentSnapshot]:
        return [
            DocumentSnapshot(id, copy.deepcopy(data))
            for id, data in self._collections.get(collection, {}).items()
        ]


CREATE_DOCUMENTS_TABLE = """
CREATE TABLE IF NOT EXISTS Documents (
    collection VARCHAR(64),
    id VARCHAR(64),
    data TEXT,
    PRIMARY KEY (collection, id)
)
"""


UPSERT_DOCUMENT = """
INSERT INTO Documents(collection, id, data) VALUES (:collection, :id, :data)
ON CONFLICT(collection, id) DO UPDATE SET data = excluded.data
"""


GET_DOCUMENT = "SELECT data FROM Documents WHERE collection = :collection AND id = :id"


LIST_DOCUMENTS = "SELECT id, data FROM Documents WHERE collection = :collection"


class DatabaseDocumentStore(DocumentStore):
    """Documents kept as JSON text in a single SQL table.

    Live queries are fanned out in-process, so every writer has to go through
    the same store instance.
    """

    def __init__(self, db: Database | str) -> None:
        super().__init__()
        self.db = Database(db) if isinstance(db, str) else db

    async def connect(self) -> None:
        await self.db.connect()
        await self.db.execute(  # pyright: ignore[reportUnknownMemberType]
            query=CREATE_DOCUMENTS_TABLE
        )

    async def disconnect(self) -> None:
        await self.db.disconnect()

    async def _read(self, collection: str, id: str) -> Document | None:
        row = await self.db.fetch_one(  # pyright: ignore[reportUnknownMemberType]
            GET_DOCUMENT, values={"collection": collection, "id": id}
        )
        if row is None:
            return None
        return json.loads(row["data"])

    async def _write(self, collection: str, id: str, data: Document) -> None:
        await self.db.execute(  # pyright: ignore[reportUnknownMemberType]
            UPSERT_DOCUMENT,
            values={"collection": collection, "id": id, "data": json.dumps(data)},
        )

    async def _scan(self, collection: str) -> list[DocumentSnapshot]:
        rows = await self.db.fetch_all(  # pyright: ignore[reportUnknownMemberType]
            LIST_DOCUMENTS, values={"collection": collection}
        )
        return [DocumentSnapshot(r["id"], json.loads(r["data"])) for r in rows]
