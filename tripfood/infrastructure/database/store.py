"""Record store contract and the in-memory implementation."""

import copy
from collections import defaultdict
from collections.abc import Iterable, Mapping
from typing import Any, Final, Protocol

from ...logging_config import get_logger

logger: Final = get_logger(__name__)

Record = dict[str, Any]


class RecordStore(Protocol):
    """Asynchronous key-value store of flat records grouped in collections.

    Records are keyed by their ``id`` field. ``query`` looks records up by the
    value of one top-level field. Reads observe every completed write.
    """

    async def get(self, collection: str, record_id: str) -> Record | None: ...

    async def put(self, collection: str, record: Mapping[str, Any]) -> None: ...

    async def put_many(
        self, collection: str, records: Iterable[Mapping[str, Any]]
    ) -> None: ...

    async def delete(self, collection: str, record_id: str) -> bool: ...

    async def delete_many(self, collection: str, record_ids: Iterable[str]) -> int: ...

    async def all(self, collection: str) -> list[Record]: ...

    async def query(self, collection: str, index: str, value: str) -> list[Record]: ...

    async def count(self, collection: str) -> int: ...


class InMemoryRecordStore:
    """Process-local record store. Records are copied in and out."""

    def __init__(self) -> None:
        self._collections: defaultdict[str, dict[str, Record]] = defaultdict(dict)

    async def get(self, collection: str, record_id: str) -> Record | None:
        record = self._collections[collection].get(record_id)
        return copy.deepcopy(record) if record is not None else None

    async def put(self, collection: str, record: Mapping[str, Any]) -> None:
        self._collections[collection][record["id"]] = copy.deepcopy(dict(record))

    async def put_many(
        self, collection: str, records: Iterable[Mapping[str, Any]]
    ) -> None:
        for record in records:
            await self.put(collection, record)

    async def delete(self, collection: str, record_id: str) -> bool:
        return self._collections[collection].pop(record_id, None) is not None

    async def delete_many(self, collection: str, record_ids: Iterable[str]) -> int:
        deleted = 0
        for record_id in record_ids:
            if await self.delete(collection, record_id):
                deleted += 1
        logger.debug("Deleted records", collection=collection, count=deleted)
        return deleted

    async def all(self, collection: str) -> list[Record]:
        return [copy.deepcopy(r) for r in self._collections[collection].values()]

    async def query(self, collection: str, index: str, value: str) -> list[Record]:
        return [
            copy.deepcopy(r)
            for r in self._collections[collection].values()
            if r.get(index) == value
        ]

    async def count(self, collection: str) -> int:
        return len(self._collections[collection])
