from __future__ import annotations

from typing import Any, Callable, List, Mapping, Optional, Protocol, Sequence

from ..core.enums import Collection

Merge = Callable[[Sequence[Any], List[Any]], Sequence[Any]]


class LocalCache(Protocol):
    """Durable, queryable mirror of remote collections plus local log entries.

    Records are the domain dataclasses (Identity, ScheduleEntry,
    AttendanceLogEntry). Implementations raise StorageError on I/O or
    corruption and leave their contents in the last known-good state.
    """

    def put(self, collection: Collection, record: Any) -> Any:
        """Insert or replace one record by key. Returns the stored record."""

        raise NotImplementedError

    def get_by_key(self, collection: Collection, key: Any) -> Optional[Any]:
        raise NotImplementedError

    def query_by_index(
        self,
        collection: Collection,
        field: str,
        value: Any,
        *,
        case_insensitive: bool = False,
    ) -> List[Any]:
        raise NotImplementedError

    def query_where(self, collection: Collection, **equals: Any) -> List[Any]:
        """All records whose fields equal every given value."""

        raise NotImplementedError

    def count_where(self, collection: Collection, **equals: Any) -> int:
        raise NotImplementedError

    def all(self, collection: Collection) -> List[Any]:
        raise NotImplementedError

    def replace_all(
        self,
        records_by_collection: Mapping[Collection, Sequence[Any]],
        *,
        merge: Optional[Mapping[Collection, Merge]] = None,
    ) -> None:
        """Clear and refill every given collection as one atomic unit.

        `merge[collection](incoming, current)` runs inside the same unit and
        its result is what gets stored.
        """

        raise NotImplementedError

    def delete_where(self, collection: Collection, predicate: Callable[[Any], bool]) -> int:
        raise NotImplementedError

    def update_many(self, collection: Collection, keys: Sequence[Any], **changes: Any) -> int:
        raise NotImplementedError
