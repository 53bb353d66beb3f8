"""
realtime.py

Typed change events for the request push feed, and the in-memory merge that
keeps a staff dashboard's request list consistent with them.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Optional


class EventType:
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"

    ALL = (INSERT, UPDATE, DELETE)


@dataclass(frozen=True)
class ChangeEvent:
    event_type: str
    record_id: int
    table_id: int

    def __post_init__(self):
        if self.event_type not in EventType.ALL:
            raise ValueError(f"Unknown event type: {self.event_type}")

    @property
    def needs_fetch(self) -> bool:
        return self.event_type != EventType.DELETE

    def to_message(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_message(cls, data: Dict[str, Any]) -> "ChangeEvent":
        return cls(
            event_type=data["event_type"],
            record_id=int(data["record_id"]),
            table_id=int(data["table_id"]),
        )


class RequestStateMerger:
    """
    Local, newest-first list of one restaurant's requests.

    Rows are the serialized request dicts (``id``, ``table_id``, ``status`` and
    the denormalised display fields). Only the owner of the merger mutates it.
    """

    def __init__(self, table_ids: Iterable[int], baseline: Iterable[Dict[str, Any]] = ()):
        self.table_ids = set(table_ids)
        self._rows: List[Dict[str, Any]] = [
            dict(row) for row in baseline if row["table_id"] in self.table_ids
        ]

    @property
    def requests(self) -> List[Dict[str, Any]]:
        return list(self._rows)

    def get(self, record_id) -> Optional[Dict[str, Any]]:
        for row in self._rows:
            if row["id"] == record_id:
                return row
        return None

    def accepts(self, event: ChangeEvent) -> bool:
        return event.table_id in self.table_ids

    def apply(self, event: ChangeEvent, record: Optional[Dict[str, Any]] = None) -> bool:
        """
        Merge one event. ``record`` is the freshly fetched row for INSERT and
        UPDATE; ``None`` means it no longer exists. Returns True if the list changed.
        """
        if not self.accepts(event):
            return False
        if event.event_type == EventType.DELETE or record is None:
            return self.remove(event.record_id)
        if record["table_id"] not in self.table_ids:
            # moved out of scope between the notification and the fetch
            return self.remove(event.record_id)
        self.upsert(record)
        return True

    def upsert(self, record: Dict[str, Any]):
        for index, row in enumerate(self._rows):
            if row["id"] == record["id"]:
                self._rows[index] = dict(record)
                return
        self._rows.insert(0, dict(record))

    def remove(self, record_id) -> bool:
        before = len(self._rows)
        self._rows = [row for row in self._rows if row["id"] != record_id]
        return len(self._rows) != before

    # ------------------------------------------------------------------
    # Table set maintenance
    # ------------------------------------------------------------------
    def track_table(self, table_id):
        self.table_ids.add(table_id)

    def untrack_table(self, table_id):
        self.table_ids.discard(table_id)
        self._rows = [row for row in self._rows if row["table_id"] != table_id]
