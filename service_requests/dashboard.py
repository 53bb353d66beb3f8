import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from django.utils import timezone
from django.utils.dateparse import parse_datetime

from .request_types import ACTIVE_STATUSES, PRIORITY_RANK, RequestStatus, priority_of

FILTER_CHOICES = ("all", RequestStatus.PENDING, RequestStatus.IN_PROGRESS, RequestStatus.COMPLETED)


@dataclass(frozen=True)
class HeatmapCell:
    table_id: int
    label: str
    priority: Optional[str] = None
    active_count: int = 0

    @property
    def has_requests(self) -> bool:
        return self.priority is not None

    def as_dict(self):
        return {
            "table_id": self.table_id,
            "label": self.label,
            "priority": self.priority,
            "active_count": self.active_count,
        }


def is_active(row) -> bool:
    return row["status"] in ACTIVE_STATUSES


def highest_priority_by_table(requests: Iterable[dict]) -> Dict[int, dict]:
    """Max-priority active request per table id. Ties keep the first one seen."""
    best: Dict[int, dict] = {}
    for row in requests:
        if not is_active(row):
            continue
        current = best.get(row["table_id"])
        if current is None or PRIORITY_RANK[priority_of(row["type"])] > PRIORITY_RANK[priority_of(current["type"])]:
            best[row["table_id"]] = row
    return best


def label_sort_key(label: str):
    # "T12" sorts after "T2"; labels without digits go last, alphabetically.
    digits = "".join(re.findall(r"\d+", label))
    return (0, int(digits), label) if digits else (1, 0, label)


def build_heatmap(tables: Iterable[dict], requests: Iterable[dict]) -> List[HeatmapCell]:
    """One cell per table, coloured by its highest-priority active request."""
    requests = list(requests)
    top = highest_priority_by_table(requests)
    counts: Dict[int, int] = {}
    for row in requests:
        if is_active(row):
            counts[row["table_id"]] = counts.get(row["table_id"], 0) + 1

    cells = []
    for table in sorted(tables, key=lambda t: label_sort_key(t["label"])):
        row = top.get(table["id"])
        cells.append(HeatmapCell(
            table_id=table["id"],
            label=table["label"],
            priority=priority_of(row["type"]) if row else None,
            active_count=counts.get(table["id"], 0),
        ))
    return cells


def filter_requests(requests: Iterable[dict], status: str = "all") -> List[dict]:
    if not status or status == "all":
        return list(requests)
    return [row for row in requests if row["status"] == status]


def status_counts(requests: Iterable[dict]) -> Dict[str, int]:
    counts = {status: 0 for status in RequestStatus.values}
    for row in requests:
        counts[row["status"]] = counts.get(row["status"], 0) + 1
    counts["all"] = sum(counts[s] for s in RequestStatus.values)
    return counts


def time_ago(created_at, now=None) -> str:
    if isinstance(created_at, str):
        created_at = parse_datetime(created_at)
    now = now or timezone.now()
    seconds = (now - created_at).total_seconds()
    if seconds < 60:
        return "Just now"
    if seconds < 3600:
        return f"{int(seconds // 60)}m ago"
    return f"{int(seconds // 3600)}h ago"


def build_snapshot(tables, requests, status="all", now=None):
    """Everything the staff dashboard renders, as plain JSON-ready data."""
    requests = list(requests)
    now = now or timezone.now()
    visible = [
        {**row, "priority": priority_of(row["type"]), "time_ago": time_ago(row["created_at"], now)}
        for row in filter_requests(requests, status)
    ]
    return {
        "filter": status or "all",
        "requests": visible,
        "heatmap": [cell.as_dict() for cell in build_heatmap(tables, requests)],
        "counts": status_counts(requests),
    }
