import asyncio
import json
import logging

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer
from django.utils import timezone

from .apps import get_backend
from .dashboard import FILTER_CHOICES, build_snapshot
from .exceptions import NotFound
from .models import Restaurant, Table
from .realtime import ChangeEvent, RequestStateMerger
from .serializers import TableSerializer
from .utils import REQUESTS_GROUP, restaurant_group, table_group

logger = logging.getLogger(__name__)


# ==============================================================================
# Base Helper
# ==============================================================================
class SafeConsumer(AsyncWebsocketConsumer):
    """Base consumer with a safe JSON send and an injected ServiceBackend."""

    backend = None

    def __init__(self, *args, backend=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.backend = backend or get_backend()

    async def safe_send(self, data: dict):
        try:
            await self.send(text_data=json.dumps(data))
        except Exception as exc:
            logger.error(f"{self.__class__.__name__} failed to send data: {exc}")

    @staticmethod
    async def cancel_task(task):
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


# ==============================================================================
# Staff Dashboard Consumer
# ==============================================================================
class StaffRequestsConsumer(SafeConsumer):
    """
    Live request list for one restaurant.

    Channel-layer handlers only enqueue work; ``_drain`` is the single task
    that mutates the merged state and pushes snapshots to the browser.
    """

    async def connect(self):
        user = self.scope.get("user")
        self.restaurant_id = await self._restaurant_for(user)
        if self.restaurant_id is None:
            await self.close(code=4001)
            logger.warning("❌ Staff dashboard connect refused (unauthorized user)")
            return

        self.status_filter = "all"
        self.queue = asyncio.Queue()
        self.groups_joined = [REQUESTS_GROUP, restaurant_group(self.restaurant_id)]
        for group in self.groups_joined:
            await self.channel_layer.group_add(group, self.channel_name)
        await self.accept()

        tables, baseline = await self._load_baseline()
        self.tables = {t["id"]: t for t in tables}
        self.merger = RequestStateMerger(self.tables.keys(), baseline)
        self.drain_task = asyncio.ensure_future(self._drain())

        logger.info(f"✅ Staff dashboard connected: {user.username} (restaurant {self.restaurant_id})")
        await self.send_snapshot()

    async def disconnect(self, code):
        for group in getattr(self, "groups_joined", []):
            await self.channel_layer.group_discard(group, self.channel_name)
        await self.cancel_task(getattr(self, "drain_task", None))

    async def receive(self, text_data=None, bytes_data=None):
        """The browser may only change its status filter."""
        try:
            data = json.loads(text_data or "{}")
        except ValueError:
            await self.safe_send({"type": "error", "message": "Invalid JSON payload"})
            return
        status = data.get("filter")
        if status not in FILTER_CHOICES:
            await self.safe_send({"type": "error", "message": f"Invalid filter: {status}"})
            return
        await self.queue.put(("filter", status))

    # --------------------------------------------------------------------------
    # Channel-layer handlers (enqueue only)
    # --------------------------------------------------------------------------
    async def request_change(self, event):
        await self.queue.put(("request", ChangeEvent.from_message(event["data"])))

    async def table_change(self, event):
        await self.queue.put(("table", event["data"]))

    # --------------------------------------------------------------------------
    # Drain loop: the only writer of self.merger
    # --------------------------------------------------------------------------
    async def _drain(self):
        while True:
            kind, payload = await self.queue.get()
            try:
                if await self._handle(kind, payload):
                    await self.send_snapshot()
            except Exception as exc:
                logger.error(f"Staff dashboard update failed ({kind}): {exc}", exc_info=True)
                await self.safe_send({"type": "error", "message": "Live update failed; please reload."})
            finally:
                self.queue.task_done()

    async def _handle(self, kind, payload) -> bool:
        if kind == "filter":
            self.status_filter = payload
            return True
        if kind == "table":
            return await self._apply_table_change(payload)
        if not self.merger.accepts(payload):
            return False
        record = await self._fetch(payload.record_id) if payload.needs_fetch else None
        return self.merger.apply(payload, record)

    async def _apply_table_change(self, data) -> bool:
        table_id = data["table_id"]
        if data["action"] == "removed":
            self.tables.pop(table_id, None)
            self.merger.untrack_table(table_id)
            return True
        table = await self._fetch_table(table_id)
        if table is None or table["restaurant_id"] != self.restaurant_id:
            return False
        self.tables[table_id] = table
        self.merger.track_table(table_id)
        return True

    async def send_snapshot(self):
        snapshot = build_snapshot(self.tables.values(), self.merger.requests, self.status_filter, timezone.now())
        await self.safe_send({"type": "snapshot", **snapshot})

    # --------------------------------------------------------------------------
    # Backend access
    # --------------------------------------------------------------------------
    @database_sync_to_async
    def _restaurant_for(self, user):
        if not user or user.is_anonymous:
            return None
        return user.restaurant_id

    @database_sync_to_async
    def _load_baseline(self):
        restaurant = Restaurant.objects.get(pk=self.restaurant_id)
        return self.backend.list_tables(restaurant), self.backend.list_requests(restaurant)

    @database_sync_to_async
    def _fetch(self, request_id):
        return self.backend.fetch_request(request_id)

    @database_sync_to_async
    def _fetch_table(self, table_id):
        table = Table.objects.filter(pk=table_id).first()
        return dict(TableSerializer(table).data) if table else None


# ==============================================================================
# Customer Table Cooldown Consumer
# ==============================================================================
class TableCooldownConsumer(SafeConsumer):
    """Pushes the table's cooldown map once a second while anything is blocked."""

    tick_seconds = 1

    async def connect(self):
        self.table_id = int(self.scope["url_route"]["kwargs"]["table_id"])
        self.tracker = await self._load_tracker()
        if self.tracker is None:
            await self.close(code=4004)
            return

        self.group_name = table_group(self.table_id)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()
        self.ticker = None
        await self.push_cooldowns()

    async def disconnect(self, code):
        if hasattr(self, "group_name"):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)
        await self.cancel_task(getattr(self, "ticker", None))

    async def request_change(self, event):
        """Any change on this table: rebuild from the newest request of each type."""
        tracker = await self._load_tracker()
        if tracker is not None:
            self.tracker = tracker
        await self.push_cooldowns()

    async def push_cooldowns(self):
        await self.safe_send({"type": "cooldowns", "cooldowns": self.tracker.as_dict(timezone.now())})
        if self.tracker.has_active and (self.ticker is None or self.ticker.done()):
            self.ticker = asyncio.ensure_future(self._tick())

    async def _tick(self):
        while self.tracker.has_active:
            await asyncio.sleep(self.tick_seconds)
            await self.safe_send({"type": "cooldowns", "cooldowns": self.tracker.as_dict(timezone.now())})

    @database_sync_to_async
    def _load_tracker(self):
        try:
            table = self.backend.get_table_by_id(self.table_id)
        except NotFound:
            return None
        return self.backend.cooldown_tracker(table)
