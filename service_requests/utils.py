import logging
import re
from io import BytesIO

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.conf import settings

import qrcode

logger = logging.getLogger(__name__)

REQUESTS_GROUP = "service_requests"

RESERVED_SLUGS = {
    "admin", "api", "login", "logout", "signup", "staff", "password-reset",
    "reset", "media", "static", "ws",
}


def table_group(table_id):
    return f"table_{table_id}"


def restaurant_group(restaurant_id):
    return f"restaurant_{restaurant_id}"


# =============================================================================
# Slugs & QR codes
# =============================================================================

def generate_slug(name: str) -> str:
    slug = (name or "").lower()
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"[^\w\-]+", "", slug)
    slug = re.sub(r"\-\-+", "-", slug)
    return slug.strip("-")


def is_reserved_slug(slug: str) -> bool:
    return slug in RESERVED_SLUGS


def table_public_url(table, base_url=None):
    base = (base_url or getattr(settings, "SITE_URL", "http://localhost:8000")).rstrip("/")
    return f"{base}{table.get_absolute_url()}"


def build_qr_png(data: str) -> bytes:
    qr_img = qrcode.make(data)
    buffer = BytesIO()
    qr_img.save(buffer, format="PNG")
    try:
        return buffer.getvalue()
    finally:
        buffer.close()


# =============================================================================
# Channel layer broadcasts
# =============================================================================

def broadcast(group, message_type, data):
    """
    Send ``data`` to a channel-layer group. Failures are logged, never raised:
    a write must not fail because the push channel is down.
    """
    layer = get_channel_layer()
    if not layer:
        logger.warning("No channel layer configured; broadcast skipped.")
        return False
    try:
        async_to_sync(layer.group_send)(group, {"type": message_type, "data": data})
        return True
    except Exception as exc:
        logger.error(f"Broadcast to {group} failed: {exc}", exc_info=True)
        return False


def broadcast_request_change(event):
    """Publish a ``ChangeEvent`` on the global feed and on its table's group."""
    message = event.to_message()
    broadcast(REQUESTS_GROUP, "request.change", message)
    broadcast(table_group(event.table_id), "request.change", message)
    logger.debug(f"Broadcasted request change {message}")


def broadcast_table_change(restaurant_id, table_id, action):
    broadcast(restaurant_group(restaurant_id), "table.change", {"table_id": table_id, "action": action})
