"""
service_requests/routing.py
=====================================================================================
WebSocket route map for Django Channels. Both consumers receive the app's
ServiceBackend through ``as_asgi`` init kwargs.
=====================================================================================
"""

from django.urls import re_path

from . import consumers
from .apps import get_backend

backend = get_backend()

websocket_urlpatterns = [
    # -------------------------------------------------------------------------
    # Staff dashboard: live request list, heatmap and counts for one restaurant
    # -------------------------------------------------------------------------
    re_path(r"^ws/staff/requests/$", consumers.StaffRequestsConsumer.as_asgi(backend=backend)),

    # -------------------------------------------------------------------------
    # Customer table page: cooldown countdown for one table
    # Example connection: ws://host/ws/tables/3/cooldowns/
    # -------------------------------------------------------------------------
    re_path(
        r"^ws/tables/(?P<table_id>\d+)/cooldowns/$",
        consumers.TableCooldownConsumer.as_asgi(backend=backend),
    ),
]
