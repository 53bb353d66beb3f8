import logging

from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from .models import ServiceRequest, Table
from .realtime import ChangeEvent, EventType
from .utils import broadcast_request_change, broadcast_table_change

# -----------------------------------------------------------------------------
# Logger
# -----------------------------------------------------------------------------
logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Request change feed
# -----------------------------------------------------------------------------
@receiver(post_save, sender=ServiceRequest)
def notify_on_request_save(sender, instance, created, **kwargs):
    event_type = EventType.INSERT if created else EventType.UPDATE
    broadcast_request_change(ChangeEvent(event_type, instance.pk, instance.table_id))


@receiver(post_delete, sender=ServiceRequest)
def notify_on_request_delete(sender, instance, **kwargs):
    broadcast_request_change(ChangeEvent(EventType.DELETE, instance.pk, instance.table_id))


# -----------------------------------------------------------------------------
# Table set changes (dashboards track which tables they filter on)
# -----------------------------------------------------------------------------
@receiver(post_save, sender=Table)
def notify_on_table_created(sender, instance, created, **kwargs):
    if created:
        logger.info(f"🪑 Table {instance.label} added to restaurant {instance.restaurant_id}")
        broadcast_table_change(instance.restaurant_id, instance.pk, "added")


@receiver(post_delete, sender=Table)
def notify_on_table_deleted(sender, instance, **kwargs):
    broadcast_table_change(instance.restaurant_id, instance.pk, "removed")
