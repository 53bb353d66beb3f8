"""
backend.py

``ServiceBackend`` is the one handle through which views and consumers reach
persistence and file storage. It is built once when the app registry is ready
(see ``ServiceRequestsConfig.ready``) and passed to views and consumers
explicitly instead of being imported as a module global.

Every method is synchronous; async callers wrap it with
``database_sync_to_async``.
"""

import logging
import os
import uuid

from django.db import IntegrityError, transaction
from django.db.models import Count
from django.db.models.functions import ExtractHour
from django.utils import timezone

from .cooldowns import CooldownTracker
from .exceptions import NotFound, PhotoRequired, ServiceError
from .models import CustomUser, Restaurant, ServiceRequest, Table
from .request_types import OPTIONS_BY_TYPE, REQUEST_OPTIONS, RequestStatus
from .serializers import serialize_request, serialize_requests, serialize_tables
from .utils import generate_slug, is_reserved_slug

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("audit")


class ServiceBackend:
    photo_prefix = "request_photos"

    def __init__(self, storage):
        self.storage = storage

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    def get_restaurant_by_slug(self, slug) -> Restaurant:
        restaurant = Restaurant.objects.filter(slug=slug).first()
        if restaurant is None:
            raise NotFound("Restaurant not found")
        return restaurant

    def get_table(self, restaurant, label) -> Table:
        table = Table.objects.filter(restaurant=restaurant, label=str(label).strip()).first()
        if table is None:
            raise NotFound("Table not found")
        return table

    def resolve_table(self, restaurant_slug, table_label):
        restaurant = self.get_restaurant_by_slug(restaurant_slug)
        return restaurant, self.get_table(restaurant, table_label)

    def get_table_by_id(self, table_id) -> Table:
        table = Table.objects.select_related("restaurant").filter(pk=table_id).first()
        if table is None:
            raise NotFound("Table not found")
        return table

    def list_tables(self, restaurant):
        return serialize_tables(Table.objects.filter(restaurant=restaurant).order_by("label"))

    def list_requests(self, restaurant):
        """All requests of the restaurant's tables, newest first."""
        qs = (
            ServiceRequest.objects.for_restaurant(restaurant)
            .select_related("table__restaurant")
            .order_by("-created_at")
        )
        return serialize_requests(qs)

    def fetch_request(self, request_id):
        """The denormalised row for one request, or None if it is gone."""
        obj = ServiceRequest.objects.select_related("table__restaurant").filter(pk=request_id).first()
        return serialize_request(obj) if obj else None

    # ------------------------------------------------------------------
    # Cooldowns
    # ------------------------------------------------------------------
    def latest_request_times(self, table):
        """Newest ``created_at`` per request type for ``table`` (None if never requested)."""
        latest = {}
        for option in REQUEST_OPTIONS:
            latest[option.type] = (
                ServiceRequest.objects.filter(table=table, type=option.type)
                .order_by("-created_at")
                .values_list("created_at", flat=True)
                .first()
            )
        return latest

    def cooldown_tracker(self, table, now=None) -> CooldownTracker:
        return CooldownTracker.from_latest(self.latest_request_times(table), now or timezone.now())

    # ------------------------------------------------------------------
    # Customer writes
    # ------------------------------------------------------------------
    def upload_photo(self, table, photo) -> str:
        ext = os.path.splitext(getattr(photo, "name", "") or "")[1].lower() or ".jpg"
        name = f"{self.photo_prefix}/{table.restaurant_id}/{table.pk}/{uuid.uuid4().hex}{ext}"
        try:
            saved = self.storage.save(name, photo)
            return self.storage.url(saved)
        except Exception as exc:
            logger.error(f"Photo upload failed for table {table.pk}: {exc}", exc_info=True)
            raise ServiceError("Photo upload failed. Please try again.") from exc

    def submit_request(self, table, request_type, photo=None, tracker=None, now=None) -> ServiceRequest:
        """
        Create a request after the local cooldown check. Nothing is uploaded or
        written while the type is still cooling down.
        """
        option = OPTIONS_BY_TYPE.get(request_type)
        if option is None:
            raise ServiceError(f"Unknown request type: {request_type}")

        now = now or timezone.now()
        tracker = tracker or self.cooldown_tracker(table, now)
        tracker.check(request_type, now)

        if option.requires_photo and not photo:
            raise PhotoRequired(f"📸 Please attach a photo for '{option.label}'.")

        photo_url = self.upload_photo(table, photo) if photo and option.requires_photo else None
        try:
            service_request = ServiceRequest.objects.create(table=table, type=request_type, photo_url=photo_url)
        except Exception as exc:
            logger.error(f"Could not save {request_type} for table {table.pk}: {exc}", exc_info=True)
            raise ServiceError("Could not send your request. Please try again.") from exc

        tracker.record(request_type, service_request.created_at)
        logger.info(f"🛎️ {request_type} requested at {table} (request #{service_request.pk})")
        return service_request

    # ------------------------------------------------------------------
    # Staff writes
    # ------------------------------------------------------------------
    def _request_in(self, restaurant, request_id) -> ServiceRequest:
        obj = ServiceRequest.objects.for_restaurant(restaurant).filter(pk=request_id).first()
        if obj is None:
            raise NotFound("Request not found")
        return obj

    def update_status(self, restaurant, request_id, new_status) -> ServiceRequest:
        obj = self._request_in(restaurant, request_id)
        previous = obj.status
        if obj.advance_to(new_status):
            obj.save(update_fields=["status", "updated_at"])
            logger.info(f"🔄 Request #{obj.pk} status changed: {previous} → {obj.status}")
        return obj

    def complete_table_requests(self, restaurant, table_id) -> int:
        """Mark every active request of one table completed."""
        table = Table.objects.filter(restaurant=restaurant, pk=table_id).first()
        if table is None:
            raise NotFound("Table not found")
        completed = 0
        with transaction.atomic():
            for obj in ServiceRequest.objects.filter(table=table).active().select_for_update():
                obj.advance_to(RequestStatus.COMPLETED)
                obj.save(update_fields=["status", "updated_at"])
                completed += 1
        logger.info(f"✅ Completed {completed} request(s) for {table}")
        return completed

    def clear_completed(self, restaurant, user=None) -> int:
        """Delete completed requests, scoped to this restaurant's tables only."""
        table_ids = list(Table.objects.filter(restaurant=restaurant).values_list("pk", flat=True))
        qs = ServiceRequest.objects.filter(status=RequestStatus.COMPLETED, table_id__in=table_ids)
        deleted, _ = qs.delete()
        audit_logger.info(
            f"User {getattr(user, 'username', '-')} cleared {deleted} completed request(s) "
            f"for restaurant {restaurant.pk} on {timezone.now():%Y-%m-%d %H:%M}"
        )
        return deleted

    # ------------------------------------------------------------------
    # Manager writes
    # ------------------------------------------------------------------
    def add_table(self, restaurant, label) -> Table:
        label = str(label or "").strip()
        if not label:
            raise ServiceError("Table label is required.")
        if "/" in label:
            raise ServiceError("Table label cannot contain '/'.")
        try:
            with transaction.atomic():
                return Table.objects.create(restaurant=restaurant, label=label)
        except IntegrityError as exc:
            raise ServiceError(f"Table '{label}' already exists.") from exc

    def delete_table(self, restaurant, table_id, user=None):
        table = Table.objects.filter(restaurant=restaurant, pk=table_id).first()
        if table is None:
            raise NotFound("Table not found")
        label = table.label
        table.delete()
        audit_logger.info(
            f"User {getattr(user, 'username', '-')} deleted table {label} of restaurant {restaurant.pk}"
        )

    def create_restaurant_account(self, user_form, restaurant_name) -> CustomUser:
        """Sign-up: the new user becomes the manager of a new restaurant."""
        slug = generate_slug(restaurant_name)
        if not slug:
            raise ServiceError("Please enter a restaurant name.")
        if is_reserved_slug(slug):
            raise ServiceError(f"Failed to create restaurant: '{slug}' is a reserved name.")
        try:
            with transaction.atomic():
                user = user_form.save(commit=False)
                user.role = CustomUser.Roles.MANAGER
                user.save()
                restaurant = Restaurant.objects.create(name=restaurant_name.strip(), slug=slug, owner=user)
                user.restaurant = restaurant
                user.save(update_fields=["restaurant"])
        except IntegrityError as exc:
            raise ServiceError(
                "Failed to create restaurant: a restaurant with this name already exists."
            ) from exc
        logger.info(f"🏪 Restaurant {restaurant.name} ({restaurant.slug}) created by {user.username}")
        return user

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------
    def request_type_counts(self, restaurant):
        rows = (
            ServiceRequest.objects.for_restaurant(restaurant)
            .values("type")
            .annotate(request_count=Count("id"))
            .order_by("-request_count")
        )
        return [
            {
                "type": row["type"],
                "name": OPTIONS_BY_TYPE[row["type"]].label if row["type"] in OPTIONS_BY_TYPE else row["type"],
                "value": row["request_count"],
            }
            for row in rows
        ]

    def hourly_request_counts(self, restaurant):
        rows = (
            ServiceRequest.objects.for_restaurant(restaurant)
            .annotate(hour=ExtractHour("created_at"))
            .values("hour")
            .annotate(request_count=Count("id"))
            .order_by("hour")
        )
        return [{"hour": f"{row['hour']}:00", "requests": row["request_count"]} for row in rows]
