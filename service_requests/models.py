from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.db import models
from django.urls import reverse

from .exceptions import InvalidStatusTransition
from .request_types import STATUS_ORDER, RequestStatus, RequestType

# =============================================================================
# === RESTAURANTS & TABLES ====================================================
# =============================================================================

class Restaurant(models.Model):
    name = models.CharField(max_length=100)
    slug = models.SlugField(max_length=120, unique=True)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="owned_restaurants",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class Table(models.Model):
    restaurant = models.ForeignKey(Restaurant, on_delete=models.CASCADE, related_name="tables")
    label = models.CharField(max_length=20)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = ("restaurant", "label")
        ordering = ["restaurant", "label"]

    def __str__(self):
        return f"{self.restaurant.name} - Table {self.label}"

    def get_absolute_url(self):
        return reverse(
            "service_requests:table-page",
            kwargs={"restaurant_slug": self.restaurant.slug, "table_label": self.label},
        )

    def save(self, *args, **kwargs):
        self.label = str(self.label).strip()
        if self.pk:
            # a table belongs to one restaurant for its whole life
            original = Table.objects.filter(pk=self.pk).values_list("restaurant_id", flat=True).first()
            if original is not None and original != self.restaurant_id:
                raise ValueError("A table cannot be moved to another restaurant.")
        super().save(*args, **kwargs)


# =============================================================================
# === STAFF ACCOUNTS ==========================================================
# =============================================================================

class CustomUser(AbstractUser):
    class Roles(models.TextChoices):
        MANAGER = "MANAGER", "Manager"
        STAFF = "STAFF", "Staff"

    role = models.CharField(max_length=20, choices=Roles.choices, default=Roles.STAFF)
    restaurant = models.ForeignKey(
        Restaurant,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="staff",
    )

    @property
    def is_manager(self) -> bool:
        return self.role == self.Roles.MANAGER

    def save(self, *args, **kwargs):
        if not self.is_superuser:
            self.is_staff = self.role == self.Roles.MANAGER
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.username} ({self.role})"


# =============================================================================
# === SERVICE REQUESTS ========================================================
# =============================================================================

class ServiceRequestQuerySet(models.QuerySet):
    def for_restaurant(self, restaurant):
        return self.filter(table__restaurant=restaurant)

    def active(self):
        return self.exclude(status=RequestStatus.COMPLETED)


class ServiceRequest(models.Model):
    table = models.ForeignKey(Table, on_delete=models.CASCADE, related_name="requests")
    type = models.CharField(max_length=30, choices=RequestType.choices)
    status = models.CharField(max_length=20, choices=RequestStatus.choices, default=RequestStatus.PENDING)
    photo_url = models.URLField(max_length=500, blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ServiceRequestQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["table", "type", "-created_at"], name="svc_req_table_type_idx"),
        ]

    def __str__(self):
        return f"{self.get_type_display()} @ {self.table} ({self.status})"

    @property
    def is_active(self) -> bool:
        return self.status != RequestStatus.COMPLETED

    def advance_to(self, new_status) -> bool:
        """
        Move the status forward. Re-applying the current status is a no-op and
        returns False; moving backwards raises ``InvalidStatusTransition``.
        """
        if new_status not in STATUS_ORDER:
            raise InvalidStatusTransition(f"Unknown status: {new_status}")
        if STATUS_ORDER[new_status] < STATUS_ORDER[self.status]:
            raise InvalidStatusTransition(
                f"Cannot move a request from {self.get_status_display()} back to "
                f"{RequestStatus(new_status).label}."
            )
        if new_status == self.status:
            return False
        self.status = new_status
        return True
