"""
request_types.py

The fixed catalogue of customer-initiable service requests: labels shown on the
table page, per-type cooldowns, and the priority used by the staff heatmap.
"""

from dataclasses import dataclass
from datetime import timedelta

from django.conf import settings
from django.db import models


class RequestType(models.TextChoices):
    TABLE_CLEAN = "table_clean", "Clean Table"
    TOILET_CLEAN = "toilet_clean", "Toilet Issue"
    READY_TO_ORDER = "ready_to_order", "Ready to Order"
    ADDITIONAL_ORDER = "additional_order", "Order More"
    REPLACE_CUTLERY = "replace_cutlery", "New Cutlery"
    REQUEST_SAUCES = "request_sauces", "Sauces & Condiments"


class RequestStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    IN_PROGRESS = "in_progress", "In Progress"
    COMPLETED = "completed", "Completed"


class Priority(models.TextChoices):
    LOW = "low", "Low"
    MEDIUM = "medium", "Medium"
    HIGH = "high", "High"


PRIORITY_RANK = {
    Priority.LOW: 0,
    Priority.MEDIUM: 1,
    Priority.HIGH: 2,
}

STATUS_ORDER = {
    RequestStatus.PENDING: 0,
    RequestStatus.IN_PROGRESS: 1,
    RequestStatus.COMPLETED: 2,
}

ACTIVE_STATUSES = (RequestStatus.PENDING, RequestStatus.IN_PROGRESS)


@dataclass(frozen=True)
class RequestOption:
    type: str
    icon: str
    label: str
    description: str
    staff_label: str
    cooldown_minutes: int
    priority: str
    requires_photo: bool = False

    @property
    def cooldown(self) -> timedelta:
        return timedelta(minutes=self.cooldown_minutes)


# Order here is the order of the buttons on the customer page.
REQUEST_OPTIONS = (
    RequestOption(RequestType.TABLE_CLEAN, "🧽", "Clean Table", "Need table cleaned & sanitized",
                  "Table Cleaning", 10, Priority.MEDIUM),
    RequestOption(RequestType.TOILET_CLEAN, "🚽", "Toilet Issue", "Report restroom problem",
                  "Restroom Issue", 15, Priority.HIGH, requires_photo=True),
    RequestOption(RequestType.READY_TO_ORDER, "🍽️", "Ready to Order", "Ready to place our order",
                  "Ready to Order", 10, Priority.HIGH),
    RequestOption(RequestType.ADDITIONAL_ORDER, "➕", "Order More", "Want to add more items",
                  "Additional Order", 5, Priority.MEDIUM),
    RequestOption(RequestType.REPLACE_CUTLERY, "🍴", "New Cutlery", "Need fresh utensils",
                  "Cutlery Request", 5, Priority.LOW),
    RequestOption(RequestType.REQUEST_SAUCES, "🥫", "Sauces & Condiments", "Need sauce or seasonings",
                  "Condiments", 3, Priority.LOW),
)

OPTIONS_BY_TYPE = {option.type: option for option in REQUEST_OPTIONS}


def get_option(request_type):
    """Return the catalogue entry for ``request_type`` or raise KeyError."""
    return OPTIONS_BY_TYPE[request_type]


def priority_of(request_type) -> str:
    return OPTIONS_BY_TYPE[request_type].priority


def get_cooldown_durations():
    """
    Cooldown per request type, with ``REQUEST_COOLDOWN_MINUTES`` overrides applied.
    Unknown keys in the setting are ignored.
    """
    overrides = getattr(settings, "REQUEST_COOLDOWN_MINUTES", None) or {}
    durations = {}
    for option in REQUEST_OPTIONS:
        minutes = overrides.get(option.type, option.cooldown_minutes)
        durations[option.type] = timedelta(minutes=int(minutes))
    return durations
