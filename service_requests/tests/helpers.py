from datetime import timedelta

from django.contrib.auth import get_user_model
from django.utils import timezone

from service_requests.models import Restaurant, ServiceRequest, Table

User = get_user_model()


def make_restaurant(name="Blue Lagoon", slug=None, table_labels=("1", "2", "3")):
    restaurant = Restaurant.objects.create(name=name, slug=slug or name.lower().replace(" ", "-"))
    tables = [Table.objects.create(restaurant=restaurant, label=label) for label in table_labels]
    return restaurant, tables


def make_user(username, restaurant=None, role=User.Roles.STAFF, password="password123"):
    return User.objects.create_user(username=username, password=password, role=role, restaurant=restaurant)


def make_request(table, request_type="table_clean", status="pending", minutes_ago=0):
    obj = ServiceRequest.objects.create(table=table, type=request_type, status=status)
    if minutes_ago:
        created_at = timezone.now() - timedelta(minutes=minutes_ago)
        ServiceRequest.objects.filter(pk=obj.pk).update(created_at=created_at)
        obj.refresh_from_db()
    return obj
