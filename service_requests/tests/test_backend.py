from datetime import timedelta
from unittest import mock

from django.core.files.storage import InMemoryStorage
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase
from django.utils import timezone

from service_requests.backend import ServiceBackend
from service_requests.exceptions import (
    CooldownActive,
    InvalidStatusTransition,
    NotFound,
    PhotoRequired,
    ServiceError,
)
from service_requests.forms import SignUpForm
from service_requests.models import Restaurant, ServiceRequest, Table

from .helpers import make_request, make_restaurant


def photo(name="toilet.jpg"):
    return SimpleUploadedFile(name, b"\xff\xd8\xff\xe0fake-jpeg", content_type="image/jpeg")


class SubmitRequestTests(TestCase):
    def setUp(self):
        self.storage = InMemoryStorage()
        self.backend = ServiceBackend(storage=self.storage)
        self.restaurant, (self.table, self.other_table, _) = make_restaurant()

    def test_submit_creates_pending_request_and_opens_cooldown(self):
        tracker = self.backend.cooldown_tracker(self.table)
        obj = self.backend.submit_request(self.table, "ready_to_order", tracker=tracker)

        self.assertEqual(obj.status, "pending")
        self.assertIsNone(obj.photo_url)
        self.assertTrue(tracker.entries["ready_to_order"].active)

    def test_second_submit_inside_cooldown_writes_nothing(self):
        self.backend.submit_request(self.table, "table_clean")
        with self.assertRaises(CooldownActive):
            self.backend.submit_request(self.table, "table_clean")
        self.assertEqual(ServiceRequest.objects.filter(table=self.table).count(), 1)

    def test_cooldowns_are_per_table_and_per_type(self):
        self.backend.submit_request(self.table, "table_clean")
        self.backend.submit_request(self.table, "request_sauces")
        self.backend.submit_request(self.other_table, "table_clean")
        self.assertEqual(ServiceRequest.objects.count(), 3)

    def test_cooldown_expires(self):
        make_request(self.table, "request_sauces", minutes_ago=4)
        self.backend.submit_request(self.table, "request_sauces")
        self.assertEqual(ServiceRequest.objects.filter(type="request_sauces").count(), 2)

    def test_toilet_clean_requires_photo(self):
        with self.assertRaises(PhotoRequired):
            self.backend.submit_request(self.table, "toilet_clean")
        self.assertFalse(ServiceRequest.objects.exists())

    def test_toilet_clean_uploads_photo(self):
        obj = self.backend.submit_request(self.table, "toilet_clean", photo=photo())
        self.assertTrue(obj.photo_url.startswith(f"/media/request_photos/{self.restaurant.pk}/{self.table.pk}/"))
        self.assertTrue(obj.photo_url.endswith(".jpg"))

    def test_photo_is_not_uploaded_while_cooling_down(self):
        make_request(self.table, "toilet_clean", minutes_ago=5)
        storage = mock.Mock()
        backend = ServiceBackend(storage=storage)
        with self.assertRaises(CooldownActive) as ctx:
            backend.submit_request(self.table, "toilet_clean", photo=photo())
        self.assertIn("Please wait", ctx.exception.message)
        storage.save.assert_not_called()
        self.assertEqual(ServiceRequest.objects.count(), 1)

    def test_failed_upload_writes_nothing(self):
        storage = mock.Mock()
        storage.save.side_effect = OSError("disk full")
        backend = ServiceBackend(storage=storage)
        with self.assertRaises(ServiceError):
            backend.submit_request(self.table, "toilet_clean", photo=photo())
        self.assertFalse(ServiceRequest.objects.exists())

    def test_unknown_type_rejected(self):
        with self.assertRaises(ServiceError):
            self.backend.submit_request(self.table, "free_dessert")

    def test_latest_request_times(self):
        old = make_request(self.table, "table_clean", minutes_ago=30)
        new = make_request(self.table, "table_clean", minutes_ago=2)
        latest = self.backend.latest_request_times(self.table)
        self.assertEqual(latest["table_clean"], new.created_at)
        self.assertNotEqual(latest["table_clean"], old.created_at)
        self.assertIsNone(latest["toilet_clean"])


class LookupTests(TestCase):
    def setUp(self):
        self.backend = ServiceBackend(storage=InMemoryStorage())
        self.restaurant, self.tables = make_restaurant(table_labels=("12", "A3"))

    def test_resolve_table(self):
        restaurant, table = self.backend.resolve_table("blue-lagoon", "A3")
        self.assertEqual(restaurant, self.restaurant)
        self.assertEqual(table, self.tables[1])

    def test_unknown_restaurant(self):
        with self.assertRaises(NotFound) as ctx:
            self.backend.resolve_table("nowhere", "12")
        self.assertEqual(ctx.exception.message, "Restaurant not found")

    def test_unknown_table(self):
        with self.assertRaises(NotFound) as ctx:
            self.backend.resolve_table("blue-lagoon", "99")
        self.assertEqual(ctx.exception.message, "Table not found")

    def test_list_requests_newest_first_and_scoped(self):
        other, (other_table, *_) = make_restaurant("Other Place")
        first = make_request(self.tables[0], minutes_ago=10)
        second = make_request(self.tables[1], "ready_to_order", minutes_ago=1)
        make_request(other_table)
        rows = self.backend.list_requests(self.restaurant)
        self.assertEqual([r["id"] for r in rows], [second.pk, first.pk])
        self.assertEqual(rows[0]["table_label"], "A3")
        self.assertEqual(rows[0]["label"], "Ready to Order")

    def test_fetch_request_missing(self):
        self.assertIsNone(self.backend.fetch_request(12345))


class StaffWriteTests(TestCase):
    def setUp(self):
        self.backend = ServiceBackend(storage=InMemoryStorage())
        self.restaurant, (self.table, self.table2, _) = make_restaurant()
        self.other, (self.other_table, *_) = make_restaurant("Other Place")

    def test_status_moves_forward(self):
        obj = make_request(self.table)
        self.backend.update_status(self.restaurant, obj.pk, "in_progress")
        self.backend.update_status(self.restaurant, obj.pk, "completed")
        obj.refresh_from_db()
        self.assertEqual(obj.status, "completed")

    def test_same_status_is_a_no_op(self):
        obj = make_request(self.table, status="in_progress")
        updated = self.backend.update_status(self.restaurant, obj.pk, "in_progress")
        self.assertEqual(updated.status, "in_progress")

    def test_status_cannot_move_backwards(self):
        obj = make_request(self.table, status="completed")
        with self.assertRaises(InvalidStatusTransition):
            self.backend.update_status(self.restaurant, obj.pk, "pending")
        obj.refresh_from_db()
        self.assertEqual(obj.status, "completed")

    def test_cannot_touch_another_restaurants_request(self):
        obj = make_request(self.other_table)
        with self.assertRaises(NotFound):
            self.backend.update_status(self.restaurant, obj.pk, "completed")

    def test_complete_table_requests(self):
        make_request(self.table, "table_clean")
        make_request(self.table, "ready_to_order", status="in_progress")
        make_request(self.table, "request_sauces", status="completed")
        untouched = make_request(self.table2, "table_clean")

        completed = self.backend.complete_table_requests(self.restaurant, self.table.pk)

        self.assertEqual(completed, 2)
        self.assertFalse(ServiceRequest.objects.filter(table=self.table).active().exists())
        untouched.refresh_from_db()
        self.assertEqual(untouched.status, "pending")

    def test_complete_table_of_other_restaurant(self):
        with self.assertRaises(NotFound):
            self.backend.complete_table_requests(self.restaurant, self.other_table.pk)

    def test_clear_completed_is_scoped_to_the_restaurant(self):
        make_request(self.table, status="completed")
        make_request(self.table2, status="completed")
        keep_active = make_request(self.table, "ready_to_order")
        other_completed = make_request(self.other_table, status="completed")

        with self.assertLogs("audit", level="INFO"):
            deleted = self.backend.clear_completed(self.restaurant)

        self.assertEqual(deleted, 2)
        remaining = set(ServiceRequest.objects.values_list("pk", flat=True))
        self.assertEqual(remaining, {keep_active.pk, other_completed.pk})


class ManagerWriteTests(TestCase):
    def setUp(self):
        self.backend = ServiceBackend(storage=InMemoryStorage())
        self.restaurant, (self.table, *_) = make_restaurant()

    def test_add_table_strips_label(self):
        table = self.backend.add_table(self.restaurant, "  14 ")
        self.assertEqual(table.label, "14")

    def test_add_duplicate_table(self):
        with self.assertRaises(ServiceError):
            self.backend.add_table(self.restaurant, "1")

    def test_add_table_rejects_slash(self):
        with self.assertRaisesMessage(ServiceError, "cannot contain '/'"):
            self.backend.add_table(self.restaurant, "A/1")
        self.assertFalse(Table.objects.filter(label="A/1").exists())

    def test_delete_table_cascades_requests(self):
        make_request(self.table)
        self.backend.delete_table(self.restaurant, self.table.pk)
        self.assertFalse(Table.objects.filter(pk=self.table.pk).exists())
        self.assertFalse(ServiceRequest.objects.exists())

    def test_delete_table_of_other_restaurant(self):
        other, (other_table, *_) = make_restaurant("Other Place")
        with self.assertRaises(NotFound):
            self.backend.delete_table(self.restaurant, other_table.pk)

    def signup_form(self, username="alice", restaurant_name="Casa Nova"):
        form = SignUpForm(data={
            "username": username,
            "email": f"{username}@example.com",
            "password1": "Tr1cky-Passw0rd!",
            "password2": "Tr1cky-Passw0rd!",
            "restaurant_name": restaurant_name,
        })
        self.assertTrue(form.is_valid(), form.errors)
        return form

    def test_create_restaurant_account(self):
        form = self.signup_form()
        user = self.backend.create_restaurant_account(form, form.cleaned_data["restaurant_name"])
        self.assertTrue(user.is_manager)
        self.assertEqual(user.restaurant.slug, "casa-nova")
        self.assertEqual(user.restaurant.owner, user)

    def test_reserved_slug_rejected(self):
        form = self.signup_form(restaurant_name="Staff")
        with self.assertRaises(ServiceError):
            self.backend.create_restaurant_account(form, "Staff")
        self.assertFalse(Restaurant.objects.filter(slug="staff").exists())

    def test_taken_slug_rolls_back_user(self):
        form = self.signup_form(restaurant_name="Blue Lagoon")
        with self.assertRaises(ServiceError):
            self.backend.create_restaurant_account(form, "Blue Lagoon")
        self.assertFalse(type(form.instance).objects.filter(username="alice").exists())


class ReportTests(TestCase):
    def setUp(self):
        self.backend = ServiceBackend(storage=InMemoryStorage())
        self.restaurant, (self.table, *_) = make_restaurant()

    def test_request_type_counts(self):
        make_request(self.table, "table_clean")
        make_request(self.table, "table_clean", minutes_ago=20)
        make_request(self.table, "request_sauces")
        counts = self.backend.request_type_counts(self.restaurant)
        self.assertEqual(counts[0], {"type": "table_clean", "name": "Clean Table", "value": 2})
        self.assertEqual(counts[1]["value"], 1)

    def test_hourly_request_counts(self):
        make_request(self.table)
        hour = timezone.now().hour
        rows = self.backend.hourly_request_counts(self.restaurant)
        self.assertEqual(rows, [{"hour": f"{hour}:00", "requests": 1}])

    def test_reports_for_empty_restaurant(self):
        self.assertEqual(self.backend.request_type_counts(self.restaurant), [])
        self.assertEqual(self.backend.hourly_request_counts(self.restaurant), [])
