import random
from datetime import timedelta

from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from service_requests.models import CustomUser, Restaurant, ServiceRequest, Table
from service_requests.request_types import REQUEST_OPTIONS, RequestStatus


class Command(BaseCommand):
    help = 'Seed the database with a demo restaurant, staff accounts and service requests'

    def add_arguments(self, parser):
        parser.add_argument('--tables', type=int, default=6, help='Number of tables to create')
        parser.add_argument('--requests', type=int, default=20, help='Number of historical requests to create')

    @transaction.atomic
    def handle(self, *args, **options):
        # Manager owns the restaurant
        manager, created = CustomUser.objects.get_or_create(
            username='manager', defaults={'role': CustomUser.Roles.MANAGER, 'email': 'manager@example.com'},
        )
        if created:
            manager.set_password('password')

        restaurant, _ = Restaurant.objects.get_or_create(
            slug='sample-restaurant', defaults={'name': 'Sample Restaurant', 'owner': manager},
        )
        manager.restaurant = restaurant
        manager.save()

        # Floor staff
        for username in ('server1', 'server2'):
            user, created = CustomUser.objects.get_or_create(
                username=username, defaults={'role': CustomUser.Roles.STAFF, 'restaurant': restaurant},
            )
            if created:
                user.set_password('password')
                user.save()

        # Tables
        tables = []
        for i in range(1, options['tables'] + 1):
            table, _ = Table.objects.get_or_create(restaurant=restaurant, label=str(i))
            tables.append(table)
            self.stdout.write(f"Table {table.label}: {table.get_absolute_url()}")

        # Historical requests spread over the last day, backdated past their cooldowns
        now = timezone.now()
        for _ in range(options['requests']):
            option = random.choice([o for o in REQUEST_OPTIONS if not o.requires_photo])
            obj = ServiceRequest.objects.create(
                table=random.choice(tables),
                type=option.type,
                status=random.choice(RequestStatus.values),
            )
            ServiceRequest.objects.filter(pk=obj.pk).update(
                created_at=now - timedelta(minutes=random.randint(30, 24 * 60)),
            )

        self.stdout.write(self.style.SUCCESS('Successfully seeded the database with demo data'))
