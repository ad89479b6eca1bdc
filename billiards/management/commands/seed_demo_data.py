from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from billiards.models import Company, InventoryItem, Profile, StockMovement, Table

User = get_user_model()

TABLES = [
    ("Table 1", Decimal("10.00")),
    ("Table 2", Decimal("10.00")),
    ("Table 3", Decimal("12.50")),
    ("Snooker 1", Decimal("15.00")),
    ("Practice", None),
]

INVENTORY = [
    ("Cola", "DRK-001", 48, Decimal("2.50")),
    ("Water", "DRK-002", 60, Decimal("1.50")),
    ("Chips", "SNK-001", 30, Decimal("2.00")),
    ("Chalk", "ACC-001", 100, Decimal("0.50")),
]


class Command(BaseCommand):
    help = 'Seed the database with a demo billiard hall'

    def add_arguments(self, parser):
        parser.add_argument("--company", default="Demo Billiards", help="Company name to create or reuse")

    @transaction.atomic
    def handle(self, *args, **options):
        company, _ = Company.objects.get_or_create(name=options["company"])

        for username, role in (("owner", Profile.Roles.ADMIN), ("seller", Profile.Roles.SELLER)):
            user, created = User.objects.get_or_create(username=username)
            if created:
                user.set_password("password")
                user.save()
            Profile.objects.get_or_create(user=user, defaults={"company": company, "role": role})
            self.stdout.write(f"User: {username} ({role})")

        for name, rate in TABLES:
            Table.objects.get_or_create(company=company, name=name, defaults={"hourly_rate": rate})
            self.stdout.write(f"Table: {name} rate={rate}")

        now = timezone.now()
        for name, sku, quantity, price in INVENTORY:
            item, created = InventoryItem.objects.get_or_create(
                company=company, name=name,
                defaults={"sku": sku, "quantity": quantity, "price": price, "last_stock_update": now},
            )
            if created:
                StockMovement.objects.create(
                    item=item,
                    quantity=quantity,
                    type=StockMovement.MovementType.PURCHASE,
                    reason="Initial stock",
                    created_by="system",
                )
            self.stdout.write(f"Inventory: {name} x{item.quantity}")

        self.stdout.write(self.style.SUCCESS(f'Seeded demo data for "{company.name}"'))
