from io import StringIO

from django.core.management import call_command
from django.test import TestCase

from billiards.models import Company, InventoryItem, Profile, StockMovement, Table


class SeedDemoDataTests(TestCase):
    def test_seed_is_idempotent(self):
        call_command("seed_demo_data", "--company", "Test Hall", stdout=StringIO())
        call_command("seed_demo_data", "--company", "Test Hall", stdout=StringIO())

        company = Company.objects.get(name="Test Hall")
        self.assertEqual(Table.objects.filter(company=company).count(), 5)
        self.assertTrue(Table.objects.filter(company=company, hourly_rate__isnull=True).exists())
        self.assertEqual(InventoryItem.objects.filter(company=company).count(), 4)
        self.assertEqual(StockMovement.objects.filter(type=StockMovement.MovementType.PURCHASE).count(), 4)
        self.assertEqual(Profile.objects.filter(company=company).count(), 2)
        self.assertTrue(all(t.status == Table.Status.AVAILABLE for t in Table.objects.filter(company=company)))
