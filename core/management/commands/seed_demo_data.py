from datetime import timedelta

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from core.models import Company
from inventory import ledger
from inventory.models import BlueprintItem, ContainerBlueprint, Inventory, Location, Part, Product
from procurement.models import Supplier


class Command(BaseCommand):
    help = "Seed demo warehouse data (locations, parts, a blueprint and stocked lots) for local development."

    @transaction.atomic
    def handle(self, *args, **options):
        User = get_user_model()

        company, _ = Company.objects.get_or_create(code="DEMO", defaults={"name": "Demo Logistics", "is_active": True})

        credentials = []
        for username, role, is_superuser in [
            ("admin", User.Role.ADMIN, True),
            ("supervisor", User.Role.SUPERVISOR, False),
            ("operator", User.Role.OPERATOR, False),
        ]:
            user, created = User.objects.get_or_create(
                username=username,
                defaults={
                    "email": f"{username}@example.com",
                    "role": role,
                    "company": company,
                    "is_staff": is_superuser,
                    "is_superuser": is_superuser,
                    "is_active": True,
                },
            )
            if created:
                user.set_password(f"{username}1234")
                user.save(update_fields=["password"])
            credentials.append(f"{username}/{username}1234")

        warehouse, _ = Location.objects.get_or_create(
            company=company,
            code="WH-01",
            defaults={"name": "Central Warehouse", "location_type": Location.LocationType.WAREHOUSE},
        )
        Location.objects.get_or_create(
            company=company,
            code="TRUCK-07",
            defaults={"name": "Response Truck 7", "location_type": Location.LocationType.VEHICLE},
        )

        supplier, _ = Supplier.objects.get_or_create(company=company, code="SUP-001", defaults={"name": "Medline Supply"})

        gauze, _ = Part.objects.get_or_create(
            company=company,
            sku="GAUZE-4X4",
            defaults={"name": "Gauze pad 4x4", "gtin": "00312345678906", "unit_of_measure": "EA"},
        )
        saline, _ = Part.objects.get_or_create(
            company=company,
            sku="SALINE-500",
            defaults={"name": "Saline 500ml", "unit_of_measure": "BAG"},
        )

        blueprint, _ = ContainerBlueprint.objects.get_or_create(
            company=company,
            name="Trauma Kit",
            defaults={"serial_number_prefix": "TK-", "description": "Standard vehicle trauma kit"},
        )
        for part, quantity in [(gauze, 10), (saline, 2)]:
            product, _ = Product.objects.get_or_create(company=company, part=part, defaults={"name": part.name, "sku": part.sku})
            BlueprintItem.objects.get_or_create(blueprint=blueprint, product=product, defaults={"default_quantity": quantity})

        today = timezone.localdate()
        stock = [
            (gauze, "G-2401", today + timedelta(days=30), 6),
            (gauze, "G-2402", today + timedelta(days=180), 20),
            (saline, "S-2401", None, 12),
        ]
        for part, lot_number, expiration_date, quantity in stock:
            lot, _ = ledger.get_or_create_lot(
                company_id=company.pk,
                part_id=part.pk,
                lot_number=lot_number,
                expiration_date=expiration_date,
                supplier_id=supplier.pk,
                location_id=warehouse.pk,
            )
            if Inventory.objects.filter(company=company, part=part, lot=lot).exists():
                continue
            ledger.credit(
                lookup={"company_id": company.pk, "part_id": part.pk, "lot_id": lot.pk},
                quantity=quantity,
                defaults={"location_id": warehouse.pk, "supplier_id": supplier.pk, "received_date": today},
            )

        self.stdout.write(self.style.SUCCESS("Demo data seeded successfully."))
        self.stdout.write(f"Credentials: {', '.join(credentials)}")
        self.stdout.write(f"Company: {company.code} | Blueprint: {blueprint.name} | Source location: {warehouse.code}")
