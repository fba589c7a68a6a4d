from datetime import date

from django.contrib.auth import get_user_model
from django.db.models import Sum
from django.test import SimpleTestCase, TestCase, override_settings
from rest_framework.test import APIClient

from common.exceptions import DomainConflict, DomainNotFound, DomainValidationError, LocationMismatch, ReferentialError
from core.models import AuditLog, Company
from inventory.allocation import manual_assign
from inventory.loadouts import blueprint_requirements, resolve_or_create_loadout
from inventory.models import (
    BlueprintItem,
    ContainerBlueprint,
    ContainerLoadout,
    Inventory,
    InventoryMovement,
    LoadoutLot,
    Location,
    Lot,
    Part,
    Product,
    TransferOrder,
    TransferOrderItem,
)
from inventory.scanning import decode_scan, parse_gs1_date
from inventory.services import (
    STATUS_STAMPS,
    TransitionIntent,
    auto_assign_order,
    create_transfer_order,
    delete_transfer_order,
    transition,
    update_transfer_order,
)


class WarehouseFixtureMixin:
    def setUp(self):
        self.client = APIClient()
        self.user_model = get_user_model()

        self.company = Company.objects.create(code="ACME", name="Acme Logistics")
        self.other_company = Company.objects.create(code="OTHER", name="Other Co")

        self.warehouse = Location.objects.create(company=self.company, name="Central", code="WH-01")
        self.truck = Location.objects.create(
            company=self.company, name="Truck 7", code="TRUCK-07", location_type=Location.LocationType.VEHICLE
        )
        self.site = Location.objects.create(company=self.company, name="Field site", code="SITE-1", location_type=Location.LocationType.SITE)

        self.part = Part.objects.create(company=self.company, sku="GAUZE-4X4", name="Gauze pad", unit_of_measure="EA")
        self.product = Product.objects.create(company=self.company, part=self.part, name="Gauze pad")
        self.blueprint = ContainerBlueprint.objects.create(company=self.company, name="Trauma Kit", serial_number_prefix="TK-")
        self.blueprint_item = BlueprintItem.objects.create(blueprint=self.blueprint, product=self.product, default_quantity=10)

        self.viewer = self._user("viewer", self.user_model.Role.VIEWER)
        self.operator = self._user("operator", self.user_model.Role.OPERATOR)
        self.supervisor = self._user("supervisor", self.user_model.Role.SUPERVISOR)
        self.admin = self._user("admin", self.user_model.Role.ADMIN)

    def _user(self, username, role, company=None):
        return self.user_model.objects.create_user(
            username=username,
            password="pass1234",
            company=company or self.company,
            role=role,
        )

    def _stock(self, lot_number, expiration_date, quantity, *, location=None, part=None):
        part = part or self.part
        lot = None
        if lot_number is not None:
            lot = Lot.objects.create(company=part.company, part=part, lot_number=lot_number, expiration_date=expiration_date)
        return Inventory.objects.create(
            company=part.company,
            part=part,
            lot=lot,
            location=location or self.warehouse,
            quantity_on_hand=quantity,
            quantity_available=quantity,
        )

    def _blueprint_order(self):
        order, _ = create_transfer_order(
            self.company.id,
            from_location_id=self.warehouse.id,
            to_location_id=self.truck.id,
            blueprint_id=self.blueprint.id,
            actor=self.operator,
        )
        return order


class FefoAllocationTests(WarehouseFixtureMixin, TestCase):
    def test_blueprint_order_consumes_earliest_lot_first(self):
        lot_a = self._stock("A", date(2024, 1, 1), 4)
        lot_b = self._stock("B", date(2024, 6, 1), 10)
        self.client.force_authenticate(user=self.operator)

        response = self.client.post(
            "/api/v1/transfer-orders/",
            {
                "from_location_id": str(self.warehouse.id),
                "to_location_id": str(self.truck.id),
                "blueprint_id": str(self.blueprint.id),
            },
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        payload = response.json()
        self.assertEqual(payload["status"], "Pending")
        self.assertEqual(payload["shortages"], [])
        self.assertEqual(len(payload["items"]), 2)
        self.assertEqual(payload["fulfillment"][0]["assigned_quantity"], 10)
        self.assertEqual(payload["fulfillment"][0]["short_quantity"], 0)

        lot_a.refresh_from_db()
        lot_b.refresh_from_db()
        self.assertEqual((lot_a.quantity_available, lot_a.quantity_reserved), (0, 4))
        self.assertEqual((lot_b.quantity_available, lot_b.quantity_reserved), (4, 6))

        items = TransferOrderItem.objects.filter(order_id=payload["id"])
        self.assertEqual(sorted(items.values_list("quantity", flat=True)), [4, 6])
        self.assertEqual(items.get(inventory=lot_a).expiration_date, date(2024, 1, 1))
        self.assertEqual(set(items.values_list("unit_of_measure", flat=True)), {"EA"})

    def test_blueprint_order_resolves_loadout_and_records_usage(self):
        self._stock("A", date(2024, 1, 1), 4)
        self._stock("B", date(2024, 6, 1), 10)

        order = self._blueprint_order()

        loadout = ContainerLoadout.objects.get(company=self.company)
        self.assertEqual(order.loadout_id, loadout.id)
        self.assertEqual(loadout.serial_suffix, "001")
        self.assertEqual(loadout.full_serial, "TK-001")
        self.assertEqual(loadout.notes, "Auto-created for transfer order")
        self.assertEqual(LoadoutLot.objects.filter(loadout=loadout).aggregate(total=Sum("quantity_used"))["total"], 10)

    def test_reservation_conserves_quantities(self):
        rows = [self._stock("A", date(2024, 1, 1), 4), self._stock("B", date(2024, 6, 1), 10)]

        order = self._blueprint_order()

        for row in rows:
            row.refresh_from_db()
            self.assertEqual(row.quantity_on_hand, row.quantity_available + row.quantity_reserved)
        reserved_movements = InventoryMovement.objects.filter(
            transfer_order=order, movement_type=InventoryMovement.MovementType.RESERVE
        ).aggregate(total=Sum("quantity"))["total"]
        self.assertEqual(reserved_movements, 10)

    def test_undated_stock_is_used_last(self):
        no_lot = self._stock(None, None, 5)
        undated = self._stock("UNDATED", None, 5)
        late = self._stock("LATE", date(2025, 3, 1), 5)
        early = self._stock("EARLY", date(2024, 3, 1), 5)

        self._blueprint_order()

        for row in (no_lot, undated, late, early):
            row.refresh_from_db()
        self.assertEqual(early.quantity_reserved, 5)
        self.assertEqual(late.quantity_reserved, 5)
        self.assertEqual(undated.quantity_reserved, 0)
        self.assertEqual(no_lot.quantity_reserved, 0)

    def test_shortage_is_returned_and_logged(self):
        self._stock("A", date(2024, 1, 1), 4)

        with self.assertLogs("inventory.allocation", level="WARNING") as cm:
            order, shortages = create_transfer_order(
                self.company.id,
                from_location_id=self.warehouse.id,
                to_location_id=self.truck.id,
                blueprint_id=self.blueprint.id,
            )

        self.assertEqual(len(shortages), 1)
        self.assertEqual(shortages[0].short_quantity, 6)
        self.assertEqual(order.status, TransferOrder.Status.PENDING)
        self.assertTrue(any("Short 6 units" in message for message in cm.output))

    def test_rerunning_auto_assign_does_not_over_allocate(self):
        self._stock("A", date(2024, 1, 1), 4)
        order = self._blueprint_order()
        self._stock("B", date(2024, 6, 1), 20)

        shortages = auto_assign_order(self.company.id, order.id)
        again = auto_assign_order(self.company.id, order.id)

        self.assertEqual(shortages, [])
        self.assertEqual(again, [])
        total = TransferOrderItem.objects.filter(order=order, part=self.part).aggregate(total=Sum("quantity"))["total"]
        self.assertEqual(total, 10)

    def test_stock_at_other_locations_is_ignored(self):
        elsewhere = self._stock("A", date(2024, 1, 1), 50, location=self.site)

        _, shortages = create_transfer_order(
            self.company.id,
            from_location_id=self.warehouse.id,
            to_location_id=self.truck.id,
            blueprint_id=self.blueprint.id,
        )

        elsewhere.refresh_from_db()
        self.assertEqual(elsewhere.quantity_reserved, 0)
        self.assertEqual(shortages[0].short_quantity, 10)


class ManualAssignmentTests(WarehouseFixtureMixin, TestCase):
    def test_manual_assignment_is_clamped_to_remaining_need(self):
        self._stock("A", date(2024, 1, 1), 4)
        order, shortages = create_transfer_order(
            self.company.id,
            from_location_id=self.warehouse.id,
            to_location_id=self.truck.id,
            blueprint_id=self.blueprint.id,
        )
        self.assertEqual(shortages[0].short_quantity, 6)
        lot_b = self._stock("B", date(2024, 6, 1), 10)

        applied = manual_assign(self.company.id, order.id, self.blueprint_item.id, lot_b.id, 8)

        self.assertEqual(applied, 6)
        lot_b.refresh_from_db()
        self.assertEqual((lot_b.quantity_available, lot_b.quantity_reserved), (4, 6))
        item = TransferOrderItem.objects.get(order=order, inventory=lot_b)
        self.assertEqual(item.notes, "Manually assigned from transfer order details")

    def test_manual_assignment_api_reports_applied_quantity(self):
        self._stock("A", date(2024, 1, 1), 4)
        order = self._blueprint_order()
        lot_b = self._stock("B", date(2024, 6, 1), 3)
        self.client.force_authenticate(user=self.operator)

        response = self.client.post(
            f"/api/v1/transfer-orders/{order.id}/manual-assign/",
            {"blueprint_item_id": str(self.blueprint_item.id), "inventory_id": str(lot_b.id), "quantity": 8},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["assigned_quantity"], 3)
        self.assertEqual(response.json()["fulfillment"][0]["short_quantity"], 3)

    def test_manual_assignment_from_wrong_location_is_rejected(self):
        order = self._blueprint_order()
        elsewhere = self._stock("X", date(2024, 2, 1), 5, location=self.site)
        self.client.force_authenticate(user=self.operator)

        response = self.client.post(
            f"/api/v1/transfer-orders/{order.id}/manual-assign/",
            {"blueprint_item_id": str(self.blueprint_item.id), "inventory_id": str(elsewhere.id), "quantity": 2},
            format="json",
        )

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["code"], "location_mismatch")
        elsewhere.refresh_from_db()
        self.assertEqual((elsewhere.quantity_available, elsewhere.quantity_reserved), (5, 0))
        self.assertFalse(TransferOrderItem.objects.filter(order=order).exists())
        self.assertFalse(InventoryMovement.objects.filter(inventory=elsewhere).exists())

    def test_manual_assignment_when_requirement_met_is_a_conflict(self):
        self._stock("A", date(2024, 1, 1), 10)
        extra = self._stock("B", date(2024, 6, 1), 10)
        order = self._blueprint_order()

        with self.assertRaises(DomainConflict):
            manual_assign(self.company.id, order.id, self.blueprint_item.id, extra.id, 1)

    def test_manual_assignment_rejects_other_company_inventory(self):
        order = self._blueprint_order()
        foreign_part = Part.objects.create(company=self.other_company, sku="GAUZE-4X4", name="Gauze pad")
        foreign_location = Location.objects.create(company=self.other_company, name="Other WH", code="WH-01")
        foreign_row = self._stock("F", None, 5, location=foreign_location, part=foreign_part)

        with self.assertRaises(DomainNotFound):
            manual_assign(self.company.id, order.id, self.blueprint_item.id, foreign_row.id, 1)

    def test_manual_assignment_with_wrong_part_is_a_conflict(self):
        order = self._blueprint_order()
        other_part = Part.objects.create(company=self.company, sku="SALINE", name="Saline")
        row = self._stock("S1", None, 5, part=other_part)

        with self.assertRaises(DomainConflict):
            manual_assign(self.company.id, order.id, self.blueprint_item.id, row.id, 1)

    def test_location_mismatch_is_a_conflict(self):
        self.assertTrue(issubclass(LocationMismatch, DomainConflict))


class OrderNumberTests(WarehouseFixtureMixin, TestCase):
    def _create(self, company=None, from_location=None, to_location=None):
        order, _ = create_transfer_order(
            (company or self.company).id,
            from_location_id=(from_location or self.warehouse).id,
            to_location_id=(to_location or self.truck).id,
        )
        return order

    def test_numbers_start_at_one_and_increase(self):
        first = self._create()
        second = self._create()

        self.assertEqual(first.order_number, "TO-0001")
        self.assertEqual(second.order_number, "TO-0002")

    def test_numbers_are_not_reused_after_delete(self):
        self._create()
        second = self._create()
        delete_transfer_order(self.company.id, second.id)

        third = self._create()

        self.assertEqual(third.order_number, "TO-0003")

    def test_numbers_are_per_company(self):
        self._create()
        a = Location.objects.create(company=self.other_company, name="A", code="A")
        b = Location.objects.create(company=self.other_company, name="B", code="B")

        other = self._create(company=self.other_company, from_location=a, to_location=b)

        self.assertEqual(other.order_number, "TO-0001")

    def test_counter_seeds_from_existing_numbers(self):
        TransferOrder.objects.create(
            company=self.company, order_number="TO-0041", from_location=self.warehouse, to_location=self.truck
        )

        order = self._create()

        self.assertEqual(order.order_number, "TO-0042")

    @override_settings(TRANSFER_ORDER_NUMBER_PREFIX="XFER")
    def test_prefix_is_configurable(self):
        self.assertEqual(self._create().order_number, "XFER-0001")

    def test_preview_does_not_consume_a_number(self):
        self.client.force_authenticate(user=self.viewer)

        response = self.client.get("/api/v1/transfer-orders/next-number/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["order_number"], "TO-0001")
        self.assertEqual(self._create().order_number, "TO-0001")


class TransferOrderLifecycleTests(WarehouseFixtureMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.lot_a = self._stock("A", date(2024, 1, 1), 4)
        self.lot_b = self._stock("B", date(2024, 6, 1), 10)
        self.order = self._blueprint_order()

    def _transition(self, target, user=None):
        self.client.force_authenticate(user=user or self.supervisor)
        return self.client.post(f"/api/v1/transfer-orders/{self.order.id}/transition/", {"status": target}, format="json")

    def test_every_status_has_a_stamp_rule(self):
        self.assertEqual(set(STATUS_STAMPS), set(TransferOrder.Status))

    def test_full_lifecycle_moves_stock_to_destination(self):
        response = self._transition("Approved")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["approved_by"], str(self.supervisor.id))

        response = self._transition("Shipped")
        self.assertEqual(response.status_code, 200)
        self.lot_a.refresh_from_db()
        self.lot_b.refresh_from_db()
        self.assertEqual((self.lot_a.quantity_on_hand, self.lot_a.quantity_reserved), (0, 0))
        self.assertEqual(
            (self.lot_b.quantity_on_hand, self.lot_b.quantity_available, self.lot_b.quantity_reserved),
            (4, 4, 0),
        )

        response = self._transition("Received")
        self.assertEqual(response.status_code, 200)
        destination = Inventory.objects.filter(company=self.company, location=self.truck)
        self.assertEqual(destination.count(), 2)
        self.assertEqual(destination.aggregate(total=Sum("quantity_available"))["total"], 10)

        response = self._transition("Completed")
        self.assertEqual(response.status_code, 200)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, TransferOrder.Status.COMPLETED)
        self.assertIsNotNone(self.order.completed_date)
        self.assertIsNotNone(self.order.ship_date)
        self.assertEqual(self.order.shipped_by_id, self.supervisor.id)

    def test_skipping_a_step_is_a_conflict(self):
        response = self._transition("Shipped")

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["code"], "conflict")
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, TransferOrder.Status.PENDING)

    def test_unknown_status_is_a_validation_error(self):
        response = self._transition("Lost")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "validation_error")

    def test_unknown_status_intent_is_rejected(self):
        with self.assertRaises(DomainValidationError):
            TransitionIntent("Lost")

    def test_completed_order_is_immutable(self):
        for target in ["Approved", "Shipped", "Received", "Completed"]:
            transition(self.company.id, self.order.id, TransitionIntent(target, self.supervisor))
        self.client.force_authenticate(user=self.supervisor)

        response = self.client.patch(f"/api/v1/transfer-orders/{self.order.id}/", {"notes": "late edit"}, format="json")
        backwards = self._transition("Pending")

        self.assertEqual(response.status_code, 409)
        self.assertEqual(backwards.status_code, 409)

    @override_settings(TRANSFER_ORDER_ENFORCE_TRANSITIONS=False)
    def test_permissive_mode_allows_direct_status_writes(self):
        order = update_transfer_order(self.company.id, self.order.id, {"status": "Completed"}, actor=self.supervisor)

        self.assertEqual(order.status, TransferOrder.Status.COMPLETED)
        self.assertIsNotNone(order.completed_date)

    def test_operator_cannot_approve_and_denial_is_logged(self):
        with self.assertLogs("security.authorization", level="WARNING") as cm:
            response = self._transition("Approved", user=self.operator)

        self.assertEqual(response.status_code, 403)
        self.assertTrue(any("permission_denied" in message for message in cm.output))

    def test_patch_updates_fields_and_writes_audit_log(self):
        self.client.force_authenticate(user=self.operator)

        response = self.client.patch(
            f"/api/v1/transfer-orders/{self.order.id}/",
            {"carrier": "FastFreight", "priority": "Urgent"},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["carrier"], "FastFreight")
        self.assertEqual(response.json()["priority"], "Urgent")
        self.assertTrue(AuditLog.objects.filter(action="transfer_order.update", entity_id=self.order.id).exists())

    def test_admin_delete_releases_reservations(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.delete(f"/api/v1/transfer-orders/{self.order.id}/")

        self.assertEqual(response.status_code, 204)
        self.assertFalse(TransferOrder.objects.filter(id=self.order.id).exists())
        self.lot_a.refresh_from_db()
        self.lot_b.refresh_from_db()
        self.assertEqual((self.lot_a.quantity_available, self.lot_a.quantity_reserved), (4, 0))
        self.assertEqual((self.lot_b.quantity_available, self.lot_b.quantity_reserved), (10, 0))
        self.assertEqual(
            InventoryMovement.objects.filter(movement_type=InventoryMovement.MovementType.RELEASE).aggregate(total=Sum("quantity"))["total"],
            10,
        )

    def test_operator_cannot_delete_orders(self):
        self.client.force_authenticate(user=self.operator)

        response = self.client.delete(f"/api/v1/transfer-orders/{self.order.id}/")

        self.assertEqual(response.status_code, 403)
        self.assertTrue(TransferOrder.objects.filter(id=self.order.id).exists())

    def test_removing_an_item_releases_its_stock(self):
        item = TransferOrderItem.objects.get(order=self.order, inventory=self.lot_a)
        self.client.force_authenticate(user=self.operator)

        response = self.client.delete(f"/api/v1/transfer-orders/{self.order.id}/items/{item.id}/")

        self.assertEqual(response.status_code, 204)
        self.lot_a.refresh_from_db()
        self.assertEqual((self.lot_a.quantity_available, self.lot_a.quantity_reserved), (4, 0))
        self.assertFalse(LoadoutLot.objects.filter(transfer_order_item_id=item.id).exists())

    def test_items_cannot_change_after_shipping(self):
        transition(self.company.id, self.order.id, TransitionIntent("Approved", self.supervisor))
        transition(self.company.id, self.order.id, TransitionIntent("Shipped", self.supervisor))
        self.client.force_authenticate(user=self.operator)

        response = self.client.post(
            f"/api/v1/transfer-orders/{self.order.id}/items/",
            {"part_id": str(self.part.id), "quantity": 1},
            format="json",
        )

        self.assertEqual(response.status_code, 409)


class TransferOrderApiTests(WarehouseFixtureMixin, TestCase):
    def test_add_item_with_inventory_reserves_stock(self):
        row = self._stock("A", date(2024, 1, 1), 10)
        order, _ = create_transfer_order(self.company.id, from_location_id=self.warehouse.id, to_location_id=self.truck.id)
        self.client.force_authenticate(user=self.operator)

        response = self.client.post(
            f"/api/v1/transfer-orders/{order.id}/items/",
            {"inventory_id": str(row.id), "quantity": 3},
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["quantity"], 3)
        row.refresh_from_db()
        self.assertEqual((row.quantity_available, row.quantity_reserved), (7, 3))

    def test_add_item_by_part_does_not_reserve(self):
        row = self._stock("A", date(2024, 1, 1), 10)
        order, _ = create_transfer_order(self.company.id, from_location_id=self.warehouse.id, to_location_id=self.truck.id)
        self.client.force_authenticate(user=self.operator)

        response = self.client.post(
            f"/api/v1/transfer-orders/{order.id}/items/",
            {"part_id": str(self.part.id), "quantity": 2},
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        self.assertIsNone(response.json()["inventory"])
        row.refresh_from_db()
        self.assertEqual(row.quantity_reserved, 0)

    def test_add_item_to_blueprint_order_is_capped_at_remaining_need(self):
        self._stock("A", date(2024, 1, 1), 4)
        order = self._blueprint_order()
        lot_b = self._stock("B", date(2024, 6, 1), 10)
        self.client.force_authenticate(user=self.operator)

        first = self.client.post(
            f"/api/v1/transfer-orders/{order.id}/items/",
            {"inventory_id": str(lot_b.id), "quantity": 9},
            format="json",
        )
        second = self.client.post(
            f"/api/v1/transfer-orders/{order.id}/items/",
            {"inventory_id": str(lot_b.id), "quantity": 1},
            format="json",
        )

        self.assertEqual(first.status_code, 201)
        self.assertEqual(first.json()["quantity"], 6)
        self.assertEqual(second.status_code, 409)
        self.assertEqual(second.json()["code"], "conflict")
        lot_b.refresh_from_db()
        self.assertEqual((lot_b.quantity_available, lot_b.quantity_reserved), (4, 6))
        item = TransferOrderItem.objects.get(order=order, inventory=lot_b)
        self.assertEqual(item.blueprint_item_id, self.blueprint_item.id)
        self.assertEqual(item.loadout_id, order.loadout_id)

    def test_same_source_and_destination_returns_error_envelope(self):
        self.client.force_authenticate(user=self.operator)

        response = self.client.post(
            "/api/v1/transfer-orders/",
            {"from_location_id": str(self.warehouse.id), "to_location_id": str(self.warehouse.id)},
            format="json",
        )

        self.assertEqual(response.status_code, 400)
        payload = response.json()
        self.assertEqual(sorted(payload.keys()), ["code", "errors", "message", "status"])
        self.assertEqual(payload["code"], "validation_error")
        self.assertEqual(payload["status"], 400)
        self.assertIn("to_location_id", payload["errors"])

    def test_foreign_location_is_a_referential_error(self):
        foreign = Location.objects.create(company=self.other_company, name="Foreign", code="F-1")
        self.client.force_authenticate(user=self.operator)

        response = self.client.post(
            "/api/v1/transfer-orders/",
            {"from_location_id": str(self.warehouse.id), "to_location_id": str(foreign.id)},
            format="json",
        )

        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["code"], "referential_error")
        self.assertFalse(TransferOrder.objects.exists())

    def test_viewer_cannot_create_orders(self):
        self.client.force_authenticate(user=self.viewer)

        response = self.client.post(
            "/api/v1/transfer-orders/",
            {"from_location_id": str(self.warehouse.id), "to_location_id": str(self.truck.id)},
            format="json",
        )

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["code"], "permission_denied")

    def test_other_company_cannot_see_orders(self):
        order, _ = create_transfer_order(self.company.id, from_location_id=self.warehouse.id, to_location_id=self.truck.id)
        outsider = self._user("outsider", self.user_model.Role.ADMIN, company=self.other_company)
        self.client.force_authenticate(user=outsider)

        detail = self.client.get(f"/api/v1/transfer-orders/{order.id}/")
        listing = self.client.get("/api/v1/transfer-orders/")

        self.assertEqual(detail.status_code, 404)
        self.assertEqual(detail.json()["code"], "not_found")
        self.assertEqual(listing.status_code, 200)
        self.assertEqual(listing.json()["results"], [])

    def test_auto_assign_endpoint_fills_from_new_stock(self):
        order, _ = create_transfer_order(
            self.company.id,
            from_location_id=self.warehouse.id,
            to_location_id=self.truck.id,
            blueprint_id=self.blueprint.id,
        )
        self._stock("A", date(2024, 1, 1), 12)
        self.client.force_authenticate(user=self.operator)

        response = self.client.post(f"/api/v1/transfer-orders/{order.id}/auto-assign/", {}, format="json")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["shortages"], [])
        self.assertEqual(response.json()["fulfillment"][0]["assigned_quantity"], 10)

    def test_assign_loadout_with_other_blueprint_is_a_conflict(self):
        order = self._blueprint_order()
        other_blueprint = ContainerBlueprint.objects.create(company=self.company, name="Airway Kit")
        loadout = ContainerLoadout.objects.create(
            company=self.company, blueprint=other_blueprint, location=self.warehouse, serial_suffix="007"
        )
        self.client.force_authenticate(user=self.operator)

        response = self.client.post(
            f"/api/v1/transfer-orders/{order.id}/assign-loadout/",
            {"loadout_id": str(loadout.id)},
            format="json",
        )

        self.assertEqual(response.status_code, 409)

    def test_inventory_listing_is_scoped_and_filterable(self):
        mine = self._stock("A", date(2024, 1, 1), 3)
        self._stock("B", date(2024, 1, 1), 3, location=self.site)
        foreign_part = Part.objects.create(company=self.other_company, sku="X", name="X")
        foreign_location = Location.objects.create(company=self.other_company, name="X", code="X")
        self._stock("F", None, 3, location=foreign_location, part=foreign_part)
        self.client.force_authenticate(user=self.viewer)

        response = self.client.get(f"/api/v1/inventory/?location_id={self.warehouse.id}")

        self.assertEqual(response.status_code, 200)
        ids = [row["id"] for row in response.json()["results"]]
        self.assertEqual(ids, [str(mine.id)])
        self.assertEqual(response.json()["results"][0]["lot_number"], "A")


class BlueprintTests(WarehouseFixtureMixin, TestCase):
    def test_requirements_fall_back_to_minimum_then_one(self):
        saline = Part.objects.create(company=self.company, sku="SALINE", name="Saline", unit_of_measure="BAG")
        BlueprintItem.objects.create(
            blueprint=self.blueprint,
            product=Product.objects.create(company=self.company, part=saline, name="Saline"),
            minimum_quantity=2,
        )
        BlueprintItem.objects.create(blueprint=self.blueprint, product=Product.objects.create(company=self.company, name="Checklist"))

        requirements = blueprint_requirements(self.company.id, self.blueprint.id)

        by_name = {req.product.name: req for req in requirements}
        self.assertEqual(
            {name: req.required_quantity for name, req in by_name.items()},
            {"Gauze pad": 10, "Saline": 2, "Checklist": 1},
        )
        self.assertEqual(by_name["Saline"].unit_of_measure, "BAG")
        self.assertIsNone(by_name["Checklist"].part)
        self.assertIsNone(by_name["Checklist"].unit_of_measure)

    def test_requirements_for_foreign_blueprint_are_not_found(self):
        with self.assertRaises(DomainNotFound):
            blueprint_requirements(self.other_company.id, self.blueprint.id)

    def test_requirements_endpoint(self):
        self.client.force_authenticate(user=self.viewer)

        response = self.client.get(f"/api/v1/blueprints/{self.blueprint.id}/requirements/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()[0]["required_quantity"], 10)
        self.assertEqual(response.json()[0]["unit_of_measure"], "EA")

    def test_supervisor_can_remove_blueprint_item(self):
        self.client.force_authenticate(user=self.supervisor)

        response = self.client.delete(f"/api/v1/blueprints/{self.blueprint.id}/items/{self.blueprint_item.id}/")

        self.assertEqual(response.status_code, 204)
        self.assertFalse(BlueprintItem.objects.filter(id=self.blueprint_item.id).exists())

    def test_operator_cannot_remove_blueprint_item(self):
        self.client.force_authenticate(user=self.operator)

        response = self.client.delete(f"/api/v1/blueprints/{self.blueprint.id}/items/{self.blueprint_item.id}/")

        self.assertEqual(response.status_code, 403)

    def test_loadout_resolver_reuses_active_loadout(self):
        first = resolve_or_create_loadout(self.company.id, self.blueprint.id, self.warehouse.id)
        second = resolve_or_create_loadout(self.company.id, self.blueprint.id, self.warehouse.id)
        third = resolve_or_create_loadout(self.company.id, self.blueprint.id, self.truck.id)

        self.assertEqual(first, second)
        self.assertNotEqual(first, third)
        self.assertEqual(ContainerLoadout.objects.get(id=third).serial_suffix, "002")

    def test_loadout_resolver_rejects_foreign_location(self):
        foreign = Location.objects.create(company=self.other_company, name="Foreign", code="F-1")

        with self.assertRaises(ReferentialError):
            resolve_or_create_loadout(self.company.id, self.blueprint.id, foreign.id)


class ScanDecoderTests(SimpleTestCase):
    def test_gs1_element_string(self):
        result = decode_scan("(01)00312345678906(17)250600(10)LOT42(21)SN-1(30)12")

        self.assertEqual(result.format, "gs1")
        self.assertEqual(result.gtin, "00312345678906")
        self.assertEqual(result.lot, "LOT42")
        self.assertEqual(result.serial, "SN-1")
        self.assertEqual(result.quantity, 12)
        self.assertEqual(result.expiration_date, date(2025, 6, 30))

    def test_gs1_manufacturer_identifier(self):
        result = decode_scan("(240)MEDLINE(10)B7")

        self.assertEqual(result.manufacturer, "MEDLINE")
        self.assertEqual(result.sku, "MEDLINE")
        self.assertEqual(result.lot, "B7")

    def test_gs1_dates(self):
        self.assertEqual(parse_gs1_date("240229"), date(2024, 2, 29))
        self.assertEqual(parse_gs1_date("991231"), date(1999, 12, 31))
        self.assertEqual(parse_gs1_date("240200"), date(2024, 2, 29))
        self.assertIsNone(parse_gs1_date("241301"))
        self.assertIsNone(parse_gs1_date("2402"))

    def test_hibc(self):
        result = decode_scan("+H123ABC9/1LOT4567")

        self.assertEqual(result.format, "hibc")
        self.assertEqual(result.sku, "3ABC9")
        self.assertEqual(result.lot, "LOT4567")

    def test_hibc_short_primary_has_no_sku(self):
        result = decode_scan("+H12/1LOT9")

        self.assertEqual(result.format, "hibc")
        self.assertIsNone(result.sku)
        self.assertEqual(result.lot, "LOT9")

    def test_delimited(self):
        result = decode_scan("SKU-1|LOT-9|25")

        self.assertEqual(result.format, "delimited-|")
        self.assertEqual(result.sku, "SKU-1")
        self.assertEqual(result.lot, "LOT-9")
        self.assertEqual(result.quantity, 25)

    def test_raw_and_empty_input(self):
        self.assertEqual(decode_scan("  ABC123 ").as_dict()["lot"], "ABC123")
        self.assertEqual(decode_scan("ABC123").format, "raw")
        self.assertEqual(decode_scan("").format, "unknown")
        self.assertEqual(decode_scan(None).format, "unknown")

    def test_as_dict_serialises_dates(self):
        payload = decode_scan("(17)251231").as_dict()

        self.assertEqual(payload["expiration_date"], "2025-12-31")


class ScanEndpointTests(WarehouseFixtureMixin, TestCase):
    def test_decode_endpoint(self):
        self.client.force_authenticate(user=self.viewer)

        response = self.client.post("/api/v1/scan/decode/", {"raw": "(01)00312345678906(10)L1"}, format="json")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["format"], "gs1")
        self.assertEqual(response.json()["lot"], "L1")
