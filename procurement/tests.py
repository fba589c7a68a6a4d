import re
from datetime import date
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework.test import APIClient

from common.exceptions import DomainConflict
from core.models import Company
from inventory.models import Inventory, InventoryMovement, Location, Lot, Part, Serial
from procurement.models import PurchaseOrder, PurchaseOrderLine, Receiving, ReceivingItem, Supplier
from procurement.receiving import add_receiving_item, complete_receiving, create_receiving
from procurement.services import create_purchase_order, recompute_purchase_order_status


class ProcurementFixtureMixin:
    def setUp(self):
        self.client = APIClient()
        self.user_model = get_user_model()

        self.company = Company.objects.create(code="ACME", name="Acme Logistics")
        self.other_company = Company.objects.create(code="OTHER", name="Other Co")
        self.dock = Location.objects.create(company=self.company, name="Receiving dock", code="DOCK")
        self.supplier = Supplier.objects.create(company=self.company, name="Medline Supply", code="MEDLINE")
        self.part = Part.objects.create(
            company=self.company, sku="GAUZE-4X4", name="Gauze pad", gtin="00312345678906", unit_of_measure="EA"
        )

        self.viewer = self._user("viewer", self.user_model.Role.VIEWER)
        self.operator = self._user("operator", self.user_model.Role.OPERATOR)
        self.supervisor = self._user("supervisor", self.user_model.Role.SUPERVISOR)

    def _user(self, username, role):
        return self.user_model.objects.create_user(username=username, password="pass1234", company=self.company, role=role)

    def _purchase_order(self, quantity=10):
        return create_purchase_order(
            self.company.id,
            supplier_id=self.supplier.id,
            lines=[{"part_id": self.part.id, "quantity_ordered": quantity, "unit_cost": Decimal("2.50")}],
            status=PurchaseOrder.Status.APPROVED,
        )

    def _receive_against(self, purchase_order, quantity):
        receiving = create_receiving(self.company.id, location_id=self.dock.id, purchase_order_id=purchase_order.id)
        add_receiving_item(
            self.company.id,
            receiving.id,
            part_id=self.part.id,
            quantity_received=quantity,
            purchase_order_line_id=purchase_order.lines.get().id,
            lot_number="L1",
        )
        return complete_receiving(self.company.id, receiving.id)


class ReceivingCompletionTests(ProcurementFixtureMixin, TestCase):
    def test_completion_creates_lot_and_credits_stock(self):
        receiving = Receiving.objects.create(company=self.company, location=self.dock)
        ReceivingItem.objects.create(receiving=receiving, part=self.part, lot_number="L1", quantity_received=5)

        complete_receiving(self.company.id, receiving.id)

        lot = Lot.objects.get(company=self.company, part=self.part, lot_number="L1")
        row = Inventory.objects.get(company=self.company, part=self.part, lot=lot)
        self.assertEqual(
            (row.quantity_on_hand, row.quantity_available, row.quantity_reserved),
            (5, 5, 0),
        )
        self.assertEqual(row.location_id, self.dock.id)
        receiving.refresh_from_db()
        self.assertEqual(receiving.status, Receiving.Status.COMPLETED)
        self.assertIsNotNone(receiving.completed_at)
        self.assertEqual(receiving.items.get().lot_id, lot.id)

    def test_second_completion_is_rejected_without_posting_again(self):
        receiving = Receiving.objects.create(company=self.company, location=self.dock)
        ReceivingItem.objects.create(receiving=receiving, part=self.part, lot_number="L1", quantity_received=5)
        complete_receiving(self.company.id, receiving.id)

        with self.assertRaises(DomainConflict):
            complete_receiving(self.company.id, receiving.id)

        row = Inventory.objects.get(company=self.company, part=self.part)
        self.assertEqual((row.quantity_on_hand, row.quantity_available), (5, 5))
        self.assertEqual(InventoryMovement.objects.filter(movement_type=InventoryMovement.MovementType.RECEIPT).count(), 1)

    def test_repeat_lot_adds_to_existing_row(self):
        for _ in range(2):
            receiving = create_receiving(self.company.id, location_id=self.dock.id)
            add_receiving_item(self.company.id, receiving.id, part_id=self.part.id, quantity_received=3, lot_number="L1")
            complete_receiving(self.company.id, receiving.id)

        row = Inventory.objects.get(company=self.company, part=self.part)
        self.assertEqual((row.quantity_on_hand, row.quantity_available), (6, 6))

    def test_missing_lot_number_gets_generated_lot(self):
        receiving = create_receiving(self.company.id, location_id=self.dock.id)
        add_receiving_item(self.company.id, receiving.id, part_id=self.part.id, quantity_received=2)

        complete_receiving(self.company.id, receiving.id)

        lot = Lot.objects.get(company=self.company, part=self.part)
        self.assertTrue(lot.lot_number.startswith("LOT-"))
        self.assertTrue(lot.lot_number.endswith("-GAUZE-4X4"))
        self.assertEqual(Inventory.objects.get(lot=lot).quantity_on_hand, 2)

    def test_serial_without_lot_is_tracked(self):
        receiving = create_receiving(self.company.id, location_id=self.dock.id)
        item = add_receiving_item(self.company.id, receiving.id, part_id=self.part.id, quantity_received=1, serial_number="SN1")

        complete_receiving(self.company.id, receiving.id)

        self.assertEqual(item.lot_number, "SER-SN1")
        serial = Serial.objects.get(company=self.company, serial_number="SN1")
        self.assertEqual(serial.lot.lot_number, "SER-SN1")
        self.assertEqual(Inventory.objects.get(lot=serial.lot).serial_id, serial.id)

    def test_empty_session_cannot_complete(self):
        receiving = create_receiving(self.company.id, location_id=self.dock.id)

        with self.assertRaises(DomainConflict):
            complete_receiving(self.company.id, receiving.id)

        receiving.refresh_from_db()
        self.assertEqual(receiving.status, Receiving.Status.PENDING)

    def test_expiration_date_is_kept_on_lot(self):
        receiving = create_receiving(self.company.id, location_id=self.dock.id)
        add_receiving_item(
            self.company.id,
            receiving.id,
            part_id=self.part.id,
            quantity_received=4,
            lot_number="EXP-1",
            expiration_date=date(2026, 1, 31),
        )

        complete_receiving(self.company.id, receiving.id)

        self.assertEqual(Lot.objects.get(lot_number="EXP-1").expiration_date, date(2026, 1, 31))


class PurchaseOrderRollupTests(ProcurementFixtureMixin, TestCase):
    def test_partial_then_full_receipt(self):
        po = self._purchase_order(quantity=10)

        self._receive_against(po, 4)
        po.refresh_from_db()
        self.assertEqual(po.status, PurchaseOrder.Status.PARTIAL)
        self.assertEqual(po.lines.get().quantity_received, 4)

        self._receive_against(po, 6)
        po.refresh_from_db()
        self.assertEqual(po.status, PurchaseOrder.Status.RECEIVED)
        self.assertIsNotNone(po.received_at)

    def test_receiving_copies_po_number_and_supplier(self):
        po = self._purchase_order()

        receiving = create_receiving(self.company.id, location_id=self.dock.id, purchase_order_id=po.id)

        self.assertEqual(receiving.po_number, po.po_number)
        self.assertEqual(receiving.supplier_id, self.supplier.id)

    def test_cancelled_order_cannot_be_received(self):
        po = self._purchase_order()
        PurchaseOrder.objects.filter(pk=po.pk).update(status=PurchaseOrder.Status.CANCELLED)

        with self.assertRaises(DomainConflict):
            create_receiving(self.company.id, location_id=self.dock.id, purchase_order_id=po.id)

    def test_rollup_leaves_cancelled_orders_alone(self):
        po = self._purchase_order()
        PurchaseOrderLine.objects.filter(purchase_order=po).update(quantity_received=10)
        PurchaseOrder.objects.filter(pk=po.pk).update(status=PurchaseOrder.Status.CANCELLED)
        po.refresh_from_db()

        recompute_purchase_order_status(po)

        po.refresh_from_db()
        self.assertEqual(po.status, PurchaseOrder.Status.CANCELLED)

    def test_rollup_is_idempotent(self):
        po = self._purchase_order()
        PurchaseOrderLine.objects.filter(purchase_order=po).update(quantity_received=3)

        recompute_purchase_order_status(po)
        recompute_purchase_order_status(po)

        po.refresh_from_db()
        self.assertEqual(po.status, PurchaseOrder.Status.PARTIAL)


class PurchaseOrderApiTests(ProcurementFixtureMixin, TestCase):
    def test_supervisor_creates_purchase_order(self):
        self.client.force_authenticate(user=self.supervisor)

        response = self.client.post(
            "/api/v1/purchase-orders/",
            {
                "supplier_id": str(self.supplier.id),
                "lines": [{"part_id": str(self.part.id), "quantity_ordered": 10, "unit_cost": "2.50"}],
            },
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        payload = response.json()
        self.assertRegex(payload["po_number"], re.compile(r"^PO\d{4}-0001$"))
        self.assertEqual(payload["status"], "draft")
        self.assertEqual(payload["lines"][0]["line_total"], "25.00")
        self.assertEqual(payload["lines"][0]["quantity_outstanding"], 10)

    def test_operator_cannot_create_purchase_order(self):
        self.client.force_authenticate(user=self.operator)

        response = self.client.post(
            "/api/v1/purchase-orders/",
            {"supplier_id": str(self.supplier.id), "lines": [{"part_id": str(self.part.id), "quantity_ordered": 1}]},
            format="json",
        )

        self.assertEqual(response.status_code, 403)

    def test_purchase_order_without_lines_is_rejected(self):
        self.client.force_authenticate(user=self.supervisor)

        response = self.client.post("/api/v1/purchase-orders/", {"supplier_id": str(self.supplier.id), "lines": []}, format="json")

        self.assertEqual(response.status_code, 400)
        self.assertIn("lines", response.json()["errors"])

    def test_foreign_supplier_is_a_referential_error(self):
        foreign = Supplier.objects.create(company=self.other_company, name="Elsewhere", code="ELSE")
        self.client.force_authenticate(user=self.supervisor)

        response = self.client.post(
            "/api/v1/purchase-orders/",
            {"supplier_id": str(foreign.id), "lines": [{"part_id": str(self.part.id), "quantity_ordered": 1}]},
            format="json",
        )

        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["code"], "referential_error")

    def test_line_update_rolls_up_status(self):
        po = self._purchase_order(quantity=10)
        line = po.lines.get()
        self.client.force_authenticate(user=self.supervisor)

        response = self.client.patch(f"/api/v1/purchase-orders/{po.id}/lines/{line.id}/", {"quantity_received": 10}, format="json")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "received")

    def test_next_number_preview(self):
        self._purchase_order()
        self.client.force_authenticate(user=self.viewer)

        response = self.client.get("/api/v1/purchase-orders/next-number/")

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["po_number"].endswith("-0002"))


class ReceivingApiTests(ProcurementFixtureMixin, TestCase):
    def test_receiving_flow(self):
        self.client.force_authenticate(user=self.operator)

        created = self.client.post("/api/v1/receiving/", {"location_id": str(self.dock.id)}, format="json")
        self.assertEqual(created.status_code, 201)
        receiving_id = created.json()["id"]

        item = self.client.post(
            f"/api/v1/receiving/{receiving_id}/items/",
            {"part_id": str(self.part.id), "quantity_received": 5, "lot_number": "L1"},
            format="json",
        )
        self.assertEqual(item.status_code, 201)
        self.assertEqual(item.json()["gtin"], "00312345678906")

        completed = self.client.post(f"/api/v1/receiving/{receiving_id}/complete/", {}, format="json")
        self.assertEqual(completed.status_code, 200)
        self.assertEqual(completed.json()["status"], "completed")
        self.assertEqual(completed.json()["received_by"], str(self.operator.id))

        again = self.client.post(f"/api/v1/receiving/{receiving_id}/complete/", {}, format="json")
        self.assertEqual(again.status_code, 409)
        self.assertEqual(again.json()["code"], "conflict")

        row = Inventory.objects.get(company=self.company, part=self.part, lot__lot_number="L1")
        self.assertEqual((row.quantity_on_hand, row.quantity_available), (5, 5))

    def test_empty_completion_returns_conflict(self):
        receiving = create_receiving(self.company.id, location_id=self.dock.id)
        self.client.force_authenticate(user=self.operator)

        response = self.client.post(f"/api/v1/receiving/{receiving.id}/complete/", {}, format="json")

        self.assertEqual(response.status_code, 409)

    def test_items_can_be_edited_and_removed_before_completion(self):
        receiving = create_receiving(self.company.id, location_id=self.dock.id)
        item = add_receiving_item(self.company.id, receiving.id, part_id=self.part.id, quantity_received=2, lot_number="OLD")
        extra = add_receiving_item(self.company.id, receiving.id, part_id=self.part.id, quantity_received=1, lot_number="X")
        self.client.force_authenticate(user=self.operator)

        patched = self.client.patch(
            f"/api/v1/receiving/{receiving.id}/items/{item.id}/",
            {"lot_number": "NEW", "quantity_received": 7},
            format="json",
        )
        removed = self.client.delete(f"/api/v1/receiving/{receiving.id}/items/{extra.id}/")

        self.assertEqual(patched.status_code, 200)
        self.assertIsNone(patched.json()["lot"])
        self.assertEqual(removed.status_code, 204)

        complete_receiving(self.company.id, receiving.id)
        row = Inventory.objects.get(company=self.company, lot__lot_number="NEW")
        self.assertEqual(row.quantity_on_hand, 7)
        self.assertFalse(Inventory.objects.filter(lot__lot_number="X").exists())

    def test_completed_items_are_locked(self):
        receiving = create_receiving(self.company.id, location_id=self.dock.id)
        item = add_receiving_item(self.company.id, receiving.id, part_id=self.part.id, quantity_received=2, lot_number="L1")
        complete_receiving(self.company.id, receiving.id)
        self.client.force_authenticate(user=self.operator)

        response = self.client.delete(f"/api/v1/receiving/{receiving.id}/items/{item.id}/")

        self.assertEqual(response.status_code, 409)

    def test_viewer_cannot_receive(self):
        self.client.force_authenticate(user=self.viewer)

        response = self.client.post("/api/v1/receiving/", {"location_id": str(self.dock.id)}, format="json")

        self.assertEqual(response.status_code, 403)

    def test_scan_suggests_matching_part_and_lot(self):
        Lot.objects.create(company=self.company, part=self.part, lot_number="L1")
        self.client.force_authenticate(user=self.operator)

        response = self.client.post("/api/v1/receiving/scan/", {"raw": "(01)00312345678906(10)L1"}, format="json")

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["decoded"]["format"], "gs1")
        self.assertEqual(payload["matches"]["suggested_part_id"], str(self.part.id))
        self.assertEqual([lot["lot_number"] for lot in payload["matches"]["lots"]], ["L1"])

    def test_scan_matches_supplier_by_manufacturer(self):
        self.client.force_authenticate(user=self.operator)

        response = self.client.post("/api/v1/receiving/scan/", {"raw": "(240)MEDLINE"}, format="json")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["matches"]["suppliers"][0]["code"], "MEDLINE")
