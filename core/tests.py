import json
import logging
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.test import SimpleTestCase, TestCase
from rest_framework.test import APIClient

from common.audit import create_audit_log
from common.logging import JsonFormatter
from core.models import Company, DocumentSequence
from core.sequences import allocate_number, highest_suffix, peek_number


class CompanyScopedCoreTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user_model = get_user_model()

        self.company_a = Company.objects.create(code="CA", name="Company A")
        self.company_b = Company.objects.create(code="CB", name="Company B")

        self.user_a = self.user_model.objects.create_user(
            username="core-user-a",
            password="pass1234",
            company=self.company_a,
            role=self.user_model.Role.OPERATOR,
        )
        self.superuser = self.user_model.objects.create_superuser(
            username="root",
            password="pass1234",
            email="root@example.com",
        )

    def test_user_only_sees_own_company(self):
        self.client.force_authenticate(user=self.user_a)

        response = self.client.get("/api/v1/companies/")

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(sorted(payload.keys()), ["count", "next", "previous", "results"])
        ids = {item["id"] for item in payload["results"]}
        self.assertEqual(ids, {str(self.company_a.id)})

    def test_superuser_sees_every_company(self):
        self.client.force_authenticate(user=self.superuser)

        response = self.client.get("/api/v1/companies/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["count"], 2)

    def test_other_company_detail_is_not_found(self):
        self.client.force_authenticate(user=self.user_a)

        response = self.client.get(f"/api/v1/companies/{self.company_b.id}/")

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["code"], "not_found")

    def test_anonymous_request_uses_error_envelope(self):
        response = self.client.get("/api/v1/companies/")

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["code"], "not_authenticated")
        self.assertEqual(response.json()["status"], 401)


class AuditLogAccessTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user_model = get_user_model()
        self.company = Company.objects.create(code="AL", name="Audit Co")
        self.other_company = Company.objects.create(code="AX", name="Other Audit Co")
        self.admin = self.user_model.objects.create_user(
            username="audit-admin",
            password="pass1234",
            company=self.company,
            role=self.user_model.Role.ADMIN,
        )
        self.supervisor = self.user_model.objects.create_user(
            username="audit-supervisor",
            password="pass1234",
            company=self.company,
            role=self.user_model.Role.SUPERVISOR,
        )
        self.own_log = create_audit_log(actor=self.admin, company_id=self.company.id, action="transfer_order.create", entity="transfer_order")
        self.foreign_log = create_audit_log(company_id=self.other_company.id, action="transfer_order.create", entity="transfer_order")

    def test_admin_lists_own_company_logs(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.get("/api/v1/admin/audit-logs/")

        self.assertEqual(response.status_code, 200)
        ids = {item["id"] for item in response.json()["results"]}
        self.assertEqual(ids, {str(self.own_log.id)})

    def test_supervisor_cannot_read_audit_logs_and_denial_is_logged(self):
        self.client.force_authenticate(user=self.supervisor)

        with self.assertLogs("security.authorization", level="WARNING") as cm:
            response = self.client.get("/api/v1/admin/audit-logs/")

        self.assertEqual(response.status_code, 403)
        self.assertTrue(any("permission_denied" in message for message in cm.output))

    def test_audit_logs_are_read_only(self):
        self.client.force_authenticate(user=self.admin)

        patch_res = self.client.patch(f"/api/v1/admin/audit-logs/{self.own_log.id}/", {"action": "changed"}, format="json")
        delete_res = self.client.delete(f"/api/v1/admin/audit-logs/{self.own_log.id}/")

        self.assertEqual(patch_res.status_code, 405)
        self.assertEqual(delete_res.status_code, 405)
        self.own_log.refresh_from_db()
        self.assertEqual(self.own_log.action, "transfer_order.create")

    def test_audit_logs_filter_by_action(self):
        create_audit_log(actor=self.admin, company_id=self.company.id, action="receiving.complete", entity="receiving")
        self.client.force_authenticate(user=self.admin)

        response = self.client.get("/api/v1/admin/audit-logs/?action=receiving.complete")

        self.assertEqual(response.status_code, 200)
        self.assertEqual([item["action"] for item in response.json()["results"]], ["receiving.complete"])

    def test_audit_logs_export_csv(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.get("/api/v1/admin/audit-logs/export/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response["Content-Type"], "text/csv")
        body = response.content.decode()
        self.assertIn("transfer_order.create", body)
        self.assertIn("audit-admin", body)


class AuthenticationTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user_model = get_user_model()
        self.company = Company.objects.create(code="AU", name="Auth Co")
        self.user = self.user_model.objects.create_user(
            username="floor-lead",
            email="Lead@Example.com",
            password="pass1234",
            company=self.company,
            role=self.user_model.Role.SUPERVISOR,
        )

    def test_token_can_be_obtained_with_email(self):
        response = self.client.post("/api/v1/token/", {"username": "lead@example.com", "password": "pass1234"}, format="json")

        self.assertEqual(response.status_code, 200)
        self.assertIn("access", response.json())
        self.assertIn("refresh", response.json())

    def test_wrong_password_is_rejected(self):
        response = self.client.post("/api/v1/token/", {"username": "floor-lead", "password": "nope"}, format="json")

        self.assertEqual(response.status_code, 401)

    def test_email_is_normalised_and_unique_ignoring_case(self):
        self.assertEqual(self.user.email, "lead@example.com")

        with self.assertRaises(IntegrityError), transaction.atomic():
            self.user_model.objects.create_user(username="copy", email="LEAD@example.com", password="pass1234")


class HealthCheckTests(TestCase):
    def setUp(self):
        self.client = APIClient()

    def test_healthz_echoes_request_id(self):
        response = self.client.get("/api/v1/healthz/", HTTP_X_REQUEST_ID="req-123")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok", "request_id": "req-123"})
        self.assertEqual(response["X-Request-ID"], "req-123")

    def test_readyz_reports_database(self):
        response = self.client.get("/api/v1/readyz/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ready")

    def test_readyz_reports_database_failure(self):
        with patch("core.views.connections") as connections:
            connections.__getitem__.return_value.cursor.side_effect = RuntimeError("db down")
            with self.assertLogs("core.views", level="ERROR") as logs:
                response = self.client.get("/api/v1/readyz/")

        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.json()["detail"], "db down")
        self.assertTrue(any("readiness_check_failed" in entry for entry in logs.output))


class DocumentSequenceTests(TestCase):
    def setUp(self):
        self.company = Company.objects.create(code="SQ", name="Sequence Co")

    def test_highest_suffix_ignores_non_numeric_values(self):
        self.assertEqual(highest_suffix(["TO-0007", "TO-0012", "manual", None, "PO2401-0003"]), 12)
        self.assertEqual(highest_suffix([]), 0)

    def test_first_allocation_seeds_from_existing_numbers(self):
        value = allocate_number(self.company.id, "transfer_order", existing_numbers=["TO-0009"])

        self.assertEqual(value, 10)
        self.assertEqual(DocumentSequence.objects.get(company=self.company, key="transfer_order").last_value, 10)

    def test_allocation_is_monotonic_per_key(self):
        values = [allocate_number(self.company.id, "transfer_order") for _ in range(3)]
        other = allocate_number(self.company.id, "purchase_order")

        self.assertEqual(values, [1, 2, 3])
        self.assertEqual(other, 1)

    def test_peek_does_not_advance(self):
        allocate_number(self.company.id, "transfer_order")

        self.assertEqual(peek_number(self.company.id, "transfer_order"), 2)
        self.assertEqual(peek_number(self.company.id, "transfer_order"), 2)
        self.assertEqual(peek_number(self.company.id, "unused", existing_numbers=["X-0004"]), 5)


class JsonFormatterTests(SimpleTestCase):
    def test_extra_fields_are_copied(self):
        record = logging.LogRecord("inventory.allocation", logging.WARNING, __file__, 1, "short %s", (6,), None)
        record.company_id = "c-1"
        record.order_number = "TO-0001"

        payload = json.loads(JsonFormatter().format(record))

        self.assertEqual(payload["message"], "short 6")
        self.assertEqual(payload["level"], "WARNING")
        self.assertEqual(payload["company_id"], "c-1")
        self.assertEqual(payload["order_number"], "TO-0001")
        self.assertNotIn("receiving_id", payload)
