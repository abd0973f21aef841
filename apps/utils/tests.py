# apps/utils/tests.py
from decimal import Decimal
from unittest.mock import patch

from django.test import TestCase, SimpleTestCase
from rest_framework.test import APIClient

from .exceptions import BusinessLogicException, custom_exception_handler
from .logging import JSONFormatter
from .utils import format_currency, to_decimal
from .validators import is_valid_email, is_valid_phone, is_valid_uuid, validate_lat_lng


class ValidatorTests(SimpleTestCase):
    def test_email_validator(self):
        self.assertTrue(is_valid_email("usuario@correo.com"))
        self.assertTrue(is_valid_email("test@example.co.uk"))
        for bad in ["invalid", "test@", "@test.com", "", None]:
            self.assertFalse(is_valid_email(bad))

    def test_phone_validator(self):
        self.assertTrue(is_valid_phone("3001234567"))
        self.assertTrue(is_valid_phone("+57 310 987 6543"))
        self.assertTrue(is_valid_phone("300-123-4567"))
        # Landline, too short, wrong prefix
        self.assertFalse(is_valid_phone("6011234567"))
        self.assertFalse(is_valid_phone("300123"))
        self.assertFalse(is_valid_phone(None))

    def test_lat_lng_validator(self):
        validate_lat_lng(4.711, -74.0721)

        with self.assertRaises(ValueError):
            validate_lat_lng(91.0, -74.0)

        with self.assertRaises(ValueError):
            validate_lat_lng(4.7, 181.0)

    def test_uuid_validator(self):
        self.assertTrue(is_valid_uuid("6f1c2b9e-3d4a-4f5b-8c7d-1e2f3a4b5c6d"))
        for bad in ["abc", "----", "", None]:
            self.assertFalse(is_valid_uuid(bad))


class NumberHelperTests(SimpleTestCase):
    def test_to_decimal_is_lenient(self):
        self.assertEqual(to_decimal("15000"), Decimal("15000"))
        self.assertEqual(to_decimal(" 2.5 "), Decimal("2.5"))
        self.assertEqual(to_decimal("abc"), Decimal("0"))
        self.assertEqual(to_decimal(None), Decimal("0"))
        self.assertEqual(to_decimal(True), Decimal("0"))
        self.assertEqual(to_decimal("NaN"), Decimal("0"))

    def test_format_currency(self):
        self.assertEqual(format_currency(25000), "$ 25.000")
        self.assertEqual(format_currency(1234567), "$ 1.234.567")
        self.assertEqual(format_currency("1500.5", show_decimals=True), "$ 1.500,50")
        self.assertEqual(format_currency("oops"), "$ 0")


class ExceptionHandlerTests(SimpleTestCase):
    def test_business_error_maps_to_400(self):
        exc = BusinessLogicException("Nope", code="invalid_transition", extra={"allowed": []})
        response = custom_exception_handler(exc, {})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data, {"error": "Nope", "code": "invalid_transition", "allowed": []})

    def test_unhandled_error_maps_to_500(self):
        with self.assertLogs("apps.utils.exceptions", level="ERROR"):
            response = custom_exception_handler(RuntimeError("boom"), {})
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.data["code"], "server_error")


class JSONFormatterTests(SimpleTestCase):
    def test_sensitive_keys_are_scrubbed(self):
        import json
        import logging

        msg = {"event": "ws_auth", "ticket": "secret-ticket", "nested": {"password": "hunter2"}}
        record = logging.LogRecord("apps.test", logging.INFO, __file__, 1, msg, None, None)
        record.order_id = "abc"
        output = json.loads(JSONFormatter().format(record))
        self.assertEqual(output["order_id"], "abc")
        self.assertIn("ws_auth", output["msg"])
        self.assertNotIn("secret-ticket", output["msg"])
        self.assertNotIn("hunter2", output["msg"])


class UtilsEndpointTests(TestCase):
    def setUp(self):
        self.client = APIClient()

    def test_global_config_exposes_fees(self):
        response = self.client.get("/api/v1/utils/config/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["currency"], "COP")
        self.assertEqual(Decimal(str(response.data["service_fee"])), Decimal("2000"))
        self.assertEqual(Decimal(str(response.data["delivery_base_fee"])), Decimal("4000"))

    def test_health_check(self):
        response = self.client.get("/api/v1/utils/health/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["components"]["db"], "ok")

    @patch("apps.utils.health.connection")
    def test_health_check_reports_db_failure(self, mock_connection):
        mock_connection.cursor.side_effect = Exception("db down")
        with self.assertLogs("apps.utils.health", level="WARNING"):
            response = self.client.get("/api/v1/utils/health/")
        self.assertEqual(response.status_code, 503)
