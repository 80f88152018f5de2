# apps/utils/tests.py
import json
import logging
from unittest import mock

from django.db import OperationalError, transaction
from django.test import SimpleTestCase, TransactionTestCase, override_settings
from psycopg import errors as psycopg_errors

from rest_framework import status
from rest_framework.exceptions import NotAuthenticated

from .exceptions import (
    InsufficientStock,
    OrderNotFound,
    TransientStoreError,
    ValidationError,
    custom_exception_handler,
)
from .logging import JSONFormatter
from .resilience import is_transient_store_error, retry_on_transient_error
from .validators import validate_choice, validate_length, validate_positive_int


class ValidatorTests(SimpleTestCase):
    def test_positive_int(self):
        self.assertEqual(validate_positive_int(3, "quantity"), 3)
        self.assertEqual(validate_positive_int("7", "quantity"), 7)
        for bad in (0, -1, 2.5, "abc", None, True):
            with self.subTest(value=bad):
                with self.assertRaises(ValidationError):
                    validate_positive_int(bad, "quantity")

    def test_length(self):
        self.assertEqual(validate_length("  hello  ", "notes"), "hello")
        self.assertEqual(validate_length(None, "notes"), "")
        with self.assertRaises(ValidationError):
            validate_length("", "shipping_address", required=True)
        with self.assertRaises(ValidationError):
            validate_length("abc", "shipping_address", min_length=10)
        with self.assertRaises(ValidationError):
            validate_length("x" * 11, "tracking_number", max_length=10)

    def test_choice(self):
        self.assertEqual(validate_choice("paypal", "payment_method", {"paypal"}), "paypal")
        with self.assertRaises(ValidationError) as ctx:
            validate_choice("cash", "payment_method", {"paypal", "stripe"})
        self.assertEqual(ctx.exception.details, {"field": "payment_method"})


class ExceptionHandlerTests(SimpleTestCase):
    def test_business_error_maps_to_status(self):
        resp = custom_exception_handler(InsufficientStock(4, 9, available=2), {})
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resp.data["code"], "insufficient_stock")
        self.assertEqual(resp.data["details"], {"product_id": 4, "requested": 9, "available": 2})

        resp = custom_exception_handler(OrderNotFound(12), {})
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)

    def test_transient_error_is_service_unavailable(self):
        resp = custom_exception_handler(TransientStoreError(), {})
        self.assertEqual(resp.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertEqual(resp.data["code"], "transient_store_error")

    def test_drf_errors_pass_through(self):
        resp = custom_exception_handler(NotAuthenticated(), {})
        self.assertEqual(resp.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_unknown_error_is_logged(self):
        with self.assertLogs("apps.utils.exceptions", level="ERROR"):
            resp = custom_exception_handler(RuntimeError("boom"), {})
        self.assertEqual(resp.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)


class TransientErrorDetectionTests(SimpleTestCase):
    def test_classification(self):
        self.assertTrue(is_transient_store_error(OperationalError("deadlock detected")))
        self.assertTrue(is_transient_store_error(OperationalError(1213, "Deadlock found")))
        self.assertTrue(is_transient_store_error(OperationalError("database is locked")))
        self.assertFalse(is_transient_store_error(OperationalError("no such table: orders")))
        self.assertFalse(is_transient_store_error(ValueError("deadlock")))

    def test_pgcode(self):
        exc = OperationalError("serialization failure")
        exc.pgcode = "40001"
        self.assertTrue(is_transient_store_error(exc))

    def test_psycopg_sqlstate_on_wrapped_error(self):
        # No "deadlock" in the message: only the driver's sqlstate identifies it
        for driver_error in (
            psycopg_errors.DeadlockDetected("lock cycle between transactions"),
            psycopg_errors.SerializationFailure("concurrent update"),
        ):
            with self.subTest(sqlstate=driver_error.sqlstate):
                exc = OperationalError(str(driver_error))
                exc.__cause__ = driver_error
                self.assertTrue(is_transient_store_error(exc))

        exc = OperationalError("relation missing")
        exc.__cause__ = psycopg_errors.UndefinedTable("relation missing")
        self.assertFalse(is_transient_store_error(exc))


@override_settings(TRANSIENT_ERROR_MAX_ATTEMPTS=2, TRANSIENT_ERROR_BACKOFF=0)
class RetryTests(TransactionTestCase):
    """
    TransactionTestCase: the retry only runs outside an atomic block.
    """

    def test_retries_once_then_succeeds(self):
        op = mock.Mock(side_effect=[OperationalError("deadlock detected"), "ok"])
        wrapped = retry_on_transient_error("PlaceOrder")(op)

        with self.assertLogs("apps.utils.resilience", level="WARNING") as logs:
            self.assertEqual(wrapped(), "ok")
        self.assertEqual(op.call_count, 2)
        self.assertEqual(logs.records[0].attempt, 1)

    def test_gives_up_after_second_failure(self):
        op = mock.Mock(side_effect=OperationalError("deadlock detected"))
        wrapped = retry_on_transient_error("CancelOrder")(op)

        with self.assertLogs("apps.utils.resilience", level="ERROR") as logs:
            with self.assertRaises(TransientStoreError) as ctx:
                wrapped()
        self.assertEqual(op.call_count, 2)
        self.assertEqual(logs.records[0].attempt, 2)
        self.assertIsInstance(ctx.exception.__cause__, OperationalError)

    def test_business_errors_are_not_retried(self):
        op = mock.Mock(side_effect=OrderNotFound(5))
        wrapped = retry_on_transient_error("GetOrder")(op)

        with self.assertRaises(OrderNotFound):
            wrapped()
        self.assertEqual(op.call_count, 1)

    def test_no_retry_inside_outer_transaction(self):
        op = mock.Mock(side_effect=OperationalError("deadlock detected"))
        wrapped = retry_on_transient_error("PlaceOrder")(op)

        with self.assertRaises(TransientStoreError):
            with transaction.atomic():
                wrapped()
        self.assertEqual(op.call_count, 1)


class JSONFormatterTests(SimpleTestCase):
    def make_record(self, msg, args=None, **extra):
        record = logging.LogRecord("apps.orders", logging.INFO, __file__, 10, msg, args, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_context_keys_are_copied(self):
        line = json.loads(JSONFormatter().format(self.make_record("placed", order_id=7, user_id=3)))

        self.assertEqual(line["msg"], "placed")
        self.assertEqual(line["lvl"], "INFO")
        self.assertEqual((line["order_id"], line["user_id"]), (7, 3))
        self.assertNotIn("product_id", line)

    def test_sensitive_keys_are_redacted(self):
        record = self.make_record({"card_number": "4111111111111111", "amount": "10.00"})
        line = json.loads(JSONFormatter().format(record))

        self.assertIn("REDACTED", line["msg"])
        self.assertNotIn("4111", line["msg"])
        self.assertIn("10.00", line["msg"])
