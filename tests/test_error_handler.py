"""
Unit tests for heuristic error triage.

Classification order: network, permission, validation, timeout, server,
not found, generic. Titles come from the classified type.
"""

import json
import unittest
from unittest import mock

from errors import NotFoundError, PermissionDenied, QuizGenerationError, ValidationError
from services.error_handler import ErrorHandler, ErrorType, FormErrors, classify_error, error_title


class TestClassifyError(unittest.TestCase):
    def test_by_message(self) -> None:
        cases = {
            "Failed to fetch": ErrorType.NETWORK,
            "Network unreachable": ErrorType.NETWORK,
            "403 Forbidden": ErrorType.PERMISSION,
            "Access denied for user": ErrorType.PERMISSION,
            "Email is required": ErrorType.VALIDATION,
            "Request timed out": ErrorType.TIMEOUT,
            "Internal Server Error": ErrorType.SERVER,
            "Bad gateway 502": ErrorType.SERVER,
            "Page not found": ErrorType.NOT_FOUND,
            "boom": ErrorType.GENERIC,
        }
        for message, expected in cases.items():
            with self.subTest(message=message):
                self.assertEqual(classify_error(Exception(message)), expected)

    def test_by_class_name(self) -> None:
        self.assertEqual(classify_error(ConnectionRefusedError("refused")), ErrorType.NETWORK)
        self.assertEqual(classify_error(PermissionDenied("nope")), ErrorType.PERMISSION)
        self.assertEqual(classify_error(PermissionError("nope")), ErrorType.PERMISSION)
        self.assertEqual(classify_error(ValidationError("bad grade")), ErrorType.VALIDATION)
        self.assertEqual(classify_error(TimeoutError("slow")), ErrorType.TIMEOUT)
        self.assertEqual(classify_error(NotFoundError("Course missing")), ErrorType.NOT_FOUND)

    def test_precedence(self) -> None:
        # network wins over timeout, validation wins over server
        self.assertEqual(classify_error(Exception("network timeout")), ErrorType.NETWORK)
        self.assertEqual(
            classify_error(ValidationError("Grade must be between 0 and 500.")),
            ErrorType.VALIDATION,
        )
        self.assertEqual(classify_error(QuizGenerationError("AI server error")), ErrorType.SERVER)

    def test_titles(self) -> None:
        self.assertEqual(error_title(ErrorType.NETWORK), "Connection Problem")
        self.assertEqual(error_title(ErrorType.PERMISSION), "Access Denied")
        self.assertEqual(error_title(ErrorType.VALIDATION), "Invalid Input")
        self.assertEqual(error_title(ErrorType.TIMEOUT), "Request Timeout")
        self.assertEqual(error_title(ErrorType.SERVER), "Server Error")
        self.assertEqual(error_title(ErrorType.NOT_FOUND), "Not Found")
        self.assertEqual(error_title(ErrorType.GENERIC), "Error Occurred")


class TestErrorHandler(unittest.TestCase):
    def test_handle_records_state_and_toast(self) -> None:
        on_error = mock.Mock()
        handler = ErrorHandler(on_error=on_error)
        exc = Exception("Failed to fetch")
        toast = handler.handle(exc, {"page": "courses"})

        self.assertEqual(toast.title, "Connection Problem")
        self.assertEqual(toast.description, "Failed to fetch")
        self.assertEqual(toast.variant, "destructive")
        self.assertTrue(handler.is_visible)
        self.assertEqual(handler.error_type, ErrorType.NETWORK)
        self.assertTrue(handler.error_id.startswith("err-"))
        on_error.assert_called_once_with(exc, ErrorType.NETWORK)

    def test_no_toast_when_disabled(self) -> None:
        handler = ErrorHandler(show_toast=False)
        self.assertIsNone(handler.handle(Exception("boom")))
        self.assertEqual(handler.toasts, [])

    def test_wrap_reraises_and_clears_on_success(self) -> None:
        handler = ErrorHandler()
        calls = {"n": 0}

        def flaky():
            calls["n"] += 1
            if calls["n"] == 1:
                raise TimeoutError("slow")
            return "ok"

        with self.assertRaises(TimeoutError):
            handler.wrap(flaky)()
        self.assertEqual(handler.error_type, ErrorType.TIMEOUT)

        self.assertEqual(handler.retry(), "ok")
        self.assertFalse(handler.is_visible)
        self.assertIsNone(handler.retry())


class TestFormErrors(unittest.TestCase):
    def test_structured_field_errors(self) -> None:
        form = FormErrors()
        form.handle(Exception(json.dumps({"fields": {"email": "Email is required"}})))
        self.assertEqual(form.field_errors, {"email": "Email is required"})
        self.assertIsNone(form.general_error)
        self.assertTrue(form.has_errors)

    def test_plain_message_is_general(self) -> None:
        form = FormErrors()
        form.handle(Exception("Something broke"))
        self.assertEqual(form.general_error, "Something broke")
        form.clear()
        self.assertFalse(form.has_errors)

    def test_field_error_helpers(self) -> None:
        form = FormErrors()
        form.set_field_error("name", "Too short")
        form.clear_field_error("name")
        self.assertEqual(form.to_dict(), {"fieldErrors": {}, "generalError": None})


if __name__ == "__main__":
    unittest.main()
