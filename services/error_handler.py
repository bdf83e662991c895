"""
services/error_handler.py

Heuristic error triage. An exception is classified by substrings of its
message and by its class name (and the names of its base classes), which
selects the title of the toast shown to the user. There is no retry
policy beyond re-running the last wrapped operation on request.
"""
from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable


class ErrorType(str, Enum):
    NETWORK = "network"
    PERMISSION = "permission"
    VALIDATION = "validation"
    TIMEOUT = "timeout"
    SERVER = "server"
    NOT_FOUND = "notFound"
    GENERIC = "generic"


ERROR_TITLES = {
    ErrorType.NETWORK: "Connection Problem",
    ErrorType.PERMISSION: "Access Denied",
    ErrorType.VALIDATION: "Invalid Input",
    ErrorType.TIMEOUT: "Request Timeout",
    ErrorType.SERVER: "Server Error",
    ErrorType.NOT_FOUND: "Not Found",
    ErrorType.GENERIC: "Error Occurred",
}

# Checked in order; the first matching rule wins.
_RULES: tuple[tuple[ErrorType, tuple[str, ...], tuple[str, ...]], ...] = (
    (ErrorType.NETWORK, ("fetch", "network"), ("networkerror", "connectionerror")),
    (
        ErrorType.PERMISSION,
        ("unauthorized", "forbidden", "permission", "access denied"),
        ("permissionerror", "permissiondenied"),
    ),
    (ErrorType.VALIDATION, ("validation", "invalid", "required"), ("validationerror",)),
    (ErrorType.TIMEOUT, ("timeout", "timed out"), ("timeouterror",)),
    (ErrorType.SERVER, ("server", "internal", "500", "502", "503", "504"), ()),
    (ErrorType.NOT_FOUND, ("not found", "404"), ("notfounderror",)),
)


def _class_names(exc: BaseException) -> set[str]:
    return {cls.__name__.lower() for cls in type(exc).__mro__}


def classify_error(exc: BaseException) -> ErrorType:
    message = str(exc).lower()
    names = _class_names(exc)
    for error_type, keywords, class_names in _RULES:
        if any(k in message for k in keywords) or names.intersection(class_names):
            return error_type
    return ErrorType.GENERIC


def error_title(error_type: ErrorType) -> str:
    return ERROR_TITLES[ErrorType(error_type)]


@dataclass
class Toast:
    title: str
    description: str
    variant: str = "destructive"

    def to_dict(self) -> dict:
        return {"title": self.title, "description": self.description, "variant": self.variant}


class ErrorHandler:
    """Tracks the last handled error and turns it into a toast."""

    def __init__(
        self,
        show_toast: bool = True,
        on_error: Callable[[BaseException, ErrorType], None] | None = None,
        logger: logging.Logger | None = None,
    ):
        self.show_toast = show_toast
        self.on_error = on_error
        self.logger = logger or logging.getLogger("classroomhq.errors")
        self.error: BaseException | None = None
        self.error_type: ErrorType | None = None
        self.error_id: str | None = None
        self.toasts: list[Toast] = []
        self._last_operation: Callable[[], Any] | None = None

    @property
    def is_visible(self) -> bool:
        return self.error is not None

    def handle(self, exc: BaseException, context: dict | None = None) -> Toast | None:
        error_type = classify_error(exc)
        self.error = exc
        self.error_type = error_type
        self.error_id = f"err-{uuid.uuid4().hex[:12]}"
        self.logger.error(
            "Error handled [%s] type=%s: %s context=%s",
            self.error_id, error_type.value, exc, context or {},
        )

        toast = None
        if self.show_toast:
            toast = Toast(error_title(error_type), str(exc))
            self.toasts.append(toast)
        if self.on_error:
            self.on_error(exc, error_type)
        return toast

    def clear(self) -> None:
        self.error = None
        self.error_type = None
        self.error_id = None
        self._last_operation = None

    def wrap(self, operation: Callable[[], Any], context: dict | None = None) -> Callable[[], Any]:
        """Clear on success; handle and re-raise on failure."""
        def run():
            self._last_operation = operation
            try:
                result = operation()
            except Exception as exc:
                self.handle(exc, context)
                raise
            self.clear()
            return result

        return run

    def retry(self) -> Any:
        """Re-run the last wrapped operation; failures are handled, not raised."""
        operation = self._last_operation
        if operation is None:
            return None
        try:
            result = operation()
        except Exception as exc:
            self.handle(exc)
            return None
        self.clear()
        return result


@dataclass
class FormErrors:
    field_errors: dict[str, str] = field(default_factory=dict)
    general_error: str | None = None

    @property
    def has_errors(self) -> bool:
        return bool(self.field_errors) or self.general_error is not None

    def set_field_error(self, name: str, message: str) -> None:
        self.field_errors[name] = message

    def clear_field_error(self, name: str) -> None:
        self.field_errors.pop(name, None)

    def clear(self) -> None:
        self.field_errors = {}
        self.general_error = None

    def handle(self, exc: BaseException) -> None:
        """Structured `{"fields": {...}}` messages set field errors, anything else is general."""
        message = str(exc)
        try:
            parsed = json.loads(message)
        except (TypeError, ValueError):
            parsed = None
        if isinstance(parsed, dict) and parsed.get("fields"):
            self.field_errors = {str(k): str(v) for k, v in dict(parsed["fields"]).items()}
            return
        self.general_error = message

    def to_dict(self) -> dict:
        return {"fieldErrors": dict(self.field_errors), "generalError": self.general_error}
