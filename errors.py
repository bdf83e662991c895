"""
errors.py

Domain exceptions shared by the database layer, the services and the
dashboard. Class names are chosen so the error classifier in
services/error_handler.py recognises them by name.
"""


class ClassroomError(Exception):
    """Base class for errors raised by ClassroomHQ itself."""

    status_code = 400


class ValidationError(ClassroomError):
    status_code = 400


class PermissionDenied(ClassroomError):
    status_code = 403


class NotFoundError(ClassroomError):
    status_code = 404


class UploadError(ClassroomError):
    status_code = 400


class QuizGenerationError(ClassroomError):
    status_code = 502
