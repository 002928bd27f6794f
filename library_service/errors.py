"""Error kinds shared by the services and the HTTP layer."""

import enum


class ErrorKind(enum.Enum):
    VALIDATION = 400
    AUTHENTICATION = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    CONFLICT = 409

    @property
    def status_code(self):
        return self.value


class LibraryError(Exception):
    kind = ErrorKind.VALIDATION

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    @property
    def status_code(self):
        return self.kind.status_code


class ValidationError(LibraryError):
    kind = ErrorKind.VALIDATION


class AuthenticationError(LibraryError):
    kind = ErrorKind.AUTHENTICATION


class ForbiddenError(LibraryError):
    kind = ErrorKind.FORBIDDEN


class NotFoundError(LibraryError):
    kind = ErrorKind.NOT_FOUND


class ConflictError(LibraryError):
    kind = ErrorKind.CONFLICT
