"""Error types raised by the repositories and the services."""

from __future__ import annotations

from enum import IntEnum


class StatusCode(IntEnum):
    """RPC status codes."""

    OK = 0
    CANCELLED = 1
    UNKNOWN = 2
    INVALID_ARGUMENT = 3
    DEADLINE_EXCEEDED = 4
    NOT_FOUND = 5
    ALREADY_EXISTS = 6
    PERMISSION_DENIED = 7
    RESOURCE_EXHAUSTED = 8
    FAILED_PRECONDITION = 9
    ABORTED = 10
    OUT_OF_RANGE = 11
    UNIMPLEMENTED = 12
    INTERNAL = 13
    UNAVAILABLE = 14
    DATA_LOSS = 15
    UNAUTHENTICATED = 16


class GrpcError(Exception):
    """An error carrying an RPC status code and a message."""

    def __init__(self, status: StatusCode, message: str) -> None:
        super().__init__(message)
        self.status = StatusCode(status)
        self.message = message

    def __str__(self) -> str:
        return self.message

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GrpcError):
            return NotImplemented
        return self.status == other.status and self.message == other.message

    def __hash__(self) -> int:
        return hash((self.status, self.message))

    def __repr__(self) -> str:
        return f"GrpcError({self.status.name}, {self.message!r})"


class KayrosError(Exception):
    """Base class for domain errors."""

    default_message = "internal error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, KayrosError):
            return NotImplemented
        return type(self) is type(other) and self.args == other.args

    def __hash__(self) -> int:
        return hash((type(self), self.args))


class NoRowsError(KayrosError):
    """No rows were found or changed in a relation."""

    def __init__(self, relation: str) -> None:
        self.relation = relation
        super().__init__(f"no rows in the {relation} relation")


class RedisNoDataError(KayrosError):
    default_message = "no data in redis"


class UserAlreadyExistsError(KayrosError):
    default_message = "user already exists"


class BadAuthPasswordError(KayrosError):
    default_message = "wrong password"


class IncorrectCurrentPasswordError(KayrosError):
    default_message = "current password is incorrect"


class SamePasswordError(KayrosError):
    default_message = "new password must differ from the current one"


class WrongFileExtensionError(KayrosError):
    default_message = "unsupported file type"


def grpc_error_matches(
    error: BaseException | None, code: StatusCode, message: str | BaseException
) -> bool:
    """Tell whether ``error`` is a GrpcError with the given code and message."""
    return (
        isinstance(error, GrpcError)
        and error.status == code
        and error.message == str(message)
    )