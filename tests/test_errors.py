import pytest

from kayros.errors import (
    BadAuthPasswordError,
    GrpcError,
    IncorrectCurrentPasswordError,
    KayrosError,
    NoRowsError,
    RedisNoDataError,
    SamePasswordError,
    StatusCode,
    UserAlreadyExistsError,
    WrongFileExtensionError,
    grpc_error_matches,
)


@pytest.mark.parametrize(
    "number, expected",
    [
        (5, StatusCode.NOT_FOUND),
        (6, StatusCode.ALREADY_EXISTS),
        (13, StatusCode.INTERNAL),
    ],
)
def test_status_codes_follow_rpc_numbering(number, expected):
    assert StatusCode(number) is expected


def test_grpc_error_keeps_status_and_message():
    err = GrpcError(StatusCode.NOT_FOUND, "missing")
    assert err.status is StatusCode.NOT_FOUND
    assert err.message == "missing"
    assert str(err) == "missing"


def test_grpc_error_equality():
    assert GrpcError(StatusCode.INTERNAL, "x") == GrpcError(StatusCode.INTERNAL, "x")
    assert not GrpcError(StatusCode.INTERNAL, "x") == GrpcError(StatusCode.NOT_FOUND, "x")
    assert len({GrpcError(StatusCode.INTERNAL, "x"), GrpcError(StatusCode.INTERNAL, "x")}) == 1


def test_grpc_error_can_be_raised_and_caught():
    err = GrpcError(StatusCode.INVALID_ARGUMENT, "bad")
    assert err.status is StatusCode.INVALID_ARGUMENT
    assert err.message == "bad"
    with pytest.raises(GrpcError) as info:
        raise err
    assert info.value is err


def test_grpc_error_matches_with_exception_message():
    cause = NoRowsError("user")
    err = GrpcError(StatusCode.NOT_FOUND, str(cause))
    assert grpc_error_matches(err, StatusCode.NOT_FOUND, cause) is True
    assert grpc_error_matches(err, StatusCode.NOT_FOUND, str(cause)) is True


def test_grpc_error_matches_rejects_other_code_message_or_type():
    cause = NoRowsError("user")
    err = GrpcError(StatusCode.NOT_FOUND, str(cause))
    assert grpc_error_matches(err, StatusCode.INTERNAL, cause) is False
    assert grpc_error_matches(err, StatusCode.NOT_FOUND, NoRowsError("food")) is False
    assert grpc_error_matches(cause, StatusCode.NOT_FOUND, cause) is False
    assert grpc_error_matches(None, StatusCode.NOT_FOUND, cause) is False


def test_no_rows_error_identity_follows_relation():
    assert NoRowsError("comment") == NoRowsError("comment")
    assert not NoRowsError("comment") == NoRowsError("order")
    assert NoRowsError("order").relation == "order"
    assert "order" in str(NoRowsError("order"))


@pytest.mark.parametrize(
    "error_type",
    [
        RedisNoDataError,
        UserAlreadyExistsError,
        BadAuthPasswordError,
        IncorrectCurrentPasswordError,
        SamePasswordError,
        WrongFileExtensionError,
    ],
)
def test_domain_errors_have_default_messages(error_type):
    err = error_type()
    assert isinstance(err, KayrosError)
    assert str(err) == error_type.default_message
    assert str(err)


def test_domain_error_message_can_be_overridden():
    err = UserAlreadyExistsError("taken")
    assert str(err) == "taken"
    assert not err == BadAuthPasswordError("taken")