"""Sign-up and sign-in on top of the user service."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from kayros.errors import (
    BadAuthPasswordError,
    GrpcError,
    NoRowsError,
    StatusCode,
    UserAlreadyExistsError,
    grpc_error_matches,
)
from kayros.user import User


@dataclass
class SignUpCredentials:
    """What a new user hands in to register."""

    name: str = ""
    email: str = ""
    password: str = ""
    img_url: str = ""
    is_vk_user: bool = False
    phone: str = ""


@dataclass
class AuthUser:
    """A user as returned by sign-up and sign-in, without a password."""

    id: int = 0
    name: str = ""
    phone: str = ""
    email: str = ""
    address: str = ""
    img_url: str = ""
    card_number: str = ""
    is_vk_user: bool = False

    @classmethod
    def from_user(cls, user: User) -> AuthUser:
        return cls(
            id=user.id,
            name=user.name,
            phone=user.phone,
            email=user.email,
            address=user.address,
            img_url=user.img_url,
            card_number=user.card_number,
            is_vk_user=user.is_vk_user,
        )


class UserClient(Protocol):
    def get_data(self, email: str) -> User: ...

    def create(self, user: User) -> User: ...

    def is_password_equals(self, email: str, password: str) -> bool: ...


class AuthService:
    """Registers and authenticates users through a user service client."""

    def __init__(self, client: UserClient, logger: logging.Logger | None = None) -> None:
        self._client = client
        self._logger = logger or logging.getLogger(__name__)

    def _exists(self, email: str) -> bool:
        try:
            self._client.get_data(email)
        except GrpcError as err:
            if grpc_error_matches(err, StatusCode.NOT_FOUND, NoRowsError("user")):
                return False
            raise
        return True

    def sign_up(self, credentials: SignUpCredentials) -> AuthUser:
        """Create a user unless one with the same e-mail already exists."""
        try:
            exists = self._exists(credentials.email)
        except Exception as err:
            self._logger.error(str(err))
            raise
        if exists:
            error = UserAlreadyExistsError()
            self._logger.error(str(error))
            raise GrpcError(StatusCode.ALREADY_EXISTS, str(error))

        new_user = User(
            name=credentials.name,
            email=credentials.email,
            password=credentials.password,
            img_url=credentials.img_url,
            is_vk_user=credentials.is_vk_user,
            phone=credentials.phone,
        )
        try:
            created = self._client.create(new_user)
        except Exception as err:
            self._logger.error(str(err))
            raise
        return AuthUser.from_user(created)

    def sign_in(self, email: str, password: str) -> AuthUser:
        """Return the user when ``password`` matches the stored one."""
        try:
            user = self._client.get_data(email)
            matches = self._client.is_password_equals(email, password)
        except Exception as err:
            self._logger.error(str(err))
            raise
        if not matches:
            error = BadAuthPasswordError()
            self._logger.error(str(error))
            raise GrpcError(StatusCode.INVALID_ARGUMENT, str(error))
        return AuthUser.from_user(user)