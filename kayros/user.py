"""User accounts: storage and the service for profiles, passwords and addresses."""

from __future__ import annotations

import hashlib
import logging
import os
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Protocol

from kayros.errors import (
    GrpcError,
    IncorrectCurrentPasswordError,
    NoRowsError,
    SamePasswordError,
    StatusCode,
    UserAlreadyExistsError,
    WrongFileExtensionError,
)
from kayros.metrics import MicroserviceMetrics, Operation

USER_BUCKET = "users"
DEFAULT_IMAGE_URL = f"/minio-api/{USER_BUCKET}/default.jpg"
SALT_SIZE = 8
VALID_MIME_TYPES = frozenset({"image/jpeg", "image/png", "image/webp"})

_USER_COLUMNS = (
    "id, name, email, COALESCE(phone, ''), password, COALESCE(address, ''), "
    "img_url, COALESCE(card_number, ''), is_vk_user"
)


@dataclass
class User:
    """A user account."""

    id: int = 0
    name: str = ""
    email: str = ""
    phone: str = ""
    password: str = ""
    address: str = ""
    img_url: str = ""
    card_number: str = ""
    is_vk_user: bool = False


class ImageStorage(Protocol):
    def upload_image(self, data: bytes, filename: str, mime_type: str) -> None: ...


class PasswordHasher(Protocol):
    def new_salt(self) -> bytes: ...

    def hash(self, salt: bytes, password: str) -> bytes: ...


class _Sha256Hasher:
    """Salted SHA-256; the result starts with the salt it was made with."""

    def new_salt(self) -> bytes:
        return os.urandom(SALT_SIZE)

    def hash(self, salt: bytes, password: str) -> bytes:
        return salt + hashlib.sha256(salt + password.encode()).digest()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _nullable(value: str) -> str | None:
    return value or None


def _without_credentials(user: User) -> User:
    return replace(user, password="", card_number="")


def _detect_mime_type(data: bytes) -> str:
    if data.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if data.startswith((b"GIF87a", b"GIF89a")):
        return "image/gif"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return "application/octet-stream"


def _file_extension(filename: str) -> str:
    return filename.rsplit(".", 1)[-1] if "." in filename else ""


def _password_bytes(stored: str) -> bytes:
    return stored.encode("latin-1")


def _salt_of(stored: bytes) -> bytes:
    return stored[:SALT_SIZE].ljust(SALT_SIZE, b"\x00")


class UserRepo:
    """User storage over a DB-API connection using qmark parameters."""

    def __init__(self, db: Any, metrics: MicroserviceMetrics) -> None:
        self._db = db
        self._metrics = metrics

    def _execute(self, operation: Operation, query: str, params: tuple = ()) -> Any:
        with self._metrics.timed(operation):
            return self._db.execute(query, params)

    def _change(self, operation: Operation, query: str, params: tuple, relation: str) -> None:
        cursor = self._execute(operation, query, params)
        self._db.commit()
        if cursor.rowcount == 0:
            raise NoRowsError(relation)

    def get_by_email(self, email: str) -> User:
        """Return the user with ``email``."""
        row = self._execute(
            Operation.SELECT,
            f'SELECT {_USER_COLUMNS} FROM "user" WHERE email = ?',
            (email,),
        ).fetchone()
        if row is None:
            raise NoRowsError("user")
        uid, name, mail, phone, password, address, img_url, card_number, is_vk = row
        return User(
            id=uid,
            name=name,
            email=mail,
            phone=phone,
            password=password,
            address=address,
            img_url=img_url or "",
            card_number=card_number,
            is_vk_user=bool(is_vk),
        )

    def delete_by_email(self, email: str) -> None:
        self._change(
            Operation.DELETE, 'DELETE FROM "user" WHERE email = ?', (email,), "user"
        )

    def create(self, user: User) -> None:
        now = _now()
        self._change(
            Operation.INSERT,
            'INSERT INTO "user" (name, email, phone, password, address, img_url, '
            "is_vk_user, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                user.name,
                user.email,
                _nullable(user.phone),
                user.password,
                _nullable(user.address),
                _nullable(user.img_url),
                user.is_vk_user,
                now,
                now,
            ),
            "user",
        )

    def update(self, email: str, user: User) -> None:
        """Overwrite the stored fields of the user currently holding ``email``."""
        self._change(
            Operation.UPDATE,
            'UPDATE "user" SET name = ?, email = ?, phone = ?, img_url = ?, password = ?, '
            "card_number = ?, address = ?, updated_at = ? WHERE email = ?",
            (
                user.name,
                user.email,
                _nullable(user.phone),
                user.img_url,
                user.password,
                _nullable(user.card_number),
                _nullable(user.address),
                _now(),
                email,
            ),
            "user",
        )

    def get_address_by_unauth_id(self, unauth_id: str) -> str:
        """Return the address saved for an anonymous visitor; NULL reads as empty."""
        row = self._execute(
            Operation.SELECT,
            "SELECT address FROM unauth_address WHERE unauth_id = ?",
            (unauth_id,),
        ).fetchone()
        if row is None:
            raise NoRowsError("unauth_address")
        return row[0] or ""

    def update_address_by_unauth_id(self, unauth_id: str, address: str) -> None:
        self._change(
            Operation.UPDATE,
            "UPDATE unauth_address SET address = ? WHERE unauth_id = ?",
            (_nullable(address), unauth_id),
            "unauth_address",
        )

    def create_address_by_unauth_id(self, unauth_id: str, address: str) -> None:
        self._change(
            Operation.INSERT,
            "INSERT INTO unauth_address (unauth_id, address) VALUES (?, ?)",
            (unauth_id, address),
            "unauth_address",
        )


class UserService:
    """Service layer turning storage failures into status errors."""

    def __init__(
        self,
        repo: UserRepo,
        storage: ImageStorage,
        hasher: PasswordHasher | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._repo = repo
        self._storage = storage
        self._hasher = hasher or _Sha256Hasher()
        self._logger = logger or logging.getLogger(__name__)

    def _fail(self, code: StatusCode, err: Exception) -> GrpcError:
        self._logger.error(str(err))
        return GrpcError(code, str(err))

    def _lookup(self, email: str) -> User:
        """Fetch a user, mapping a missing one to NOT_FOUND and the rest to INTERNAL."""
        try:
            return self._repo.get_by_email(email)
        except NoRowsError as err:
            code = StatusCode.NOT_FOUND if err.relation == "user" else StatusCode.INTERNAL
            raise self._fail(code, err) from err
        except Exception as err:
            raise self._fail(StatusCode.INTERNAL, err) from err

    def _store_update(self, email: str, user: User) -> None:
        try:
            self._repo.update(email, user)
        except Exception as err:
            raise self._fail(StatusCode.INTERNAL, err) from err

    def _hash(self, salt: bytes, password: str) -> str:
        return self._hasher.hash(salt, password).decode("latin-1")

    def get_data(self, email: str) -> User:
        """Return the user without password and card number."""
        return _without_credentials(self._lookup(email))

    def update_data(
        self, email: str, update_info: User, file_data: bytes = b"", file_name: str = ""
    ) -> User:
        """Update name, email, phone and, when a file is given, the avatar."""
        user = self._lookup(email)
        if update_info.name:
            user.name = update_info.name
        if update_info.email:
            user.email = update_info.email
        user.phone = update_info.phone

        if file_data:
            mime_type = _detect_mime_type(file_data)
            if mime_type not in VALID_MIME_TYPES:
                raise self._fail(StatusCode.INVALID_ARGUMENT, WrongFileExtensionError())
            filename = f"{uuid.uuid4()}.{_file_extension(file_name)}"
            try:
                self._storage.upload_image(file_data, filename, mime_type)
            except Exception as err:
                raise self._fail(StatusCode.INTERNAL, err) from err
            user.img_url = f"/minio-api/{USER_BUCKET}/{filename}"

        new_email = update_info.email
        try:
            self._repo.get_by_email(new_email)
            taken = True
        except NoRowsError as err:
            if err.relation != "user":
                raise self._fail(StatusCode.INTERNAL, err) from err
            taken = False
        except Exception as err:
            raise self._fail(StatusCode.INTERNAL, err) from err
        if taken and email != new_email:
            raise self._fail(StatusCode.ALREADY_EXISTS, UserAlreadyExistsError())

        self._store_update(email, user)
        return _without_credentials(user)

    def update_address(self, email: str, address: str) -> None:
        user = self._lookup(email)
        user.address = address
        self._store_update(email, user)

    def get_address_by_unauth_id(self, unauth_id: str) -> str:
        try:
            return self._repo.get_address_by_unauth_id(unauth_id)
        except NoRowsError as err:
            code = (
                StatusCode.NOT_FOUND
                if err.relation == "unauth_address"
                else StatusCode.INTERNAL
            )
            raise self._fail(code, err) from err
        except Exception as err:
            raise self._fail(StatusCode.INTERNAL, err) from err

    def set_new_password(self, email: str, password: str, new_password: str) -> None:
        """Replace the password after checking the current one."""
        stored = _password_bytes(self._lookup(email).password)
        if stored != _password_bytes(self._hash(stored[:SALT_SIZE], password)):
            raise self._fail(StatusCode.INVALID_ARGUMENT, IncorrectCurrentPasswordError())
        if password == new_password:
            raise self._fail(StatusCode.INVALID_ARGUMENT, SamePasswordError())

        try:
            user = self._repo.get_by_email(email)
            salt = self._hasher.new_salt()
        except Exception as err:
            raise self._fail(StatusCode.INTERNAL, err) from err
        user.password = self._hash(salt, new_password)
        self._store_update(email, user)

    def update_address_by_unauth_id(self, unauth_id: str, address: str) -> None:
        """Update an anonymous visitor's address, creating it when absent."""
        try:
            self._repo.update_address_by_unauth_id(unauth_id, address)
        except Exception as err:
            self._logger.error(str(err))
            if not (isinstance(err, NoRowsError) and err.relation == "unauth_address"):
                raise GrpcError(StatusCode.INTERNAL, str(err)) from err
            try:
                self._repo.create_address_by_unauth_id(unauth_id, address)
            except Exception as create_err:
                raise GrpcError(StatusCode.INTERNAL, str(create_err)) from create_err

    def create(self, user: User) -> User:
        """Register a user with a hashed password; returns it without credentials."""
        try:
            salt = self._hasher.new_salt()
        except Exception as err:
            raise self._fail(StatusCode.INTERNAL, err) from err
        new_user = replace(user, password=self._hash(salt, user.password))

        try:
            self._repo.get_by_email(new_user.email)
            exists = True
        except NoRowsError as err:
            if err.relation != "user":
                raise self._fail(StatusCode.INTERNAL, err) from err
            exists = False
        except Exception as err:
            raise self._fail(StatusCode.INTERNAL, err) from err
        if exists:
            raise self._fail(StatusCode.ALREADY_EXISTS, UserAlreadyExistsError())

        if not new_user.img_url:
            new_user.img_url = DEFAULT_IMAGE_URL
        try:
            self._repo.create(new_user)
            created = self._repo.get_by_email(new_user.email)
        except Exception as err:
            raise self._fail(StatusCode.INTERNAL, err) from err
        return _without_credentials(created)

    def is_password_equals(self, email: str, password: str) -> bool:
        """Tell whether ``password`` matches the stored one."""
        stored = _password_bytes(self._lookup(email).password)
        return stored == _password_bytes(self._hash(_salt_of(stored), password))