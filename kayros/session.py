"""Session and CSRF token storage over a key-value store, and its service."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from kayros.errors import GrpcError, RedisNoDataError, StatusCode
from kayros.metrics import MicroserviceMetrics, Operation

SESSION_TTL = timedelta(days=14)


class SessionRepo:
    """Key-value storage over a Redis-style client (get, set, delete)."""

    def __init__(self, client: Any, metrics: MicroserviceMetrics) -> None:
        self._client = client
        self._metrics = metrics

    def get_value(self, key: str) -> str:
        """Return the value stored under ``key``; a missing key raises RedisNoDataError."""
        with self._metrics.timed(Operation.REDIS):
            value = self._client.get(key)
        if value is None:
            raise RedisNoDataError()
        if isinstance(value, (bytes, bytearray)):
            return bytes(value).decode()
        return str(value)

    def set_value(self, key: str, value: str) -> None:
        """Store ``value`` under ``key`` for fourteen days."""
        with self._metrics.timed(Operation.REDIS):
            self._client.set(key, value, ex=SESSION_TTL)

    def delete_value(self, key: str) -> None:
        """Remove ``key``; removing a missing key is not an error."""
        with self._metrics.timed(Operation.REDIS):
            self._client.delete(key)


class SessionService:
    """Routes requests to the CSRF or the session store by database number."""

    def __init__(
        self,
        csrf_repo: SessionRepo,
        session_repo: SessionRepo,
        logger: logging.Logger | None = None,
        csrf_database: int = 0,
    ) -> None:
        self._csrf_repo = csrf_repo
        self._session_repo = session_repo
        self._logger = logger or logging.getLogger(__name__)
        self._csrf_database = csrf_database

    def _repo_for(self, database: int) -> SessionRepo:
        return self._csrf_repo if database == self._csrf_database else self._session_repo

    def set_session(self, database: int, key: str, value: str) -> None:
        try:
            self._repo_for(database).set_value(key, value)
        except Exception as err:
            self._logger.error(str(err))
            raise GrpcError(StatusCode.INTERNAL, str(err)) from err

    def get_session(self, database: int, key: str) -> str:
        try:
            return self._repo_for(database).get_value(key)
        except Exception as err:
            self._logger.error(str(err))
            if isinstance(err, RedisNoDataError):
                raise GrpcError(StatusCode.NOT_FOUND, str(err)) from err
            raise GrpcError(StatusCode.INTERNAL, str(err)) from err

    def delete_session(self, database: int, key: str) -> None:
        try:
            self._repo_for(database).delete_value(key)
        except Exception as err:
            self._logger.error(str(err))
            raise GrpcError(StatusCode.INTERNAL, str(err)) from err