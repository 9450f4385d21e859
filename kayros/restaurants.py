"""Restaurants: storage and the service with listings and recommendations."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from kayros.errors import GrpcError, NoRowsError, StatusCode
from kayros.metrics import MicroserviceMetrics, Operation

RECOMMENDATION_SIZE = 5
LAST_RESTS_COUNT = 2


@dataclass
class Restaurant:
    """A restaurant as shown in listings and on its own page."""

    id: int = 0
    name: str = ""
    short_description: str = ""
    long_description: str = ""
    address: str = ""
    img_url: str = ""
    rating: float = 0.0
    comment_count: int = 0


@dataclass
class RestaurantCategory:
    """A category restaurants can be filtered by."""

    id: int = 0
    name: str = ""


def _brief(row: tuple) -> Restaurant:
    rid, name, short_description, img_url = row
    return Restaurant(id=rid, name=name, short_description=short_description, img_url=img_url)


class RestaurantRepo:
    """Restaurant storage over a DB-API connection using qmark parameters."""

    def __init__(self, db: Any, metrics: MicroserviceMetrics) -> None:
        self._db = db
        self._metrics = metrics

    def _execute(self, operation: Operation, query: str, params: tuple = ()) -> Any:
        with self._metrics.timed(operation):
            return self._db.execute(query, params)

    def get_all(self) -> list[Restaurant]:
        """Return every restaurant, best rated first."""
        cursor = self._execute(
            Operation.SELECT,
            "SELECT id, name, short_description, address, img_url "
            "FROM restaurant ORDER BY rating DESC",
        )
        return [
            Restaurant(id=rid, name=name, short_description=short, address=address, img_url=img)
            for rid, name, short, address, img in cursor.fetchall()
        ]

    def get_by_id(self, rest_id: int) -> Restaurant:
        """Return one restaurant with its full description and rating."""
        row = self._execute(
            Operation.SELECT,
            "SELECT id, name, long_description, address, img_url, rating, comment_count "
            "FROM restaurant WHERE id=?",
            (rest_id,),
        ).fetchone()
        if row is None:
            raise NoRowsError("restaurant")
        rid, name, long_description, address, img_url, rating, comment_count = row
        return Restaurant(
            id=rid,
            name=name,
            long_description=long_description,
            address=address,
            img_url=img_url,
            rating=rating,
            comment_count=comment_count,
        )

    def get_by_filter(self, category_id: int) -> list[Restaurant] | None:
        """Return the restaurants of a category, or None when there are none."""
        cursor = self._execute(
            Operation.SELECT,
            "SELECT r.id, r.name, r.short_description, r.img_url FROM restaurant as r "
            "JOIN rest_categories AS rc ON r.id=rc.restaurant_id WHERE rc.category_id=?",
            (category_id,),
        )
        rests = [_brief(row) for row in cursor.fetchall()]
        return rests or None

    def get_category_list(self) -> list[RestaurantCategory]:
        """Return the categories used for restaurants."""
        cursor = self._execute(
            Operation.SELECT, "SELECT id, name FROM category WHERE type='rest'"
        )
        return [RestaurantCategory(id=cid, name=name) for cid, name in cursor.fetchall()]

    def get_top(self, limit: int) -> list[Restaurant]:
        """Return up to ``limit`` best rated restaurants."""
        cursor = self._db.execute(
            "SELECT id, name, short_description, img_url FROM restaurant "
            "ORDER BY rating DESC LIMIT ?",
            (limit,),
        )
        return [_brief(row) for row in cursor.fetchall()]

    def get_last_rests(self, user_id: int, limit: int) -> list[Restaurant]:
        """Return up to ``limit`` restaurants the user ordered from most recently."""
        ids = [
            row[0]
            for row in self._db.execute(
                "SELECT f.restaurant_id FROM food AS f JOIN food_order AS fo ON f.id=fo.food_id "
                'JOIN "order" AS o ON o.id=fo.order_id WHERE o.user_id=? '
                "GROUP BY f.restaurant_id ORDER BY MAX(o.delivered_at) DESC LIMIT ?",
                (user_id, limit),
            ).fetchall()
        ]
        rests = []
        for rid in ids:
            row = self._db.execute(
                "SELECT id, name, short_description, img_url FROM restaurant WHERE id=?",
                (rid,),
            ).fetchone()
            if row is None:
                raise NoRowsError("restaurant")
            rests.append(_brief(row))
        return rests


class RestaurantService:
    """Service layer turning storage failures into status errors."""

    def __init__(self, repo: RestaurantRepo, logger: logging.Logger | None = None) -> None:
        self._repo = repo
        self._logger = logger or logging.getLogger(__name__)

    def _internal(self, err: Exception) -> GrpcError:
        self._logger.error(str(err))
        return GrpcError(StatusCode.INTERNAL, str(err))

    def get_all(self) -> list[Restaurant]:
        try:
            return self._repo.get_all()
        except Exception as err:
            raise self._internal(err) from err

    def get_by_id(self, rest_id: int) -> Restaurant:
        try:
            return self._repo.get_by_id(rest_id)
        except Exception as err:
            self._logger.error(str(err))
            if isinstance(err, NoRowsError) and err.relation == "restaurant":
                raise GrpcError(StatusCode.NOT_FOUND, str(err)) from err
            raise GrpcError(StatusCode.INTERNAL, str(err)) from err

    def get_by_filter(self, category_id: int) -> list[Restaurant] | None:
        try:
            return self._repo.get_by_filter(category_id)
        except Exception as err:
            raise self._internal(err) from err

    def get_category_list(self) -> list[RestaurantCategory]:
        try:
            return self._repo.get_category_list()
        except Exception as err:
            raise self._internal(err) from err

    def get_recommendation(self, user_id: int, limit: int) -> list[Restaurant]:
        """Recommend restaurants.

        An anonymous user (id 0) gets the ``limit`` best rated ones. Otherwise
        the two most recently ordered from come first, topped up with the best
        rated ones not already listed, up to five in all.
        """
        try:
            top = self._repo.get_top(limit + 2)
        except Exception as err:
            raise self._internal(err) from err
        if user_id == 0:
            return top[:limit]
        try:
            last = self._repo.get_last_rests(user_id, LAST_RESTS_COUNT)
        except Exception as err:
            raise self._internal(err) from err
        seen = {rest.id for rest in last}
        result = list(last)
        for rest in top:
            if len(result) == RECOMMENDATION_SIZE:
                break
            if rest.id not in seen:
                result.append(rest)
        return result