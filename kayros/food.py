"""Restaurant menus: dish storage and the service that groups dishes."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from kayros.errors import GrpcError, NoRowsError, StatusCode
from kayros.metrics import MicroserviceMetrics, Operation


@dataclass
class Food:
    """A dish on a restaurant's menu."""

    id: int = 0
    name: str = ""
    restaurant_id: int = 0
    category: str = ""
    weight: int = 0
    price: int = 0
    img_url: str = ""


@dataclass
class FoodCategory:
    """A named group of dishes."""

    id: int = 0
    name: str = ""
    food: list[Food] = field(default_factory=list)


def group_by_category(dishes: Iterable[Food]) -> list[FoodCategory]:
    """Group runs of dishes sharing a category, numbering the groups from 0.

    A group is emitted once a dish of another category follows it, so the
    final run of dishes produces no group.
    """
    categories: list[FoodCategory] = []
    current: FoodCategory | None = None
    for dish in dishes:
        if current is None:
            current = FoodCategory(id=0, name=dish.category, food=[dish])
            continue
        if dish.category != current.name:
            categories.append(current)
            current = FoodCategory(id=current.id + 1, name=dish.category)
        current.food.append(dish)
    return categories


class FoodRepo:
    """Dish storage over a DB-API connection using qmark parameters."""

    def __init__(self, db: Any, metrics: MicroserviceMetrics) -> None:
        self._db = db
        self._metrics = metrics

    def _execute(self, operation: Operation, query: str, params: tuple = ()) -> Any:
        with self._metrics.timed(operation):
            return self._db.execute(query, params)

    def get_by_rest_id(self, rest_id: int) -> list[Food]:
        """Return a restaurant's dishes ordered by category, category given by name."""
        cursor = self._execute(
            Operation.SELECT,
            "SELECT c.name, f.id, f.name, restaurant_id, weight, price, img_url "
            "FROM food as f JOIN category as c ON f.category_id=c.id "
            "WHERE restaurant_id = ? ORDER BY category_id",
            (int(rest_id),),
        )
        return [
            Food(
                id=fid,
                name=name,
                restaurant_id=restaurant_id,
                category=category,
                weight=weight,
                price=price,
                img_url=img_url,
            )
            for category, fid, name, restaurant_id, weight, price, img_url in cursor.fetchall()
        ]

    def get_by_id(self, food_id: int) -> Food:
        """Return one dish; its category holds the category id as text."""
        row = self._execute(
            Operation.SELECT,
            "SELECT id, name, restaurant_id, category_id, weight, price, img_url "
            "FROM food WHERE id=?",
            (int(food_id),),
        ).fetchone()
        if row is None:
            raise NoRowsError("food")
        fid, name, restaurant_id, category_id, weight, price, img_url = row
        return Food(
            id=fid,
            name=name,
            restaurant_id=restaurant_id,
            category=str(category_id),
            weight=weight,
            price=price,
            img_url=img_url,
        )


class FoodService:
    """Service layer turning storage failures into status errors."""

    def __init__(self, repo: FoodRepo, logger: logging.Logger | None = None) -> None:
        self._repo = repo
        self._logger = logger or logging.getLogger(__name__)

    def get_by_rest_id(self, rest_id: int) -> list[FoodCategory]:
        try:
            dishes = self._repo.get_by_rest_id(rest_id)
        except Exception as err:
            self._logger.error(str(err))
            raise GrpcError(StatusCode.INTERNAL, str(err)) from err
        return group_by_category(dishes)

    def get_by_id(self, food_id: int) -> Food:
        try:
            return self._repo.get_by_id(food_id)
        except Exception as err:
            self._logger.error(str(err))
            if isinstance(err, NoRowsError) and err.relation == "food":
                raise GrpcError(StatusCode.NOT_FOUND, str(err)) from err
            raise GrpcError(StatusCode.INTERNAL, str(err)) from err