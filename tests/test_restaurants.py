import sqlite3
from unittest.mock import Mock

import pytest

from kayros.errors import GrpcError, NoRowsError, StatusCode
from kayros.metrics import Operation, new_metrics
from kayros.restaurants import (
    Restaurant,
    RestaurantCategory,
    RestaurantRepo,
    RestaurantService,
)


@pytest.fixture
def db():
    conn = sqlite3.connect(":memory:")
    conn.executescript(
        """
        CREATE TABLE restaurant (
            id INTEGER PRIMARY KEY, name TEXT, short_description TEXT,
            long_description TEXT, address TEXT, img_url TEXT,
            rating REAL, comment_count INTEGER
        );
        CREATE TABLE rest_categories (restaurant_id INTEGER, category_id INTEGER);
        CREATE TABLE category (id INTEGER PRIMARY KEY, name TEXT, type TEXT);
        CREATE TABLE food (id INTEGER PRIMARY KEY, restaurant_id INTEGER);
        CREATE TABLE food_order (food_id INTEGER, order_id INTEGER);
        CREATE TABLE "order" (id INTEGER PRIMARY KEY, user_id INTEGER, delivered_at TEXT);
        """
    )
    yield conn
    conn.close()


class _BrokenDb:
    def execute(self, query, params=()):
        raise sqlite3.OperationalError("db_error")

    def commit(self):
        pass


def _add_rest(conn, rid, rating=0.0, name="a"):
    conn.execute(
        "INSERT INTO restaurant VALUES (?, ?, 'a', 'a', 'a', 'a', ?, 0)",
        (rid, name, rating),
    )


# repository


def test_get_all_db_error():
    with pytest.raises(sqlite3.OperationalError):
        RestaurantRepo(_BrokenDb(), new_metrics()).get_all()


def test_get_all_ok(db):
    _add_rest(db, 1)
    metrics = new_metrics()
    rests = RestaurantRepo(db, metrics).get_all()
    assert rests == [
        Restaurant(id=1, name="a", short_description="a", address="a", img_url="a")
    ]
    assert metrics.database_duration.labels(Operation.SELECT).count == 1


def test_get_all_orders_by_rating(db):
    _add_rest(db, 1, rating=2.0)
    _add_rest(db, 2, rating=4.5)
    assert [r.id for r in RestaurantRepo(db, new_metrics()).get_all()] == [2, 1]


def test_get_by_id_db_error():
    with pytest.raises(sqlite3.OperationalError):
        RestaurantRepo(_BrokenDb(), new_metrics()).get_by_id(1)


def test_get_by_id_no_rows(db):
    with pytest.raises(NoRowsError) as exc:
        RestaurantRepo(db, new_metrics()).get_by_id(1)
    assert exc.value == NoRowsError("restaurant")


def test_get_by_id_ok(db):
    _add_rest(db, 1, rating=5.0)
    r = RestaurantRepo(db, new_metrics()).get_by_id(1)
    assert r == Restaurant(
        id=1, name="a", long_description="a", address="a", img_url="a",
        rating=5.0, comment_count=0,
    )


def test_get_by_filter_db_error():
    with pytest.raises(sqlite3.OperationalError):
        RestaurantRepo(_BrokenDb(), new_metrics()).get_by_filter(1)


def test_get_by_filter_ok(db):
    _add_rest(db, 1)
    db.execute("INSERT INTO rest_categories VALUES (1, 1)")
    rests = RestaurantRepo(db, new_metrics()).get_by_filter(1)
    assert rests == [Restaurant(id=1, name="a", short_description="a", img_url="a")]


def test_get_by_filter_empty_is_none(db):
    _add_rest(db, 1)
    assert RestaurantRepo(db, new_metrics()).get_by_filter(3) is None


def test_get_category_list(db):
    db.execute("INSERT INTO category VALUES (1, 'pizza', 'rest'), (2, 'soups', 'food')")
    cats = RestaurantRepo(db, new_metrics()).get_category_list()
    assert cats == [RestaurantCategory(id=1, name="pizza")]


def test_get_top_limits(db):
    for rid, rating in [(1, 1.0), (2, 3.0), (3, 2.0)]:
        _add_rest(db, rid, rating=rating)
    assert [r.id for r in RestaurantRepo(db, new_metrics()).get_top(2)] == [2, 3]


def test_get_last_rests(db):
    for rid in (1, 2, 3):
        _add_rest(db, rid)
    db.executescript(
        """
        INSERT INTO food VALUES (10, 1), (20, 2), (30, 3);
        INSERT INTO "order" VALUES (100, 9, '2024-01-01'), (101, 9, '2024-03-01'),
                                   (102, 9, '2024-02-01'), (103, 8, '2024-04-01');
        INSERT INTO food_order VALUES (10, 100), (20, 101), (30, 102), (10, 103);
        """
    )
    rests = RestaurantRepo(db, new_metrics()).get_last_rests(9, 2)
    assert [r.id for r in rests] == [2, 3]


# service


def _service(repo):
    return RestaurantService(repo)


def test_service_get_all_internal_error():
    repo = Mock()
    repo.get_all.side_effect = RuntimeError("error")
    with pytest.raises(GrpcError) as exc:
        _service(repo).get_all()
    assert exc.value == GrpcError(StatusCode.INTERNAL, "error")


def test_service_get_by_id_internal_error():
    repo = Mock()
    repo.get_by_id.side_effect = RuntimeError("error")
    with pytest.raises(GrpcError) as exc:
        _service(repo).get_by_id(1)
    assert exc.value.status == StatusCode.INTERNAL
    repo.get_by_id.assert_called_once_with(1)


def test_service_get_by_id_not_found():
    repo = Mock()
    repo.get_by_id.side_effect = NoRowsError("restaurant")
    with pytest.raises(GrpcError) as exc:
        _service(repo).get_by_id(1)
    assert exc.value == GrpcError(StatusCode.NOT_FOUND, str(NoRowsError("restaurant")))


def test_service_get_by_id_ok():
    expected = Restaurant(
        id=1, name="a", short_description="a", long_description="a",
        address="a", img_url="a", rating=5, comment_count=5,
    )
    repo = Mock()
    repo.get_by_id.return_value = expected
    assert _service(repo).get_by_id(1) == expected


def test_service_get_by_filter_internal_error():
    repo = Mock()
    repo.get_by_filter.side_effect = RuntimeError("error")
    with pytest.raises(GrpcError) as exc:
        _service(repo).get_by_filter(1)
    assert exc.value.status == StatusCode.INTERNAL


def test_service_get_category_list_internal_error():
    repo = Mock()
    repo.get_category_list.side_effect = RuntimeError("error")
    with pytest.raises(GrpcError) as exc:
        _service(repo).get_category_list()
    assert exc.value == GrpcError(StatusCode.INTERNAL, "error")


def _rests(*ids):
    return [Restaurant(id=i, name=f"r{i}") for i in ids]


def test_recommendation_anonymous_takes_top():
    repo = Mock()
    repo.get_top.return_value = _rests(1, 2, 3, 4, 5)
    result = _service(repo).get_recommendation(0, 3)
    assert [r.id for r in result] == [1, 2, 3]
    repo.get_top.assert_called_once_with(5)
    repo.get_last_rests.assert_not_called()


def test_recommendation_mixes_last_and_top():
    repo = Mock()
    repo.get_top.return_value = _rests(1, 4, 2, 3, 6, 7, 8)
    repo.get_last_rests.return_value = _rests(4, 9)
    result = _service(repo).get_recommendation(5, 5)
    assert [r.id for r in result] == [4, 9, 1, 2, 3]
    repo.get_last_rests.assert_called_once_with(5, 2)


def test_recommendation_no_orders_uses_top():
    repo = Mock()
    repo.get_top.return_value = _rests(1, 2, 3)
    repo.get_last_rests.return_value = []
    result = _service(repo).get_recommendation(5, 1)
    assert [r.id for r in result] == [1, 2, 3]


def test_recommendation_top_error():
    repo = Mock()
    repo.get_top.side_effect = RuntimeError("error")
    with pytest.raises(GrpcError) as exc:
        _service(repo).get_recommendation(1, 3)
    assert exc.value == GrpcError(StatusCode.INTERNAL, "error")