"""Restaurant reviews: storage and the service on top of it."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any

from kayros.errors import GrpcError, NoRowsError, StatusCode
from kayros.metrics import MicroserviceMetrics, Operation

_NOT_FOUND_RELATIONS = frozenset({"comment", "restaurant", "order"})


@dataclass
class Comment:
    """A review left on a restaurant after an order."""

    id: int = 0
    user_id: int = 0
    rest_id: int = 0
    order_id: int = 0
    user_name: str = ""
    image: str = ""
    text: str = ""
    rating: int = 0


class CommentRepo:
    """Comment storage over a DB-API connection using qmark parameters."""

    def __init__(self, db: Any, metrics: MicroserviceMetrics) -> None:
        self._db = db
        self._metrics = metrics

    def _execute(self, operation: Operation, query: str, params: tuple = ()) -> Any:
        with self._metrics.timed(operation):
            return self._db.execute(query, params)

    def create(self, comment: Comment) -> Comment:
        """Store a comment, fold its rating into the restaurant and mark the order."""
        cursor = self._execute(
            Operation.INSERT,
            'INSERT INTO "comment" (user_id, restaurant_id, text, rating) '
            "VALUES (?, ?, ?, ?) RETURNING id",
            (comment.user_id, comment.rest_id, comment.text or None, comment.rating),
        )
        row = cursor.fetchone()
        self._db.commit()
        if row is None:
            raise NoRowsError("comment")
        created = replace(comment, id=row[0])

        row = self._execute(
            Operation.SELECT,
            "SELECT rating, comment_count FROM restaurant WHERE id=?",
            (created.rest_id,),
        ).fetchone()
        if row is None:
            raise NoRowsError("restaurant")
        rating = float(row[0] or 0.0)
        count = int(row[1] or 0)
        new_rating = (rating * count + created.rating) / (count + 1)

        cursor = self._execute(
            Operation.UPDATE,
            "UPDATE restaurant SET rating=?, comment_count=? WHERE id=?",
            (new_rating, count + 1, created.rest_id),
        )
        self._db.commit()
        if cursor.rowcount == 0:
            raise NoRowsError("user")

        cursor = self._execute(
            Operation.UPDATE,
            'UPDATE "order" SET commented=true WHERE id=?',
            (created.order_id,),
        )
        self._db.commit()
        if cursor.rowcount == 0:
            raise NoRowsError("user")
        return created

    def get_by_rest(self, rest_id: int) -> list[Comment]:
        """Return the restaurant's comments that carry text."""
        cursor = self._execute(
            Operation.SELECT,
            'SELECT c.id, u.name, u.img_url, c.text, c.rating FROM "comment" AS c '
            'JOIN "user" AS u ON c.user_id = u.id '
            "WHERE restaurant_id=? AND c.text IS NOT NULL AND c.text !=''",
            (rest_id,),
        )
        return [
            Comment(id=cid, user_name=name, image=image, text=text, rating=rating)
            for cid, name, image, text, rating in cursor.fetchall()
        ]

    def delete(self, comment_id: int) -> None:
        """Delete a comment by id."""
        cursor = self._execute(
            Operation.DELETE, 'DELETE FROM "comment" WHERE id=?', (comment_id,)
        )
        self._db.commit()
        if cursor.rowcount == 0:
            raise NoRowsError("comment")


class CommentService:
    """Service layer turning storage failures into status errors."""

    def __init__(self, repo: CommentRepo, logger: logging.Logger | None = None) -> None:
        self._repo = repo
        self._logger = logger or logging.getLogger(__name__)

    def create_comment(self, comment: Comment) -> Comment:
        try:
            return self._repo.create(comment)
        except Exception as err:
            self._logger.error(str(err))
            if isinstance(err, NoRowsError) and err.relation in _NOT_FOUND_RELATIONS:
                raise GrpcError(StatusCode.NOT_FOUND, str(err)) from err
            raise GrpcError(StatusCode.INTERNAL, str(err)) from err

    def get_comments_by_rest(self, rest_id: int) -> list[Comment]:
        try:
            return self._repo.get_by_rest(rest_id)
        except Exception as err:
            self._logger.error(str(err))
            raise GrpcError(StatusCode.INTERNAL, str(err)) from err

    def delete_comment(self, comment_id: int) -> None:
        try:
            self._repo.delete(comment_id)
        except Exception as err:
            self._logger.error(str(err))
            raise GrpcError(StatusCode.INTERNAL, str(err)) from err