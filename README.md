# kayros

The service layer of a food delivery backend. It is written with the
standard library only. Each area has two parts:

- a repository, which talks to storage;
- a service, which sits on top of the repository. When storage fails, the
  service logs the error and raises a `GrpcError` that carries a `StatusCode`.

Most repositories take a database connection that has `execute()` and
`commit()` and uses qmark (`?`) parameters, such as `sqlite3.Connection`.
`SessionRepo` takes a Redis-style client instead. It needs `get(key)`,
`set(key, value, ex=...)` and `delete(key)`.

## Modules

### `kayros.metrics`

In-process metrics.

- `Counter.inc(amount)` adds to a counter. A negative amount raises
  `ValueError`.
- `Histogram.observe(value)` records a value into cumulative buckets. The
  default bounds are 10, 25, 50, 100, 250, 500 and 1000.
- `HistogramVec.labels(*values)` returns the histogram for a set of label
  values and creates it when it is first asked for.
- `new_metrics(namespace)` builds a `MicroserviceMetrics`. It holds a request
  counter and two histogram families, `request_time` and `database_duration`.
  Their names are prefixed with the namespace.
- `MicroserviceMetrics.timed(operation)` is a context manager. It records the
  block's duration, in whole milliseconds, in `database_duration` under the
  given `Operation` (`SELECT`, `UPDATE`, `DELETE`, `INSERT` or `REDIS`).

### `kayros.errors`

- `StatusCode` lists the RPC status codes.
- `GrpcError(status, message)` compares equal by status and message.
- The domain errors all derive from `KayrosError`:
  - `NoRowsError(relation)`
  - `RedisNoDataError`
  - `UserAlreadyExistsError`
  - `BadAuthPasswordError`
  - `IncorrectCurrentPasswordError`
  - `SamePasswordError`
  - `WrongFileExtensionError`
- `grpc_error_matches(error, code, message)` tells whether an exception is a
  `GrpcError` with that code and message.

### `kayros.comment`

`Comment`, `CommentRepo` and `CommentService`.

`CommentRepo.create` does three things:

1. it stores the comment;
2. it folds the comment's rating into the restaurant's running average and
   raises its comment count;
3. it marks the order as commented.

A missing comment, restaurant or order becomes `NOT_FOUND` in the service.
Any other failure becomes `INTERNAL`. `get_by_rest` returns only comments that
have text.

### `kayros.food`

`Food`, `FoodCategory`, `FoodRepo` and `FoodService`.

`group_by_category(dishes)` groups runs of dishes that share a category into
`FoodCategory` objects numbered from 0. A group is emitted only once a dish of
another category follows it, so the final run of dishes produces no group.
`FoodService.get_by_rest_id` returns these groups. `get_by_id` raises
`NOT_FOUND` for an unknown dish.

### `kayros.restaurants`

`Restaurant`, `RestaurantCategory`, `RestaurantRepo` and `RestaurantService`.

- `get_all` lists restaurants best rated first.
- `get_by_filter(category_id)` returns `None` when a category has no
  restaurants.
- `get_recommendation(user_id, limit)` works as follows:
  - an anonymous user (id 0) gets the `limit` best rated restaurants;
  - any other user gets the two restaurants they ordered from most recently,
    topped up with the best rated ones not already listed, up to five in all.

### `kayros.session`

`SessionRepo` and `SessionService`.

- `set_value` stores a value for fourteen days (`SESSION_TTL`).
- `get_value` on a missing key raises `RedisNoDataError`. The service turns
  this into `NOT_FOUND`.
- `SessionService` sends a request to the CSRF repository when its database
  number equals `csrf_database`. It sends every other request to the session
  repository.

### `kayros.user`

`User`, `UserRepo` and `UserService`.

The service covers:

- profile reads, with password and card number cleared;
- profile updates, including an avatar upload;
- address changes;
- password checks and changes;
- registration;
- addresses for visitors who are not signed in.
  `update_address_by_unauth_id` creates the address when none exists.

Passwords are stored salted. By default the hasher uses an 8-byte random salt
followed by SHA-256. Any object with `new_salt()` and `hash(salt, password)`
can be passed as `hasher`.

Avatars must be JPEG, PNG or WebP. They are handed to a `storage` object with
`upload_image(data, filename, mime_type)` and served under
`/minio-api/users/<filename>`. New users without an image get `DEFAULT_IMAGE_URL`.

### `kayros.auth`

`SignUpCredentials`, `AuthUser` and `AuthService`.

`AuthService` needs a client with `get_data`, `create` and
`is_password_equals`. A `UserService` fits.

- `sign_up` raises `ALREADY_EXISTS` for an e-mail that is already taken.
- `sign_in` raises `INVALID_ARGUMENT` for a wrong password.

## Example

```python
import sqlite3

from kayros.errors import GrpcError, StatusCode
from kayros.metrics import new_metrics
from kayros.restaurants import RestaurantRepo, RestaurantService

metrics = new_metrics("restaurants")
db = sqlite3.connect("delivery.db")
service = RestaurantService(RestaurantRepo(db, metrics))

try:
    rest = service.get_by_id(1)
except GrpcError as err:
    if err.status is StatusCode.NOT_FOUND:
        print("no such restaurant")
else:
    print(rest.name, rest.rating)
```

## What this package does not do

- It has no command-line entry point.
- It has no RPC or HTTP server, and nothing that exposes the metrics over the
  network.
- It does not create database tables. The `restaurant`, `food`, `category`,
  `comment`, `"user"`, `"order"`, `food_order`, `rest_categories` and
  `unauth_address` tables must already exist.
- It does not open connections or talk to an object store itself. The database
  connection, the key-value client and the avatar storage are all passed in by
  the caller.

## Tests

The test suite uses pytest. It is installed with the `test` extra.