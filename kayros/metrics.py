"""In-process metrics for service request counts and database timings."""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator

DEFAULT_BUCKETS: tuple[float, ...] = (10.0, 25.0, 50.0, 100.0, 250.0, 500.0, 1000.0)


class Operation(str, Enum):
    """Kind of storage operation a duration is recorded for."""

    SELECT = "SELECT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    INSERT = "INSERT"
    REDIS = "REDIS"


def _full_name(namespace: str, name: str) -> str:
    return f"{namespace}_{name}" if namespace else name


def _label_value(value: object) -> str:
    return str(value.value) if isinstance(value, Enum) else str(value)


@dataclass
class Counter:
    """A monotonically increasing counter."""

    name: str
    help: str = ""
    value: float = 0.0

    def inc(self, amount: float = 1.0) -> None:
        """Increase the counter; a negative amount is rejected."""
        if amount < 0:
            raise ValueError("counter cannot decrease in value")
        self.value += amount


@dataclass
class Histogram:
    """Observations sorted into cumulative upper-bound buckets."""

    buckets: tuple[float, ...] = DEFAULT_BUCKETS
    count: int = 0
    total: float = 0.0
    bucket_counts: dict[float, int] = field(init=False)

    def __post_init__(self) -> None:
        self.buckets = tuple(sorted(float(bound) for bound in self.buckets))
        self.bucket_counts = dict.fromkeys(self.buckets, 0)

    def observe(self, value: float) -> None:
        """Record one observation."""
        self.count += 1
        self.total += value
        for bound in self.buckets:
            if value <= bound:
                self.bucket_counts[bound] += 1


@dataclass
class HistogramVec:
    """A family of histograms partitioned by label values."""

    name: str
    label_names: tuple[str, ...]
    help: str = ""
    buckets: tuple[float, ...] = DEFAULT_BUCKETS
    _children: dict[tuple[str, ...], Histogram] = field(
        default_factory=dict, init=False, repr=False
    )

    def labels(self, *args: object) -> Histogram:
        """Return the histogram for the given label values, creating it if needed."""
        if len(args) != len(self.label_names):
            raise ValueError(
                f"expected {len(self.label_names)} label values, got {len(args)}"
            )
        key = tuple(_label_value(arg) for arg in args)
        child = self._children.get(key)
        if child is None:
            child = self._children[key] = Histogram(self.buckets)
        return child


@dataclass
class MicroserviceMetrics:
    """Metrics shared by the services' storage layers."""

    total_number_of_requests: Counter
    request_time: HistogramVec
    database_duration: HistogramVec

    @contextmanager
    def timed(self, operation: Operation | str) -> Iterator[None]:
        """Record the block's duration in whole milliseconds under ``operation``."""
        start = time.perf_counter()
        try:
            yield
        finally:
            elapsed_ms = int((time.perf_counter() - start) * 1000)
            self.database_duration.labels(operation).observe(float(elapsed_ms))


def new_metrics(namespace: str = "") -> MicroserviceMetrics:
    """Build the standard metric set under ``namespace``."""
    return MicroserviceMetrics(
        total_number_of_requests=Counter(
            name=_full_name(namespace, "number_of_requests"),
            help="number of requests",
        ),
        request_time=HistogramVec(
            name=_full_name(namespace, "time_of_request"),
            label_names=("status",),
            help="HTTP request duration in milliseconds",
        ),
        database_duration=HistogramVec(
            name=_full_name(namespace, "database_duration_ms"),
            label_names=("operation",),
            help="Database request duration in milliseconds",
        ),
    )