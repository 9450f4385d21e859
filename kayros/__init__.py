"""Service layer for a food delivery backend: repositories and services for restaurants, menus, comments, users, sessions and authentication."""

__version__ = "0.1.0"

__all__ = [
    "auth",
    "comment",
    "errors",
    "food",
    "metrics",
    "restaurants",
    "session",
    "user",
]