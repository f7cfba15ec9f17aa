"""Persistence layer for subscriptions and connected accounts."""

from .sqlite import SqliteSubscriptionRepository

__all__ = ["SqliteSubscriptionRepository"]
