"""Shared repository helpers used by concrete persistence classes."""

from __future__ import annotations

from typing import Generic, TypeVar

from sqlalchemy.orm import Session

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """Small abstraction around SQLAlchemy session interactions."""

    def add(self, session: Session, instance: T) -> T:
        """Stage a new instance and flush so database defaults are populated."""
        session.add(instance)
        session.flush()
        return instance
