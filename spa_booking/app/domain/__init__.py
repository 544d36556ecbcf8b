"""Domain package: ORM models, immutable catalog snapshots and booking errors."""

from . import entities, errors, models  # noqa: F401

__all__ = ["entities", "errors", "models"]
