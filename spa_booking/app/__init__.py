"""Application package.

Core (config/db/logging), domain (ORM models, catalog snapshots, errors) and
services (lane resolution, availability, assignment, store adapter).
"""

from .core import db
from .domain import models

__all__ = ["db", "models"]
