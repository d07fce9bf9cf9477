"""SQLite-backed durable state."""

from editgate.persistence.repositories import PlanRepository
from editgate.persistence.state_db import (
    StateDB,
    StateDBBusyError,
    StateDBError,
    StateDBMigrationError,
)

__all__ = [
    "PlanRepository",
    "StateDB",
    "StateDBBusyError",
    "StateDBError",
    "StateDBMigrationError",
]
