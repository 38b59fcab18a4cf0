"""Services package for match state persistence."""

from .persistence_coordinator import (
    PersistenceCoordinator,
    CoordinatorStatus,
    create_persistence_coordinator,
)

__all__ = [
    "PersistenceCoordinator",
    "CoordinatorStatus",
    "create_persistence_coordinator",
]
