"""
Rentalman Adapters.

Implementations of the repository protocols.
The backend is chosen with RENTALMAN["REPOSITORY_BACKEND"].
"""

from rentalman.adapters.memory import InMemoryRepository
from rentalman.adapters.orm import OrmRepository
from rentalman.conf import get_repository_backend, reset_repository


def get_repository():
    """Return the configured repository (singleton)."""
    return get_repository_backend()


__all__ = [
    "OrmRepository",
    "InMemoryRepository",
    "get_repository",
    "reset_repository",
]
