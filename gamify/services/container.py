"""
Service Container - Dependency Injection Container

Holds the store and builds the engine and services lazily on first access.
"""

from dataclasses import dataclass, field
from typing import Optional
import logging

from gamify.db.store import GamificationStore

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """
    Simple dependency injection container.

    The store is injected; the engine and services are lazy-loaded via
    properties.
    """

    store: GamificationStore

    _engine: Optional[object] = field(default=None, init=False, repr=False)
    _gamification_service: Optional[object] = field(default=None, init=False, repr=False)

    @property
    def engine(self):
        """Get GamificationEngine instance (lazy-loaded)"""
        if self._engine is None:
            from gamify.gamification.engine import GamificationEngine
            self._engine = GamificationEngine(self.store)
            logger.debug("GamificationEngine instantiated")
        return self._engine

    @property
    def gamification_service(self):
        """Get GamificationService instance (lazy-loaded)"""
        if self._gamification_service is None:
            from gamify.services.gamification_service import GamificationService
            self._gamification_service = GamificationService(self.engine)
            logger.debug("GamificationService instantiated")
        return self._gamification_service


# Global container instance
_container: Optional[ServiceContainer] = None


def get_container() -> ServiceContainer:
    """
    Get the global service container.

    Raises:
        RuntimeError: If container not initialized (call init_container first)
    """
    if _container is None:
        raise RuntimeError(
            "Service container not initialized. "
            "Call init_container() before using services."
        )
    return _container


def init_container(store: Optional[GamificationStore] = None) -> ServiceContainer:
    """
    Initialize the global service container.

    Args:
        store: Store to use; defaults to PostgresStore (the pool must be
            initialized with gamify.db.connection.db.init_pool())

    Returns:
        ServiceContainer: The initialized container
    """
    global _container

    if store is None:
        from gamify.db.postgres_store import PostgresStore
        store = PostgresStore()

    _container = ServiceContainer(store=store)
    logger.info(f"Service container initialized with {store.__class__.__name__}")
    return _container


def reset_container() -> None:
    """Drop the global container"""
    global _container
    _container = None
