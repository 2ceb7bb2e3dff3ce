"""Service layer consumed by HTTP controllers and event handlers"""
from gamify.services.container import ServiceContainer, get_container, init_container
from gamify.services.gamification_service import GamificationService

__all__ = [
    "ServiceContainer",
    "get_container",
    "init_container",
    "GamificationService",
]
