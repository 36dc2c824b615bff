"""
Service layer for the movie database.

Services wrap ORM access per resource and raise the domain exceptions in
moviedb.services.exceptions; routers translate those into HTTP responses.
"""

from .cache_service import CacheService, get_cache_service
from .monitoring_service import get_monitoring_service

__all__ = ["CacheService", "get_cache_service", "get_monitoring_service"]
