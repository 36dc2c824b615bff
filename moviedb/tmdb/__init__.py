"""
TMDB integration: API client and synchronization jobs (moviedb.tmdb.sync)
"""

from .client import TmdbClient, TmdbClientError, TmdbNotFoundError, get_tmdb_client

__all__ = ["TmdbClient", "TmdbClientError", "TmdbNotFoundError", "get_tmdb_client"]
