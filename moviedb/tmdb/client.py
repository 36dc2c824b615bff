"""
TMDB API client with retry and linear backoff
"""

import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Mapping, Optional

import requests

from moviedb.config.settings import Settings, get_settings
from moviedb.services.exceptions import UpstreamError
from moviedb.services.logger_service import get_logger
from moviedb.services.monitoring_service import get_monitoring_service

CATEGORIES = ("popular", "top_rated", "now_playing", "upcoming")


class TmdbClientError(UpstreamError):
    def __init__(self, message: str, status_code: Optional[int] = None, body_snippet: Optional[str] = None):
        super().__init__(message, upstream_status=status_code)
        self.body_snippet = body_snippet


class TmdbNotFoundError(TmdbClientError):
    """TMDB answered 404 for the requested resource"""


def _is_retryable(status_code: int) -> bool:
    return status_code == 429 or 500 <= status_code < 600


class TmdbClient:
    """Thin wrapper around the TMDB v3 REST API"""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings or get_settings()
        self.base_url = self.settings.tmdb_base_url
        self.api_key = self.settings.tmdb_api_key
        self.timeout = self.settings.tmdb_timeout
        self.max_retries = self.settings.tmdb_max_retries
        self.retry_delay = self.settings.tmdb_retry_delay
        self.session = session or requests.Session()
        self.session.headers.update({"accept": "application/json"})
        self._sleep = sleep
        self.logger = get_logger("tmdb.client")
        self.monitoring = get_monitoring_service()

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _request(self, endpoint: str, params: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """GET endpoint, retrying network errors, 429 and 5xx up to max_retries times"""
        url = f"{self.base_url}{endpoint}"
        query = {"api_key": self.api_key, **(params or {})}

        attempt = 0
        while True:
            start = time.time()
            try:
                response = self.session.get(url, params=query, timeout=self.timeout)
            except requests.RequestException as e:
                error = TmdbClientError(f"TMDB request to {endpoint} failed: {e}")
                retryable = True
            else:
                self.monitoring.record_histogram(
                    "tmdb_request_duration_seconds", time.time() - start, tags={"endpoint": endpoint.split("/")[1]}
                )
                if response.status_code == 200:
                    self.monitoring.increment_counter("tmdb_requests_total", tags={"status": "success"})
                    try:
                        return response.json()
                    except ValueError as e:
                        raise TmdbClientError(
                            "TMDB returned a non-JSON response",
                            status_code=response.status_code,
                            body_snippet=(response.text or "")[:400],
                        ) from e

                error_cls = TmdbNotFoundError if response.status_code == 404 else TmdbClientError
                error = error_cls(
                    f"TMDB request to {endpoint} failed with HTTP {response.status_code}",
                    status_code=response.status_code,
                    body_snippet=(response.text or "")[:400],
                )
                retryable = _is_retryable(response.status_code)

            if not retryable or attempt >= self.max_retries:
                self.monitoring.increment_counter("tmdb_requests_total", tags={"status": "failure"})
                self.logger.error(
                    "TMDB request failed", endpoint=endpoint, attempts=attempt + 1, status_code=error.upstream_status
                )
                raise error

            attempt += 1
            delay = self.retry_delay * attempt
            self.logger.warning(
                "Retrying TMDB request",
                endpoint=endpoint,
                attempt=attempt,
                max_retries=self.max_retries,
                delay_seconds=delay,
                error=error.message,
            )
            self._sleep(delay)

    def _get_movie_list(self, category: str, page: int = 1) -> Dict[str, Any]:
        data = self._request(f"/movie/{category}", {"page": page})
        self.logger.info(
            "Fetched movie list", category=category, page=page, results=len(data.get("results", []))
        )
        return data

    def get_popular_movies(self, page: int = 1) -> Dict[str, Any]:
        return self._get_movie_list("popular", page)

    def get_top_rated_movies(self, page: int = 1) -> Dict[str, Any]:
        return self._get_movie_list("top_rated", page)

    def get_now_playing_movies(self, page: int = 1) -> Dict[str, Any]:
        return self._get_movie_list("now_playing", page)

    def get_upcoming_movies(self, page: int = 1) -> Dict[str, Any]:
        return self._get_movie_list("upcoming", page)

    def get_movie_details(self, tmdb_id: int) -> Dict[str, Any]:
        data = self._request(f"/movie/{tmdb_id}")
        self.logger.info("Fetched movie details", tmdb_id=tmdb_id, title=data.get("title"))
        return data

    def search_movies(self, query: str, page: int = 1) -> Dict[str, Any]:
        data = self._request("/search/movie", {"query": query, "page": page})
        self.logger.info("Searched TMDB", query=query, page=page, results=len(data.get("results", [])))
        return data

    def discover_movies(self, **params) -> Dict[str, Any]:
        data = self._request("/discover/movie", params)
        self.logger.info("Discovered movies", params=params, results=len(data.get("results", [])))
        return data

    def get_genres(self) -> List[Dict[str, Any]]:
        genres = self._request("/genre/movie/list").get("genres", [])
        self.logger.info("Fetched genres", count=len(genres))
        return genres

    def fetch_all_pages(self, fetch_fn: Callable[[int], Dict[str, Any]], max_pages: int = 5) -> List[Dict[str, Any]]:
        """
        Collect results from pages 1..max_pages of a paged endpoint.

        Stops at the endpoint's total_pages, or at the first page that fails.
        """
        results: List[Dict[str, Any]] = []
        page = 1
        while page <= max_pages:
            try:
                data = fetch_fn(page)
            except TmdbClientError as e:
                self.logger.error("Stopping pagination after failed page", page=page, error=e.message)
                break

            results.extend(data.get("results", []))
            if page >= data.get("total_pages", 1):
                break
            page += 1

        return results

    def fetch_multiple_categories(self, pages: int = 1) -> Dict[str, List[Dict[str, Any]]]:
        """Fetch popular, top rated, now playing and upcoming concurrently"""
        fetchers = {
            "popular": self.get_popular_movies,
            "top_rated": self.get_top_rated_movies,
            "now_playing": self.get_now_playing_movies,
            "upcoming": self.get_upcoming_movies,
        }

        with ThreadPoolExecutor(max_workers=len(CATEGORIES), thread_name_prefix="tmdb") as executor:
            futures = {
                category: executor.submit(self.fetch_all_pages, fetchers[category], pages) for category in CATEGORIES
            }
            categories = {category: future.result() for category, future in futures.items()}

        self.logger.info(
            "Fetched movie categories", pages=pages, counts={k: len(v) for k, v in categories.items()}
        )
        return categories

    def get_movies_with_details(self, tmdb_ids: List[int], delay: float = 0.25) -> List[Dict[str, Any]]:
        details = []
        for index, tmdb_id in enumerate(tmdb_ids):
            try:
                details.append(self.get_movie_details(tmdb_id))
            except TmdbClientError as e:
                self.logger.error("Skipping movie details", tmdb_id=tmdb_id, error=e.message)

            if delay and index < len(tmdb_ids) - 1:
                self._sleep(delay)

        return details

    def close(self) -> None:
        self.session.close()


_tmdb_client: Optional[TmdbClient] = None


def get_tmdb_client() -> TmdbClient:
    """Get global TMDB client instance"""
    global _tmdb_client
    if _tmdb_client is None:
        _tmdb_client = TmdbClient()
    return _tmdb_client
