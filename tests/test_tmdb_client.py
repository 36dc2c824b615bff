from unittest.mock import MagicMock

import pytest
import requests

from moviedb.config.settings import Settings
from moviedb.tmdb.client import TmdbClient, TmdbClientError, TmdbNotFoundError


def make_response(status_code=200, payload=None, text=""):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload if payload is not None else {}
    response.text = text
    return response


@pytest.fixture
def settings(monkeypatch):
    monkeypatch.setenv("TMDB_API_KEY", "test-key")
    monkeypatch.setenv("TMDB_MAX_RETRIES", "3")
    monkeypatch.setenv("TMDB_RETRY_DELAY", "1.0")
    return Settings()


@pytest.fixture
def http():
    return MagicMock(spec=requests.Session, headers={})


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def tmdb(settings, http, sleeps):
    return TmdbClient(settings, session=http, sleep=sleeps.append)


def test_request_sends_api_key_and_params(tmdb, http):
    http.get.return_value = make_response(payload={"results": [{"id": 1}], "total_pages": 1})

    data = tmdb.get_popular_movies(page=2)

    assert data["results"] == [{"id": 1}]
    url = http.get.call_args.args[0]
    params = http.get.call_args.kwargs["params"]
    assert url == "https://api.themoviedb.org/3/movie/popular"
    assert params == {"api_key": "test-key", "page": 2}
    assert http.get.call_args.kwargs["timeout"] == 10


def test_retries_server_errors_with_linear_backoff(tmdb, http, sleeps):
    http.get.side_effect = [
        make_response(503),
        make_response(429),
        make_response(payload={"id": 550, "title": "Fight Club"}),
    ]

    details = tmdb.get_movie_details(550)

    assert details["title"] == "Fight Club"
    assert http.get.call_count == 3
    assert sleeps == [1.0, 2.0]


def test_retries_network_errors(tmdb, http, sleeps):
    http.get.side_effect = [requests.ConnectionError("reset"), make_response(payload={"genres": []})]

    assert tmdb.get_genres() == []
    assert sleeps == [1.0]


def test_gives_up_after_max_retries(tmdb, http, sleeps):
    http.get.return_value = make_response(500, text="boom")

    with pytest.raises(TmdbClientError) as excinfo:
        tmdb.get_movie_details(1)

    assert http.get.call_count == 4
    assert sleeps == [1.0, 2.0, 3.0]
    assert excinfo.value.upstream_status == 500
    assert excinfo.value.status_code == 502
    assert excinfo.value.body_snippet == "boom"


def test_client_errors_are_not_retried(tmdb, http, sleeps):
    http.get.return_value = make_response(401, text='{"status_message": "Invalid API key"}')

    with pytest.raises(TmdbClientError) as excinfo:
        tmdb.get_popular_movies()

    assert http.get.call_count == 1
    assert sleeps == []
    assert excinfo.value.upstream_status == 401


def test_not_found_raises_specific_error(tmdb, http):
    http.get.return_value = make_response(404)

    with pytest.raises(TmdbNotFoundError):
        tmdb.get_movie_details(999999)

    assert http.get.call_count == 1


def test_non_json_body_is_an_error(tmdb, http):
    response = make_response(200, text="<html>")
    response.json.side_effect = ValueError("no json")
    http.get.return_value = response

    with pytest.raises(TmdbClientError, match="non-JSON"):
        tmdb.get_genres()


def test_fetch_all_pages_stops_at_total_pages(tmdb):
    pages = {
        1: {"results": [{"id": 1}], "total_pages": 2},
        2: {"results": [{"id": 2}], "total_pages": 2},
    }
    fetch = MagicMock(side_effect=lambda page: pages[page])

    results = tmdb.fetch_all_pages(fetch, max_pages=5)

    assert [r["id"] for r in results] == [1, 2]
    assert fetch.call_count == 2


def test_fetch_all_pages_keeps_results_before_failure(tmdb):
    fetch = MagicMock(side_effect=[{"results": [{"id": 1}], "total_pages": 3}, TmdbClientError("down")])

    results = tmdb.fetch_all_pages(fetch, max_pages=3)

    assert [r["id"] for r in results] == [1]


def test_fetch_multiple_categories(tmdb, http):
    def respond(url, params, timeout):
        category = url.rsplit("/", 1)[1]
        return make_response(payload={"results": [{"id": category}], "total_pages": 1})

    http.get.side_effect = respond

    categories = tmdb.fetch_multiple_categories(pages=1)

    assert set(categories) == {"popular", "top_rated", "now_playing", "upcoming"}
    assert categories["top_rated"] == [{"id": "top_rated"}]


def test_get_movies_with_details_skips_failures(tmdb, http, sleeps):
    http.get.side_effect = [make_response(payload={"id": 1}), make_response(404), make_response(payload={"id": 3})]

    details = tmdb.get_movies_with_details([1, 2, 3], delay=0.25)

    assert [d["id"] for d in details] == [1, 3]
    assert sleeps == [0.25, 0.25]


def test_search_and_discover_pass_parameters(tmdb, http):
    http.get.return_value = make_response(payload={"results": []})

    tmdb.search_movies("alien", page=3)
    search_params = http.get.call_args.kwargs["params"]
    tmdb.discover_movies(with_genres="28", sort_by="popularity.desc")
    discover_params = http.get.call_args.kwargs["params"]

    assert search_params["query"] == "alien"
    assert search_params["page"] == 3
    assert discover_params["with_genres"] == "28"
    assert discover_params["sort_by"] == "popularity.desc"
