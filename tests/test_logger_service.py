import json
import logging
import sys

import pytest

from moviedb.services.logger_service import (
    StructuredFormatter,
    TextFormatter,
    bind_context,
    current_context,
    get_logger,
    handle_exceptions,
)


def make_record(message="Movie saved", **fields):
    record = logging.LogRecord("moviedb.tests", logging.WARNING, "", 0, message, (), None)
    record.fields = fields
    return record


def test_bound_fields_reach_every_record(caplog):
    logger = get_logger("tests")

    with bind_context(request_id="abc123"):
        logger.warning("Inside", movie_id=3)
        assert current_context() == {"request_id": "abc123"}
    logger.warning("Outside")

    inside, outside = [r for r in caplog.records if r.name == "moviedb.tests"]
    assert inside.fields == {"request_id": "abc123", "movie_id": 3}
    assert outside.fields == {}
    assert current_context() == {}


def test_bound_logger_keeps_its_fields(caplog):
    get_logger("tests").bind(job="popular").warning("Page skipped", page=4)

    record = [r for r in caplog.records if r.name == "moviedb.tests"][-1]
    assert record.fields == {"job": "popular", "page": 4}


def test_json_formatter():
    data = json.loads(StructuredFormatter().format(make_record(movie_id=3)))

    assert data["message"] == "Movie saved"
    assert data["level"] == "WARNING"
    assert data["movie_id"] == 3
    assert data["timestamp"].endswith("+00:00")


def test_json_formatter_includes_exception():
    record = make_record()
    try:
        raise KeyError("tmdb_id")
    except KeyError:
        record.exc_info = sys.exc_info()

    data = json.loads(StructuredFormatter().format(record))

    assert data["exception"]["type"] == "KeyError"
    assert "Traceback" in data["exception"]["traceback"]


def test_text_formatter_appends_fields():
    line = TextFormatter().format(make_record(movie_id=3, cached=False))

    assert line.endswith("Movie saved | movie_id=3 cached=False")


def test_handle_exceptions_logs_and_reraises(caplog):
    @handle_exceptions("tests.errors", "import job")
    def explode():
        raise ValueError("bad payload")

    with pytest.raises(ValueError):
        explode()

    record = [r for r in caplog.records if r.name == "moviedb.tests.errors"][-1]
    assert record.getMessage() == "Unhandled error in import job"
    assert record.fields["error_type"] == "ValueError"


def test_request_id_header(client):
    echoed = client.get("/", headers={"X-Request-ID": "req-42"})
    generated = client.get("/")

    assert echoed.headers["X-Request-ID"] == "req-42"
    assert len(generated.headers["X-Request-ID"]) == 12
