"""
Movie catalogue service: CRUD, filtered search, TMDB upserts and rating rollups
"""

import math
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import asc, desc, func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from moviedb.database.models import Movie, Rating
from moviedb.services.exceptions import ConflictError, NotFoundError
from moviedb.services.logger_service import get_logger, log_execution_time
from moviedb.tmdb.client import TmdbNotFoundError

SORT_COLUMNS = {
    "title": Movie.title,
    "release_date": Movie.release_date,
    "popularity": Movie.popularity,
    "vote_average": Movie.vote_average,
    "user_rating_average": Movie.user_rating_average,
    "created_at": Movie.created_at,
}

# Columns a TMDB list/detail payload maps onto directly
TMDB_FIELDS = (
    "title",
    "overview",
    "poster_path",
    "backdrop_path",
    "vote_average",
    "vote_count",
    "popularity",
    "original_language",
    "original_title",
    "adult",
    "video",
)


def parse_release_date(value) -> Optional[date]:
    if not value:
        return None
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        return None


def movie_fields_from_tmdb(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Map a TMDB movie payload (list item or details) onto Movie column values"""
    fields = {name: payload.get(name) for name in TMDB_FIELDS if payload.get(name) is not None}
    fields["tmdb_id"] = payload["id"]
    fields["release_date"] = parse_release_date(payload.get("release_date"))

    if payload.get("genres"):
        # Detailed payloads carry full genre objects instead of ids
        fields["genres"] = [{"id": g["id"], "name": g["name"]} for g in payload["genres"]]
        fields["genre_ids"] = [g["id"] for g in payload["genres"]]
    elif payload.get("genre_ids") is not None:
        fields["genre_ids"] = payload["genre_ids"]

    return fields


def genre_filter(genre_id: int):
    """Match one id inside the comma separated genre_ids column"""
    token = str(int(genre_id))
    column = Movie.genre_ids_raw
    return or_(
        column == token,
        column.like(f"{token},%"),
        column.like(f"%,{token}"),
        column.like(f"%,{token},%"),
    )


def paginate(query, page: int, limit: int) -> Dict[str, Any]:
    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return {
        "data": [movie.to_dict() for movie in items],
        "meta": {
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": math.ceil(total / limit) if limit else 0,
        },
    }


class MovieService:
    """Movie operations on a single database session"""

    def __init__(self, session: Session, cache=None, tmdb_client=None):
        self.session = session
        self.cache = cache
        self.tmdb_client = tmdb_client
        self.logger = get_logger("movies.service")

    def _commit(self, action: str, **context):
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise
        except SQLAlchemyError as e:
            self.session.rollback()
            self.logger.error(f"Failed to {action}", error=str(e), **context)
            raise

    def invalidate_cache(self):
        if self.cache is not None:
            self.cache.invalidate_movies()

    def _get(self, movie_id: int) -> Movie:
        movie = self.session.get(Movie, movie_id)
        if movie is None:
            raise NotFoundError(f"Movie with ID {movie_id} not found")
        return movie

    def create(self, data: Dict[str, Any]) -> Movie:
        tmdb_id = data["tmdb_id"]
        if self.session.query(Movie.id).filter(Movie.tmdb_id == tmdb_id).first():
            raise ConflictError(f"Movie with TMDB ID {tmdb_id} already exists")

        movie = Movie()
        for key, value in data.items():
            setattr(movie, key, value)
        self.session.add(movie)

        try:
            self._commit("create movie", tmdb_id=tmdb_id)
        except IntegrityError:
            raise ConflictError(f"Movie with TMDB ID {tmdb_id} already exists")

        self.session.refresh(movie)
        self.invalidate_cache()
        self.logger.info("Movie created", movie_id=movie.id, tmdb_id=tmdb_id, title=movie.title)
        return movie

    def find_all(self, query) -> Dict[str, Any]:
        """Filtered, sorted and paginated movie listing"""
        self.logger.debug("Listing movies", filters=query.model_dump(exclude_none=True))

        try:
            q = self.session.query(Movie)

            if query.search:
                pattern = f"%{query.search}%"
                q = q.filter(or_(Movie.title.ilike(pattern), Movie.original_title.ilike(pattern)))

            if query.genre_ids:
                q = q.filter(or_(*[genre_filter(genre_id) for genre_id in query.genre_ids]))

            if query.year_from is not None or query.year_to is not None:
                start = date(query.year_from or 1900, 1, 1)
                end = date(query.year_to, 12, 31) if query.year_to else date.today()
                q = q.filter(Movie.release_date.between(start, end))

            if query.min_rating is not None:
                q = q.filter(Movie.vote_average >= query.min_rating)
            if query.max_rating is not None:
                q = q.filter(Movie.vote_average <= query.max_rating)

            if query.language:
                q = q.filter(Movie.original_language == query.language)

            if not query.include_adult:
                q = q.filter(Movie.adult.is_(False))

            column = SORT_COLUMNS[getattr(query.sort_by, "value", query.sort_by)]
            direction = asc if query.sort_order == "ASC" else desc
            q = q.order_by(direction(column), Movie.id)

            result = paginate(q, query.page, query.limit)
            self.logger.info("Movies listed", total=result["meta"]["total"], returned=len(result["data"]))
            return result

        except SQLAlchemyError as e:
            self.logger.error("Failed to list movies", error=str(e))
            raise

    def find_one(self, movie_id: int) -> Movie:
        return self._get(movie_id)

    def find_by_tmdb_id(self, tmdb_id: int) -> Movie:
        """Local movie for tmdb_id, fetched from TMDB and stored on first access"""
        movie = self.session.query(Movie).filter(Movie.tmdb_id == tmdb_id).first()
        if movie is not None:
            return movie

        self.logger.info("Movie not stored locally, fetching from TMDB", tmdb_id=tmdb_id)
        return self.sync_from_tmdb(tmdb_id)

    def update(self, movie_id: int, data: Dict[str, Any]) -> Movie:
        movie = self._get(movie_id)

        new_tmdb_id = data.get("tmdb_id")
        if new_tmdb_id is not None and new_tmdb_id != movie.tmdb_id:
            if self.session.query(Movie.id).filter(Movie.tmdb_id == new_tmdb_id).first():
                raise ConflictError(f"Movie with TMDB ID {new_tmdb_id} already exists")

        for key, value in data.items():
            setattr(movie, key, value)

        try:
            self._commit("update movie", movie_id=movie_id)
        except IntegrityError:
            if new_tmdb_id is None:
                raise
            raise ConflictError(f"Movie with TMDB ID {new_tmdb_id} already exists")

        self.session.refresh(movie)
        self.invalidate_cache()
        self.logger.info("Movie updated", movie_id=movie_id, fields=sorted(data))
        return movie

    def remove(self, movie_id: int) -> None:
        movie = self._get(movie_id)
        self.session.delete(movie)
        self._commit("delete movie", movie_id=movie_id)
        self.invalidate_cache()
        self.logger.info("Movie deleted", movie_id=movie_id)

    def search(self, q: str, page: int = 1, limit: int = 20) -> Dict[str, Any]:
        query = (
            self.session.query(Movie)
            .filter(Movie.title.ilike(f"%{q}%"))
            .order_by(desc(Movie.popularity), Movie.id)
        )
        result = paginate(query, page, limit)
        self.logger.info("Movies searched", query=q, total=result["meta"]["total"])
        return result

    def find_by_genre(self, genre_id: int, page: int = 1, limit: int = 20) -> Dict[str, Any]:
        query = self.session.query(Movie).filter(genre_filter(genre_id)).order_by(desc(Movie.popularity), Movie.id)
        result = paginate(query, page, limit)
        self.logger.info("Movies by genre", genre_id=genre_id, total=result["meta"]["total"])
        return result

    def get_top_rated(self, limit: int = 20) -> List[Movie]:
        return (
            self.session.query(Movie)
            .filter(Movie.user_rating_count > 0)
            .order_by(desc(Movie.user_rating_average), desc(Movie.user_rating_count), Movie.id)
            .limit(limit)
            .all()
        )

    def get_trending(self, limit: int = 20) -> List[Movie]:
        return self.session.query(Movie).order_by(desc(Movie.popularity), Movie.id).limit(limit).all()

    def upsert_from_tmdb(self, payload: Dict[str, Any], commit: bool = True) -> Movie:
        """
        Insert or update the movie identified by payload["id"].

        Local user rating statistics are never overwritten; genres only
        change when the payload carries them.
        """
        fields = movie_fields_from_tmdb(payload)
        movie = self.session.query(Movie).filter(Movie.tmdb_id == fields["tmdb_id"]).first()
        created = movie is None
        if created:
            movie = Movie()
            self.session.add(movie)

        for key, value in fields.items():
            setattr(movie, key, value)

        if commit:
            self._commit("save TMDB movie", tmdb_id=fields["tmdb_id"])
            self.session.refresh(movie)

        self.logger.debug("Saved TMDB movie", tmdb_id=fields["tmdb_id"], created=created)
        return movie

    def sync_from_tmdb(self, tmdb_id: int) -> Movie:
        try:
            details = self.tmdb_client.get_movie_details(tmdb_id)
        except TmdbNotFoundError:
            raise NotFoundError(f"Movie with TMDB ID {tmdb_id} not found")

        movie = self.upsert_from_tmdb(details)
        self.invalidate_cache()
        self.logger.info("Movie synced from TMDB", tmdb_id=tmdb_id, movie_id=movie.id)
        return movie

    @log_execution_time("movies.batch")
    def batch_create(self, items: Iterable[Dict[str, Any]]) -> List[Movie]:
        """Create each movie in turn; failures are logged and skipped"""
        created = []
        for data in items:
            try:
                created.append(self.create(data))
            except (ConflictError, SQLAlchemyError) as e:
                self.logger.warning("Skipping movie in batch", tmdb_id=data.get("tmdb_id"), error=str(e))
        return created

    def update_rating_statistics(self, movie_id: int) -> Movie:
        """Recompute user_rating_average and user_rating_count from the ratings table"""
        movie = self._get(movie_id)

        average, count = (
            self.session.query(func.avg(Rating.rating), func.count(Rating.id))
            .filter(Rating.movie_id == movie_id)
            .one()
        )

        movie.user_rating_count = count or 0
        movie.user_rating_average = round(float(average), 1) if count else 0

        self._commit("update rating statistics", movie_id=movie_id)
        self.invalidate_cache()
        self.logger.debug(
            "Rating statistics updated",
            movie_id=movie_id,
            average=float(movie.user_rating_average),
            count=movie.user_rating_count,
        )
        return movie
