"""
Ratings: create-or-update per (user, movie), statistics and listings
"""

from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import desc, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from moviedb.database.models import Movie, Rating, User
from moviedb.services.exceptions import ForbiddenError, NotFoundError, ServiceError
from moviedb.services.logger_service import get_logger
from moviedb.services.movie_service import MovieService


class RatingService:
    def __init__(self, session: Session, movie_service: Optional[MovieService] = None):
        self.session = session
        self.movie_service = movie_service or MovieService(session)
        self.logger = get_logger("ratings.service")

    def _commit(self, action: str, **context):
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            self.logger.error(f"Failed to {action}", error=str(e), **context)
            raise

    def create_or_update(self, user_id: int, movie_id: int, data: Dict[str, Any]) -> Rating:
        if self.session.get(Movie, movie_id) is None:
            raise NotFoundError(f"Movie with ID {movie_id} not found")
        if self.session.get(User, user_id) is None:
            raise NotFoundError(f"User with ID {user_id} not found")

        rating = (
            self.session.query(Rating).filter(Rating.user_id == user_id, Rating.movie_id == movie_id).first()
        )
        created = rating is None
        if created:
            rating = Rating(user_id=user_id, movie_id=movie_id, rating=data["rating"], review=data.get("review"))
            self.session.add(rating)
        else:
            rating.rating = data["rating"]
            # An omitted review keeps the previous one
            if data.get("review") is not None:
                rating.review = data["review"]

        self._commit("save rating", user_id=user_id, movie_id=movie_id)
        self.movie_service.update_rating_statistics(movie_id)
        self.session.refresh(rating)

        self.logger.info(
            "Rating created" if created else "Rating updated",
            rating_id=rating.id,
            user_id=user_id,
            movie_id=movie_id,
            rating=float(rating.rating),
        )
        return rating

    def find_by_movie(self, movie_id: int) -> List[Rating]:
        return (
            self.session.query(Rating)
            .options(joinedload(Rating.user))
            .filter(Rating.movie_id == movie_id)
            .order_by(desc(Rating.created_at), desc(Rating.id))
            .all()
        )

    def find_by_user(self, user_id: int) -> List[Dict[str, Any]]:
        ratings = (
            self.session.query(Rating)
            .options(joinedload(Rating.movie))
            .filter(Rating.user_id == user_id)
            .order_by(desc(Rating.created_at), desc(Rating.id))
            .all()
        )
        return [
            {
                "id": r.id,
                "movie_id": r.movie_id,
                "movie_title": r.movie.title if r.movie else "Unknown",
                "rating": float(r.rating),
                "review": r.review,
                "created_at": r.created_at.isoformat() if r.created_at else None,
                "updated_at": r.updated_at.isoformat() if r.updated_at else None,
            }
            for r in ratings
        ]

    def find_one(self, rating_id: int) -> Rating:
        rating = self.session.get(Rating, rating_id)
        if rating is None:
            raise NotFoundError(f"Rating with ID {rating_id} not found")
        return rating

    def find_user_rating_for_movie(self, user_id: int, movie_id: int) -> Optional[Rating]:
        return self.session.query(Rating).filter(Rating.user_id == user_id, Rating.movie_id == movie_id).first()

    def _owned(self, rating_id: int, user_id: int, verb: str) -> Rating:
        rating = self.find_one(rating_id)
        if rating.user_id != user_id:
            self.logger.warning(f"Refused to {verb} rating of another user", rating_id=rating_id, user_id=user_id)
            raise ForbiddenError(f"You can only {verb} your own ratings")
        return rating

    def update(self, rating_id: int, user_id: int, data: Dict[str, Any]) -> Rating:
        rating = self._owned(rating_id, user_id, "update")

        if data.get("rating") is not None:
            rating.rating = data["rating"]
        if "review" in data:
            rating.review = data["review"]

        self._commit("update rating", rating_id=rating_id)
        self.movie_service.update_rating_statistics(rating.movie_id)
        self.session.refresh(rating)
        self.logger.info("Rating updated", rating_id=rating_id, user_id=user_id)
        return rating

    def remove(self, rating_id: int, user_id: int) -> None:
        rating = self._owned(rating_id, user_id, "delete")
        movie_id = rating.movie_id

        self.session.delete(rating)
        self._commit("delete rating", rating_id=rating_id)
        self.movie_service.update_rating_statistics(movie_id)
        self.logger.info("Rating deleted", rating_id=rating_id, user_id=user_id, movie_id=movie_id)

    def get_movie_rating_stats(self, movie_id: int) -> Dict[str, Any]:
        average, count = (
            self.session.query(func.avg(Rating.rating), func.count(Rating.id))
            .filter(Rating.movie_id == movie_id)
            .one()
        )
        if not count:
            return {"average": 0, "count": 0, "distribution": {}}

        # Buckets by the integer part of each rating, e.g. 8.5 -> "8"
        distribution: Dict[str, int] = {}
        rows = (
            self.session.query(Rating.rating, func.count(Rating.id))
            .filter(Rating.movie_id == movie_id)
            .group_by(Rating.rating)
            .all()
        )
        for value, value_count in rows:
            bucket = str(int(value))
            distribution[bucket] = distribution.get(bucket, 0) + value_count

        return {"average": round(float(average), 1), "count": count, "distribution": distribution}

    def get_top_rated_movies(self, limit: int = 10) -> List[Movie]:
        return self.movie_service.get_top_rated(limit)

    def batch_rate(self, user_id: int, items: Iterable[Dict[str, Any]]) -> List[Rating]:
        """Create or update each rating; failures are logged and skipped"""
        saved = []
        for item in items:
            try:
                saved.append(self.create_or_update(user_id, item["movie_id"], item))
            except (ServiceError, SQLAlchemyError) as e:
                self.logger.warning("Skipping rating in batch", user_id=user_id, movie_id=item.get("movie_id"), error=str(e))
        return saved

    def get_overall_average_rating(self) -> float:
        average = self.session.query(func.avg(Rating.rating)).scalar()
        return round(float(average), 1) if average is not None else 0
