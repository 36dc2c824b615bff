#!/usr/bin/env python3
"""
Create mock data for local development without a TMDB API key
"""

from datetime import date, datetime, timedelta
from random import choice, randint, sample, uniform

from moviedb.database.connection import get_session_factory, init_database
from moviedb.database.models import Genre, Movie, Rating, SyncRun, User
from moviedb.services.movie_service import MovieService

# Official TMDB genre ids
GENRES = {
    28: "Action",
    12: "Adventure",
    35: "Comedy",
    80: "Crime",
    18: "Drama",
    14: "Fantasy",
    27: "Horror",
    9648: "Mystery",
    10749: "Romance",
    878: "Science Fiction",
    53: "Thriller",
    37: "Western",
}

MOVIE_TITLES = [
    "The Shawshank Redemption",
    "The Godfather",
    "The Dark Knight",
    "Pulp Fiction",
    "Forrest Gump",
    "Inception",
    "The Matrix",
    "Goodfellas",
    "The Silence of the Lambs",
    "Saving Private Ryan",
    "The Departed",
    "Fight Club",
    "Casablanca",
    "Vertigo",
    "Psycho",
    "Apocalypse Now",
    "Taxi Driver",
    "North by Northwest",
]

USERNAMES = ["alice", "bob", "carol", "dave", "erin", "frank"]
REVIEWS = [None, "Loved it", "Solid watch", "Not for me", "A classic", "Rewatching soon"]


def create_mock_data():
    """Reset the catalogue and seed genres, movies, users and ratings"""
    init_database()
    Session = get_session_factory()

    print("Creating mock data...")

    with Session() as session:
        print("Clearing existing data...")
        session.query(Rating).delete()
        for user in session.query(User).all():
            session.delete(user)
        for movie in session.query(Movie).all():
            session.delete(movie)
        session.query(Genre).delete()
        session.query(SyncRun).delete()
        session.commit()

        print("Creating genres...")
        session.add_all(Genre(id=genre_id, name=name) for genre_id, name in GENRES.items())
        session.commit()

        print("Creating movies...")
        movies = []
        for i, title in enumerate(MOVIE_TITLES):
            genre_ids = sample(list(GENRES), randint(1, 3))
            movie = Movie(
                tmdb_id=900000 + i,
                title=title,
                original_title=title,
                original_language="en",
                overview=f"Mock overview for {title}.",
                release_date=date(randint(1950, 2023), randint(1, 12), randint(1, 28)),
                vote_average=round(uniform(6.0, 9.5), 1),
                vote_count=randint(1000, 30000),
                popularity=round(uniform(5.0, 150.0), 3),
                genres=[{"id": gid, "name": GENRES[gid]} for gid in genre_ids],
            )
            movie.genre_ids = genre_ids
            movies.append(movie)
        session.add_all(movies)
        session.commit()
        print(f"Created {len(movies)} movies")

        print("Creating users...")
        users = [
            User(username=name, email=f"{name}@example.com", password="Password123!", first_name=name.title())
            for name in USERNAMES
        ]
        session.add_all(users)
        session.commit()
        print(f"Created {len(users)} users")

        print("Creating ratings...")
        ratings = []
        for user in users:
            for movie in sample(movies, randint(3, 8)):
                ratings.append(
                    Rating(
                        user_id=user.id,
                        movie_id=movie.id,
                        rating=round(randint(1, 20) / 2, 1),
                        review=choice(REVIEWS),
                    )
                )
            user.watchlist = sample(movies, 3)
            user.favorites = sample(movies, 2)
        session.add_all(ratings)
        session.commit()
        print(f"Created {len(ratings)} ratings")

        movie_service = MovieService(session)
        for movie in movies:
            movie_service.update_rating_statistics(movie.id)

        session.add(
            SyncRun(
                job="full",
                status="completed",
                started_at=datetime.now() - timedelta(minutes=10),
                finished_at=datetime.now() - timedelta(minutes=9),
                records_processed=len(movies),
                duration_seconds=60,
            )
        )
        session.commit()

        print("\nMock data creation completed successfully!")
        print("Summary:")
        print(f"   - {len(GENRES)} genres")
        print(f"   - {len(movies)} movies")
        print(f"   - {len(users)} users (password: Password123!)")
        print(f"   - {len(ratings)} ratings")
        print("   - 1 sync run record")


if __name__ == "__main__":
    create_mock_data()
