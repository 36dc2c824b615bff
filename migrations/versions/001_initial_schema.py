"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # Create genres table (ids come from TMDB)
    op.create_table('genres',
        sa.Column('id', sa.Integer(), autoincrement=False, nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name')
    )

    # Create movies table
    op.create_table('movies',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tmdb_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=500), nullable=False),
        sa.Column('overview', sa.Text(), nullable=True),
        sa.Column('poster_path', sa.String(length=255), nullable=True),
        sa.Column('backdrop_path', sa.String(length=255), nullable=True),
        sa.Column('release_date', sa.Date(), nullable=True),
        sa.Column('vote_average', sa.Numeric(precision=3, scale=1), server_default='0', nullable=False),
        sa.Column('vote_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('popularity', sa.Float(), server_default='0', nullable=False),
        sa.Column('genre_ids', sa.Text(), nullable=True),
        sa.Column('genres', sa.JSON(), nullable=True),
        sa.Column('original_language', sa.String(length=10), nullable=True),
        sa.Column('original_title', sa.String(length=500), nullable=True),
        sa.Column('adult', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('video', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('user_rating_average', sa.Numeric(precision=3, scale=1), nullable=True),
        sa.Column('user_rating_count', sa.Integer(), server_default='0', nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_movies_tmdb_id'), 'movies', ['tmdb_id'], unique=True)
    op.create_index(op.f('ix_movies_title'), 'movies', ['title'], unique=False)
    op.create_index(op.f('ix_movies_release_date'), 'movies', ['release_date'], unique=False)

    # Create users table
    op.create_table('users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=30), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password', sa.String(length=255), nullable=False),
        sa.Column('first_name', sa.String(length=50), nullable=True),
        sa.Column('last_name', sa.String(length=50), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_users_username'), 'users', ['username'], unique=True)
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)

    # Create ratings table
    op.create_table('ratings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('rating', sa.Numeric(precision=3, scale=1), nullable=False),
        sa.Column('review', sa.Text(), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('movie_id', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('rating >= 0.5 AND rating <= 10', name='ck_ratings_range'),
        sa.ForeignKeyConstraint(['movie_id'], ['movies.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'movie_id', name='uq_ratings_user_movie')
    )
    op.create_index('ix_ratings_user_movie', 'ratings', ['user_id', 'movie_id'], unique=False)

    # Create watchlist / favorites association tables
    for table_name in ('user_watchlist', 'user_favorites'):
        op.create_table(table_name,
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('movie_id', sa.Integer(), nullable=False),
            sa.ForeignKeyConstraint(['movie_id'], ['movies.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('user_id', 'movie_id')
        )

    # Create sync runs table
    op.create_table('sync_runs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('job', sa.String(length=20), nullable=False),
        sa.Column('started_at', sa.DateTime(), nullable=False),
        sa.Column('finished_at', sa.DateTime(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('records_processed', sa.Integer(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('duration_seconds', sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )


def downgrade() -> None:
    op.drop_table('sync_runs')
    op.drop_table('user_favorites')
    op.drop_table('user_watchlist')
    op.drop_index('ix_ratings_user_movie', table_name='ratings')
    op.drop_table('ratings')
    op.drop_table('users')
    op.drop_table('movies')
    op.drop_table('genres')
