"""initial schema

Revision ID: 001
Revises:
Create Date: 2024-01-30 12:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ARRAY, JSONB

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    ]


def upgrade() -> None:
    # Create venues table
    op.create_table(
        'venues',
        sa.Column('id', sa.String(length=100), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('short_name', sa.String(length=100), nullable=False),
        sa.Column('chain', sa.String(length=100), nullable=True),
        sa.Column('website', sa.String(length=500), nullable=True),
        sa.Column('address', JSONB(), nullable=True),
        sa.Column('features', ARRAY(sa.String()), nullable=False, server_default='{}'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('last_scraped_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )

    # Create films table
    op.create_table(
        'films',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('title', sa.String(length=500), nullable=False),
        sa.Column('original_title', sa.String(length=500), nullable=True),
        sa.Column('year', sa.Integer(), nullable=True),
        sa.Column('external_catalog_id', sa.Integer(), nullable=True),
        sa.Column('match_confidence', sa.Float(), nullable=True),
        sa.Column('directors', ARRAY(sa.String()), nullable=False, server_default='{}'),
        sa.Column('cast', ARRAY(sa.String()), nullable=False, server_default='{}'),
        sa.Column('genres', ARRAY(sa.String()), nullable=False, server_default='{}'),
        sa.Column('synopsis', sa.Text(), nullable=True),
        sa.Column('poster_path', sa.String(length=500), nullable=True),
        sa.Column('runtime', sa.Integer(), nullable=True),
        sa.Column('certification', sa.String(length=20), nullable=True),
        sa.Column('is_repertory', sa.Boolean(), nullable=False, server_default='false'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_films_title'), 'films', ['title'], unique=False)
    op.create_index(op.f('ix_films_external_catalog_id'), 'films', ['external_catalog_id'], unique=True)

    # Create screenings table
    op.create_table(
        'screenings',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('film_id', sa.String(length=36), nullable=False),
        sa.Column('venue_id', sa.String(length=100), nullable=False),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('booking_url', sa.String(length=1000), nullable=False),
        sa.Column('format', sa.String(length=100), nullable=True),
        sa.Column('source_id', sa.String(length=500), nullable=True),
        sa.Column('festival_slug', sa.String(length=100), nullable=True),
        sa.Column('scraped_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('raw_title', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['film_id'], ['films.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['venue_id'], ['venues.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('film_id', 'venue_id', 'start_time', name='uq_film_venue_time')
    )
    op.create_index(op.f('ix_screenings_film_id'), 'screenings', ['film_id'], unique=False)
    op.create_index(op.f('ix_screenings_venue_id'), 'screenings', ['venue_id'], unique=False)
    op.create_index(op.f('ix_screenings_start_time'), 'screenings', ['start_time'], unique=False)
    op.create_index(op.f('ix_screenings_festival_slug'), 'screenings', ['festival_slug'], unique=False)

    # Create festivals table
    op.create_table(
        'festivals',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('slug', sa.String(length=100), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('venues', ARRAY(sa.String()), nullable=False, server_default='{}'),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('confidence_strategy', sa.String(length=5), nullable=False, server_default='TITLE'),
        sa.Column('title_keywords', ARRAY(sa.String()), nullable=False, server_default='{}'),
        sa.Column('url_patterns', ARRAY(sa.String()), nullable=False, server_default='{}'),
        sa.Column('typical_months', ARRAY(sa.Integer()), nullable=False, server_default='{}'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('probe_url', sa.String(length=500), nullable=True),
        sa.Column('probe_signal', sa.String(length=13), nullable=False, server_default='content-hash'),
        sa.Column('probe_selector', sa.String(length=200), nullable=True),
        sa.Column('probe_min_count', sa.Integer(), nullable=False, server_default='5'),
        sa.Column('programme_announced', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('programme_announced_at', sa.Date(), nullable=True),
        sa.Column('programme_content_hash', sa.String(length=32), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_festivals_slug'), 'festivals', ['slug'], unique=True)

    # Create festival_screenings table
    op.create_table(
        'festival_screenings',
        sa.Column('festival_id', sa.String(length=36), nullable=False),
        sa.Column('screening_id', sa.Integer(), nullable=False),
        sa.Column('tagged_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['festival_id'], ['festivals.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['screening_id'], ['screenings.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('festival_id', 'screening_id')
    )
    op.create_index(op.f('ix_festival_screenings_screening_id'), 'festival_screenings', ['screening_id'], unique=False)

    # Create scrape_runs table
    op.create_table(
        'scrape_runs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('venue_id', sa.String(length=100), nullable=False),
        sa.Column('status', sa.String(length=7), nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('finished_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('listing_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('added', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('failed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('warnings', JSONB(), nullable=True),
        sa.ForeignKeyConstraint(['venue_id'], ['venues.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_scrape_runs_venue_id'), 'scrape_runs', ['venue_id'], unique=False)
    op.create_index(op.f('ix_scrape_runs_started_at'), 'scrape_runs', ['started_at'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_scrape_runs_started_at'), table_name='scrape_runs')
    op.drop_index(op.f('ix_scrape_runs_venue_id'), table_name='scrape_runs')
    op.drop_table('scrape_runs')
    op.drop_index(op.f('ix_festival_screenings_screening_id'), table_name='festival_screenings')
    op.drop_table('festival_screenings')
    op.drop_index(op.f('ix_festivals_slug'), table_name='festivals')
    op.drop_table('festivals')
    op.drop_index(op.f('ix_screenings_festival_slug'), table_name='screenings')
    op.drop_index(op.f('ix_screenings_start_time'), table_name='screenings')
    op.drop_index(op.f('ix_screenings_venue_id'), table_name='screenings')
    op.drop_index(op.f('ix_screenings_film_id'), table_name='screenings')
    op.drop_table('screenings')
    op.drop_index(op.f('ix_films_external_catalog_id'), table_name='films')
    op.drop_index(op.f('ix_films_title'), table_name='films')
    op.drop_table('films')
    op.drop_table('venues')
