"""Initial schema: users with token set, activities

Revision ID: 001_initial
Revises:
Create Date: 2024-08-01

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('strava_athlete_id', sa.BigInteger(), nullable=False),
        sa.Column('firstname', sa.String(100), nullable=True),
        sa.Column('lastname', sa.String(100), nullable=True),
        sa.Column('profile_image_url', sa.String(500), nullable=True),
        sa.Column('access_token', sa.Text(), nullable=True),
        sa.Column('refresh_token', sa.Text(), nullable=True),
        sa.Column('token_expires_at', sa.Integer(), nullable=True),
        sa.Column('scope', sa.String(255), nullable=True),
        sa.Column('is_strava_authorized', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('activity_revision', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_login_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_users_strava_athlete_id', 'users', ['strava_athlete_id'], unique=True)

    op.create_table(
        'activities',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('strava_activity_id', sa.BigInteger(), nullable=False),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('activity_type', sa.String(50), nullable=False),
        sa.Column('sport_type', sa.String(50), nullable=False),
        sa.Column('start_date', sa.DateTime(), nullable=False),
        sa.Column('start_date_local', sa.DateTime(), nullable=True),
        sa.Column('timezone', sa.String(100), nullable=True),
        sa.Column('distance_m', sa.Float(), nullable=False, server_default='0'),
        sa.Column('moving_time_s', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('elapsed_time_s', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('elevation_gain_m', sa.Float(), nullable=True),
        sa.Column('avg_speed_mps', sa.Float(), nullable=True),
        sa.Column('max_speed_mps', sa.Float(), nullable=True),
        sa.Column('avg_heartrate', sa.Float(), nullable=True),
        sa.Column('max_heartrate', sa.Float(), nullable=True),
        sa.Column('kudos_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('comment_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('photo_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('map_polyline', sa.Text(), nullable=True),
        sa.Column('visibility', sa.String(30), nullable=False, server_default='everyone'),
        sa.Column('gear_id', sa.String(50), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('user_id', 'strava_activity_id', name='uq_activity_owner_strava_id'),
    )
    op.create_index('ix_activities_user_id', 'activities', ['user_id'])
    op.create_index('ix_activities_strava_activity_id', 'activities', ['strava_activity_id'])


def downgrade() -> None:
    op.drop_index('ix_activities_strava_activity_id', table_name='activities')
    op.drop_index('ix_activities_user_id', table_name='activities')
    op.drop_table('activities')
    op.drop_index('ix_users_strava_athlete_id', table_name='users')
    op.drop_table('users')
