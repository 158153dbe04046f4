"""create users, countries, multiplayer_matches and multiplayer_answers

Revision ID: 1a7c3e9b2d40
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '1a7c3e9b2d40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('last_active_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)

    op.create_table(
        'countries',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False, unique=True),
        sa.Column('capital', sa.String(length=128), nullable=True),
        sa.Column('flag_url', sa.String(length=512), nullable=True),
    )

    op.create_table(
        'multiplayer_matches',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('challenger_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('opponent_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('game_type', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('challenger_score', sa.Integer(), server_default='0'),
        sa.Column('opponent_score', sa.Integer(), server_default='0'),
        sa.Column('winner_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('pending', 'active', 'completed', 'cancelled')",
            name='ck_multiplayer_matches_status',
        ),
    )
    op.create_index('ix_multiplayer_matches_challenger_id', 'multiplayer_matches', ['challenger_id'])
    op.create_index('ix_multiplayer_matches_opponent_id', 'multiplayer_matches', ['opponent_id'])

    op.create_table(
        'multiplayer_answers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('match_id', sa.Integer(), sa.ForeignKey('multiplayer_matches.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('question_index', sa.Integer(), nullable=False),
        sa.Column('question_data_json', sa.Text(), nullable=False),
        sa.Column('user_answer', sa.Text(), nullable=True),
        sa.Column('correct_answer', sa.Text(), nullable=False),
        sa.Column('is_correct', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('time_ms', sa.Integer(), server_default='0'),
        sa.Column('points', sa.Integer(), server_default='0'),
        sa.Column('answered_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_multiplayer_answers_match_id', 'multiplayer_answers', ['match_id'])


def downgrade():
    op.drop_index('ix_multiplayer_answers_match_id', table_name='multiplayer_answers')
    op.drop_table('multiplayer_answers')
    op.drop_index('ix_multiplayer_matches_opponent_id', table_name='multiplayer_matches')
    op.drop_index('ix_multiplayer_matches_challenger_id', table_name='multiplayer_matches')
    op.drop_table('multiplayer_matches')
    op.drop_table('countries')
    op.drop_index('ix_users_username', table_name='users')
    op.drop_table('users')
