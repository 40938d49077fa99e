"""create_raid_signup_schema

Revision ID: 4c1e7a2b9d10
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c1e7a2b9d10'
down_revision = None
branch_labels = None
depends_on = None

ID = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', ID, primary_key=True, autoincrement=True),
        sa.Column('external_id', sa.Text(), nullable=False),
        sa.Column('display_name', sa.Text(), nullable=False),
        sa.Column('picture_url', sa.Text(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.UniqueConstraint('external_id', name='uq_users_external_id'),
    )

    op.create_table(
        'characters',
        sa.Column('id', ID, primary_key=True, autoincrement=True),
        sa.Column('user_id', ID, sa.ForeignKey('users.id'), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('job', sa.Text(), nullable=True),
        sa.Column('level', sa.Integer(), nullable=True),
        sa.Column('is_default', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.CheckConstraint('level IS NULL OR level >= 0', name='ck_characters_level_non_negative'),
    )
    op.create_index('idx_characters_user', 'characters', ['user_id'])
    # At most one default character per user
    op.create_index(
        'uq_characters_one_default_per_user',
        'characters',
        ['user_id'],
        unique=True,
        postgresql_where=sa.text('is_default'),
        sqlite_where=sa.text('is_default = 1'),
    )

    op.create_table(
        'raids',
        sa.Column('id', ID, primary_key=True, autoincrement=True),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('subtitle', sa.Text(), nullable=True),
        sa.Column('boss', sa.Text(), nullable=True),
        sa.Column('start_time', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('created_by', ID, sa.ForeignKey('users.id'), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index('idx_raids_start_time', 'raids', ['start_time'])

    op.create_table(
        'raid_signups',
        sa.Column('id', ID, primary_key=True, autoincrement=True),
        sa.Column('raid_id', ID, sa.ForeignKey('raids.id', ondelete='CASCADE'), nullable=False),
        sa.Column(
            'character_id', ID, sa.ForeignKey('characters.id', ondelete='RESTRICT'), nullable=False
        ),
        sa.Column('status', sa.Text(), nullable=False, server_default='confirmed'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.UniqueConstraint('raid_id', 'character_id', name='uq_raid_signups_raid_character'),
    )
    op.create_index('idx_raid_signups_character', 'raid_signups', ['character_id'])


def downgrade() -> None:
    op.drop_index('idx_raid_signups_character', table_name='raid_signups')
    op.drop_table('raid_signups')
    op.drop_index('idx_raids_start_time', table_name='raids')
    op.drop_table('raids')
    op.drop_index('uq_characters_one_default_per_user', table_name='characters')
    op.drop_index('idx_characters_user', table_name='characters')
    op.drop_table('characters')
    op.drop_table('users')
