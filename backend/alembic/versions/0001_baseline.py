"""baseline schema

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-18
"""
from alembic import op  # type: ignore[import-untyped]
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_baseline'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # Mirrors the SQLModel tables in achieva/models.py
    op.create_table('user',
        sa.Column('id', sa.String, primary_key=True),
        sa.Column('email', sa.String, nullable=False, unique=True, index=True),
        sa.Column('password_hash', sa.String, nullable=False),
        sa.Column('created_at', sa.String, nullable=False),
    )
    op.create_table('profile',
        sa.Column('id', sa.String, sa.ForeignKey('user.id'), primary_key=True),
        sa.Column('username', sa.String, nullable=False, unique=True, index=True),
        sa.Column('first_name', sa.String, nullable=False, server_default=''),
        sa.Column('last_name', sa.String, nullable=False, server_default=''),
        sa.Column('date_of_birth', sa.String, nullable=False, server_default='2000-01-01'),
        sa.Column('avatar_url', sa.String),
        sa.Column('created_at', sa.String, nullable=False),
        sa.Column('updated_at', sa.String, nullable=False),
    )
    op.create_table('friendship',
        sa.Column('id', sa.String, primary_key=True),
        sa.Column('user_id_1', sa.String, sa.ForeignKey('user.id'), nullable=False, index=True),
        sa.Column('user_id_2', sa.String, sa.ForeignKey('user.id'), nullable=False, index=True),
        sa.Column('status', sa.String, nullable=False, server_default='pending', index=True),
        sa.Column('established_at', sa.String),
        sa.Column('created_at', sa.String, nullable=False),
    )
    op.create_table('goal',
        sa.Column('id', sa.String, primary_key=True),
        sa.Column('owner_id', sa.String, sa.ForeignKey('user.id'), nullable=False, index=True),
        sa.Column('title', sa.String, nullable=False),
        sa.Column('body', sa.String),
        sa.Column('status', sa.String, nullable=False, server_default='active'),
        sa.Column('visibility', sa.String, nullable=False, server_default='public'),
        sa.Column('cover_image_url', sa.String),
        sa.Column('is_draft', sa.Boolean, nullable=False, server_default=sa.false(), index=True),
        sa.Column('created_at', sa.String, nullable=False, index=True),
        sa.Column('updated_at', sa.String, nullable=False),
    )
    op.create_table('goalitem',
        sa.Column('id', sa.String, primary_key=True),
        sa.Column('goal_id', sa.String, sa.ForeignKey('goal.id'), nullable=False, index=True),
        sa.Column('title', sa.String, nullable=False),
        sa.Column('completed', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.String, nullable=False),
        sa.Column('updated_at', sa.String, nullable=False),
    )
    op.create_table('goalacl',
        sa.Column('id', sa.String, primary_key=True),
        sa.Column('goal_id', sa.String, sa.ForeignKey('goal.id'), nullable=False, index=True),
        sa.Column('user_id', sa.String, sa.ForeignKey('user.id'), nullable=False, index=True),
        sa.Column('role', sa.String, nullable=False, server_default='viewer'),
        sa.Column('created_at', sa.String, nullable=False),
        sa.UniqueConstraint('goal_id', 'user_id'),
    )
    op.create_table('conversation',
        sa.Column('id', sa.String, primary_key=True),
        sa.Column('type', sa.String, nullable=False, server_default='direct', index=True),
        sa.Column('name', sa.String),
        sa.Column('created_by', sa.String, sa.ForeignKey('user.id'), nullable=False),
        sa.Column('created_at', sa.String, nullable=False),
        sa.Column('updated_at', sa.String, nullable=False),
        sa.Column('last_message_at', sa.String, index=True),
    )
    op.create_table('conversationparticipant',
        sa.Column('id', sa.String, primary_key=True),
        sa.Column('conversation_id', sa.String, sa.ForeignKey('conversation.id'), nullable=False, index=True),
        sa.Column('user_id', sa.String, sa.ForeignKey('user.id'), nullable=False, index=True),
        sa.Column('joined_at', sa.String, nullable=False),
        sa.Column('last_read_at', sa.String),
        sa.UniqueConstraint('conversation_id', 'user_id'),
    )
    op.create_table('message',
        sa.Column('id', sa.String, primary_key=True),
        sa.Column('conversation_id', sa.String, sa.ForeignKey('conversation.id'), nullable=False, index=True),
        sa.Column('user_id', sa.String, sa.ForeignKey('user.id'), nullable=False, index=True),
        sa.Column('text', sa.String),
        sa.Column('message_type', sa.String, nullable=False, server_default='text'),
        sa.Column('media_url', sa.String),
        sa.Column('created_at', sa.String, nullable=False, index=True),
        sa.Column('updated_at', sa.String, nullable=False),
        sa.Column('deleted_at', sa.String),
    )
    op.create_table('goaltag',
        sa.Column('id', sa.String, primary_key=True),
        sa.Column('goal_id', sa.String, sa.ForeignKey('goal.id'), nullable=False, index=True),
        sa.Column('user_id', sa.String, sa.ForeignKey('user.id'), nullable=False, index=True),
        sa.Column('conversation_id', sa.String, sa.ForeignKey('conversation.id'), index=True),
        sa.Column('created_at', sa.String, nullable=False),
        sa.UniqueConstraint('goal_id', 'user_id'),
    )
    op.create_table('goallike',
        sa.Column('id', sa.String, primary_key=True),
        sa.Column('goal_id', sa.String, sa.ForeignKey('goal.id'), nullable=False, index=True),
        sa.Column('user_id', sa.String, sa.ForeignKey('user.id'), nullable=False, index=True),
        sa.Column('created_at', sa.String, nullable=False),
        sa.UniqueConstraint('goal_id', 'user_id'),
    )
    op.create_table('goalcomment',
        sa.Column('id', sa.String, primary_key=True),
        sa.Column('goal_id', sa.String, sa.ForeignKey('goal.id'), nullable=False, index=True),
        sa.Column('user_id', sa.String, sa.ForeignKey('user.id'), nullable=False, index=True),
        sa.Column('content', sa.String, nullable=False),
        sa.Column('created_at', sa.String, nullable=False, index=True),
        sa.Column('updated_at', sa.String, nullable=False),
    )
    op.create_table('notification',
        sa.Column('id', sa.String, primary_key=True),
        sa.Column('user_id', sa.String, sa.ForeignKey('user.id'), nullable=False, index=True),
        sa.Column('type', sa.String, nullable=False),
        sa.Column('title', sa.String, nullable=False),
        sa.Column('body', sa.String),
        sa.Column('related_id', sa.String),
        sa.Column('read_at', sa.String, index=True),
        sa.Column('created_at', sa.String, nullable=False, index=True),
    )


def downgrade():
    op.drop_table('notification')
    op.drop_table('goalcomment')
    op.drop_table('goallike')
    op.drop_table('goaltag')
    op.drop_table('message')
    op.drop_table('conversationparticipant')
    op.drop_table('conversation')
    op.drop_table('goalacl')
    op.drop_table('goalitem')
    op.drop_table('goal')
    op.drop_table('friendship')
    op.drop_table('profile')
    op.drop_table('user')
