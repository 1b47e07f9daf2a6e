"""Initial migration

Revision ID: 001_initial
Revises:
Create Date: 2026-09-14

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
    # Create user_profiles table
    op.create_table(
        'user_profiles',
        sa.Column('id', sa.String(255), primary_key=True),
        sa.Column('email', sa.String(320), nullable=False),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('is_premium', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('documents_processed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('stories_generated', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('subscription_status', sa.String(32), nullable=False, server_default='free'),
        sa.Column('subscription_id', sa.String(255), nullable=True),
        sa.Column('subscription_end_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # Create documents table
    op.create_table(
        'documents',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(255), sa.ForeignKey('user_profiles.id'), nullable=False, index=True),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('file_name', sa.Text(), nullable=False),
        sa.Column('file_url', sa.Text(), nullable=False),
        sa.Column('file_size', sa.Integer(), nullable=True),
        sa.Column('content_type', sa.String(32), nullable=False, server_default='pdf'),
        sa.Column('extracted_text', sa.Text(), nullable=True),
        sa.Column('summary', sa.Text(), nullable=True),
        sa.Column('processing_status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # Create flashcards table
    op.create_table(
        'flashcards',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('document_id', sa.String(36), sa.ForeignKey('documents.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('user_id', sa.String(255), sa.ForeignKey('user_profiles.id'), nullable=False, index=True),
        sa.Column('front', sa.Text(), nullable=False),
        sa.Column('back', sa.Text(), nullable=False),
        sa.Column('hint', sa.Text(), nullable=True),
        sa.Column('difficulty', sa.String(10), nullable=False, server_default='medium'),
        sa.Column('category', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # Create study_sessions table
    op.create_table(
        'study_sessions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(255), sa.ForeignKey('user_profiles.id'), nullable=False, index=True),
        sa.Column('document_id', sa.String(36), sa.ForeignKey('documents.id', ondelete='SET NULL'), nullable=True),
        sa.Column('session_type', sa.String(32), nullable=False, server_default='flashcards'),
        sa.Column('cards_studied', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('correct_answers', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('session_duration', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # Create stories table
    op.create_table(
        'stories',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(255), sa.ForeignKey('user_profiles.id'), nullable=False, index=True),
        sa.Column('input_text', sa.Text(), nullable=False),
        sa.Column('output_story', sa.Text(), nullable=False),
        sa.Column('narration_mode', sa.String(20), nullable=False),
        sa.Column('source', sa.String(10), nullable=False, server_default='api'),
        sa.Column('audio_url', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # Create subscriptions table
    op.create_table(
        'subscriptions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(255), sa.ForeignKey('user_profiles.id'), nullable=False, index=True),
        sa.Column('external_subscription_id', sa.String(255), nullable=False, unique=True),
        sa.Column('external_order_id', sa.String(255), nullable=True),
        sa.Column('external_product_id', sa.String(255), nullable=True),
        sa.Column('status', sa.String(32), nullable=False, server_default='inactive'),
        sa.Column('plan_type', sa.String(64), nullable=False, server_default='premium'),
        sa.Column('current_period_start', sa.DateTime(timezone=True), nullable=True),
        sa.Column('current_period_end', sa.DateTime(timezone=True), nullable=True),
        sa.Column('amount', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('currency', sa.String(3), nullable=False, server_default='USD'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # Create indexes for owner listings
    op.create_index('ix_documents_user_created', 'documents', ['user_id', 'created_at'])
    op.create_index('ix_stories_user_created', 'stories', ['user_id', 'created_at'])


def downgrade() -> None:
    op.drop_index('ix_stories_user_created')
    op.drop_index('ix_documents_user_created')
    op.drop_table('subscriptions')
    op.drop_table('stories')
    op.drop_table('study_sessions')
    op.drop_table('flashcards')
    op.drop_table('documents')
    op.drop_table('user_profiles')
