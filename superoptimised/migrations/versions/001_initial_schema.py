"""Initial schema.

Revision ID: initial_001
Revises:
Create Date: 2025-10-19

Creates users, questions, questionnaires, voter tokens, responses, rate
limits, engagement stats, the XP ledger, daily analytics and blog posts.
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from superoptimised.migrations.util import get_uuid_type


# revision identifiers, used by Alembic.
revision: str = "initial_001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    uuid_type = get_uuid_type()

    op.create_table(
        'users',
        sa.Column('user_id', uuid_type, nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('display_name', sa.String(80), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_login_date', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('user_id'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'questions',
        sa.Column('question_id', uuid_type, nullable=False),
        sa.Column('title', sa.String(500), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('question_type', sa.String(32), nullable=False),
        sa.Column('question_data', sa.JSON(), nullable=False),
        sa.Column('category', sa.String(100), nullable=True),
        sa.Column('display_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('scheduled_start', sa.DateTime(timezone=True), nullable=True),
        sa.Column('scheduled_end', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('question_id'),
    )
    op.create_index('ix_questions_category', 'questions', ['category'])
    op.create_index('ix_questions_active_order', 'questions', ['is_active', 'display_order'])

    op.create_table(
        'questionnaires',
        sa.Column('questionnaire_id', uuid_type, nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(100), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='draft'),
        sa.Column('allow_multiple_responses', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('questionnaire_id'),
    )
    op.create_index('ix_questionnaires_status', 'questionnaires', ['status'])

    op.create_table(
        'questionnaire_questions',
        sa.Column('questionnaire_id', uuid_type, nullable=False),
        sa.Column('question_id', uuid_type, nullable=False),
        sa.Column('display_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_required', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.ForeignKeyConstraint(['questionnaire_id'], ['questionnaires.questionnaire_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['question_id'], ['questions.question_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('questionnaire_id', 'question_id'),
    )

    op.create_table(
        'voter_tokens',
        sa.Column('voter_token_id', uuid_type, nullable=False),
        sa.Column('token_hash', sa.String(64), nullable=False),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('vote_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_active', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('voter_token_id'),
    )
    op.create_index('ix_voter_tokens_token_hash', 'voter_tokens', ['token_hash'], unique=True)

    op.create_table(
        'question_responses',
        sa.Column('response_id', uuid_type, nullable=False),
        sa.Column('question_id', uuid_type, nullable=False),
        sa.Column('questionnaire_id', uuid_type, nullable=True),
        sa.Column('user_id', uuid_type, nullable=True),
        sa.Column('voter_token_id', uuid_type, nullable=True),
        sa.Column('response_data', sa.JSON(), nullable=False),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['question_id'], ['questions.question_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['questionnaire_id'], ['questionnaires.questionnaire_id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['user_id'], ['users.user_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['voter_token_id'], ['voter_tokens.voter_token_id'], ondelete='CASCADE'),
        sa.CheckConstraint(
            '(user_id IS NULL) <> (voter_token_id IS NULL)',
            name='ck_question_responses_single_identity',
        ),
        sa.PrimaryKeyConstraint('response_id'),
    )
    op.create_index('ix_question_responses_question_id', 'question_responses', ['question_id'])
    op.create_index('ix_question_responses_questionnaire_id', 'question_responses', ['questionnaire_id'])
    op.create_index('ix_question_responses_created_at', 'question_responses', ['created_at'])
    op.create_index('ix_question_responses_question_user', 'question_responses', ['question_id', 'user_id'])
    op.create_index(
        'ix_question_responses_question_voter', 'question_responses', ['question_id', 'voter_token_id']
    )

    op.create_table(
        'rate_limits',
        sa.Column('id', uuid_type, nullable=False),
        sa.Column('ip_address', sa.String(45), nullable=False),
        sa.Column('action_type', sa.String(50), nullable=False),
        sa.Column('request_count', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('window_start', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('ip_address', 'action_type', name='uq_rate_limits_ip_action'),
    )
    op.create_index('ix_rate_limits_expires_at', 'rate_limits', ['expires_at'])

    op.create_table(
        'engagement_stats',
        sa.Column('stats_id', uuid_type, nullable=False),
        sa.Column('user_id', uuid_type, nullable=True),
        sa.Column('voter_token_id', uuid_type, nullable=True),
        sa.Column('current_streak', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('longest_streak', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_votes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_xp', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_activity', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.user_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['voter_token_id'], ['voter_tokens.voter_token_id'], ondelete='CASCADE'),
        sa.CheckConstraint(
            '(user_id IS NULL) <> (voter_token_id IS NULL)',
            name='ck_engagement_stats_single_identity',
        ),
        sa.PrimaryKeyConstraint('stats_id'),
        sa.UniqueConstraint('user_id', name='uq_engagement_stats_user_id'),
        sa.UniqueConstraint('voter_token_id', name='uq_engagement_stats_voter_token_id'),
    )
    op.create_index('ix_engagement_stats_total_votes', 'engagement_stats', ['total_votes'])

    op.create_table(
        'xp_ledger',
        sa.Column('entry_id', uuid_type, nullable=False),
        sa.Column('user_id', uuid_type, nullable=True),
        sa.Column('voter_token_id', uuid_type, nullable=True),
        sa.Column('action_type', sa.String(20), nullable=False, server_default='vote'),
        sa.Column('xp_amount', sa.Integer(), nullable=False),
        sa.Column('source_question_id', uuid_type, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.user_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['voter_token_id'], ['voter_tokens.voter_token_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['source_question_id'], ['questions.question_id'], ondelete='SET NULL'),
        sa.CheckConstraint(
            '(user_id IS NULL) <> (voter_token_id IS NULL)',
            name='ck_xp_ledger_single_identity',
        ),
        sa.PrimaryKeyConstraint('entry_id'),
    )
    op.create_index('ix_xp_ledger_user_id', 'xp_ledger', ['user_id'])
    op.create_index('ix_xp_ledger_voter_token_id', 'xp_ledger', ['voter_token_id'])
    op.create_index('ix_xp_ledger_created_at', 'xp_ledger', ['created_at'])

    op.create_table(
        'analytics_daily',
        sa.Column('analytics_id', uuid_type, nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('total_votes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('unique_voters', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_xp_earned', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('popular_questions', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('analytics_id'),
        sa.UniqueConstraint('date', name='uq_analytics_daily_date'),
    )

    op.create_table(
        'blog_posts',
        sa.Column('post_id', uuid_type, nullable=False),
        sa.Column('slug', sa.String(200), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('excerpt', sa.Text(), nullable=True),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('post_type', sa.String(20), nullable=False, server_default='blog'),
        sa.Column('status', sa.String(20), nullable=False, server_default='draft'),
        sa.Column('featured', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('published_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('post_id'),
    )
    op.create_index('ix_blog_posts_slug', 'blog_posts', ['slug'], unique=True)
    op.create_index('ix_blog_posts_status_published', 'blog_posts', ['status', 'published_at'])


def downgrade() -> None:
    op.drop_table('blog_posts')
    op.drop_table('analytics_daily')
    op.drop_table('xp_ledger')
    op.drop_table('engagement_stats')
    op.drop_table('rate_limits')
    op.drop_table('question_responses')
    op.drop_table('voter_tokens')
    op.drop_table('questionnaire_questions')
    op.drop_table('questionnaires')
    op.drop_table('questions')
    op.drop_table('users')
