"""Create hiring automation tables

Revision ID: 3f1c8a2d9b70
Revises:
Create Date: 2026-02-02 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '3f1c8a2d9b70'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# SQLAlchemy Enum columns store member names
ENUMS = {
    'candidatesource': ('WARM', 'COLD'),
    'pipelinestage': (
        'NEW', 'ANALYZED', 'OUTREACH_SENT', 'QUESTIONNAIRE_SENT', 'QUESTIONNAIRE_DONE',
        'TEST_SENT', 'TEST_DONE', 'INTERVIEW', 'OUTREACH_DECLINED', 'REJECTED', 'HIRED',
    ),
    'outreachstatus': ('NOT_SCHEDULED', 'SCHEDULED', 'SENT', 'CANCELLED', 'DECLINED'),
    'questionnairestatus': ('NOT_SENT', 'SENT', 'COMPLETED'),
    'testtaskstatus': ('NOT_SENT', 'SCHEDULED', 'SENT', 'SUBMITTED', 'EVALUATING', 'EVALUATED', 'APPROVED', 'REJECTED'),
    'hiringrequeststatus': ('ACTIVE', 'PAUSED', 'CLOSED'),
    'matchstatus': ('NEW', 'REVIEWED', 'INTERVIEW', 'HIRED', 'REJECTED', 'ON_HOLD'),
    'finaldecision': ('INVITE', 'REJECT'),
    'actiontype': ('SEND_INVITE', 'SEND_REJECTION', 'SEND_OUTREACH', 'SEND_QUESTIONNAIRE', 'SEND_TEST_TASK'),
    'automationjobstatus': ('PENDING', 'PROCESSING', 'COMPLETED', 'FAILED', 'CANCELLED', 'DEAD_LETTER'),
    'deliverymethod': ('TELEGRAM', 'EMAIL'),
    'outreachitemstatus': ('SCHEDULED', 'PROCESSING', 'SENT', 'CANCELLED', 'FAILED'),
    'messagedirection': ('OUTBOUND', 'INBOUND'),
    'questionnaireresponsestatus': ('SENT', 'COMPLETED'),
}


def enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def upgrade() -> None:
    """Upgrade schema - Create candidates, requests, queues and questionnaire tables."""
    conn = op.get_bind()

    for name, values in ENUMS.items():
        result = conn.execute(sa.text(
            "SELECT 1 FROM pg_type WHERE typname = :name"
        ), {"name": name}).fetchone()
        if not result:
            postgresql.ENUM(*values, name=name).create(conn)

    op.create_table('candidates',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('first_name', sa.String(), nullable=False),
        sa.Column('last_name', sa.String(), nullable=True),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('telegram_username', sa.String(), nullable=True),
        sa.Column('telegram_chat_id', sa.BigInteger(), nullable=True),
        sa.Column('preferred_contact_methods', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('source', enum('candidatesource'), nullable=False),
        sa.Column('about_text', sa.Text(), nullable=True),
        sa.Column('why_company', sa.Text(), nullable=True),
        sa.Column('key_skills', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('pipeline_stage', enum('pipelinestage'), nullable=False),
        sa.Column('ai_score', sa.Float(), nullable=True),
        sa.Column('ai_category', sa.String(), nullable=True),
        sa.Column('ai_summary', sa.Text(), nullable=True),
        sa.Column('ai_strengths', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('ai_concerns', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('outreach_status', enum('outreachstatus'), nullable=False),
        sa.Column('outreach_sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('questionnaire_status', enum('questionnairestatus'), nullable=False),
        sa.Column('test_task_status', enum('testtaskstatus'), nullable=False),
        sa.Column('test_task_sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('test_task_original_deadline', sa.DateTime(timezone=True), nullable=True),
        sa.Column('test_task_current_deadline', sa.DateTime(timezone=True), nullable=True),
        sa.Column('test_task_extensions_count', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('test_task_submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('test_task_submission_text', sa.Text(), nullable=True),
        sa.Column('test_task_candidate_feedback', sa.String(), nullable=True),
        sa.Column('test_task_late_by_hours', sa.Integer(), nullable=True),
        sa.Column('test_task_ai_score', sa.Float(), nullable=True),
        sa.Column('test_task_ai_evaluation', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_candidates_id'), 'candidates', ['id'], unique=False)
    op.create_index(op.f('ix_candidates_telegram_username'), 'candidates', ['telegram_username'], unique=False)
    op.create_index(op.f('ix_candidates_pipeline_stage'), 'candidates', ['pipeline_stage'], unique=False)
    op.create_index(op.f('ix_candidates_test_task_status'), 'candidates', ['test_task_status'], unique=False)

    op.create_table('requests',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', enum('hiringrequeststatus'), nullable=False),
        sa.Column('outreach_template', sa.Text(), nullable=True),
        sa.Column('outreach_template_approved', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('questionnaire_competency_ids', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('questionnaire_question_ids', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('test_task_url', sa.String(), nullable=True),
        sa.Column('test_task_deadline_days', sa.Integer(), nullable=True),
        sa.Column('test_task_evaluation_criteria', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_requests_id'), 'requests', ['id'], unique=False)
    op.create_index(op.f('ix_requests_title'), 'requests', ['title'], unique=False)

    op.create_table('candidate_request_matches',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('candidate_id', sa.Integer(), nullable=False),
        sa.Column('request_id', sa.Integer(), nullable=False),
        sa.Column('match_score', sa.Float(), nullable=True),
        sa.Column('match_explanation', sa.Text(), nullable=True),
        sa.Column('status', enum('matchstatus'), nullable=False),
        sa.Column('final_decision', enum('finaldecision'), nullable=True),
        sa.Column('final_decision_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('final_decision_by', sa.String(), nullable=True),
        sa.Column('outreach_telegram_message_id', sa.BigInteger(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['candidate_id'], ['candidates.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['request_id'], ['requests.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('candidate_id', 'request_id', name='uq_match_candidate_request')
    )
    op.create_index(op.f('ix_candidate_request_matches_id'), 'candidate_request_matches', ['id'], unique=False)
    op.create_index(op.f('ix_candidate_request_matches_candidate_id'), 'candidate_request_matches', ['candidate_id'], unique=False)
    op.create_index(op.f('ix_candidate_request_matches_request_id'), 'candidate_request_matches', ['request_id'], unique=False)
    op.create_index(op.f('ix_candidate_request_matches_match_score'), 'candidate_request_matches', ['match_score'], unique=False)

    op.create_table('automation_jobs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('action_type', enum('actiontype'), nullable=False),
        sa.Column('status', enum('automationjobstatus'), nullable=False),
        sa.Column('candidate_id', sa.Integer(), nullable=False),
        sa.Column('request_id', sa.Integer(), nullable=False),
        sa.Column('scheduled_for', sa.DateTime(timezone=True), nullable=True),
        sa.Column('payload', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('retry_count', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('claimed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('executed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['candidate_id'], ['candidates.id'], ),
        sa.ForeignKeyConstraint(['request_id'], ['requests.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_automation_jobs_id'), 'automation_jobs', ['id'], unique=False)
    op.create_index(op.f('ix_automation_jobs_action_type'), 'automation_jobs', ['action_type'], unique=False)
    op.create_index(op.f('ix_automation_jobs_status'), 'automation_jobs', ['status'], unique=False)
    op.create_index(op.f('ix_automation_jobs_candidate_id'), 'automation_jobs', ['candidate_id'], unique=False)
    op.create_index(op.f('ix_automation_jobs_request_id'), 'automation_jobs', ['request_id'], unique=False)
    op.create_index(op.f('ix_automation_jobs_scheduled_for'), 'automation_jobs', ['scheduled_for'], unique=False)

    op.create_table('outreach_queue',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('candidate_id', sa.Integer(), nullable=False),
        sa.Column('request_id', sa.Integer(), nullable=True),
        sa.Column('intro_message', sa.Text(), nullable=False),
        sa.Column('test_task_message', sa.Text(), nullable=True),
        sa.Column('delivery_method', enum('deliverymethod'), nullable=False),
        sa.Column('scheduled_for', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', enum('outreachitemstatus'), nullable=False),
        sa.Column('edited_by', sa.String(), nullable=True),
        sa.Column('edited_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('external_message_id', sa.String(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('retry_count', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('claimed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['candidate_id'], ['candidates.id'], ),
        sa.ForeignKeyConstraint(['request_id'], ['requests.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_outreach_queue_id'), 'outreach_queue', ['id'], unique=False)
    op.create_index(op.f('ix_outreach_queue_candidate_id'), 'outreach_queue', ['candidate_id'], unique=False)
    op.create_index(op.f('ix_outreach_queue_request_id'), 'outreach_queue', ['request_id'], unique=False)
    op.create_index(op.f('ix_outreach_queue_scheduled_for'), 'outreach_queue', ['scheduled_for'], unique=False)
    op.create_index(op.f('ix_outreach_queue_status'), 'outreach_queue', ['status'], unique=False)

    op.create_table('candidate_conversations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('candidate_id', sa.Integer(), nullable=False),
        sa.Column('direction', enum('messagedirection'), nullable=False),
        sa.Column('message_type', sa.String(), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('metadata', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['candidate_id'], ['candidates.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_candidate_conversations_id'), 'candidate_conversations', ['id'], unique=False)
    op.create_index(op.f('ix_candidate_conversations_candidate_id'), 'candidate_conversations', ['candidate_id'], unique=False)
    op.create_index(op.f('ix_candidate_conversations_message_type'), 'candidate_conversations', ['message_type'], unique=False)

    op.create_table('soft_skill_competencies',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_soft_skill_competencies_id'), 'soft_skill_competencies', ['id'], unique=False)

    op.create_table('questionnaire_questions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('competency_id', sa.Integer(), nullable=False),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.ForeignKeyConstraint(['competency_id'], ['soft_skill_competencies.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_questionnaire_questions_id'), 'questionnaire_questions', ['id'], unique=False)
    op.create_index(op.f('ix_questionnaire_questions_competency_id'), 'questionnaire_questions', ['competency_id'], unique=False)

    op.create_table('questionnaire_responses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('candidate_id', sa.Integer(), nullable=False),
        sa.Column('request_id', sa.Integer(), nullable=False),
        sa.Column('token', sa.String(), nullable=False),
        sa.Column('status', enum('questionnaireresponsestatus'), nullable=False),
        sa.Column('questions', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('answers', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('ai_score', sa.Float(), nullable=True),
        sa.Column('ai_evaluation', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['candidate_id'], ['candidates.id'], ),
        sa.ForeignKeyConstraint(['request_id'], ['requests.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_questionnaire_responses_id'), 'questionnaire_responses', ['id'], unique=False)
    op.create_index(op.f('ix_questionnaire_responses_candidate_id'), 'questionnaire_responses', ['candidate_id'], unique=False)
    op.create_index(op.f('ix_questionnaire_responses_token'), 'questionnaire_responses', ['token'], unique=True)


def downgrade() -> None:
    """Downgrade schema - Drop all hiring automation tables and enum types."""
    op.drop_table('questionnaire_responses')
    op.drop_table('questionnaire_questions')
    op.drop_table('soft_skill_competencies')
    op.drop_table('candidate_conversations')
    op.drop_table('outreach_queue')
    op.drop_table('automation_jobs')
    op.drop_table('candidate_request_matches')
    op.drop_table('requests')
    op.drop_table('candidates')

    conn = op.get_bind()
    for name in reversed(list(ENUMS)):
        conn.execute(sa.text(f"DROP TYPE IF EXISTS {name}"))
