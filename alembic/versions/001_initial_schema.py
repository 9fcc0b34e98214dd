"""Initial schema: persons, templates, eligibility, issuance and verification logs

Revision ID: 001
Revises:
Create Date: 2025-01-01 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


ISSUED_VC_STATUS = sa.Enum('issuing', 'issued', 'expired', 'revoked', name='issued_vc_status')
ISSUANCE_LOG_STATUS = sa.Enum('initiated', 'user_claimed', 'expired', name='issuance_log_status')
VERIFICATION_STATUS = sa.Enum(
    'initiated', 'success', 'failed', 'expired', 'error_missing_uuid', name='verification_status'
)
BATCH_SESSION_STATUS = sa.Enum('active', 'closed', 'expired', name='batch_session_status')


def upgrade():
    op.create_table(
        'persons',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('personal_id', sa.String(64), nullable=False),
        sa.Column('national_id', sa.String(20), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('date_of_birth', sa.Date(), nullable=True),
        sa.Column('phone_number', sa.String(30), nullable=True),
        sa.Column('county', sa.String(50), nullable=True),
        sa.Column('district', sa.String(50), nullable=True),
        sa.Column('address', sa.String(255), nullable=True),
        sa.Column('emergency_contact_name', sa.String(100), nullable=True),
        sa.Column('emergency_contact_relationship', sa.String(50), nullable=True),
        sa.Column('emergency_contact_phone', sa.String(30), nullable=True),
        sa.Column('reviewing_authority', sa.String(100), nullable=True),
        sa.Column('reviewer_name', sa.String(100), nullable=True),
        sa.Column('reviewer_phone', sa.String(30), nullable=True),
        sa.Column('eligibility_start_date', sa.Date(), nullable=True),
        sa.Column('eligibility_end_date', sa.Date(), nullable=True),
        sa.Column('personal_annual_income', sa.BigInteger(), nullable=True),
        sa.Column('personal_movable_assets', sa.BigInteger(), nullable=True),
        sa.Column('personal_real_estate_assets', sa.BigInteger(), nullable=True),
        sa.Column('family_annual_income', sa.BigInteger(), nullable=True),
        sa.Column('family_movable_assets', sa.BigInteger(), nullable=True),
        sa.Column('family_real_estate_assets', sa.BigInteger(), nullable=True),
        sa.Column('benefit_level', sa.String(50), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_persons_personal_id', 'persons', ['personal_id'], unique=True)

    op.create_table(
        'vc_templates',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('template_name', sa.String(100), nullable=False),
        sa.Column('vc_uid', sa.String(100), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('card_image_url', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )

    op.create_table(
        'person_eligibilities',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('person_id', sa.Integer(), sa.ForeignKey('persons.id', ondelete='CASCADE'), nullable=False),
        sa.Column('template_id', sa.Integer(), sa.ForeignKey('vc_templates.id', ondelete='CASCADE'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('person_id', 'template_id', name='uq_person_eligibility'),
    )
    op.create_index('ix_person_eligibilities_person_id', 'person_eligibilities', ['person_id'])
    op.create_index('ix_person_eligibilities_template_id', 'person_eligibilities', ['template_id'])

    op.create_table(
        'issued_vcs',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('person_id', sa.Integer(), sa.ForeignKey('persons.id', ondelete='CASCADE'), nullable=False),
        sa.Column('template_id', sa.Integer(), sa.ForeignKey('vc_templates.id', ondelete='CASCADE'), nullable=False),
        sa.Column('system_uuid', sa.String(64), nullable=False, unique=True),
        sa.Column('cid', sa.String(128), nullable=True),
        sa.Column('issued_data', sa.JSON(), nullable=True),
        sa.Column('benefit_level', sa.String(50), nullable=True),
        sa.Column('status', ISSUED_VC_STATUS, nullable=False),
        sa.Column('issued_at', sa.DateTime(), nullable=True),
        sa.Column('expired_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_issued_vcs_person_id', 'issued_vcs', ['person_id'])
    op.create_index('ix_issued_vcs_template_id', 'issued_vcs', ['template_id'])
    op.create_index('ix_issued_vcs_cid', 'issued_vcs', ['cid'])
    op.create_index('ix_issued_vcs_status', 'issued_vcs', ['status'])
    op.create_index('idx_issued_vc_person_template', 'issued_vcs', ['person_id', 'template_id'])

    op.create_table(
        'issuance_logs',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            'issued_vc_id', sa.Integer(), sa.ForeignKey('issued_vcs.id', ondelete='CASCADE'),
            nullable=False, unique=True,
        ),
        sa.Column('transaction_id', sa.String(128), nullable=False),
        sa.Column('status', ISSUANCE_LOG_STATUS, nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_issuance_logs_transaction_id', 'issuance_logs', ['transaction_id'], unique=True)

    op.create_table(
        'batch_verification_sessions',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('uuid', sa.String(36), nullable=False),
        sa.Column('verifier_info', sa.String(100), nullable=True),
        sa.Column('verifier_branch', sa.String(100), nullable=True),
        sa.Column('verification_reason', sa.String(255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('status', BATCH_SESSION_STATUS, nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_batch_verification_sessions_uuid', 'batch_verification_sessions', ['uuid'], unique=True)

    op.create_table(
        'verification_logs',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('transaction_id', sa.String(64), nullable=False),
        sa.Column('status', VERIFICATION_STATUS, nullable=False),
        sa.Column('verify_result', sa.Boolean(), nullable=True),
        sa.Column('result_description', sa.Text(), nullable=True),
        sa.Column('returned_data', sa.JSON(), nullable=True),
        sa.Column('verifier_info', sa.String(100), nullable=True),
        sa.Column('verifier_branch', sa.String(100), nullable=True),
        sa.Column('verification_reason', sa.String(255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column(
            'verified_person_id', sa.Integer(), sa.ForeignKey('persons.id', ondelete='SET NULL'), nullable=True,
        ),
        sa.Column(
            'batch_verification_session_id', sa.Integer(),
            sa.ForeignKey('batch_verification_sessions.id', ondelete='CASCADE'), nullable=True,
        ),
    )
    op.create_index('ix_verification_logs_transaction_id', 'verification_logs', ['transaction_id'], unique=True)
    op.create_index('ix_verification_logs_status', 'verification_logs', ['status'])
    op.create_index('ix_verification_logs_verified_person_id', 'verification_logs', ['verified_person_id'])
    op.create_index(
        'ix_verification_logs_batch_verification_session_id',
        'verification_logs',
        ['batch_verification_session_id'],
    )


def downgrade():
    op.drop_table('verification_logs')
    op.drop_table('batch_verification_sessions')
    op.drop_table('issuance_logs')
    op.drop_table('issued_vcs')
    op.drop_table('person_eligibilities')
    op.drop_table('vc_templates')
    op.drop_table('persons')

    bind = op.get_bind()
    for enum_type in (VERIFICATION_STATUS, BATCH_SESSION_STATUS, ISSUANCE_LOG_STATUS, ISSUED_VC_STATUS):
        enum_type.drop(bind, checkfirst=True)
