"""
Revision ID: 0003_extracted_document_data
Revises: 0002_add_field_encryption
Create Date: 2025-10-21 09:05:56.117430
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = '0003_extracted_document_data'
down_revision = '0002_add_field_encryption'


def upgrade():
    op.create_table(
        'extracted_document_data',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('document_id', sa.String(length=255), nullable=True),
        sa.Column('merchant_application_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('extracted_data_public', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column(
            'encrypted_fields',
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column('has_encrypted_data', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('encrypted_at', sa.DateTime(), nullable=True),
        sa.Column('document_hash', sa.String(length=64), nullable=False),
        sa.Column('confidence_score', sa.String(length=8), nullable=True),
        sa.Column('extraction_timestamp', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['merchant_application_id'], ['merchant_applications.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    for column in (
        'document_id',
        'merchant_application_id',
        'has_encrypted_data',
        'encrypted_at',
        'document_hash',
        'expires_at',
    ):
        op.create_index(
            op.f(f'ix_extracted_document_data_{column}'), 'extracted_document_data', [column], unique=False
        )


def downgrade():
    op.drop_table('extracted_document_data')
