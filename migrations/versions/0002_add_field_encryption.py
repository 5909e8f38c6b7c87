"""
Revision ID: 0002_add_field_encryption
Revises: 0001_merchant_applications
Create Date: 2025-10-14 15:47:03.902271

Existing rows keep their plaintext application_data until `flask encrypt-existing-pii` has run.
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = '0002_add_field_encryption'
down_revision = '0001_merchant_applications'


def upgrade():
    op.add_column(
        'merchant_applications',
        sa.Column(
            'encrypted_fields',
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
            comment='Field path to AES-256-GCM ciphertext of the sensitive values',
        ),
    )
    op.add_column(
        'merchant_applications',
        sa.Column('has_encrypted_data', sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.add_column('merchant_applications', sa.Column('encrypted_at', sa.DateTime(), nullable=True))
    op.create_index(
        op.f('ix_merchant_applications_has_encrypted_data'),
        'merchant_applications',
        ['has_encrypted_data'],
        unique=False,
    )
    op.create_index(
        op.f('ix_merchant_applications_encrypted_at'), 'merchant_applications', ['encrypted_at'], unique=False
    )


def downgrade():
    op.drop_index(op.f('ix_merchant_applications_encrypted_at'), table_name='merchant_applications')
    op.drop_index(op.f('ix_merchant_applications_has_encrypted_data'), table_name='merchant_applications')
    op.drop_column('merchant_applications', 'encrypted_at')
    op.drop_column('merchant_applications', 'has_encrypted_data')
    op.drop_column('merchant_applications', 'encrypted_fields')
