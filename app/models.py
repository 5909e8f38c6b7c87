import uuid
from datetime import datetime, timedelta

from sqlalchemy.dialects.postgresql import JSONB

from app import db

# JSONB on postgres, plain JSON elsewhere (the sqlite test database).
JSONType = db.JSON().with_variant(JSONB(), 'postgresql')

MERCHANT_APPLICATION_STATUS_DRAFT = 'DRAFT'
MERCHANT_APPLICATION_STATUS_SUBMITTED = 'SUBMITTED'
MERCHANT_APPLICATION_STATUS_UNDER_REVIEW = 'UNDER_REVIEW'
MERCHANT_APPLICATION_STATUS_APPROVED = 'APPROVED'
MERCHANT_APPLICATION_STATUS_REJECTED = 'REJECTED'
MERCHANT_APPLICATION_STATUSES = [
    MERCHANT_APPLICATION_STATUS_DRAFT,
    MERCHANT_APPLICATION_STATUS_SUBMITTED,
    MERCHANT_APPLICATION_STATUS_UNDER_REVIEW,
    MERCHANT_APPLICATION_STATUS_APPROVED,
    MERCHANT_APPLICATION_STATUS_REJECTED,
]

EVENT_MERCHANT_APP_ENCRYPTED = 'merchant_app_encrypted'
EVENT_MERCHANT_APP_PII_ACCESSED = 'merchant_app_pii_accessed'
EVENT_EXTRACTED_DATA_PII_ACCESSED = 'extracted_data_pii_accessed'
EVENT_DECRYPTION_FAILURE = 'decryption_failure'

EXTRACTED_DATA_RETENTION_DAYS = 30


class EncryptedFieldsMixin(object):
    """
    The three columns that carry field-level encryption state for a row.

    encrypted_fields maps a field path (``federalTaxIdNumber`` or ``principalOfficers.0.ssn``) to its ciphertext.
    has_encrypted_data is set once a split has been committed for the row, and encrypted_at records when.
    """

    encrypted_fields = db.Column(JSONType, nullable=False, default=dict)
    has_encrypted_data = db.Column(db.Boolean, nullable=False, default=False, index=True)
    encrypted_at = db.Column(db.DateTime, nullable=True, index=True)


class MerchantApplication(EncryptedFieldsMixin, db.Model):
    __tablename__ = 'merchant_applications'

    id = db.Column(db.Uuid, primary_key=True, default=uuid.uuid4)
    client_id = db.Column(db.String(255), nullable=False, index=True)
    status = db.Column(db.String(32), nullable=False, default=MERCHANT_APPLICATION_STATUS_DRAFT)
    # Plaintext for rows written before field encryption, the masked public projection afterwards.
    application_data = db.Column(JSONType, nullable=False, default=dict)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=True, onupdate=datetime.utcnow)

    def serialize(self) -> dict:
        return {
            'id': str(self.id),
            'client_id': self.client_id,
            'status': self.status,
            'application_data': self.application_data,
            'has_encrypted_data': self.has_encrypted_data,
            'encrypted_at': self.encrypted_at.isoformat() if self.encrypted_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


def _default_expires_at(context) -> datetime:
    extracted_at = context.get_current_parameters().get('extraction_timestamp') or datetime.utcnow()
    return extracted_at + timedelta(days=EXTRACTED_DATA_RETENTION_DAYS)


class ExtractedDocumentData(EncryptedFieldsMixin, db.Model):
    __tablename__ = 'extracted_document_data'

    id = db.Column(db.Uuid, primary_key=True, default=uuid.uuid4)
    document_id = db.Column(db.String(255), nullable=True, index=True)
    merchant_application_id = db.Column(
        db.Uuid, db.ForeignKey('merchant_applications.id', ondelete='CASCADE'), nullable=True, index=True
    )
    extracted_data_public = db.Column(JSONType, nullable=False, default=dict)
    document_hash = db.Column(db.String(64), nullable=False, index=True)
    confidence_score = db.Column(db.String(8), nullable=True)
    extraction_timestamp = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    expires_at = db.Column(db.DateTime, nullable=True, default=_default_expires_at, index=True)

    def serialize(self) -> dict:
        return {
            'id': str(self.id),
            'document_id': self.document_id,
            'merchant_application_id': str(self.merchant_application_id) if self.merchant_application_id else None,
            'extracted_data': self.extracted_data_public,
            'document_hash': self.document_hash,
            'confidence_score': self.confidence_score,
            'extraction_timestamp': self.extraction_timestamp.isoformat(),
            'expires_at': self.expires_at.isoformat() if self.expires_at else None,
        }


class Event(db.Model):
    __tablename__ = 'events'

    id = db.Column(db.Uuid, primary_key=True, default=uuid.uuid4)
    event_type = db.Column(db.String(255), nullable=False, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    data = db.Column(JSONType, nullable=False)
