import uuid
from datetime import datetime

from flask import current_app
from sqlalchemy import func, select
from sqlalchemy.orm.exc import NoResultFound

from app import db
from app.dao.dao_utils import transactional
from app.dao.events_dao import dao_add_event
from app.models import (
    EVENT_DECRYPTION_FAILURE,
    EVENT_MERCHANT_APP_PII_ACCESSED,
    MERCHANT_APPLICATION_STATUS_DRAFT,
    MerchantApplication,
)
from app.pii.record_codec import RecordCodec, SplitRecord, merchant_application_codec


def protect_merchant_application_record(
    application: MerchantApplication,
    record: dict,
    codec: RecordCodec | None = None,
) -> SplitRecord:
    """
    Split a plaintext record and assign the result to the application's columns without committing.

    The previous ciphertexts are discarded, not versioned: every save re-encrypts under fresh nonces.

    Raises:
        PiiError: If any field fails to encrypt.  The application is left untouched in that case.
    """
    codec = codec or merchant_application_codec()
    split = codec.split(record)
    apply_split_record(application, split)

    return split


def apply_split_record(
    application: MerchantApplication,
    split: SplitRecord,
) -> None:
    application.application_data = split.public
    application.encrypted_fields = split.encrypted
    application.has_encrypted_data = bool(split.encrypted)
    application.encrypted_at = datetime.utcnow() if split.encrypted else None


@transactional
def dao_create_merchant_application(
    client_id: str,
    record: dict | None = None,
    status: str = MERCHANT_APPLICATION_STATUS_DRAFT,
    codec: RecordCodec | None = None,
) -> MerchantApplication:
    application = MerchantApplication(id=uuid.uuid4(), client_id=client_id, status=status)
    protect_merchant_application_record(application, record or {}, codec)
    db.session.add(application)
    return application


@transactional
def dao_save_merchant_application_record(
    application: MerchantApplication,
    record: dict,
    codec: RecordCodec | None = None,
) -> MerchantApplication:
    """Fields sent back as their stored mask keep their stored value; see RecordCodec.restore_unchanged."""
    codec = codec or merchant_application_codec()
    record = codec.restore_unchanged(record, application.application_data, application.encrypted_fields)
    protect_merchant_application_record(application, record, codec)
    application.updated_at = datetime.utcnow()
    db.session.add(application)
    return application


def dao_get_merchant_application_by_id(application_id) -> MerchantApplication:
    application = db.session.get(MerchantApplication, application_id)
    if application is None:
        raise NoResultFound(f'No merchant application with id {application_id}')
    return application


def dao_get_merchant_application_record(
    application: MerchantApplication,
    unmasked: bool = False,
    codec: RecordCodec | None = None,
) -> dict:
    """
    Return the masked public record, or for authorized readers the merged plaintext record.

    An unmasked read is recorded as an access event.  Fields that fail to decrypt stay masked; their paths (never
    their values) are recorded in a decryption_failure event for investigation.
    """
    if not unmasked:
        return dict(application.application_data or {})

    codec = codec or merchant_application_codec()
    result = codec.merge_detailed(application.application_data or {}, application.encrypted_fields)

    dao_add_event(
        {
            'event_type': EVENT_MERCHANT_APP_PII_ACCESSED,
            'data': {
                'merchant_application_id': str(application.id),
                'field_paths': sorted(application.encrypted_fields or {}),
            },
        }
    )
    if result.failures:
        current_app.logger.error(
            'Merchant application %s: %s field(s) could not be decrypted', application.id, len(result.failures)
        )
        dao_add_event(
            {
                'event_type': EVENT_DECRYPTION_FAILURE,
                'data': {
                    'merchant_application_id': str(application.id),
                    'failures': {path: type(e).__name__ for path, e in result.failures.items()},
                },
            }
        )
    db.session.commit()

    return result.record


def dao_get_merchant_applications_batch(
    after_id=None,
    limit: int = 50,
) -> list[MerchantApplication]:
    """
    Keyset pagination by id.  Rows updated by a previous batch do not shift later batches.
    """
    stmt = select(MerchantApplication).order_by(MerchantApplication.id).limit(limit)
    if after_id is not None:
        stmt = stmt.where(MerchantApplication.id > after_id)
    return db.session.scalars(stmt).all()


def dao_count_merchant_applications() -> int:
    return db.session.scalar(select(func.count()).select_from(MerchantApplication))


def dao_count_encrypted_merchant_applications() -> int:
    stmt = select(func.count()).select_from(MerchantApplication).where(MerchantApplication.has_encrypted_data.is_(True))
    return db.session.scalar(stmt)


def dao_get_last_encrypted_at() -> datetime | None:
    stmt = select(func.max(MerchantApplication.encrypted_at)).where(MerchantApplication.has_encrypted_data.is_(True))
    return db.session.scalar(stmt)


def dao_get_sample_encrypted_field_paths() -> list[str]:
    """
    Field paths (keys only, never values) of one encrypted application.
    """
    stmt = select(MerchantApplication.encrypted_fields).where(MerchantApplication.has_encrypted_data.is_(True)).limit(1)
    encrypted_fields = db.session.scalar(stmt)
    return sorted(encrypted_fields or {})
