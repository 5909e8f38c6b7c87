import uuid
from datetime import datetime

from flask import current_app
from sqlalchemy.orm.exc import NoResultFound

from app import db
from app.dao.dao_utils import transactional
from app.dao.events_dao import dao_add_event
from app.models import EVENT_DECRYPTION_FAILURE, EVENT_EXTRACTED_DATA_PII_ACCESSED, ExtractedDocumentData
from app.pii.record_codec import RecordCodec, extracted_document_codec


@transactional
def dao_create_extracted_document_data(
    extracted_data: dict,
    document_hash: str,
    document_id: str | None = None,
    merchant_application_id=None,
    confidence_score: float | None = None,
    codec: RecordCodec | None = None,
) -> ExtractedDocumentData:
    """
    Persist the result of a document extraction.  Only the masked projection and the encrypted field map are
    stored; the plaintext extraction result is never written.
    """
    codec = codec or extracted_document_codec()
    split = codec.split(extracted_data)
    now = datetime.utcnow()

    row = ExtractedDocumentData(
        id=uuid.uuid4(),
        document_id=document_id,
        merchant_application_id=merchant_application_id,
        extracted_data_public=split.public,
        encrypted_fields=split.encrypted,
        has_encrypted_data=bool(split.encrypted),
        encrypted_at=now if split.encrypted else None,
        document_hash=document_hash,
        confidence_score=f'{confidence_score:.2f}' if confidence_score is not None else None,
        extraction_timestamp=now,
    )
    db.session.add(row)
    return row


def dao_get_extracted_document_data_by_id(extracted_data_id) -> ExtractedDocumentData:
    row = db.session.get(ExtractedDocumentData, extracted_data_id)
    if row is None:
        raise NoResultFound(f'No extracted document data with id {extracted_data_id}')
    return row


def dao_get_extracted_document_record(
    row: ExtractedDocumentData,
    unmasked: bool = False,
    codec: RecordCodec | None = None,
) -> dict:
    if not unmasked:
        return dict(row.extracted_data_public or {})

    codec = codec or extracted_document_codec()
    result = codec.merge_detailed(row.extracted_data_public or {}, row.encrypted_fields)

    dao_add_event(
        {
            'event_type': EVENT_EXTRACTED_DATA_PII_ACCESSED,
            'data': {'extracted_document_data_id': str(row.id), 'field_paths': sorted(row.encrypted_fields or {})},
        }
    )
    if result.failures:
        current_app.logger.error(
            'Extracted document data %s: %s field(s) could not be decrypted', row.id, len(result.failures)
        )
        dao_add_event(
            {
                'event_type': EVENT_DECRYPTION_FAILURE,
                'data': {
                    'extracted_document_data_id': str(row.id),
                    'failures': {path: type(e).__name__ for path, e in result.failures.items()},
                },
            }
        )
    db.session.commit()

    return result.record
