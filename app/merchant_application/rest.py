"""
Flask Blueprint for merchant applications and the document data extracted for them.

Records are split before they are stored: the database holds the masked public record and the encrypted field map,
never the plaintext.  The masked record is returned by default; the /pii routes return the merged plaintext and are
recorded as access events.
"""

from flask import Blueprint, current_app, request
from jsonschema import ValidationError
from jsonschema.validators import Draft202012Validator
from sqlalchemy.orm.exc import NoResultFound

from app.dao.extracted_document_data_dao import (
    dao_create_extracted_document_data,
    dao_get_extracted_document_data_by_id,
    dao_get_extracted_document_record,
)
from app.dao.merchant_applications_dao import (
    dao_create_merchant_application,
    dao_get_merchant_application_by_id,
    dao_get_merchant_application_record,
    dao_save_merchant_application_record,
)
from app.merchant_application.merchant_application_schemas import (
    application_data_put_request_schema,
    extracted_data_post_request_schema,
    merchant_application_post_request_schema,
)
from app.models import MERCHANT_APPLICATION_STATUS_DRAFT
from app.pii.pii_exceptions import PiiError

merchant_application_blueprint = Blueprint('merchant_application', __name__, url_prefix='/merchant-applications')

merchant_application_post_request_validator = Draft202012Validator(merchant_application_post_request_schema)
application_data_put_request_validator = Draft202012Validator(application_data_put_request_schema)
extracted_data_post_request_validator = Draft202012Validator(extracted_data_post_request_schema)


@merchant_application_blueprint.route('', methods=['POST'])
def create_merchant_application():
    request_data = request.get_json()
    merchant_application_post_request_validator.validate(request_data)

    application = dao_create_merchant_application(
        request_data['client_id'],
        request_data.get('application_data', {}),
        status=request_data.get('status', MERCHANT_APPLICATION_STATUS_DRAFT),
    )
    current_app.logger.info(
        'Created merchant application %s with %s encrypted fields', application.id, len(application.encrypted_fields)
    )

    return {'data': application.serialize()}, 201


@merchant_application_blueprint.route('/<uuid:application_id>', methods=['GET'])
def get_merchant_application(application_id):
    application = dao_get_merchant_application_by_id(application_id)
    return {'data': application.serialize()}, 200


@merchant_application_blueprint.route('/<uuid:application_id>/application-data', methods=['PUT'])
def update_application_data(application_id):
    request_data = request.get_json()
    application_data_put_request_validator.validate(request_data)

    application = dao_get_merchant_application_by_id(application_id)
    dao_save_merchant_application_record(application, request_data['application_data'])
    current_app.logger.info(
        'Saved merchant application %s with %s encrypted fields', application.id, len(application.encrypted_fields)
    )

    return {'data': application.serialize()}, 200


@merchant_application_blueprint.route('/<uuid:application_id>/pii', methods=['GET'])
def get_merchant_application_pii(application_id):
    application = dao_get_merchant_application_by_id(application_id)
    current_app.logger.info('Unmasked read of merchant application %s', application.id)

    return {
        'data': {
            'id': str(application.id),
            'application_data': dao_get_merchant_application_record(application, unmasked=True),
        }
    }, 200


@merchant_application_blueprint.route('/<uuid:application_id>/extracted-data', methods=['POST'])
def create_extracted_data(application_id):
    request_data = request.get_json()
    extracted_data_post_request_validator.validate(request_data)

    application = dao_get_merchant_application_by_id(application_id)
    row = dao_create_extracted_document_data(
        request_data['extracted_data'],
        request_data['document_hash'],
        document_id=request_data.get('document_id'),
        merchant_application_id=application.id,
        confidence_score=request_data.get('confidence_score'),
    )

    return {'data': row.serialize()}, 201


@merchant_application_blueprint.route('/extracted-data/<uuid:extracted_data_id>', methods=['GET'])
def get_extracted_data(extracted_data_id):
    row = dao_get_extracted_document_data_by_id(extracted_data_id)
    return {'data': row.serialize()}, 200


@merchant_application_blueprint.route('/extracted-data/<uuid:extracted_data_id>/pii', methods=['GET'])
def get_extracted_data_pii(extracted_data_id):
    row = dao_get_extracted_document_data_by_id(extracted_data_id)
    current_app.logger.info('Unmasked read of extracted document data %s', row.id)

    return {
        'data': {
            'id': str(row.id),
            'extracted_data': dao_get_extracted_document_record(row, unmasked=True),
        }
    }, 200


@merchant_application_blueprint.errorhandler(ValidationError)
def schema_validation_error(error):
    """
    Only the failing validator and the path of the offending property are returned; the message can echo the
    submitted value.
    """
    path = '.'.join(str(part) for part in error.absolute_path)
    current_app.logger.info('Merchant application request failed schema validation: %s at %s', error.validator, path)

    return {
        'errors': [
            {
                'error': 'ValidationError',
                'message': f'{path or "request"} failed {error.validator} validation',
            }
        ]
    }, 400


@merchant_application_blueprint.errorhandler(NoResultFound)
def not_found(error):
    return {
        'errors': [
            {
                'error': 'NotFound',
                'message': 'No result found',
            }
        ]
    }, 404


@merchant_application_blueprint.errorhandler(PiiError)
def pii_error(error):
    # exception messages stay out of the response
    current_app.logger.error('Field encryption failed: %s', type(error).__name__)

    return {
        'errors': [
            {
                'error': 'EncryptionError',
                'message': 'Sensitive data could not be processed',
            }
        ]
    }, 500
