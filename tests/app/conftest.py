import uuid

import pytest

from app import db
from app.models import MERCHANT_APPLICATION_STATUS_SUBMITTED, MerchantApplication
from app.pii.pii_encryption import FieldCipher
from app.pii.record_codec import extracted_document_codec, merchant_application_codec

# Fixed key for tests only, never a real secret.  Matches the Test config.
TEST_KEY_HEX = '000102030405060708090a0b0c0d0e0f101112131415161718191a1b1c1d1e1f'
OTHER_KEY_HEX = 'ffeeddccbbaa99887766554433221100ffeeddccbbaa99887766554433221100'


@pytest.fixture
def cipher():
    return FieldCipher.from_hex(TEST_KEY_HEX)


@pytest.fixture
def other_cipher():
    return FieldCipher.from_hex(OTHER_KEY_HEX)


@pytest.fixture
def merchant_codec(cipher):
    return merchant_application_codec(cipher)


@pytest.fixture
def extracted_codec(cipher):
    return extracted_document_codec(cipher)


@pytest.fixture
def merchant_record():
    return {
        'legalBusinessName': 'Acme Widgets LLC',
        'federalTaxIdNumber': '12-3456789',
        'ownerSsn': '123-45-6789',
        'abaRoutingNumber': '123456789',
        'ddaNumber': '9876543210',
        'ownerStateIssuedIdNumber': 'D12345678',
        'principalOfficers': [
            {'name': 'John Doe', 'ssn': '111-22-3333', 'dob': '1980-01-15', 'title': 'CEO'},
            {'name': 'Jane Roe', 'ssn': '444-55-6666', 'dob': '02/03/1975', 'driversLicenseNumber': 'S7654321'},
        ],
        'beneficialOwners': [
            {'name': 'Jane Roe', 'ssn': '444-55-6666', 'ownershipPercentage': 60},
        ],
    }


@pytest.fixture
def sample_merchant_application(notify_db_session):
    """
    Factory for merchant application rows as they were stored before field encryption: plaintext
    application_data and no encrypted fields.
    """

    def _wrapper(
        application_data: dict | None = None,
        client_id: str = 'client-1',
        **kwargs,
    ) -> MerchantApplication:
        application = MerchantApplication(
            id=kwargs.pop('id', uuid.uuid4()),
            client_id=client_id,
            status=kwargs.pop('status', MERCHANT_APPLICATION_STATUS_SUBMITTED),
            application_data=application_data if application_data is not None else {},
            encrypted_fields=kwargs.pop('encrypted_fields', {}),
            **kwargs,
        )
        db.session.add(application)
        db.session.commit()
        return application

    return _wrapper
