"""PII handling package.

Field-level protection for merchant applications and document extraction results: AES-256-GCM encryption of
individual values, display masks per field type, and the record codec that splits a record into a masked public
projection and an encrypted field map.
"""

from app.pii.pii_catalog import (  # noqa: F401
    EXTRACTED_DOCUMENT_CATALOG,
    MERCHANT_APPLICATION_CATALOG,
    FieldPath,
    SensitiveFieldCatalog,
)
from app.pii.pii_encryption import (  # noqa: F401
    FieldCipher,
    PiiEncryption,
    generate_field_encryption_key,
    is_likely_ciphertext,
)
from app.pii.pii_exceptions import (  # noqa: F401
    AuthenticationFailedError,
    EmptyValueError,
    InvalidKeyFormatError,
    KeyUnavailableError,
    MalformedCiphertextError,
    PiiError,
)
from app.pii.pii_masking import SensitiveFieldType, mask_sensitive_value  # noqa: F401
from app.pii.record_codec import (  # noqa: F401
    MergeResult,
    RecordCodec,
    SplitRecord,
    extracted_document_codec,
    merchant_application_codec,
)
