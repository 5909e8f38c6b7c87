"""Split records into a masked public projection and an encrypted field map, and merge them back.

    plaintext record --split--> (public record, encrypted_fields) --merge--> plaintext record

split() fails closed: any encryption error aborts the whole record so a field can never end up in neither place.
merge() fails open per field: a field whose ciphertext does not decrypt keeps its masked public value and the rest
of the record is still reconstituted.
"""

import copy
import logging
from dataclasses import dataclass, field
from typing import Mapping, NamedTuple

from app.pii.pii_catalog import (
    EXTRACTED_DOCUMENT_CATALOG,
    MERCHANT_APPLICATION_CATALOG,
    FieldPath,
    SensitiveFieldCatalog,
    has_value,
)
from app.pii.pii_encryption import FieldCipher, PiiEncryption
from app.pii.pii_exceptions import AuthenticationFailedError, MalformedCiphertextError, PiiError
from app.pii.pii_masking import mask_sensitive_value

logger = logging.getLogger(__name__)


class SplitRecord(NamedTuple):
    public: dict
    encrypted: dict[str, str]


@dataclass
class MergeResult:
    record: dict
    failures: dict[str, PiiError] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures


def _assign(
    record: dict,
    path: FieldPath,
    value,
) -> None:
    if path.container is None:
        record[path.field] = value
    else:
        record[path.container][path.index][path.field] = value


class RecordCodec:
    """Applies field-level protection to records described by one SensitiveFieldCatalog.

    The codec is stateless apart from its catalog and cipher. When no cipher is injected the process-wide one from
    PiiEncryption is used, resolved on the first call that actually encrypts or decrypts.
    """

    def __init__(
        self,
        catalog: SensitiveFieldCatalog,
        cipher: FieldCipher | None = None,
    ) -> None:
        self.catalog = catalog
        self._cipher = cipher

    @property
    def cipher(self) -> FieldCipher:
        if self._cipher is not None:
            return self._cipher
        return PiiEncryption.get_cipher()

    def split(self, record: Mapping) -> SplitRecord:
        """Separate a plaintext record into its public projection and encrypted field map.

        The public record has the same shape as the input. Catalogued fields with a value are masked in it and
        encrypted under their field path; every other field is copied unchanged. The input is not modified.

        Raises:
            PiiError: If any field fails to encrypt, including a missing or malformed key.
        """
        public = copy.deepcopy(dict(record))
        encrypted: dict[str, str] = {}
        cipher = None

        for location in self.catalog.locations(record):
            if not has_value(location.value):
                continue
            if cipher is None:
                cipher = self.cipher

            plaintext = str(location.value)
            encrypted[str(location.path)] = cipher.encrypt(plaintext)
            _assign(public, location.path, mask_sensitive_value(plaintext, location.field_type))

        return SplitRecord(public, encrypted)

    def merge_detailed(
        self,
        public: Mapping,
        encrypted: Mapping[str, str] | None,
    ) -> MergeResult:
        """Merge, returning the per-path decryption failures alongside the record.

        Raises:
            KeyUnavailableError: If there is something to decrypt and no key is configured.
            InvalidKeyFormatError: If there is something to decrypt and the key is malformed.
        """
        record = copy.deepcopy(dict(public))
        result = MergeResult(record)
        if not encrypted:
            return result

        cipher = self.cipher
        visited = set()

        for location in self.catalog.locations(record, include_absent=True):
            key = str(location.path)
            if key not in encrypted:
                continue
            visited.add(key)

            try:
                plaintext = cipher.decrypt(encrypted[key])
            except AuthenticationFailedError as e:
                logger.error(
                    'SECURITY: %s field %s failed authentication (possible tampering or wrong key); '
                    'keeping masked value',
                    self.catalog.name,
                    key,
                )
                result.failures[key] = e
                continue
            except MalformedCiphertextError as e:
                logger.warning(
                    '%s field %s has malformed ciphertext: %s; keeping masked value', self.catalog.name, key, e
                )
                result.failures[key] = e
                continue

            _assign(record, location.path, plaintext)

        unmatched = sorted(set(encrypted) - visited)
        if unmatched:
            logger.warning('%s encrypted fields with no matching location: %s', self.catalog.name, unmatched)

        return result

    def merge(
        self,
        public: Mapping,
        encrypted: Mapping[str, str] | None,
    ) -> dict:
        """Inverse of split for every path present in encrypted.

        Paths with no ciphertext keep their public value, so merge(public, {}) is an identity. A path whose
        ciphertext fails to decrypt also keeps its public (masked) value; the failure is logged.
        """
        return self.merge_detailed(public, encrypted).record

    def has_sensitive_data(self, record: Mapping) -> bool:
        """True if at least one catalogued field, flat or nested, carries a non-blank value. Never encrypts."""
        return any(has_value(location.value) for location in self.catalog.locations(record))

    def restore_unchanged(
        self,
        record: Mapping,
        public: Mapping | None,
        encrypted: Mapping[str, str] | None,
    ) -> dict:
        """Return a copy of an edited record with stored plaintext put back wherever the caller sent the mask.

        Clients edit the masked public record, so a catalogued field whose incoming value equals the stored mask at
        the same path is unchanged, not a new value. Those fields are decrypted from encrypted so that a following
        split() re-encrypts the real value instead of the mask. The input is not modified.

        Raises:
            PiiError: If a stored ciphertext needed for the copy does not decrypt. Saving the mask in its place
                would destroy the stored value.
        """
        restored = copy.deepcopy(dict(record))
        if not encrypted or not public:
            return restored

        stored_masks = {str(location.path): location.value for location in self.catalog.locations(public)}
        cipher = None

        for location in self.catalog.locations(record):
            key = str(location.path)
            if key not in encrypted or not has_value(location.value) or stored_masks.get(key) != location.value:
                continue
            if cipher is None:
                cipher = self.cipher

            _assign(restored, location.path, cipher.decrypt(encrypted[key]))

        return restored


def merchant_application_codec(cipher: FieldCipher | None = None) -> RecordCodec:
    return RecordCodec(MERCHANT_APPLICATION_CATALOG, cipher)


def extracted_document_codec(cipher: FieldCipher | None = None) -> RecordCodec:
    return RecordCodec(EXTRACTED_DOCUMENT_CATALOG, cipher)
