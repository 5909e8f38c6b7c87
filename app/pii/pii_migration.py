"""Encrypt merchant application PII that was persisted before field-level encryption existed.

Rows are read in keyset-paginated batches. Each row is split, immediately merged back, and the sha256 checksum of
every protected value is compared before and after; a row is only written when every checksum matches. Rows are
written once per batch, so a failed commit loses that batch only and a failed row never touches its siblings.

Idempotency: rows with has_encrypted_data set are skipped. A row without the flag whose encrypted_fields are all
ciphertext-shaped (see is_likely_ciphertext) is treated as already migrated and only has its flag backfilled.

Known limitation: is_likely_ciphertext is a heuristic. A plaintext value of 44+ characters that happens to be valid
base64 stored in encrypted_fields is indistinguishable from ciphertext here and would be accepted as migrated.
Telling them apart reliably needs a per-field "is encrypted" marker in the schema; has_encrypted_data only covers
the whole row.

Runners must be given disjoint rows; nothing here prevents two runners from racing on the same row.
"""

import hashlib
from dataclasses import asdict, dataclass, field
from datetime import datetime

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from app import db
from app.dao.events_dao import dao_add_event
from app.dao.merchant_applications_dao import (
    apply_split_record,
    dao_count_merchant_applications,
    dao_get_merchant_applications_batch,
)
from app.models import EVENT_MERCHANT_APP_ENCRYPTED, MerchantApplication
from app.pii.pii_catalog import FieldPath, has_value
from app.pii.pii_encryption import is_likely_ciphertext
from app.pii.pii_exceptions import PiiError
from app.pii.record_codec import RecordCodec, merchant_application_codec

CHECKSUM_LENGTH = 16

ROW_ENCRYPTED = 'encrypted'
ROW_FLAG_BACKFILLED = 'flag_backfilled'


class PiiMigrationError(PiiError):
    """A row is in a state the migration cannot safely resolve."""


def calculate_checksum(value) -> str:
    """First 16 hex characters of the sha256 of the value's string form."""
    if value is None:
        return 'null'
    return hashlib.sha256(str(value).encode('utf-8')).hexdigest()[:CHECKSUM_LENGTH]


def extract_pii_checksums(
    codec: RecordCodec,
    record: dict,
) -> dict[str, str]:
    """Checksum of every catalogued value in the record, keyed by field path."""
    return {
        str(location.path): calculate_checksum(location.value)
        for location in codec.catalog.locations(record)
        if has_value(location.value)
    }


def _lookup(
    record: dict,
    path: FieldPath,
):
    try:
        if path.container is None:
            return record.get(path.field)
        return record[path.container][path.index].get(path.field)
    except (AttributeError, IndexError, KeyError, TypeError):
        return None


@dataclass
class MigrationResult:
    total_records: int = 0
    processed_records: int = 0
    encrypted_records: int = 0
    verified_records: int = 0
    skipped_records: int = 0
    failed_records: int = 0
    errors: list[tuple[str, str]] = field(default_factory=list)
    checksum_mismatches: list[tuple[str, str]] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.failed_records == 0 and not self.checksum_mismatches

    def to_dict(self) -> dict:
        return asdict(self)


class PiiMigrationRunner:
    def __init__(
        self,
        codec: RecordCodec | None = None,
        batch_size: int = 50,
        dry_run: bool = False,
        verify_only: bool = False,
    ) -> None:
        """
        Args:
            :param codec (RecordCodec): codec configured with the merchant application catalog, defaults to one using
                the process-wide key
            :param batch_size (int): rows per batch and per commit
            :param dry_run (bool): run every check but write nothing
            :param verify_only (bool): decrypt already encrypted rows instead of encrypting plaintext ones
        """
        if batch_size < 1:
            raise ValueError('batch_size must be at least 1')

        self.codec = codec or merchant_application_codec()
        self.batch_size = batch_size
        self.dry_run = dry_run
        self.verify_only = verify_only

    def run(self) -> MigrationResult:
        """
        Process every merchant application once.

        Raises:
            PiiError: If the key is missing, malformed, or fails its self-test.  Nothing is processed in that case.
        """
        self.codec.cipher.self_test()

        result = MigrationResult(total_records=dao_count_merchant_applications())
        current_app.logger.info(
            'PII migration starting: %s merchant applications, batch size %s, dry_run=%s, verify_only=%s',
            result.total_records,
            self.batch_size,
            self.dry_run,
            self.verify_only,
        )

        after_id = None
        batch_number = 1
        while True:
            batch = dao_get_merchant_applications_batch(after_id, self.batch_size)
            if not batch:
                break

            after_id = batch[-1].id
            current_app.logger.info('PII migration batch %s: %s rows', batch_number, len(batch))
            self._process_batch(batch, result)
            batch_number += 1

        current_app.logger.info(
            'PII migration finished: processed %s, encrypted %s, verified %s, skipped %s, failed %s',
            result.processed_records,
            result.encrypted_records,
            result.verified_records,
            result.skipped_records,
            result.failed_records,
        )
        return result

    def _process_batch(
        self,
        batch: list[MerchantApplication],
        result: MigrationResult,
    ) -> None:
        # (application id, outcome) for rows changed in the session and waiting on the batch commit
        pending = []

        for application in batch:
            result.processed_records += 1
            try:
                if self.verify_only:
                    self._verify_application(application, result)
                    continue

                outcome = self._encrypt_application(application, result)
                if outcome is not None:
                    pending.append((str(application.id), outcome))
            except Exception as e:
                current_app.logger.exception('PII migration failed for merchant application %s', application.id)
                result.errors.append((str(application.id), str(e)))
                result.failed_records += 1

        if not pending:
            return

        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.exception('PII migration commit failed, %s rows were not written', len(pending))
            for application_id, outcome in pending:
                if outcome == ROW_FLAG_BACKFILLED:
                    result.skipped_records -= 1
                result.errors.append((application_id, f'commit failed: {e}'))
                result.failed_records += 1
            return

        result.encrypted_records += sum(1 for _, outcome in pending if outcome == ROW_ENCRYPTED)

    def _encrypt_application(
        self,
        application: MerchantApplication,
        result: MigrationResult,
    ) -> str | None:
        """
        Returns the outcome when the application was changed in the session and needs the batch commit, otherwise
        None.
        """
        if application.has_encrypted_data:
            current_app.logger.debug('Skipping %s: already encrypted', application.id)
            result.skipped_records += 1
            return None

        stored = application.encrypted_fields or {}
        if stored:
            not_ciphertext = sorted(path for path, value in stored.items() if not is_likely_ciphertext(value))
            if not_ciphertext:
                raise PiiMigrationError(f'encrypted_fields holds values that are not ciphertext: {not_ciphertext}')

            current_app.logger.info('Skipping %s: encrypted_fields present without has_encrypted_data', application.id)
            result.skipped_records += 1
            if self.dry_run:
                return None

            application.has_encrypted_data = True
            application.encrypted_at = application.encrypted_at or datetime.utcnow()
            return ROW_FLAG_BACKFILLED

        record = application.application_data or {}
        if not self.codec.has_sensitive_data(record):
            current_app.logger.debug('Skipping %s: no sensitive data', application.id)
            result.skipped_records += 1
            return None

        pre_checksums = extract_pii_checksums(self.codec, record)
        split = self.codec.split(record)
        merged = self.codec.merge_detailed(split.public, split.encrypted)
        post_checksums = extract_pii_checksums(self.codec, merged.record)

        mismatches = sorted(
            {path for path, checksum in pre_checksums.items() if post_checksums.get(path) != checksum}
            | set(merged.failures)
        )
        if mismatches:
            current_app.logger.error('Checksum mismatch for %s: %s', application.id, ', '.join(mismatches))
            result.checksum_mismatches.extend((str(application.id), path) for path in mismatches)
            result.failed_records += 1
            return None

        if self.dry_run:
            current_app.logger.info('[dry-run] Would encrypt %s: %s fields', application.id, len(split.encrypted))
            result.encrypted_records += 1
            return None

        apply_split_record(application, split)
        application.updated_at = datetime.utcnow()
        dao_add_event(
            {
                'event_type': EVENT_MERCHANT_APP_ENCRYPTED,
                'data': {
                    'merchant_application_id': str(application.id),
                    'field_paths': sorted(split.encrypted),
                    'source': 'pii_migration',
                },
            }
        )
        current_app.logger.info('Encrypted %s: %s fields', application.id, len(split.encrypted))
        return ROW_ENCRYPTED

    def _verify_application(
        self,
        application: MerchantApplication,
        result: MigrationResult,
    ) -> None:
        if not application.has_encrypted_data or not application.encrypted_fields:
            result.skipped_records += 1
            return

        merged = self.codec.merge_detailed(application.application_data or {}, application.encrypted_fields)
        failed_paths = set(merged.failures)
        for key in application.encrypted_fields:
            try:
                path = FieldPath.parse(key)
            except ValueError:
                failed_paths.add(key)
                continue
            if key not in merged.failures and _lookup(merged.record, path) is None:
                failed_paths.add(key)

        if failed_paths:
            current_app.logger.error(
                'Decryption verification failed for %s: %s', application.id, ', '.join(sorted(failed_paths))
            )
            result.errors.extend((str(application.id), f'cannot decrypt {path}') for path in sorted(failed_paths))
            result.failed_records += 1
            return

        current_app.logger.debug('Verified %s: %s encrypted fields', application.id, len(application.encrypted_fields))
        result.verified_records += 1
