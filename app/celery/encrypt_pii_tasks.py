from flask import current_app
from sqlalchemy.exc import OperationalError

from app import notify_celery
from app.celery.exceptions import AutoRetryException, NonRetryableException
from app.pii.pii_exceptions import PiiError
from app.pii.pii_migration import PiiMigrationRunner


@notify_celery.task(
    name='encrypt-existing-pii',
    throws=(AutoRetryException,),
    autoretry_for=(AutoRetryException,),
    max_retries=5,
    retry_backoff=True,
    retry_backoff_max=300,
)
def encrypt_existing_pii(
    dry_run: bool = False,
    verify_only: bool = False,
    batch_size: int | None = None,
) -> dict:
    """
    Run the merchant application PII migration on a worker.

    :param dry_run: Run every check but write nothing.
    :param verify_only: Decrypt already encrypted rows instead of encrypting plaintext ones.
    :param batch_size: Rows per batch, defaults to PII_MIGRATION_BATCH_SIZE.

    :return: The migration counters, see MigrationResult.
    """
    batch_size = batch_size or current_app.config['PII_MIGRATION_BATCH_SIZE']
    current_app.logger.info(
        'encrypt-existing-pii started: dry_run=%s, verify_only=%s, batch_size=%s', dry_run, verify_only, batch_size
    )

    try:
        result = PiiMigrationRunner(batch_size=batch_size, dry_run=dry_run, verify_only=verify_only).run()
    except PiiError as e:
        current_app.logger.critical('encrypt-existing-pii cannot run: %s', e)
        raise NonRetryableException(str(e)) from e
    except OperationalError as e:
        current_app.logger.warning('encrypt-existing-pii lost the database, retrying: %s', e)
        raise AutoRetryException(str(e)) from e

    if not result.succeeded:
        current_app.logger.error(
            'encrypt-existing-pii finished with %s failed rows and %s checksum mismatches',
            result.failed_records,
            len(result.checksum_mismatches),
        )

    return result.to_dict()
