"""
Operational commands, run as ``flask <command>``.

    flask encrypt-existing-pii --dry-run
    flask encrypt-existing-pii --batch-size 100
    flask encrypt-existing-pii --verify
    flask pii-encryption-status
    flask generate-field-encryption-key
"""

import click
from flask import current_app
from flask.cli import with_appcontext

from app.dao.merchant_applications_dao import (
    dao_count_encrypted_merchant_applications,
    dao_count_merchant_applications,
    dao_get_last_encrypted_at,
    dao_get_sample_encrypted_field_paths,
)
from app.pii.pii_encryption import generate_field_encryption_key, parse_field_encryption_key
from app.pii.pii_exceptions import PiiError
from app.pii.pii_migration import PiiMigrationRunner

MAX_REPORTED_ERRORS = 10


@click.command('encrypt-existing-pii')
@click.option('--dry-run', is_flag=True, help='Run every check and report what would change, write nothing.')
@click.option('--verify', 'verify_only', is_flag=True, help='Decrypt already encrypted rows and report failures.')
@click.option('--batch-size', type=click.IntRange(min=1), default=None, help='Rows per batch and per commit.')
@with_appcontext
def encrypt_existing_pii(dry_run, verify_only, batch_size):
    """Encrypt PII in merchant applications stored before field encryption."""
    batch_size = batch_size or current_app.config['PII_MIGRATION_BATCH_SIZE']

    try:
        result = PiiMigrationRunner(batch_size=batch_size, dry_run=dry_run, verify_only=verify_only).run()
    except PiiError as e:
        raise click.ClickException(f'Field encryption key is not usable: {e}') from e

    if verify_only:
        click.echo('VERIFY SUMMARY')
    else:
        click.echo('DRY RUN SUMMARY' if dry_run else 'MIGRATION SUMMARY')
    _echo_count('Total records', result.total_records)
    _echo_count('Processed', result.processed_records)
    if verify_only:
        _echo_count('Verified', result.verified_records)
    else:
        _echo_count('Would encrypt' if dry_run else 'Encrypted', result.encrypted_records)
    _echo_count('Skipped', result.skipped_records)
    _echo_count('Failed', result.failed_records)

    for application_id, path in result.checksum_mismatches[:MAX_REPORTED_ERRORS]:
        click.echo(f'  checksum mismatch: {application_id} {path}', err=True)
    for application_id, message in result.errors[:MAX_REPORTED_ERRORS]:
        click.echo(f'  error: {application_id} {message}', err=True)
    if max(len(result.checksum_mismatches), len(result.errors)) > MAX_REPORTED_ERRORS:
        click.echo('  more failures were logged, see the application log', err=True)

    if not result.succeeded:
        raise click.exceptions.Exit(1)


def _echo_count(label, count):
    click.echo(f'  {label + ":":<19}{count}')


@click.command('pii-encryption-status')
@with_appcontext
def pii_encryption_status():
    """Report how many merchant applications have encrypted PII."""
    total = dao_count_merchant_applications()
    encrypted = dao_count_encrypted_merchant_applications()
    percentage = (encrypted / total * 100) if total else 0.0
    last_encrypted_at = dao_get_last_encrypted_at()

    click.echo('PII ENCRYPTION STATUS')
    click.echo(f'  Total applications:     {total}')
    click.echo(f'  Encrypted applications: {encrypted} ({percentage:.1f}%)')
    click.echo(f'  Unencrypted:            {total - encrypted}')
    click.echo(f'  Last encrypted at:      {last_encrypted_at.isoformat() if last_encrypted_at else "never"}')

    sample_paths = dao_get_sample_encrypted_field_paths()
    if sample_paths:
        click.echo(f'  Sample encrypted paths: {", ".join(sample_paths)}')

    try:
        parse_field_encryption_key(current_app.config.get('FIELD_ENCRYPTION_KEY'))
        click.echo('  FIELD_ENCRYPTION_KEY:   configured')
    except PiiError as e:
        click.echo(f'  FIELD_ENCRYPTION_KEY:   {e}')


@click.command('generate-field-encryption-key')
def generate_key():
    """Print a new random FIELD_ENCRYPTION_KEY."""
    click.echo(generate_field_encryption_key())
    click.echo(
        'Store it in the secrets manager, never in source control. Losing it makes encrypted data unreadable.',
        err=True,
    )


def setup_commands(application):
    application.cli.add_command(encrypt_existing_pii)
    application.cli.add_command(pii_encryption_status)
    application.cli.add_command(generate_key)
