import logging

import pytest

from app.pii.pii_log_filter import PiiLogFilter, scrub_pii


@pytest.mark.parametrize(
    'message, expected',
    [
        ('ssn 123-45-6789 rejected', 'ssn ***-**-**** rejected'),
        ('ssn 123 45 6789 rejected', 'ssn ***-**-**** rejected'),
        ('ssn 123456789 rejected', 'ssn ***-**-**** rejected'),
        ('ein 12-3456789 rejected', 'ein **-******* rejected'),
        ('application 42 saved with 3 fields', 'application 42 saved with 3 fields'),
        ('phone 5551234567', 'phone 5551234567'),
    ],
)
def test_scrub_pii(message, expected):
    assert scrub_pii(message) == expected


def _record(msg, *args):
    return logging.LogRecord('app', logging.INFO, __file__, 1, msg, args, None)


def test_filter_scrubs_formatted_message():
    record = _record('Owner %s has tax id %s', '123-45-6789', '12-3456789')

    assert PiiLogFilter().filter(record) is True
    assert record.getMessage() == 'Owner ***-**-**** has tax id **-*******'


def test_filter_leaves_clean_records_untouched():
    record = _record('Encrypted %s: %s fields', 'a3c1', 4)

    assert PiiLogFilter().filter(record) is True
    assert record.args == ('a3c1', 4)


def test_filter_keeps_records_it_cannot_format():
    record = _record('%s and %s', 'only one')

    assert PiiLogFilter().filter(record) is True


def test_app_logger_handlers_carry_the_filter(notify_api):
    assert notify_api.logger.handlers
    for handler in notify_api.logger.handlers:
        assert any(isinstance(f, PiiLogFilter) for f in handler.filters)
