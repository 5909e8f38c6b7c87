import logging
import re

# SSN (123-45-6789, 123 45 6789, 123456789) and EIN (12-3456789) shaped digit runs.
_SSN_PATTERN = re.compile(r'\b\d{3}[-\s]?\d{2}[-\s]?\d{4}\b')
_EIN_PATTERN = re.compile(r'\b\d{2}-\d{7}\b')


def scrub_pii(message: str) -> str:
    message = _SSN_PATTERN.sub('***-**-****', message)
    return _EIN_PATTERN.sub('**-*******', message)


class PiiLogFilter(logging.Filter):
    """Replaces SSN and EIN shaped numbers in log messages with a fixed mask.

    A last line of defence for values that reach a log call by accident. It is not a substitute for keeping
    plaintext out of log arguments in the first place.
    """

    def filter(self, record):
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            return True

        scrubbed = scrub_pii(message)
        if scrubbed != message:
            record.msg = scrubbed
            record.args = None
        return True
