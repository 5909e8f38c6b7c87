"""Display masks for sensitive values.

Masking is lossy and one-way. It keeps just enough of a value (usually the last four digits) for a person to
recognise it, and never enough to reconstruct it.
"""

import re
from enum import Enum

_NON_DIGITS = re.compile(r'\D')
_ISO_DATE_SHAPE = re.compile(r'^\d{4}-\d{1,2}-\d{1,2}')

SLASH_DATE_MASK = '**/**/****'
DASH_DATE_MASK = '****-**-**'
PHONE_MASK = '***-***-****'
MASK_PREFIX = '****'


class SensitiveFieldType(Enum):
    """Masking format of a protected field. Looked up from the field name, never inferred from the value."""

    SSN = 'ssn'
    TAX_ID = 'tax_id'
    EIN = 'tax_id'
    ACCOUNT_NUMBER = 'account_number'
    ROUTING_NUMBER = 'routing_number'
    DOB = 'dob'
    LICENSE_NUMBER = 'license_number'
    PHONE = 'phone'
    GENERIC = 'generic'

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered == 'ein':
                return cls.TAX_ID
            for member in cls:
                if member.value == lowered:
                    return member
        return None


def _mask_ssn(original: str, digits: str) -> str:
    # Malformed input gets the same shape; it still only shows trailing digits.
    return f'***-**-{digits[-4:]}'


def _mask_tax_id(original: str, digits: str) -> str:
    return f'**-****{digits[-4:]}'


def _last_four(original: str, digits: str) -> str:
    # too few digits to recognise the value by, so show the raw tail instead
    return digits[-4:] if len(digits) >= 4 else original[-4:]


def _mask_account_number(original: str, digits: str) -> str:
    return f'{MASK_PREFIX}{_last_four(original, digits)}'


def _mask_routing_number(original: str, digits: str) -> str:
    return f'*****{_last_four(original, digits)}'


def _mask_dob(original: str, digits: str) -> str:
    if '/' not in original and _ISO_DATE_SHAPE.match(original):
        return DASH_DATE_MASK
    return SLASH_DATE_MASK


def _mask_license_number(original: str, digits: str) -> str:
    if len(original) >= 4:
        return f'{MASK_PREFIX}{original[-4:]}'
    return MASK_PREFIX


def _mask_phone(original: str, digits: str) -> str:
    if len(digits) == 10:
        return f'({digits[:3]}) {digits[3:6]}-****'
    return PHONE_MASK


def _mask_generic(original: str, digits: str) -> str:
    if len(original) > 4:
        return f'{MASK_PREFIX}{original[-4:]}'
    return MASK_PREFIX


_MASKERS = {
    SensitiveFieldType.SSN: _mask_ssn,
    SensitiveFieldType.TAX_ID: _mask_tax_id,
    SensitiveFieldType.ACCOUNT_NUMBER: _mask_account_number,
    SensitiveFieldType.ROUTING_NUMBER: _mask_routing_number,
    SensitiveFieldType.DOB: _mask_dob,
    SensitiveFieldType.LICENSE_NUMBER: _mask_license_number,
    SensitiveFieldType.PHONE: _mask_phone,
    SensitiveFieldType.GENERIC: _mask_generic,
}


def mask_sensitive_value(
    value,
    field_type: SensitiveFieldType | str = SensitiveFieldType.GENERIC,
) -> str | None:
    """Return the display mask for value, or None when there is nothing to mask.

    Total over its inputs: an unknown field type falls back to the generic mask, and a value that does not look
    like its type falls back to a safe default for that type.

    Args:
        value: The plaintext. Non-string values are masked by their str() form.
        field_type (SensitiveFieldType | str): The masking format. 'ein' is accepted as an alias of 'tax_id'.

    Returns:
        str | None: The masked value, or None for None, empty, or whitespace-only input.
    """
    if value is None:
        return None

    original = str(value).strip()
    if not original:
        return None

    try:
        field_type = SensitiveFieldType(field_type)
    except ValueError:
        field_type = SensitiveFieldType.GENERIC

    digits = _NON_DIGITS.sub('', original)
    return _MASKERS[field_type](original, digits)
