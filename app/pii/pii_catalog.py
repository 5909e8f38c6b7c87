"""Static catalogs of protected fields.

A catalog maps flat field names, and per-element field names inside named repeating containers, to the
SensitiveFieldType that governs their masking. Whether a field is protected is decided by this table and the
emptiness of its value, nothing else. Protecting a new field means adding one entry to a catalog below.

Field paths keep the wire format already persisted in encrypted_fields columns: a bare field name, or
``container.index.field`` for an element of a repeating container.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterator, Mapping, NamedTuple

from app.pii.pii_masking import SensitiveFieldType


class FieldPath(NamedTuple):
    """Typed location of a scalar inside a record."""

    field: str
    container: str | None = None
    index: int | None = None

    def __str__(self) -> str:
        if self.container is None:
            return self.field
        return f'{self.container}.{self.index}.{self.field}'

    @classmethod
    def parse(cls, key: str) -> 'FieldPath':
        """Inverse of str(). Raises ValueError for keys that are neither flat nor container.index.field."""
        parts = key.split('.')
        if len(parts) == 1 and parts[0]:
            return cls(parts[0])
        if len(parts) == 3 and all(parts) and parts[1].isdigit():
            return cls(parts[2], parts[0], int(parts[1]))
        raise ValueError(f'Not a field path: {key!r}')


class SensitiveLocation(NamedTuple):
    path: FieldPath
    field_type: SensitiveFieldType
    value: Any


def has_value(value) -> bool:
    """True unless the value is None, empty, or whitespace only."""
    return value is not None and bool(str(value).strip())


@dataclass(frozen=True)
class SensitiveFieldCatalog:
    name: str
    fields: Mapping[str, SensitiveFieldType]
    containers: Mapping[str, Mapping[str, SensitiveFieldType]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, 'fields', MappingProxyType(dict(self.fields)))
        object.__setattr__(
            self,
            'containers',
            MappingProxyType({name: MappingProxyType(dict(sub)) for name, sub in self.containers.items()}),
        )

    def field_type(self, path: FieldPath) -> SensitiveFieldType | None:
        if path.container is None:
            return self.fields.get(path.field)
        return self.containers.get(path.container, {}).get(path.field)

    def locations(
        self,
        record: Mapping,
        include_absent: bool = False,
    ) -> Iterator[SensitiveLocation]:
        """Yield every catalogued location of record, flat fields first, then container elements by index.

        Args:
            record (Mapping): The record to walk. It is never modified.
            include_absent (bool): Also yield catalogued fields the record (or a container element) does not carry,
                with a value of None. Container elements themselves must exist to be visited.
        """
        for name, field_type in self.fields.items():
            if include_absent or name in record:
                yield SensitiveLocation(FieldPath(name), field_type, record.get(name))

        for container, element_fields in self.containers.items():
            elements = record.get(container)
            if not isinstance(elements, list):
                continue

            for index, element in enumerate(elements):
                if not isinstance(element, Mapping):
                    continue
                for name, field_type in element_fields.items():
                    if include_absent or name in element:
                        yield SensitiveLocation(FieldPath(name, container, index), field_type, element.get(name))

    def __contains__(self, path: FieldPath) -> bool:
        return self.field_type(path) is not None


MERCHANT_APPLICATION_CATALOG = SensitiveFieldCatalog(
    name='merchant_application',
    fields={
        'federalTaxIdNumber': SensitiveFieldType.TAX_ID,
        'ownerSsn': SensitiveFieldType.SSN,
        'abaRoutingNumber': SensitiveFieldType.ROUTING_NUMBER,
        'ddaNumber': SensitiveFieldType.ACCOUNT_NUMBER,
        'ownerStateIssuedIdNumber': SensitiveFieldType.LICENSE_NUMBER,
    },
    containers={
        'principalOfficers': {
            'ssn': SensitiveFieldType.SSN,
            'dob': SensitiveFieldType.DOB,
            'driversLicenseNumber': SensitiveFieldType.LICENSE_NUMBER,
        },
        'beneficialOwners': {
            'ssn': SensitiveFieldType.SSN,
            'dob': SensitiveFieldType.DOB,
            'driversLicenseNumber': SensitiveFieldType.LICENSE_NUMBER,
        },
    },
)

# Fields produced by document extraction (W-9, voided check, government ID, beneficial ownership form).
EXTRACTED_DOCUMENT_CATALOG = SensitiveFieldCatalog(
    name='extracted_document',
    fields={
        'signerSSN': SensitiveFieldType.SSN,
        'federalTaxIdNumber': SensitiveFieldType.TAX_ID,
        'einNumber': SensitiveFieldType.EIN,
        'routingNumber': SensitiveFieldType.ROUTING_NUMBER,
        'accountNumber': SensitiveFieldType.ACCOUNT_NUMBER,
        'dob': SensitiveFieldType.DOB,
        'licenseNumber': SensitiveFieldType.LICENSE_NUMBER,
    },
    containers={
        'owners': {
            'ssn': SensitiveFieldType.SSN,
            'dob': SensitiveFieldType.DOB,
        },
    },
)
