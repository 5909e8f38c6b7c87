"""
Define schemas to validate requests to /merchant-applications.
https://json-schema.org/understanding-json-schema/
"""

from app.models import MERCHANT_APPLICATION_STATUSES


merchant_application_post_request_schema = {
    "$schema": "http://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "properties": {
        "client_id": {"type": "string", "minLength": 1, "maxLength": 255},
        "status": {"type": "string", "enum": MERCHANT_APPLICATION_STATUSES},
        "application_data": {"type": "object"},
    },
    "additionalProperties": False,
    "required": ["client_id"],
}


application_data_put_request_schema = {
    "$schema": "http://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "properties": {
        "application_data": {"type": "object"},
    },
    "additionalProperties": False,
    "required": ["application_data"],
}


extracted_data_post_request_schema = {
    "$schema": "http://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "properties": {
        "extracted_data": {"type": "object"},
        "document_hash": {
            "description": "sha256 of the source document, hex encoded",
            "type": "string",
            "pattern": "^[0-9a-fA-F]{64}$",
        },
        "document_id": {"type": "string", "maxLength": 255},
        "confidence_score": {"type": "number", "minimum": 0, "maximum": 1},
    },
    "additionalProperties": False,
    "required": ["extracted_data", "document_hash"],
}
