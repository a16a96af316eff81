"""
Schema validation of proposed entry fields.

A validator is any callable taking the proposed field mapping and returning
the (possibly normalized) mapping, or raising ``SchemaValidationError``.
Validation runs before hashing, so a rejection never touches the chain.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Mapping

from pydantic import ValidationError

from .entry import AuditRecordFields
from .errors import SchemaValidationError

SchemaValidator = Callable[[Mapping[str, Any]], Dict[str, Any]]


def validate_record_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
    """Default validator backed by the ``AuditRecordFields`` model."""
    try:
        model = AuditRecordFields.model_validate(dict(fields))
    except ValidationError as e:
        errors = [
            {"loc": ".".join(str(p) for p in err["loc"]), "msg": err["msg"]}
            for err in e.errors()
        ]
        summary = "; ".join(f"{err['loc']}: {err['msg']}" for err in errors)
        raise SchemaValidationError(
            f"Invalid audit entry: {summary}", errors=errors, cause=e
        ) from e
    return model.model_dump()


def run_validator(validator: SchemaValidator, fields: Mapping[str, Any]) -> dict[str, Any]:
    """Run ``validator`` and normalize foreign rejections."""
    try:
        result = validator(fields)
    except SchemaValidationError:
        raise
    except (ValueError, TypeError, ValidationError) as e:
        raise SchemaValidationError(f"Invalid audit entry: {e}", cause=e) from e
    return dict(fields) if result is None else dict(result)
