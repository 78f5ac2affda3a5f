"""JSON Schema validation wrapper."""

from __future__ import annotations

from jsonschema import Draft202012Validator


def validate_payload(schema: dict[str, object], payload: dict[str, object]) -> list[str]:
    """Validate payload against schema and return error messages.

    Messages are prefixed with the JSON path of the offending field when
    the error is not at the document root.
    """
    validator = Draft202012Validator(schema)
    errors: list[str] = []
    for error in sorted(validator.iter_errors(payload), key=lambda e: list(e.absolute_path)):
        path = ".".join(str(part) for part in error.absolute_path)
        errors.append(f"{path}: {error.message}" if path else error.message)
    return errors
