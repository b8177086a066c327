from typing import Any, Dict, List

from jsonschema import Draft202012Validator, SchemaError

from tagtm.logs import get_logger

# Configure log for clear output
log = get_logger("data.validate")

# Structural shape of the tagged tasks document. Field-level typing is left
# to the pydantic models; this only guards the tag -> {tasks, metadata} layout.
_TASK_ID = {"type": ["integer", "string"]}

_SUBTASK_SCHEMA = {
    "type": "object",
    "required": ["id"],
    "properties": {
        "id": _TASK_ID,
        "dependencies": {"type": ["array", "null"]},
    },
}

_TASK_SCHEMA = {
    "type": "object",
    "required": ["id"],
    "properties": {
        "id": _TASK_ID,
        "dependencies": {"type": ["array", "null"]},
        "subtasks": {"type": ["array", "null"], "items": _SUBTASK_SCHEMA},
        "metadata": {
            "type": ["object", "null"],
            "properties": {"moveHistory": {"type": ["array", "null"]}},
        },
    },
}

TAGGED_DOCUMENT_SCHEMA = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "Tagged tasks document",
    "type": "object",
    "additionalProperties": {
        "type": "object",
        "required": ["tasks"],
        "properties": {
            "tasks": {"type": "array", "items": _TASK_SCHEMA},
            "metadata": {"type": ["object", "null"]},
        },
    },
}

def validate_document(document: Dict[str, Any]) -> List[str]:
    """
    Validate a raw tagged document against the structural schema.

    Args:
        document: The parsed JSON document.

    Returns:
        A list of human-readable error messages, empty when the document is valid.
    """
    try:
        Draft202012Validator.check_schema(TAGGED_DOCUMENT_SCHEMA)
    except SchemaError as e:
        log.critical(f"Tagged document schema is invalid: {e.message}")
        raise
    validator = Draft202012Validator(TAGGED_DOCUMENT_SCHEMA)

    errors = []
    for error in sorted(validator.iter_errors(document), key=lambda e: list(e.absolute_path)):
        location = "/".join(str(p) for p in error.absolute_path) or "<root>"
        errors.append(f"{location}: {error.message}")

    if errors:
        log.error(f"Tagged document FAILED validation with {len(errors)} error(s)")
        for message in errors:
            log.debug(f"Validation Error: {message}")
    return errors

def is_legacy_document(document: Dict[str, Any]) -> bool:
    """A pre-tag document is a single ``{"tasks": [...]}`` object."""
    return isinstance(document.get("tasks"), list)
