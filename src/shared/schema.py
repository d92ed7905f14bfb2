"""Tool input validation against JSON Schema."""

from typing import Any

from jsonschema import Draft7Validator


def validate_input(data: dict[str, Any], schema: dict[str, Any]) -> list[str]:
    """
    Validate tool parameters against a tool's input schema.

    Required parameters given as None or "" count as missing, the same
    way the request builder drops such values from a query.

    Args:
        data: Tool parameters
        schema: JSON Schema (type object) for the tool input

    Returns:
        List of error messages; empty when the input is valid
    """
    if not schema:
        return []

    missing = [name for name in schema.get("required", []) if data.get(name) in (None, "")]
    if missing:
        return [f"Missing required parameter(s): {', '.join(missing)}"]

    # Optional parameters passed as None are treated as absent
    present = {key: value for key, value in data.items() if value is not None}
    validator = Draft7Validator(schema)
    return [
        f"{'.'.join(str(p) for p in e.path)}: {e.message}" if e.path else e.message
        for e in sorted(validator.iter_errors(present), key=lambda e: list(e.path))
    ]
