"""
JSON Schema plumbing shared by the validators and the registry.

Industry schemas are stored as JSON-Schema objects (properties, required,
type, enum, minimum/maximum, additionalProperties). jsonschema does the
structural checking; this module turns its errors into the flat
``prefix.field`` map used by every error body.
"""
from typing import Any, Dict, Iterable, List, Mapping

from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError

TYPE_MESSAGES = {
    "boolean": "Must be true or false.",
    "number": "Must be a number.",
    "integer": "Must be a number.",
    "string": "Must be text.",
    "array": "Must be a list.",
    "object": "Must be an object.",
}
NOT_ALLOWED = "This field is not allowed for this industry."


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _join(prefix: str, path: Iterable[Any]) -> str:
    return ".".join([prefix] + [str(p) for p in path])


def _message(error: ValidationError) -> str:
    keyword = error.validator
    expected = error.validator_value
    if keyword == "type":
        if expected == "integer" and _is_number(error.instance):
            return "Must be a whole number."
        if isinstance(expected, str):
            return TYPE_MESSAGES.get(expected, error.message)
        return error.message
    if keyword == "enum":
        return f"Must be one of: {', '.join(str(v) for v in expected)}."
    if keyword == "minimum":
        return f"Must be at least {expected}."
    if keyword == "maximum":
        return f"Must be at most {expected}."
    return error.message


def check_bag(
    schema: Mapping[str, Any],
    instance: Mapping[str, Any],
    prefix: str,
    required_message: str = "{title} is required.",
) -> Dict[str, str]:
    """
    Validate a property bag and return ``{"prefix.path": message}``.

    Only the first error per path is kept. Required and undeclared-field
    errors are reported on the offending field rather than on the bag.
    """
    properties = schema.get("properties") or {}
    errors: Dict[str, str] = {}
    validator = Draft202012Validator(dict(schema))

    for error in validator.iter_errors(dict(instance)):
        path = list(error.absolute_path)
        if error.validator == "required" and not path:
            for name in error.validator_value:
                if name not in error.instance:
                    title = (properties.get(name) or {}).get("title") or name
                    errors.setdefault(f"{prefix}.{name}", required_message.format(title=title))
        elif error.validator == "additionalProperties" and error.validator_value is False:
            declared = error.schema.get("properties") or {}
            for name in error.instance:
                if name not in declared:
                    errors.setdefault(_join(prefix, path + [name]), NOT_ALLOWED)
        else:
            errors.setdefault(_join(prefix, path), _message(error))
    return errors


def check_schema(name: str, value: Any) -> Dict[str, str]:
    """Reject a stored schema that is not a valid JSON-Schema object."""
    if not isinstance(value, dict):
        return {name: "must be an object"}
    meta = Draft202012Validator(Draft202012Validator.META_SCHEMA)
    errors: Dict[str, str] = {}
    for error in meta.iter_errors(value):
        errors.setdefault(_join(name, error.absolute_path), error.message)
    return errors


def without_keys(schema: Mapping[str, Any], keys: List[str]) -> Dict[str, Any]:
    return {k: v for k, v in schema.items() if k not in keys}
