"""
Context Validator

Validates industry-specific case attributes (matter type, jurisdiction,
property type, ...) against the schema's typed ``context_schema``.
Additional properties are permitted unless the schema says otherwise.
"""
import math
from typing import Any, Dict, Mapping, Optional

from ...models.domain import IndustrySchema, ValidationResult
from .json_schema import check_bag, without_keys

PREFIX = "context"


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate(
    schema: IndustrySchema,
    context: Optional[Mapping[str, Any]],
    partial: bool = False,
) -> ValidationResult:
    data: Dict[str, Any] = dict(context or {})
    declared = dict(schema.context_schema or {})
    if partial:
        declared = without_keys(declared, ["required"])

    # blank answers count as not given
    present = {name: value for name, value in data.items() if not _is_missing(value)}
    errors = check_bag(declared, present, PREFIX)

    for name, value in present.items():
        if isinstance(value, float) and not math.isfinite(value):
            errors.setdefault(f"{PREFIX}.{name}", "Must be a number.")

    return ValidationResult(field_errors=errors, normalized=data)
