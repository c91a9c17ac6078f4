"""
Fee Breakdown Validator

Validates a fee-breakdown property bag against an industry schema and the
rules for the chosen pricing model. One schema-driven code path serves every
industry; nothing here knows about a particular industry.

Pure: no database access, no mutation of the input. The same function backs
the soft dry-run endpoint and the authoritative submission path.
"""
import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Mapping, Optional

from ...models.domain import IndustrySchema, ValidationResult
from .json_schema import check_bag, without_keys
from .schema_registry import required_fields_for

PREFIX = "fee_breakdown"
DISBURSEMENT_ITEMS = "disbursements_items"
DISBURSEMENT_TOTAL = "disbursements_total"
ALWAYS_ALLOWED = ("pricing_model", DISBURSEMENT_ITEMS, DISBURSEMENT_TOTAL)
CENT = Decimal("0.01")


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    if isinstance(value, (list, dict)) and len(value) == 0:
        return True
    return False


def is_number(value: Any) -> bool:
    # bool is an int subclass; a checkbox is never an amount
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_percentage_field(name: str, prop: Optional[Mapping[str, Any]] = None) -> bool:
    if prop and prop.get("format") == "percent":
        return True
    return name.endswith("_pct") or name.endswith("_percent")


def recompute_disbursements_total(items: Any) -> Optional[float]:
    """Cent-rounded sum of item amounts; None when there are no usable items."""
    if not isinstance(items, list):
        return None
    total = Decimal("0")
    for item in items:
        if not isinstance(item, dict):
            continue
        amount = item.get("amount")
        if is_number(amount) and math.isfinite(amount):
            total += Decimal(str(amount))
    return float(total.quantize(CENT, rounding=ROUND_HALF_UP))


def _structural_schema(declared: Mapping[str, Any]) -> Dict[str, Any]:
    """The stored schema minus ``required``, with the disbursement keys always declared."""
    structural = without_keys(declared, ["required"])
    properties = dict(structural.get("properties") or {})
    for name in ALWAYS_ALLOWED:
        properties.setdefault(name, {})
    structural["properties"] = properties
    return structural


def validate(
    schema: IndustrySchema,
    pricing_model: str,
    fee_breakdown: Optional[Mapping[str, Any]],
    partial: bool = False,
) -> ValidationResult:
    """
    Check ``fee_breakdown`` for ``pricing_model`` under ``schema``.

    ``partial`` is the soft, incremental mode used while a form is being
    filled in: missing required fields are not reported yet.
    """
    data: Dict[str, Any] = dict(fee_breakdown or {})
    declared = schema.fee_breakdown_schema or {}
    properties: Dict[str, Any] = declared.get("properties") or {}
    errors: Dict[str, str] = {}

    # 1. Required fields for the pricing model
    if not partial:
        for name in required_fields_for(schema, pricing_model):
            if is_empty(data.get(name)):
                errors[f"{PREFIX}.{name}"] = "This field is required for the selected pricing model."

        rule = schema.validation_rules.get("conditional_requires_pct_disclosure")
        if rule and rule.get("pricing_model") == pricing_model:
            candidates = list(rule.get("require_any") or [])
            if candidates and all(is_empty(data.get(c)) for c in candidates):
                errors[f"{PREFIX}.{candidates[0]}"] = rule.get(
                    "error", f"One of {', '.join(candidates)} is required."
                )

    # 2. Declared types, enums, bounds and undeclared fields
    present = {name: value for name, value in data.items() if value is not None}
    for path, message in check_bag(_structural_schema(declared), present, PREFIX).items():
        errors.setdefault(path, message)

    # 3. Numeric invariants hold for every amount, declared or not
    for name, value in present.items():
        path = f"{PREFIX}.{name}"
        if name in (DISBURSEMENT_ITEMS, DISBURSEMENT_TOTAL) or path in errors or not is_number(value):
            continue
        if not math.isfinite(value):
            errors[path] = "Must be a finite number."
        elif value < 0:
            errors[path] = "Cannot be negative."
        elif is_percentage_field(name, properties.get(name)) and value > 100:
            errors[path] = "Percentage cannot exceed 100."

    # 4. Disbursements: items are checked, the total is always recomputed
    items = data.get(DISBURSEMENT_ITEMS)
    if isinstance(items, list):
        for idx, item in enumerate(items):
            path = f"{PREFIX}.{DISBURSEMENT_ITEMS}.{idx}"
            if not isinstance(item, dict):
                errors.setdefault(path, "Each disbursement must be an object.")
                continue
            label = item.get("label")
            if not isinstance(label, str) or not label.strip():
                errors.setdefault(f"{path}.label", "Each disbursement must have a label.")
            amount = item.get("amount")
            if not is_number(amount) or not math.isfinite(amount) or amount <= 0:
                errors.setdefault(f"{path}.amount", "Each disbursement amount must be greater than 0.")
    elif items is not None:
        errors.setdefault(f"{PREFIX}.{DISBURSEMENT_ITEMS}", "Must be a list.")

    claimed = data.get(DISBURSEMENT_TOTAL)
    if claimed is not None and (not is_number(claimed) or not math.isfinite(claimed) or claimed < 0):
        errors.setdefault(f"{PREFIX}.{DISBURSEMENT_TOTAL}", "Must be a non-negative number.")
    if items is not None or DISBURSEMENT_TOTAL in data:
        # no usable items sums to zero; a claimed figure is never kept
        data[DISBURSEMENT_TOTAL] = recompute_disbursements_total(items) or 0.0

    return ValidationResult(field_errors=errors, normalized=data)
