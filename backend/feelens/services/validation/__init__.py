"""
Validation Services

Schema-driven validation of heterogeneous submissions:
- SchemaRegistry: versioned per-industry schemas with a version-checked cache
- fee_breakdown.validate: pricing-model rules and numeric invariants
- context.validate: typed industry-specific case attributes
"""

from .schema_registry import (
    SchemaRegistry,
    SchemaCache,
    default_cache,
    required_fields_for,
    service_options,
    recommended_context_fields,
)
from . import fee_breakdown as fee_breakdown_validator
from . import context as context_validator

__all__ = [
    'SchemaRegistry',
    'SchemaCache',
    'default_cache',
    'required_fields_for',
    'service_options',
    'recommended_context_fields',
    'fee_breakdown_validator',
    'context_validator',
]
