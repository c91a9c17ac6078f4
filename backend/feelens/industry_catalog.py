"""
FeeLens - Built-in Industry Schemas

Starting definitions published by scripts/seed_industry_schemas.py. Once
published, the database copy is authoritative; editing these dicts only
affects the next publish.
"""

LEGAL_SERVICES = {
    "industry_key": "legal_services",
    "display_name": "Legal Services",
    "fee_breakdown_schema": {
        "properties": {
            "pricing_model": {"type": "string"},
            "fixed_fee_amount": {"type": "number", "title": "Fixed fee"},
            "hourly_rate": {"type": "number", "title": "Hourly rate"},
            "estimated_hours": {"type": "number", "title": "Estimated hours"},
            "retainer_amount": {"type": "number", "title": "Retainer"},
            "uplift_pct": {"type": "number", "format": "percent", "title": "Uplift %"},
            "contingency_pct": {"type": "number", "format": "percent", "title": "Contingency %"},
            "total_estimated": {"type": "number", "title": "Total estimated"},
            "gst_included": {"type": "boolean", "title": "GST included"},
            "disbursements_items": {"type": "array", "title": "Disbursements"},
            "disbursements_total": {"type": "number", "title": "Disbursements total"},
        },
        "required": [],
        "additionalProperties": False,
    },
    "context_schema": {
        "properties": {
            "matter_type": {"type": "string", "title": "Matter type"},
            "jurisdiction": {
                "type": "string",
                "title": "Jurisdiction",
                "enum": ["NSW", "VIC", "QLD", "WA", "SA", "TAS", "ACT", "NT"],
            },
            "court_level": {"type": "string", "title": "Court level"},
            "complexity": {"type": "string", "title": "Complexity", "enum": ["low", "medium", "high"]},
            "urgent": {"type": "boolean", "title": "Urgent"},
            "property_value": {"type": "number", "title": "Property value", "minimum": 0},
            "parties_count": {"type": "integer", "title": "Number of parties", "minimum": 1},
        },
        "required": ["matter_type", "jurisdiction"],
    },
    "validation_rules": {
        "pricing_model_required_fields": {
            "fixed": ["fixed_fee_amount"],
            "hourly": ["hourly_rate"],
            "blended": ["hourly_rate", "estimated_hours"],
            "capped": ["total_estimated"],
            "retainer": ["retainer_amount"],
            "contingency_pct": ["contingency_pct"],
            "uplift": ["uplift_pct"],
        },
        "conditional_requires_pct_disclosure": {
            "pricing_model": "contingency_pct",
            "require_any": ["contingency_pct", "uplift_pct"],
            "error": "Disclose the contingency or uplift percentage.",
        },
        "matter_type_context_hints": {
            "conveyancing": ["property_value"],
            "family_law": ["court_level", "parties_count"],
            "litigation": ["court_level", "complexity", "urgent"],
        },
        "auto_publish": {"enabled": True, "min_tier": "A"},
    },
    "service_taxonomy": {
        "matter_types": [
            {"key": "conveyancing", "label": "Conveyancing"},
            {"key": "family_law", "label": "Family law"},
            {"key": "wills_estates", "label": "Wills & estates"},
            {"key": "litigation", "label": "Litigation"},
            {"key": "employment", "label": "Employment"},
            {"key": "immigration", "label": "Immigration"},
        ]
    },
}

REAL_ESTATE = {
    "industry_key": "real_estate",
    "display_name": "Real Estate Agents",
    "fee_breakdown_schema": {
        "properties": {
            "pricing_model": {"type": "string"},
            "commission_pct": {"type": "number", "format": "percent", "title": "Commission %"},
            "fixed_fee_amount": {"type": "number", "title": "Fixed fee"},
            "marketing_fee": {"type": "number", "title": "Marketing"},
            "admin_fee": {"type": "number", "title": "Admin fee"},
            "gst_included": {"type": "boolean", "title": "GST included"},
            "disbursements_items": {"type": "array", "title": "Other charges"},
            "disbursements_total": {"type": "number", "title": "Other charges total"},
        },
        "required": [],
    },
    "context_schema": {
        "properties": {
            "property_type": {
                "type": "string",
                "title": "Property type",
                "enum": ["house", "apartment", "townhouse", "land", "commercial"],
            },
            "sale_price": {"type": "number", "title": "Sale price", "minimum": 0},
            "postcode": {"type": "string", "title": "Postcode"},
            "auction": {"type": "boolean", "title": "Sold at auction"},
        },
        "required": ["property_type", "postcode"],
    },
    "validation_rules": {
        "pricing_model_required_fields": {
            "contingency_pct": ["commission_pct"],
            "fixed": ["fixed_fee_amount"],
        },
    },
    "service_taxonomy": {
        "services": [
            {"key": "residential_sale", "label": "Residential sale"},
            {"key": "property_management", "label": "Property management"},
            {"key": "leasing", "label": "Leasing"},
        ]
    },
}

BUILTIN_SCHEMAS = [LEGAL_SERVICES, REAL_ESTATE]
