#!/usr/bin/env python3
"""
Industry Schema Seed Script
Publishes the built-in industry schemas (legal services, real estate).

An industry that already has an active schema is skipped unless --force is
given, in which case a new version is published over it.

Usage:
    python -m scripts.seed_industry_schemas [--force] [industry_key ...]

Example:
    python -m scripts.seed_industry_schemas legal_services
"""
import sys
import os

# Add the parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy.orm import Session
from feelens.database import SessionLocal, engine, Base
from feelens.industry_catalog import BUILTIN_SCHEMAS
from feelens.services.validation import SchemaRegistry


def seed_schemas(keys=None, force: bool = False) -> bool:
    """Publish built-in schemas. Returns False if any publish failed."""
    # Ensure tables exist
    Base.metadata.create_all(bind=engine)

    db: Session = SessionLocal()
    ok = True
    try:
        registry = SchemaRegistry(db)
        for definition in BUILTIN_SCHEMAS:
            key = definition["industry_key"]
            if keys and key not in keys:
                continue

            current = registry.get_active_version(key)
            if current is not None and not force:
                print(f"Skipping '{key}': v{current} already active (use --force to republish).")
                continue

            try:
                schema = registry.publish_version(
                    key,
                    display_name=definition["display_name"],
                    fee_breakdown_schema=definition["fee_breakdown_schema"],
                    context_schema=definition["context_schema"],
                    validation_rules=definition["validation_rules"],
                    service_taxonomy=definition["service_taxonomy"],
                )
            except Exception as e:
                print(f"Error publishing '{key}': {e}")
                ok = False
                continue

            print(f"Published '{key}' v{schema.version} ({schema.display_name})")
        return ok
    finally:
        db.close()


def main():
    args = sys.argv[1:]
    force = "--force" in args
    keys = [a for a in args if not a.startswith("--")]

    known = {d["industry_key"] for d in BUILTIN_SCHEMAS}
    unknown = [k for k in keys if k not in known]
    if unknown:
        print(f"Error: unknown industry key(s): {', '.join(unknown)}")
        print(__doc__)
        sys.exit(1)

    success = seed_schemas(keys, force=force)
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
