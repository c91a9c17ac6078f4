"""
Schema Registry

Stores versioned per-industry validation schemas and serves the active one.

Cached copies are never trusted blindly: every lookup issues a cheap
version-only query and refetches the full row when the version moved. The
TTL only bounds memory; the version check bounds correctness.
"""
import logging
import os
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...database import transaction
from ...errors import ConflictError, SchemaNotFoundError, SchemaInactiveError, ValidationFailedError
from ...models.db_models import IndustrySchemaDB
from ...models.domain import IndustrySchema
from .json_schema import check_schema

logger = logging.getLogger(__name__)

SCHEMA_CACHE_TTL_SECONDS = int(os.getenv("SCHEMA_CACHE_TTL_SECONDS", "300"))


@dataclass
class _CacheEntry:
    schema: IndustrySchema
    fetched_at: float


class SchemaCache:
    """Process-wide cache of active schema snapshots, keyed by industry."""

    def __init__(self, ttl_seconds: int = SCHEMA_CACHE_TTL_SECONDS):
        self.ttl_seconds = ttl_seconds
        self._entries: Dict[str, _CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, industry_key: str) -> Optional[IndustrySchema]:
        with self._lock:
            entry = self._entries.get(industry_key)
            if entry is None:
                return None
            if time.monotonic() - entry.fetched_at > self.ttl_seconds:
                del self._entries[industry_key]
                return None
            return entry.schema

    def put(self, schema: IndustrySchema) -> None:
        with self._lock:
            self._entries[schema.industry_key] = _CacheEntry(schema, time.monotonic())

    def invalidate(self, industry_key: Optional[str] = None) -> None:
        with self._lock:
            if industry_key is None:
                self._entries.clear()
            else:
                self._entries.pop(industry_key, None)


default_cache = SchemaCache()


class SchemaRegistry:
    """
    Read/write access to industry schemas.

    get_active_schema() distinguishes a key that never existed
    (SchemaNotFoundError) from one whose rows are all inactive
    (SchemaInactiveError) so callers can give different guidance.
    """

    def __init__(self, db: Session, cache: Optional[SchemaCache] = None):
        self.db = db
        self.cache = cache if cache is not None else default_cache

    # =========================================================================
    # LOOKUP
    # =========================================================================

    def get_active_version(self, industry_key: str) -> Optional[int]:
        """Version of the active row, or None when no row is active."""
        return (
            self.db.query(IndustrySchemaDB.version)
            .filter(
                IndustrySchemaDB.industry_key == industry_key,
                IndustrySchemaDB.is_active.is_(True),
            )
            .scalar()
        )

    def get_active_schema(self, industry_key: str) -> IndustrySchema:
        cached = self.cache.get(industry_key)
        if cached is not None:
            current_version = self.get_active_version(industry_key)
            if current_version == cached.version:
                return cached
            logger.info(
                f"Schema cache stale for {industry_key}: "
                f"cached v{cached.version}, active v{current_version}"
            )
            self.cache.invalidate(industry_key)

        row = (
            self.db.query(IndustrySchemaDB)
            .filter(
                IndustrySchemaDB.industry_key == industry_key,
                IndustrySchemaDB.is_active.is_(True),
            )
            .first()
        )
        if row is None:
            self._raise_missing(industry_key)

        schema = IndustrySchema.from_row(row)
        self.cache.put(schema)
        return schema

    def require_active_version(self, industry_key: str) -> int:
        version = self.get_active_version(industry_key)
        if version is None:
            self._raise_missing(industry_key)
        return version

    def _raise_missing(self, industry_key: str) -> None:
        exists = (
            self.db.query(IndustrySchemaDB.id)
            .filter(IndustrySchemaDB.industry_key == industry_key)
            .first()
        )
        if exists:
            raise SchemaInactiveError(f"Industry schema '{industry_key}' is inactive")
        raise SchemaNotFoundError(f"Industry schema '{industry_key}' not found")

    def list_active_industries(self) -> List[Dict[str, str]]:
        rows = (
            self.db.query(IndustrySchemaDB.industry_key, IndustrySchemaDB.display_name)
            .filter(IndustrySchemaDB.is_active.is_(True))
            .order_by(IndustrySchemaDB.display_name)
            .all()
        )
        return [{"key": key, "name": name} for key, name in rows]

    def invalidate(self, industry_key: Optional[str] = None) -> None:
        self.cache.invalidate(industry_key)

    # =========================================================================
    # PUBLISHING
    # =========================================================================

    def publish_version(
        self,
        industry_key: str,
        display_name: str,
        fee_breakdown_schema: Dict[str, Any],
        context_schema: Dict[str, Any],
        validation_rules: Optional[Dict[str, Any]] = None,
        service_taxonomy: Optional[Dict[str, Any]] = None,
    ) -> IndustrySchema:
        """
        Publish a new active version for ``industry_key``.

        The previous active row is deactivated and version+1 inserted in one
        transaction, keeping exactly one active row per key.
        """
        errors = check_schema("fee_breakdown_schema", fee_breakdown_schema)
        errors.update(check_schema("context_schema", context_schema))
        if errors:
            raise ValidationFailedError(errors)

        try:
            row = self._insert_next_version(
                industry_key,
                display_name,
                fee_breakdown_schema,
                context_schema,
                validation_rules,
                service_taxonomy,
            )
        except IntegrityError:
            logger.warning(f"Concurrent publish of industry schema {industry_key} lost the race")
            raise ConflictError(f"Another version of {industry_key} was published at the same time")

        self.cache.invalidate(industry_key)
        logger.info(f"Published industry schema {industry_key} v{row.version}")
        return IndustrySchema.from_row(row)

    def _insert_next_version(
        self,
        industry_key: str,
        display_name: str,
        fee_breakdown_schema: Dict[str, Any],
        context_schema: Dict[str, Any],
        validation_rules: Optional[Dict[str, Any]],
        service_taxonomy: Optional[Dict[str, Any]],
    ) -> IndustrySchemaDB:
        with transaction(self.db):
            current = (
                self.db.query(IndustrySchemaDB)
                .filter(
                    IndustrySchemaDB.industry_key == industry_key,
                    IndustrySchemaDB.is_active.is_(True),
                )
                .with_for_update()
                .first()
            )
            latest_version = (
                self.db.query(func.max(IndustrySchemaDB.version))
                .filter(IndustrySchemaDB.industry_key == industry_key)
                .scalar()
            ) or 0

            if current is not None:
                current.is_active = False
                self.db.flush()

            row = IndustrySchemaDB(
                id=str(uuid4()),
                industry_key=industry_key,
                display_name=display_name,
                version=latest_version + 1,
                fee_breakdown_schema=fee_breakdown_schema,
                context_schema=context_schema,
                validation_rules=validation_rules or {},
                service_taxonomy=service_taxonomy or {},
                is_active=True,
            )
            self.db.add(row)
        return row

    def deactivate(self, industry_key: str) -> bool:
        """
        Withdraw the active version so lookups answer SCHEMA_INACTIVE.

        Returns False when the key was already inactive.
        """
        with transaction(self.db):
            updated = self.db.query(IndustrySchemaDB).filter(
                IndustrySchemaDB.industry_key == industry_key,
                IndustrySchemaDB.is_active.is_(True),
            ).update({IndustrySchemaDB.is_active: False}, synchronize_session="fetch")
        self.cache.invalidate(industry_key)

        if not updated:
            exists = (
                self.db.query(IndustrySchemaDB.id)
                .filter(IndustrySchemaDB.industry_key == industry_key)
                .first()
            )
            if not exists:
                raise SchemaNotFoundError(f"Industry schema '{industry_key}' not found")
            return False

        logger.info(f"Deactivated industry schema {industry_key}")
        return True


# =============================================================================
# SCHEMA HELPERS (pure)
# =============================================================================

def required_fields_for(schema: IndustrySchema, pricing_model: str) -> List[str]:
    """Fields the fee breakdown must carry for ``pricing_model``."""
    fields = list(schema.fee_breakdown_schema.get("required") or [])
    by_model = schema.validation_rules.get("pricing_model_required_fields") or {}
    for name in by_model.get(pricing_model, []):
        if name not in fields:
            fields.append(name)
    return fields


def service_options(schema: IndustrySchema) -> List[Dict[str, str]]:
    taxonomy = schema.service_taxonomy or {}
    options = taxonomy.get("matter_types") or taxonomy.get("services") or []
    return [{"key": o["key"], "label": o.get("label", o["key"])} for o in options if "key" in o]


def recommended_context_fields(schema: IndustrySchema, matter_type: str) -> List[str]:
    hints = schema.validation_rules.get("matter_type_context_hints") or {}
    return list(hints.get(matter_type, []))

