"""
Shared fixtures.

Engine tests run against an in-memory SQLite database built from the ORM
models. SQLite ignores FOR UPDATE, which is fine for single-threaded tests.
"""
import os

# Must be set before feelens.database creates its engine
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime
from uuid import uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from feelens.database import Base
from feelens.industry_catalog import LEGAL_SERVICES, REAL_ESTATE
from feelens.models.db_models import (
    EvidenceDB, FeeEntryDB, ModerationStatus, PricingModel, ProviderDB,
    ProviderStatus, UploadState, UserDB, UserRole, Visibility,
)
from feelens.models.domain import Actor
from feelens.services.validation import SchemaRegistry, default_cache


@pytest.fixture(autouse=True)
def _clear_schema_cache():
    default_cache.invalidate()
    yield
    default_cache.invalidate()


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = Session()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


# =============================================================================
# USERS / PROVIDERS
# =============================================================================

def _user(db, role=UserRole.USER, provider_id=None):
    uid = str(uuid4())
    user = UserDB(
        id=uid,
        email=f"{uid[:8]}@example.com",
        username=f"user_{uid[:8]}",
        role=role,
        provider_id=provider_id,
    )
    db.add(user)
    db.commit()
    return user


def _actor(user):
    return Actor(user_id=user.id, role=user.role, provider_id=user.provider_id)


@pytest.fixture
def provider(db):
    row = ProviderDB(
        id=str(uuid4()),
        name="Smith & Partners Lawyers",
        industry_key="legal_services",
        status=ProviderStatus.APPROVED,
    )
    db.add(row)
    db.commit()
    return row


@pytest.fixture
def pending_provider(db):
    row = ProviderDB(
        id=str(uuid4()),
        name="New Conveyancing Co",
        industry_key="legal_services",
        status=ProviderStatus.PENDING,
    )
    db.add(row)
    db.commit()
    return row


@pytest.fixture
def submitter_user(db):
    return _user(db)


@pytest.fixture
def submitter(submitter_user):
    return _actor(submitter_user)


@pytest.fixture
def other_user(db):
    return _actor(_user(db))


@pytest.fixture
def moderator_user(db):
    return _user(db, role=UserRole.MODERATOR)


@pytest.fixture
def moderator(moderator_user):
    return _actor(moderator_user)


@pytest.fixture
def admin_user(db):
    return _user(db, role=UserRole.ADMIN)


@pytest.fixture
def admin(admin_user):
    return _actor(admin_user)


@pytest.fixture
def provider_rep_user(db, provider):
    return _user(db, provider_id=provider.id)


@pytest.fixture
def provider_rep(provider_rep_user):
    return _actor(provider_rep_user)


# =============================================================================
# SCHEMAS
# =============================================================================

@pytest.fixture
def legal_schema(db):
    return SchemaRegistry(db).publish_version(**LEGAL_SERVICES)


@pytest.fixture
def real_estate_schema(db):
    return SchemaRegistry(db).publish_version(**REAL_ESTATE)


# =============================================================================
# ENTRIES / EVIDENCE
# =============================================================================

@pytest.fixture
def make_entry(db, provider, submitter_user):
    """Insert an entry directly in a given workflow state."""

    def _make(
        visibility=Visibility.HIDDEN,
        moderation_status=ModerationStatus.UNREVIEWED,
        submitter_id=None,
        created_at=None,
        **fields,
    ):
        entry = FeeEntryDB(
            id=str(uuid4()),
            provider_id=fields.pop("provider_id", provider.id),
            submitter_id=submitter_id or submitter_user.id,
            industry_key=fields.pop("industry_key", "legal_services"),
            schema_version=1,
            service_key=fields.pop("service_key", "conveyancing"),
            pricing_model=fields.pop("pricing_model", PricingModel.FIXED),
            fee_breakdown=fields.pop("fee_breakdown", {"fixed_fee_amount": 1500}),
            context=fields.pop("context", {"matter_type": "conveyancing", "jurisdiction": "NSW"}),
            visibility=visibility,
            moderation_status=moderation_status,
            created_at=created_at or datetime.utcnow(),
            **fields,
        )
        db.add(entry)
        db.commit()
        return entry

    return _make


@pytest.fixture
def make_evidence(db):
    def _make(uploader_id, entry_id=None, state=UploadState.UPLOADING, confirmed_at=None):
        evidence_id = str(uuid4())
        row = EvidenceDB(
            id=evidence_id,
            entry_id=entry_id,
            uploader_id=uploader_id,
            object_key=f"evidence/{uploader_id}/{evidence_id}.pdf",
            mime_type="application/pdf",
            size_bytes=2048,
            upload_state=state,
            confirmed_at=confirmed_at,
        )
        db.add(row)
        db.commit()
        return row

    return _make


@pytest.fixture
def fixed_fee_payload(provider):
    """A clean fixed-fee conveyancing submission."""
    return {
        "provider_id": provider.id,
        "industry_key": "legal_services",
        "service_key": "conveyancing",
        "pricing_model": "fixed",
        "fee_breakdown": {
            "fixed_fee_amount": 1500,
            "gst_included": True,
            "disbursements_items": [
                {"label": "Title search", "amount": 35.5},
                {"label": "Settlement fee", "amount": 120.25},
            ],
        },
        "context": {"matter_type": "conveyancing", "jurisdiction": "NSW"},
        "quote_transparency_score": 5,
        "initial_quote_total": 1650,
        "final_total_paid": 1655.75,
        "hidden_items": [],
    }