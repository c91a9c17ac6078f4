"""
Provider Moderation

Businesses enter the directory as pending and must be approved before
entries can be submitted against them. Every status change writes a
ProviderActionDB row.
"""
import logging
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy.orm import Session

from ...database import transaction
from ...errors import ConflictError, ProviderNotFoundError, ValidationFailedError
from ...models.db_models import ProviderDB, ProviderStatus
from ...models.domain import Actor
from ..text_input import REASON_MAX_LENGTH, optional_text, require_text
from .audit_trail import AuditTrail
from .entry_lifecycle import require_moderator

logger = logging.getLogger(__name__)

NAME_MAX_LENGTH = 255
SUBURB_MAX_LENGTH = 100
REGION_CODE_MAX_LENGTH = 8

PROVIDER_ACTIONS = {
    "approve": ProviderStatus.APPROVED,
    "reject": ProviderStatus.REJECTED,
}


def serialize_provider(provider: ProviderDB) -> Dict[str, Any]:
    return {
        "id": provider.id,
        "name": provider.name,
        "industry_key": provider.industry_key,
        "suburb": provider.suburb,
        "state": provider.state,
        "postcode": provider.postcode,
        "status": provider.status.value,
        "created_by": provider.created_by,
        "created_at": provider.created_at.isoformat() if provider.created_at else None,
    }


class ProviderService:

    def __init__(self, db: Session):
        self.db = db
        self.audit = AuditTrail(db)

    def create_provider(
        self,
        actor: Actor,
        name: str,
        industry_key: Optional[str] = None,
        suburb: Optional[str] = None,
        state: Optional[str] = None,
        postcode: Optional[str] = None,
    ) -> Dict[str, Any]:
        name = require_text("name", name, NAME_MAX_LENGTH)
        suburb = optional_text("suburb", suburb, SUBURB_MAX_LENGTH)
        state = optional_text("state", state, REGION_CODE_MAX_LENGTH)
        postcode = optional_text("postcode", postcode, REGION_CODE_MAX_LENGTH)

        with transaction(self.db):
            provider = ProviderDB(
                id=str(uuid4()),
                name=name,
                industry_key=industry_key,
                suburb=suburb,
                state=state.upper() if state else None,
                postcode=postcode,
                status=ProviderStatus.PENDING,
                created_by=actor.user_id,
            )
            self.db.add(provider)
            self.db.flush()
            result = serialize_provider(provider)

        logger.info(f"Provider {result['id']} ({name}) created by {actor.user_id}")
        return result

    def moderate_provider(
        self,
        actor: Actor,
        provider_id: str,
        action: str,
        reason: str,
    ) -> Dict[str, Any]:
        """
        approve / reject a pending provider.

        Repeating the action a provider already reflects is a no-op; moving
        between approved and rejected is a conflict.
        """
        require_moderator(actor)
        target = PROVIDER_ACTIONS.get(action)
        if target is None:
            raise ValidationFailedError({"action": f"Unknown provider action: {action}"})
        reason = require_text("reason", reason, REASON_MAX_LENGTH)

        with transaction(self.db):
            provider = (
                self.db.query(ProviderDB)
                .filter(ProviderDB.id == provider_id)
                .with_for_update()
                .first()
            )
            if provider is None:
                raise ProviderNotFoundError()

            if provider.status == target:
                result = serialize_provider(provider)
                result["changed"] = False
                return result
            if provider.status != ProviderStatus.PENDING:
                raise ConflictError(
                    f"Cannot {action} a provider in status {provider.status.value}"
                )

            old_state = {"status": provider.status.value}
            provider.status = target
            self.audit.record_provider_action(
                actor=actor,
                provider_id=provider.id,
                action=action,
                old_state=old_state,
                new_state={"status": target.value},
                reason=reason,
            )
            result = serialize_provider(provider)
            result["changed"] = True

        logger.info(f"Provider {provider_id} {action} by {actor.user_id}")
        return result

    def get_provider(self, provider_id: str) -> Dict[str, Any]:
        provider = self.db.query(ProviderDB).filter(ProviderDB.id == provider_id).first()
        if provider is None:
            raise ProviderNotFoundError()
        return serialize_provider(provider)

    def list_providers(self, status: Optional[str] = None, limit: int = 50) -> List[Dict[str, Any]]:
        query = self.db.query(ProviderDB)
        if status:
            try:
                query = query.filter(ProviderDB.status == ProviderStatus(status))
            except ValueError:
                raise ValidationFailedError({"status": f"Unknown provider status: {status}"})
        rows = query.order_by(ProviderDB.name).limit(limit).all()
        return [serialize_provider(p) for p in rows]
