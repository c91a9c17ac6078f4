"""
Moderation State Machines

Deterministic transition tables for entries and reports. The tables only
answer "is this legal, and what is the target state"; persistence and audit
rows are the lifecycle engines' job.

Entry visibility and moderation status are coupled but distinct:
- approve: moderation_status -> approved, visibility -> public
- reject:  moderation_status -> rejected, visibility -> hidden
- hide:    visibility -> hidden only (provisional takedown, no verdict)

Report status is independent of the entry:
    open -> {triaged, resolved, dismissed}
    triaged -> {resolved, dismissed}
    resolved, dismissed: terminal
"""
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from ...errors import ConflictError, ValidationFailedError
from ...models.db_models import ModerationStatus, ReportStatus, Visibility


# =============================================================================
# ENTRY STATE CONFIGURATION
# =============================================================================

ENTRY_ACTION_CONFIG = {
    "approve": {
        "description": "Publish the entry after review",
        "allowed_from": [
            ModerationStatus.UNREVIEWED,
            ModerationStatus.FLAGGED,
            ModerationStatus.APPROVED,  # re-publish after a provisional hide
        ],
        "moderation_status": ModerationStatus.APPROVED,
        "visibility": Visibility.PUBLIC,
    },
    "reject": {
        "description": "Final negative verdict; entry is suppressed",
        "allowed_from": [
            ModerationStatus.UNREVIEWED,
            ModerationStatus.FLAGGED,
            ModerationStatus.REJECTED,
        ],
        "moderation_status": ModerationStatus.REJECTED,
        "visibility": Visibility.HIDDEN,
    },
    "hide": {
        "description": "Provisional takedown without a final verdict",
        "allowed_from": None,  # any state
        "moderation_status": None,  # unchanged
        "visibility": Visibility.HIDDEN,
    },
}

ENTRY_ACTIONS = tuple(ENTRY_ACTION_CONFIG)


@dataclass(frozen=True)
class EntryTransition:
    action: str
    from_visibility: Visibility
    from_moderation: ModerationStatus
    to_visibility: Visibility
    to_moderation: ModerationStatus

    @property
    def is_noop(self) -> bool:
        return (
            self.from_visibility == self.to_visibility
            and self.from_moderation == self.to_moderation
        )

    def as_states(self) -> Tuple[Dict[str, str], Dict[str, str]]:
        return (
            {"visibility": self.from_visibility.value, "moderation_status": self.from_moderation.value},
            {"visibility": self.to_visibility.value, "moderation_status": self.to_moderation.value},
        )


class EntryStateMachine:
    """Plans entry transitions. Raises ConflictError for illegal ones."""

    def plan(
        self,
        action: str,
        visibility: Visibility,
        moderation_status: ModerationStatus,
    ) -> EntryTransition:
        config = ENTRY_ACTION_CONFIG.get(action)
        if config is None:
            raise ValidationFailedError({"action": f"Unknown entry action: {action}"})

        allowed_from = config["allowed_from"]
        if allowed_from is not None and moderation_status not in allowed_from:
            raise ConflictError(
                f"Cannot {action} an entry in moderation status {moderation_status.value}"
            )

        return EntryTransition(
            action=action,
            from_visibility=visibility,
            from_moderation=moderation_status,
            to_visibility=config["visibility"] or visibility,
            to_moderation=config["moderation_status"] or moderation_status,
        )


# =============================================================================
# REPORT STATE MACHINE
# =============================================================================

class ReportStateMachine:
    """
    Report status transitions.

    Terminal statuses and triage-from-non-open are conflicts, never silent
    no-ops.
    """

    # (current_status, action) -> new_status
    TRANSITIONS = {
        (ReportStatus.OPEN, "triage"): ReportStatus.TRIAGED,
        (ReportStatus.OPEN, "resolve"): ReportStatus.RESOLVED,
        (ReportStatus.OPEN, "dismiss"): ReportStatus.DISMISSED,
        (ReportStatus.TRIAGED, "resolve"): ReportStatus.RESOLVED,
        (ReportStatus.TRIAGED, "dismiss"): ReportStatus.DISMISSED,
    }

    TERMINAL = {ReportStatus.RESOLVED, ReportStatus.DISMISSED}

    def can_transition(self, current: ReportStatus, action: str) -> Tuple[bool, Optional[str]]:
        if (current, action) in self.TRANSITIONS:
            return True, None
        if self.is_terminal(current):
            return False, f"Report is in terminal state: {current.value}"
        if action == "triage":
            return False, f"Cannot triage: report status is {current.value}"
        return False, f"Invalid transition: {current.value} + {action}"

    def transition(self, current: ReportStatus, action: str) -> ReportStatus:
        allowed, error = self.can_transition(current, action)
        if not allowed:
            raise ConflictError(error)
        return self.TRANSITIONS[(current, action)]

    def is_terminal(self, status: ReportStatus) -> bool:
        return status in self.TERMINAL
