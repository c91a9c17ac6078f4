"""
Moderation Services

Entry → Report → Dispute lifecycles with an append-only audit trail.

- EntryLifecycleEngine: approve / reject / hide, report-driven two-step actions
- ReportLifecycleEngine: community reports and their ticket workflow
- DisputeLifecycleEngine: provider disputes and their four outcomes
- ProviderService: provider directory moderation
- AuditTrail: who changed what, when and why
"""

from .audit_trail import AuditTrail
from .state_machine import EntryStateMachine, ReportStateMachine
from .auto_publish import (
    AutoPublishPolicy,
    AutoPublishPolicyRegistry,
    MinimumTierPolicy,
    NeverAutoPublish,
    SchemaRulesPolicy,
    default_registry,
)
from .entry_lifecycle import EntryLifecycleEngine, initial_state
from .report_lifecycle import ReportLifecycleEngine
from .dispute_lifecycle import DisputeLifecycleEngine
from .provider_service import ProviderService

__all__ = [
    'AuditTrail',
    'EntryStateMachine',
    'ReportStateMachine',
    'AutoPublishPolicy',
    'AutoPublishPolicyRegistry',
    'MinimumTierPolicy',
    'NeverAutoPublish',
    'SchemaRulesPolicy',
    'default_registry',
    'EntryLifecycleEngine',
    'initial_state',
    'ReportLifecycleEngine',
    'DisputeLifecycleEngine',
    'ProviderService',
]
