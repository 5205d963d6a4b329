"""
API Services Layer.

Database operations behind the HTTP routes and the advancement workflow.
"""

from api.services.applications import (
    get_application,
    get_application_transitions,
    get_batch_transitions,
    list_applications,
    submit_application,
)

from api.services.cycles import (
    activate_cycle,
    close_cycle,
    create_cycle,
    delete_cycle,
    get_active_cycle,
    get_cycle,
    get_cycle_stats,
    list_cycles,
    update_cycle,
)

from api.services.decisions import (
    decisions_for,
    pending_decisions,
    record_decision,
)

from api.services.notifications import (
    NotificationDispatcher,
    failed_delivery_ids,
)

from api.services.advancement import (
    AdvancementOrchestrator,
    BatchReport,
    CancellationToken,
)

__all__ = [
    # Applications
    "get_application",
    "get_application_transitions",
    "get_batch_transitions",
    "list_applications",
    "submit_application",
    # Cycles
    "activate_cycle",
    "close_cycle",
    "create_cycle",
    "delete_cycle",
    "get_active_cycle",
    "get_cycle",
    "get_cycle_stats",
    "list_cycles",
    "update_cycle",
    # Decision ledger
    "decisions_for",
    "pending_decisions",
    "record_decision",
    # Notifications
    "NotificationDispatcher",
    "failed_delivery_ids",
    # Advancement
    "AdvancementOrchestrator",
    "BatchReport",
    "CancellationToken",
]
