"""
Event Bus - Decoupled Module Communication
The engine emits an event after every persisted change; listeners (the
application state cache, the CLI) react without the engine knowing them.
"""

from typing import Callable, Dict, List, Any
import logging

logger = logging.getLogger(__name__)


class EventBus:
    """
    Simple synchronous event bus.
    A failing handler is logged and skipped; it never undoes the change that
    triggered the event.
    """

    def __init__(self):
        self._handlers: Dict[str, List[Callable]] = {}

    def on(self, event_name: str, handler: Callable):
        """Register a handler receiving the event_data dict."""
        self._handlers.setdefault(event_name, []).append(handler)
        logger.debug(f"Registered handler for event '{event_name}': {getattr(handler, '__name__', handler)}")

    def off(self, event_name: str, handler: Callable):
        """Unregister a handler. Unknown handlers are ignored."""
        handlers = self._handlers.get(event_name, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event_name: str, event_data: Dict[str, Any] = None):
        """Call every handler registered for event_name, in registration order."""
        if event_data is None:
            event_data = {}

        logger.debug(f"Emitting event '{event_name}' with keys: {sorted(event_data)}")

        for handler in list(self._handlers.get(event_name, [])):
            try:
                handler(event_data)
            except Exception as e:
                logger.error(f"Error in handler {getattr(handler, '__name__', handler)} for event '{event_name}': {e}")

    def clear(self):
        """Clear all handlers (useful for testing)."""
        self._handlers.clear()


# Singleton instance
bus = EventBus()


# =============================================================================
# STANDARD EVENTS
# =============================================================================

# Reservation lifecycle: data = {'reservation': Reservation}
EVENT_RESERVATION_CREATED = 'reservation_created'
EVENT_RESERVATION_UPDATED = 'reservation_updated'
EVENT_RESERVATION_TRASHED = 'reservation_trashed'
EVENT_RESERVATION_RECOVERED = 'reservation_recovered'
EVENT_PAYMENT_RECORDED = 'payment_recorded'

# Hard deletes: data = {'reservation_id': str} / {'count': int, 'cutoff': datetime}
EVENT_RESERVATION_DELETED = 'reservation_deleted'
EVENT_TRASH_PURGED = 'trash_purged'

# Expenses: data = {'expense': Expense} / {'expense_id': str}
EVENT_EXPENSE_CREATED = 'expense_created'
EVENT_EXPENSE_DELETED = 'expense_deleted'

# Pricing config: data = {'config': PricingConfig}
EVENT_CONFIG_SAVED = 'config_saved'

# Batch jobs: data = {'result': BatchResult}
EVENT_QUANTITIES_MIGRATED = 'quantities_migrated'
EVENT_TOTALS_RECALCULATED = 'totals_recalculated'
EVENT_IMPORT_COMPLETE = 'import_complete'
