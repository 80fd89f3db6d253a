"""
Application state cache.

A caller-owned snapshot of reservations, expenses and pricing config for
front ends that render repeatedly (the menu launcher, a future UI). The
engine never reads it; it only receives the entities the engine emits on
the bus.

    state = AppState()
    state.refresh()
    state.attach(bus)
"""

import logging
from datetime import date
from typing import List, Optional

from salonbook.bus.events import (
    EventBus,
    EVENT_RESERVATION_CREATED, EVENT_RESERVATION_UPDATED, EVENT_RESERVATION_TRASHED,
    EVENT_RESERVATION_RECOVERED, EVENT_RESERVATION_DELETED, EVENT_TRASH_PURGED,
    EVENT_PAYMENT_RECORDED, EVENT_EXPENSE_CREATED, EVENT_EXPENSE_DELETED, EVENT_CONFIG_SAVED,
    EVENT_QUANTITIES_MIGRATED, EVENT_TOTALS_RECALCULATED, EVENT_IMPORT_COMPLETE,
)
from salonbook.engine import reservations as lifecycle
from salonbook.models import Expense, PricingConfig, Reservation

logger = logging.getLogger(__name__)


class AppState:
    """Active reservations (by date), trash, expenses and the pricing config."""

    def __init__(self):
        self.reservations: List[Reservation] = []
        self.trash: List[Reservation] = []
        self.expenses: List[Expense] = []
        self.config: Optional[PricingConfig] = None
        self._bus: Optional[EventBus] = None

    def refresh(self) -> 'AppState':
        """Reload everything from the store."""
        self.config = lifecycle.load_pricing_config()
        self.reservations = lifecycle.list_active_reservations()
        self.trash = lifecycle.list_trashed_reservations()
        self.expenses = lifecycle.list_expenses()
        logger.debug(
            f"State refreshed: {len(self.reservations)} active, {len(self.trash)} trashed, "
            f"{len(self.expenses)} expenses"
        )
        return self

    # -------------------------------------------------------------------------
    # bus wiring
    # -------------------------------------------------------------------------

    def _handlers(self):
        return {
            EVENT_RESERVATION_CREATED: self._on_reservation,
            EVENT_RESERVATION_UPDATED: self._on_reservation,
            EVENT_RESERVATION_RECOVERED: self._on_reservation,
            EVENT_PAYMENT_RECORDED: self._on_reservation,
            EVENT_RESERVATION_TRASHED: self._on_reservation,
            EVENT_RESERVATION_DELETED: self._on_reservation_deleted,
            EVENT_EXPENSE_CREATED: self._on_expense_created,
            EVENT_EXPENSE_DELETED: self._on_expense_deleted,
            EVENT_CONFIG_SAVED: self._on_config_saved,
            EVENT_TRASH_PURGED: self._on_bulk_change,
            EVENT_QUANTITIES_MIGRATED: self._on_bulk_change,
            EVENT_TOTALS_RECALCULATED: self._on_bulk_change,
            EVENT_IMPORT_COMPLETE: self._on_bulk_change,
        }

    def attach(self, bus: EventBus) -> None:
        """Keep this state in sync with engine events on bus."""
        self.detach()
        for event_name, handler in self._handlers().items():
            bus.on(event_name, handler)
        self._bus = bus

    def detach(self) -> None:
        if self._bus is None:
            return
        for event_name, handler in self._handlers().items():
            self._bus.off(event_name, handler)
        self._bus = None

    # -------------------------------------------------------------------------
    # merging
    # -------------------------------------------------------------------------

    def _drop(self, reservation_id: str) -> None:
        self.reservations = [r for r in self.reservations if r.id != reservation_id]
        self.trash = [r for r in self.trash if r.id != reservation_id]

    def _on_reservation(self, data):
        reservation: Reservation = data['reservation']
        self._drop(reservation.id)
        if reservation.is_active:
            self.reservations.append(reservation)
            self.reservations.sort(key=lambda r: r.date or date.min)
        else:
            self.trash.insert(0, reservation)

    def _on_reservation_deleted(self, data):
        self._drop(data['reservation_id'])

    def _on_expense_created(self, data):
        self.expenses.append(data['expense'])
        self.expenses.sort(key=lambda e: e.date or date.min)

    def _on_expense_deleted(self, data):
        self.expenses = [e for e in self.expenses if e.id != data['expense_id']]

    def _on_config_saved(self, data):
        self.config = data['config']

    def _on_bulk_change(self, data):
        # Batch jobs and purges touch rows we were not told about
        self.refresh()
