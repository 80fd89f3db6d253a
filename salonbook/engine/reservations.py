"""
Reservation Lifecycle
Create, edit, status-by-date, trash/recover/purge, payments and expenses.

Every price a reservation shows is the snapshot written here at create/edit
time; reads never re-run the pricing engine. Operations fail fast when the
row or config they need cannot be loaded, and emit a bus event after each
persisted change.
"""

import logging
import unicodedata
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo

from rapidfuzz import fuzz

from salonbook.bus.events import (
    bus,
    EVENT_RESERVATION_CREATED, EVENT_RESERVATION_UPDATED, EVENT_RESERVATION_TRASHED,
    EVENT_RESERVATION_RECOVERED, EVENT_RESERVATION_DELETED, EVENT_TRASH_PURGED,
    EVENT_PAYMENT_RECORDED, EVENT_EXPENSE_CREATED, EVENT_EXPENSE_DELETED, EVENT_CONFIG_SAVED,
)
from salonbook.config import config
from salonbook.engine import repository as repo
from salonbook.engine.errors import (
    ConfigurationMissingError, NotFoundError, PaymentRejectedError, RepositoryError, ValidationError,
)
from salonbook.engine.pricing import compute_total, is_weekend
from salonbook.models import (
    ACTIVE_STATUSES, CreateOutcome, Expense, Payment, PricingConfig, PricingResult, Reservation,
    ReservationDraft, RESERVATION_TYPES, PLACEHOLDER_CLIENT_NAME,
    STATUS_CONFIRMED, STATUS_TRASHED, TYPE_PATIO, TYPE_SALON,
)

logger = logging.getLogger(__name__)

# Half a cent: payment comparisons tolerate float noise below this
_MONEY_TOLERANCE = 0.005

# rapidfuzz partial_ratio a client name must reach to count as a search hit
SEARCH_MATCH_THRESHOLD = 85

# Fields a caller may patch through update_reservation()
_PRICING_FIELDS = {
    'date', 'guest_count', 'type', 'selected_fixed_addons', 'quantity_selections',
    'include_cleaning', 'cleaning_cost', 'discount_percent', 'extra_cost',
    'base_fixed', 'per_person_fixed', 'fixed_addons_total_fixed', 'quantity_items_total_fixed',
}
_PLAIN_FIELDS = {'client_name', 'phone', 'status', 'notes', 'paid_amount', 'payment_history'}
_UPDATABLE_FIELDS = _PRICING_FIELDS | _PLAIN_FIELDS


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def today() -> date:
    """Today's date on the venue's local calendar."""
    return datetime.now(ZoneInfo(config.TIMEZONE)).date()


# =============================================================================
# PRICING CONFIG
# =============================================================================

def load_pricing_config() -> PricingConfig:
    """
    Return the current rate schedule, seeding the default one if the store
    has none. Raises ConfigurationMissingError if seeding fails.
    """
    cfg = repo.get_config()
    if cfg is not None:
        return cfg

    logger.warning("No pricing config found, seeding the default schedule")
    try:
        return repo.upsert_config(PricingConfig.default())
    except RepositoryError as exc:
        raise ConfigurationMissingError(f"No pricing config and the default could not be saved: {exc}") from exc


def save_pricing_config(cfg: PricingConfig) -> PricingConfig:
    """
    Replace the rate schedule. Existing reservations keep their snapshot
    prices; run maintenance.recalculate_totals(force=True) to re-price them.
    """
    for label, entries in (('add-on', cfg.fixed_addons), ('quantity item', cfg.quantity_items)):
        ids = [e.id for e in entries]
        if any(not i for i in ids):
            raise ValidationError(f"Every {label} needs an id")
        if len(ids) != len(set(ids)):
            raise ValidationError(f"Duplicate {label} ids: {sorted({i for i in ids if ids.count(i) > 1})}")

    saved = repo.upsert_config(cfg)
    bus.emit(EVENT_CONFIG_SAVED, {'config': saved})
    return saved


# =============================================================================
# DRAFTS
# =============================================================================

def validate_draft(draft: ReservationDraft) -> None:
    """Input checks the pricing engine deliberately does not make."""
    if not (draft.client_name or '').strip():
        raise ValidationError("Client name is required")
    if draft.date is None:
        raise ValidationError("Reservation date is required")
    if draft.type not in RESERVATION_TYPES:
        raise ValidationError(f"Unknown reservation type {draft.type!r}")
    if draft.status not in ACTIVE_STATUSES:
        raise ValidationError(f"Status must be one of {', '.join(ACTIVE_STATUSES)}")
    if draft.guest_count is None or draft.guest_count < 0:
        raise ValidationError("Guest count cannot be negative")
    if not 0 <= (draft.discount_percent or 0) <= 100:
        raise ValidationError("Discount must be between 0 and 100 percent")
    if (draft.extra_cost or 0) < 0:
        raise ValidationError("Extra cost cannot be negative")


def draft_from_reservation(reservation: Reservation, patch: Optional[Dict[str, Any]] = None) -> ReservationDraft:
    """
    Rebuild the draft a stored reservation was priced from, with patch fields
    merged over it. Stored quantity snapshots carry over; the *_fixed price
    overrides only come from the patch, so an edit re-prices base, per-person
    and add-ons against the live config unless the caller re-supplies them.
    """
    patch = patch or {}

    def pick(name, current):
        return patch[name] if name in patch else current

    include_cleaning = pick('include_cleaning', reservation.include_cleaning)
    if 'cleaning_cost' in patch:
        cleaning_cost = patch['cleaning_cost']
    elif reservation.include_cleaning:
        cleaning_cost = reservation.cleaning_cost
    else:
        cleaning_cost = None

    return ReservationDraft(
        client_name=pick('client_name', reservation.client_name),
        date=pick('date', reservation.date),
        guest_count=pick('guest_count', reservation.guest_count),
        phone=pick('phone', reservation.phone),
        type=pick('type', reservation.type),
        status=pick('status', reservation.status),
        selected_fixed_addons=list(pick('selected_fixed_addons', reservation.selected_fixed_addons) or []),
        quantity_selections=dict(pick('quantity_selections', reservation.quantity_selections) or {}),
        include_cleaning=bool(include_cleaning),
        cleaning_cost=cleaning_cost,
        discount_percent=pick('discount_percent', reservation.discount_percent) or 0,
        extra_cost=pick('extra_cost', reservation.extra_cost) or 0,
        notes=pick('notes', reservation.notes),
        base_fixed=patch.get('base_fixed'),
        per_person_fixed=patch.get('per_person_fixed'),
        fixed_addons_total_fixed=patch.get('fixed_addons_total_fixed'),
        quantity_items_total_fixed=patch.get('quantity_items_total_fixed'),
        paid_amount=pick('paid_amount', reservation.paid_amount),
        payment_history=list(pick('payment_history', reservation.payment_history) or []),
    )


def snapshot_fields(result: PricingResult) -> Dict[str, Any]:
    """Columns that freeze an engine result onto a reservation."""
    return {
        'base_fixed': result.breakdown.base,
        'per_person_fixed': result.breakdown.per_person,
        'fixed_addons_total_fixed': result.breakdown.fixed_addons_total,
        'quantity_items_total_fixed': result.breakdown.quantity_items_total,
        'quantity_selections': result.quantity_selections,
        'total': result.total,
        'total_before_discount': result.total_before_discount,
        'is_weekend': result.is_weekend,
    }


def _priced_fields(draft: ReservationDraft, result: PricingResult) -> Dict[str, Any]:
    fields = {
        'client_name': draft.client_name.strip(),
        'phone': draft.phone,
        'date': draft.date,
        'guest_count': int(draft.guest_count),
        'type': draft.type,
        'selected_fixed_addons': [] if draft.type == TYPE_PATIO else list(draft.selected_fixed_addons),
        'include_cleaning': draft.include_cleaning and draft.type == TYPE_SALON,
        'cleaning_cost': result.cleaning_cost,
        'discount_percent': float(draft.discount_percent or 0),
        'extra_cost': result.extra_cost,
        'notes': draft.notes,
    }
    fields.update(snapshot_fields(result))
    return fields


def _normalize_patch(patch: Dict[str, Any]) -> Dict[str, Any]:
    """Bring loosely-typed patch values (CLI, imports) into model types."""
    patch = dict(patch)
    if 'quantity_selections' in patch:
        patch['quantity_selections'] = repo.decode_quantity_selections(patch['quantity_selections'] or {})
    if 'payment_history' in patch:
        patch['payment_history'] = repo.decode_payments(patch['payment_history'])
    if 'selected_fixed_addons' in patch:
        patch['selected_fixed_addons'] = list(patch['selected_fixed_addons'] or [])
    return patch


# =============================================================================
# CREATE / READ / UPDATE
# =============================================================================

def create_reservation(draft: ReservationDraft) -> CreateOutcome:
    """
    Price a draft against the current config and persist it with the price
    snapshot. A cleaning expense is logged for salon bookings with a cleaning
    cost; if that write fails the reservation still stands and the failure is
    returned in CreateOutcome.warnings.
    """
    validate_draft(draft)
    cfg = load_pricing_config()
    result = compute_total(draft, cfg)

    reservation = Reservation(
        id=_new_id(),
        status=draft.status,
        paid_amount=float(draft.paid_amount or 0),
        payment_history=list(draft.payment_history or []),
        created_at=_now(),
        deleted_at=None,
        **_priced_fields(draft, result),
    )
    saved = repo.insert_reservation(reservation)
    logger.info(
        f"Created reservation {saved.id} ({saved.client_name}, {saved.date}) "
        f"type={saved.type} total={saved.total}"
    )

    outcome = CreateOutcome(reservation=saved)

    if result.cleaning_cost > 0 and saved.type == TYPE_SALON:
        expense = Expense(
            id=_new_id(),
            name=f"Cleaning - {saved.client_name} ({saved.date.isoformat()})",
            amount=result.cleaning_cost,
            date=saved.date,
        )
        try:
            outcome.expense = repo.insert_expense(expense)
        except RepositoryError as exc:
            message = f"Reservation saved, but the cleaning expense could not be recorded: {exc}"
            logger.warning(message)
            outcome.warnings.append(message)
        else:
            logger.info(f"Recorded cleaning expense {outcome.expense.name}: {outcome.expense.amount}")
            bus.emit(EVENT_EXPENSE_CREATED, {'expense': outcome.expense})

    bus.emit(EVENT_RESERVATION_CREATED, {'reservation': saved})
    return outcome


def get_reservation(reservation_id: str) -> Reservation:
    """Stored reservation (snapshot prices, no recomputation)."""
    reservation = repo.get_reservation(reservation_id)
    if reservation is None:
        raise NotFoundError('Reservation', reservation_id)
    return reservation


def list_active_reservations(on_date: Optional[date] = None) -> List[Reservation]:
    return repo.list_active(on_date=on_date)


def search_reservations(name: str) -> List[Reservation]:
    """
    Active reservations whose client name contains the query, ignoring case
    and accents, or matches it closely enough to survive a typo.
    Status-by-date placeholders are never returned.
    """
    query = _fold(name)
    if not query:
        raise ValidationError("Search needs a client name")

    matches = []
    for reservation in repo.list_active():
        if reservation.is_placeholder:
            continue
        client = _fold(reservation.client_name)
        if query in client or fuzz.partial_ratio(query, client) >= SEARCH_MATCH_THRESHOLD:
            matches.append(reservation)
    logger.debug(f"Search {name!r}: {len(matches)} matches")
    return matches


def _fold(text: Optional[str]) -> str:
    decomposed = unicodedata.normalize('NFKD', text or '')
    return ''.join(c for c in decomposed if not unicodedata.combining(c)).casefold().strip()


def list_trashed_reservations() -> List[Reservation]:
    return repo.list_trashed()


def update_reservation(reservation_id: str, patch: Dict[str, Any]) -> Reservation:
    """
    Partial update. Fields not in patch keep their stored value.

    Any pricing-relevant field in the patch re-runs the engine on the merged
    draft and overwrites the snapshot; patches touching only name, phone,
    status, notes or payments are written as-is without re-pricing.
    """
    if not patch:
        raise ValidationError("No fields to update")
    invalid = set(patch) - _UPDATABLE_FIELDS
    if invalid:
        raise ValidationError(f"Cannot update fields: {sorted(invalid)}")
    if 'status' in patch and patch['status'] not in ACTIVE_STATUSES:
        raise ValidationError(f"Status must be one of {', '.join(ACTIVE_STATUSES)} (use trash to delete)")

    patch = _normalize_patch(patch)
    current = get_reservation(reservation_id)
    if not current.is_active:
        raise ValidationError(f"Reservation {reservation_id} is in the trash; recover it before editing")

    plain = {key: value for key, value in patch.items() if key in _PLAIN_FIELDS}

    if set(patch) & _PRICING_FIELDS:
        draft = draft_from_reservation(current, patch)
        validate_draft(draft)
        result = compute_total(draft, load_pricing_config())
        fields = _priced_fields(draft, result)
        fields.update(plain)
        logger.info(f"Re-priced reservation {reservation_id}: {current.total} -> {result.total}")
    else:
        fields = plain

    updated = repo.update_reservation(reservation_id, fields)
    if updated is None:
        raise NotFoundError('Reservation', reservation_id)

    logger.info(f"Updated reservation {reservation_id}: {sorted(patch)}")
    bus.emit(EVENT_RESERVATION_UPDATED, {'reservation': updated})
    return updated


def set_status_for_date(day: date, status: str) -> Reservation:
    """
    Record a status for a calendar day.

    Updates the most recently created active reservation on that day, or
    creates a zero-priced placeholder when the day has none.
    """
    if status not in ACTIVE_STATUSES:
        raise ValidationError(f"Status must be one of {', '.join(ACTIVE_STATUSES)}")

    existing = repo.list_active(on_date=day, newest_first=True)

    if not existing:
        placeholder = Reservation(
            id=_new_id(),
            client_name=PLACEHOLDER_CLIENT_NAME,
            date=day,
            guest_count=0,
            type=TYPE_SALON,
            status=status,
            is_weekend=is_weekend(day),
            total=0.0,
            created_at=_now(),
            deleted_at=None,
        )
        saved = repo.insert_reservation(placeholder)
        logger.info(f"Created placeholder reservation {saved.id} for {day} with status {status}")
        bus.emit(EVENT_RESERVATION_CREATED, {'reservation': saved})
        return saved

    target = existing[0]
    updated = repo.update_reservation(target.id, {'status': status})
    if updated is None:
        raise NotFoundError('Reservation', target.id)
    logger.info(f"Set status of reservation {target.id} ({day}) to {status}")
    bus.emit(EVENT_RESERVATION_UPDATED, {'reservation': updated})
    return updated


# =============================================================================
# TRASH LIFECYCLE
# =============================================================================

def trash_reservation(reservation_id: str) -> Reservation:
    """Soft delete: status=trashed, deleted_at=now. Prices are untouched."""
    current = get_reservation(reservation_id)
    if not current.is_active:
        logger.debug(f"trash_reservation: {reservation_id} already trashed")
        return current

    trashed = repo.update_reservation(reservation_id, {'status': STATUS_TRASHED, 'deleted_at': _now()})
    if trashed is None:
        raise NotFoundError('Reservation', reservation_id)
    logger.info(f"Moved reservation {reservation_id} ({trashed.client_name}) to trash")
    bus.emit(EVENT_RESERVATION_TRASHED, {'reservation': trashed})
    return trashed


def recover_reservation(reservation_id: str) -> Reservation:
    """Bring a trashed reservation back. Always lands in 'confirmed'."""
    current = get_reservation(reservation_id)
    if current.is_active:
        raise ValidationError(f"Reservation {reservation_id} is not in the trash")

    recovered = repo.update_reservation(reservation_id, {'status': STATUS_CONFIRMED, 'deleted_at': None})
    if recovered is None:
        raise NotFoundError('Reservation', reservation_id)
    logger.info(f"Recovered reservation {reservation_id} ({recovered.client_name})")
    bus.emit(EVENT_RESERVATION_RECOVERED, {'reservation': recovered})
    return recovered


def purge_trashed(now: Optional[datetime] = None) -> int:
    """Hard delete trashed reservations older than the retention window."""
    cutoff = (now or _now()) - timedelta(days=config.TRASH_RETENTION_DAYS)
    count = repo.delete_trashed_before(cutoff)
    bus.emit(EVENT_TRASH_PURGED, {'count': count, 'cutoff': cutoff})
    return count


def delete_reservation_permanently(reservation_id: str) -> None:
    """Hard delete one reservation regardless of status or age."""
    if not repo.delete_reservation(reservation_id):
        raise NotFoundError('Reservation', reservation_id)
    bus.emit(EVENT_RESERVATION_DELETED, {'reservation_id': reservation_id})


# =============================================================================
# PAYMENTS
# =============================================================================

def _payment_amount(amount) -> float:
    try:
        value = float(amount)
    except (TypeError, ValueError):
        raise PaymentRejectedError(f"Invalid payment amount: {amount!r}")
    if value <= 0:
        raise PaymentRejectedError("Payment amount must be greater than zero")
    return value


def _payable(reservation_id: str) -> Reservation:
    reservation = get_reservation(reservation_id)
    if not reservation.is_active:
        raise PaymentRejectedError(f"Reservation {reservation_id} is in the trash")
    return reservation


def _save_payments(reservation: Reservation, history: List[Payment]) -> Reservation:
    updated = repo.update_reservation(reservation.id, {
        'paid_amount': sum(p.amount for p in history),
        'payment_history': history,
    })
    if updated is None:
        raise NotFoundError('Reservation', reservation.id)
    bus.emit(EVENT_PAYMENT_RECORDED, {'reservation': updated})
    return updated


def record_payment(reservation_id: str, amount, paid_on: Optional[date] = None) -> Reservation:
    """
    Append a payment. Rejected (nothing written) when the amount is not
    positive or exceeds the remaining balance.
    """
    value = _payment_amount(amount)
    reservation = _payable(reservation_id)

    remaining = reservation.remaining_balance
    if value > remaining + _MONEY_TOLERANCE:
        raise PaymentRejectedError(
            f"Payment of {value:.2f} exceeds the remaining balance of {max(remaining, 0):.2f}"
        )

    history = list(reservation.payment_history) + [Payment(date=paid_on or today(), amount=value)]
    updated = repo.update_reservation(reservation.id, {
        'paid_amount': reservation.paid_amount + value,
        'payment_history': history,
    })
    if updated is None:
        raise NotFoundError('Reservation', reservation_id)

    logger.info(f"Recorded payment of {value} on reservation {reservation_id} (paid {updated.paid_amount}/{updated.total})")
    bus.emit(EVENT_PAYMENT_RECORDED, {'reservation': updated})
    return updated


def edit_payment(reservation_id: str, index: int, amount, paid_on: Optional[date] = None) -> Reservation:
    """Rewrite one payment history entry; paid_amount becomes the history sum."""
    value = _payment_amount(amount)
    reservation = _payable(reservation_id)
    history = list(reservation.payment_history)
    if not 0 <= index < len(history):
        raise PaymentRejectedError(f"No payment #{index + 1} on reservation {reservation_id}")

    history[index] = Payment(date=paid_on or history[index].date, amount=value)
    if sum(p.amount for p in history) > reservation.total + _MONEY_TOLERANCE:
        raise PaymentRejectedError("Edited payments would exceed the reservation total")

    logger.info(f"Edited payment #{index + 1} on reservation {reservation_id}: {value}")
    return _save_payments(reservation, history)


def delete_payment(reservation_id: str, index: int) -> Reservation:
    """Remove one payment history entry; paid_amount becomes the history sum."""
    reservation = _payable(reservation_id)
    history = list(reservation.payment_history)
    if not 0 <= index < len(history):
        raise PaymentRejectedError(f"No payment #{index + 1} on reservation {reservation_id}")

    removed = history.pop(index)
    logger.info(f"Deleted payment #{index + 1} ({removed.amount}) on reservation {reservation_id}")
    return _save_payments(reservation, history)


# =============================================================================
# EXPENSES
# =============================================================================

def add_expense(name: str, amount, on_date: date) -> Expense:
    if not (name or '').strip():
        raise ValidationError("Expense name is required")
    try:
        value = float(amount)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid expense amount: {amount!r}")
    if value <= 0:
        raise ValidationError("Expense amount must be greater than zero")

    saved = repo.insert_expense(Expense(id=_new_id(), name=name.strip(), amount=value, date=on_date))
    logger.info(f"Added expense {saved.id}: {saved.name} {saved.amount}")
    bus.emit(EVENT_EXPENSE_CREATED, {'expense': saved})
    return saved


def delete_expense(expense_id: str) -> None:
    if not repo.delete_expense(expense_id):
        raise NotFoundError('Expense', expense_id)
    logger.info(f"Deleted expense {expense_id}")
    bus.emit(EVENT_EXPENSE_DELETED, {'expense_id': expense_id})


def list_expenses(date_from: Optional[date] = None, date_to: Optional[date] = None) -> List[Expense]:
    return repo.list_expenses(date_from=date_from, date_to=date_to)
