"""
Unit tests for the reservation lifecycle (salonbook/engine/reservations.py).

Strategy: the fake_repo fixture (tests/conftest.py) swaps the database
functions of salonbook.engine.repository for an in-memory store, so the
lifecycle, the pricing engine and the value codecs all run for real. Bus
events are verified by patching salonbook.engine.reservations.bus.emit.
"""

from datetime import date, datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from salonbook.bus.events import (
    EVENT_CONFIG_SAVED, EVENT_EXPENSE_CREATED, EVENT_RESERVATION_CREATED,
    EVENT_RESERVATION_RECOVERED, EVENT_RESERVATION_TRASHED, EVENT_TRASH_PURGED,
)
from salonbook.engine import reservations
from salonbook.engine.errors import (
    ConfigurationMissingError, NotFoundError, PaymentRejectedError, ValidationError,
)
from salonbook.models import (
    FixedAddon, Payment, PricingConfig, QuantityItem, QuantitySelection, Reservation, ReservationDraft,
)

SATURDAY = date(2026, 3, 14)
WEDNESDAY = date(2026, 3, 11)
NOW = datetime(2026, 3, 20, 12, 0, tzinfo=timezone.utc)


def booking(**overrides) -> ReservationDraft:
    """Saturday salon booking: 150000 + 40*3000 + sound 10000 + 40 chairs*100 = 284000"""
    fields = dict(
        client_name='Lucía Gómez', date=SATURDAY, guest_count=40, phone='+54 11 5555 0101',
        selected_fixed_addons=['sound'],
        quantity_selections={'chairs': QuantitySelection(40)},
    )
    fields.update(overrides)
    return ReservationDraft(**fields)


def create(**overrides) -> Reservation:
    return reservations.create_reservation(booking(**overrides)).reservation


def trashed_row(reservation_id, deleted_at) -> Reservation:
    return Reservation(
        id=reservation_id, client_name=f'Client {reservation_id}', date=WEDNESDAY,
        status='trashed', total=100000, deleted_at=deleted_at,
    )


# ---------------------------------------------------------------------------
# Pricing config
# ---------------------------------------------------------------------------

def test_load_pricing_config_returns_stored(fake_repo, pricing):
    assert reservations.load_pricing_config() == pricing


def test_load_pricing_config_seeds_default(fake_repo):
    fake_repo.config = None
    cfg = reservations.load_pricing_config()
    assert cfg == PricingConfig.default()
    assert fake_repo.config == PricingConfig.default()


def test_load_pricing_config_seed_failure_is_fatal(fake_repo):
    fake_repo.config = None
    fake_repo.fail_on.add('upsert_config')
    with pytest.raises(ConfigurationMissingError):
        reservations.load_pricing_config()


def test_save_pricing_config_emits_event(fake_repo, pricing):
    pricing.base_weekday = 110000
    with patch('salonbook.engine.reservations.bus.emit') as mock_emit:
        saved = reservations.save_pricing_config(pricing)
    assert fake_repo.config.base_weekday == 110000
    mock_emit.assert_called_once_with(EVENT_CONFIG_SAVED, {'config': saved})


def test_save_pricing_config_rejects_duplicate_ids(fake_repo, pricing):
    pricing.fixed_addons.append(FixedAddon('sound', 'Second sound', 1))
    with pytest.raises(ValidationError, match='Duplicate add-on'):
        reservations.save_pricing_config(pricing)
    assert 'upsert_config' not in fake_repo.calls


def test_save_pricing_config_rejects_blank_id(fake_repo, pricing):
    pricing.quantity_items.append(QuantityItem('', 'Nameless', 10))
    with pytest.raises(ValidationError, match='quantity item'):
        reservations.save_pricing_config(pricing)


# ---------------------------------------------------------------------------
# create_reservation
# ---------------------------------------------------------------------------

def test_create_stores_price_snapshot(fake_repo):
    reservation = create()
    stored = fake_repo.stored(reservation.id)
    assert stored.total == 284000
    assert stored.total_before_discount == 284000
    assert stored.base_fixed == 150000
    assert stored.per_person_fixed == 3000
    assert stored.fixed_addons_total_fixed == 10000
    assert stored.quantity_items_total_fixed == 4000
    assert stored.quantity_selections == {'chairs': QuantitySelection(40, 100.0)}
    assert stored.is_weekend is True
    assert stored.status == 'confirmed'
    assert stored.deleted_at is None


def test_create_with_cleaning_logs_expense(fake_repo):
    outcome = reservations.create_reservation(booking(include_cleaning=True))
    assert outcome.warnings == []
    assert outcome.expense.amount == 20000
    assert outcome.expense.name == 'Cleaning - Lucía Gómez (2026-03-14)'
    assert outcome.expense.date == SATURDAY
    assert outcome.reservation.cleaning_cost == 20000
    assert outcome.reservation.total == 284000


def test_create_with_zero_cleaning_cost_logs_nothing(fake_repo):
    outcome = reservations.create_reservation(booking(include_cleaning=True, cleaning_cost=0))
    assert outcome.expense is None
    assert fake_repo.expenses == {}


def test_create_survives_cleaning_expense_failure(fake_repo):
    fake_repo.fail_on.add('insert_expense')
    outcome = reservations.create_reservation(booking(include_cleaning=True))
    assert outcome.reservation.id in fake_repo.reservations
    assert outcome.expense is None
    assert len(outcome.warnings) == 1
    assert 'cleaning expense could not be recorded' in outcome.warnings[0]


def test_create_emits_events(fake_repo):
    with patch('salonbook.engine.reservations.bus.emit') as mock_emit:
        outcome = reservations.create_reservation(booking(include_cleaning=True))
    events = [c.args[0] for c in mock_emit.call_args_list]
    assert events == [EVENT_EXPENSE_CREATED, EVENT_RESERVATION_CREATED]
    mock_emit.assert_called_with(EVENT_RESERVATION_CREATED, {'reservation': outcome.reservation})


def test_create_patio_drops_salon_extras(fake_repo):
    reservation = create(type='patio', include_cleaning=True)
    assert reservation.total == 50000
    assert reservation.selected_fixed_addons == []
    assert reservation.quantity_selections == {}
    assert reservation.include_cleaning is False
    assert fake_repo.expenses == {}


@pytest.mark.parametrize('overrides, message', [
    ({'client_name': '  '}, 'Client name'),
    ({'date': None}, 'date'),
    ({'type': 'rooftop'}, 'type'),
    ({'status': 'trashed'}, 'Status'),
    ({'guest_count': -1}, 'Guest count'),
    ({'discount_percent': 120}, 'Discount'),
    ({'extra_cost': -5}, 'Extra cost'),
])
def test_create_rejects_invalid_draft(fake_repo, overrides, message):
    with pytest.raises(ValidationError, match=message):
        reservations.create_reservation(booking(**overrides))
    assert fake_repo.reservations == {}


# ---------------------------------------------------------------------------
# Snapshot stability
# ---------------------------------------------------------------------------

def test_config_change_does_not_touch_stored_total(fake_repo, pricing):
    reservation = create()

    pricing.quantity_items = [QuantityItem('chairs', 'Chairs', 250), QuantityItem('glasses', 'Glasses', 50)]
    pricing.base_weekend = 190000
    reservations.save_pricing_config(pricing)

    stored = reservations.get_reservation(reservation.id)
    assert stored.total == 284000
    assert stored.base_fixed == 150000
    assert stored.quantity_selections['chairs'].unit_price_snapshot == 100


def test_edit_keeps_frozen_item_prices(fake_repo, pricing):
    reservation = create()
    pricing.quantity_items = [QuantityItem('chairs', 'Chairs', 250)]
    reservations.save_pricing_config(pricing)

    updated = reservations.update_reservation(reservation.id, {'guest_count': 50})

    assert updated.quantity_selections['chairs'] == QuantitySelection(40, 100.0)
    assert updated.total == 150000 + 50 * 3000 + 10000 + 40 * 100


def test_edit_new_item_line_takes_live_price(fake_repo):
    reservation = create()
    updated = reservations.update_reservation(reservation.id, {
        'quantity_selections': {'chairs': QuantitySelection(40, 100.0), 'glasses': 80},
    })
    assert updated.quantity_selections['glasses'] == QuantitySelection(80, 50.0)
    assert updated.quantity_items_total_fixed == 4000 + 4000


# ---------------------------------------------------------------------------
# update_reservation
# ---------------------------------------------------------------------------

def test_plain_patch_does_not_reprice(fake_repo, pricing):
    reservation = create()
    pricing.base_weekend = 190000
    reservations.save_pricing_config(pricing)

    updated = reservations.update_reservation(reservation.id, {'notes': 'Bring cake', 'status': 'deposited'})

    assert updated.notes == 'Bring cake'
    assert updated.status == 'deposited'
    assert updated.total == 284000


def test_pricing_patch_reprices_against_live_config(fake_repo):
    reservation = create()
    updated = reservations.update_reservation(reservation.id, {'date': WEDNESDAY})
    assert updated.is_weekend is False
    assert updated.total == 100000 + 40 * 2000 + 10000 + 4000


def test_patch_with_explicit_override(fake_repo):
    reservation = create()
    updated = reservations.update_reservation(reservation.id, {'base_fixed': 120000})
    assert updated.base_fixed == 120000
    assert updated.total == 120000 + 40 * 3000 + 10000 + 4000


def test_enabling_cleaning_uses_default_cost(fake_repo):
    reservation = create()
    updated = reservations.update_reservation(reservation.id, {'include_cleaning': True})
    assert updated.include_cleaning is True
    assert updated.cleaning_cost == 20000
    assert updated.total == 284000


def test_update_rejects_empty_patch(fake_repo):
    reservation = create()
    with pytest.raises(ValidationError):
        reservations.update_reservation(reservation.id, {})


def test_update_rejects_unknown_field(fake_repo):
    reservation = create()
    with pytest.raises(ValidationError, match='Cannot update'):
        reservations.update_reservation(reservation.id, {'total': 1})


def test_update_rejects_trashed_status(fake_repo):
    reservation = create()
    with pytest.raises(ValidationError, match='use trash'):
        reservations.update_reservation(reservation.id, {'status': 'trashed'})


def test_update_missing_reservation(fake_repo):
    with pytest.raises(NotFoundError):
        reservations.update_reservation('missing', {'notes': 'x'})


def test_update_trashed_reservation_is_rejected(fake_repo):
    reservation = create()
    reservations.trash_reservation(reservation.id)
    with pytest.raises(ValidationError, match='trash'):
        reservations.update_reservation(reservation.id, {'notes': 'x'})


# ---------------------------------------------------------------------------
# Search by client name
# ---------------------------------------------------------------------------

def test_search_ignores_case_and_accents(fake_repo):
    lucia = create()
    create(client_name='Bruno Díaz', date=WEDNESDAY)

    assert [r.id for r in reservations.search_reservations('GOMEZ')] == [lucia.id]
    assert [r.id for r in reservations.search_reservations('lucía')] == [lucia.id]


def test_search_tolerates_typos(fake_repo):
    lucia = create()
    assert [r.id for r in reservations.search_reservations('Lucia Gomes')] == [lucia.id]
    assert reservations.search_reservations('Bruno') == []


def test_search_skips_trash_and_placeholders(fake_repo):
    trashed = create()
    reservations.trash_reservation(trashed.id)
    reservations.set_status_for_date(WEDNESDAY, 'interested')

    assert reservations.search_reservations('Gómez') == []
    assert reservations.search_reservations('Interested') == []


def test_search_rejects_blank_name(fake_repo):
    with pytest.raises(ValidationError):
        reservations.search_reservations('   ')


# ---------------------------------------------------------------------------
# Status by date
# ---------------------------------------------------------------------------

def test_status_on_empty_day_creates_placeholder(fake_repo):
    other = create(date=WEDNESDAY)
    placeholder = reservations.set_status_for_date(SATURDAY, 'deposited')

    assert len(fake_repo.reservations) == 2
    assert placeholder.date == SATURDAY
    assert placeholder.client_name == 'Interested'
    assert placeholder.guest_count == 0
    assert placeholder.total == 0
    assert placeholder.status == 'deposited'
    assert placeholder.is_weekend is True
    assert placeholder.is_placeholder
    assert fake_repo.stored(other.id).status == 'confirmed'


def test_status_updates_most_recent_reservation_on_day(fake_repo):
    first = create(client_name='Ana')
    second = create(client_name='Bruno')

    updated = reservations.set_status_for_date(SATURDAY, 'interested')

    assert updated.id == second.id
    assert fake_repo.stored(second.id).status == 'interested'
    assert fake_repo.stored(first.id).status == 'confirmed'
    assert len(fake_repo.reservations) == 2


def test_status_ignores_trashed_rows_on_day(fake_repo):
    trashed = create()
    reservations.trash_reservation(trashed.id)
    created = reservations.set_status_for_date(SATURDAY, 'confirmed')
    assert created.id != trashed.id
    assert created.is_placeholder


def test_status_rejects_trashed(fake_repo):
    with pytest.raises(ValidationError):
        reservations.set_status_for_date(SATURDAY, 'trashed')


# ---------------------------------------------------------------------------
# Trash / recover / purge
# ---------------------------------------------------------------------------

def test_trash_and_recover_round_trip(fake_repo):
    reservation = create()

    trashed = reservations.trash_reservation(reservation.id)
    assert trashed.status == 'trashed'
    assert trashed.deleted_at is not None
    assert trashed.total == 284000
    assert reservation.id not in [r.id for r in reservations.list_active_reservations()]
    assert reservation.id in [r.id for r in reservations.list_trashed_reservations()]

    recovered = reservations.recover_reservation(reservation.id)
    assert recovered.status == 'confirmed'
    assert recovered.deleted_at is None
    assert reservation.id in [r.id for r in reservations.list_active_reservations()]
    assert reservations.list_trashed_reservations() == []


def test_recover_always_lands_confirmed(fake_repo):
    reservation = create(status='interested')
    reservations.trash_reservation(reservation.id)
    assert reservations.recover_reservation(reservation.id).status == 'confirmed'


def test_trash_is_idempotent(fake_repo):
    reservation = create()
    first = reservations.trash_reservation(reservation.id)
    with patch('salonbook.engine.reservations.bus.emit') as mock_emit:
        second = reservations.trash_reservation(reservation.id)
    assert second.deleted_at == first.deleted_at
    mock_emit.assert_not_called()


def test_trash_and_recover_emit_events(fake_repo):
    reservation = create()
    with patch('salonbook.engine.reservations.bus.emit') as mock_emit:
        trashed = reservations.trash_reservation(reservation.id)
        recovered = reservations.recover_reservation(reservation.id)
    assert mock_emit.call_args_list[0].args == (EVENT_RESERVATION_TRASHED, {'reservation': trashed})
    assert mock_emit.call_args_list[1].args == (EVENT_RESERVATION_RECOVERED, {'reservation': recovered})


def test_recover_active_reservation_is_rejected(fake_repo):
    reservation = create()
    with pytest.raises(ValidationError, match='not in the trash'):
        reservations.recover_reservation(reservation.id)


def test_trash_missing_reservation(fake_repo):
    with pytest.raises(NotFoundError):
        reservations.trash_reservation('missing')


def test_purge_respects_retention_boundary(fake_repo):
    fake_repo.add(trashed_row('old', NOW - timedelta(days=7, seconds=1)))
    fake_repo.add(trashed_row('recent', NOW - timedelta(days=6)))

    with patch('salonbook.engine.reservations.bus.emit') as mock_emit:
        count = reservations.purge_trashed(now=NOW)

    assert count == 1
    assert 'old' not in fake_repo.reservations
    assert 'recent' in fake_repo.reservations
    mock_emit.assert_called_once_with(EVENT_TRASH_PURGED, {'count': 1, 'cutoff': NOW - timedelta(days=7)})


def test_purge_never_touches_active_rows(fake_repo):
    reservation = create()
    assert reservations.purge_trashed(now=NOW + timedelta(days=365)) == 0
    assert reservation.id in fake_repo.reservations


def test_delete_permanently(fake_repo):
    reservation = create()
    reservations.delete_reservation_permanently(reservation.id)
    assert fake_repo.reservations == {}
    with pytest.raises(NotFoundError):
        reservations.delete_reservation_permanently(reservation.id)


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------

def test_record_payment_appends_history(fake_repo):
    reservation = create()
    updated = reservations.record_payment(reservation.id, 84000, paid_on=date(2026, 2, 1))
    assert updated.paid_amount == 84000
    assert updated.payment_history == [Payment(date(2026, 2, 1), 84000.0)]
    assert updated.remaining_balance == 200000


def test_record_payment_for_full_balance(fake_repo):
    reservation = create()
    updated = reservations.record_payment(reservation.id, 284000, paid_on=date(2026, 2, 1))
    assert updated.is_fully_paid


def test_payment_above_balance_is_rejected_without_writing(fake_repo):
    reservation = create()
    reservations.record_payment(reservation.id, 84000, paid_on=date(2026, 2, 1))

    with pytest.raises(PaymentRejectedError, match='exceeds the remaining balance'):
        reservations.record_payment(reservation.id, 200001, paid_on=date(2026, 2, 2))

    stored = fake_repo.stored(reservation.id)
    assert stored.paid_amount == 84000
    assert len(stored.payment_history) == 1


@pytest.mark.parametrize('amount', [0, -100, 'abc', None])
def test_invalid_payment_amount_is_rejected(fake_repo, amount):
    reservation = create()
    with pytest.raises(PaymentRejectedError):
        reservations.record_payment(reservation.id, amount)
    assert fake_repo.stored(reservation.id).paid_amount == 0


def test_payment_on_trashed_reservation_is_rejected(fake_repo):
    reservation = create()
    reservations.trash_reservation(reservation.id)
    with pytest.raises(PaymentRejectedError, match='trash'):
        reservations.record_payment(reservation.id, 1000)


def test_payment_defaults_to_today(fake_repo):
    reservation = create()
    with patch('salonbook.engine.reservations.today', return_value=date(2026, 3, 1)):
        updated = reservations.record_payment(reservation.id, 1000)
    assert updated.payment_history[0].date == date(2026, 3, 1)


def test_edit_payment_recomputes_paid_amount(fake_repo):
    reservation = create()
    reservations.record_payment(reservation.id, 50000, paid_on=date(2026, 2, 1))
    reservations.record_payment(reservation.id, 30000, paid_on=date(2026, 2, 15))

    updated = reservations.edit_payment(reservation.id, 0, 60000)

    assert updated.paid_amount == 90000
    assert updated.payment_history[0] == Payment(date(2026, 2, 1), 60000.0)


def test_edit_payment_cannot_exceed_total(fake_repo):
    reservation = create()
    reservations.record_payment(reservation.id, 50000, paid_on=date(2026, 2, 1))
    with pytest.raises(PaymentRejectedError):
        reservations.edit_payment(reservation.id, 0, 300000)
    assert fake_repo.stored(reservation.id).paid_amount == 50000


def test_delete_payment(fake_repo):
    reservation = create()
    reservations.record_payment(reservation.id, 50000, paid_on=date(2026, 2, 1))
    reservations.record_payment(reservation.id, 30000, paid_on=date(2026, 2, 15))

    updated = reservations.delete_payment(reservation.id, 1)

    assert updated.paid_amount == 50000
    assert updated.payment_history == [Payment(date(2026, 2, 1), 50000.0)]


def test_payment_index_out_of_range(fake_repo):
    reservation = create()
    with pytest.raises(PaymentRejectedError, match='No payment #1'):
        reservations.delete_payment(reservation.id, 0)


# ---------------------------------------------------------------------------
# Expenses
# ---------------------------------------------------------------------------

def test_add_and_delete_expense(fake_repo):
    expense = reservations.add_expense('  Plumber ', '15000', date(2026, 3, 2))
    assert expense.name == 'Plumber'
    assert expense.amount == 15000
    assert reservations.list_expenses() == [expense]

    reservations.delete_expense(expense.id)
    assert reservations.list_expenses() == []


@pytest.mark.parametrize('name, amount', [('', 100), ('Plumber', 0), ('Plumber', 'lots')])
def test_add_expense_rejects_bad_input(fake_repo, name, amount):
    with pytest.raises(ValidationError):
        reservations.add_expense(name, amount, date(2026, 3, 2))


def test_delete_missing_expense(fake_repo):
    with pytest.raises(NotFoundError):
        reservations.delete_expense('missing')
