#!/usr/bin/env python3
"""
SalonBook Terminal CLI
Command-line interface for reservations, pricing, expenses and reports.

Exit codes: 0 ok, 1 rejected input or unknown id, 2 database/config failure.
"""

import functools
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Dict, Optional

import click

from salonbook.config import config as app_config
from salonbook.db.connection import init_schema
from salonbook.engine import maintenance, reports
from salonbook.engine import reservations as lifecycle
from salonbook.engine.errors import (
    ConfigurationMissingError, NotFoundError, RepositoryError, ValidationError,
)
from salonbook.logging_config import configure_logging, log_call
from salonbook.models import (
    ACTIVE_STATUSES, FixedAddon, QuantityItem, QuantitySelection, Reservation, ReservationDraft,
    RESERVATION_TYPES, STATUS_CONFIRMED, TYPE_SALON,
)

DATE_TYPE = click.DateTime(formats=['%Y-%m-%d'])


def _reports_errors(func):
    """Turn engine errors into a message on stderr and a non-zero exit."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (ValidationError, NotFoundError) as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
        except (RepositoryError, ConfigurationMissingError) as e:
            click.echo(f"Database error: {e}", err=True)
            sys.exit(2)
    return wrapper


def _as_date(value) -> Optional[date]:
    """click.DateTime yields a datetime; the engine wants a date."""
    return value.date() if value is not None else None


def _parse_items(values) -> Dict[str, QuantitySelection]:
    """('glasses=50', 'chairs=20') -> {'glasses': QuantitySelection(50), ...}"""
    selections = {}
    for raw in values:
        item_id, sep, quantity = raw.partition('=')
        if not sep or not item_id.strip():
            raise click.BadParameter(f"expected ITEM=QUANTITY, got {raw!r}", param_hint="'--item'")
        try:
            count = int(quantity)
        except ValueError:
            raise click.BadParameter(f"quantity for {item_id!r} must be a whole number", param_hint="'--item'")
        if count < 0:
            raise click.BadParameter(f"quantity for {item_id!r} cannot be negative", param_hint="'--item'")
        selections[item_id.strip()] = QuantitySelection(quantity=count)
    return selections


def _money(amount) -> str:
    return reports.format_currency(amount)


def _print_reservation_table(rows):
    click.echo(f"{'ID':<38} {'Date':<11} {'Client':<24} {'Type':<9} {'Status':<11} {'Guests':>6} {'Total':>14} {'Paid':>14}")
    click.echo("-" * 133)
    for r in rows:
        click.echo(
            f"{r.id:<38} {str(r.date):<11} {r.client_name[:22]:<24} {r.type:<9} {r.status:<11} "
            f"{r.guest_count:>6} {_money(r.total):>14} {_money(r.paid_amount):>14}"
        )


def _print_reservation(r: Reservation):
    pricing = lifecycle.load_pricing_config()

    click.echo(f"\n{'='*80}")
    click.echo(f"RESERVATION {r.id}: {r.client_name}")
    click.echo(f"{'='*80}")
    click.echo(f"Date:        {r.date} ({'weekend' if r.is_weekend else 'weekday'})")
    click.echo(f"Phone:       {r.phone or '(not set)'}")
    click.echo(f"Type:        {r.type}")
    click.echo(f"Status:      {r.status}")
    click.echo(f"Guests:      {r.guest_count}")

    click.echo(f"\n{'='*80}")
    click.echo("PRICE (as quoted)")
    click.echo(f"{'='*80}")
    click.echo(f"Base:               {_money(r.base_fixed)}")
    click.echo(f"Per person:         {_money(r.per_person_fixed)} x {r.guest_count} = {_money(r.per_person_fixed * r.guest_count)}")
    if r.selected_fixed_addons:
        names = [(pricing.addon(a).name if pricing.addon(a) else a) for a in r.selected_fixed_addons]
        click.echo(f"Add-ons:            {_money(r.fixed_addons_total_fixed)} ({', '.join(names)})")
    else:
        click.echo(f"Add-ons:            {_money(r.fixed_addons_total_fixed)}")
    click.echo(f"Items:              {_money(r.quantity_items_total_fixed)}")
    for item_id, line in r.quantity_selections.items():
        unit = _money(line.unit_price_snapshot) if line.is_frozen else '(unpriced)'
        click.echo(f"  {item_id:<16} {line.quantity} x {unit}")
    if r.extra_cost:
        click.echo(f"Extra:              {_money(r.extra_cost)}")
    click.echo(f"Before discount:    {_money(r.total_before_discount)}")
    if r.discount_percent:
        click.echo(f"Discount:           {r.discount_percent:g}%")
    click.echo(f"TOTAL:              {_money(r.total)}")
    if r.include_cleaning:
        click.echo(f"Cleaning expense:   {_money(r.cleaning_cost)} (not billed)")

    click.echo(f"\n{'='*80}")
    click.echo("PAYMENTS")
    click.echo(f"{'='*80}")
    if r.payment_history:
        for number, payment in enumerate(r.payment_history, start=1):
            click.echo(f"#{number:<3} {str(payment.date):<11} {_money(payment.amount):>14}")
    else:
        click.echo("No payments yet.")
    click.echo(f"Paid:      {_money(r.paid_amount)}")
    click.echo(f"Remaining: {_money(r.remaining_balance)}")

    if r.notes:
        click.echo(f"\nNotes:\n{r.notes}")
    click.echo(f"\nCreated:     {r.created_at}")
    click.echo(f"Updated:     {r.updated_at}")
    if r.deleted_at:
        click.echo(f"Trashed:     {r.deleted_at}")
    click.echo()


@click.group()
def cli():
    """SalonBook - Venue Reservation Manager"""
    configure_logging()


# =============================================================================
# RESERVATIONS COMMANDS
# =============================================================================

@cli.group('reservations')
def reservations_group():
    """Create, edit and track reservations"""
    pass


@reservations_group.command('list')
@click.option('--date', 'on_date', type=DATE_TYPE, help='Only this day (YYYY-MM-DD)')
@click.option('--month', help='Only this month (YYYY-MM)')
@_reports_errors
@log_call
def reservations_list(on_date, month):
    """List active reservations"""
    if month:
        results = reports.reservations_for_month(month)
    else:
        results = lifecycle.list_active_reservations(on_date=_as_date(on_date))

    if not results:
        click.echo("No reservations found.")
        return

    click.echo(f"\nFound {len(results)} reservations:\n")
    _print_reservation_table(results)


@reservations_group.command('search')
@click.argument('name')
@_reports_errors
@log_call
def reservations_search(name):
    """Find active reservations by client NAME (case-insensitive, typo tolerant)"""
    results = lifecycle.search_reservations(name)
    if not results:
        click.echo(f"No reservations found for '{name}'.")
        return

    click.echo(f"\nFound {len(results)} reservations:\n")
    _print_reservation_table(results)


@reservations_group.command('show')
@click.argument('reservation_id')
@_reports_errors
@log_call
def reservations_show(reservation_id):
    """Show full reservation details"""
    _print_reservation(lifecycle.get_reservation(reservation_id))


@reservations_group.command('add')
@click.option('--client', prompt='Client name', help='Client name')
@click.option('--date', 'on_date', type=DATE_TYPE, prompt='Date (YYYY-MM-DD)', help='Event date')
@click.option('--guests', type=int, prompt='Guests', default=0, help='Guest count')
@click.option('--phone', default=None, help='Contact phone')
@click.option('--type', 'type_', type=click.Choice(RESERVATION_TYPES), default=TYPE_SALON, show_default=True)
@click.option('--status', type=click.Choice(ACTIVE_STATUSES), default=STATUS_CONFIRMED, show_default=True)
@click.option('--addon', 'addons', multiple=True, help='Fixed add-on id (repeatable)')
@click.option('--item', 'items', multiple=True, help='Quantity item as ID=QTY (repeatable)')
@click.option('--cleaning', is_flag=True, help='Log a cleaning expense for this booking')
@click.option('--cleaning-cost', type=float, default=None, help='Cleaning cost (default from config)')
@click.option('--discount', type=float, default=0.0, help='Discount percent (salon only)')
@click.option('--extra', type=float, default=0.0, help='Extra cost added to the total')
@click.option('--notes', default=None)
@click.option('--base-price', type=float, default=None, help='Override the base price')
@click.option('--per-person-price', type=float, default=None, help='Override the per-person price')
@click.option('--addons-total', type=float, default=None, help='Override the add-ons total')
@click.option('--items-total', type=float, default=None, help='Override the quantity items total')
@_reports_errors
@log_call
def reservations_add(client, on_date, guests, phone, type_, status, addons, items, cleaning,
                     cleaning_cost, discount, extra, notes, base_price, per_person_price,
                     addons_total, items_total):
    """Add a new reservation, priced from the current config"""
    draft = ReservationDraft(
        client_name=client,
        date=_as_date(on_date),
        guest_count=guests,
        phone=phone,
        type=type_,
        status=status,
        selected_fixed_addons=list(addons),
        quantity_selections=_parse_items(items),
        include_cleaning=cleaning,
        cleaning_cost=cleaning_cost,
        discount_percent=discount,
        extra_cost=extra,
        notes=notes,
        base_fixed=base_price,
        per_person_fixed=per_person_price,
        fixed_addons_total_fixed=addons_total,
        quantity_items_total_fixed=items_total,
    )

    outcome = lifecycle.create_reservation(draft)
    r = outcome.reservation
    click.echo(f"\n✓ Created reservation {r.id}: {r.client_name} on {r.date} - total {_money(r.total)}")
    if outcome.expense:
        click.echo(f"✓ Logged cleaning expense: {_money(outcome.expense.amount)}")
    for warning in outcome.warnings:
        click.echo(f"Warning: {warning}", err=True)


@reservations_group.command('edit')
@click.argument('reservation_id')
@click.option('--client', default=None)
@click.option('--phone', default=None)
@click.option('--date', 'on_date', type=DATE_TYPE, default=None)
@click.option('--guests', type=int, default=None)
@click.option('--type', 'type_', type=click.Choice(RESERVATION_TYPES), default=None)
@click.option('--status', type=click.Choice(ACTIVE_STATUSES), default=None)
@click.option('--addon', 'addons', multiple=True, help='Replace add-ons with these ids')
@click.option('--clear-addons', is_flag=True, help='Remove all add-ons')
@click.option('--item', 'items', multiple=True, help='Replace quantity items (ID=QTY)')
@click.option('--clear-items', is_flag=True, help='Remove all quantity items')
@click.option('--cleaning/--no-cleaning', default=None)
@click.option('--cleaning-cost', type=float, default=None)
@click.option('--discount', type=float, default=None)
@click.option('--extra', type=float, default=None)
@click.option('--notes', default=None)
@click.option('--base-price', type=float, default=None)
@click.option('--per-person-price', type=float, default=None)
@click.option('--addons-total', type=float, default=None)
@click.option('--items-total', type=float, default=None)
@_reports_errors
@log_call
def reservations_edit(reservation_id, client, phone, on_date, guests, type_, status, addons,
                      clear_addons, items, clear_items, cleaning, cleaning_cost, discount, extra,
                      notes, base_price, per_person_price, addons_total, items_total):
    """Edit a reservation (price-relevant changes re-price it)"""
    patch = {}
    simple = {
        'client_name': client, 'phone': phone, 'guest_count': guests, 'type': type_,
        'status': status, 'include_cleaning': cleaning, 'cleaning_cost': cleaning_cost,
        'discount_percent': discount, 'extra_cost': extra, 'notes': notes,
        'base_fixed': base_price, 'per_person_fixed': per_person_price,
        'fixed_addons_total_fixed': addons_total, 'quantity_items_total_fixed': items_total,
    }
    patch.update({key: value for key, value in simple.items() if value is not None})
    if on_date is not None:
        patch['date'] = _as_date(on_date)
    if addons or clear_addons:
        patch['selected_fixed_addons'] = list(addons)
    if items or clear_items:
        patch['quantity_selections'] = _parse_items(items)

    if not patch:
        click.echo("No updates specified. See --help for the editable fields.", err=True)
        return

    r = lifecycle.update_reservation(reservation_id, patch)
    click.echo(f"✓ Updated reservation {r.id} - total {_money(r.total)}")


@reservations_group.command('status')
@click.argument('on_date', type=DATE_TYPE)
@click.argument('status', type=click.Choice(ACTIVE_STATUSES))
@_reports_errors
@log_call
def reservations_status(on_date, status):
    """Set the status of a day (creates a placeholder if the day is empty)"""
    r = lifecycle.set_status_for_date(_as_date(on_date), status)
    click.echo(f"✓ {r.date}: {r.client_name} is now {r.status}")


@reservations_group.command('trash')
@click.argument('reservation_id')
@_reports_errors
@log_call
def reservations_trash(reservation_id):
    """Move a reservation to the trash"""
    r = lifecycle.trash_reservation(reservation_id)
    click.echo(
        f"✓ Moved {r.client_name} ({r.date}) to trash. "
        f"It will be purged after {app_config.TRASH_RETENTION_DAYS} days."
    )


@reservations_group.command('recover')
@click.argument('reservation_id')
@_reports_errors
@log_call
def reservations_recover(reservation_id):
    """Recover a reservation from the trash"""
    r = lifecycle.recover_reservation(reservation_id)
    click.echo(f"✓ Recovered {r.client_name} ({r.date}) as {r.status}")


@reservations_group.command('delete')
@click.argument('reservation_id')
@click.confirmation_option(prompt='Delete this reservation permanently?')
@_reports_errors
@log_call
def reservations_delete(reservation_id):
    """Delete a reservation permanently"""
    lifecycle.delete_reservation_permanently(reservation_id)
    click.echo(f"✓ Deleted reservation {reservation_id}")


@reservations_group.command('pay')
@click.argument('reservation_id')
@click.argument('amount', type=float)
@click.option('--date', 'paid_on', type=DATE_TYPE, default=None, help='Payment date (default: today)')
@_reports_errors
@log_call
def reservations_pay(reservation_id, amount, paid_on):
    """Record a payment"""
    r = lifecycle.record_payment(reservation_id, amount, _as_date(paid_on))
    click.echo(f"✓ Payment of {_money(amount)} recorded. Remaining: {_money(r.remaining_balance)}")
    if r.is_fully_paid:
        click.echo("✓ Fully paid")


@reservations_group.command('edit-payment')
@click.argument('reservation_id')
@click.argument('number', type=int)
@click.argument('amount', type=float)
@click.option('--date', 'paid_on', type=DATE_TYPE, default=None, help='New payment date')
@_reports_errors
@log_call
def reservations_edit_payment(reservation_id, number, amount, paid_on):
    """Change payment #NUMBER (as listed by show)"""
    r = lifecycle.edit_payment(reservation_id, number - 1, amount, _as_date(paid_on))
    click.echo(f"✓ Payment #{number} updated. Paid: {_money(r.paid_amount)}, remaining: {_money(r.remaining_balance)}")


@reservations_group.command('delete-payment')
@click.argument('reservation_id')
@click.argument('number', type=int)
@_reports_errors
@log_call
def reservations_delete_payment(reservation_id, number):
    """Remove payment #NUMBER (as listed by show)"""
    r = lifecycle.delete_payment(reservation_id, number - 1)
    click.echo(f"✓ Payment #{number} removed. Paid: {_money(r.paid_amount)}, remaining: {_money(r.remaining_balance)}")


# =============================================================================
# TRASH COMMANDS
# =============================================================================

@cli.group('trash')
def trash_group():
    """Trashed reservations"""
    pass


@trash_group.command('list')
@_reports_errors
@log_call
def trash_list():
    """List trashed reservations, most recently deleted first"""
    results = lifecycle.list_trashed_reservations()
    if not results:
        click.echo("Trash is empty.")
        return

    click.echo(f"\n{len(results)} reservations in trash:\n")
    click.echo(f"{'ID':<38} {'Date':<11} {'Client':<24} {'Total':>14}  {'Trashed at'}")
    click.echo("-" * 110)
    for r in results:
        trashed_at = r.deleted_at.strftime('%Y-%m-%d %H:%M') if r.deleted_at else ''
        click.echo(f"{r.id:<38} {str(r.date):<11} {r.client_name[:22]:<24} {_money(r.total):>14}  {trashed_at}")


@trash_group.command('purge')
@_reports_errors
@log_call
def trash_purge():
    """Permanently delete reservations trashed more than the retention window ago"""
    count = lifecycle.purge_trashed()
    click.echo(f"✓ Purged {count} reservations older than {app_config.TRASH_RETENTION_DAYS} days")


# =============================================================================
# PRICING CONFIG COMMANDS
# =============================================================================

@cli.group('config')
def config_group():
    """Pricing configuration"""
    pass


@config_group.command('show')
@_reports_errors
@log_call
def config_show():
    """Show the current rate schedule"""
    cfg = lifecycle.load_pricing_config()

    click.echo(f"\n{'='*60}")
    click.echo("PRICING")
    click.echo(f"{'='*60}")
    click.echo(f"{'':<20} {'Weekday':>16} {'Weekend':>16}")
    click.echo(f"{'Base':<20} {_money(cfg.base_weekday):>16} {_money(cfg.base_weekend):>16}")
    click.echo(f"{'Per person':<20} {_money(cfg.per_person_weekday):>16} {_money(cfg.per_person_weekend):>16}")
    click.echo(f"\nPatio base:         {_money(cfg.patio_base_price)}")
    click.echo(f"Default cleaning:   {_money(cfg.default_cleaning_cost)}")

    click.echo("\nFixed add-ons:")
    for a in cfg.fixed_addons:
        click.echo(f"  {a.id:<16} {a.name:<28} {_money(a.price):>14}")
    if not cfg.fixed_addons:
        click.echo("  (none)")

    click.echo("\nQuantity items:")
    for i in cfg.quantity_items:
        click.echo(f"  {i.id:<16} {i.name:<28} {_money(i.unit_price):>14} / unit")
    if not cfg.quantity_items:
        click.echo("  (none)")
    click.echo()


@config_group.command('set')
@click.option('--base-weekday', type=float)
@click.option('--base-weekend', type=float)
@click.option('--per-person-weekday', type=float)
@click.option('--per-person-weekend', type=float)
@click.option('--patio-base', type=float)
@click.option('--cleaning', 'default_cleaning', type=float, help='Default cleaning cost')
@_reports_errors
@log_call
def config_set(base_weekday, base_weekend, per_person_weekday, per_person_weekend, patio_base, default_cleaning):
    """Change base and per-person rates"""
    updates = {
        'base_weekday': base_weekday,
        'base_weekend': base_weekend,
        'per_person_weekday': per_person_weekday,
        'per_person_weekend': per_person_weekend,
        'patio_base_price': patio_base,
        'default_cleaning_cost': default_cleaning,
    }
    updates = {key: value for key, value in updates.items() if value is not None}
    if not updates:
        click.echo("No updates specified. See --help for the rates you can set.", err=True)
        return
    negative = [key for key, value in updates.items() if value < 0]
    if negative:
        raise ValidationError(f"Rates cannot be negative: {', '.join(negative)}")

    cfg = lifecycle.load_pricing_config()
    for key, value in updates.items():
        setattr(cfg, key, value)
    lifecycle.save_pricing_config(cfg)
    click.echo("✓ Pricing updated. Existing reservations keep their quoted prices.")


@config_group.command('addon')
@click.argument('addon_id')
@click.option('--name', help='Display name')
@click.option('--price', type=float, help='Flat price')
@click.option('--remove', is_flag=True, help='Remove this add-on')
@_reports_errors
@log_call
def config_addon(addon_id, name, price, remove):
    """Add, change or remove a fixed add-on"""
    cfg = lifecycle.load_pricing_config()
    existing = cfg.addon(addon_id)

    if remove:
        if existing is None:
            raise NotFoundError('Add-on', addon_id)
        cfg.fixed_addons = [a for a in cfg.fixed_addons if a.id != addon_id]
        lifecycle.save_pricing_config(cfg)
        click.echo(f"✓ Removed add-on {addon_id}")
        return

    if price is not None and price < 0:
        raise ValidationError("Price cannot be negative")
    if existing is None:
        if price is None:
            raise ValidationError("A new add-on needs --price")
        cfg.fixed_addons.append(FixedAddon(id=addon_id, name=name or addon_id, price=price))
    else:
        existing.name = name or existing.name
        existing.price = existing.price if price is None else price

    lifecycle.save_pricing_config(cfg)
    click.echo(f"✓ Saved add-on {addon_id}")


@config_group.command('item')
@click.argument('item_id')
@click.option('--name', help='Display name')
@click.option('--unit-price', type=float, help='Price per unit')
@click.option('--remove', is_flag=True, help='Remove this item')
@_reports_errors
@log_call
def config_item(item_id, name, unit_price, remove):
    """Add, change or remove a quantity item"""
    cfg = lifecycle.load_pricing_config()
    existing = cfg.quantity_item(item_id)

    if remove:
        if existing is None:
            raise NotFoundError('Quantity item', item_id)
        cfg.quantity_items = [i for i in cfg.quantity_items if i.id != item_id]
        lifecycle.save_pricing_config(cfg)
        click.echo(f"✓ Removed quantity item {item_id}. Quoted reservations keep their unit prices.")
        return

    if unit_price is not None and unit_price < 0:
        raise ValidationError("Unit price cannot be negative")
    if existing is None:
        if unit_price is None:
            raise ValidationError("A new quantity item needs --unit-price")
        cfg.quantity_items.append(QuantityItem(id=item_id, name=name or item_id, unit_price=unit_price))
    else:
        existing.name = name or existing.name
        existing.unit_price = existing.unit_price if unit_price is None else unit_price

    lifecycle.save_pricing_config(cfg)
    click.echo(f"✓ Saved quantity item {item_id}")


# =============================================================================
# EXPENSES COMMANDS
# =============================================================================

@cli.group('expenses')
def expenses_group():
    """Business expenses"""
    pass


@expenses_group.command('list')
@click.option('--month', help='Only this month (YYYY-MM)')
@_reports_errors
@log_call
def expenses_list(month):
    """List expenses"""
    if month:
        first, last = reports.month_bounds(month)
        results = lifecycle.list_expenses(date_from=first, date_to=last)
    else:
        results = lifecycle.list_expenses()

    if not results:
        click.echo("No expenses found.")
        return

    click.echo(f"{'ID':<38} {'Date':<11} {'Name':<40} {'Amount':>14}")
    click.echo("-" * 106)
    for e in results:
        click.echo(f"{e.id:<38} {str(e.date):<11} {e.name[:38]:<40} {_money(e.amount):>14}")
    click.echo(f"\nTotal: {_money(sum(e.amount for e in results))}")


@expenses_group.command('add')
@click.argument('name')
@click.argument('amount', type=float)
@click.option('--date', 'on_date', type=DATE_TYPE, default=None, help='Expense date (default: today)')
@_reports_errors
@log_call
def expenses_add(name, amount, on_date):
    """Record an expense"""
    expense = lifecycle.add_expense(name, amount, _as_date(on_date) or lifecycle.today())
    click.echo(f"✓ Added expense {expense.id}: {expense.name} {_money(expense.amount)}")


@expenses_group.command('delete')
@click.argument('expense_id')
@_reports_errors
@log_call
def expenses_delete(expense_id):
    """Delete an expense"""
    lifecycle.delete_expense(expense_id)
    click.echo(f"✓ Deleted expense {expense_id}")


# =============================================================================
# MAINTENANCE COMMANDS
# =============================================================================

@cli.group('maintenance')
def maintenance_group():
    """One-off data maintenance jobs"""
    pass


def _echo_batch(label: str, result):
    click.echo(f"\n{label}: scanned {result.scanned}, changed {result.processed}, errors {len(result.errors)}")
    for error in result.errors:
        click.echo(f"  ✗ {error}", err=True)


@maintenance_group.command('migrate-quantities')
@_reports_errors
@log_call
def maintenance_migrate_quantities():
    """Freeze current unit prices onto quantity lines stored without one"""
    result = maintenance.migrate_quantity_format()
    _echo_batch("Quantity migration", result)


@maintenance_group.command('recalculate')
@click.option('--force', is_flag=True, help='Ignore stored price snapshots and overrides')
@click.confirmation_option(prompt='Re-price every active reservation with the current config?')
@_reports_errors
@log_call
def maintenance_recalculate(force):
    """Re-price active reservations (legacy rows only, or every row with --force)"""
    result = maintenance.recalculate_totals(force=force)
    _echo_batch("Recalculation", result)


# =============================================================================
# REPORT COMMANDS
# =============================================================================

@cli.group('report')
def report_group():
    """Monthly listings, income summaries and exports"""
    pass


def _default_month() -> str:
    today = lifecycle.today()
    return f"{today.year}-{today.month:02d}"


@report_group.command('month')
@click.argument('month', required=False)
@click.option('--include-trashed', is_flag=True)
@_reports_errors
@log_call
def report_month(month, include_trashed):
    """Reservations and totals for MONTH (YYYY-MM, default: current)"""
    month = month or _default_month()
    results = reports.reservations_for_month(month, include_trashed=include_trashed)

    click.echo(f"\n{'='*80}")
    click.echo(f"RESERVATIONS {month}")
    click.echo(f"{'='*80}\n")
    if results:
        _print_reservation_table(results)
    else:
        click.echo("No reservations this month.")

    stats = reports.summarize(results)
    click.echo(f"\nTotal reservations:     {stats['count']}")
    click.echo(f"Confirmed reservations: {stats['confirmed']}")
    click.echo(f"Average guests:         {stats['average_guests']}")
    click.echo(f"Income:                 {_money(stats['income'])}")
    click.echo(f"Paid:                   {_money(stats['paid'])}")
    click.echo(f"Outstanding:            {_money(stats['outstanding'])}")
    click.echo()


@report_group.command('summary')
@click.option('--period', type=click.Choice(reports.PERIODS), default='month', show_default=True)
@_reports_errors
@log_call
def report_summary(period):
    """Income against expenses grouped by week, month or year"""
    rows = reports.financial_summary(
        lifecycle.list_active_reservations(),
        lifecycle.list_expenses(),
        period,
    )
    if not rows:
        click.echo("Nothing to summarize yet.")
        return

    click.echo(f"{'Period':<12} {'Income':>16} {'Expenses':>16} {'Profit':>16} {'Loss':>16}")
    click.echo("-" * 80)
    for row in rows:
        click.echo(
            f"{row['key']:<12} {_money(row['income']):>16} {_money(row['expenses']):>16} "
            f"{_money(row['profit']):>16} {_money(row['loss']):>16}"
        )


@report_group.command('alerts')
@_reports_errors
@log_call
def report_alerts():
    """Open balances on bookings due within 30 days or already past"""
    alerts = reports.payment_alerts(lifecycle.list_active_reservations(), lifecycle.today())
    if not alerts:
        click.echo("No open balances coming due.")
        return

    click.echo(f"\n{'Due':<8} {'Date':<11} {'Client':<24} {'Days':>5} {'Remaining':>14}")
    click.echo("-" * 66)
    for alert in alerts:
        r = alert['reservation']
        label = 'OVERDUE' if alert['days_until'] < 0 else alert['severity'].upper()
        click.echo(
            f"{label:<8} {str(r.date):<11} {r.client_name[:22]:<24} "
            f"{alert['days_until']:>5} {_money(alert['remaining']):>14}"
        )


@report_group.command('export')
@click.argument('month', required=False)
@click.option('--output', type=click.Path(dir_okay=False), help='Target .xlsx file')
@_reports_errors
@log_call
def report_export(month, output):
    """Export MONTH (default: current) to a backup spreadsheet"""
    month = month or _default_month()
    results = reports.reservations_for_month(month)
    path = Path(output) if output else Path(app_config.EXPORT_DIR) / f"reservations-{month}.xlsx"
    written = reports.export_month(path, results, lifecycle.load_pricing_config())
    click.echo(f"✓ Exported {len(results)} reservations to {written}")


# =============================================================================
# DATABASE
# =============================================================================

@cli.group('db')
def db_group():
    """Database setup"""
    pass


@db_group.command('init')
@_reports_errors
@log_call
def db_init():
    """Create tables (safe to re-run) and seed the default pricing"""
    try:
        init_schema()
    except Exception as e:
        logging.getLogger("salonbook").error(f"db init failed: {e}", exc_info=True)
        click.echo(f"Database error: {e}", err=True)
        sys.exit(2)
    lifecycle.load_pricing_config()
    click.echo("✓ Database ready")


# =============================================================================
# MAIN
# =============================================================================

if __name__ == '__main__':
    cli()
