"""
Reports
Month listings, period summaries, income/expense grouping, payment alerts and
the monthly spreadsheet export. Everything reads stored snapshot totals;
nothing here re-prices a reservation.
"""

import calendar
import json
import logging
from datetime import date, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from salonbook.config import config as app_config
from salonbook.engine import repository as repo
from salonbook.engine.errors import ValidationError
from salonbook.models import Expense, PricingConfig, Reservation, STATUS_CONFIRMED

logger = logging.getLogger(__name__)

PERIODS = ('week', 'month', 'year')

# Payment alerts: days before the event a balance still open turns red / yellow
ALERT_RED_DAYS = 7
ALERT_YELLOW_DAYS = 30
SEVERITY_RED = 'red'
SEVERITY_YELLOW = 'yellow'

# Column order of the backup spreadsheet; scripts/import_xlsx.py reads it back
EXPORT_COLUMNS = [
    'Date', 'Client', 'Phone', 'Status', 'Type', 'Guests', 'Total',
    'BaseFixed', 'PerPersonFixed', 'FixedAddonsTotal', 'QuantityItemsTotal',
    'DiscountPercent', 'IncludeCleaning', 'CleaningCost', 'ExtraCost',
    'FixedAddonIds', 'FixedAddonNames', 'QuantitySelections', 'Notes',
    'Paid', 'PaymentHistory', 'CreatedAt', 'ID',
]


def format_currency(amount) -> str:
    """1234.5 -> '$1,234.50' (symbol from CURRENCY_SYMBOL)."""
    value = float(amount or 0)
    sign = '-' if value < 0 else ''
    return f"{sign}{app_config.CURRENCY_SYMBOL}{abs(value):,.2f}"


def month_bounds(month: str):
    """'2026-03' -> (date(2026, 3, 1), date(2026, 3, 31))"""
    try:
        year, month_number = (int(part) for part in month.split('-'))
        first = date(year, month_number, 1)
    except (AttributeError, TypeError, ValueError):
        raise ValidationError(f"Month must look like YYYY-MM, got {month!r}")
    last = first.replace(day=calendar.monthrange(year, month_number)[1])
    return first, last


def reservations_for_month(month: str, include_trashed: bool = False) -> List[Reservation]:
    """Reservations whose event date falls in the month, ascending by date."""
    first, last = month_bounds(month)
    return repo.list_reservations(date_from=first, date_to=last, include_trashed=include_trashed)


def summarize(reservations: List[Reservation]) -> Dict[str, Any]:
    count = len(reservations)
    income = sum(r.total for r in reservations)
    paid = sum(r.paid_amount for r in reservations)
    return {
        'count': count,
        'confirmed': sum(1 for r in reservations if r.status == STATUS_CONFIRMED),
        'average_guests': round(sum(r.guest_count for r in reservations) / count) if count else 0,
        'income': income,
        'paid': paid,
        'outstanding': income - paid,
    }


def period_key(day: date, period: str) -> str:
    """Grouping key: Monday of the week, YYYY-MM, or YYYY."""
    if period == 'year':
        return f"{day.year}"
    if period == 'month':
        return f"{day.year}-{day.month:02d}"
    return (day - timedelta(days=day.weekday())).isoformat()


def financial_summary(
    reservations: List[Reservation],
    expenses: List[Expense],
    period: str = 'month',
) -> List[Dict[str, Any]]:
    """
    Income (reservation totals) against expenses per period.

    Each row has key, income, expenses, profit and loss; loss is reported as
    a positive number and only one of profit/loss is non-zero. Rows are
    sorted by key.
    """
    if period not in PERIODS:
        raise ValidationError(f"Period must be one of {', '.join(PERIODS)}")

    rows: Dict[str, Dict[str, Any]] = {}

    def row_for(day: date) -> Dict[str, Any]:
        key = period_key(day, period)
        return rows.setdefault(key, {'key': key, 'income': 0.0, 'expenses': 0.0, 'profit': 0.0, 'loss': 0.0})

    for reservation in reservations:
        if reservation.date:
            row_for(reservation.date)['income'] += reservation.total
    for expense in expenses:
        if expense.date:
            row_for(expense.date)['expenses'] += expense.amount

    for row in rows.values():
        net = row['income'] - row['expenses']
        row['profit'] = net if net > 0 else 0.0
        row['loss'] = -net if net < 0 else 0.0

    return [rows[key] for key in sorted(rows)]


def alert_severity(days_until: int) -> Optional[str]:
    if days_until <= ALERT_RED_DAYS:
        return SEVERITY_RED
    if days_until <= ALERT_YELLOW_DAYS:
        return SEVERITY_YELLOW
    return None


def payment_alerts(reservations: List[Reservation], today: date) -> List[Dict[str, Any]]:
    """
    Reservations that still owe money and are close to (or past) their date.

    Each alert has reservation, days_until (negative once the date has
    passed), remaining (total minus paid, never below zero) and severity:
    'red' within ALERT_RED_DAYS days or overdue, 'yellow' within
    ALERT_YELLOW_DAYS. Rows further out, fully paid or without a date are
    left out. Sorted by days_until, most urgent first.
    """
    alerts = []
    for reservation in reservations:
        if reservation.date is None:
            continue
        remaining = max(reservation.total - reservation.paid_amount, 0.0)
        if remaining <= 0:
            continue
        days_until = (reservation.date - today).days
        severity = alert_severity(days_until)
        if severity is None:
            continue
        alerts.append({
            'reservation': reservation,
            'days_until': days_until,
            'remaining': remaining,
            'severity': severity,
        })
    alerts.sort(key=lambda alert: (alert['days_until'], alert['reservation'].client_name))
    return alerts


# =============================================================================
# SPREADSHEET EXPORT
# =============================================================================

def _export_row(reservation: Reservation, pricing: PricingConfig) -> Dict[str, Any]:
    addon_names = []
    for addon_id in reservation.selected_fixed_addons:
        addon = pricing.addon(addon_id)
        addon_names.append(addon.name if addon else addon_id)

    return {
        'Date': reservation.date.isoformat() if reservation.date else '',
        'Client': reservation.client_name,
        'Phone': reservation.phone or '',
        'Status': reservation.status.upper(),
        'Type': reservation.type,
        'Guests': reservation.guest_count,
        'Total': reservation.total,
        'BaseFixed': reservation.base_fixed,
        'PerPersonFixed': reservation.per_person_fixed,
        'FixedAddonsTotal': reservation.fixed_addons_total_fixed,
        'QuantityItemsTotal': reservation.quantity_items_total_fixed,
        'DiscountPercent': reservation.discount_percent,
        'IncludeCleaning': 'true' if reservation.include_cleaning else 'false',
        'CleaningCost': reservation.cleaning_cost,
        'ExtraCost': reservation.extra_cost,
        'FixedAddonIds': json.dumps(reservation.selected_fixed_addons),
        'FixedAddonNames': ', '.join(addon_names),
        'QuantitySelections': json.dumps(repo.encode_quantity_selections(reservation.quantity_selections)),
        'Notes': reservation.notes or '',
        'Paid': reservation.paid_amount,
        'PaymentHistory': json.dumps(repo.encode_payments(reservation.payment_history)),
        'CreatedAt': reservation.created_at.isoformat() if reservation.created_at else '',
        'ID': reservation.id,
    }


def build_export_frame(reservations: List[Reservation], pricing: PricingConfig) -> pd.DataFrame:
    """One row per reservation in EXPORT_COLUMNS order."""
    return pd.DataFrame([_export_row(r, pricing) for r in reservations], columns=EXPORT_COLUMNS)


def build_summary_frame(reservations: List[Reservation]) -> pd.DataFrame:
    stats = summarize(reservations)
    return pd.DataFrame([
        ['PERIOD SUMMARY', ''],
        ['Total reservations', stats['count']],
        ['Confirmed reservations', stats['confirmed']],
        ['Average guests', f"{stats['average_guests']} guests"],
        ['Total income', format_currency(stats['income'])],
    ])


def export_month(path, reservations: List[Reservation], pricing: PricingConfig) -> Path:
    """
    Write the backup spreadsheet: reservation rows, a blank row, then the
    summary block. The reservation rows can be re-imported losslessly with
    scripts/import_xlsx.py.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    rows = build_export_frame(reservations, pricing)
    summary = build_summary_frame(reservations)

    with pd.ExcelWriter(path, engine='openpyxl') as writer:
        rows.to_excel(writer, sheet_name='Reservations', index=False)
        summary.to_excel(
            writer, sheet_name='Reservations', index=False, header=False, startrow=len(rows) + 2,
        )

    logger.info(f"Exported {len(rows)} reservations to {path}")
    return path
