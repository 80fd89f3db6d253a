"""
Repository - Database Operations
Row-shaped CRUD for pricing config, reservations and expenses. This module is
the only place that knows column names and JSON layouts; everything above it
works with the dataclasses in salonbook.models.

Driver failures are re-raised as RepositoryError with the SQLSTATE code,
detail and hint preserved.
"""

import logging
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

import psycopg2
from psycopg2.extras import Json

from salonbook.config import config
from salonbook.db.connection import get_db_cursor
from salonbook.engine.errors import RepositoryError, ValidationError
from salonbook.models import (
    Expense, FixedAddon, Payment, PricingConfig, QuantityItem, QuantitySelection, Reservation,
    STATUS_TRASHED,
)

logger = logging.getLogger(__name__)

# Allowlist for dynamic UPDATE queries: column names never come from user input directly
_RESERVATION_COLUMNS = {
    'client_name', 'phone', 'date', 'guest_count', 'type', 'status',
    'selected_fixed_addons', 'quantity_selections', 'include_cleaning', 'cleaning_cost',
    'discount_percent', 'extra_cost', 'base_fixed', 'per_person_fixed',
    'fixed_addons_total_fixed', 'quantity_items_total_fixed', 'total',
    'total_before_discount', 'is_weekend', 'paid_amount', 'payment_history', 'notes',
    'deleted_at',
}

_INSERT_COLUMNS = ['id', 'created_at'] + sorted(_RESERVATION_COLUMNS)


def _validate_columns(updates: Dict[str, Any], allowed: set, entity: str) -> None:
    """Raise ValidationError if any key in updates is not an allowed column name."""
    invalid = set(updates.keys()) - allowed
    if invalid:
        raise ValidationError(f"Invalid {entity} fields: {sorted(invalid)}")


@contextmanager
def _cursor(action: str):
    """get_db_cursor() with driver errors translated to RepositoryError."""
    try:
        with get_db_cursor() as cur:
            yield cur
    except psycopg2.Error as exc:
        error = RepositoryError.from_driver(action, exc)
        logger.error(error.describe())
        raise error from exc


# =============================================================================
# VALUE CODECS
# =============================================================================

def _money(value) -> float:
    if value is None:
        return 0.0
    if isinstance(value, Decimal):
        return float(value)
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _to_date(value) -> Optional[date]:
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def decode_quantity_selections(raw) -> Dict[str, QuantitySelection]:
    """
    Normalize stored quantity selections to QuantitySelection objects.

    Accepts both shapes found in the store: the structured
    {"quantity": n, "unit_price_snapshot": p} and the legacy bare count n.
    A legacy count becomes an unfrozen selection (unit_price_snapshot=None).
    """
    selections = {}
    if not isinstance(raw, dict):
        return selections
    for item_id, value in raw.items():
        if isinstance(value, QuantitySelection):
            selections[item_id] = value
        elif isinstance(value, dict):
            snapshot = value.get('unit_price_snapshot')
            selections[item_id] = QuantitySelection(
                quantity=int(_money(value.get('quantity'))),
                unit_price_snapshot=None if snapshot is None else _money(snapshot),
            )
        elif isinstance(value, (int, float, Decimal, str)) and not isinstance(value, bool):
            selections[item_id] = QuantitySelection(quantity=int(_money(value)))
        else:
            logger.warning(f"Dropping unreadable quantity selection {item_id!r}: {value!r}")
    return selections


def encode_quantity_selections(selections: Dict[str, QuantitySelection]) -> Dict[str, Any]:
    return {
        item_id: {'quantity': s.quantity, 'unit_price_snapshot': s.unit_price_snapshot}
        for item_id, s in (selections or {}).items()
    }


def decode_payments(raw) -> List[Payment]:
    payments = []
    for entry in raw or []:
        if isinstance(entry, Payment):
            payments.append(entry)
        elif isinstance(entry, dict):
            payments.append(Payment(date=_to_date(entry.get('date')), amount=_money(entry.get('amount'))))
    return payments


def encode_payments(payments: List[Payment]) -> List[Dict[str, Any]]:
    return [
        {'date': p.date.isoformat() if p.date else None, 'amount': p.amount}
        for p in payments or []
    ]


def _encode_column(column: str, value):
    """Adapt a Python value for its reservations column."""
    if column == 'quantity_selections':
        return Json(encode_quantity_selections(value))
    if column == 'payment_history':
        return Json(encode_payments(value))
    if column == 'selected_fixed_addons':
        return Json(list(value or []))
    return value


def _row_to_reservation(row: Dict[str, Any]) -> Reservation:
    return Reservation(
        id=row['id'],
        client_name=row.get('client_name') or '',
        phone=row.get('phone'),
        date=_to_date(row.get('date')),
        guest_count=int(row.get('guest_count') or 0),
        type=row.get('type') or 'salon',
        status=row.get('status') or 'interested',
        selected_fixed_addons=list(row.get('selected_fixed_addons') or []),
        quantity_selections=decode_quantity_selections(row.get('quantity_selections')),
        include_cleaning=bool(row.get('include_cleaning')),
        cleaning_cost=_money(row.get('cleaning_cost')),
        discount_percent=_money(row.get('discount_percent')),
        extra_cost=_money(row.get('extra_cost')),
        base_fixed=_money(row.get('base_fixed')),
        per_person_fixed=_money(row.get('per_person_fixed')),
        fixed_addons_total_fixed=_money(row.get('fixed_addons_total_fixed')),
        quantity_items_total_fixed=_money(row.get('quantity_items_total_fixed')),
        total=_money(row.get('total')),
        total_before_discount=_money(row.get('total_before_discount')),
        is_weekend=bool(row.get('is_weekend')),
        paid_amount=_money(row.get('paid_amount')),
        payment_history=decode_payments(row.get('payment_history')),
        notes=row.get('notes'),
        created_at=row.get('created_at'),
        updated_at=row.get('updated_at'),
        deleted_at=row.get('deleted_at'),
    )


def _row_to_expense(row: Dict[str, Any]) -> Expense:
    return Expense(
        id=row['id'],
        name=row.get('name') or '',
        amount=_money(row.get('amount')),
        date=_to_date(row.get('date')),
    )


def _row_to_config(row: Dict[str, Any]) -> PricingConfig:
    return PricingConfig(
        base_weekday=_money(row.get('base_weekday')),
        base_weekend=_money(row.get('base_weekend')),
        per_person_weekday=_money(row.get('per_person_weekday')),
        per_person_weekend=_money(row.get('per_person_weekend')),
        patio_base_price=_money(row.get('patio_base_price')),
        default_cleaning_cost=_money(row.get('default_cleaning_cost')),
        fixed_addons=[
            FixedAddon(id=a.get('id', ''), name=a.get('name', ''), price=_money(a.get('price')))
            for a in row.get('fixed_addons') or []
        ],
        quantity_items=[
            QuantityItem(id=i.get('id', ''), name=i.get('name', ''), unit_price=_money(i.get('unit_price')))
            for i in row.get('quantity_items') or []
        ],
    )


# =============================================================================
# PRICING CONFIG
# =============================================================================

def get_config() -> Optional[PricingConfig]:
    """Return the singleton pricing config, or None if the row is missing."""
    with _cursor('load pricing config') as cur:
        cur.execute("SELECT * FROM pricing_config WHERE id = %s", (config.PRICING_CONFIG_ID,))
        row = cur.fetchone()
    if row is None:
        logger.debug("get_config: no pricing config row")
        return None
    return _row_to_config(row)


def upsert_config(cfg: PricingConfig) -> PricingConfig:
    """Insert or overwrite the singleton pricing config."""
    params = {
        'id': config.PRICING_CONFIG_ID,
        'base_weekday': cfg.base_weekday,
        'base_weekend': cfg.base_weekend,
        'per_person_weekday': cfg.per_person_weekday,
        'per_person_weekend': cfg.per_person_weekend,
        'patio_base_price': cfg.patio_base_price,
        'default_cleaning_cost': cfg.default_cleaning_cost,
        'fixed_addons': Json([{'id': a.id, 'name': a.name, 'price': a.price} for a in cfg.fixed_addons]),
        'quantity_items': Json([
            {'id': i.id, 'name': i.name, 'unit_price': i.unit_price} for i in cfg.quantity_items
        ]),
    }
    with _cursor('save pricing config') as cur:
        cur.execute("""
            INSERT INTO pricing_config (
                id, base_weekday, base_weekend, per_person_weekday, per_person_weekend,
                patio_base_price, default_cleaning_cost, fixed_addons, quantity_items, updated_at
            ) VALUES (
                %(id)s, %(base_weekday)s, %(base_weekend)s, %(per_person_weekday)s,
                %(per_person_weekend)s, %(patio_base_price)s, %(default_cleaning_cost)s,
                %(fixed_addons)s, %(quantity_items)s, NOW()
            )
            ON CONFLICT (id) DO UPDATE SET
                base_weekday = EXCLUDED.base_weekday,
                base_weekend = EXCLUDED.base_weekend,
                per_person_weekday = EXCLUDED.per_person_weekday,
                per_person_weekend = EXCLUDED.per_person_weekend,
                patio_base_price = EXCLUDED.patio_base_price,
                default_cleaning_cost = EXCLUDED.default_cleaning_cost,
                fixed_addons = EXCLUDED.fixed_addons,
                quantity_items = EXCLUDED.quantity_items,
                updated_at = NOW()
            RETURNING *
        """, params)
        row = cur.fetchone()
    logger.info("Saved pricing config")
    return _row_to_config(row)


# =============================================================================
# RESERVATIONS
# =============================================================================

def insert_reservation(reservation: Reservation) -> Reservation:
    """Insert a fully priced reservation row and return it as stored."""
    params = {col: _encode_column(col, getattr(reservation, col)) for col in _INSERT_COLUMNS}
    columns = ', '.join(_INSERT_COLUMNS)
    placeholders = ', '.join(f"%({col})s" for col in _INSERT_COLUMNS)

    with _cursor('insert reservation') as cur:
        cur.execute(f"""
            INSERT INTO reservations ({columns}, updated_at)
            VALUES ({placeholders}, NOW())
            RETURNING *
        """, params)
        row = cur.fetchone()
    return _row_to_reservation(row)


def update_reservation(reservation_id: str, fields: Dict[str, Any]) -> Optional[Reservation]:
    """
    Write the given columns on one reservation.
    Returns the updated row, or None if the id does not exist.
    """
    if not fields:
        return get_reservation(reservation_id)

    # Guard: only known columns may appear in the SET clause
    _validate_columns(fields, _RESERVATION_COLUMNS, 'reservation')

    set_clause = ', '.join(f"{key} = %({key})s" for key in fields)
    params = {key: _encode_column(key, value) for key, value in fields.items()}
    params['reservation_id'] = reservation_id

    with _cursor('update reservation') as cur:
        cur.execute(f"""
            UPDATE reservations
            SET {set_clause}, updated_at = NOW()
            WHERE id = %(reservation_id)s
            RETURNING *
        """, params)
        row = cur.fetchone()

    if row is None:
        logger.debug(f"update_reservation: id={reservation_id} not found")
        return None
    return _row_to_reservation(row)


def get_reservation(reservation_id: str) -> Optional[Reservation]:
    """Get a reservation by id, trashed ones included."""
    with _cursor('load reservation') as cur:
        cur.execute("SELECT * FROM reservations WHERE id = %s", (reservation_id,))
        row = cur.fetchone()
    if row is None:
        logger.debug(f"get_reservation: id={reservation_id} not found")
        return None
    return _row_to_reservation(row)


def list_reservations(
    on_date: Optional[date] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    include_trashed: bool = False,
    newest_first: bool = False,
) -> List[Reservation]:
    """
    List reservations with optional date filters.
    Active only unless include_trashed. Ordered by event date ascending, or by
    creation time descending when newest_first.
    """
    conditions = []
    params = {'trashed': STATUS_TRASHED}

    if not include_trashed:
        conditions.append("status <> %(trashed)s")
    if on_date:
        conditions.append("date = %(on_date)s")
        params['on_date'] = on_date
    if date_from:
        conditions.append("date >= %(date_from)s")
        params['date_from'] = date_from
    if date_to:
        conditions.append("date <= %(date_to)s")
        params['date_to'] = date_to

    where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""
    order = "created_at DESC" if newest_first else "date ASC, created_at ASC"

    with _cursor('list reservations') as cur:
        cur.execute(f"""
            SELECT * FROM reservations
            {where_clause}
            ORDER BY {order}
        """, params)
        rows = cur.fetchall()

    logger.debug(f"list_reservations: {len(rows)} rows (on_date={on_date}, from={date_from}, to={date_to})")
    return [_row_to_reservation(row) for row in rows]


def list_active(on_date: Optional[date] = None, newest_first: bool = False) -> List[Reservation]:
    """Active (non-trashed) reservations, optionally for one date."""
    return list_reservations(on_date=on_date, newest_first=newest_first)


def list_trashed() -> List[Reservation]:
    """Trashed reservations, most recently deleted first."""
    with _cursor('list trash') as cur:
        cur.execute("""
            SELECT * FROM reservations
            WHERE status = %s
            ORDER BY deleted_at DESC NULLS LAST
        """, (STATUS_TRASHED,))
        rows = cur.fetchall()
    logger.debug(f"list_trashed: {len(rows)} rows")
    return [_row_to_reservation(row) for row in rows]


def delete_reservation(reservation_id: str) -> bool:
    """Hard delete one reservation. Returns False if it did not exist."""
    with _cursor('delete reservation') as cur:
        cur.execute("DELETE FROM reservations WHERE id = %s", (reservation_id,))
        deleted = cur.rowcount > 0
    if deleted:
        logger.info(f"Deleted reservation {reservation_id} permanently")
    return deleted


def delete_trashed_before(cutoff: datetime) -> int:
    """Hard delete trashed reservations whose deleted_at is older than cutoff."""
    with _cursor('purge trash') as cur:
        cur.execute("""
            DELETE FROM reservations
            WHERE status = %s AND deleted_at < %s
        """, (STATUS_TRASHED, cutoff))
        count = cur.rowcount
    logger.info(f"Purged {count} trashed reservations deleted before {cutoff.isoformat()}")
    return count


# =============================================================================
# EXPENSES
# =============================================================================

def insert_expense(expense: Expense) -> Expense:
    with _cursor('insert expense') as cur:
        cur.execute("""
            INSERT INTO expenses (id, name, amount, date, created_at)
            VALUES (%(id)s, %(name)s, %(amount)s, %(date)s, NOW())
            RETURNING *
        """, expense.__dict__)
        row = cur.fetchone()
    return _row_to_expense(row)


def delete_expense(expense_id: str) -> bool:
    with _cursor('delete expense') as cur:
        cur.execute("DELETE FROM expenses WHERE id = %s", (expense_id,))
        return cur.rowcount > 0


def list_expenses(date_from: Optional[date] = None, date_to: Optional[date] = None) -> List[Expense]:
    """Expenses ordered by date, optionally within [date_from, date_to]."""
    conditions = []
    params = {}
    if date_from:
        conditions.append("date >= %(date_from)s")
        params['date_from'] = date_from
    if date_to:
        conditions.append("date <= %(date_to)s")
        params['date_to'] = date_to

    where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""

    with _cursor('list expenses') as cur:
        cur.execute(f"""
            SELECT * FROM expenses
            {where_clause}
            ORDER BY date ASC, created_at ASC
        """, params)
        rows = cur.fetchall()
    logger.debug(f"list_expenses: {len(rows)} rows")
    return [_row_to_expense(row) for row in rows]
