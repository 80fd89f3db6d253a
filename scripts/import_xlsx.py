#!/usr/bin/env python3
"""
SalonBook Spreadsheet Importer
Loads reservations from an .xlsx file into the database.

Two sheet shapes are understood:
- SalonBook backups (written by `report export`): every column maps 1:1 and
  the quoted prices are restored exactly.
- Hand-kept booking sheets: columns are matched by fuzzy header name (date,
  client/event, guests, phone, budget, deposit, paid, notes) and the budget
  becomes the reservation's fixed total.

Features:
- Dry-run mode (validates and reports, writes nothing)
- Per-row errors reported; one bad row never stops the import
- Comprehensive logging
"""

import argparse
import json
import logging
import sys
from datetime import date, datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pandas as pd
from rapidfuzz import fuzz

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from salonbook.engine import maintenance  # noqa: E402
from salonbook.engine import repository  # noqa: E402
from salonbook.engine import reservations as lifecycle  # noqa: E402
from salonbook.models import (  # noqa: E402
    FixedAddon, Payment, ReservationDraft, RESERVATION_TYPES,
    STATUS_CONFIRMED, STATUS_DEPOSITED, STATUS_INTERESTED,
)

XLSX_PATH = project_root / "data" / "reservations.xlsx"

DEFAULT_GUESTS = 10
HEADER_MATCH_THRESHOLD = 85
ADDON_MATCH_THRESHOLD = 85


# =============================================================================
# CELL HELPERS
# =============================================================================

def cell(row: pd.Series, column: Optional[str]):
    """Value of row[column], or None for missing columns and empty cells."""
    if column is None or column not in row.index:
        return None
    value = row[column]
    if isinstance(value, str):
        value = value.strip()
        return value or None
    if pd.isna(value):
        return None
    return value


def to_number(value, default: float = 0.0) -> float:
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, str):
        value = value.replace('$', '').replace(' ', '')
        # 1.234,50 -> 1234.50
        if ',' in value and '.' in value:
            value = value.replace('.', '').replace(',', '.')
        elif ',' in value:
            value = value.replace(',', '.')
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def to_text(value) -> Optional[str]:
    """Cell as text; whole floats (phone numbers read as numbers) lose the '.0'."""
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip() or None


def parse_date(value) -> Optional[date]:
    """
    Accepts Excel dates, ISO strings (2026-03-14) and day-first strings
    (14/03/2026). Returns None when the value is not a recognizable date.
    """
    if value is None:
        return None
    if isinstance(value, pd.Timestamp):
        return value.date()
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    for fmt in ('%Y-%m-%d', '%d/%m/%Y', '%d/%m/%y', '%d-%m-%Y'):
        try:
            return datetime.strptime(text[:10] if fmt == '%Y-%m-%d' else text, fmt).date()
        except ValueError:
            continue
    return None


def parse_status(value, paid: float = 0.0, total: float = 0.0) -> str:
    """Status from an explicit label, else inferred from paid vs. total."""
    label = (str(value).lower() if value is not None else '')
    if 'confirm' in label:
        return STATUS_CONFIRMED
    if 'deposit' in label or 'señ' in label or 'sena' in label:
        return STATUS_DEPOSITED
    if 'inter' in label:
        return STATUS_INTERESTED

    if total > 0 and paid >= total:
        return STATUS_CONFIRMED
    if paid > 0:
        return STATUS_DEPOSITED
    return STATUS_INTERESTED


def load_json(value, default):
    if value is None:
        return default
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except ValueError:
        logging.warning(f"Ignoring unreadable JSON cell: {value[:60]!r}")
        return default


# =============================================================================
# BACKUP SHAPE (our own export)
# =============================================================================

BACKUP_MARKERS = ('fixedaddonids', 'quantityselections', 'discountpercent')


def is_backup_shape(columns) -> bool:
    lowered = {str(c).strip().lower() for c in columns}
    return any(marker in lowered for marker in BACKUP_MARKERS)


def match_addon_names(names, catalog: List[FixedAddon]) -> List[str]:
    """
    Resolve comma-separated add-on display names to catalog ids.
    Names with no close catalog match are dropped.
    """
    ids: List[str] = []
    for name in (n.strip() for n in str(names or '').split(',')):
        if not name:
            continue
        scored = [(fuzz.ratio(name.lower(), addon.name.lower()), addon) for addon in catalog]
        score, best = max(scored, key=lambda s: s[0], default=(0, None))
        if best is not None and score >= ADDON_MATCH_THRESHOLD:
            if best.id not in ids:
                ids.append(best.id)
            logging.debug(f"Add-on '{name}' -> {best.id} (score: {score:.0f})")
        else:
            logging.warning(f"Add-on '{name}' not found in the catalog, skipped")
    return ids


def backup_row_to_draft(row: pd.Series, catalog: Optional[List[FixedAddon]] = None) -> ReservationDraft:
    """
    Rebuild a draft from an exported row, keeping every quoted price.
    Rows whose add-on ids were lost (hand-edited backups) get them back from
    the add-on names when a catalog is given.
    """
    get = {str(k).strip().lower(): k for k in row.index}

    def value(label):
        return cell(row, get.get(label.lower()))

    reservation_type = str(value('Type') or '').lower()
    if reservation_type not in RESERVATION_TYPES:
        reservation_type = ''

    addon_ids = load_json(value('FixedAddonIds'), [])
    if not addon_ids and catalog:
        addon_ids = match_addon_names(value('FixedAddonNames'), catalog)
    payments = repository.decode_payments(load_json(value('PaymentHistory'), []))
    paid = to_number(value('Paid'))

    return ReservationDraft(
        client_name=to_text(value('Client')) or '',
        date=parse_date(value('Date')),
        guest_count=int(to_number(value('Guests'))),
        phone=to_text(value('Phone')),
        type=reservation_type,
        status=parse_status(value('Status'), paid, to_number(value('Total'))),
        selected_fixed_addons=[a for a in addon_ids if isinstance(a, str)],
        quantity_selections=repository.decode_quantity_selections(load_json(value('QuantitySelections'), {})),
        include_cleaning=str(value('IncludeCleaning') or '').lower() == 'true',
        cleaning_cost=to_number(value('CleaningCost')),
        discount_percent=to_number(value('DiscountPercent')),
        extra_cost=to_number(value('ExtraCost')),
        notes=to_text(value('Notes')),
        base_fixed=to_number(value('BaseFixed')),
        per_person_fixed=to_number(value('PerPersonFixed')),
        fixed_addons_total_fixed=to_number(value('FixedAddonsTotal')),
        quantity_items_total_fixed=to_number(value('QuantityItemsTotal')),
        paid_amount=paid if paid else sum(p.amount for p in payments),
        payment_history=payments,
    )


# =============================================================================
# HAND-KEPT SHEETS (fuzzy headers)
# =============================================================================

# Header spellings seen in venue booking sheets, English and Spanish
FIELD_ALIASES = {
    'date': ['date', 'fecha'],
    'client': ['client', 'name', 'event', 'cliente', 'nombre', 'evento'],
    'guests': ['guests', 'people', 'personas', 'cant personas'],
    'phone': ['phone', 'telefono', 'teléfono'],
    'budget': ['budget', 'total', 'presupuesto', 'costo total'],
    'deposit': ['deposit', 'seña', 'sena', 'entrega'],
    'paid': ['paid', 'balance', 'saldo'],
    'notes': ['notes', 'notas', 'detalle', 'details'],
    'extras': ['vajilla', 'mesas', 'tableware', 'extras', 'etc'],
}


def match_columns(columns) -> Dict[str, str]:
    """
    Map each known field to the sheet column whose header matches it best.
    Each column is used for at most one field.
    """
    scored: List[Tuple[float, str, str]] = []
    for column in columns:
        header = str(column).strip().lower().replace('_', ' ')
        if not header or header.startswith('unnamed'):
            continue
        for field_name, aliases in FIELD_ALIASES.items():
            score = max(fuzz.partial_ratio(alias, header) if len(header) >= len(alias) else fuzz.ratio(alias, header)
                        for alias in aliases)
            if score >= HEADER_MATCH_THRESHOLD:
                scored.append((score, field_name, column))

    mapping: Dict[str, str] = {}
    used = set()
    for score, field_name, column in sorted(scored, key=lambda s: -s[0]):
        if field_name in mapping or column in used:
            continue
        mapping[field_name] = column
        used.add(column)
        logging.debug(f"Header '{column}' -> {field_name} (score: {score:.0f})")
    return mapping


def heuristic_row_to_draft(row: pd.Series, mapping: Dict[str, str], index: int) -> ReservationDraft:
    """
    Draft from a hand-kept row. The budget is carried as the fixed base price
    (per-person, add-on and item totals pinned to zero) so the imported total
    equals the quoted budget.
    """
    client = to_text(cell(row, mapping.get('client'))) or f"Reservation {index}"
    guests = to_number(cell(row, mapping.get('guests')), default=DEFAULT_GUESTS) or DEFAULT_GUESTS

    budget = to_number(cell(row, mapping.get('budget')))
    deposit_raw = cell(row, mapping.get('deposit'))
    if budget == 0 and deposit_raw is not None:
        budget = to_number(deposit_raw)

    paid = to_number(cell(row, mapping.get('paid')))
    if paid == 0 and deposit_raw is not None:
        paid = to_number(deposit_raw)
    if budget and paid > budget:
        logging.warning(f"Row {index} ({client}): paid {paid} exceeds budget {budget}")

    notes = [
        client,
        f"Deposit: {to_text(deposit_raw)}" if deposit_raw is not None else '',
        f"Extras: {to_text(cell(row, mapping.get('extras')))}" if cell(row, mapping.get('extras')) is not None else '',
        to_text(cell(row, mapping.get('notes'))) or '',
    ]

    return ReservationDraft(
        client_name=client,
        date=parse_date(cell(row, mapping.get('date'))),
        guest_count=int(guests),
        phone=to_text(cell(row, mapping.get('phone'))),
        type='',
        status=parse_status(None, paid, budget),
        notes=' | '.join(n for n in notes if n),
        base_fixed=budget,
        per_person_fixed=0.0,
        fixed_addons_total_fixed=0.0,
        quantity_items_total_fixed=0.0,
        paid_amount=paid,
        payment_history=[Payment(date=date.today(), amount=paid)] if paid > 0 else [],
    )


# =============================================================================
# SHEET READING
# =============================================================================

def read_first_sheet(path: Path) -> pd.DataFrame:
    """First sheet with any data."""
    sheets = pd.read_excel(path, sheet_name=None)
    for name, frame in sheets.items():
        if not frame.dropna(how='all').empty:
            logging.info(f"Using sheet '{name}' ({len(frame)} rows)")
            return frame
    raise ValueError(f"No data found in {path}")


def build_drafts(frame: pd.DataFrame, catalog: Optional[List[FixedAddon]] = None) -> List[ReservationDraft]:
    """One draft per sheet row."""
    if is_backup_shape(frame.columns):
        logging.info("Detected SalonBook backup layout")
        # Reservation rows end at the blank row above the summary block
        blank = frame.isna().all(axis=1).to_numpy().nonzero()[0]
        if len(blank):
            frame = frame.iloc[:blank[0]]
        return [backup_row_to_draft(row, catalog) for _, row in frame.iterrows()]

    frame = frame.dropna(how='all')

    mapping = match_columns(frame.columns)
    logging.info(f"Matched headers: {mapping}")
    if not mapping.keys() & {'date', 'client', 'budget'}:
        raise ValueError("Sheet has no recognizable date, client or budget column")

    return [
        heuristic_row_to_draft(row, mapping, index)
        for index, (_, row) in enumerate(frame.iterrows(), start=1)
    ]


# =============================================================================
# MAIN IMPORT ORCHESTRATOR
# =============================================================================

def run_import(path: Path = XLSX_PATH, dry_run: bool = False, log_level: str = "INFO") -> int:
    """Main import function."""

    # Setup logging
    log_file = project_root / "logs" / f"import_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"
    log_file.parent.mkdir(exist_ok=True)

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )

    logging.info("=" * 80)
    logging.info("SALONBOOK SPREADSHEET IMPORT")
    logging.info("=" * 80)
    logging.info(f"Mode: {'DRY-RUN' if dry_run else 'LIVE'}")
    logging.info(f"Source: {path}")
    logging.info(f"Log file: {log_file}")
    logging.info("=" * 80)

    if not path.exists():
        logging.error(f"Excel file not found: {path}")
        return 1

    try:
        frame = read_first_sheet(path)
    except Exception as e:
        logging.error(f"Failed to read Excel file: {e}", exc_info=True)
        return 1

    try:
        catalog = lifecycle.load_pricing_config().fixed_addons
        drafts = build_drafts(frame, catalog)
        result = maintenance.import_drafts(drafts, dry_run=dry_run)
    except Exception as e:
        logging.error(f"Import aborted: {e}", exc_info=True)
        return 1

    # Print summary
    logging.info("=" * 80)
    logging.info("IMPORT COMPLETE")
    logging.info("=" * 80)
    logging.info(f"Rows read: {result.scanned}")
    logging.info(f"Reservations {'validated' if dry_run else 'created'}: {result.processed}")
    logging.info(f"Errors: {len(result.errors)}")
    for error in result.errors:
        logging.info(f"  {error}")
    logging.info(f"Log file: {log_file}")
    logging.info("=" * 80)

    return 0 if result.ok else 1


# =============================================================================
# CLI
# =============================================================================

def main():
    parser = argparse.ArgumentParser(
        description="Import a reservations spreadsheet into the SalonBook database"
    )
    parser.add_argument(
        'path',
        nargs='?',
        default=str(XLSX_PATH),
        help=f"Spreadsheet to import (default: {XLSX_PATH.relative_to(project_root)})"
    )
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help="Show what would be imported without writing to database"
    )
    parser.add_argument(
        '--log-level',
        default='INFO',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help="Logging level (default: INFO)"
    )

    args = parser.parse_args()

    sys.exit(run_import(path=Path(args.path), dry_run=args.dry_run, log_level=args.log_level))


if __name__ == "__main__":
    main()
