"""
Maintenance jobs: quantity-format migration, batch re-pricing and bulk import.

Each job loads the pricing config and the rows it needs up front (failure
there is fatal), then works row by row: a failing row is logged and reported
in the BatchResult while the rest continue.
"""

import logging
from dataclasses import replace
from typing import Iterable

from salonbook.bus.events import (
    bus, EVENT_IMPORT_COMPLETE, EVENT_QUANTITIES_MIGRATED, EVENT_TOTALS_RECALCULATED,
)
from salonbook.engine import repository as repo
from salonbook.engine import reservations
from salonbook.engine.pricing import compute_total, price_quantity_selections, round_money
from salonbook.models import BatchResult, ReservationDraft, TYPE_MIGRATED

logger = logging.getLogger(__name__)


def migrate_quantity_format() -> BatchResult:
    """
    Freeze the live unit price onto every quantity line that has none.

    Lines already carrying a snapshot are left alone. Lines whose item is
    gone from the catalog are dropped. Only quantity_selections is written;
    stored totals are not touched.
    """
    cfg = reservations.load_pricing_config()
    rows = repo.list_active()
    result = BatchResult(scanned=len(rows))

    for reservation in rows:
        if all(s.is_frozen for s in reservation.quantity_selections.values()):
            continue
        try:
            migrated = price_quantity_selections(reservation.quantity_selections, cfg)
            dropped = sorted(set(reservation.quantity_selections) - set(migrated))
            if dropped:
                logger.info(f"Reservation {reservation.id}: dropping unpriced lines for removed items {dropped}")
            repo.update_reservation(reservation.id, {'quantity_selections': migrated})
            result.processed += 1
        except Exception as exc:
            message = f"{reservation.id} ({reservation.client_name}): {exc}"
            logger.warning(f"Quantity migration failed for {message}")
            result.errors.append(message)

    logger.info(
        f"Quantity migration: scanned={result.scanned} migrated={result.processed} errors={len(result.errors)}"
    )
    bus.emit(EVENT_QUANTITIES_MIGRATED, {'result': result})
    return result


def _snapshot_overrides(reservation) -> dict:
    """
    Stored fixed prices to re-price a row with. A row whose fixed-price
    columns are all zero predates snapshots and is priced from the live
    config; any other row keeps every stored component.
    """
    fixed = {
        'base_fixed': reservation.base_fixed,
        'per_person_fixed': reservation.per_person_fixed,
        'fixed_addons_total_fixed': reservation.fixed_addons_total_fixed,
        'quantity_items_total_fixed': reservation.quantity_items_total_fixed,
    }
    if not any(fixed.values()):
        return {}
    return fixed


def recalculate_totals(force: bool = False) -> BatchResult:
    """
    Re-price active reservations against the current config.

    Rows carrying a fixed-price snapshot keep it (and their frozen unit
    prices), so only legacy rows without one pick up live rates. With
    force=True every snapshot and override is ignored and the whole row is
    priced from the live config. Discount, cleaning and extra cost are kept
    either way. A row is written only when its rounded total changes, so
    running it twice in a row updates nothing the second time.
    Status-by-date placeholders are skipped.
    """
    cfg = reservations.load_pricing_config()
    rows = repo.list_active()
    result = BatchResult(scanned=len(rows))

    for reservation in rows:
        if reservation.is_placeholder:
            continue
        try:
            draft = reservations.draft_from_reservation(reservation)
            if not force:
                draft = replace(draft, **_snapshot_overrides(reservation))
            priced = compute_total(draft, cfg, reprice=force)
            new_total = round_money(priced.total)
            if new_total == round_money(reservation.total):
                continue
            fields = reservations.snapshot_fields(priced)
            fields['total'] = new_total
            fields['total_before_discount'] = round_money(priced.total_before_discount)
            repo.update_reservation(reservation.id, fields)
            logger.info(f"Reservation {reservation.id}: total {reservation.total} -> {new_total}")
            result.processed += 1
        except Exception as exc:
            message = f"{reservation.id} ({reservation.client_name}): {exc}"
            logger.warning(f"Recalculation failed for {message}")
            result.errors.append(message)

    logger.info(
        f"Recalculation{' (forced)' if force else ''}: scanned={result.scanned} "
        f"updated={result.processed} errors={len(result.errors)}"
    )
    bus.emit(EVENT_TOTALS_RECALCULATED, {'result': result})
    return result


def import_drafts(drafts: Iterable[ReservationDraft], dry_run: bool = False) -> BatchResult:
    """
    Create one reservation per draft.

    Drafts without a type are tagged 'migrated'. With dry_run, drafts are
    validated and priced but nothing is written.
    """
    reservations.load_pricing_config()
    result = BatchResult()

    for index, draft in enumerate(drafts, start=1):
        result.scanned += 1
        if not draft.type:
            draft = replace(draft, type=TYPE_MIGRATED)
        label = f"Row {index} ({draft.client_name or '?'}, {draft.date})"
        try:
            if dry_run:
                reservations.validate_draft(draft)
                logger.debug(f"[DRY RUN] {label}: would import")
            else:
                outcome = reservations.create_reservation(draft)
                for warning in outcome.warnings:
                    logger.warning(f"{label}: {warning}")
            result.processed += 1
        except Exception as exc:
            logger.warning(f"{label}: {exc}")
            result.errors.append(f"{label}: {exc}")

    logger.info(
        f"Import{' (dry run)' if dry_run else ''}: rows={result.scanned} "
        f"imported={result.processed} errors={len(result.errors)}"
    )
    bus.emit(EVENT_IMPORT_COMPLETE, {'result': result})
    return result
