"""
Pricing Engine
Pure functions turning a reservation draft plus the rate schedule into a priced
breakdown. No database access, no logging, no exceptions for odd input: unknown
catalog ids and missing numbers simply contribute zero.
"""

from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Optional

from salonbook.models import (
    PricingConfig, PricingResult, PriceBreakdown, QuantitySelection, ReservationDraft,
    TYPE_PATIO, TYPE_SALON,
)

_CENT = Decimal("0.01")


def is_weekend(day: date) -> bool:
    """Saturday or Sunday."""
    return day.weekday() >= 5


def _number(value) -> float:
    """Coerce to float; anything non-numeric counts as zero."""
    if isinstance(value, bool):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _count(value) -> int:
    return int(_number(value))


def round_money(value) -> float:
    """
    Round to cents the way a NUMERIC(14, 2) column stores a float parameter:
    from its repr, half away from zero.
    """
    return float(Decimal(repr(_number(value))).quantize(_CENT, rounding=ROUND_HALF_UP))


def _override(value: Optional[float], reprice: bool) -> Optional[float]:
    if reprice or value is None:
        return None
    return _number(value)


def price_quantity_selections(
    selections: Dict[str, QuantitySelection],
    config: PricingConfig,
    reprice: bool = False,
) -> Dict[str, QuantitySelection]:
    """
    Freeze unit prices onto quantity selections.

    A line that already carries a snapshot keeps it (unless reprice=True).
    Unfrozen lines take the live catalog price; unfrozen lines whose item is
    no longer in the catalog are dropped.
    """
    priced = {}
    for item_id, selection in (selections or {}).items():
        quantity = _count(getattr(selection, 'quantity', 0))
        snapshot = getattr(selection, 'unit_price_snapshot', None)
        if snapshot is not None and not reprice:
            priced[item_id] = QuantitySelection(quantity=quantity, unit_price_snapshot=_number(snapshot))
            continue
        item = config.quantity_item(item_id)
        if item is None:
            continue
        priced[item_id] = QuantitySelection(quantity=quantity, unit_price_snapshot=_number(item.unit_price))
    return priced


def compute_total(draft: ReservationDraft, config: PricingConfig, reprice: bool = False) -> PricingResult:
    """
    Price a reservation draft.

    Args:
        draft: reservation attributes (date, headcount, selections, discount, ...)
        config: current rate schedule
        reprice: ignore frozen unit prices and explicit overrides, price
                 everything from the live config (forced batch recalculation)

    Cleaning cost is reported separately and never added to the total.
    The discount percent is applied as given; range checks happen in
    reservations.validate_draft.
    """
    weekend = is_weekend(draft.date) if draft.date else False
    patio = draft.type == TYPE_PATIO

    base_override = _override(draft.base_fixed, reprice)
    if base_override is not None:
        base = base_override
    elif patio:
        base = _number(config.patio_base_price)
    else:
        base = _number(config.base_weekend if weekend else config.base_weekday)

    if patio:
        per_person = 0.0
    else:
        per_person_override = _override(draft.per_person_fixed, reprice)
        if per_person_override is not None:
            per_person = per_person_override
        else:
            per_person = _number(config.per_person_weekend if weekend else config.per_person_weekday)

    # Patio bookings never carry salon extras
    if patio:
        addons_total = 0.0
        selections = {}
        items_total = 0.0
    else:
        addons_override = _override(draft.fixed_addons_total_fixed, reprice)
        if addons_override is not None:
            addons_total = addons_override
        else:
            addons_total = 0.0
            for addon_id in draft.selected_fixed_addons or []:
                addon = config.addon(addon_id)
                if addon is not None:
                    addons_total += _number(addon.price)

        selections = price_quantity_selections(draft.quantity_selections, config, reprice=reprice)
        items_override = _override(draft.quantity_items_total_fixed, reprice)
        if items_override is not None:
            items_total = items_override
        else:
            items_total = sum(s.quantity * s.unit_price_snapshot for s in selections.values())

    extra_cost = _number(draft.extra_cost)
    guests = _number(draft.guest_count)

    total_before_discount = base + guests * per_person + addons_total + items_total + extra_cost

    discount_amount = 0.0
    if draft.type == TYPE_SALON:
        discount_amount = total_before_discount * _number(draft.discount_percent) / 100

    cleaning_cost = 0.0
    if draft.include_cleaning and draft.type == TYPE_SALON:
        if draft.cleaning_cost is None:
            cleaning_cost = _number(config.default_cleaning_cost)
        else:
            cleaning_cost = _number(draft.cleaning_cost)

    return PricingResult(
        total=total_before_discount - discount_amount,
        total_before_discount=total_before_discount,
        discount_amount=discount_amount,
        is_weekend=weekend,
        breakdown=PriceBreakdown(
            base=base,
            per_person=per_person,
            fixed_addons_total=addons_total,
            quantity_items_total=items_total,
            patio=_number(config.patio_base_price) if patio else 0.0,
        ),
        cleaning_cost=cleaning_cost,
        extra_cost=extra_cost,
        quantity_selections=selections,
    )
