"""
Data Models
Dataclasses for all entities. These are pure Python objects, no database logic.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional


# Reservation status (business lifecycle, independent of payment state)
STATUS_INTERESTED = 'interested'
STATUS_DEPOSITED = 'deposited'
STATUS_CONFIRMED = 'confirmed'
STATUS_TRASHED = 'trashed'

ACTIVE_STATUSES = (STATUS_INTERESTED, STATUS_DEPOSITED, STATUS_CONFIRMED)

# Reservation type (selects the pricing branch)
TYPE_SALON = 'salon'
TYPE_PATIO = 'patio'
TYPE_MIGRATED = 'migrated'

RESERVATION_TYPES = (TYPE_SALON, TYPE_PATIO, TYPE_MIGRATED)

PLACEHOLDER_CLIENT_NAME = 'Interested'


@dataclass
class FixedAddon:
    """Flat-price add-on a client may select (sound system, tableware, ...)"""
    id: str = ''
    name: str = ''
    price: float = 0.0


@dataclass
class QuantityItem:
    """Item billed per unit (chairs, glasses, tablecloths, ...)"""
    id: str = ''
    name: str = ''
    unit_price: float = 0.0


@dataclass
class PricingConfig:
    """The venue's rate schedule. Exactly one row exists in the store."""
    base_weekday: float = 0.0
    base_weekend: float = 0.0
    per_person_weekday: float = 0.0
    per_person_weekend: float = 0.0
    patio_base_price: float = 0.0
    default_cleaning_cost: float = 0.0
    fixed_addons: List[FixedAddon] = field(default_factory=list)
    quantity_items: List[QuantityItem] = field(default_factory=list)

    def addon(self, addon_id: str) -> Optional[FixedAddon]:
        for a in self.fixed_addons:
            if a.id == addon_id:
                return a
        return None

    def quantity_item(self, item_id: str) -> Optional[QuantityItem]:
        for i in self.quantity_items:
            if i.id == item_id:
                return i
        return None

    @classmethod
    def default(cls) -> 'PricingConfig':
        """Seed schedule inserted the first time the store has no config row."""
        return cls(
            base_weekday=100000,
            base_weekend=140000,
            per_person_weekday=3000,
            per_person_weekend=4000,
            patio_base_price=50000,
            default_cleaning_cost=20000,
            fixed_addons=[
                FixedAddon('tableware', 'Tableware', 15000),
                FixedAddon('sound', 'Sound system', 22000),
                FixedAddon('decoration', 'Basic decoration', 18000),
            ],
            quantity_items=[
                QuantityItem('glasses', 'Glasses', 120),
                QuantityItem('chairs', 'Chairs', 300),
                QuantityItem('tablecloths', 'Tablecloths', 800),
            ],
        )


@dataclass
class QuantitySelection:
    """
    A quantity-item line on a reservation.

    unit_price_snapshot is the unit price frozen when the line was priced.
    None means the line has not been priced yet (new selection, or a legacy
    row that stored a bare count) and the live catalog price applies.
    """
    quantity: int = 0
    unit_price_snapshot: Optional[float] = None

    @property
    def is_frozen(self) -> bool:
        return self.unit_price_snapshot is not None


@dataclass
class Payment:
    """One entry of a reservation's payment history"""
    date: Optional[date] = None
    amount: float = 0.0


@dataclass
class ReservationDraft:
    """
    Not-yet-persisted reservation input fed to the pricing engine.

    The *_fixed fields are explicit price overrides: None means "price from the
    live config", any number (zero included) is honored verbatim.
    """
    client_name: str = ''
    date: Optional[date] = None
    guest_count: int = 0
    phone: Optional[str] = None
    type: str = TYPE_SALON
    status: str = STATUS_CONFIRMED
    selected_fixed_addons: List[str] = field(default_factory=list)
    quantity_selections: Dict[str, QuantitySelection] = field(default_factory=dict)
    include_cleaning: bool = False
    cleaning_cost: Optional[float] = None
    discount_percent: float = 0.0
    extra_cost: float = 0.0
    notes: Optional[str] = None
    base_fixed: Optional[float] = None
    per_person_fixed: Optional[float] = None
    fixed_addons_total_fixed: Optional[float] = None
    quantity_items_total_fixed: Optional[float] = None
    # Carried over from imported spreadsheets; never priced
    paid_amount: float = 0.0
    payment_history: List[Payment] = field(default_factory=list)


@dataclass
class PriceBreakdown:
    base: float = 0.0
    per_person: float = 0.0
    fixed_addons_total: float = 0.0
    quantity_items_total: float = 0.0
    patio: float = 0.0


@dataclass
class PricingResult:
    """Output of the pricing engine for one draft"""
    total: float = 0.0
    total_before_discount: float = 0.0
    discount_amount: float = 0.0
    is_weekend: bool = False
    breakdown: PriceBreakdown = field(default_factory=PriceBreakdown)
    cleaning_cost: float = 0.0
    extra_cost: float = 0.0
    quantity_selections: Dict[str, QuantitySelection] = field(default_factory=dict)


@dataclass
class Reservation:
    """A booking of the venue for one calendar date"""
    id: Optional[str] = None
    client_name: str = ''
    phone: Optional[str] = None
    date: Optional[date] = None
    guest_count: int = 0
    type: str = TYPE_SALON
    status: str = STATUS_INTERESTED
    selected_fixed_addons: List[str] = field(default_factory=list)
    quantity_selections: Dict[str, QuantitySelection] = field(default_factory=dict)
    include_cleaning: bool = False
    cleaning_cost: float = 0.0
    discount_percent: float = 0.0
    extra_cost: float = 0.0
    base_fixed: float = 0.0
    per_person_fixed: float = 0.0
    fixed_addons_total_fixed: float = 0.0
    quantity_items_total_fixed: float = 0.0
    total: float = 0.0
    total_before_discount: float = 0.0
    is_weekend: bool = False
    paid_amount: float = 0.0
    payment_history: List[Payment] = field(default_factory=list)
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    @property
    def remaining_balance(self) -> float:
        return self.total - self.paid_amount

    @property
    def is_fully_paid(self) -> bool:
        return self.paid_amount >= self.total

    @property
    def is_active(self) -> bool:
        return self.status != STATUS_TRASHED

    @property
    def is_placeholder(self) -> bool:
        """Zero-priced row created by a status-by-date change on an empty day."""
        return (
            self.client_name == PLACEHOLDER_CLIENT_NAME
            and self.guest_count == 0
            and self.total == 0
            and not self.selected_fixed_addons
            and not self.quantity_selections
        )


@dataclass
class Expense:
    """Business expense ledger entry"""
    id: Optional[str] = None
    name: str = ''
    amount: float = 0.0
    date: Optional[date] = None


@dataclass
class CreateOutcome:
    """Result of creating a reservation, with any non-fatal side-effect warnings"""
    reservation: Reservation
    expense: Optional[Expense] = None
    warnings: List[str] = field(default_factory=list)


@dataclass
class BatchResult:
    """Outcome of a row-by-row batch job. Per-row failures land in errors."""
    scanned: int = 0
    processed: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors
