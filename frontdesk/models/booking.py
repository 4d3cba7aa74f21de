"""Booking record model.

A booking exists in two shapes:

* ``BookingRecord``: canonical, typed (``Decimal`` currency, ``int`` counts).
* ``EditDraft``: every editable field as a string, ``""`` meaning "not provided".

``load`` maps a store payload into a record, ``seed_draft`` projects a record
into a draft, and ``apply_edit`` merges a draft back over a record. None of
these touch the network.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

DISPLAY_PLACEHOLDER = "—"
ZERO = Decimal("0")
DEFAULT_TOLERANCE = Decimal("0.01")


# =============================================================================
# Enumerations
# =============================================================================


class RoomCategory(str, Enum):
    """Room categories, valued by their key in store payloads."""

    DOUBLE_BED = "doubleBed"
    TRIPLE_BED = "tripleBed"
    FOUR_BED = "fourBed"
    EXTRA_BED = "extraBed"
    KITCHEN = "kitchen"


class BookingStatus(str, Enum):
    """Booking lifecycle status."""

    CONFIRM = "Confirm"
    CANCELLED = "Cancelled"
    HOLD = "HOLD"


# Payment modes that older sheets stored in the status column
LEGACY_PAYMENT_STATUSES = {"cash"}


# =============================================================================
# Records
# =============================================================================


class BookingIdentifier(BaseModel):
    """Natural key used to locate a booking in the store."""

    model_config = ConfigDict(frozen=True)

    guest_name: str
    hotel_name: str
    check_in: str
    sheet_name: str | None = None

    def to_params(self) -> dict[str, str]:
        """Store payload keys for this identifier."""
        params = {
            "guestName": self.guest_name,
            "hotelName": self.hotel_name,
            "checkIn": self.check_in,
        }
        if self.sheet_name:
            params["sheetName"] = self.sheet_name
        return params


class RoomAllocation(BaseModel):
    """Count, nightly rate and flat discount for one room category."""

    model_config = ConfigDict(frozen=True)

    count: int = 0
    rate: Decimal = ZERO
    discount: Decimal = ZERO

    def gross(self, stay_days: int) -> Decimal:
        return self.count * self.rate * stay_days


def empty_rooms() -> dict[RoomCategory, RoomAllocation]:
    return {category: RoomAllocation() for category in RoomCategory}


def fresh_bill_amount(rooms: dict[RoomCategory, RoomAllocation], stay_days: int) -> Decimal:
    """Bill derived from the room allocation: gross for the stay minus discounts."""
    gross = sum((allocation.gross(stay_days) for allocation in rooms.values()), ZERO)
    discounts = sum((allocation.discount for allocation in rooms.values()), ZERO)
    return gross - discounts


class BookingRecord(BaseModel):
    """One booking as held by an open edit panel."""

    model_config = ConfigDict(frozen=True)

    # Identity
    guest_name: str = ""
    contact: str = ""
    hotel_name: str = ""
    date_booked: str = ""
    check_in: str = ""
    check_out: str = ""
    stay_days: int = 0
    pax: int = 0
    plan: str = ""
    scheme: str = ""
    status: BookingStatus | None = None
    legacy_status: str = ""

    # Inventory
    rooms: dict[RoomCategory, RoomAllocation] = Field(default_factory=empty_rooms)

    # Money
    bill_amount: Decimal = ZERO
    advance: Decimal = ZERO
    due: Decimal = ZERO
    cash_in: Decimal = ZERO
    cash_out: Decimal = ZERO
    mode_of_payment: str = ""
    to_account: str = ""
    payment_date: str = ""

    def allocation(self, category: RoomCategory) -> RoomAllocation:
        return self.rooms.get(category, RoomAllocation())

    def fresh_bill_amount(self) -> Decimal:
        return fresh_bill_amount(self.rooms, self.stay_days)

    def expected_due(self) -> Decimal:
        """Outstanding balance implied by the bill and the recorded payments."""
        return self.bill_amount - self.advance - self.cash_out + self.cash_in

    @property
    def has_room_data(self) -> bool:
        return any(allocation.count for allocation in self.rooms.values())


# =============================================================================
# Edit Draft
# =============================================================================


class EditDraft(BaseModel):
    """String projection of a record for editing.

    Aliases are the keys the booking form has always sent to the store.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    guest_name: str = Field("", alias="guestName")
    contact: str = Field("", alias="contact")
    plan: str = Field("", alias="plan")
    hotel_name: str = Field("", alias="hotelName")
    check_in: str = Field("", alias="checkIn")
    check_out: str = Field("", alias="checkOut")
    stay_days: str = Field("", alias="day")
    pax: str = Field("", alias="pax")

    double_bed: str = Field("", alias="db")
    triple_bed: str = Field("", alias="tb")
    four_bed: str = Field("", alias="fb")
    extra_bed: str = Field("", alias="extraBed")
    kitchen: str = Field("", alias="kitchen")

    double_bed_rate: str = Field("", alias="dbRate")
    triple_bed_rate: str = Field("", alias="tbRate")
    four_bed_rate: str = Field("", alias="fbRate")
    extra_bed_rate: str = Field("", alias="extraRate")
    kitchen_rate: str = Field("", alias="kitchenRate")

    double_bed_discount: str = Field("", alias="dbDiscount")
    triple_bed_discount: str = Field("", alias="tbDiscount")
    four_bed_discount: str = Field("", alias="fbDiscount")
    extra_bed_discount: str = Field("", alias="extraDiscount")
    kitchen_discount: str = Field("", alias="kitchenDiscount")

    bill_amount: str = Field("", alias="billAmount")
    advance: str = Field("", alias="advance")
    due: str = Field("", alias="due")
    cash_in: str = Field("", alias="cashIn")
    cash_out: str = Field("", alias="cashOut")
    mode_of_payment: str = Field("", alias="paymentMethod")
    to_account: str = Field("", alias="toAccount")
    status: str = Field("", alias="status")
    scheme: str = Field("", alias="scheme")

    def present_fields(self) -> dict[str, str]:
        """Fields carrying a value, keyed by attribute name."""
        return {
            name: value
            for name, value in self.model_dump().items()
            if value.strip() != ""
        }

    def changed_fields(self, seed: "EditDraft") -> dict[str, str]:
        """Fields whose value differs from ``seed``."""
        ours = self.model_dump()
        theirs = seed.model_dump()
        return {name: value for name, value in ours.items() if value != theirs[name]}

    def has_changes(self, seed: "EditDraft") -> bool:
        return bool(self.changed_fields(seed))

    def only(self, names: set[str] | list[str]) -> "EditDraft":
        """Copy keeping ``names`` and blanking every other field."""
        keep = set(names)
        values = {name: value for name, value in self.model_dump().items() if name in keep}
        return EditDraft(**values)


# Draft attribute -> value kind
FIELD_KINDS: dict[str, str] = {
    "guest_name": "text",
    "contact": "text",
    "plan": "text",
    "hotel_name": "text",
    "check_in": "date",
    "check_out": "date",
    "stay_days": "int",
    "pax": "int",
    "bill_amount": "money",
    "advance": "money",
    "due": "money",
    "cash_in": "money",
    "cash_out": "money",
    "mode_of_payment": "text",
    "to_account": "text",
    "status": "status",
    "scheme": "text",
}

# Category -> (count, rate, discount) draft attributes
ROOM_DRAFT_FIELDS: dict[RoomCategory, tuple[str, str, str]] = {
    RoomCategory.DOUBLE_BED: ("double_bed", "double_bed_rate", "double_bed_discount"),
    RoomCategory.TRIPLE_BED: ("triple_bed", "triple_bed_rate", "triple_bed_discount"),
    RoomCategory.FOUR_BED: ("four_bed", "four_bed_rate", "four_bed_discount"),
    RoomCategory.EXTRA_BED: ("extra_bed", "extra_bed_rate", "extra_bed_discount"),
    RoomCategory.KITCHEN: ("kitchen", "kitchen_rate", "kitchen_discount"),
}

FIELD_KINDS.update(
    {
        name: ("int" if name == names[0] else "money")
        for names in ROOM_DRAFT_FIELDS.values()
        for name in names
    }
)

ROOM_FIELDS = {name for names in ROOM_DRAFT_FIELDS.values() for name in names}


def wire_key(name: str) -> str:
    """Store payload key for a draft attribute."""
    return EditDraft.model_fields[name].alias or name


# =============================================================================
# Value conversion
# =============================================================================


_AMOUNT_NOISE = re.compile(r"[₹$€£,\s]")
_DATE_FORMATS = ["%Y-%m-%d", "%d-%m-%Y", "%d/%m/%Y", "%Y/%m/%d"]


def to_decimal(value: Any) -> Decimal:
    """Coerce a stored or typed amount to ``Decimal``; anything unusable is 0."""
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float)):
        amount = Decimal(str(value))
    else:
        text = _AMOUNT_NOISE.sub("", str(value))
        if not text:
            return ZERO
        try:
            amount = Decimal(text)
        except InvalidOperation:
            return ZERO
    if not amount.is_finite():
        return ZERO
    return amount


def to_int(value: Any) -> int:
    return int(to_decimal(value))


def to_text(value: Any) -> str:
    """Printable form of a stored value; ``None`` becomes ``""``, never ``"None"``."""
    if value is None:
        return ""
    return str(value)


def format_amount(value: Decimal) -> str:
    return format(value, "f")


def parse_stay_date(text: str) -> date | None:
    """Parse a check-in/check-out value (ISO, DD-MM-YYYY, or a sheet timestamp)."""
    text = (text or "").strip()
    if not text:
        return None
    # Sheets serializes date cells as 2024-01-10T00:00:00.000Z
    if len(text) > 10 and text[10] == "T":
        text = text[:10]
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def stay_days_between(check_in: str, check_out: str) -> int | None:
    """Nights between two stay dates, 0 when check-out is not after check-in."""
    start = parse_stay_date(check_in)
    end = parse_stay_date(check_out)
    if start is None or end is None:
        return None
    return max((end - start).days, 0)


def split_status(raw: str) -> tuple[BookingStatus | None, str]:
    """Separate a lifecycle status from whatever else the status column held.

    Returns ``(status, legacy_status)``; exactly one of them is set unless
    ``raw`` is blank.
    """
    raw = (raw or "").strip()
    if not raw:
        return None, ""
    for status in BookingStatus:
        if raw == status.value or raw.lower() == status.value.lower():
            return status, ""
    return None, raw


def _mapping(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _amount_for_json(value: Decimal) -> int | float:
    if value == value.to_integral_value():
        return int(value)
    return float(value)


# =============================================================================
# Transformations
# =============================================================================


def load(payload: dict[str, Any]) -> BookingRecord:
    """Build a record from a store payload.

    Accepts the older flat naming (``hotel``, ``db``/``dbRate``,
    ``paymentMethod``) as well as the nested ``roomName``/``roomRent``/
    ``discount`` maps. A stored ``billAmount`` is kept as is.
    """
    counts = _mapping(payload.get("roomName"))
    rates = _mapping(payload.get("roomRent"))
    discounts = _mapping(payload.get("discount"))

    rooms = {}
    for category, (count_name, rate_name, discount_name) in ROOM_DRAFT_FIELDS.items():
        rooms[category] = RoomAllocation(
            count=to_int(counts.get(category.value, payload.get(wire_key(count_name)))),
            rate=to_decimal(rates.get(category.value, payload.get(wire_key(rate_name)))),
            discount=to_decimal(discounts.get(category.value, payload.get(wire_key(discount_name)))),
        )

    check_in = to_text(payload.get("checkIn"))
    check_out = to_text(payload.get("checkOut"))

    raw_days = payload.get("day", payload.get("stayDays"))
    if raw_days is None or to_text(raw_days).strip() == "":
        stay_days = stay_days_between(check_in, check_out) or 0
    else:
        stay_days = to_int(raw_days)

    status, legacy_status = split_status(to_text(payload.get("status")))
    mode_of_payment = to_text(payload.get("modeOfPayment", payload.get("paymentMethod")))
    if not mode_of_payment and legacy_status.lower() in LEGACY_PAYMENT_STATUSES:
        mode_of_payment = legacy_status

    return BookingRecord(
        guest_name=to_text(payload.get("guestName", payload.get("name"))),
        contact=to_text(payload.get("contact")),
        hotel_name=to_text(payload.get("hotelName", payload.get("hotel"))),
        date_booked=to_text(payload.get("dateBooked")),
        check_in=check_in,
        check_out=check_out,
        stay_days=stay_days,
        pax=to_int(payload.get("pax")),
        plan=to_text(payload.get("plan")),
        scheme=to_text(payload.get("scheme")),
        status=status,
        legacy_status=legacy_status,
        rooms=rooms,
        bill_amount=to_decimal(payload.get("billAmount", payload.get("totalBill"))),
        advance=to_decimal(payload.get("advance")),
        due=to_decimal(payload.get("due")),
        cash_in=to_decimal(payload.get("cashIn")),
        cash_out=to_decimal(payload.get("cashOut")),
        mode_of_payment=mode_of_payment,
        to_account=to_text(payload.get("toAccount")),
        payment_date=to_text(payload.get("date")),
    )


def seed_draft(record: BookingRecord) -> EditDraft:
    """Project a record into an edit draft, every value as a string."""
    values: dict[str, str] = {}
    for name, kind in FIELD_KINDS.items():
        if name in ROOM_FIELDS:
            continue
        if kind == "status":
            values[name] = record.status.value if record.status else ""
        elif kind == "money":
            values[name] = format_amount(getattr(record, name))
        else:
            values[name] = to_text(getattr(record, name))

    for category, (count_name, rate_name, discount_name) in ROOM_DRAFT_FIELDS.items():
        allocation = record.allocation(category)
        values[count_name] = str(allocation.count)
        values[rate_name] = format_amount(allocation.rate)
        values[discount_name] = format_amount(allocation.discount)

    return EditDraft(**values)


def _coerce(kind: str, raw: str) -> Any:
    if kind == "money":
        return to_decimal(raw)
    if kind == "int":
        return to_int(raw)
    return raw


def apply_edit(record: BookingRecord, draft: EditDraft) -> BookingRecord:
    """Merge the draft's present fields over ``record``.

    Fields absent from the draft keep their prior value. The bill is
    recomputed from the rooms only when a room count, rate or discount
    edit changes the allocation. Date and stay-day edits keep the stored
    bill; otherwise a typed ``billAmount`` is taken as given.
    ``due`` is never derived here.
    """
    present = draft.present_fields()
    if not present:
        return record

    update: dict[str, Any] = {}
    for name, raw in present.items():
        if name in ROOM_FIELDS:
            continue
        kind = FIELD_KINDS[name]
        if kind == "status":
            status, legacy_status = split_status(raw)
            update["status"] = status
            update["legacy_status"] = legacy_status
        else:
            update[name] = _coerce(kind, raw)

    rooms = {}
    for category, (count_name, rate_name, discount_name) in ROOM_DRAFT_FIELDS.items():
        current = record.allocation(category)
        rooms[category] = RoomAllocation(
            count=to_int(present[count_name]) if count_name in present else current.count,
            rate=to_decimal(present[rate_name]) if rate_name in present else current.rate,
            discount=to_decimal(present[discount_name]) if discount_name in present else current.discount,
        )

    if "stay_days" not in present:
        check_in = update.get("check_in", record.check_in)
        check_out = update.get("check_out", record.check_out)
        if (check_in, check_out) != (record.check_in, record.check_out):
            derived = stay_days_between(check_in, check_out)
            if derived is not None:
                update["stay_days"] = derived

    if rooms != record.rooms:
        update["rooms"] = rooms
        update["bill_amount"] = fresh_bill_amount(rooms, update.get("stay_days", record.stay_days))

    return record.model_copy(update=update)


def bill_recomputed(record: BookingRecord, updated: BookingRecord) -> bool:
    return updated.rooms != record.rooms


def draft_to_payload(draft: EditDraft) -> dict[str, str]:
    """Present draft fields keyed the way the store expects them."""
    return {wire_key(name): value for name, value in draft.present_fields().items()}


def record_to_payload(record: BookingRecord) -> dict[str, Any]:
    """Full store-shaped payload for a record."""
    return {
        "dateBooked": record.date_booked,
        "guestName": record.guest_name,
        "contact": record.contact,
        "hotelName": record.hotel_name,
        "checkIn": record.check_in,
        "checkOut": record.check_out,
        "day": record.stay_days,
        "pax": record.pax,
        "plan": record.plan,
        "scheme": record.scheme,
        "status": record.status.value if record.status else record.legacy_status,
        "roomName": {c.value: record.allocation(c).count for c in RoomCategory},
        "roomRent": {c.value: _amount_for_json(record.allocation(c).rate) for c in RoomCategory},
        "discount": {c.value: _amount_for_json(record.allocation(c).discount) for c in RoomCategory},
        "billAmount": _amount_for_json(record.bill_amount),
        "advance": _amount_for_json(record.advance),
        "due": _amount_for_json(record.due),
        "cashIn": _amount_for_json(record.cash_in),
        "cashOut": _amount_for_json(record.cash_out),
        "modeOfPayment": record.mode_of_payment,
        "toAccount": record.to_account,
        "date": record.payment_date,
    }


def for_display(record: BookingRecord) -> dict[str, Any]:
    """Store-shaped payload with blank text replaced by a placeholder."""
    payload = record_to_payload(record)
    return {
        key: (DISPLAY_PLACEHOLDER if value == "" else value)
        for key, value in payload.items()
    }


# =============================================================================
# Reconciliation
# =============================================================================


@dataclass
class StaleReadWarning:
    """Display-only note that stored figures do not add up."""

    code: str
    field: str
    message: str
    expected: Decimal | None = None
    actual: Decimal | None = None


def reconcile(
    record: BookingRecord,
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> list[StaleReadWarning]:
    """Check the soft financial invariants of a record. Never raises."""
    warnings: list[StaleReadWarning] = []

    expected_due = record.expected_due()
    if abs(record.due - expected_due) > tolerance:
        warnings.append(
            StaleReadWarning(
                code="due_mismatch",
                field="due",
                message=f"Due {record.due} does not match bill minus payments ({expected_due})",
                expected=expected_due,
                actual=record.due,
            )
        )

    if record.has_room_data:
        fresh = record.fresh_bill_amount()
        if abs(record.bill_amount - fresh) > tolerance:
            warnings.append(
                StaleReadWarning(
                    code="bill_mismatch",
                    field="billAmount",
                    message=f"Bill {record.bill_amount} differs from room total {fresh}",
                    expected=fresh,
                    actual=record.bill_amount,
                )
            )

    for category, allocation in record.rooms.items():
        ceiling = allocation.count * allocation.rate
        if allocation.discount > ceiling:
            warnings.append(
                StaleReadWarning(
                    code="discount_exceeds_gross",
                    field=f"discount.{category.value}",
                    message=f"Discount {allocation.discount} exceeds {category.value} rate total {ceiling}",
                    expected=ceiling,
                    actual=allocation.discount,
                )
            )

    for name in ("bill_amount", "advance", "due", "cash_in", "cash_out"):
        amount = getattr(record, name)
        if amount < 0:
            warnings.append(
                StaleReadWarning(
                    code="negative_amount",
                    field=wire_key(name),
                    message=f"{wire_key(name)} is negative ({amount})",
                    actual=amount,
                )
            )

    if record.legacy_status:
        warnings.append(
            StaleReadWarning(
                code="legacy_status",
                field="status",
                message=f"Status '{record.legacy_status}' is not a booking status",
            )
        )

    return warnings
