"""Field contract an edit draft must satisfy before it is sent to the store."""

import re
from decimal import Decimal
from typing import Annotated, Any, Iterable

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from frontdesk.models.booking import (
    LEGACY_PAYMENT_STATUSES,
    BookingStatus,
    EditDraft,
    parse_stay_date,
    split_status,
)

Count = Annotated[int, Field(ge=0)]
Amount = Annotated[Decimal, Field(ge=0)]

_AMOUNT_NOISE = re.compile(r"[₹$€£,\s]")

MONEY_FIELDS = (
    "double_bed_rate",
    "triple_bed_rate",
    "four_bed_rate",
    "extra_bed_rate",
    "kitchen_rate",
    "double_bed_discount",
    "triple_bed_discount",
    "four_bed_discount",
    "extra_bed_discount",
    "kitchen_discount",
    "bill_amount",
    "advance",
    "due",
    "cash_in",
    "cash_out",
)


class BookingEditSchema(BaseModel):
    """Every field optional; blank means absent."""

    model_config = ConfigDict(extra="forbid")

    guest_name: str | None = None
    contact: str | None = None
    plan: str | None = None
    hotel_name: str | None = None
    check_in: str | None = None
    check_out: str | None = None
    stay_days: Count | None = None
    pax: Count | None = None

    double_bed: Count | None = None
    triple_bed: Count | None = None
    four_bed: Count | None = None
    extra_bed: Count | None = None
    kitchen: Count | None = None

    double_bed_rate: Amount | None = None
    triple_bed_rate: Amount | None = None
    four_bed_rate: Amount | None = None
    extra_bed_rate: Amount | None = None
    kitchen_rate: Amount | None = None

    double_bed_discount: Amount | None = None
    triple_bed_discount: Amount | None = None
    four_bed_discount: Amount | None = None
    extra_bed_discount: Amount | None = None
    kitchen_discount: Amount | None = None

    bill_amount: Amount | None = None
    advance: Amount | None = None
    due: Amount | None = None
    cash_in: Amount | None = None
    cash_out: Amount | None = None
    mode_of_payment: str | None = None
    to_account: str | None = None
    status: BookingStatus | None = None
    scheme: str | None = None

    @model_validator(mode="before")
    @classmethod
    def drop_blank(cls, values: Any) -> Any:
        if isinstance(values, dict):
            return {
                key: value
                for key, value in values.items()
                if not (isinstance(value, str) and value.strip() == "")
            }
        return values

    @field_validator(*MONEY_FIELDS, mode="before")
    @classmethod
    def strip_currency(cls, v: Any) -> Any:
        if isinstance(v, str):
            return _AMOUNT_NOISE.sub("", v)
        return v

    @field_validator("stay_days", "pax", "double_bed", "triple_bed", "four_bed", "extra_bed", "kitchen", mode="before")
    @classmethod
    def strip_count(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("check_in", "check_out")
    @classmethod
    def validate_date(cls, v: str | None) -> str | None:
        if v is not None and parse_stay_date(v) is None:
            raise ValueError("Date must be YYYY-MM-DD or DD-MM-YYYY")
        return v

    @field_validator("status", mode="before")
    @classmethod
    def reject_payment_status(cls, v: Any) -> Any:
        if not isinstance(v, str):
            return v
        if v.strip().lower() in LEGACY_PAYMENT_STATUSES:
            raise ValueError(
                f"'{v.strip()}' is a payment mode; set it as the payment method "
                "and choose Confirm, Cancelled or HOLD"
            )
        # Same case-insensitive match apply_edit uses
        status, _ = split_status(v)
        return status if status is not None else v

    @model_validator(mode="after")
    def validate_stay_order(self) -> "BookingEditSchema":
        if self.check_in and self.check_out:
            start = parse_stay_date(self.check_in)
            end = parse_stay_date(self.check_out)
            if start and end and end < start:
                raise ValueError("Check-out cannot be before check-in")
        return self


def validate_draft(
    draft: EditDraft,
    fields: Iterable[str] | None = None,
) -> dict[str, str]:
    """
    Validate a draft against the booking edit schema.

    Args:
        draft: Draft to check
        fields: Only report errors for these attributes (all when None)

    Returns:
        Mapping of draft attribute -> error message; empty when valid
    """
    try:
        BookingEditSchema.model_validate(draft.model_dump())
    except ValidationError as e:
        errors: dict[str, str] = {}
        for error in e.errors():
            loc = error.get("loc") or ()
            # Model-level errors (stay order) belong to check-out
            name = str(loc[0]) if loc else "check_out"
            errors.setdefault(name, _clean_message(error.get("msg", "Invalid value")))
        if fields is not None:
            wanted = set(fields)
            if {"check_in", "check_out"} & wanted:
                wanted.add("check_out")
            errors = {name: msg for name, msg in errors.items() if name in wanted}
        return errors
    return {}


def _clean_message(message: str) -> str:
    # pydantic prefixes custom errors with "Value error, "
    return message.removeprefix("Value error, ")
