"""Financial totals across a set of bookings."""

from decimal import Decimal
from typing import Iterable

from pydantic import BaseModel

from frontdesk.models.booking import ZERO, BookingRecord, BookingStatus


class FinancialSummary(BaseModel):
    """Totals over non-cancelled bookings, plus cancellation figures."""

    total_revenue: Decimal = ZERO
    total_advance: Decimal = ZERO
    total_due: Decimal = ZERO
    total_cash_in: Decimal = ZERO
    total_cash_out: Decimal = ZERO
    total_bookings: int = 0
    cancelled_bookings: int = 0

    @property
    def cancellation_rate(self) -> Decimal:
        """Cancelled bookings as a percentage of all bookings."""
        total = self.total_bookings + self.cancelled_bookings
        if total == 0:
            return ZERO
        return Decimal(self.cancelled_bookings) * 100 / total

    @property
    def average_booking_value(self) -> Decimal:
        if self.total_bookings == 0:
            return ZERO
        return self.total_revenue / self.total_bookings

    @property
    def collected(self) -> Decimal:
        """Money received: advances plus cash-in."""
        return self.total_advance + self.total_cash_in


def summarize(records: Iterable[BookingRecord]) -> FinancialSummary:
    """
    Aggregate booking money.

    Cancelled bookings only count towards the cancellation figures.
    """
    summary = FinancialSummary()
    for record in records:
        if record.status == BookingStatus.CANCELLED:
            summary.cancelled_bookings += 1
            continue
        summary.total_bookings += 1
        summary.total_revenue += record.bill_amount
        summary.total_advance += record.advance
        summary.total_due += record.due
        summary.total_cash_in += record.cash_in
        summary.total_cash_out += record.cash_out
    return summary
