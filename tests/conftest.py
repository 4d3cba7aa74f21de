"""Shared fixtures."""

import pytest

from frontdesk.models.booking import BookingIdentifier


@pytest.fixture
def rahul_payload():
    """Booking payload as the sheet returns it."""
    return {
        "dateBooked": "2024-01-02",
        "guestName": "Rahul Sharma",
        "contact": "9876543210",
        "hotel": "HOSS",
        "checkIn": "2024-01-10",
        "checkOut": "2024-01-12",
        "pax": "4",
        "plan": "CP",
        "roomName": {"doubleBed": 2},
        "roomRent": {"doubleBed": 1500},
        "discount": {"doubleBed": 0},
        "billAmount": 6000,
        "advance": 2000,
        "due": 4000,
        "cashIn": 0,
        "cashOut": 0,
        "modeOfPayment": "UPI",
        "toAccount": "HDFC",
        "scheme": "",
        "status": "Confirm",
    }


@pytest.fixture
def rahul_identifier():
    return BookingIdentifier(
        guest_name="Rahul Sharma",
        hotel_name="HOSS",
        check_in="2024-01-10",
    )


@pytest.fixture
def priya_payload():
    """A second booking with most fields missing."""
    return {
        "guestName": "Priya Nair",
        "hotelName": "Om Shiv Shankar",
        "checkIn": "2024-02-01",
        "status": "HOLD",
    }


@pytest.fixture
def priya_identifier():
    return BookingIdentifier(
        guest_name="Priya Nair",
        hotel_name="Om Shiv Shankar",
        check_in="2024-02-01",
    )
