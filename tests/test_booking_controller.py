"""Tests for the booking fetch/edit controller."""

import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from frontdesk.models.booking import BookingStatus, EditDraft
from frontdesk.services.booking_controller import (
    BookingEditController,
    ControllerBusyError,
    ControllerStateError,
    PanelMode,
    PanelState,
    SubmitOutcome,
    UnsavedChangesError,
)
from frontdesk.services.query_cache import ENQUIRIES, HOSS_BOOKINGS, QueryCache
from frontdesk.services.session import Session
from frontdesk.services.store_client import StoreApiError


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def store(rahul_payload):
    """Store double returning the Rahul Sharma booking."""
    store = MagicMock()
    store.get_booking = AsyncMock(return_value=rahul_payload)
    store.update_booking = AsyncMock(return_value={"success": True})
    return store


@pytest.fixture
def cache():
    return QueryCache()


@pytest.fixture
def notifier():
    return MagicMock()


@pytest.fixture
def on_update():
    return MagicMock()


@pytest.fixture
def controller(store, cache, notifier, on_update):
    session = Session()
    session.login("frontdesk", role="staff")
    return BookingEditController(
        store,
        cache=cache,
        session=session,
        on_update=on_update,
        notifier=notifier,
    )


@pytest_asyncio.fixture
async def editing(controller, rahul_identifier):
    """Controller with the booking loaded and edit mode entered."""
    await controller.open(rahul_identifier)
    controller.enter_edit()
    return controller


def _without(record, *names):
    data = record.model_dump()
    for name in names:
        data.pop(name)
    return data


# =============================================================================
# Open / Close Tests
# =============================================================================


@pytest.mark.asyncio
async def test_open_loads_view_mode(controller, store, rahul_identifier):
    """A successful fetch lands in view mode with the record loaded."""
    record = await controller.open(rahul_identifier)

    assert controller.state == PanelState.LOADED
    assert controller.mode == PanelMode.VIEW
    assert controller.record is record
    assert record.bill_amount == Decimal("6000")
    assert record.fresh_bill_amount() == Decimal("6000")
    assert record.due == record.expected_due() == Decimal("4000")
    assert controller.warnings == []
    store.get_booking.assert_awaited_once_with(rahul_identifier)


@pytest.mark.asyncio
async def test_open_failure_then_retry(controller, store, notifier, rahul_identifier, rahul_payload):
    """A failed fetch exposes the message and a retry with the same key."""
    store.get_booking.side_effect = [StoreApiError("Network Error"), rahul_payload]

    assert await controller.open(rahul_identifier) is None
    assert controller.state == PanelState.LOAD_ERROR
    assert controller.error == "Network Error"
    notifier.assert_called_with("error", "Network Error")

    record = await controller.retry()

    assert record is not None
    assert controller.state == PanelState.LOADED
    assert controller.error is None
    assert store.get_booking.await_args_list[1].args == (rahul_identifier,)


@pytest.mark.asyncio
async def test_retry_without_open(controller):
    with pytest.raises(ControllerStateError):
        await controller.retry()


@pytest.mark.asyncio
async def test_sequential_opens_do_not_leak(controller, store, rahul_identifier, priya_identifier, priya_payload):
    """The second booking never inherits the first booking's fields."""
    await controller.open(rahul_identifier)
    store.get_booking.return_value = priya_payload

    record = await controller.open(priya_identifier)

    assert controller.identifier == priya_identifier
    assert record.guest_name == "Priya Nair"
    assert record.contact == ""
    assert record.advance == 0
    assert record.bill_amount == 0
    assert record.status == BookingStatus.HOLD


@pytest.mark.asyncio
async def test_close_in_view_mode_clears_state(controller, rahul_identifier):
    await controller.open(rahul_identifier)
    controller.close()

    assert controller.state == PanelState.IDLE
    assert controller.record is None
    assert controller.identifier is None


@pytest.mark.asyncio
async def test_close_with_unsaved_changes_needs_confirmation(editing):
    editing.update_draft(advance="3000")

    with pytest.raises(UnsavedChangesError):
        editing.close()
    assert editing.mode == PanelMode.EDIT
    assert editing.draft.advance == "3000"

    editing.close(discard=True)
    assert editing.state == PanelState.IDLE
    assert editing.draft is None


@pytest.mark.asyncio
async def test_close_in_edit_mode_without_changes(editing):
    editing.close()
    assert editing.state == PanelState.IDLE


# =============================================================================
# Edit Mode Tests
# =============================================================================


@pytest.mark.asyncio
async def test_enter_edit_seeds_strings(editing):
    assert editing.mode == PanelMode.EDIT
    assert editing.draft.advance == "2000"
    assert editing.draft.double_bed == "2"
    assert editing.draft.scheme == ""
    assert not editing.has_unsaved_changes


@pytest.mark.asyncio
async def test_enter_edit_requires_loaded_view(controller):
    with pytest.raises(ControllerStateError):
        controller.enter_edit()


@pytest.mark.asyncio
async def test_update_draft_unknown_field(editing):
    with pytest.raises(ValueError, match="Unknown draft fields"):
        editing.update_draft(deposit="100")


@pytest.mark.asyncio
async def test_cancel_edit_keeps_record(editing, store):
    before = editing.record
    editing.update_draft(advance="3000")
    editing.cancel_edit()

    assert editing.mode == PanelMode.VIEW
    assert editing.draft is None
    assert editing.record is before
    store.update_booking.assert_not_called()


# =============================================================================
# Submit Tests
# =============================================================================


@pytest.mark.asyncio
async def test_submit_unchanged_is_noop(editing, store, notifier):
    """An untouched draft makes no network call and returns to view mode."""
    result = await editing.submit()

    assert result.outcome == SubmitOutcome.NO_CHANGES
    assert editing.mode == PanelMode.VIEW
    store.update_booking.assert_not_called()
    notifier.assert_called_with("info", "No changes to save")


@pytest.mark.asyncio
async def test_submit_advance_change(editing, store, cache, on_update, rahul_identifier):
    """Only the advance changes and both booking lists go stale once."""
    before = editing.record
    editing.update_draft(advance="3000")

    result = await editing.submit()

    assert result.outcome == SubmitOutcome.SAVED
    assert editing.mode == PanelMode.VIEW
    assert editing.state == PanelState.LOADED
    assert editing.record.advance == Decimal("3000")
    assert _without(editing.record, "advance") == _without(before, "advance")

    payload = store.update_booking.await_args.args[0]
    assert payload["advance"] == "3000"
    assert payload["guestName"] == "Rahul Sharma"
    assert payload["hotelName"] == "HOSS"
    assert payload["checkIn"] == "2024-01-10"
    assert payload["identifier"] == rahul_identifier.to_params()
    assert "billAmount" not in payload

    assert cache.invalidation_count(ENQUIRIES) == 1
    assert cache.invalidation_count(HOSS_BOOKINGS) == 1
    on_update.assert_called_once_with(editing.record)


@pytest.mark.asyncio
async def test_submit_room_change_persists_fresh_bill(editing, store):
    """The bill written to the store is the freshly derived one."""
    editing.update_draft(double_bed="3")

    result = await editing.submit()

    payload = store.update_booking.await_args.args[0]
    assert result.success
    assert payload["db"] == "3"
    assert payload["billAmount"] == "9000"
    assert editing.record.bill_amount == Decimal("9000")
    assert editing.record.bill_amount == editing.record.fresh_bill_amount()


@pytest.mark.asyncio
async def test_submit_date_change_keeps_stored_bill(editing, store):
    """Moving check-out sends the dates, never a rebuilt bill."""
    editing.update_draft(check_out="2024-01-13")

    result = await editing.submit()

    payload = store.update_booking.await_args.args[0]
    assert result.success
    assert payload["checkOut"] == "2024-01-13"
    assert "billAmount" not in payload
    assert editing.record.bill_amount == Decimal("6000")
    assert editing.record.stay_days == 3


@pytest.mark.asyncio
async def test_submit_date_change_without_rooms(controller, store, rahul_identifier):
    store.get_booking.return_value = {
        "guestName": "Rahul Sharma",
        "hotel": "HOSS",
        "checkIn": "2024-01-10",
        "checkOut": "2024-01-12",
        "billAmount": 6000,
    }
    await controller.open(rahul_identifier)
    controller.enter_edit()
    controller.update_draft(check_out="2024-01-13")

    await controller.submit()

    payload = store.update_booking.await_args.args[0]
    assert "billAmount" not in payload
    assert controller.record.bill_amount == Decimal("6000")


@pytest.mark.asyncio
async def test_submit_failure_keeps_draft(editing, store, cache, on_update):
    """A failed save stays in edit mode with the draft untouched."""
    editing.update_draft(advance="3000", to_account="SBI")
    draft_before = editing.draft
    record_before = editing.record
    store.update_booking.side_effect = StoreApiError("sheet locked", status=503)

    result = await editing.submit()

    assert result.outcome == SubmitOutcome.FAILED
    assert result.message == "sheet locked"
    assert editing.state == PanelState.LOADED
    assert editing.mode == PanelMode.EDIT
    assert editing.draft == draft_before
    assert editing.record is record_before
    assert editing.error == "sheet locked"
    assert cache.invalidation_count(ENQUIRIES) == 0
    on_update.assert_not_called()


@pytest.mark.asyncio
async def test_submit_invalid_stays_local(editing, store):
    editing.update_draft(status="cash", advance="-1")

    result = await editing.submit()

    assert result.outcome == SubmitOutcome.INVALID
    assert set(result.field_errors) == {"status", "advance"}
    assert editing.mode == PanelMode.EDIT
    store.update_booking.assert_not_called()


@pytest.mark.asyncio
async def test_submit_with_replacement_draft(editing, store):
    draft = editing.draft.model_copy(update={"status": "Cancelled"})

    result = await editing.submit(draft)

    assert result.success
    assert editing.record.status == BookingStatus.CANCELLED
    assert store.update_booking.await_args.args[0]["status"] == "Cancelled"


@pytest.mark.asyncio
async def test_submit_rekeys_after_guest_rename(editing, store):
    editing.update_draft(guest_name="Rahul K Sharma")

    await editing.submit()

    payload = store.update_booking.await_args.args[0]
    assert payload["guestName"] == "Rahul K Sharma"
    assert payload["identifier"]["guestName"] == "Rahul Sharma"
    assert editing.identifier.guest_name == "Rahul K Sharma"


@pytest.mark.asyncio
async def test_submit_outside_edit_mode(controller, rahul_identifier):
    await controller.open(rahul_identifier)
    with pytest.raises(ControllerStateError):
        await controller.submit(EditDraft(advance="1"))


@pytest.mark.asyncio
async def test_cache_failure_does_not_fail_save(store, rahul_identifier):
    """Invalidation is fire-and-forget."""
    cache = MagicMock()
    cache.invalidate.side_effect = RuntimeError("cache down")
    controller = BookingEditController(store, cache=cache)
    await controller.open(rahul_identifier)
    controller.enter_edit()
    controller.update_draft(advance="3000")

    result = await controller.submit()

    assert result.success
    assert cache.invalidate.call_count == 2


# =============================================================================
# Concurrency Tests
# =============================================================================


@pytest.mark.asyncio
async def test_second_open_while_loading_is_rejected(controller, store, rahul_identifier, priya_identifier, rahul_payload):
    started = asyncio.Event()
    release = asyncio.Event()

    async def slow_get(identifier):
        started.set()
        await release.wait()
        return rahul_payload

    store.get_booking.side_effect = slow_get
    task = asyncio.create_task(controller.open(rahul_identifier))
    await started.wait()

    assert controller.state == PanelState.LOADING
    with pytest.raises(ControllerBusyError):
        await controller.open(priya_identifier)

    release.set()
    record = await task
    assert record.guest_name == "Rahul Sharma"


@pytest.mark.asyncio
async def test_close_during_load_discards_response(controller, store, rahul_identifier, rahul_payload):
    """A response arriving after close never repopulates the panel."""
    started = asyncio.Event()
    release = asyncio.Event()

    async def slow_get(identifier):
        started.set()
        await release.wait()
        return rahul_payload

    store.get_booking.side_effect = slow_get
    task = asyncio.create_task(controller.open(rahul_identifier))
    await started.wait()

    controller.close()
    release.set()

    assert await task is None
    assert controller.state == PanelState.IDLE
    assert controller.record is None


@pytest.mark.asyncio
async def test_close_during_save_discards_result(editing, store, cache):
    started = asyncio.Event()
    release = asyncio.Event()

    async def slow_update(payload):
        started.set()
        await release.wait()
        return {"success": True}

    store.update_booking.side_effect = slow_update
    editing.update_draft(advance="3000")
    task = asyncio.create_task(editing.submit())
    await started.wait()

    assert editing.state == PanelState.SAVING
    with pytest.raises(ControllerBusyError):
        await editing.submit()

    editing.close(discard=True)
    release.set()

    result = await task
    assert result.outcome == SubmitOutcome.DISCARDED
    assert editing.record is None
    assert editing.state == PanelState.IDLE
    # the store row did change, so the shared lists still go stale
    assert cache.invalidation_count(ENQUIRIES) == 1
    assert cache.invalidation_count(HOSS_BOOKINGS) == 1
