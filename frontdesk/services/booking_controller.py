"""Booking fetch/edit controller - one edit panel's view/edit/save workflow."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Protocol

from frontdesk.models.booking import (
    BookingIdentifier,
    BookingRecord,
    EditDraft,
    StaleReadWarning,
    apply_edit,
    bill_recomputed,
    draft_to_payload,
    format_amount,
    load,
    reconcile,
    seed_draft,
)
from frontdesk.schemas.booking_edit import validate_draft
from frontdesk.services.query_cache import BOOKING_COLLECTIONS, QueryCache
from frontdesk.services.session import Session
from frontdesk.services.store_client import StoreApiError
from frontdesk.utils.logger import get_logger, mask_sensitive

logger = get_logger(__name__)


# =============================================================================
# States & Results
# =============================================================================


class PanelState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    LOAD_ERROR = "load_error"
    SAVING = "saving"


class PanelMode(str, Enum):
    VIEW = "view"
    EDIT = "edit"


class SubmitOutcome(str, Enum):
    NO_CHANGES = "no_changes"
    INVALID = "invalid"
    SAVED = "saved"
    FAILED = "failed"
    DISCARDED = "discarded"  # panel closed or reopened while saving


@dataclass
class SubmitResult:
    """Outcome of one submit."""

    outcome: SubmitOutcome
    message: str = ""
    field_errors: dict[str, str] = field(default_factory=dict)
    record: BookingRecord | None = None

    @property
    def success(self) -> bool:
        return self.outcome == SubmitOutcome.SAVED


class ControllerStateError(RuntimeError):
    """Operation not allowed in the panel's current state."""


class ControllerBusyError(ControllerStateError):
    """A fetch or save is already in flight."""


class UnsavedChangesError(ControllerStateError):
    """Closing would discard edits; pass ``discard=True`` to confirm."""


class BookingStore(Protocol):
    async def get_booking(self, identifier: BookingIdentifier) -> dict[str, Any]: ...

    async def update_booking(self, payload: dict[str, Any]) -> dict[str, Any]: ...


Notifier = Callable[[str, str], None]


# =============================================================================
# Controller
# =============================================================================


class BookingEditController:
    """
    Drives a single booking edit panel.

    States:
        IDLE -> LOADING -> LOADED(view) | LOAD_ERROR
        LOADED(view) -> LOADED(edit) -> SAVING -> LOADED(view) | LOADED(edit)

    A failed save keeps the panel in edit mode with the draft untouched. A
    successful save replaces the record, hands it to ``on_update`` and marks
    the booking collections stale in ``cache``.

    Only one fetch or save may be in flight; overlapping calls raise
    ``ControllerBusyError``. Responses that arrive after the panel was
    closed or reopened are dropped.

    Usage:
        async with StoreClient(url) as store:
            panel = BookingEditController(store, cache=cache)
            await panel.open(identifier)
            panel.enter_edit()
            panel.update_draft(advance="3000")
            result = await panel.submit()
    """

    def __init__(
        self,
        store: BookingStore,
        cache: QueryCache | None = None,
        session: Session | None = None,
        on_update: Callable[[BookingRecord], None] | None = None,
        notifier: Notifier | None = None,
        invalidate_tags: Iterable[str] = BOOKING_COLLECTIONS,
    ):
        """
        Initialize controller.

        Args:
            store: Booking store (normally a StoreClient)
            cache: Cache whose booking collections go stale after a save
            session: Dashboard session of the acting user
            on_update: Called with the new record after a successful save
            notifier: Receives (level, message) for user-facing messages
            invalidate_tags: Cache tags holding this booking
        """
        self.store = store
        self.cache = cache
        self.session = session
        self.on_update = on_update
        self.notifier = notifier
        self.invalidate_tags = tuple(invalidate_tags)

        self.state = PanelState.IDLE
        self.mode = PanelMode.VIEW
        self.identifier: BookingIdentifier | None = None
        self.record: BookingRecord | None = None
        self.draft: EditDraft | None = None
        self.seed: EditDraft | None = None
        self.warnings: list[StaleReadWarning] = []
        self.field_errors: dict[str, str] = {}
        self.error: str | None = None
        self.message: str | None = None
        self._generation = 0

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def is_busy(self) -> bool:
        return self.state in (PanelState.LOADING, PanelState.SAVING)

    @property
    def is_editing(self) -> bool:
        return self.mode == PanelMode.EDIT and self.draft is not None

    @property
    def has_unsaved_changes(self) -> bool:
        return (
            self.is_editing
            and self.seed is not None
            and self.draft.has_changes(self.seed)
        )

    @property
    def _actor(self) -> str:
        return self.session.actor if self.session else "anonymous"

    # =========================================================================
    # Open / Close
    # =========================================================================

    async def open(self, identifier: BookingIdentifier) -> BookingRecord | None:
        """
        Load a booking into the panel in view mode.

        Returns:
            The loaded record, or None if the load failed or was superseded
        """
        self._ensure_not_busy()
        self._reset()
        self.identifier = identifier
        self.state = PanelState.LOADING
        generation = self._generation

        logger.info(
            "booking_fetch_started",
            guest=identifier.guest_name,
            hotel=identifier.hotel_name,
            check_in=identifier.check_in,
            actor=self._actor,
        )

        try:
            payload = await self.store.get_booking(identifier)
            record = load(payload)
        except StoreApiError as e:
            if generation != self._generation:
                logger.debug("booking_fetch_discarded", generation=generation)
                return None
            self.state = PanelState.LOAD_ERROR
            self.error = e.message or "Failed to load booking"
            logger.error("booking_fetch_failed", guest=identifier.guest_name, error=self.error)
            self._notify("error", self.error)
            return None
        except Exception as e:
            if generation == self._generation:
                self.state = PanelState.LOAD_ERROR
                self.error = str(e) or "Failed to load booking"
            raise

        if generation != self._generation:
            logger.debug("booking_fetch_discarded", generation=generation)
            return None

        self.record = record
        self.warnings = reconcile(record)
        self.state = PanelState.LOADED
        self.mode = PanelMode.VIEW

        logger.info(
            "booking_fetch_success",
            guest=record.guest_name,
            contact=mask_sensitive(record.contact) if record.contact else "",
            bill=str(record.bill_amount),
            warnings=[w.code for w in self.warnings],
        )
        return record

    async def retry(self) -> BookingRecord | None:
        """Re-run the last open with the same identifier."""
        if self.identifier is None:
            raise ControllerStateError("Nothing to retry; open a booking first")
        if self.state == PanelState.LOADED and self.mode == PanelMode.EDIT:
            raise ControllerStateError("Cannot reload while editing")
        return await self.open(self.identifier)

    def close(self, discard: bool = False) -> None:
        """
        Close the panel and drop all local state.

        Raises:
            UnsavedChangesError: Edit mode with changes and ``discard`` not set
        """
        if self.has_unsaved_changes and not discard:
            raise UnsavedChangesError("You have unsaved changes. Discard them?")
        if self.is_busy:
            logger.info("booking_panel_closed_in_flight", state=self.state.value)
        self._reset()
        self.identifier = None

    # =========================================================================
    # Editing
    # =========================================================================

    def enter_edit(self) -> EditDraft:
        """Seed a draft from the loaded record and switch to edit mode."""
        if self.state != PanelState.LOADED or self.mode != PanelMode.VIEW or self.record is None:
            raise ControllerStateError("Edit mode requires a loaded booking in view mode")
        self.seed = seed_draft(self.record)
        self.draft = self.seed
        self.mode = PanelMode.EDIT
        self.field_errors = {}
        self.error = None
        return self.draft

    def update_draft(self, **fields: str) -> EditDraft:
        """Set draft fields by attribute name."""
        self._ensure_editing()
        unknown = set(fields) - set(EditDraft.model_fields)
        if unknown:
            raise ValueError(f"Unknown draft fields: {sorted(unknown)}")
        self.draft = EditDraft(**{**self.draft.model_dump(), **fields})
        for name in fields:
            self.field_errors.pop(name, None)
        return self.draft

    def cancel_edit(self) -> None:
        """Drop the draft and go back to view mode without saving."""
        self._ensure_editing()
        self._leave_edit()

    async def submit(self, draft: EditDraft | None = None) -> SubmitResult:
        """
        Validate and persist the draft.

        Args:
            draft: Replacement draft; the panel's current draft when None

        Returns:
            SubmitResult describing what happened
        """
        self._ensure_editing()
        if draft is not None:
            self.draft = draft

        changed = self.draft.changed_fields(self.seed)
        changes = self.draft.only(changed)
        if not changes.present_fields():
            self._leave_edit()
            self.message = "No changes to save"
            self._notify("info", self.message)
            return SubmitResult(SubmitOutcome.NO_CHANGES, message=self.message)

        errors = validate_draft(self.draft, fields=changed)
        if errors:
            self.field_errors = errors
            self.message = "Please fix the highlighted fields"
            logger.info("booking_draft_invalid", fields=sorted(errors))
            return SubmitResult(SubmitOutcome.INVALID, message=self.message, field_errors=errors)

        previous = self.record
        updated = apply_edit(previous, changes)
        payload = self._write_payload(changes, previous, updated)

        self.state = PanelState.SAVING
        self.field_errors = {}
        generation = self._generation

        logger.info(
            "booking_save_started",
            guest=self.identifier.guest_name,
            fields=sorted(changes.present_fields()),
            actor=self._actor,
        )

        try:
            await self.store.update_booking(payload)
        except StoreApiError as e:
            if generation != self._generation:
                return SubmitResult(SubmitOutcome.DISCARDED)
            self.state = PanelState.LOADED
            self.error = e.message or "Update failed"
            logger.error("booking_save_failed", guest=self.identifier.guest_name, error=self.error)
            self._notify("error", self.error)
            return SubmitResult(SubmitOutcome.FAILED, message=self.error)
        except Exception:
            if generation == self._generation:
                self.state = PanelState.LOADED
            raise

        if generation != self._generation:
            # The store row changed even though the panel moved on
            logger.debug("booking_save_discarded", generation=generation)
            self._invalidate_collections()
            return SubmitResult(SubmitOutcome.DISCARDED, record=updated)

        self.record = updated
        self.identifier = self._rekey(self.identifier, updated)
        self.warnings = reconcile(updated)
        self.state = PanelState.LOADED
        self.error = None
        self._leave_edit()

        self.message = "Booking updated successfully!"
        logger.info("booking_save_success", guest=updated.guest_name, bill=str(updated.bill_amount))

        self._publish(updated)
        self._invalidate_collections()
        self._notify("success", self.message)
        return SubmitResult(SubmitOutcome.SAVED, message=self.message, record=updated)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _write_payload(
        self,
        changes: EditDraft,
        previous: BookingRecord,
        updated: BookingRecord,
    ) -> dict[str, Any]:
        key = self.identifier.to_params()
        payload: dict[str, Any] = {**key, **draft_to_payload(changes)}
        # Locates the row even when a key field is being edited
        payload["identifier"] = key
        if bill_recomputed(previous, updated):
            payload["billAmount"] = format_amount(updated.bill_amount)
            if "day" not in payload:
                payload["day"] = str(updated.stay_days)
        return payload

    @staticmethod
    def _rekey(identifier: BookingIdentifier, record: BookingRecord) -> BookingIdentifier:
        return BookingIdentifier(
            guest_name=record.guest_name or identifier.guest_name,
            hotel_name=record.hotel_name or identifier.hotel_name,
            check_in=record.check_in or identifier.check_in,
            sheet_name=identifier.sheet_name,
        )

    def _publish(self, record: BookingRecord) -> None:
        if self.on_update is None:
            return
        try:
            self.on_update(record)
        except Exception as e:
            logger.warning("booking_update_listener_failed", error=str(e), exc_info=True)

    def _invalidate_collections(self) -> None:
        if self.cache is None:
            return
        for tag in self.invalidate_tags:
            try:
                self.cache.invalidate(tag)
            except Exception as e:
                logger.warning("query_cache_invalidation_failed", tag=tag, error=str(e))

    def _notify(self, level: str, message: str) -> None:
        if self.notifier is not None:
            self.notifier(level, message)

    def _leave_edit(self) -> None:
        self.draft = None
        self.seed = None
        self.field_errors = {}
        self.mode = PanelMode.VIEW

    def _reset(self) -> None:
        self._generation += 1
        self.state = PanelState.IDLE
        self.mode = PanelMode.VIEW
        self.record = None
        self.draft = None
        self.seed = None
        self.warnings = []
        self.field_errors = {}
        self.error = None
        self.message = None

    def _ensure_not_busy(self) -> None:
        if self.is_busy:
            raise ControllerBusyError(f"Panel is {self.state.value}; wait for it to finish")

    def _ensure_editing(self) -> None:
        if self.state == PanelState.SAVING:
            raise ControllerBusyError("Save already in progress")
        if self.state != PanelState.LOADED or not self.is_editing:
            raise ControllerStateError("Not in edit mode")
