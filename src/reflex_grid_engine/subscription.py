"""Reconciles externally delivered row events into the row index.

An ``UPDATED`` event for a row that has open edit sessions is a
conflict.  The conflict policy decides what happens:

* ``preferLocalEdits``: apply the event minus the fields being edited.
* ``preferRemote``: apply the event in full and close the row's edit
  sessions (they would otherwise stay open on stale data).
* ``prompt``: stash the event until :meth:`SubscriptionReconciler.resolve_conflict`
  is called; the row's cells are marked ``conflict`` meanwhile.
"""

from typing import Any, Callable, Mapping, Protocol, Union

from reflex_grid_engine import log
from reflex_grid_engine.editing import CellEditor
from reflex_grid_engine.exceptions import IllegalTransitionError
from reflex_grid_engine.row_index import GetRowId, RowIndex, merge_row, row_fields
from reflex_grid_engine.types import (
    CellState,
    ConflictPolicy,
    RowId,
    SubscriptionEvent,
    SubscriptionEventType,
)

EventLike = Union[SubscriptionEvent, Mapping[str, Any]]
ApplyEvent = Callable[[list[Any], SubscriptionEvent, GetRowId], list[Any]]
Unsubscribe = Callable[[], None]

_UPSERT_TYPES = frozenset({
    SubscriptionEventType.CREATED,
    SubscriptionEventType.UPSERT,
    SubscriptionEventType.UNTERMINATED,
})
_REMOVE_TYPES = frozenset({SubscriptionEventType.DELETED, SubscriptionEventType.TERMINATED})


class EventSource(Protocol):
    """Anything that can push events to a handler until unsubscribed."""

    def subscribe(self, handler: Callable[[Any], None]) -> Unsubscribe: ...


def coerce_event(event: EventLike) -> SubscriptionEvent | None:
    """Return *event* as a :class:`SubscriptionEvent`, or ``None`` if malformed."""
    if isinstance(event, SubscriptionEvent):
        return event
    if isinstance(event, Mapping):
        try:
            return SubscriptionEvent.from_dict(event)
        except ValueError as exc:
            log.debug(f"Ignoring malformed subscription event: {exc}")
            return None
    log.debug(f"Ignoring subscription event of type {type(event).__name__}")
    return None


def default_apply_event(
    rows: list[Any],
    event: SubscriptionEvent,
    get_row_id: GetRowId,
) -> list[Any]:
    """Pure reconciliation of one event into a row list, ignoring edits.

    Usable as a starting point for a custom ``apply_event`` hook.
    """
    if event.type in _UPSERT_TYPES:
        if event.row is None:
            return rows
        if any(get_row_id(r) == event.id for r in rows):
            return [event.row if get_row_id(r) == event.id else r for r in rows]
        return [*rows, event.row]
    if event.type == SubscriptionEventType.UPDATED:
        if event.row is not None:
            return [event.row if get_row_id(r) == event.id else r for r in rows]
        if event.patch is not None:
            return [merge_row(r, event.patch) if get_row_id(r) == event.id else r for r in rows]
        return rows
    if event.type in _REMOVE_TYPES:
        return [r for r in rows if get_row_id(r) != event.id]
    return rows


class SubscriptionReconciler:
    """Applies push events to a row index, honouring open edit sessions.

    Args:
        row_index: Row index events are applied to.
        editor: Open edit sessions of the same grid.
        conflict_policy: Initial conflict policy.
        apply_event: Optional hook replacing the built-in reconciliation
            entirely, conflict handling included.
        on_change: Called after every event that changed engine state.
    """

    def __init__(
        self,
        row_index: RowIndex,
        editor: CellEditor,
        conflict_policy: ConflictPolicy = ConflictPolicy.PREFER_LOCAL_EDITS,
        apply_event: ApplyEvent | None = None,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self._row_index = row_index
        self._editor = editor
        self.conflict_policy = ConflictPolicy(conflict_policy)
        self.apply_event_hook = apply_event
        self._on_change = on_change
        self._pending: dict[RowId, SubscriptionEvent] = {}

    @property
    def pending_conflicts(self) -> Mapping[RowId, SubscriptionEvent]:
        return self._pending

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()

    # -- event application --

    def apply(self, event: EventLike) -> bool:
        """Apply one event.

        Returns:
            ``True`` if engine state changed (including stashing a conflict).
        """
        coerced = coerce_event(event)
        if coerced is None:
            return False

        if self.apply_event_hook is not None:
            rows = self.apply_event_hook(self._row_index.rows, coerced, self._row_index.get_row_id)
            self._row_index.set_rows(rows)
            self._changed()
            return True

        if coerced.type == SubscriptionEventType.UPDATED and self._editor.cells_for_row(coerced.id):
            return self._apply_conflicting(coerced)

        changed = self._apply_plain(coerced)
        if changed:
            self._changed()
        return changed

    def _apply_conflicting(self, event: SubscriptionEvent) -> bool:
        policy = self.conflict_policy
        if policy == ConflictPolicy.PREFER_LOCAL_EDITS:
            payload = event.patch if event.patch is not None else event.row
            if payload is None:
                log.debug(f"Ignoring UPDATED event for {event.id!r} with no row or patch")
                return False
            editing = self._editor.fields_for_row(event.id)
            fields = dict(payload) if isinstance(payload, Mapping) else row_fields(payload)
            remaining = {k: v for k, v in fields.items() if k not in editing}
            if not remaining:
                return False
            changed = self._row_index.update_row(event.id, remaining)
            if changed:
                self._changed()
            return changed

        if policy == ConflictPolicy.PROMPT:
            self._pending[event.id] = event
            for cell in self._editor.cells_for_row(event.id):
                if cell.state != CellState.SAVING:
                    cell.state = CellState.CONFLICT
            log.info(f"Conflicting update for row {event.id!r} awaiting resolution")
            self._changed()
            return True

        self._editor.cancel_row(event.id)
        self._apply_plain(event)
        self._changed()
        return True

    def _apply_plain(self, event: SubscriptionEvent) -> bool:
        index = self._row_index
        if event.type in _UPSERT_TYPES:
            if event.row is None:
                log.debug(f"Ignoring {event.type.value} event for {event.id!r} with no row")
                return False
            if not index.replace_row(event.id, event.row):
                index.add_row(event.row)
            return True
        if event.type == SubscriptionEventType.UPDATED:
            if event.row is not None:
                return index.replace_row(event.id, event.row)
            if event.patch is not None:
                return index.update_row(event.id, event.patch)
            log.debug(f"Ignoring UPDATED event for {event.id!r} with no row or patch")
            return False
        if event.type in _REMOVE_TYPES:
            self._pending.pop(event.id, None)
            self._editor.cancel_row(event.id)
            return index.remove_row(event.id)
        return False

    # -- conflict resolution --

    def resolve_conflict(self, row_id: RowId, resolution: str) -> bool:
        """Settle a stashed conflict.

        ``"local"`` discards the remote event and returns the row's cells
        to ``editing``; ``"remote"`` closes the row's edit sessions and
        applies the event.

        Returns:
            ``False`` when no conflict is pending for *row_id*.

        Raises:
            IllegalTransitionError: If *resolution* is not ``"local"`` or
                ``"remote"``.
        """
        if resolution not in ("local", "remote"):
            raise IllegalTransitionError(
                f"Unknown conflict resolution {resolution!r}", row_id=row_id
            )
        event = self._pending.pop(row_id, None)
        if event is None:
            return False

        if resolution == "local":
            for cell in self._editor.cells_for_row(row_id):
                if cell.state == CellState.CONFLICT:
                    cell.state = CellState.EDITING
        else:
            self._editor.cancel_row(row_id)
            self._apply_plain(event)
        self._changed()
        return True

    def clear_conflicts(self) -> None:
        self._pending.clear()

    # -- source binding --

    def subscribe(self, source: EventSource | Callable[[Callable[[Any], None]], Unsubscribe]) -> Unsubscribe:
        """Attach to *source* and apply every event it delivers.

        *source* is either an object with ``subscribe(handler)`` or the
        subscribe function itself.  Events are applied as they arrive,
        without debouncing.

        Returns:
            The function that detaches from *source*.
        """
        subscribe = source.subscribe if hasattr(source, "subscribe") else source
        unsubscribe = subscribe(self.apply)
        return unsubscribe if callable(unsubscribe) else (lambda: None)
