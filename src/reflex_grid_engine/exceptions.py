"""Exception hierarchy for reflex-grid-engine.

Most engine failures are deliberately *not* exceptions: missing rows,
undeclared columns, non-editable cells and malformed push events are
silent no-ops, and validation or save failures are recorded on the
affected editing cell.  The exceptions below cover the remaining
contract violations.
"""

from typing import Any


class GridEngineError(Exception):
    """Base exception for all engine errors."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        if self.context:
            ctx = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx})"
        return self.message


class IllegalTransitionError(GridEngineError):
    """An editing or conflict transition the state machine does not allow.

    Raised, for example, when an edit is started on a cell whose previous
    edit is still being saved.
    """

    def __init__(
        self,
        message: str,
        row_id: Any = None,
        field: str | None = None,
        **context: Any,
    ) -> None:
        super().__init__(message, row_id=row_id, field=field, **context)
        self.row_id = row_id
        self.field = field


class FileFormatError(GridEngineError, ValueError):
    """A data file whose extension no scanner is registered for."""

    def __init__(self, message: str, suffix: str | None = None, **context: Any) -> None:
        super().__init__(message, suffix=suffix, **context)
        self.suffix = suffix
