"""Core engine types: tree nodes, editing cells, selection and push events.

Tree nodes form a tagged union (:data:`TreeNode`): every consumer
dispatches on the concrete class and treats anything else as a bug.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, Mapping, Union

RowId = Union[str, int]

SortDirection = Literal["asc", "desc"]
LinkOperator = Literal["and", "or"]
AggregationType = Literal["count", "sum", "avg", "min", "max"]
Density = Literal["compact", "standard", "comfortable"]
ExportScope = Literal["all", "filtered", "selected"]
FocusDirection = Literal["up", "down", "left", "right"]

AGGREGATION_TYPES: tuple[str, ...] = ("count", "sum", "avg", "min", "max")


class CellState(str, Enum):
    """Lifecycle state of one editing cell."""

    PRISTINE = "pristine"
    EDITING = "editing"
    SAVING = "saving"
    ERROR = "error"
    CONFLICT = "conflict"


class ConflictPolicy(str, Enum):
    """What happens when a push update hits a row that is being edited."""

    PREFER_LOCAL_EDITS = "preferLocalEdits"
    PREFER_REMOTE = "preferRemote"
    PROMPT = "prompt"


class SubscriptionEventType(str, Enum):
    """Kinds of externally delivered row events."""

    CREATED = "CREATED"
    UPDATED = "UPDATED"
    DELETED = "DELETED"
    TERMINATED = "TERMINATED"
    UNTERMINATED = "UNTERMINATED"
    UPSERT = "UPSERT"


def cell_key(row_id: RowId, field_name: str) -> str:
    """Return the ``"{rowId}:{field}"`` key of an editing cell."""
    return f"{row_id}:{field_name}"


# ---------------------------------------------------------------------------
# Tree nodes
# ---------------------------------------------------------------------------

@dataclass
class RowNode:
    """A leaf wrapping one source row."""

    id: RowId
    row: Any
    depth: int
    type: Literal["row"] = field(default="row", init=False)


@dataclass
class GroupNode:
    """One distinct value of a grouping field.

    ``child_count`` is the number of source rows under the group and is
    computed whether or not the group is expanded.  ``children`` is only
    populated for expanded groups.
    """

    id: str
    field: str
    value: Any
    depth: int
    child_count: int
    is_expanded: bool
    aggregations: dict[str, dict[str, float]] = field(default_factory=dict)
    children: list["TreeNode"] = field(default_factory=list)
    type: Literal["group"] = field(default="group", init=False)


TreeNode = Union[GroupNode, RowNode]


# ---------------------------------------------------------------------------
# Editing / selection
# ---------------------------------------------------------------------------

@dataclass
class EditingCell:
    """An open edit session on one cell."""

    row_id: RowId
    field: str
    value: Any
    original_value: Any
    state: CellState = CellState.EDITING
    error: str | None = None

    @property
    def key(self) -> str:
        return cell_key(self.row_id, self.field)


@dataclass
class SelectionModel:
    """Selected row ids plus the "select all" convenience flag.

    ``select_all`` is only set by the select-all action; it is not
    re-derived when rows come and go.
    """

    selected_ids: set[RowId] = field(default_factory=set)
    select_all: bool = False


@dataclass(frozen=True)
class FocusedCell:
    row_id: RowId
    field: str


# ---------------------------------------------------------------------------
# Push events
# ---------------------------------------------------------------------------

@dataclass
class SubscriptionEvent:
    """A create/update/delete notification delivered by an external source.

    ``UPDATED`` carries either ``row`` (full replacement) or ``patch``
    (partial merge); ``CREATED`` and ``UPSERT`` carry ``row``.
    """

    type: SubscriptionEventType
    id: RowId
    row: Any = None
    patch: Mapping[str, Any] | None = None
    updated_at: str | None = None
    version: int | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SubscriptionEvent":
        """Build an event from its wire form.

        Accepts both camelCase (``updatedAt``) and snake_case keys.

        Raises:
            ValueError: If ``type`` is missing or unknown, or ``id`` is missing.
        """
        raw_type = data.get("type")
        if raw_type is None:
            raise ValueError("Subscription event has no 'type'")
        if isinstance(raw_type, SubscriptionEventType):
            event_type = raw_type
        else:
            event_type = SubscriptionEventType(str(raw_type).upper())
        if data.get("id") is None:
            raise ValueError("Subscription event has no 'id'")
        return cls(
            type=event_type,
            id=data["id"],
            row=data.get("row"),
            patch=data.get("patch"),
            updated_at=data.get("updatedAt", data.get("updated_at")),
            version=data.get("version"),
        )
