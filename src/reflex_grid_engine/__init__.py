"""reflex-grid-engine – in-memory data grid state for Reflex apps.

Filtering, sorting, grouping with aggregations, flattening for windowed
rendering, selection, cell editing and push-update reconciliation, with
a Reflex state mixin and polars ingestion helpers::

    pip install reflex-grid-engine
"""

from reflex_grid_engine.config import GridSettings, clear_settings_cache, get_settings
from reflex_grid_engine.editing import CellEditor
from reflex_grid_engine.exceptions import FileFormatError, GridEngineError, IllegalTransitionError
from reflex_grid_engine.filtering import (
    EMPTY_VALUE_KEY,
    apply_advanced_filters,
    apply_filters,
    merge_filter_model,
    value_options,
)
from reflex_grid_engine.grouping import build_tree, calculate_aggregation, flatten_tree
from reflex_grid_engine.models import Column, ColumnDef
from reflex_grid_engine.polars_utils import (
    build_columns_from_schema,
    lazyframe_to_grid,
    polars_dtype_to_grid_type,
    scan_file,
)
from reflex_grid_engine.row_index import RowIndex
from reflex_grid_engine.selection import SelectionState
from reflex_grid_engine.sorting import apply_sort, toggle_sort_model
from reflex_grid_engine.state import GridStateMixin, serialize_node
from reflex_grid_engine.store import GridStore
from reflex_grid_engine.subscription import SubscriptionReconciler, default_apply_event
from reflex_grid_engine.types import (
    CellState,
    ConflictPolicy,
    EditingCell,
    FocusedCell,
    GroupNode,
    RowNode,
    SelectionModel,
    SubscriptionEvent,
    SubscriptionEventType,
    TreeNode,
)
