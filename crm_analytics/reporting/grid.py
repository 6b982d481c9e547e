"""
Tabular Reporting Engine

Generic data grid behind every CRM report view. Rows can be dicts, pydantic
models or dataclasses; columns read them through explicit accessors or, by
default, mapping/attribute lookup on the column key.

The materialized view is always computed as search -> filter -> sort, and
each step is also available as a pure function.
"""

import functools
import locale
import math
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import (
    Any,
    Callable,
    Dict,
    FrozenSet,
    Generic,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    TypeVar,
)

import structlog

logger = structlog.get_logger(__name__)

R = TypeVar("R")

Accessor = Callable[[Any], Any]

# Filter value that disables a filter
ALL = "all"

_MISSING = object()


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class SortState:
    key: str
    direction: SortDirection


# =============================================================================
# FIELD ACCESS
# =============================================================================

def _lookup(row: Any, key: str) -> Any:
    if isinstance(row, Mapping):
        return row.get(key, _MISSING)
    return getattr(row, key, _MISSING)


def field_value(row: Any, key: str) -> Any:
    """Value of `key` on a mapping or object row; None when absent"""
    value = _lookup(row, key)
    return None if value is _MISSING else value


def display_text(value: Any) -> str:
    """String form used by search, filters, string sorting and CSV"""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


@dataclass(frozen=True)
class Column:
    """
    Column descriptor.

    Attributes:
        key: Field the column reads and the key it exports under
        label: Header text
        sortable: Whether toggle_sort accepts this column
        accessor: Explicit value getter; defaults to lookup by key
        render: Display formatter for printable output
    """
    key: str
    label: str
    sortable: bool = False
    accessor: Optional[Accessor] = None
    render: Optional[Callable[[Any], str]] = None

    def value(self, row: Any) -> Any:
        if self.accessor is not None:
            return self.accessor(row)
        return field_value(row, self.key)

    def display(self, row: Any) -> str:
        value = self.value(row)
        if self.render is not None:
            return self.render(value)
        return display_text(value)


@dataclass(frozen=True)
class FilterOption:
    """A drop-down filter: exact match of `key` against one of `options`"""
    key: str
    label: str
    options: Tuple[Tuple[str, str], ...] = ()

    @property
    def values(self) -> Tuple[str, ...]:
        return tuple(value for value, _ in self.options)


# =============================================================================
# PURE PIPELINE STEPS
# =============================================================================

def search_rows(
    rows: Iterable[R],
    key: str,
    query: Optional[str],
    accessor: Optional[Accessor] = None,
) -> List[R]:
    """Case-insensitive substring match on the string form of `key`"""
    rows = list(rows)
    if not query:
        return rows
    needle = query.casefold()
    get = accessor or (lambda row: field_value(row, key))
    return [row for row in rows if needle in display_text(get(row)).casefold()]


def filter_rows(
    rows: Iterable[R],
    active_filters: Mapping[str, Optional[str]],
    accessors: Optional[Mapping[str, Accessor]] = None,
) -> List[R]:
    """
    AND-combined exact-match filters on the string form of each key.

    A value of ALL (or an empty value) disables that filter, and a key the
    row does not have matches every row.
    """
    accessors = accessors or {}
    predicates = [
        (key, str(value))
        for key, value in active_filters.items()
        if value is not None and str(value) != "" and str(value) != ALL
    ]
    if not predicates:
        return list(rows)

    def matches(row: Any) -> bool:
        for key, expected in predicates:
            if key in accessors:
                actual = accessors[key](row)
            else:
                actual = _lookup(row, key)
                if actual is _MISSING:
                    continue
            if display_text(actual) != expected:
                return False
        return True

    return [row for row in rows if matches(row)]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _collation_key(value: Any) -> Tuple[str, str]:
    text = display_text(value).replace("\x00", "")
    return locale.strxfrm(text.casefold()), text


def compare_values(a: Any, b: Any) -> int:
    """Numeric comparison for two numbers, locale-aware text comparison otherwise"""
    if _is_number(a) and _is_number(b):
        return (a > b) - (a < b)
    ka, kb = _collation_key(a), _collation_key(b)
    return (ka > kb) - (ka < kb)


def sort_rows(
    rows: Iterable[R],
    key: str,
    direction: SortDirection = SortDirection.ASC,
    accessor: Optional[Accessor] = None,
) -> List[R]:
    """Stable sort; equal rows keep their input order in both directions"""
    get = accessor or (lambda row: field_value(row, key))
    return sorted(
        rows,
        key=functools.cmp_to_key(lambda x, y: compare_values(get(x), get(y))),
        reverse=SortDirection(direction) == SortDirection.DESC,
    )


# =============================================================================
# DATA GRID
# =============================================================================

class DataGrid(Generic[R]):
    """
    Stateful grid: search query, active filters, sort state and selection
    over a row collection.

    Example:
        grid = DataGrid(orders, columns, search_key="order_number")
        grid.set_filter("status", "delivered")
        grid.toggle_sort("total")
        rows = grid.view()
    """

    def __init__(
        self,
        rows: Iterable[R],
        columns: Sequence[Column],
        search_key: Optional[str] = None,
        filters: Sequence[FilterOption] = (),
        id_key: str = "id",
        on_selection_change: Optional[Callable[[FrozenSet[Any]], None]] = None,
    ):
        self.columns: Tuple[Column, ...] = tuple(columns)
        self.search_key = search_key
        self.filters: Tuple[FilterOption, ...] = tuple(filters)
        self.id_key = id_key
        self.on_selection_change = on_selection_change

        self._rows: List[R] = list(rows)
        self._columns_by_key: Dict[str, Column] = {c.key: c for c in self.columns}
        self.search_query: str = ""
        self.active_filters: Dict[str, str] = {}
        self.sort: Optional[SortState] = None
        self._selected: set = set()

    @property
    def rows(self) -> List[R]:
        return list(self._rows)

    @property
    def total_count(self) -> int:
        return len(self._rows)

    def replace_rows(self, rows: Iterable[R]) -> None:
        """Swap the backing rows; query, filters, sort and selection are kept"""
        self._rows = list(rows)

    def _accessor(self, key: str) -> Optional[Accessor]:
        column = self._columns_by_key.get(key)
        return column.value if column is not None else None

    # ------------------------------------------------------------------
    # search / filter / sort
    # ------------------------------------------------------------------

    def set_search(self, query: Optional[str]) -> None:
        self.search_query = query or ""

    def set_filter(self, key: str, value: Optional[str]) -> None:
        known = {f.key for f in self.filters} | set(self._columns_by_key)
        if key not in known:
            logger.warning("Ignoring filter on unknown key", key=key)
            return
        if value is None or str(value) in ("", ALL):
            self.active_filters.pop(key, None)
        else:
            self.active_filters[key] = str(value)

    def clear_filters(self) -> None:
        self.active_filters.clear()

    def toggle_sort(self, key: str) -> Optional[SortState]:
        """Cycle unsorted -> ascending -> descending -> unsorted on `key`"""
        column = self._columns_by_key.get(key)
        if column is None or not column.sortable:
            logger.warning("Ignoring sort on unsortable key", key=key)
            return self.sort

        if self.sort is None or self.sort.key != key:
            self.sort = SortState(key, SortDirection.ASC)
        elif self.sort.direction == SortDirection.ASC:
            self.sort = SortState(key, SortDirection.DESC)
        else:
            self.sort = None
        return self.sort

    def set_sort(self, key: Optional[str], direction: SortDirection = SortDirection.ASC) -> Optional[SortState]:
        if key is None:
            self.sort = None
            return None
        column = self._columns_by_key.get(key)
        if column is None or not column.sortable:
            logger.warning("Ignoring sort on unsortable key", key=key)
            return self.sort
        self.sort = SortState(key, SortDirection(direction))
        return self.sort

    def _searched_and_filtered(self) -> List[R]:
        rows = self._rows
        if self.search_key and self.search_query:
            rows = search_rows(rows, self.search_key, self.search_query, self._accessor(self.search_key))
        accessors = {
            key: self._accessor(key)
            for key in self.active_filters
            if key in self._columns_by_key
        }
        return filter_rows(rows, self.active_filters, accessors)

    def view(self) -> List[R]:
        """Materialized view: search, then filter, then sort"""
        rows = self._searched_and_filtered()
        if self.sort is not None:
            rows = sort_rows(rows, self.sort.key, self.sort.direction, self._accessor(self.sort.key))
        return rows

    def export_rows(self, rows: Optional[Sequence[R]] = None) -> List[Dict[str, Any]]:
        """Current view (or the given rows) as column-keyed records of raw values"""
        if rows is None:
            rows = self.view()
        return [{c.key: c.value(row) for c in self.columns} for row in rows]

    @property
    def summary(self) -> str:
        return f"Showing {len(self._searched_and_filtered())} of {self.total_count} records"

    # ------------------------------------------------------------------
    # selection
    # ------------------------------------------------------------------

    def row_id(self, row: R) -> Any:
        return field_value(row, self.id_key)

    @property
    def selected_ids(self) -> FrozenSet[Any]:
        return frozenset(self._selected)

    def is_selected(self, row_id: Any) -> bool:
        return row_id in self._selected

    def selected_rows(self) -> List[R]:
        return [row for row in self._rows if self.row_id(row) in self._selected]

    def _selection_changed(self) -> None:
        if self.on_selection_change is not None:
            self.on_selection_change(self.selected_ids)

    def toggle_row(self, row_id: Any) -> bool:
        """Flip one row's selection; returns whether it is now selected"""
        if row_id in self._selected:
            self._selected.discard(row_id)
        else:
            self._selected.add(row_id)
        self._selection_changed()
        return row_id in self._selected

    def toggle_all(self) -> None:
        """Select every row of the current view, or clear when all already are"""
        visible = [self.row_id(row) for row in self._searched_and_filtered()]
        if visible and all(row_id in self._selected for row_id in visible):
            self._selected.clear()
        else:
            self._selected.update(visible)
        self._selection_changed()

    def clear_selection(self) -> None:
        self._selected.clear()
        self._selection_changed()
