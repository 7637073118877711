# tsml/core/instance.py
from __future__ import annotations

import operator
from collections.abc import MutableSequence
from typing import Callable, Iterable, Iterator, Sequence

import numpy as np

from .cache import Memo, invalidate_all
from .config import get_config
from .events import ChangeNotifier, InstanceChange, SeriesChange
from .exceptions import IllegalState, IndexOutOfRange, InvalidInstance
from .labels import LabelEncoder
from .metadata import InstanceMeta
from .targets import UNLABELED, Classified, LabelState, Regression
from .timeseries import TimeSeries


def stack_padded(rows: Sequence[np.ndarray], width: int | None = None) -> np.ndarray:
    """Stack 1D arrays into a 2D array, padding short rows with the missing value."""
    if width is None:
        width = max((len(r) for r in rows), default=0)
    out = np.full((len(rows), width), get_config().missing_value, dtype=float)
    for i, row in enumerate(rows):
        out[i, : len(row)] = row[:width]
    return out


def _as_rows(values: object) -> list:
    """Split raw instance data into one 1D row per dimension."""
    if isinstance(values, np.ndarray):
        if values.ndim == 1:
            return [values]
        if values.ndim != 2:
            raise InvalidInstance(f"instance data must be 1D or 2D, got shape {values.shape}")
        return list(values)
    rows = list(values)  # type: ignore[call-overload]
    if rows and np.ndim(rows[0]) == 0:
        # a flat sequence of numbers is a univariate instance
        return [rows]
    return rows


class Instance(MutableSequence, ChangeNotifier[InstanceChange]):
    """
    A time series case: an ordered list of dimensions (TimeSeries) plus its
    label state.

    The instance subscribes one listener to each of its dimensions. A change
    in a dimension invalidates only the matching group of cached metadata
    (value-dependent or time-stamp-dependent) and is re-emitted to the
    instance's own listeners as an InstanceChange.

    Label state is one of Unlabeled, Classified(index) or Regression(target);
    class indices point into `labels`, a LabelEncoder shared by reference.
    """

    __hash__ = None  # type: ignore[assignment]

    def __init__(
        self,
        dimensions: Iterable[TimeSeries] = (),
        *,
        labels: LabelEncoder | None = None,
        label_index: int | None = None,
        label: str | None = None,
        target: float | None = None,
        meta: InstanceMeta | None = None,
    ) -> None:
        if meta is None:
            meta = InstanceMeta()
        elif not isinstance(meta, InstanceMeta):
            raise InvalidInstance("Instance.meta must be an InstanceMeta instance.")
        if labels is not None and not isinstance(labels, LabelEncoder):
            raise InvalidInstance("Instance.labels must be a LabelEncoder (or None).")
        if sum(x is not None for x in (label_index, label, target)) > 1:
            raise InvalidInstance("label_index, label and target are mutually exclusive.")

        self.meta = meta
        self._labels = labels
        self._label_state: LabelState = UNLABELED
        # the Dataset holding this instance, if any
        self._owner: object | None = None
        self._dimensions: list[TimeSeries] = []
        self._dimension_listeners: list[Callable[[SeriesChange], None]] = []

        self._init_notifier()
        # value-dependent
        self._has_missing = Memo(self._compute_has_missing)
        self._min_length = Memo(self._compute_min_length)
        self._max_length = Memo(self._compute_max_length)
        self._is_equal_length = Memo(self._compute_is_equal_length)
        # time-stamp-dependent
        self._is_equally_spaced = Memo(self._compute_is_equally_spaced)
        self._has_time_stamps = Memo(self._compute_has_time_stamps)

        for series in dimensions:
            self.append(series)

        if label_index is not None:
            self.set_class_label_index(label_index)
        elif label is not None:
            self.set_class_label(label)
        elif target is not None:
            self.set_regression_target(target)

    @classmethod
    def from_data(
        cls,
        values: object,
        *,
        time_stamps: Sequence[Sequence[float] | None] | None = None,
        labels: LabelEncoder | None = None,
        label_index: int | None = None,
        label: str | None = None,
        target: float | None = None,
        meta: InstanceMeta | None = None,
    ) -> "Instance":
        """
        Build an instance from raw values.

        `values` is a 2D array-like (one row per dimension, rows may differ in
        length) or a flat sequence for a univariate instance. `time_stamps`,
        if given, holds one entry (or None) per dimension.
        """
        rows = _as_rows(values)
        if time_stamps is not None and len(time_stamps) != len(rows):
            raise InvalidInstance(
                f"got {len(time_stamps)} time stamp rows for {len(rows)} dimensions"
            )
        stamps = [None] * len(rows) if time_stamps is None else list(time_stamps)
        dimensions = [TimeSeries(row, ts) for row, ts in zip(rows, stamps)]
        return cls(
            dimensions,
            labels=labels,
            label_index=label_index,
            label=label,
            target=target,
            meta=meta,
        )

    # ---- sequence protocol ----
    def __len__(self) -> int:
        return len(self._dimensions)

    def __iter__(self) -> Iterator[TimeSeries]:
        return iter(tuple(self._dimensions))

    def __getitem__(self, i):
        if isinstance(i, slice):
            return self._dimensions[i]
        return self._dimensions[self._normalize(i)]

    def insert(self, i: int, series: TimeSeries) -> None:
        self._check_insertable(series)
        n = len(self._dimensions)
        i = self._as_index(i)
        if i < 0:
            i += n
        if i < 0 or i > n:
            raise IndexOutOfRange(f"insert index {i} out of range for {n} dimensions")
        self._attach(i, series)
        self._dimension_change()

    def __setitem__(self, i: int, series: TimeSeries) -> None:
        i = self._normalize(i)
        if self._dimensions[i] is series:
            return
        self._check_insertable(series)
        self._detach(i)
        self._attach(i, series)
        self._dimension_change()

    def __delitem__(self, i: int) -> None:
        i = self._normalize(i)
        self._detach(i)
        self._dimension_change()

    def set_dimensions(self, dimensions: Iterable[TimeSeries]) -> None:
        """
        Replace all dimensions; fires a single DIMENSIONS notification.

        Current dimensions may be passed again, e.g. to reorder them.
        """
        new = list(dimensions)
        for series in new:
            self._check_insertable(series, reuse=True)
        if len({id(s) for s in new}) != len(new):
            raise InvalidInstance("the same TimeSeries cannot be added twice.")

        for i in reversed(range(len(self._dimensions))):
            self._detach(i)
        for i, series in enumerate(new):
            self._attach(i, series)
        self._dimension_change()

    def clear(self) -> None:
        self.set_dimensions(())

    def reverse(self) -> None:
        self.set_dimensions(self._dimensions[::-1])

    def _check_insertable(self, series: object, *, reuse: bool = False) -> None:
        if not isinstance(series, TimeSeries):
            raise InvalidInstance(f"dimensions must be TimeSeries, got {type(series).__name__}")
        if series._owner is not None and not (reuse and series._owner is self):
            raise InvalidInstance("TimeSeries already belongs to an instance; add a copy instead.")

    def _attach(self, i: int, series: TimeSeries) -> None:
        listener = self._build_listener()
        self._dimensions.insert(i, series)
        self._dimension_listeners.insert(i, listener)
        series.add_listener(listener)
        series._owner = self

    def _detach(self, i: int) -> TimeSeries:
        series = self._dimensions.pop(i)
        listener = self._dimension_listeners.pop(i)
        series.remove_listener(listener)
        series._owner = None
        return series

    def _build_listener(self) -> Callable[[SeriesChange], None]:
        # one closure per dimension so it can be unsubscribed on its own
        def on_series_change(change: SeriesChange) -> None:
            self._on_series_change(change)

        return on_series_change

    def _on_series_change(self, change: SeriesChange) -> None:
        out = InstanceChange(0)
        if change & SeriesChange.VALUES:
            self._invalidate_values()
            out |= InstanceChange.VALUES
        if change & SeriesChange.TIME_STAMPS:
            self._invalidate_time_stamps()
            out |= InstanceChange.TIME_STAMPS
        self._notify(out)

    def _dimension_change(self) -> None:
        self._invalidate_values()
        self._invalidate_time_stamps()
        self._notify(InstanceChange.DIMENSIONS)

    def _invalidate_values(self) -> None:
        invalidate_all(self._has_missing, self._min_length, self._max_length, self._is_equal_length)

    def _invalidate_time_stamps(self) -> None:
        invalidate_all(self._is_equally_spaced, self._has_time_stamps)

    # ---- cached metadata ----
    @property
    def num_dimensions(self) -> int:
        return len(self._dimensions)

    @property
    def is_univariate(self) -> bool:
        return len(self._dimensions) == 1

    @property
    def is_multivariate(self) -> bool:
        return len(self._dimensions) > 1

    @property
    def min_length(self) -> int:
        return self._min_length.get()

    @property
    def max_length(self) -> int:
        return self._max_length.get()

    @property
    def is_equal_length(self) -> bool:
        """True if all dimensions have the same length; False for no dimensions."""
        return self._is_equal_length.get()

    @property
    def has_missing(self) -> bool:
        return self._has_missing.get()

    @property
    def is_equally_spaced(self) -> bool:
        """All dimensions equally spaced, with the same spacing across dimensions."""
        return self._is_equally_spaced.get()

    @property
    def has_time_stamps(self) -> bool:
        return self._has_time_stamps.get()

    def _compute_min_length(self) -> int:
        return min((len(d) for d in self._dimensions), default=0)

    def _compute_max_length(self) -> int:
        return max((len(d) for d in self._dimensions), default=0)

    def _compute_is_equal_length(self) -> bool:
        if not self._dimensions:
            return False
        length = len(self._dimensions[0])
        return all(len(d) == length for d in self._dimensions[1:])

    def _compute_has_missing(self) -> bool:
        # if any dimension has a NaN value then the instance has missing values
        return any(d.has_missing for d in self._dimensions)

    def _compute_has_time_stamps(self) -> bool:
        return bool(self._dimensions) and all(d.has_time_stamps for d in self._dimensions)

    def _compute_is_equally_spaced(self) -> bool:
        if not all(d.is_equally_spaced for d in self._dimensions):
            return False
        spacings = [d.spacing for d in self._dimensions if d.spacing is not None]
        if len(spacings) < 2:
            return True
        cfg = get_config()
        return bool(np.allclose(spacings, spacings[0], rtol=cfg.spacing_rtol, atol=cfg.spacing_atol))

    # ---- label state ----
    @property
    def labels(self) -> LabelEncoder | None:
        return self._labels

    @property
    def label_state(self) -> LabelState:
        return self._label_state

    @property
    def has_class_label(self) -> bool:
        return isinstance(self._label_state, Classified)

    @property
    def has_regression_target(self) -> bool:
        return isinstance(self._label_state, Regression)

    @property
    def class_label_index(self) -> int | None:
        state = self._label_state
        return state.index if isinstance(state, Classified) else None

    @property
    def class_label(self) -> str | None:
        state = self._label_state
        if not isinstance(state, Classified):
            return None
        return self._require_labels().inverse_transform(state.index)

    @property
    def regression_target(self) -> float | None:
        state = self._label_state
        return state.target if isinstance(state, Regression) else None

    def set_class_label_index(self, index: int) -> None:
        """Classify the instance; clears any regression target."""
        labels = self._require_labels()
        state = Classified(index)
        if state.index >= len(labels):
            raise InvalidInstance(
                f"class label index {state.index} out of range for {len(labels)} labels"
            )
        self._set_label_state(state)

    def set_class_label(self, label: str) -> None:
        self._set_label_state(Classified(self._require_labels().transform(label)))

    def set_regression_target(self, target: float) -> None:
        """Set a regression target; clears any class label."""
        self._set_label_state(Regression(target))

    def clear_label(self) -> None:
        self._set_label_state(UNLABELED)

    def set_label_vocabulary(self, labels: LabelEncoder | None) -> None:
        """
        Switch to another vocabulary, re-mapping the class index by label.

        Fails without changing anything if the current label is absent from
        the new vocabulary. Instances inside a Dataset change vocabulary
        through the dataset.
        """
        if self._owner is not None:
            raise IllegalState("instance belongs to a dataset; use Dataset.set_label_vocabulary().")
        if labels is not None and not isinstance(labels, LabelEncoder):
            raise InvalidInstance("labels must be a LabelEncoder (or None).")
        self._bind_labels(labels, self._remapped_state(labels))

    def _remapped_state(self, labels: LabelEncoder | None) -> LabelState:
        state = self._label_state
        if not isinstance(state, Classified):
            return state
        label = self.class_label
        if labels is None or label not in labels:
            raise InvalidInstance(f"label {label!r} is not in the new vocabulary")
        return Classified(labels.transform(label))

    def _bind_labels(self, labels: LabelEncoder | None, state: LabelState) -> None:
        changed = labels is not self._labels or state != self._label_state
        self._labels = labels
        self._label_state = state
        if changed:
            self._notify(InstanceChange.CLASS)

    def _set_label_state(self, state: LabelState) -> None:
        self._label_state = state
        self._notify(InstanceChange.CLASS)

    def _require_labels(self) -> LabelEncoder:
        if self._labels is None or not self._labels.is_fitted:
            raise IllegalState("instance has no fitted label vocabulary.")
        return self._labels

    # ---- slicing ----
    def get_single_vslice(self, index: int) -> np.ndarray:
        """Values at time index `index` across all dimensions (missing-padded)."""
        return np.array([d.get_or_default(index) for d in self._dimensions], dtype=float)

    def get_vslice(self, indexes: Sequence[int]) -> np.ndarray:
        """Array of shape (num_dimensions, len(indexes)), missing-padded."""
        indexes = list(indexes)
        if not self._dimensions:
            return np.empty((0, len(indexes)), dtype=float)
        return np.stack([d.take(indexes) for d in self._dimensions])

    def get_single_hslice(self, dim: int) -> np.ndarray:
        return self[dim].values

    def get_hslice(self, dims: Sequence[int]) -> np.ndarray:
        """Array of shape (len(dims), longest selected dimension), missing-padded."""
        return stack_padded([self[d].values for d in dims])

    def get_hslice_instance(self, dims: Sequence[int]) -> "Instance":
        """New instance holding copies of the selected dimensions and the same label state."""
        out = Instance(
            [self[d].copy() for d in dims],
            labels=self._labels,
            meta=self.meta.copy(),
        )
        out._label_state = self._label_state
        return out

    # ---- export ----
    def to_value_array(self) -> np.ndarray:
        """Array of shape (num_dimensions, max_length), missing-padded."""
        return stack_padded([d.values for d in self._dimensions], self.max_length)

    def to_transposed_array(self) -> np.ndarray:
        """Array of shape (max_length, num_dimensions): row t is the vertical slice at t."""
        return self.to_value_array().T.copy()

    def copy(self) -> "Instance":
        """Unowned copy: copied dimensions, same vocabulary, same label state."""
        return self.get_hslice_instance(range(len(self._dimensions)))

    # ---- comparison / display ----
    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, Instance):
            return NotImplemented
        return (
            self._dimensions == other._dimensions
            and self._label_state == other._label_state
            and self._labels == other._labels
        )

    def __repr__(self) -> str:
        state = self._label_state
        if isinstance(state, Classified):
            lab = f", label={self.class_label!r}"
        elif isinstance(state, Regression):
            lab = f", target={state.target!r}"
        else:
            lab = ""
        return f"Instance(num_dimensions={self.num_dimensions}, max_length={self.max_length}{lab})"

    @staticmethod
    def _as_index(i: object) -> int:
        if isinstance(i, bool):
            raise IndexOutOfRange(f"index must be an int, got {i!r}")
        try:
            return operator.index(i)  # type: ignore[arg-type]
        except TypeError as e:
            raise IndexOutOfRange(f"index must be an int, got {i!r}") from e

    def _normalize(self, i: int) -> int:
        n = len(self._dimensions)
        i = self._as_index(i)
        if i < 0:
            i += n
        if i < 0 or i >= n:
            raise IndexOutOfRange(f"dimension {i} out of range for {n} dimensions")
        return i
