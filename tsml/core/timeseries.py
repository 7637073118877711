# tsml/core/timeseries.py
from __future__ import annotations

import math
import operator
from collections.abc import MutableSequence
from typing import Iterable, Iterator, Sequence

import numpy as np

from .cache import Memo
from .config import get_config
from .events import ChangeNotifier, SeriesChange
from .exceptions import IndexOutOfRange, InvalidTimeSeries
from .metadata import SeriesMeta


def _as_float(value: object) -> float:
    if value is None:
        return math.nan
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as e:
        raise InvalidTimeSeries(f"values must be numeric, got {value!r}") from e


def _as_index(i: object) -> int:
    if isinstance(i, bool):
        raise IndexOutOfRange(f"index must be an int, got {i!r}")
    try:
        return operator.index(i)  # type: ignore[arg-type]
    except TypeError as e:
        raise IndexOutOfRange(f"index must be an int, got {i!r}") from e


def _as_values(values: Iterable[float]) -> list[float]:
    if not isinstance(values, (np.ndarray, Sequence)):
        values = list(values)
    try:
        v = np.asarray(values, dtype=float)
    except (TypeError, ValueError) as e:
        raise InvalidTimeSeries(f"`values` must be numeric: {e}") from e
    if v.ndim != 1:
        raise InvalidTimeSeries(f"`values` must be 1D, got shape {v.shape}")
    return v.tolist()


def _as_time_stamps(time_stamps: Iterable[float], n: int) -> list[float]:
    if not isinstance(time_stamps, (np.ndarray, Sequence)):
        time_stamps = list(time_stamps)
    try:
        t = np.asarray(time_stamps, dtype=float)
    except (TypeError, ValueError) as e:
        raise InvalidTimeSeries(f"`time_stamps` must be numeric: {e}") from e
    if t.ndim != 1:
        raise InvalidTimeSeries(f"`time_stamps` must be 1D, got shape {t.shape}")
    if t.size != n:
        raise InvalidTimeSeries(
            f"`time_stamps` and values must have same length, got {t.size} vs {n}"
        )
    if t.size > 0:
        if not np.isfinite(t).all():
            raise InvalidTimeSeries("`time_stamps` contains non-finite values (NaN/Inf).")
        if np.any(np.diff(t) <= 0):
            raise InvalidTimeSeries("`time_stamps` must be strictly ascending.")
    return t.tolist()


class TimeSeries(MutableSequence, ChangeNotifier[SeriesChange]):
    """
    Mutable time series: ordered float values (NaN = missing) with optional
    strictly ascending time stamps.

    Derived flags (has_missing, is_equally_spaced, spacing) are computed on
    first read and cached until the next mutation. Every mutation fires one
    SeriesChange notification to the registered listeners before returning.
    """

    __hash__ = None  # type: ignore[assignment]

    def __init__(
        self,
        values: Iterable[float] = (),
        time_stamps: Iterable[float] | None = None,
        *,
        meta: SeriesMeta | None = None,
    ) -> None:
        if meta is None:
            meta = SeriesMeta()
        elif not isinstance(meta, SeriesMeta):
            raise InvalidTimeSeries("TimeSeries.meta must be a SeriesMeta instance.")

        vals = _as_values(values)
        self._values: list[float] = vals
        self._time_stamps: list[float] | None = (
            None if time_stamps is None else _as_time_stamps(time_stamps, len(vals))
        )
        self.meta = meta
        # the Instance holding this series, if any
        self._owner: object | None = None

        self._init_notifier()
        self._has_missing = Memo(self._compute_has_missing)
        self._spacing = Memo(self._compute_spacing)

    # ---- basic accessors ----
    @property
    def n(self) -> int:
        return len(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[float]:
        return iter(tuple(self._values))

    def __getitem__(self, i):
        if isinstance(i, slice):
            return np.array(self._values[i], dtype=float)
        return self._values[self._normalize(i)]

    @property
    def name(self) -> str | None:
        return self.meta.name

    @property
    def unit(self) -> str | None:
        return self.meta.unit

    @property
    def values(self) -> np.ndarray:
        return np.array(self._values, dtype=float)

    @property
    def time_stamps(self) -> np.ndarray | None:
        if self._time_stamps is None:
            return None
        return np.array(self._time_stamps, dtype=float)

    @property
    def time(self) -> np.ndarray:
        """Time axis: the time stamps if set, otherwise 0..n-1."""
        if self._time_stamps is None:
            return np.arange(self.n, dtype=float)
        return np.array(self._time_stamps, dtype=float)

    @property
    def t_start(self) -> float | None:
        return None if self.n == 0 else float(self.time[0])

    @property
    def t_end(self) -> float | None:
        return None if self.n == 0 else float(self.time[-1])

    # ---- cached metadata ----
    @property
    def has_missing(self) -> bool:
        return self._has_missing.get()

    @property
    def has_time_stamps(self) -> bool:
        return self._time_stamps is not None

    @property
    def spacing(self) -> float | None:
        """
        Uniform delta between consecutive time stamps.

        1.0 without time stamps (index spacing); None when fewer than two
        time stamps exist or the deltas differ.
        """
        return self._spacing.get()

    @property
    def is_equally_spaced(self) -> bool:
        if self._time_stamps is None or len(self._time_stamps) < 3:
            return True
        return self.spacing is not None

    def _compute_has_missing(self) -> bool:
        return bool(np.isnan(np.asarray(self._values, dtype=float)).any())

    def _compute_spacing(self) -> float | None:
        if self._time_stamps is None:
            return 1.0
        if len(self._time_stamps) < 2:
            return None
        dt = np.diff(np.asarray(self._time_stamps, dtype=float))
        cfg = get_config()
        if not np.allclose(dt, dt[0], rtol=cfg.spacing_rtol, atol=cfg.spacing_atol):
            return None
        return float(np.mean(dt))

    # ---- mutation ----
    def set_values(
        self,
        values: Iterable[float],
        time_stamps: Iterable[float] | None = None,
    ) -> None:
        """
        Replace the values (and optionally the time stamps) of the series.

        A series that already has time stamps only accepts values of the
        same length unless new time stamps are given.
        """
        vals = _as_values(values)
        change = SeriesChange.VALUES
        stamps = self._time_stamps
        if time_stamps is not None:
            stamps = _as_time_stamps(time_stamps, len(vals))
            change |= SeriesChange.TIME_STAMPS
        elif stamps is not None and len(stamps) != len(vals):
            raise InvalidTimeSeries(
                f"series has {len(stamps)} time stamps, cannot set {len(vals)} values "
                "without new time stamps"
            )

        self._values = vals
        self._time_stamps = stamps
        self._changed(change)

    def set_time_stamps(self, time_stamps: Iterable[float] | None) -> None:
        """Set (or clear with None) the time stamps of the series."""
        stamps = None if time_stamps is None else _as_time_stamps(time_stamps, self.n)
        self._time_stamps = stamps
        self._changed(SeriesChange.TIME_STAMPS)

    def __setitem__(self, i: int, value: float) -> None:
        i = self._normalize(i)
        self._values[i] = _as_float(value)
        self._changed(SeriesChange.VALUES)

    def insert(self, i: int, value: float, time_stamp: float | None = None) -> None:
        """
        Insert `value` before position `i`.

        If the series has time stamps, `time_stamp` is required and must fall
        strictly between the neighbouring time stamps.
        """
        n = self.n
        i = _as_index(i)
        if i < 0:
            i += n
        if i < 0 or i > n:
            raise IndexOutOfRange(f"insert index {i} out of range for length {n}")
        v = _as_float(value)

        stamps = self._time_stamps
        if time_stamp is None:
            if stamps is not None:
                raise InvalidTimeSeries("series has time stamps; insert() needs a time_stamp")
            self._values.insert(i, v)
            self._changed(SeriesChange.VALUES)
            return

        t = _as_float(time_stamp)
        if not math.isfinite(t):
            raise InvalidTimeSeries(f"time stamp must be finite, got {t}")
        if stamps is None:
            if n > 0:
                raise InvalidTimeSeries("series has no time stamps; cannot insert a time_stamp")
            stamps = []
        if (i > 0 and stamps[i - 1] >= t) or (i < len(stamps) and stamps[i] <= t):
            raise InvalidTimeSeries(f"time stamp {t} breaks strict ascending order at index {i}")

        stamps.insert(i, t)
        self._time_stamps = stamps
        self._values.insert(i, v)
        self._changed(SeriesChange.VALUES | SeriesChange.TIME_STAMPS)

    def append(self, value: float, time_stamp: float | None = None) -> None:
        self.insert(self.n, value, time_stamp)

    def __delitem__(self, i: int) -> None:
        i = self._normalize(i)
        del self._values[i]
        change = SeriesChange.VALUES
        if self._time_stamps is not None:
            del self._time_stamps[i]
            change |= SeriesChange.TIME_STAMPS
        self._changed(change)

    def clear(self) -> None:
        self.set_values([], None if self._time_stamps is None else [])

    def _changed(self, change: SeriesChange) -> None:
        if change & SeriesChange.VALUES:
            self._has_missing.invalidate()
        if change & SeriesChange.TIME_STAMPS:
            self._spacing.invalidate()
        self._notify(change)

    # ---- value access ----
    def has_valid_value_at(self, i: int) -> bool:
        """True if `i` is in range and the value there is finite."""
        return 0 <= i < self.n and math.isfinite(self._values[i])

    def get_or_default(self, i: int, default: float | None = None) -> float:
        if self.has_valid_value_at(i):
            return self._values[i]
        return get_config().missing_value if default is None else default

    def window(self, start: int, end: int) -> np.ndarray:
        """Values in [start, end)."""
        if not 0 <= start <= end <= self.n:
            raise IndexOutOfRange(f"window [{start}, {end}) out of range for length {self.n}")
        return np.array(self._values[start:end], dtype=float)

    def take(self, indexes: Sequence[int]) -> np.ndarray:
        """Values at `indexes`, padded with the missing value where invalid."""
        return np.array([self.get_or_default(i) for i in indexes], dtype=float)

    def drop(self, indexes: Iterable[int]) -> np.ndarray:
        """Values without the positions in `indexes` (out-of-range positions ignored)."""
        mask = np.ones(self.n, dtype=bool)
        for i in indexes:
            if 0 <= i < self.n:
                mask[i] = False
        return self.values[mask]

    def to_numpy(self) -> tuple[np.ndarray, np.ndarray]:
        return self.time, self.values

    def slice_time(
        self,
        t_min: float | None = None,
        t_max: float | None = None,
        *,
        closed: str = "both",
    ) -> "TimeSeries":
        """
        New series restricted to a time window.

        Series without time stamps are sliced on their index axis and the
        result has no time stamps either.
        """
        if closed not in {"both", "left", "right", "neither"}:
            raise ValueError("closed must be one of: both, left, right, neither")

        t = self.time
        mask = np.ones_like(t, dtype=bool)

        if t_min is not None:
            if closed in {"both", "left"}:
                mask &= (t >= t_min)
            else:
                mask &= (t > t_min)

        if t_max is not None:
            if closed in {"both", "right"}:
                mask &= (t <= t_max)
            else:
                mask &= (t < t_max)

        return TimeSeries(
            values=self.values[mask],
            time_stamps=None if self._time_stamps is None else t[mask],
            meta=self.meta.copy(),
        )

    def mean(self, *, skipna: bool = True) -> float | None:
        if self.n == 0:
            return None
        v = self.values
        if skipna:
            if np.isnan(v).all():
                return None
            return float(np.nanmean(v))
        return float(np.mean(v))

    def std(self, *, ddof: int = 0, skipna: bool = True) -> float | None:
        if self.n == 0:
            return None
        v = self.values
        if skipna:
            if np.isnan(v).all():
                return None
            return float(np.nanstd(v, ddof=ddof))
        return float(np.std(v, ddof=ddof))

    def copy(self) -> "TimeSeries":
        """Unowned copy of the series, without listeners."""
        return TimeSeries(
            values=list(self._values),
            time_stamps=None if self._time_stamps is None else list(self._time_stamps),
            meta=self.meta.copy(),
        )

    # ---- comparison / display ----
    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, TimeSeries):
            return NotImplemented
        if not np.array_equal(self.values, other.values, equal_nan=True):
            return False
        if self._time_stamps is None or other._time_stamps is None:
            return self._time_stamps is None and other._time_stamps is None
        return self._time_stamps == other._time_stamps

    def __repr__(self) -> str:
        name = f", name={self.name!r}" if self.name is not None else ""
        return f"TimeSeries(n={self.n}{name}, time_stamps={self.has_time_stamps})"

    def __str__(self) -> str:
        return ",".join(repr(v) for v in self._values)

    def _normalize(self, i: int) -> int:
        n = self.n
        i = _as_index(i)
        if i < 0:
            i += n
        if i < 0 or i >= n:
            raise IndexOutOfRange(f"index {i} out of range for length {n}")
        return i
