# test/test_timeseries.py
import math

import numpy as np
import pytest

from tsml.core import (
    IndexOutOfRange,
    InvalidArgument,
    InvalidTimeSeries,
    SeriesChange,
    SeriesMeta,
    TimeSeries,
)


def _recorder(ts: TimeSeries) -> list:
    seen = []
    ts.add_listener(seen.append)
    return seen


def test_init_ok_basic():
    ts = TimeSeries([10.0, 20.0, 30.0], meta=SeriesMeta(name="eng_spd", unit="rpm"))

    assert ts.n == 3
    assert len(ts) == 3
    assert ts[1] == 20.0
    assert ts[-1] == 30.0
    assert ts.name == "eng_spd"
    assert ts.unit == "rpm"
    assert not ts.has_time_stamps
    assert ts.time_stamps is None
    assert np.allclose(ts.time, [0.0, 1.0, 2.0])
    assert ts.t_start == 0.0
    assert ts.t_end == 2.0


def test_init_rejects_non_1d():
    with pytest.raises(InvalidTimeSeries):
        TimeSeries(np.array([[0.0, 1.0]]))


def test_init_rejects_non_numeric():
    with pytest.raises(InvalidTimeSeries):
        TimeSeries(["a", "b"])


def test_init_accepts_generator_and_none_as_missing():
    ts = TimeSeries(x for x in [1.0, None, 3.0])
    assert ts.n == 3
    assert math.isnan(ts[1])
    assert ts.has_missing


def test_time_stamps_length_mismatch():
    with pytest.raises(InvalidTimeSeries):
        TimeSeries([1.0, 2.0], time_stamps=[0.0, 1.0, 2.0])


def test_time_stamps_must_be_strictly_ascending():
    with pytest.raises(InvalidTimeSeries):
        TimeSeries([1.0, 2.0, 3.0], time_stamps=[0.0, 1.0, 1.0])
    with pytest.raises(InvalidTimeSeries):
        TimeSeries([1.0, 2.0, 3.0], time_stamps=[0.0, 2.0, 1.0])
    with pytest.raises(InvalidArgument):
        TimeSeries([1.0, 2.0], time_stamps=[0.0, np.nan])


def test_set_time_stamps_validates_before_assignment():
    ts = TimeSeries([1.0, 2.0, 3.0], time_stamps=[0.0, 1.0, 2.0])
    seen = _recorder(ts)

    with pytest.raises(InvalidTimeSeries):
        ts.set_time_stamps([0.0, 5.0, 4.0])

    assert np.allclose(ts.time_stamps, [0.0, 1.0, 2.0])
    assert seen == []


def test_set_values_has_missing_matches_nan():
    ts = TimeSeries([1.0, 2.0])
    for values in ([1.0, 2.0, 3.0], [1.0, np.nan], [], [np.nan]):
        ts.set_values(values)
        assert ts.has_missing == any(math.isnan(v) for v in values)


def test_has_missing_is_cached_until_mutation():
    ts = TimeSeries([1.0, 2.0])
    assert ts.has_missing is False
    assert ts._has_missing.is_fresh

    ts[0] = np.nan
    assert not ts._has_missing.is_fresh
    assert ts.has_missing is True
    assert ts.has_missing is True


def test_mutations_fire_one_value_notification_each():
    ts = TimeSeries([1.0, 2.0, 3.0])
    seen = _recorder(ts)

    ts.set_values([4.0, 5.0])
    ts.append(6.0)
    ts.insert(0, 3.0)
    ts[1] = 7.0
    del ts[0]
    assert ts.pop() == 6.0

    assert seen == [SeriesChange.VALUES] * 6
    assert list(ts) == [7.0, 5.0]


def test_timestamp_change_notification():
    ts = TimeSeries([1.0, 2.0])
    seen = _recorder(ts)

    ts.set_time_stamps([0.5, 1.5])
    ts.set_time_stamps(None)

    assert seen == [SeriesChange.TIME_STAMPS, SeriesChange.TIME_STAMPS]
    assert not ts.has_time_stamps


def test_insert_and_remove_with_time_stamps_change_both():
    ts = TimeSeries([1.0, 3.0], time_stamps=[0.0, 2.0])
    seen = _recorder(ts)

    ts.insert(1, 2.0, time_stamp=1.0)
    assert list(ts) == [1.0, 2.0, 3.0]
    assert np.allclose(ts.time_stamps, [0.0, 1.0, 2.0])

    del ts[0]
    assert np.allclose(ts.time_stamps, [1.0, 2.0])

    both = SeriesChange.VALUES | SeriesChange.TIME_STAMPS
    assert seen == [both, both]


def test_insert_with_time_stamps_requires_ascending_stamp():
    ts = TimeSeries([1.0, 3.0], time_stamps=[0.0, 2.0])
    with pytest.raises(InvalidTimeSeries):
        ts.insert(1, 2.0)
    with pytest.raises(InvalidTimeSeries):
        ts.insert(1, 2.0, time_stamp=5.0)
    with pytest.raises(InvalidTimeSeries):
        ts.append(4.0, time_stamp=2.0)
    assert list(ts) == [1.0, 3.0]

    ts.append(4.0, time_stamp=3.0)
    assert ts.t_end == 3.0


def test_set_values_keeps_time_stamps_only_for_same_length():
    ts = TimeSeries([1.0, 2.0], time_stamps=[0.0, 1.0])
    ts.set_values([5.0, 6.0])
    assert np.allclose(ts.time_stamps, [0.0, 1.0])

    with pytest.raises(InvalidTimeSeries):
        ts.set_values([1.0, 2.0, 3.0])
    assert list(ts) == [5.0, 6.0]

    seen = _recorder(ts)
    ts.set_values([1.0, 2.0, 3.0], time_stamps=[0.0, 0.5, 1.0])
    assert seen == [SeriesChange.VALUES | SeriesChange.TIME_STAMPS]


def test_positional_access_out_of_range():
    ts = TimeSeries([1.0, 2.0])
    with pytest.raises(IndexOutOfRange):
        _ = ts[2]
    with pytest.raises(IndexOutOfRange):
        ts[5] = 1.0
    with pytest.raises(IndexOutOfRange):
        del ts[-3]
    with pytest.raises(IndexOutOfRange):
        ts.insert(3, 1.0)


def test_failed_mutation_does_not_notify():
    ts = TimeSeries([1.0])
    seen = _recorder(ts)
    with pytest.raises(IndexOutOfRange):
        ts[4] = 2.0
    assert seen == []


def test_equally_spaced():
    assert TimeSeries([1, 2, 3]).is_equally_spaced
    assert TimeSeries([1, 2, 3]).spacing == 1.0

    ts = TimeSeries([1, 2, 3, 4], time_stamps=[0.0, 0.5, 1.0, 1.5])
    assert ts.is_equally_spaced
    assert ts.spacing == pytest.approx(0.5)

    ts.set_time_stamps([0.0, 0.5, 1.0, 2.0])
    assert not ts.is_equally_spaced
    assert ts.spacing is None


def test_equally_spaced_float_rounding():
    ts = TimeSeries([1, 2, 3, 4], time_stamps=[0.0, 0.1, 0.2, 0.3])
    assert ts.is_equally_spaced
    assert ts.spacing == pytest.approx(0.1)


def test_short_time_stamped_series_is_equally_spaced():
    ts = TimeSeries([1.0], time_stamps=[3.0])
    assert ts.is_equally_spaced
    assert ts.spacing is None


def test_get_or_default_and_valid_value():
    ts = TimeSeries([1.0, np.nan, 3.0])
    assert ts.has_valid_value_at(0)
    assert not ts.has_valid_value_at(1)
    assert not ts.has_valid_value_at(3)
    assert ts.get_or_default(0) == 1.0
    assert math.isnan(ts.get_or_default(1))
    assert math.isnan(ts.get_or_default(10))
    assert ts.get_or_default(10, default=0.0) == 0.0


def test_take_pads_and_drop_skips():
    ts = TimeSeries([1.0, 2.0, 3.0])
    out = ts.take([2, 0, 5])
    assert out[0] == 3.0 and out[1] == 1.0 and math.isnan(out[2])
    assert np.allclose(ts.drop([1, 7]), [1.0, 3.0])


def test_window():
    ts = TimeSeries([1.0, 2.0, 3.0, 4.0])
    assert np.allclose(ts.window(1, 3), [2.0, 3.0])
    with pytest.raises(IndexOutOfRange):
        ts.window(2, 9)


def test_values_is_a_copy():
    ts = TimeSeries([1.0, 2.0])
    v = ts.values
    v[0] = 99.0
    assert ts[0] == 1.0


def test_slice_time_closed_both():
    ts = TimeSeries([10.0, 20.0, 30.0, 40.0], time_stamps=[0.0, 1.0, 2.0, 3.0], meta=SeriesMeta(unit="u"))

    out = ts.slice_time(1.0, 2.0, closed="both")
    assert np.allclose(out.time_stamps, [1.0, 2.0])
    assert np.allclose(out.values, [20.0, 30.0])
    assert out.unit == "u"


def test_slice_time_closed_left_without_time_stamps():
    ts = TimeSeries([10.0, 20.0, 30.0, 40.0])

    out = ts.slice_time(1.0, 2.0, closed="left")  # [1.0, 2.0)
    assert np.allclose(out.values, [20.0])
    assert out.time_stamps is None


def test_slice_time_bad_closed():
    with pytest.raises(ValueError):
        TimeSeries([1.0]).slice_time(closed="sideways")


def test_mean_std_skipna():
    ts = TimeSeries([1.0, np.nan, 3.0])

    assert ts.mean(skipna=True) == 2.0
    assert isinstance(ts.std(skipna=True), float)
    assert np.isnan(ts.mean(skipna=False))
    assert TimeSeries([]).mean() is None


def test_to_numpy():
    ts = TimeSeries([1.0, 2.0], time_stamps=[0.5, 1.0])
    t, v = ts.to_numpy()
    assert np.allclose(t, [0.5, 1.0])
    assert np.allclose(v, [1.0, 2.0])


def test_copy_and_equality():
    ts = TimeSeries([1.0, np.nan], time_stamps=[0.0, 1.0])
    ts.add_listener(lambda change: None)
    c = ts.copy()

    assert c == ts
    assert c is not ts
    assert c.num_listeners == 0

    c[0] = 5.0
    assert c != ts
    assert TimeSeries([1.0, 2.0]) != TimeSeries([1.0, 2.0], time_stamps=[0.0, 1.0])
