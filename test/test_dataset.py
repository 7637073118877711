# test/test_dataset.py
import gc
import logging
import math

import numpy as np
import pytest

from tsml.core import (
    UNLABELED,
    Dataset,
    DatasetChange,
    DatasetMeta,
    IndexOutOfRange,
    Instance,
    InvalidDataset,
    LabelEncoder,
    TimeSeries,
)


def _inst(*rows, **kwargs) -> Instance:
    return Instance([TimeSeries(r) for r in rows], **kwargs)


def _labelled() -> Dataset:
    return Dataset.from_labelled_data(
        [[[1.0, 2.0]], [[3.0, 4.0]], [[5.0, 6.0]]],
        ["a", "b", "b"],
    )


def _recorder(ds: Dataset) -> list:
    seen = []
    ds.add_listener(seen.append)
    return seen


def test_empty_dataset():
    ds = Dataset()
    assert len(ds) == 0
    assert ds.num_classes == 0
    assert ds.min_length == 0 and ds.max_length == 0
    assert ds.is_equal_length is False
    assert ds.has_missing is False
    assert ds.class_counts.size == 0
    assert ds.to_value_array().shape == (0, 0, 0)


def test_from_labelled_data():
    ds = _labelled()
    assert len(ds) == 3
    assert ds.labels.classes == ("a", "b")
    assert list(ds.class_indexes) == [0, 1, 1]
    assert ds.class_labels == ["a", "b", "b"]
    assert list(ds.class_counts) == [1, 2]
    assert all(inst.labels is ds.labels for inst in ds)


def test_from_labelled_data_sorted():
    ds = Dataset.from_labelled_data([[1.0], [2.0]], ["z", "a"], sort_labels=True)
    assert ds.labels.classes == ("a", "z")
    assert list(ds.class_indexes) == [1, 0]


def test_from_data_with_targets():
    ds = Dataset.from_data(np.zeros((2, 3, 4)), targets=[0.5, 1.5])
    assert ds.max_num_dimensions == 3
    assert ds.max_length == 4
    assert np.allclose(ds.regression_targets, [0.5, 1.5])
    assert list(ds.class_indexes) == [-1, -1]


def test_from_data_argument_checks():
    with pytest.raises(InvalidDataset):
        Dataset.from_data([[1.0]], label_indexes=[0], targets=[1.0], labels=["a"])
    with pytest.raises(InvalidDataset):
        Dataset.from_data([[1.0], [2.0]], targets=[1.0])
    # invalid instance data surfaces as a dataset error
    with pytest.raises(InvalidDataset):
        Dataset.from_data([[1.0]], labels=["a"], label_indexes=[3])


def test_vocabulary_mismatch_rejected():
    ds = _labelled()
    other = _inst([1.0], labels=LabelEncoder(["a", "b"]), label="a")

    with pytest.raises(InvalidDataset):
        ds.append(other)
    assert len(ds) == 3


def test_unlabelled_instance_joins_vocabulary():
    ds = _labelled()
    inst = _inst([1.0])
    ds.append(inst)

    assert inst.labels is ds.labels
    inst.set_class_label("a")
    assert list(ds.class_counts) == [2, 2]


def test_instance_can_only_belong_to_one_dataset():
    ds = Dataset([_inst([1.0])])
    with pytest.raises(InvalidDataset):
        Dataset([ds[0]])
    with pytest.raises(InvalidDataset):
        ds.append(ds[0])

    inst = _inst([1.0])
    with pytest.raises(InvalidDataset):
        Dataset([inst, inst])


def test_removed_instance_is_released():
    ds = Dataset([_inst([1.0]), _inst([2.0])])
    inst = ds.pop(0)
    assert inst._owner is None
    assert inst.num_listeners == 0
    Dataset([inst])


def test_set_label_vocabulary_reindexes():
    ds = _labelled()
    seen = _recorder(ds)

    ds.set_label_vocabulary(["b", "a"])

    assert ds.labels.classes == ("b", "a")
    assert list(ds.class_indexes) == [1, 0, 0]
    assert ds.class_labels == ["a", "b", "b"]
    assert list(ds.class_counts) == [2, 1]
    assert all(inst.labels is ds.labels for inst in ds)
    assert seen == [DatasetChange.LABELS]


def test_set_label_vocabulary_is_atomic():
    ds = _labelled()
    before = ds.labels

    with pytest.raises(InvalidDataset):
        ds.set_label_vocabulary(["a", "c"])

    assert ds.labels is before
    assert list(ds.class_indexes) == [0, 1, 1]
    assert all(inst.labels is before for inst in ds)


def test_instance_vocabulary_locked_inside_dataset():
    from tsml.core import IllegalState

    ds = _labelled()
    with pytest.raises(IllegalState):
        ds[0].set_label_vocabulary(LabelEncoder(["a", "b"]))


def test_class_counts_follow_vocabulary_size():
    ds = _labelled()
    ds.set_label_vocabulary(["a", "b", "c", "d"])
    assert list(ds.class_counts) == [1, 2, 0, 0]

    ds[0].set_class_label("d")
    assert list(ds.class_counts) == [0, 2, 0, 1]


def test_class_counts_returns_copy():
    ds = _labelled()
    counts = ds.class_counts
    counts[0] = 100
    assert list(ds.class_counts) == [1, 2]


def test_in_place_vocabulary_insert_shifts_indexes():
    ds = _labelled()
    seen = _recorder(ds)

    ds.labels.insert(0, "z")

    assert list(ds.class_indexes) == [1, 2, 2]
    assert ds.class_labels == ["a", "b", "b"]
    assert list(ds.class_counts) == [0, 1, 2]
    assert seen == [DatasetChange.LABELS]


def test_in_place_vocabulary_remove_unlabels(caplog):
    ds = _labelled()

    with caplog.at_level(logging.WARNING, logger="tsml.core.dataset"):
        ds.labels.remove("a")

    assert ds[0].label_state is UNLABELED
    assert list(ds.class_indexes) == [-1, 0, 0]
    assert ds.class_labels == [None, "b", "b"]
    assert "without a class label" in caplog.text


def test_in_place_vocabulary_rename_keeps_indexes():
    ds = _labelled()
    ds.labels[1] = "beta"
    assert list(ds.class_indexes) == [0, 1, 1]
    assert ds.class_labels == ["a", "beta", "beta"]


def test_refit_vocabulary_remaps_by_label():
    ds = _labelled()
    ds.labels.fit(["b", "c"])
    assert list(ds.class_indexes) == [-1, 0, 0]
    assert list(ds.class_counts) == [2, 0]


def test_missing_values_propagate_from_series():
    ds = Dataset([_inst([1.0, 2.0], [3.0]), _inst([4.0])])
    seen = _recorder(ds)
    assert ds.has_missing is False

    ds[0][1][0] = np.nan
    assert seen == [DatasetChange.VALUES]
    # every instance must have missing values
    assert ds.has_missing is False

    ds[1][0][0] = np.nan
    assert seen == [DatasetChange.VALUES] * 2
    assert ds.has_missing is True

    ds[0][1][0] = 3.0
    assert ds.has_missing is False


def test_has_missing_requires_all_instances():
    assert Dataset().has_missing is False
    assert Dataset([_inst([1.0, np.nan]), _inst([1.0, 2.0])]).has_missing is False
    assert Dataset([_inst([1.0, np.nan]), _inst([np.nan], [2.0])]).has_missing is True


def test_value_change_keeps_unrelated_caches():
    ds = Dataset([_inst([1.0, 2.0])])
    assert ds.is_equally_spaced
    assert list(ds.class_counts) == []

    ds[0][0].append(3.0)
    assert ds._is_equally_spaced.is_fresh
    assert ds._class_counts.is_fresh
    assert not ds._max_length.is_fresh
    assert ds.max_length == 3


def test_dimension_change_propagates():
    ds = Dataset([_inst([1.0]), _inst([1.0])])
    seen = _recorder(ds)
    assert ds.max_num_dimensions == 1
    assert ds.is_univariate

    ds[1].append(TimeSeries([1.0, 2.0]))

    assert seen == [DatasetChange.DIMENSIONS]
    assert ds.max_num_dimensions == 2
    assert ds.min_num_dimensions == 1
    # multivariate only once every instance is
    assert not ds.is_multivariate
    assert ds.max_length == 2

    ds[0].append(TimeSeries([3.0]))
    assert ds.is_multivariate
    assert not ds.is_univariate


def test_membership_changes_notify_once():
    ds = Dataset([_inst([1.0])])
    seen = _recorder(ds)

    ds.append(_inst([1.0, 2.0]))
    ds[0] = _inst([1.0, 2.0, 3.0])
    del ds[1]
    ds.set_instances([_inst([1.0]), _inst([2.0])])

    assert seen == [DatasetChange.INSTANCES] * 4
    assert len(ds) == 2


def test_index_out_of_range():
    ds = Dataset([_inst([1.0])])
    with pytest.raises(IndexOutOfRange):
        _ = ds[1]
    with pytest.raises(IndexOutOfRange):
        del ds[3]


def test_lengths_and_histogram():
    ds = Dataset([_inst([1.0, 2.0], [1.0]), _inst([1.0, 2.0, 3.0])])
    assert ds.min_length == 1
    assert ds.max_length == 3
    assert not ds.is_equal_length
    assert ds.histogram_of_lengths() == {1: 1, 2: 1, 3: 1}


def test_time_stamps_flags():
    a = Instance([TimeSeries([1.0, 2.0, 3.0], time_stamps=[0.0, 1.0, 2.0])])
    b = Instance([TimeSeries([1.0, 2.0, 3.0], time_stamps=[0.0, 1.0, 3.0])])
    ds = Dataset([a, b])
    assert ds.has_time_stamps
    assert not ds.is_equally_spaced

    b[0].set_time_stamps([0.0, 2.0, 4.0])
    assert ds.is_equally_spaced


def test_vslices_pad_with_nan():
    ds = Dataset([_inst([1.0, 2.0], [3.0]), _inst([4.0])])

    single = ds.get_single_vslice(1)
    assert single.shape == (2, 2)
    assert single[0, 0] == 2.0
    assert math.isnan(single[0, 1])
    assert math.isnan(single[1, 0]) and math.isnan(single[1, 1])

    out = ds.get_vslice([0, 1])
    assert out.shape == (2, 2, 2)
    assert out[1, 0, 0] == 4.0
    assert math.isnan(out[1, 1, 0])


def test_hslices():
    ds = _labelled()
    ds.append(_inst([7.0, 8.0, 9.0]))

    h = ds.get_single_hslice(0)
    assert h.shape == (4, 3)
    assert math.isnan(h[0, 2])

    h3 = ds.get_hslice([0])
    assert h3.shape == (4, 1, 3)

    sub = ds.get_hslice_dataset([0])
    assert len(sub) == 4
    assert sub.labels is ds.labels
    assert sub.class_labels == ds.class_labels
    assert sub[0] is not ds[0]


def test_value_array_shape():
    ds = Dataset([_inst([1.0, 2.0, 3.0], [4.0]), _inst([5.0])])
    arr = ds.to_value_array()
    assert arr.shape == (2, 2, 3)
    assert arr[0, 1, 0] == 4.0
    assert math.isnan(arr[1, 1, 0])
    assert math.isnan(arr[1, 0, 2])


def test_copy_is_independent():
    ds = _labelled()
    ds.meta = DatasetMeta(problem_name="toy")
    c = ds.copy()

    assert c == ds
    assert c.labels is not ds.labels
    assert all(inst.labels is c.labels for inst in c)

    c.labels.insert(0, "z")
    assert ds.labels.classes == ("a", "b")
    assert list(ds.class_indexes) == [0, 1, 1]
    assert "toy" in repr(ds)


def test_discarded_slices_release_shared_vocabulary():
    ds = _labelled()
    before = ds.labels.num_listeners

    for _ in range(20):
        ds.get_hslice_dataset([0])
    gc.collect()

    assert ds.labels.num_listeners == before


def test_datasets_sharing_vocabulary_follow_edits():
    ds = _labelled()
    sub = ds.get_hslice_dataset([0])

    ds.labels.insert(0, "z")

    assert list(ds.class_indexes) == [1, 2, 2]
    assert list(sub.class_indexes) == [1, 2, 2]
    assert sub.class_labels == ["a", "b", "b"]


def test_replaced_vocabulary_is_unsubscribed():
    ds = _labelled()
    old = ds.labels
    ds.set_label_vocabulary(["b", "a"])
    assert old.num_listeners == 0
    assert ds.labels.num_listeners == 1


def test_set_instances_reorders_members():
    ds = _labelled()
    first, second, third = ds
    seen = _recorder(ds)

    ds.set_instances([third, first, second])

    assert list(ds) == [third, first, second]
    assert ds.class_labels == ["b", "a", "b"]
    assert all(inst.num_listeners == 1 for inst in ds)
    assert seen == [DatasetChange.INSTANCES]


def test_reverse():
    ds = _labelled()
    members = list(ds)

    ds.reverse()

    assert list(ds) == members[::-1]
    assert ds.class_labels == ["b", "b", "a"]
    assert all(inst._owner is ds for inst in ds)


def test_set_instances_still_rejects_foreign_members():
    ds = _labelled()
    other = Dataset([_inst([1.0])])
    with pytest.raises(InvalidDataset):
        ds.set_instances([ds[0], other[0]])
    assert len(ds) == 3
