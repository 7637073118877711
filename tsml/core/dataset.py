# tsml/core/dataset.py
from __future__ import annotations

import logging
import operator
from collections import Counter
from collections.abc import MutableSequence
from typing import Callable, Iterable, Iterator, Sequence

import numpy as np

from .cache import Memo, invalidate_all
from .config import get_config
from .events import ChangeNotifier, DatasetChange, InstanceChange, LabelChange
from .exceptions import IllegalState, IndexOutOfRange, InvalidDataset, InvalidInstance
from .instance import Instance, stack_padded
from .labels import LabelEncoder
from .metadata import DatasetMeta
from .targets import UNLABELED, Classified, LabelState

logger = logging.getLogger(__name__)


def _as_vocabulary(labels: LabelEncoder | Iterable[str] | None) -> LabelEncoder | None:
    if labels is None or isinstance(labels, LabelEncoder):
        return labels
    if isinstance(labels, str):
        raise InvalidDataset("labels must be a sequence of strings, not a single string.")
    return LabelEncoder(labels)


class Dataset(MutableSequence, ChangeNotifier[DatasetChange]):
    """
    Dataset = ordered collection of Instances sharing one label vocabulary.

    Design goals:
    - list-like access and mutation: ds[0], ds.append(inst), del ds[3]
    - strict: every member instance uses the dataset's LabelEncoder (same
      object), so class indices can never silently point at another label set
    - cheap metadata: dataset-wide aggregates are cached and invalidated by
      the change notifications of the member instances, per metadata group
    """

    __hash__ = None  # type: ignore[assignment]

    def __init__(
        self,
        instances: Iterable[Instance] = (),
        *,
        labels: LabelEncoder | Iterable[str] | None = None,
        meta: DatasetMeta | None = None,
    ) -> None:
        if meta is None:
            meta = DatasetMeta()
        elif not isinstance(meta, DatasetMeta):
            raise InvalidDataset("Dataset.meta must be a DatasetMeta instance.")

        self.meta = meta
        self._labels: LabelEncoder | None = None
        self._instances: list[Instance] = []
        self._instance_listeners: list[Callable[[InstanceChange], None]] = []

        # set while the dataset re-labels its own members
        self._relabeling = False

        self._init_notifier()
        self._class_counts = Memo(self._compute_class_counts)
        # value-dependent
        self._has_missing = Memo(self._compute_has_missing)
        self._min_length = Memo(self._compute_min_length)
        self._max_length = Memo(self._compute_max_length)
        # time-stamp-dependent
        self._is_equally_spaced = Memo(self._compute_is_equally_spaced)
        self._has_time_stamps = Memo(self._compute_has_time_stamps)
        # dimension-dependent
        self._min_num_dimensions = Memo(self._compute_min_num_dimensions)
        self._max_num_dimensions = Memo(self._compute_max_num_dimensions)

        self._subscribe_labels(_as_vocabulary(labels))
        self.set_instances(instances)

    # ---- factories ----
    @classmethod
    def from_data(
        cls,
        data: object,
        *,
        labels: LabelEncoder | Iterable[str] | None = None,
        label_indexes: Sequence[int] | None = None,
        targets: Sequence[float] | None = None,
        meta: DatasetMeta | None = None,
    ) -> "Dataset":
        """
        Build a dataset from raw nested arrays.

        `data` is indexed [instance][dimension][time]; it may be a 3D numpy
        array or nested lists with unequal dimension counts and lengths.
        `label_indexes` (into `labels`) and `targets` are mutually exclusive.
        """
        if label_indexes is not None and targets is not None:
            raise InvalidDataset("label_indexes and targets are mutually exclusive.")
        vocab = _as_vocabulary(labels)
        rows = list(data)  # type: ignore[call-overload]
        for name, seq in (("label_indexes", label_indexes), ("targets", targets)):
            if seq is not None and len(seq) != len(rows):
                raise InvalidDataset(f"got {len(seq)} {name} for {len(rows)} instances")

        try:
            instances = [
                Instance.from_data(
                    row,
                    labels=vocab,
                    label_index=None if label_indexes is None else label_indexes[i],
                    target=None if targets is None else targets[i],
                )
                for i, row in enumerate(rows)
            ]
        except InvalidInstance as e:
            raise InvalidDataset(f"invalid instance data: {e}") from e

        ds = cls(instances, labels=vocab, meta=meta)
        logger.debug(
            "built dataset with %d instances (%d classes)", len(ds), ds.num_classes
        )
        return ds

    @classmethod
    def from_labelled_data(
        cls,
        data: object,
        class_labels: Sequence[str],
        *,
        sort_labels: bool = False,
        meta: DatasetMeta | None = None,
    ) -> "Dataset":
        """
        Build a classification dataset from raw arrays and one label string
        per instance. The vocabulary keeps first-seen order unless
        `sort_labels` is set.
        """
        labels = sorted(set(class_labels)) if sort_labels else class_labels
        vocab = LabelEncoder(labels)
        return cls.from_data(
            data,
            labels=vocab,
            label_indexes=vocab.transform_all(class_labels),
            meta=meta,
        )

    # ---- sequence protocol ----
    def __len__(self) -> int:
        return len(self._instances)

    def __iter__(self) -> Iterator[Instance]:
        return iter(tuple(self._instances))

    def __getitem__(self, i):
        if isinstance(i, slice):
            return self._instances[i]
        return self._instances[self._normalize(i)]

    @property
    def num_instances(self) -> int:
        return len(self._instances)

    def insert(self, i: int, instance: Instance) -> None:
        """
        Insert an instance before position `i`.

        The instance must use this dataset's vocabulary object; an unlabeled
        instance without a vocabulary is attached to it.
        """
        self._check_insertable(instance)
        n = len(self._instances)
        i = self._as_index(i)
        if i < 0:
            i += n
        if i < 0 or i > n:
            raise IndexOutOfRange(f"insert index {i} out of range for {n} instances")
        self._attach(i, instance)
        self._instances_changed()

    def __setitem__(self, i: int, instance: Instance) -> None:
        i = self._normalize(i)
        if self._instances[i] is instance:
            return
        self._check_insertable(instance)
        self._detach(i)
        self._attach(i, instance)
        self._instances_changed()

    def __delitem__(self, i: int) -> None:
        i = self._normalize(i)
        self._detach(i)
        self._instances_changed()

    def set_instances(self, instances: Iterable[Instance]) -> None:
        """
        Replace all instances; validates every instance before changing anything.

        Current members may be passed again, e.g. to reorder the dataset.
        """
        new = list(instances)
        for inst in new:
            self._check_insertable(inst, reuse=True)
        if len({id(inst) for inst in new}) != len(new):
            raise InvalidDataset("the same Instance cannot be added twice.")

        for i in reversed(range(len(self._instances))):
            self._detach(i)
        for i, inst in enumerate(new):
            self._attach(i, inst)
        self._instances_changed()

    def clear(self) -> None:
        self.set_instances(())

    def reverse(self) -> None:
        self.set_instances(self._instances[::-1])

    def _check_insertable(self, instance: object, *, reuse: bool = False) -> None:
        if not isinstance(instance, Instance):
            raise InvalidDataset(f"expected an Instance, got {type(instance).__name__}")
        if instance._owner is not None and not (reuse and instance._owner is self):
            raise InvalidDataset("Instance already belongs to a dataset; add a copy instead.")
        if instance.labels is self._labels:
            return
        if instance.labels is None and not instance.has_class_label:
            return
        raise InvalidDataset(
            "Instance label vocabulary does not match the dataset vocabulary; "
            "re-encode it with Instance.set_label_vocabulary(dataset.labels) first."
        )

    def _attach(self, i: int, instance: Instance) -> None:
        if instance.labels is not self._labels:
            instance._bind_labels(self._labels, instance.label_state)
        listener = self._build_listener()
        self._instances.insert(i, instance)
        self._instance_listeners.insert(i, listener)
        instance.add_listener(listener)
        instance._owner = self

    def _detach(self, i: int) -> Instance:
        instance = self._instances.pop(i)
        listener = self._instance_listeners.pop(i)
        instance.remove_listener(listener)
        instance._owner = None
        return instance

    def _build_listener(self) -> Callable[[InstanceChange], None]:
        def on_instance_change(change: InstanceChange) -> None:
            self._on_instance_change(change)

        return on_instance_change

    def _on_instance_change(self, change: InstanceChange) -> None:
        if self._relabeling:
            return
        out = DatasetChange(0)
        if change & InstanceChange.CLASS:
            self._class_counts.invalidate()
            out |= DatasetChange.CLASS
        if change & InstanceChange.VALUES:
            self._invalidate_values()
            out |= DatasetChange.VALUES
        if change & InstanceChange.TIME_STAMPS:
            self._invalidate_time_stamps()
            out |= DatasetChange.TIME_STAMPS
        if change & InstanceChange.DIMENSIONS:
            self._invalidate_values()
            self._invalidate_time_stamps()
            self._invalidate_dimensions()
            out |= DatasetChange.DIMENSIONS
        self._notify(out)

    def _instances_changed(self) -> None:
        self._class_counts.invalidate()
        self._invalidate_values()
        self._invalidate_time_stamps()
        self._invalidate_dimensions()
        self._notify(DatasetChange.INSTANCES)

    def _invalidate_values(self) -> None:
        invalidate_all(self._has_missing, self._min_length, self._max_length)

    def _invalidate_time_stamps(self) -> None:
        invalidate_all(self._is_equally_spaced, self._has_time_stamps)

    def _invalidate_dimensions(self) -> None:
        invalidate_all(self._min_num_dimensions, self._max_num_dimensions)

    # ---- label vocabulary ----
    @property
    def labels(self) -> LabelEncoder | None:
        return self._labels

    @property
    def num_classes(self) -> int:
        return 0 if self._labels is None else len(self._labels)

    def set_label_vocabulary(self, labels: LabelEncoder | Iterable[str] | None) -> None:
        """
        Replace the label vocabulary. This is a breaking operation.

        Every classified instance is re-mapped to the index of its label in
        the new vocabulary (["a", "b"] -> ["b", "a"] turns index 1 of "b" into
        0). If any current label is missing from the new vocabulary nothing is
        changed and InvalidDataset is raised.
        """
        vocab = _as_vocabulary(labels)
        try:
            states = [inst._remapped_state(vocab) for inst in self._instances]
        except InvalidInstance as e:
            raise InvalidDataset(f"cannot switch label vocabulary: {e}") from e

        self._subscribe_labels(vocab)
        self._relabel(vocab, states)
        logger.debug("dataset label vocabulary replaced: %r", vocab)
        self._notify(DatasetChange.LABELS)

    def _relabel(self, vocab: LabelEncoder | None, states: Sequence[LabelState]) -> None:
        # members still notify their own listeners; the dataset emits one LABELS change
        self._relabeling = True
        try:
            for inst, state in zip(self._instances, states):
                inst._bind_labels(vocab, state)
        finally:
            self._relabeling = False
        self._class_counts.invalidate()

    def _subscribe_labels(self, vocab: LabelEncoder | None) -> None:
        if self._labels is not None:
            self._labels.remove_listener(self._on_labels_change)
        self._labels = vocab
        if vocab is not None:
            # weak: slices and copies sharing the vocabulary must stay collectable
            vocab.add_listener(self._on_labels_change, weak=True)

    def _on_labels_change(
        self, change: LabelChange, index: int | None, previous: object
    ) -> None:
        """Keep member class indices pointing at the same labels after an in-place edit."""
        vocab = self._labels
        if vocab is None:
            raise IllegalState("label change received by a dataset without a vocabulary")
        dropped = 0
        states: list[LabelState] = []
        for inst in self._instances:
            state = inst.label_state
            new: LabelState = state
            if not isinstance(state, Classified):
                states.append(new)
                continue
            if change & LabelChange.INSERT:
                if state.index >= index:
                    new = Classified(state.index + 1)
            elif change & LabelChange.REMOVE:
                if state.index == index:
                    new = UNLABELED
                elif state.index > index:
                    new = Classified(state.index - 1)
            elif change & LabelChange.RESET:
                old_classes = previous or ()
                label = old_classes[state.index] if state.index < len(old_classes) else None
                new = Classified(vocab.transform(label)) if label in vocab else UNLABELED
            if new is UNLABELED:
                dropped += 1
            states.append(new)

        self._relabel(vocab, states)
        if dropped:
            logger.warning(
                "label vocabulary edit (%s) left %d instance(s) without a class label",
                change.name,
                dropped,
            )
        self._notify(DatasetChange.LABELS)

    # ---- cached metadata ----
    @property
    def class_counts(self) -> np.ndarray:
        """Number of instances per class index; length equals the vocabulary size."""
        return self._class_counts.get().copy()

    @property
    def min_length(self) -> int:
        return self._min_length.get()

    @property
    def max_length(self) -> int:
        return self._max_length.get()

    @property
    def is_equal_length(self) -> bool:
        return bool(self._instances) and self.min_length == self.max_length

    @property
    def min_num_dimensions(self) -> int:
        return self._min_num_dimensions.get()

    @property
    def max_num_dimensions(self) -> int:
        return self._max_num_dimensions.get()

    @property
    def has_missing(self) -> bool:
        return self._has_missing.get()

    @property
    def is_equally_spaced(self) -> bool:
        return self._is_equally_spaced.get()

    @property
    def has_time_stamps(self) -> bool:
        return self._has_time_stamps.get()

    @property
    def is_multivariate(self) -> bool:
        """True if every instance has more than one dimension; False when empty."""
        return bool(self._instances) and self.min_num_dimensions > 1

    @property
    def is_univariate(self) -> bool:
        return bool(self._instances) and self.max_num_dimensions == 1

    def _compute_class_counts(self) -> np.ndarray:
        counts = np.zeros(self.num_classes, dtype=int)
        for inst in self._instances:
            index = inst.class_label_index
            if index is not None and index < len(counts):
                counts[index] += 1
        return counts

    def _compute_min_length(self) -> int:
        return min((inst.min_length for inst in self._instances), default=0)

    def _compute_max_length(self) -> int:
        return max((inst.max_length for inst in self._instances), default=0)

    def _compute_min_num_dimensions(self) -> int:
        return min((inst.num_dimensions for inst in self._instances), default=0)

    def _compute_max_num_dimensions(self) -> int:
        return max((inst.num_dimensions for inst in self._instances), default=0)

    def _compute_has_missing(self) -> bool:
        return bool(self._instances) and all(inst.has_missing for inst in self._instances)

    def _compute_is_equally_spaced(self) -> bool:
        return all(inst.is_equally_spaced for inst in self._instances)

    def _compute_has_time_stamps(self) -> bool:
        return bool(self._instances) and all(inst.has_time_stamps for inst in self._instances)

    def histogram_of_lengths(self) -> dict[int, int]:
        """Number of dimensions per series length, ordered by length."""
        counts = Counter(len(ts) for inst in self._instances for ts in inst)
        return dict(sorted(counts.items()))

    # ---- labels / targets export ----
    @property
    def class_indexes(self) -> np.ndarray:
        """Class index per instance; -1 for instances without a class label."""
        return np.array(
            [-1 if inst.class_label_index is None else inst.class_label_index for inst in self._instances],
            dtype=int,
        )

    @property
    def class_labels(self) -> list[str | None]:
        return [inst.class_label for inst in self._instances]

    @property
    def regression_targets(self) -> np.ndarray:
        """Regression target per instance; missing value for instances without one."""
        missing = get_config().missing_value
        return np.array(
            [missing if inst.regression_target is None else inst.regression_target for inst in self._instances],
            dtype=float,
        )

    # ---- slicing ----
    def _pad_instances(self, arrays: Sequence[np.ndarray], depth: int, width: int) -> np.ndarray:
        out = np.full((len(arrays), depth, width), get_config().missing_value, dtype=float)
        for i, a in enumerate(arrays):
            out[i, : a.shape[0], : a.shape[1]] = a
        return out

    def get_single_vslice(self, index: int) -> np.ndarray:
        """Array (num_instances, max_num_dimensions) of values at time `index`, missing-padded."""
        return stack_padded(
            [inst.get_single_vslice(index) for inst in self._instances],
            self.max_num_dimensions,
        )

    def get_vslice(self, indexes: Sequence[int]) -> np.ndarray:
        """Array (num_instances, max_num_dimensions, len(indexes)), missing-padded."""
        indexes = list(indexes)
        return self._pad_instances(
            [inst.get_vslice(indexes) for inst in self._instances],
            self.max_num_dimensions,
            len(indexes),
        )

    def get_single_hslice(self, dim: int) -> np.ndarray:
        """Array (num_instances, longest series in `dim`), missing-padded."""
        return stack_padded([inst.get_single_hslice(dim) for inst in self._instances])

    def get_hslice(self, dims: Sequence[int]) -> np.ndarray:
        """Array (num_instances, len(dims), longest selected series), missing-padded."""
        dims = list(dims)
        arrays = [inst.get_hslice(dims) for inst in self._instances]
        width = max((a.shape[1] for a in arrays), default=0)
        return self._pad_instances(arrays, len(dims), width)

    def get_hslice_dataset(self, dims: Sequence[int]) -> "Dataset":
        """New dataset of instances restricted to `dims`, sharing this vocabulary."""
        dims = list(dims)
        return Dataset(
            [inst.get_hslice_instance(dims) for inst in self._instances],
            labels=self._labels,
            meta=self.meta.copy(),
        )

    def to_value_array(self) -> np.ndarray:
        """Array (num_instances, max_num_dimensions, max_length), missing-padded."""
        return self._pad_instances(
            [inst.to_value_array() for inst in self._instances],
            self.max_num_dimensions,
            self.max_length,
        )

    def copy(self) -> "Dataset":
        """Independent copy with its own (copied) vocabulary."""
        vocab = None if self._labels is None else self._labels.copy()
        copies = []
        for inst in self._instances:
            c = inst.copy()
            c._bind_labels(vocab, c.label_state)
            copies.append(c)
        return Dataset(copies, labels=vocab, meta=self.meta.copy())

    # ---- comparison / display ----
    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, Dataset):
            return NotImplemented
        return self._labels == other._labels and self._instances == other._instances

    def __repr__(self) -> str:
        name = f"{self.meta.problem_name!r}, " if self.meta.problem_name else ""
        return (
            f"Dataset({name}num_instances={len(self)}, num_classes={self.num_classes}, "
            f"max_num_dimensions={self.max_num_dimensions}, max_length={self.max_length})"
        )

    def __str__(self) -> str:
        lines = [f"Labels: {list(self._labels) if self._labels is not None else []}"]
        for inst in self._instances:
            lines.append(repr(inst))
        return "\n".join(lines)

    @staticmethod
    def _as_index(i: object) -> int:
        if isinstance(i, bool):
            raise IndexOutOfRange(f"index must be an int, got {i!r}")
        try:
            return operator.index(i)  # type: ignore[arg-type]
        except TypeError as e:
            raise IndexOutOfRange(f"index must be an int, got {i!r}") from e

    def _normalize(self, i: int) -> int:
        n = len(self._instances)
        i = self._as_index(i)
        if i < 0:
            i += n
        if i < 0 or i >= n:
            raise IndexOutOfRange(f"instance {i} out of range for {n} instances")
        return i
