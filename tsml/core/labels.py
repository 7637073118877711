# tsml/core/labels.py
from __future__ import annotations

import logging
import operator
from collections.abc import MutableSequence
from typing import Iterable, Iterator, Sequence, overload

from .events import ChangeNotifier, LabelChange
from .exceptions import IllegalState, IndexOutOfRange, InvalidLabel, LabelNotFound

logger = logging.getLogger(__name__)


def _check_label(label: object) -> str:
    if not isinstance(label, str):
        raise InvalidLabel(f"labels must be strings, got {label!r}")
    return label


def _as_index(i: object) -> int:
    if isinstance(i, bool):
        raise IndexOutOfRange(f"label index must be an int, got {i!r}")
    try:
        return operator.index(i)  # type: ignore[arg-type]
    except TypeError as e:
        raise IndexOutOfRange(f"label index must be an int, got {i!r}") from e


class LabelEncoder(MutableSequence, ChangeNotifier[LabelChange]):
    """
    Ordered vocabulary of unique class labels.

    Maps labels to indices and back: ["apple", "orange"] => {"apple": 0, "orange": 1}.
    The vocabulary is shared by reference between a Dataset and its
    Instances, which store indices into it.

    Listeners are called as `listener(change, index, previous)`:
    - INSERT: index of the new label, previous=None
    - REMOVE: index the label was removed from, previous=removed label
    - RENAME: index renamed, previous=old label
    - RESET : index=None, previous=tuple of the old classes (or None if unfitted)
    """

    __hash__ = None  # type: ignore[assignment]

    def __init__(self, labels: Iterable[str] | None = None) -> None:
        self._init_notifier()
        self._classes: list[str] | None = None
        self._index: dict[str, int] | None = None
        if labels is not None:
            self.fit(labels)

    # ---- fitting ----
    def fit(self, labels: Iterable[str]) -> "LabelEncoder":
        """
        Build the vocabulary from a raw label sequence.

        Unique labels keep their first-seen order; sort beforehand to get a
        sorted vocabulary.
        """
        previous = self.classes if self.is_fitted else None
        classes: list[str] = []
        index: dict[str, int] = {}
        for label in labels:
            if _check_label(label) not in index:
                index[label] = len(classes)
                classes.append(label)
        self._classes = classes
        self._index = index
        logger.debug("fitted label vocabulary with %d classes", len(classes))
        self._notify(LabelChange.RESET, None, previous)
        return self

    def fit_transform(self, labels: Sequence[str]) -> list[int]:
        self.fit(labels)
        return self.transform_all(labels)

    @property
    def is_fitted(self) -> bool:
        return self._classes is not None

    @property
    def classes(self) -> tuple[str, ...]:
        return tuple(self._require_classes())

    # ---- lookups ----
    def transform(self, label: str) -> int:
        index_map = self._require_index()
        try:
            return index_map[label]
        except KeyError as e:
            raise LabelNotFound(label) from e
        except TypeError as e:  # unhashable
            raise LabelNotFound(label) from e

    def transform_all(self, labels: Iterable[str]) -> list[int]:
        return [self.transform(label) for label in labels]

    def inverse_transform(self, index: int) -> str:
        classes = self._require_classes()
        if isinstance(index, bool) or not isinstance(index, int):
            try:
                index = int(index)  # numpy integers
            except (TypeError, ValueError) as e:
                raise IndexOutOfRange(f"no mapping to label for {index!r}") from e
        if index < 0 or index >= len(classes):
            raise IndexOutOfRange(f"no mapping to label for {index}")
        return classes[index]

    def inverse_transform_all(self, indices: Iterable[int]) -> list[str]:
        return [self.inverse_transform(i) for i in indices]

    def __contains__(self, label: object) -> bool:
        return self._index is not None and isinstance(label, str) and label in self._index

    def index(self, label: str, start: int = 0, stop: int | None = None) -> int:  # type: ignore[override]
        i = self.transform(label)
        stop = len(self) if stop is None else stop
        if not start <= i < stop:
            raise LabelNotFound(label)
        return i

    # ---- sequence protocol ----
    def __len__(self) -> int:
        return 0 if self._classes is None else len(self._classes)

    def __iter__(self) -> Iterator[str]:
        return iter(() if self._classes is None else tuple(self._classes))

    @overload
    def __getitem__(self, i: int) -> str: ...

    @overload
    def __getitem__(self, i: slice) -> list[str]: ...

    def __getitem__(self, i):
        if isinstance(i, slice):
            return self._require_classes()[i]
        if isinstance(i, int) and not isinstance(i, bool) and i < 0:
            i += len(self)
        return self.inverse_transform(i)

    def insert(self, i: int, label: str) -> None:
        """Insert `label` before position `i`; later labels move up one index."""
        _check_label(label)
        i = _as_index(i)
        classes = [] if self._classes is None else self._classes
        index_map = {} if self._index is None else self._index
        n = len(classes)
        if i < 0:
            i += n
        if i < 0 or i > n:
            raise IndexOutOfRange(f"insert index {i} out of range for {n} labels")
        if label in index_map:
            raise InvalidLabel(f"label {label!r} already present at index {index_map[label]}")

        for j in range(i, n):
            index_map[classes[j]] = j + 1
        classes.insert(i, label)
        index_map[label] = i
        self._classes, self._index = classes, index_map
        self._notify(LabelChange.INSERT, i, None)

    def __delitem__(self, i: int) -> None:
        classes = self._require_classes()
        index_map = self._require_index()
        i = self._normalize(i)
        removed = classes.pop(i)
        del index_map[removed]
        for j in range(i, len(classes)):
            index_map[classes[j]] = j
        self._notify(LabelChange.REMOVE, i, removed)

    def __setitem__(self, i: int, label: str) -> None:
        """Rename the label at position `i`; indices are unchanged."""
        _check_label(label)
        classes = self._require_classes()
        index_map = self._require_index()
        i = self._normalize(i)
        previous = classes[i]
        if label == previous:
            return
        if label in index_map:
            raise InvalidLabel(f"label {label!r} already present at index {index_map[label]}")
        classes[i] = label
        del index_map[previous]
        index_map[label] = i
        self._notify(LabelChange.RENAME, i, previous)

    def remove(self, label: str) -> None:
        del self[self.transform(label)]

    def clear(self) -> None:
        previous = self.classes if self.is_fitted else None
        self._classes = None
        self._index = None
        self._notify(LabelChange.RESET, None, previous)

    def reverse(self) -> None:
        """Reverse the label order; holders re-map their indices by label (RESET)."""
        if self._classes is not None:
            self.fit(self._classes[::-1])

    def copy(self) -> "LabelEncoder":
        """Copy of the vocabulary without listeners."""
        out = LabelEncoder()
        if self._classes is not None:
            out._classes = list(self._classes)
            out._index = dict(self._index or {})
        return out

    # ---- comparison / display ----
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LabelEncoder):
            return NotImplemented
        return self._classes == other._classes

    def __repr__(self) -> str:
        if self._classes is None:
            return "LabelEncoder(<unfitted>)"
        return f"LabelEncoder({self._classes!r})"

    # ---- helpers ----
    def _require_classes(self) -> list[str]:
        if self._classes is None:
            raise IllegalState("label vocabulary must be fitted first")
        return self._classes

    def _require_index(self) -> dict[str, int]:
        if self._index is None:
            raise IllegalState("label vocabulary must be fitted first")
        return self._index

    def _normalize(self, i: int) -> int:
        n = len(self)
        i = _as_index(i)
        if i < 0:
            i += n
        if i < 0 or i >= n:
            raise IndexOutOfRange(f"label index {i} out of range for {n} labels")
        return i
