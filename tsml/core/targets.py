# tsml/core/targets.py
"""
Label state of an Instance.

An instance is in exactly one of three states:
- Unlabeled
- Classified(index): index into the shared label vocabulary
- Regression(target): floating point regression target
"""
from __future__ import annotations

import math
import operator
from dataclasses import dataclass
from typing import Union

from .exceptions import InvalidInstance


@dataclass(frozen=True, slots=True)
class Unlabeled:
    pass


@dataclass(frozen=True, slots=True)
class Classified:
    index: int

    def __post_init__(self) -> None:
        if isinstance(self.index, bool):
            raise InvalidInstance(f"class label index must be an int, got {self.index!r}")
        try:
            index = operator.index(self.index)
        except TypeError as e:
            raise InvalidInstance(f"class label index must be an int, got {self.index!r}") from e
        if index < 0:
            raise InvalidInstance(f"class label index should be >= 0, got {index}")
        object.__setattr__(self, "index", index)


@dataclass(frozen=True, slots=True)
class Regression:
    target: float

    def __post_init__(self) -> None:
        try:
            target = float(self.target)
        except (TypeError, ValueError) as e:
            raise InvalidInstance(f"regression target must be a number, got {self.target!r}") from e
        if not math.isfinite(target):
            raise InvalidInstance(f"regression target must be finite, got {target}")
        object.__setattr__(self, "target", target)


LabelState = Union[Unlabeled, Classified, Regression]

UNLABELED = Unlabeled()
