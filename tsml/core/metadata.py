# tsml/core/metadata.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .exceptions import InvalidTimeSeries, InvalidInstance, InvalidDataset


@dataclass(frozen=True, slots=True)
class SeriesMeta:
    """
    Metadata attached to a TimeSeries (one dimension).

    - name: dimension / channel name
    - unit: physical unit (rpm, Nm, ...)
    - attrs: arbitrary additional fields
    """
    name: str | None = None
    unit: str | None = None
    attrs: dict[str, Any] = field(default_factory=dict, repr=False)

    def __post_init__(self) -> None:
        if self.attrs is None:
            object.__setattr__(self, "attrs", {})
        elif not isinstance(self.attrs, dict):
            raise InvalidTimeSeries("SeriesMeta.attrs must be a dict.")

    def copy(self) -> "SeriesMeta":
        return SeriesMeta(name=self.name, unit=self.unit, attrs=self.attrs.copy())


@dataclass(frozen=True, slots=True)
class InstanceMeta:
    """
    Metadata attached to an Instance (one case / measurement).
    """
    name: str | None = None
    source: str | None = None
    attrs: dict[str, Any] = field(default_factory=dict, repr=False)

    def __post_init__(self) -> None:
        if self.attrs is None:
            object.__setattr__(self, "attrs", {})
        elif not isinstance(self.attrs, dict):
            raise InvalidInstance("InstanceMeta.attrs must be a dict.")

    def copy(self) -> "InstanceMeta":
        return InstanceMeta(name=self.name, source=self.source, attrs=self.attrs.copy())


@dataclass(frozen=True, slots=True)
class DatasetMeta:
    """
    Metadata attached to a Dataset (collection of instances).
    """
    problem_name: str | None = None
    description: str | None = None
    source: str | None = None
    attrs: dict[str, Any] = field(default_factory=dict, repr=False)

    def __post_init__(self) -> None:
        if self.attrs is None:
            object.__setattr__(self, "attrs", {})
        elif not isinstance(self.attrs, dict):
            raise InvalidDataset("DatasetMeta.attrs must be a dict.")

    def copy(self) -> "DatasetMeta":
        return DatasetMeta(
            problem_name=self.problem_name,
            description=self.description,
            source=self.source,
            attrs=self.attrs.copy(),
        )
