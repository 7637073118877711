# tsml/core/__init__.py
"""
Core domain objects for tsml.

This module defines the mutable time-series data model:
- TimeSeries: values over time, optional time stamps (one dimension)
- Instance: one case, made of dimensions + a label state
- Dataset: collection of instances sharing a label vocabulary
- LabelEncoder: the label vocabulary (label <-> index)

Each level caches derived metadata and notifies its listeners of changes,
so parents recompute their aggregates only when a child actually changed.
The core layer is independent from I/O and file formats.
"""

from .timeseries import TimeSeries
from .instance import Instance
from .dataset import Dataset
from .labels import LabelEncoder
from .metadata import SeriesMeta, InstanceMeta, DatasetMeta
from .targets import LabelState, Unlabeled, Classified, Regression, UNLABELED
from .events import SeriesChange, InstanceChange, DatasetChange, LabelChange
from .config import CoreConfig, get_config, configure, reset_config
from .exceptions import (
    CoreError,
    InvalidArgument,
    IllegalState,
    NotFound,
    IndexOutOfRange,
    InvalidTimeSeries,
    InvalidInstance,
    InvalidDataset,
    InvalidLabel,
    LabelNotFound,
)


__all__ = [
    # containers
    "TimeSeries",
    "Instance",
    "Dataset",
    "LabelEncoder",

    # metadata
    "SeriesMeta",
    "InstanceMeta",
    "DatasetMeta",

    # label state
    "LabelState",
    "Unlabeled",
    "Classified",
    "Regression",
    "UNLABELED",

    # change kinds
    "SeriesChange",
    "InstanceChange",
    "DatasetChange",
    "LabelChange",

    # configuration
    "CoreConfig",
    "get_config",
    "configure",
    "reset_config",

    # exceptions
    "CoreError",
    "InvalidArgument",
    "IllegalState",
    "NotFound",
    "IndexOutOfRange",
    "InvalidTimeSeries",
    "InvalidInstance",
    "InvalidDataset",
    "InvalidLabel",
    "LabelNotFound",
]
