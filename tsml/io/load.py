# tsml/io/load.py
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Sequence

import numpy as np

from tsml.io.mdf_reader import AsammdfReader
from tsml.core import (
    Dataset,
    DatasetMeta,
    Instance,
    InstanceMeta,
    InvalidDataset,
    LabelEncoder,
    SeriesMeta,
    TimeSeries,
)

logger = logging.getLogger(__name__)


def load_mdf_instance(
    path: str,
    channels: Sequence[str] | None = None,
    *,
    labels: LabelEncoder | None = None,
    label: str | None = None,
    target: float | None = None,
) -> Instance:
    """
    Read an MDF file as one Instance, one dimension per channel.

    Each dimension keeps the channel's time stamps, so channels recorded at
    different rates give an unequal-length, possibly unequally spaced instance.
    """
    with AsammdfReader(path) as reader:
        names = [ch.name for ch in reader.list_channels()] if channels is None else list(channels)
        dimensions = []
        for name, raw in reader.read_channels(names).items():
            info = reader.channel(name)
            ts = TimeSeries(
                values=np.asarray(raw.values, dtype=float),
                time_stamps=np.asarray(raw.time, dtype=float),
                meta=SeriesMeta(name=name, unit=info.unit, attrs={"source": info.source}),
            )
            dimensions.append(ts)

    inst = Instance(
        dimensions,
        labels=labels,
        label=label,
        target=target,
        meta=InstanceMeta(name=Path(path).stem, source=path),
    )
    logger.info("loaded %s: %d channels", path, inst.num_dimensions)
    return inst


def load_mdf_dataset(
    paths: Iterable[str],
    class_labels: Sequence[str] | None = None,
    *,
    channels: Sequence[str] | None = None,
    targets: Sequence[float] | None = None,
    sort_labels: bool = False,
    problem_name: str | None = None,
) -> Dataset:
    """
    Read several MDF files into a Dataset, one Instance per file.

    Without `channels`, the channel list of the first file is used for all
    files so dimensions line up. `class_labels` (one per file) builds the
    label vocabulary; `targets` gives a regression dataset instead.
    """
    paths = [str(p) for p in paths]
    if class_labels is not None and targets is not None:
        raise InvalidDataset("class_labels and targets are mutually exclusive.")
    for name, seq in (("class_labels", class_labels), ("targets", targets)):
        if seq is not None and len(seq) != len(paths):
            raise InvalidDataset(f"got {len(seq)} {name} for {len(paths)} files")

    vocab = None
    if class_labels is not None:
        vocab = LabelEncoder(sorted(set(class_labels)) if sort_labels else class_labels)

    if channels is None and paths:
        with AsammdfReader(paths[0]) as reader:
            channels = [ch.name for ch in reader.list_channels()]

    instances = [
        load_mdf_instance(
            path,
            channels,
            labels=vocab,
            label=None if class_labels is None else class_labels[i],
            target=None if targets is None else targets[i],
        )
        for i, path in enumerate(paths)
    ]
    ds = Dataset(instances, labels=vocab, meta=DatasetMeta(problem_name=problem_name, source=",".join(paths)))
    logger.info("loaded dataset of %d MDF files (%d classes)", len(ds), ds.num_classes)
    return ds
