from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, List, Protocol

from asammdf import MDF  # pivotal dependency for MDF file handling
import numpy as np

from tsml.core.exceptions import NotFound

logger = logging.getLogger(__name__)


@dataclass
class RawChannelInfo:
    """
    Metadata + lazy loader for one data channel of an MDF file.
    """

    name: str                  # "eng_spd", "torque", ...
    unit: str | None
    n_samples: int
    # MDF identifiers
    group_index: int           # group id inside the MDF
    channel_index: int         # channel id inside the group

    # Lazy loader: when called, reads ONLY this channel
    loader: Callable[[], tuple["np.ndarray", "np.ndarray"]]
    # -> (time, values)

    @property
    def source(self) -> str:
        return f"MDF:{self.group_index}/{self.channel_index}"

    def load(self) -> tuple[np.ndarray, np.ndarray]:
        t, v = self.loader()
        return np.asarray(t), np.asarray(v)


@dataclass
class RawChannelData:
    time: "np.ndarray"
    values: "np.ndarray"


class MdfReader(Protocol):
    """Protocol for MDF readers.

    Implementations expose the data channels of one file by name.
    """

    def list_channels(self) -> List[RawChannelInfo]:
        ...

    def read_channels(
        self,
        channel_names: Iterable[str],
        start_time: float | None = None,
        end_time: float | None = None,
    ) -> dict[str, RawChannelData]:
        ...


class AsammdfReader:
    """Concrete implementation of MdfReader using asammdf.MDF.

    Master (time) channels are not listed; each data channel carries the
    time base of its group. When a name occurs in several groups the first
    occurrence wins.
    """

    def __init__(self, path: str):
        self._path = path
        self._mdf = MDF(path)
        # name -> RawChannelInfo, in file order
        self._channels: dict[str, RawChannelInfo] = {}
        self._build_index()

    def close(self) -> None:
        self._mdf.close()

    def __enter__(self) -> "AsammdfReader":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Index construction
    # ------------------------------------------------------------------
    def _build_index(self) -> None:
        masters = getattr(self._mdf, "masters_db", {}) or {}

        for group_index, group in enumerate(self._mdf.groups):
            for channel_index, channel in enumerate(group.channels):
                if masters.get(group_index) == channel_index:
                    continue
                if channel.name in self._channels:
                    logger.debug(
                        "%s: duplicate channel %r in group %d ignored",
                        self._path, channel.name, group_index,
                    )
                    continue

                def make_loader(g_i: int = group_index, c_i: int = channel_index):
                    def _loader() -> tuple[np.ndarray, np.ndarray]:
                        sig = self._mdf.get(group=g_i, index=c_i)
                        # asammdf Signal interface: timestamps & samples
                        return sig.timestamps, sig.samples

                    return _loader

                self._channels[channel.name] = RawChannelInfo(
                    name=channel.name,
                    unit=getattr(channel, "unit", None) or None,
                    n_samples=int(getattr(getattr(group, "channel_group", None), "cycles_nr", 0) or 0),
                    group_index=group_index,
                    channel_index=channel_index,
                    loader=make_loader(),
                )

    # ------------------------------------------------------------------
    # MdfReader protocol implementation
    # ------------------------------------------------------------------
    def list_channels(self) -> List[RawChannelInfo]:
        """List data channels in file order."""
        return list(self._channels.values())

    def channel(self, name: str) -> RawChannelInfo:
        try:
            return self._channels[name]
        except KeyError as e:
            raise NotFound(f"Channel '{name}' not found in MDF {self._path}") from e

    def read_channels(
        self,
        channel_names: Iterable[str],
        start_time: float | None = None,
        end_time: float | None = None,
    ) -> dict[str, RawChannelData]:
        """Read several channels by name.

        Parameters
        ----------
        channel_names:
            Iterable of channel names (e.g. "eng_spd").
        start_time, end_time:
            Optional time window (inclusive). Time base is the one returned
            by asammdf (typically seconds).
        """
        result: dict[str, RawChannelData] = {}

        for name in channel_names:
            t, v = self.channel(name).load()

            # Apply optional time window
            if start_time is not None or end_time is not None:
                mask = np.ones_like(t, dtype=bool)
                if start_time is not None:
                    mask &= t >= start_time
                if end_time is not None:
                    mask &= t <= end_time
                t = t[mask]
                v = v[mask]

            result[name] = RawChannelData(time=t, values=v)

        return result
