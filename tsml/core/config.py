# tsml/core/config.py
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Any

from .exceptions import InvalidArgument

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CoreConfig:
    """
    Library-wide numeric settings.

    - spacing_rtol / spacing_atol: tolerance used when deciding whether the
      deltas between consecutive time stamps are equal
    - missing_value: value used to pad slices and array exports
    """
    spacing_rtol: float = 1e-9
    spacing_atol: float = 0.0
    missing_value: float = math.nan

    def __post_init__(self) -> None:
        for name in ("spacing_rtol", "spacing_atol"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or isinstance(value, bool):
                raise InvalidArgument(f"CoreConfig.{name} must be a number.")
            if not math.isfinite(value) or value < 0:
                raise InvalidArgument(f"CoreConfig.{name} must be finite and >= 0, got {value}.")
        if not isinstance(self.missing_value, (int, float)) or isinstance(self.missing_value, bool):
            raise InvalidArgument("CoreConfig.missing_value must be a number.")


_config = CoreConfig()


def get_config() -> CoreConfig:
    return _config


def configure(**overrides: Any) -> CoreConfig:
    """
    Replace fields of the active configuration and return the new one.

    Cached metadata computed before the call keeps its value until the
    owning container is next mutated.
    """
    global _config
    try:
        new = replace(_config, **overrides)
    except TypeError as e:
        raise InvalidArgument(str(e)) from e
    _config = new
    logger.debug("core configuration updated: %s", new)
    return new


def reset_config() -> CoreConfig:
    global _config
    _config = CoreConfig()
    return _config
