"""Utilities to turn the estimation results and statistics into JSON.

Any class can take part in the conversion by implementing a `__json__` method. This method does not take any (required)
parameters and returns a JSON-izeable representation of the current instance, e.g. a `dict` or a `list`. The
`JsonizeEncoder` picks these methods up and is accessible via the `to_json` utility.
"""

from __future__ import annotations

import abc
import dataclasses
import datetime
import enum
import json
from pathlib import Path
from typing import IO, Any, Protocol, runtime_checkable

import numpy as np

jsondict = dict
"""Type alias for a JSON-izeable dictionary."""


@runtime_checkable
class Jsonizable(Protocol):
    """Protocol to indicate that a certain class provides the `__json__` method."""

    @abc.abstractmethod
    def __json__(self) -> jsondict:
        raise NotImplementedError


class JsonizeEncoder(json.JSONEncoder):
    """Encoder for objects that provide a `__json__` method, enums, dates and numpy scalars."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, enum.Enum):
            return obj.value
        elif isinstance(obj, (set, frozenset)):
            return list(obj)
        elif isinstance(obj, Path):
            return str(obj)
        elif isinstance(obj, (datetime.date, datetime.datetime)):
            return obj.isoformat()
        elif isinstance(obj, np.integer):
            return int(obj)
        elif isinstance(obj, np.floating):
            return float(obj)
        elif "__json__" in dir(obj):
            return obj.__json__()
        elif dataclasses.is_dataclass(obj) and not isinstance(obj, type):
            return dataclasses.asdict(obj)
        return json.JSONEncoder.default(self, obj)


def to_json(obj: Any, *args, **kwargs) -> str | None:
    """Utility to transform any object to a JSON object, while making use of the `JsonizeEncoder`.

    All arguments other than the object itself are passed to the default Python `json.dumps` function.
    """
    if obj is None:
        return None
    kwargs.pop("cls", None)
    return json.dumps(obj, *args, cls=JsonizeEncoder, **kwargs)


def to_json_dump(obj: Any, file: IO, *args, **kwargs) -> None:
    """Utility to transform any object to a JSON object and write it to a file, while making use of the `JsonizeEncoder`.

    All arguments other than the object itself are passed to the default Python `json.dump` function.
    """
    kwargs.pop("cls", None)
    json.dump(obj, file, *args, cls=JsonizeEncoder, **kwargs)
