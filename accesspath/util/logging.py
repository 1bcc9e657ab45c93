"""Print-based logging for the decisions of the estimators."""
from __future__ import annotations

import functools
import pprint
import sys
from collections.abc import Callable
from datetime import datetime
from typing import IO


def timestamp() -> str:
    """The current time, e.g. *24-05-17 13:02:45*."""
    return datetime.now().strftime("%y-%m-%d %H:%M:%S")


def make_logger(enabled: bool = True, *, file: IO[str] = sys.stderr, pretty: bool = False,
                prefix: str | Callable[[], str] = "") -> Callable:
    """Provides a `print`-like function to report estimation decisions.

    Estimators call the logger unconditionally. Whether anything is written is decided once, when the logger is created:
    a disabled logger accepts the same arguments and discards them.

    Parameters
    ----------
    enabled : bool, optional
        Whether log entries are written at all. Defaults to *True*.
    file : IO[str], optional
        Where log entries go. Defaults to stderr, so that logs do not mix with regular output.
    pretty : bool, optional
        Format each entry with ``pprint`` instead of ``print``. No prefix is written in this mode.
    prefix : str | Callable[[], str], optional
        Text to put in front of each entry. A callable such as `timestamp` is evaluated anew for every entry.

    Returns
    -------
    Callable
        The logger
    """
    if not enabled:
        return lambda *args, **kwargs: None
    if pretty:
        return functools.partial(pprint.pprint, stream=file)

    def _log(*args, **kwargs) -> None:
        kwargs.pop("file", None)
        if prefix:
            args = (prefix() if callable(prefix) else prefix, *args)
        print(*args, file=file, **kwargs)

    return _log
