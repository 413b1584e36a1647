"""Handler invocation outcomes.

Plume never lets a handler's exception escape into the dispatch of a message.
Instead, every invocation goes through :func:`invoke`, which returns an
:class:`Outcome`: either a success (with the handler's return value), or a
failure (with the exception that was raised).

The dispatcher then decides what to do with a failure: report it, and carry
on with the next stage of the message.
"""
#
# Licensed under the Eiffel Forum License 2.
from __future__ import annotations

import inspect
from typing import Any, Callable, NamedTuple, Optional


__all__ = [
    'Outcome',
    'invoke',
]


class Outcome(NamedTuple):
    """Result of one handler invocation."""
    label: str
    """Label of the invoked handler, for reporting purpose."""
    result: Any = None
    """The handler's return value, if it succeeded."""
    error: Optional[Exception] = None
    """The exception raised by the handler, if it failed."""

    @property
    def ok(self) -> bool:
        """Tell if the invocation succeeded."""
        return self.error is None


async def invoke(label: str, func: Callable, *args: Any) -> Outcome:
    """Invoke ``func`` with ``args`` and return its outcome.

    :param label: the handler's label, copied into the outcome
    :param func: a plain function or a coroutine function
    :param args: positional arguments for ``func``
    :return: the outcome of the invocation

    If ``func`` returns an awaitable, it is awaited to completion before
    this function returns.

    Any :exc:`Exception` is caught and stored in the outcome. Other
    exceptions, such as :exc:`KeyboardInterrupt`, :exc:`SystemExit`, or
    :exc:`asyncio.CancelledError`, are not caught.
    """
    try:
        result = func(*args)
        if inspect.isawaitable(result):
            result = await result
    except Exception as error:
        return Outcome(label, error=error)

    return Outcome(label, result=result)
