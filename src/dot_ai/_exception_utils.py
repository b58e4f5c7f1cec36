"""Unwrap anyio exception groups so fatal errors report their real cause.

The controller serves inside a task group, and so does the `mcp` stdio
transport underneath it. A failure in either surfaces as a group that holds
the failure next to the cancellations it caused in sibling tasks, sometimes a
group nested inside another one. The operator reads a single ``FATAL:`` line
on stderr, so only the failure itself is worth reporting.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator

import anyio
import anyio.abc


def collapse_exception_group(
    eg: BaseExceptionGroup,
    cancelled_type: type[BaseException] = asyncio.CancelledError,
) -> BaseException:
    """Return the single real error in *eg*, or *eg* without its cancellations.

    A group that wraps exactly one other group (the transport's task group
    failing inside the controller's) is unwrapped recursively.

    Args:
        eg: the group raised by a task group
        cancelled_type: the backend's cancellation class; ``open_task_group``
            passes the running backend's class, callers outside an event loop
            rely on the asyncio default

    Returns:
        the only non-cancellation error if there is exactly one, a group of
        the non-cancellation errors if there are several, and the first
        member if everything was cancelled
    """
    _, errors = eg.split(cancelled_type)
    if errors is None:
        return eg.exceptions[0]
    if len(errors.exceptions) == 1:
        only = errors.exceptions[0]
        if isinstance(only, BaseExceptionGroup):
            return collapse_exception_group(only, cancelled_type)
        return only
    return errors


def describe_error(exc: BaseException) -> str:
    """One-line ``Type: message`` description of *exc* for a fatal log line.

    Groups are collapsed first, so a domain error raised inside a task group
    reads the same as one raised directly. An empty message leaves only the
    type name.
    """
    if isinstance(exc, BaseExceptionGroup):
        exc = collapse_exception_group(exc)
    text = str(exc)
    return f"{type(exc).__name__}: {text}" if text else type(exc).__name__


@contextlib.asynccontextmanager
async def open_task_group() -> AsyncIterator[anyio.abc.TaskGroup]:
    """The controller's task group.

    Behaves like ``anyio.create_task_group()``, except that a single real
    failure is raised on its own, with the original group kept as
    ``__cause__``. ``LifecycleController.execute()`` then reports that failure
    rather than an ``ExceptionGroup`` wrapper.
    """
    try:
        async with anyio.create_task_group() as tg:
            yield tg
    except BaseExceptionGroup as eg:
        collapsed = collapse_exception_group(eg, anyio.get_cancelled_exc_class())
        if collapsed is not eg:
            raise collapsed from eg
        raise
