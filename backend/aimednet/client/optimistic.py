from collections.abc import Awaitable, Callable
from typing import TypeVar

T = TypeVar("T")
R = TypeVar("R")


async def optimistic_update(
    get: Callable[[], T],
    apply: Callable[[T], None],
    new_value: T,
    remote: Callable[[], Awaitable[R]],
    restore_if: Callable[[], bool] | None = None,
) -> R:
    """
    Apply `new_value` locally, then confirm it with `remote()`.

    The previous value is restored if the remote call raises, unless
    `restore_if` returns False (the local value was replaced meanwhile);
    the exception is re-raised for the caller to surface.
    """
    previous = get()
    apply(new_value)
    try:
        return await remote()
    except Exception:
        if restore_if is None or restore_if():
            apply(previous)
        raise
