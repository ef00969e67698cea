from typing import Awaitable, Callable, TypeVar

T = TypeVar("T")


async def optimistic_update(
    apply: Callable[[], None],
    revert: Callable[[], None],
    request: Callable[[], Awaitable[T]],
    reconcile: Callable[[T], None],
) -> T:
    """Show a change before the server confirms it.

    ``apply`` runs immediately. If the request or ``reconcile`` raises,
    ``revert`` restores the prior state and the exception propagates.
    """
    apply()
    try:
        result = await request()
        reconcile(result)
    except BaseException:
        revert()
        raise
    return result
