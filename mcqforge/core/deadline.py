import asyncio
from typing import Awaitable, TypeVar

from mcqforge.core.errors import NetworkError

T = TypeVar("T")


async def attempt_with_deadline(awaitable: Awaitable[T], seconds: float, label: str = "Request") -> T:
    """
    Await `awaitable` for at most `seconds`.
    On expiry the in-flight task is cancelled and NetworkError is raised.
    asyncio.wait_for owns the timer, so it is released on both paths.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError as e:
        raise NetworkError(f"{label} timeout after {seconds:g}s") from e
