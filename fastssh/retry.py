from __future__ import annotations

import time
from typing import TYPE_CHECKING, TypeVar

from rich.console import Console
from rich.markup import escape

if TYPE_CHECKING:
    from collections.abc import Callable

T = TypeVar("T")

console = Console()


def retry_with_backoff(
    operation: Callable[[], T],
    max_attempts: int = 3,
    initial_delay: float = 0.1,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call `operation` until it succeeds, doubling the delay after each failure.

    Exceptions outside `retry_on` propagate immediately. When every attempt
    fails, the last exception is raised.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")
    delay = initial_delay
    for attempt in range(1, max_attempts + 1):
        try:
            return operation()
        except retry_on as e:
            if attempt == max_attempts:
                raise
            console.print(f"[dim]Attempt {attempt}/{max_attempts} failed ({escape(str(e))}); retrying in {delay:.1f}s...[/dim]")
            sleep(delay)
            delay *= 2
    raise AssertionError("unreachable")
