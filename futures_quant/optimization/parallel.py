"""Process-pool fan-out helpers.

Workers are started with the ``spawn`` method, so shared read-only state has
to be installed through ``initializer``/``initargs`` rather than inherited.
"""

from __future__ import annotations

import multiprocessing
import os
from collections.abc import Callable, Iterable, Sequence
from typing import Any, TypeVar

from tqdm import tqdm

A = TypeVar("A")
B = TypeVar("B")


def resolve_workers(max_workers: int, item_count: int) -> int:
    """Clamp ``max_workers`` (0 = all cores) to the CPU and item counts."""
    cpu_total = max(1, int(os.cpu_count() or 1))
    requested = cpu_total if max_workers <= 0 else min(int(max_workers), cpu_total)
    return max(1, min(requested, item_count))


def _progress(iterable: Iterable[B], total: int, description: str | None) -> Iterable[B]:
    if description is None:
        return iterable
    return tqdm(iterable, total=total, desc=description, unit="task")


def parallel_map(
    func: Callable[[A], B],
    items: Sequence[A],
    max_workers: int = 0,
    initializer: Callable[..., Any] | None = None,
    initargs: tuple = (),
    progress: str | None = None,
) -> list[B]:
    """Apply ``func`` to every item; results are in input order."""
    items = list(items)
    worker_count = resolve_workers(max_workers, len(items))
    if worker_count == 1 or len(items) <= 1:
        if initializer is not None:
            initializer(*initargs)
        return list(_progress(map(func, items), len(items), progress))

    ctx = multiprocessing.get_context("spawn")
    chunksize = max(1, len(items) // max(1, worker_count * 4))
    with ctx.Pool(processes=worker_count, initializer=initializer, initargs=initargs) as pool:
        return list(_progress(pool.imap(func, items, chunksize), len(items), progress))


def parallel_for_each(
    func: Callable[[A], Any],
    items: Sequence[A],
    max_workers: int = 0,
    initializer: Callable[..., Any] | None = None,
    initargs: tuple = (),
) -> None:
    """Run side-effect-only tasks; the first worker error is re-raised."""
    parallel_map(func, items, max_workers=max_workers, initializer=initializer, initargs=initargs)
