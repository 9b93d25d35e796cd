"""
Worker-pool dispatch for embarrassingly parallel units of work.

Three computations fan out over independent, stateless units: column blocks
of the correlation matrix, bootstrap replicates for degree ranking, and
null-model trials for neighbourhood enrichment. Each unit is a picklable
top-level function applied to one argument; results come back in unit order
and are merged by the caller on the main thread.

n_jobs semantics:
    1 (default)  run serially in-process
    k > 1        ProcessPoolExecutor with k workers
    -1           one worker per CPU
"""

from __future__ import annotations

import logging
import os
from concurrent.futures import ProcessPoolExecutor, as_completed
from typing import Any, Callable, List, Optional, Sequence

from tqdm import tqdm

logger = logging.getLogger(__name__)

__all__ = ['run_units', 'resolve_n_jobs']


def resolve_n_jobs(n_jobs: Optional[int]) -> int:
    """Translate an n_jobs request into a worker count (>= 1)."""
    if n_jobs is None or n_jobs == 0:
        return 1
    if n_jobs < 0:
        return max(1, (os.cpu_count() or 1) + 1 + n_jobs)
    return n_jobs


def run_units(
    func: Callable[[Any], Any],
    units: Sequence[Any],
    n_jobs: Optional[int] = 1,
    on_result: Optional[Callable[[int, Any], None]] = None,
    progress: bool = False,
    desc: Optional[str] = None,
) -> List[Any]:
    """
    Apply ``func`` to every unit, optionally across worker processes.

    Args:
        func: Top-level (picklable) function of one argument
        units: Work items
        n_jobs: Worker count (see module docstring)
        on_result: Called on the main thread as ``on_result(index, result)``
            when each unit completes (completion order, not unit order)
        progress: Show a tqdm progress bar
        desc: Progress bar label

    Returns:
        Results in the same order as ``units``
    """
    units = list(units)
    n_workers = resolve_n_jobs(n_jobs)
    results: List[Any] = [None] * len(units)

    if n_workers == 1 or len(units) <= 1:
        for i, unit in enumerate(tqdm(units, desc=desc, disable=not progress)):
            results[i] = func(unit)
            if on_result is not None:
                on_result(i, results[i])
        return results

    logger.debug(f"Dispatching {len(units)} units to {n_workers} workers")
    with ProcessPoolExecutor(max_workers=n_workers) as executor:
        futures = {executor.submit(func, unit): i for i, unit in enumerate(units)}
        for future in tqdm(as_completed(futures), total=len(futures), desc=desc, disable=not progress):
            i = futures[future]
            results[i] = future.result()
            if on_result is not None:
                on_result(i, results[i])
    return results
