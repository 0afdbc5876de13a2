"""
Thread-pool map used by the per-peak and per-region stages.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, List


def parallel_map(func: Callable, items: Iterable, max_workers: int = 1) -> List:
    """``[func(x) for x in items]`` run on up to ``max_workers`` threads, order preserved."""
    items = list(items)
    if max_workers <= 1 or len(items) <= 1:
        return [func(item) for item in items]
    with ThreadPoolExecutor(max_workers=min(max_workers, len(items))) as executor:
        return list(executor.map(func, items))
