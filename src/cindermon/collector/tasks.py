"""
Run a batch of fetches concurrently and join on all of them.

Every task runs to completion, even after a sibling has failed. Once
all are done, the first failure (in completion order) is raised and
every result of the batch is dropped.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Dict, Hashable, Mapping, Optional, TypeVar

log = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
T = TypeVar("T")


def run_all(tasks: Mapping[K, Callable[[], T]], name: str = "task") -> Dict[K, T]:
    """Run every callable in its own thread and return {key: result}.

    No worker cap: one thread per task. Raises the first exception seen
    after the whole batch has finished.
    """
    if not tasks:
        return {}

    results: Dict[K, T] = {}
    first_error: Optional[BaseException] = None

    with ThreadPoolExecutor(max_workers=len(tasks), thread_name_prefix=name) as executor:
        future_to_key = {executor.submit(fn): key for key, fn in tasks.items()}

        for future in as_completed(future_to_key):
            key = future_to_key[future]
            error = future.exception()
            if error is not None:
                log.warning("%s %r failed: %s", name, key, error)
                if first_error is None:
                    first_error = error
                continue
            results[key] = future.result()

    if first_error is not None:
        raise first_error
    return results
