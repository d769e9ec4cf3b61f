# sgdeploy/prefetch.py
# -*- coding: utf-8 -*-
"""
Best-effort parallel image prefetch.

Pulling images before k3s starts only warms the containerd cache; the
kubelet pulls anything missing on demand. Failed pulls are therefore logged
and counted but never raised.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from common.orchestrator import RunContext

module_logger = logging.getLogger(__name__)

Puller = Callable[[RunContext, str], None]
ResultHook = Callable[[str, bool], None]


@dataclass
class PrefetchStats:
    attempted: int = 0
    failed: int = 0

    @property
    def succeeded(self) -> int:
        return self.attempted - self.failed


def prefetch_images(
    ctx: RunContext,
    images: Iterable[str],
    pull: Puller,
    max_workers: Optional[int] = None,
    on_result: Optional[ResultHook] = None,
    current_logger: Optional[logging.Logger] = None,
) -> PrefetchStats:
    """
    Pull every image concurrently and wait for all of them.

    Args:
        ctx: Run context handed to each pull.
        images: Image references. Every one is attempted, whatever happens
            to the others.
        pull: Pulls a single image, raising on failure.
        max_workers: Worker pool size. None lets the executor pick.
        on_result: Called with (image, succeeded) after each pull. Errors it
            raises are logged and otherwise ignored.
        current_logger: Optional logger instance.

    Returns:
        Counts of attempted and failed pulls.
    """
    logger_to_use = current_logger if current_logger else module_logger
    refs = list(images)
    stats = PrefetchStats()
    lock = threading.Lock()

    def _pull(ref: str) -> None:
        ok = True
        try:
            pull(ctx, ref)
        except Exception as e:
            ok = False
            logger_to_use.warning(f"Prefetch of {ref} failed, it will be pulled on demand: {e}")
        with lock:
            stats.attempted += 1
            if not ok:
                stats.failed += 1
        if on_result is not None:
            try:
                on_result(ref, ok)
            except Exception as e:
                logger_to_use.warning(f"Prefetch result hook failed for {ref}: {e}")

    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="image-pull") as pool:
        # consume the iterator so every worker has finished before returning
        list(pool.map(_pull, refs))

    logger_to_use.info(
        f"Prefetched {stats.succeeded}/{stats.attempted} images ({stats.failed} failed)."
    )
    return stats
