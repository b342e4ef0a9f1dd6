"""
Bounded parallel map over genes.

Every per-gene stage (correlation, network construction, complexity) runs
through ``parallel_map``. Results are keyed by gene and returned in sorted
key order, so output never depends on which worker finishes first.
"""

from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import Callable, Dict, Hashable, Iterable, List, TypeVar

from tqdm import tqdm

from ..exceptions import WorkerFailure
from .config import check_workers
from .logging import get_logger


logger = get_logger("parallel")

K = TypeVar("K", bound=Hashable)
R = TypeVar("R")


def parallel_map(
    func: Callable[[K], R],
    keys: Iterable[K],
    n_workers: int = 1,
    desc: str = "Processing",
    show_progress: bool = False,
) -> Dict[K, R]:
    """
    Apply ``func`` to every key with a bounded worker pool.

    Parameters
    ----------
    func : callable
        Work item; receives one key.
    keys : iterable
        Work item keys (genes). Duplicates are collapsed.
    n_workers : int
        Pool size, between 1 and MAX_WORKERS.
    desc : str
        Progress bar / log description.
    show_progress : bool
        Show a tqdm progress bar.

    Returns
    -------
    dict
        ``{key: func(key)}`` in sorted key order.

    Raises
    ------
    WorkerFailure
        On the first failing item; pending items are cancelled.
    """
    check_workers(n_workers)
    ordered: List[K] = sorted(set(keys))
    results: Dict[K, R] = {}

    if not ordered:
        return results

    progress = tqdm(total=len(ordered), desc=desc, disable=not show_progress)

    try:
        if n_workers == 1:
            for key in ordered:
                try:
                    results[key] = func(key)
                except Exception as e:
                    raise WorkerFailure(key, e) from e
                progress.update(1)
        else:
            with ThreadPoolExecutor(max_workers=n_workers) as executor:
                futures = {executor.submit(func, key): key for key in ordered}
                pending = set(futures)

                while pending:
                    done, pending = wait(pending, return_when=FIRST_EXCEPTION)
                    # Report the failing key with the smallest sort position so
                    # the surfaced error is reproducible across runs.
                    failed = sorted(
                        (futures[f] for f in done if f.exception() is not None),
                    )
                    if failed:
                        for future in pending:
                            future.cancel()
                        key = failed[0]
                        error = next(
                            f.exception() for f in done if futures[f] == key
                        )
                        raise WorkerFailure(key, error) from error

                    for future in done:
                        results[futures[future]] = future.result()
                    progress.update(len(done))
    except WorkerFailure as e:
        logger.error(f"{desc} aborted: {e}")
        raise
    finally:
        progress.close()

    logger.debug(f"{desc}: {len(results)} items on {n_workers} worker(s)")
    return {key: results[key] for key in ordered}