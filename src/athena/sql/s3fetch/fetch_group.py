import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Any, Callable, List, Optional, Sequence

from athena.sql.exc import QueryCancelledError

logger = logging.getLogger(__name__)


def run_concurrently(
    tasks: Sequence[Callable[[], Any]],
    timeout: Optional[float],
    thread_name_prefix: str = "athena-fetch",
) -> List[Any]:
    """
    Run every task on its own thread and wait for all of them.

    Results are returned in task order. The first task to raise determines the error;
    the remaining tasks are abandoned and their outcomes discarded. Abandoned threads
    are not killed, they end with their own I/O.

    Args:
        tasks: Callables without arguments
        timeout: Seconds to wait for all tasks, None to wait indefinitely

    Raises:
        QueryCancelledError: If not every task reported before the deadline
        Exception: Whatever the first failing task raised
    """
    if not tasks:
        return []

    start_time = time.monotonic()
    executor = ThreadPoolExecutor(
        max_workers=len(tasks), thread_name_prefix=thread_name_prefix
    )
    futures: List[Future] = [executor.submit(task) for task in tasks]
    first_error: Optional[BaseException] = None
    try:
        for future in as_completed(futures, timeout=timeout):
            # Future's `exception()` does not block here, the future is done
            first_error = future.exception()
            if first_error is not None:
                logger.debug(
                    "Fetch task %d of %d failed after %.3fs: %s",
                    futures.index(future) + 1,
                    len(futures),
                    time.monotonic() - start_time,
                    first_error,
                )
                break
    except FuturesTimeoutError:
        raise QueryCancelledError(
            f"Fetching results did not finish within {timeout} seconds",
            {"reason": "deadline"},
        ) from None
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    if first_error is not None:
        raise first_error

    return [future.result() for future in futures]
