import threading
import time

import pytest

from athena.sql.exc import DownloadError, QueryCancelledError
from athena.sql.s3fetch.fetch_group import run_concurrently


class TestRunConcurrently:
    def test_results_are_in_task_order(self):
        def slow():
            time.sleep(0.05)
            return "slow"

        assert run_concurrently([slow, lambda: "fast"], timeout=5) == ["slow", "fast"]

    def test_no_tasks(self):
        assert run_concurrently([], timeout=1) == []

    def test_tasks_run_concurrently(self):
        barrier = threading.Barrier(2, timeout=5)

        def task():
            barrier.wait()
            return True

        assert run_concurrently([task, task], timeout=5) == [True, True]

    def test_first_error_wins(self):
        release = threading.Event()

        def failing():
            raise DownloadError("object missing", {"bucket": "b", "key": "k"})

        def blocked():
            release.wait(5)
            return "late"

        try:
            with pytest.raises(DownloadError, match="object missing"):
                run_concurrently([blocked, failing], timeout=5)
        finally:
            release.set()

    def test_deadline_raises_query_cancelled(self):
        release = threading.Event()

        try:
            with pytest.raises(QueryCancelledError) as exc_info:
                run_concurrently([lambda: release.wait(5), lambda: 1], timeout=0.05)
        finally:
            release.set()

        assert exc_info.value.context["reason"] == "deadline"

    def test_task_timeout_error_is_not_a_deadline(self):
        def failing():
            raise TimeoutError("socket timed out")

        with pytest.raises(TimeoutError, match="socket timed out"):
            run_concurrently([failing], timeout=5)

    def test_no_timeout_waits_for_all(self):
        assert run_concurrently([lambda: 1, lambda: 2], timeout=None) == [1, 2]
