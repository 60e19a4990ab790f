"""Shared test fixtures and utilities."""

import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from unittest.mock import MagicMock

import pytest
import requests

from urlblob.path import BlobPath


class ManualExecutor(Executor):
    """Executor that only runs work when the test tells it to.

    Lets tests observe a stream between scheduling, starting and finishing
    a read without racing a real thread pool.
    """

    def __init__(self):
        self.queue = []
        self.is_shutdown = False

    def submit(self, fn, *args, **kwargs):
        if self.is_shutdown:
            raise RuntimeError("cannot schedule new futures after shutdown")
        future = Future()
        self.queue.append((future, lambda: fn(*args, **kwargs)))
        return future

    def start_next(self):
        """Mark the oldest queued work running without executing it."""
        future, work = self.queue.pop(0)
        if not future.set_running_or_notify_cancel():
            return None, None
        return future, work

    @staticmethod
    def finish(future, work):
        try:
            future.set_result(work())
        except Exception as e:
            future.set_exception(e)

    def run_next(self):
        """Run the oldest queued work. Returns False if it was cancelled."""
        future, work = self.start_next()
        if future is None:
            return False
        self.finish(future, work)
        return True

    def shutdown(self, wait=True, *, cancel_futures=False):
        self.is_shutdown = True
        if cancel_futures:
            for future, _ in self.queue:
                future.cancel()


class FakeHandle:
    """In-memory BlobHandle that records how it is used."""

    def __init__(self, data: bytes):
        self.data = data
        self.offset = 0
        self.reads = []
        self.closed = False
        self.threads = []

    def read(self, size):
        self.threads.append(threading.current_thread().name)
        self.reads.append(size)
        chunk = self.data[self.offset:self.offset + size]
        self.offset += len(chunk)
        return chunk

    def close(self):
        self.closed = True


def _mock_response(status=200, chunks=(), reason="OK"):
    response = MagicMock(spec=requests.Response)
    response.status_code = status
    response.reason = reason
    response.ok = status < 400
    response.iter_content.return_value = iter(chunks)
    response.__exit__.return_value = False
    if status >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status} Client Error: {reason}")
    return response


@pytest.fixture
def make_response():
    """Factory fixture creating mock streamed requests.Response objects."""
    return _mock_response


@pytest.fixture
def fake_handle():
    """Factory fixture creating in-memory blob handles."""
    return FakeHandle


@pytest.fixture
def executor():
    """Thread pool owned by the test, borrowed by the stores under test."""
    pool = ThreadPoolExecutor(max_workers=2, thread_name_prefix="test-pool")
    yield pool
    pool.shutdown(wait=True, cancel_futures=True)


@pytest.fixture
def manual_executor():
    return ManualExecutor()


@pytest.fixture
def repo_dir(tmp_path):
    """Directory tree laid out the way stores compose paths."""
    root = tmp_path / "repo"
    (root / "a" / "b").mkdir(parents=True)
    (root / "a" / "b" / "file.dat").write_bytes(b"hello blob store")
    (root / "top.dat").write_bytes(b"at the root")
    return root


@pytest.fixture
def repo_url(repo_dir):
    """file:// base URL (with trailing slash) for repo_dir."""
    return repo_dir.as_uri() + "/"


@pytest.fixture
def ab_path():
    return BlobPath().add("a").add("b")
