"""Pull-based blob streams whose blocking reads run on an executor."""

import io
import logging
from concurrent.futures import CancelledError, Executor, Future
from pathlib import Path
from typing import BinaryIO, Callable, Iterator, Optional, Protocol

from ..errors import BlobIOError, BlobNotFoundError

logger = logging.getLogger(__name__)


class BlobHandle(Protocol):
    """Open source of blob bytes. Only ever touched from executor threads."""

    def read(self, size: int) -> bytes:
        """Return at most ``size`` bytes; empty bytes at end of blob."""
        ...

    def close(self) -> None:
        ...


class FileBlobHandle:
    """BlobHandle over a local file."""

    def __init__(self, fileobj: BinaryIO, location: str):
        self._file = fileobj
        self.location = location

    def read(self, size: int) -> bytes:
        try:
            return self._file.read(size)
        except OSError as e:
            raise BlobIOError(self.location, e.strerror or str(e)) from e

    def close(self) -> None:
        self._file.close()


def open_file_handle(path: Path, location: str) -> FileBlobHandle:
    """
    Open a local file for streaming.

    Raises:
        BlobNotFoundError: If the file (or a parent directory) is missing
        BlobIOError: For any other failure, e.g. permission denied
    """
    try:
        return FileBlobHandle(open(path, "rb"), location)
    except (FileNotFoundError, NotADirectoryError) as e:
        raise BlobNotFoundError(location) from e
    except OSError as e:
        raise BlobIOError(location, e.strerror or str(e)) from e


class BlobStream(io.RawIOBase):
    """
    Forward-only stream over one blob.

    The handle is opened and every chunk is read on the executor; the caller
    only ever waits on futures. One chunk is read ahead: as soon as a chunk
    is handed to the caller the next read is scheduled. Each scheduled read
    returns at most ``buffer_size`` bytes.

    Errors raised while opening or reading surface from the stream method
    that consumes the failed chunk. A failed stream stays failed: every later
    read raises ``BlobIOError`` chained from the first error, so a truncated
    blob never looks complete. Streams are not restartable; open a new one to
    read the blob again.

    Raises:
        BlobIOError: If the executor no longer accepts work
    """

    def __init__(
        self,
        opener: Callable[[], BlobHandle],
        executor: Executor,
        buffer_size: int,
        location: str = "",
    ):
        super().__init__()
        self.location = location
        self._opener = opener
        self._executor = executor
        self._buffer_size = buffer_size
        self._handle: Optional[BlobHandle] = None
        self._pending: Optional[Future] = None
        self._leftover = b""
        self._eof = False
        self._error: Optional[BaseException] = None
        self._reason = ""
        try:
            self._pending = executor.submit(self._fetch)
        except RuntimeError as e:
            super().close()
            raise BlobIOError(location, "executor shut down") from e

    @property
    def buffer_size(self) -> int:
        return self._buffer_size

    def readable(self) -> bool:
        return True

    def _fetch(self) -> bytes:
        # Runs on the executor. Fetches are strictly sequential per stream.
        if self._handle is None:
            self._handle = self._opener()
        return self._handle.read(self._buffer_size)

    def _schedule(self) -> None:
        try:
            self._pending = self._executor.submit(self._fetch)
        except RuntimeError as e:
            # Submitting to a shut-down executor
            self._fail(e, "executor shut down")

    def _fail(self, error: BaseException, reason: str) -> None:
        self._error = error
        self._reason = reason
        self._release()

    def _release(self) -> None:
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.close()

    def _check_open(self) -> None:
        if self.closed:
            raise ValueError("I/O operation on closed blob stream")

    def _next_chunk(self) -> bytes:
        self._check_open()
        if self._error is not None:
            raise BlobIOError(self.location, f"stream failed earlier: {self._reason}") from self._error
        if self._eof:
            return b""

        pending, self._pending = self._pending, None
        try:
            chunk = pending.result()
        except CancelledError as e:
            # Queued read dropped by an executor shutdown
            self._fail(e, "executor shut down")
            raise BlobIOError(self.location, self._reason) from e
        except Exception as e:
            self._fail(e, getattr(e, "reason", None) or str(e))
            raise

        if chunk:
            # A chunk already fetched is still returned; a failed schedule
            # surfaces on the next read
            self._schedule()
        else:
            self._eof = True
            self._release()
            logger.debug("Finished reading %s", self.location)
        return chunk

    def readinto(self, b) -> int:
        self._check_open()
        if not self._leftover:
            self._leftover = self._next_chunk()
            if not self._leftover:
                return 0

        n = min(len(b), len(self._leftover))
        b[:n] = self._leftover[:n]
        self._leftover = self._leftover[n:]
        return n

    def readall(self) -> bytes:
        return b"".join(self.iter_chunks())

    def iter_chunks(self) -> Iterator[bytes]:
        """Yield the remaining bytes chunk by chunk, in blob order."""
        self._check_open()
        if self._leftover:
            chunk, self._leftover = self._leftover, b""
            yield chunk
        while True:
            chunk = self._next_chunk()
            if not chunk:
                return
            yield chunk

    def close(self) -> None:
        """
        Stop reading and release the underlying handle.

        A read that has not started yet is cancelled. A read already running
        is left to finish and the handle is released once it completes.
        """
        if self.closed:
            return
        try:
            pending, self._pending = self._pending, None
            if pending is not None and not pending.cancel():
                pending.add_done_callback(lambda _: self._release())
            else:
                self._release()
        finally:
            super().close()
