"""Tests for the read-only URL blob store."""

import threading
import urllib.parse
from unittest.mock import patch

import pytest
import requests

from urlblob.errors import (
    BlobIOError,
    BlobNotFoundError,
    ConfigurationError,
    ListingNotSupportedError,
    ReadOnlyError,
    UnsupportedOperationError,
)
from urlblob.path import BlobPath
from urlblob.storage.base import BlobContainer, BlobStore
from urlblob.storage.stream import BlobStream
from urlblob.storage.url import URLBlobContainer, URLBlobStore, compose_url

BASE = "http://example.org/repo/"


@pytest.fixture
def http_store(executor):
    return URLBlobStore({}, executor, BASE)


class TestComposition:
    """Test URL composition from paths."""

    def test_empty_path_is_base(self):
        assert compose_url(BASE, []) == BASE

    def test_single_segment(self):
        assert compose_url(BASE, ["a"]) == urllib.parse.urljoin(BASE, "a/")

    def test_two_segments(self):
        expected = urllib.parse.urljoin(urllib.parse.urljoin(BASE, "a/"), "b/")
        assert compose_url(BASE, ["a", "b"]) == expected == "http://example.org/repo/a/b/"

    def test_deterministic(self, http_store, ab_path):
        first = http_store.blob_container(ab_path).url
        second = http_store.blob_container(BlobPath(["a", "b"])).url
        assert first == second

    def test_base_without_trailing_slash_resolves_relative(self):
        """Resolution follows relative-URL rules: last base component is replaced."""
        assert compose_url("http://example.org/repo", ["a"]) == "http://example.org/a/"

    def test_empty_path_container_uses_base(self, http_store):
        container = http_store.blob_container(BlobPath())
        assert container.url == BASE
        assert container.blob_location("top.dat") == "http://example.org/repo/top.dat"

    def test_final_read_location(self, http_store, ab_path):
        """base + [a, b] + file.dat composes to the nested blob URL."""
        container = http_store.blob_container(ab_path)
        assert container.blob_location("file.dat") == "http://example.org/repo/a/b/file.dat"

    def test_file_urls(self, repo_url, executor, ab_path):
        store = URLBlobStore({}, executor, repo_url)
        container = store.blob_container(ab_path)
        assert container.url == repo_url + "a/b/"

    @pytest.mark.parametrize("segment", ["has space", "", "a:b", "q?x", "frag#1", "tab\tbed", "<tag>"])
    def test_malformed_segment(self, http_store, segment):
        """Illegal segments fail with ConfigurationError wrapping path and cause."""
        path = BlobPath(["ok", segment])

        with pytest.raises(ConfigurationError) as exc_info:
            http_store.blob_container(path)

        assert exc_info.value.path == path
        assert isinstance(exc_info.value.__cause__, ValueError)

    def test_malformed_blob_name(self, http_store):
        container = http_store.blob_container(BlobPath(["a"]))
        with pytest.raises(ConfigurationError):
            container.read_blob("bad name")


class TestStoreConfiguration:
    """Test store construction and accessors."""

    def test_default_buffer_size(self, executor):
        store = URLBlobStore({}, executor, BASE)
        assert store.buffer_size_in_bytes() == 102400

    def test_buffer_size_setting(self, executor):
        store = URLBlobStore({"buffer_size": "64kb"}, executor, BASE)
        assert store.buffer_size_in_bytes() == 65536

    def test_invalid_buffer_size(self, executor):
        with pytest.raises(ConfigurationError):
            URLBlobStore({"buffer_size": "lots"}, executor, BASE)

    @pytest.mark.parametrize("url", ["not a url", "ftp://example.org/repo/", "http:///repo/", "http://host:port/"])
    def test_malformed_base_url(self, executor, url):
        with pytest.raises(ConfigurationError):
            URLBlobStore({}, executor, url)

    def test_accessors(self, executor):
        store = URLBlobStore({}, executor, BASE)
        assert store.path() == BASE
        assert store.base_path() == BASE
        assert store.executor() is executor
        assert str(store) == BASE

    def test_satisfies_protocols(self, http_store, ab_path):
        assert isinstance(http_store, BlobStore)
        assert isinstance(http_store.blob_container(ab_path), BlobContainer)

    def test_container_bound_to_path(self, http_store, ab_path):
        container = http_store.blob_container(ab_path)
        assert isinstance(container, URLBlobContainer)
        assert container.path() == ab_path

    def test_close_leaves_executor_running(self, http_store, executor):
        """The store borrows the executor and never shuts it down."""
        http_store.close()
        http_store.close()
        assert executor.submit(lambda: 42).result() == 42


class TestReadOnlyContract:
    """Test that every mutating or listing call is refused."""

    @pytest.mark.parametrize("path", [BlobPath(), BlobPath(["a", "b"]), BlobPath(["bad segment"])])
    def test_delete_path(self, http_store, path):
        with pytest.raises(UnsupportedOperationError, match="read only"):
            http_store.delete(path)

    @pytest.mark.parametrize("name", ["file.dat", "", "bad name"])
    def test_write_blob(self, http_store, ab_path, name):
        container = http_store.blob_container(ab_path)
        with pytest.raises(ReadOnlyError):
            container.write_blob(name, b"data")

    @pytest.mark.parametrize("name", ["file.dat", "", "bad name"])
    def test_delete_blob(self, http_store, ab_path, name):
        container = http_store.blob_container(ab_path)
        with pytest.raises(ReadOnlyError):
            container.delete_blob(name)

    def test_delete_blobs_by_prefix(self, http_store, ab_path):
        with pytest.raises(ReadOnlyError):
            http_store.blob_container(ab_path).delete_blobs_by_prefix("snap-")

    def test_listing_is_unsupported_not_io_error(self, http_store, ab_path):
        """Listing fails with a distinct unsupported signal, never an I/O error."""
        container = http_store.blob_container(ab_path)

        for call in (container.list_blobs, lambda: container.list_blobs_by_prefix("snap-")):
            with pytest.raises(ListingNotSupportedError) as exc_info:
                call()
            assert isinstance(exc_info.value, UnsupportedOperationError)
            assert isinstance(exc_info.value, NotImplementedError)
            assert not isinstance(exc_info.value, BlobIOError)

    def test_no_io_attempted(self, http_store, ab_path):
        with patch("urlblob.storage.url.requests.get") as mock_get:
            with pytest.raises(UnsupportedOperationError):
                http_store.delete(ab_path)
            with pytest.raises(UnsupportedOperationError):
                http_store.blob_container(ab_path).write_blob("x", b"")
        mock_get.assert_not_called()


class TestFileReads:
    """Test reading file:// URLs."""

    def test_read_nested_blob(self, repo_url, executor, ab_path):
        store = URLBlobStore({}, executor, repo_url)
        with store.blob_container(ab_path).read_blob("file.dat") as stream:
            assert isinstance(stream, BlobStream)
            assert stream.read() == b"hello blob store"

    def test_read_blob_fully(self, repo_url, executor):
        store = URLBlobStore({}, executor, repo_url)
        assert store.blob_container(BlobPath()).read_blob_fully("top.dat") == b"at the root"

    def test_chunks_bounded_by_buffer_size(self, repo_url, executor, ab_path):
        store = URLBlobStore({"buffer_size": 4}, executor, repo_url)
        with store.blob_container(ab_path).read_blob("file.dat") as stream:
            chunks = list(stream.iter_chunks())

        assert all(len(chunk) <= 4 for chunk in chunks)
        assert b"".join(chunks) == b"hello blob store"

    def test_missing_blob_is_io_error(self, repo_url, executor, ab_path):
        """A missing blob fails with an IOError, raised from the stream."""
        store = URLBlobStore({}, executor, repo_url)
        stream = store.blob_container(ab_path).read_blob("missing.dat")

        with pytest.raises(BlobNotFoundError) as exc_info:
            stream.read()

        assert isinstance(exc_info.value, IOError)
        assert exc_info.value.location == repo_url + "a/b/missing.dat"
        stream.close()

    def test_missing_container_directory(self, repo_url, executor):
        store = URLBlobStore({}, executor, repo_url)
        with pytest.raises(BlobNotFoundError):
            store.blob_container(BlobPath(["nope"])).read_blob_fully("file.dat")

    def test_directory_is_io_error(self, repo_url, executor):
        store = URLBlobStore({}, executor, repo_url)
        with pytest.raises(BlobIOError):
            store.blob_container(BlobPath()).read_blob_fully("a")

    def test_blob_exists(self, repo_url, executor, ab_path):
        container = URLBlobStore({}, executor, repo_url).blob_container(ab_path)
        assert container.blob_exists("file.dat")
        assert not container.blob_exists("missing.dat")

    def test_remote_file_host_rejected(self, executor):
        with pytest.raises(ConfigurationError, match="otherhost"):
            URLBlobStore({}, executor, "file://otherhost/share/")

    def test_blob_name_with_remote_file_host_rejected(self, executor, repo_url):
        container = URLBlobStore({}, executor, repo_url).blob_container(BlobPath())
        with pytest.raises(ConfigurationError, match="otherhost"):
            container.read_blob("//otherhost/share/x")

    def test_localhost_file_url(self, executor, repo_dir):
        store = URLBlobStore({}, executor, f"file://localhost{repo_dir.as_posix()}/")
        assert store.blob_container(BlobPath()).read_blob_fully("top.dat") == b"at the root"


class TestHttpReads:
    """Test reading http:// URLs (requests mocked)."""

    def test_reads_expected_location(self, http_store, ab_path, make_response):
        response = make_response(chunks=[b"hello ", b"world"])

        with patch("urlblob.storage.url.requests.get", return_value=response) as mock_get:
            data = http_store.blob_container(ab_path).read_blob_fully("file.dat")

        assert data == b"hello world"
        mock_get.assert_called_once_with(
            "http://example.org/repo/a/b/file.dat", stream=True, timeout=None
        )
        response.iter_content.assert_called_once_with(chunk_size=102400)
        response.close.assert_called()

    def test_open_runs_on_worker_pool(self, http_store, ab_path, make_response):
        """The connection is opened on the executor, not the caller's thread."""
        threads = []

        def fake_get(url, **kwargs):
            threads.append(threading.current_thread())
            return make_response(chunks=[b"data"])

        with patch("urlblob.storage.url.requests.get", side_effect=fake_get):
            assert http_store.blob_container(ab_path).read_blob_fully("file.dat") == b"data"

        assert threads and threads[0] is not threading.current_thread()
        assert threads[0].name.startswith("test-pool")

    def test_oversized_chunks_are_split(self, executor, ab_path, make_response):
        store = URLBlobStore({"buffer_size": 4}, executor, BASE)
        response = make_response(chunks=[b"abcdefghij"])

        with patch("urlblob.storage.url.requests.get", return_value=response):
            with store.blob_container(ab_path).read_blob("file.dat") as stream:
                chunks = list(stream.iter_chunks())

        assert chunks == [b"abcd", b"efgh", b"ij"]

    def test_timeout_passed_through(self, executor, make_response):
        store = URLBlobStore({}, executor, BASE, timeout=(3.05, 27))
        response = make_response(chunks=[b"x"])

        with patch("urlblob.storage.url.requests.get", return_value=response) as mock_get:
            store.blob_container(BlobPath()).read_blob_fully("x")

        assert mock_get.call_args.kwargs["timeout"] == (3.05, 27)

    @pytest.mark.parametrize("status", [404, 410])
    def test_not_found(self, http_store, ab_path, status, make_response):
        response = make_response(status=status, reason="Not Found")

        with patch("urlblob.storage.url.requests.get", return_value=response):
            stream = http_store.blob_container(ab_path).read_blob("missing.dat")
            with pytest.raises(BlobNotFoundError):
                stream.read()

        response.close.assert_called()

    def test_forbidden_is_io_error_not_not_found(self, http_store, ab_path, make_response):
        response = make_response(status=403, reason="Forbidden")

        with patch("urlblob.storage.url.requests.get", return_value=response):
            with pytest.raises(BlobIOError) as exc_info:
                http_store.blob_container(ab_path).read_blob_fully("secret.dat")

        assert not isinstance(exc_info.value, BlobNotFoundError)
        assert "403" in str(exc_info.value)

    def test_connection_error(self, http_store, ab_path):
        with patch(
            "urlblob.storage.url.requests.get",
            side_effect=requests.ConnectionError("connection refused"),
        ) as mock_get:
            with pytest.raises(BlobIOError, match="connection refused"):
                http_store.blob_container(ab_path).read_blob_fully("file.dat")

        # No retry
        assert mock_get.call_count == 1

    def test_error_mid_stream(self, http_store, ab_path, make_response):
        def chunks():
            yield b"first"
            raise requests.exceptions.ChunkedEncodingError("connection broken")

        response = make_response(chunks=chunks())

        with patch("urlblob.storage.url.requests.get", return_value=response):
            with http_store.blob_container(ab_path).read_blob("file.dat") as stream:
                assert stream.read(5) == b"first"
                with pytest.raises(BlobIOError, match="connection broken"):
                    stream.read(5)

        response.close.assert_called()


class TestHttpExists:
    """Test blob_exists over HTTP (requests mocked)."""

    def test_exists(self, http_store, ab_path, make_response):
        with patch("urlblob.storage.url.requests.head", return_value=make_response()) as mock_head:
            assert http_store.blob_container(ab_path).blob_exists("file.dat")

        mock_head.assert_called_once_with(
            "http://example.org/repo/a/b/file.dat", allow_redirects=True, timeout=None
        )

    def test_not_found_is_false(self, http_store, ab_path, make_response):
        with patch("urlblob.storage.url.requests.head", return_value=make_response(status=404)):
            assert not http_store.blob_container(ab_path).blob_exists("file.dat")

    def test_server_error_raises(self, http_store, ab_path, make_response):
        response = make_response(status=500, reason="Internal Server Error")
        with patch("urlblob.storage.url.requests.head", return_value=response):
            with pytest.raises(BlobIOError, match="500"):
                http_store.blob_container(ab_path).blob_exists("file.dat")

    def test_transport_error_raises(self, http_store, ab_path):
        with patch("urlblob.storage.url.requests.head", side_effect=requests.Timeout("timed out")):
            with pytest.raises(BlobIOError, match="timed out"):
                http_store.blob_container(ab_path).blob_exists("file.dat")

    def test_exists_check_runs_on_worker_pool(self, http_store, ab_path, make_response):
        threads = []

        def fake_head(url, **kwargs):
            threads.append(threading.current_thread().name)
            return make_response()

        with patch("urlblob.storage.url.requests.head", side_effect=fake_head):
            http_store.blob_container(ab_path).blob_exists("file.dat")

        assert threads[0].startswith("test-pool")
