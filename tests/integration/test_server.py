r"""Integration tests against a local HTTP server.

The server records how each request body was framed (fixed length or
chunked) and encoded, and echoes what it received as JSON.
"""

from __future__ import annotations

import gzip
import json
import threading
import zlib
from collections import Counter
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import TYPE_CHECKING
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from davexec import (
    BytesStreamProvider,
    BytesTranslator,
    Client,
    ClientConfig,
    FileStreamProvider,
    FunctionCallback,
    HttpMethod,
    RequestSpec,
    StringTranslator,
    TransportError,
)

if TYPE_CHECKING:
    from collections.abc import Generator
    from pathlib import Path

TEXT = ("All work and no play makes Jack a dull boy. " * 200).encode()


class EchoHandler(BaseHTTPRequestHandler):
    hits: Counter = Counter()
    lock = threading.Lock()

    def log_message(self, format: str, *args: object) -> None:  # noqa: A002
        pass

    def _read_body(self) -> tuple[str, bytes]:
        if self.headers.get("Transfer-Encoding", "").lower() == "chunked":
            chunks = []
            while True:
                size = int(self.rfile.readline().split(b";")[0].strip(), 16)
                if size == 0:
                    # Trailers end with an empty line
                    while self.rfile.readline() not in (b"\r\n", b"\n", b""):
                        pass
                    return "chunked", b"".join(chunks)
                chunks.append(self.rfile.read(size))
                self.rfile.readline()
        length = self.headers.get("Content-Length")
        if length is None:
            return "none", b""
        return "fixed", self.rfile.read(int(length))

    def _send(self, status: int, body: bytes, headers: dict[str, str] | None = None) -> None:
        self.send_response(status)
        for name, value in (headers or {}).items():
            self.send_header(name, value)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(body)

    def _echo(self) -> None:
        mode, raw = self._read_body()
        body = gzip.decompress(raw) if self.headers.get("Content-Encoding") == "gzip" else raw
        url = urlsplit(self.path)
        payload = {
            "method": self.command,
            "path": url.path,
            "query": parse_qs(url.query),
            "headers": {name.lower(): value for name, value in self.headers.items()},
            "mode": mode,
            "wire_length": len(raw),
            "body": body.decode("latin-1"),
        }
        self._send(200, json.dumps(payload).encode(), {"Content-Type": "application/json"})

    def _route(self) -> None:
        url = urlsplit(self.path)
        query = parse_qs(url.query)
        if url.path == "/gzip":
            self._send(200, gzip.compress(TEXT), {"Content-Encoding": "gzip"})
        elif url.path == "/deflate":
            compressor = zlib.compressobj(wbits=-zlib.MAX_WBITS)
            body = compressor.compress(TEXT) + compressor.flush()
            self._send(200, body, {"Content-Encoding": "deflate"})
        elif url.path == "/flaky":
            key = query["key"][0]
            with self.lock:
                self.hits[key] += 1
                hits = self.hits[key]
            if hits <= int(query["fail"][0]):
                self._send(503, b"busy", {"Retry-After": "0"})
            else:
                self._send(200, f"ok after {hits}".encode())
        elif url.path == "/redirect":
            self._send(302, b"", {"Location": "/echo"})
        elif url.path == "/status":
            self._send(int(query["code"][0]), b"status")
        else:
            self._echo()

    do_GET = do_POST = do_PUT = do_DELETE = do_HEAD = do_OPTIONS = _route


@pytest.fixture(scope="module")
def server_url() -> Generator[str, None, None]:
    server = ThreadingHTTPServer(("127.0.0.1", 0), EchoHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{server.server_port}"
    finally:
        server.shutdown()
        server.server_close()


@pytest.fixture
def client() -> Generator[Client, None, None]:
    with Client(ClientConfig(connect_timeout=5.0, read_timeout=10.0)) as client:
        yield client


def _echo(client: Client, request: RequestSpec) -> dict:
    response = client.execute(request, StringTranslator())
    assert response.status_code == 200
    return json.loads(response.body)


##############################
#     Tests for requests     #
##############################


def test_get_with_params_and_headers(client: Client, server_url: str) -> None:
    """Test that query parameters and default headers reach the server."""
    echo = _echo(
        client,
        RequestSpec(
            HttpMethod.GET,
            f"{server_url}/echo?a=1",
            params={"q": "a b", "m": ["x", "y"]},
            headers={"X-Custom": "value"},
        ),
    )
    assert echo["method"] == "GET"
    assert echo["query"] == {"a": ["1"], "q": ["a b"], "m": ["x", "y"]}
    assert echo["headers"]["x-custom"] == "value"
    assert echo["headers"]["accept-encoding"] == "gzip, deflate"
    assert echo["headers"]["cache-control"] == "no-cache"
    assert echo["mode"] == "none"


def test_head_request(client: Client, server_url: str) -> None:
    response = client.execute(RequestSpec(HttpMethod.HEAD, f"{server_url}/echo"), BytesTranslator())
    assert response.status_code == 200
    assert response.body == b""


def test_post_small_payload_fixed_length(client: Client, server_url: str) -> None:
    """Test that a payload too small to compress is sent uncompressed."""
    echo = _echo(
        client,
        RequestSpec(
            HttpMethod.POST,
            f"{server_url}/echo",
            payload=b'{"id": 1}',
            content_type="application/json",
            compress=True,
        ),
    )
    assert echo["mode"] == "fixed"
    assert echo["body"] == '{"id": 1}'
    assert echo["headers"]["content-type"] == "application/json"
    assert "content-encoding" not in echo["headers"]


def test_post_compressed_payload(client: Client, server_url: str) -> None:
    """Test that a compressible payload is received gzipped."""
    echo = _echo(
        client, RequestSpec(HttpMethod.POST, f"{server_url}/echo", payload=TEXT, compress=True)
    )
    assert echo["mode"] == "fixed"
    assert echo["headers"]["content-encoding"] == "gzip"
    assert echo["wire_length"] < len(TEXT)
    assert echo["body"].encode("latin-1") == TEXT


def test_post_params_as_form(client: Client, server_url: str) -> None:
    echo = _echo(
        client,
        RequestSpec(HttpMethod.POST, f"{server_url}/echo", params={"name": "café", "n": 2}),
    )
    assert echo["headers"]["content-type"] == "application/x-www-form-urlencoded"
    assert echo["body"] == "name=caf%C3%A9&n=2"
    assert echo["query"] == {}


def test_put_stream_known_size(client: Client, server_url: str) -> None:
    echo = _echo(
        client,
        RequestSpec(
            HttpMethod.PUT, f"{server_url}/echo", payload_stream=BytesStreamProvider(TEXT)
        ),
    )
    assert echo["mode"] == "fixed"
    assert echo["headers"]["content-length"] == str(len(TEXT))
    assert echo["headers"]["content-type"] == "application/octet-stream"
    assert echo["body"].encode("latin-1") == TEXT


def test_put_stream_unknown_size(client: Client, server_url: str) -> None:
    """Test that a stream of unknown size is received chunked."""
    echo = _echo(
        client,
        RequestSpec(
            HttpMethod.PUT,
            f"{server_url}/echo",
            payload_stream=BytesStreamProvider(TEXT, declare_size=False),
        ),
    )
    assert echo["mode"] == "chunked"
    assert echo["body"].encode("latin-1") == TEXT


def test_put_stream_compressed(client: Client, server_url: str) -> None:
    """Test that a compressed stream is received chunked and gzipped."""
    echo = _echo(
        client,
        RequestSpec(
            HttpMethod.PUT,
            f"{server_url}/echo",
            payload_stream=BytesStreamProvider(TEXT),
            content_type="text/plain",
            compress=True,
        ),
    )
    assert echo["mode"] == "chunked"
    assert echo["headers"]["content-encoding"] == "gzip"
    assert echo["headers"]["content-type"] == "text/plain"
    assert echo["body"].encode("latin-1") == TEXT


def test_put_file(client: Client, server_url: str, tmp_path: Path) -> None:
    path = tmp_path / "upload.bin"
    path.write_bytes(bytes(range(256)) * 8)
    echo = _echo(
        client,
        RequestSpec(HttpMethod.PUT, f"{server_url}/echo", payload_stream=FileStreamProvider(path)),
    )
    assert echo["mode"] == "fixed"
    assert echo["body"].encode("latin-1") == path.read_bytes()


@pytest.mark.parametrize("path", ["/gzip", "/deflate"])
def test_compressed_response(client: Client, server_url: str, path: str) -> None:
    """Test that compressed responses from the server are decoded."""
    response = client.execute(RequestSpec(HttpMethod.GET, f"{server_url}{path}"), BytesTranslator())
    assert response.body == TEXT


def test_redirect_followed(client: Client, server_url: str) -> None:
    echo = _echo(client, RequestSpec(HttpMethod.GET, f"{server_url}/redirect"))
    assert echo["path"] == "/echo"


def test_redirect_not_followed(client: Client, server_url: str) -> None:
    """Test that the redirect response is returned when redirects are disabled."""
    response = client.execute(
        RequestSpec(HttpMethod.GET, f"{server_url}/redirect", follow_redirects=False)
    )
    assert response.status_code == 302
    assert response.header_field("location") == "/echo"


############################
#     Tests for retries    #
############################


def test_retry_until_success(client: Client, server_url: str) -> None:
    """Test that a 503 with ``Retry-After`` is retried until the server recovers."""
    response = client.execute(
        RequestSpec(
            HttpMethod.GET,
            f"{server_url}/flaky?key=until-success&fail=2",
            retry_count=3,
            wait_exponential=True,
        ),
        StringTranslator(),
    )
    assert response.status_code == 200
    assert response.body == "ok after 3"


def test_retry_exhausted(client: Client, server_url: str) -> None:
    """Test that the last 503 is returned once the retries are used up."""
    response = client.execute(
        RequestSpec(HttpMethod.GET, f"{server_url}/flaky?key=exhausted&fail=5", retry_count=2),
        StringTranslator(),
    )
    assert response.status_code == 503
    assert response.body == "busy"
    assert EchoHandler.hits["exhausted"] == 3


def test_no_retry_on_client_error(client: Client, server_url: str) -> None:
    response = client.execute(
        RequestSpec(HttpMethod.GET, f"{server_url}/status?code=404", retry_count=3)
    )
    assert response.status_code == 404


def test_connection_refused() -> None:
    """Test that a refused connection raises ``TransportError``."""
    with Client(ClientConfig(connect_timeout=2.0)) as client, pytest.raises(TransportError) as exc_info:
        # Port 9 (discard) is not served on the loopback interface
        client.execute(RequestSpec(HttpMethod.GET, "http://127.0.0.1:9/"))
    assert isinstance(exc_info.value.cause, httpx.ConnectError)


###############################
#     Tests for the pool      #
###############################


def test_worker_pool(server_url: str) -> None:
    """Test that a pool of workers completes every submitted request."""
    results: list[str] = []
    errors: list[Exception] = []
    lock = threading.Lock()

    def on_success(response) -> None:
        with lock:
            results.append(json.loads(response.body)["query"]["n"][0])

    with Client(ClientConfig(read_timeout=10.0), workers=4) as client:
        for index in range(12):
            client.submit(
                RequestSpec(HttpMethod.GET, f"{server_url}/echo", params={"n": index}),
                StringTranslator(),
                FunctionCallback(on_success=on_success, on_failure=errors.append),
            )
    assert errors == []
    assert sorted(results, key=int) == [str(index) for index in range(12)]
