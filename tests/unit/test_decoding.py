r"""Unit tests for response body decoding."""

from __future__ import annotations

import gzip
import io
import zlib
from unittest.mock import Mock

import pytest

from davexec.decoding import ChunkStream, decode_stream, translate_body
from davexec.exceptions import ExecutionError, UnsupportedEncodingError
from davexec.response import Response
from davexec.translators import BytesTranslator, ResponseTranslator, StringTranslator
from davexec.transfer import TransferEncoder


def _raw_deflate(data: bytes) -> bytes:
    compressor = zlib.compressobj(zlib.Z_DEFAULT_COMPRESSION, zlib.DEFLATED, -zlib.MAX_WBITS)
    return compressor.compress(data) + compressor.flush()


def _split(data: bytes, size: int) -> list[bytes]:
    return [data[i : i + size] for i in range(0, len(data), size)]


###################################
#     Tests for decode_stream     #
###################################


@pytest.mark.parametrize("encoding", [None, "", "identity", "IDENTITY"])
def test_decode_stream_pass_through(encoding: str | None) -> None:
    """Test that a body without content encoding is left untouched."""
    assert b"".join(decode_stream(encoding, [b"ab", b"cd"])) == b"abcd"


@pytest.mark.parametrize("encoding", ["gzip", "x-gzip", "GZip", " gzip "])
def test_decode_stream_gzip(encoding: str) -> None:
    """Test that a gzip body split across chunks is decompressed."""
    data = b"hello world " * 200
    chunks = _split(gzip.compress(data), 7)
    assert b"".join(decode_stream(encoding, chunks)) == data


def test_decode_stream_raw_deflate() -> None:
    data = b"deflated content " * 100
    chunks = _split(_raw_deflate(data), 5)
    assert b"".join(decode_stream("deflate", chunks)) == data


@pytest.mark.parametrize("encoding", ["unknown", "br", "compress"])
def test_decode_stream_unsupported_encoding(encoding: str) -> None:
    """Test that an unknown content encoding is rejected."""
    with pytest.raises(UnsupportedEncodingError, match=rf"unsupported content-encoding: {encoding}"):
        decode_stream(encoding, [b"raw"])


def test_decode_stream_unsupported_encoding_does_not_read() -> None:
    """Test that the body is not read when the encoding is unsupported."""
    chunks = iter([b"raw"])
    with pytest.raises(UnsupportedEncodingError):
        decode_stream("unknown", chunks)
    assert next(chunks) == b"raw"


def test_decode_stream_corrupt_gzip() -> None:
    with pytest.raises(zlib.error):
        b"".join(decode_stream("gzip", [b"not gzip data"]))


def test_decode_stream_truncated_gzip() -> None:
    """Test that a gzip body cut short raises instead of returning fewer
    bytes."""
    compressed = gzip.compress(bytes(range(256)) * 400)
    with pytest.raises(EOFError, match=r"ended before the end"):
        b"".join(decode_stream("gzip", _split(compressed[:-30], 1024)))


def test_decode_stream_truncated_deflate() -> None:
    """Test that a raw deflate body cut short raises EOFError."""
    compressed = _raw_deflate(b"deflated content " * 1000)
    with pytest.raises(EOFError, match=r"ended before the end"):
        b"".join(decode_stream("deflate", [compressed[: len(compressed) // 2]]))


def test_decode_stream_empty_gzip_body() -> None:
    """Test that a body without any byte is empty whatever its encoding."""
    assert b"".join(decode_stream("gzip", [])) == b""
    assert b"".join(decode_stream("deflate", [b""])) == b""


def test_compression_round_trip() -> None:
    data = (b"round trip payload " * 300)[:5000]
    compressed, is_compressed = TransferEncoder().compress_if_smaller(data)
    assert is_compressed
    assert b"".join(decode_stream("gzip", _split(compressed, 100))) == data


#################################
#     Tests for ChunkStream     #
#################################


def test_chunk_stream_read_all() -> None:
    stream = ChunkStream(iter([b"ab", b"", b"cde"]), initial=b"0")
    assert stream.read() == b"0abcde"


def test_chunk_stream_small_reads() -> None:
    """Test that reads smaller than a chunk keep the remainder."""
    stream = io.BufferedReader(ChunkStream(iter([b"abcdef"])), buffer_size=2)
    assert stream.read(1) == b"a"
    assert stream.read(4) == b"bcde"
    assert stream.read() == b"f"
    assert stream.read() == b""


def test_chunk_stream_readable() -> None:
    assert ChunkStream(iter([])).readable()


####################################
#     Tests for translate_body     #
####################################


def test_translate_body_without_translator() -> None:
    """Test that the body is left unset without a translator."""
    response = Response(200)
    chunks = iter([b"abc"])
    translate_body(response, None, chunks)
    assert response.body is None
    assert next(chunks) == b"abc"


def test_translate_body_bytes() -> None:
    response = Response(200)
    translate_body(response, BytesTranslator(), [b"ab", b"cd"])
    assert response.body == b"abcd"


def test_translate_body_gzip_string() -> None:
    """Test that a gzip body is decompressed before being decoded as text."""
    response = Response(200, headers={"Content-Encoding": ["gzip"]})
    translate_body(response, StringTranslator(), [gzip.compress("héllo".encode())])
    assert response.body == "héllo"


def test_translate_body_empty_body_uses_decode_empty_body() -> None:
    translator = Mock(spec=ResponseTranslator)
    translator.decode_empty_body.return_value = "empty"
    response = Response(204)
    translate_body(response, translator, [])
    assert response.body == "empty"
    translator.decode_empty_body.assert_called_once_with(response)
    translator.decode.assert_not_called()


def test_translate_body_empty_chunks_use_decode_empty_body() -> None:
    translator = Mock(spec=ResponseTranslator)
    translate_body(Response(200), translator, [b"", b""])
    translator.decode_empty_body.assert_called_once()
    translator.decode.assert_not_called()


def test_translate_body_empty_gzip_body() -> None:
    """Test that an empty body is valid under a gzip header."""
    translator = Mock(spec=ResponseTranslator)
    response = Response(200, headers={"Content-Encoding": ["gzip"]})
    translate_body(response, translator, [gzip.compress(b"")])
    translator.decode_empty_body.assert_called_once_with(response)
    translator.decode.assert_not_called()


def test_translate_body_error_status_is_decoded() -> None:
    response = Response(500)
    translate_body(response, StringTranslator(), [b"server error"])
    assert response.body == "server error"


def test_translate_body_unsupported_encoding() -> None:
    translator = Mock(spec=ResponseTranslator)
    response = Response(200, headers={"Content-Encoding": ["unknown"]})
    with pytest.raises(UnsupportedEncodingError):
        translate_body(response, translator, [b"raw"])
    translator.decode.assert_not_called()


def test_translate_body_translator_failure_is_wrapped() -> None:
    """Test that a translator failure becomes an ``ExecutionError``."""
    translator = Mock(spec=ResponseTranslator)
    translator.decode.side_effect = UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid")
    response = Response(200)
    with pytest.raises(ExecutionError, match=r"failed to decode response body") as exc:
        translate_body(response, translator, [b"\xff"])
    assert exc.value.response is response
    assert isinstance(exc.value.cause, UnicodeDecodeError)


def test_translate_body_read_failure_is_not_wrapped() -> None:
    """Test that a read failure reaches the caller unchanged."""
    def chunks():
        yield b"abc"
        msg = "connection reset"
        raise ConnectionResetError(msg)

    with pytest.raises(ConnectionResetError):
        translate_body(Response(200), BytesTranslator(), chunks())


def test_translate_body_truncated_gzip_is_not_wrapped() -> None:
    """Test that a truncated compressed body surfaces as a read failure,
    not as a translator failure."""
    data = bytes(range(256)) * 400
    response = Response(200, headers={"Content-Encoding": ["gzip"]})
    with pytest.raises(EOFError):
        translate_body(response, BytesTranslator(), _split(gzip.compress(data)[:-30], 1024))
    assert response.body is None
