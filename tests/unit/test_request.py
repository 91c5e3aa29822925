"""
Unit tests for HTTP request parsing.
"""

import pytest

from routekit.errors import IncompleteMessage, ParseError, RequestTooLarge
from routekit.http.multipart import Multipart
from routekit.http.request import (
    Request,
    RequestParser,
    parse_form,
    parse_headers,
    parse_request,
)


def build_request(method: str, target: str, headers=(), body: bytes = b"", version: str = "HTTP/1.1") -> bytes:
    """Helper to assemble raw request bytes."""
    lines = [f"{method} {target} {version}"] + [f"{k}: {v}" for k, v in headers]
    return ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1") + body


MULTIPART_BODY = (
    b"--XyZ\r\n"
    b'Content-Disposition: form-data; name="field"\r\n'
    b"\r\n"
    b"plain value\r\n"
    b"--XyZ\r\n"
    b'Content-Disposition: form-data; name="file"; filename="notes.txt"\r\n'
    b"Content-Type: text/plain\r\n"
    b"\r\n"
    b"file contents\r\n"
    b"--XyZ--\r\n"
)


class TestRequestParser:
    """Tests for RequestParser class."""

    def test_parse_simple_get(self, sample_get_request: bytes):
        parser = RequestParser()
        request = parser.parse(sample_get_request, ("127.0.0.1", 12345))

        assert request.method == "GET"
        assert request.path == "/api/users"
        assert request.version == "HTTP/1.1"
        assert request.client_address == ("127.0.0.1", 12345)
        assert request.body == b""

    def test_parse_headers_case_insensitive(self, sample_get_request: bytes):
        request = parse_request(sample_get_request)

        assert request.get_header("host") == "localhost:8080"
        assert request.get_header("USER-AGENT") == "pytest"
        assert request.headers["Accept"] == ["application/json"]
        assert request.is_keep_alive is True

    def test_parse_query_params(self, sample_get_request: bytes):
        request = parse_request(sample_get_request)

        assert request.get_query("page") == "1"
        assert request.get_query("limit") == "10"
        assert request.get_query("missing") is None
        assert request.get_query("missing", "default") == "default"

    def test_repeated_query_params(self):
        request = parse_request(build_request("GET", "/search?tag=a&tag=b&empty="))

        assert request.query["tag"] == ["a", "b"]
        assert request.query["empty"] == [""]

    def test_parse_cookies(self, sample_get_request: bytes):
        request = parse_request(sample_get_request)

        assert request.cookies == {"session": "abc", "theme": "dark"}

    def test_repeated_headers_keep_all_values(self):
        raw = build_request("GET", "/", [("X-Tag", "one"), ("x-tag", "two")])
        request = parse_request(raw)

        assert request.headers.get_all("X-TAG") == ["one", "two"]
        assert request.get_header("x-tag") == "one"

    def test_path_is_percent_decoded(self):
        request = parse_request(build_request("GET", "/hello%20world?q=a%26b"))

        assert request.path == "/hello world"
        assert request.get_query("q") == "a&b"

    def test_absolute_form_target(self):
        request = parse_request(build_request("GET", "http://example.com/x?y=1"))

        assert request.path == "/x"
        assert request.get_query("y") == "1"

    def test_double_slash_target_stays_a_path(self):
        request = parse_request(build_request("GET", "//foo/bar?x=1"))

        assert request.path == "//foo/bar"
        assert request.get_query("x") == "1"

    def test_absolute_form_needs_a_host(self):
        with pytest.raises(ParseError):
            parse_request(build_request("GET", "http:/x"))

    def test_lowercase_method_is_normalized(self):
        request = parse_request(build_request("post", "/"))

        assert request.method == "POST"
        assert request.is_method("post")

    def test_unknown_but_valid_method(self):
        assert parse_request(build_request("PURGE", "/cache")).method == "PURGE"


class TestRequestBody:
    """Body framing and decoding."""

    def test_form_with_repeated_field(self, sample_form_request: bytes):
        request = parse_request(sample_form_request)

        assert request.data["test"] == ["testing1", "testing2"]
        assert request.get_data("test") == "testing1"
        assert request.get_data("absent") is None

    def test_content_length_limits_body(self):
        raw = build_request("POST", "/", [("Content-Length", "3")], b"abcdef")

        assert parse_request(raw).body == b"abc"

    def test_chunked_body(self):
        raw = build_request(
            "POST", "/", [("Transfer-Encoding", "chunked")],
            b"4\r\nWiki\r\n5;ext=1\r\npedia\r\n0\r\n\r\n",
        )
        request = parse_request(raw)

        assert request.body == b"Wikipedia"
        assert request.is_chunked

    def test_chunked_wins_over_content_length(self):
        raw = build_request(
            "POST", "/",
            [("Content-Length", "100"), ("Transfer-Encoding", "chunked")],
            b"3\r\nabc\r\n0\r\n\r\n",
        )

        assert parse_request(raw).body == b"abc"

    def test_chunked_form_body_is_decoded(self):
        raw = build_request(
            "POST", "/",
            [("Content-Type", "application/x-www-form-urlencoded"), ("Transfer-Encoding", "chunked")],
            b"6\r\na=1&b=\r\n1\r\n2\r\n0\r\n\r\n",
        )
        request = parse_request(raw)

        assert request.get_data("a") == "1"
        assert request.get_data("b") == "2"

    def test_multipart_field_and_file(self):
        raw = build_request(
            "POST", "/upload",
            [("Content-Type", "multipart/form-data; boundary=XyZ"),
             ("Content-Length", str(len(MULTIPART_BODY)))],
            MULTIPART_BODY,
        )
        request = parse_request(raw)

        assert request.data["field"] == ["plain value"]
        upload = request.get_data("file")
        assert isinstance(upload, Multipart)
        assert upload.filename == "notes.txt"
        assert upload.content_type == "text/plain"
        assert upload.data == b"file contents"

    def test_json_body(self):
        body = b'{"name": "Ada"}'
        raw = build_request(
            "POST", "/", [("Content-Type", "application/json"), ("Content-Length", str(len(body)))], body,
        )
        request = parse_request(raw)

        assert request.content_type == "application/json"
        assert request.json == {"name": "Ada"}
        assert request.data == {}

    def test_invalid_json_raises_parse_error(self):
        request = Request(method="POST", path="/", body=b"{nope")

        with pytest.raises(ParseError):
            _ = request.json

    def test_unknown_content_type_has_no_form_data(self):
        assert parse_form("text/plain", b"a=1") == {}


class TestKeepAlive:
    @pytest.mark.parametrize("version,connection,expected", [
        ("HTTP/1.1", None, True),
        ("HTTP/1.1", "close", False),
        ("HTTP/1.1", "Keep-Alive, Close", False),
        ("HTTP/1.0", None, False),
        ("HTTP/1.0", "keep-alive", True),
    ])
    def test_is_keep_alive(self, version, connection, expected):
        headers = [("Connection", connection)] if connection else []
        request = parse_request(build_request("GET", "/", headers, version=version))

        assert request.is_keep_alive is expected


class TestParseErrors:
    """Malformed input."""

    @pytest.mark.parametrize("line", [
        "GET /",
        "GET  / HTTP/1.1",
        "/ HTTP/1.1",
        "GE(T / HTTP/1.1",
        "GET / HTTP/1.1 extra",
        "GET / HTTX/1.1",
        "GET relative HTTP/1.1",
    ])
    def test_bad_request_line(self, line):
        with pytest.raises(ParseError) as exc_info:
            parse_request(line.encode() + b"\r\nHost: x\r\n\r\n")
        assert exc_info.value.status_code == 400

    def test_unsupported_version(self):
        with pytest.raises(ParseError) as exc_info:
            parse_request(b"GET / HTTP/2.0\r\n\r\n")
        assert exc_info.value.status_code == 505

    def test_path_traversal(self):
        with pytest.raises(ParseError):
            parse_request(build_request("GET", "/static/../../etc/passwd"))

    def test_header_without_colon(self):
        with pytest.raises(ParseError):
            parse_request(b"GET / HTTP/1.1\r\nNoColonHere\r\n\r\n")

    @pytest.mark.parametrize("value", ["abc", "-1", "1.5", "0x10"])
    def test_invalid_content_length(self, value):
        raw = build_request("POST", "/", [("Content-Length", value)])
        with pytest.raises(ParseError):
            parse_request(raw)

    def test_conflicting_content_length(self):
        raw = build_request("POST", "/", [("Content-Length", "1"), ("Content-Length", "2")], b"ab")
        with pytest.raises(ParseError):
            parse_request(raw)

    def test_unsupported_transfer_coding(self):
        raw = build_request("POST", "/", [("Transfer-Encoding", "gzip")], b"x")
        with pytest.raises(ParseError):
            parse_request(raw)

    def test_incomplete_head(self):
        with pytest.raises(IncompleteMessage):
            parse_request(b"GET / HTTP/1.1\r\nHost: x\r\n")

    def test_incomplete_body(self):
        raw = build_request("POST", "/", [("Content-Length", "10")], b"abc")
        with pytest.raises(IncompleteMessage):
            parse_request(raw)

    def test_too_large(self):
        raw = build_request("POST", "/", [("Content-Length", "2000")], b"x" * 2000)
        with pytest.raises(RequestTooLarge) as exc_info:
            parse_request(raw, max_size=1024)
        assert exc_info.value.status_code == 413


class TestParseHeaders:
    def test_obsolete_line_folding(self):
        headers = parse_headers(["X-Long: first", "  second"])

        assert headers.get_first("x-long") == "first second"

    def test_whitespace_before_colon_is_rejected(self):
        with pytest.raises(ParseError):
            parse_headers(["Host : x"])
