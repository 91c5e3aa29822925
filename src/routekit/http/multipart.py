"""
=============================================================================
MULTIPART FORM DATA
=============================================================================

HTML forms with file inputs are sent as multipart/form-data. The body is
a series of parts separated by a boundary string announced in the
Content-Type header:

    Content-Type: multipart/form-data; boundary=XyZ
                                       ──────┬─────
                                             └── delimiter for the parts

    --XyZ\r\n
    Content-Disposition: form-data; name="title"\r\n      ← part headers
    \r\n
    Holiday\r\n                                           ← part data
    --XyZ\r\n
    Content-Disposition: form-data; name="photo"; filename="beach.jpg"\r\n
    Content-Type: image/jpeg\r\n
    \r\n
    <binary jpeg bytes>\r\n
    --XyZ--\r\n                                           ← closing boundary

Each part is folded into request.data under its field name:

    ┌───────────────────────────────┬──────────────────────────────────┐
    │  Part has                     │  Value stored in data            │
    ├───────────────────────────────┼──────────────────────────────────┤
    │  neither filename nor         │  str (the part data as UTF-8)    │
    │  Content-Type                 │                                  │
    │  filename and/or Content-Type │  Multipart(name, data,           │
    │                               │            filename, ctype)      │
    └───────────────────────────────┴──────────────────────────────────┘

The byte-level state machine is python-multipart's MultipartParser; this
module feeds it the body and assembles parts from its callbacks.

=============================================================================
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from python_multipart.exceptions import FormParserError
from python_multipart.multipart import MultipartParser, parse_options_header

from ..errors import ParseError
from .multidict import MultiDict


@dataclass
class Multipart:
    """
    One decoded part of a multipart body that carries a file or a type.

    Attributes:
        name: Form field name (from Content-Disposition).
        data: Raw part bytes.
        filename: Client-supplied filename, if any.
        content_type: Part Content-Type, if any.
    """

    name: str
    data: bytes
    filename: Optional[str] = None
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def text(self) -> str:
        """Part data decoded as UTF-8 (undecodable bytes replaced)."""
        return self.data.decode("utf-8", errors="replace")


def parse_boundary(content_type: str) -> bytes:
    """
    Extract the boundary parameter from a multipart Content-Type value.

    Raises:
        ParseError: If the header is not multipart or has no usable boundary.
    """
    mime, options = parse_options_header(content_type)
    if not mime.lower().startswith(b"multipart/"):
        raise ParseError(f"Not a multipart content type: {content_type}")
    boundary = options.get(b"boundary")
    if not boundary:
        raise ParseError("Multipart body without boundary parameter")
    # RFC 2046: 1 to 70 characters
    if len(boundary) > 70:
        raise ParseError("Multipart boundary longer than 70 characters")
    return boundary


class _PartCollector:
    """
    Accumulates python-multipart callbacks into complete parts.

    The parser may hand over a header name, header value or part data in
    several slices, so everything is buffered until the matching *_end
    callback fires.
    """

    def __init__(self):
        self.parts: List[Multipart] = []
        self._headers: Dict[str, str] = {}
        self._field = bytearray()
        self._value = bytearray()
        self._data = bytearray()

    def callbacks(self) -> dict:
        return {
            "on_part_begin": self.on_part_begin,
            "on_part_data": self.on_part_data,
            "on_part_end": self.on_part_end,
            "on_header_field": self.on_header_field,
            "on_header_value": self.on_header_value,
            "on_header_end": self.on_header_end,
        }

    def on_part_begin(self) -> None:
        self._headers = {}
        self._data = bytearray()

    def on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._field.extend(data[start:end])

    def on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._value.extend(data[start:end])

    def on_header_end(self) -> None:
        name = self._field.decode("latin-1").strip().lower()
        self._headers[name] = self._value.decode("latin-1").strip()
        self._field = bytearray()
        self._value = bytearray()

    def on_part_data(self, data: bytes, start: int, end: int) -> None:
        self._data.extend(data[start:end])

    def on_part_end(self) -> None:
        disposition = self._headers.get("content-disposition")
        if disposition is None:
            raise ParseError("Multipart part without Content-Disposition")

        _, params = parse_options_header(disposition)
        name = params.get(b"name")
        if name is None:
            raise ParseError("Multipart part without a field name")

        filename = params.get(b"filename")
        self.parts.append(Multipart(
            name=name.decode("utf-8", errors="replace"),
            data=bytes(self._data),
            filename=filename.decode("utf-8", errors="replace") if filename is not None else None,
            content_type=self._headers.get("content-type"),
        ))


def parse_multipart(body: bytes, content_type: str) -> MultiDict:
    """
    Decode a multipart/form-data body into a multi-value mapping.

    Args:
        body: The complete request body.
        content_type: The request's Content-Type header value.

    Returns:
        MultiDict of field name → [str | Multipart, ...] in body order.

    Raises:
        ParseError: On a missing boundary or a malformed body.
    """
    boundary = parse_boundary(content_type)
    collector = _PartCollector()
    parser = MultipartParser(boundary, collector.callbacks())
    try:
        parser.write(body)
        parser.finalize()
    except FormParserError as e:
        raise ParseError(f"Malformed multipart body: {e}") from e

    data = MultiDict()
    for part in collector.parts:
        if part.filename is None and part.content_type is None:
            data.add(part.name, part.text)
        else:
            data.add(part.name, part)
    return data
