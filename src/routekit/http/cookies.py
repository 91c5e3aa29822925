"""
=============================================================================
COOKIES
=============================================================================

Cookies travel in two different headers, with two different formats:

    Browser → Server (request):

        Cookie: session=abc123; theme=dark
                ───────┬──────  ─────┬────
                       │             └── pairs separated by ";"
                       └──────────────── name=value, nothing else

    Server → Browser (response), ONE header per cookie:

        Set-Cookie: session=abc123; Expires=Wed, 21 Oct 2026 07:28:00 GMT; Path=/; HttpOnly
                    ──────┬─────── ───────────────┬────────────────────── ───┬─── ───┬────
                          │                       │                          │       │
                     name=value            absolute expiry              attribute   flag
                                           (HTTP-date, GMT)             with value  (no value)

Attributes only go out when they are set on the Cookie. Secure and
HttpOnly are bare flags.

=============================================================================
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional, Union


Expiry = Union[datetime, float, int]


@dataclass
class Cookie:
    """
    A cookie waiting to be sent in a Set-Cookie header.

    Attributes:
        name: Cookie name.
        value: Cookie value (sent as-is).
        domain: Domain attribute, omitted when None.
        path: Path attribute, omitted when None.
        expires: Absolute expiry as a datetime (naive means UTC) or a
                 POSIX timestamp. Omitted when None.
        secure: Emit the Secure flag.
        httponly: Emit the HttpOnly flag.
    """

    name: str
    value: str
    domain: Optional[str] = None
    path: Optional[str] = None
    expires: Optional[Expiry] = None
    secure: bool = False
    httponly: bool = False

    def to_header_value(self) -> str:
        """
        Serialize to the value of a Set-Cookie header.

        Example:
            Cookie("id", "42", path="/", httponly=True).to_header_value()
            # "id=42; Path=/; HttpOnly"
        """
        parts = [f"{self.name}={self.value}"]
        if self.expires is not None:
            parts.append(f"Expires={format_http_date(self.expires)}")
        if self.path is not None:
            parts.append(f"Path={self.path}")
        if self.domain is not None:
            parts.append(f"Domain={self.domain}")
        if self.secure:
            parts.append("Secure")
        if self.httponly:
            parts.append("HttpOnly")
        return "; ".join(parts)


def parse_cookies(header_values: Union[str, Iterable[str], None]) -> Dict[str, str]:
    """
    Parse Cookie request header(s) into a name → value dict.

    Splits on ";", trims whitespace and splits each pair on the FIRST "="
    (values may contain "="). When a name appears more than once, the
    last occurrence wins. Pairs without "=" are ignored.

    Args:
        header_values: One Cookie header value, or all of them if the
                       client sent the header more than once.

    Returns:
        Dict of cookie name → value (empty if no cookies).
    """
    if not header_values:
        return {}
    if isinstance(header_values, str):
        header_values = [header_values]

    cookies: Dict[str, str] = {}
    for header in header_values:
        for pair in header.split(";"):
            pair = pair.strip()
            if "=" not in pair:
                continue
            name, _, value = pair.partition("=")
            name = name.strip()
            if name:
                cookies[name] = value.strip()
    return cookies


def format_http_date(when: Expiry) -> str:
    """
    Format a datetime or timestamp as an HTTP-date (RFC 7231 IMF-fixdate).

    Format: Day, DD Mon YYYY HH:MM:SS GMT
    Example: Wed, 01 Jan 2026 12:00:00 GMT

    HTTP dates are always GMT. Naive datetimes are taken to be UTC.
    """
    if isinstance(when, datetime):
        if when.tzinfo is None:
            dt = when.replace(tzinfo=timezone.utc)
        else:
            dt = when.astimezone(timezone.utc)
    else:
        dt = datetime.fromtimestamp(when, tz=timezone.utc)

    # strftime("%a") follows LC_TIME; HTTP dates need the English names.
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )
