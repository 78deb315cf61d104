"""
Common utility functions and helpers.
"""
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Union
from urllib.parse import parse_qsl, urlsplit
import re

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)

# One leading bullet glyph plus the whitespace after it
_BULLET_PREFIX = re.compile(r"^[-*•]\s*")


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return datetime_to_epoch_ms(datetime.now(timezone.utc))


def epoch_ms_to_datetime(value: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime (exact, no float rounding)."""
    return _EPOCH + timedelta(milliseconds=int(value))


def datetime_to_epoch_ms(value: datetime) -> int:
    """Convert a datetime to epoch milliseconds. Naive values are read as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (value - _EPOCH) // _ONE_MS


def epoch_ms_to_iso(value: int) -> str:
    """
    Format epoch milliseconds the way JavaScript's ``toISOString`` does.

    Example:
        >>> epoch_ms_to_iso(0)
        '1970-01-01T00:00:00.000Z'
    """
    dt = epoch_ms_to_datetime(value)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def iso_to_datetime(value: Union[str, datetime]) -> datetime:
    """Parse an ISO-8601 string (``Z`` suffix accepted) into an aware UTC datetime."""
    if isinstance(value, datetime):
        dt = value
    else:
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def iso_to_epoch_ms(value: Union[str, datetime]) -> int:
    return datetime_to_epoch_ms(iso_to_datetime(value))


def slugify_title(title: str) -> str:
    """
    Filesystem-safe name for downloads: every char outside [a-z0-9] becomes "_".

    Example:
        >>> slugify_title("Q3 Market Report!")
        'q3_market_report_'
    """
    return re.sub(r"[^a-z0-9]", "_", title, flags=re.IGNORECASE | re.ASCII).lower()


def non_blank_lines(content: str) -> List[str]:
    """Trimmed lines of *content* with blank ones dropped."""
    return [line.strip() for line in content.split("\n") if line.strip()]


def strip_bullet(line: str) -> str:
    """Remove one leading "-", "*" or "•" so the slide format can supply its own."""
    return _BULLET_PREFIX.sub("", line)


def parse_url_fragment(url: str) -> Dict[str, str]:
    """
    Read auth parameters from a redirect URL.

    The identity provider puts tokens in the fragment
    (``#access_token=...&type=recovery``); hash routers sometimes move them to
    the query string, so the query is read too. Fragment values win.
    """
    if not url:
        return {}
    parts = urlsplit(url)
    params: Dict[str, str] = dict(parse_qsl(parts.query))
    fragment = parts.fragment
    # "#/route?access_token=..." style fragments
    if "?" in fragment:
        fragment = fragment.split("?", 1)[1]
    params.update(parse_qsl(fragment.lstrip("/")))
    return params
