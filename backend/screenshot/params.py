"""
Screenshot URL Parameters

Parses an inbound screenshot URL into a RenderRequest.

URL shape:
    https://<host>/<anything>/screenshot[s][/<W>x<H>]/<path>[@<2-4>x][.<pdf|png>][?<query>]

Example:
    https://example.com/screenshot/600x400/foo/bar@2x.pdf?x=1
    -> target https://example.com/foo/bar?x=1, 600x400 @2x, pdf
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple

from .errors import ParseError


class OutputFormat(str, Enum):
    """Supported capture formats (first value is the default)"""
    PNG = "png"
    PDF = "pdf"

    @property
    def content_type(self) -> str:
        if self is OutputFormat.PDF:
            return "application/pdf"
        return f"image/{self.value}"


# ============================================
# URL Pattern
# ============================================

_FORMATS = "|".join(f.value for f in OutputFormat)

_SEGMENTS = (
    r"^(?P<base>https://[\w./]+)/screenshots?",
    r"(?:/(?P<width>[0-9]+)x(?P<height>[0-9]+))?",
    r"(?P<path>/.*?)",
    r"(?:@(?P<scale>[2-4])x)?",
    rf"(?:\.(?P<format>{_FORMATS}))?",
    r"(?P<query>\?.*)?$",
)

SCREENSHOT_URL_PATTERN = re.compile("".join(_SEGMENTS))


@dataclass(frozen=True)
class RenderDefaults:
    """Values used for any field the URL leaves out"""
    output_format: OutputFormat = OutputFormat.PNG
    width: int = 1200
    height: int = 630
    scale: int = 1
    cache_ttl_seconds: int = 60 * 60 * 24 * 7  # 7 days


@dataclass(frozen=True)
class RenderRequest:
    """A fully resolved rendering request"""
    target_url: str
    output_format: OutputFormat
    width: int
    height: int
    scale: int
    extra_query_params: Tuple[str, ...]
    cache_ttl_seconds: int

    @property
    def content_type(self) -> str:
        return self.output_format.content_type


def split_query_params(query: Optional[str]) -> List[str]:
    """Split a raw query string into ``key=value`` fragments, keeping order and duplicates."""
    if not query:
        return []
    query = query[1:] if query.startswith("?") else query
    return [param for param in query.split("&") if param]


def build_target_url(base: str, path: str, params: Sequence[str] = ()) -> str:
    """Join base, path and query fragments into the URL the browser navigates to."""
    query = f"?{'&'.join(params)}" if params else ""
    return f"{base}{path}{query}"


def parse_screenshot_url(
    request_url: str,
    query_params: Iterable[str] = (),
    defaults: RenderDefaults = RenderDefaults(),
) -> RenderRequest:
    """
    Parse a screenshot URL.

    Args:
        request_url: Full inbound URL
        query_params: Operator-configured params appended after the request's own
        defaults: Default table for omitted fields

    Returns:
        RenderRequest

    Raises:
        ParseError: URL does not match, or has a zero dimension
    """
    match = SCREENSHOT_URL_PATTERN.match(request_url)
    if match is None:
        raise ParseError(request_url)

    groups = match.groupdict()

    width = int(groups["width"]) if groups["width"] else defaults.width
    height = int(groups["height"]) if groups["height"] else defaults.height
    if width <= 0 or height <= 0:
        raise ParseError(request_url, f"Invalid dimensions {width}x{height}")

    params = tuple(split_query_params(groups["query"]) + list(query_params))

    return RenderRequest(
        target_url=build_target_url(groups["base"], groups["path"], params),
        output_format=OutputFormat(groups["format"]) if groups["format"] else defaults.output_format,
        width=width,
        height=height,
        scale=int(groups["scale"]) if groups["scale"] else defaults.scale,
        extra_query_params=params,
        cache_ttl_seconds=defaults.cache_ttl_seconds,
    )
