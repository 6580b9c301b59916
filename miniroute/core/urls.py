"""
SOLE RESPONSIBILITY: Pure URL normalization - sanitize base URLs, join base and path,
and re-host loopback URLs onto the resolved base.

Every function coerces non-string input to "" instead of raising and is idempotent:
normalizing an already-normalized value returns it unchanged.
"""

import re
import logging
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

# Hosts left in a profile URL until the operator configures the real server
PLACEHOLDER_HOSTS = ("YOUR_LOCAL_IP", "your-domain.com")

_SCHEME_RE = re.compile(r"^(https?)://(.*)$", re.IGNORECASE | re.DOTALL)
_EMBEDDED_URL_RE = re.compile(r"https?://", re.IGNORECASE)
_ORIGIN_RE = re.compile(r"^(https?://[^/?#]+)", re.IGNORECASE)
_LOOPBACK_RE = re.compile(r"^https?://(?:localhost|127\.0\.0\.1)(?::\d+)?(?=[/?#]|$)", re.IGNORECASE)
_PLACEHOLDER_RE = re.compile(
    r"^https?://(?:" + "|".join(re.escape(host) for host in PLACEHOLDER_HOSTS) + r")(?::\d+)?(?=[/?#]|$)",
    re.IGNORECASE,
)


def _coerce(value: Any) -> str:
    return value if isinstance(value, str) else ""


def sanitize_base_url(raw: Any) -> str:
    """
    Normalize a candidate base URL.

    - blank / non-string input gives ""
    - a missing scheme defaults to http://
    - runs of slashes after the scheme collapse to one
    - exactly one trailing slash

    Examples:
        "192.168.1.10:8080//app"  -> "http://192.168.1.10:8080/app/"
        "HTTPS://example.com"     -> "https://example.com/"
    """
    value = _coerce(raw).strip()
    if not value:
        return ""

    match = _SCHEME_RE.match(value)
    if match:
        scheme, rest = match.group(1).lower(), match.group(2)
    else:
        scheme, rest = "http", value

    rest = re.sub(r"/{2,}", "/", rest).lstrip("/")
    if not rest:
        # "http://" with no host
        return ""

    sanitized = f"{scheme}://{rest}"
    if not sanitized.endswith("/"):
        sanitized += "/"
    return sanitized


def base_origin(base_url: Any) -> str:
    """scheme://host[:port] of a base URL, or "" if it has none."""
    match = _ORIGIN_RE.match(_coerce(base_url).strip())
    return match.group(1) if match else ""


def _rehost(pattern: "re.Pattern[str]", url: Any, base_url: Any) -> str:
    value = _coerce(url)
    if not value:
        return ""
    origin = base_origin(base_url)
    if not origin:
        return value
    rewritten, count = pattern.subn(lambda _: origin, value, count=1)
    if count and rewritten == origin:
        rewritten += "/"
    return rewritten


def fix_host(url: Any, base_url: Any) -> str:
    """
    Re-host a localhost / 127.0.0.1 URL (any port) onto the origin of base_url,
    keeping the rest of the path. Any other URL is returned unchanged.

    Example with base "http://192.168.1.10:8080/app/":
        "http://localhost:8080/app/upload/a.jpg" -> "http://192.168.1.10:8080/app/upload/a.jpg"
    """
    return _rehost(_LOOPBACK_RE, url, base_url)


def fix_placeholder_host(url: Any, base_url: Any) -> str:
    """Like fix_host, for URLs that still point at an unconfigured placeholder host."""
    return _rehost(_PLACEHOLDER_RE, url, base_url)


def is_loopback_url(url: Any) -> bool:
    return bool(_LOOPBACK_RE.match(_coerce(url)))


def is_placeholder_url(url: Any) -> bool:
    return bool(_PLACEHOLDER_RE.match(_coerce(url)))


def find_embedded_url(value: Any) -> Optional[str]:
    """The absolute URL embedded anywhere in value, e.g. 'upload/http://x/a.png' -> 'http://x/a.png'."""
    text = _coerce(value)
    match = _EMBEDDED_URL_RE.search(text)
    return text[match.start():] if match else None


def join_url(base: Any, path: Any, host_base: Any = None) -> str:
    """
    Join a base and a path.

    An absolute URL embedded in path wins over base (never double-prefixed) and is
    passed through fix_host against host_base (defaults to base). Otherwise leading
    slashes are stripped from path and it is appended to the slash-terminated base.
    """
    base = _coerce(base)
    path = _coerce(path)
    if not path:
        return base

    embedded = find_embedded_url(path)
    if embedded is not None:
        return fix_host(embedded, base if host_base is None else host_base)

    if base and not base.endswith("/"):
        base += "/"
    result = base + path.lstrip("/")

    if len(_EMBEDDED_URL_RE.findall(result)) > 1:
        logger.warning(f"Joined URL contains more than one scheme, check for a double join upstream: {result}")
    return result


class UrlNormalizer:
    """
    Binds the pure functions above to "the currently resolved base URL".
    The base provider is called on demand, so environment changes apply immediately.
    """

    def __init__(self, base_provider: Callable[[], str]):
        self._base_provider = base_provider

    def base_url(self) -> str:
        return self._base_provider()

    def fix_host(self, url: Any) -> str:
        return fix_host(url, self._base_provider())

    def join(self, base: Any, path: Any) -> str:
        return join_url(base, path, host_base=self._base_provider())

    def resolve(self, path: Any, base: Any = None) -> str:
        """
        Final dispatch URL for a request path.
        A per-call base takes precedence over the resolved base; both go through fix_host.
        """
        resolved = self._base_provider()
        effective = fix_host(base, resolved) if _coerce(base) else resolved
        return fix_host(join_url(effective, path, host_base=resolved), resolved)
