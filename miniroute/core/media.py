"""
SOLE RESPONSIBILITY: Rewrites media / URL-shaped string fields in response payloads
into absolute, environment-correct URLs, in place.
"""

import re
import logging
from typing import Any, Callable, Optional, Set

from .urls import (
    find_embedded_url,
    fix_host,
    fix_placeholder_host,
    is_loopback_url,
    is_placeholder_url,
    join_url,
)

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = (
    ".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp", ".svg", ".ico", ".heic", ".tif", ".tiff",
)

# Last word of a key (camelCase / snake_case split) that marks it as URL-bearing
URL_KEY_WORDS = frozenset({
    "image", "images", "img", "imgs", "avatar", "icon", "logo", "cover", "banner",
    "photo", "photos", "pic", "pics", "picture", "pictures", "thumb", "thumbnail",
    "url", "urls", "src", "file", "attachment", "attachments", "video", "audio",
    "tupian", "touxiang", "fengmian", "zhaopian",
})

# Suffixes long enough to match inside run-together keys such as "userimage"
URL_KEY_SUFFIXES = (
    "image", "images", "avatar", "photo", "photos", "picture", "pictures",
    "thumbnail", "tupian", "touxiang", "fengmian", "zhaopian",
)

_KEY_WORD_RE = re.compile(r"[A-Z]?[a-z0-9]+|[A-Z]+(?![a-z])")
_UPLOAD_SEGMENT_RE = re.compile(r"(?:^|/)uploads?/", re.IGNORECASE)
# data:, wxfile://, blob: ... but not "host:8080"
_OTHER_SCHEME_RE = re.compile(r"^(?!https?:)[a-z][a-z0-9+.\-]*:(?!\d)", re.IGNORECASE)
_ABSOLUTE_RE = re.compile(r"^https?://", re.IGNORECASE)
_RICH_TEXT_IMG_RE = re.compile(r"<img([^>]*?)src=([\"'])([^\"']+)\2", re.IGNORECASE)
_STYLE_ATTR_RE = re.compile(r"\sstyle\s*=", re.IGNORECASE)

# Added to rich-text <img> tags that carry no style of their own
RICH_TEXT_IMAGE_STYLE = "width:100%;max-width:100%;"


def is_url_key(key: Any) -> bool:
    """Heuristic: does this key name say its value is a URL / media reference?"""
    if not isinstance(key, str) or not key:
        return False
    words = _KEY_WORD_RE.findall(key)
    if words and words[-1].lower() in URL_KEY_WORDS:
        return True
    return key.lower().endswith(URL_KEY_SUFFIXES)


def looks_like_media(value: str) -> bool:
    """Value-only heuristic, independent of the owning key."""
    embedded = find_embedded_url(value)
    if embedded is not None and (is_loopback_url(embedded) or is_placeholder_url(embedded)):
        return True
    path = re.split(r"[?#]", value, maxsplit=1)[0].strip().lower()
    if path.endswith(IMAGE_EXTENSIONS):
        return True
    return bool(_UPLOAD_SEGMENT_RE.search(path))


def is_single_url(value: str) -> bool:
    """
    True for one absolute URL, even with commas in its query
    ("https://cdn/a.jpg?x-oss-process=image/resize,w_100").
    A comma list of absolute URLs or media paths is not a single URL.
    """
    if not _ABSOLUTE_RE.match(value):
        return False
    rest = [piece.strip() for piece in value.split(",")[1:]]
    rest = [piece for piece in rest if piece]
    if not rest:
        return True
    return not all(_ABSOLUTE_RE.match(piece) or looks_like_media(piece) for piece in rest)


def normalize_media_url(value: str, base_url: str) -> str:
    """
    Absolute, environment-correct URL for one media reference.
    Relative paths join onto base_url; loopback / placeholder hosts move to base_url's host;
    other absolute URLs and non-http schemes are returned unchanged.
    """
    if not value or _OTHER_SCHEME_RE.match(value):
        return value
    embedded = find_embedded_url(value)
    if embedded is not None:
        return fix_placeholder_host(fix_host(embedded, base_url), base_url)
    return join_url(base_url, value)


class MediaRewriter:
    """
    Walks dicts and lists recursively and rewrites candidate strings in place.

    A string is a candidate when its key is URL-bearing or its value looks like media.
    Comma-separated lists are rewritten piece by piece and stay one comma-joined string.
    Each container is visited once, so cycles terminate.
    """

    def __init__(self, base_provider: Optional[Callable[[], str]] = None):
        self._base_provider = base_provider

    def rewrite(self, payload: Any, base_url: Optional[str] = None) -> Any:
        """Rewrite payload in place; returns it (or the rewritten value for a bare string)."""
        base = base_url or (self._base_provider() if self._base_provider else "")
        if not base:
            return payload
        if isinstance(payload, str):
            return self.rewrite_value(payload, None, base)
        self._walk(payload, None, base, set())
        return payload

    def _walk(self, node: Any, key: Any, base: str, seen: Set[int]) -> None:
        if isinstance(node, dict):
            if id(node) in seen:
                return
            seen.add(id(node))
            for child_key, child in node.items():
                if isinstance(child, str):
                    rewritten = self.rewrite_value(child, child_key, base)
                    if rewritten != child:
                        node[child_key] = rewritten
                else:
                    self._walk(child, child_key, base, seen)

        elif isinstance(node, list):
            if id(node) in seen:
                return
            seen.add(id(node))
            # Elements inherit the list's key: images: ["a.jpg", "b.jpg"]
            for index, child in enumerate(node):
                if isinstance(child, str):
                    rewritten = self.rewrite_value(child, key, base)
                    if rewritten != child:
                        node[index] = rewritten
                else:
                    self._walk(child, key, base, seen)

    def rewrite_value(self, value: str, key: Any, base: str) -> str:
        if not value.strip():
            return value

        key_matched = is_url_key(key)
        if not key_matched and not looks_like_media(value):
            return value

        stripped = value.strip()
        if _OTHER_SCHEME_RE.match(stripped):
            # data: URIs carry commas of their own
            return value
        if is_single_url(stripped):
            fixed = normalize_media_url(stripped, base)
            return value if fixed == stripped else fixed

        pieces = [piece.strip() for piece in value.split(",")]
        pieces = [piece for piece in pieces if piece]
        rewritten = []
        for piece in pieces:
            is_candidate = looks_like_media(piece) or (key_matched and not re.search(r"\s", piece))
            rewritten.append(normalize_media_url(piece, base) if is_candidate else piece)

        if rewritten == pieces and len(pieces) == len(value.split(",")):
            # Nothing changed; keep the original spacing
            return value
        return ",".join(rewritten)


def rewrite_rich_text_images(html: Any, base_url: str) -> str:
    """
    Make every <img src="..."> in rich-text HTML absolute against base_url and
    give unstyled images a full-width style.
    """
    if not isinstance(html, str) or not html:
        return ""
    if not base_url:
        logger.warning("No base URL available, rich-text images left unchanged")
        return html

    def _replace(match: "re.Match[str]") -> str:
        attrs, quote, src = match.group(1), match.group(2), match.group(3)
        end = html.find(">", match.end())
        tail = html[match.end():] if end < 0 else html[match.end():end]
        if not _STYLE_ATTR_RE.search(attrs) and not _STYLE_ATTR_RE.search(tail):
            attrs = f' style="{RICH_TEXT_IMAGE_STYLE}"{attrs}'
        return f"<img{attrs}src={quote}{normalize_media_url(src.strip(), base_url)}{quote}"

    return _RICH_TEXT_IMG_RE.sub(_replace, html)
