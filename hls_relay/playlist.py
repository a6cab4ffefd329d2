import logging
from urllib.parse import quote, urljoin, urlsplit

from hls_relay.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

MANIFEST = "manifest"
BINARY = "binary"

MANIFEST_MIME_MARKER = "mpegurl"
MANIFEST_EXTENSION = ".m3u8"


def classify(outcome, target_url):
    """
    Decides whether the terminal outcome is a playlist to rewrite or bytes to stream.
    """
    if outcome.body is None:
        raise UpstreamUnavailable()

    content_type = outcome.headers.get("content-type", "").lower()
    if MANIFEST_MIME_MARKER in content_type:
        return MANIFEST
    if urlsplit(target_url).path.endswith(MANIFEST_EXTENSION):
        return MANIFEST
    return BINARY


def resolve_reference(reference, base_url):
    """
    Resolves a playlist reference against the playlist URL.

    Returns None when the reference does not produce an absolute http(s) URL.
    """
    reference = reference.strip()
    if not reference:
        return None
    try:
        absolute = urljoin(base_url, reference)
        parts = urlsplit(absolute)
        # Accessing port validates it.
        parts.port
    except ValueError:
        return None
    if parts.scheme not in ("http", "https") or not parts.hostname:
        return None
    return absolute


def rewrite_playlist(text, base_url, proxy_path="/proxy"):
    """
    Routes every reference line of an HLS playlist back through the relay.

    Lines starting with ``#`` are copied byte for byte. Lines that fail to
    resolve are left alone. The rewrite is not idempotent: an already
    proxied line is a relative path and gets wrapped again.
    """
    lines = text.split("\n")
    modified_lines = []

    for line in lines:
        body, cr = (line[:-1], "\r") if line.endswith("\r") else (line, "")
        if body.startswith("#"):
            modified_lines.append(line)
            continue

        absolute_url = resolve_reference(body, base_url)
        if absolute_url is None:
            modified_lines.append(line)
            continue

        proxy_url = f"{proxy_path}?url={quote(absolute_url, safe='')}"
        logger.debug(f"Rewritten Segment URL: {body} -> {proxy_url}")
        modified_lines.append(proxy_url + cr)

    return "\n".join(modified_lines)
