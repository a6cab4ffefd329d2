import logging

from flask import Response

from hls_relay.playlist import rewrite_playlist

logger = logging.getLogger(__name__)

MANIFEST_CONTENT_TYPE = "application/vnd.apple.mpegurl"
DEFAULT_SEGMENT_CONTENT_TYPE = "video/MP2T"
ATTRIBUTION_HEADER = "X-Proxy-Variant"
PROGRESS_INTERVAL = 512 * 1024


def _base_headers(outcome):
    return {
        "Cache-Control": "no-store",
        "Access-Control-Allow-Origin": "*",
        ATTRIBUTION_HEADER: outcome.variant.name,
    }


def manifest_response(outcome, target_url, config):
    """
    Buffers the whole playlist, rewrites it, and returns it in one piece.
    """
    try:
        raw = outcome.body.content
    finally:
        outcome.close()

    # utf-8-sig drops a BOM that would otherwise hide the #EXTM3U tag.
    content = raw.decode("utf-8-sig")
    modified_content = rewrite_playlist(content, target_url, config.proxy_path)
    logger.debug(f"Modified M3U8 Content Length: {len(modified_content)}")

    headers = _base_headers(outcome)
    headers["Content-Type"] = MANIFEST_CONTENT_TYPE
    return Response(modified_content, status=outcome.status, headers=headers)


def _relay_chunks(upstream, url, chunk_size):
    total = 0
    next_report = PROGRESS_INTERVAL
    try:
        for chunk in upstream.iter_content(chunk_size=chunk_size):
            if not chunk:
                continue
            total += len(chunk)
            if total >= next_report:
                logger.debug(f"Streamed ~{total // 1024} KB of {url}")
                next_report += PROGRESS_INTERVAL
            yield chunk
    except Exception:
        # Headers are already out; the server has to drop the connection.
        logger.exception(f"Stream from {url} failed after {total} bytes")
        raise
    finally:
        upstream.close()
    logger.debug(f"Stream finished ({total} bytes) for {url}")


def stream_response(outcome, target_url, config):
    """
    Forwards a binary body chunk by chunk without buffering it.

    The upstream connection is released when the server closes the response,
    which also covers clients that disconnect mid-stream.
    """
    upstream = outcome.body

    headers = _base_headers(outcome)
    headers["Content-Type"] = outcome.headers.get("content-type") or DEFAULT_SEGMENT_CONTENT_TYPE
    headers["Accept-Ranges"] = "bytes"
    content_range = outcome.headers.get("content-range")
    if content_range:
        headers["Content-Range"] = content_range

    response = Response(
        _relay_chunks(upstream, target_url, config.chunk_size),
        status=outcome.status,
        headers=headers,
        direct_passthrough=True,
    )
    response.call_on_close(upstream.close)
    return response
