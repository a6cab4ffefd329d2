from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse


@dataclass(frozen=True)
class AttemptVariant:
    """
    One Referer/Origin strategy for an upstream attempt.

    ``None`` means the value is derived from the target itself.
    """

    name: str
    referer: Optional[str] = None
    origin: Optional[str] = None


def default_variants(allowed_host):
    """
    Ordered retry policy: first look like the target, then like the allowed site.
    """
    return (
        AttemptVariant("direct"),
        AttemptVariant(
            "disguise",
            referer=f"https://{allowed_host}/",
            origin=f"https://{allowed_host}",
        ),
    )


@dataclass(frozen=True)
class ProxyRequest:
    url: str
    range: Optional[str] = None
    user_agent: Optional[str] = None
    # Inbound Host/Origin, used for logging only.
    client_host: Optional[str] = None
    client_origin: Optional[str] = None


def _site(parsed):
    # Drop any userinfo, keep the port.
    netloc = parsed.netloc.rpartition("@")[2]
    return f"{parsed.scheme}://{netloc}"


def build_headers(variant, proxy_request, config):
    """
    Builds the outbound header set for one attempt.

    Only Range and User-Agent come from the inbound request; cookies,
    authorization and everything else stay on this side of the relay.
    """
    parsed = urlparse(proxy_request.url)
    site = _site(parsed)

    headers = {
        "User-Agent": proxy_request.user_agent or config.user_agent,
        "Accept": "*/*",
        "Accept-Encoding": "gzip, deflate",
        "Accept-Language": "en-US,en;q=0.9",
        "Connection": "keep-alive",
        "Host": parsed.hostname,
        "Referer": variant.referer if variant.referer is not None else f"{site}/",
        "Origin": variant.origin if variant.origin is not None else site,
    }
    if proxy_request.range:
        headers["Range"] = proxy_request.range
    return headers
