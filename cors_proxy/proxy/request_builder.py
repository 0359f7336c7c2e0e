import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Mapping, Optional, Tuple, Union
from urllib.parse import unquote

from fastapi import Request

from cors_proxy.proxy.overrides import CONTROL_HEADERS, CustomOverrides

logger = logging.getLogger("uvicorn.error")

# Hop-by-hop headers that should NOT be forwarded (RFC 2616)
HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
}

# Recomputed by the HTTP client for the outbound connection
TRANSPORT_HEADERS = {"host", "content-length", "accept-encoding"}

# Prefixes of headers identifying the caller or the hosting platform
STRIPPED_PREFIXES = ("origin", "cf-", "x-forwarded") + CONTROL_HEADERS

BODYLESS_METHODS = ("GET", "HEAD")


@dataclass
class OutboundRequest:
    url: str
    method: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[Union[bytes, str]] = None
    follow_redirects: bool = True


def extract_target_url(request: Request) -> Optional[str]:
    """
    Return the target URL carried in the raw query string, or None if there is none.

    Callers URL-encode the target and the query is decoded twice, so a target
    that itself relies on percent-encoded characters reaches the target server
    decoded one level further than the caller may expect.
    """
    query = str(request.url.query)
    if not query:
        return None
    return unquote(unquote(query))


def is_forwardable(name: str) -> bool:
    name_lower = name.lower()
    if name_lower.startswith(STRIPPED_PREFIXES):
        return False
    if "referer" in name_lower:
        return False
    if name_lower in HOP_BY_HOP_HEADERS or name_lower in TRANSPORT_HEADERS:
        return False
    return True


def filter_headers(headers: Iterable[Tuple[str, str]]) -> Dict[str, str]:
    """Copy inbound headers, dropping caller identifying and control headers."""
    return {name: value for name, value in headers if is_forwardable(name)}


def merge_headers(headers: Dict[str, str], extra: Mapping[str, str]) -> Dict[str, str]:
    """Merge ``extra`` into ``headers``; names compare case-insensitively and extra wins."""
    merged = dict(headers)
    for name, value in extra.items():
        for existing in [k for k in merged if k.lower() == name.lower()]:
            del merged[existing]
        merged[name] = value
    return merged


def has_header(headers: Mapping[str, str], name: str) -> bool:
    return any(k.lower() == name.lower() for k in headers)


def build_outbound_request(
    target_url: str,
    method: str,
    headers: Iterable[Tuple[str, str]],
    body: Optional[bytes],
    overrides: CustomOverrides,
) -> OutboundRequest:
    """Derive the request sent to the target from the inbound request and overrides."""
    outbound_headers = merge_headers(filter_headers(headers), overrides.extra_headers())
    outbound_method = overrides.method if overrides.method is not None else method

    outbound_body: Optional[Union[bytes, str]] = body or None
    if outbound_method.upper() in BODYLESS_METHODS:
        outbound_body = None
    override_body = overrides.body_for(outbound_method)
    if override_body is not None:
        outbound_body = override_body
        if not has_header(outbound_headers, "content-type"):
            outbound_headers["Content-Type"] = "application/json"

    logger.debug(
        f"[Proxy] Built outbound {outbound_method} {target_url} "
        f"with {len(outbound_headers)} headers"
    )
    return OutboundRequest(
        url=target_url,
        method=outbound_method,
        headers=outbound_headers,
        body=outbound_body,
    )
