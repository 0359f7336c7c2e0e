"""
Rewriting of target responses for browser callers.

Every header the target returned is listed in ``Access-Control-Expose-Headers``
and serialized as JSON into ``cors-received-headers``, so scripts can read
headers that fetch would otherwise hide. CORS headers are then laid on top,
reflecting the caller's ``Origin`` rather than using a wildcard so that
credentialed requests keep working.
"""

import json
from typing import Dict, List, Mapping, Optional, Tuple

import httpx
from fastapi.responses import PlainTextResponse, Response
from starlette.datastructures import MutableHeaders

from cors_proxy.proxy.forwarder import OutboundResponse
from cors_proxy.proxy.request_builder import HOP_BY_HOP_HEADERS

CORS_RECEIVED_HEADERS = "cors-received-headers"

# The client has already decoded the body and the framework sets its own length
EXCLUDED_RESPONSE_HEADERS = HOP_BY_HOP_HEADERS | {"content-length", "content-encoding"}


def apply_cors_headers(
    headers: MutableHeaders, request_headers: Mapping[str, str], is_preflight: bool
) -> MutableHeaders:
    origin = request_headers.get("origin")
    if origin:
        headers["Access-Control-Allow-Origin"] = origin

    if is_preflight:
        requested_method = request_headers.get("access-control-request-method")
        if requested_method:
            headers["Access-Control-Allow-Methods"] = requested_method
        headers["Access-Control-Allow-Credentials"] = "true"

        requested_headers = request_headers.get("access-control-request-headers")
        if requested_headers:
            headers["Access-Control-Allow-Headers"] = requested_headers

        if "x-content-type-options" in headers:
            del headers["X-Content-Type-Options"]

    return headers


def received_headers_manifest(
    headers: Optional[httpx.Headers],
) -> Tuple[List[str], Dict[str, str]]:
    """
    Return the exposed header names and a name to value snapshot of ``headers``.

    Names are lower-cased and repeated headers are joined with ``", "``, the
    same view a fetch ``Headers`` object gives.
    """
    exposed_headers = []
    all_headers = {}
    for name, value in (headers or httpx.Headers()).items():
        exposed_headers.append(name)
        all_headers[name] = value
    exposed_headers.append(CORS_RECEIVED_HEADERS)
    return exposed_headers, all_headers


def rewrite_response(
    upstream: Optional[OutboundResponse],
    request_headers: Mapping[str, str],
    is_preflight: bool,
) -> Response:
    """
    Build the response returned to the caller.

    Preflight requests always answer 200 with an empty body; the target's
    status and body are only used for non-preflight requests.
    """
    if is_preflight or upstream is None:
        response = Response(content=b"", status_code=200)
    else:
        response = Response(content=upstream.content, status_code=upstream.status_code)
        # Raw bytes, so values outside latin-1 reach the caller unchanged
        for name, value in upstream.headers.raw:
            name = name.lower()
            if name.decode("latin-1") not in EXCLUDED_RESPONSE_HEADERS:
                response.raw_headers.append((name, value))

    exposed_headers, all_headers = received_headers_manifest(
        upstream.headers if upstream is not None else None
    )
    # Only the caller's own Origin is ever allowed, never the target's value
    if "access-control-allow-origin" in response.headers:
        del response.headers["Access-Control-Allow-Origin"]
    apply_cors_headers(response.headers, request_headers, is_preflight)
    response.headers["Access-Control-Expose-Headers"] = ",".join(exposed_headers)
    response.headers[CORS_RECEIVED_HEADERS] = json.dumps(
        all_headers, separators=(",", ":")
    )
    return response


def error_response(
    status_code: int, detail: str, request_headers: Mapping[str, str]
) -> Response:
    """Plain-text failure response that the calling page is still allowed to read."""
    response = PlainTextResponse(detail, status_code=status_code)
    apply_cors_headers(response.headers, request_headers, is_preflight=False)
    return response
