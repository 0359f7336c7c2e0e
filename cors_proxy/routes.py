import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import Response
from opentelemetry import trace

from cors_proxy.admission import AdmissionPolicy
from cors_proxy.proxy.forwarder import forward
from cors_proxy.proxy.overrides import CustomOverrides
from cors_proxy.proxy.pages import forbidden_response, info_response
from cors_proxy.proxy.request_builder import (
    build_outbound_request,
    extract_target_url,
)
from cors_proxy.proxy.response_rewriter import error_response, rewrite_response

router = APIRouter()
logger = logging.getLogger("uvicorn.error")
tracer = trace.get_tracer(__name__)

admission_policy = AdmissionPolicy.from_config()


async def handle_request(request: Request) -> Response:
    """
    Admit, forward and rewrite a single proxied request.

    Without a target URL the caller gets the info page. Preflight requests are
    answered here and never reach the target.
    """
    target_url = extract_target_url(request)
    origin = request.headers.get("origin")
    is_preflight = request.method == "OPTIONS"

    with tracer.start_as_current_span("admission_check") as span:
        target_result, origin_result = admission_policy.evaluate(target_url, origin)
        span.set_attribute("admission.target", target_result.value)
        span.set_attribute("admission.origin", origin_result.value)
        if not admission_policy.admits(
            target_url, origin, results=(target_result, origin_result)
        ):
            return forbidden_response()

    overrides = CustomOverrides.from_request_headers(request.headers)

    if target_url is None:
        return info_response(
            str(request.base_url),
            request.headers,
            request.client.host if request.client else None,
            overrides,
            is_preflight=is_preflight,
        )

    if is_preflight:
        logger.debug(f"[Proxy] Answering preflight for {target_url}")
        return rewrite_response(None, request.headers, is_preflight=True)

    outbound = build_outbound_request(
        target_url,
        request.method,
        request.headers.items(),
        await request.body(),
        overrides,
    )
    try:
        upstream = await forward(outbound)
    except HTTPException as e:
        return error_response(e.status_code, e.detail, request.headers)

    return rewrite_response(upstream, request.headers, is_preflight=False)


async def proxy_all(request: Request):
    """Catch-all route; the target URL travels in the query string."""
    return await handle_request(request)


# A plain Starlette route without a method list, so extension methods
# (PROPFIND, QUERY, ...) are proxied as well
router.add_route("/{path:path}", proxy_all, include_in_schema=False)
