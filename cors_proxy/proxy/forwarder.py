import logging
from dataclasses import dataclass

import httpx
from fastapi import HTTPException
from opentelemetry import trace

from cors_proxy.proxy.request_builder import OutboundRequest
from cors_proxy.utils.exception_logging import (
    format_exception_message,
    log_exception_with_details,
)
from cors_proxy.utils.traced_requests import traced_request
from cors_proxy.vars import PROXY_TIMEOUT

tracer = trace.get_tracer(__name__)
logger = logging.getLogger("uvicorn.error")


@dataclass
class OutboundResponse:
    status_code: int
    reason_phrase: str
    headers: httpx.Headers
    content: bytes


async def forward(outbound: OutboundRequest) -> OutboundResponse:
    """
    Send the outbound request to its target and read the full response.

    Redirects are followed by the client. A timeout maps to 504 and any other
    transport or URL failure to 502, both raised as ``HTTPException``.
    Cancelling the calling task closes the client and its connection.
    """
    with traced_request(
        tracer,
        operation="proxy_request",
        target_url=outbound.url,
        method=outbound.method,
        start_message=f"[Proxy] Forwarding {outbound.method} -> {outbound.url}",
    ) as span:
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(PROXY_TIMEOUT),
                follow_redirects=outbound.follow_redirects,
            ) as client:
                response = await client.request(
                    method=outbound.method,
                    url=outbound.url,
                    headers=outbound.headers,
                    content=outbound.body,
                )

                span.set_attribute("proxy.status_code", response.status_code)
                logger.debug(
                    f"[Proxy] {outbound.method} {outbound.url} -> {response.status_code}"
                )

                return OutboundResponse(
                    status_code=response.status_code,
                    reason_phrase=response.reason_phrase,
                    headers=httpx.Headers(response.headers),
                    content=response.content,
                )

        except httpx.TimeoutException as e:
            logger.error(f"[Proxy] Timeout for {outbound.url}: {e}")
            span.set_attribute("proxy.error", "timeout")
            raise HTTPException(status_code=504, detail="Gateway timeout")

        except httpx.ConnectError as e:
            logger.error(f"[Proxy] Failed to connect to target {outbound.url}: {e}")
            span.set_attribute("proxy.error", "connection_failed")
            raise HTTPException(
                status_code=502, detail="Bad gateway - cannot connect to target"
            )

        except Exception as e:
            log_exception_with_details(logger, f"[Proxy] {outbound.url}", e)
            span.set_attribute("proxy.error", format_exception_message(e))
            raise HTTPException(
                status_code=502, detail=f"Bad gateway: {format_exception_message(e)}"
            )
