from typing import Mapping, Optional

from fastapi.responses import HTMLResponse, PlainTextResponse

from cors_proxy.proxy.overrides import (
    CUSTOM_BODY_HEADER,
    CUSTOM_HEADERS_HEADER,
    CUSTOM_METHOD_HEADER,
    Absent,
    CustomOverrides,
)
from cors_proxy.proxy.response_rewriter import apply_cors_headers
from cors_proxy.utils import client_ip
from cors_proxy.vars import SOURCE_URL


def datacenter_from_ray(ray_id: Optional[str]) -> Optional[str]:
    """The edge location code is the suffix of a ``CF-Ray`` id, e.g. ``...-SJC``."""
    if not ray_id or "-" not in ray_id:
        return None
    return ray_id.rsplit("-", 1)[1] or None


def render_info_page(
    base_url: str,
    headers: Mapping[str, str],
    peer: Optional[str],
    overrides: CustomOverrides,
) -> str:
    origin = headers.get("origin")
    country = headers.get("cf-ipcountry")
    colo = datacenter_from_ray(headers.get("cf-ray"))

    text = "CORS Proxy\n\n"
    if SOURCE_URL:
        text += f"Source:\n{SOURCE_URL}\n\n"
    text += (
        "Usage:\n"
        f"{base_url.rstrip('/')}/?uri\n\n"
        "Custom Headers:\n"
        f"{CUSTOM_HEADERS_HEADER}: Custom headers as JSON\n"
        f"{CUSTOM_METHOD_HEADER}: Override HTTP method (e.g., POST, PUT)\n"
        f"{CUSTOM_BODY_HEADER}: Request body as JSON string\n\n"
    )
    if origin:
        text += f"Origin: {origin}\n"
    text += f"IP: {client_ip(headers, peer)}\n"
    if country:
        text += f"Country: {country}\n"
    if colo:
        text += f"Datacenter: {colo}\n"
    text += "\n"

    if not isinstance(overrides.headers, Absent):
        text += f"\n{CUSTOM_HEADERS_HEADER}: {overrides.headers.to_json()}"
    if overrides.method is not None:
        text += f"\n{CUSTOM_METHOD_HEADER}: {overrides.method}"
    if not isinstance(overrides.body, Absent):
        text += f"\n{CUSTOM_BODY_HEADER}: {overrides.body.to_json()}"
    return text


def info_response(
    base_url: str,
    headers: Mapping[str, str],
    peer: Optional[str],
    overrides: CustomOverrides,
    is_preflight: bool = False,
) -> PlainTextResponse:
    response = PlainTextResponse(
        render_info_page(base_url, headers, peer, overrides), status_code=200
    )
    apply_cors_headers(response.headers, headers, is_preflight)
    return response


def forbidden_response() -> HTMLResponse:
    """Fixed rejection page, sent without CORS headers."""
    body = "Forbidden: this request is not allowed by the CORS proxy</br>\n"
    if SOURCE_URL:
        body += (
            "Create your own CORS proxy</br>\n"
            f"<a href='{SOURCE_URL}'>{SOURCE_URL}</a></br>\n"
        )
    return HTMLResponse(body, status_code=403)
