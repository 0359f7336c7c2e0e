import json
import os

SERVICE_NAME = os.getenv("SERVICE_NAME", "cors-proxy")
SOURCE_URL = os.getenv("SOURCE_URL", "")

HOST = os.environ.get("HOST", "0.0.0.0")
PORT = int(os.environ.get("PORT", "8080"))
LIMIT_CONCURRENCY = int(os.environ.get("LIMIT_CONCURRENCY", "0")) or None

PROXY_TIMEOUT = float(os.getenv("PROXY_TIMEOUT", "30"))

OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT")
OTLP_HEADERS = os.getenv("OTLP_HEADERS", "")


def _parse_pattern_list(raw: str, default: list) -> list:
    """Read a pattern list from either a JSON array or a comma separated string."""
    if raw is None:
        return list(default)
    raw = raw.strip()
    if not raw:
        return []
    if raw.startswith("["):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            return [str(p) for p in parsed if str(p)]
    return [p.strip() for p in raw.split(",") if p.strip()]


# Regexes matched against the decoded target URL; a match rejects the request
BLACKLIST_URLS = _parse_pattern_list(os.getenv("BLACKLIST_URLS"), [])
# Regexes matched against the Origin header; a missing Origin is always accepted
WHITELIST_ORIGINS = _parse_pattern_list(os.getenv("WHITELIST_ORIGINS"), [".*"])
