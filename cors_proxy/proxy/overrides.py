"""
Parsing of the caller supplied override headers.

``x-cors-headers``, ``x-cors-method`` and ``x-cors-body`` let a browser caller
shape the forwarded request. The JSON carrying headers are decoded into one of
three variants: ``Structured`` when the value is valid JSON, ``Raw`` when it is
not, and ``Absent`` when the header was not sent (or decodes to ``null``).
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union

logger = logging.getLogger("uvicorn.error")

CUSTOM_HEADERS_HEADER = "x-cors-headers"
CUSTOM_METHOD_HEADER = "x-cors-method"
CUSTOM_BODY_HEADER = "x-cors-body"

CONTROL_HEADERS = (CUSTOM_HEADERS_HEADER, CUSTOM_METHOD_HEADER, CUSTOM_BODY_HEADER)


@dataclass(frozen=True)
class Structured:
    value: Any

    def encode(self) -> str:
        if isinstance(self.value, str):
            return self.value
        return _compact_json(self.value)

    def to_json(self) -> str:
        return _compact_json(self.value)


@dataclass(frozen=True)
class Raw:
    text: str

    def encode(self) -> str:
        return self.text

    def to_json(self) -> str:
        return _compact_json(self.text)


@dataclass(frozen=True)
class Absent:
    def encode(self) -> None:
        return None

    def to_json(self) -> None:
        return None


ABSENT = Absent()

OverrideValue = Union[Structured, Raw, Absent]


def _compact_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def parse_override(raw: Optional[str]) -> OverrideValue:
    """Decode a JSON override header, keeping the raw text when it is not JSON."""
    if raw is None:
        return ABSENT
    try:
        value = json.loads(raw)
    except ValueError:
        return Raw(raw)
    if value is None:
        return ABSENT
    return Structured(value)


def _header_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    return _compact_json(value)


@dataclass(frozen=True)
class CustomOverrides:
    headers: OverrideValue = ABSENT
    method: Optional[str] = None
    body: OverrideValue = ABSENT

    @classmethod
    def from_request_headers(cls, headers: Mapping[str, str]) -> "CustomOverrides":
        overrides = cls(
            headers=parse_override(headers.get(CUSTOM_HEADERS_HEADER)),
            method=headers.get(CUSTOM_METHOD_HEADER),
            body=parse_override(headers.get(CUSTOM_BODY_HEADER)),
        )
        if isinstance(overrides.headers, Raw):
            logger.debug(
                f"[Overrides] Ignoring {CUSTOM_HEADERS_HEADER}, not valid JSON"
            )
        return overrides

    def extra_headers(self) -> Dict[str, str]:
        """Headers to merge into the forwarded request; only a JSON object counts."""
        if isinstance(self.headers, Structured) and isinstance(
            self.headers.value, dict
        ):
            return {
                str(name): _header_value(value)
                for name, value in self.headers.value.items()
            }
        return {}

    def body_for(self, method: str) -> Optional[str]:
        """
        Return the override body to send, if any.

        The body override only applies together with a method override, and
        never to GET or HEAD.
        """
        if isinstance(self.body, Absent) or self.method is None:
            return None
        if method.upper() in ("GET", "HEAD"):
            return None
        return self.body.encode()

    @property
    def present(self) -> bool:
        return (
            not isinstance(self.headers, Absent)
            or self.method is not None
            or not isinstance(self.body, Absent)
        )
