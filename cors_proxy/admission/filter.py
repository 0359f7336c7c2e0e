"""
Admission checks for proxied requests.

Two ordered regex lists gate every request: a denylist matched against the
decoded target URL and an allowlist matched against the caller's ``Origin``.
Patterns are searched (not anchored) the same way a browser's
``String.prototype.match`` would treat them. A missing or empty subject is
always admitted; that case is reported separately as ``VACUOUSLY_ALLOWED`` so
callers and logs can tell it apart from a real pattern match.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Tuple

from cors_proxy.vars import BLACKLIST_URLS, WHITELIST_ORIGINS

logger = logging.getLogger("uvicorn.error")


class Admission(Enum):
    ALLOWED = "allowed"
    DENIED = "denied"
    VACUOUSLY_ALLOWED = "vacuously_allowed"

    @property
    def admitted(self) -> bool:
        return self is not Admission.DENIED


@dataclass(frozen=True)
class PatternList:
    patterns: Tuple[re.Pattern, ...] = ()

    @classmethod
    def compile(cls, patterns: Iterable[str]) -> "PatternList":
        return cls(tuple(re.compile(p) for p in patterns))

    def matches_any(self, subject: str) -> bool:
        return any(p.search(subject) is not None for p in self.patterns)

    def __len__(self) -> int:
        return len(self.patterns)


def check_target(target_url: Optional[str], denylist: PatternList) -> Admission:
    """A target is allowed unless it matches one of the denylist patterns."""
    if not target_url:
        return Admission.VACUOUSLY_ALLOWED
    if denylist.matches_any(target_url):
        return Admission.DENIED
    return Admission.ALLOWED


def check_origin(origin: Optional[str], allowlist: PatternList) -> Admission:
    """An origin is allowed only if it matches an allowlist pattern, or is absent."""
    if not origin:
        return Admission.VACUOUSLY_ALLOWED
    if allowlist.matches_any(origin):
        return Admission.ALLOWED
    return Admission.DENIED


@dataclass(frozen=True)
class AdmissionPolicy:
    denylist: PatternList
    allowlist: PatternList

    @classmethod
    def from_config(cls) -> "AdmissionPolicy":
        policy = cls(
            denylist=PatternList.compile(BLACKLIST_URLS),
            allowlist=PatternList.compile(WHITELIST_ORIGINS),
        )
        logger.info(
            f"[Admission] Loaded {len(policy.denylist)} denylist and "
            f"{len(policy.allowlist)} allowlist patterns"
        )
        return policy

    def evaluate(
        self, target_url: Optional[str], origin: Optional[str]
    ) -> Tuple[Admission, Admission]:
        return check_target(target_url, self.denylist), check_origin(
            origin, self.allowlist
        )

    def admits(
        self,
        target_url: Optional[str],
        origin: Optional[str],
        results: Optional[Tuple[Admission, Admission]] = None,
    ) -> bool:
        """Decide admission, reusing ``results`` from ``evaluate`` when given."""
        target_result, origin_result = results or self.evaluate(target_url, origin)
        if not target_result.admitted:
            logger.info(f"[Admission] Target URL denied: {target_url}")
            return False
        if not origin_result.admitted:
            logger.info(f"[Admission] Origin not allowed: {origin}")
            return False
        return True
