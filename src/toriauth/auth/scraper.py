"""CSRF token extraction from server-rendered login pages.

The login page embeds its state as HTML-entity-encoded JSON inside a
``<div id="bffData">`` container. Sources are consulted in a fixed
priority order and the first non-empty value wins:

1. ``csrfToken`` inside the decoded bffData JSON.
2. ``"csrfToken": "..."`` anywhere in the body.
3. A free-form ``csrfToken = '...'`` style assignment.
4. The ``X-Csrf-Token`` response header.

The regular expressions are compiled once at import time into an
immutable :class:`CsrfPatterns` bundle that is shared by every
:class:`CsrfScraper`.
"""

from __future__ import annotations

import html
import json
import logging
import re
from dataclasses import dataclass
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

CSRF_HEADER = "X-Csrf-Token"


@dataclass(frozen=True)
class CsrfPatterns:
    """Compiled patterns used by :class:`CsrfScraper`, in priority order."""

    bff_data: re.Pattern[str]
    fallbacks: tuple[re.Pattern[str], ...]


DEFAULT_PATTERNS = CsrfPatterns(
    bff_data=re.compile(r'<div id="bffData"[^>]*>([^<]+)</div>'),
    fallbacks=(
        re.compile(r'"csrfToken"\s*:\s*"([^"]+)"'),
        re.compile(r"""csrfToken['":\s]+=?\s*['"]([^'"]+)['"]"""),
    ),
)


class CsrfScraper:
    """Find the CSRF token in a login page response.

    Args:
        patterns: Pattern bundle; defaults to :data:`DEFAULT_PATTERNS`.
    """

    def __init__(self, patterns: CsrfPatterns = DEFAULT_PATTERNS) -> None:
        self._patterns = patterns

    def extract(
        self, body: str, headers: Optional[Mapping[str, str]] = None
    ) -> Optional[str]:
        """Return the CSRF token, or ``None`` when no source yields one.

        Args:
            body: The HTML response body.
            headers: Response headers (case-insensitive mappings such as
                :class:`httpx.Headers` are supported).
        """
        token = self._from_bff_data(body)
        if token:
            logger.debug("CSRF token found in bffData")
            return token

        for pattern in self._patterns.fallbacks:
            match = pattern.search(body)
            if match and match.group(1):
                logger.debug("CSRF token found by pattern %s", pattern.pattern)
                return match.group(1)

        if headers is not None:
            token = headers.get(CSRF_HEADER) or headers.get(CSRF_HEADER.lower())
            if token:
                logger.debug("CSRF token found in response header")
                return token

        return None

    def _from_bff_data(self, body: str) -> Optional[str]:
        match = self._patterns.bff_data.search(body)
        if not match:
            return None
        try:
            data = json.loads(html.unescape(match.group(1)))
        except json.JSONDecodeError:
            logger.debug("bffData container is not valid JSON")
            return None
        if not isinstance(data, dict):
            return None
        token = data.get("csrfToken")
        return token if isinstance(token, str) and token else None
