"""
Domain allow-list

The trust boundary: a URL passes only when its hostname equals an entry or is
a subdomain of one. Suffix matching is label-aware, so "who.int.evil.com"
never matches "who.int".
"""

from typing import Iterable, Optional, Tuple
from urllib.parse import urlsplit


def normalize_host(host: Optional[str]) -> str:
    host = (host or "").strip().lower().rstrip(".")
    if "://" in host:
        host = urlsplit(host).hostname or ""
    return host


class AllowList:
    """Normalized, immutable set of trusted domains."""

    def __init__(self, domains: Iterable[str]):
        seen = []
        for d in domains:
            host = normalize_host(d)
            if host and host not in seen:
                seen.append(host)
        self._domains: Tuple[str, ...] = tuple(seen)

    @property
    def domains(self) -> Tuple[str, ...]:
        return self._domains

    def __bool__(self) -> bool:
        return bool(self._domains)

    def __len__(self) -> int:
        return len(self._domains)

    def host_allowed(self, host: Optional[str]) -> bool:
        h = normalize_host(host)
        if not h:
            return False
        return any(h == d or h.endswith("." + d) for d in self._domains)

    def is_allowed(self, url: Optional[str]) -> bool:
        """True when the URL is http(s) and its host is inside the boundary."""
        try:
            parts = urlsplit((url or "").strip())
            host = parts.hostname
        except ValueError:
            return False
        if parts.scheme not in ("http", "https"):
            return False
        return self.host_allowed(host)

    def site_clause(self) -> str:
        """' (site:a OR site:b)' for upstream query scoping, '' when empty."""
        if not self._domains:
            return ""
        return " (" + " OR ".join(f"site:{d}" for d in self._domains) + ")"
